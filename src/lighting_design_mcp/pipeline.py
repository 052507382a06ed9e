"""Generation-and-validation pipeline."""

from __future__ import annotations

import logging
from typing import List, Literal, Optional, Protocol, Tuple

from pydantic import Field

from .errors import NoMatchingFixtures
from .extraction import (
    ParseStatus,
    extract_json,
    fallback_cue_sequence,
    fallback_fixture_usage,
    fallback_look,
    fallback_script_analysis,
)
from .models import (
    CamelModel,
    FixtureInstance,
    FixtureUsageSuggestion,
    GeneratedCueSequence,
    GeneratedLook,
    LookRequest,
    LookSummary,
    RecommendationBundle,
    ReconcileReport,
    Scope,
    ScriptAnalysis,
    TransitionPreferences,
)
from .prompts import (
    PromptLimits,
    build_cue_sequence_prompt,
    build_fixture_usage_prompt,
    build_look_prompt,
    build_script_analysis_prompt,
    validate_scope,
)
from .reconciler import (
    reconcile_cue_sequence,
    reconcile_fixture_usage,
    reconcile_fixture_values,
    reconcile_look,
    reconcile_script_analysis,
    uncovered_fixture_ids,
)
from .recommendations import RecommendationRetriever
from .script_analyzer import ScriptAnalyzer

CUE_SEQUENCE_TEMPERATURE = 0.4


class TextGenerator(Protocol):
    async def complete(
        self,
        prompt: str,
        *,
        temperature: Optional[float] = None,
        max_tokens: Optional[int] = None,
    ) -> str: ...


class LookGenerationResult(CamelModel):
    look: GeneratedLook
    scope: Scope
    parse_status: ParseStatus = Field(alias="parseStatus")
    report: ReconcileReport
    uncovered_fixture_ids: List[str] = Field(default_factory=list, alias="uncoveredFixtureIds")
    recommendations: RecommendationBundle


class CueSequenceResult(CamelModel):
    sequence: GeneratedCueSequence
    parse_status: ParseStatus = Field(alias="parseStatus")
    report: ReconcileReport


class ScriptAnalysisResult(CamelModel):
    analysis: ScriptAnalysis
    source: Literal["model", "heuristic", "fallback"]
    parse_status: Optional[ParseStatus] = Field(default=None, alias="parseStatus")


class LightingPipeline:
    """Retrieval, prompting, generation, extraction and reconciliation.

    Holds no per-request state, so one instance can serve concurrent calls.
    """

    def __init__(
        self,
        retriever: RecommendationRetriever,
        generator: TextGenerator,
        limits: PromptLimits = PromptLimits(),
        logger: Optional[logging.Logger] = None,
        script_analyzer: Optional[ScriptAnalyzer] = None,
    ):
        self.retriever = retriever
        self.generator = generator
        self.limits = limits
        self.logger = logger or logging.getLogger(__name__)
        self.script_analyzer = script_analyzer or ScriptAnalyzer()

    async def generate_look(self, request: LookRequest, fixtures: List[FixtureInstance]) -> LookGenerationResult:
        validate_scope(request.scope, request.fixture_filter)

        if request.fixture_filter is not None and not request.fixture_filter.is_empty():
            targets = request.fixture_filter.apply(fixtures)
        else:
            targets = list(fixtures)
        if not targets:
            raise NoMatchingFixtures(
                "No fixtures available matching criteria",
                {"scope": request.scope, "totalFixtures": len(fixtures)},
            )

        prefs = request.design_preferences
        recommendations = await self.retriever.recommend(
            request.description,
            prefs.mood if prefs else None,
            sorted({fixture.type.value for fixture in targets}),
        )
        if not recommendations.matched_patterns:
            self.logger.warning("Generating without recommendations: %s", recommendations.reasoning)

        prompt = build_look_prompt(request, targets, fixtures, recommendations, self.limits)
        self.logger.debug("Look prompt is %d characters for %d target fixtures", len(prompt), len(targets))
        raw_text = await self.generator.complete(prompt)

        parsed = extract_json(raw_text)
        if not parsed.ok:
            self.logger.warning("Look generation output unparsed: %s", parsed.reason)
            return LookGenerationResult(
                look=fallback_look(request.description, parsed.reason),
                scope=request.scope,
                parse_status=parsed.status,
                report=ReconcileReport(),
                recommendations=recommendations,
            )

        look, report = reconcile_look(
            parsed.value,
            targets,
            description=request.description,
            default_reasoning=recommendations.reasoning,
        )
        uncovered: List[str] = []
        if request.scope == "full":
            uncovered = uncovered_fixture_ids(look, targets)
            if uncovered:
                self.logger.info("Full look left %d fixture(s) without values: %s", len(uncovered), uncovered)
        return LookGenerationResult(
            look=look,
            scope=request.scope,
            parse_status=parsed.status,
            report=report,
            uncovered_fixture_ids=uncovered,
            recommendations=recommendations,
        )

    async def generate_cue_sequence(
        self,
        script_context: str,
        looks: List[LookSummary],
        transitions: Optional[TransitionPreferences] = None,
        sequence_name: str = "Generated Cue Sequence",
    ) -> CueSequenceResult:
        transitions = transitions or TransitionPreferences()
        prompt = build_cue_sequence_prompt(script_context, looks, transitions, self.limits)
        raw_text = await self.generator.complete(prompt, temperature=CUE_SEQUENCE_TEMPERATURE)

        parsed = extract_json(raw_text)
        if not parsed.ok:
            self.logger.warning("Cue sequence output unparsed: %s", parsed.reason)
            return CueSequenceResult(
                sequence=fallback_cue_sequence(parsed.reason),
                parse_status=parsed.status,
                report=ReconcileReport(),
            )

        sequence, report = reconcile_cue_sequence(parsed.value, looks, transitions, default_name=sequence_name)
        return CueSequenceResult(sequence=sequence, parse_status=parsed.status, report=report)

    async def suggest_fixture_usage(self, scene_context: str, fixtures: List[FixtureInstance]) -> FixtureUsageSuggestion:
        prompt = build_fixture_usage_prompt(scene_context, fixtures, self.limits)
        parsed = extract_json(await self.generator.complete(prompt))
        if not parsed.ok:
            self.logger.warning("Fixture usage output unparsed: %s", parsed.reason)
            return fallback_fixture_usage(parsed.reason)
        return reconcile_fixture_usage(parsed.value, fixtures)

    def analyze_script(self, script_text: str) -> ScriptAnalysis:
        return self.script_analyzer.analyze(script_text)

    async def analyze_script_with_model(self, script_text: str) -> ScriptAnalysisResult:
        """Model-backed analysis; unusable output falls back to the heuristic analyzer."""
        prompt = build_script_analysis_prompt(script_text, self.limits)
        parsed = extract_json(await self.generator.complete(prompt))
        if parsed.ok:
            analysis = reconcile_script_analysis(parsed.value)
            if analysis.scenes:
                return ScriptAnalysisResult(analysis=analysis, source="model", parse_status=parsed.status)
            reason = "model output has no scenes"
        else:
            reason = parsed.reason

        self.logger.warning("Script analysis output unusable (%s); using heuristic analysis", reason)
        heuristic = self.analyze_script(script_text)
        if heuristic.scenes:
            return ScriptAnalysisResult(analysis=heuristic, source="heuristic", parse_status=parsed.status)
        return ScriptAnalysisResult(analysis=fallback_script_analysis(), source="fallback", parse_status=parsed.status)

    def optimize_look(self, look: LookSummary, fixtures: List[FixtureInstance]) -> Tuple[GeneratedLook, ReconcileReport]:
        """Re-validate a stored look against the current fixture inventory."""
        report = ReconcileReport()
        raw_values = [value.to_payload() for value in look.fixture_values]
        values = reconcile_fixture_values(raw_values, fixtures, report)
        if not report.is_clean():
            self.logger.info(
                "Look %s: dropped fixtures %s, dropped %d channels, clamped %d",
                look.id,
                report.dropped_fixture_ids,
                report.dropped_channels,
                report.clamped_channels,
            )
        optimized = GeneratedLook(
            name=look.name,
            description=look.description or "",
            fixture_values=values,
        )
        return optimized, report
