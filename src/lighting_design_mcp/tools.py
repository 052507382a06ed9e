"""Agent-facing lighting operations built on the pipeline and the backend."""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

from .backend_client import LightingBackendClient
from .errors import BackendFailure, InvalidRequest
from .models import (
    DesignPreferences,
    FixtureFilter,
    LookRequest,
    OptimizationGoal,
    RecommendationBundle,
    Scope,
    TransitionPreferences,
)
from .optimization import analyze_goals
from .pipeline import LightingPipeline
from .prompts import validate_scope

logger = logging.getLogger(__name__)

MAX_LOOK_TEMPLATES = 5
TEMPLATE_FIXTURE_TYPES = ["LED_PAR", "MOVING_HEAD"]
CONTEXT_EXCERPT_CHARS = 200


def suggest_cue_timing(cue: str, mood: str) -> str:
    words = cue.lower()
    if "blackout" in words or "lights out" in words:
        return "Fast (1-2 seconds)"
    if "fade" in words or "dim" in words:
        return "Medium (3-5 seconds)" if mood == "tense" else "Slow (5-8 seconds)"
    if "snap" in words or "flash" in words:
        return "Instant (0 seconds)"
    return "Medium (3-5 seconds)"


def map_intensity_level(intensity_levels: Dict[str, int]) -> str:
    if not intensity_levels:
        return "moderate"
    average = sum(intensity_levels.values()) / len(intensity_levels)
    if average < 30:
        return "subtle"
    if average < 70:
        return "moderate"
    return "dramatic"


def estimate_fixture_needs(recommendations: RecommendationBundle) -> int:
    count = 4
    if len(recommendations.focus_areas) > 2:
        count += 2
    if len(recommendations.color_suggestions) > 3:
        count += 2
    if recommendations.intensity_levels.get("key", 0) > 80:
        count += 1
    return min(count, 12)


def _excerpt(text: str) -> str:
    text = text.strip()
    return text if len(text) <= CONTEXT_EXCERPT_CHARS else text[:CONTEXT_EXCERPT_CHARS] + "..."


class LightingTools:
    def __init__(self, backend: LightingBackendClient, pipeline: LightingPipeline):
        self.backend = backend
        self.pipeline = pipeline

    async def generate_look(
        self,
        project_id: str,
        description: str,
        script_context: Optional[str] = None,
        scope: Scope = "full",
        design_preferences: Optional[DesignPreferences] = None,
        fixture_filter: Optional[FixtureFilter] = None,
        persist: bool = True,
        activate: bool = False,
    ) -> Dict[str, Any]:
        # before any network call
        validate_scope(scope, fixture_filter)
        request = LookRequest(
            description=description,
            script_context=script_context,
            scope=scope,
            design_preferences=design_preferences,
            fixture_filter=fixture_filter,
        )

        fixtures = await self.backend.get_project_fixtures(project_id)
        result = await self.pipeline.generate_look(request, fixtures)
        data = result.to_payload()
        data["projectId"] = project_id
        data["persisted"] = False
        data["activated"] = False

        if not persist:
            return data
        if not result.look.fixture_values:
            data["persistSkipped"] = "look has no fixture values"
            return data

        created = await self.backend.create_look(project_id, result.look)
        data["lookId"] = created.id
        data["persisted"] = True
        logger.info("Persisted look %s (%s) with %d fixtures", created.id, created.name, len(result.look.fixture_values))

        if activate:
            try:
                data["activated"] = await self.backend.set_look_live(created.id)
            except BackendFailure as error:
                logger.warning("Look %s created but activation failed: %s", created.id, error.message)
                data["activationError"] = error.message
        return data

    async def analyze_script(
        self,
        script_text: str,
        extract_lighting_cues: bool = True,
        suggest_looks: bool = True,
        use_model: bool = False,
    ) -> Dict[str, Any]:
        if use_model:
            result = await self.pipeline.analyze_script_with_model(script_text)
            analysis = result.analysis
            source = result.source
        else:
            analysis = self.pipeline.analyze_script(script_text)
            source = "heuristic"
        data: Dict[str, Any] = {
            "analysis": analysis.to_payload(),
            "analysisSource": source,
            "totalScenes": len(analysis.scenes),
            "characters": analysis.characters,
            "overallMood": analysis.overall_mood,
            "themes": analysis.themes,
        }

        if extract_lighting_cues:
            cues = [
                {
                    "sceneNumber": scene.scene_number,
                    "cue": cue,
                    "context": _excerpt(scene.content),
                    "suggestedTiming": suggest_cue_timing(cue, scene.mood),
                }
                for scene in analysis.scenes
                for cue in scene.lighting_cues
            ]
            data["lightingCues"] = cues
            data["totalCues"] = len(cues)

        if suggest_looks:
            templates = []
            for scene in analysis.scenes[:MAX_LOOK_TEMPLATES]:
                recommendations = await self.pipeline.retriever.recommend(
                    scene.content or scene.title or "", scene.mood, TEMPLATE_FIXTURE_TYPES
                )
                templates.append(
                    {
                        "sceneNumber": scene.scene_number,
                        "title": scene.title or f"Scene {scene.scene_number}",
                        "mood": scene.mood,
                        "timeOfDay": scene.time_of_day,
                        "location": scene.location,
                        "suggestedLighting": {
                            "colorPalette": recommendations.color_suggestions,
                            "intensity": map_intensity_level(recommendations.intensity_levels),
                            "focusAreas": recommendations.focus_areas,
                            "reasoning": recommendations.reasoning,
                        },
                        "estimatedFixtureCount": estimate_fixture_needs(recommendations),
                    }
                )
            data["lookTemplates"] = templates
        return data

    async def generate_cue_sequence(
        self,
        project_id: str,
        script_context: str,
        look_ids: List[str],
        sequence_name: str,
        transition_preferences: Optional[TransitionPreferences] = None,
        persist: bool = True,
    ) -> Dict[str, Any]:
        if not look_ids:
            raise InvalidRequest("At least one look id is required to build a cue sequence", {"lookIds": look_ids})

        looks = await self.backend.get_looks(look_ids)
        result = await self.pipeline.generate_cue_sequence(
            script_context, looks, transition_preferences, sequence_name=sequence_name
        )
        sequence = result.sequence
        data = result.to_payload()
        data["projectId"] = project_id
        data["statistics"] = {
            "totalCues": len(sequence.cues),
            "averageFadeTime": (
                round(sum(cue.fade_in_time for cue in sequence.cues) / len(sequence.cues), 2) if sequence.cues else 0.0
            ),
            "followCues": sum(1 for cue in sequence.cues if cue.follow_time is not None),
            "estimatedDuration": round(
                sum(cue.fade_in_time + (cue.follow_time or 0.0) for cue in sequence.cues), 2
            ),
        }
        data["persisted"] = False

        if not persist or not sequence.cues:
            return data

        cue_list = await self.backend.create_cue_list(project_id, sequence_name, sequence.description)
        created_ids: List[Any] = []
        data["cueListId"] = cue_list.get("id")
        data["createdCueIds"] = created_ids
        try:
            for cue in sequence.cues:
                created = await self.backend.create_cue(cue_list.get("id"), cue)
                created_ids.append(created.get("id"))
        except BackendFailure as error:
            logger.warning(
                "Cue list %s left with %d of %d cues: %s",
                cue_list.get("id"),
                len(created_ids),
                len(sequence.cues),
                error.message,
            )
            data["persistError"] = error.message
            return data

        data["persisted"] = True
        logger.info("Persisted cue list %s with %d cues", cue_list.get("id"), len(created_ids))
        return data

    async def optimize_look_for_fixtures(
        self,
        project_id: str,
        look_id: str,
        optimization_goals: Optional[List[OptimizationGoal]] = None,
        apply: bool = False,
    ) -> Dict[str, Any]:
        goals = list(optimization_goals or ["dramatic_impact"])
        fixtures = await self.backend.get_project_fixtures(project_id)
        look = await self.backend.get_look(look_id)

        optimized, report = self.pipeline.optimize_look(look, fixtures)
        data: Dict[str, Any] = {
            "lookId": look_id,
            "projectId": project_id,
            "originalFixtureCount": len(look.fixture_values),
            "optimizedLook": optimized.to_payload(),
            "report": report.to_payload(),
            "optimizations": analyze_goals(optimized, fixtures, goals),
            "applied": False,
        }
        if apply and not report.is_clean():
            await self.backend.update_look_fixture_values(look_id, optimized.fixture_values)
            data["applied"] = True
        return data

    async def suggest_fixture_usage(self, project_id: str, scene_context: str) -> Dict[str, Any]:
        fixtures = await self.backend.get_project_fixtures(project_id)
        suggestion = await self.pipeline.suggest_fixture_usage(scene_context, fixtures)
        data = suggestion.to_payload()
        data["projectId"] = project_id
        data["totalFixtures"] = len(fixtures)
        return data
