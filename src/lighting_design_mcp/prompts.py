"""Prompt builders for look, cue-sequence and fixture-usage generation."""

from __future__ import annotations

from dataclasses import dataclass
from typing import List, Optional

from .errors import InvalidScope
from .models import (
    FixtureFilter,
    FixtureInstance,
    LookRequest,
    LookSummary,
    RecommendationBundle,
    TransitionPreferences,
)


@dataclass(frozen=True)
class PromptLimits:
    max_fixtures: int = 15
    unchanged_context_limit: int = 5
    max_context_chars: int = 4000
    max_script_chars: int = 12000


def validate_scope(scope: str, fixture_filter: Optional[FixtureFilter]) -> None:
    if scope not in ("full", "additive"):
        raise InvalidScope(f"Unknown scope '{scope}'; expected 'full' or 'additive'", {"scope": scope})
    if scope == "additive" and (fixture_filter is None or fixture_filter.is_empty()):
        raise InvalidScope(
            "Additive scope requires a non-empty fixture filter (includeTypes, excludeTypes or includeTags)",
            {"scope": scope},
        )


def _truncate(text: str, limit: int) -> str:
    text = text.strip()
    if len(text) <= limit:
        return text
    return text[:limit].rstrip() + " [...]"


def describe_fixture(fixture: FixtureInstance) -> str:
    channels = ", ".join(
        "{}:{}[{}-{}]".format(channel.offset, channel.type.value, *channel.value_range())
        for channel in sorted(fixture.channels, key=lambda item: item.offset)
    )
    mode = fixture.mode_name or "default mode"
    return f"{fixture.id}: {fixture.name} ({fixture.type.value}, {mode}) - Channels: {channels}"


def _preference_lines(request: LookRequest) -> List[str]:
    prefs = request.design_preferences
    if prefs is None:
        return []
    lines = ["Design preferences:"]
    if prefs.color_palette:
        lines.append(f"- Color palette: {', '.join(prefs.color_palette)}")
    if prefs.mood:
        lines.append(f"- Mood: {prefs.mood}")
    if prefs.intensity:
        lines.append(f"- Intensity: {prefs.intensity}")
    if prefs.focus_areas:
        lines.append(f"- Focus areas: {', '.join(prefs.focus_areas)}")
    return lines if len(lines) > 1 else []


def _recommendation_lines(recommendations: RecommendationBundle) -> List[str]:
    lines = ["Design recommendations (advisory):"]
    if recommendations.color_suggestions:
        lines.append(f"- Colors: {', '.join(recommendations.color_suggestions)}")
    if recommendations.intensity_levels:
        bands = ", ".join(f"{band} {level}%" for band, level in recommendations.intensity_levels.items())
        lines.append(f"- Intensity bands: {bands}")
    if recommendations.focus_areas:
        lines.append(f"- Focus areas: {', '.join(recommendations.focus_areas)}")
    if recommendations.reasoning:
        lines.append(f"- Rationale: {recommendations.reasoning}")
    return lines


def build_look_prompt(
    request: LookRequest,
    targets: List[FixtureInstance],
    all_fixtures: List[FixtureInstance],
    recommendations: RecommendationBundle,
    limits: PromptLimits = PromptLimits(),
) -> str:
    """Serialise a look request into a bounded prompt.

    ``targets`` are the fixtures the model may set. In full scope they are the
    whole usable inventory; in additive scope they are the filtered subset and
    the rest of ``all_fixtures`` is listed as unchanged context.
    """
    validate_scope(request.scope, request.fixture_filter)

    usable = [fixture for fixture in targets if fixture.channels]
    shown = usable[: limits.max_fixtures]
    warning = f" (showing first {len(shown)} of {len(usable)} fixtures)" if len(usable) > len(shown) else ""

    lines = [
        "You are a theatrical lighting designer programming DMX fixtures.",
        f"Look: {request.description.strip()}",
    ]
    if request.script_context:
        lines.extend(["", "Script context:", _truncate(request.script_context, limits.max_context_chars)])

    preference_lines = _preference_lines(request)
    if preference_lines:
        lines.append("")
        lines.extend(preference_lines)

    lines.append("")
    lines.extend(_recommendation_lines(recommendations))
    lines.append("")

    if request.scope == "additive":
        target_ids = {fixture.id for fixture in targets}
        others = [fixture for fixture in all_fixtures if fixture.id not in target_ids]
        context = others[: limits.unchanged_context_limit]
        lines.append("ADDITIVE LOOK: only modify the fixtures listed below. Every other fixture keeps its current state.")
        lines.append("")
        lines.append(f"Fixtures to modify ({len(usable)} of {len(all_fixtures)} total){warning}:")
        lines.extend(describe_fixture(fixture) for fixture in shown)
        if others:
            lines.append("")
            lines.append("Other fixtures in the project (leave unchanged, do NOT include them):")
            lines.extend(f"{fixture.id}: {fixture.name} ({fixture.type.value}) - NOT MODIFIED" for fixture in context)
            if len(others) > len(context):
                lines.append(f"... and {len(others) - len(context)} more")
        lines.append("")
        lines.append(f"IMPORTANT: only include fixtureValues for the {len(shown)} fixtures listed to modify.")
    else:
        lines.append("FULL LOOK: this look replaces the whole lighting state, use ALL fixtures.")
        lines.append("")
        lines.append(f"Fixtures (use ALL {len(shown)}){warning}:")
        lines.extend(describe_fixture(fixture) for fixture in shown)
        lines.append("")
        lines.append(f"IMPORTANT: include values for ALL {len(shown)} fixtures above.")

    lines.extend(
        [
            "",
            "Return ONLY a JSON object:",
            "{",
            '  "name": "Look name",',
            '  "description": "What the audience sees",',
            '  "fixtureValues": [',
            '    {"fixtureId": "fixture_id", "channels": [{"offset": 0, "value": 255}, {"offset": 1, "value": 128}]}',
            "  ],",
            '  "reasoning": "Why these choices"',
            "}",
            "Each channels entry sets one channel: offset is the channel offset listed above and value must lie "
            "in that channel's [min-max] range. Omit channels you do not want to set.",
        ]
    )
    return "\n".join(lines)


def build_cue_sequence_prompt(
    script_context: str,
    looks: List[LookSummary],
    transitions: TransitionPreferences,
    limits: PromptLimits = PromptLimits(),
) -> str:
    lines = [
        "Create a theatrical cue sequence based on this script context and the available looks.",
        "",
        "Script context:",
        _truncate(script_context, limits.max_context_chars) or "No script context provided.",
        "",
        "Available looks:",
    ]
    for index, look in enumerate(looks):
        description = f": {look.description}" if look.description else ""
        lines.append(f"[{index}] {look.id} {look.name}{description}")

    lines.extend(
        [
            "",
            "Transition preferences:",
            f"- Default fade in: {transitions.default_fade_in}s",
            f"- Default fade out: {transitions.default_fade_out}s",
            f"- Follow cues: {str(transitions.follow_cues).lower()}",
            f"- Auto advance: {str(transitions.auto_advance).lower()}",
            "",
            "Return ONLY a JSON object:",
            "{",
            '  "name": "Cue sequence name",',
            '  "description": "Sequence description",',
            '  "cues": [',
            '    {"name": "Cue name", "cueNumber": 1.0, "lookId": "0", "fadeInTime": 3.0, "fadeOutTime": 3.0,',
            '     "followTime": null, "notes": "Director notes"}',
            "  ],",
            '  "reasoning": "Timing and sequencing decisions"',
            "}",
            "lookId must be a look id or the [index] of one of the looks above. Consider dramatic pacing, "
            "smooth mood transitions and standard theatrical cueing practice.",
        ]
    )
    return "\n".join(lines)


def build_fixture_usage_prompt(
    scene_context: str,
    fixtures: List[FixtureInstance],
    limits: PromptLimits = PromptLimits(),
) -> str:
    lines = [
        "Analyze the available fixtures and suggest which ones to use for this scene.",
        "",
        "Scene context:",
        _truncate(scene_context, limits.max_context_chars),
        "",
        "Available fixtures:",
    ]
    for fixture in fixtures:
        tags = f" tags: {', '.join(fixture.tags)}" if fixture.tags else ""
        position = f" universe {fixture.universe}, channel {fixture.start_channel}" if fixture.universe is not None else ""
        lines.append(f"- {fixture.id}: {fixture.name} ({fixture.type.value}){position}{tags}")

    lines.extend(
        [
            "",
            "Return ONLY a JSON object:",
            "{",
            '  "primaryFixtures": ["fixture ids for main lighting"],',
            '  "supportingFixtures": ["fixture ids for accent or fill lighting"],',
            '  "unusedFixtures": ["fixture ids not needed"],',
            '  "reasoning": "Fixture selection strategy"',
            "}",
            "Consider key, fill and back light, coverage and the scene's mood.",
        ]
    )
    return "\n".join(lines)


def build_script_analysis_prompt(script_text: str, limits: PromptLimits = PromptLimits()) -> str:
    lines = [
        "Analyze this theatrical script and extract lighting-relevant information.",
        "",
        "Script text:",
        _truncate(script_text, limits.max_script_chars),
        "",
        "Focus on:",
        "- Mood and atmosphere descriptions",
        "- Time of day and location changes",
        "- Stage directions that imply lighting",
        "- Character entrances and emotional beats",
        "- Explicit lighting cues in the text",
        "",
        "Return ONLY a JSON object:",
        "{",
        '  "scenes": [',
        '    {"sceneNumber": "1", "title": "optional", "content": "short excerpt", "mood": "tense",',
        '     "characters": ["NAME"], "stageDirections": ["..."], "lightingCues": ["..."],',
        '     "timeOfDay": "optional", "location": "optional"}',
        "  ],",
        '  "characters": ["NAME"],',
        '  "settings": ["location"],',
        '  "overallMood": "mood",',
        '  "themes": ["theme"]',
        "}",
    ]
    return "\n".join(lines)
