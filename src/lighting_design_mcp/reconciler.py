"""
Fixture reconciliation.

Converts untrusted model output into looks and cue sequences that respect the
real fixture inventory: unknown fixtures and looks are dropped, channel
offsets must exist on the fixture, values are clamped to the channel range and
the sparse channel list is never padded or reordered.
"""

from __future__ import annotations

import logging
import math
from typing import Any, Dict, Iterable, List, Optional, Set, Tuple

from .models import (
    ChannelValue,
    FixtureInstance,
    FixtureUsageSuggestion,
    FixtureValue,
    GeneratedCue,
    GeneratedCueSequence,
    GeneratedLook,
    LookSummary,
    ReconcileReport,
    ScriptAnalysis,
    ScriptScene,
    TransitionPreferences,
)

logger = logging.getLogger(__name__)


def _pick(raw: Dict[str, Any], *keys: str) -> Any:
    for key in keys:
        if key in raw:
            return raw[key]
    return None


def to_number(value: Any, allow_text: bool = False) -> Optional[float]:
    """Finite float for a JSON number; numeric strings only when ``allow_text``."""
    if allow_text and isinstance(value, str):
        try:
            value = float(value.strip())
        except ValueError:
            return None
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    if not math.isfinite(value):
        return None
    return float(value)


def to_offset(value: Any) -> Optional[int]:
    number = to_number(value)
    if number is None or not number.is_integer() or number < 0:
        return None
    return int(number)


def _text(value: Any, default: str = "") -> str:
    if isinstance(value, str) and value.strip():
        return value.strip()
    return default


def _fixture_id(value: Any) -> Optional[str]:
    if isinstance(value, str) and value.strip():
        return value.strip()
    if isinstance(value, int) and not isinstance(value, bool):
        return str(value)
    return None


def dense_to_sparse(values: Iterable[Any]) -> List[Dict[str, Any]]:
    """Adapt a legacy dense ``channelValues`` array to sparse entries.

    The array index is taken as the channel offset. ``None`` holes stay
    unset; nothing is inferred from the array length.
    """
    return [{"offset": index, "value": value} for index, value in enumerate(values) if value is not None]


def _raw_channels(entry: Dict[str, Any]) -> List[Any]:
    channels = entry.get("channels")
    if isinstance(channels, list):
        return channels
    if channels is None:
        dense = _pick(entry, "channelValues", "channel_values")
        if isinstance(dense, list):
            return dense_to_sparse(dense)
    return []


def reconcile_channels(
    raw_channels: List[Any],
    fixture: FixtureInstance,
    report: ReconcileReport,
) -> List[ChannelValue]:
    reconciled: List[ChannelValue] = []
    seen: Set[int] = set()
    for item in raw_channels:
        if not isinstance(item, dict):
            report.dropped_channels += 1
            continue
        offset = to_offset(item.get("offset"))
        channel = fixture.channel_at(offset) if offset is not None else None
        number = to_number(item.get("value"), allow_text=True)
        if channel is None or number is None or offset in seen:
            report.dropped_channels += 1
            continue
        value = int(round(number))
        clamped = channel.clamp(value)
        if clamped != value:
            report.clamped_channels += 1
        seen.add(offset)
        reconciled.append(ChannelValue(offset=offset, value=clamped))
    return reconciled


def reconcile_fixture_values(
    raw_values: Any,
    fixtures: List[FixtureInstance],
    report: ReconcileReport,
) -> List[FixtureValue]:
    if not isinstance(raw_values, list):
        return []

    by_id = {fixture.id: fixture for fixture in fixtures}
    result: List[FixtureValue] = []
    used: Set[str] = set()
    for entry in raw_values:
        if not isinstance(entry, dict):
            continue
        fixture_id = _fixture_id(_pick(entry, "fixtureId", "fixture_id"))
        fixture = by_id.get(fixture_id) if fixture_id is not None else None
        if fixture is None:
            if fixture_id is not None:
                report.dropped_fixture_ids.append(fixture_id)
            continue
        if fixture_id in used:
            logger.debug("Ignoring repeated entry for fixture %s", fixture_id)
            continue

        channels = reconcile_channels(_raw_channels(entry), fixture, report)
        if not channels:
            continue
        used.add(fixture_id)
        order = to_offset(_pick(entry, "lookOrder", "sceneOrder", "look_order"))
        result.append(FixtureValue(fixture_id=fixture_id, channels=channels, look_order=order))
    return result


def reconcile_look(
    raw: Dict[str, Any],
    fixtures: List[FixtureInstance],
    *,
    description: str,
    default_reasoning: str = "",
) -> Tuple[GeneratedLook, ReconcileReport]:
    report = ReconcileReport()
    values = reconcile_fixture_values(_pick(raw, "fixtureValues", "fixture_values"), fixtures, report)
    look = GeneratedLook(
        name=_text(raw.get("name"), f"Look for {description.strip()}"[:120]),
        description=_text(raw.get("description"), description.strip()),
        fixture_values=values,
        reasoning=_text(raw.get("reasoning"), default_reasoning),
    )
    if not report.is_clean():
        logger.info(
            "Reconciled look '%s': dropped fixtures %s, dropped %d channels, clamped %d",
            look.name,
            report.dropped_fixture_ids,
            report.dropped_channels,
            report.clamped_channels,
        )
    return look, report


def uncovered_fixture_ids(look: GeneratedLook, fixtures: List[FixtureInstance]) -> List[str]:
    covered = {value.fixture_id for value in look.fixture_values}
    return [fixture.id for fixture in fixtures if fixture.channels and fixture.id not in covered]


def resolve_look_reference(reference: Any, looks: List[LookSummary]) -> Optional[str]:
    """Resolve a cue's look reference by exact id, then by list index."""
    ids = [look.id for look in looks]
    if isinstance(reference, str):
        if reference in ids:
            return reference
        candidate = reference.strip()
        if candidate.isdigit():
            reference = int(candidate)
    if isinstance(reference, float) and reference.is_integer():
        reference = int(reference)
    if isinstance(reference, int) and not isinstance(reference, bool):
        if str(reference) in ids:
            return str(reference)
        if 0 <= reference < len(looks):
            return looks[reference].id
    return None


def reconcile_cue_sequence(
    raw: Dict[str, Any],
    looks: List[LookSummary],
    transitions: TransitionPreferences,
    *,
    default_name: str,
) -> Tuple[GeneratedCueSequence, ReconcileReport]:
    report = ReconcileReport()
    raw_cues = raw.get("cues")
    cues: List[GeneratedCue] = []
    previous_number = 0.0

    for entry in raw_cues if isinstance(raw_cues, list) else []:
        if not isinstance(entry, dict):
            report.dropped_cues += 1
            continue
        look_id = resolve_look_reference(_pick(entry, "lookId", "sceneId", "look_id"), looks)
        if look_id is None:
            report.dropped_cues += 1
            continue

        cue_number = to_number(_pick(entry, "cueNumber", "cue_number"), allow_text=True)
        if cue_number is None or cue_number < 0:
            cue_number = previous_number + 1
        previous_number = cue_number

        fade_in = to_number(_pick(entry, "fadeInTime", "fade_in_time"), allow_text=True)
        fade_out = to_number(_pick(entry, "fadeOutTime", "fade_out_time"), allow_text=True)
        follow = to_number(_pick(entry, "followTime", "follow_time"), allow_text=True)
        cues.append(
            GeneratedCue(
                name=_text(entry.get("name"), f"Cue {cue_number:g}"),
                cue_number=cue_number,
                look_id=look_id,
                fade_in_time=transitions.default_fade_in if fade_in is None else max(0.0, fade_in),
                fade_out_time=transitions.default_fade_out if fade_out is None else max(0.0, fade_out),
                follow_time=follow if follow is not None and follow >= 0 else None,
                notes=_text(entry.get("notes")) or None,
            )
        )

    if report.dropped_cues:
        logger.info("Dropped %d cue(s) referencing unknown looks", report.dropped_cues)
    sequence = GeneratedCueSequence(
        name=_text(raw.get("name"), default_name),
        description=_text(raw.get("description")),
        cues=cues,
        reasoning=_text(raw.get("reasoning")),
    )
    return sequence, report


def reconcile_fixture_usage(raw: Dict[str, Any], fixtures: List[FixtureInstance]) -> FixtureUsageSuggestion:
    known = {fixture.id for fixture in fixtures}
    assigned: Set[str] = set()

    def _ids(*keys: str) -> List[str]:
        values = _pick(raw, *keys)
        selected: List[str] = []
        for value in values if isinstance(values, list) else []:
            fixture_id = _fixture_id(value)
            if fixture_id in known and fixture_id not in assigned:
                assigned.add(fixture_id)
                selected.append(fixture_id)
        return selected

    return FixtureUsageSuggestion(
        primary_fixtures=_ids("primaryFixtures", "primary_fixtures"),
        supporting_fixtures=_ids("supportingFixtures", "supporting_fixtures"),
        unused_fixtures=_ids("unusedFixtures", "unused_fixtures"),
        reasoning=_text(raw.get("reasoning")),
    )


def _strings(value: Any) -> List[str]:
    result: List[str] = []
    for item in value if isinstance(value, list) else []:
        text = _text(item)
        if text and text not in result:
            result.append(text)
    return result


def _scene_number(value: Any, index: int) -> str:
    if isinstance(value, str) and value.strip():
        return value.strip()
    number = to_number(value)
    if number is not None:
        return f"{number:g}"
    return str(index + 1)


def reconcile_script_analysis(raw: Dict[str, Any]) -> ScriptAnalysis:
    """Coerce a model-produced script analysis; malformed scenes and list items are dropped."""
    scenes: List[ScriptScene] = []
    raw_scenes = raw.get("scenes")
    for index, entry in enumerate(raw_scenes if isinstance(raw_scenes, list) else []):
        if not isinstance(entry, dict):
            continue
        scenes.append(
            ScriptScene(
                scene_number=_scene_number(_pick(entry, "sceneNumber", "scene_number"), index),
                title=_text(entry.get("title")) or None,
                content=_text(entry.get("content")),
                mood=_text(entry.get("mood"), "neutral").lower(),
                characters=_strings(entry.get("characters")),
                stage_directions=_strings(_pick(entry, "stageDirections", "stage_directions")),
                lighting_cues=_strings(_pick(entry, "lightingCues", "lighting_cues")),
                time_of_day=_text(_pick(entry, "timeOfDay", "time_of_day")) or None,
                location=_text(entry.get("location")) or None,
            )
        )

    characters = _strings(raw.get("characters")) or _strings([name for scene in scenes for name in scene.characters])
    settings = _strings(raw.get("settings")) or _strings([scene.location for scene in scenes if scene.location])
    return ScriptAnalysis(
        scenes=scenes,
        characters=characters,
        settings=settings,
        overall_mood=_text(_pick(raw, "overallMood", "overall_mood"), "neutral").lower(),
        themes=_strings(raw.get("themes")),
    )
