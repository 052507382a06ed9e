"""Goal-oriented analysis of an existing look against its fixtures."""

from __future__ import annotations

from typing import Any, Callable, Dict, List

from .models import ChannelType, FixtureInstance, GeneratedLook

COLOR_CHANNELS = {ChannelType.RED, ChannelType.GREEN, ChannelType.BLUE, ChannelType.AMBER, ChannelType.UV}
MOVEMENT_CHANNELS = {ChannelType.PAN, ChannelType.TILT, ChannelType.ZOOM, ChannelType.FOCUS, ChannelType.IRIS}


def _intensities(look: GeneratedLook, fixtures: Dict[str, FixtureInstance]) -> List[int]:
    levels: List[int] = []
    for value in look.fixture_values:
        fixture = fixtures.get(value.fixture_id)
        if fixture is None:
            continue
        for channel_value in value.channels:
            channel = fixture.channel_at(channel_value.offset)
            if channel is not None and channel.type is ChannelType.INTENSITY:
                levels.append(channel_value.value)
    return levels


def energy_efficiency(look: GeneratedLook, fixtures: Dict[str, FixtureInstance]) -> Dict[str, Any]:
    levels = _intensities(look, fixtures)
    lit = [level for level in levels if level > 0]
    return {
        "type": "energy_efficiency",
        "description": "Intensity load of the look",
        "metrics": {
            "totalIntensity": sum(levels),
            "litFixtures": len(lit),
            "averageIntensity": round(sum(lit) / len(lit), 1) if lit else 0.0,
        },
        "recommendations": [
            "Use fewer fixtures at higher intensity rather than many at low intensity",
            "Prioritize LED fixtures over traditional tungsten",
            "Consider consolidating similar color washes",
        ],
    }


def color_accuracy(look: GeneratedLook, fixtures: Dict[str, FixtureInstance]) -> Dict[str, Any]:
    unused_white: List[str] = []
    saturated: List[str] = []
    for value in look.fixture_values:
        fixture = fixtures.get(value.fixture_id)
        if fixture is None:
            continue
        set_types = {
            fixture.channel_at(item.offset).type: item.value
            for item in value.channels
            if fixture.channel_at(item.offset) is not None
        }
        has_white = any(channel.type is ChannelType.WHITE for channel in fixture.channels)
        if has_white and ChannelType.WHITE not in set_types:
            unused_white.append(fixture.id)
        color_levels = [level for channel_type, level in set_types.items() if channel_type in COLOR_CHANNELS]
        if color_levels and max(color_levels) >= 250 and min(color_levels) == 0:
            saturated.append(fixture.id)
    return {
        "type": "color_accuracy",
        "description": "Color mixing and white balance review",
        "metrics": {"fixturesWithUnusedWhite": unused_white, "fullySaturatedFixtures": saturated},
        "recommendations": [
            "Use fixtures with dedicated white channels",
            "Avoid oversaturated colors that may appear unnatural",
            "Consider color temperature consistency across fixtures",
        ],
    }


def dramatic_impact(look: GeneratedLook, fixtures: Dict[str, FixtureInstance]) -> Dict[str, Any]:
    levels = _intensities(look, fixtures)
    moving = [
        fixture.id
        for fixture in fixtures.values()
        if any(channel.type in MOVEMENT_CHANNELS for channel in fixture.channels)
    ]
    return {
        "type": "dramatic_impact",
        "description": "Contrast between the brightest and dimmest sources",
        "metrics": {
            "contrast": (max(levels) - min(levels)) if levels else 0,
            "movingFixturesAvailable": moving,
        },
        "recommendations": [
            "Use moving heads for dynamic positioning",
            "Create strong key light with softer fill",
            "Consider backlight for separation and depth",
        ],
    }


def technical_simplicity(look: GeneratedLook, fixtures: Dict[str, FixtureInstance]) -> Dict[str, Any]:
    return {
        "type": "technical_simplicity",
        "description": "Number of fixtures and channels the look drives",
        "metrics": {
            "activeFixtures": len(look.fixture_values),
            "activeChannels": sum(len(value.channels) for value in look.fixture_values),
            "availableFixtures": len(fixtures),
        },
        "recommendations": [
            "Group similar fixtures for easier control",
            "Use preset colors rather than custom mixes",
            "Minimize moving head positioning changes",
        ],
    }


GOAL_ANALYZERS: Dict[str, Callable[[GeneratedLook, Dict[str, FixtureInstance]], Dict[str, Any]]] = {
    "energy_efficiency": energy_efficiency,
    "color_accuracy": color_accuracy,
    "dramatic_impact": dramatic_impact,
    "technical_simplicity": technical_simplicity,
}


def analyze_goals(look: GeneratedLook, fixtures: List[FixtureInstance], goals: List[str]) -> List[Dict[str, Any]]:
    by_id = {fixture.id: fixture for fixture in fixtures}
    return [GOAL_ANALYZERS[goal](look, by_id) for goal in goals if goal in GOAL_ANALYZERS]
