from __future__ import annotations

import pytest

from fakes import make_fixture

from lighting_design_mcp.errors import InvalidScope
from lighting_design_mcp.models import (
    DesignPreferences,
    FixtureFilter,
    LookRequest,
    LookSummary,
    RecommendationBundle,
    TransitionPreferences,
)
from lighting_design_mcp.prompts import (
    PromptLimits,
    build_cue_sequence_prompt,
    build_fixture_usage_prompt,
    build_look_prompt,
    describe_fixture,
    validate_scope,
)


def bundle() -> RecommendationBundle:
    return RecommendationBundle(
        color_suggestions=["amber", "rose"],
        intensity_levels={"key": 75},
        focus_areas=["center stage"],
        reasoning="Based on 1 similar design pattern(s)",
    )


def test_additive_scope_requires_non_empty_filter() -> None:
    with pytest.raises(InvalidScope):
        validate_scope("additive", None)
    with pytest.raises(InvalidScope):
        validate_scope("additive", FixtureFilter())
    with pytest.raises(InvalidScope):
        validate_scope("sideways", None)

    validate_scope("full", None)
    validate_scope("additive", FixtureFilter(include_tags=["lamp"]))


def test_fixture_line_carries_channel_schema() -> None:
    fixture = make_fixture("par-1", ["INTENSITY", "RED"], ranges={1: (0, 127)}, name="Front wash")

    assert describe_fixture(fixture) == "par-1: Front wash (LED_PAR, 2-channel) - Channels: 0:INTENSITY[0-255], 1:RED[0-127]"


def test_full_prompt_requires_every_fixture() -> None:
    fixtures = [make_fixture("par-1"), make_fixture("par-2")]
    request = LookRequest(
        description="warm sunset",
        design_preferences=DesignPreferences(color_palette=["orange"], mood="romantic", intensity="subtle"),
    )

    prompt = build_look_prompt(request, fixtures, fixtures, bundle())

    assert "FULL LOOK" in prompt
    assert "use ALL 2" in prompt
    assert "par-1: Fixture par-1" in prompt and "par-2: Fixture par-2" in prompt
    assert "Color palette: orange" in prompt
    assert "Colors: amber, rose" in prompt
    assert '"channels": [{"offset": 0, "value": 255}' in prompt


def test_full_prompt_truncates_large_inventory() -> None:
    fixtures = [make_fixture(f"par-{index}") for index in range(20)]
    request = LookRequest(description="big rig")

    prompt = build_look_prompt(request, fixtures, fixtures, bundle(), PromptLimits(max_fixtures=15))

    assert "showing first 15 of 20 fixtures" in prompt
    assert "par-14: " in prompt
    assert "par-15: " not in prompt


def test_additive_prompt_separates_targets_from_unchanged_context() -> None:
    lamp = make_fixture("lamp-1", tags=["lamp"])
    others = [make_fixture(f"par-{index}") for index in range(5)]
    inventory = [others[0], lamp] + others[1:]
    request = LookRequest(description="practical lamp on", scope="additive", fixture_filter=FixtureFilter(include_tags=["lamp"]))

    prompt = build_look_prompt(request, [lamp], inventory, bundle(), PromptLimits(unchanged_context_limit=2))

    modify_section, unchanged_section = prompt.split("Other fixtures in the project")
    assert "lamp-1: Fixture lamp-1" in modify_section
    assert "lamp-1" not in unchanged_section.split("IMPORTANT")[0]
    assert "par-0: Fixture par-0 (LED_PAR) - NOT MODIFIED" in unchanged_section
    assert "par-1: Fixture par-1 (LED_PAR) - NOT MODIFIED" in unchanged_section
    assert "par-2" not in unchanged_section
    assert "... and 3 more" in unchanged_section
    assert "only include fixtureValues for the 1 fixtures" in prompt


def test_additive_prompt_without_filter_fails() -> None:
    request = LookRequest(description="x", scope="additive")

    with pytest.raises(InvalidScope):
        build_look_prompt(request, [], [], bundle())


def test_script_context_is_bounded() -> None:
    request = LookRequest(description="x", script_context="word " * 1000)

    prompt = build_look_prompt(request, [make_fixture("par-1")], [make_fixture("par-1")], bundle(), PromptLimits(max_context_chars=100))

    assert "[...]" in prompt
    assert prompt.count("word") < 30


def test_cue_prompt_indexes_looks_and_transition_defaults() -> None:
    looks = [LookSummary(id="look-a", name="Dawn", description="cold start"), LookSummary(id="look-b", name="Noon")]

    prompt = build_cue_sequence_prompt("Act one", looks, TransitionPreferences(default_fade_in=2, follow_cues=True))

    assert "[0] look-a Dawn: cold start" in prompt
    assert "[1] look-b Noon" in prompt
    assert "Default fade in: 2.0s" in prompt
    assert "Follow cues: true" in prompt


def test_fixture_usage_prompt_lists_tags_and_position() -> None:
    prompt = build_fixture_usage_prompt("kitchen at night", [make_fixture("lamp-1", tags=["lamp", "practical"])])

    assert "- lamp-1: Fixture lamp-1 (LED_PAR) universe 1, channel 1 tags: lamp, practical" in prompt
