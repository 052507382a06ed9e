from __future__ import annotations

import random

from fakes import make_fixture

from lighting_design_mcp.models import LookSummary, ReconcileReport, TransitionPreferences
from lighting_design_mcp.reconciler import (
    dense_to_sparse,
    reconcile_cue_sequence,
    reconcile_fixture_usage,
    reconcile_look,
    reconcile_script_analysis,
    resolve_look_reference,
    uncovered_fixture_ids,
)


def channel_pairs(look, fixture_id):
    for value in look.fixture_values:
        if value.fixture_id == fixture_id:
            return [(channel.offset, channel.value) for channel in value.channels]
    return None


def test_out_of_range_values_are_clamped() -> None:
    fixtures = [make_fixture("par-1")]
    raw = {
        "name": "Hot",
        "fixtureValues": [
            {"fixtureId": "par-1", "channels": [{"offset": 0, "value": 300}, {"offset": 1, "value": -50}, {"offset": 2, "value": 128}]}
        ],
    }

    look, report = reconcile_look(raw, fixtures, description="hot")

    assert channel_pairs(look, "par-1") == [(0, 255), (1, 0), (2, 128)]
    assert report.clamped_channels == 2


def test_unknown_fixture_ids_are_dropped() -> None:
    fixtures = [make_fixture("par-1")]
    raw = {
        "fixtureValues": [
            {"fixtureId": "ghost", "channels": [{"offset": 0, "value": 10}]},
            {"fixtureId": "par-1", "channels": [{"offset": 0, "value": 10}]},
        ]
    }

    look, report = reconcile_look(raw, fixtures, description="test")

    assert [value.fixture_id for value in look.fixture_values] == ["par-1"]
    assert report.dropped_fixture_ids == ["ghost"]


def test_channel_range_comes_from_the_fixture_definition() -> None:
    fixtures = [make_fixture("mh-1", ["PAN", "TILT"], fixture_type="MOVING_HEAD", ranges={0: (10, 200)})]
    raw = {"fixtureValues": [{"fixtureId": "mh-1", "channels": [{"offset": 0, "value": 0}, {"offset": 1, "value": 255}]}]}

    look, _ = reconcile_look(raw, fixtures, description="sweep")

    assert channel_pairs(look, "mh-1") == [(0, 10), (1, 255)]


def test_missing_range_defaults_to_full_dmx_range() -> None:
    fixture = make_fixture("dim-1", ["INTENSITY"], fixture_type="DIMMER")
    fixture.channels[0].min_value = None
    fixture.channels[0].max_value = None
    raw = {"fixtureValues": [{"fixtureId": "dim-1", "channels": [{"offset": 0, "value": 999}]}]}

    look, _ = reconcile_look(raw, [fixture], description="full")

    assert channel_pairs(look, "dim-1") == [(0, 255)]


def test_invalid_offsets_and_values_are_dropped_not_wrapped() -> None:
    fixtures = [make_fixture("par-1")]
    raw = {
        "fixtureValues": [
            {
                "fixtureId": "par-1",
                "channels": [
                    {"offset": 3, "value": 10},
                    {"offset": -1, "value": 10},
                    {"offset": "1", "value": 10},
                    {"offset": 1.5, "value": 10},
                    {"offset": 1, "value": "bright"},
                    {"offset": 1, "value": True},
                    {"offset": 2, "value": 99.6},
                    "garbage",
                ],
            }
        ]
    }

    look, report = reconcile_look(raw, fixtures, description="test")

    assert channel_pairs(look, "par-1") == [(2, 100)]
    assert report.dropped_channels == 7


def test_sparse_channels_keep_order_and_are_not_padded() -> None:
    fixtures = [make_fixture("par-1", ["INTENSITY", "RED", "GREEN", "BLUE", "WHITE"])]
    raw = {"fixtureValues": [{"fixtureId": "par-1", "channels": [{"offset": 3, "value": 40}, {"offset": 0, "value": 200}]}]}

    look, _ = reconcile_look(raw, fixtures, description="blue")

    assert channel_pairs(look, "par-1") == [(3, 40), (0, 200)]


def test_duplicates_keep_first_occurrence() -> None:
    fixtures = [make_fixture("par-1"), make_fixture("par-2")]
    raw = {
        "fixtureValues": [
            {"fixtureId": "par-2", "channels": [{"offset": 0, "value": 1}, {"offset": 0, "value": 2}]},
            {"fixtureId": "par-1", "channels": [{"offset": 1, "value": 3}]},
            {"fixtureId": "par-2", "channels": [{"offset": 1, "value": 4}]},
        ]
    }

    look, _ = reconcile_look(raw, fixtures, description="dupes")

    assert [value.fixture_id for value in look.fixture_values] == ["par-2", "par-1"]
    assert channel_pairs(look, "par-2") == [(0, 1)]


def test_fixture_entry_without_valid_channels_is_dropped() -> None:
    fixtures = [make_fixture("par-1"), make_fixture("par-2")]
    raw = {
        "fixtureValues": [
            {"fixtureId": "par-1", "channels": [{"offset": 9, "value": 1}]},
            {"fixtureId": "par-2", "channels": [{"offset": 0, "value": 1}]},
        ]
    }

    look, _ = reconcile_look(raw, fixtures, description="x")

    assert [value.fixture_id for value in look.fixture_values] == ["par-2"]


def test_dense_channel_values_go_through_explicit_adapter() -> None:
    assert dense_to_sparse([255, None, 300]) == [{"offset": 0, "value": 255}, {"offset": 2, "value": 300}]

    fixtures = [make_fixture("par-1")]
    raw = {"fixtureValues": [{"fixtureId": "par-1", "channelValues": [255, None, 300]}]}
    look, _ = reconcile_look(raw, fixtures, description="legacy")
    assert channel_pairs(look, "par-1") == [(0, 255), (2, 255)]

    both = {"fixtureValues": [{"fixtureId": "par-1", "channels": [{"offset": 1, "value": 5}], "channelValues": [1, 2, 3]}]}
    look, _ = reconcile_look(both, fixtures, description="both")
    assert channel_pairs(look, "par-1") == [(1, 5)]


def test_scene_order_is_read_as_look_order() -> None:
    fixtures = [make_fixture("par-1")]
    raw = {"fixtureValues": [{"fixtureId": "par-1", "channels": [{"offset": 0, "value": 5}], "sceneOrder": 2}]}

    look, _ = reconcile_look(raw, fixtures, description="x")

    assert look.fixture_values[0].look_order == 2
    assert look.to_payload()["fixtureValues"][0]["lookOrder"] == 2


def test_name_and_reasoning_fall_back_to_request_context() -> None:
    look, _ = reconcile_look({"fixtureValues": []}, [], description="quiet dawn", default_reasoning="patterns")

    assert look.name == "Look for quiet dawn"
    assert look.description == "quiet dawn"
    assert look.reasoning == "patterns"


def test_reconciling_reconciled_output_is_a_fixed_point() -> None:
    fixtures = [make_fixture("par-1"), make_fixture("mh-1", ["PAN", "TILT", "INTENSITY"], ranges={2: (0, 100)})]
    raw = {
        "name": "Storm",
        "description": "Lightning",
        "reasoning": "because",
        "fixtureValues": [
            {"fixtureId": "mh-1", "channels": [{"offset": 2, "value": 180}, {"offset": 0, "value": -3}], "lookOrder": 1},
            {"fixtureId": "ghost", "channels": [{"offset": 0, "value": 1}]},
            {"fixtureId": "par-1", "channelValues": [12.4, 300]},
        ],
    }

    first, _ = reconcile_look(raw, fixtures, description="storm")
    second, report = reconcile_look(first.to_payload(), fixtures, description="storm")

    assert second == first
    assert report == ReconcileReport()


def test_random_model_output_always_satisfies_inventory_contract() -> None:
    rng = random.Random(7)
    fixtures = [
        make_fixture("par-1"),
        make_fixture("par-2", ["INTENSITY", "RED", "GREEN", "BLUE"], ranges={0: (20, 220)}),
        make_fixture("mh-1", ["PAN", "TILT"], fixture_type="MOVING_HEAD"),
    ]
    known = {fixture.id: fixture for fixture in fixtures}

    for _ in range(50):
        raw_values = []
        for _ in range(rng.randint(0, 6)):
            raw_values.append(
                {
                    "fixtureId": rng.choice(["par-1", "par-2", "mh-1", "ghost", 7]),
                    "channels": [
                        {"offset": rng.randint(-2, 6), "value": rng.uniform(-400, 700)} for _ in range(rng.randint(0, 6))
                    ],
                }
            )
        look, _ = reconcile_look({"fixtureValues": raw_values}, fixtures, description="random")

        for value in look.fixture_values:
            fixture = known[value.fixture_id]
            for channel_value in value.channels:
                channel = fixture.channel_at(channel_value.offset)
                assert channel is not None
                low, high = channel.value_range()
                assert low <= channel_value.value <= high


def test_uncovered_fixtures_are_reported_not_filled() -> None:
    fixtures = [make_fixture("par-1"), make_fixture("par-2")]
    raw = {"fixtureValues": [{"fixtureId": "par-1", "channels": [{"offset": 0, "value": 9}]}]}

    look, _ = reconcile_look(raw, fixtures, description="half")

    assert uncovered_fixture_ids(look, fixtures) == ["par-2"]
    assert len(look.fixture_values) == 1


def looks():
    return [LookSummary(id="look-a", name="Dawn"), LookSummary(id="look-b", name="Noon"), LookSummary(id="7", name="Night")]


def test_look_references_resolve_by_id_then_index() -> None:
    assert resolve_look_reference("look-b", looks()) == "look-b"
    assert resolve_look_reference("1", looks()) == "look-b"
    assert resolve_look_reference(0, looks()) == "look-a"
    assert resolve_look_reference("7", looks()) == "7"
    assert resolve_look_reference(7, looks()) == "7"
    assert resolve_look_reference("look-z", looks()) is None
    assert resolve_look_reference(5, looks()) is None
    assert resolve_look_reference(None, looks()) is None


def test_cue_sequence_drops_unknown_looks_and_fills_defaults() -> None:
    transitions = TransitionPreferences(default_fade_in=2.5, default_fade_out=4.0)
    raw = {
        "name": "Act One",
        "cues": [
            {"name": "Preset", "cueNumber": 1, "lookId": "look-a", "fadeInTime": 5, "fadeOutTime": 1},
            {"name": "Ghost", "cueNumber": 2, "lookId": "missing"},
            {"name": "Sunrise", "sceneId": "1", "followTime": -2, "fadeInTime": -3},
            {"name": "Late", "cueNumber": 10, "lookId": 2, "followTime": 1.5, "notes": "auto"},
        ],
    }

    sequence, report = reconcile_cue_sequence(raw, looks(), transitions, default_name="Fallback")

    assert sequence.name == "Act One"
    assert [cue.look_id for cue in sequence.cues] == ["look-a", "look-b", "7"]
    assert report.dropped_cues == 1

    preset, sunrise, late = sequence.cues
    assert (preset.fade_in_time, preset.fade_out_time) == (5.0, 1.0)
    assert sunrise.cue_number == 2.0
    assert sunrise.fade_in_time == 0.0
    assert sunrise.fade_out_time == 4.0
    assert sunrise.follow_time is None
    assert late.follow_time == 1.5
    assert late.notes == "auto"


def test_cue_sequence_name_defaults_to_caller_name() -> None:
    sequence, _ = reconcile_cue_sequence({"cues": "nope"}, looks(), TransitionPreferences(), default_name="Main")

    assert sequence.name == "Main"
    assert sequence.cues == []


def test_fixture_usage_keeps_known_ids_once() -> None:
    fixtures = [make_fixture("par-1"), make_fixture("par-2"), make_fixture("mh-1")]
    raw = {
        "primaryFixtures": ["par-1", "ghost"],
        "supportingFixtures": ["par-1", "mh-1"],
        "unusedFixtures": ["par-2"],
        "reasoning": "key and fill",
    }

    usage = reconcile_fixture_usage(raw, fixtures)

    assert usage.primary_fixtures == ["par-1"]
    assert usage.supporting_fixtures == ["mh-1"]
    assert usage.unused_fixtures == ["par-2"]
    assert usage.reasoning == "key and fill"


def test_numeric_string_values_are_coerced_but_offsets_are_not() -> None:
    fixtures = [make_fixture("par-1")]
    raw = {
        "fixtureValues": [
            {
                "fixtureId": "par-1",
                "channels": [
                    {"offset": 0, "value": "200"},
                    {"offset": 1, "value": " 300.4 "},
                    {"offset": "2", "value": 50},
                    {"offset": 2, "value": "nan"},
                ],
            }
        ]
    }

    look, report = reconcile_look(raw, fixtures, description="strings")

    assert channel_pairs(look, "par-1") == [(0, 200), (1, 255)]
    assert report.clamped_channels == 1
    assert report.dropped_channels == 2


def test_numeric_string_cue_times_are_coerced() -> None:
    looks = [LookSummary(id="look-a")]
    raw = {"cues": [{"name": "Go", "cueNumber": "4", "lookId": "look-a", "fadeInTime": "2.5", "followTime": "x"}]}

    sequence, _ = reconcile_cue_sequence(raw, looks, TransitionPreferences(), default_name="Seq")

    cue = sequence.cues[0]
    assert (cue.cue_number, cue.fade_in_time, cue.fade_out_time, cue.follow_time) == (4.0, 2.5, 3.0, None)


def test_model_script_analysis_is_coerced_and_aggregated() -> None:
    analysis = reconcile_script_analysis(
        {
            "scenes": [
                {"sceneNumber": 2, "mood": "Tense", "characters": ["Anna", "Ben", "Anna", 7], "location": "Kitchen"},
                "junk",
                {"title": "Coda", "location": "Garden", "lightingCues": ["fade to black", ""]},
            ],
            "themes": ["loss", None],
        }
    )

    assert [scene.scene_number for scene in analysis.scenes] == ["2", "3"]
    assert [scene.mood for scene in analysis.scenes] == ["tense", "neutral"]
    assert analysis.scenes[1].lighting_cues == ["fade to black"]
    assert analysis.characters == ["Anna", "Ben"]
    assert analysis.settings == ["Kitchen", "Garden"]
    assert analysis.overall_mood == "neutral"
    assert analysis.themes == ["loss"]
