from __future__ import annotations

from typing import Any, Dict, List, Optional

from lighting_design_mcp.errors import BackendFailure
from lighting_design_mcp.models import FixtureInstance, GeneratedCue, GeneratedLook, LookSummary


def make_fixture(
    fixture_id: str,
    channel_types: Optional[List[str]] = None,
    fixture_type: str = "LED_PAR",
    tags: Optional[List[str]] = None,
    ranges: Optional[Dict[int, tuple]] = None,
    name: Optional[str] = None,
) -> FixtureInstance:
    channel_types = channel_types or ["INTENSITY", "RED", "GREEN"]
    ranges = ranges or {}
    channels = []
    for offset, channel_type in enumerate(channel_types):
        channel: Dict[str, Any] = {"id": f"{fixture_id}-ch{offset}", "offset": offset, "name": channel_type.title(), "type": channel_type}
        if offset in ranges:
            channel["minValue"], channel["maxValue"] = ranges[offset]
        else:
            channel["minValue"], channel["maxValue"] = 0, 255
        channels.append(channel)
    return FixtureInstance.model_validate(
        {
            "id": fixture_id,
            "name": name or f"Fixture {fixture_id}",
            "type": fixture_type,
            "modeName": f"{len(channels)}-channel",
            "channelCount": len(channels),
            "channels": channels,
            "universe": 1,
            "startChannel": 1,
            "tags": tags or [],
        }
    )


class FakeGenerator:
    """Replays canned completions and records every prompt."""

    def __init__(self, *responses: str, error: Optional[Exception] = None):
        self.responses = list(responses)
        self.error = error
        self.prompts: List[str] = []
        self.temperatures: List[Optional[float]] = []

    async def complete(self, prompt: str, *, temperature: Optional[float] = None, max_tokens: Optional[int] = None) -> str:
        self.prompts.append(prompt)
        self.temperatures.append(temperature)
        if self.error is not None:
            raise self.error
        return self.responses.pop(0) if self.responses else ""


class FakeBackend:
    def __init__(self, fixtures: Optional[List[FixtureInstance]] = None, looks: Optional[List[LookSummary]] = None):
        self.fixtures = fixtures or []
        self.looks = {look.id: look for look in looks or []}
        self.calls: List[str] = []
        self.created_looks: List[GeneratedLook] = []
        self.created_cues: List[Dict[str, Any]] = []
        self.updated: Dict[str, Any] = {}
        self.live: List[str] = []
        self.fail_activation = False
        self.fail_cue_at: Optional[int] = None

    async def get_project_fixtures(self, project_id: str) -> List[FixtureInstance]:
        self.calls.append("get_project_fixtures")
        return list(self.fixtures)

    async def get_look(self, look_id: str) -> LookSummary:
        self.calls.append("get_look")
        if look_id not in self.looks:
            raise BackendFailure(f"Look with ID {look_id} not found", code="look_not_found")
        return self.looks[look_id]

    async def get_looks(self, look_ids: List[str]) -> List[LookSummary]:
        return [await self.get_look(look_id) for look_id in look_ids]

    async def create_look(self, project_id: str, look: GeneratedLook) -> LookSummary:
        self.calls.append("create_look")
        self.created_looks.append(look)
        return LookSummary(id=f"look-{len(self.created_looks)}", name=look.name, fixture_values=look.fixture_values)

    async def update_look_fixture_values(self, look_id: str, values) -> LookSummary:
        self.calls.append("update_look")
        self.updated[look_id] = values
        return LookSummary(id=look_id, fixture_values=values)

    async def set_look_live(self, look_id: str) -> bool:
        self.calls.append("set_look_live")
        if self.fail_activation:
            raise BackendFailure("DMX output offline")
        self.live.append(look_id)
        return True

    async def create_cue_list(self, project_id: str, name: str, description: str = "") -> Dict[str, Any]:
        self.calls.append("create_cue_list")
        return {"id": "cue-list-1", "name": name, "description": description}

    async def create_cue(self, cue_list_id: str, cue: GeneratedCue) -> Dict[str, Any]:
        self.calls.append("create_cue")
        if self.fail_cue_at == len(self.created_cues) + 1:
            raise BackendFailure("Cue number already exists")
        created = {"id": f"cue-{len(self.created_cues) + 1}", "cueListId": cue_list_id, **cue.to_payload()}
        self.created_cues.append(created)
        return created
