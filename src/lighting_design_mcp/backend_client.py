"""GraphQL client for the lighting-control backend."""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

import httpx
from pydantic import ValidationError

from .config import Settings
from .errors import BackendFailure
from .models import ChannelValue, FixtureInstance, FixtureValue, GeneratedCue, GeneratedLook, LookSummary
from .reconciler import to_number, to_offset

logger = logging.getLogger(__name__)

FIXTURE_FIELDS = """
  id name description universe startChannel tags
  definitionId manufacturer model type modeName channelCount
  channels { id offset name type minValue maxValue defaultValue }
"""

LOOK_FIELDS = """
  id name description
  fixtureValues { fixture { id name } channels { offset value } lookOrder }
"""

GET_PROJECT_FIXTURES = f"""
query GetProjectFixtures($id: ID!) {{
  project(id: $id) {{ id name fixtures {{ {FIXTURE_FIELDS} }} }}
}}
"""

GET_LOOK = f"""
query GetLook($id: ID!) {{
  look(id: $id) {{ {LOOK_FIELDS} }}
}}
"""

CREATE_LOOK = f"""
mutation CreateLook($input: CreateLookInput!) {{
  createLook(input: $input) {{ {LOOK_FIELDS} }}
}}
"""

UPDATE_LOOK = f"""
mutation UpdateLook($id: ID!, $input: UpdateLookInput!) {{
  updateLook(id: $id, input: $input) {{ {LOOK_FIELDS} }}
}}
"""

SET_LOOK_LIVE = """
mutation SetLookLive($lookId: ID!) {
  setLookLive(lookId: $lookId)
}
"""

CREATE_CUE_LIST = """
mutation CreateCueList($input: CreateCueListInput!) {
  createCueList(input: $input) { id name description }
}
"""

CREATE_CUE = """
mutation CreateCue($input: CreateCueInput!) {
  createCue(input: $input) { id name cueNumber fadeInTime fadeOutTime followTime notes look { id name } }
}
"""


def fixture_values_input(values: List[FixtureValue]) -> List[Dict[str, Any]]:
    return [value.to_payload() for value in values]


def _invalid_data(what: str, exc: ValidationError) -> BackendFailure:
    problems = [f"{'.'.join(str(part) for part in error['loc'])}: {error['msg']}" for error in exc.errors()]
    return BackendFailure(
        f"Lighting backend returned an invalid {what}", {"problems": problems[:10]}, code="invalid_backend_data"
    )


def _stored_channels(raw: Any) -> List[ChannelValue]:
    """Stored channel entries, rounded to integers; range checks happen on reconciliation."""
    channels: List[ChannelValue] = []
    for item in raw if isinstance(raw, list) else []:
        offset = to_offset(item.get("offset")) if isinstance(item, dict) else None
        number = to_number(item.get("value"), allow_text=True) if isinstance(item, dict) else None
        if offset is None or number is None:
            logger.debug("Skipping stored channel entry %r", item)
            continue
        channels.append(ChannelValue(offset=offset, value=int(round(number))))
    return channels


def look_from_payload(payload: Any) -> LookSummary:
    if not isinstance(payload, dict) or payload.get("id") is None:
        raise BackendFailure("Lighting backend returned a look without an id", code="invalid_backend_data")

    values: List[FixtureValue] = []
    for entry in payload.get("fixtureValues") or []:
        if not isinstance(entry, dict):
            continue
        fixture = entry.get("fixture") or {}
        fixture_id = fixture.get("id") or entry.get("fixtureId")
        if not fixture_id:
            continue
        values.append(
            FixtureValue(
                fixture_id=str(fixture_id),
                channels=_stored_channels(entry.get("channels")),
                look_order=to_offset(entry.get("lookOrder", entry.get("sceneOrder"))),
            )
        )
    try:
        return LookSummary(
            id=str(payload["id"]),
            name=payload.get("name") or "",
            description=payload.get("description"),
            fixture_values=values,
        )
    except ValidationError as exc:
        raise _invalid_data("look", exc) from exc


def _object(data: Dict[str, Any], field: str) -> Dict[str, Any]:
    value = data.get(field)
    if not isinstance(value, dict):
        raise BackendFailure(f"Lighting backend response has no {field} object", code="invalid_backend_data")
    return value


class LightingBackendClient:
    """Reads fixture inventories and persists looks and cue lists."""

    def __init__(
        self,
        endpoint: str,
        timeout: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.endpoint = endpoint
        self.timeout = timeout
        self._transport = transport

    @classmethod
    def from_settings(cls, settings: Settings) -> "LightingBackendClient":
        return cls(endpoint=settings.backend_url, timeout=settings.backend_timeout)

    async def _execute(self, query: str, variables: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
                response = await client.post(self.endpoint, json={"query": query, "variables": variables or {}})
                response.raise_for_status()
                result = response.json()
        except httpx.HTTPStatusError as exc:
            raise BackendFailure(
                f"Lighting backend returned HTTP {exc.response.status_code}",
                {"status": exc.response.status_code},
            ) from exc
        except httpx.HTTPError as exc:
            raise BackendFailure(f"Lighting backend request failed: {exc}") from exc
        except ValueError as exc:
            raise BackendFailure("Lighting backend returned a non-JSON body") from exc

        errors = result.get("errors") if isinstance(result, dict) else None
        if errors:
            message = errors[0].get("message", "unknown error") if isinstance(errors[0], dict) else str(errors[0])
            raise BackendFailure(f"Lighting backend error: {message}", {"errors": errors})
        data = result.get("data") if isinstance(result, dict) else None
        if not isinstance(data, dict):
            raise BackendFailure("Lighting backend response has no data")
        return data

    async def get_project_fixtures(self, project_id: str) -> List[FixtureInstance]:
        data = await self._execute(GET_PROJECT_FIXTURES, {"id": project_id})
        project = data.get("project")
        if not isinstance(project, dict):
            raise BackendFailure(
                f"Project with ID {project_id} not found", {"projectId": project_id}, code="project_not_found"
            )
        try:
            fixtures = [FixtureInstance.model_validate(item) for item in project.get("fixtures") or []]
        except ValidationError as exc:
            raise _invalid_data("fixture inventory", exc) from exc
        logger.debug("Loaded %d fixtures for project %s", len(fixtures), project_id)
        return fixtures

    async def get_look(self, look_id: str) -> LookSummary:
        data = await self._execute(GET_LOOK, {"id": look_id})
        payload = data.get("look")
        if not payload:
            raise BackendFailure(f"Look with ID {look_id} not found", {"lookId": look_id}, code="look_not_found")
        return look_from_payload(payload)

    async def get_looks(self, look_ids: List[str]) -> List[LookSummary]:
        return [await self.get_look(look_id) for look_id in look_ids]

    async def create_look(self, project_id: str, look: GeneratedLook) -> LookSummary:
        variables = {
            "input": {
                "projectId": project_id,
                "name": look.name,
                "description": look.description,
                "fixtureValues": fixture_values_input(look.fixture_values),
            }
        }
        data = await self._execute(CREATE_LOOK, variables)
        return look_from_payload(data.get("createLook"))

    async def update_look_fixture_values(self, look_id: str, values: List[FixtureValue]) -> LookSummary:
        data = await self._execute(UPDATE_LOOK, {"id": look_id, "input": {"fixtureValues": fixture_values_input(values)}})
        return look_from_payload(data.get("updateLook"))

    async def set_look_live(self, look_id: str) -> bool:
        data = await self._execute(SET_LOOK_LIVE, {"lookId": look_id})
        return bool(data.get("setLookLive"))

    async def create_cue_list(self, project_id: str, name: str, description: str = "") -> Dict[str, Any]:
        variables = {"input": {"projectId": project_id, "name": name, "description": description}}
        data = await self._execute(CREATE_CUE_LIST, variables)
        return _object(data, "createCueList")

    async def create_cue(self, cue_list_id: str, cue: GeneratedCue) -> Dict[str, Any]:
        cue_input = cue.to_payload()
        cue_input["cueListId"] = cue_list_id
        data = await self._execute(CREATE_CUE, {"input": cue_input})
        return _object(data, "createCue")
