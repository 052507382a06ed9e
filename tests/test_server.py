from __future__ import annotations

import httpx
import orjson
import pytest
from fakes import FakeBackend, FakeGenerator
from fastmcp import Client, FastMCP

from lighting_design_mcp.backend_client import LightingBackendClient
from lighting_design_mcp.config import load_settings
from lighting_design_mcp.pipeline import LightingPipeline
from lighting_design_mcp.recommendations import RecommendationRetriever
from lighting_design_mcp.server import create_server
from lighting_design_mcp.tools import LightingTools


def make_server() -> FastMCP:
    pipeline = LightingPipeline(retriever=RecommendationRetriever(None), generator=FakeGenerator())
    return create_server(load_settings(), LightingTools(FakeBackend(), pipeline))


@pytest.mark.asyncio
async def test_server_registers_agent_operations():
    server = make_server()

    async with Client(server) as client:
        tools = await client.list_tools()

    assert {tool.name for tool in tools} == {
        "generate_look",
        "analyze_script",
        "generate_cue_sequence",
        "optimize_look_for_fixtures",
        "suggest_fixture_usage",
    }


@pytest.mark.asyncio
async def test_lighting_errors_become_error_envelopes():
    server = make_server()

    async with Client(server) as client:
        result = await client.call_tool_mcp(
            "generate_look", {"project_id": "p1", "description": "warm", "scope": "additive"}
        )

    payload = orjson.loads(result.content[0].text)
    assert payload["ok"] is False
    assert payload["error"]["code"] == "invalid_scope"


@pytest.mark.asyncio
async def test_analyze_script_returns_ok_envelope():
    server = make_server()

    async with Client(server) as client:
        result = await client.call_tool_mcp(
            "analyze_script", {"script_text": "SCENE 1\nBOB: Hi.\n", "suggest_looks": False}
        )

    payload = orjson.loads(result.content[0].text)
    assert payload["ok"] is True
    assert payload["data"]["characters"] == ["Bob"]


def backend_server(fixtures_payload, look_payload) -> FastMCP:
    def handler(request: httpx.Request) -> httpx.Response:
        query = orjson.loads(request.content)["query"]
        if "GetProjectFixtures" in query:
            return httpx.Response(200, json={"data": {"project": {"id": "p1", "fixtures": fixtures_payload}}})
        return httpx.Response(200, json={"data": {"look": look_payload}})

    backend = LightingBackendClient("http://backend.local/graphql", transport=httpx.MockTransport(handler))
    pipeline = LightingPipeline(retriever=RecommendationRetriever(None), generator=FakeGenerator())
    return create_server(load_settings(), LightingTools(backend, pipeline))


FIXTURE = {
    "id": "f1",
    "name": "Front",
    "type": "LED_PAR",
    "channels": [{"offset": 0, "type": "INTENSITY", "minValue": 0, "maxValue": 255}],
}


@pytest.mark.asyncio
async def test_fractional_stored_values_are_optimized_not_raised():
    look = {"id": "look-1", "name": "Old", "fixtureValues": [{"fixture": {"id": "f1"}, "channels": [{"offset": 0, "value": 127.5}]}]}

    async with Client(backend_server([FIXTURE], look)) as client:
        result = await client.call_tool_mcp("optimize_look_for_fixtures", {"project_id": "p1", "look_id": "look-1"})

    payload = orjson.loads(result.content[0].text)
    assert payload["ok"] is True
    assert payload["data"]["optimizedLook"]["fixtureValues"][0]["channels"] == [{"offset": 0, "value": 128}]


@pytest.mark.asyncio
async def test_invalid_backend_data_becomes_error_envelope():
    broken = dict(FIXTURE, channels=[{"offset": -1, "type": "INTENSITY"}])

    async with Client(backend_server([broken], None)) as client:
        result = await client.call_tool_mcp("suggest_fixture_usage", {"project_id": "p1", "scene_context": "duet"})

    payload = orjson.loads(result.content[0].text)
    assert payload["ok"] is False
    assert payload["error"]["code"] == "invalid_backend_data"
