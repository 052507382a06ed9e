from __future__ import annotations

import logging
from typing import Annotated, Any, Dict, List, Optional

from fastmcp import FastMCP
from pydantic import Field

from .backend_client import LightingBackendClient
from .config import Settings
from .errors import LightingError, to_error
from .llm_client import LLMClient
from .models import DesignPreferences, FixtureFilter, OptimizationGoal, Scope, TransitionPreferences
from .patterns import init_pattern_store
from .pipeline import LightingPipeline
from .prompts import PromptLimits
from .recommendations import RecommendationRetriever
from .tools import LightingTools


def build_tools(settings: Settings, logger: Optional[logging.Logger] = None) -> LightingTools:
    retriever = RecommendationRetriever(init_pattern_store(settings), top_k=settings.recommendation_top_k)
    pipeline = LightingPipeline(
        retriever=retriever,
        generator=LLMClient.from_settings(settings),
        limits=PromptLimits(
            max_fixtures=settings.max_prompt_fixtures,
            unchanged_context_limit=settings.unchanged_context_limit,
            max_context_chars=settings.max_context_chars,
            max_script_chars=settings.max_script_chars,
        ),
        logger=logger,
    )
    return LightingTools(LightingBackendClient.from_settings(settings), pipeline)


def create_server(settings: Settings, tools: Optional[LightingTools] = None) -> FastMCP:
    tools = tools or build_tools(settings)

    mcp = FastMCP("lighting-design-mcp")

    @mcp.tool()
    async def generate_look(
        project_id: str,
        description: Annotated[str, Field(min_length=1, description="Desired lighting state in plain words")],
        script_context: Optional[str] = None,
        scope: Annotated[Scope, Field(description="'full' replaces every fixture; 'additive' needs fixture_filter")] = "full",
        design_preferences: Optional[DesignPreferences] = None,
        fixture_filter: Optional[FixtureFilter] = None,
        persist: bool = True,
        activate: bool = False,
    ) -> Dict[str, Any]:
        """Generate a look for a project's fixtures and optionally save and activate it."""
        try:
            data = await tools.generate_look(
                project_id=project_id,
                description=description,
                script_context=script_context,
                scope=scope,
                design_preferences=design_preferences,
                fixture_filter=fixture_filter,
                persist=persist,
                activate=activate,
            )
            return {"ok": True, "data": data}
        except LightingError as error:
            return to_error(error)

    @mcp.tool()
    async def analyze_script(
        script_text: Annotated[str, Field(min_length=1)],
        extract_lighting_cues: bool = True,
        suggest_looks: bool = True,
        use_model: Annotated[bool, Field(description="Analyze with the language model first")] = False,
    ) -> Dict[str, Any]:
        """Split a script into scenes and extract lighting cues and look templates."""
        try:
            data = await tools.analyze_script(
                script_text=script_text,
                extract_lighting_cues=extract_lighting_cues,
                suggest_looks=suggest_looks,
                use_model=use_model,
            )
            return {"ok": True, "data": data}
        except LightingError as error:
            return to_error(error)

    @mcp.tool()
    async def generate_cue_sequence(
        project_id: str,
        script_context: str,
        look_ids: Annotated[List[str], Field(min_length=1)],
        sequence_name: Annotated[str, Field(min_length=1)],
        transition_preferences: Optional[TransitionPreferences] = None,
        persist: bool = True,
    ) -> Dict[str, Any]:
        """Build a timed cue sequence over existing looks and optionally save it as a cue list."""
        try:
            data = await tools.generate_cue_sequence(
                project_id=project_id,
                script_context=script_context,
                look_ids=look_ids,
                sequence_name=sequence_name,
                transition_preferences=transition_preferences,
                persist=persist,
            )
            return {"ok": True, "data": data}
        except LightingError as error:
            return to_error(error)

    @mcp.tool()
    async def optimize_look_for_fixtures(
        project_id: str,
        look_id: str,
        optimization_goals: Optional[List[OptimizationGoal]] = None,
        apply: bool = False,
    ) -> Dict[str, Any]:
        """Re-validate a stored look against the project's fixtures and review it per goal."""
        try:
            data = await tools.optimize_look_for_fixtures(
                project_id=project_id,
                look_id=look_id,
                optimization_goals=optimization_goals,
                apply=apply,
            )
            return {"ok": True, "data": data}
        except LightingError as error:
            return to_error(error)

    @mcp.tool()
    async def suggest_fixture_usage(
        project_id: str,
        scene_context: Annotated[str, Field(min_length=1)],
    ) -> Dict[str, Any]:
        """Suggest primary, supporting and unused fixtures for a scene."""
        try:
            data = await tools.suggest_fixture_usage(project_id=project_id, scene_context=scene_context)
            return {"ok": True, "data": data}
        except LightingError as error:
            return to_error(error)

    return mcp
