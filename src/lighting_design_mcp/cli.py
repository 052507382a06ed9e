"""Command line interface for the lighting-design server."""

import asyncio
from dataclasses import replace
from pathlib import Path
from typing import Optional

import orjson
import typer

from .config import load_settings
from .custom_logging import setup_logging
from .main import run_server
from .patterns import init_pattern_store
from .recommendations import RecommendationRetriever
from .script_analyzer import ScriptAnalyzer


app = typer.Typer(help="AI lighting-design assistant")


def _echo_json(payload) -> None:
    typer.echo(orjson.dumps(payload, option=orjson.OPT_INDENT_2).decode("utf-8"))


@app.command()
def serve(
    transport: Optional[str] = typer.Option(None, help="stdio, sse or http (defaults to LIGHTING_MCP_TRANSPORT)"),
    host: Optional[str] = typer.Option(None, help="Bind host for network transports"),
    port: Optional[int] = typer.Option(None, help="Bind port for network transports"),
    log_file: Optional[Path] = typer.Option(None, help="Also write logs to this file"),
):
    """Run the MCP server."""

    settings = load_settings()
    overrides = {
        key: value
        for key, value in {"transport": transport, "host": host, "port": port, "log_file": log_file}.items()
        if value is not None
    }
    run_server(replace(settings, **overrides))


@app.command()
def analyze_script(
    script_path: Path = typer.Argument(..., exists=True, dir_okay=False, help="Script text file"),
):
    """Analyze a script file and print scenes, moods and lighting cues as JSON."""

    text = script_path.read_text(encoding="utf-8")
    analysis = ScriptAnalyzer().analyze(text)
    _echo_json(analysis.to_payload())


@app.command()
def recommend(
    description: str = typer.Argument(..., help="Look description"),
    mood: Optional[str] = typer.Option(None, help="Mood to bias the pattern search"),
):
    """Print the recommendation bundle for a look description."""

    settings = load_settings()
    setup_logging(settings.log_file, settings.log_level)
    retriever = RecommendationRetriever(init_pattern_store(settings), top_k=settings.recommendation_top_k)
    bundle = asyncio.run(retriever.recommend(description, mood))
    _echo_json(bundle.to_payload())


if __name__ == "__main__":
    app()
