from __future__ import annotations

import orjson
from typer.testing import CliRunner

from lighting_design_mcp.cli import app

runner = CliRunner()


def test_analyze_script_prints_json(tmp_path):
    script = tmp_path / "play.txt"
    script.write_text("SCENE 1: Dawn\n(Lights rise slowly.)\nMARA: Morning already?\n", encoding="utf-8")

    result = runner.invoke(app, ["analyze-script", str(script)])

    assert result.exit_code == 0, result.output
    payload = orjson.loads(result.stdout)
    assert payload["scenes"][0]["sceneNumber"] == "1"
    assert payload["scenes"][0]["lightingCues"] == ["Lights rise slowly."]
    assert payload["characters"] == ["Mara"]


def test_analyze_script_rejects_missing_file(tmp_path):
    result = runner.invoke(app, ["analyze-script", str(tmp_path / "missing.txt")])

    assert result.exit_code != 0
