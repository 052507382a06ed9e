"""Locate and parse the JSON object inside free-form model output.

Model text is treated as an untrusted tagged union: a bare JSON object, a JSON
object wrapped in prose or code fences, or text with no usable object at all.
Callers branch on :class:`ParseStatus`; nothing here raises on bad output.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Optional

import orjson

from .models import FixtureUsageSuggestion, GeneratedCueSequence, GeneratedLook, ScriptAnalysis

FALLBACK_CUE_SEQUENCE_NAME = "Generated Cue Sequence"
FALLBACK_CUE_SEQUENCE_DESCRIPTION = "Fallback cue sequence due to parsing error"
FALLBACK_SCRIPT_MOOD = "unknown"


class ParseStatus(str, Enum):
    JSON = "json"
    EMBEDDED = "embedded"
    UNPARSED = "unparsed"


@dataclass(frozen=True)
class ParsedOutput:
    status: ParseStatus
    value: Optional[Dict[str, Any]] = None
    reason: str = ""

    @property
    def ok(self) -> bool:
        return self.status is not ParseStatus.UNPARSED


def _loads_object(text: str) -> Optional[Dict[str, Any]]:
    try:
        value = orjson.loads(text)
    except orjson.JSONDecodeError:
        return None
    return value if isinstance(value, dict) else None


def find_json_object(text: str) -> Optional[str]:
    """Return the balanced ``{...}`` span starting at the first ``{``, if any."""
    start = text.find("{")
    if start < 0:
        return None

    depth = 0
    in_string = False
    escaped = False
    for index in range(start, len(text)):
        char = text[index]
        if in_string:
            if escaped:
                escaped = False
            elif char == "\\":
                escaped = True
            elif char == '"':
                in_string = False
            continue
        if char == '"':
            in_string = True
        elif char == "{":
            depth += 1
        elif char == "}":
            depth -= 1
            if depth == 0:
                return text[start : index + 1]
    return None


def extract_json(text: Optional[str]) -> ParsedOutput:
    if not text or not text.strip():
        return ParsedOutput(ParseStatus.UNPARSED, reason="model returned an empty response")

    whole = _loads_object(text.strip())
    if whole is not None:
        return ParsedOutput(ParseStatus.JSON, whole)

    candidate = find_json_object(text)
    if candidate is None:
        return ParsedOutput(ParseStatus.UNPARSED, reason="no JSON object found in model output")

    embedded = _loads_object(candidate)
    if embedded is None:
        return ParsedOutput(ParseStatus.UNPARSED, reason="embedded JSON object is malformed")
    return ParsedOutput(ParseStatus.EMBEDDED, embedded)


def fallback_look(description: str, reason: str) -> GeneratedLook:
    return GeneratedLook(
        name=f"Look for {description.strip()}"[:120],
        description=description.strip(),
        fixture_values=[],
        reasoning=f"Unable to parse AI response ({reason}); no fixture values were generated.",
    )


def fallback_cue_sequence(reason: str) -> GeneratedCueSequence:
    return GeneratedCueSequence(
        name=FALLBACK_CUE_SEQUENCE_NAME,
        description=FALLBACK_CUE_SEQUENCE_DESCRIPTION,
        cues=[],
        reasoning=f"Unable to parse AI response ({reason}), using fallback structure",
    )


def fallback_fixture_usage(reason: str) -> FixtureUsageSuggestion:
    return FixtureUsageSuggestion(
        reasoning=f"Unable to parse AI response ({reason}), using fallback structure",
    )


def fallback_script_analysis() -> ScriptAnalysis:
    return ScriptAnalysis(overall_mood=FALLBACK_SCRIPT_MOOD)
