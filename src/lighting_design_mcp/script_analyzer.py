"""
Script analysis.

Splits a play or screenplay into scenes and pulls out the lighting-relevant
parts: characters, stage directions, lighting cues, time of day, location and
a keyword-based mood. Deterministic and offline; unknown details are left
empty rather than guessed.
"""

from __future__ import annotations

import re
from collections import Counter
from dataclasses import dataclass, field
from typing import Dict, List, Optional

from .models import ScriptAnalysis, ScriptScene

NUMERAL = r"(?:[IVXLC]+|\d+)"

ACT_SCENE_RE = re.compile(
    rf"^\s*ACT\s+(?P<act>{NUMERAL})[\s,.:;-]*SCENE\s+(?P<scene>{NUMERAL})\b[\s.:,-]*(?P<title>.*)$",
    re.IGNORECASE,
)
ACT_RE = re.compile(rf"^\s*ACT\s+(?P<act>{NUMERAL})\b[\s.:,-]*(?P<title>.*)$", re.IGNORECASE)
SCENE_RE = re.compile(rf"^\s*SCENE\s+(?P<scene>{NUMERAL}(?:\.\d+)?)\b[\s.:,-]*(?P<title>.*)$", re.IGNORECASE)
SLUG_RE = re.compile(
    r"^\s*(?P<kind>INT\.?/EXT\.?|EXT\.?/INT\.?|INT\.|EXT\.)\s*(?P<location>.+?)"
    r"(?:\s+-+\s+(?P<time>[A-Z][A-Z ]*))?\s*$"
)
SPEAKER_RE = re.compile(r"^\s*(?P<name>[A-Z][A-Z.'\- ]{0,30}[A-Z.])\s*(?:\([^)]*\))?\s*$")
COLON_SPEAKER_RE = re.compile(r"^\s*(?P<name>[A-Z][A-Za-z.'\-]*(?: [A-Z][A-Za-z.'\-]*){0,2})\s*:\s+(?P<line>\S.*)$")
META_RE = re.compile(r"^\s*(?P<key>setting|location|place|time)\s*:\s*(?P<value>.+)$", re.IGNORECASE)
DIRECTION_RE = re.compile(r"\(([^()]{3,})\)|\[([^\[\]]{3,})\]")
EXTENSION_RE = re.compile(r"^(?:V\.?O\.?|O\.?S\.?|O\.?C\.?|CONT'?D|CONTINUING)$", re.IGNORECASE)
CUE_LINE_RE = re.compile(r"^\s*(?:LIGHTS?|LX|BLACKOUT|FADE|SNAP|DIM)\b", re.IGNORECASE)
LIGHTING_RE = re.compile(
    r"\b(?:lights?|lighting|lamps?|blackout|fade\w*|fading|dim\w*|spot ?lights?|spots?|glow\w*|"
    r"sunrise|sunset|dawn|dusk|moonl\w*|candle\w*|flash\w*|lightning|dark\w*|shadow\w*|"
    r"brighten\w*|illuminat\w*|flicker\w*|silhouett\w*)\b",
    re.IGNORECASE,
)

TIME_WORDS = [
    "dawn", "sunrise", "morning", "noon", "midday", "afternoon", "dusk", "sunset",
    "evening", "twilight", "midnight", "night", "day",
]
TIME_RE = re.compile(r"\b(" + "|".join(TIME_WORDS) + r")\b", re.IGNORECASE)

NON_CHARACTER_WORDS = {
    "INT", "EXT", "CUT TO", "FADE IN", "FADE OUT", "FADE TO BLACK", "BLACKOUT", "END", "THE END",
    "CURTAIN", "LIGHTS UP", "LIGHTS DOWN", "LIGHTS OUT", "ACT", "SCENE", "DAY", "NIGHT",
    "CONTINUED", "INTERMISSION", "PROLOGUE", "EPILOGUE", "SILENCE", "PAUSE", "BEAT",
    "LIGHTS", "LIGHT", "LX", "SOUND", "SFX", "MUSIC", "NOTE", "NOTES",
}

# whole-word regex fragments per mood
MOOD_WORDS: Dict[str, List[str]] = {
    "tense": [r"argu\w*", r"fight\w*", r"scream\w*", r"threat\w*", r"danger\w*", r"guns?", r"knife", r"knives",
              r"anger", r"angr\w*", r"shout\w*", r"attack\w*", r"fear\w*", r"afraid", r"kill\w*", r"blood\w*",
              r"rage", r"storm\w*"],
    "romantic": [r"lov(?:e|es|ed|ing|er|ers)", r"kiss\w*", r"embrac\w*", r"tender\w*", r"hearts?", r"darling",
                 r"beloved", r"romanc\w*", r"romantic", r"caress\w*", r"sweetheart"],
    "mysterious": [r"shadow\w*", r"whisper\w*", r"strange\w*", r"ghost\w*", r"fog\w*", r"mists?", r"misty",
                   r"secret\w*", r"eerie", r"hidden", r"myster\w*", r"spirits?", r"unknown"],
    "cheerful": [r"laugh\w*", r"joy\w*", r"celebrat\w*", r"danc(?:e|es|ed|ing|ers?)", r"sings?", r"singing",
                 r"sang", r"songs?", r"part(?:y|ies)", r"happ(?:y|ily|iness)", r"cheer\w*", r"delight\w*",
                 r"festiv\w*", r"wedding\w*"],
    "somber": [r"death", r"dead", r"dying", r"grief", r"griev\w*", r"cr(?:y|ies|ied|ying)", r"tears",
               r"funeral\w*", r"mourn\w*", r"alone", r"sorrow\w*", r"weep\w*", r"graves?"],
}
MOOD_RES = {mood: re.compile(r"\b(?:" + "|".join(words) + r")\b", re.IGNORECASE) for mood, words in MOOD_WORDS.items()}
MOOD_THEMES = {
    "tense": "conflict",
    "romantic": "love",
    "mysterious": "mystery",
    "cheerful": "celebration",
    "somber": "loss",
}
MAX_THEMES = 5

ROMAN_VALUES = {"I": 1, "V": 5, "X": 10, "L": 50, "C": 100}


def roman_to_int(text: str) -> Optional[int]:
    text = text.upper()
    if not text or any(char not in ROMAN_VALUES for char in text):
        return None
    total = 0
    for index, char in enumerate(text):
        value = ROMAN_VALUES[char]
        if index + 1 < len(text) and ROMAN_VALUES[text[index + 1]] > value:
            total -= value
        else:
            total += value
    return total


def _numeral(text: str) -> str:
    if text.replace(".", "").isdigit():
        return text
    value = roman_to_int(text)
    return str(value) if value is not None else text


def _unique(items: List[str]) -> List[str]:
    seen: List[str] = []
    for item in items:
        if item and item not in seen:
            seen.append(item)
    return seen


def _character_name(raw: str) -> str:
    return " ".join(part.capitalize() for part in raw.strip().split())


@dataclass
class _SceneBlock:
    number: str
    title: Optional[str] = None
    location: Optional[str] = None
    time_of_day: Optional[str] = None
    from_act: bool = False
    lines: List[str] = field(default_factory=list)


class ScriptAnalyzer:
    """Heuristic scene and cue extraction for theatrical scripts and screenplays."""

    def analyze(self, script_text: str) -> ScriptAnalysis:
        blocks = self._split(script_text or "")
        scenes = [self._analyze_scene(block) for block in blocks]
        scenes = [scene for scene in scenes if scene.content or scene.title]

        mood_totals: Counter = Counter()
        for block in blocks:
            text = "\n".join(block.lines)
            for mood, pattern in MOOD_RES.items():
                mood_totals[mood] += len(pattern.findall(text))

        scene_moods = Counter(scene.mood for scene in scenes if scene.mood != "neutral")
        overall = scene_moods.most_common(1)[0][0] if scene_moods else "neutral"
        themes = [MOOD_THEMES[mood] for mood, hits in mood_totals.most_common() if hits > 0][:MAX_THEMES]

        return ScriptAnalysis(
            scenes=scenes,
            characters=_unique([name for scene in scenes for name in scene.characters]),
            settings=_unique([scene.location for scene in scenes if scene.location]),
            overall_mood=overall,
            themes=themes,
        )

    def _split(self, text: str) -> List[_SceneBlock]:
        preamble = _SceneBlock(number="1")
        blocks: List[_SceneBlock] = []
        current: Optional[_SceneBlock] = None
        act: Optional[str] = None
        slug_count = 0

        for line in text.splitlines():
            heading = self._heading(line, act)
            if heading is not None:
                if heading.from_act:
                    act = heading.number
                elif heading.location is not None and SLUG_RE.match(line):
                    slug_count += 1
                    heading.number = str(slug_count)
                if current is not None:
                    blocks.append(current)
                current = heading
            elif current is None:
                preamble.lines.append(line)
            else:
                current.lines.append(line)

        if current is not None:
            blocks.append(current)
        if not blocks:
            # no headings: the whole script is one scene
            return [preamble] if "\n".join(preamble.lines).strip() else []
        # an ACT heading directly followed by a SCENE heading is only a grouping line
        return [block for block in blocks if not (block.from_act and not "\n".join(block.lines).strip())]

    def _heading(self, line: str, act: Optional[str]) -> Optional[_SceneBlock]:
        match = ACT_SCENE_RE.match(line)
        if match:
            return _SceneBlock(
                number=f"{_numeral(match['act'])}.{_numeral(match['scene'])}",
                title=match["title"].strip() or None,
            )
        match = SCENE_RE.match(line)
        if match and len(match["title"]) <= 80:
            number = _numeral(match["scene"])
            if act is not None and "." not in number:
                number = f"{act}.{number}"
            return _SceneBlock(number=number, title=match["title"].strip() or None)
        match = ACT_RE.match(line)
        if match and len(match["title"]) <= 80:
            return _SceneBlock(number=_numeral(match["act"]), title=match["title"].strip() or None, from_act=True)
        match = SLUG_RE.match(line)
        if match:
            time = match["time"]
            return _SceneBlock(
                number="0",
                title=line.strip(),
                location=match["location"].strip(" .-"),
                time_of_day=self._time_word(time) if time else None,
            )
        return None

    @staticmethod
    def _time_word(text: str) -> Optional[str]:
        match = TIME_RE.search(text)
        return match.group(1).lower() if match else None

    def _analyze_scene(self, block: _SceneBlock) -> ScriptScene:
        characters: List[str] = []
        directions: List[str] = []
        cues: List[str] = []
        action_lines: List[str] = []
        location = block.location
        time_of_day = block.time_of_day
        in_dialogue = False

        for raw_line in block.lines:
            line = raw_line.strip()
            if not line:
                in_dialogue = False
                continue

            line_directions = [
                (paren or bracket).strip()
                for paren, bracket in DIRECTION_RE.findall(line)
                if not EXTENSION_RE.match((paren or bracket).strip())
            ]
            directions.extend(line_directions)

            meta = META_RE.match(line)
            if meta:
                key, value = meta["key"].lower(), meta["value"].strip()
                if key == "time":
                    time_of_day = time_of_day or self._time_word(value) or value.lower()
                else:
                    location = location or value.rstrip(".")
                continue

            speaker = SPEAKER_RE.match(line)
            if speaker and not CUE_LINE_RE.match(line) and self._is_character(speaker["name"], max_words=2):
                characters.append(_character_name(speaker["name"]))
                in_dialogue = True
                continue

            colon = COLON_SPEAKER_RE.match(line)
            if colon and self._is_character(colon["name"], max_words=3):
                characters.append(_character_name(colon["name"]))
                continue

            if CUE_LINE_RE.match(line):
                cues.append(line)
                action_lines.append(line)
                continue

            if not in_dialogue:
                action_lines.append(line)
                if LIGHTING_RE.search(line) and not line_directions:
                    cues.append(line)

        cues = [direction for direction in directions if LIGHTING_RE.search(direction)] + cues

        if time_of_day is None:
            for candidate in [block.title or ""] + directions + action_lines:
                time_of_day = self._time_word(candidate)
                if time_of_day:
                    break

        content = "\n".join(block.lines).strip()
        return ScriptScene(
            scene_number=block.number,
            title=block.title,
            content=content,
            mood=self._mood(content),
            characters=_unique(characters),
            stage_directions=_unique(directions),
            lighting_cues=_unique(cues),
            time_of_day=time_of_day,
            location=location,
        )

    @staticmethod
    def _is_character(name: str, max_words: int) -> bool:
        cleaned = " ".join(name.replace(".", " ").split()).upper()
        if not cleaned or cleaned in NON_CHARACTER_WORDS or cleaned.split()[0] in NON_CHARACTER_WORDS:
            return False
        if META_RE.match(f"{name}: x"):
            return False
        return len(cleaned.split()) <= max_words and any(char.isalpha() for char in cleaned)

    @staticmethod
    def _mood(text: str) -> str:
        scores = {mood: len(pattern.findall(text)) for mood, pattern in MOOD_RES.items()}
        best = max(scores, key=lambda mood: scores[mood])
        return best if scores[best] > 0 else "neutral"
