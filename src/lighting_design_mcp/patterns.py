"""
Lighting pattern store.

Holds prior lighting-design patterns as normalised hashed bag-of-words
embeddings and answers cosine-similarity queries against them.
"""

from __future__ import annotations

import hashlib
import logging
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable, Dict, Iterable, List, Optional

import numpy as np
import orjson

from .config import Settings

logger = logging.getLogger(__name__)

TOKEN_RE = re.compile(r"[a-z0-9]+")
DEFAULT_DIMENSION = 256


@dataclass
class LightingPattern:
    id: str
    description: str
    context: str = ""
    mood: str = ""
    fixture_types: List[str] = field(default_factory=list)
    color_palette: List[str] = field(default_factory=list)
    intensity: str = "moderate"
    focus_areas: List[str] = field(default_factory=list)
    metadata: Dict[str, Any] = field(default_factory=dict)

    def embedding_text(self) -> str:
        return " ".join(
            [self.description, self.context, self.mood, " ".join(self.color_palette), " ".join(self.focus_areas)]
        )

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "LightingPattern":
        return cls(
            id=str(data["id"]),
            description=str(data.get("description", "")),
            context=str(data.get("context", "")),
            mood=str(data.get("mood", "")),
            fixture_types=[str(item) for item in data.get("fixtureTypes", data.get("fixture_types", []))],
            color_palette=[str(item) for item in data.get("colorPalette", data.get("color_palette", []))],
            intensity=str(data.get("intensity", "moderate")),
            focus_areas=[str(item) for item in data.get("focusAreas", data.get("focus_areas", []))],
            metadata=dict(data.get("metadata", {})),
        )


@dataclass
class PatternMatch:
    pattern: LightingPattern
    score: float


class HashingEmbedder:
    """Deterministic token-hashing embedder; stable across processes."""

    def __init__(self, dimension: int = DEFAULT_DIMENSION):
        self.dimension = dimension

    def _bucket(self, token: str) -> int:
        digest = hashlib.blake2b(token.encode("utf-8"), digest_size=8).digest()
        return int.from_bytes(digest, "big") % self.dimension

    def __call__(self, text: str) -> np.ndarray:
        vector = np.zeros(self.dimension, dtype=np.float32)
        tokens = TOKEN_RE.findall(text.lower())
        for token in tokens:
            vector[self._bucket(token)] += 1.0
        # adjacent pairs keep "warm white" apart from "white" + "warm"
        for first, second in zip(tokens, tokens[1:]):
            vector[self._bucket(f"{first}_{second}")] += 0.5
        return vector


class PatternStore:
    """In-memory cosine-similarity index over lighting patterns."""

    def __init__(self, embedder: Optional[Callable[[str], np.ndarray]] = None, dimension: int = DEFAULT_DIMENSION):
        self.dimension = dimension
        self._embedder = embedder or HashingEmbedder(dimension)
        self._patterns: List[LightingPattern] = []
        self._ids: Dict[str, int] = {}
        self._matrix = np.zeros((0, dimension), dtype=np.float32)

    def __len__(self) -> int:
        return len(self._patterns)

    def _normalise(self, vector: np.ndarray) -> np.ndarray:
        vector = np.asarray(vector, dtype=np.float32).reshape(-1)
        if vector.shape[0] != self.dimension:
            raise ValueError(f"Embedding dimension {vector.shape[0]} != store dimension {self.dimension}")
        norm = float(np.linalg.norm(vector))
        if norm == 0.0:
            return vector
        return vector / norm

    def add(self, pattern: LightingPattern) -> None:
        embedding = self._normalise(self._embedder(pattern.embedding_text()))
        if pattern.id in self._ids:
            idx = self._ids[pattern.id]
            self._patterns[idx] = pattern
            self._matrix[idx] = embedding
        else:
            self._ids[pattern.id] = len(self._patterns)
            self._patterns.append(pattern)
            self._matrix = np.vstack([self._matrix, embedding.reshape(1, -1)])
        logger.debug("Indexed pattern %s", pattern.id)

    def add_many(self, patterns: Iterable[LightingPattern]) -> None:
        for pattern in patterns:
            self.add(pattern)

    def get(self, pattern_id: str) -> Optional[LightingPattern]:
        idx = self._ids.get(pattern_id)
        return None if idx is None else self._patterns[idx]

    def query(self, text: str, k: int = 5) -> List[PatternMatch]:
        if not self._patterns or k <= 0:
            return []
        query_vector = self._normalise(self._embedder(text))
        if not query_vector.any():
            return []
        scores = self._matrix @ query_vector
        order = np.argsort(-scores, kind="stable")[:k]
        return [PatternMatch(pattern=self._patterns[int(idx)], score=float(scores[int(idx)])) for idx in order]


def load_patterns_file(path: Path) -> List[LightingPattern]:
    payload = orjson.loads(path.read_bytes())
    items = payload.get("patterns", []) if isinstance(payload, dict) else payload
    return [LightingPattern.from_dict(item) for item in items]


DEFAULT_PATTERNS: List[Dict[str, Any]] = [
    {
        "id": "romantic-warm",
        "description": "Warm romantic lighting with soft amber tones",
        "context": "intimate dialogue, love scenes, tender moments",
        "mood": "romantic",
        "fixtureTypes": ["LED_PAR"],
        "colorPalette": ["amber", "warm white", "rose"],
        "intensity": "moderate",
        "focusAreas": ["center stage", "actor faces"],
        "metadata": {"colorTemp": "2700K", "focusType": "soft"},
    },
    {
        "id": "dramatic-tension",
        "description": "High contrast dramatic lighting with sharp angles",
        "context": "conflict scenes, confrontations, climactic moments",
        "mood": "tense",
        "fixtureTypes": ["MOVING_HEAD", "LED_PAR"],
        "colorPalette": ["deep red", "stark white", "blue"],
        "intensity": "dramatic",
        "focusAreas": ["downstage center", "side light"],
        "metadata": {"contrast": "high", "focusType": "sharp"},
    },
    {
        "id": "mysterious-cool",
        "description": "Cool mysterious lighting with blue undertones",
        "context": "supernatural scenes, night scenes, mystery",
        "mood": "mysterious",
        "fixtureTypes": ["LED_PAR", "MOVING_HEAD"],
        "colorPalette": ["deep blue", "purple", "cool white"],
        "intensity": "subtle",
        "focusAreas": ["upstage", "backlight"],
        "metadata": {"colorTemp": "5600K", "atmosphere": "ethereal"},
    },
    {
        "id": "cheerful-bright",
        "description": "Bright cheerful lighting with natural tones",
        "context": "comedy scenes, daytime scenes, celebrations",
        "mood": "cheerful",
        "fixtureTypes": ["LED_PAR"],
        "colorPalette": ["warm white", "yellow", "light blue"],
        "intensity": "dramatic",
        "focusAreas": ["full stage wash"],
        "metadata": {"colorTemp": "4000K", "feel": "natural"},
    },
    {
        "id": "somber-grief",
        "description": "Low desaturated lighting with a single cold key",
        "context": "funerals, grief, loss, lonely monologues",
        "mood": "somber",
        "fixtureTypes": ["DIMMER", "LED_PAR"],
        "colorPalette": ["steel blue", "pale lavender"],
        "intensity": "subtle",
        "focusAreas": ["isolated special", "actor faces"],
        "metadata": {"contrast": "medium"},
    },
    {
        "id": "daylight-neutral",
        "description": "Even neutral daylight wash",
        "context": "exposition, everyday interiors, morning and afternoon scenes",
        "mood": "neutral",
        "fixtureTypes": ["LED_PAR", "DIMMER"],
        "colorPalette": ["neutral white", "pale yellow"],
        "intensity": "moderate",
        "focusAreas": ["full stage wash", "acting areas"],
        "metadata": {"colorTemp": "5000K"},
    },
    {
        "id": "night-exterior",
        "description": "Moonlit night exterior with cool backlight and dark fill",
        "context": "night scenes, exteriors, gardens, streets at midnight",
        "mood": "mysterious",
        "fixtureTypes": ["MOVING_HEAD", "LED_PAR"],
        "colorPalette": ["moonlight blue", "cool white"],
        "intensity": "subtle",
        "focusAreas": ["backlight", "gobo texture"],
        "metadata": {"colorTemp": "7000K"},
    },
    {
        "id": "celebration-party",
        "description": "Saturated moving colour with chases and strobe accents",
        "context": "parties, dances, finales, celebrations",
        "mood": "cheerful",
        "fixtureTypes": ["MOVING_HEAD", "STROBE", "LED_PAR"],
        "colorPalette": ["magenta", "cyan", "gold"],
        "intensity": "dramatic",
        "focusAreas": ["dance floor", "audience sweep"],
        "metadata": {"movement": "chase"},
    },
]


def default_patterns() -> List[LightingPattern]:
    return [LightingPattern.from_dict(item) for item in DEFAULT_PATTERNS]


def init_pattern_store(settings: Settings) -> Optional[PatternStore]:
    """Build the process-wide store; any failure leaves recommendations empty."""
    try:
        store = PatternStore()
        store.add_many(default_patterns())
    except Exception:
        logger.exception("Pattern store initialisation failed; recommendations disabled")
        return None

    if settings.patterns_path is not None:
        try:
            store.add_many(load_patterns_file(settings.patterns_path))
        except (OSError, ValueError, KeyError, TypeError) as exc:
            logger.warning("Skipping pattern file %s: %s", settings.patterns_path, exc)

    logger.info("Pattern store ready with %d patterns", len(store))
    return store
