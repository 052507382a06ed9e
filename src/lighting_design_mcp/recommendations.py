from __future__ import annotations

import logging
from typing import Dict, Iterable, List, Optional

from .models import RecommendationBundle
from .patterns import PatternMatch, PatternStore

logger = logging.getLogger(__name__)

MAX_COLORS = 6
MAX_FOCUS_AREAS = 5
FIXTURE_TYPE_BONUS = 0.05

INTENSITY_PROFILES: Dict[str, Dict[str, int]] = {
    "subtle": {"ambient": 30, "key": 50, "fill": 35, "background": 15},
    "moderate": {"ambient": 50, "key": 75, "fill": 60, "background": 30},
    "dramatic": {"ambient": 25, "key": 95, "fill": 40, "background": 20},
}


def _unique(values: Iterable[str], limit: int) -> List[str]:
    seen: List[str] = []
    for value in values:
        if value and value not in seen:
            seen.append(value)
        if len(seen) >= limit:
            break
    return seen


class RecommendationRetriever:
    """Turns similar design patterns into an advisory recommendation bundle."""

    def __init__(self, store: Optional[PatternStore], top_k: int = 3):
        self.store = store
        self.top_k = top_k

    async def recommend(
        self,
        description: str,
        mood: Optional[str] = None,
        fixture_types: Optional[List[str]] = None,
    ) -> RecommendationBundle:
        if self.store is None or len(self.store) == 0:
            return self._fallback("no design patterns are loaded")

        query = f"{description} {mood}" if mood else description
        try:
            matches = self._rank(self.store.query(query, k=self.top_k * 2), fixture_types or [])
        except Exception as exc:
            logger.warning("Pattern query failed: %s", exc)
            return self._fallback(f"pattern query failed ({exc})")

        matches = matches[: self.top_k]
        if not matches:
            return self._fallback("no similar design patterns found")
        return self._aggregate(matches)

    def _rank(self, matches: List[PatternMatch], fixture_types: List[str]) -> List[PatternMatch]:
        wanted = {str(item).upper() for item in fixture_types}
        ranked: List[PatternMatch] = []
        for match in matches:
            if match.score <= 0:
                continue
            bonus = FIXTURE_TYPE_BONUS if wanted & {t.upper() for t in match.pattern.fixture_types} else 0.0
            ranked.append(PatternMatch(pattern=match.pattern, score=match.score + bonus))
        ranked.sort(key=lambda item: item.score, reverse=True)
        return ranked

    def _aggregate(self, matches: List[PatternMatch]) -> RecommendationBundle:
        total = sum(match.score for match in matches)
        bands: Dict[str, float] = {}
        for match in matches:
            profile = INTENSITY_PROFILES.get(match.pattern.intensity, INTENSITY_PROFILES["moderate"])
            for band, level in profile.items():
                bands[band] = bands.get(band, 0.0) + level * match.score / total

        colors = _unique((color for match in matches for color in match.pattern.color_palette), MAX_COLORS)
        focus = _unique((area for match in matches for area in match.pattern.focus_areas), MAX_FOCUS_AREAS)
        names = [match.pattern.id for match in matches]
        reasoning = f"Based on {len(matches)} similar design pattern(s): " + "; ".join(
            f"{match.pattern.description} ({match.pattern.mood or 'any mood'})" for match in matches
        )
        return RecommendationBundle(
            color_suggestions=colors,
            intensity_levels={band: int(round(level)) for band, level in bands.items()},
            focus_areas=focus,
            reasoning=reasoning,
            matched_patterns=names,
        )

    @staticmethod
    def _fallback(reason: str) -> RecommendationBundle:
        return RecommendationBundle(
            reasoning=f"No design precedent available: {reason}. Proceeding without recommendations.",
        )
