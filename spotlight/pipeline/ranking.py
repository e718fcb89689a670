"""Personalization ranking engine.

Orders a pool of enriched highlights for one viewer. Ranking is a pure
function of (highlight pool, preference set) and is recomputed per request.

Strategies:
    RuleBasedRanker   - weighted preference scoring (default)
    RecommenderRanker - delegates ordering to an external recommender and
                        falls back to another strategy on failure
"""
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional, Tuple

import numpy as np

from .config import PipelineConfig, DEFAULT_PIPELINE_CONFIG

logger = logging.getLogger(__name__)


@dataclass
class PreferenceWeight:
    """A (type, value, weight) preference independent of storage."""
    type: str
    value: str
    weight: float = 1.0

    @classmethod
    def coerce(cls, pref: Any) -> "PreferenceWeight":
        """Accept a dict, a PreferenceWeight or a UserPreference row."""
        if isinstance(pref, cls):
            return pref
        if isinstance(pref, dict):
            return cls(type=str(pref["type"]), value=str(pref["value"]), weight=float(pref.get("weight", 1.0)))
        pref_type = getattr(pref.type, "value", pref.type)
        return cls(type=str(pref_type), value=str(pref.value), weight=float(pref.weight))


@dataclass
class PersonalizedHighlight:
    """A highlight record with the score it was ranked by."""
    highlight: Dict[str, Any]
    personalized_score: float
    matches: List[str] = field(default_factory=list)

    @property
    def highlight_id(self) -> Optional[str]:
        return self.highlight.get("highlight_id")

    def to_dict(self) -> dict:
        return {
            **self.highlight,
            "personalized_score": self.personalized_score,
            "matches": list(self.matches),
        }


PreferenceLookup = Dict[Tuple[str, str], float]


def build_preference_lookup(preferences: Iterable[Any]) -> PreferenceLookup:
    """Map ``(TYPE, lowercased value)`` to weight. Later duplicates win."""
    lookup: PreferenceLookup = {}
    for pref in preferences:
        pref = PreferenceWeight.coerce(pref)
        lookup[(pref.type.upper(), pref.value.strip().lower())] = max(0.0, pref.weight)
    return lookup


def _key(pref_type: str, value: Any) -> Optional[Tuple[str, str]]:
    if not isinstance(value, str) or not value.strip():
        return None
    return (pref_type, value.strip().lower())


def score_highlight(
    highlight: Dict[str, Any],
    lookup: PreferenceLookup,
    config: PipelineConfig = DEFAULT_PIPELINE_CONFIG,
) -> Tuple[float, List[str]]:
    """
    Score one highlight against a preference lookup.

    score = confidence
            + team_multiplier * sum(matched team weights)
            + player_multiplier * sum(matched player weights)
            + play_type_multiplier * matched play type weight
            + sport_multiplier * matched sport weight

    Returns:
        (score, list of matched "TYPE:value" descriptors)
    """
    score = float(highlight.get("confidence") or 0.0)
    matches: List[str] = []

    def weight_of(pref_type: str, value: Any) -> float:
        key = _key(pref_type, value)
        if key is None or key not in lookup:
            return 0.0
        matches.append(f"{pref_type}:{value}")
        return lookup[key]

    team_total = sum(weight_of("TEAM", team) for team in highlight.get("teams") or [])
    player_total = sum(weight_of("PLAYER", player) for player in highlight.get("players") or [])
    play_type_weight = weight_of("PLAY_TYPE", highlight.get("play_type"))
    sport_weight = weight_of("SPORT", highlight.get("sport"))

    score += config.team_weight_multiplier * team_total
    score += config.player_weight_multiplier * player_total
    score += config.play_type_weight_multiplier * play_type_weight
    score += config.sport_weight_multiplier * sport_weight
    return score, matches


def rankable(highlights: Iterable[Dict[str, Any]]) -> List[Dict[str, Any]]:
    """Only fully enriched highlights take part in ranking."""
    return [h for h in highlights if h.get("enrichment_complete")]


class RankingStrategy:
    """Base class for ranking strategies."""

    name = "base"

    async def rank(
        self,
        user_id: str,
        highlights: List[Dict[str, Any]],
        preferences: List[Any],
    ) -> List[PersonalizedHighlight]:
        raise NotImplementedError


class RuleBasedRanker(RankingStrategy):
    """Weighted preference scoring with a stable descending sort."""

    name = "rule_based"

    def __init__(self, config: Optional[PipelineConfig] = None):
        self.config = config or DEFAULT_PIPELINE_CONFIG

    def rank_sync(
        self,
        highlights: List[Dict[str, Any]],
        preferences: List[Any],
    ) -> List[PersonalizedHighlight]:
        pool = rankable(highlights)
        if not pool:
            return []

        lookup = build_preference_lookup(preferences)
        scored = [score_highlight(h, lookup, self.config) for h in pool]
        scores = np.array([s for s, _ in scored], dtype=float)

        # Stable sort on negated scores keeps input order for ties
        order = np.argsort(-scores, kind="stable")
        return [
            PersonalizedHighlight(
                highlight=pool[i],
                personalized_score=float(scores[i]),
                matches=scored[i][1],
            )
            for i in order
        ]

    async def rank(self, user_id, highlights, preferences):
        return self.rank_sync(highlights, preferences)


class RecommenderRanker(RankingStrategy):
    """Orders the local pool by an external recommender's id list.

    Ids unknown locally are dropped. Local highlights the recommender did
    not return are omitted. Any recommender failure falls back to the
    ``fallback`` strategy.
    """

    name = "recommender"

    def __init__(self, client, fallback: Optional[RankingStrategy] = None):
        self.client = client
        self.fallback = fallback or RuleBasedRanker()

    async def rank(self, user_id, highlights, preferences):
        pool = rankable(highlights)
        try:
            recommended = await self.client.get_recommendations(user_id)
        except Exception as e:
            logger.warning(f"Recommender failed for user {user_id}, using {self.fallback.name}: {e}")
            return await self.fallback.rank(user_id, highlights, preferences)

        by_id = {h.get("highlight_id"): h for h in pool}
        ordered = []
        seen = set()
        for highlight_id in recommended:
            if highlight_id in by_id and highlight_id not in seen:
                seen.add(highlight_id)
                ordered.append(by_id[highlight_id])

        dropped = len(recommended) - len(ordered)
        if dropped:
            logger.info(f"Dropped {dropped} recommended ids not present locally")

        total = len(ordered)
        return [
            PersonalizedHighlight(highlight=h, personalized_score=float(total - i))
            for i, h in enumerate(ordered)
        ]
