"""Highlight query and personalization service."""
import logging
from typing import Any, Dict, List, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from spotlight.config import settings
from spotlight.pipeline.ranking import (
    RankingStrategy,
    RecommenderRanker,
    RuleBasedRanker,
)
from spotlight.services.highlight_store import HighlightStore
from spotlight.services.preference_service import PreferenceService
from spotlight.utils.recommender import RecommenderClient

logger = logging.getLogger(__name__)


def build_ranker() -> RankingStrategy:
    """
    Ranking strategy selected by settings.ranking_strategy.

    Raises:
        ValueError: If the recommender strategy is chosen without a recommender URL
    """
    rule_based = RuleBasedRanker()
    strategy = settings.ranking_strategy
    if strategy == "rule_based":
        return rule_based
    if strategy == "recommender" or settings.recommender_url:
        return RecommenderRanker(RecommenderClient(settings.recommender_url), fallback=rule_based)
    return rule_based


class HighlightService:
    """Service for reading and ranking highlights."""

    def __init__(
        self,
        db: AsyncSession,
        store: Optional[HighlightStore] = None,
        ranker: Optional[RankingStrategy] = None,
    ):
        self.db = db
        self.store = store or HighlightStore()
        self.ranker = ranker

    async def get_highlights(
        self,
        source_id: Optional[str] = None,
        limit: Optional[int] = None,
    ) -> List[Dict[str, Any]]:
        """Completed highlights, newest first."""
        return await self.store.scan(source_id=source_id, enrichment_complete=True, limit=limit)

    async def get_highlight(self, highlight_id: str) -> Optional[Dict[str, Any]]:
        return await self.store.get(highlight_id)

    async def get_personalized(
        self,
        user_id: str,
        source_id: Optional[str] = None,
        limit: Optional[int] = None,
    ) -> List[Dict[str, Any]]:
        """
        Rank completed highlights for one viewer.

        Args:
            user_id: Viewer identifier
            source_id: Optionally restrict the pool to one game
            limit: Optional maximum number of results

        Returns:
            Highlight dictionaries with ``personalized_score``, best first
        """
        if not user_id or not user_id.strip():
            raise ValueError("User ID is required")

        preferences = await PreferenceService(self.db).list_preferences(user_id)
        pool = await self.store.scan(source_id=source_id, enrichment_complete=True)

        if self.ranker is None:
            self.ranker = build_ranker()
        ranked = await self.ranker.rank(user_id, pool, preferences)
        logger.info(
            f"Ranked {len(ranked)} highlights for user {user_id} "
            f"({len(preferences)} preferences, {self.ranker.name})"
        )
        if limit:
            ranked = ranked[:limit]
        return [item.to_dict() for item in ranked]
