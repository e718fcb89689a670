"""Highlight metadata store.

Keyed by ``highlight_id``. Works in plain dictionaries so the pipeline,
clip tracker and ranking engine never hold ORM rows across sessions.
"""
import logging
from typing import Any, Callable, Dict, Iterable, List, Optional

from sqlalchemy import select

from spotlight.config import settings
from spotlight.db.database import async_session_maker
from spotlight.models.highlight import Highlight

logger = logging.getLogger(__name__)


class HighlightStore:
    """Async key-value style access to persisted highlights."""

    def __init__(self, session_factory: Callable = async_session_maker):
        self.session_factory = session_factory

    async def get(self, highlight_id: str) -> Optional[Dict[str, Any]]:
        async with self.session_factory() as session:
            highlight = await session.get(Highlight, highlight_id)
            return highlight.to_dict() if highlight else None

    async def batch_put(
        self,
        items: Iterable[Dict[str, Any]],
        batch_size: Optional[int] = None,
        segment_id: Optional[int] = None,
    ) -> int:
        """
        Upsert highlights in batches, committing once per batch.

        Writes are idempotent per ``highlight_id``. A failing batch raises;
        batches already committed stay committed.

        Returns:
            Number of highlights written
        """
        items = list(items)
        batch_size = max(1, batch_size or settings.store_batch_size)
        written = 0

        for offset in range(0, len(items), batch_size):
            batch = items[offset:offset + batch_size]
            async with self.session_factory() as session:
                for item in batch:
                    row = Highlight.from_dict(item)
                    if segment_id is not None:
                        row.segment_id = segment_id
                    await session.merge(row)
                await session.commit()
            written += len(batch)
            logger.info(f"Stored highlight batch {offset // batch_size + 1} ({len(batch)} items)")

        return written

    async def update(self, highlight_id: str, fields: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        """Update selected fields. Returns the updated record, or None if missing."""
        async with self.session_factory() as session:
            highlight = await session.get(Highlight, highlight_id)
            if not highlight:
                return None
            highlight.apply_fields(fields)
            await session.commit()
            return highlight.to_dict()

    async def find_by_clip_job(self, job_id: str) -> Optional[Dict[str, Any]]:
        async with self.session_factory() as session:
            result = await session.execute(
                select(Highlight).where(Highlight.clip_job_id == job_id)
            )
            highlight = result.scalars().first()
            return highlight.to_dict() if highlight else None

    async def scan(
        self,
        source_id: Optional[str] = None,
        segment_id: Optional[int] = None,
        clip_generated: Optional[bool] = None,
        enrichment_complete: Optional[bool] = None,
        limit: Optional[int] = None,
    ) -> List[Dict[str, Any]]:
        """List highlights matching the given filters, newest first."""
        query = select(Highlight)
        if source_id is not None:
            query = query.where(Highlight.source_id == source_id)
        if segment_id is not None:
            query = query.where(Highlight.segment_id == segment_id)
        if clip_generated is not None:
            query = query.where(Highlight.clip_generated == clip_generated)
        if enrichment_complete is not None:
            query = query.where(Highlight.enrichment_complete == enrichment_complete)
        query = query.order_by(Highlight.created_at.desc(), Highlight.ordinal)
        if limit:
            query = query.limit(limit)

        async with self.session_factory() as session:
            result = await session.execute(query)
            return [h.to_dict() for h in result.scalars().all()]
