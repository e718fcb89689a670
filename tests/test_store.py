"""Tests for persisted highlights, preferences and segments."""
from datetime import datetime

import pytest
from sqlalchemy import text

from spotlight.models.highlight import ClipStatus, Highlight
from spotlight.models.job import Job, JobType
from spotlight.models.segment import SegmentStatus
from spotlight.pipeline.clustering import HighlightCandidate
from spotlight.pipeline.enrichment import EnrichmentMergeLayer
from spotlight.pipeline.ranking import RuleBasedRanker
from spotlight.services.highlight_service import HighlightService
from spotlight.services.highlight_store import HighlightStore
from spotlight.services.preference_service import PreferenceService
from spotlight.services.segment_service import SegmentService
from spotlight.utils.sources import InvalidSourceError


CREATED_AT = datetime(2024, 5, 4, 18, 0, 0, 250000)


async def _enriched(count=3, source_id="game-1", sport="soccer"):
    candidates = [
        HighlightCandidate(start_time=i * 10.0, end_time=i * 10.0 + 2, confidence=90.0 + i, labels=["Goal"])
        for i in range(count)
    ]
    highlights = await EnrichmentMergeLayer().enrich(
        candidates, source_id, f"s3://bucket/games/{source_id}/match.mp4", sport, CREATED_AT
    )
    return [h.to_dict() for h in highlights]


class TestHighlightModel:
    """Tests for Highlight row conversion."""

    def test_json_fields_round_trip(self):
        row = Highlight.from_dict({
            "highlight_id": "h-1",
            "labels": ["Ball", "Goal"],
            "sentiment": {"label": "POSITIVE", "score": 0.9},
            "created_at": "2024-05-04T18:00:00.250000",
            "clip_status": "processing",
            "unknown_field": "ignored",
        })
        assert row.labels == '["Ball", "Goal"]'
        assert row.clip_status == ClipStatus.PROCESSING
        assert row.created_at == CREATED_AT

        data = row.to_dict()
        assert data["labels"] == ["Ball", "Goal"]
        assert data["sentiment"]["label"] == "POSITIVE"
        assert data["teams"] == []
        assert data["entities"] is None
        assert data["clip_status"] == "processing"
        assert "unknown_field" not in data


class TestHighlightStore:
    """Tests for the highlight store."""

    @pytest.mark.asyncio
    async def test_batch_put_and_get(self, session_factory):
        store = HighlightStore(session_factory)
        items = await _enriched(5)

        written = await store.batch_put(items, batch_size=2)

        assert written == 5
        stored = await store.get(items[0]["highlight_id"])
        assert stored["title"] == "Auto-detected Highlight"
        assert stored["enrichment_complete"] is True
        assert stored["clip_status"] == "pending"
        assert stored["clip_generated"] is False

    @pytest.mark.asyncio
    async def test_rewrite_is_idempotent_and_keeps_clip_state(self, session_factory):
        store = HighlightStore(session_factory)
        items = await _enriched(2)
        await store.batch_put(items)
        await store.update(items[0]["highlight_id"], {"clip_status": "completed", "clip_generated": True})

        await store.batch_put(items)

        all_items = await store.scan()
        assert len(all_items) == 2
        first = await store.get(items[0]["highlight_id"])
        assert first["clip_generated"] is True
        assert first["clip_status"] == "completed"

    @pytest.mark.asyncio
    async def test_update_missing(self, session_factory):
        assert await HighlightStore(session_factory).update("nope", {"title": "x"}) is None

    @pytest.mark.asyncio
    async def test_scan_filters(self, session_factory):
        store = HighlightStore(session_factory)
        await store.batch_put(await _enriched(2, source_id="game-1"))
        await store.batch_put(await _enriched(1, source_id="game-2"))
        [first] = await store.scan(source_id="game-2")
        await store.update(first["highlight_id"], {"clip_generated": True, "clip_job_id": "j-7"})

        assert len(await store.scan(source_id="game-1")) == 2
        assert len(await store.scan(clip_generated=False)) == 2
        assert len(await store.scan(limit=1)) == 1
        found = await store.find_by_clip_job("j-7")
        assert found["source_id"] == "game-2"

    @pytest.mark.asyncio
    async def test_segment_id_recorded(self, session_factory, db):
        segment = await SegmentService(db).create_segment("s3://bucket/games/game-1/match.mp4")
        store = HighlightStore(session_factory)
        await store.batch_put(await _enriched(2), segment_id=segment.id)
        assert len(await store.scan(segment_id=segment.id)) == 2


class TestSegmentService:
    """Tests for segment registration."""

    @pytest.mark.asyncio
    async def test_create_from_bucket_uri(self, db):
        segment = await SegmentService(db).create_segment("s3://media/games/G42/basketball-final.mp4")
        assert segment.source_id == "G42"
        assert segment.game_type == "basketball"
        assert segment.status == SegmentStatus.PENDING

    @pytest.mark.asyncio
    async def test_create_from_local_path(self, db):
        segment = await SegmentService(db).create_segment("/videos/match.mp4")
        assert segment.source_id == "videos"
        assert segment.game_type == "general_sports"

    @pytest.mark.asyncio
    async def test_invalid_source(self, db):
        with pytest.raises(InvalidSourceError):
            await SegmentService(db).create_segment("s3://bucket-only")

    @pytest.mark.asyncio
    async def test_analyze_missing_segment(self, db):
        with pytest.raises(ValueError):
            await SegmentService(db).start_analyze_job(999)


class TestPreferenceService:
    """Tests for preference CRUD."""

    @pytest.mark.asyncio
    async def test_upsert(self, db):
        service = PreferenceService(db)
        first = await service.set_preference("u1", "team", "Arsenal", 2.0)
        second = await service.set_preference("u1", "TEAM", "Arsenal", 5.0)

        assert first.id == second.id
        [pref] = await service.list_preferences("u1")
        assert pref.weight == 5.0
        assert pref.to_dict()["type"] == "TEAM"

    @pytest.mark.asyncio
    async def test_validation(self, db):
        service = PreferenceService(db)
        with pytest.raises(ValueError):
            await service.set_preference("u1", "COLOR", "red")
        with pytest.raises(ValueError):
            await service.set_preference("u1", "SPORT", "soccer", -1)
        with pytest.raises(ValueError):
            await service.set_preference("u1", "SPORT", "  ")

    @pytest.mark.asyncio
    async def test_delete(self, db):
        service = PreferenceService(db)
        pref = await service.set_preference("u1", "SPORT", "soccer")
        assert await service.delete_preference(pref.id) is True
        assert await service.delete_preference(pref.id) is False
        assert await service.list_preferences("u1") == []


class TestHighlightService:
    """Tests for personalized highlight queries."""

    @pytest.mark.asyncio
    async def test_personalized_reference_scenario(self, session_factory, db):
        store = HighlightStore(session_factory)
        soccer = (await _enriched(1, source_id="game-1", sport="soccer"))[0]
        basketball = (await _enriched(1, source_id="game-2", sport="basketball"))[0]
        soccer.update(play_type="goal", confidence=90.0)
        basketball.update(play_type="dunk", confidence=90.0)
        await store.batch_put([basketball, soccer])

        prefs = PreferenceService(db)
        await prefs.set_preference("viewer", "SPORT", "soccer", 10)
        await prefs.set_preference("viewer", "PLAY_TYPE", "goal", 10)

        service = HighlightService(db, store=store, ranker=RuleBasedRanker())
        ranked = await service.get_personalized("viewer")

        assert [r["source_id"] for r in ranked] == ["game-1", "game-2"]
        assert [r["personalized_score"] for r in ranked] == [170, 90]

    @pytest.mark.asyncio
    async def test_personalized_requires_user(self, session_factory, db):
        service = HighlightService(db, store=HighlightStore(session_factory), ranker=RuleBasedRanker())
        with pytest.raises(ValueError):
            await service.get_personalized(" ")

    @pytest.mark.asyncio
    async def test_incomplete_highlights_hidden(self, session_factory, db):
        store = HighlightStore(session_factory)
        items = await _enriched(2)
        items[1]["enrichment_complete"] = False
        await store.batch_put(items)

        service = HighlightService(db, store=store, ranker=RuleBasedRanker())
        assert len(await service.get_highlights()) == 1
        assert len(await service.get_personalized("viewer")) == 1


class TestSegmentDeletion:
    """Tests for database-level foreign key actions."""

    @pytest.mark.asyncio
    async def test_delete_detaches_highlights_and_drops_jobs(self, session_factory, db):
        segment = await SegmentService(db).create_segment("s3://bucket/games/game-1/match.mp4")
        db.add(Job(segment_id=segment.id, job_type=JobType.ANALYZE))
        await db.commit()

        store = HighlightStore(session_factory)
        items = await _enriched(1)
        await store.batch_put(items, segment_id=segment.id)

        async with session_factory() as session:
            await session.execute(text("DELETE FROM segments WHERE id = :id"), {"id": segment.id})
            await session.commit()

            jobs = await session.execute(text("SELECT COUNT(*) FROM jobs"))
            assert jobs.scalar() == 0

        stored = await store.get(items[0]["highlight_id"])
        assert stored is not None
        assert stored["segment_id"] is None
