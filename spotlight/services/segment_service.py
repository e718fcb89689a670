"""Segment service layer."""
from typing import List, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from spotlight.models.job import Job, JobStatus, JobType
from spotlight.models.segment import Segment, SegmentStatus
from spotlight.utils.sources import extract_game_id, extract_game_type, parse_source_ref
from spotlight.workers.job_runner import job_runner


class SegmentService:
    """Service for segment operations."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def create_segment(self, source_ref: str) -> Segment:
        """
        Register a source video segment.

        Args:
            source_ref: ``s3://bucket/key`` or a local video path

        Returns:
            Created segment

        Raises:
            InvalidSourceError: If the reference is malformed
        """
        source = parse_source_ref(source_ref)

        segment = Segment(
            source_ref=source.uri,
            source_id=extract_game_id(source.key),
            game_type=extract_game_type(source.key),
            status=SegmentStatus.PENDING,
        )
        self.db.add(segment)
        await self.db.commit()
        await self.db.refresh(segment)
        return segment

    async def get_segment(self, segment_id: int) -> Optional[Segment]:
        """Get a segment by ID."""
        return await self.db.get(Segment, segment_id)

    async def list_segments(self) -> List[Segment]:
        """List all segments."""
        result = await self.db.execute(
            select(Segment).order_by(Segment.created_at.desc())
        )
        return result.scalars().all()

    async def start_analyze_job(self, segment_id: int) -> Job:
        """
        Start an analysis job for a segment.

        Args:
            segment_id: Segment ID

        Returns:
            Created job
        """
        segment = await self.db.get(Segment, segment_id)
        if not segment:
            raise ValueError(f"Segment {segment_id} not found")

        if segment.status == SegmentStatus.ANALYZING:
            raise ValueError(f"Cannot analyze in state: {segment.status.value}")

        job = Job(
            segment_id=segment_id,
            job_type=JobType.ANALYZE,
            status=JobStatus.PENDING
        )
        self.db.add(job)
        await self.db.commit()
        await self.db.refresh(job)

        await job_runner.start_job(
            job.id,
            JobType.ANALYZE.value,
            segment_id=segment_id
        )

        return job

    async def start_clip_scan_job(self, source_id: Optional[str] = None) -> Job:
        """Start a background rescan for highlights without clips."""
        job = Job(
            job_type=JobType.CLIP_SCAN,
            status=JobStatus.PENDING
        )
        self.db.add(job)
        await self.db.commit()
        await self.db.refresh(job)

        await job_runner.start_job(
            job.id,
            JobType.CLIP_SCAN.value,
            source_id=source_id
        )

        return job

    async def get_job(self, job_id: int) -> Optional[Job]:
        return await self.db.get(Job, job_id)
