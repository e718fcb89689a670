"""Job handlers for different task types."""
import logging
from typing import Callable, Optional

from spotlight.config import settings
from spotlight.db.database import async_session_maker
from spotlight.models.job import JobType
from spotlight.models.segment import Segment, SegmentStatus
from spotlight.pipeline.enrichment import EnrichmentMergeLayer
from spotlight.pipeline.poller import JobPoller
from spotlight.pipeline.runner import run_highlight_pipeline
from spotlight.services.clip_tracker import get_clip_tracker
from spotlight.services.highlight_store import HighlightStore
from spotlight.utils.detection import DetectionClient
from spotlight.utils.language import LanguageModelClient
from spotlight.utils.text_analytics import TextAnalyticsClient

logger = logging.getLogger(__name__)


def create_detection_client() -> DetectionClient:
    return DetectionClient()


def create_enrichment_layer() -> EnrichmentMergeLayer:
    return EnrichmentMergeLayer(
        language_client=LanguageModelClient(),
        text_client=TextAnalyticsClient(),
        text_concurrency=settings.text_analytics_concurrency,
    )


def create_poller() -> JobPoller:
    return JobPoller(
        poll_interval_sec=settings.job_poll_interval_sec,
        max_wait_sec=settings.job_max_wait_sec,
    )


async def _set_segment_status(segment_id: int, status: SegmentStatus, **fields):
    async with async_session_maker() as session:
        segment = await session.get(Segment, segment_id)
        if segment:
            segment.status = status
            for key, value in fields.items():
                setattr(segment, key, value)
            await session.commit()


async def handle_analyze(
    job_id: int,
    segment_id: int,
    progress_callback: Callable,
    **kwargs
) -> dict:
    """
    Handle segment analysis: detection, clustering, enrichment, storage.

    New highlights are handed to the clip tracker when automatic clip
    generation is enabled. Clip submission errors do not fail the job.

    Args:
        job_id: Job ID
        segment_id: Segment ID
        progress_callback: Async callback for progress updates

    Returns:
        Result dictionary with highlight counts
    """
    async with async_session_maker() as session:
        segment = await session.get(Segment, segment_id)
        if not segment:
            raise ValueError(f"Segment {segment_id} not found")

        segment.status = SegmentStatus.ANALYZING
        segment.error_message = None
        await session.commit()

        source_ref = segment.source_ref

    try:
        async def pipeline_progress(pct, msg):
            await progress_callback(pct * 0.9, msg)

        result = await run_highlight_pipeline(
            source_ref,
            detection_client=create_detection_client(),
            enrichment=create_enrichment_layer(),
            store=HighlightStore(),
            poller=create_poller(),
            segment_id=segment_id,
            progress_callback=pipeline_progress,
        )
    except Exception as e:
        await _set_segment_status(segment_id, SegmentStatus.ERROR, error_message=str(e))
        raise

    await _set_segment_status(segment_id, SegmentStatus.READY, highlight_count=len(result.highlights))

    summary = result.summary()
    clip_jobs = []
    clip_errors = []
    if settings.auto_generate_clips and result.highlights:
        await progress_callback(95, "Submitting clip jobs...")
        tracker = get_clip_tracker()
        for highlight_id in result.highlight_ids:
            try:
                clip_job_id = await tracker.on_highlight_created(highlight_id)
            except Exception as e:
                logger.error(f"Clip submission failed for {highlight_id}: {e}")
                clip_errors.append({"highlight_id": highlight_id, "error": str(e)})
                continue
            if clip_job_id:
                clip_jobs.append(clip_job_id)

    await progress_callback(100, f"Found {len(result.highlights)} highlights")

    summary["clip_jobs"] = clip_jobs
    summary["clip_errors"] = clip_errors
    return summary


async def handle_clip_scan(
    job_id: int,
    progress_callback: Callable,
    source_id: Optional[str] = None,
    **kwargs
) -> dict:
    """Resubmit clip jobs for every highlight without a generated clip."""
    await progress_callback(0, "Scanning highlights...")
    result = await get_clip_tracker().rescan(source_id=source_id)
    await progress_callback(100, f"Submitted {len(result['submitted'])} clip jobs")
    return result


def register_handlers(runner):
    """Register all job handlers with the runner."""
    runner.register_handler(JobType.ANALYZE.value, handle_analyze)
    runner.register_handler(JobType.CLIP_SCAN.value, handle_clip_scan)
