"""Clip job tracker.

Submits one transcoding job per persisted highlight and applies job
completion events to the highlight's clip state.
"""
import logging
from datetime import datetime
from typing import Any, Dict, List, Optional

from spotlight.config import settings
from spotlight.models.highlight import ClipStatus
from spotlight.services.highlight_store import HighlightStore
from spotlight.utils.transcoder import (
    EVENT_COMPLETE,
    EVENT_ERROR,
    HttpTranscoder,
    LocalTranscoder,
    TranscodeEvent,
    TranscodeRequest,
    clip_url_for,
    thumbnail_url_for,
)

logger = logging.getLogger(__name__)

CLIP_FAILED_MESSAGE = "Transcoding job failed"


def needs_clip(
    highlight: Dict[str, Any],
    include_failed: bool = True,
    include_in_flight: bool = False,
) -> bool:
    """True when a highlight has no generated clip and no job in flight.

    ``include_in_flight`` also accepts highlights stuck in processing,
    e.g. after a lost completion event.
    """
    if highlight.get("clip_generated"):
        return False
    status = highlight.get("clip_status")
    if status == ClipStatus.PROCESSING.value and highlight.get("clip_job_id") and not include_in_flight:
        return False
    if status == ClipStatus.FAILED.value and not include_failed:
        return False
    return True


class ClipJobTracker:
    """Drives clip generation for highlights held in a HighlightStore."""

    def __init__(self, store: HighlightStore, transcoder, destination: Optional[str] = None):
        self.store = store
        self.transcoder = transcoder
        self.destination = destination or settings.clip_destination

    def build_request(self, highlight: Dict[str, Any]) -> TranscodeRequest:
        return TranscodeRequest(
            highlight_id=highlight["highlight_id"],
            source_ref=highlight["source_video"],
            start_time=float(highlight["start_time"]),
            end_time=float(highlight["end_time"]),
            destination=self.destination,
            metadata={
                "sport": highlight.get("sport") or "",
                "playType": highlight.get("play_type") or "",
            },
        )

    async def on_highlight_created(
        self,
        highlight_id: str,
        include_failed: bool = False,
        include_in_flight: bool = False,
    ) -> Optional[str]:
        """
        Submit a clip job for a newly persisted highlight.

        Highlights with a generated clip are always skipped. Failed highlights
        and highlights with a job in flight are skipped unless requested.

        Returns:
            The transcoding job id, or None when skipped

        Raises:
            ValueError: If the highlight does not exist
        """
        highlight = await self.store.get(highlight_id)
        if highlight is None:
            raise ValueError(f"Highlight {highlight_id} not found")

        if not needs_clip(highlight, include_failed=include_failed, include_in_flight=include_in_flight):
            logger.info(f"Skipping clip generation for {highlight_id} ({highlight.get('clip_status')})")
            return None

        job_id = await self.transcoder.submit_clip_job(self.build_request(highlight))
        # A local transcoder may already have reported completion
        current = await self.store.get(highlight_id)
        if current and current.get("clip_job_id") == job_id and current.get("clip_status") != ClipStatus.PROCESSING.value:
            return job_id

        await self.store.update(highlight_id, {
            "clip_job_id": job_id,
            "clip_status": ClipStatus.PROCESSING.value,
            "clip_error": None,
            "clip_started_at": datetime.utcnow(),
        })
        logger.info(f"Clip job {job_id} started for highlight {highlight_id}")
        return job_id

    async def handle_event(self, event: TranscodeEvent) -> Optional[Dict[str, Any]]:
        """
        Apply a job completion event.

        Unknown job ids are logged and ignored.

        Returns:
            The updated highlight, or None when the event was ignored
        """
        highlight = await self.store.find_by_clip_job(event.job_id)
        if highlight is None and event.highlight_id:
            candidate = await self.store.get(event.highlight_id)
            # Completion may arrive before the job id is recorded
            if candidate and not candidate.get("clip_generated"):
                highlight = candidate

        if highlight is None:
            logger.warning(f"No highlight found for clip job {event.job_id}")
            return None

        highlight_id = highlight["highlight_id"]

        if event.status == EVENT_COMPLETE:
            fields = {
                "clip_job_id": event.job_id,
                "clip_status": ClipStatus.COMPLETED.value,
                "clip_generated": True,
                "clip_url": event.clip_url or clip_url_for(highlight_id),
                "thumbnail_url": event.thumbnail_url or thumbnail_url_for(highlight_id),
                "clip_error": None,
                "clip_generated_at": datetime.utcnow(),
            }
            logger.info(f"Clip ready for highlight {highlight_id}")
        elif event.status == EVENT_ERROR:
            fields = {
                "clip_job_id": event.job_id,
                "clip_status": ClipStatus.FAILED.value,
                "clip_error": CLIP_FAILED_MESSAGE,
            }
            logger.warning(f"Clip job {event.job_id} failed for highlight {highlight_id}: {event.message}")
        else:
            logger.info(f"Ignoring clip job {event.job_id} status {event.status!r}")
            return None

        return await self.store.update(highlight_id, fields)

    async def rescan(self, source_id: Optional[str] = None) -> Dict[str, Any]:
        """
        Submit clip jobs for every highlight without a generated clip.

        Failed highlights and highlights still marked processing are
        resubmitted. Per-highlight errors are collected.
        """
        highlights = await self.store.scan(source_id=source_id, clip_generated=False)
        submitted: List[str] = []
        skipped: List[str] = []
        errors: List[Dict[str, str]] = []

        for highlight in highlights:
            highlight_id = highlight["highlight_id"]
            try:
                job_id = await self.on_highlight_created(
                    highlight_id, include_failed=True, include_in_flight=True
                )
            except Exception as e:
                logger.error(f"Clip submission failed for {highlight_id}: {e}")
                errors.append({"highlight_id": highlight_id, "error": str(e)})
                continue
            if job_id:
                submitted.append(highlight_id)
            else:
                skipped.append(highlight_id)

        logger.info(
            f"Clip rescan: {len(submitted)} submitted, {len(skipped)} skipped, {len(errors)} errors"
        )
        return {
            "scanned": len(highlights),
            "submitted": submitted,
            "skipped": skipped,
            "errors": errors,
        }


_tracker: Optional[ClipJobTracker] = None


def get_clip_tracker() -> ClipJobTracker:
    """Process-wide tracker bound to the configured transcoder."""
    global _tracker
    if _tracker is None:
        store = HighlightStore()
        if settings.transcoder_mode == "local":
            transcoder = LocalTranscoder()
            _tracker = ClipJobTracker(store, transcoder)
            transcoder.set_event_handler(_tracker.handle_event)
        else:
            _tracker = ClipJobTracker(store, HttpTranscoder())
    return _tracker
