"""API routes."""
import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from spotlight.config import settings
from spotlight.db.database import get_db
from spotlight.models.segment import Segment
from spotlight.services.clip_tracker import get_clip_tracker
from spotlight.services.highlight_service import HighlightService
from spotlight.services.preference_service import PreferenceService
from spotlight.services.segment_service import SegmentService
from spotlight.utils.ffmpeg import check_ffmpeg_available
from spotlight.utils.http import CollaboratorError
from spotlight.utils.transcoder import TranscodeEvent
from spotlight.api.schemas import (
    SegmentCreate,
    SegmentResponse,
    HighlightResponse,
    PersonalizedHighlightResponse,
    PreferenceCreate,
    PreferenceResponse,
    ClipEventRequest,
    ClipEventResponse,
    ClipSubmitResponse,
    ClipRescanRequest,
    JobResponse,
    HealthResponse,
)

router = APIRouter()
logger = logging.getLogger(__name__)


# =============================================================================
# Health & System
# =============================================================================

@router.get("/health", response_model=HealthResponse)
async def health_check(db: AsyncSession = Depends(get_db)):
    """Check API health and component availability."""
    try:
        await db.execute(text("SELECT 1"))
        database_ok = True
    except SQLAlchemyError as e:
        logger.error(f"Database health check failed: {e}")
        database_ok = False

    ffmpeg_ok = check_ffmpeg_available()
    local_mode = settings.transcoder_mode == "local"

    problems = []
    if not database_ok:
        problems.append("database unavailable")
    if local_mode and not ffmpeg_ok:
        problems.append("ffmpeg missing for local transcoding")

    return HealthResponse(
        status="healthy" if not problems else "degraded",
        database_ok=database_ok,
        transcoder_mode=settings.transcoder_mode,
        ffmpeg_available=ffmpeg_ok,
        recommender_configured=bool(settings.recommender_url),
        message="; ".join(problems) or None,
    )


# =============================================================================
# Segments
# =============================================================================

@router.post("/segments", response_model=SegmentResponse)
async def create_segment(
    data: SegmentCreate,
    db: AsyncSession = Depends(get_db)
):
    """Register a source video and optionally start its analysis."""
    service = SegmentService(db)
    try:
        segment = await service.create_segment(data.source_ref)
        job_id = None
        if data.analyze:
            job = await service.start_analyze_job(segment.id)
            job_id = job.id
            await db.refresh(segment)
        return _segment_to_response(segment, job_id)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))


@router.get("/segments", response_model=List[SegmentResponse])
async def list_segments(db: AsyncSession = Depends(get_db)):
    """List all segments."""
    segments = await SegmentService(db).list_segments()
    return [_segment_to_response(s) for s in segments]


@router.get("/segments/{segment_id}", response_model=SegmentResponse)
async def get_segment(segment_id: int, db: AsyncSession = Depends(get_db)):
    """Get a segment by ID."""
    segment = await SegmentService(db).get_segment(segment_id)
    if not segment:
        raise HTTPException(status_code=404, detail="Segment not found")
    return _segment_to_response(segment)


@router.post("/segments/{segment_id}/analyze", response_model=JobResponse)
async def analyze_segment(segment_id: int, db: AsyncSession = Depends(get_db)):
    """Start (or restart) analysis of a segment."""
    service = SegmentService(db)
    if not await service.get_segment(segment_id):
        raise HTTPException(status_code=404, detail="Segment not found")
    try:
        job = await service.start_analyze_job(segment_id)
        return JobResponse.model_validate(job)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))


# =============================================================================
# Highlights
# =============================================================================

@router.get("/highlights", response_model=List[HighlightResponse])
async def list_highlights(
    source_id: Optional[str] = Query(None),
    limit: Optional[int] = Query(None, ge=1, le=1000),
    db: AsyncSession = Depends(get_db)
):
    """List completed highlights, newest first."""
    return await HighlightService(db).get_highlights(source_id=source_id, limit=limit)


@router.get("/highlights/{highlight_id}", response_model=HighlightResponse)
async def get_highlight(highlight_id: str, db: AsyncSession = Depends(get_db)):
    """Get one highlight."""
    highlight = await HighlightService(db).get_highlight(highlight_id)
    if not highlight:
        raise HTTPException(status_code=404, detail="Highlight not found")
    return highlight


@router.get("/users/{user_id}/highlights", response_model=List[PersonalizedHighlightResponse])
async def get_personalized_highlights(
    user_id: str,
    source_id: Optional[str] = Query(None),
    limit: Optional[int] = Query(None, ge=1, le=1000),
    db: AsyncSession = Depends(get_db)
):
    """Highlights ranked by the viewer's preferences."""
    try:
        return await HighlightService(db).get_personalized(user_id, source_id=source_id, limit=limit)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))


# =============================================================================
# Preferences
# =============================================================================

@router.get("/users/{user_id}/preferences", response_model=List[PreferenceResponse])
async def list_preferences(user_id: str, db: AsyncSession = Depends(get_db)):
    """List a viewer's preferences."""
    preferences = await PreferenceService(db).list_preferences(user_id)
    return [p.to_dict() for p in preferences]


@router.post("/users/{user_id}/preferences", response_model=PreferenceResponse)
async def set_preference(
    user_id: str,
    data: PreferenceCreate,
    db: AsyncSession = Depends(get_db)
):
    """Create or update a viewer preference."""
    try:
        preference = await PreferenceService(db).set_preference(
            user_id,
            data.type,
            data.value,
            data.weight
        )
        return preference.to_dict()
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))


@router.delete("/preferences/{preference_id}")
async def delete_preference(preference_id: int, db: AsyncSession = Depends(get_db)):
    """Delete a preference."""
    if not await PreferenceService(db).delete_preference(preference_id):
        raise HTTPException(status_code=404, detail="Preference not found")
    return {"status": "deleted"}


# =============================================================================
# Clips
# =============================================================================

@router.post("/highlights/{highlight_id}/clip", response_model=ClipSubmitResponse)
async def generate_clip(highlight_id: str):
    """Submit a clip job for one highlight (failed or stuck clips are retried)."""
    tracker = get_clip_tracker()
    try:
        job_id = await tracker.on_highlight_created(highlight_id, include_failed=True, include_in_flight=True)
    except ValueError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except CollaboratorError as e:
        raise HTTPException(status_code=502, detail=str(e))

    highlight = await tracker.store.get(highlight_id)
    return ClipSubmitResponse(
        highlight_id=highlight_id,
        submitted=job_id is not None,
        clip_job_id=highlight.get("clip_job_id") if highlight else job_id,
        clip_status=highlight.get("clip_status") if highlight else "pending",
    )


@router.post("/clips/events", response_model=ClipEventResponse)
async def clip_event(data: ClipEventRequest):
    """Apply a transcoding job completion event."""
    try:
        event = TranscodeEvent.from_payload(data.model_dump(exclude_none=True))
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))

    highlight = await get_clip_tracker().handle_event(event)
    return ClipEventResponse(applied=highlight is not None, highlight=highlight)


@router.post("/clips/rescan", response_model=JobResponse)
async def rescan_clips(
    data: Optional[ClipRescanRequest] = None,
    db: AsyncSession = Depends(get_db)
):
    """Start a background job submitting clips for highlights without one."""
    job = await SegmentService(db).start_clip_scan_job(source_id=data.source_id if data else None)
    return JobResponse.model_validate(job)


# =============================================================================
# Jobs
# =============================================================================

@router.get("/jobs/{job_id}", response_model=JobResponse)
async def get_job(job_id: int, db: AsyncSession = Depends(get_db)):
    """Get job status."""
    job = await SegmentService(db).get_job(job_id)
    if not job:
        raise HTTPException(status_code=404, detail="Job not found")
    return JobResponse.model_validate(job)


# =============================================================================
# Helpers
# =============================================================================

def _segment_to_response(segment: Segment, job_id: Optional[int] = None) -> SegmentResponse:
    """Convert segment model to response."""
    return SegmentResponse(
        id=segment.id,
        created_at=segment.created_at,
        updated_at=segment.updated_at,
        source_ref=segment.source_ref,
        source_id=segment.source_id,
        game_type=segment.game_type,
        status=segment.status.value,
        error_message=segment.error_message,
        highlight_count=segment.highlight_count,
        job_id=job_id,
    )
