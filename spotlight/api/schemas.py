"""Pydantic schemas for API requests and responses."""
from datetime import datetime
from typing import Any, Dict, List, Optional
from pydantic import BaseModel, Field


# =============================================================================
# Segment Schemas
# =============================================================================

class SegmentCreate(BaseModel):
    """Request to register a source video segment."""
    source_ref: str = Field(..., description="s3://bucket/key or local video path")
    analyze: bool = Field(True, description="Start analysis immediately")


class SegmentResponse(BaseModel):
    """Segment response."""
    id: int
    created_at: datetime
    updated_at: datetime
    source_ref: str
    source_id: str
    game_type: str
    status: str
    error_message: Optional[str]
    highlight_count: int
    job_id: Optional[int] = None

    class Config:
        from_attributes = True


# =============================================================================
# Highlight Schemas
# =============================================================================

class SentimentResponse(BaseModel):
    label: str
    score: float
    scores: Dict[str, float] = {}


class EntityResponse(BaseModel):
    text: str
    type: str
    score: float


class KeyPhraseResponse(BaseModel):
    text: str
    score: float


class GamingContextResponse(BaseModel):
    emotional_tone: str
    gameplay_type: str
    audience_appeal: str


class HighlightResponse(BaseModel):
    """Enriched highlight with clip state."""
    highlight_id: str
    segment_id: Optional[int] = None
    source_id: str
    source_video: str
    ordinal: int
    created_at: datetime
    start_time: float
    end_time: float
    duration: float
    confidence: float
    labels: List[str] = []
    person_count: int = 0

    sport: Optional[str] = None
    excitement_level: Optional[float] = None
    play_type: Optional[str] = None
    title: Optional[str] = None
    description: Optional[str] = None
    target_audience: Optional[str] = None
    ai_enhanced: bool = False

    sentiment: Optional[SentimentResponse] = None
    entities: Optional[List[EntityResponse]] = None
    key_phrases: Optional[List[KeyPhraseResponse]] = None
    gaming_context: Optional[GamingContextResponse] = None
    teams: List[str] = []
    players: List[str] = []
    text_analytics_enhanced: bool = False
    enrichment_complete: bool = False

    clip_status: str
    clip_job_id: Optional[str] = None
    clip_generated: bool = False
    clip_url: Optional[str] = None
    thumbnail_url: Optional[str] = None
    clip_error: Optional[str] = None
    clip_started_at: Optional[datetime] = None
    clip_generated_at: Optional[datetime] = None


class PersonalizedHighlightResponse(HighlightResponse):
    """Highlight ranked for one viewer."""
    personalized_score: float
    matches: List[str] = []


# =============================================================================
# Preference Schemas
# =============================================================================

class PreferenceCreate(BaseModel):
    """Request to create or update a viewer preference."""
    type: str = Field(..., description="SPORT, TEAM, PLAYER or PLAY_TYPE")
    value: str = Field(..., description="Preferred value")
    weight: float = Field(1.0, ge=0, description="Non-negative weight")


class PreferenceResponse(BaseModel):
    """Preference response."""
    id: int
    user_id: str
    type: str
    value: str
    weight: float


# =============================================================================
# Clip Schemas
# =============================================================================

class ClipEventRequest(BaseModel):
    """Transcoding job completion event."""
    jobId: Optional[str] = None
    status: Optional[str] = None
    clipUrl: Optional[str] = None
    thumbnailUrl: Optional[str] = None
    errorMessage: Optional[str] = None
    userMetadata: Optional[Dict[str, Any]] = None
    detail: Optional[Dict[str, Any]] = None


class ClipEventResponse(BaseModel):
    """Result of applying a clip event."""
    applied: bool
    highlight: Optional[HighlightResponse] = None


class ClipSubmitResponse(BaseModel):
    """Result of a direct clip request."""
    highlight_id: str
    submitted: bool
    clip_job_id: Optional[str] = None
    clip_status: str


class ClipRescanRequest(BaseModel):
    """Request to rescan highlights without clips."""
    source_id: Optional[str] = None


# =============================================================================
# Job Schemas
# =============================================================================

class JobResponse(BaseModel):
    """Job response."""
    id: int
    segment_id: Optional[int]
    job_type: str
    status: str
    progress: float
    message: Optional[str]
    result: Optional[str]
    error: Optional[str]
    created_at: datetime
    started_at: Optional[datetime]
    completed_at: Optional[datetime]

    class Config:
        from_attributes = True


# =============================================================================
# Health Check
# =============================================================================

class HealthResponse(BaseModel):
    """Health check response."""
    status: str
    database_ok: bool
    transcoder_mode: str
    ffmpeg_available: bool
    recommender_configured: bool
    message: Optional[str] = None
