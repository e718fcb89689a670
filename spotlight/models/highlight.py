"""Highlight model - persisted enriched highlight with clip state."""
import enum
import json
from datetime import datetime
from sqlalchemy import Column, Integer, String, DateTime, Float, Boolean, Text, ForeignKey, Enum

from spotlight.db.database import Base


class ClipStatus(str, enum.Enum):
    """Clip generation status enumeration."""
    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"


# Columns holding JSON documents stored as text
JSON_FIELDS = (
    "labels",
    "teams",
    "players",
    "sentiment",
    "entities",
    "key_phrases",
    "gaming_context",
)

# Defaults used when a JSON column is empty
_JSON_DEFAULTS = {
    "labels": list,
    "teams": list,
    "players": list,
    "sentiment": lambda: None,
    "entities": lambda: None,
    "key_phrases": lambda: None,
    "gaming_context": lambda: None,
}


class Highlight(Base):
    """Highlight model representing one enriched moment of a source video."""

    __tablename__ = "highlights"

    highlight_id = Column(String(512), primary_key=True)
    segment_id = Column(Integer, ForeignKey("segments.id", ondelete="SET NULL"), nullable=True, index=True)

    # Identity
    source_id = Column(String(255), nullable=False, index=True)
    source_video = Column(String(4096), nullable=False)
    ordinal = Column(Integer, nullable=False, default=0)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    # Candidate
    start_time = Column(Float, nullable=False)
    end_time = Column(Float, nullable=False)
    duration = Column(Float, nullable=False)
    confidence = Column(Float, nullable=False)
    labels = Column(Text, nullable=True)  # JSON array stored as text
    person_count = Column(Integer, default=0, nullable=False)

    # Contextual enrichment
    sport = Column(String(64), nullable=True)
    excitement_level = Column(Float, nullable=True)  # 1-10
    play_type = Column(String(64), nullable=True)
    title = Column(String(512), nullable=True)
    description = Column(Text, nullable=True)
    target_audience = Column(String(255), nullable=True)
    ai_enhanced = Column(Boolean, default=False, nullable=False)

    # Text analytics enrichment
    sentiment = Column(Text, nullable=True)
    entities = Column(Text, nullable=True)
    key_phrases = Column(Text, nullable=True)
    gaming_context = Column(Text, nullable=True)
    teams = Column(Text, nullable=True)
    players = Column(Text, nullable=True)
    text_analytics_enhanced = Column(Boolean, default=False, nullable=False)

    enrichment_complete = Column(Boolean, default=False, nullable=False)

    # Clip state
    clip_status = Column(Enum(ClipStatus), default=ClipStatus.PENDING, nullable=False)
    clip_job_id = Column(String(255), nullable=True, index=True)
    clip_generated = Column(Boolean, default=False, nullable=False)
    clip_url = Column(String(4096), nullable=True)
    thumbnail_url = Column(String(4096), nullable=True)
    clip_error = Column(String(1024), nullable=True)
    clip_started_at = Column(DateTime, nullable=True)
    clip_generated_at = Column(DateTime, nullable=True)

    def __repr__(self):
        return f"<Highlight(id='{self.highlight_id}', {self.start_time:.2f}-{self.end_time:.2f}, clip={self.clip_status})>"

    @classmethod
    def from_dict(cls, data: dict) -> "Highlight":
        """Build a row from a highlight dictionary (unknown keys are ignored)."""
        highlight = cls()
        highlight.apply_fields(data)
        return highlight

    def apply_fields(self, fields: dict):
        """Set column values from a dictionary, serializing JSON columns."""
        columns = self.__table__.columns.keys()
        for key, value in fields.items():
            if key not in columns:
                continue
            if key in JSON_FIELDS:
                value = json.dumps(value) if value is not None else None
            elif key == "clip_status" and isinstance(value, str):
                value = ClipStatus(value)
            elif isinstance(value, str) and key in ("created_at", "clip_started_at", "clip_generated_at"):
                value = datetime.fromisoformat(value)
            setattr(self, key, value)

    def to_dict(self):
        """Convert to dictionary."""
        result = {}
        for key in self.__table__.columns.keys():
            value = getattr(self, key)
            if key in JSON_FIELDS:
                value = json.loads(value) if value else _JSON_DEFAULTS[key]()
            elif isinstance(value, datetime):
                value = value.isoformat()
            elif isinstance(value, ClipStatus):
                value = value.value
            result[key] = value
        return result
