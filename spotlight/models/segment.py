"""Segment model."""
import enum
from datetime import datetime
from sqlalchemy import Column, Integer, String, DateTime, Enum
from sqlalchemy.orm import relationship

from spotlight.db.database import Base


class SegmentStatus(str, enum.Enum):
    """Segment status enumeration."""
    PENDING = "pending"
    ANALYZING = "analyzing"
    READY = "ready"
    ERROR = "error"


class Segment(Base):
    """A submitted source video segment and the state of its analysis."""

    __tablename__ = "segments"

    id = Column(Integer, primary_key=True, index=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    # Source information
    source_ref = Column(String(4096), nullable=False)  # s3://bucket/key or local path
    source_id = Column(String(255), nullable=False, index=True)  # Game identifier
    game_type = Column(String(64), nullable=False, default="general_sports")

    # Status
    status = Column(Enum(SegmentStatus), default=SegmentStatus.PENDING, nullable=False)
    error_message = Column(String(4096), nullable=True)
    highlight_count = Column(Integer, default=0, nullable=False)

    # Relationships
    jobs = relationship("Job", back_populates="segment", cascade="all, delete-orphan")

    def __repr__(self):
        return f"<Segment(id={self.id}, source_id='{self.source_id}', status={self.status})>"
