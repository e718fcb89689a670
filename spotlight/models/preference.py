"""User preference model used for personalized ranking."""
import enum
from datetime import datetime
from sqlalchemy import Column, Integer, String, DateTime, Enum, Float, UniqueConstraint

from spotlight.db.database import Base


class PreferenceType(str, enum.Enum):
    """Preference type enumeration."""
    SPORT = "SPORT"
    TEAM = "TEAM"
    PLAYER = "PLAYER"
    PLAY_TYPE = "PLAY_TYPE"


class UserPreference(Base):
    """A single weighted viewer preference."""

    __tablename__ = "user_preferences"
    __table_args__ = (
        UniqueConstraint("user_id", "type", "value", name="uq_user_preference"),
    )

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(String(255), nullable=False, index=True)
    type = Column(Enum(PreferenceType), nullable=False)
    value = Column(String(255), nullable=False)
    weight = Column(Float, default=1.0, nullable=False)  # >= 0

    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    def __repr__(self):
        return f"<UserPreference(user_id='{self.user_id}', type={self.type.value}, value='{self.value}', weight={self.weight})>"

    def to_dict(self):
        """Convert to dictionary."""
        return {
            "id": self.id,
            "user_id": self.user_id,
            "type": self.type.value,
            "value": self.value,
            "weight": self.weight,
        }
