"""
SQLAlchemy models for call personalization.
"""

from datetime import datetime
from enum import Enum

from sqlalchemy import JSON, ForeignKey, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from wakecall.shared.database import Base, UTCDateTime, utcnow


class GoalType(str, Enum):
    EXERCISE = "exercise"
    PRODUCTIVITY = "productivity"
    STUDY = "study"
    MEDITATION = "meditation"
    CREATIVE = "creative"
    OTHER = "other"


class StruggleType(str, Enum):
    TIRED = "tired"
    LACK_OF_MOTIVATION = "lack_of_motivation"
    SNOOZE = "snooze"
    STAY_UP_LATE = "stay_up_late"
    OTHER = "other"


class Personalization(Base):
    """One row per user: what the wake-up calls should talk about."""

    __tablename__ = "personalizations"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("users.id", ondelete="CASCADE"),
        unique=True,
        nullable=False,
    )
    goals: Mapped[list[str]] = mapped_column(JSON, nullable=False, default=list)
    other_goal: Mapped[str | None] = mapped_column(String(100), nullable=True)
    goal_description: Mapped[str | None] = mapped_column(String(500), nullable=True)
    struggles: Mapped[list[str]] = mapped_column(JSON, nullable=False, default=list)
    other_struggle: Mapped[str | None] = mapped_column(String(100), nullable=True)
    voice: Mapped[str] = mapped_column(String(50), nullable=False, default="jocko")
    custom_voice: Mapped[str | None] = mapped_column(String(50), nullable=True)
    created_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False, default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        UTCDateTime,
        nullable=False,
        default=utcnow,
        onupdate=utcnow,
    )
