"""
SQLAlchemy model for placed wake-up calls.
"""

from datetime import datetime

from sqlalchemy import Boolean, ForeignKey, Integer, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from wakecall.calls.state import CallOutcome, CallStatus, outcome
from wakecall.shared.database import Base, UTCDateTime, utcnow


class CallHistory(Base):
    """One attempt at one occurrence of a schedule, or a sample call.

    ``(schedule_id, occurrence_at, attempt_number)`` is unique: inserting the
    row is how a scheduler worker claims the attempt.
    """

    __tablename__ = "call_history"
    __table_args__ = (
        UniqueConstraint(
            "schedule_id",
            "occurrence_at",
            "attempt_number",
            name="uq_call_history_occurrence_attempt",
        ),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    schedule_id: Mapped[int | None] = mapped_column(
        Integer,
        ForeignKey("schedules.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )
    occurrence_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False)
    attempt_number: Mapped[int] = mapped_column(Integer, nullable=False, default=1)

    # Scheduled wall time on the user's clock, ISO 8601 with offset.
    call_time: Mapped[str] = mapped_column(String(40), nullable=False)
    timezone: Mapped[str] = mapped_column(String(64), nullable=False)
    voice: Mapped[str] = mapped_column(String(50), nullable=False)

    status: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        default=CallStatus.PENDING.value,
        index=True,
    )
    call_sid: Mapped[str | None] = mapped_column(String(64), nullable=True, index=True)
    duration: Mapped[int | None] = mapped_column(Integer, nullable=True)
    recording_url: Mapped[str | None] = mapped_column(String(500), nullable=True)
    error_code: Mapped[str | None] = mapped_column(String(50), nullable=True)
    next_retry_at: Mapped[datetime | None] = mapped_column(UTCDateTime, nullable=True, index=True)

    is_sample: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    charged: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    created_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False, default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        UTCDateTime,
        nullable=False,
        default=utcnow,
        onupdate=utcnow,
    )

    @property
    def call_status(self) -> CallStatus:
        return CallStatus(self.status)

    @property
    def outcome(self) -> CallOutcome | None:
        return outcome(self.status)

    def __repr__(self) -> str:
        return (
            f"<CallHistory(id={self.id}, schedule_id={self.schedule_id}, "
            f"attempt={self.attempt_number}, status={self.status})>"
        )
