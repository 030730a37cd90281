"""
SQLAlchemy models for wake-up call schedules.
"""

from datetime import date, datetime

from sqlalchemy import Boolean, Date, ForeignKey, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from wakecall.schedules.recurrence import Recurrence
from wakecall.shared.database import Base, UTCDateTime, utcnow


class Schedule(Base):
    """A recurring or one-time wake-up call definition."""

    __tablename__ = "schedules"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    wakeup_time: Mapped[str] = mapped_column(String(5), nullable=False)
    timezone: Mapped[str] = mapped_column(String(64), nullable=False)
    weekdays: Mapped[str] = mapped_column(String(32), nullable=False, default="")
    is_recurring: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    local_date: Mapped[date | None] = mapped_column("date", Date, nullable=True)
    call_retry: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    advance_notice: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True, index=True)

    # Occurrences before these instants never fire.
    effective_from: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False, default=utcnow)
    skip_until: Mapped[datetime | None] = mapped_column(UTCDateTime, nullable=True)

    last_occurrence_at: Mapped[datetime | None] = mapped_column(UTCDateTime, nullable=True)
    notice_sent_for: Mapped[datetime | None] = mapped_column(UTCDateTime, nullable=True)
    last_called: Mapped[datetime | None] = mapped_column(UTCDateTime, nullable=True)
    last_call_sid: Mapped[str | None] = mapped_column(String(64), nullable=True)
    last_call_status: Mapped[str | None] = mapped_column(String(32), nullable=True)

    created_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False, default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        UTCDateTime,
        nullable=False,
        default=utcnow,
        onupdate=utcnow,
    )

    @property
    def recurrence(self) -> Recurrence:
        return Recurrence.build(
            wakeup_time=self.wakeup_time,
            timezone_name=self.timezone,
            weekdays=self.weekdays,
            is_recurring=self.is_recurring,
            local_date=self.local_date,
        )

    @property
    def not_before(self) -> datetime:
        if self.skip_until is not None and self.skip_until > self.effective_from:
            return self.skip_until
        return self.effective_from

    def next_occurrence(self, now: datetime) -> datetime | None:
        """Next instant this schedule will fire, or None when it never will."""
        if not self.is_active:
            return None
        after = now
        if self.last_occurrence_at is not None and self.last_occurrence_at > after:
            after = self.last_occurrence_at
        return self.recurrence.next_occurrence(after, not_before=self.not_before)

    def __repr__(self) -> str:
        return f"<Schedule(id={self.id}, user_id={self.user_id}, time={self.wakeup_time} {self.timezone})>"
