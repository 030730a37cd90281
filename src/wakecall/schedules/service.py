"""
Schedule management rules.
"""

from datetime import datetime, timedelta, timezone

from sqlalchemy.ext.asyncio import AsyncSession

from wakecall.auth.models import User
from wakecall.notifications.email import EmailSender, welcome_email
from wakecall.schedules.models import Schedule
from wakecall.schedules.recurrence import next_one_time_date, parse_timezone, parse_wakeup_time
from wakecall.schedules.repository import ScheduleRepository
from wakecall.schedules.schemas import ScheduleIn, ScheduleOut
from wakecall.shared.exceptions import AppException, ConflictError, NotFoundError, ValidationError
from wakecall.shared.logging import get_logger

logger = get_logger(__name__)

MAX_SCHEDULES_PER_USER = 3


def _signature(
    wakeup_time: str,
    tz: str,
    weekdays: str,
    is_recurring: bool,
    local_date: object,
) -> tuple:
    return (wakeup_time, tz, weekdays, is_recurring, None if is_recurring else local_date)


class ScheduleService:
    """Create, edit and pause wake-up schedules for one user at a time."""

    def __init__(
        self,
        session: AsyncSession,
        email_sender: EmailSender | None = None,
    ) -> None:
        self._session = session
        self._repo = ScheduleRepository(session)
        self._email_sender = email_sender

    def to_out(self, schedule: Schedule, now: datetime) -> ScheduleOut:
        out = ScheduleOut.model_validate(schedule)
        return out.model_copy(update={"next_call_at": schedule.next_occurrence(now)})

    async def _get(self, user: User, schedule_id: int) -> Schedule:
        schedule = await self._repo.get_for_user(user.id, schedule_id)
        if schedule is None:
            raise NotFoundError("Schedule not found", "SCHEDULE_NOT_FOUND")
        return schedule

    def _apply(self, schedule: Schedule, data: ScheduleIn, now: datetime) -> None:
        local_date = data.date
        if not data.is_recurring:
            tz = parse_timezone(data.timezone)
            wakeup = parse_wakeup_time(data.wakeup_time)
            if local_date is None:
                local_date = next_one_time_date(wakeup, tz, now)

        schedule.wakeup_time = data.wakeup_time
        schedule.timezone = data.timezone
        schedule.weekdays = ",".join(data.weekdays)
        schedule.is_recurring = data.is_recurring
        schedule.local_date = local_date
        schedule.call_retry = data.call_retry
        schedule.advance_notice = data.advance_notice
        schedule.effective_from = now
        schedule.skip_until = None
        schedule.notice_sent_for = None

        if not schedule.is_recurring:
            instant = schedule.recurrence.local_day_instant(local_date)
            if instant <= now:
                raise ValidationError(
                    "Wake-up time must be in the future",
                    details={"scheduled_for": instant.isoformat()},
                )

    async def _ensure_unique(self, user: User, candidate: Schedule, exclude_id: int | None) -> None:
        wanted = _signature(
            candidate.wakeup_time,
            candidate.timezone,
            candidate.weekdays,
            candidate.is_recurring,
            candidate.local_date,
        )
        for existing in await self._repo.list_for_user(user.id):
            if existing.id == exclude_id or existing is candidate:
                continue
            have = _signature(
                existing.wakeup_time,
                existing.timezone,
                existing.weekdays,
                existing.is_recurring,
                existing.local_date,
            )
            if have == wanted:
                raise ConflictError(
                    "You already have a schedule for this time",
                    "DUPLICATE_SCHEDULE",
                    {"schedule_id": existing.id},
                )

    async def create(self, user: User, data: ScheduleIn, now: datetime | None = None) -> ScheduleOut:
        now = now or datetime.now(timezone.utc)

        if await self._repo.count_for_user(user.id) >= MAX_SCHEDULES_PER_USER:
            raise AppException(
                f"Maximum {MAX_SCHEDULES_PER_USER} schedules allowed per user",
                "SCHEDULE_LIMIT",
            )

        schedule = Schedule(user_id=user.id, is_active=True, created_at=now)
        self._apply(schedule, data, now)
        await self._ensure_unique(user, schedule, exclude_id=None)
        await self._repo.add(schedule)

        send_welcome = not user.welcome_email_sent
        if send_welcome:
            user.welcome_email_sent = True

        await self._session.commit()
        await self._session.refresh(schedule)
        logger.info(
            "Schedule created",
            extra={
                "user_id": user.id,
                "schedule_id": schedule.id,
                "wakeup_time": schedule.wakeup_time,
                "timezone": schedule.timezone,
                "is_recurring": schedule.is_recurring,
            },
        )

        if send_welcome and self._email_sender is not None:
            await self._email_sender.send(welcome_email(user.email, user.name))

        return self.to_out(schedule, now)

    async def list_for_user(self, user: User, now: datetime | None = None) -> list[ScheduleOut]:
        now = now or datetime.now(timezone.utc)
        return [self.to_out(s, now) for s in await self._repo.list_for_user(user.id)]

    async def get(self, user: User, schedule_id: int, now: datetime | None = None) -> ScheduleOut:
        now = now or datetime.now(timezone.utc)
        return self.to_out(await self._get(user, schedule_id), now)

    async def update(
        self,
        user: User,
        schedule_id: int,
        data: ScheduleIn,
        now: datetime | None = None,
    ) -> ScheduleOut:
        now = now or datetime.now(timezone.utc)
        schedule = await self._get(user, schedule_id)
        self._apply(schedule, data, now)
        await self._ensure_unique(user, schedule, exclude_id=schedule.id)
        if not schedule.is_recurring:
            schedule.is_active = True
        await self._session.commit()
        await self._session.refresh(schedule)
        logger.info("Schedule updated", extra={"user_id": user.id, "schedule_id": schedule.id})
        return self.to_out(schedule, now)

    async def delete(self, user: User, schedule_id: int) -> None:
        schedule = await self._get(user, schedule_id)
        await self._repo.delete(schedule)
        await self._session.commit()
        logger.info("Schedule deleted", extra={"user_id": user.id, "schedule_id": schedule_id})

    async def toggle(self, user: User, schedule_id: int, now: datetime | None = None) -> ScheduleOut:
        """Pause or resume. Resuming never replays occurrences missed while paused."""
        now = now or datetime.now(timezone.utc)
        schedule = await self._get(user, schedule_id)
        schedule.is_active = not schedule.is_active
        if schedule.is_active:
            schedule.effective_from = now
        await self._session.commit()
        await self._session.refresh(schedule)
        logger.info(
            "Schedule toggled",
            extra={"user_id": user.id, "schedule_id": schedule.id, "is_active": schedule.is_active},
        )
        return self.to_out(schedule, now)

    async def skip_next(self, user: User, schedule_id: int, now: datetime | None = None) -> ScheduleOut:
        """Skip the upcoming call while keeping the schedule active."""
        now = now or datetime.now(timezone.utc)
        schedule = await self._get(user, schedule_id)
        upcoming = schedule.next_occurrence(now)
        if upcoming is None:
            raise ValidationError("There is no upcoming call to skip")

        schedule.skip_until = upcoming + timedelta(microseconds=1)
        if not schedule.is_recurring:
            schedule.is_active = False
        await self._session.commit()
        await self._session.refresh(schedule)
        logger.info(
            "Schedule occurrence skipped",
            extra={
                "user_id": user.id,
                "schedule_id": schedule.id,
                "skipped": upcoming.isoformat(),
            },
        )
        return self.to_out(schedule, now)
