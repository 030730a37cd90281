"""
Recurrence resolution: wall-clock wake-up times to UTC call instants.

A schedule names a local wall time ("07:30"), an IANA timezone, and either a
set of local weekdays (recurring) or a single local date (one-time). Each
selected local day yields exactly one instant:

- a wall time that does not exist (spring-forward gap) is shifted forward by
  the length of the gap, so 02:30 on a 02:00->03:00 transition fires at 03:30;
- a wall time that occurs twice (fall-back) fires at its first occurrence.

Both rules fall out of PEP 495 ``fold=0`` semantics, which ``zoneinfo``
implements. Weekday selection is always evaluated on the LOCAL date.
"""

from dataclasses import dataclass
from datetime import date, datetime, time, timedelta, timezone
from typing import Iterator
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

WEEKDAYS: tuple[str, ...] = ("mon", "tue", "wed", "thu", "fri", "sat", "sun")

_ONE_MICROSECOND = timedelta(microseconds=1)


class RecurrenceError(ValueError):
    """Raised for malformed wake-up times, weekdays or timezones."""


def parse_wakeup_time(value: str) -> time:
    """Parse ``HH:MM`` (24h)."""
    parts = value.strip().split(":")
    if len(parts) != 2 or not all(p.isdigit() for p in parts) or len(parts[1]) != 2:
        raise RecurrenceError(f"Invalid wake-up time {value!r}, expected HH:MM")
    hour, minute = int(parts[0]), int(parts[1])
    if not (0 <= hour <= 23 and 0 <= minute <= 59):
        raise RecurrenceError(f"Invalid wake-up time {value!r}, expected HH:MM")
    return time(hour, minute)


def format_wakeup_time(value: time) -> str:
    return f"{value.hour:02d}:{value.minute:02d}"


def parse_timezone(name: str) -> ZoneInfo:
    try:
        return ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError) as e:
        raise RecurrenceError(f"Unknown timezone {name!r}") from e


def parse_weekdays(value: str | list[str] | None) -> frozenset[int]:
    """Parse ``"mon,tue"`` (or a list of names) into Python weekday numbers."""
    if not value:
        return frozenset()
    names = value.split(",") if isinstance(value, str) else value
    days: set[int] = set()
    for name in names:
        key = name.strip().lower()[:3]
        if not key:
            continue
        if key not in WEEKDAYS:
            raise RecurrenceError(f"Unknown weekday {name!r}")
        days.add(WEEKDAYS.index(key))
    return frozenset(days)


def format_weekdays(days: frozenset[int] | set[int]) -> str:
    """Canonical storage form, Monday first."""
    return ",".join(WEEKDAYS[d] for d in sorted(days))


def localize(local_date: date, wakeup: time, tz: ZoneInfo) -> datetime:
    """Resolve a local wall-clock time on ``local_date`` to a UTC instant."""
    wall = datetime.combine(local_date, wakeup, tzinfo=tz).replace(fold=0)
    return wall.astimezone(timezone.utc)


@dataclass(frozen=True)
class Recurrence:
    """The timing part of a schedule."""

    wakeup: time
    tz: ZoneInfo
    weekdays: frozenset[int]
    is_recurring: bool
    local_date: date | None = None

    @classmethod
    def build(
        cls,
        wakeup_time: str,
        timezone_name: str,
        weekdays: str | list[str] | None,
        is_recurring: bool,
        local_date: date | None = None,
    ) -> "Recurrence":
        rec = cls(
            wakeup=parse_wakeup_time(wakeup_time),
            tz=parse_timezone(timezone_name),
            weekdays=parse_weekdays(weekdays),
            is_recurring=is_recurring,
            local_date=local_date,
        )
        if rec.is_recurring and not rec.weekdays:
            raise RecurrenceError("Recurring schedules need at least one weekday")
        if not rec.is_recurring and rec.local_date is None:
            raise RecurrenceError("One-time schedules need a date")
        return rec

    def local_day_instant(self, local_date: date) -> datetime:
        return localize(local_date, self.wakeup, self.tz)

    def occurrences_between(self, start: datetime, end: datetime) -> Iterator[datetime]:
        """Yield fire instants in ``[start, end)``, ascending."""
        if end <= start:
            return

        if not self.is_recurring:
            if self.local_date is None:
                raise RecurrenceError("One-time schedules need a date")
            instant = self.local_day_instant(self.local_date)
            if start <= instant < end:
                yield instant
            return

        # Pad by a day on both sides: a local day can start before ``start``
        # in UTC and still fire inside the window.
        day = start.astimezone(self.tz).date() - timedelta(days=1)
        last = end.astimezone(self.tz).date() + timedelta(days=1)
        while day <= last:
            if day.weekday() in self.weekdays:
                instant = self.local_day_instant(day)
                if start <= instant < end:
                    yield instant
            day += timedelta(days=1)

    def next_occurrence(
        self,
        after: datetime,
        not_before: datetime | None = None,
    ) -> datetime | None:
        """First instant strictly after ``after`` and not earlier than ``not_before``."""
        lower = after + _ONE_MICROSECOND
        if not_before is not None and not_before > lower:
            lower = not_before

        if not self.is_recurring:
            return next(self.occurrences_between(lower, datetime.max.replace(tzinfo=timezone.utc)), None)

        # Any weekday set repeats within a week; 8 days covers DST edges.
        return next(self.occurrences_between(lower, lower + timedelta(days=8)), None)

    def due_occurrences(
        self,
        now: datetime,
        catchup: timedelta,
        not_before: datetime | None = None,
    ) -> list[datetime]:
        """Instants in ``(now - catchup, now]`` that are not before ``not_before``."""
        start = now - catchup + _ONE_MICROSECOND
        if not_before is not None and not_before > start:
            start = not_before
        return list(self.occurrences_between(start, now + _ONE_MICROSECOND))

    def local_wall_time(self, instant: datetime) -> datetime:
        """The instant as seen on the user's clock."""
        return instant.astimezone(self.tz)


def next_one_time_date(wakeup: time, tz: ZoneInfo, now: datetime) -> date:
    """Earliest local date on which ``wakeup`` is still in the future."""
    today = now.astimezone(tz).date()
    if localize(today, wakeup, tz) > now:
        return today
    return today + timedelta(days=1)
