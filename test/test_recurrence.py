"""
Tests for wall-clock to UTC resolution and recurrence expansion.
"""

from datetime import date, datetime, time, timedelta, timezone
from zoneinfo import ZoneInfo

import pytest

from wakecall.schedules.recurrence import (
    Recurrence,
    RecurrenceError,
    format_weekdays,
    localize,
    next_one_time_date,
    parse_timezone,
    parse_wakeup_time,
    parse_weekdays,
)

NEW_YORK = ZoneInfo("America/New_York")


def utc(*args: int) -> datetime:
    return datetime(*args, tzinfo=timezone.utc)


class TestParsing:
    def test_wakeup_time(self) -> None:
        assert parse_wakeup_time("07:05") == time(7, 5)
        assert parse_wakeup_time(" 23:59 ") == time(23, 59)

    @pytest.mark.parametrize("value", ["7:5", "24:00", "12:60", "noon", "12-30", "1230"])
    def test_wakeup_time_rejects(self, value: str) -> None:
        with pytest.raises(RecurrenceError):
            parse_wakeup_time(value)

    def test_timezone(self) -> None:
        assert parse_timezone("Europe/Rome") == ZoneInfo("Europe/Rome")
        with pytest.raises(RecurrenceError):
            parse_timezone("Mars/Olympus_Mons")

    def test_weekdays_accept_names_and_lists(self) -> None:
        assert parse_weekdays("mon,wed") == frozenset({0, 2})
        assert parse_weekdays(["Friday", "SUN"]) == frozenset({4, 6})
        assert parse_weekdays("") == frozenset()
        assert format_weekdays({6, 0, 2}) == "mon,wed,sun"

    def test_weekdays_reject_unknown(self) -> None:
        with pytest.raises(RecurrenceError):
            parse_weekdays("mon,funday")

    def test_build_requires_shape(self) -> None:
        with pytest.raises(RecurrenceError):
            Recurrence.build("07:00", "UTC", "", is_recurring=True)
        with pytest.raises(RecurrenceError):
            Recurrence.build("07:00", "UTC", "", is_recurring=False, local_date=None)


class TestDaylightSaving:
    def test_spring_forward_gap_shifts_forward(self) -> None:
        # 2025-03-09 02:00 EST jumps to 03:00 EDT; 02:30 does not exist.
        instant = localize(date(2025, 3, 9), time(2, 30), NEW_YORK)
        assert instant == utc(2025, 3, 9, 7, 30)
        assert instant.astimezone(NEW_YORK).strftime("%H:%M") == "03:30"

    def test_fall_back_uses_first_occurrence(self) -> None:
        # 2025-11-02 01:30 happens twice; the EDT one comes first.
        instant = localize(date(2025, 11, 2), time(1, 30), NEW_YORK)
        assert instant == utc(2025, 11, 2, 5, 30)

    def test_same_wall_time_across_transition(self) -> None:
        rec = Recurrence.build("07:00", "America/New_York", "sat,sun,mon", is_recurring=True)
        instants = list(rec.occurrences_between(utc(2025, 3, 8), utc(2025, 3, 11)))
        assert instants == [
            utc(2025, 3, 8, 12, 0),
            utc(2025, 3, 9, 11, 0),
            utc(2025, 3, 10, 11, 0),
        ]
        assert {i.astimezone(NEW_YORK).strftime("%H:%M") for i in instants} == {"07:00"}

    def test_one_call_per_day_on_fall_back(self) -> None:
        rec = Recurrence.build("01:30", "America/New_York", "sun", is_recurring=True)
        instants = list(rec.occurrences_between(utc(2025, 11, 1), utc(2025, 11, 4)))
        assert instants == [utc(2025, 11, 2, 5, 30)]


class TestRecurrence:
    def test_weekdays_are_local(self) -> None:
        # Monday 23:00 in Los Angeles is Tuesday in UTC.
        rec = Recurrence.build("23:00", "America/Los_Angeles", "mon", is_recurring=True)
        instants = list(rec.occurrences_between(utc(2025, 6, 1), utc(2025, 6, 8)))
        assert instants == [utc(2025, 6, 3, 6, 0)]

    def test_weekdays_local_east_of_utc(self) -> None:
        # Tuesday 06:00 in Tokyo is still Monday in UTC.
        rec = Recurrence.build("06:00", "Asia/Tokyo", "tue", is_recurring=True)
        instants = list(rec.occurrences_between(utc(2025, 6, 1), utc(2025, 6, 8)))
        assert instants == [utc(2025, 6, 2, 21, 0)]

    def test_next_occurrence_is_strictly_after(self) -> None:
        rec = Recurrence.build("07:00", "UTC", "mon,tue,wed,thu,fri,sat,sun", is_recurring=True)
        assert rec.next_occurrence(utc(2025, 6, 2, 7, 0)) == utc(2025, 6, 3, 7, 0)
        assert rec.next_occurrence(utc(2025, 6, 2, 6, 59)) == utc(2025, 6, 2, 7, 0)

    def test_next_occurrence_respects_not_before(self) -> None:
        rec = Recurrence.build("07:00", "UTC", "mon,wed", is_recurring=True)
        # 2025-06-02 is a Monday.
        skip_until = utc(2025, 6, 2, 7, 0) + timedelta(microseconds=1)
        assert rec.next_occurrence(utc(2025, 6, 1), not_before=skip_until) == utc(2025, 6, 4, 7, 0)

    def test_weekly_schedule_finds_next_week(self) -> None:
        rec = Recurrence.build("07:00", "UTC", "mon", is_recurring=True)
        assert rec.next_occurrence(utc(2025, 6, 2, 8, 0)) == utc(2025, 6, 9, 7, 0)

    def test_one_time(self) -> None:
        rec = Recurrence.build("09:15", "Europe/Rome", None, is_recurring=False, local_date=date(2025, 7, 1))
        assert rec.next_occurrence(utc(2025, 6, 1)) == utc(2025, 7, 1, 7, 15)
        assert rec.next_occurrence(utc(2025, 7, 1, 7, 15)) is None

    def test_one_time_constructed_directly(self) -> None:
        rec = Recurrence(
            wakeup=time(9, 15),
            tz=ZoneInfo("Europe/Rome"),
            weekdays=frozenset(),
            is_recurring=False,
            local_date=date(2025, 7, 1),
        )
        assert rec.local_date == date(2025, 7, 1)
        assert rec.next_occurrence(utc(2025, 6, 1)) == utc(2025, 7, 1, 7, 15)

    def test_one_time_without_date_raises(self) -> None:
        rec = Recurrence(wakeup=time(7, 0), tz=ZoneInfo("UTC"), weekdays=frozenset(), is_recurring=False)
        with pytest.raises(RecurrenceError):
            rec.next_occurrence(utc(2025, 6, 1))

    def test_due_window_is_half_open(self) -> None:
        rec = Recurrence.build("07:00", "UTC", "mon", is_recurring=True)
        fire = utc(2025, 6, 2, 7, 0)
        catchup = timedelta(minutes=15)

        assert rec.due_occurrences(fire - timedelta(seconds=1), catchup) == []
        assert rec.due_occurrences(fire, catchup) == [fire]
        assert rec.due_occurrences(fire + timedelta(minutes=14), catchup) == [fire]
        assert rec.due_occurrences(fire + timedelta(minutes=15), catchup) == []

    def test_due_respects_not_before(self) -> None:
        rec = Recurrence.build("07:00", "UTC", "mon", is_recurring=True)
        fire = utc(2025, 6, 2, 7, 0)
        assert rec.due_occurrences(fire, timedelta(minutes=15), not_before=fire + timedelta(seconds=1)) == []

    def test_local_wall_time(self) -> None:
        rec = Recurrence.build("07:00", "Europe/Rome", "mon", is_recurring=True)
        local = rec.local_wall_time(utc(2025, 6, 2, 5, 0))
        assert local.isoformat() == "2025-06-02T07:00:00+02:00"


class TestNextOneTimeDate:
    def test_today_when_still_ahead(self) -> None:
        now = utc(2025, 6, 2, 10, 0)  # 06:00 in New York
        assert next_one_time_date(time(7, 0), NEW_YORK, now) == date(2025, 6, 2)

    def test_tomorrow_when_passed(self) -> None:
        now = utc(2025, 6, 2, 12, 0)  # 08:00 in New York
        assert next_one_time_date(time(7, 0), NEW_YORK, now) == date(2025, 6, 3)
