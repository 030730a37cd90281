"""
Pydantic schemas for schedule endpoints.
"""

import datetime as dt

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator, model_validator

from wakecall.schedules.recurrence import (
    WEEKDAYS,
    RecurrenceError,
    format_wakeup_time,
    parse_timezone,
    parse_wakeup_time,
    parse_weekdays,
)


def _normalize_weekdays(value: str | list[str] | None) -> list[str]:
    try:
        days = parse_weekdays(value)
    except RecurrenceError as e:
        raise ValueError(str(e)) from e
    return [WEEKDAYS[d] for d in sorted(days)]


class ScheduleIn(BaseModel):
    """Create or replace a schedule."""

    wakeup_time: str = Field(..., description="Local wall time, HH:MM")
    timezone: str = Field(..., description="IANA timezone name")
    weekdays: list[str] = Field(default_factory=list)
    is_recurring: bool = True
    date: dt.date | None = Field(default=None, description="Local date of a one-time call")
    call_retry: bool = True
    advance_notice: bool = False

    @field_validator("wakeup_time")
    @classmethod
    def _wakeup_time(cls, v: str) -> str:
        try:
            return format_wakeup_time(parse_wakeup_time(v))
        except RecurrenceError as e:
            raise ValueError(str(e)) from e

    @field_validator("timezone")
    @classmethod
    def _timezone(cls, v: str) -> str:
        try:
            parse_timezone(v)
        except RecurrenceError as e:
            raise ValueError(str(e)) from e
        return v

    @field_validator("weekdays", mode="before")
    @classmethod
    def _weekdays(cls, v: str | list[str] | None) -> list[str]:
        return _normalize_weekdays(v)

    @model_validator(mode="after")
    def _recurrence_shape(self) -> "ScheduleIn":
        if self.is_recurring:
            if not self.weekdays:
                raise ValueError("Select at least one day for a recurring schedule")
            self.date = None
        return self


class ScheduleOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    wakeup_time: str
    timezone: str
    weekdays: list[str]
    is_recurring: bool
    date: dt.date | None = Field(validation_alias=AliasChoices("local_date", "date"))
    call_retry: bool
    advance_notice: bool
    is_active: bool
    skip_until: dt.datetime | None
    last_called: dt.datetime | None
    last_call_sid: str | None
    last_call_status: str | None
    next_call_at: dt.datetime | None = None
    created_at: dt.datetime

    @field_validator("weekdays", mode="before")
    @classmethod
    def _weekdays(cls, v: str | list[str] | None) -> list[str]:
        return _normalize_weekdays(v)
