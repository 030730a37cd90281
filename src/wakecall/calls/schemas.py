"""
Pydantic schemas for call endpoints.
"""

from datetime import datetime

from pydantic import BaseModel, ConfigDict

from wakecall.calls.state import CallOutcome


class CallHistoryOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    schedule_id: int | None
    occurrence_at: datetime
    attempt_number: int
    call_time: str
    timezone: str
    voice: str
    status: str
    outcome: CallOutcome | None
    call_sid: str | None
    duration: int | None
    recording_url: str | None
    error_code: str | None
    next_retry_at: datetime | None
    is_sample: bool
    charged: bool
    created_at: datetime


class RecordingOut(BaseModel):
    recording_url: str


class SampleCallOut(BaseModel):
    success: bool
    message: str
    call: CallHistoryOut
