"""
Pydantic schemas for personalization endpoints.
"""

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from wakecall.personalization.models import GoalType, StruggleType
from wakecall.voices.catalog import DEFAULT_VOICE_ID, is_known_voice


class PersonalizationIn(BaseModel):
    goals: list[GoalType] = Field(..., min_length=1)
    other_goal: str | None = Field(default=None, max_length=100)
    goal_description: str | None = Field(default=None, max_length=500)
    struggles: list[StruggleType] = Field(..., min_length=1)
    other_struggle: str | None = Field(default=None, max_length=100)
    voice: str = DEFAULT_VOICE_ID
    custom_voice: str | None = Field(default=None, max_length=50)

    @field_validator("goals", "struggles")
    @classmethod
    def _dedupe(cls, v: list) -> list:
        return list(dict.fromkeys(v))

    @field_validator("voice")
    @classmethod
    def _voice(cls, v: str) -> str:
        if not is_known_voice(v):
            raise ValueError(f"Unknown voice: {v}")
        return v

    @model_validator(mode="after")
    def _other_texts(self) -> "PersonalizationIn":
        if GoalType.OTHER in self.goals and not (self.other_goal or "").strip():
            raise ValueError("Please describe your other goal")
        if StruggleType.OTHER in self.struggles and not (self.other_struggle or "").strip():
            raise ValueError("Please describe your other struggle")
        return self


class PersonalizationOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    goals: list[GoalType]
    other_goal: str | None
    goal_description: str | None
    struggles: list[StruggleType]
    other_struggle: str | None
    voice: str
    custom_voice: str | None
    updated_at: datetime
