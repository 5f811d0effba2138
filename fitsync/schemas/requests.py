"""Pydantic models for inbound sync payloads."""

from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, ValidationInfo, field_validator
from pydantic.alias_generators import to_camel

from fitsync.services.parsers import parse_timestamp


def _tz_from(info: ValidationInfo) -> str:
    return (info.context or {}).get("tz", "UTC")


class _Payload(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class DailyStepsPayload(_Payload):
    """One day of step totals.

    Validate with ``context={"tz": ...}`` so naive timestamps are read in the
    server timezone.
    """

    total_steps: int
    date: datetime
    last_updated: datetime

    @field_validator("date", "last_updated", mode="before")
    @classmethod
    def parse_dates(cls, v: Any, info: ValidationInfo) -> datetime:
        return parse_timestamp(v, _tz_from(info))


class WorkoutPayload(_Payload):
    """A single workout as sent by the mobile client."""

    workout_id: str = Field(alias="id", min_length=1)
    workout_type: str
    active_calories: float
    duration_minutes: float
    start_time: datetime
    end_time: datetime
    steps: float | None = None
    distance: float | None = None
    average_heart_rate: float | None = None
    peak_heart_rate: float | None = None
    average_pace: float | None = None

    @field_validator("start_time", "end_time", mode="before")
    @classmethod
    def parse_times(cls, v: Any, info: ValidationInfo) -> datetime:
        return parse_timestamp(v, _tz_from(info))


class SyncRequest(BaseModel):
    """Body of POST /api/health/sync.

    ``dailySteps`` and each workout stay raw here; the sync service validates
    them itself so that one malformed workout does not reject the batch.
    """

    userId: str | None = None
    dailySteps: dict[str, Any] | None = None
    workouts: list[Any] | None = None
    timestamp: Any = None
