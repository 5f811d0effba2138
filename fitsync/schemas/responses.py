"""Pydantic response models for API endpoints."""

from datetime import datetime, date, timezone
from typing import Annotated

from pydantic import AfterValidator, BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


def _as_utc(v: datetime) -> datetime:
    # Stored timestamps are naive UTC
    if v.tzinfo is None:
        return v.replace(tzinfo=timezone.utc)
    return v


UtcDatetime = Annotated[datetime, AfterValidator(_as_utc)]


class _CamelModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
    )


class DailyStepsRecord(_CamelModel):
    """Stored daily steps record."""
    id: int
    user_id: str
    total_steps: int
    date: date
    last_updated: UtcDatetime
    created_at: UtcDatetime


class WorkoutRecord(_CamelModel):
    """Stored workout record."""
    id: int
    user_id: str
    workout_id: str
    workout_type: str
    active_calories: float
    duration_minutes: float
    start_time: UtcDatetime
    end_time: UtcDatetime
    steps: float | None = None
    distance: float | None = None
    average_heart_rate: float | None = None
    peak_heart_rate: float | None = None
    average_pace: float | None = None
    created_at: UtcDatetime


class SyncData(_CamelModel):
    daily_steps: DailyStepsRecord | None = None
    workouts: list[WorkoutRecord] = []
    timestamp: UtcDatetime


class SyncResponse(_CamelModel):
    success: bool = True
    message: str
    data: SyncData


class StepsListResponse(_CamelModel):
    success: bool = True
    data: list[DailyStepsRecord]
    count: int


class WorkoutListResponse(_CamelModel):
    success: bool = True
    data: list[WorkoutRecord]
    count: int


class StatsData(_CamelModel):
    """Aggregated statistics for one user."""
    total_workouts: int
    total_calories: int
    avg_steps_last30_days: int
    last_workout: WorkoutRecord | None = None


class StatsResponse(_CamelModel):
    success: bool = True
    data: StatsData


class RootResponse(BaseModel):
    message: str
    version: str
    endpoints: dict[str, str]


class LivenessResponse(BaseModel):
    status: str
    timestamp: datetime
    uptime: float
