"""Health data sync and query API endpoints."""

from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from fitsync.core.config import Settings, get_app_settings
from fitsync.core.database import get_db
from fitsync.schemas.requests import SyncRequest
from fitsync.schemas.responses import (
    DailyStepsRecord,
    StatsData,
    StatsResponse,
    StepsListResponse,
    SyncData,
    SyncResponse,
    WorkoutListResponse,
    WorkoutRecord,
)
from fitsync.services.queries import HealthQueryService
from fitsync.services.sync import HealthSyncService

router = APIRouter(prefix="/api/health", tags=["health"])


@router.post("/sync", response_model=SyncResponse)
async def sync_health_data(
    payload: SyncRequest,
    db: AsyncSession = Depends(get_db),
    settings: Settings = Depends(get_app_settings),
):
    """Sync one day of steps and any number of workouts from the mobile app."""
    service = HealthSyncService(db, settings.tz)
    result = await service.sync(payload.userId, payload.dailySteps, payload.workouts)

    return SyncResponse(
        message="Health data synced successfully",
        data=SyncData(
            daily_steps=(
                DailyStepsRecord.model_validate(result.daily_steps)
                if result.daily_steps else None
            ),
            workouts=[WorkoutRecord.model_validate(w) for w in result.workouts],
            timestamp=result.timestamp,
        ),
    )


@router.get("/steps/{user_id}", response_model=StepsListResponse)
async def get_steps(
    user_id: str,
    start_date: Optional[str] = Query(None, alias="startDate", description="Earliest day (inclusive)"),
    end_date: Optional[str] = Query(None, alias="endDate", description="Latest day (inclusive)"),
    limit: int = Query(30, ge=1, description="Maximum number of records"),
    db: AsyncSession = Depends(get_db),
    settings: Settings = Depends(get_app_settings),
):
    """Get daily steps history, newest first."""
    service = HealthQueryService(db, settings.tz)
    steps = await service.get_steps(user_id, start_date, end_date, limit)

    data = [DailyStepsRecord.model_validate(s) for s in steps]
    return StepsListResponse(data=data, count=len(data))


@router.get("/workouts/{user_id}", response_model=WorkoutListResponse)
async def get_workouts(
    user_id: str,
    start_date: Optional[str] = Query(None, alias="startDate", description="Earliest start time (inclusive)"),
    end_date: Optional[str] = Query(None, alias="endDate", description="Latest start time (inclusive)"),
    workout_type: Optional[str] = Query(None, alias="workoutType"),
    limit: int = Query(50, ge=1, description="Maximum number of records"),
    db: AsyncSession = Depends(get_db),
    settings: Settings = Depends(get_app_settings),
):
    """Get workout history, latest first."""
    service = HealthQueryService(db, settings.tz)
    workouts = await service.get_workouts(user_id, start_date, end_date, workout_type, limit)

    data = [WorkoutRecord.model_validate(w) for w in workouts]
    return WorkoutListResponse(data=data, count=len(data))


@router.get("/stats/{user_id}", response_model=StatsResponse)
async def get_stats(
    user_id: str,
    db: AsyncSession = Depends(get_db),
    settings: Settings = Depends(get_app_settings),
):
    """Get aggregate statistics for a user."""
    service = HealthQueryService(db, settings.tz)
    stats = await service.get_stats(user_id)

    last_workout = stats["last_workout"]
    return StatsResponse(
        data=StatsData(
            total_workouts=stats["total_workouts"],
            total_calories=stats["total_calories"],
            avg_steps_last30_days=stats["avg_steps_last30_days"],
            last_workout=WorkoutRecord.model_validate(last_workout) if last_workout else None,
        )
    )
