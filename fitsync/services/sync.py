"""Sync engine - idempotent upserts of daily steps and workouts."""

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Optional

from pydantic import ValidationError as PayloadValidationError
from sqlalchemy import select
from sqlalchemy.dialects.sqlite import insert
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from fitsync.core.errors import StoreError, ValidationError
from fitsync.models.database import DailySteps, Workout
from fitsync.schemas.requests import DailyStepsPayload, WorkoutPayload
from fitsync.services.parsers import day_key, to_utc_naive

logger = logging.getLogger(__name__)


@dataclass
class WorkoutOutcome:
    """Result of upserting one workout: either a stored record or an error."""

    workout_id: Optional[str]
    record: Optional[Workout] = None
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.record is not None


@dataclass
class SyncResult:
    daily_steps: Optional[DailySteps] = None
    workouts: list[Workout] = field(default_factory=list)
    failures: list[WorkoutOutcome] = field(default_factory=list)
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


def _format_payload_error(exc: PayloadValidationError) -> str:
    return "; ".join(
        f"{'.'.join(str(p) for p in err['loc'])}: {err['msg']}" for err in exc.errors()
    )


def _raw_workout_id(raw: Any) -> Optional[str]:
    if isinstance(raw, dict) and raw.get("id") is not None:
        return str(raw["id"])
    return None


class HealthSyncService:
    """Upserts one sync batch (a day of steps plus workouts) for a user."""

    def __init__(self, session: AsyncSession, timezone: str = "UTC"):
        self.session = session
        self.timezone = timezone

    async def sync(
        self,
        user_id: Optional[str],
        daily_steps: Optional[dict[str, Any]] = None,
        workouts: Optional[list[Any]] = None,
    ) -> SyncResult:
        """
        Sync a batch of health data for a user.

        Daily steps are upserted on (user, day-key); workouts on their client id.
        A failing workout is logged and skipped; the remaining ones still sync.

        Raises:
            ValidationError: userId missing or dailySteps malformed.
            StoreError: the daily steps upsert failed.
        """
        if not user_id or not isinstance(user_id, str) or not user_id.strip():
            raise ValidationError("userId is required")

        result = SyncResult()

        if daily_steps is not None:
            try:
                payload = DailyStepsPayload.model_validate(
                    daily_steps, context={"tz": self.timezone}
                )
            except PayloadValidationError as e:
                raise ValidationError("Invalid dailySteps", _format_payload_error(e)) from e
            result.daily_steps = await self.upsert_daily_steps(user_id, payload)

        if workouts:
            outcomes = [await self.upsert_workout(user_id, raw) for raw in workouts]
            result.workouts = [o.record for o in outcomes if o.ok]
            result.failures = [o for o in outcomes if not o.ok]

        logger.info(
            f"Synced health data for {user_id}: "
            f"steps={'yes' if result.daily_steps else 'no'}, "
            f"workouts={len(result.workouts)}"
            + (f" (skipped {len(result.failures)})" if result.failures else "")
        )
        return result

    async def upsert_daily_steps(self, user_id: str, payload: DailyStepsPayload) -> DailySteps:
        """Insert or overwrite the step total for the payload's calendar day."""
        try:
            key = day_key(payload.date, self.timezone)
            last_updated = to_utc_naive(payload.last_updated)
        except (ValueError, OverflowError) as e:
            raise ValidationError("Invalid dailySteps", f"date out of range: {e}") from e

        values = {
            "user_id": user_id,
            "total_steps": payload.total_steps,
            "date": key,
            "last_updated": last_updated,
        }

        stmt = insert(DailySteps).values(**values, created_at=datetime.utcnow())
        stmt = stmt.on_conflict_do_update(
            index_elements=["user_id", "date"],
            set_={
                "total_steps": stmt.excluded.total_steps,
                "last_updated": stmt.excluded.last_updated,
            },
        )

        try:
            await self.session.execute(stmt)
            await self.session.commit()
            row = await self.session.execute(
                select(DailySteps)
                .where(DailySteps.user_id == user_id, DailySteps.date == key)
                .execution_options(populate_existing=True)
            )
            record = row.scalar_one()
            # Detached so a later rollback in the batch cannot expire it
            self.session.expunge(record)
            return record
        except SQLAlchemyError as e:
            logger.error(f"Failed to upsert daily steps for {user_id} on {key}: {e}")
            await self.session.rollback()
            raise StoreError("Failed to sync health data", str(e)) from e

    async def upsert_workout(self, user_id: str, raw: Any) -> WorkoutOutcome:
        """
        Validate and upsert a single workout.

        Never raises; any failure is reported on the returned outcome.
        """
        workout_id = _raw_workout_id(raw)

        try:
            payload = WorkoutPayload.model_validate(raw, context={"tz": self.timezone})
        except PayloadValidationError as e:
            error = _format_payload_error(e)
            logger.error(f"Error saving workout {workout_id}: {error}")
            return WorkoutOutcome(workout_id=workout_id, error=error)

        try:
            start_time = to_utc_naive(payload.start_time)
            end_time = to_utc_naive(payload.end_time)
        except (ValueError, OverflowError) as e:
            error = f"time out of range: {e}"
            logger.error(f"Error saving workout {payload.workout_id}: {error}")
            return WorkoutOutcome(workout_id=payload.workout_id, error=error)

        values = {
            "user_id": user_id,
            "workout_id": payload.workout_id,
            "workout_type": payload.workout_type,
            "active_calories": payload.active_calories,
            "duration_minutes": payload.duration_minutes,
            "start_time": start_time,
            "end_time": end_time,
            "steps": payload.steps,
            "distance": payload.distance,
            "average_heart_rate": payload.average_heart_rate,
            "peak_heart_rate": payload.peak_heart_rate,
            "average_pace": payload.average_pace,
        }

        stmt = insert(Workout).values(**values, created_at=datetime.utcnow())
        stmt = stmt.on_conflict_do_update(
            index_elements=["workout_id"],
            set_={k: getattr(stmt.excluded, k) for k in values if k != "workout_id"},
        )

        try:
            await self.session.execute(stmt)
            await self.session.commit()
            row = await self.session.execute(
                select(Workout)
                .where(Workout.workout_id == payload.workout_id)
                .execution_options(populate_existing=True)
            )
            record = row.scalar_one()
            self.session.expunge(record)
            return WorkoutOutcome(workout_id=payload.workout_id, record=record)
        except SQLAlchemyError as e:
            logger.error(f"Error saving workout {payload.workout_id}: {e}")
            await self.session.rollback()
            return WorkoutOutcome(workout_id=payload.workout_id, error=str(e))
