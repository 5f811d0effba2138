"""Read-only queries over synced steps and workouts."""

import logging
import math
from datetime import date, datetime, timedelta
from typing import Any, Optional

from sqlalchemy import func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from fitsync.core.errors import StoreError, ValidationError
from fitsync.models.database import DailySteps, Workout
from fitsync.services.parsers import day_key, parse_timestamp, to_utc_naive, today

logger = logging.getLogger(__name__)

STATS_WINDOW_DAYS = 30


def round_half_up(value: float | None) -> int:
    """Round to the nearest integer with halves rounded up (0 for None)."""
    if value is None:
        return 0
    return int(math.floor(value + 0.5))


class HealthQueryService:
    """Step history, workout history and per-user statistics."""

    def __init__(self, session: AsyncSession, timezone: str = "UTC"):
        self.session = session
        self.timezone = timezone

    def _parse_bound(self, name: str, value: Optional[str]) -> Optional[datetime]:
        if value is None or value == "":
            return None
        try:
            return parse_timestamp(value, self.timezone)
        except ValueError as e:
            raise ValidationError(f"Invalid {name}", str(e)) from e

    def _day_bound(self, name: str, value: Optional[str]) -> Optional[date]:
        parsed = self._parse_bound(name, value)
        if parsed is None:
            return None
        try:
            return day_key(parsed, self.timezone)
        except OverflowError as e:
            raise ValidationError(f"Invalid {name}", str(e)) from e

    async def get_steps(
        self,
        user_id: str,
        start_date: Optional[str] = None,
        end_date: Optional[str] = None,
        limit: int = 30,
    ) -> list[DailySteps]:
        """Daily step records for a user, newest day first, within an inclusive day range."""
        start = self._day_bound("startDate", start_date)
        end = self._day_bound("endDate", end_date)

        query = select(DailySteps).where(DailySteps.user_id == user_id)
        if start is not None:
            query = query.where(DailySteps.date >= start)
        if end is not None:
            query = query.where(DailySteps.date <= end)

        try:
            result = await self.session.execute(
                query.order_by(DailySteps.date.desc()).limit(limit)
            )
            return list(result.scalars().all())
        except SQLAlchemyError as e:
            logger.error(f"Error fetching steps for {user_id}: {e}")
            raise StoreError("Failed to fetch steps data", str(e)) from e

    async def get_workouts(
        self,
        user_id: str,
        start_date: Optional[str] = None,
        end_date: Optional[str] = None,
        workout_type: Optional[str] = None,
        limit: int = 50,
    ) -> list[Workout]:
        """Workouts for a user, latest start first, optionally filtered by start time and type."""
        start = self._parse_bound("startDate", start_date)
        end = self._parse_bound("endDate", end_date)

        query = select(Workout).where(Workout.user_id == user_id)
        if start is not None:
            query = query.where(Workout.start_time >= to_utc_naive(start))
        if end is not None:
            query = query.where(Workout.start_time <= to_utc_naive(end))
        if workout_type:
            query = query.where(Workout.workout_type == workout_type)

        try:
            result = await self.session.execute(
                query.order_by(Workout.start_time.desc()).limit(limit)
            )
            return list(result.scalars().all())
        except SQLAlchemyError as e:
            logger.error(f"Error fetching workouts for {user_id}: {e}")
            raise StoreError("Failed to fetch workouts", str(e)) from e

    async def get_stats(self, user_id: str) -> dict[str, Any]:
        """
        Compute aggregate statistics for a user.

        Returns:
            Dict with total_workouts, total_calories, avg_steps_last30_days
            and last_workout (a Workout or None).
        """
        cutoff = today(self.timezone) - timedelta(days=STATS_WINDOW_DAYS)

        try:
            workout_totals = await self.session.execute(
                select(func.count(Workout.id), func.sum(Workout.active_calories))
                .where(Workout.user_id == user_id)
            )
            total_workouts, total_calories = workout_totals.one()

            avg_result = await self.session.execute(
                select(func.avg(DailySteps.total_steps))
                .where(DailySteps.user_id == user_id, DailySteps.date >= cutoff)
            )
            avg_steps = avg_result.scalar()

            last_result = await self.session.execute(
                select(Workout)
                .where(Workout.user_id == user_id)
                .order_by(Workout.start_time.desc())
                .limit(1)
            )
            last_workout = last_result.scalar_one_or_none()
        except SQLAlchemyError as e:
            logger.error(f"Error fetching stats for {user_id}: {e}")
            raise StoreError("Failed to fetch statistics", str(e)) from e

        return {
            "total_workouts": total_workouts or 0,
            "total_calories": round_half_up(total_calories),
            "avg_steps_last30_days": round_half_up(avg_steps),
            "last_workout": last_workout,
        }
