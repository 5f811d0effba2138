"""Tests for the sync engine.

Covers:
1. Daily steps upsert keyed on (user, calendar day)
2. Workout upsert keyed on the client workout id
3. Per-workout failure isolation within a batch
4. userId / dailySteps validation
"""

import pytest
from datetime import date, datetime
from unittest.mock import patch

from sqlalchemy import func, select
from sqlalchemy.exc import OperationalError

from fitsync.core.errors import StoreError, ValidationError
from fitsync.models.database import DailySteps, Workout
from fitsync.services.sync import HealthSyncService


def _workout(workout_id, **overrides):
    payload = {
        "id": workout_id,
        "workoutType": "running",
        "activeCalories": 320.5,
        "durationMinutes": 32,
        "startTime": "2024-01-01T07:00:00Z",
        "endTime": "2024-01-01T07:32:00Z",
    }
    payload.update(overrides)
    return payload


async def _count(session, model):
    result = await session.execute(select(func.count()).select_from(model))
    return result.scalar_one()


class TestDailyStepsUpsert:

    @pytest.mark.asyncio
    async def test_repeated_sync_overwrites_single_record(self, async_session):
        service = HealthSyncService(async_session, "UTC")

        await service.sync("u1", {
            "totalSteps": 5000, "date": "2024-01-01", "lastUpdated": "2024-01-01T10:00:00Z",
        })
        result = await service.sync("u1", {
            "totalSteps": 7000, "date": "2024-01-01", "lastUpdated": "2024-01-01T18:00:00Z",
        })

        assert await _count(async_session, DailySteps) == 1
        assert result.daily_steps.total_steps == 7000
        assert result.daily_steps.last_updated == datetime(2024, 1, 1, 18, 0)
        assert result.daily_steps.date == date(2024, 1, 1)

    @pytest.mark.asyncio
    async def test_same_day_different_time_matches_existing_record(self, async_session):
        """The match key is the calendar day, not the exact timestamp."""
        service = HealthSyncService(async_session, "UTC")

        await service.sync("u1", {
            "totalSteps": 1200, "date": "2024-01-01T08:15:00Z", "lastUpdated": "2024-01-01T08:15:00Z",
        })
        await service.sync("u1", {
            "totalSteps": 9100, "date": "2024-01-01T21:40:00Z", "lastUpdated": "2024-01-01T21:40:00Z",
        })

        rows = (await async_session.execute(select(DailySteps))).scalars().all()
        assert len(rows) == 1
        assert rows[0].date == date(2024, 1, 1)
        assert rows[0].total_steps == 9100

    @pytest.mark.asyncio
    async def test_created_at_is_kept_on_update(self, async_session):
        service = HealthSyncService(async_session, "UTC")

        first = await service.sync("u1", {
            "totalSteps": 100, "date": "2024-01-01", "lastUpdated": "2024-01-01T06:00:00Z",
        })
        created_at = first.daily_steps.created_at

        second = await service.sync("u1", {
            "totalSteps": 200, "date": "2024-01-01", "lastUpdated": "2024-01-01T07:00:00Z",
        })

        assert second.daily_steps.id == first.daily_steps.id
        assert second.daily_steps.created_at == created_at

    @pytest.mark.asyncio
    async def test_different_days_create_separate_records(self, async_session):
        service = HealthSyncService(async_session, "UTC")

        for day, steps in [("2024-01-01", 5000), ("2024-01-02", 6000)]:
            await service.sync("u1", {"totalSteps": steps, "date": day, "lastUpdated": day})

        assert await _count(async_session, DailySteps) == 2

    @pytest.mark.asyncio
    async def test_day_key_follows_server_timezone(self, async_session):
        """A late-evening UTC timestamp belongs to the next day in Tokyo."""
        service = HealthSyncService(async_session, "Asia/Tokyo")

        result = await service.sync("u1", {
            "totalSteps": 3000, "date": "2024-01-01T20:00:00Z", "lastUpdated": "2024-01-01T20:00:00Z",
        })

        assert result.daily_steps.date == date(2024, 1, 2)

    @pytest.mark.asyncio
    async def test_malformed_daily_steps_is_validation_error(self, async_session):
        service = HealthSyncService(async_session, "UTC")

        with pytest.raises(ValidationError) as exc_info:
            await service.sync("u1", {"totalSteps": 100, "date": "yesterday-ish"})

        assert exc_info.value.status_code == 400
        assert await _count(async_session, DailySteps) == 0

    @pytest.mark.asyncio
    @pytest.mark.parametrize("tz, day", [
        ("UTC", "0001-01-01T00:00:00+05:00"),
        ("UTC", 10**20),
        ("Asia/Tokyo", "9999-12-31T20:00:00Z"),
    ])
    async def test_out_of_range_date_is_validation_error(self, async_session, tz, day):
        service = HealthSyncService(async_session, tz)

        with pytest.raises(ValidationError) as exc_info:
            await service.sync("u1", {"totalSteps": 100, "date": day, "lastUpdated": "2024-01-01T10:00:00Z"})

        assert exc_info.value.message == "Invalid dailySteps"
        assert await _count(async_session, DailySteps) == 0

    @pytest.mark.asyncio
    async def test_store_failure_raises_store_error(self, async_session):
        service = HealthSyncService(async_session, "UTC")

        with patch.object(
            async_session, "execute", side_effect=OperationalError("INSERT", {}, Exception("disk I/O error"))
        ):
            with pytest.raises(StoreError) as exc_info:
                await service.sync("u1", {
                    "totalSteps": 100, "date": "2024-01-01", "lastUpdated": "2024-01-01",
                })

        assert exc_info.value.message == "Failed to sync health data"
        assert "disk I/O error" in exc_info.value.error


class TestWorkoutUpsert:

    @pytest.mark.asyncio
    async def test_workouts_are_stored_in_input_order(self, async_session):
        service = HealthSyncService(async_session, "UTC")

        result = await service.sync("u1", workouts=[
            _workout("w-2", startTime="2024-01-02T07:00:00Z", endTime="2024-01-02T07:30:00Z"),
            _workout("w-1"),
        ])

        assert [w.workout_id for w in result.workouts] == ["w-2", "w-1"]
        assert result.failures == []
        assert await _count(async_session, Workout) == 2

    @pytest.mark.asyncio
    async def test_known_workout_id_overwrites_fields(self, async_session):
        service = HealthSyncService(async_session, "UTC")

        await service.sync("u1", workouts=[_workout("w-1", distance=5.2, averageHeartRate=140)])
        result = await service.sync("u1", workouts=[
            _workout("w-1", workoutType="cycling", activeCalories=500, distance=None),
        ])

        assert await _count(async_session, Workout) == 1
        workout = result.workouts[0]
        assert workout.workout_type == "cycling"
        assert workout.active_calories == 500
        assert workout.distance is None
        assert workout.average_heart_rate is None

    @pytest.mark.asyncio
    async def test_optional_metrics_are_stored(self, async_session):
        service = HealthSyncService(async_session, "UTC")

        result = await service.sync("u1", workouts=[_workout(
            "w-1", steps=4200, distance=5.1, averageHeartRate=142, peakHeartRate=171, averagePace=6.2,
        )])

        workout = result.workouts[0]
        assert workout.steps == 4200
        assert workout.distance == 5.1
        assert workout.average_heart_rate == 142
        assert workout.peak_heart_rate == 171
        assert workout.average_pace == 6.2
        assert workout.start_time == datetime(2024, 1, 1, 7, 0)

    @pytest.mark.asyncio
    async def test_invalid_workout_is_skipped_and_others_persist(self, async_session):
        service = HealthSyncService(async_session, "UTC")

        result = await service.sync("u1", workouts=[
            _workout("w-1"),
            {"id": "w-bad", "workoutType": "running"},  # missing required fields
            _workout("w-2", startTime="not a date"),
            "garbage",
            _workout("w-3"),
        ])

        assert [w.workout_id for w in result.workouts] == ["w-1", "w-3"]
        assert [f.workout_id for f in result.failures] == ["w-bad", "w-2", None]
        assert all(f.error for f in result.failures)
        assert await _count(async_session, Workout) == 2

    @pytest.mark.asyncio
    async def test_store_failure_on_one_workout_does_not_abort_batch(self, async_session):
        service = HealthSyncService(async_session, "UTC")
        real_execute = async_session.execute
        calls = {"n": 0}

        async def flaky_execute(stmt, *args, **kwargs):
            calls["n"] += 1
            if calls["n"] == 1:
                raise OperationalError("INSERT", {}, Exception("database is locked"))
            return await real_execute(stmt, *args, **kwargs)

        with patch.object(async_session, "execute", side_effect=flaky_execute):
            result = await service.sync("u1", workouts=[_workout("w-1"), _workout("w-2")])

        assert [w.workout_id for w in result.workouts] == ["w-2"]
        assert result.failures[0].workout_id == "w-1"
        assert "database is locked" in result.failures[0].error

    @pytest.mark.asyncio
    async def test_records_stay_readable_after_later_store_failure(self, async_session):
        """NaN binds as NULL, so w-2 hits NOT NULL and rolls back after w-1 committed."""
        service = HealthSyncService(async_session, "UTC")

        result = await service.sync("u1", workouts=[
            _workout("w-1"),
            _workout("w-2", activeCalories=float("nan")),
        ])

        assert [f.workout_id for f in result.failures] == ["w-2"]
        record = result.workouts[0]
        assert record.workout_id == "w-1"
        assert record.active_calories == 320.5
        assert record.start_time == datetime(2024, 1, 1, 7, 0)
        assert await _count(async_session, Workout) == 1

    @pytest.mark.asyncio
    @pytest.mark.parametrize("start", ["0001-01-01T00:00:00+05:00", 10**20])
    async def test_out_of_range_start_time_is_skipped(self, async_session, start):
        service = HealthSyncService(async_session, "UTC")

        result = await service.sync("u1", workouts=[
            _workout("w-1"),
            _workout("w-2", startTime=start),
            _workout("w-3"),
        ])

        assert [w.workout_id for w in result.workouts] == ["w-1", "w-3"]
        assert [f.workout_id for f in result.failures] == ["w-2"]
        assert await _count(async_session, Workout) == 2

    @pytest.mark.asyncio
    async def test_daily_steps_survive_failed_workouts(self, async_session):
        service = HealthSyncService(async_session, "UTC")

        result = await service.sync(
            "u1",
            {"totalSteps": 8000, "date": "2024-01-01", "lastUpdated": "2024-01-01T20:00:00Z"},
            [{"id": "w-bad"}],
        )

        assert result.daily_steps.total_steps == 8000
        assert result.workouts == []
        assert await _count(async_session, DailySteps) == 1


class TestSyncValidation:

    @pytest.mark.asyncio
    @pytest.mark.parametrize("user_id", [None, "", "   "])
    async def test_missing_user_id_raises(self, async_session, user_id):
        service = HealthSyncService(async_session, "UTC")

        with pytest.raises(ValidationError) as exc_info:
            await service.sync(user_id, {"totalSteps": 1, "date": "2024-01-01", "lastUpdated": "2024-01-01"})

        assert exc_info.value.message == "userId is required"

    @pytest.mark.asyncio
    async def test_empty_sync_is_a_no_op(self, async_session):
        service = HealthSyncService(async_session, "UTC")

        result = await service.sync("u1")

        assert result.daily_steps is None
        assert result.workouts == []
        assert result.timestamp is not None
        assert await _count(async_session, DailySteps) == 0
        assert await _count(async_session, Workout) == 0
