from datetime import datetime
from sqlalchemy import (
    Column,
    Integer,
    String,
    Date,
    DateTime,
    Float,
    Index,
    UniqueConstraint,
)
from fitsync.core.database import Base


class DailySteps(Base):
    """Step total for one user on one calendar day."""

    __tablename__ = "daily_steps"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(String, nullable=False, index=True)
    total_steps = Column(Integer, nullable=False)
    date = Column(Date, nullable=False)  # day-key in the server timezone
    last_updated = Column(DateTime, nullable=False)
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)

    __table_args__ = (UniqueConstraint("user_id", "date", name="uix_daily_steps_user_date"),)


class Workout(Base):
    """A single workout session reported by the mobile client."""

    __tablename__ = "workouts"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(String, nullable=False, index=True)
    workout_id = Column(String, unique=True, nullable=False)
    workout_type = Column(String, nullable=False)
    active_calories = Column(Float, nullable=False)
    duration_minutes = Column(Float, nullable=False)
    start_time = Column(DateTime, nullable=False)
    end_time = Column(DateTime, nullable=False)
    steps = Column(Float, nullable=True)
    distance = Column(Float, nullable=True)
    average_heart_rate = Column(Float, nullable=True)
    peak_heart_rate = Column(Float, nullable=True)
    average_pace = Column(Float, nullable=True)
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)

    __table_args__ = (Index("ix_workouts_user_start", "user_id", "start_time"),)
