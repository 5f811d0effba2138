# Database models
from fitsync.models.database import (
    DailySteps,
    Workout,
)

__all__ = [
    "DailySteps",
    "Workout",
]
