"""Database module for the adaptive training engine."""

from .database import Database, get_db
from .models import (
    ActivityLog, AdaptationLog, Biometrics, FeedbackLog, HeartRateZone, Race,
    TrainingPlan, User, UserTrainingState, Workout, WorkoutTemplate,
)
from .repository import TrainingRepository, TrainingStore

__all__ = [
    "Database", "get_db", "TrainingRepository", "TrainingStore",
    "ActivityLog", "AdaptationLog", "Biometrics", "FeedbackLog", "HeartRateZone", "Race",
    "TrainingPlan", "User", "UserTrainingState", "Workout", "WorkoutTemplate",
]
