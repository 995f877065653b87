"""Adaptive training plan engine."""

from .adaptation import AdaptationEngine, AdaptationOutcome, FatigueStatus
from .calibration import CALIBRATION_TESTS, CalibrationResult
from .materializer import MaterializedWorkout, WorkoutMaterializer
from .notifications import Notifier
from .periodization import TrainingPhase, allocate_phases
from .plan_generator import PlanGenerator
from .scheduler import PriorityScheduler, SweepReport
from .service import ManualBiometrics, TrainingEngine

__all__ = [
    "AdaptationEngine",
    "AdaptationOutcome",
    "FatigueStatus",
    "CALIBRATION_TESTS",
    "CalibrationResult",
    "MaterializedWorkout",
    "WorkoutMaterializer",
    "Notifier",
    "TrainingPhase",
    "allocate_phases",
    "PlanGenerator",
    "PriorityScheduler",
    "SweepReport",
    "ManualBiometrics",
    "TrainingEngine",
]
