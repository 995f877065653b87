"""Engine entry points for inbound events."""

import logging
from dataclasses import dataclass
from datetime import date
from typing import Callable, Optional

from ..config import config
from ..db.models import ActivityLog, FeedbackLog, Race, TrainingPlan, User
from ..db.repository import TrainingRepository, TrainingStore
from ..errors import ConflictError, ValidationError
from .adaptation import AdaptationEngine, AdaptationOutcome, FatigueStatus
from .biometrics import heart_rate_zones, max_heart_rate
from .calibration import CalibrationResult, submit_calibration_result
from .library import seed_templates
from .notifications import Notifier, send
from .plan_generator import PlanGenerator
from .scheduler import PriorityScheduler, SweepReport

logger = logging.getLogger(__name__)

CALIBRATION_METHODS = ("manual", "calibration_week")
RATINGS = ("easier", "same", "harder")


@dataclass
class ManualBiometrics:
    """Values a user can enter directly during onboarding."""

    critical_swim_speed: Optional[float] = None  # sec/100m
    functional_threshold_power: Optional[int] = None  # watts
    threshold_run_pace: Optional[int] = None  # sec/mile
    max_heart_rate: Optional[int] = None
    resting_heart_rate: Optional[int] = None
    weight_kg: Optional[float] = None

    def validate(self):
        for name in ("critical_swim_speed", "functional_threshold_power", "threshold_run_pace",
                     "max_heart_rate", "resting_heart_rate", "weight_kg"):
            value = getattr(self, name)
            if value is not None and value <= 0:
                raise ValidationError(f"{name} must be positive, got {value}")


class TrainingEngine:
    """Facade over the store for onboarding, plans, feedback, calibration and the sweep."""

    def __init__(
        self,
        store: TrainingStore,
        notifier: Optional[Notifier] = None,
        clock: Optional[Callable[[], date]] = None,
    ):
        self.store = store
        self.notifier = notifier or Notifier()
        self.clock = clock or date.today
        self.scheduler = PriorityScheduler(store, clock=self.clock)

    # Reference data

    def seed_templates(self) -> int:
        with self.store.read() as repo:
            return seed_templates(repo.session)

    def add_user(self, user_id: str, name: Optional[str] = None, experience_level: Optional[str] = None) -> User:
        with self.store.read() as repo:
            if repo.session.get(User, user_id) is not None:
                raise ConflictError(f"User {user_id} already exists")
            user = repo.add(User(
                id=user_id,
                name=name,
                experience_level=experience_level,
                onboarding_status="STARTED",
                calibration_method="manual",
            ))
            repo.get_training_state(user_id)
            return user

    def add_race(self, race_id: str, name: str, race_date: date, distance_type: Optional[str] = None) -> Race:
        with self.store.read() as repo:
            if repo.session.get(Race, race_id) is not None:
                raise ConflictError(f"Race {race_id} already exists")
            return repo.add(Race(id=race_id, name=name, race_date=race_date, distance_type=distance_type))

    # Onboarding and plans

    def complete_onboarding(
        self,
        user_id: str,
        calibration_method: str,
        manual_biometrics: Optional[ManualBiometrics] = None,
        race_id: Optional[str] = None,
        total_weeks: Optional[int] = None,
        experience_level: Optional[str] = None,
        volume_tier: Optional[int] = None,
        date_of_birth: Optional[date] = None,
        gender: Optional[str] = None,
    ) -> TrainingPlan:
        """Record the onboarding answers and create the first plan.

        Manual users with all three scalars finish onboarding immediately;
        everyone else waits on calibration results (BIOMETRICS_PENDING).
        Without a race or an explicit length the user gets a maintenance plan.
        """
        if calibration_method not in CALIBRATION_METHODS:
            raise ValidationError(f"calibration_method must be one of {CALIBRATION_METHODS}")
        if volume_tier is not None and volume_tier not in config.VOLUME_TIERS:
            raise ValidationError(f"volume_tier must be one of {sorted(config.VOLUME_TIERS)}")
        manual = manual_biometrics or ManualBiometrics()
        manual.validate()
        today = self.clock()

        def work(repo: TrainingRepository) -> TrainingPlan:
            user = repo.get_user(user_id)
            user.calibration_method = calibration_method
            if experience_level is not None:
                user.experience_level = experience_level
            if volume_tier is not None:
                user.training_volume_tier = volume_tier
            if date_of_birth is not None:
                user.date_of_birth = date_of_birth
            if gender is not None:
                user.gender = gender

            biometrics = repo.get_or_create_biometrics(user_id)
            if calibration_method == "manual":
                for name in ("critical_swim_speed", "functional_threshold_power", "threshold_run_pace"):
                    value = getattr(manual, name)
                    if value is not None:
                        setattr(biometrics, name, value)
            if manual.resting_heart_rate is not None:
                biometrics.resting_heart_rate = manual.resting_heart_rate
            if manual.weight_kg is not None:
                biometrics.weight_kg = manual.weight_kg
            if manual.max_heart_rate is not None or user.date_of_birth is not None:
                biometrics.max_heart_rate = max_heart_rate(manual.max_heart_rate, user.date_of_birth, today)
            repo.flush()
            self._refresh_hr_zones(repo, user_id)

            if calibration_method == "manual" and len(biometrics.scalars()) == 3:
                user.onboarding_status = "COMPLETED"
            else:
                user.onboarding_status = "BIOMETRICS_PENDING"
            repo.get_training_state(user_id)

            race = repo.get_race(race_id) if race_id else None
            maintenance = race is None and total_weeks is None
            plan = PlanGenerator(repo, today).generate(user, race, total_weeks, maintenance=maintenance)
            logger.info(f"User {user_id} onboarded ({calibration_method}), status {user.onboarding_status}")
            return plan

        return self.store.run(user_id, work, blocking=False)

    def create_plan(self, user_id: str, race_id: Optional[str] = None, total_weeks: Optional[int] = None) -> TrainingPlan:
        """Create a new active plan. Concurrent creation for the same user is a conflict."""
        today = self.clock()

        def work(repo: TrainingRepository) -> TrainingPlan:
            user = repo.get_user(user_id)
            race = repo.get_race(race_id) if race_id else None
            return PlanGenerator(repo, today).generate(user, race, total_weeks)

        return self.store.run(user_id, work, blocking=False)

    def update_heart_rate(self, user_id: str, max_hr: Optional[int] = None, resting_hr: Optional[int] = None):
        """Store new heart rate values and recompute the five zones."""
        today = self.clock()

        def work(repo: TrainingRepository):
            user = repo.get_user(user_id)
            biometrics = repo.get_or_create_biometrics(user_id)
            if resting_hr is not None:
                biometrics.resting_heart_rate = resting_hr
            biometrics.max_heart_rate = max_heart_rate(max_hr or biometrics.max_heart_rate, user.date_of_birth, today)
            repo.flush()
            return self._refresh_hr_zones(repo, user_id)

        return self.store.run(user_id, work)

    def _refresh_hr_zones(self, repo: TrainingRepository, user_id: str):
        biometrics = repo.get_biometrics(user_id)
        if biometrics is None or not biometrics.max_heart_rate:
            return {}
        zones, method = heart_rate_zones(biometrics.max_heart_rate, biometrics.resting_heart_rate)
        repo.replace_heart_rate_zones(user_id, zones, method)
        return zones

    # Workout events

    def _owner_of(self, workout_id: str) -> str:
        with self.store.read() as repo:
            return repo.plan_owner(repo.get_workout(workout_id))

    def complete_workout(
        self,
        workout_id: str,
        duration_seconds: int,
        distance_meters: Optional[float] = None,
        avg_heart_rate: Optional[float] = None,
        source: str = "manual_input",
        rating: Optional[str] = None,
        rpe_score: Optional[int] = None,
    ) -> AdaptationOutcome:
        if not duration_seconds or duration_seconds <= 0:
            raise ValidationError("duration_seconds must be positive")
        if rating is not None and rating not in RATINGS:
            raise ValidationError(f"rating must be one of {RATINGS}")
        if rpe_score is not None and not 1 <= rpe_score <= 10:
            raise ValidationError("rpe_score must be between 1 and 10")

        user_id = self._owner_of(workout_id)
        today = self.clock()

        def work(repo: TrainingRepository) -> AdaptationOutcome:
            workout = repo.get_workout(workout_id, lock=True)
            if workout.status != "planned":
                raise ConflictError(f"Workout {workout_id} is already {workout.status}")
            workout.status = "completed"
            activity = repo.add(ActivityLog(
                workout_id=workout.id,
                user_id=user_id,
                duration_seconds=duration_seconds,
                distance_meters=distance_meters,
                avg_heart_rate=avg_heart_rate,
                source=source,
            ))
            repo.flush()

            feedback = None
            if rating is not None or rpe_score is not None:
                feedback = repo.add(FeedbackLog(
                    activity_log_id=activity.id,
                    rating=rating or "same",
                    rpe_score=rpe_score,
                    target_rpe=workout.target_rpe,
                ))
            return AdaptationEngine(repo, today).record_completion(user_id, workout, activity, feedback)

        outcome = self.store.run(user_id, work)
        if outcome.adapted:
            send(self.notifier, "adaptation_triggered", user_id)
        return outcome

    def skip_workout(self, workout_id: str, reason: Optional[str] = None) -> AdaptationOutcome:
        user_id = self._owner_of(workout_id)
        today = self.clock()

        def work(repo: TrainingRepository) -> AdaptationOutcome:
            workout = repo.get_workout(workout_id, lock=True)
            if workout.status != "planned":
                raise ConflictError(f"Workout {workout_id} is already {workout.status}")
            workout.status = "skipped"
            workout.skip_reason = reason
            repo.flush()
            return AdaptationEngine(repo, today).record_skip(user_id, reason)

        outcome = self.store.run(user_id, work)
        if outcome.adapted:
            send(self.notifier, "adaptation_triggered", user_id)
        return outcome

    def submit_calibration_result(self, user_id: str, test_type: str, raw_value: float) -> CalibrationResult:
        def work(repo: TrainingRepository) -> CalibrationResult:
            return submit_calibration_result(repo, repo.get_user(user_id), test_type, raw_value)

        result = self.store.run(user_id, work)
        if result.onboarding_completed:
            send(self.notifier, "calibration_complete", user_id)
        return result

    def fatigue_status(self, user_id: str) -> FatigueStatus:
        today = self.clock()

        def work(repo: TrainingRepository) -> FatigueStatus:
            repo.get_user(user_id)
            return AdaptationEngine(repo, today).status(user_id)

        return self.store.run(user_id, work)

    # Batch

    def run_daily_sweep(self, as_of: Optional[date] = None) -> SweepReport:
        return self.scheduler.run_daily_sweep(as_of)
