"""Repository contract and per-user unit of work for the training state store."""

import logging
import threading
import time
import weakref
from contextlib import contextmanager
from datetime import date
from typing import Callable, Dict, Iterator, List, Optional, Tuple, TypeVar

from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError

from ..config import config
from ..errors import ConflictError, NotFoundError
from .database import Database
from .models import (
    ActivityLog, AdaptationLog, Biometrics, FeedbackLog, HeartRateZone, Race,
    TrainingPlan, User, UserTrainingState, Workout, WorkoutTemplate,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")


class TrainingRepository:
    """Narrow read/write access to the training entities over one session."""

    def __init__(self, session: Session):
        self.session = session

    def add(self, obj):
        self.session.add(obj)
        return obj

    def flush(self):
        self.session.flush()

    # Users

    def get_user(self, user_id: str) -> User:
        user = self.session.get(User, user_id)
        if user is None:
            raise NotFoundError(f"Unknown user: {user_id}")
        return user

    def lock_user(self, user_id: str) -> Optional[User]:
        """Take a row lock on the user for the rest of the transaction."""
        return (
            self.session.query(User)
            .filter(User.id == user_id)
            .with_for_update()
            .one_or_none()
        )

    def get_biometrics(self, user_id: str) -> Optional[Biometrics]:
        return self.session.query(Biometrics).filter_by(user_id=user_id).one_or_none()

    def get_or_create_biometrics(self, user_id: str) -> Biometrics:
        biometrics = self.get_biometrics(user_id)
        if biometrics is None:
            biometrics = self.add(Biometrics(user_id=user_id))
        return biometrics

    def get_scalars(self, user_id: str) -> Dict[str, float]:
        biometrics = self.get_biometrics(user_id)
        return biometrics.scalars() if biometrics else {}

    def get_heart_rate_zones(self, user_id: str) -> Dict[int, Tuple[int, int]]:
        rows = self.session.query(HeartRateZone).filter_by(user_id=user_id).all()
        return {row.zone_number: (row.min_hr, row.max_hr) for row in rows}

    def replace_heart_rate_zones(self, user_id: str, zones: Dict[int, Tuple[int, int]], method: str):
        self.session.query(HeartRateZone).filter_by(user_id=user_id).delete()
        for zone_number, (min_hr, max_hr) in sorted(zones.items()):
            self.add(HeartRateZone(
                user_id=user_id,
                zone_number=zone_number,
                min_hr=min_hr,
                max_hr=max_hr,
                calculation_method=method,
            ))

    def get_training_state(self, user_id: str) -> UserTrainingState:
        state = self.session.get(UserTrainingState, user_id)
        if state is None:
            state = self.add(UserTrainingState(
                user_id=user_id,
                current_fatigue_strikes=0,
                total_adaptations=0,
                consecutive_completes=0,
                acute_training_load=0.0,
                chronic_training_load=0.0,
            ))
            self.flush()
        return state

    # Races and templates

    def get_race(self, race_id: str) -> Race:
        race = self.session.get(Race, race_id)
        if race is None:
            raise NotFoundError(f"Unknown race: {race_id}")
        return race

    def get_template(self, template_id: str) -> WorkoutTemplate:
        template = self.session.get(WorkoutTemplate, template_id)
        if template is None:
            raise NotFoundError(f"Unknown template: {template_id}")
        return template

    def list_templates(self, discipline: Optional[str] = None) -> List[WorkoutTemplate]:
        query = self.session.query(WorkoutTemplate)
        if discipline:
            query = query.filter(WorkoutTemplate.discipline == discipline)
        return query.order_by(WorkoutTemplate.id).all()

    # Plans

    def get_plan(self, plan_id: str) -> TrainingPlan:
        plan = self.session.get(TrainingPlan, plan_id)
        if plan is None:
            raise NotFoundError(f"Unknown plan: {plan_id}")
        return plan

    def get_active_plan(self, user_id: str) -> Optional[TrainingPlan]:
        return (
            self.session.query(TrainingPlan)
            .filter(TrainingPlan.user_id == user_id, TrainingPlan.status == "active")
            .order_by(TrainingPlan.created_at.desc())
            .first()
        )

    def require_active_plan(self, user_id: str) -> TrainingPlan:
        plan = self.get_active_plan(user_id)
        if plan is None:
            raise NotFoundError(f"No active plan for user {user_id}")
        return plan

    def archive_active_plans(self, user_id: str) -> int:
        plans = (
            self.session.query(TrainingPlan)
            .filter(TrainingPlan.user_id == user_id, TrainingPlan.status == "active")
            .all()
        )
        for plan in plans:
            plan.status = "archived"
        return len(plans)

    def active_plan_user_ids(self) -> List[str]:
        rows = (
            self.session.query(TrainingPlan.user_id)
            .filter(TrainingPlan.status == "active")
            .distinct()
            .order_by(TrainingPlan.user_id)
            .all()
        )
        return [row[0] for row in rows]

    # Workouts

    def get_workout(self, workout_id: str, lock: bool = False) -> Workout:
        query = self.session.query(Workout).filter(Workout.id == workout_id)
        if lock:
            query = query.with_for_update()
        workout = query.one_or_none()
        if workout is None:
            raise NotFoundError(f"Unknown workout: {workout_id}")
        return workout

    def plan_owner(self, workout: Workout) -> str:
        return self.get_plan(workout.plan_id).user_id

    def workouts_for_plan(
        self,
        plan_id: str,
        start: Optional[date] = None,
        end: Optional[date] = None,
        status: Optional[str] = None,
    ) -> List[Workout]:
        """Workouts of a plan in a date range, ordered by date then priority."""
        query = self.session.query(Workout).filter(Workout.plan_id == plan_id)
        if start is not None:
            query = query.filter(Workout.scheduled_date >= start)
        if end is not None:
            query = query.filter(Workout.scheduled_date <= end)
        if status is not None:
            query = query.filter(Workout.status == status)
        return query.order_by(Workout.scheduled_date, Workout.priority_level, Workout.id).all()

    def planned_before(self, plan_id: str, as_of: date) -> List[Workout]:
        return (
            self.session.query(Workout)
            .filter(
                Workout.plan_id == plan_id,
                Workout.status == "planned",
                Workout.scheduled_date < as_of,
            )
            .order_by(Workout.scheduled_date, Workout.priority_level, Workout.id)
            .all()
        )

    def upcoming_workouts(
        self,
        plan_id: str,
        from_date: date,
        priority_level: int,
        limit: int,
    ) -> List[Workout]:
        """Next planned, not yet adapted, non-test workouts of one priority."""
        return (
            self.session.query(Workout)
            .filter(
                Workout.plan_id == plan_id,
                Workout.status == "planned",
                Workout.priority_level == priority_level,
                Workout.scheduled_date >= from_date,
                Workout.was_adapted.is_(False),
                Workout.is_calibration_test.is_(False),
            )
            .order_by(Workout.scheduled_date, Workout.id)
            .limit(limit)
            .all()
        )

    def delete_workout(self, workout: Workout):
        self.session.delete(workout)

    # Logs

    def get_activity_for_workout(self, workout_id: str) -> Optional[ActivityLog]:
        return self.session.query(ActivityLog).filter_by(workout_id=workout_id).one_or_none()

    def get_feedback(self, activity_log_id: str) -> Optional[FeedbackLog]:
        return self.session.query(FeedbackLog).filter_by(activity_log_id=activity_log_id).one_or_none()

    def adaptation_logs(self, user_id: str) -> List[AdaptationLog]:
        return (
            self.session.query(AdaptationLog)
            .filter(AdaptationLog.user_id == user_id)
            .order_by(AdaptationLog.triggered_at)
            .all()
        )


class TrainingStore:
    """Per-user unit of work over a Database.

    Each call to run() holds an in-process lock keyed on the user id,
    opens one transaction, row-locks the user and hands a repository to
    the callable. Optimistic version mismatches surface as ConflictError;
    a transient OperationalError is retried once after a short delay.
    """

    def __init__(
        self,
        database: Database,
        lock_timeout: Optional[float] = None,
        retry_delay: Optional[float] = None,
    ):
        self.database = database
        self.lock_timeout = lock_timeout if lock_timeout is not None else config.USER_LOCK_TIMEOUT
        self.retry_delay = retry_delay if retry_delay is not None else config.STORE_RETRY_DELAY
        # Entries drop out once no caller holds the lock
        self._locks: "weakref.WeakValueDictionary[str, threading.Lock]" = weakref.WeakValueDictionary()
        self._registry_lock = threading.Lock()

    def _lock_for(self, user_id: str) -> threading.Lock:
        with self._registry_lock:
            lock = self._locks.get(user_id)
            if lock is None:
                lock = threading.Lock()
                self._locks[user_id] = lock
            return lock

    @contextmanager
    def user_lock(self, user_id: str, blocking: bool = True) -> Iterator[None]:
        """Hold the per-user lock, failing with ConflictError instead of waiting forever."""
        lock = self._lock_for(user_id)
        acquired = lock.acquire(timeout=self.lock_timeout) if blocking else lock.acquire(blocking=False)
        if not acquired:
            raise ConflictError(f"Another operation is in progress for user {user_id}")
        try:
            yield
        finally:
            lock.release()

    @contextmanager
    def read(self) -> Iterator[TrainingRepository]:
        """Repository for lock-free reads."""
        with self.database.get_session() as session:
            yield TrainingRepository(session)

    def run(self, user_id: str, work: Callable[[TrainingRepository], T], blocking: bool = True) -> T:
        """Run work for one user inside the per-user lock and a single transaction."""
        with self.user_lock(user_id, blocking=blocking):
            retried = False
            while True:
                try:
                    with self.database.get_session() as session:
                        repo = TrainingRepository(session)
                        repo.lock_user(user_id)
                        return work(repo)
                except StaleDataError as e:
                    raise ConflictError(f"Concurrent update for user {user_id}: {e}") from e
                except OperationalError as e:
                    if retried:
                        raise
                    retried = True
                    logger.warning(f"Store error for user {user_id}, retrying: {e}")
                    time.sleep(self.retry_delay)
