"""Daily priority-gated reconciliation of missed workouts."""

import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from datetime import date, timedelta
from typing import Callable, Dict, List, Optional

from ..config import config
from ..db.models import TrainingPlan, Workout
from ..db.repository import TrainingRepository, TrainingStore

logger = logging.getLogger(__name__)


@dataclass
class UserSweepResult:
    user_id: str
    deleted: int = 0
    swapped: int = 0
    bumped: int = 0
    bump_deleted: int = 0
    missed: int = 0
    plan_completed: bool = False

    @property
    def changed(self) -> int:
        return self.deleted + self.swapped + self.missed


@dataclass
class SweepReport:
    as_of: date
    results: List[UserSweepResult] = field(default_factory=list)
    failed: Dict[str, str] = field(default_factory=dict)

    @property
    def users_processed(self) -> int:
        return len(self.results)

    def total(self, name: str) -> int:
        return sum(getattr(result, name) for result in self.results)


def plan_end(plan: TrainingPlan) -> date:
    """Last day a workout of the plan may be scheduled on."""
    end = plan.start_date + timedelta(weeks=plan.total_weeks) - timedelta(days=1)
    if plan.race_date is not None:
        end = min(end, plan.race_date - timedelta(days=1))
    return end


def week_number_for(plan: TrainingPlan, day: date) -> int:
    return (day - plan.start_date).days // 7 + 1


class PriorityScheduler:
    """Missed workout rescheduler.

    For each planned workout dated before as_of, compared against the
    workouts planned for as_of in the same plan:

    1. priority 3 is deleted
    2. a missed workout more important than one of today's swaps in, and the
       displaced workout moves to the next open day or is deleted
    3. a missed priority 2 against a today priority 2 is deleted
    4. anything else is marked missed

    Each user is reconciled in its own transaction. Processed workouts are
    no longer planned-and-past, so a second run the same day changes nothing.
    """

    def __init__(
        self,
        store: TrainingStore,
        clock: Optional[Callable[[], date]] = None,
        max_workers: Optional[int] = None,
    ):
        self.store = store
        self.clock = clock or date.today
        self.max_workers = max_workers or config.SWEEP_MAX_WORKERS

    def run_daily_sweep(self, as_of: Optional[date] = None) -> SweepReport:
        as_of = as_of or self.clock()
        with self.store.read() as repo:
            user_ids = repo.active_plan_user_ids()

        report = SweepReport(as_of=as_of)
        logger.info(f"Daily sweep for {as_of}: {len(user_ids)} users with active plans")

        if self.max_workers > 1:
            with ThreadPoolExecutor(max_workers=self.max_workers) as executor:
                outcomes = list(executor.map(lambda uid: self._sweep_user(uid, as_of), user_ids))
        else:
            outcomes = [self._sweep_user(user_id, as_of) for user_id in user_ids]

        for user_id, outcome in zip(user_ids, outcomes):
            if isinstance(outcome, UserSweepResult):
                report.results.append(outcome)
            else:
                report.failed[user_id] = outcome

        logger.info(
            f"Daily sweep for {as_of} done: {report.users_processed} users, "
            f"{report.total('deleted')} deleted, {report.total('swapped')} swapped, "
            f"{report.total('missed')} missed, {len(report.failed)} failed"
        )
        return report

    def _sweep_user(self, user_id: str, as_of: date):
        try:
            return self.store.run(user_id, lambda repo: self.reconcile_user(repo, user_id, as_of))
        except Exception as e:
            logger.exception(f"Sweep failed for user {user_id}")
            return str(e)

    def reconcile_user(self, repo: TrainingRepository, user_id: str, as_of: date) -> UserSweepResult:
        result = UserSweepResult(user_id=user_id)
        plan = repo.get_active_plan(user_id)
        if plan is None:
            return result

        for missed in repo.planned_before(plan.id, as_of):
            today = repo.workouts_for_plan(plan.id, as_of, as_of, status="planned")
            self._apply_gates(repo, plan, missed, today, as_of, result)
            repo.flush()

        self._advance_plan(plan, as_of, result)
        if result.changed or result.plan_completed:
            logger.info(
                f"User {user_id}: {result.deleted} deleted, {result.swapped} swapped "
                f"({result.bumped} bumped, {result.bump_deleted} dropped), {result.missed} missed"
            )
        return result

    def _apply_gates(
        self,
        repo: TrainingRepository,
        plan: TrainingPlan,
        missed: Workout,
        today: List[Workout],
        as_of: date,
        result: UserSweepResult,
    ) -> None:
        if missed.priority_level == 3:
            logger.debug(f"Gate 1: deleting missed low-priority workout {missed.id}")
            repo.delete_workout(missed)
            result.deleted += 1
            return

        displaceable = [w for w in today if missed.priority_level < w.priority_level]
        if displaceable:
            displaced = max(displaceable, key=lambda w: (w.priority_level, w.id))
            remaining = [w for w in today if w is not displaced]
            doubles_hard = missed.priority_level == 2 and any(w.priority_level == 2 for w in remaining)
            if not doubles_hard:
                self._swap(repo, plan, missed, displaced, as_of, result)
                return

        if missed.priority_level == 2 and any(w.priority_level == 2 for w in today):
            logger.debug(f"Gate 3: deleting missed key workout {missed.id}, today already has one")
            repo.delete_workout(missed)
            result.deleted += 1
            return

        missed.status = "missed"
        result.missed += 1

    def _swap(
        self,
        repo: TrainingRepository,
        plan: TrainingPlan,
        missed: Workout,
        displaced: Workout,
        as_of: date,
        result: UserSweepResult,
    ) -> None:
        logger.debug(f"Gate 2: moving {missed.id} to {as_of}, displacing {displaced.id}")
        missed.scheduled_date = as_of
        missed.week_number = week_number_for(plan, as_of)
        result.swapped += 1

        slot = self._find_open_day(repo, plan, displaced, as_of)
        if slot is None:
            repo.delete_workout(displaced)
            result.bump_deleted += 1
        else:
            displaced.scheduled_date = slot
            displaced.week_number = week_number_for(plan, slot)
            result.bumped += 1

    def _find_open_day(
        self,
        repo: TrainingRepository,
        plan: TrainingPlan,
        workout: Workout,
        as_of: date,
    ) -> Optional[date]:
        """First empty day after as_of, before the next session of the same discipline."""
        last_day = min(plan_end(plan), as_of + timedelta(days=config.BUMP_SEARCH_DAYS))
        upcoming = repo.workouts_for_plan(plan.id, as_of + timedelta(days=1), last_day, status="planned")

        next_same = None
        for other in repo.workouts_for_plan(plan.id, as_of + timedelta(days=1), status="planned"):
            if other.discipline == workout.discipline and other.id != workout.id:
                next_same = other.scheduled_date
                break

        busy = {w.scheduled_date for w in upcoming}
        day = as_of + timedelta(days=1)
        while day <= last_day:
            if next_same is not None and day >= next_same:
                return None
            if day not in busy:
                return day
            day += timedelta(days=1)
        return None

    def _advance_plan(self, plan: TrainingPlan, as_of: date, result: UserSweepResult) -> None:
        if plan.race_date is not None and as_of > plan.race_date:
            plan.status = "completed"
            result.plan_completed = True
        elif plan.race_date is None and as_of > plan.start_date + timedelta(weeks=plan.total_weeks) - timedelta(days=1):
            plan.status = "completed"
            result.plan_completed = True

        week = min(max(week_number_for(plan, as_of), 1), plan.total_weeks)
        phases = plan.phases
        if plan.current_week != week:
            plan.current_week = week
        if phases and plan.current_phase != phases[week - 1]:
            plan.current_phase = phases[week - 1]
        if result.plan_completed:
            logger.info(f"Plan {plan.id} completed as of {as_of}")
