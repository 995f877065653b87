"""Two-strike fatigue adaptation engine."""

import json
import logging
from dataclasses import dataclass
from datetime import date
from typing import Dict, List, Optional

import numpy as np

from ..config import config
from ..db.models import ActivityLog, AdaptationLog, FeedbackLog, UserTrainingState, Workout
from ..db.repository import TrainingRepository
from .materializer import materialize_workout

logger = logging.getLogger(__name__)

SUBJECTIVE = "SUBJECTIVE"  # rated harder than prescribed
OBJECTIVE = "OBJECTIVE"  # RPE well above target
COMPLIANCE = "COMPLIANCE"  # skipped for fatigue or illness


@dataclass
class AdaptationOutcome:
    """Result of feeding one event into the fatigue state machine."""

    strike_added: bool
    strike_reason: Optional[str]
    strikes: int
    adaptation: Optional[AdaptationLog] = None

    @property
    def adapted(self) -> bool:
        return self.adaptation is not None


@dataclass
class FatigueStatus:
    strikes: int
    threshold: int
    near_threshold: bool
    last_strike_date: Optional[date]
    last_adaptation_date: Optional[date]
    total_adaptations: int
    acute_load: float
    chronic_load: float

    @property
    def load_ratio(self) -> float:
        """Acute:chronic workload ratio, 0.0 before any chronic load exists."""
        if self.chronic_load <= 0:
            return 0.0
        return round(self.acute_load / self.chronic_load, 2)


def feedback_strike_reason(rating: Optional[str], rpe_score: Optional[int], target_rpe: Optional[int]) -> Optional[str]:
    """Strike reason for a feedback submission, if any. At most one per activity."""
    if rating == "harder":
        return SUBJECTIVE
    if rpe_score is not None and target_rpe is not None and rpe_score > target_rpe + config.RPE_STRIKE_MARGIN:
        return OBJECTIVE
    return None


def skip_strike_reason(reason: Optional[str]) -> Optional[str]:
    if reason and reason.lower() in config.STRIKE_SKIP_REASONS:
        return COMPLIANCE
    return None


def update_training_load(state: UserTrainingState, load: float, on: date) -> None:
    """Fold a session load into the exponentially weighted acute and chronic loads."""
    gap = 0
    if state.last_load_date is not None:
        gap = max(0, (on - state.last_load_date).days)

    acute_days = config.ACUTE_LOAD_DAYS
    chronic_days = config.CHRONIC_LOAD_DAYS
    acute = (state.acute_training_load or 0.0) * np.exp(-gap / acute_days)
    chronic = (state.chronic_training_load or 0.0) * np.exp(-gap / chronic_days)
    acute += load * (1 - np.exp(-1 / acute_days))
    chronic += load * (1 - np.exp(-1 / chronic_days))

    state.acute_training_load = round(float(acute), 2)
    state.chronic_training_load = round(float(chronic), 2)
    state.last_load_date = on if state.last_load_date is None else max(on, state.last_load_date)


class AdaptationEngine:
    """Per-user fatigue state machine.

    Strikes come from feedback rated harder, RPE above target plus the margin,
    or a skip for fatigue or illness. Reaching the threshold immediately cuts
    the intensity of the next key sessions, shortens and caps the next long
    session, resets the strikes and writes an audit log. The caller owns the
    transaction.
    """

    def __init__(self, repo: TrainingRepository, today: date):
        self.repo = repo
        self.today = today

    def record_completion(
        self,
        user_id: str,
        workout: Workout,
        activity: ActivityLog,
        feedback: Optional[FeedbackLog] = None,
    ) -> AdaptationOutcome:
        state = self.repo.get_training_state(user_id)

        rpe = feedback.rpe_score if feedback and feedback.rpe_score else (workout.target_rpe or config.DEFAULT_SESSION_RPE)
        update_training_load(state, activity.duration_seconds / 60.0 * rpe, self.today)

        reason = None
        if feedback is not None:
            reason = feedback_strike_reason(feedback.rating, feedback.rpe_score, feedback.target_rpe)
            feedback.triggered_strike = reason is not None

        if reason is not None:
            return self._add_strike(user_id, state, reason)

        state.consecutive_completes = (state.consecutive_completes or 0) + 1
        if state.consecutive_completes >= config.POSITIVE_TREND_COMPLETES:
            if state.current_fatigue_strikes > 0:
                state.current_fatigue_strikes -= 1
                logger.info(f"User {user_id}: positive trend, strike removed ({state.current_fatigue_strikes} left)")
            state.consecutive_completes = 0
        return AdaptationOutcome(False, None, state.current_fatigue_strikes)

    def record_skip(self, user_id: str, reason: Optional[str]) -> AdaptationOutcome:
        state = self.repo.get_training_state(user_id)
        state.consecutive_completes = 0
        strike_reason = skip_strike_reason(reason)
        if strike_reason is None:
            return AdaptationOutcome(False, None, state.current_fatigue_strikes)
        return self._add_strike(user_id, state, strike_reason)

    def _add_strike(self, user_id: str, state: UserTrainingState, reason: str) -> AdaptationOutcome:
        state.current_fatigue_strikes = (state.current_fatigue_strikes or 0) + 1
        state.last_strike_date = self.today
        state.consecutive_completes = 0
        logger.info(f"User {user_id}: strike added ({reason}), now {state.current_fatigue_strikes}")

        if state.current_fatigue_strikes < config.FATIGUE_STRIKE_THRESHOLD:
            return AdaptationOutcome(True, reason, state.current_fatigue_strikes)

        log = self.trigger(user_id, state, reason)
        return AdaptationOutcome(True, reason, state.current_fatigue_strikes, log)

    def trigger(self, user_id: str, state: UserTrainingState, reason: str) -> AdaptationLog:
        """Apply the adaptation to upcoming workouts and reset the strikes."""
        strikes_at_trigger = state.current_fatigue_strikes
        plan = self.repo.get_active_plan(user_id)
        scalars = self.repo.get_scalars(user_id)
        hr_zones = self.repo.get_heart_rate_zones(user_id)
        templates: Dict[str, object] = {}

        def rematerialize(workout):
            if workout.template_id is None:
                return
            if workout.template_id not in templates:
                templates[workout.template_id] = self.repo.get_template(workout.template_id)
            materialize_workout(workout, templates[workout.template_id], scalars, hr_zones)

        intensity_cuts: List[Workout] = []
        volume_cuts: List[Workout] = []
        if plan is not None:
            intensity_cuts = self.repo.upcoming_workouts(plan.id, self.today, 2, config.INTENSITY_CUT_WORKOUTS)
            volume_cuts = self.repo.upcoming_workouts(plan.id, self.today, 1, 1)

        for workout in intensity_cuts:
            workout.intensity_scalar = round((workout.intensity_scalar or 1.0) * config.INTENSITY_CUT_SCALAR, 4)
            workout.was_adapted = True
            rematerialize(workout)

        for workout in volume_cuts:
            workout.duration_scalar = round((workout.duration_scalar or 1.0) * config.VOLUME_CUT_MULTIPLIER, 4)
            workout.zone_cap = config.RECOVERY_ZONE_CAP
            workout.was_adapted = True
            rematerialize(workout)

        shortfall = {}
        if len(intensity_cuts) < config.INTENSITY_CUT_WORKOUTS:
            shortfall["intensity_cuts"] = config.INTENSITY_CUT_WORKOUTS - len(intensity_cuts)
        if not volume_cuts:
            shortfall["volume_conversions"] = 1
        if shortfall:
            logger.warning(f"User {user_id}: adaptation short of upcoming workouts {shortfall}")

        affected = [w.id for w in intensity_cuts + volume_cuts]
        log = self.repo.add(AdaptationLog(
            user_id=user_id,
            trigger_reason=reason,
            fatigue_strikes_at_trigger=strikes_at_trigger,
            workouts_affected=len(affected),
            affected_workout_ids=json.dumps(affected),
            actions_taken=json.dumps({
                "intensity_cuts": [w.id for w in intensity_cuts],
                "intensity_scalar": config.INTENSITY_CUT_SCALAR,
                "volume_conversions": [w.id for w in volume_cuts],
                "duration_multiplier": config.VOLUME_CUT_MULTIPLIER,
                "zone_cap": config.RECOVERY_ZONE_CAP,
            }),
            shortfall=json.dumps(shortfall) if shortfall else None,
        ))

        state.current_fatigue_strikes = 0
        state.last_adaptation_date = self.today
        state.total_adaptations = (state.total_adaptations or 0) + 1
        state.consecutive_completes = 0
        self.repo.flush()

        logger.info(f"User {user_id}: adaptation triggered by {reason}, {len(affected)} workouts adjusted")
        return log

    def status(self, user_id: str) -> FatigueStatus:
        state = self.repo.get_training_state(user_id)
        return FatigueStatus(
            strikes=state.current_fatigue_strikes,
            threshold=config.FATIGUE_STRIKE_THRESHOLD,
            near_threshold=state.current_fatigue_strikes >= config.FATIGUE_STRIKE_THRESHOLD - 1,
            last_strike_date=state.last_strike_date,
            last_adaptation_date=state.last_adaptation_date,
            total_adaptations=state.total_adaptations,
            acute_load=state.acute_training_load,
            chronic_load=state.chronic_training_load,
        )
