"""Multi-week plan generation."""

import logging
import math
from datetime import date, timedelta
from typing import Dict, List, Optional

from ..config import config
from ..db.models import Race, TrainingPlan, User, Workout, WorkoutTemplate
from ..db.repository import TrainingRepository
from ..errors import ValidationError
from .biometrics import volume_tier_for_experience
from .calibration import generate_calibration_week
from .library import template_rpe
from .materializer import WorkoutMaterializer
from .periodization import (
    TrainingPhase, allocate_phases, maintenance_volume, place_sessions, select_template, session_slots,
)
from .templates import parse_steps

logger = logging.getLogger(__name__)


def next_monday(today: date) -> date:
    """First Monday strictly after today."""
    return today + timedelta(days=7 - today.weekday())


def weeks_until(start: date, race_date: date) -> int:
    """Number of plan weeks from start up to and including race day."""
    return math.ceil((race_date - start).days / 7)


def resolve_volume_tier(user: User) -> int:
    if user.training_volume_tier in config.VOLUME_TIERS:
        return user.training_volume_tier
    return volume_tier_for_experience(user.experience_level)


class PlanGenerator:
    """Compose a periodized plan and persist all of its workouts."""

    def __init__(self, repo: TrainingRepository, today: date):
        self.repo = repo
        self.today = today

    def generate(
        self,
        user: User,
        race: Optional[Race] = None,
        total_weeks: Optional[int] = None,
        maintenance: bool = False,
    ) -> TrainingPlan:
        """Create the user's new active plan, archiving any previous one.

        Args:
            user: Plan owner
            race: Target race; sets the plan length unless total_weeks is given
            total_weeks: Explicit plan length override
            maintenance: Build a race-less maintenance block (all BASE weeks)

        Returns:
            The new active TrainingPlan
        """
        start = next_monday(self.today)
        total_weeks = self._resolve_weeks(start, race, total_weeks, maintenance)
        tier = resolve_volume_tier(user)

        if maintenance:
            phases = [TrainingPhase.BASE.value] * total_weeks
        else:
            phases = allocate_phases(total_weeks)

        archived = self.repo.archive_active_plans(user.id)
        if archived:
            logger.info(f"Archived {archived} active plan(s) for user {user.id}")

        plan = self.repo.add(TrainingPlan(
            user_id=user.id,
            race_id=race.id if race else None,
            name=f"{race.name} plan" if race else "Maintenance plan" if maintenance else "Training plan",
            plan_type="maintenance" if maintenance else "race",
            race_date=race.race_date if race else None,
            start_date=start,
            current_phase=phases[0],
            current_week=1,
            total_weeks=total_weeks,
            volume_tier=tier,
            status="active",
        ))
        plan.phases = phases
        self.repo.flush()

        materializer = WorkoutMaterializer(
            self.repo.get_scalars(user.id), self.repo.get_heart_rate_zones(user.id)
        )
        templates = [t for t in self.repo.list_templates() if t.focus != "test"]
        rest_days = config.get_training_rest_days()

        workouts = 0
        for week_number in range(1, total_weeks + 1):
            week_start = start + timedelta(weeks=week_number - 1)
            if week_number == 1 and user.calibration_method == "calibration_week":
                workouts += len(generate_calibration_week(self.repo, plan, week_start, materializer))
                continue
            workouts += len(self._generate_week(
                plan, week_number, week_start, phases[week_number - 1], templates, materializer, rest_days,
                maintenance,
            ))

        logger.info(
            f"Created {plan.plan_type} plan {plan.id} for user {user.id}: "
            f"{total_weeks} weeks, tier {tier}, {workouts} workouts"
        )
        return plan

    def _resolve_weeks(self, start: date, race: Optional[Race], total_weeks: Optional[int], maintenance: bool) -> int:
        if race is not None and race.race_date <= self.today:
            raise ValidationError(f"Race {race.id} is not in the future")

        if total_weeks is None:
            if race is not None:
                total_weeks = weeks_until(start, race.race_date)
                if total_weeks < 1:
                    raise ValidationError(f"Race {race.id} is too soon to plan for")
            elif maintenance:
                total_weeks = config.DEFAULT_PLAN_WEEKS
            else:
                raise ValidationError("A plan needs a race or an explicit number of weeks")

        if not 1 <= total_weeks <= config.MAX_PLAN_WEEKS:
            raise ValidationError(f"Plan length must be 1-{config.MAX_PLAN_WEEKS} weeks, got {total_weeks}")
        return total_weeks

    def _generate_week(
        self,
        plan: TrainingPlan,
        week_number: int,
        week_start: date,
        phase: str,
        templates: List[WorkoutTemplate],
        materializer: WorkoutMaterializer,
        rest_days: List[int],
        maintenance: bool,
    ) -> List[Workout]:
        phase_config = config.get_phase_config(phase)
        intensity = phase_config["intensity_modifier"]
        volume = phase_config["volume_modifier"]
        if maintenance:
            volume *= maintenance_volume(week_number)

        slots = session_slots(plan.volume_tier)
        days = place_sessions(slots, rest_days)
        parsed: Dict[str, list] = {}

        workouts = []
        for index, (slot, day_offset) in enumerate(zip(slots, days)):
            scheduled_date = week_start + timedelta(days=day_offset)
            # Race day and anything after it stay free
            if plan.race_date is not None and scheduled_date >= plan.race_date:
                continue
            template = select_template(templates, slot, phase, rotation=week_number + index)
            if template is None:
                logger.warning(f"No template for {slot.discipline}/{slot.role}, week {week_number} left short")
                continue
            if template.id not in parsed:
                parsed[template.id] = parse_steps(template.steps)

            result = materializer.materialize(
                template.name, template.discipline, parsed[template.id],
                intensity_scalar=intensity, volume_modifier=volume,
            )
            workout = Workout(
                plan_id=plan.id,
                template_id=template.id,
                discipline=slot.discipline,
                title=result.title,
                scheduled_date=scheduled_date,
                week_number=week_number,
                phase=phase,
                priority_level=slot.priority,
                status="planned",
                target_rpe=template_rpe(template.focus, template.steps),
                intensity_scalar=intensity,
                volume_modifier=volume,
                duration_scalar=1.0,
            )
            workout.structure = result.to_dict()
            workouts.append(self.repo.add(workout))
        return workouts
