"""Calibration week generation and test result processing."""

import logging
from dataclasses import dataclass
from datetime import date, timedelta
from typing import Dict, List, Optional

from ..config import config
from ..db.models import TrainingPlan, User, Workout, WorkoutTemplate
from ..db.repository import TrainingRepository
from ..errors import ValidationError
from .biometrics import calculate_css, calculate_ftp, calculate_threshold_pace
from .library import template_rpe
from .materializer import WorkoutMaterializer, materialize_workout
from .templates import max_zone, parse_steps

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CalibrationTest:
    test_type: str
    discipline: str
    template_id: str
    day_offset: int  # 0 = Monday
    scalar: str
    biometrics_field: str


CALIBRATION_TESTS: Dict[str, CalibrationTest] = {
    "swim_400m": CalibrationTest("swim_400m", "swim", "test-swim-400m", 0, "css", "critical_swim_speed"),
    "bike_20min": CalibrationTest("bike_20min", "bike", "test-bike-20min", 2, "ftp", "functional_threshold_power"),
    "run_1mile": CalibrationTest("run_1mile", "run", "test-run-1mile", 4, "tp", "threshold_run_pace"),
}

SCALAR_FORMULAS = {
    "swim_400m": calculate_css,
    "bike_20min": calculate_ftp,
    "run_1mile": calculate_threshold_pace,
}

# Days 6 and 7 are recovery sessions from the regular pool
RECOVERY_DAYS = ((5, "bike"), (6, "run"))
RECOVERY_MAX_ZONE = 2
TEST_PRIORITY = 2
RECOVERY_PRIORITY = 3

# Disciplines whose materialized targets depend on each scalar
SCALAR_DISCIPLINES = {"css": ("swim",), "ftp": ("bike",), "tp": ("run",)}


@dataclass
class CalibrationResult:
    test_type: str
    scalar: str
    value: float
    rematerialized: int
    onboarding_completed: bool


def recovery_template(templates: List[WorkoutTemplate], discipline: str) -> Optional[WorkoutTemplate]:
    """Easiest zone 1-2 template of a discipline."""
    pool = [
        t for t in templates
        if t.discipline == discipline and t.focus != "test" and max_zone(parse_steps(t.steps)) <= RECOVERY_MAX_ZONE
    ]
    if not pool:
        return None
    return sorted(pool, key=lambda t: (t.difficulty_tier, t.id))[0]


def generate_calibration_week(
    repo: TrainingRepository,
    plan: TrainingPlan,
    week_start: date,
    materializer: WorkoutMaterializer,
) -> List[Workout]:
    """Week 1 of a calibration plan: three time trials and two recovery sessions.

    Test workouts are materialized without scalars so they carry zone and
    heart rate guidance only.
    """
    zone_only = WorkoutMaterializer({}, materializer.hr_zones)
    workouts = []

    for test in CALIBRATION_TESTS.values():
        template = repo.get_template(test.template_id)
        result = zone_only.materialize(template.name, template.discipline, parse_steps(template.steps))
        workout = Workout(
            plan_id=plan.id,
            template_id=template.id,
            discipline=test.discipline,
            title=result.title,
            scheduled_date=week_start + timedelta(days=test.day_offset),
            week_number=1,
            phase=plan.phases[0],
            priority_level=TEST_PRIORITY,
            status="planned",
            target_rpe=template_rpe(template.focus, template.steps),
            intensity_scalar=1.0,
            volume_modifier=1.0,
            duration_scalar=1.0,
            is_calibration_test=True,
            calibration_test=test.test_type,
        )
        workout.structure = result.to_dict()
        workouts.append(repo.add(workout))

    phase_config = config.get_phase_config(plan.phases[0])
    templates = repo.list_templates()
    for day_offset, discipline in RECOVERY_DAYS:
        template = recovery_template(templates, discipline)
        if template is None:
            logger.warning(f"No zone 1-2 {discipline} template for calibration recovery day")
            continue
        workout = Workout(
            plan_id=plan.id,
            template_id=template.id,
            discipline=discipline,
            scheduled_date=week_start + timedelta(days=day_offset),
            week_number=1,
            phase=plan.phases[0],
            priority_level=RECOVERY_PRIORITY,
            status="planned",
            target_rpe=template_rpe(template.focus, template.steps),
            intensity_scalar=phase_config["intensity_modifier"],
            volume_modifier=1.0,
            duration_scalar=1.0,
        )
        result = materializer.materialize(
            template.name, template.discipline, parse_steps(template.steps),
            intensity_scalar=workout.intensity_scalar,
        )
        workout.title = result.title
        workout.structure = result.to_dict()
        workouts.append(repo.add(workout))

    logger.info(f"Generated calibration week for plan {plan.id} ({len(workouts)} workouts)")
    return workouts


def submit_calibration_result(
    repo: TrainingRepository,
    user: User,
    test_type: str,
    raw_value: float,
) -> CalibrationResult:
    """Apply a time trial result.

    Updates the one matching scalar, marks the test workout completed,
    re-materializes every planned workout from week 2 onward that depends on
    the scalar, and completes onboarding once all three scalars are known.
    """
    test = CALIBRATION_TESTS.get(test_type)
    if test is None:
        raise ValidationError(
            f"Unknown calibration test {test_type!r}; expected one of {sorted(CALIBRATION_TESTS)}"
        )

    value = SCALAR_FORMULAS[test_type](raw_value)
    biometrics = repo.get_or_create_biometrics(user.id)
    setattr(biometrics, test.biometrics_field, value)
    repo.flush()
    logger.info(f"User {user.id}: {test.scalar} set to {value} from {test_type}={raw_value}")

    rematerialized = 0
    plan = repo.get_active_plan(user.id)
    if plan is not None:
        for workout in repo.workouts_for_plan(plan.id, status="planned"):
            if workout.calibration_test == test_type:
                workout.status = "completed"
        rematerialized = rematerialize_for_scalar(repo, plan, user.id, test.scalar)

    completed = False
    if len(biometrics.scalars()) == 3 and user.onboarding_status != "COMPLETED":
        user.onboarding_status = "COMPLETED"
        completed = True
        logger.info(f"User {user.id}: calibration complete")

    return CalibrationResult(
        test_type=test_type,
        scalar=test.scalar,
        value=value,
        rematerialized=rematerialized,
        onboarding_completed=completed,
    )


def rematerialize_for_scalar(repo: TrainingRepository, plan: TrainingPlan, user_id: str, scalar: str) -> int:
    """Re-run the materializer for planned week 2+ workouts that use a scalar."""
    scalars = repo.get_scalars(user_id)
    hr_zones = repo.get_heart_rate_zones(user_id)
    disciplines = SCALAR_DISCIPLINES[scalar]

    count = 0
    templates: Dict[str, WorkoutTemplate] = {}
    for workout in repo.workouts_for_plan(plan.id, status="planned"):
        if workout.week_number < 2 or workout.is_calibration_test:
            continue
        if workout.discipline not in disciplines or workout.template_id is None:
            continue
        if workout.template_id not in templates:
            templates[workout.template_id] = repo.get_template(workout.template_id)
        materialize_workout(workout, templates[workout.template_id], scalars, hr_zones)
        count += 1
    return count

