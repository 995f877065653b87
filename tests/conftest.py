"""Shared fixtures: in-memory database, seeded templates, fixed clock."""

from datetime import date, timedelta

import pytest

from adaptive_training.db.database import Database
from adaptive_training.db.models import TrainingPlan, User, Workout
from adaptive_training.db.repository import TrainingStore
from adaptive_training.engine.library import seed_templates
from adaptive_training.engine.notifications import Notifier
from adaptive_training.engine.service import ManualBiometrics, TrainingEngine

# A Wednesday; plans generated "today" start on Monday 2025-03-10
TODAY = date(2025, 3, 5)
PLAN_START = date(2025, 3, 10)


class FixedClock:
    def __init__(self, today):
        self.today = today

    def __call__(self):
        return self.today


class RecordingNotifier(Notifier):
    def __init__(self, fail=False):
        self.sent = []
        self.fail = fail

    def notify_adaptation_triggered(self, user_id):
        if self.fail:
            raise RuntimeError("push gateway down")
        self.sent.append(("adaptation_triggered", user_id))

    def notify_calibration_complete(self, user_id):
        if self.fail:
            raise RuntimeError("push gateway down")
        self.sent.append(("calibration_complete", user_id))


@pytest.fixture
def database():
    db = Database("sqlite://")
    db.create_tables()
    with db.get_session() as session:
        seed_templates(session)
    yield db
    db.close()


@pytest.fixture
def store(database):
    return TrainingStore(database, lock_timeout=1, retry_delay=0)


@pytest.fixture
def clock():
    return FixedClock(TODAY)


@pytest.fixture
def notifier():
    return RecordingNotifier()


@pytest.fixture
def engine(store, notifier, clock):
    return TrainingEngine(store, notifier=notifier, clock=clock)


@pytest.fixture
def manual_biometrics():
    return ManualBiometrics(
        critical_swim_speed=103.0,
        functional_threshold_power=250,
        threshold_run_pace=483,
        max_heart_rate=190,
        resting_heart_rate=50,
    )


@pytest.fixture
def manual_plan(engine, manual_biometrics):
    """Tier 2 user with all scalars and a 12-week plan."""
    engine.add_user("athlete", name="Test Athlete")
    return engine.complete_onboarding(
        "athlete", "manual", manual_biometrics, total_weeks=12, volume_tier=2,
    )


@pytest.fixture
def calibration_plan(engine):
    """Tier 2 user onboarding through the calibration week."""
    engine.add_user("rookie")
    return engine.complete_onboarding(
        "rookie", "calibration_week", total_weeks=8, volume_tier=2, date_of_birth=date(1990, 6, 15),
    )


def add_sweep_plan(session, user_id, start=PLAN_START, total_weeks=4, race_date=None):
    """Insert a bare active plan with no workouts."""
    if session.get(User, user_id) is None:
        session.add(User(id=user_id, onboarding_status="COMPLETED"))
    plan = TrainingPlan(
        user_id=user_id,
        start_date=start,
        race_date=race_date,
        current_phase="BASE",
        current_week=1,
        total_weeks=total_weeks,
        volume_tier=2,
        status="active",
        plan_type="race" if race_date else "maintenance",
    )
    plan.phases = ["BASE"] * total_weeks
    session.add(plan)
    session.flush()
    return plan


def add_workout(session, plan, day, priority, discipline="run", status="planned"):
    workout = Workout(
        plan_id=plan.id,
        discipline=discipline,
        title=f"{discipline} p{priority}",
        scheduled_date=day,
        week_number=(day - plan.start_date).days // 7 + 1,
        phase="BASE",
        priority_level=priority,
        status=status,
    )
    session.add(workout)
    session.flush()
    return workout


def day(offset):
    """Date relative to PLAN_START."""
    return PLAN_START + timedelta(days=offset)
