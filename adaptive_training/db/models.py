"""Database models for users, plans, workouts and the fatigue state."""

import json
import uuid
from datetime import datetime
from typing import Dict, List
from sqlalchemy import (
    Column, Integer, String, Float, Date, DateTime, Boolean, Text, ForeignKey, UniqueConstraint,
)
from sqlalchemy.orm import declarative_base

Base = declarative_base()


def new_id() -> str:
    return str(uuid.uuid4())


class User(Base):
    """Athlete profile and onboarding state."""

    __tablename__ = "users"

    id = Column(String(50), primary_key=True)
    name = Column(String(255))
    calibration_method = Column(String(50), default="manual")  # manual, calibration_week
    training_volume_tier = Column(Integer)  # 1-3, None = derive from experience
    experience_level = Column(String(50))  # finisher, competitor, ...
    onboarding_status = Column(String(50), default="STARTED")  # STARTED, BIOMETRICS_PENDING, COMPLETED
    date_of_birth = Column(Date)
    gender = Column(String(20))
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    def __repr__(self):
        return f"<User(id={self.id}, status={self.onboarding_status})>"


class Biometrics(Base):
    """The engine scalars for one user."""

    __tablename__ = "biometrics"

    id = Column(Integer, primary_key=True)
    user_id = Column(String(50), ForeignKey("users.id"), unique=True, nullable=False)
    critical_swim_speed = Column(Float)  # seconds per 100m
    functional_threshold_power = Column(Integer)  # watts
    threshold_run_pace = Column(Integer)  # seconds per mile
    max_heart_rate = Column(Integer)  # bpm
    resting_heart_rate = Column(Integer)  # bpm
    weight_kg = Column(Float)
    recorded_at = Column(DateTime, default=datetime.utcnow)

    def scalars(self) -> Dict[str, float]:
        """Scalars keyed by scalar kind (css, ftp, tp)."""
        values = {
            "css": self.critical_swim_speed,
            "ftp": self.functional_threshold_power,
            "tp": self.threshold_run_pace,
        }
        return {kind: value for kind, value in values.items() if value}

    def __repr__(self):
        return (f"<Biometrics(user_id={self.user_id}, css={self.critical_swim_speed}, "
                f"ftp={self.functional_threshold_power}, tp={self.threshold_run_pace})>")


class HeartRateZone(Base):
    """Derived heart rate zone, five rows per user."""

    __tablename__ = "heart_rate_zones"
    __table_args__ = (UniqueConstraint("user_id", "zone_number"),)

    id = Column(Integer, primary_key=True)
    user_id = Column(String(50), ForeignKey("users.id"), nullable=False)
    zone_number = Column(Integer, nullable=False)  # 1-5
    min_hr = Column(Integer, nullable=False)
    max_hr = Column(Integer, nullable=False)
    calculation_method = Column(String(20), nullable=False)  # STANDARD, KARVONEN

    def __repr__(self):
        return f"<HeartRateZone(user_id={self.user_id}, zone={self.zone_number}, {self.min_hr}-{self.max_hr})>"


class Race(Base):
    """Target race."""

    __tablename__ = "races"

    id = Column(String(50), primary_key=True)
    name = Column(String(255), nullable=False)
    race_date = Column(Date, nullable=False)
    distance_type = Column(String(20))  # sprint, olympic, 70.3, 140.6

    def __repr__(self):
        return f"<Race(id={self.id}, name={self.name}, date={self.race_date})>"


class TrainingPlan(Base):
    """Multi-week periodized plan."""

    __tablename__ = "training_plans"

    id = Column(String(36), primary_key=True, default=new_id)
    user_id = Column(String(50), ForeignKey("users.id"), nullable=False)
    race_id = Column(String(50), ForeignKey("races.id"))
    name = Column(String(255))
    plan_type = Column(String(20), default="race")  # race, maintenance
    race_date = Column(Date)
    start_date = Column(Date, nullable=False)
    current_phase = Column(String(20), nullable=False)
    current_week = Column(Integer, default=1)
    total_weeks = Column(Integer, nullable=False)
    volume_tier = Column(Integer, nullable=False)
    status = Column(String(20), default="active")  # active, completed, archived
    phase_schedule = Column(Text)  # JSON list of phases, one per week
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    @property
    def phases(self) -> List[str]:
        return json.loads(self.phase_schedule) if self.phase_schedule else []

    @phases.setter
    def phases(self, value: List[str]) -> None:
        self.phase_schedule = json.dumps(list(value))

    def __repr__(self):
        return f"<TrainingPlan(id={self.id}, user_id={self.user_id}, status={self.status}, weeks={self.total_weeks})>"


class WorkoutTemplate(Base):
    """Versioned workout template expressed in coefficients."""

    __tablename__ = "workout_templates"

    id = Column(String(50), primary_key=True)
    name = Column(String(255), nullable=False)
    discipline = Column(String(20), nullable=False)  # swim, bike, run, brick, strength
    focus = Column(String(20), nullable=False)  # recovery, endurance, tempo, intervals, long, ...
    difficulty_tier = Column(Integer, nullable=False)  # 1-5
    version = Column(Integer, default=1)
    description = Column(Text)
    structure_json = Column(Text, nullable=False)  # JSON {"steps": [...]}

    @property
    def steps(self) -> List[Dict]:
        return json.loads(self.structure_json).get("steps", [])

    def __repr__(self):
        return f"<WorkoutTemplate(id={self.id}, name={self.name}, discipline={self.discipline})>"


class Workout(Base):
    """A concrete, scheduled workout."""

    __tablename__ = "workouts"

    id = Column(String(36), primary_key=True, default=new_id)
    plan_id = Column(String(36), ForeignKey("training_plans.id"), nullable=False)
    template_id = Column(String(50), ForeignKey("workout_templates.id"))
    discipline = Column(String(20), nullable=False)
    title = Column(String(255))
    scheduled_date = Column(Date, nullable=False)
    week_number = Column(Integer, nullable=False)  # 1-based
    phase = Column(String(20))
    priority_level = Column(Integer, nullable=False)  # 1=long/key, 2=interval/threshold, 3=recovery/easy
    status = Column(String(20), default="planned")  # planned, completed, missed, skipped
    skip_reason = Column(String(50))
    target_rpe = Column(Integer)

    # Materialization inputs
    intensity_scalar = Column(Float, default=1.0)
    volume_modifier = Column(Float, default=1.0)
    duration_scalar = Column(Float, default=1.0)
    zone_cap = Column(Integer)

    was_adapted = Column(Boolean, default=False)
    is_calibration_test = Column(Boolean, default=False)
    calibration_test = Column(String(20))  # swim_400m, bike_20min, run_1mile
    calculated_structure = Column(Text)  # JSON materialized steps
    version_id = Column(Integer, nullable=False, default=1)

    __mapper_args__ = {"version_id_col": version_id}

    @property
    def structure(self) -> Dict:
        return json.loads(self.calculated_structure) if self.calculated_structure else {}

    @structure.setter
    def structure(self, value: Dict) -> None:
        self.calculated_structure = json.dumps(value)

    @property
    def total_duration(self) -> int:
        return self.structure.get("total_duration", 0)

    def __repr__(self):
        return (f"<Workout(id={self.id}, date={self.scheduled_date}, discipline={self.discipline}, "
                f"priority={self.priority_level}, status={self.status})>")


class ActivityLog(Base):
    """Recorded result of a completed workout."""

    __tablename__ = "activity_logs"

    id = Column(String(36), primary_key=True, default=new_id)
    workout_id = Column(String(36), ForeignKey("workouts.id"), unique=True, nullable=False)
    user_id = Column(String(50), ForeignKey("users.id"), nullable=False)
    completed_at = Column(DateTime, default=datetime.utcnow)
    duration_seconds = Column(Integer, nullable=False)
    distance_meters = Column(Float)
    avg_heart_rate = Column(Float)
    source = Column(String(50), default="manual_input")  # manual_input, apple_health, active_mode_recording

    def __repr__(self):
        return f"<ActivityLog(workout_id={self.workout_id}, duration={self.duration_seconds})>"


class FeedbackLog(Base):
    """Append-only subjective feedback for one activity."""

    __tablename__ = "feedback_logs"

    id = Column(String(36), primary_key=True, default=new_id)
    activity_log_id = Column(String(36), ForeignKey("activity_logs.id"), unique=True, nullable=False)
    rating = Column(String(10), nullable=False)  # easier, same, harder
    rpe_score = Column(Integer)
    target_rpe = Column(Integer)
    triggered_strike = Column(Boolean, default=False)
    created_at = Column(DateTime, default=datetime.utcnow)

    def __repr__(self):
        return f"<FeedbackLog(activity={self.activity_log_id}, rating={self.rating}, strike={self.triggered_strike})>"


class UserTrainingState(Base):
    """Per-user fatigue state machine, updated with optimistic versioning."""

    __tablename__ = "user_training_state"

    user_id = Column(String(50), ForeignKey("users.id"), primary_key=True)
    current_fatigue_strikes = Column(Integer, nullable=False, default=0)  # 0..threshold-1
    last_strike_date = Column(Date)
    last_adaptation_date = Column(Date)
    total_adaptations = Column(Integer, nullable=False, default=0)
    consecutive_completes = Column(Integer, nullable=False, default=0)
    acute_training_load = Column(Float, nullable=False, default=0.0)
    chronic_training_load = Column(Float, nullable=False, default=0.0)
    last_load_date = Column(Date)
    version_id = Column(Integer, nullable=False, default=1)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    __mapper_args__ = {"version_id_col": version_id}

    def __repr__(self):
        return f"<UserTrainingState(user_id={self.user_id}, strikes={self.current_fatigue_strikes})>"


class AdaptationLog(Base):
    """Append-only audit record of an adaptation event."""

    __tablename__ = "adaptation_logs"

    id = Column(String(36), primary_key=True, default=new_id)
    user_id = Column(String(50), ForeignKey("users.id"), nullable=False)
    triggered_at = Column(DateTime, default=datetime.utcnow)
    trigger_reason = Column(String(50), nullable=False)  # SUBJECTIVE, OBJECTIVE, COMPLIANCE
    fatigue_strikes_at_trigger = Column(Integer, nullable=False)
    workouts_affected = Column(Integer, nullable=False, default=0)
    affected_workout_ids = Column(Text)  # JSON list
    actions_taken = Column(Text)  # JSON {"intensity_cuts": [...], "volume_conversions": [...]}
    shortfall = Column(Text)  # JSON {"intensity_cuts": n, "volume_conversions": n} when short

    @property
    def workout_ids(self) -> List[str]:
        return json.loads(self.affected_workout_ids) if self.affected_workout_ids else []

    @property
    def actions(self) -> Dict:
        return json.loads(self.actions_taken) if self.actions_taken else {}

    def __repr__(self):
        return f"<AdaptationLog(user_id={self.user_id}, reason={self.trigger_reason}, affected={self.workouts_affected})>"
