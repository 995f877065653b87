"""Tests for plan generation through the engine."""

from collections import Counter, defaultdict
from datetime import date, timedelta

import pytest

from adaptive_training.engine.plan_generator import next_monday, weeks_until
from adaptive_training.errors import ConflictError, NotFoundError, ValidationError

from .conftest import PLAN_START


def plan_workouts(store, plan_id):
    with store.read() as repo:
        return repo.workouts_for_plan(plan_id)


class TestPlanDates:
    """Test plan start and length helpers."""

    def test_next_monday_is_strictly_after_today(self):
        assert next_monday(date(2025, 3, 5)) == date(2025, 3, 10)
        assert next_monday(date(2025, 3, 10)) == date(2025, 3, 17)
        assert next_monday(date(2025, 3, 16)) == date(2025, 3, 17)

    def test_weeks_until_race(self):
        assert weeks_until(date(2025, 3, 10), date(2025, 6, 1)) == 12
        assert weeks_until(date(2025, 3, 10), date(2025, 3, 16)) == 1


class TestPlanGeneration:
    """Test generated plans end to end."""

    def test_manual_plan_shape(self, manual_plan, store):
        assert manual_plan.start_date == PLAN_START
        assert manual_plan.total_weeks == 12
        assert manual_plan.status == "active"
        assert manual_plan.current_phase == "BASE"
        assert Counter(manual_plan.phases) == {"BASE": 3, "BUILD": 5, "PEAK": 2, "TAPER": 2}

        workouts = plan_workouts(store, manual_plan.id)
        assert len(workouts) == 12 * 7
        last_day = PLAN_START + timedelta(weeks=12) - timedelta(days=1)
        assert all(PLAN_START <= w.scheduled_date <= last_day for w in workouts)

    def test_workouts_carry_phase_modifiers(self, manual_plan, store):
        workouts = plan_workouts(store, manual_plan.id)
        for workout in workouts:
            assert workout.phase == manual_plan.phases[workout.week_number - 1]
        base = [w for w in workouts if w.phase == "BASE"]
        taper = [w for w in workouts if w.phase == "TAPER"]
        assert all(w.intensity_scalar == 0.85 and w.volume_modifier == 1.0 for w in base)
        assert all(w.intensity_scalar == 0.9 and w.volume_modifier == 0.5 for w in taper)

    def test_no_two_key_sessions_on_one_day(self, manual_plan, store):
        per_day = defaultdict(list)
        for workout in plan_workouts(store, manual_plan.id):
            per_day[workout.scheduled_date].append(workout.priority_level)
        for priorities in per_day.values():
            assert priorities.count(2) <= 1

    def test_first_week_is_materialized(self, manual_plan, store):
        week_one = [w for w in plan_workouts(store, manual_plan.id) if w.week_number == 1]
        sweetspot = next(w for w in week_one if w.template_id == "bike-sweetspot")
        assert sweetspot.priority_level == 2
        assert sweetspot.structure["steps"][1]["target_power"] == 191

        long_ride = next(w for w in week_one if w.template_id == "bike-long")
        assert long_ride.priority_level == 1
        assert long_ride.scheduled_date == PLAN_START + timedelta(days=5)
        assert long_ride.total_duration == 8400

    def test_race_plan_length(self, engine, manual_plan, store):
        engine.add_race("spring-70", "Spring 70.3", date(2025, 6, 1), "70.3")
        plan = engine.create_plan("athlete", race_id="spring-70")

        assert plan.total_weeks == 12
        assert plan.race_date == date(2025, 6, 1)
        assert plan.plan_type == "race"
        workouts = plan_workouts(store, plan.id)
        assert all(w.scheduled_date < date(2025, 6, 1) for w in workouts)
        assert len(workouts) == 12 * 7 - 1

    def test_midweek_race_leaves_race_day_free(self, engine, manual_plan, store):
        engine.add_race("wednesday", "Wednesday Sprint", date(2025, 4, 9), "sprint")
        plan = engine.create_plan("athlete", race_id="wednesday")
        assert plan.total_weeks == 5

        workouts = plan_workouts(store, plan.id)
        assert all(w.scheduled_date < date(2025, 4, 9) for w in workouts)
        race_week = sorted(w.scheduled_date for w in workouts if w.week_number == 5)
        assert race_week == [date(2025, 4, 7), date(2025, 4, 8)]
        assert len(workouts) == 4 * 7 + 2

    def test_explicit_weeks_override_race(self, engine, manual_plan):
        engine.add_race("spring-70", "Spring 70.3", date(2025, 6, 1))
        plan = engine.create_plan("athlete", race_id="spring-70", total_weeks=8)
        assert plan.total_weeks == 8

    def test_new_plan_archives_previous(self, engine, manual_plan, store):
        plan = engine.create_plan("athlete", total_weeks=6)
        with store.read() as repo:
            assert repo.get_plan(manual_plan.id).status == "archived"
            assert repo.get_active_plan("athlete").id == plan.id

    def test_maintenance_plan_without_race(self, engine, manual_biometrics, store):
        engine.add_user("casual")
        plan = engine.complete_onboarding("casual", "manual", manual_biometrics, volume_tier=1)

        assert plan.plan_type == "maintenance"
        assert plan.total_weeks == 12
        assert set(plan.phases) == {"BASE"}
        workouts = plan_workouts(store, plan.id)
        assert {w.volume_modifier for w in workouts if w.week_number == 4} == {0.7}
        assert {w.volume_modifier for w in workouts if w.week_number == 5} == {1.0}

    def test_tier_derived_from_experience(self, engine, manual_biometrics):
        engine.add_user("competitor", experience_level="competitor")
        plan = engine.complete_onboarding("competitor", "manual", manual_biometrics, total_weeks=4)
        assert plan.volume_tier == 3


class TestPlanValidation:
    """Test rejected plan requests."""

    def test_race_in_the_past(self, engine, manual_plan):
        engine.add_race("old", "Old Race", date(2025, 3, 1))
        with pytest.raises(ValidationError):
            engine.create_plan("athlete", race_id="old")

    def test_race_too_soon(self, engine, manual_plan):
        engine.add_race("soon", "Soon Race", date(2025, 3, 8))
        with pytest.raises(ValidationError):
            engine.create_plan("athlete", race_id="soon")

    def test_needs_race_or_weeks(self, engine, manual_plan):
        with pytest.raises(ValidationError):
            engine.create_plan("athlete")

    def test_plan_length_bounds(self, engine, manual_plan):
        with pytest.raises(ValidationError):
            engine.create_plan("athlete", total_weeks=60)

    def test_unknown_race(self, engine, manual_plan):
        with pytest.raises(NotFoundError):
            engine.create_plan("athlete", race_id="nope")

    def test_concurrent_creation_conflicts(self, engine, manual_plan, store):
        with store.user_lock("athlete"):
            with pytest.raises(ConflictError):
                engine.create_plan("athlete", total_weeks=8)
