"""Tests for the calibration week and test result processing."""

from datetime import timedelta

import pytest

from adaptive_training.engine.calibration import recovery_template
from adaptive_training.errors import ValidationError

from .conftest import PLAN_START


def week_workouts(store, plan_id, week_number):
    with store.read() as repo:
        return [w for w in repo.workouts_for_plan(plan_id) if w.week_number == week_number]


def find(workouts, template_id):
    return [w for w in workouts if w.template_id == template_id]


class TestCalibrationWeek:
    """Test generation of the first week for calibration users."""

    def test_pending_until_results(self, calibration_plan, store):
        with store.read() as repo:
            assert repo.get_user("rookie").onboarding_status == "BIOMETRICS_PENDING"
            assert repo.get_scalars("rookie") == {}

    def test_three_tests_then_recovery(self, calibration_plan, store):
        workouts = week_workouts(store, calibration_plan.id, 1)
        tests = {w.calibration_test: w for w in workouts if w.is_calibration_test}

        assert set(tests) == {"swim_400m", "bike_20min", "run_1mile"}
        assert tests["swim_400m"].scheduled_date == PLAN_START
        assert tests["bike_20min"].scheduled_date == PLAN_START + timedelta(days=2)
        assert tests["run_1mile"].scheduled_date == PLAN_START + timedelta(days=4)
        assert all(w.priority_level == 2 for w in tests.values())

        recovery = [w for w in workouts if not w.is_calibration_test]
        assert [w.scheduled_date.weekday() for w in recovery] == [5, 6]
        assert [w.template_id for w in recovery] == ["bike-recovery", "run-easy"]
        assert all(w.priority_level == 3 for w in recovery)

    def test_tests_carry_zone_and_heart_rate_only(self, calibration_plan, store):
        bike_test = next(w for w in week_workouts(store, calibration_plan.id, 1) if w.calibration_test == "bike_20min")
        main = bike_test.structure["steps"][3]
        assert main["target_zone"] == 4
        assert "target_power" not in main
        assert "target_power_range" not in main
        # 220 - 34 with no resting heart rate
        assert main["target_hr_range"] == [158, 177]

    def test_recovery_template_choice(self, calibration_plan, store):
        with store.read() as repo:
            templates = repo.list_templates()
        assert recovery_template(templates, "bike").id == "bike-recovery"
        assert recovery_template(templates, "run").id == "run-easy"
        assert recovery_template(templates, "brick") is None


class TestCalibrationResults:
    """Test applying time trial results."""

    def test_swim_result_updates_css_and_rematerializes(self, engine, calibration_plan, store):
        before = find(week_workouts(store, calibration_plan.id, 2), "swim-css")[0]
        assert "target_pace" not in before.structure["steps"][1]

        result = engine.submit_calibration_result("rookie", "swim_400m", 400)

        assert result.scalar == "css"
        assert result.value == 103.0
        assert result.rematerialized == 14
        assert not result.onboarding_completed

        after = find(week_workouts(store, calibration_plan.id, 2), "swim-css")[0]
        assert after.structure["steps"][1]["target_pace"] == 121
        with store.read() as repo:
            assert repo.get_scalars("rookie") == {"css": 103.0}
            assert repo.get_user("rookie").onboarding_status == "BIOMETRICS_PENDING"

    def test_result_completes_the_test_workout(self, engine, calibration_plan, store):
        engine.submit_calibration_result("rookie", "bike_20min", 263)
        bike_test = next(w for w in week_workouts(store, calibration_plan.id, 1) if w.calibration_test == "bike_20min")
        assert bike_test.status == "completed"

    def test_other_disciplines_untouched(self, engine, calibration_plan, store):
        engine.submit_calibration_result("rookie", "swim_400m", 400)
        sweetspot = find(week_workouts(store, calibration_plan.id, 2), "bike-sweetspot")[0]
        assert "target_power" not in sweetspot.structure["steps"][1]

    def test_all_three_complete_onboarding(self, engine, notifier, calibration_plan, store):
        engine.submit_calibration_result("rookie", "swim_400m", 400)
        engine.submit_calibration_result("rookie", "bike_20min", 263)
        result = engine.submit_calibration_result("rookie", "run_1mile", 420)

        assert result.value == 483
        assert result.onboarding_completed
        assert notifier.sent == [("calibration_complete", "rookie")]
        with store.read() as repo:
            assert repo.get_user("rookie").onboarding_status == "COMPLETED"
            assert repo.get_scalars("rookie") == {"css": 103.0, "ftp": 250, "tp": 483}

        # A retest refreshes the scalar without re-completing onboarding
        again = engine.submit_calibration_result("rookie", "bike_20min", 280)
        assert again.value == 266
        assert not again.onboarding_completed
        assert len(notifier.sent) == 1

    def test_unknown_test_type(self, engine, calibration_plan):
        with pytest.raises(ValidationError):
            engine.submit_calibration_result("rookie", "row_2k", 420)

    def test_non_positive_value(self, engine, calibration_plan, store):
        with pytest.raises(ValidationError):
            engine.submit_calibration_result("rookie", "run_1mile", 0)
        with store.read() as repo:
            assert repo.get_scalars("rookie") == {}
