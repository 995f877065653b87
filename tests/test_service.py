"""Tests for onboarding and the engine facade."""

from datetime import date

import pytest

from adaptive_training.engine.notifications import Notifier, send
from adaptive_training.engine.service import ManualBiometrics
from adaptive_training.errors import ConflictError, NotFoundError, ValidationError

from .conftest import RecordingNotifier


class TestOnboarding:
    """Test the onboarding fork."""

    def test_manual_onboarding_completes(self, manual_plan, store):
        with store.read() as repo:
            user = repo.get_user("athlete")
            assert user.onboarding_status == "COMPLETED"
            assert user.calibration_method == "manual"
            assert repo.get_scalars("athlete") == {"css": 103.0, "ftp": 250, "tp": 483}
            assert repo.get_active_plan("athlete").id == manual_plan.id

    def test_karvonen_zones_stored(self, manual_plan, store):
        with store.read() as repo:
            zones = repo.get_heart_rate_zones("athlete")
        assert zones[2] == (134, 155)
        assert zones[5] == (183, 190)

    def test_manual_without_all_scalars_is_pending(self, engine, store):
        engine.add_user("partial")
        engine.complete_onboarding("partial", "manual", ManualBiometrics(functional_threshold_power=250),
                                   total_weeks=4)
        with store.read() as repo:
            assert repo.get_user("partial").onboarding_status == "BIOMETRICS_PENDING"
            assert repo.get_scalars("partial") == {"ftp": 250}
            assert repo.get_heart_rate_zones("partial") == {}

    def test_calibration_ignores_manual_scalars(self, engine, manual_biometrics, store):
        engine.add_user("tester")
        engine.complete_onboarding("tester", "calibration_week", manual_biometrics, total_weeks=4)
        with store.read() as repo:
            assert repo.get_scalars("tester") == {}
            assert repo.get_biometrics("tester").max_heart_rate == 190

    def test_rejects_bad_input(self, engine):
        engine.add_user("u1")
        with pytest.raises(ValidationError):
            engine.complete_onboarding("u1", "guess", total_weeks=4)
        with pytest.raises(ValidationError):
            engine.complete_onboarding("u1", "manual", volume_tier=4, total_weeks=4)
        with pytest.raises(ValidationError):
            engine.complete_onboarding("u1", "manual", ManualBiometrics(functional_threshold_power=-5),
                                       total_weeks=4)

    def test_unknown_user(self, engine):
        with pytest.raises(NotFoundError):
            engine.complete_onboarding("ghost", "manual", total_weeks=4)

    def test_onboarding_with_race(self, engine, manual_biometrics):
        engine.add_user("racer")
        engine.add_race("olympic", "City Olympic", date(2025, 5, 4), "olympic")
        plan = engine.complete_onboarding("racer", "manual", manual_biometrics, race_id="olympic")
        assert plan.race_id == "olympic"
        assert plan.total_weeks == 8


class TestReferenceData:
    """Test user, race and heart rate updates."""

    def test_duplicate_user_and_race(self, engine):
        engine.add_user("u1")
        with pytest.raises(ConflictError):
            engine.add_user("u1")
        engine.add_race("r1", "Race", date(2025, 9, 1))
        with pytest.raises(ConflictError):
            engine.add_race("r1", "Race", date(2025, 9, 1))

    def test_update_heart_rate_recomputes_zones(self, engine, manual_plan):
        zones = engine.update_heart_rate("athlete", max_hr=200)
        assert zones[5] == (193, 200)

    def test_new_user_has_training_state(self, engine):
        engine.add_user("u1")
        status = engine.fatigue_status("u1")
        assert status.strikes == 0
        assert status.load_ratio == 0.0


class TestNotifications:
    """Test fire-and-forget notification delivery."""

    def test_failures_are_swallowed(self):
        assert not send(RecordingNotifier(fail=True), "adaptation_triggered", "u1")

    def test_default_notifier_logs(self, caplog):
        with caplog.at_level("INFO"):
            assert send(Notifier(), "calibration_complete", "u1")
        assert "u1" in caplog.text
