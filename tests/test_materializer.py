"""Tests for template parsing and workout materialization."""

import pytest

from adaptive_training.engine.biometrics import heart_rate_zones
from adaptive_training.engine.library import TEMPLATE_LIBRARY, template_rpe
from adaptive_training.engine.materializer import WorkoutMaterializer, zone_range
from adaptive_training.engine.templates import (
    CssTarget, FtpTarget, ThresholdPaceTarget, ZoneTarget, default_zone, max_zone, parse_step, parse_steps,
)
from adaptive_training.errors import ValidationError

SCALARS = {"css": 103.0, "ftp": 250, "tp": 483}


def library_steps(template_id):
    entry = next(t for t in TEMPLATE_LIBRARY if t["id"] == template_id)
    return parse_steps(entry["steps"])


class TestTemplateSteps:
    """Test parsing of stored template steps."""

    def test_coefficient_targets(self):
        assert parse_step({"type": "interval", "duration": 480, "percent_ftp": 1.0}).target == FtpTarget(1.0)
        assert parse_step({"type": "interval", "duration": 180, "percent_css": 1.0}).target == CssTarget(1.0)
        assert parse_step({"type": "interval", "duration": 480, "percent_tp": 0.95}).target == ThresholdPaceTarget(0.95)

    def test_zone_only_step_defaults_zone_from_kind(self):
        step = parse_step({"type": "warmup", "duration": 600})
        assert step.target == ZoneTarget(1)
        assert step.zone == 1
        assert default_zone("interval") == 4
        assert default_zone("anything") == 2

    def test_rejects_two_coefficients(self):
        with pytest.raises(ValidationError):
            parse_step({"type": "main", "duration": 60, "percent_ftp": 0.9, "percent_tp": 1.0})

    def test_rejects_bad_duration_and_zone(self):
        with pytest.raises(ValidationError):
            parse_step({"type": "main", "duration": 0})
        with pytest.raises(ValidationError):
            parse_step({"type": "main", "duration": 60, "target_zone": 6})
        with pytest.raises(ValidationError):
            parse_steps([])

    def test_library_templates_parse(self):
        for entry in TEMPLATE_LIBRARY:
            steps = parse_steps(entry["steps"])
            assert 1 <= max_zone(steps) <= 5

    def test_template_rpe(self):
        test_run = next(t for t in TEMPLATE_LIBRARY if t["id"] == "test-run-1mile")
        assert template_rpe(test_run["focus"], test_run["steps"]) == 9
        assert template_rpe("recovery", [{"type": "main", "duration": 60}]) == 3


class TestZoneRange:
    """Test absolute zone ranges per discipline."""

    def test_bike_power_range(self):
        assert zone_range("bike", 2, SCALARS, 1.0) == (140, 188)

    def test_run_pace_range(self):
        assert zone_range("run", 2, SCALARS, 1.0) == (573, 543)

    def test_swim_pace_range(self):
        assert zone_range("swim", 1, SCALARS, 1.0) == (129, 118)

    def test_missing_scalar(self):
        assert zone_range("bike", 2, {}, 1.0) is None
        assert zone_range("strength", 2, SCALARS, 1.0) is None


class TestWorkoutMaterializer:
    """Test binding templates to a user's scalars."""

    def setup_method(self):
        zones, _ = heart_rate_zones(190, 50)
        self.materializer = WorkoutMaterializer(SCALARS, zones)

    def test_power_target_scales_with_intensity(self):
        steps = library_steps("bike-threshold")
        full = self.materializer.materialize("Threshold", "bike", steps)
        eased = self.materializer.materialize("Threshold", "bike", steps, intensity_scalar=0.85)

        assert full.steps[1].target_power == 250
        assert full.steps[1].coefficient == 1.0
        assert eased.steps[1].target_power == 213

    def test_pace_target_slows_with_lower_intensity(self):
        steps = library_steps("run-threshold")
        full = self.materializer.materialize("Threshold", "run", steps)
        eased = self.materializer.materialize("Threshold", "run", steps, intensity_scalar=0.85)

        assert full.steps[1].target_pace == 483
        assert full.steps[1].pace_unit == "mi"
        assert eased.steps[1].target_pace == 568

    def test_css_target(self):
        result = self.materializer.materialize("CSS", "swim", library_steps("swim-css"), intensity_scalar=0.85)
        assert result.steps[1].target_pace == 121
        assert result.steps[1].pace_unit == "100m"

    def test_heart_rate_targets_attached(self):
        result = self.materializer.materialize("Threshold", "bike", library_steps("bike-threshold"))
        interval = result.steps[1]
        assert interval.target_hr_range == (169, 183)
        assert interval.target_hr == 176

    def test_zone_cap_replaces_hard_steps(self):
        result = self.materializer.materialize("Threshold", "bike", library_steps("bike-threshold"), zone_cap=2)
        interval = result.steps[1]
        assert interval.zone == 2
        assert interval.target_power is None
        assert interval.target_power_range == (140, 188)
        assert all(step.zone <= 2 for step in result.steps)

    def test_durations_scale_with_volume_and_duration(self):
        steps = library_steps("bike-long")
        result = self.materializer.materialize("Long", "bike", steps, volume_modifier=0.9, duration_scalar=0.5)
        assert [step.duration for step in result.steps] == [270, 3240, 270]
        assert result.total_duration == 3780

    def test_missing_scalar_falls_back_to_zone_only(self):
        materializer = WorkoutMaterializer({}, {})
        result = materializer.materialize("Threshold", "bike", library_steps("bike-threshold"))
        assert all(step.is_zone_only for step in result.steps)
        assert result.steps[1].zone == 4
        assert result.total_duration == 900 + 4 * 480 + 3 * 120 + 600

    def test_to_dict(self):
        data = self.materializer.materialize("Sweet Spot", "bike", library_steps("bike-sweetspot")).to_dict()
        assert data["title"] == "Sweet Spot"
        assert data["total_duration"] == 3900
        assert data["steps"][1]["target_power"] == 225
        assert data["steps"][1]["target_hr_range"] == [155, 169]

    def test_rejects_non_positive_intensity(self):
        with pytest.raises(ValueError):
            self.materializer.materialize("x", "bike", library_steps("bike-threshold"), intensity_scalar=0)
