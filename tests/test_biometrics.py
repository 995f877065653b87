"""Tests for biometric scalar calculations."""

from datetime import date

import pytest

from adaptive_training.engine.biometrics import (
    KARVONEN,
    STANDARD,
    age_from_dob,
    calculate_css,
    calculate_ftp,
    calculate_threshold_pace,
    format_pace,
    heart_rate_zones,
    max_heart_rate,
    round_half_up,
    target_hr_for_zone,
    volume_tier_for_experience,
    watts_per_kg,
)
from adaptive_training.errors import ComputationError, ValidationError


class TestScalarFormulas:
    """Test the three engine scalar formulas."""

    def test_css_from_400m(self):
        assert calculate_css(400) == 103.0
        assert calculate_css(360) == 93.0
        assert calculate_css(401) == 103.25

    def test_ftp_from_20min_power(self):
        assert calculate_ftp(263) == 250
        assert calculate_ftp(200) == 190
        assert calculate_ftp(230) == 219

    def test_threshold_pace_from_mile(self):
        assert calculate_threshold_pace(420) == 483
        assert calculate_threshold_pace(360) == 414

    @pytest.mark.parametrize("formula", [calculate_css, calculate_ftp, calculate_threshold_pace])
    def test_rejects_non_positive_input(self, formula):
        with pytest.raises(ValidationError):
            formula(0)
        with pytest.raises(ValidationError):
            formula(-10)

    def test_round_half_up(self):
        assert round_half_up(212.5) == 213
        assert round_half_up(2.5) == 3
        assert round_half_up(2.49) == 2


class TestHeartRate:
    """Test max heart rate and zone derivation."""

    def test_age_is_birthday_aware(self):
        dob = date(1990, 6, 15)
        assert age_from_dob(dob, date(2025, 6, 14)) == 34
        assert age_from_dob(dob, date(2025, 6, 15)) == 35

    def test_max_hr_prefers_measured_value(self):
        assert max_heart_rate(185, date(1990, 6, 15), date(2025, 1, 1)) == 185

    def test_max_hr_from_age(self):
        assert max_heart_rate(None, date(1990, 6, 15), date(2025, 1, 1)) == 220 - 34

    def test_max_hr_requires_input(self):
        with pytest.raises(ComputationError):
            max_heart_rate(None, None)

    def test_standard_zones(self):
        zones, method = heart_rate_zones(190)
        assert method == STANDARD
        assert zones[1] == (95, 114)
        assert zones[2] == (114, 143)
        assert zones[4] == (162, 181)
        assert zones[5] == (181, 190)

    def test_karvonen_selected_with_resting_hr(self):
        zones, method = heart_rate_zones(190, 50)
        assert method == KARVONEN
        assert zones[1] == (120, 134)
        assert zones[2] == (134, 155)
        assert zones[3] == (155, 169)
        assert zones[4] == (169, 183)
        assert zones[5] == (183, 190)

    def test_zone_midpoint(self):
        zones, _ = heart_rate_zones(190, 50)
        assert target_hr_for_zone(zones, 2) == 145
        assert target_hr_for_zone({}, 2) is None

    def test_resting_above_max_rejected(self):
        with pytest.raises(ValidationError):
            heart_rate_zones(150, 160)


class TestUtilities:
    """Test formatting and mapping helpers."""

    def test_format_pace(self):
        assert format_pace(483) == "8:03/mi"
        assert format_pace(103.0, "100m") == "1:43/100m"

    def test_watts_per_kg(self):
        assert watts_per_kg(250, 70) == 3.57
        assert watts_per_kg(250, 0) == 0.0

    def test_experience_mapping(self):
        assert volume_tier_for_experience("finisher") == 1
        assert volume_tier_for_experience("Competitor") == 3
        assert volume_tier_for_experience("intermediate") == 2
        assert volume_tier_for_experience(None) == 2
        assert volume_tier_for_experience("unknown") == 2
