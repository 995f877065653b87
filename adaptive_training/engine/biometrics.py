"""Biometric scalar calculations.

Pure functions converting raw test results into the three engine scalars
(critical swim speed, functional threshold power, threshold run pace) and
deriving heart rate zones. Rounding follows the half-up convention used by
the athlete-facing apps, so 212.5 W becomes 213 W.
"""

import math
from datetime import date
from typing import Dict, Optional, Tuple

from ..config import config
from ..errors import ComputationError, ValidationError

STANDARD = "STANDARD"
KARVONEN = "KARVONEN"


def round_half_up(value: float) -> int:
    """Round to the nearest integer, halves up.

    Values are first trimmed to 9 decimals so that float noise such as
    218.49999999999997 (230 x 0.95) still rounds as a half.
    """
    return int(math.floor(round(value, 9) + 0.5))


def _require_positive(value, name: str) -> float:
    if value is None or value <= 0:
        raise ValidationError(f"{name} must be a positive number, got {value!r}")
    return value


def calculate_css(time_400m: float) -> float:
    """Critical swim speed in seconds per 100m from a 400m time trial.

    The fixed offset accounts for fade over longer distances.
    """
    _require_positive(time_400m, "time_400m")
    return time_400m / 4 + config.CSS_FADE_OFFSET


def calculate_ftp(avg_power_20min: float) -> int:
    """Functional threshold power in watts from a 20-minute power test."""
    _require_positive(avg_power_20min, "avg_power_20min")
    return round_half_up(avg_power_20min * config.FTP_FACTOR)


def calculate_threshold_pace(time_1mile: float) -> int:
    """Threshold run pace in seconds per mile from a 1-mile time trial."""
    _require_positive(time_1mile, "time_1mile")
    return round_half_up(time_1mile * config.THRESHOLD_PACE_FACTOR)


def age_from_dob(dob: date, today: Optional[date] = None) -> int:
    """Age in whole years, decremented until the birthday has passed this year."""
    today = today or date.today()
    age = today.year - dob.year
    if (today.month, today.day) < (dob.month, dob.day):
        age -= 1
    return age


def max_heart_rate(
    provided: Optional[int] = None,
    dob: Optional[date] = None,
    today: Optional[date] = None,
) -> int:
    """User supplied max HR, else the 220 - age estimate."""
    if provided and provided > 0:
        return int(provided)
    if dob is None:
        raise ComputationError("Max heart rate requires either a measured value or a date of birth")
    return 220 - age_from_dob(dob, today)


def heart_rate_zones(max_hr: int, resting_hr: Optional[int] = None) -> Tuple[Dict[int, Tuple[int, int]], str]:
    """Five heart rate zones as {zone: (min_bpm, max_bpm)} and the method used.

    Karvonen (heart rate reserve) is selected whenever a resting heart rate is
    known, otherwise zones are plain percentages of max HR. Zone 5 always
    tops out at max HR.
    """
    if not max_hr or max_hr <= 0:
        raise ComputationError("Heart rate zones require a max heart rate")

    if resting_hr and resting_hr > 0:
        if resting_hr >= max_hr:
            raise ValidationError("Resting heart rate must be below max heart rate")
        method = KARVONEN
        reserve = max_hr - resting_hr

        def bpm(pct):
            return round_half_up(reserve * pct + resting_hr)
    else:
        method = STANDARD

        def bpm(pct):
            return round_half_up(max_hr * pct)

    zones = {}
    for zone, (low, high) in sorted(config.HR_ZONE_BANDS.items()):
        zones[zone] = (bpm(low), max_hr if zone == 5 else bpm(high))
    return zones, method


def target_hr_for_zone(zones: Dict[int, Tuple[int, int]], zone: int) -> Optional[int]:
    """Single-number heart rate target: the midpoint of the zone."""
    if zone not in zones:
        return None
    low, high = zones[zone]
    return round_half_up((low + high) / 2)


def format_pace(seconds: float, unit: str = "mi") -> str:
    """Format a pace in seconds as m:ss/unit."""
    seconds = round_half_up(seconds)
    minutes, secs = divmod(seconds, 60)
    return f"{minutes}:{secs:02d}/{unit}"


def watts_per_kg(ftp: float, weight_kg: float) -> float:
    """Power to weight ratio, 0.0 when weight is unknown."""
    if not weight_kg or weight_kg <= 0:
        return 0.0
    return round(ftp / weight_kg, 2)


def volume_tier_for_experience(experience: Optional[str]) -> int:
    """Map an experience level to a volume tier, defaulting to the middle tier."""
    if not experience:
        return config.DEFAULT_VOLUME_TIER
    return config.EXPERIENCE_TIERS.get(experience.strip().lower(), config.DEFAULT_VOLUME_TIER)
