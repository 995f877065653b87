"""Configuration management for the adaptive training engine."""

import os
from typing import Dict, List
from dotenv import load_dotenv

load_dotenv()


class Config:
    """Application configuration."""

    # Database
    DATABASE_URL: str = os.getenv("DATABASE_URL", "sqlite:///./adaptive_training.db")
    STORE_TIMEOUT_SECONDS: float = float(os.getenv("STORE_TIMEOUT_SECONDS", "5"))
    STORE_RETRY_DELAY: float = float(os.getenv("STORE_RETRY_DELAY", "0.2"))  # seconds before the single retry

    # Application
    LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO")

    # Plan generation
    DEFAULT_PLAN_WEEKS: int = int(os.getenv("DEFAULT_PLAN_WEEKS", "12"))
    MAX_PLAN_WEEKS: int = int(os.getenv("MAX_PLAN_WEEKS", "52"))
    DEFAULT_VOLUME_TIER: int = int(os.getenv("DEFAULT_VOLUME_TIER", "2"))
    PHASE_PROPORTIONS: str = os.getenv("PHASE_PROPORTIONS", "BASE:0.30,BUILD:0.40,PEAK:0.15,TAPER:0.15")
    TRAINING_REST_DAYS: str = os.getenv("TRAINING_REST_DAYS", "")  # Comma-separated days (0=Mon, 6=Sun)

    EXPERIENCE_TIERS = {
        "finisher": 1,
        "beginner": 1,
        "intermediate": 2,
        "competitor": 3,
        "advanced": 3,
    }

    # Volume tiers (weekly hours and sessions per discipline)
    VOLUME_TIERS = {
        1: {"min_weekly_hours": 4, "max_weekly_hours": 6,
            "swim": 1, "bike": 1, "run": 1, "strength": 0, "brick": 1},
        2: {"min_weekly_hours": 7, "max_weekly_hours": 10,
            "swim": 2, "bike": 2, "run": 2, "strength": 1, "brick": 0},
        3: {"min_weekly_hours": 11, "max_weekly_hours": 15,
            "swim": 3, "bike": 3, "run": 3, "strength": 2, "brick": 1},
    }

    # Phase modifiers
    PHASE_CONFIGS = {
        "BASE": {"zone_focus": "Zone 2", "intensity_modifier": 0.85, "volume_modifier": 1.0},
        "BUILD": {"zone_focus": "Zone 3/4", "intensity_modifier": 1.0, "volume_modifier": 0.9},
        "PEAK": {"zone_focus": "Zone 5", "intensity_modifier": 1.1, "volume_modifier": 0.8},
        "TAPER": {"zone_focus": "Zone 2/3", "intensity_modifier": 0.9, "volume_modifier": 0.5},
    }

    # Target template difficulty per phase and priority level
    PHASE_DIFFICULTY = {
        "BASE": {1: 2, 2: 3, 3: 1},
        "BUILD": {1: 3, 2: 4, 3: 2},
        "PEAK": {1: 3, 2: 5, 3: 2},
        "TAPER": {1: 2, 2: 3, 3: 1},
    }

    # Maintenance (no race) 4-week pattern: 3 load weeks, 1 recovery week
    MAINTENANCE_VOLUME_PATTERN = [1.0, 1.0, 1.0, 0.7]

    # Heart rate zone bands (fraction of max HR or heart rate reserve)
    HR_ZONE_BANDS = {
        1: (0.50, 0.60),
        2: (0.60, 0.75),
        3: (0.75, 0.85),
        4: (0.85, 0.95),
        5: (0.95, 1.00),
    }

    # Bike zone bands (fraction of FTP), upper edges 55/75/90/105/120%
    BIKE_ZONE_BANDS = {
        1: (0.0, 0.55),
        2: (0.56, 0.75),
        3: (0.76, 0.90),
        4: (0.91, 1.05),
        5: (1.06, 1.20),
    }

    # Run zone bands relative to threshold pace, (slow edge, fast edge).
    # ("offset", s) adds seconds per mile, ("pct", f) multiplies threshold pace.
    RUN_ZONE_BANDS = {
        1: (("offset", 150), ("offset", 120)),
        2: (("offset", 90), ("offset", 60)),
        3: (("offset", 45), ("offset", 20)),
        4: (("offset", 0), ("pct", 0.95)),
        5: (("pct", 0.95), ("pct", 0.85)),
    }

    # Swim zone bands (fraction of CSS), (slow edge, fast edge)
    SWIM_ZONE_BANDS = {
        1: (1.25, 1.15),
        2: (1.15, 1.05),
        3: (1.05, 1.00),
        4: (1.05, 0.95),
        5: (0.95, 0.85),
    }

    # Calibration formulas
    CSS_FADE_OFFSET: float = 3.0  # seconds per 100m
    FTP_FACTOR: float = 0.95
    THRESHOLD_PACE_FACTOR: float = 1.15

    # Adaptation engine (2-strike rule)
    FATIGUE_STRIKE_THRESHOLD: int = int(os.getenv("FATIGUE_STRIKE_THRESHOLD", "2"))
    RPE_STRIKE_MARGIN: int = int(os.getenv("RPE_STRIKE_MARGIN", "2"))
    INTENSITY_CUT_SCALAR: float = float(os.getenv("INTENSITY_CUT_SCALAR", "0.85"))
    INTENSITY_CUT_WORKOUTS: int = int(os.getenv("INTENSITY_CUT_WORKOUTS", "2"))
    VOLUME_CUT_MULTIPLIER: float = float(os.getenv("VOLUME_CUT_MULTIPLIER", "0.5"))
    RECOVERY_ZONE_CAP: int = int(os.getenv("RECOVERY_ZONE_CAP", "2"))
    POSITIVE_TREND_COMPLETES: int = int(os.getenv("POSITIVE_TREND_COMPLETES", "5"))
    STRIKE_SKIP_REASONS = ("too_tired", "sick")

    # Training load accumulators (days)
    ACUTE_LOAD_DAYS: float = float(os.getenv("ACUTE_LOAD_DAYS", "7"))
    CHRONIC_LOAD_DAYS: float = float(os.getenv("CHRONIC_LOAD_DAYS", "42"))
    DEFAULT_SESSION_RPE: int = 5

    # Priority scheduler
    BUMP_SEARCH_DAYS: int = int(os.getenv("BUMP_SEARCH_DAYS", "3"))
    SWEEP_MAX_WORKERS: int = int(os.getenv("SWEEP_MAX_WORKERS", "1"))
    USER_LOCK_TIMEOUT: float = float(os.getenv("USER_LOCK_TIMEOUT", "10"))

    @classmethod
    def get_phase_proportions(cls) -> Dict[str, float]:
        """Parse phase proportions in BASE/BUILD/PEAK/TAPER order."""
        proportions = {"BASE": 0.0, "BUILD": 0.0, "PEAK": 0.0, "TAPER": 0.0}
        for item in cls.PHASE_PROPORTIONS.split(","):
            if ":" not in item:
                continue
            name, value = item.split(":", 1)
            name = name.strip().upper()
            if name not in proportions:
                continue
            try:
                proportions[name] = max(0.0, float(value))
            except ValueError:
                continue

        total = sum(proportions.values())
        if total <= 0:
            return {"BASE": 0.30, "BUILD": 0.40, "PEAK": 0.15, "TAPER": 0.15}
        return {phase: value / total for phase, value in proportions.items()}

    @classmethod
    def get_training_rest_days(cls) -> List[int]:
        """Parse and return list of rest days for normal training weeks.

        Returns:
            List of integers representing rest days (0=Monday, 6=Sunday)
        """
        rest_days = []
        for day_str in cls.TRAINING_REST_DAYS.split(","):
            try:
                day = int(day_str.strip())
            except ValueError:
                continue
            if 0 <= day <= 6:
                rest_days.append(day)
        return rest_days

    @classmethod
    def get_volume_tier(cls, tier: int) -> Dict:
        """Get the volume tier configuration, falling back to the default tier."""
        return cls.VOLUME_TIERS.get(tier, cls.VOLUME_TIERS[cls.DEFAULT_VOLUME_TIER])

    @classmethod
    def get_phase_config(cls, phase: str) -> Dict:
        """Get intensity and volume modifiers for a phase."""
        return cls.PHASE_CONFIGS[phase]


config = Config()
