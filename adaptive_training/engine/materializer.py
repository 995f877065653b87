"""Workout materialization.

Binds a template, a user's scalars and the per-workout modifiers into a
concrete structure with absolute per-step targets:

    target = coefficient x scalar x intensity_scalar

Power targets scale directly. Pace targets (swim CSS, run threshold pace)
are time per distance, so the intensity scalar divides them: a scalar
below 1.0 always yields an easier, slower pace. Steps whose scalar is not
known fall back to a zone-only target instead of failing.
"""

import logging
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple

from ..config import config
from .biometrics import round_half_up, target_hr_for_zone
from .templates import CssTarget, FtpTarget, TemplateStep, ThresholdPaceTarget, ZoneTarget, parse_steps

logger = logging.getLogger(__name__)

PACE_UNITS = {"swim": "100m", "run": "mi"}


@dataclass(frozen=True)
class MaterializedStep:
    kind: str
    duration: int
    zone: int
    description: Optional[str] = None
    target_rpe: Optional[int] = None
    target_power: Optional[int] = None
    target_power_range: Optional[Tuple[int, int]] = None
    target_pace: Optional[int] = None
    target_pace_range: Optional[Tuple[int, int]] = None
    pace_unit: Optional[str] = None
    target_hr: Optional[int] = None
    target_hr_range: Optional[Tuple[int, int]] = None
    coefficient: Optional[float] = None

    @property
    def is_zone_only(self) -> bool:
        return (self.target_power is None and self.target_power_range is None
                and self.target_pace is None and self.target_pace_range is None)

    def to_dict(self) -> Dict:
        data = {"type": self.kind, "duration": self.duration, "target_zone": self.zone}
        for key in ("description", "target_rpe", "target_power", "target_pace", "pace_unit",
                    "target_hr", "coefficient"):
            value = getattr(self, key)
            if value is not None:
                data[key] = value
        for key in ("target_power_range", "target_pace_range", "target_hr_range"):
            value = getattr(self, key)
            if value is not None:
                data[key] = list(value)
        return data


@dataclass(frozen=True)
class MaterializedWorkout:
    title: str
    discipline: str
    steps: Tuple[MaterializedStep, ...] = field(default_factory=tuple)

    @property
    def total_duration(self) -> int:
        return sum(step.duration for step in self.steps)

    def to_dict(self) -> Dict:
        return {
            "title": self.title,
            "discipline": self.discipline,
            "total_duration": self.total_duration,
            "steps": [step.to_dict() for step in self.steps],
        }


def _pace_edge(edge, threshold: float) -> float:
    kind, value = edge
    if kind == "offset":
        return threshold + value
    return threshold * value


def zone_range(discipline: str, zone: int, scalars: Dict[str, float], intensity: float) -> Optional[Tuple[int, int]]:
    """Absolute range for a zone, or None when the discipline has no scalar.

    Power ranges are (low, high) watts. Pace ranges are (slow, fast) seconds.
    """
    if discipline == "bike" and scalars.get("ftp"):
        low, high = config.BIKE_ZONE_BANDS[zone]
        ftp = scalars["ftp"]
        return round_half_up(low * ftp * intensity), round_half_up(high * ftp * intensity)
    if discipline == "run" and scalars.get("tp"):
        slow, fast = config.RUN_ZONE_BANDS[zone]
        tp = scalars["tp"]
        return (round_half_up(_pace_edge(slow, tp) / intensity),
                round_half_up(_pace_edge(fast, tp) / intensity))
    if discipline == "swim" and scalars.get("css"):
        slow, fast = config.SWIM_ZONE_BANDS[zone]
        css = scalars["css"]
        return round_half_up(css * slow / intensity), round_half_up(css * fast / intensity)
    return None


class WorkoutMaterializer:
    """Turn template steps into absolute targets for one user."""

    def __init__(self, scalars: Optional[Dict[str, float]] = None,
                 hr_zones: Optional[Dict[int, Tuple[int, int]]] = None):
        self.scalars = {k: v for k, v in (scalars or {}).items() if v}
        self.hr_zones = hr_zones or {}

    def materialize(
        self,
        title: str,
        discipline: str,
        steps: List[TemplateStep],
        intensity_scalar: float = 1.0,
        volume_modifier: float = 1.0,
        duration_scalar: float = 1.0,
        zone_cap: Optional[int] = None,
    ) -> MaterializedWorkout:
        if intensity_scalar <= 0:
            raise ValueError(f"intensity_scalar must be positive, got {intensity_scalar}")

        materialized = tuple(
            self._materialize_step(step, discipline, intensity_scalar, volume_modifier * duration_scalar, zone_cap)
            for step in steps
        )
        return MaterializedWorkout(title=title, discipline=discipline, steps=materialized)

    def _materialize_step(
        self,
        step: TemplateStep,
        discipline: str,
        intensity: float,
        duration_factor: float,
        zone_cap: Optional[int],
    ) -> MaterializedStep:
        target = step.target
        zone = step.zone
        if zone_cap is not None and zone > zone_cap:
            zone = zone_cap
            target = ZoneTarget(zone_cap)

        values = {}
        if isinstance(target, FtpTarget):
            if self.scalars.get("ftp"):
                values["target_power"] = round_half_up(target.pct * self.scalars["ftp"] * intensity)
                values["coefficient"] = target.pct
            else:
                logger.debug("No FTP available, using zone-only target")
                target = ZoneTarget(zone)
        elif isinstance(target, (CssTarget, ThresholdPaceTarget)):
            scalar = self.scalars.get(target.scalar)
            if scalar:
                values["target_pace"] = round_half_up(target.pct * scalar / intensity)
                values["pace_unit"] = "100m" if isinstance(target, CssTarget) else "mi"
                values["coefficient"] = target.pct
            else:
                logger.debug(f"No {target.scalar} available, using zone-only target")
                target = ZoneTarget(zone)

        if isinstance(target, ZoneTarget):
            absolute = zone_range(discipline, zone, self.scalars, intensity)
            if absolute is not None:
                if discipline == "bike":
                    values["target_power_range"] = absolute
                else:
                    values["target_pace_range"] = absolute
                    values["pace_unit"] = PACE_UNITS[discipline]

        if zone in self.hr_zones:
            values["target_hr_range"] = tuple(self.hr_zones[zone])
            values["target_hr"] = target_hr_for_zone(self.hr_zones, zone)

        return MaterializedStep(
            kind=step.kind,
            duration=max(1, round_half_up(step.duration * duration_factor)),
            zone=zone,
            description=step.description,
            target_rpe=step.target_rpe,
            **values,
        )


def materialize_workout(workout, template, scalars, hr_zones) -> MaterializedWorkout:
    """Re-materialize a stored Workout from its template and modifiers."""
    result = WorkoutMaterializer(scalars, hr_zones).materialize(
        title=template.name,
        discipline=template.discipline,
        steps=parse_steps(template.steps),
        intensity_scalar=workout.intensity_scalar or 1.0,
        volume_modifier=workout.volume_modifier or 1.0,
        duration_scalar=workout.duration_scalar or 1.0,
        zone_cap=workout.zone_cap,
    )
    workout.title = result.title
    workout.structure = result.to_dict()
    return result
