"""Template step model.

A template step expresses its intensity as exactly one target: a fraction of
one of the three scalars, or a plain zone number.
"""

from dataclasses import dataclass
from typing import Dict, List, Optional, Union

from ..errors import ValidationError


@dataclass(frozen=True)
class FtpTarget:
    """Fraction of functional threshold power."""

    pct: float
    scalar = "ftp"


@dataclass(frozen=True)
class CssTarget:
    """Fraction of critical swim speed (pace, larger is slower)."""

    pct: float
    scalar = "css"


@dataclass(frozen=True)
class ThresholdPaceTarget:
    """Fraction of threshold run pace (pace, larger is slower)."""

    pct: float
    scalar = "tp"


@dataclass(frozen=True)
class ZoneTarget:
    """Zone-only target, 1-5."""

    zone: int
    scalar = None


StepTarget = Union[FtpTarget, CssTarget, ThresholdPaceTarget, ZoneTarget]

COEFFICIENT_KEYS = {
    "percent_ftp": FtpTarget,
    "percent_css": CssTarget,
    "percent_tp": ThresholdPaceTarget,
}

STEP_KINDS = ("warmup", "main", "interval", "rest", "cooldown")


def default_zone(kind: str) -> int:
    """Zone implied by the step kind when a template gives none."""
    if kind in ("warmup", "cooldown", "rest"):
        return 1
    if kind in ("main", "interval"):
        return 4
    return 2


@dataclass(frozen=True)
class TemplateStep:
    kind: str
    duration: int  # seconds
    target: StepTarget
    zone: int
    target_rpe: Optional[int] = None
    description: Optional[str] = None

    @property
    def scalar(self) -> Optional[str]:
        return self.target.scalar


def parse_step(raw: Dict) -> TemplateStep:
    """Build a TemplateStep from its stored JSON form."""
    kind = raw.get("type", "main")
    duration = raw.get("duration")
    if not isinstance(duration, (int, float)) or duration <= 0:
        raise ValidationError(f"Template step needs a positive duration: {raw!r}")

    zone = raw.get("target_zone") or default_zone(kind)
    if zone not in (1, 2, 3, 4, 5):
        raise ValidationError(f"Template step zone must be 1-5, got {zone!r}")

    coefficients = [key for key in COEFFICIENT_KEYS if raw.get(key) is not None]
    if len(coefficients) > 1:
        raise ValidationError(f"Template step has more than one coefficient: {coefficients}")

    if coefficients:
        key = coefficients[0]
        pct = float(raw[key])
        if pct <= 0:
            raise ValidationError(f"{key} must be positive, got {pct}")
        target = COEFFICIENT_KEYS[key](pct)
    else:
        target = ZoneTarget(zone)

    return TemplateStep(
        kind=kind,
        duration=int(duration),
        target=target,
        zone=zone,
        target_rpe=raw.get("target_rpe"),
        description=raw.get("description"),
    )


def parse_steps(raw_steps: List[Dict]) -> List[TemplateStep]:
    if not raw_steps:
        raise ValidationError("Template has no steps")
    return [parse_step(raw) for raw in raw_steps]


def max_zone(steps: List[TemplateStep]) -> int:
    return max(step.zone for step in steps)
