"""Phase allocation, weekly session slots and day placement."""

from dataclasses import dataclass
from enum import Enum
from typing import Dict, List, Optional, Sequence

import numpy as np

from ..config import config
from ..db.models import WorkoutTemplate


class TrainingPhase(Enum):
    """Training phases in a periodized plan, in plan order."""

    BASE = "BASE"  # Aerobic base building
    BUILD = "BUILD"  # Increasing intensity
    PEAK = "PEAK"  # Race-specific sharpening
    TAPER = "TAPER"  # Pre-race freshening


PHASE_ORDER = [phase.value for phase in TrainingPhase]

# Template focus tags acceptable for each session role
ROLE_FOCUS = {
    "long": ("long", "endurance"),
    "key": ("intervals", "tempo"),
    "easy": ("endurance", "recovery", "technique"),
    "brick": ("brick",),
    "strength": ("strength",),
}

ROLE_PRIORITY = {"long": 1, "brick": 1, "key": 2, "easy": 3, "strength": 3}


@dataclass(frozen=True)
class SessionSlot:
    """One session to place in a week."""

    discipline: str
    role: str
    priority: int

    @property
    def is_hard(self) -> bool:
        return self.priority <= 2


def allocate_phases(total_weeks: int, proportions: Optional[Dict[str, float]] = None) -> List[str]:
    """Split the plan into BASE -> BUILD -> PEAK -> TAPER weeks.

    Weeks are allocated by largest remainder over the configured proportions.
    With four or more weeks every phase gets at least one week, taken from the
    longest phase. Shorter plans keep only the last phases (TAPER survives
    longest).
    """
    if total_weeks < 1:
        raise ValueError("total_weeks must be at least 1")

    if total_weeks < len(PHASE_ORDER):
        return PHASE_ORDER[-total_weeks:]

    proportions = proportions or config.get_phase_proportions()
    shares = np.array([proportions.get(phase, 0.0) for phase in PHASE_ORDER], dtype=float)
    shares = shares / shares.sum()

    raw = shares * total_weeks
    counts = np.floor(raw).astype(int)
    remainders = np.round(raw - counts, 9)
    leftover = total_weeks - int(counts.sum())
    for idx in np.argsort(-remainders, kind="stable")[:leftover]:
        counts[idx] += 1

    for idx in range(len(PHASE_ORDER)):
        if counts[idx] == 0:
            donor = int(np.argmax(counts))
            counts[donor] -= 1
            counts[idx] = 1

    weeks = []
    for phase, count in zip(PHASE_ORDER, counts):
        weeks.extend([phase] * int(count))
    return weeks


def maintenance_volume(week_number: int) -> float:
    """Volume multiplier for a maintenance week (3 load weeks, 1 recovery week)."""
    pattern = config.MAINTENANCE_VOLUME_PATTERN
    return pattern[(week_number - 1) % len(pattern)]


def session_slots(volume_tier: int) -> List[SessionSlot]:
    """Sessions for one week of a volume tier.

    Bike and run get a long session when they train at least twice a week;
    every endurance discipline gets one key session, the rest are easy.
    """
    tier = config.get_volume_tier(volume_tier)
    slots = []
    for discipline in ("swim", "bike", "run"):
        count = tier.get(discipline, 0)
        roles = []
        if discipline in ("bike", "run") and count >= 2:
            roles.append("long")
        if count > len(roles):
            roles.append("key")
        roles.extend(["easy"] * (count - len(roles)))
        slots.extend(SessionSlot(discipline, role, ROLE_PRIORITY[role]) for role in roles)

    slots.extend(SessionSlot("brick", "brick", ROLE_PRIORITY["brick"]) for _ in range(tier.get("brick", 0)))
    slots.extend(SessionSlot("strength", "strength", ROLE_PRIORITY["strength"])
                 for _ in range(tier.get("strength", 0)))
    return slots


def place_sessions(slots: Sequence[SessionSlot], rest_days: Sequence[int] = ()) -> List[int]:
    """Assign each slot a day offset 0-6 (Monday first).

    Greedy placement, most important sessions first, each onto the cheapest
    day. Costs penalise stacking sessions, two hard sessions on one day, a
    key session next to another key session, repeating a discipline on one
    day, long sessions on weekdays and configured rest days.
    """
    count = np.zeros(7)
    hard = np.zeros(7)
    key = np.zeros(7)
    long_ = np.zeros(7)
    disciplines: List[set] = [set() for _ in range(7)]
    weekday = np.array([1, 1, 1, 1, 1, 0, 0])
    rest = np.zeros(7)
    for day in rest_days:
        rest[day] = 1

    def neighbours(values):
        padded = np.concatenate(([0], values, [0]))
        return padded[:-2] + padded[2:]

    order = sorted(range(len(slots)), key=lambda i: (slots[i].priority, i))
    days = [0] * len(slots)
    for i in order:
        slot = slots[i]
        cost = 10 * count + 1000 * rest
        cost += 50 * np.array([slot.discipline in d for d in disciplines])
        if slot.is_hard:
            cost += 100 * hard
        if slot.priority == 2:
            cost += 100 * neighbours(key) + 20 * neighbours(long_)
        elif slot.priority == 1:
            cost += 20 * neighbours(key) + 5 * weekday

        day = int(np.argmin(cost))
        days[i] = day
        count[day] += 1
        disciplines[day].add(slot.discipline)
        if slot.is_hard:
            hard[day] += 1
        if slot.priority == 2:
            key[day] += 1
        elif slot.priority == 1:
            long_[day] += 1
    return days


def select_template(
    templates: Sequence[WorkoutTemplate],
    slot: SessionSlot,
    phase: str,
    rotation: int = 0,
) -> Optional[WorkoutTemplate]:
    """Pick the template for a slot.

    Long sessions prefer a "long" template over plain endurance. Otherwise the
    difficulty closest to the phase target wins; ties rotate with the week so
    consecutive weeks vary.
    """
    focuses = ROLE_FOCUS[slot.role]
    target = config.PHASE_DIFFICULTY[phase][slot.priority]
    candidates = [t for t in templates if t.discipline == slot.discipline and t.focus in focuses]
    if not candidates:
        return None

    def rank(template):
        focus_rank = focuses.index(template.focus) if slot.role == "long" else 0
        return (focus_rank, abs(template.difficulty_tier - target))

    best_rank = min(rank(t) for t in candidates)
    best = sorted((t for t in candidates if rank(t) == best_rank), key=lambda t: t.id)
    return best[rotation % len(best)]
