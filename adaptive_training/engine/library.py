"""Bundled workout template library."""

import json
import logging
from typing import Dict, List

from ..db.models import WorkoutTemplate
from .templates import parse_steps

logger = logging.getLogger(__name__)

# Default session RPE by template focus
FOCUS_RPE = {
    "recovery": 3,
    "technique": 4,
    "endurance": 5,
    "long": 5,
    "strength": 5,
    "tempo": 6,
    "brick": 7,
    "intervals": 8,
    "test": 9,
}


def _step(kind, duration, zone, description, **extra) -> Dict:
    step = {"type": kind, "duration": duration, "target_zone": zone, "description": description}
    step.update(extra)
    return step


def _repeat(count, work, rest) -> List[Dict]:
    steps = []
    for i in range(count):
        steps.append(dict(work))
        if i < count - 1:
            steps.append(dict(rest))
    return steps


TEMPLATE_LIBRARY: List[Dict] = [
    # Swim
    {
        "id": "swim-endurance",
        "name": "Endurance Swim",
        "discipline": "swim",
        "focus": "endurance",
        "difficulty_tier": 2,
        "description": "Building aerobic capacity in the water",
        "steps": [
            _step("warmup", 600, 1, "Easy freestyle"),
            _step("main", 1800, 2, "Steady-state swimming"),
            _step("cooldown", 300, 1, "Easy backstroke or choice"),
        ],
    },
    {
        "id": "swim-threshold",
        "name": "Threshold Intervals",
        "discipline": "swim",
        "focus": "intervals",
        "difficulty_tier": 4,
        "description": "Building speed and lactate threshold",
        "steps": [_step("warmup", 600, 1, "Easy swimming with drills")]
        + _repeat(4, _step("interval", 120, 4, "100m hard"), _step("rest", 30, 1, "Rest at wall"))
        + [_step("cooldown", 300, 1, "Easy swimming")],
    },
    {
        "id": "swim-css",
        "name": "CSS Repeats",
        "discipline": "swim",
        "focus": "intervals",
        "difficulty_tier": 3,
        "description": "Holding critical swim speed",
        "steps": [_step("warmup", 600, 1, "Easy swimming with drills")]
        + _repeat(5, _step("interval", 180, 4, "200m at CSS", percent_css=1.0),
                  _step("rest", 20, 1, "Rest at wall"))
        + [_step("cooldown", 300, 1, "Easy swimming")],
    },
    {
        "id": "swim-technique",
        "name": "Technique & Drills",
        "discipline": "swim",
        "focus": "technique",
        "difficulty_tier": 2,
        "description": "Improving swim efficiency",
        "steps": [
            _step("warmup", 400, 1, "Easy freestyle"),
            _step("main", 300, 2, "Catch-up drill"),
            _step("main", 300, 2, "Fingertip drag drill"),
            _step("main", 300, 2, "Single-arm freestyle"),
            _step("main", 600, 2, "Full stroke focus"),
            _step("cooldown", 300, 1, "Easy choice stroke"),
        ],
    },
    {
        "id": "swim-recovery",
        "name": "Recovery Swim",
        "discipline": "swim",
        "focus": "recovery",
        "difficulty_tier": 1,
        "description": "Loose, easy swimming",
        "steps": [_step("main", 1200, 1, "Easy mixed strokes")],
    },
    # Bike
    {
        "id": "bike-endurance",
        "name": "Endurance Ride",
        "discipline": "bike",
        "focus": "endurance",
        "difficulty_tier": 2,
        "description": "Building aerobic base on the bike",
        "steps": [
            _step("warmup", 600, 1, "Easy spinning"),
            _step("main", 3600, 2, "Steady endurance pace"),
            _step("cooldown", 300, 1, "Easy spin down"),
        ],
    },
    {
        "id": "bike-threshold",
        "name": "Threshold Intervals",
        "discipline": "bike",
        "focus": "intervals",
        "difficulty_tier": 4,
        "description": "Building FTP and sustainable power",
        "steps": [_step("warmup", 900, 1, "Easy spinning with accelerations")]
        + _repeat(4, _step("interval", 480, 4, "8 min at threshold", percent_ftp=1.0),
                  _step("rest", 120, 1, "Easy spinning"))
        + [_step("cooldown", 600, 1, "Easy spin down")],
    },
    {
        "id": "bike-vo2",
        "name": "VO2 Max Intervals",
        "discipline": "bike",
        "focus": "intervals",
        "difficulty_tier": 5,
        "description": "Pushing aerobic ceiling",
        "steps": [_step("warmup", 900, 1, "Progressive warmup")]
        + _repeat(4, _step("interval", 180, 5, "3 min VO2 effort", percent_ftp=1.15),
                  _step("rest", 180, 1, "Recovery spin"))
        + [_step("cooldown", 600, 1, "Easy spin down")],
    },
    {
        "id": "bike-sweetspot",
        "name": "Sweet Spot Ride",
        "discipline": "bike",
        "focus": "tempo",
        "difficulty_tier": 3,
        "description": "Sustained sub-threshold power",
        "steps": [
            _step("warmup", 600, 1, "Easy spinning"),
            _step("main", 1200, 3, "Sweet spot", percent_ftp=0.9),
            _step("rest", 300, 1, "Easy spinning"),
            _step("main", 1200, 3, "Sweet spot", percent_ftp=0.9),
            _step("cooldown", 600, 1, "Easy spin down"),
        ],
    },
    {
        "id": "bike-long",
        "name": "Long Ride",
        "discipline": "bike",
        "focus": "long",
        "difficulty_tier": 3,
        "description": "Building endurance for race distance",
        "steps": [
            _step("warmup", 600, 1, "Easy warmup"),
            _step("main", 7200, 2, "Steady endurance effort"),
            _step("cooldown", 600, 1, "Easy cool down"),
        ],
    },
    {
        "id": "bike-recovery",
        "name": "Recovery Spin",
        "discipline": "bike",
        "focus": "recovery",
        "difficulty_tier": 1,
        "description": "Flush the legs",
        "steps": [_step("main", 2700, 1, "Very easy spinning, high cadence")],
    },
    # Run
    {
        "id": "run-easy",
        "name": "Easy Run",
        "discipline": "run",
        "focus": "recovery",
        "difficulty_tier": 1,
        "description": "Recovery and aerobic maintenance",
        "steps": [_step("main", 2400, 1, "Easy conversational pace")],
    },
    {
        "id": "run-aerobic",
        "name": "Aerobic Run",
        "discipline": "run",
        "focus": "endurance",
        "difficulty_tier": 2,
        "description": "Steady aerobic running",
        "steps": [
            _step("warmup", 300, 1, "Easy jog"),
            _step("main", 2700, 2, "Steady aerobic pace"),
            _step("cooldown", 300, 1, "Easy jog"),
        ],
    },
    {
        "id": "run-tempo",
        "name": "Tempo Run",
        "discipline": "run",
        "focus": "tempo",
        "difficulty_tier": 3,
        "description": "Building lactate threshold",
        "steps": [
            _step("warmup", 600, 1, "Easy jog"),
            _step("main", 1200, 4, "Tempo effort - comfortably hard"),
            _step("cooldown", 600, 1, "Easy jog"),
        ],
    },
    {
        "id": "run-threshold",
        "name": "Threshold Repeats",
        "discipline": "run",
        "focus": "intervals",
        "difficulty_tier": 4,
        "description": "Repeats at threshold pace",
        "steps": [_step("warmup", 600, 1, "Easy jog with strides")]
        + _repeat(3, _step("interval", 480, 4, "8 min at threshold pace", percent_tp=1.0),
                  _step("rest", 120, 1, "Easy jog recovery"))
        + [_step("cooldown", 600, 1, "Easy jog")],
    },
    {
        "id": "run-intervals",
        "name": "Interval Run",
        "discipline": "run",
        "focus": "intervals",
        "difficulty_tier": 5,
        "description": "Speed development and VO2 Max",
        "steps": [_step("warmup", 600, 1, "Easy jog with strides")]
        + _repeat(4, _step("interval", 180, 5, "3 min hard"), _step("rest", 120, 1, "Easy jog recovery"))
        + [_step("cooldown", 600, 1, "Easy jog")],
    },
    {
        "id": "run-long",
        "name": "Long Run",
        "discipline": "run",
        "focus": "long",
        "difficulty_tier": 3,
        "description": "Building endurance for race day",
        "steps": [
            _step("warmup", 300, 1, "Easy start"),
            _step("main", 5400, 2, "Steady endurance pace"),
            _step("cooldown", 300, 1, "Easy finish"),
        ],
    },
    {
        "id": "run-fartlek",
        "name": "Fartlek Run",
        "discipline": "run",
        "focus": "tempo",
        "difficulty_tier": 3,
        "description": "Unstructured speed play",
        "steps": [
            _step("warmup", 600, 1, "Easy jog"),
            _step("main", 1800, 3, "Fartlek: alternate hard/easy by feel"),
            _step("cooldown", 600, 1, "Easy jog"),
        ],
    },
    # Brick
    {
        "id": "brick-bike-run",
        "name": "Bike-Run Brick",
        "discipline": "brick",
        "focus": "brick",
        "difficulty_tier": 4,
        "description": "Practicing the T2 transition",
        "steps": [
            _step("warmup", 600, 1, "Easy bike warmup"),
            _step("main", 2700, 3, "Tempo bike"),
            _step("main", 300, 1, "Quick transition"),
            _step("main", 1200, 3, "Tempo run off the bike"),
            _step("cooldown", 300, 1, "Easy jog"),
        ],
    },
    # Strength
    {
        "id": "strength-core",
        "name": "Core & Stability",
        "discipline": "strength",
        "focus": "strength",
        "difficulty_tier": 2,
        "description": "Building core strength for triathlon",
        "steps": [
            _step("warmup", 300, 1, "Dynamic stretching"),
            _step("main", 1800, 2, "Core circuit: plank, side plank, dead bug, bird dog"),
            _step("cooldown", 300, 1, "Static stretching"),
        ],
    },
    {
        "id": "strength-functional",
        "name": "Functional Strength",
        "discipline": "strength",
        "focus": "strength",
        "difficulty_tier": 3,
        "description": "Building triathlon-specific strength",
        "steps": [
            _step("warmup", 300, 1, "Dynamic warmup"),
            _step("main", 2400, 3, "Squats, lunges, deadlifts, rows, pushups"),
            _step("cooldown", 300, 1, "Foam rolling and stretching"),
        ],
    },
    # Calibration tests
    {
        "id": "test-swim-400m",
        "name": "400m Swim Time Trial",
        "discipline": "swim",
        "focus": "test",
        "difficulty_tier": 5,
        "description": "Swim 400m as fast as you can hold. Record your time.",
        "steps": [
            _step("warmup", 600, 1, "Easy swimming with a few build lengths"),
            _step("main", 420, 5, "400m time trial, all out", target_rpe=9),
            _step("rest", 180, 1, "Easy recovery"),
            _step("cooldown", 300, 1, "Easy choice stroke"),
        ],
    },
    {
        "id": "test-bike-20min",
        "name": "20-Minute Power Test",
        "discipline": "bike",
        "focus": "test",
        "difficulty_tier": 5,
        "description": "Ride 20 minutes at the highest power you can sustain. Record average power.",
        "steps": [
            _step("warmup", 600, 1, "Easy spinning"),
            _step("interval", 60, 4, "1 min opener"),
            _step("rest", 300, 1, "Easy spinning"),
            _step("main", 1200, 4, "20 min maximal sustainable effort", target_rpe=9),
            _step("cooldown", 600, 1, "Easy spin down"),
        ],
    },
    {
        "id": "test-run-1mile",
        "name": "1-Mile Time Trial",
        "discipline": "run",
        "focus": "test",
        "difficulty_tier": 5,
        "description": "Run one mile as fast as you can. Record your time.",
        "steps": [
            _step("warmup", 600, 1, "Easy jog"),
            _step("interval", 60, 3, "Strides"),
            _step("rest", 180, 1, "Walk or easy jog"),
            _step("main", 600, 5, "1 mile time trial, all out", target_rpe=9),
            _step("cooldown", 600, 1, "Easy jog"),
        ],
    },
]


def template_rpe(focus: str, steps: List[Dict]) -> int:
    """Target session RPE: the hardest step RPE, else the focus default."""
    step_rpes = [step["target_rpe"] for step in steps if step.get("target_rpe")]
    if step_rpes:
        return max(step_rpes)
    return FOCUS_RPE.get(focus, 5)


def seed_templates(session, library: List[Dict] = None) -> int:
    """Insert or refresh the bundled templates. Returns how many rows changed."""
    library = library if library is not None else TEMPLATE_LIBRARY
    changed = 0
    for entry in library:
        parse_steps(entry["steps"])
        payload = json.dumps({"steps": entry["steps"]})
        template = session.get(WorkoutTemplate, entry["id"])
        if template is None:
            template = WorkoutTemplate(id=entry["id"], version=1)
            session.add(template)
        elif template.structure_json == payload and template.name == entry["name"]:
            continue
        else:
            template.version = (template.version or 1) + 1

        template.name = entry["name"]
        template.discipline = entry["discipline"]
        template.focus = entry["focus"]
        template.difficulty_tier = entry["difficulty_tier"]
        template.description = entry.get("description")
        template.structure_json = payload
        changed += 1

    logger.info(f"Seeded {changed} workout templates")
    return changed
