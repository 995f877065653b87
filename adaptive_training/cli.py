"""Command-line interface for the adaptive training engine."""

import logging
from datetime import date, datetime

import click
from rich import box
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from .config import config
from .db import get_db
from .db.repository import TrainingStore
from .engine import CALIBRATION_TESTS, ManualBiometrics, TrainingEngine
from .engine.biometrics import format_pace
from .errors import TrainingEngineError

console = Console()

PRIORITY_LABELS = {1: "KEY", 2: "QUALITY", 3: "EASY"}
STATUS_STYLES = {"planned": "white", "completed": "green", "missed": "red", "skipped": "yellow"}


def setup_logging():
    logging.basicConfig(
        level=getattr(logging, config.LOG_LEVEL.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def get_engine() -> TrainingEngine:
    return TrainingEngine(TrainingStore(get_db()))


def parse_date(value):
    if value is None:
        return None
    try:
        return datetime.strptime(value, "%Y-%m-%d").date()
    except ValueError:
        raise click.BadParameter(f"Expected YYYY-MM-DD, got {value}")


def fail(error: Exception):
    message = str(error).replace("[", r"\[")
    console.print(f"[red]❌ {message}[/red]")
    raise SystemExit(1)


def format_duration(seconds: int) -> str:
    hours, rem = divmod(int(seconds), 3600)
    return f"{hours}h{rem // 60:02d}" if hours else f"{rem // 60}min"


@click.group()
def cli():
    """Adaptive endurance training planner."""
    setup_logging()


@cli.command("init-db")
def init_db():
    """Create database tables."""
    get_db().create_tables()
    console.print("[green]✅ Database ready[/green]")


@cli.command("seed-templates")
def seed_templates():
    """Load the bundled workout template library."""
    changed = get_engine().seed_templates()
    console.print(f"[green]✅ {changed} templates added or updated[/green]")


@cli.command("add-user")
@click.argument("user_id")
@click.option("--name", help="Display name")
@click.option("--experience", help="finisher, competitor, beginner, intermediate or advanced")
def add_user(user_id, name, experience):
    """Register a user."""
    try:
        get_engine().add_user(user_id, name=name, experience_level=experience)
    except TrainingEngineError as e:
        fail(e)
    console.print(f"[green]✅ User {user_id} created[/green]")


@cli.command("add-race")
@click.argument("race_id")
@click.option("--name", required=True, help="Race name")
@click.option("--date", "race_date", required=True, help="Race date (YYYY-MM-DD)")
@click.option("--distance", help="sprint, olympic, 70.3 or 140.6")
def add_race(race_id, name, race_date, distance):
    """Register a race."""
    try:
        get_engine().add_race(race_id, name, parse_date(race_date), distance)
    except TrainingEngineError as e:
        fail(e)
    console.print(f"[green]✅ Race {name} on {race_date} added[/green]")


@cli.command()
@click.argument("user_id")
@click.option("--method", type=click.Choice(["manual", "calibration_week"]), default="manual")
@click.option("--css", type=float, help="Critical swim speed, seconds per 100m")
@click.option("--ftp", type=int, help="Functional threshold power, watts")
@click.option("--threshold-pace", type=int, help="Threshold run pace, seconds per mile")
@click.option("--max-hr", type=int, help="Max heart rate")
@click.option("--resting-hr", type=int, help="Resting heart rate")
@click.option("--weight", type=float, help="Weight in kg")
@click.option("--dob", help="Date of birth (YYYY-MM-DD)")
@click.option("--gender")
@click.option("--tier", type=click.IntRange(1, 3), help="Volume tier 1-3")
@click.option("--race", "race_id", help="Race to train for")
@click.option("--weeks", type=int, help="Explicit plan length in weeks")
def onboard(user_id, method, css, ftp, threshold_pace, max_hr, resting_hr, weight, dob, gender, tier, race_id, weeks):
    """Complete onboarding and create the first plan."""
    manual = ManualBiometrics(
        critical_swim_speed=css,
        functional_threshold_power=ftp,
        threshold_run_pace=threshold_pace,
        max_heart_rate=max_hr,
        resting_heart_rate=resting_hr,
        weight_kg=weight,
    )
    try:
        plan = get_engine().complete_onboarding(
            user_id, method, manual,
            race_id=race_id, total_weeks=weeks, volume_tier=tier,
            date_of_birth=parse_date(dob), gender=gender,
        )
    except TrainingEngineError as e:
        fail(e)
    console.print(Panel.fit(
        f"Plan {plan.id}\n{plan.plan_type} · {plan.total_weeks} weeks · tier {plan.volume_tier}\n"
        f"Starts {plan.start_date}",
        title="✅ Onboarding complete",
        style="bold green",
    ))


@cli.command("create-plan")
@click.argument("user_id")
@click.option("--race", "race_id", help="Race to train for")
@click.option("--weeks", type=int, help="Explicit plan length in weeks")
def create_plan(user_id, race_id, weeks):
    """Create a new plan, archiving the current one."""
    try:
        plan = get_engine().create_plan(user_id, race_id=race_id, total_weeks=weeks)
    except TrainingEngineError as e:
        fail(e)
    console.print(f"[green]✅ Plan {plan.id}: {plan.total_weeks} weeks from {plan.start_date}[/green]")


@cli.command("show-plan")
@click.argument("user_id")
@click.option("--week", type=int, help="Week to show (default: current week)")
def show_plan(user_id, week):
    """Show the workouts of one week of the active plan."""
    engine = get_engine()
    try:
        with engine.store.read() as repo:
            plan = repo.require_active_plan(user_id)
            week = week or plan.current_week
            workouts = [w for w in repo.workouts_for_plan(plan.id) if w.week_number == week]
    except TrainingEngineError as e:
        fail(e)

    phase = plan.phases[week - 1] if 0 < week <= len(plan.phases) else "?"
    table = Table(title=f"Week {week}/{plan.total_weeks} · {phase}", box=box.ROUNDED)
    table.add_column("Date", style="cyan")
    table.add_column("Workout")
    table.add_column("Priority")
    table.add_column("Duration", justify="right")
    table.add_column("Status")
    table.add_column("ID", style="dim", no_wrap=True)
    for workout in workouts:
        flags = " ⚡" if workout.was_adapted else ""
        flags += " 🧪" if workout.is_calibration_test else ""
        style = STATUS_STYLES.get(workout.status, "white")
        table.add_row(
            workout.scheduled_date.strftime("%a %Y-%m-%d"),
            f"{workout.discipline}: {workout.title}{flags}",
            PRIORITY_LABELS.get(workout.priority_level, str(workout.priority_level)),
            format_duration(workout.total_duration),
            f"[{style}]{workout.status}[/{style}]",
            workout.id,
        )
    console.print(table)


@cli.command()
@click.argument("workout_id")
@click.option("--duration", type=int, required=True, help="Duration in seconds")
@click.option("--distance", type=float, help="Distance in meters")
@click.option("--avg-hr", type=float, help="Average heart rate")
@click.option("--rating", type=click.Choice(["easier", "same", "harder"]))
@click.option("--rpe", type=click.IntRange(1, 10), help="Session RPE 1-10")
def complete(workout_id, duration, distance, avg_hr, rating, rpe):
    """Record a completed workout with optional feedback."""
    try:
        outcome = get_engine().complete_workout(
            workout_id, duration, distance_meters=distance, avg_heart_rate=avg_hr, rating=rating, rpe_score=rpe,
        )
    except TrainingEngineError as e:
        fail(e)
    console.print("[green]✅ Workout completed[/green]")
    _print_outcome(outcome)


@cli.command()
@click.argument("workout_id")
@click.option("--reason", help="too_tired, sick, or any other reason")
def skip(workout_id, reason):
    """Skip a workout."""
    try:
        outcome = get_engine().skip_workout(workout_id, reason)
    except TrainingEngineError as e:
        fail(e)
    console.print("[yellow]⏭  Workout skipped[/yellow]")
    _print_outcome(outcome)


def _print_outcome(outcome):
    if outcome.strike_added:
        console.print(f"[orange3]⚠️  Fatigue strike ({outcome.strike_reason}), strikes: {outcome.strikes}[/orange3]")
    if outcome.adapted:
        console.print(Panel.fit(
            f"{outcome.adaptation.workouts_affected} upcoming workouts adjusted",
            title="🔄 Plan adapted",
            style="bold yellow",
        ))


@cli.command()
@click.argument("user_id")
@click.argument("test_type", type=click.Choice(sorted(CALIBRATION_TESTS)))
@click.argument("value", type=float)
def calibrate(user_id, test_type, value):
    """Submit a calibration result (seconds, or watts for bike_20min)."""
    try:
        result = get_engine().submit_calibration_result(user_id, test_type, value)
    except TrainingEngineError as e:
        fail(e)
    if result.scalar == "css":
        shown = format_pace(result.value, "100m")
    elif result.scalar == "tp":
        shown = format_pace(result.value, "mi")
    else:
        shown = f"{result.value} W"
    console.print(f"[green]✅ {result.scalar.upper()} = {shown}[/green] ({result.rematerialized} workouts updated)")
    if result.onboarding_completed:
        console.print("[bold green]🎉 Calibration complete[/bold green]")


@cli.command()
@click.argument("user_id")
def fatigue(user_id):
    """Show the fatigue state."""
    try:
        status = get_engine().fatigue_status(user_id)
    except TrainingEngineError as e:
        fail(e)
    table = Table(title="Fatigue", box=box.ROUNDED, show_header=False)
    table.add_row("Strikes", f"{status.strikes}/{status.threshold}" + (" ⚠️" if status.near_threshold else ""))
    table.add_row("Last adaptation", str(status.last_adaptation_date or "-"))
    table.add_row("Total adaptations", str(status.total_adaptations))
    table.add_row("Acute load", f"{status.acute_load:.1f}")
    table.add_row("Chronic load", f"{status.chronic_load:.1f}")
    table.add_row("Acute:chronic", f"{status.load_ratio:.2f}")
    console.print(table)


@cli.command()
@click.option("--as-of", help="Sweep date (YYYY-MM-DD), default today")
def sweep(as_of):
    """Run the daily missed-workout sweep."""
    as_of_date = parse_date(as_of) or date.today()
    report = get_engine().run_daily_sweep(as_of_date)
    table = Table(title=f"Daily sweep {report.as_of}", box=box.ROUNDED)
    table.add_column("User")
    table.add_column("Deleted", justify="right")
    table.add_column("Swapped", justify="right")
    table.add_column("Missed", justify="right")
    table.add_column("Plan done")
    for result in report.results:
        table.add_row(
            result.user_id, str(result.deleted), str(result.swapped), str(result.missed),
            "✅" if result.plan_completed else "",
        )
    console.print(table)
    for user_id, error in report.failed.items():
        console.print(f"[red]❌ {user_id}: {error}[/red]")


def main():
    """Main entry point."""
    try:
        cli()
    except KeyboardInterrupt:
        console.print("\n[orange3]Operation cancelled by user.[/orange3]")


if __name__ == "__main__":
    main()
