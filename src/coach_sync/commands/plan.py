"""Planned entry commands."""

import click

from ..db import AthleteRepository, PlannedEntryRepository, get_db_path
from ..errors import CoachSyncError, InvalidTimeError
from ..models.calendar import Discipline, PlannedEntry
from ..services.calendar import CalendarService
from ..utils.day_keys import parse_day_key
from ..utils.local_day import parse_local_time
from .base import (
    async_command,
    echo_error,
    echo_info,
    echo_success,
    ensure_initialized,
    fmt,
    format_table,
)


@click.group()
@click.pass_context
def plan(ctx):
    """Manage an athlete's planned sessions."""
    ensure_initialized(ctx)


@plan.command()
@click.argument("athlete_id", type=int)
@click.argument("date")
@click.option(
    "--discipline",
    "-d",
    type=click.Choice([d.value for d in Discipline], case_sensitive=False),
    default=None,
)
@click.option("--start", "start_time", default=None, help="Local start time HH:MM")
@click.option("--minutes", type=int, default=None, help="Planned duration")
@click.option("--km", type=float, default=None, help="Planned distance")
@click.option("--kcal", type=float, default=None, help="Planned calories")
@click.option("--title", default="")
@click.pass_context
@async_command
async def add(ctx, athlete_id, date, discipline, start_time, minutes, km, kcal, title):
    """Plan a session on DATE (YYYY-MM-DD, athlete-local)."""
    try:
        parse_day_key(date)
        if start_time:
            parse_local_time(start_time)
    except InvalidTimeError as e:
        echo_error(str(e))
        ctx.exit(1)

    db_path = get_db_path()
    if await AthleteRepository(db_path).get(athlete_id) is None:
        echo_error(f"Athlete ID {athlete_id} not found")
        ctx.exit(1)

    entry = PlannedEntry(
        athlete_id=athlete_id,
        date=date,
        discipline=Discipline.normalize(discipline) if discipline else None,
        title=title,
        planned_start_time_local=start_time,
        planned_duration_minutes=minutes,
        planned_distance_km=km,
        planned_calories_kcal=kcal,
    )
    entry_id = await PlannedEntryRepository(db_path).create(entry)
    echo_success(f"Planned entry {entry_id} added on {date}")


@plan.command()
@click.argument("athlete_id", type=int)
@click.option("--from", "from_day", required=True, help="First day (YYYY-MM-DD)")
@click.option("--to", "to_day", required=True, help="Last day (YYYY-MM-DD)")
@click.pass_context
@async_command
async def show(ctx, athlete_id: int, from_day: str, to_day: str):
    """Show the resolved calendar for a day range."""
    service = CalendarService(get_db_path())
    try:
        items = await service.resolve_range(athlete_id, from_day, to_day)
    except CoachSyncError as e:
        echo_error(str(e))
        ctx.exit(1)

    if not items:
        echo_info("Nothing planned or recorded in this range")
        return

    rows = []
    for item in items:
        completion = item.completion
        rows.append([
            str(item.entry_id) if item.entry_id is not None else "-",
            item.date,
            item.discipline or "-",
            item.status.value,
            fmt(item.planned_duration_minutes),
            fmt(completion.duration_minutes if completion else None),
            fmt(completion.match_day_diff if completion else None),
            item.title[:30],
        ])

    click.echo()
    click.echo(format_table(
        ["ID", "Date", "Discipline", "Status", "Plan min", "Done min", "Day diff", "Title"], rows
    ))
    click.echo()


@plan.command()
@click.argument("athlete_id", type=int)
@click.option("--from", "from_day", required=True)
@click.option("--to", "to_day", required=True)
@click.pass_context
@async_command
async def summary(ctx, athlete_id: int, from_day: str, to_day: str):
    """Planned vs completed totals for a day range."""
    service = CalendarService(get_db_path())
    try:
        result = await service.summarize_range(athlete_id, from_day, to_day)
    except CoachSyncError as e:
        echo_error(str(e))
        ctx.exit(1)

    totals = result.totals
    click.echo()
    click.echo(f"Summary {from_day} .. {to_day} ({result.time_zone})")
    click.echo(f"  Workouts: {totals.workouts_completed}/{totals.workouts_planned} completed, "
               f"{totals.workouts_skipped} skipped, {totals.workouts_missed} missed")
    click.echo(f"  Minutes:  {fmt(totals.completed_minutes)} of {fmt(totals.planned_minutes)}")
    click.echo(f"  Distance: {fmt(totals.completed_distance_km)} of {fmt(totals.planned_distance_km)} km")
    click.echo()

    if result.by_discipline:
        rows = [
            [
                row.discipline,
                fmt(row.planned_minutes),
                fmt(row.completed_minutes),
                fmt(row.completed_distance_km),
                fmt(row.average_pace_sec_per_km, "s/km"),
            ]
            for row in result.by_discipline
        ]
        click.echo(format_table(["Discipline", "Plan min", "Done min", "Done km", "Pace"], rows))
        click.echo()


@plan.command()
@click.argument("entry_id", type=int)
@click.option("--minutes", type=int, default=None)
@click.option("--km", type=float, default=None)
@click.pass_context
@async_command
async def complete(ctx, entry_id: int, minutes: int | None, km: float | None):
    """Log a manual completion for an entry."""
    try:
        await CalendarService(get_db_path()).complete_manual(entry_id, minutes, km)
    except CoachSyncError as e:
        echo_error(str(e))
        ctx.exit(1)
    echo_success(f"Entry {entry_id} completed")


@plan.command()
@click.argument("entry_id", type=int)
@click.pass_context
@async_command
async def skip(ctx, entry_id: int):
    """Mark an entry as skipped."""
    try:
        await CalendarService(get_db_path()).skip(entry_id)
    except CoachSyncError as e:
        echo_error(str(e))
        ctx.exit(1)
    echo_success(f"Entry {entry_id} skipped")


@plan.command()
@click.argument("entry_id", type=int)
@click.pass_context
@async_command
async def confirm(ctx, entry_id: int):
    """Accept a synced draft for an entry."""
    try:
        await CalendarService(get_db_path()).confirm_synced(entry_id)
    except CoachSyncError as e:
        echo_error(str(e))
        ctx.exit(1)
    echo_success(f"Entry {entry_id} confirmed")
