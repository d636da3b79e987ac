"""Athlete and provider connection commands."""

from datetime import datetime, timezone

import aiosqlite
import click

from ..config import settings
from ..db import AthleteRepository, ConnectionRepository, get_db_path
from ..models.connection import Athlete, ConnectionEntry
from ..utils.local_day import is_valid_time_zone
from .base import async_command, echo_error, echo_info, echo_success, ensure_initialized, format_table


@click.group()
@click.pass_context
def athletes(ctx):
    """Manage athletes and their Strava connections."""
    ensure_initialized(ctx)


@athletes.command()
@click.argument("name")
@click.option("--timezone", "-t", "time_zone", default=None, help="IANA timezone (default: DEFAULT_TIME_ZONE)")
@click.pass_context
@async_command
async def add(ctx, name: str, time_zone: str):
    """Add an athlete."""
    time_zone = time_zone or settings.default_time_zone
    if not is_valid_time_zone(time_zone):
        echo_error(f"Unknown timezone '{time_zone}'")
        ctx.exit(1)

    repo = AthleteRepository(get_db_path())
    athlete_id = await repo.create(Athlete(name=name, timezone=time_zone))
    echo_success(f"Athlete '{name}' added (ID: {athlete_id}, timezone {time_zone})")


@athletes.command(name="list")
@async_command
async def list_athletes():
    """List athletes with their connection and watermark."""
    db_path = get_db_path()
    all_athletes = await AthleteRepository(db_path).list_all()
    if not all_athletes:
        echo_info("No athletes yet. Add one with 'coach-sync athletes add'")
        return

    connections = {c.athlete_id: c for c in await ConnectionRepository(db_path).list_all()}
    rows = []
    for athlete in all_athletes:
        connection = connections.get(athlete.id)
        rows.append([
            str(athlete.id),
            athlete.name,
            athlete.timezone,
            connection.external_athlete_id if connection else "-",
            connection.last_sync_at.strftime("%Y-%m-%d %H:%M") if connection and connection.last_sync_at else "-",
        ])

    click.echo()
    click.echo(format_table(["ID", "Name", "Timezone", "Strava", "Last sync (UTC)"], rows))
    click.echo()


@athletes.command()
@click.argument("athlete_id", type=int)
@click.option("--external-id", required=True, help="Strava athlete id (webhook owner_id)")
@click.option("--access-token", required=True)
@click.option("--refresh-token", required=True)
@click.option("--expires-at", type=int, default=0, help="Access token expiry (epoch seconds)")
@click.option("--scope", default=None)
@click.pass_context
@async_command
async def connect(
    ctx,
    athlete_id: int,
    external_id: str,
    access_token: str,
    refresh_token: str,
    expires_at: int,
    scope: str | None,
):
    """Store Strava tokens for an athlete.

    An expiry in the past forces a refresh before the first sync.
    """
    db_path = get_db_path()
    athlete = await AthleteRepository(db_path).get(athlete_id)
    if athlete is None:
        echo_error(f"Athlete ID {athlete_id} not found")
        ctx.exit(1)

    connection = ConnectionEntry(
        athlete_id=athlete_id,
        athlete_timezone=athlete.timezone,
        external_athlete_id=external_id,
        access_token=access_token,
        refresh_token=refresh_token,
        expires_at=datetime.fromtimestamp(expires_at, tz=timezone.utc),
        scope=scope,
    )
    try:
        await ConnectionRepository(db_path).create(connection)
    except aiosqlite.IntegrityError:
        echo_error(f"Athlete {athlete_id} or Strava athlete {external_id} is already connected")
        ctx.exit(1)
    echo_success(f"Strava athlete {external_id} connected to '{athlete.name}'")
