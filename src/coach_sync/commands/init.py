"""Initialize database command."""

import click

from ..db import get_db_path, init_db
from .base import async_command, echo_info, echo_success


@click.command()
@async_command
async def init():
    """Create the SQLite database and schema.

    Safe to run repeatedly; existing databases are migrated in place.
    """
    db_path = get_db_path()
    echo_info(f"Initializing coach-sync database at {db_path}")

    await init_db(db_path)
    echo_success("Database initialized")

    click.echo()
    click.echo("Next steps:")
    click.echo('  1. Add an athlete:      coach-sync athletes add "Sam" --timezone Australia/Brisbane')
    click.echo("  2. Connect Strava:      coach-sync athletes connect <id> --external-id ...")
    click.echo("  3. Plan a session:      coach-sync plan add <id> 2026-02-05 --discipline RUN")
    click.echo("  4. Start the server:    coach-sync serve")
