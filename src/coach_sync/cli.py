"""CLI entry point for coach-sync."""

import click

from .commands import athletes, drain, init, ledger, plan, serve, sync
from .config import settings
from .logger import setup_logger


@click.group()
@click.version_option(version="0.1.0", prog_name="coach-sync")
@click.option(
    "--log-level",
    type=click.Choice(["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"], case_sensitive=False),
    default=None,
    help="Override LOG_LEVEL for this run",
)
def main(log_level: str | None):
    """coach-sync: reconcile Strava activities with a coach's plan.

    Example usage:

        # Create the database
        coach-sync init

        # Add an athlete and plan a session
        coach-sync athletes add "Sam" --timezone Australia/Brisbane
        coach-sync plan add 1 2026-02-05 --discipline RUN --start 23:00 --minutes 45

        # Pull activities and process queued webhook events
        coach-sync sync 1 --force-days 3
        coach-sync drain
    """
    setup_logger((log_level or settings.log_level).upper())


main.add_command(init)
main.add_command(athletes)
main.add_command(plan)
main.add_command(sync)
main.add_command(drain)
main.add_command(ledger)
main.add_command(serve)


def run():
    """Run the CLI."""
    main()


if __name__ == "__main__":
    run()
