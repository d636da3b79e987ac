"""Sync commands: manual resync, ledger drain and ledger inspection."""

from datetime import datetime, timezone

import click

from ..db import get_db_path
from ..services.sync import MAX_FORCE_DAYS
from ..services.sync_ledger import SyncLedger
from ..services.webhook import WebhookIngestionService
from .base import (
    async_command,
    echo_error,
    echo_info,
    echo_success,
    echo_warning,
    ensure_initialized,
    format_table,
)


def print_summary(summary: dict) -> None:
    click.echo(
        f"  fetched={summary['fetched']} created={summary['created']} "
        f"updated={summary['updated']} unchanged={summary['unchanged']} matched={summary['matched']}"
    )
    for reason, count in summary["skipped_by_reason"].items():
        click.echo(f"  skipped {count} ({reason})")
    for error in summary["errors"]:
        echo_error(f"athlete {error['athlete_id']}: {error['message']}")


@click.command()
@click.argument("athlete_id", type=int)
@click.option(
    "--force-days",
    type=click.IntRange(1, MAX_FORCE_DAYS),
    default=None,
    help=f"Re-fetch the last N days (1-{MAX_FORCE_DAYS}) without moving the watermark",
)
@click.pass_context
@async_command
async def sync(ctx, athlete_id: int, force_days: int | None):
    """Sync one athlete from Strava now."""
    ensure_initialized(ctx)
    service = WebhookIngestionService(get_db_path())
    result = await service.resync_athlete(athlete_id, force_days=force_days)

    status = result["status"]
    if status == "no_connection":
        echo_error(f"Athlete {athlete_id} has no Strava connection")
        ctx.exit(1)
    if status == "busy":
        echo_warning(f"A sync is already running for athlete {athlete_id}")
        ctx.exit(1)

    if result["ok"]:
        echo_success(f"Athlete {athlete_id} synced")
    else:
        echo_error(f"Sync for athlete {athlete_id} failed")
    print_summary(result["summary"])
    if not result["ok"]:
        ctx.exit(1)


@click.command()
@click.option("--limit", type=int, default=25, help="Maximum ledger rows to process")
@click.pass_context
@async_command
async def drain(ctx, limit: int):
    """Process due sync intents (run from cron)."""
    ensure_initialized(ctx)
    service = WebhookIngestionService(get_db_path())
    result = await service.drain_pending(limit=limit)

    if not result["due"]:
        echo_info("No sync intents due")
        return
    echo_success(
        f"{result['due']} due: {result['succeeded']} succeeded, "
        f"{result['failed']} failed, {result['skipped']} skipped"
    )
    if result["rate_limited"]:
        echo_warning("Stopped early: Strava rate limit hit")


@click.command()
@click.pass_context
@async_command
async def ledger(ctx):
    """Show the sync intent ledger."""
    ensure_initialized(ctx)
    now = datetime.now(timezone.utc)
    intents = await SyncLedger(get_db_path()).list_all()
    if not intents:
        echo_info("Ledger is empty")
        return

    def when(value: datetime | None) -> str:
        return value.strftime("%Y-%m-%d %H:%M:%S") if value else "-"

    rows = [
        [
            str(intent.athlete_id),
            intent.state_at(now).value,
            str(intent.attempts),
            when(intent.last_event_at),
            when(intent.next_attempt_at),
            when(intent.last_success_at),
            (intent.last_error or "")[:40],
        ]
        for intent in intents
    ]
    click.echo()
    click.echo(format_table(
        ["Athlete", "State", "Attempts", "Last event", "Next attempt", "Last success", "Error"], rows
    ))
    click.echo()
