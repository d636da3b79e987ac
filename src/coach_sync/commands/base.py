"""Shared CLI utilities."""

import asyncio
from functools import wraps

import click

from ..db import get_db_path


def async_command(f):
    """Decorator to run async Click commands."""

    @wraps(f)
    def wrapper(*args, **kwargs):
        return asyncio.run(f(*args, **kwargs))

    return wrapper


def ensure_initialized(ctx: click.Context) -> None:
    """Ensure the database is initialized."""
    db_path = get_db_path()
    if not db_path.exists():
        click.echo(
            click.style("Error: ", fg="red")
            + "Database not initialized. Run 'coach-sync init' first."
        )
        ctx.exit(1)


def echo_success(message: str) -> None:
    click.echo(click.style("[OK] ", fg="green") + message)


def echo_error(message: str) -> None:
    click.echo(click.style("[ERROR] ", fg="red") + message)


def echo_info(message: str) -> None:
    click.echo(click.style("[INFO] ", fg="blue") + message)


def echo_warning(message: str) -> None:
    click.echo(click.style("[WARN] ", fg="yellow") + message)


def format_table(headers: list[str], rows: list[list[str]], padding: int = 2) -> str:
    """Format rows as a left-aligned plain text table."""
    if not rows:
        return ""

    widths = [len(h) for h in headers]
    for row in rows:
        for i, cell in enumerate(row):
            widths[i] = max(widths[i], len(str(cell)))

    def line(cells) -> str:
        return "".join(str(cell).ljust(widths[i] + padding) for i, cell in enumerate(cells))

    lines = [line(headers), "".join("-" * w + " " * padding for w in widths)]
    lines.extend(line(row) for row in rows)
    return "\n".join(text.rstrip() for text in lines)


def fmt(value, suffix: str = "") -> str:
    """Render an optional figure for a table cell."""
    if value is None:
        return "-"
    if isinstance(value, float):
        value = f"{value:.1f}".rstrip("0").rstrip(".")
    return f"{value}{suffix}"
