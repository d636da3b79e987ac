"""Database engine setup and initialization."""

from datetime import datetime
from pathlib import Path

import aiosqlite

from ..config import settings
from ..utils.local_day import ensure_utc

# Default data directory
DATA_DIR = Path(__file__).parent.parent.parent.parent / "data"


def get_db_path(data_dir: Path | None = None) -> Path:
    """Get the database file path."""
    if data_dir is None and settings.db_path:
        db_path = Path(settings.db_path)
        db_path.parent.mkdir(parents=True, exist_ok=True)
        return db_path
    if data_dir is None:
        data_dir = DATA_DIR
    data_dir.mkdir(parents=True, exist_ok=True)
    return data_dir / "coach_sync.db"


def to_db_time(value: datetime | None) -> str | None:
    """Serialize an instant as fixed-width UTC ISO text.

    Fixed width keeps lexical comparison in SQL equal to time order.
    """
    if value is None:
        return None
    return ensure_utc(value).isoformat(timespec="microseconds")


def from_db_time(value: str | None) -> datetime | None:
    if not value:
        return None
    return ensure_utc(datetime.fromisoformat(value))


async def _run_migrations(db: aiosqlite.Connection) -> None:
    """Run database migrations for schema updates."""
    cursor = await db.execute("PRAGMA table_info(completed_activities)")
    columns = await cursor.fetchall()
    activity_columns = {col[1] for col in columns}

    for col in ["discipline", "activity_day_key", "confirmed_at"]:
        if col not in activity_columns:
            await db.execute(f"ALTER TABLE completed_activities ADD COLUMN {col} TEXT")

    cursor = await db.execute("PRAGMA table_info(sync_intents)")
    columns = await cursor.fetchall()
    intent_columns = {col[1] for col in columns}

    for col in ["event_count", "claimed_event_count"]:
        if col not in intent_columns:
            await db.execute(f"ALTER TABLE sync_intents ADD COLUMN {col} INTEGER NOT NULL DEFAULT 0")

    await db.commit()


async def init_db(db_path: Path | None = None) -> None:
    """Initialize the database schema."""
    if db_path is None:
        db_path = get_db_path()

    async with aiosqlite.connect(db_path) as db:
        await db.execute("""
            CREATE TABLE IF NOT EXISTS athletes (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                name TEXT NOT NULL,
                timezone TEXT NOT NULL DEFAULT 'UTC',
                created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
            )
        """)

        # Provider credentials and the incremental sync watermark
        await db.execute("""
            CREATE TABLE IF NOT EXISTS provider_connections (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                athlete_id INTEGER NOT NULL,
                provider TEXT NOT NULL DEFAULT 'STRAVA',
                external_athlete_id TEXT NOT NULL,
                access_token TEXT NOT NULL,
                refresh_token TEXT NOT NULL,
                expires_at TEXT NOT NULL,
                scope TEXT,
                last_sync_at TEXT,
                UNIQUE (provider, external_athlete_id),
                UNIQUE (athlete_id, provider),
                FOREIGN KEY (athlete_id) REFERENCES athletes(id) ON DELETE CASCADE
            )
        """)

        await db.execute("""
            CREATE TABLE IF NOT EXISTS planned_entries (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                athlete_id INTEGER NOT NULL,
                date TEXT NOT NULL,
                planned_start_time_local TEXT,
                discipline TEXT,
                title TEXT NOT NULL DEFAULT '',
                planned_duration_minutes INTEGER,
                planned_distance_km REAL,
                planned_calories_kcal REAL,
                status TEXT NOT NULL DEFAULT 'PLANNED',
                deleted_at TEXT,
                created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
                FOREIGN KEY (athlete_id) REFERENCES athletes(id) ON DELETE CASCADE
            )
        """)

        await db.execute("""
            CREATE TABLE IF NOT EXISTS completed_activities (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                athlete_id INTEGER NOT NULL,
                planned_entry_id INTEGER,
                source TEXT NOT NULL,
                external_activity_id TEXT,
                start_time TEXT NOT NULL,
                duration_minutes INTEGER,
                distance_km REAL,
                discipline TEXT,
                metrics TEXT NOT NULL DEFAULT '{}',
                match_day_diff INTEGER,
                activity_day_key TEXT,
                confirmed_at TEXT,
                created_at TEXT NOT NULL,
                updated_at TEXT NOT NULL,
                UNIQUE (athlete_id, source, external_activity_id),
                FOREIGN KEY (athlete_id) REFERENCES athletes(id) ON DELETE CASCADE,
                FOREIGN KEY (planned_entry_id) REFERENCES planned_entries(id)
            )
        """)

        # One durable row per athlete; never deleted
        await db.execute("""
            CREATE TABLE IF NOT EXISTS sync_intents (
                athlete_id INTEGER PRIMARY KEY,
                pending INTEGER NOT NULL DEFAULT 0,
                last_event_at TEXT,
                last_activity_id TEXT,
                locked_until TEXT,
                last_attempt_at TEXT,
                attempts INTEGER NOT NULL DEFAULT 0,
                next_attempt_at TEXT,
                last_error TEXT,
                last_success_at TEXT,
                event_count INTEGER NOT NULL DEFAULT 0,
                claimed_event_count INTEGER NOT NULL DEFAULT 0,
                FOREIGN KEY (athlete_id) REFERENCES athletes(id) ON DELETE CASCADE
            )
        """)

        # Create indexes for common queries
        await db.execute("""
            CREATE INDEX IF NOT EXISTS idx_planned_entries_athlete_date
            ON planned_entries(athlete_id, date)
        """)
        await db.execute("""
            CREATE INDEX IF NOT EXISTS idx_completed_activities_entry
            ON completed_activities(planned_entry_id)
        """)
        await db.execute("""
            CREATE INDEX IF NOT EXISTS idx_completed_activities_athlete_start
            ON completed_activities(athlete_id, start_time)
        """)
        await db.execute("""
            CREATE INDEX IF NOT EXISTS idx_sync_intents_pending
            ON sync_intents(pending, next_attempt_at)
        """)

        await db.commit()

        # Run migrations for existing databases
        await _run_migrations(db)
