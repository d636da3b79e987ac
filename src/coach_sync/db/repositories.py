"""Data access layer for coach-sync."""

import json
from datetime import datetime, timedelta
from pathlib import Path

import aiosqlite

from ..models.activity import CompletedActivity, CompletionSource, UpsertOutcome
from ..models.calendar import Discipline, EntryStatus, PlannedEntry
from ..models.connection import Athlete, ConnectionEntry
from ..models.metrics import metrics_from_dict
from ..models.sync_intent import SyncIntent
from .engine import from_db_time, get_db_path, to_db_time

# Ledger error strings are user-visible; keep them short
MAX_ERROR_LENGTH = 500

OPEN_STATUSES = (EntryStatus.PLANNED.value, EntryStatus.MODIFIED.value)


class AthleteRepository:
    """Repository for athletes."""

    def __init__(self, db_path: Path | None = None):
        self.db_path = db_path or get_db_path()

    async def create(self, athlete: Athlete) -> int:
        """Create a new athlete."""
        async with aiosqlite.connect(self.db_path) as db:
            cursor = await db.execute(
                "INSERT INTO athletes (name, timezone) VALUES (?, ?)",
                (athlete.name, athlete.timezone),
            )
            await db.commit()
            return cursor.lastrowid

    async def get(self, athlete_id: int) -> Athlete | None:
        """Get an athlete by ID."""
        async with aiosqlite.connect(self.db_path) as db:
            db.row_factory = aiosqlite.Row
            cursor = await db.execute("SELECT * FROM athletes WHERE id = ?", (athlete_id,))
            row = await cursor.fetchone()
            if row is None:
                return None
            return Athlete(id=row["id"], name=row["name"], timezone=row["timezone"])

    async def list_all(self) -> list[Athlete]:
        async with aiosqlite.connect(self.db_path) as db:
            db.row_factory = aiosqlite.Row
            cursor = await db.execute("SELECT * FROM athletes ORDER BY id")
            rows = await cursor.fetchall()
            return [Athlete(id=row["id"], name=row["name"], timezone=row["timezone"]) for row in rows]


class ConnectionRepository:
    """Repository for provider connections (tokens and sync watermark)."""

    _SELECT = """
        SELECT c.*, a.timezone AS athlete_timezone
        FROM provider_connections c
        JOIN athletes a ON a.id = c.athlete_id
    """

    def __init__(self, db_path: Path | None = None):
        self.db_path = db_path or get_db_path()

    async def create(self, connection: ConnectionEntry) -> int:
        """Create a new connection."""
        async with aiosqlite.connect(self.db_path) as db:
            cursor = await db.execute(
                """
                INSERT INTO provider_connections
                (athlete_id, provider, external_athlete_id, access_token, refresh_token,
                 expires_at, scope, last_sync_at)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    connection.athlete_id,
                    connection.provider,
                    connection.external_athlete_id,
                    connection.access_token,
                    connection.refresh_token,
                    to_db_time(connection.expires_at),
                    connection.scope,
                    to_db_time(connection.last_sync_at),
                ),
            )
            await db.commit()
            return cursor.lastrowid

    async def get_by_athlete(self, athlete_id: int, provider: str = "STRAVA") -> ConnectionEntry | None:
        async with aiosqlite.connect(self.db_path) as db:
            db.row_factory = aiosqlite.Row
            cursor = await db.execute(
                self._SELECT + " WHERE c.athlete_id = ? AND c.provider = ?",
                (athlete_id, provider),
            )
            row = await cursor.fetchone()
            if row is None:
                return None
            return self._row_to_connection(row)

    async def get_by_external_athlete_id(
        self, external_athlete_id: str, provider: str = "STRAVA"
    ) -> ConnectionEntry | None:
        """Resolve a provider owner id to the local connection."""
        async with aiosqlite.connect(self.db_path) as db:
            db.row_factory = aiosqlite.Row
            cursor = await db.execute(
                self._SELECT + " WHERE c.external_athlete_id = ? AND c.provider = ?",
                (str(external_athlete_id), provider),
            )
            row = await cursor.fetchone()
            if row is None:
                return None
            return self._row_to_connection(row)

    async def list_all(self, provider: str = "STRAVA") -> list[ConnectionEntry]:
        async with aiosqlite.connect(self.db_path) as db:
            db.row_factory = aiosqlite.Row
            cursor = await db.execute(
                self._SELECT + " WHERE c.provider = ? ORDER BY c.athlete_id",
                (provider,),
            )
            rows = await cursor.fetchall()
            return [self._row_to_connection(row) for row in rows]

    async def update_tokens(self, connection: ConnectionEntry) -> None:
        """Persist refreshed credentials."""
        if connection.id is None:
            raise ValueError("Connection must have an ID to update")

        async with aiosqlite.connect(self.db_path) as db:
            await db.execute(
                """
                UPDATE provider_connections SET
                    access_token = ?, refresh_token = ?, expires_at = ?, scope = ?
                WHERE id = ?
                """,
                (
                    connection.access_token,
                    connection.refresh_token,
                    to_db_time(connection.expires_at),
                    connection.scope,
                    connection.id,
                ),
            )
            await db.commit()

    async def update_last_sync(self, connection_id: int, last_sync_at: datetime) -> None:
        """Advance the incremental sync watermark."""
        async with aiosqlite.connect(self.db_path) as db:
            await db.execute(
                "UPDATE provider_connections SET last_sync_at = ? WHERE id = ?",
                (to_db_time(last_sync_at), connection_id),
            )
            await db.commit()

    def _row_to_connection(self, row: aiosqlite.Row) -> ConnectionEntry:
        """Convert a database row to a ConnectionEntry."""
        return ConnectionEntry(
            id=row["id"],
            athlete_id=row["athlete_id"],
            athlete_timezone=row["athlete_timezone"],
            provider=row["provider"],
            external_athlete_id=row["external_athlete_id"],
            access_token=row["access_token"],
            refresh_token=row["refresh_token"],
            expires_at=from_db_time(row["expires_at"]),
            scope=row["scope"],
            last_sync_at=from_db_time(row["last_sync_at"]),
        )


class PlannedEntryRepository:
    """Repository for planned calendar entries."""

    def __init__(self, db_path: Path | None = None):
        self.db_path = db_path or get_db_path()

    async def create(self, entry: PlannedEntry) -> int:
        """Create a new planned entry."""
        data = entry.to_dict()
        async with aiosqlite.connect(self.db_path) as db:
            cursor = await db.execute(
                """
                INSERT INTO planned_entries
                (athlete_id, date, planned_start_time_local, discipline, title,
                 planned_duration_minutes, planned_distance_km, planned_calories_kcal, status)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    data["athlete_id"],
                    data["date"],
                    data["planned_start_time_local"],
                    data["discipline"],
                    data["title"],
                    data["planned_duration_minutes"],
                    data["planned_distance_km"],
                    data["planned_calories_kcal"],
                    data["status"],
                ),
            )
            await db.commit()
            return cursor.lastrowid

    async def get(self, entry_id: int) -> PlannedEntry | None:
        """Get a planned entry by ID, including soft-deleted ones."""
        async with aiosqlite.connect(self.db_path) as db:
            db.row_factory = aiosqlite.Row
            cursor = await db.execute("SELECT * FROM planned_entries WHERE id = ?", (entry_id,))
            row = await cursor.fetchone()
            if row is None:
                return None
            return self._row_to_entry(row)

    async def list_in_range(
        self, athlete_id: int, from_day_key: str, to_day_key: str, include_deleted: bool = False
    ) -> list[PlannedEntry]:
        """List entries whose local day falls in the inclusive range."""
        query = "SELECT * FROM planned_entries WHERE athlete_id = ? AND date >= ? AND date <= ?"
        if not include_deleted:
            query += " AND deleted_at IS NULL"
        query += " ORDER BY date, planned_start_time_local, id"

        async with aiosqlite.connect(self.db_path) as db:
            db.row_factory = aiosqlite.Row
            cursor = await db.execute(query, (athlete_id, from_day_key, to_day_key))
            rows = await cursor.fetchall()
            return [self._row_to_entry(row) for row in rows]

    async def list_match_candidates(
        self, athlete_id: int, from_day_key: str, to_day_key: str
    ) -> list[PlannedEntry]:
        """Open, non-deleted entries a synced activity may still claim."""
        async with aiosqlite.connect(self.db_path) as db:
            db.row_factory = aiosqlite.Row
            cursor = await db.execute(
                """
                SELECT * FROM planned_entries
                WHERE athlete_id = ? AND date >= ? AND date <= ?
                  AND deleted_at IS NULL AND status IN (?, ?)
                ORDER BY id
                """,
                (athlete_id, from_day_key, to_day_key, *OPEN_STATUSES),
            )
            rows = await cursor.fetchall()
            return [self._row_to_entry(row) for row in rows]

    async def set_status(self, entry_id: int, status: EntryStatus) -> bool:
        """Set the status of a non-deleted entry. Returns False if none matched."""
        async with aiosqlite.connect(self.db_path) as db:
            cursor = await db.execute(
                "UPDATE planned_entries SET status = ? WHERE id = ? AND deleted_at IS NULL",
                (status.value, entry_id),
            )
            await db.commit()
            return cursor.rowcount > 0

    async def soft_delete(self, entry_id: int, now: datetime) -> bool:
        """Mark an entry deleted. Rows are never removed."""
        async with aiosqlite.connect(self.db_path) as db:
            cursor = await db.execute(
                "UPDATE planned_entries SET deleted_at = ? WHERE id = ? AND deleted_at IS NULL",
                (to_db_time(now), entry_id),
            )
            await db.commit()
            return cursor.rowcount > 0

    def _row_to_entry(self, row: aiosqlite.Row) -> PlannedEntry:
        """Convert a database row to a PlannedEntry."""
        return PlannedEntry(
            id=row["id"],
            athlete_id=row["athlete_id"],
            date=row["date"],
            planned_start_time_local=row["planned_start_time_local"],
            discipline=Discipline(row["discipline"]) if row["discipline"] else None,
            title=row["title"],
            planned_duration_minutes=row["planned_duration_minutes"],
            planned_distance_km=row["planned_distance_km"],
            planned_calories_kcal=row["planned_calories_kcal"],
            status=EntryStatus(row["status"]),
            deleted_at=from_db_time(row["deleted_at"]),
        )


class CompletedActivityRepository:
    """Repository for completed activities."""

    def __init__(self, db_path: Path | None = None):
        self.db_path = db_path or get_db_path()

    async def create(self, activity: CompletedActivity, now: datetime) -> int:
        """Insert a completion. Raises IntegrityError on a duplicate external id."""
        async with aiosqlite.connect(self.db_path) as db:
            activity_id = await self._insert(db, activity, now)
            await db.commit()
            return activity_id

    async def create_linked_manual(
        self, activity: CompletedActivity, entry_id: int, entry_status: EntryStatus, now: datetime
    ) -> int | None:
        """Close an open entry and insert its manual completion in one transaction.

        Returns None, with nothing written, if the entry is deleted or no
        longer open.
        """
        async with aiosqlite.connect(self.db_path) as db:
            cursor = await db.execute(
                """
                UPDATE planned_entries SET status = ?
                WHERE id = ? AND deleted_at IS NULL AND status IN (?, ?)
                """,
                (entry_status.value, entry_id, *OPEN_STATUSES),
            )
            if cursor.rowcount == 0:
                await db.rollback()
                return None

            activity_id = await self._insert(db, activity, now)
            await db.commit()
            return activity_id

    async def _insert(self, db: aiosqlite.Connection, activity: CompletedActivity, now: datetime) -> int:
        cursor = await db.execute(
            """
            INSERT INTO completed_activities
            (athlete_id, planned_entry_id, source, external_activity_id, start_time,
             duration_minutes, distance_km, discipline, metrics, match_day_diff,
             activity_day_key, confirmed_at, created_at, updated_at)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (
                activity.athlete_id,
                activity.planned_entry_id,
                activity.source.value,
                activity.external_activity_id,
                to_db_time(activity.start_time),
                activity.duration_minutes,
                activity.distance_km,
                activity.discipline.value if activity.discipline else None,
                json.dumps(activity.metrics.to_dict(), sort_keys=True),
                activity.match_day_diff,
                activity.activity_day_key,
                to_db_time(activity.confirmed_at),
                to_db_time(now),
                to_db_time(now),
            ),
        )
        return cursor.lastrowid

    async def get(self, activity_id: int) -> CompletedActivity | None:
        async with aiosqlite.connect(self.db_path) as db:
            db.row_factory = aiosqlite.Row
            cursor = await db.execute(
                "SELECT * FROM completed_activities WHERE id = ?", (activity_id,)
            )
            row = await cursor.fetchone()
            if row is None:
                return None
            return self._row_to_activity(row)

    async def get_by_external_id(
        self, athlete_id: int, source: CompletionSource, external_activity_id: str
    ) -> CompletedActivity | None:
        async with aiosqlite.connect(self.db_path) as db:
            db.row_factory = aiosqlite.Row
            cursor = await db.execute(
                """
                SELECT * FROM completed_activities
                WHERE athlete_id = ? AND source = ? AND external_activity_id = ?
                """,
                (athlete_id, source.value, external_activity_id),
            )
            row = await cursor.fetchone()
            if row is None:
                return None
            return self._row_to_activity(row)

    async def upsert_external(
        self, activity: CompletedActivity, now: datetime
    ) -> tuple[UpsertOutcome, CompletedActivity]:
        """Insert or refresh a synced completion keyed by its external identity.

        Only the provider figures are refreshed. Linkage, ``match_day_diff``
        and confirmation are left as stored.
        """
        if not activity.external_activity_id:
            raise ValueError("Synced activities need an external_activity_id")

        try:
            activity.id = await self.create(activity, now)
            return UpsertOutcome.CREATED, activity
        except aiosqlite.IntegrityError:
            pass

        existing = await self.get_by_external_id(
            activity.athlete_id, activity.source, activity.external_activity_id
        )
        if existing is None:
            raise RuntimeError(
                f"Completion {activity.external_activity_id} conflicted but could not be loaded"
            )

        if self._figures(existing) == self._figures(activity):
            return UpsertOutcome.UNCHANGED, existing

        async with aiosqlite.connect(self.db_path) as db:
            await db.execute(
                """
                UPDATE completed_activities SET
                    start_time = ?, duration_minutes = ?, distance_km = ?, discipline = ?, metrics = ?,
                    activity_day_key = ?, updated_at = ?
                WHERE id = ?
                """,
                (
                    to_db_time(activity.start_time),
                    activity.duration_minutes,
                    activity.distance_km,
                    activity.discipline.value if activity.discipline else None,
                    json.dumps(activity.metrics.to_dict(), sort_keys=True),
                    activity.activity_day_key,
                    to_db_time(now),
                    existing.id,
                ),
            )
            await db.commit()

        existing.start_time = activity.start_time
        existing.duration_minutes = activity.duration_minutes
        existing.distance_km = activity.distance_km
        existing.discipline = activity.discipline
        existing.metrics = activity.metrics
        existing.activity_day_key = activity.activity_day_key
        existing.updated_at = now
        return UpsertOutcome.UPDATED, existing

    async def link_to_entry(
        self, activity_id: int, entry_id: int, match_day_diff: int, entry_status: EntryStatus
    ) -> bool:
        """Link a completion and move the entry's status in one transaction.

        Fails (returns False, nothing written) if the completion is already
        linked or the entry is no longer open.
        """
        async with aiosqlite.connect(self.db_path) as db:
            cursor = await db.execute(
                """
                UPDATE completed_activities SET planned_entry_id = ?, match_day_diff = ?
                WHERE id = ? AND planned_entry_id IS NULL
                """,
                (entry_id, match_day_diff, activity_id),
            )
            if cursor.rowcount == 0:
                await db.rollback()
                return False

            cursor = await db.execute(
                """
                UPDATE planned_entries SET status = ?
                WHERE id = ? AND deleted_at IS NULL AND status IN (?, ?)
                """,
                (entry_status.value, entry_id, *OPEN_STATUSES),
            )
            if cursor.rowcount == 0:
                await db.rollback()
                return False

            await db.commit()
            return True

    async def mark_confirmed(self, activity_id: int, now: datetime) -> None:
        async with aiosqlite.connect(self.db_path) as db:
            await db.execute(
                "UPDATE completed_activities SET confirmed_at = ?, updated_at = ? WHERE id = ?",
                (to_db_time(now), to_db_time(now), activity_id),
            )
            await db.commit()

    async def latest_for_entries(self, entry_ids: list[int]) -> dict[int, CompletedActivity]:
        """Most recent completion per planned entry."""
        if not entry_ids:
            return {}

        placeholders = ", ".join("?" for _ in entry_ids)
        async with aiosqlite.connect(self.db_path) as db:
            db.row_factory = aiosqlite.Row
            cursor = await db.execute(
                f"""
                SELECT * FROM completed_activities
                WHERE planned_entry_id IN ({placeholders})
                ORDER BY updated_at, id
                """,
                tuple(entry_ids),
            )
            rows = await cursor.fetchall()

        latest: dict[int, CompletedActivity] = {}
        for row in rows:
            activity = self._row_to_activity(row)
            latest[activity.planned_entry_id] = activity
        return latest

    async def list_unlinked_between(
        self, athlete_id: int, start_utc: datetime, end_utc: datetime
    ) -> list[CompletedActivity]:
        """Unplanned completions starting in ``[start_utc, end_utc)``."""
        async with aiosqlite.connect(self.db_path) as db:
            db.row_factory = aiosqlite.Row
            cursor = await db.execute(
                """
                SELECT * FROM completed_activities
                WHERE athlete_id = ? AND planned_entry_id IS NULL
                  AND start_time >= ? AND start_time < ?
                ORDER BY start_time, id
                """,
                (athlete_id, to_db_time(start_utc), to_db_time(end_utc)),
            )
            rows = await cursor.fetchall()
            return [self._row_to_activity(row) for row in rows]

    async def count_for_athlete(self, athlete_id: int) -> int:
        async with aiosqlite.connect(self.db_path) as db:
            cursor = await db.execute(
                "SELECT COUNT(*) FROM completed_activities WHERE athlete_id = ?", (athlete_id,)
            )
            row = await cursor.fetchone()
            return row[0]

    @staticmethod
    def _figures(activity: CompletedActivity) -> tuple:
        return (
            to_db_time(activity.start_time),
            activity.duration_minutes,
            activity.distance_km,
            activity.discipline,
            json.dumps(activity.metrics.to_dict(), sort_keys=True),
            activity.activity_day_key,
        )

    def _row_to_activity(self, row: aiosqlite.Row) -> CompletedActivity:
        """Convert a database row to a CompletedActivity."""
        return CompletedActivity(
            id=row["id"],
            athlete_id=row["athlete_id"],
            planned_entry_id=row["planned_entry_id"],
            source=CompletionSource(row["source"]),
            external_activity_id=row["external_activity_id"],
            start_time=from_db_time(row["start_time"]),
            duration_minutes=row["duration_minutes"],
            distance_km=row["distance_km"],
            discipline=Discipline(row["discipline"]) if row["discipline"] else None,
            metrics=metrics_from_dict(json.loads(row["metrics"])),
            match_day_diff=row["match_day_diff"],
            activity_day_key=row["activity_day_key"],
            confirmed_at=from_db_time(row["confirmed_at"]),
            created_at=from_db_time(row["created_at"]),
            updated_at=from_db_time(row["updated_at"]),
        )


class SyncIntentRepository:
    """Repository for the per-athlete sync ledger.

    Every state change is a single SQL statement so concurrent webhook
    deliveries and drain jobs never interleave a read with a write.
    """

    def __init__(self, db_path: Path | None = None):
        self.db_path = db_path or get_db_path()

    async def get(self, athlete_id: int) -> SyncIntent | None:
        async with aiosqlite.connect(self.db_path) as db:
            db.row_factory = aiosqlite.Row
            cursor = await db.execute(
                "SELECT * FROM sync_intents WHERE athlete_id = ?", (athlete_id,)
            )
            row = await cursor.fetchone()
            if row is None:
                return None
            return self._row_to_intent(row)

    async def ensure(self, athlete_id: int) -> None:
        """Create an idle row if the athlete has none yet."""
        async with aiosqlite.connect(self.db_path) as db:
            await db.execute(
                "INSERT OR IGNORE INTO sync_intents (athlete_id) VALUES (?)", (athlete_id,)
            )
            await db.commit()

    async def record_event(
        self, athlete_id: int, event_at: datetime, activity_id_hint: str | None = None
    ) -> None:
        """Mark the athlete pending; event time only moves forward."""
        event_at_text = to_db_time(event_at)
        async with aiosqlite.connect(self.db_path) as db:
            await db.execute(
                """
                INSERT INTO sync_intents
                    (athlete_id, pending, last_event_at, last_activity_id, event_count)
                VALUES (?, 1, ?, ?, 1)
                ON CONFLICT(athlete_id) DO UPDATE SET
                    pending = 1,
                    event_count = sync_intents.event_count + 1,
                    last_activity_id = CASE
                        WHEN sync_intents.last_event_at IS NULL
                          OR excluded.last_event_at >= sync_intents.last_event_at
                        THEN COALESCE(excluded.last_activity_id, sync_intents.last_activity_id)
                        ELSE sync_intents.last_activity_id
                    END,
                    last_event_at = CASE
                        WHEN sync_intents.last_event_at IS NULL
                          OR excluded.last_event_at > sync_intents.last_event_at
                        THEN excluded.last_event_at
                        ELSE sync_intents.last_event_at
                    END
                """,
                (athlete_id, event_at_text, activity_id_hint),
            )
            await db.commit()

    async def try_acquire_lease(
        self,
        athlete_id: int,
        now: datetime,
        lease_duration: timedelta,
        debounce_window: timedelta,
    ) -> bool:
        """Test-and-set the lease. Exactly one concurrent caller can win."""
        now_text = to_db_time(now)
        async with aiosqlite.connect(self.db_path) as db:
            cursor = await db.execute(
                """
                UPDATE sync_intents SET
                    locked_until = ?,
                    last_attempt_at = ?,
                    attempts = attempts + 1,
                    claimed_event_count = event_count
                WHERE athlete_id = ?
                  AND (locked_until IS NULL OR locked_until <= ?)
                  AND (last_attempt_at IS NULL OR last_attempt_at <= ?)
                  AND (next_attempt_at IS NULL OR next_attempt_at <= ?)
                """,
                (
                    to_db_time(now + lease_duration),
                    now_text,
                    athlete_id,
                    now_text,
                    to_db_time(now - debounce_window),
                    now_text,
                ),
            )
            await db.commit()
            return cursor.rowcount == 1

    async def release_success(self, athlete_id: int, now: datetime) -> None:
        """Clear the lease; stay pending only if an event arrived mid-run."""
        async with aiosqlite.connect(self.db_path) as db:
            await db.execute(
                """
                UPDATE sync_intents SET
                    pending = CASE WHEN event_count > claimed_event_count THEN 1 ELSE 0 END,
                    attempts = 0,
                    locked_until = NULL,
                    next_attempt_at = NULL,
                    last_error = NULL,
                    last_success_at = ?
                WHERE athlete_id = ?
                """,
                (to_db_time(now), athlete_id),
            )
            await db.commit()

    async def release_retryable(
        self, athlete_id: int, now: datetime, backoff_delay: timedelta, error_message: str
    ) -> None:
        """Clear the lease and schedule the next attempt."""
        async with aiosqlite.connect(self.db_path) as db:
            await db.execute(
                """
                UPDATE sync_intents SET
                    pending = 1,
                    locked_until = NULL,
                    next_attempt_at = ?,
                    last_error = ?
                WHERE athlete_id = ?
                """,
                (
                    to_db_time(now + backoff_delay),
                    (error_message or "Unknown error")[:MAX_ERROR_LENGTH],
                    athlete_id,
                ),
            )
            await db.commit()

    async def list_due(
        self, now: datetime, debounce_window: timedelta, limit: int = 25
    ) -> list[SyncIntent]:
        """Pending rows whose lease, debounce and backoff have all lapsed."""
        now_text = to_db_time(now)
        async with aiosqlite.connect(self.db_path) as db:
            db.row_factory = aiosqlite.Row
            cursor = await db.execute(
                """
                SELECT * FROM sync_intents
                WHERE pending = 1
                  AND (locked_until IS NULL OR locked_until <= ?)
                  AND (last_attempt_at IS NULL OR last_attempt_at <= ?)
                  AND (next_attempt_at IS NULL OR next_attempt_at <= ?)
                ORDER BY last_event_at, athlete_id
                LIMIT ?
                """,
                (now_text, to_db_time(now - debounce_window), now_text, limit),
            )
            rows = await cursor.fetchall()
            return [self._row_to_intent(row) for row in rows]

    async def list_all(self) -> list[SyncIntent]:
        async with aiosqlite.connect(self.db_path) as db:
            db.row_factory = aiosqlite.Row
            cursor = await db.execute("SELECT * FROM sync_intents ORDER BY athlete_id")
            rows = await cursor.fetchall()
            return [self._row_to_intent(row) for row in rows]

    def _row_to_intent(self, row: aiosqlite.Row) -> SyncIntent:
        """Convert a database row to a SyncIntent."""
        return SyncIntent(
            athlete_id=row["athlete_id"],
            pending=bool(row["pending"]),
            last_event_at=from_db_time(row["last_event_at"]),
            last_activity_id=row["last_activity_id"],
            locked_until=from_db_time(row["locked_until"]),
            last_attempt_at=from_db_time(row["last_attempt_at"]),
            attempts=row["attempts"],
            next_attempt_at=from_db_time(row["next_attempt_at"]),
            last_error=row["last_error"],
            last_success_at=from_db_time(row["last_success_at"]),
            event_count=row["event_count"],
            claimed_event_count=row["claimed_event_count"],
        )
