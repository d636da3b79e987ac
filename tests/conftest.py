"""Pytest configuration and fixtures."""

import tempfile
from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest
import pytest_asyncio

from coach_sync.clients.base import BaseProviderClient, TokenGrant
from coach_sync.db import AthleteRepository, ConnectionRepository, PlannedEntryRepository, init_db
from coach_sync.models.calendar import Discipline, PlannedEntry
from coach_sync.models.connection import Athlete, ConnectionEntry

NOW = datetime(2026, 2, 6, 2, 0, tzinfo=timezone.utc)


class FakeProviderClient(BaseProviderClient):
    """In-memory provider keyed by access token."""

    def __init__(self, activities=None, failures=None, grant=None):
        self.activities: dict[str, list[dict]] = activities or {}
        self.failures: dict[str, Exception] = failures or {}
        self.grant = grant
        self.list_calls: list[tuple[str, datetime, int]] = []
        self.get_calls: list[tuple[str, str]] = []
        self.refresh_calls: list[str] = []
        self.closed = False

    @property
    def source_name(self) -> str:
        return "fake"

    async def refresh_token(self, refresh_token: str) -> TokenGrant:
        self.refresh_calls.append(refresh_token)
        return self.grant

    async def list_activities(self, access_token, after, page=1, per_page=50):
        self.list_calls.append((access_token, after, page))
        if access_token in self.failures:
            raise self.failures[access_token]
        items = self.activities.get(access_token, [])
        return items[(page - 1) * per_page : page * per_page]

    async def get_activity(self, access_token, activity_id):
        self.get_calls.append((access_token, activity_id))
        if access_token in self.failures:
            raise self.failures[access_token]
        for raw in self.activities.get(access_token, []):
            if str(raw.get("id")) == str(activity_id):
                return raw
        return {"id": activity_id}

    async def aclose(self) -> None:
        self.closed = True


def raw_activity(
    activity_id,
    start_date: str,
    sport_type: str = "Run",
    moving_time: int = 2700,
    distance: float = 8000.0,
    **extra,
) -> dict:
    """A Strava-shaped activity payload."""
    payload = {
        "id": activity_id,
        "name": f"{sport_type} {activity_id}",
        "sport_type": sport_type,
        "start_date": start_date,
        "moving_time": moving_time,
        "elapsed_time": moving_time + 60,
        "distance": distance,
    }
    payload.update(extra)
    return payload


@pytest.fixture
def temp_db_path():
    """Create a temporary database path."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir) / "test.db"


@pytest_asyncio.fixture
async def db_path(temp_db_path):
    """A temporary database with the schema applied."""
    await init_db(temp_db_path)
    return temp_db_path


@pytest.fixture
def now():
    return NOW


@pytest.fixture
def fake_client():
    return FakeProviderClient()


@pytest.fixture
def add_athlete(db_path):
    """Factory: create an athlete with a Strava connection."""

    async def _add(
        name: str = "Sam",
        time_zone: str = "Australia/Brisbane",
        external_id: str = "9001",
        access_token: str | None = None,
        expires_at: datetime | None = None,
        last_sync_at: datetime | None = None,
    ) -> ConnectionEntry:
        athlete_id = await AthleteRepository(db_path).create(Athlete(name=name, timezone=time_zone))
        connection = ConnectionEntry(
            athlete_id=athlete_id,
            athlete_timezone=time_zone,
            external_athlete_id=external_id,
            access_token=access_token or f"token-{external_id}",
            refresh_token=f"refresh-{external_id}",
            expires_at=expires_at or NOW + timedelta(hours=6),
            last_sync_at=last_sync_at,
        )
        connection.id = await ConnectionRepository(db_path).create(connection)
        return connection

    return _add


@pytest.fixture
def add_entry(db_path):
    """Factory: create a planned entry and return it with its id."""

    async def _add(
        athlete_id: int,
        date: str,
        start: str | None = None,
        discipline: Discipline | None = Discipline.RUN,
        minutes: int | None = 45,
        **fields,
    ) -> PlannedEntry:
        entry = PlannedEntry(
            athlete_id=athlete_id,
            date=date,
            planned_start_time_local=start,
            discipline=discipline,
            planned_duration_minutes=minutes,
            **fields,
        )
        entry.id = await PlannedEntryRepository(db_path).create(entry)
        return entry

    return _add


@pytest.fixture
def make_raw():
    return raw_activity


@pytest.fixture
def make_client():
    return FakeProviderClient
