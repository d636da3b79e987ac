"""Database layer for coach-sync."""

from .engine import get_db_path, init_db
from .repositories import (
    AthleteRepository,
    CompletedActivityRepository,
    ConnectionRepository,
    PlannedEntryRepository,
    SyncIntentRepository,
)

__all__ = [
    "AthleteRepository",
    "CompletedActivityRepository",
    "ConnectionRepository",
    "get_db_path",
    "init_db",
    "PlannedEntryRepository",
    "SyncIntentRepository",
]
