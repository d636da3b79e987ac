"""Data models for coach-sync."""

from .activity import CompletedActivity, CompletionSource, UpsertOutcome
from .calendar import Discipline, EntryStatus, PlannedEntry
from .connection import Athlete, ConnectionEntry
from .metrics import Metrics, StravaMetrics, UnknownMetrics
from .sync_intent import SyncIntent, SyncIntentState

__all__ = [
    "Athlete",
    "CompletedActivity",
    "CompletionSource",
    "ConnectionEntry",
    "Discipline",
    "EntryStatus",
    "Metrics",
    "PlannedEntry",
    "StravaMetrics",
    "SyncIntent",
    "SyncIntentState",
    "UnknownMetrics",
    "UpsertOutcome",
]
