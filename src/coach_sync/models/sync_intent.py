"""Per-athlete sync intent (ledger row) model."""

from dataclasses import dataclass
from datetime import datetime
from enum import Enum


class SyncIntentState(str, Enum):
    """Named states of the ledger state machine.

    IDLE -> PENDING (event recorded) -> LOCKED (lease acquired)
    -> IDLE on success, or BACKOFF (pending with a future retry) on failure.
    """

    IDLE = "idle"
    PENDING = "pending"
    LOCKED = "locked"
    BACKOFF = "backoff"


@dataclass
class SyncIntent:
    """Queued or in-flight sync work for one athlete."""

    athlete_id: int
    pending: bool = False
    last_event_at: datetime | None = None
    last_activity_id: str | None = None
    locked_until: datetime | None = None
    last_attempt_at: datetime | None = None
    attempts: int = 0
    next_attempt_at: datetime | None = None
    last_error: str | None = None
    last_success_at: datetime | None = None
    event_count: int = 0
    claimed_event_count: int = 0

    def is_locked(self, now: datetime) -> bool:
        return self.locked_until is not None and self.locked_until > now

    def state_at(self, now: datetime) -> SyncIntentState:
        """Derive the state machine position at ``now``."""
        if self.is_locked(now):
            return SyncIntentState.LOCKED
        if not self.pending:
            return SyncIntentState.IDLE
        if self.next_attempt_at is not None and self.next_attempt_at > now:
            return SyncIntentState.BACKOFF
        return SyncIntentState.PENDING

    def to_dict(self, now: datetime | None = None) -> dict:
        def iso(value: datetime | None) -> str | None:
            return value.isoformat() if value else None

        data = {
            "athlete_id": self.athlete_id,
            "pending": self.pending,
            "last_event_at": iso(self.last_event_at),
            "last_activity_id": self.last_activity_id,
            "locked_until": iso(self.locked_until),
            "last_attempt_at": iso(self.last_attempt_at),
            "attempts": self.attempts,
            "next_attempt_at": iso(self.next_attempt_at),
            "last_error": self.last_error,
            "last_success_at": iso(self.last_success_at),
        }
        if now is not None:
            data["state"] = self.state_at(now).value
        return data
