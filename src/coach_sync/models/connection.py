"""Athlete and provider connection models.

Both are owned by the account/authentication layer; the sync core reads them
and only writes back refreshed tokens and the sync watermark.
"""

from dataclasses import dataclass, replace
from datetime import datetime


@dataclass
class Athlete:
    """Minimal athlete record: identity and home timezone."""

    name: str
    timezone: str = "UTC"
    id: int | None = None

    def to_dict(self) -> dict:
        return {"id": self.id, "name": self.name, "timezone": self.timezone}


@dataclass
class ConnectionEntry:
    """Credentials and watermark for one athlete's provider connection."""

    athlete_id: int
    athlete_timezone: str
    external_athlete_id: str
    access_token: str
    refresh_token: str
    expires_at: datetime
    scope: str | None = None
    last_sync_at: datetime | None = None
    provider: str = "STRAVA"
    id: int | None = None

    def needs_refresh(self, now: datetime, skew_seconds: int = 60) -> bool:
        """Whether the access token expires within ``skew_seconds``."""
        return (self.expires_at - now).total_seconds() <= skew_seconds

    def with_tokens(
        self, access_token: str, refresh_token: str, expires_at: datetime, scope: str | None
    ) -> "ConnectionEntry":
        return replace(
            self,
            access_token=access_token,
            refresh_token=refresh_token,
            expires_at=expires_at,
            scope=scope if scope is not None else self.scope,
        )
