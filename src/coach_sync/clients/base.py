"""Base class for activity provider clients."""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime

from ..models.calendar import Discipline
from ..models.metrics import Metrics, UnknownMetrics


@dataclass
class TokenGrant:
    """Credentials returned by a token refresh."""

    access_token: str
    refresh_token: str
    expires_at: datetime
    scope: str | None = None


@dataclass
class ExternalActivity:
    """A provider activity normalized for matching and storage."""

    external_activity_id: str
    start_time: datetime  # UTC
    discipline: Discipline
    duration_minutes: int
    distance_km: float | None = None
    title: str = ""
    metrics: Metrics = field(default_factory=UnknownMetrics)


class BaseProviderClient(ABC):
    """Base class for provider clients with common functionality."""

    @property
    @abstractmethod
    def source_name(self) -> str:
        """Return the name of this provider."""
        pass

    @abstractmethod
    async def refresh_token(self, refresh_token: str) -> TokenGrant:
        pass

    @abstractmethod
    async def list_activities(
        self, access_token: str, after: datetime, page: int = 1, per_page: int = 50
    ) -> list[dict]:
        pass

    @abstractmethod
    async def get_activity(self, access_token: str, activity_id: str) -> dict:
        pass

    async def list_all_activities(
        self, access_token: str, after: datetime, per_page: int = 50, max_pages: int = 10
    ) -> list[dict]:
        """Page through activities until a short page or ``max_pages``."""
        activities: list[dict] = []
        for page in range(1, max_pages + 1):
            batch = await self.list_activities(access_token, after, page=page, per_page=per_page)
            activities.extend(batch)
            if len(batch) < per_page:
                break
        return activities

    async def aclose(self) -> None:
        """Release any held connections."""
        pass
