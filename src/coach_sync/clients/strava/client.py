"""Strava API client."""

from datetime import datetime

import httpx
from loguru import logger

from ...errors import RateLimitedError, UpstreamError
from ..base import BaseProviderClient, TokenGrant
from .parsers import parse_token_grant

STRAVA_BASE_URL = "https://www.strava.com/api/v3"
STRAVA_TOKEN_URL = "https://www.strava.com/oauth/token"


class StravaClient(BaseProviderClient):
    """Async Strava client.

    One instance is shared across a sync batch. Pagination and retries are
    controlled by the caller; a 429 surfaces as RateLimitedError so the
    ledger can back off.
    """

    def __init__(
        self,
        client_id: str,
        client_secret: str,
        timeout: float = 15.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self._client_id = client_id
        self._client_secret = client_secret
        self._http = httpx.AsyncClient(timeout=timeout, transport=transport)

    @property
    def source_name(self) -> str:
        return "strava"

    async def refresh_token(self, refresh_token: str) -> TokenGrant:
        response = await self._send(
            "POST",
            STRAVA_TOKEN_URL,
            data={
                "client_id": self._client_id,
                "client_secret": self._client_secret,
                "grant_type": "refresh_token",
                "refresh_token": refresh_token,
            },
            failure_code="STRAVA_TOKEN_REFRESH_FAILED",
            failure_message="Failed to refresh Strava token.",
        )

        grant = parse_token_grant(response.json())
        if grant is None:
            raise UpstreamError(
                "Strava token refresh response missing required fields.",
                status_code=502,
                code="STRAVA_TOKEN_REFRESH_INVALID",
            )
        return grant

    async def list_activities(
        self, access_token: str, after: datetime, page: int = 1, per_page: int = 50
    ) -> list[dict]:
        response = await self._send(
            "GET",
            f"{STRAVA_BASE_URL}/athlete/activities",
            headers=self._headers(access_token),
            params={"after": max(0, int(after.timestamp())), "page": page, "per_page": per_page},
            failure_code="STRAVA_ACTIVITIES_FETCH_FAILED",
            failure_message="Failed to fetch Strava activities.",
        )

        payload = response.json()
        if not isinstance(payload, list):
            raise UpstreamError(
                "Strava activities response was not an array.",
                status_code=502,
                code="STRAVA_ACTIVITIES_INVALID",
            )
        return payload

    async def get_activity(self, access_token: str, activity_id: str) -> dict:
        response = await self._send(
            "GET",
            f"{STRAVA_BASE_URL}/activities/{activity_id}",
            headers=self._headers(access_token),
            failure_code="STRAVA_ACTIVITY_FETCH_FAILED",
            failure_message="Failed to fetch Strava activity.",
        )

        payload = response.json()
        if not isinstance(payload, dict):
            raise UpstreamError(
                "Strava activity response was not an object.",
                status_code=502,
                code="STRAVA_ACTIVITY_INVALID",
            )
        return payload

    async def aclose(self) -> None:
        await self._http.aclose()

    def _headers(self, access_token: str) -> dict[str, str]:
        return {"Authorization": f"Bearer {access_token}"}

    async def _send(
        self, method: str, url: str, failure_code: str, failure_message: str, **kwargs
    ) -> httpx.Response:
        try:
            response = await self._http.request(method, url, **kwargs)
        except httpx.HTTPError as e:
            logger.warning(f"[STRAVA] {method} {url} failed: {e}")
            raise UpstreamError(f"{failure_message} ({e})", code=failure_code) from e

        if response.status_code == 429:
            logger.warning(f"[STRAVA] Rate limited on {method} {url}")
            raise RateLimitedError()

        if response.is_error:
            message = failure_message
            try:
                body = response.json()
            except ValueError:
                body = None
            if isinstance(body, dict) and body.get("message"):
                message = f"{failure_message} {body['message']}"
            logger.warning(f"[STRAVA] {method} {url} returned {response.status_code}")
            raise UpstreamError(message, status_code=response.status_code, code=failure_code)

        return response
