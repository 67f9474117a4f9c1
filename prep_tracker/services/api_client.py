"""REST client for the exam-prep study API.

Session-cookie authentication: the cookie issued at login is attached to
every request (credential passthrough); the client never logs in itself.
"""

from __future__ import annotations

import logging
from typing import Any

import httpx

from prep_tracker.core.config import Settings
from prep_tracker.core.errors import HTTPError, NetworkError, ResponseFormatError
from prep_tracker.core.request_context import on_request, on_response

logger = logging.getLogger(__name__)

SESSION_COOKIE_NAME = "connect.sid"


class StudyApiClient:
    """HTTP client for the study API.

    Translates every failure into the prep_tracker error taxonomy:
    transport failures become NetworkError, non-2xx responses HTTPError
    carrying the status code and the response body text.
    """

    def __init__(
        self,
        base_url: str,
        *,
        session_cookie: str | None = None,
        cookie_name: str = SESSION_COOKIE_NAME,
        timeout: float = 30.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        cookies = {cookie_name: session_cookie} if session_cookie else None
        self._client = httpx.AsyncClient(
            base_url=self.base_url,
            timeout=timeout,
            cookies=cookies,
            transport=transport,
            event_hooks={"request": [on_request], "response": [on_response]},
        )

    @classmethod
    def from_settings(
        cls, settings: Settings, transport: httpx.AsyncBaseTransport | None = None
    ) -> StudyApiClient:
        return cls(
            settings.api_base_url,
            session_cookie=settings.session_cookie,
            timeout=settings.request_timeout_seconds,
            transport=transport,
        )

    async def close(self) -> None:
        """Close the HTTP client."""
        await self._client.aclose()

    async def __aenter__(self) -> StudyApiClient:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.close()

    async def _request(self, method: str, path: str, **kwargs: Any) -> Any:
        """Send a request and return the decoded JSON body ({} when empty)."""
        try:
            response = await self._client.request(method, path, **kwargs)
        except httpx.TransportError as exc:
            logger.warning("%s %s did not reach the server: %s", method, path, exc)
            raise NetworkError(method, path, exc) from exc

        if not response.is_success:
            body = response.text or response.reason_phrase
            raise HTTPError(response.status_code, body, method=method, path=path)

        if not response.content:
            return {}
        try:
            return response.json()
        except ValueError as exc:
            raise ResponseFormatError(
                f"{method} {path} returned a non-JSON body",
                path=path,
                body=response.text[:500],
                status_code=response.status_code,
            ) from exc

    async def get(self, path: str) -> Any:
        return await self._request("GET", path)

    # --- Analytics endpoints ---

    async def track_activity(self, payload: dict[str, Any]) -> dict:
        """Record one completed study action."""
        return await self._request(
            "POST", "/api/analytics/track-activity", json=payload
        )

    async def check_badges(self) -> dict:
        """Ask the server to award any newly earned badges."""
        return await self._request("POST", "/api/analytics/check-badges")

    async def get_overview(self) -> dict:
        return await self._request("GET", "/api/analytics/overview")

    async def get_overall_progress(self) -> dict:
        return await self._request("GET", "/api/analytics/overall-progress")

    # --- Study-session streak endpoints ---

    async def validate_streak(self) -> dict:
        """Trigger server-side streak recomputation."""
        return await self._request("POST", "/api/study-sessions/validate-streak")

    async def get_streak(self) -> dict:
        return await self._request("GET", "/api/study-sessions/streak")

    # --- Daily progress endpoints ---

    async def get_daily_progress(self) -> dict:
        return await self._request("GET", "/api/daily-progress/today")

    async def get_daily_streak(self) -> dict:
        return await self._request("GET", "/api/daily-progress/streak")

    async def complete_daily_requirement(self, mode: str) -> dict:
        """Mark today's quiz, review or practice requirement as done."""
        if mode not in ("quiz", "review", "practice"):
            raise ValueError(f"mode must be quiz|review|practice (got {mode!r})")
        return await self._request("POST", f"/api/daily-progress/{mode}", json={})
