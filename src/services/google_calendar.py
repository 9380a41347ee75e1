"""Async HTTP client for the Google Calendar API v3 with retry logic.

Google Calendar API docs: https://developers.google.com/calendar/api/v3/reference
Requests are authorised with a short-lived OAuth access token obtained by
exchanging a long-lived refresh token at ``GOOGLE_TOKEN_URL``.
"""

from __future__ import annotations

import asyncio
import logging
import time
from typing import Any
from urllib.parse import quote

import httpx

from src.config import (
    GOOGLE_CALENDAR_BASE_URL,
    GOOGLE_CLIENT_ID,
    GOOGLE_CLIENT_SECRET,
    GOOGLE_REFRESH_TOKEN,
    GOOGLE_TOKEN_URL,
)
from src.services.metrics import metrics

logger = logging.getLogger(__name__)

# ── Retry configuration ─────────────────────────────────────────────
MAX_RETRIES = 3
INITIAL_BACKOFF_SECONDS = 1.0
REQUEST_TIMEOUT_SECONDS = 15.0

# Refresh the access token this long before Google says it expires
TOKEN_EXPIRY_MARGIN_SECONDS = 60

# Failures that happen before the request reaches Google
_UNSENT_ERRORS = (httpx.ConnectError, httpx.ConnectTimeout)


def _segment(value: str) -> str:
    """Percent-encode *value* as a single URL path segment.

    Ids come from model output, so ``/``, ``?``, ``#`` and bare dot
    segments must not change which endpoint is called.
    """
    encoded = quote(value, safe="")
    if encoded in (".", ".."):
        encoded = encoded.replace(".", "%2E")
    return encoded


def _events_path(calendar_id: str, event_id: str | None = None) -> str:
    path = f"/calendars/{_segment(calendar_id)}/events"
    if event_id is not None:
        path += f"/{_segment(event_id)}"
    return path


class GoogleCalendarAPIError(Exception):
    """Raised when a Google Calendar call fails after all retries."""

    def __init__(self, message: str, status_code: int | None = None):
        self.status_code = status_code
        super().__init__(message)


class GoogleCalendarClient:
    """Thin async wrapper around the Calendar v3 REST API.

    Only the three endpoints the agent needs are exposed: insert, list and
    delete events.  Timeouts, connection errors and 5xx responses are
    retried with exponential backoff; 4xx responses fail immediately.  A
    ``POST`` that timed out after connecting is not retried.
    """

    def __init__(
        self,
        *,
        client_id: str | None = None,
        client_secret: str | None = None,
        refresh_token: str | None = None,
        base_url: str | None = None,
        token_url: str | None = None,
        http_client: httpx.AsyncClient | None = None,
    ):
        self._client_id = client_id or GOOGLE_CLIENT_ID
        self._client_secret = client_secret or GOOGLE_CLIENT_SECRET
        self._refresh_token = refresh_token or GOOGLE_REFRESH_TOKEN
        self._token_url = token_url or GOOGLE_TOKEN_URL
        self._client = http_client or httpx.AsyncClient(
            base_url=base_url or GOOGLE_CALENDAR_BASE_URL,
            timeout=REQUEST_TIMEOUT_SECONDS,
        )
        self._access_token: str | None = None
        self._token_expires_at = 0.0

    async def aclose(self) -> None:
        await self._client.aclose()

    # ── Auth ─────────────────────────────────────────────────────────

    async def _get_access_token(self) -> str:
        """Return a valid access token, refreshing it when close to expiry."""
        if self._access_token and time.monotonic() < self._token_expires_at:
            return self._access_token

        if not (self._client_id and self._client_secret and self._refresh_token):
            raise GoogleCalendarAPIError(
                "Google Calendar credentials are not configured. Set GOOGLE_CLIENT_ID, "
                "GOOGLE_CLIENT_SECRET and GOOGLE_REFRESH_TOKEN."
            )

        response = await self._client.post(
            self._token_url,
            data={
                "client_id": self._client_id,
                "client_secret": self._client_secret,
                "refresh_token": self._refresh_token,
                "grant_type": "refresh_token",
            },
        )
        if response.status_code >= 400:
            raise GoogleCalendarAPIError(
                f"Token refresh failed {response.status_code}: {response.text}",
                status_code=response.status_code,
            )

        data = response.json()
        self._access_token = data["access_token"]
        expires_in = float(data.get("expires_in", 3600))
        self._token_expires_at = time.monotonic() + expires_in - TOKEN_EXPIRY_MARGIN_SECONDS
        logger.debug("Refreshed Google access token (expires in %.0fs)", expires_in)
        return self._access_token

    # ── Internal helpers ─────────────────────────────────────────────

    async def _request(
        self,
        method: str,
        path: str,
        *,
        params: dict[str, Any] | None = None,
        json_body: dict[str, Any] | None = None,
    ) -> dict[str, Any]:
        """Execute an authorised request with exponential-backoff retries."""
        token = await self._get_access_token()
        operation = f"{method} events"
        last_error: Exception | None = None

        for attempt in range(1, MAX_RETRIES + 1):
            t0 = time.perf_counter()
            try:
                response = await self._client.request(
                    method,
                    path,
                    params=params,
                    json=json_body,
                    headers={"Authorization": f"Bearer {token}"},
                )
                if response.status_code >= 500:
                    raise GoogleCalendarAPIError(
                        f"Server error {response.status_code}: {response.text}",
                        status_code=response.status_code,
                    )
                if response.status_code >= 400:
                    raise GoogleCalendarAPIError(
                        f"Client error {response.status_code}: {response.text}",
                        status_code=response.status_code,
                    )
                metrics.record_success(
                    "google_calendar", operation,
                    latency_ms=(time.perf_counter() - t0) * 1000,
                )
                # DELETE answers 204 with an empty body
                if response.status_code == 204 or not response.content:
                    return {}
                return response.json()

            except (httpx.TimeoutException, httpx.ConnectError) as exc:
                last_error = exc
                metrics.record_failure(
                    "google_calendar", operation, error_type=type(exc).__name__,
                )
                if method == "POST" and not isinstance(exc, _UNSENT_ERRORS):
                    # The event may already exist; a retry would invite attendees twice
                    logger.error("Google Calendar POST failed after sending (%s)", type(exc).__name__)
                    raise
                logger.warning(
                    "Google Calendar attempt %d/%d failed (%s). Retrying in %.1fs…",
                    attempt,
                    MAX_RETRIES,
                    type(exc).__name__,
                    INITIAL_BACKOFF_SECONDS * (2 ** (attempt - 1)),
                )
            except GoogleCalendarAPIError as exc:
                metrics.record_failure(
                    "google_calendar", operation, error_type=str(exc.status_code),
                )
                if exc.status_code and exc.status_code >= 500:
                    last_error = exc
                    logger.warning(
                        "Google Calendar server error on attempt %d/%d. Retrying…",
                        attempt,
                        MAX_RETRIES,
                    )
                else:
                    raise  # 4xx errors are not retried

            await asyncio.sleep(INITIAL_BACKOFF_SECONDS * (2 ** (attempt - 1)))

        raise GoogleCalendarAPIError(
            f"Google Calendar request failed after {MAX_RETRIES} retries: {last_error}"
        )

    # ── Public API methods ───────────────────────────────────────────

    async def insert_event(
        self,
        calendar_id: str,
        event: dict[str, Any],
        *,
        send_updates: str = "all",
    ) -> dict[str, Any]:
        """Create an event and return the event resource."""
        return await self._request(
            "POST",
            _events_path(calendar_id),
            params={"conferenceDataVersion": 1, "sendUpdates": send_updates},
            json_body=event,
        )

    async def list_events(
        self,
        calendar_id: str,
        *,
        time_min: str | None = None,
        time_max: str | None = None,
        max_results: int | None = None,
    ) -> list[dict[str, Any]]:
        """List single (expanded) events ordered by start time."""
        params: dict[str, Any] = {"singleEvents": "true", "orderBy": "startTime"}
        if time_min:
            params["timeMin"] = time_min
        if time_max:
            params["timeMax"] = time_max
        if max_results:
            params["maxResults"] = max_results
        data = await self._request("GET", _events_path(calendar_id), params=params)
        return data.get("items", [])

    async def delete_event(
        self,
        calendar_id: str,
        event_id: str,
        *,
        send_updates: str = "all",
    ) -> None:
        """Delete an event, notifying attendees according to *send_updates*."""
        await self._request(
            "DELETE",
            _events_path(calendar_id, event_id),
            params={"sendUpdates": send_updates},
        )
