"""
Async client for the Tuya OpenAPI token and device-log endpoints.

Every request is signed individually (fresh ``t`` and nonce) with the
HMAC-SHA256 scheme from :mod:`energy_monitor.services.signing`. Device logs
are fetched page by page, following the ``next_row_key`` continuation cursor
until the server reports no more pages, the requested size is reached, the
page ceiling is hit, or the cursor stops advancing. The fetch is
all-or-nothing: any failing page raises and already fetched pages are
discarded.

Operations:
- get_access_token(): Issue a signed token request.
- get_device_logs(access_token, device_id, ...): Paginated, signed log fetch.
- fetch_logs(device_id, ...): Acquire a fresh token, then fetch logs.

CHANGELOG:
- 2026-10-16: Report the pagination stop reason (STORY-006)
- 2026-10-16: Initial creation (STORY-004)

TODO:
- None
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass
from datetime import UTC, datetime
from enum import StrEnum
from typing import Any
from urllib.parse import urlencode

import httpx
from pydantic import ValidationError as PydanticValidationError

from energy_monitor.errors import AuthError, RemoteError
from energy_monitor.models import LogPage, RawLogEntry, TokenResult
from energy_monitor.services.signing import new_nonce, signed_headers

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

TOKEN_PATH = "/v1.0/token"
DEVICE_LOGS_PATH = "/v1.0/devices/{device_id}/logs"

DEFAULT_EVENT_TYPES = "1,2,3,4,5,6,7,8,9,10"
"""All Tuya log event types; ``7`` alone selects data point reports."""

PAGE_SIZE_LIMIT = 100
"""Largest page the logs endpoint accepts."""

DEFAULT_MAX_PAGES = 50

DAY_MS = 86_400_000

SECONDS_CUTOFF = 1e10
"""Window bounds below this are epoch seconds, otherwise milliseconds."""


class StopReason(StrEnum):
    """Why a paginated log fetch stopped requesting pages."""

    EXHAUSTED = "exhausted"
    SIZE_REACHED = "size_reached"
    MAX_PAGES = "max_pages"
    CURSOR_STALLED = "cursor_stalled"


@dataclass(frozen=True)
class LogFetchResult:
    """Concatenated entries of every fetched page, in server order."""

    entries: list[RawLogEntry]
    page_count: int
    stop_reason: StopReason


def _now_ms() -> int:
    return int(datetime.now(tz=UTC).timestamp() * 1000)


def _to_epoch_ms(value: float) -> int:
    return int(value * 1000) if value < SECONDS_CUTOFF else int(value)


def resolve_window(
    start: float | None,
    end: float | None,
    now_ms: int,
) -> tuple[int, int]:
    """Resolve caller-supplied window bounds into epoch milliseconds.

    Each bound may be an absolute epoch value (seconds or milliseconds) or a
    negative offset in days relative to *now_ms*. An end of ``None``/``0``
    means now; a start of ``None``/``0`` means one day before the end. An
    inverted window is swapped.

    Returns:
        ``(start_ms, end_ms)`` with ``start_ms <= end_ms``.
    """
    if not end:
        end_ms = now_ms
    elif end < 0:
        end_ms = int(now_ms + end * DAY_MS)
    else:
        end_ms = _to_epoch_ms(end)

    if not start:
        start_ms = end_ms - DAY_MS
    elif start < 0:
        start_ms = int(now_ms + start * DAY_MS)
    else:
        start_ms = _to_epoch_ms(start)

    if start_ms > end_ms:
        start_ms, end_ms = end_ms, start_ms
    return start_ms, end_ms


class TuyaClient:
    """Signed, paginated access to Tuya device logs.

    Args:
        client_id: Tuya access id.
        secret: Tuya access secret.
        base_url: Regional OpenAPI base URL, e.g. ``https://openapi.tuyaeu.com``.
        timeout_s: Per-request timeout when the client creates its own
            ``httpx.AsyncClient``.
        http_client: Optional externally managed ``httpx.AsyncClient``
            (not closed by :meth:`aclose`).
        clock: Returns the current time as epoch milliseconds.
        nonce_factory: Returns a fresh nonce per request.

    Usage::

        async with TuyaClient(client_id="id", secret="s", base_url=url) as client:
            result = await client.fetch_logs("bf123", start=-7, event_types="7")
    """

    def __init__(
        self,
        *,
        client_id: str,
        secret: str,
        base_url: str,
        timeout_s: float = 30.0,
        http_client: httpx.AsyncClient | None = None,
        clock: Callable[[], int] = _now_ms,
        nonce_factory: Callable[[], str] = new_nonce,
    ) -> None:
        self._client_id = client_id
        self._secret = secret
        self._base_url = base_url.rstrip("/")
        self._owns_http = http_client is None
        self._http = http_client or httpx.AsyncClient(timeout=timeout_s, verify=True)
        self._clock = clock
        self._nonce_factory = nonce_factory

    async def aclose(self) -> None:
        """Close the underlying HTTP client if this instance created it."""
        if self._owns_http:
            await self._http.aclose()

    async def __aenter__(self) -> TuyaClient:
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: object,
    ) -> None:
        await self.aclose()

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def get_access_token(self) -> str:
        """Request a new access token.

        Raises:
            AuthError: If the token endpoint answers with ``success: false``.
            RemoteError: On transport errors or an unexpected payload.
        """
        data, body = await self._signed_get(TOKEN_PATH, {"grant_type": "1"})
        if not data.get("success"):
            raise AuthError(f"Failed to get access token: {body}")
        try:
            token = TokenResult.model_validate(data.get("result"))
        except PydanticValidationError as exc:
            raise RemoteError(f"Unexpected token payload: {body}") from exc
        return token.access_token

    async def get_device_logs(
        self,
        access_token: str,
        device_id: str,
        *,
        start: float | None = None,
        end: float | None = None,
        event_types: str = DEFAULT_EVENT_TYPES,
        size: int = 0,
        max_pages: int = DEFAULT_MAX_PAGES,
        start_row_key: str | None = None,
        params: dict[str, str] | None = None,
    ) -> LogFetchResult:
        """Fetch every page of device logs for a time window.

        Args:
            access_token: Token from :meth:`get_access_token`.
            device_id: Tuya device id.
            start: Window start (see :func:`resolve_window`).
            end: Window end (see :func:`resolve_window`).
            event_types: Comma-separated Tuya event types.
            size: Desired total number of entries, 0 for no target.
            max_pages: Page request ceiling (values < 1 mean the default).
            start_row_key: Cursor to resume from.
            params: Extra query parameters.

        Returns:
            LogFetchResult with all entries in server order.

        Raises:
            RemoteError: If any page fails; no partial result is returned.
        """
        start_ms, end_ms = resolve_window(start, end, self._clock())
        request_size = PAGE_SIZE_LIMIT if not size or size > PAGE_SIZE_LIMIT else size
        page_limit = max_pages if max_pages and max_pages >= 1 else DEFAULT_MAX_PAGES

        query: dict[str, str] = {
            "start_time": str(start_ms),
            "end_time": str(end_ms),
            "type": event_types,
            "size": str(request_size),
            "query_type": "1",
            **(params or {}),
        }
        if start_row_key:
            query["start_row_key"] = start_row_key

        path = DEVICE_LOGS_PATH.format(device_id=device_id)
        entries: list[RawLogEntry] = []
        page_count = 0
        cursor = start_row_key

        while True:
            page = await self._fetch_page(path, query, access_token)
            page_count += 1
            entries.extend(page.logs)
            logger.debug(
                "Fetched page %d for device %s: %d logs, %d total",
                page_count,
                device_id,
                len(page.logs),
                len(entries),
            )

            if not page.has_next:
                reason = StopReason.EXHAUSTED
                break
            if size and len(entries) >= size:
                reason = StopReason.SIZE_REACHED
                break
            if page_count >= page_limit:
                reason = StopReason.MAX_PAGES
                break
            if not page.next_row_key or page.next_row_key == cursor:
                reason = StopReason.CURSOR_STALLED
                break

            cursor = page.next_row_key
            query["start_row_key"] = cursor

        logger.info(
            "Fetched %d logs for device %s in %d page(s), stopped: %s",
            len(entries),
            device_id,
            page_count,
            reason,
        )
        return LogFetchResult(entries=entries, page_count=page_count, stop_reason=reason)

    async def fetch_logs(self, device_id: str, **options: Any) -> LogFetchResult:
        """Acquire a fresh access token and fetch device logs.

        Accepts the same keyword options as :meth:`get_device_logs`.
        """
        access_token = await self.get_access_token()
        logger.debug(
            "Access token obtained; fetching logs (device_id=%s, start=%s, end=%s, size=%s)",
            device_id,
            options.get("start"),
            options.get("end"),
            options.get("size"),
        )
        return await self.get_device_logs(access_token, device_id, **options)

    # ------------------------------------------------------------------
    # Private helpers
    # ------------------------------------------------------------------

    async def _fetch_page(
        self,
        path: str,
        query: dict[str, str],
        access_token: str,
    ) -> LogPage:
        data, body = await self._signed_get(path, query, access_token)
        if not data.get("success"):
            raise RemoteError(f"Failed to get device logs: {body}")
        result = data.get("result")
        if result is None:
            raise RemoteError(f"Device logs response has no result: {body}")
        try:
            return LogPage.model_validate(result)
        except PydanticValidationError as exc:
            raise RemoteError(f"Unexpected device logs payload: {exc}") from exc

    async def _signed_get(
        self,
        path: str,
        query: dict[str, str],
        access_token: str | None = None,
    ) -> tuple[dict[str, Any], str]:
        """Sign and send a GET request; return the decoded JSON and raw body."""
        url = f"{self._base_url}{path}"
        if query:
            url = f"{url}?{urlencode(query)}"
        headers = signed_headers(
            client_id=self._client_id,
            secret=self._secret,
            method="GET",
            url=url,
            t=str(self._clock()),
            nonce=self._nonce_factory(),
            access_token=access_token,
        )

        try:
            response = await self._http.get(url, headers=headers)
        except httpx.HTTPError as exc:
            raise RemoteError(f"GET {path} failed: {exc}") from exc

        body = response.text
        try:
            data = response.json()
        except ValueError as exc:
            raise RemoteError(
                f"GET {path} returned a non-JSON body (HTTP {response.status_code}): {body[:200]}"
            ) from exc
        if not isinstance(data, dict):
            raise RemoteError(f"GET {path} returned unexpected JSON: {body[:200]}")
        return data, body
