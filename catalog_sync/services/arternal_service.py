"""
Arternal catalog API client (read side used by the sync engine).
Uses X-API-Key auth, requests library, retries on 429/5xx, and a client-side rate ceiling.
"""

import logging
import threading
import time
from collections import deque
from typing import Any

import requests

from catalog_sync.core.config import get_settings
from catalog_sync.core.errors import FatalFetchError, NotFoundError, TransientFetchError
from catalog_sync.schemas.catalog import CatalogPage, DetailRecord
from catalog_sync.sync.entities import CatalogEntity

logger = logging.getLogger(__name__)


class RateLimiter:
    """
    Sliding-window request limiter shared by every thread using one client.
    acquire() blocks until a request slot is free, then claims it.
    """

    def __init__(self, max_requests: int, window_sec: float) -> None:
        self._max_requests = max_requests
        self._window_sec = window_sec
        self._timestamps: deque[float] = deque()
        self._lock = threading.Lock()

    def acquire(self) -> None:
        with self._lock:
            while True:
                now = time.monotonic()
                # Drop timestamps outside the window
                while self._timestamps and now - self._timestamps[0] >= self._window_sec:
                    self._timestamps.popleft()
                if len(self._timestamps) < self._max_requests:
                    self._timestamps.append(now)
                    return
                sleep_time = self._window_sec - (now - self._timestamps[0])
                logger.warning(
                    "Arternal rate limit reached: sleeping %.1fs (limit %d/%.0fs)",
                    sleep_time,
                    self._max_requests,
                    self._window_sec,
                )
                time.sleep(max(sleep_time, 0.0))


class ArternalService:
    """
    Arternal API v1 client. Listing by limit/offset pages and single-record detail fetch.

    Error mapping:
    - network errors, 429, 5xx -> TransientFetchError (retried with exponential backoff)
    - 404 -> NotFoundError (not retried)
    - 401/403 and other 4xx, malformed bodies -> FatalFetchError (not retried)
    """

    def __init__(
        self,
        api_key: str | None = None,
        *,
        base_url: str | None = None,
        session: requests.Session | None = None,
        page_size: int | None = None,
        max_retries: int | None = None,
        timeout_sec: float | None = None,
        backoff_base_sec: float | None = None,
        backoff_max_sec: float | None = None,
        rate_limiter: RateLimiter | None = None,
    ) -> None:
        settings = get_settings()
        self._api_key = api_key if api_key is not None else settings.arternal_api_key
        self._base_url = (base_url or settings.arternal_api_base_url).rstrip("/")
        self._session = session or requests.Session()
        self._page_size = page_size or settings.sync_page_size
        self._max_retries = settings.arternal_max_retries if max_retries is None else max_retries
        self._timeout_sec = timeout_sec or settings.arternal_timeout_sec
        self._backoff_base_sec = (
            settings.arternal_backoff_base_sec if backoff_base_sec is None else backoff_base_sec
        )
        self._backoff_max_sec = (
            settings.arternal_backoff_max_sec if backoff_max_sec is None else backoff_max_sec
        )
        self._rate_limiter = rate_limiter or RateLimiter(
            settings.arternal_rate_limit_max_requests,
            settings.arternal_rate_limit_window_sec,
        )

    def _get_headers(self) -> dict[str, str]:
        if not self._api_key:
            raise FatalFetchError(
                "Arternal API key not configured. Set ARTERNAL_API_KEY in environment."
            )
        return {"X-API-Key": self._api_key, "Accept": "application/json"}

    def _backoff(self, attempt: int, retry_after: str | None = None) -> float:
        if retry_after:
            try:
                return max(float(retry_after), 0.0)
            except ValueError:
                pass
        return min(self._backoff_max_sec, self._backoff_base_sec * (2 ** attempt))

    @staticmethod
    def _error_body(response: requests.Response) -> Any:
        try:
            return response.json()
        except ValueError:
            return response.text or None

    def _error_message(self, response: requests.Response, body: Any) -> str:
        msg = f"Arternal API error {response.status_code}"
        if isinstance(body, dict):
            detail = body.get("message") or body.get("error")
            if isinstance(detail, str):
                msg += f": {detail}"
        elif isinstance(body, str) and body:
            msg += f": {body[:500]}"
        return msg

    def _request(
        self,
        method: str,
        path: str,
        *,
        params: dict[str, Any] | None = None,
    ) -> dict[str, Any]:
        """
        Execute HTTP request under the rate ceiling, retrying transient failures.
        path: e.g. /inventory (leading slash optional).
        """
        url = f"{self._base_url}/{path.lstrip('/')}"
        headers = self._get_headers()
        retries = self._max_retries
        last_error: TransientFetchError | None = None

        for attempt in range(retries + 1):
            self._rate_limiter.acquire()
            retry_after: str | None = None

            try:
                resp = self._session.request(
                    method=method,
                    url=url,
                    headers=headers,
                    params=params,
                    timeout=self._timeout_sec,
                )
            except requests.RequestException as e:
                last_error = TransientFetchError(f"Arternal request failed: {e!s}")
                logger.warning("Arternal %s %s failed (attempt %d): %s", method, path, attempt + 1, e)
            else:
                if resp.ok:
                    try:
                        data = resp.json()
                    except ValueError as e:
                        raise FatalFetchError(
                            f"Arternal returned a non-JSON body for {path}",
                            status_code=resp.status_code,
                        ) from e
                    if not isinstance(data, dict):
                        raise FatalFetchError(
                            f"Unexpected response shape for {path}",
                            status_code=resp.status_code,
                            detail=data,
                        )
                    return data

                body = self._error_body(resp)
                if resp.status_code == 404:
                    raise NotFoundError("not found", status_code=404, detail=body)
                if resp.status_code != 429 and resp.status_code < 500:
                    raise FatalFetchError(
                        self._error_message(resp, body),
                        status_code=resp.status_code,
                        detail=body,
                    )

                last_error = TransientFetchError(
                    self._error_message(resp, body),
                    status_code=resp.status_code,
                    detail=body,
                )
                retry_after = resp.headers.get("Retry-After")
                logger.warning(
                    "Arternal %s %s -> %s (attempt %d)",
                    method,
                    path,
                    resp.status_code,
                    attempt + 1,
                )

            if attempt < retries:
                wait = self._backoff(attempt, retry_after)
                logger.info("Retrying Arternal %s %s in %.1fs", method, path, wait)
                time.sleep(wait)

        assert last_error is not None
        raise TransientFetchError(
            f"{last_error.message} (gave up after {retries + 1} attempts)",
            status_code=last_error.status_code,
            detail=last_error.detail,
        ) from last_error

    # -------------------------------------------------------------------------
    # Listing
    # -------------------------------------------------------------------------

    def list_page(self, entity: CatalogEntity, cursor: int | None = None) -> CatalogPage:
        """
        Fetch one listing page. cursor is the offset returned as next_cursor by the
        previous page (None for the first page).
        """
        offset = cursor or 0
        params: dict[str, Any] = {
            **entity.list_params,
            "limit": str(self._page_size),
            "offset": str(offset),
            "sort": "updated_at",
            "order": "asc",
        }
        data = self._request("GET", entity.list_path, params=params)

        items = data.get("data")
        if not isinstance(items, list):
            raise FatalFetchError(
                f"Unexpected listing response for {entity.name}: missing 'data' list",
                detail=data,
            )
        pagination = data.get("pagination") or {}
        has_more = bool(pagination.get("has_more"))
        if has_more and not items:
            logger.warning(
                "Arternal reported has_more for %s at offset %d with an empty page; stopping",
                entity.name,
                offset,
            )
            has_more = False

        try:
            total = int(pagination["total"])
        except (KeyError, TypeError, ValueError):
            total = None

        return CatalogPage(
            records=[entity.to_remote_record(item) for item in items],
            next_cursor=offset + self._page_size if has_more else None,
            total=total,
        )

    # -------------------------------------------------------------------------
    # Detail
    # -------------------------------------------------------------------------

    def fetch_detail(self, entity: CatalogEntity, record_id: str) -> DetailRecord:
        """Fetch the full detail payload for one record."""
        data = self._request("GET", f"{entity.detail_path}/{record_id}")
        item = data.get("data")
        if not isinstance(item, dict):
            raise FatalFetchError(
                f"Unexpected detail response for {entity.name} {record_id}",
                detail=data,
            )
        return entity.to_detail_record(record_id, item)


def get_arternal_service(api_key: str | None = None) -> ArternalService:
    """Return an ArternalService configured from settings."""
    return ArternalService(api_key=api_key)
