"""Error taxonomy for the catalog sync engine.

Remote failures are split by what the engine may do next: retry
(TransientFetchError), skip the record (NotFoundError) or stop the run
(FatalFetchError).
"""

from typing import Any


class CatalogSyncError(Exception):
    """Base exception for all catalog-sync errors."""

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        detail: Any = None,
    ) -> None:
        self.message = message
        self.status_code = status_code
        self.detail = detail
        super().__init__(message)


class ConfigError(CatalogSyncError):
    """Required configuration is missing or invalid."""

    pass


class FatalFetchError(CatalogSyncError):
    """Authentication/authorization failure or malformed request. Never retried."""

    pass


class TransientFetchError(CatalogSyncError):
    """Network or server-side failure. Retried by the client before surfacing."""

    pass


class NotFoundError(CatalogSyncError):
    """The record does not exist (remotely on detail fetch, or locally on merge)."""

    pass


class StoreError(CatalogSyncError):
    """Error during a local store read or write."""

    pass
