"""
SyncRun: the mutable aggregate for one engine invocation.
"""

from catalog_sync.core.errors import CatalogSyncError
from catalog_sync.schemas.sync import SyncMode, SyncPhase, SyncResult


def _error_text(error: BaseException) -> str:
    if isinstance(error, CatalogSyncError):
        return error.message
    return str(error) or type(error).__name__


class SyncRun:
    """
    Counters only grow and errors are append-only. All mutation happens on
    the event-loop thread, so no lock is needed.
    """

    def __init__(self, entity: str, mode: SyncMode) -> None:
        self.entity = entity
        self.mode = mode
        self.phase = SyncPhase.IDLE
        self.processed = 0
        self.created = 0
        self.updated = 0
        self.errors: list[str] = []
        self.cancelled = False

    def record_error(self, record_id: str, error: BaseException) -> None:
        self.errors.append(f"{record_id}: {_error_text(error)}")

    def to_result(self) -> SyncResult:
        return SyncResult(
            entity=self.entity,
            mode=self.mode,
            processed=self.processed,
            created=self.created,
            updated=self.updated,
            errors=list(self.errors),
            cancelled=self.cancelled,
        )
