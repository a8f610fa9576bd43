"""
Change detection: classify a listed remote record against the stored row.

Pure functions, no I/O. The change signal is a field-by-field comparison of
the entity's summary columns; Arternal's updated_at is one of those columns,
so a remote edit shows up through it as well as through the edited field.
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Iterable

from catalog_sync.schemas.catalog import LocalRecord, RemoteRecord
from catalog_sync.schemas.sync import SyncMode


class ChangeKind(str, Enum):
    NEW = "new"
    CHANGED = "changed"
    UNCHANGED = "unchanged"
    DETAIL_MISSING = "detail_missing"


def _as_instant(value: Any) -> Any:
    """
    Parse ISO8601 strings to aware UTC datetimes so '...Z' and '...+00:00'
    renderings of the same instant compare equal. Anything else is returned as is.
    """
    if not isinstance(value, str):
        return value
    try:
        dt = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        return value
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def summary_differs(
    remote: RemoteRecord,
    local: LocalRecord,
    timestamp_columns: Iterable[str] = (),
) -> bool:
    """True if any summary field of remote differs from the stored value."""
    ts_cols = set(timestamp_columns)
    for column, value in remote.summary.items():
        if column not in local.summary:
            return True
        stored = local.summary[column]
        if column in ts_cols:
            value, stored = _as_instant(value), _as_instant(stored)
        if value != stored:
            return True
    return False


def classify(
    remote: RemoteRecord,
    local: LocalRecord | None,
    timestamp_columns: Iterable[str] = (),
) -> ChangeKind:
    """
    - NEW: nothing stored for this identifier
    - DETAIL_MISSING: stored but never detailed (regardless of summary equality)
    - CHANGED: stored with detail, some summary field differs
    - UNCHANGED: otherwise
    """
    if local is None:
        return ChangeKind.NEW
    if not local.has_detail:
        return ChangeKind.DETAIL_MISSING
    if summary_differs(remote, local, timestamp_columns):
        return ChangeKind.CHANGED
    return ChangeKind.UNCHANGED


def needs_summary_write(kind: ChangeKind, mode: SyncMode) -> bool:
    """Full mode rewrites unchanged summaries too; incremental skips them."""
    return kind is not ChangeKind.UNCHANGED or mode is SyncMode.FULL


def needs_detail(kind: ChangeKind) -> bool:
    """Only missing detail triggers backfill, in either mode."""
    return kind in (ChangeKind.NEW, ChangeKind.DETAIL_MISSING)
