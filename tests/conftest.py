"""Pytest fixtures: in-memory stand-ins for the Arternal client and the Supabase store."""

import threading
import time

import pytest

from catalog_sync.core.errors import NotFoundError, StoreError
from catalog_sync.schemas.catalog import CatalogPage, DetailRecord, LocalRecord, RemoteRecord
from catalog_sync.schemas.sync_log import SyncLogEntry
from catalog_sync.sync.entities import CatalogEntity


def _remote_record(record_id: str, title: str = "Untitled", updated_at: str = "2024-01-01T00:00:00Z") -> RemoteRecord:
    """Remote record with the two summary columns of the test entity."""
    return RemoteRecord(
        id=record_id,
        summary={"title": title, "updated_at": updated_at},
        updated_at=updated_at,
    )


class FakeCatalogClient:
    """
    Duck-types ArternalService. Pages are served in order; the cursor is the
    index of the next page.

    - details: id -> payload; ids without a payload raise NotFoundError("not found")
    - detail_errors: id -> exception raised by fetch_detail
    - list_errors: page index -> exception raised by list_page
    """

    def __init__(self, pages=None, details=None, total=None):
        self.pages: list[list[RemoteRecord]] = pages or []
        self.details: dict[str, dict] = details or {}
        self.total = total
        self.detail_errors: dict[str, Exception] = {}
        self.list_errors: dict[int, Exception] = {}
        self.detail_delay = 0.0
        self.list_calls: list[int | None] = []
        self.list_call_times: list[float] = []
        self.fetch_calls: list[str] = []
        self._lock = threading.Lock()

    def list_page(self, entity, cursor=None):
        index = cursor or 0
        self.list_calls.append(cursor)
        self.list_call_times.append(time.monotonic())
        if index in self.list_errors:
            raise self.list_errors[index]
        records = self.pages[index] if index < len(self.pages) else []
        next_cursor = index + 1 if index + 1 < len(self.pages) else None
        return CatalogPage(records=records, next_cursor=next_cursor, total=self.total)

    def fetch_detail(self, entity, record_id):
        with self._lock:
            self.fetch_calls.append(record_id)
        if self.detail_delay:
            time.sleep(self.detail_delay)
        if record_id in self.detail_errors:
            raise self.detail_errors[record_id]
        if record_id not in self.details:
            raise NotFoundError("not found", status_code=404)
        return DetailRecord(id=record_id, payload=self.details[record_id])


class FakeRecordStore:
    """Duck-types SupabaseService over plain dicts, including the sync_log ledger."""

    def __init__(self):
        self.rows: dict[str, dict] = {}
        self.upsert_failures: set[str] = set()
        self.get_records_error: Exception | None = None
        self.ledger_error: Exception | None = None
        self.upserts: list[str] = []
        self.created_hints: list[bool | None] = []
        self.logs: dict[str, dict] = {}

    def seed(self, record: RemoteRecord, detail: dict | None = None) -> None:
        self.rows[record.id] = {
            "summary": dict(record.summary),
            "detail": detail,
            "has_detail": detail is not None,
        }

    def has_detail(self, record_id: str) -> bool:
        return self.rows[record_id]["has_detail"]

    async def get_records(self, entity, record_ids):
        if self.get_records_error is not None:
            raise self.get_records_error
        return {
            rid: LocalRecord(id=rid, summary=dict(row["summary"]), has_detail=row["has_detail"])
            for rid, row in self.rows.items()
            if rid in record_ids
        }

    async def upsert_summary(self, entity, record, *, created=None):
        self.created_hints.append(created)
        if record.id in self.upsert_failures:
            raise StoreError(f"Upsert {entity.name} {record.id} failed: connection reset")
        self.upserts.append(record.id)
        created = record.id not in self.rows
        row = self.rows.setdefault(record.id, {"detail": None, "has_detail": False})
        row["summary"] = dict(record.summary)
        return created

    async def merge_detail(self, entity, record_id, detail):
        if record_id not in self.rows:
            raise NotFoundError(f"no local {entity.name} row to merge detail into")
        self.rows[record_id]["detail"] = dict(detail.payload)
        self.rows[record_id]["has_detail"] = True

    async def start_sync_log(self, entity_type, direction="pull"):
        if self.ledger_error is not None:
            raise self.ledger_error
        log_id = str(len(self.logs) + 1)
        self.logs[log_id] = {"entity_type": entity_type, "direction": direction, "status": "running"}
        return log_id

    async def finish_sync_log(self, log_id, *, result=None, error=None):
        if self.ledger_error is not None:
            raise self.ledger_error
        entry = self.logs[log_id]
        entry["status"] = "error" if error is not None else "completed"
        entry["error"] = error
        if result is not None:
            entry["records_processed"] = result.processed
            entry["records_created"] = result.created
            entry["records_updated"] = result.updated

    async def list_sync_logs(self, limit=20, entity_type=None):
        entries = [
            SyncLogEntry(id=log_id, **{k: v for k, v in entry.items()})
            for log_id, entry in reversed(list(self.logs.items()))
            if entity_type is None or entry["entity_type"] == entity_type
        ]
        return entries[:limit]


@pytest.fixture
def entity():
    """Minimal catalog entity: title plus a timestamp column."""
    return CatalogEntity(
        name="items",
        table="items",
        list_path="/items",
        detail_path="/items",
        summary_columns=("title", "updated_at"),
        summary_mapper=lambda item: {"title": item.get("title"), "updated_at": item.get("updated_at")},
        detail_mapper=lambda item: {"images": item.get("images") or []},
        timestamp_columns=("updated_at",),
    )


@pytest.fixture
def make_record():
    """Factory for remote records of the test entity."""
    return _remote_record


@pytest.fixture
def client():
    return FakeCatalogClient()


@pytest.fixture
def store():
    return FakeRecordStore()
