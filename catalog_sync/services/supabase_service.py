"""
Supabase client: catalog record store (summary upsert, detail merge) and the sync_log ledger.
"""

import asyncio
import logging
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from supabase import Client, create_client

from catalog_sync.core.config import get_settings
from catalog_sync.core.errors import NotFoundError, StoreError
from catalog_sync.schemas.catalog import DetailRecord, LocalRecord, RemoteRecord
from catalog_sync.schemas.sync import SyncResult
from catalog_sync.schemas.sync_log import SyncLogEntry
from catalog_sync.sync.entities import CatalogEntity

logger = logging.getLogger(__name__)


def _utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")


class SupabaseService:
    """
    Local store adapter over the Supabase service-role client.

    Every write is a single PostgREST call keyed by the remote identifier, so
    one upsert or merge is atomic on its own. Blocking client calls run in a
    worker thread to keep the event loop free for concurrent backfill.
    """

    def __init__(self, client: Client | None = None) -> None:
        if client is None:
            settings = get_settings()
            client = create_client(settings.SUPABASE_URL, settings.SUPABASE_SERVICE_KEY)
        self.client = client

    async def _execute(self, query: Any, action: str) -> Any:
        try:
            return await asyncio.to_thread(query.execute)
        except Exception as e:
            logger.error("%s error: %s", action, str(e))
            raise StoreError(f"{action} failed: {e!s}", detail=str(e)) from e

    # -------------------------------------------------------------------------
    # Catalog records
    # -------------------------------------------------------------------------

    async def get_records(
        self,
        entity: CatalogEntity,
        record_ids: list[str],
    ) -> Dict[str, LocalRecord]:
        """Return the stored rows for the given identifiers, keyed by identifier."""
        if not record_ids:
            return {}
        columns = ", ".join(("id", "detail_synced_at", *entity.summary_columns))
        response = await self._execute(
            self.client.table(entity.table).select(columns).in_("id", record_ids),
            f"Get {entity.name}",
        )
        records: Dict[str, LocalRecord] = {}
        for row in response.data or []:
            record_id = str(row["id"])
            records[record_id] = LocalRecord(
                id=record_id,
                summary={col: row.get(col) for col in entity.summary_columns},
                has_detail=row.get("detail_synced_at") is not None,
            )
        return records

    async def upsert_summary(
        self,
        entity: CatalogEntity,
        record: RemoteRecord,
        *,
        created: Optional[bool] = None,
    ) -> bool:
        """
        Insert or update the summary columns of one record. Returns True if the
        row was created. Detail columns and detail_synced_at are never touched.

        created: pass what the caller already knows from get_records() to skip
        the existence lookup.
        """
        if created is None:
            existing = await self._execute(
                self.client.table(entity.table).select("id").eq("id", record.id).limit(1),
                f"Lookup {entity.name} {record.id}",
            )
            created = not existing.data
        row: Dict[str, Any] = {
            "id": record.id,
            **record.summary,
            "synced_at": _utc_now_iso(),
        }
        await self._execute(
            self.client.table(entity.table).upsert(row, on_conflict="id"),
            f"Upsert {entity.name} {record.id}",
        )

        if entity.extended_table and entity.extended_key:
            # Ensure a companion row exists (don't overwrite existing data)
            await self._execute(
                self.client.table(entity.extended_table).upsert(
                    {entity.extended_key: record.id},
                    on_conflict=entity.extended_key,
                    ignore_duplicates=True,
                ),
                f"Ensure {entity.extended_table} {record.id}",
            )

        if entity.link_table and entity.link_key and record.links:
            await self._execute(
                self.client.table(entity.link_table).upsert(
                    [{entity.link_key: record.id, **link} for link in record.links],
                    on_conflict=entity.link_conflict or entity.link_key,
                ),
                f"Upsert {entity.link_table} {record.id}",
            )
        return created

    async def merge_detail(
        self,
        entity: CatalogEntity,
        record_id: str,
        detail: DetailRecord,
    ) -> None:
        """Write detail columns onto an existing row and mark it as detailed."""
        response = await self._execute(
            self.client.table(entity.table)
            .update({**detail.payload, "detail_synced_at": _utc_now_iso()})
            .eq("id", record_id),
            f"Merge {entity.name} detail {record_id}",
        )
        if not response.data:
            raise NotFoundError(
                f"no local {entity.name} row to merge detail into",
                detail={"id": record_id},
            )

    # -------------------------------------------------------------------------
    # Sync log (sync_log table)
    # -------------------------------------------------------------------------

    async def start_sync_log(self, entity_type: str, direction: str = "pull") -> Optional[str]:
        """Insert a 'running' sync log row. Returns its id."""
        response = await self._execute(
            self.client.table("sync_log").insert(
                {
                    "entity_type": entity_type,
                    "direction": direction,
                    "status": "running",
                    "started_at": _utc_now_iso(),
                }
            ),
            "Insert sync log",
        )
        if response.data and len(response.data) > 0:
            return str(response.data[0]["id"])
        return None

    async def finish_sync_log(
        self,
        log_id: str,
        *,
        result: Optional[SyncResult] = None,
        error: Optional[str] = None,
    ) -> None:
        """Mark a sync log row completed (with counts) or errored."""
        update: Dict[str, Any] = {"completed_at": _utc_now_iso()}
        if error is not None:
            update.update({"status": "error", "error": error[:2000]})
        else:
            update["status"] = "completed"
        if result is not None:
            update.update(
                {
                    "records_processed": result.processed,
                    "records_created": result.created,
                    "records_updated": result.updated,
                }
            )
        await self._execute(
            self.client.table("sync_log").update(update).eq("id", log_id),
            "Update sync log",
        )

    async def list_sync_logs(
        self,
        limit: int = 20,
        entity_type: Optional[str] = None,
    ) -> list[SyncLogEntry]:
        """List the most recent sync log entries, newest first."""
        q = (
            self.client.table("sync_log")
            .select(
                "id, entity_type, direction, status, records_processed, records_created, "
                "records_updated, error, started_at, completed_at"
            )
            .order("started_at", desc=True)
            .limit(limit)
        )
        if entity_type:
            q = q.eq("entity_type", entity_type)
        response = await self._execute(q, "List sync logs")
        entries = []
        for r in response.data or []:
            r = dict(r)
            r["id"] = str(r["id"])
            entries.append(SyncLogEntry.model_validate(r))
        return entries


def get_supabase_service() -> SupabaseService:
    """Return a SupabaseService configured from settings."""
    return SupabaseService()
