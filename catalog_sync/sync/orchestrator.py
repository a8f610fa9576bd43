"""
Sync orchestrator: reconcile one Arternal entity into Supabase.

Run lifecycle: idle -> listing -> detailing -> done, or failed when listing
hits a remote or store error it cannot recover from.

Listing walks every page in order. Each record is classified against the
stored row, its summary is upserted when needed, and records without detail
are queued for backfill. Backfill workers start with the run and consume the
queue while later pages are still being listed; the detailing phase waits
for whatever is still queued or in flight.
"""

import asyncio
import logging
from concurrent.futures import ThreadPoolExecutor

from catalog_sync.core.config import get_settings
from catalog_sync.core.errors import StoreError
from catalog_sync.schemas.catalog import CatalogPage, LocalRecord
from catalog_sync.schemas.sync import SyncMode, SyncPhase, SyncResult
from catalog_sync.services.arternal_service import ArternalService, get_arternal_service
from catalog_sync.services.supabase_service import SupabaseService, get_supabase_service
from catalog_sync.sync.backfill import DetailBackfillScheduler
from catalog_sync.sync.change_detector import classify, needs_detail, needs_summary_write
from catalog_sync.sync.entities import CatalogEntity, get_entity
from catalog_sync.sync.progress import ProgressReporter, ProgressSink
from catalog_sync.sync.run import SyncRun

logger = logging.getLogger(__name__)


class CatalogSyncEngine:
    """
    Orchestrator for one entity. The client and store are injected; the engine
    has no notification or ledger side effects of its own.
    """

    def __init__(
        self,
        client: ArternalService,
        store: SupabaseService,
        entity: CatalogEntity,
        *,
        workers: int | None = None,
    ) -> None:
        self._client = client
        self._store = store
        self._entity = entity
        self._workers = workers or get_settings().sync_workers

    async def sync(
        self,
        mode: SyncMode | str = SyncMode.INCREMENTAL,
        on_progress: ProgressSink | None = None,
        cancel_event: asyncio.Event | None = None,
    ) -> SyncResult:
        """
        Run one sync to completion and return its summary.

        Raises the underlying error if listing fails (fatal remote error,
        exhausted retries, or a failed local snapshot read). Detail failures
        never raise; they are returned in SyncResult.errors.
        """
        mode = SyncMode(mode)
        cancel_event = cancel_event or asyncio.Event()
        entity = self._entity
        run = SyncRun(entity.name, mode)
        reporter = ProgressReporter(entity.name, on_progress)
        # Separate pools: a detail fetch can never hold the thread the listing loop needs.
        list_executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix=f"list-{entity.name}")
        detail_executor = ThreadPoolExecutor(
            max_workers=self._workers, thread_name_prefix=f"detail-{entity.name}"
        )

        scheduler = DetailBackfillScheduler(
            entity=entity,
            client=self._client,
            store=self._store,
            run=run,
            workers=self._workers,
            cancel_event=cancel_event,
            on_completed=lambda: reporter.emit(
                SyncPhase.DETAILING, scheduler.completed, scheduler.enqueued
            ),
            executor=detail_executor,
        )

        logger.info("Starting %s sync of %s (%d workers)", mode.value, entity.name, self._workers)
        try:
            return await self._drive(run, scheduler, reporter, cancel_event, list_executor)
        finally:
            # Do not block the loop on threads abandoned by task cancellation.
            list_executor.shutdown(wait=False)
            detail_executor.shutdown(wait=False)

    async def _drive(
        self,
        run: SyncRun,
        scheduler: DetailBackfillScheduler,
        reporter: ProgressReporter,
        cancel_event: asyncio.Event,
        list_executor: ThreadPoolExecutor,
    ) -> SyncResult:
        entity = self._entity
        scheduler.start()
        run.phase = SyncPhase.LISTING
        try:
            await self._list_all(run, scheduler, reporter, cancel_event, list_executor)
        except asyncio.CancelledError:
            run.phase = SyncPhase.FAILED
            scheduler.cancel()
            raise
        except Exception as e:
            run.phase = SyncPhase.FAILED
            logger.error("%s sync aborted during listing: %s", entity.name, e)
            scheduler.stop_dispatch()
            await scheduler.drain()
            raise

        run.phase = SyncPhase.DETAILING
        logger.info(
            "Listing done for %s: processed=%d, %d queued for detail",
            entity.name,
            run.processed,
            scheduler.enqueued,
        )
        reporter.emit(SyncPhase.DETAILING, scheduler.completed, scheduler.enqueued)
        try:
            await scheduler.drain()
        except asyncio.CancelledError:
            run.phase = SyncPhase.FAILED
            scheduler.cancel()
            raise

        run.phase = SyncPhase.DONE
        run.cancelled = cancel_event.is_set()
        logger.info(
            "Sync %s for %s: processed=%d, created=%d, updated=%d, errors=%d",
            "cancelled" if run.cancelled else "complete",
            entity.name,
            run.processed,
            run.created,
            run.updated,
            len(run.errors),
        )
        return run.to_result()

    async def _list_all(
        self,
        run: SyncRun,
        scheduler: DetailBackfillScheduler,
        reporter: ProgressReporter,
        cancel_event: asyncio.Event,
        executor: ThreadPoolExecutor,
    ) -> None:
        loop = asyncio.get_running_loop()
        cursor: int | None = None
        while True:
            if cancel_event.is_set():
                logger.info("Cancellation requested; no further %s pages will be listed", self._entity.name)
                return
            page = await loop.run_in_executor(executor, self._client.list_page, self._entity, cursor)
            await self._process_page(run, page, scheduler)
            reporter.emit(
                SyncPhase.LISTING,
                run.processed,
                page.total if page.total is not None else run.processed,
            )
            if page.next_cursor is None:
                return
            cursor = page.next_cursor

    async def _process_page(
        self,
        run: SyncRun,
        page: CatalogPage,
        scheduler: DetailBackfillScheduler,
    ) -> None:
        entity = self._entity
        local = await self._store.get_records(entity, [r.id for r in page.records])

        for remote in page.records:
            run.processed += 1
            stored = local.get(remote.id)
            kind = classify(remote, stored, entity.timestamp_columns)
            if not needs_summary_write(kind, run.mode):
                continue

            try:
                created = await self._store.upsert_summary(entity, remote, created=stored is None)
            except StoreError as e:
                logger.warning("Summary upsert failed for %s %s: %s", entity.name, remote.id, e.message)
                run.record_error(remote.id, e)
                continue

            if created:
                run.created += 1
            else:
                run.updated += 1
            # A repeat of this identifier later in the page must see the row just written.
            local[remote.id] = LocalRecord(
                id=remote.id,
                summary=dict(remote.summary),
                has_detail=stored.has_detail if stored else False,
            )
            if needs_detail(kind):
                scheduler.enqueue(remote.id)


async def sync_entity(
    entity: CatalogEntity | str,
    *,
    mode: SyncMode | str = SyncMode.INCREMENTAL,
    on_progress: ProgressSink | None = None,
    cancel_event: asyncio.Event | None = None,
    client: ArternalService | None = None,
    store: SupabaseService | None = None,
    workers: int | None = None,
) -> SyncResult:
    """Sync one entity, building the client and store from settings when not given."""
    if isinstance(entity, str):
        entity = get_entity(entity)
    if client is None:
        client = get_arternal_service()
    if store is None:
        store = get_supabase_service()
    engine = CatalogSyncEngine(client, store, entity, workers=workers)
    return await engine.sync(mode=mode, on_progress=on_progress, cancel_event=cancel_event)

