"""
Detail backfill: a bounded pool of async workers draining one queue of record
identifiers. The listing loop feeds the queue page by page while workers fetch
and merge detail payloads, so a slow detail fetch never holds up listing.
"""

from __future__ import annotations

import asyncio
import logging
from concurrent.futures import Executor
from typing import TYPE_CHECKING, Callable

from catalog_sync.core.errors import CatalogSyncError
from catalog_sync.sync.entities import CatalogEntity
from catalog_sync.sync.run import SyncRun

if TYPE_CHECKING:
    from catalog_sync.services.arternal_service import ArternalService
    from catalog_sync.services.supabase_service import SupabaseService

logger = logging.getLogger(__name__)

_STOP = object()


class DetailBackfillScheduler:
    """
    Worker pool for detail fetch + merge.

    - enqueue() accepts each identifier at most once per run
    - a failure on one identifier is recorded on the run and never stops other workers
    - drain() returns only after every queued identifier has resolved
    - once the cancel event is set (or stop_dispatch() is called) queued
      identifiers are skipped; in-flight ones finish normally
    - blocking fetches run on the given executor (the loop default when None)
    """

    def __init__(
        self,
        *,
        entity: CatalogEntity,
        client: ArternalService,
        store: SupabaseService,
        run: SyncRun,
        workers: int,
        cancel_event: asyncio.Event,
        on_completed: Callable[[], None] | None = None,
        executor: Executor | None = None,
    ) -> None:
        if workers < 1:
            raise ValueError("workers must be >= 1")
        self._entity = entity
        self._client = client
        self._store = store
        self._run = run
        self._workers = workers
        self._cancel_event = cancel_event
        self._on_completed = on_completed
        self._executor = executor
        self._queue: asyncio.Queue = asyncio.Queue()
        self._seen: set[str] = set()
        self._tasks: list[asyncio.Task] = []
        self._stopping = False
        self.completed = 0

    @property
    def enqueued(self) -> int:
        return len(self._seen)

    def start(self) -> None:
        """Spawn the workers. Must be called from inside the running event loop."""
        self._tasks = [
            asyncio.create_task(self._worker(), name=f"backfill-{self._entity.name}-{i}")
            for i in range(self._workers)
        ]

    def enqueue(self, record_id: str) -> bool:
        """Queue an identifier for backfill. Returns False if it was already queued this run."""
        if record_id in self._seen:
            return False
        self._seen.add(record_id)
        self._queue.put_nowait(record_id)
        return True

    def stop_dispatch(self) -> None:
        self._stopping = True

    async def drain(self) -> None:
        """Wait for the queue to empty and all workers to exit."""
        # Stop markers go behind every queued identifier, so each worker exits only once the queue is exhausted.
        for _ in self._tasks:
            self._queue.put_nowait(_STOP)
        await asyncio.gather(*self._tasks)

    def cancel(self) -> None:
        for task in self._tasks:
            task.cancel()

    async def _worker(self) -> None:
        while True:
            record_id = await self._queue.get()
            if record_id is _STOP:
                return
            if self._stopping or self._cancel_event.is_set():
                continue
            await self._backfill_one(record_id)

    async def _backfill_one(self, record_id: str) -> None:
        entity = self._entity
        try:
            loop = asyncio.get_running_loop()
            detail = await loop.run_in_executor(
                self._executor, self._client.fetch_detail, entity, record_id
            )
            await self._store.merge_detail(entity, record_id, detail)
        except CatalogSyncError as e:
            logger.warning("Detail backfill failed for %s %s: %s", entity.name, record_id, e.message)
            self._run.record_error(record_id, e)
        except Exception as e:
            logger.exception("Unexpected error backfilling %s %s", entity.name, record_id)
            self._run.record_error(record_id, e)
        else:
            logger.debug("Detail merged for %s %s", entity.name, record_id)

        self.completed += 1
        if self._on_completed is not None:
            self._on_completed()
