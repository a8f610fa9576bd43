"""
catalog-sync CLI.

Runs catalog syncs from a terminal or cron, records each entity run in the
sync_log table and optionally pushes a completion notification.

Usage:
    catalog-sync run                          # incremental artworks sync
    catalog-sync run --entity all --mode full
    catalog-sync history --limit 10
"""

import asyncio
import logging
import signal
import sys
from typing import Optional

import typer

from catalog_sync.core.config import get_settings
from catalog_sync.core.errors import CatalogSyncError, ConfigError
from catalog_sync.schemas.sync import SyncMode, SyncPhase, SyncProgress, SyncResult
from catalog_sync.services.arternal_service import ArternalService, get_arternal_service
from catalog_sync.services.notify_service import get_notify_service
from catalog_sync.services.supabase_service import SupabaseService, get_supabase_service
from catalog_sync.sync.entities import ENTITIES, CatalogEntity, get_entity
from catalog_sync.sync.orchestrator import sync_entity

logger = logging.getLogger("catalog_sync")

MAX_ERRORS_SHOWN = 10

app = typer.Typer(
    name="catalog-sync",
    help="Reconcile the Arternal catalog into Supabase.",
    add_completion=False,
)


def configure_logging(level: str = "INFO") -> None:
    """Send package logs to stdout once, at the configured level."""
    logger.setLevel(level)
    if not logger.handlers:
        handler = logging.StreamHandler(sys.stdout)
        handler.setFormatter(logging.Formatter("%(levelname)s:     %(message)s"))
        logger.addHandler(handler)


class ProgressPrinter:
    """
    Terminal progress sink. Detailing is a counter rewritten in place with \\r;
    it is closed with a newline before any listing line or the final summary.
    """

    def __init__(self) -> None:
        self._counter_open = False

    def __call__(self, progress: SyncProgress) -> None:
        if progress.phase is SyncPhase.DETAILING:
            typer.echo(
                f"\r[{progress.entity}] Detailing: {progress.processed}/{progress.total}",
                nl=False,
            )
            self._counter_open = True
            return
        self.end_line()
        typer.echo(
            f"[{progress.entity}] Phase: {progress.phase.value}, "
            f"processed: {progress.processed}/{progress.total}"
        )

    def end_line(self) -> None:
        if self._counter_open:
            typer.echo("")
            self._counter_open = False


def _install_cancel_handlers(cancel_event: asyncio.Event) -> None:
    loop = asyncio.get_running_loop()

    def request_cancel() -> None:
        if not cancel_event.is_set():
            logger.warning("Interrupt received; finishing in-flight work and stopping")
            cancel_event.set()

    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, request_cancel)
        except (NotImplementedError, RuntimeError):
            # Not supported on this platform / not in the main thread.
            pass


async def _start_log(store: SupabaseService, entity_name: str) -> Optional[str]:
    try:
        return await store.start_sync_log(entity_name)
    except CatalogSyncError as e:
        logger.warning("Could not record sync start for %s: %s", entity_name, e.message)
        return None


async def _finish_log(
    store: SupabaseService,
    log_id: Optional[str],
    *,
    result: Optional[SyncResult] = None,
    error: Optional[str] = None,
) -> None:
    if not log_id:
        return
    try:
        await store.finish_sync_log(log_id, result=result, error=error)
    except CatalogSyncError as e:
        logger.warning("Could not record sync completion (log %s): %s", log_id, e.message)


async def run_syncs(
    entities: list[CatalogEntity],
    *,
    mode: SyncMode,
    client: ArternalService,
    store: SupabaseService,
    workers: Optional[int] = None,
) -> list[SyncResult]:
    """Sync each entity in order, bracketing every run with a sync_log row."""
    cancel_event = asyncio.Event()
    _install_cancel_handlers(cancel_event)

    printer = ProgressPrinter()
    results: list[SyncResult] = []
    for entity in entities:
        if cancel_event.is_set():
            break
        log_id = await _start_log(store, entity.name)
        try:
            result = await sync_entity(
                entity,
                mode=mode,
                on_progress=printer,
                cancel_event=cancel_event,
                client=client,
                store=store,
                workers=workers,
            )
        except Exception as e:
            printer.end_line()
            await _finish_log(store, log_id, error=str(e))
            raise
        printer.end_line()
        await _finish_log(store, log_id, result=result)
        results.append(result)
    return results


def _print_summary(results: list[SyncResult]) -> None:
    for result in results:
        status = "cancelled" if result.cancelled else "complete"
        typer.echo(f"\n{result.entity} sync {status}!")
        typer.echo(
            f"Processed: {result.processed}, Created: {result.created}, Updated: {result.updated}"
        )
        if result.errors:
            typer.echo(f"Errors ({len(result.errors)}):")
            for err in result.errors[:MAX_ERRORS_SHOWN]:
                typer.echo(f"  - {err}")


@app.command()
def run(
    entity: str = typer.Option(
        "artworks",
        "--entity",
        "-e",
        help=f"Entity to sync: {', '.join(ENTITIES)} or all",
    ),
    mode: SyncMode = typer.Option(SyncMode.INCREMENTAL, "--mode", "-m", help="incremental or full"),
    workers: Optional[int] = typer.Option(
        None, "--workers", "-w", min=1, help="Detail backfill workers (default: SYNC_WORKERS)"
    ),
    notify: bool = typer.Option(
        False, "--notify/--no-notify", help="Push a summary to NOTIFY_WEBHOOK_URL when done"
    ),
):
    """Run one sync to completion, printing progress and a final summary.

    Examples:

        catalog-sync run

        catalog-sync run --entity all --mode full --workers 8
    """
    settings = get_settings()
    configure_logging(settings.log_level)

    if entity == "all":
        entities = list(ENTITIES.values())
    else:
        try:
            entities = [get_entity(entity)]
        except ValueError as e:
            raise typer.BadParameter(str(e), param_hint="--entity")

    try:
        settings.validate_for_sync()
    except ConfigError as e:
        typer.echo(f"Error: {e.message}", err=True)
        raise typer.Exit(1)

    typer.echo(f"Starting {mode.value} sync: {', '.join(e.name for e in entities)}")
    try:
        results = asyncio.run(
            run_syncs(
                entities,
                mode=mode,
                client=get_arternal_service(),
                store=get_supabase_service(),
                workers=workers,
            )
        )
    except Exception as e:
        typer.echo(f"\nFatal: {e}", err=True)
        raise typer.Exit(1)

    _print_summary(results)

    if notify:
        processed = sum(r.processed for r in results)
        errors = sum(len(r.errors) for r in results)
        get_notify_service().send(
            "Catalog Sync Done",
            f"{processed} processed, {errors} errors",
        )


@app.command()
def history(
    limit: int = typer.Option(10, "--limit", "-n", min=1, max=100, help="Entries to show"),
    entity: Optional[str] = typer.Option(None, "--entity", "-e", help="Only this entity"),
):
    """Show recent sync_log entries, newest first.

    Examples:

        catalog-sync history --limit 5
    """
    settings = get_settings()
    configure_logging(settings.log_level)

    try:
        entries = asyncio.run(get_supabase_service().list_sync_logs(limit=limit, entity_type=entity))
    except Exception as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(1)

    if not entries:
        typer.echo("No sync runs recorded.")
        return

    for entry in entries:
        counts = ""
        if entry.records_processed is not None:
            counts = (
                f" processed={entry.records_processed}"
                f" created={entry.records_created or 0}"
                f" updated={entry.records_updated or 0}"
            )
        line = f"  {entry.started_at or '-':32} {entry.entity_type:10} {entry.status:10}{counts}"
        if entry.error:
            line += f" error={entry.error[:80]}"
        typer.echo(line)


def main():
    """Entry point for the CLI."""
    app()


if __name__ == "__main__":
    main()
