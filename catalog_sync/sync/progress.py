"""
Progress reporting: a one-way push channel from the engine to a caller-supplied sink.
"""

import logging
from typing import Callable

from catalog_sync.schemas.sync import SyncPhase, SyncProgress

logger = logging.getLogger(__name__)

ProgressSink = Callable[[SyncProgress], None]


class ProgressReporter:
    """
    Invokes the sink synchronously at engine checkpoints. Within one phase the
    reported total never shrinks and never falls below processed. Sink
    exceptions are logged and dropped.
    """

    def __init__(self, entity: str, sink: ProgressSink | None = None) -> None:
        self._entity = entity
        self._sink = sink
        self._last_total: dict[SyncPhase, int] = {}

    def emit(self, phase: SyncPhase, processed: int, total: int) -> None:
        total = max(total, processed, self._last_total.get(phase, 0))
        self._last_total[phase] = total
        if self._sink is None:
            return
        event = SyncProgress(entity=self._entity, phase=phase, processed=processed, total=total)
        try:
            self._sink(event)
        except Exception:
            logger.warning("Progress sink raised for %s; ignoring", self._entity, exc_info=True)
