"""Batch persister: moves queued entries into the audit store.

One asyncio task wakes every ``flush_interval_ms`` and runs a flush cycle.
Every cycle, whether started by the timer, by an explicit ``flush()`` or
by ``shutdown()``, runs under the same lock, so two cycles never overlap.

A cycle snapshots and clears the queue, writes the snapshot in a single
transaction, and on failure puts the whole snapshot back at the front of
the queue. Store errors are reported through metrics and the process log;
they are never raised to callers.
"""

import asyncio
import time

from payaudit.audit.queue import WriteQueue
from payaudit.db.store import AuditStore
from payaudit.errors import PersistenceFailure
from payaudit.logging import get_logger
from payaudit.metrics import FLUSH_CYCLES, FLUSH_DURATION, FLUSH_ENTRIES, MetricsRegistry
from payaudit.metrics import metrics as default_metrics

logger = get_logger(__name__)


class BatchPersister:
    """Periodically drains a ``WriteQueue`` into an ``AuditStore``."""

    def __init__(
        self,
        queue: WriteQueue,
        store: AuditStore | None,
        flush_interval_ms: int = 1000,
        metrics: MetricsRegistry | None = None,
    ) -> None:
        self.queue = queue
        self.store = store
        self.flush_interval_ms = flush_interval_ms
        self._metrics = metrics or default_metrics
        self._lock = asyncio.Lock()
        self._stopping = asyncio.Event()
        self._task: asyncio.Task[None] | None = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        """Start the flush timer. Must be called from a running event loop."""
        if self.running:
            return
        self._stopping.clear()
        self._task = asyncio.get_running_loop().create_task(
            self._run(), name="payaudit-batch-persister"
        )
        logger.info("persister_started", flush_interval_ms=self.flush_interval_ms)

    async def _run(self) -> None:
        interval = self.flush_interval_ms / 1000
        while not self._stopping.is_set():
            try:
                await asyncio.wait_for(self._stopping.wait(), timeout=interval)
            except TimeoutError:
                try:
                    await self.flush()
                except Exception:
                    self._metrics.inc_counter(FLUSH_CYCLES, {"status": "error"})
                    logger.exception("audit_flush_cycle_crashed", pending=len(self.queue))

    async def stop(self) -> None:
        """Stop the timer, letting an in-flight cycle finish first."""
        if self._task is None:
            return
        self._stopping.set()
        await self._task
        self._task = None
        logger.info("persister_stopped", pending=len(self.queue))

    async def shutdown(self) -> int:
        """Stop the timer and run exactly one final flush cycle.

        Best effort: if the store is down now, whatever is still queued
        is lost when the process exits.
        """
        await self.stop()
        return await self.flush()

    async def flush(self) -> int:
        """Run one flush cycle and return the number of entries written."""
        async with self._lock:
            return await self._flush_cycle()

    async def _flush_cycle(self) -> int:
        if len(self.queue) == 0:
            return 0

        if self.store is None:
            logger.warning("audit_store_unavailable", pending=len(self.queue))
            self._metrics.inc_counter(FLUSH_CYCLES, {"status": "skipped"})
            return 0

        # Entries enqueued from here on belong to the next cycle
        batch = self.queue.drain()
        start_time = time.perf_counter()

        try:
            await self.store.write_batch(batch)
        except Exception as exc:
            failure = PersistenceFailure(len(batch), exc)
            dropped = self.queue.requeue(batch)
            self._metrics.inc_counter(FLUSH_CYCLES, {"status": "failed"})
            logger.error(
                "audit_flush_failed",
                error=str(failure),
                error_type=type(exc).__name__,
                batch_size=failure.batch_size,
                requeued=len(batch),
                dropped=dropped,
            )
            return 0

        duration = time.perf_counter() - start_time
        self._metrics.inc_counter(FLUSH_CYCLES, {"status": "success"})
        self._metrics.inc_counter(FLUSH_ENTRIES, value=len(batch))
        self._metrics.observe_histogram(FLUSH_DURATION, duration)
        logger.debug(
            "audit_flush_completed",
            written=len(batch),
            duration_ms=round(duration * 1000, 2),
        )
        return len(batch)
