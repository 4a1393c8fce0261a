"""Bounded in-memory write queue.

Holds redacted entries between ingestion and the next flush cycle. All
mutations are synchronous, so an ``enqueue`` can never interleave with a
``drain`` or ``requeue`` on the event loop.

When the queue is full, entries are discarded according to the
configured ``OverflowPolicy`` and the drop is reported through the
metrics registry and the process log. Nothing here raises.
"""

from collections import deque
from collections.abc import Iterator, Sequence

from payaudit.enums import OverflowPolicy
from payaudit.logging import get_logger
from payaudit.metrics import QUEUE_DEPTH, QUEUE_OVERFLOW, MetricsRegistry
from payaudit.metrics import metrics as default_metrics
from payaudit.schemas.audit import LogEntry

logger = get_logger(__name__)


class WriteQueue:
    """FIFO of entries awaiting durability, capped at ``max_size``."""

    def __init__(
        self,
        max_size: int,
        policy: OverflowPolicy = OverflowPolicy.SPLIT,
        metrics: MetricsRegistry | None = None,
    ) -> None:
        if max_size < 1:
            raise ValueError("max_size must be at least 1")
        self.max_size = max_size
        self.policy = policy
        self._metrics = metrics or default_metrics
        self._entries: deque[LogEntry] = deque()

    def __len__(self) -> int:
        return len(self._entries)

    def __iter__(self) -> Iterator[LogEntry]:
        return iter(list(self._entries))

    def snapshot(self) -> list[LogEntry]:
        """Return the queued entries in order without removing them."""
        return list(self._entries)

    def enqueue(self, entry: LogEntry) -> bool:
        """Append ``entry``. Returns False if it was dropped for lack of room."""
        if len(self._entries) < self.max_size:
            self._entries.append(entry)
            self._update_depth()
            return True

        if self.policy is OverflowPolicy.DROP_OLDEST:
            evicted = self._entries.popleft()
            self._entries.append(entry)
            self._report_overflow("enqueue", [evicted])
            return True

        self._report_overflow("enqueue", [entry])
        return False

    def drain(self) -> list[LogEntry]:
        """Remove and return every queued entry, oldest first."""
        batch = list(self._entries)
        self._entries.clear()
        self._update_depth()
        return batch

    def requeue(self, batch: Sequence[LogEntry]) -> int:
        """Put a failed batch back at the front, ahead of newer arrivals.

        Relative order inside ``batch`` is preserved. If the queue ends up
        over capacity the excess is trimmed per policy: from the back
        under DROP_NEWEST, from the front (the entries that have failed
        the most) otherwise. Returns the number of entries dropped.
        """
        self._entries.extendleft(reversed(batch))
        excess = len(self._entries) - self.max_size
        dropped: list[LogEntry] = []
        if excess > 0:
            if self.policy is OverflowPolicy.DROP_NEWEST:
                dropped = [self._entries.pop() for _ in range(excess)]
            else:
                dropped = [self._entries.popleft() for _ in range(excess)]
            self._report_overflow("requeue", dropped)
        self._update_depth()
        return len(dropped)

    def _report_overflow(self, reason: str, dropped: list[LogEntry]) -> None:
        self._metrics.inc_counter(QUEUE_OVERFLOW, {"reason": reason}, value=len(dropped))
        logger.error(
            "audit_queue_overflow",
            reason=reason,
            policy=self.policy.value,
            capacity=self.max_size,
            dropped=len(dropped),
            dropped_levels=[entry.log_level.value for entry in dropped],
            dropped_actions=[entry.action_type.value for entry in dropped],
        )

    def _update_depth(self) -> None:
        self._metrics.set_gauge(QUEUE_DEPTH, len(self._entries))
