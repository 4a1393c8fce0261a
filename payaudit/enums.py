"""Enumerations shared across the audit pipeline."""

from enum import Enum


class LogLevel(str, Enum):
    """Severity of an audit entry.

    Levels are totally ordered: INFO < WARN < ERROR.
    """

    INFO = "INFO"
    WARN = "WARN"
    ERROR = "ERROR"

    @property
    def rank(self) -> int:
        return _LEVEL_RANK[self]

    def at_least(self, other: "LogLevel") -> bool:
        """Return True if this level meets the ``other`` threshold."""
        return self.rank >= other.rank


_LEVEL_RANK = {LogLevel.INFO: 0, LogLevel.WARN: 1, LogLevel.ERROR: 2}


class ActionType(str, Enum):
    """Coarse category of the business event an entry records."""

    STREAM_CREATION = "stream_creation"
    CONTRACT_INTERACTION = "contract_interaction"
    MONITORING = "monitoring"
    SCHEDULING = "scheduling"
    SYSTEM = "system"


class SchedulerAction(str, Enum):
    """Lifecycle step of a scheduled payroll task."""

    TASK_STARTED = "task_started"
    TASK_COMPLETED = "task_completed"
    TASK_FAILED = "task_failed"


class CheckType(str, Enum):
    """How a treasury monitor check was triggered."""

    ROUTINE = "routine"
    TRIGGERED = "triggered"


class ExportFormat(str, Enum):
    """Serialization format for compliance exports."""

    JSON = "json"
    CSV = "csv"


class OverflowPolicy(str, Enum):
    """What the write queue discards when it runs out of capacity.

    SPLIT rejects fresh arrivals but evicts the oldest entries when a
    failed batch is put back. DROP_NEWEST and DROP_OLDEST apply the same
    rule on both paths.
    """

    SPLIT = "split"
    DROP_NEWEST = "drop_newest"
    DROP_OLDEST = "drop_oldest"
