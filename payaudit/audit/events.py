"""Parameter shapes for the domain-event builders.

These are what the scheduler, treasury monitor and contract middleware
hand to ``AuditLogger`` when something happens in their world.
"""

from dataclasses import dataclass, field
from typing import Any

from payaudit.enums import CheckType, SchedulerAction


@dataclass
class StreamCreationEvent:
    """A payroll stream was (or failed to be) created on-chain."""

    employer: str
    worker: str
    token: str
    amount: str
    duration: int
    success: bool
    stream_id: int | None = None
    transaction_hash: str | None = None
    block_number: int | None = None
    error: BaseException | None = None


@dataclass
class ContractInteractionEvent:
    """A smart-contract call made on behalf of an employer."""

    contract_address: str
    function_name: str
    success: bool
    duration_ms: int
    parameters: dict[str, Any] = field(default_factory=dict)
    employer: str | None = None
    transaction_hash: str | None = None
    block_number: int | None = None
    error: BaseException | None = None


@dataclass
class SchedulerEvent:
    """A step in the life of a scheduled payroll task."""

    schedule_id: int
    action: SchedulerAction
    task_name: str
    employer: str | None = None
    execution_time: int | None = None
    error: BaseException | None = None


@dataclass
class MonitorEvent:
    """Result of a treasury runway check."""

    employer: str
    balance: float
    liabilities: float
    daily_burn_rate: float
    runway_days: float | None
    alert_sent: bool
    check_type: CheckType = CheckType.ROUTINE
