import uuid
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Dict, Optional
from pydantic import BaseModel, ConfigDict, Field

# Asset identifier -> weight in percent (0-100); a missing asset weighs 0
Allocation = Dict[str, float]


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class TransactionAction(str, Enum):
    """Direction of a rebalance transaction"""
    BUY = "BUY"
    SELL = "SELL"


class RequestStatus(str, Enum):
    """Lifecycle of the last accepted rebalance request for a user"""
    PENDING = "PENDING"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"


# Core rebalance models
class RebalanceEvent(BaseModel):
    """New allocation for a user together with the allocation it replaces"""
    model_config = ConfigDict(frozen=True)

    user_id: str
    new_allocation: Allocation
    current_allocation: Allocation
    event_id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    created_at: datetime = Field(default_factory=_utcnow)


class RebalanceTransaction(BaseModel):
    """Single buy or sell instruction for one asset"""
    model_config = ConfigDict(frozen=True)

    user_id: str
    asset: str
    action: TransactionAction
    rebalance_percent: float = Field(gt=0)


class RebalanceRequestRecord(BaseModel):
    """Last allocation change accepted for processing for a user"""
    user_id: str
    allocation_hash: str
    status: RequestStatus = RequestStatus.PENDING
    updated_at: datetime = Field(default_factory=_utcnow)


class Portfolio(BaseModel):
    """Current allocation of a user"""
    user_id: str
    allocation: Allocation


# Processing result models
class OutcomeStatus(Enum):
    """Status of a pipeline run"""
    SKIPPED = "skipped"
    APPLIED = "applied"
    FAILED = "failed"


class SkipReason:
    DUPLICATE = "duplicate"


class FailureReason:
    LEDGER_READ_FAILED = "ledger_read_failed"
    LEDGER_WRITE_FAILED = "ledger_write_failed"
    LEDGER_CONFLICT = "ledger_conflict"
    STORAGE_EXHAUSTED = "storage_exhausted"
    STORAGE_FATAL = "storage_fatal"
    CANCELLED = "cancelled"
    NOT_STARTED = "not_started"
    UNEXPECTED_ERROR = "unexpected_error"


@dataclass
class ProcessingOutcome:
    """Result of processing one rebalance event"""
    status: OutcomeStatus
    reason: Optional[str] = None
    transaction_count: int = 0
    error: Optional[str] = None

    @classmethod
    def skipped(cls, reason: str) -> "ProcessingOutcome":
        return cls(status=OutcomeStatus.SKIPPED, reason=reason)

    @classmethod
    def applied(cls, transaction_count: int) -> "ProcessingOutcome":
        return cls(status=OutcomeStatus.APPLIED, transaction_count=transaction_count)

    @classmethod
    def failed(cls, reason: str, error: Optional[str] = None) -> "ProcessingOutcome":
        return cls(status=OutcomeStatus.FAILED, reason=reason, error=error)

    @property
    def succeeded(self) -> bool:
        return self.status != OutcomeStatus.FAILED

    @property
    def redeliverable(self) -> bool:
        """Nothing was recorded for the event, so it must be processed again later"""
        return self.status == OutcomeStatus.FAILED and self.reason == FailureReason.NOT_STARTED
