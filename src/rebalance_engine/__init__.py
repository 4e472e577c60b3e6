from .calculator import RebalanceCalculator, diff
from .fingerprint import fingerprint, canonical_bytes
from .ledger import RebalanceRequestLedger
from .pipeline import RebalanceIntakePipeline, RetryPolicy
from .storage import LedgerStore, TransactionStore, PortfolioStore
from .models import (
    # Core rebalance models
    Allocation,
    RebalanceEvent,
    RebalanceTransaction,
    RebalanceRequestRecord,
    Portfolio,
    TransactionAction,
    RequestStatus,
    # Processing result models
    ProcessingOutcome,
    OutcomeStatus,
    SkipReason,
    FailureReason,
)
from .exceptions import (
    RebalanceError,
    AllocationValidationError,
    NotFoundError,
    RequestNotFoundError,
    PortfolioNotFoundError,
    StorageError,
    TransientStorageError,
    FatalStorageError,
    LedgerConflictError,
)

__version__ = "1.0.0"

__all__ = [
    "RebalanceCalculator",
    "diff",
    "fingerprint",
    "canonical_bytes",
    "RebalanceRequestLedger",
    "RebalanceIntakePipeline",
    "RetryPolicy",
    "LedgerStore",
    "TransactionStore",
    "PortfolioStore",
    "Allocation",
    "RebalanceEvent",
    "RebalanceTransaction",
    "RebalanceRequestRecord",
    "Portfolio",
    "TransactionAction",
    "RequestStatus",
    "ProcessingOutcome",
    "OutcomeStatus",
    "SkipReason",
    "FailureReason",
    "RebalanceError",
    "AllocationValidationError",
    "NotFoundError",
    "RequestNotFoundError",
    "PortfolioNotFoundError",
    "StorageError",
    "TransientStorageError",
    "FatalStorageError",
    "LedgerConflictError",
    "__version__",
]
