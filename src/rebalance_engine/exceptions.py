class RebalanceError(Exception):
    """Base class for rebalancer errors"""
    pass

class AllocationValidationError(RebalanceError):
    """Raised when an allocation payload is malformed"""
    pass

class NotFoundError(RebalanceError):
    """Raised when a record does not exist; a control-flow signal, not a failure"""
    pass

class RequestNotFoundError(NotFoundError):
    """Raised when no rebalance request has been recorded for a user"""
    pass

class PortfolioNotFoundError(NotFoundError):
    """Raised when no portfolio has been stored for a user"""
    pass

class StorageError(RebalanceError):
    """Raised when a storage backend operation fails"""
    pass

class TransientStorageError(StorageError):
    """Raised when a write failed but may succeed on retry"""
    pass

class FatalStorageError(StorageError):
    """Raised when a write failed and must not be retried"""
    pass

class LedgerConflictError(StorageError):
    """Raised when the ledger record changed between read and write"""
    pass
