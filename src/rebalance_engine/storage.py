from abc import ABC, abstractmethod
from typing import List, Optional
from .models import Portfolio, RebalanceRequestRecord, RebalanceTransaction, RequestStatus

class LedgerStore(ABC):
    """Abstract storage for per-user rebalance request records"""

    @abstractmethod
    async def get(self, user_id: str) -> Optional[RebalanceRequestRecord]:
        """Return the record for user_id, or None when there is none"""
        pass

    @abstractmethod
    async def put(self, record: RebalanceRequestRecord, expected_hash: Optional[str]):
        """
        Store record, replacing the existing one for the user.

        Compare-and-set: the write only succeeds while the stored record still
        carries expected_hash (None expects no record at all); otherwise
        LedgerConflictError is raised.
        """
        pass

    @abstractmethod
    async def list_by_status(self, status: RequestStatus) -> List[RebalanceRequestRecord]:
        """Return all records currently in the given status"""
        pass

class TransactionStore(ABC):
    """Abstract storage for computed rebalance transactions"""

    @abstractmethod
    async def bulk_save(self, transactions: List[RebalanceTransaction]):
        """
        Persist all transactions as one batch.

        Raises TransientStorageError when the batch partially or fully failed
        and may succeed if repeated.
        """
        pass

    @abstractmethod
    async def list_transactions(self, user_id: str) -> List[RebalanceTransaction]:
        """Return stored transactions for a user in insertion order"""
        pass

class PortfolioStore(ABC):
    """Abstract storage for current user portfolios"""

    @abstractmethod
    async def save_portfolio(self, portfolio: Portfolio):
        """Create or replace the portfolio of a user"""
        pass

    @abstractmethod
    async def get_portfolio(self, user_id: str) -> Portfolio:
        """Return the portfolio of a user, raising PortfolioNotFoundError if absent"""
        pass
