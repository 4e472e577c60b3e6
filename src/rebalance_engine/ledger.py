"""Per-user record of the last allocation change accepted for processing"""

import logging
from typing import List, Optional

from .exceptions import (
    FatalStorageError,
    LedgerConflictError,
    RequestNotFoundError,
    StorageError,
)
from .models import RebalanceRequestRecord, RequestStatus
from .storage import LedgerStore


class RebalanceRequestLedger:
    """
    Idempotency gate for the asynchronous rebalance pipeline.

    Only guards against re-processing an identical allocation change for a
    user. Two different events for the same user racing each other are kept
    apart by the caller (per-user locking) and by the compare-and-set write.
    """

    def __init__(self, store: LedgerStore, logger: Optional[logging.Logger] = None):
        self.store = store
        self.logger = logger or logging.getLogger(__name__)

    async def get_record(self, user_id: str) -> RebalanceRequestRecord:
        """
        Return the ledger record for a user.

        Raises:
            RequestNotFoundError: no rebalance has been accepted for the user yet
            StorageError: the store could not be read
        """
        record = await self.store.get(user_id)
        if record is None:
            raise RequestNotFoundError(f"No rebalance request recorded for user {user_id}")
        return record

    async def get_last_fingerprint(self, user_id: str) -> str:
        """Return the fingerprint of the last accepted allocation for a user"""
        record = await self.get_record(user_id)
        return record.allocation_hash

    async def record_fingerprint(self, user_id: str, new_fingerprint: str,
                                 expected_fingerprint: Optional[str] = None) -> RebalanceRequestRecord:
        """
        Advance the ledger for a user to new_fingerprint with status PENDING.

        Args:
            user_id: User the allocation belongs to
            new_fingerprint: Fingerprint of the allocation being accepted
            expected_fingerprint: Fingerprint read before this write, None for a first event

        Raises:
            LedgerConflictError: the record changed since it was read
            FatalStorageError: the record could not be written
        """
        record = RebalanceRequestRecord(
            user_id=user_id,
            allocation_hash=new_fingerprint,
            status=RequestStatus.PENDING
        )
        try:
            await self.store.put(record, expected_hash=expected_fingerprint)
        except LedgerConflictError:
            self.logger.warning(f"Ledger record for user {user_id} changed concurrently")
            raise
        except StorageError as e:
            raise FatalStorageError(f"Failed to record rebalance request for user {user_id}: {e}") from e

        self.logger.debug(f"Ledger advanced for user {user_id} to {new_fingerprint[:12]}")
        return record

    async def mark_status(self, user_id: str, fingerprint: str, status: RequestStatus) -> bool:
        """
        Set the status of the record for a user if it still holds fingerprint.

        Best effort: returns False instead of raising when the record moved on
        or the store failed, since the fingerprint itself is already durable.
        """
        record = RebalanceRequestRecord(user_id=user_id, allocation_hash=fingerprint, status=status)
        try:
            await self.store.put(record, expected_hash=fingerprint)
            return True
        except LedgerConflictError:
            self.logger.warning(f"Ledger for user {user_id} moved past {fingerprint[:12]}, status {status.value} not recorded")
            return False
        except StorageError as e:
            self.logger.error(f"Failed to mark rebalance request {status.value} for user {user_id}: {e}")
            return False

    async def pending_reconciliation(self) -> List[RebalanceRequestRecord]:
        """Records whose transactions were never persisted and need a manual replay"""
        return await self.store.list_by_status(RequestStatus.FAILED)
