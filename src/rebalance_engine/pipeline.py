"""Idempotent processing of one rebalance event"""

import asyncio
import logging
import weakref
from contextlib import asynccontextmanager, nullcontext
from dataclasses import dataclass
from typing import List, Optional

from .calculator import RebalanceCalculator
from .exceptions import (
    LedgerConflictError,
    RequestNotFoundError,
    StorageError,
    TransientStorageError,
)
from .fingerprint import fingerprint
from .ledger import RebalanceRequestLedger
from .models import (
    FailureReason,
    OutcomeStatus,
    ProcessingOutcome,
    RebalanceEvent,
    RebalanceTransaction,
    RequestStatus,
    SkipReason,
)
from .storage import TransactionStore


@dataclass(frozen=True)
class RetryPolicy:
    """Bounded exponential backoff without jitter"""
    max_attempts: int = 5
    base_delay: float = 1.0

    def delay_after(self, attempt: int) -> float:
        """Wait after the given failed attempt (1-based): base, 2*base, 4*base, ..."""
        return self.base_delay * (2 ** (attempt - 1))


class RebalanceIntakePipeline:
    """
    Turns possibly duplicated rebalance events into persisted transactions.

    The ledger is advanced before transactions are written. If every write
    attempt fails the event is reported as failed, yet a re-delivery of the
    same event is skipped as a duplicate: those transactions are lost until
    an operator replays them (see RebalanceRequestLedger.pending_reconciliation).
    """

    def __init__(self, ledger: RebalanceRequestLedger, transaction_store: TransactionStore,
                 calculator: Optional[RebalanceCalculator] = None,
                 retry_policy: Optional[RetryPolicy] = None,
                 shutdown_event: Optional[asyncio.Event] = None,
                 per_user_locking: bool = True,
                 logger: Optional[logging.Logger] = None):
        self.ledger = ledger
        self.transaction_store = transaction_store
        self.logger = logger or logging.getLogger(__name__)
        self.calculator = calculator or RebalanceCalculator(logger=self.logger)
        self.retry_policy = retry_policy or RetryPolicy()
        self.shutdown_event = shutdown_event
        self.per_user_locking = per_user_locking
        self._user_locks: "weakref.WeakValueDictionary[str, asyncio.Lock]" = weakref.WeakValueDictionary()

    async def process(self, event: RebalanceEvent) -> ProcessingOutcome:
        """Process one rebalance event; never raises for storage failures"""
        new_fingerprint = fingerprint(event.new_allocation)

        async with self._user_lock(event.user_id):
            return await self._process_locked(event, new_fingerprint)

    async def _process_locked(self, event: RebalanceEvent, new_fingerprint: str) -> ProcessingOutcome:
        user_id = event.user_id

        # Get existing request or treat as first event
        try:
            previous_fingerprint = await self.ledger.get_last_fingerprint(user_id)
        except RequestNotFoundError:
            previous_fingerprint = None
        except StorageError as e:
            self.logger.error(f"Failed to get current rebalance request for user {user_id}: {e}")
            return ProcessingOutcome.failed(FailureReason.LEDGER_READ_FAILED, str(e))

        if previous_fingerprint == new_fingerprint:
            self.logger.info(f"No allocation changes detected for user {user_id}, skipping duplicate event")
            return ProcessingOutcome.skipped(SkipReason.DUPLICATE)

        if self._shutdown_requested():
            self.logger.warning(f"Shutdown requested, leaving rebalance for user {user_id} unprocessed")
            return ProcessingOutcome.failed(FailureReason.NOT_STARTED, "shutdown requested")

        try:
            await self.ledger.record_fingerprint(user_id, new_fingerprint, expected_fingerprint=previous_fingerprint)
        except LedgerConflictError as e:
            self.logger.error(f"Rebalance request for user {user_id} was changed by another event: {e}")
            return ProcessingOutcome.failed(FailureReason.LEDGER_CONFLICT, str(e))
        except StorageError as e:
            self.logger.error(f"Failed to save rebalance request for user {user_id}: {e}")
            return ProcessingOutcome.failed(FailureReason.LEDGER_WRITE_FAILED, str(e))

        self.logger.info(f"Processing rebalance for user {user_id}")

        transactions = self.calculator.calculate_transactions(
            event.new_allocation,
            event.current_allocation,
            user_id
        )

        if not transactions:
            self.logger.info(f"No transactions to save for user {user_id}")
            await self.ledger.mark_status(user_id, new_fingerprint, RequestStatus.COMPLETED)
            return ProcessingOutcome.applied(0)

        self.logger.info(f"Saving {len(transactions)} transactions for user {user_id}")
        outcome = await self._persist_with_retry(user_id, transactions)

        final_status = RequestStatus.COMPLETED if outcome.status == OutcomeStatus.APPLIED else RequestStatus.FAILED
        await self.ledger.mark_status(user_id, new_fingerprint, final_status)
        return outcome

    async def _persist_with_retry(self, user_id: str,
                                  transactions: List[RebalanceTransaction]) -> ProcessingOutcome:
        max_attempts = self.retry_policy.max_attempts
        last_error: Optional[Exception] = None

        for attempt in range(1, max_attempts + 1):
            if self._shutdown_requested():
                return self._cancelled(user_id, len(transactions))

            try:
                await self.transaction_store.bulk_save(transactions)
                if attempt > 1:
                    self.logger.info(f"Saved transactions for user {user_id} on attempt {attempt}/{max_attempts}")
                return ProcessingOutcome.applied(len(transactions))
            except TransientStorageError as e:
                last_error = e
                self.logger.warning(
                    f"Failed to save rebalance transactions (attempt {attempt}/{max_attempts}): {e}"
                )
            except StorageError as e:
                self.logger.critical(
                    f"Failed to save {len(transactions)} transactions for user {user_id} with a "
                    f"non-retryable error: {e}. Data may be lost, manual reconciliation required."
                )
                return ProcessingOutcome.failed(FailureReason.STORAGE_FATAL, str(e))

            if attempt < max_attempts:
                if not await self._wait_backoff(self.retry_policy.delay_after(attempt)):
                    return self._cancelled(user_id, len(transactions))

        self.logger.critical(
            f"Failed to save {len(transactions)} transactions for user {user_id} after {max_attempts} "
            f"attempts. Data may be lost, manual reconciliation required."
        )
        return ProcessingOutcome.failed(FailureReason.STORAGE_EXHAUSTED, str(last_error))

    async def _wait_backoff(self, delay: float) -> bool:
        """Sleep for delay; False when shutdown was requested meanwhile"""
        if self.shutdown_event is None:
            await asyncio.sleep(delay)
            return True
        try:
            await asyncio.wait_for(self.shutdown_event.wait(), timeout=delay)
        except asyncio.TimeoutError:
            return True
        return False

    def _shutdown_requested(self) -> bool:
        return self.shutdown_event is not None and self.shutdown_event.is_set()

    def _cancelled(self, user_id: str, transaction_count: int) -> ProcessingOutcome:
        self.logger.error(
            f"Shutdown requested before {transaction_count} transactions for user {user_id} were saved. "
            f"Manual reconciliation required."
        )
        return ProcessingOutcome.failed(FailureReason.CANCELLED, "shutdown requested")

    def _user_lock(self, user_id: str):
        if not self.per_user_locking:
            return nullcontext()
        return self._hold_user_lock(user_id)

    @asynccontextmanager
    async def _hold_user_lock(self, user_id: str):
        lock = self._user_locks.get(user_id)
        if lock is None:
            lock = asyncio.Lock()
            self._user_locks[user_id] = lock
        async with lock:
            yield
