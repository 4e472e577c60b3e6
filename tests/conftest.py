from typing import Dict, List, Optional

from fakeredis import aioredis
import pytest

from rebalance_engine import (
    LedgerConflictError,
    LedgerStore,
    Portfolio,
    PortfolioNotFoundError,
    PortfolioStore,
    RebalanceRequestLedger,
    RebalanceRequestRecord,
    RebalanceTransaction,
    TransactionStore,
    TransientStorageError,
)


class InMemoryLedgerStore(LedgerStore):
    def __init__(self):
        self.records: Dict[str, RebalanceRequestRecord] = {}
        self.puts: List[RebalanceRequestRecord] = []
        self.fail_get: Optional[Exception] = None
        self.fail_put: Optional[Exception] = None

    async def get(self, user_id):
        if self.fail_get:
            raise self.fail_get
        return self.records.get(user_id)

    async def put(self, record, expected_hash):
        if self.fail_put:
            raise self.fail_put
        existing = self.records.get(record.user_id)
        stored_hash = existing.allocation_hash if existing else None
        if stored_hash != expected_hash:
            raise LedgerConflictError(f"expected {expected_hash}, found {stored_hash}")
        self.records[record.user_id] = record
        self.puts.append(record)

    async def list_by_status(self, status):
        return [record for record in self.records.values() if record.status == status]


class ScriptedTransactionStore(TransactionStore):
    """Fails bulk_save with the queued errors before succeeding"""

    def __init__(self, failures: Optional[List[Exception]] = None):
        self.failures = list(failures or [])
        self.calls = 0
        self.saved: List[RebalanceTransaction] = []

    async def bulk_save(self, transactions):
        self.calls += 1
        if self.failures:
            raise self.failures.pop(0)
        self.saved.extend(transactions)

    async def list_transactions(self, user_id):
        return [t for t in self.saved if t.user_id == user_id]


class InMemoryPortfolioStore(PortfolioStore):
    def __init__(self):
        self.portfolios: Dict[str, Portfolio] = {}

    async def save_portfolio(self, portfolio):
        self.portfolios[portfolio.user_id] = portfolio

    async def get_portfolio(self, user_id):
        if user_id not in self.portfolios:
            raise PortfolioNotFoundError(f"User {user_id} not found")
        return self.portfolios[user_id]


class RecordingQueue:
    def __init__(self, healthy: bool = True, error: Optional[Exception] = None):
        self.events = []
        self.healthy = healthy
        self.error = error

    async def enqueue_event(self, event):
        if self.error:
            raise self.error
        self.events.append(event)

    async def ping(self):
        return self.healthy


def transient_failures(count: int) -> List[Exception]:
    return [TransientStorageError(f"bulk write failed #{n}") for n in range(1, count + 1)]


@pytest.fixture
def ledger_store():
    return InMemoryLedgerStore()


@pytest.fixture
def ledger(ledger_store):
    return RebalanceRequestLedger(ledger_store)


@pytest.fixture
def transaction_store():
    return ScriptedTransactionStore()


@pytest.fixture
def portfolio_store():
    return InMemoryPortfolioStore()


@pytest.fixture
async def redis_client():
    client = aioredis.FakeRedis(decode_responses=True)
    yield client
    await client.flushall()
    await client.aclose()
