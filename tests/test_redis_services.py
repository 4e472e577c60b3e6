import pytest
import redis.asyncio as redis

from conftest import ScriptedTransactionStore
from rebalance_engine import (
    FailureReason,
    LedgerConflictError,
    Portfolio,
    PortfolioNotFoundError,
    RebalanceEvent,
    RebalanceIntakePipeline,
    RebalanceRequestLedger,
    RebalanceRequestRecord,
    RebalanceTransaction,
    RequestStatus,
    StorageError,
    TransactionAction,
    TransientStorageError,
)
from rebalance_service.services import (
    RedisLedgerService,
    RedisPortfolioService,
    RedisQueueService,
    RedisTransactionService,
)
from rebalance_service.services.redis_queue_service import PROCESSING_KEY, QUEUE_KEY


def make_transaction(asset="stocks", action=TransactionAction.BUY, percent=10.0, user_id="user-1"):
    return RebalanceTransaction(user_id=user_id, asset=asset, action=action, rebalance_percent=percent)


def make_event(user_id="user-1", stocks=70):
    return RebalanceEvent(
        user_id=user_id,
        new_allocation={"stocks": stocks, "bonds": 100 - stocks},
        current_allocation={"stocks": 60, "bonds": 40}
    )


class UnreachableClient:
    """Stands in for a client whose server went away"""

    def pipeline(self, transaction=True):
        raise redis.ConnectionError("Connection refused")

    async def get(self, key):
        raise redis.ConnectionError("Connection refused")

    async def ping(self):
        raise redis.ConnectionError("Connection refused")


# Ledger

async def test_ledger_put_and_get_roundtrip(redis_client):
    service = RedisLedgerService(client=redis_client)
    record = RebalanceRequestRecord(user_id="user-1", allocation_hash="a" * 64)

    await service.put(record, expected_hash=None)
    stored = await service.get("user-1")

    assert stored.allocation_hash == "a" * 64
    assert stored.status == RequestStatus.PENDING
    assert await redis_client.smembers("rebalance_requests:pending") == {"user-1"}


async def test_ledger_get_missing_returns_none(redis_client):
    service = RedisLedgerService(client=redis_client)
    assert await service.get("nobody") is None


async def test_ledger_put_rejects_stale_expected_hash(redis_client):
    service = RedisLedgerService(client=redis_client)
    await service.put(RebalanceRequestRecord(user_id="user-1", allocation_hash="a" * 64), expected_hash=None)

    with pytest.raises(LedgerConflictError):
        await service.put(RebalanceRequestRecord(user_id="user-1", allocation_hash="b" * 64), expected_hash=None)
    with pytest.raises(LedgerConflictError):
        await service.put(RebalanceRequestRecord(user_id="user-1", allocation_hash="b" * 64), expected_hash="c" * 64)

    assert (await service.get("user-1")).allocation_hash == "a" * 64


async def test_ledger_status_change_moves_user_between_sets(redis_client):
    service = RedisLedgerService(client=redis_client)
    await service.put(RebalanceRequestRecord(user_id="user-1", allocation_hash="a" * 64), expected_hash=None)
    await service.put(
        RebalanceRequestRecord(user_id="user-1", allocation_hash="a" * 64, status=RequestStatus.FAILED),
        expected_hash="a" * 64
    )

    assert await redis_client.smembers("rebalance_requests:pending") == set()
    failed = await service.list_by_status(RequestStatus.FAILED)
    assert [r.user_id for r in failed] == ["user-1"]
    assert await service.list_by_status(RequestStatus.COMPLETED) == []


async def test_ledger_read_failure_is_storage_error():
    service = RedisLedgerService(client=UnreachableClient(), max_retries=2, retry_delay=0)

    with pytest.raises(StorageError):
        await service.get("user-1")


# Transactions

async def test_bulk_save_appends_in_order(redis_client):
    service = RedisTransactionService(client=redis_client)
    batch = [
        make_transaction("bonds", TransactionAction.SELL, 10.0),
        make_transaction("stocks", TransactionAction.BUY, 10.0),
    ]

    await service.bulk_save(batch)
    await service.bulk_save([make_transaction("gold", TransactionAction.BUY, 5.0)])

    stored = await service.list_transactions("user-1")
    assert [t.asset for t in stored] == ["bonds", "stocks", "gold"]
    assert stored[0].action == TransactionAction.SELL


async def test_bulk_save_of_nothing_is_a_no_op(redis_client):
    service = RedisTransactionService(client=redis_client)
    await service.bulk_save([])
    assert await service.list_transactions("user-1") == []


async def test_bulk_save_partial_failure_is_transient(redis_client):
    service = RedisTransactionService(client=redis_client)
    # Wrong type under one user's key makes that RPUSH fail inside EXEC
    await redis_client.set("rebalance_transactions:user-2", "not a list")

    with pytest.raises(TransientStorageError):
        await service.bulk_save([make_transaction(user_id="user-1"), make_transaction(user_id="user-2")])


async def test_bulk_save_connection_failure_is_transient():
    service = RedisTransactionService(client=UnreachableClient())

    with pytest.raises(TransientStorageError):
        await service.bulk_save([make_transaction()])


# Portfolios

async def test_portfolio_save_and_get(redis_client):
    service = RedisPortfolioService(client=redis_client)
    await service.save_portfolio(Portfolio(user_id="user-1", allocation={"stocks": 60, "bonds": 40}))

    portfolio = await service.get_portfolio("user-1")

    assert portfolio.allocation == {"stocks": 60.0, "bonds": 40.0}
    assert await redis_client.exists("portfolio:user-1")


async def test_missing_portfolio_raises_not_found(redis_client):
    service = RedisPortfolioService(client=redis_client)

    with pytest.raises(PortfolioNotFoundError):
        await service.get_portfolio("nobody")


# Queue

async def test_enqueue_then_dequeue_moves_event_to_processing(redis_client):
    service = RedisQueueService(client=redis_client)
    event = make_event()

    await service.enqueue_event(event)
    queued = await service.dequeue_event(timeout=1)

    assert queued.event.event_id == event.event_id
    assert await service.get_queue_stats() == {'main_queue': 0, 'processing': 1}

    await service.ack_event(queued.raw)
    assert await service.get_queue_stats() == {'main_queue': 0, 'processing': 0}


async def test_queue_is_first_in_first_out(redis_client):
    service = RedisQueueService(client=redis_client)
    first, second = make_event(stocks=70), make_event(stocks=80)

    await service.enqueue_event(first)
    await service.enqueue_event(second)

    assert (await service.dequeue_event(timeout=1)).event.event_id == first.event_id
    assert (await service.dequeue_event(timeout=1)).event.event_id == second.event_id


async def test_malformed_payload_is_dropped(redis_client):
    service = RedisQueueService(client=redis_client)
    await redis_client.lpush(QUEUE_KEY, '{"user_id": 1}')

    assert await service.dequeue_event(timeout=1) is None
    assert await redis_client.llen(PROCESSING_KEY) == 0


async def test_recover_stuck_events_preserves_order(redis_client):
    service = RedisQueueService(client=redis_client)
    first, second = make_event(stocks=70), make_event(stocks=80)
    await service.enqueue_event(first)
    await service.enqueue_event(second)
    await service.dequeue_event(timeout=1)
    await service.dequeue_event(timeout=1)

    assert await service.recover_stuck_events() == 2

    assert (await service.dequeue_event(timeout=1)).event.event_id == first.event_id
    assert (await service.dequeue_event(timeout=1)).event.event_id == second.event_id


async def test_ping(redis_client):
    assert await RedisQueueService(client=redis_client).ping() is True
    assert await RedisQueueService(client=UnreachableClient()).ping() is False


def test_service_requires_url_or_client():
    with pytest.raises(ValueError):
        RedisQueueService()


async def test_close_releases_only_owned_client(redis_client):
    owned = RedisQueueService(redis_url="redis://localhost:6379/0")
    await owned._get_client()
    await owned.close()
    assert owned._client is None

    shared = RedisQueueService(client=redis_client)
    await shared.close()
    assert await redis_client.ping()


async def test_corrupt_ledger_record_is_storage_error(redis_client):
    service = RedisLedgerService(client=redis_client)
    await redis_client.set("rebalance_request:user-1", "{not json")

    with pytest.raises(StorageError):
        await service.get("user-1")
    with pytest.raises(StorageError):
        await service.put(RebalanceRequestRecord(user_id="user-1", allocation_hash="a" * 64), expected_hash=None)


async def test_corrupt_ledger_record_fails_pipeline_as_ledger_read(redis_client):
    await redis_client.set("rebalance_request:user-1", '{"user_id": "user-1"}')
    store = ScriptedTransactionStore()
    pipeline = RebalanceIntakePipeline(RebalanceRequestLedger(RedisLedgerService(client=redis_client)), store)

    outcome = await pipeline.process(make_event())

    assert outcome.reason == FailureReason.LEDGER_READ_FAILED
    assert store.calls == 0
