import pytest
import redis.asyncio as redis
from fastapi.testclient import TestClient

from conftest import RecordingQueue
from rebalance_engine import Portfolio, RebalanceRequestRecord, RequestStatus, diff, fingerprint
from rebalance_service.api import create_app


@pytest.fixture
def queue():
    return RecordingQueue()


@pytest.fixture
def client(portfolio_store, queue, ledger, transaction_store):
    app = create_app(portfolio_store, queue, ledger, transaction_store)
    with TestClient(app) as test_client:
        yield test_client


def test_health(client):
    response = client.get("/health")
    assert response.status_code == 200
    assert response.json()["status"] == "healthy"


def test_health_reports_unreachable_redis(portfolio_store, ledger, transaction_store):
    app = create_app(portfolio_store, RecordingQueue(healthy=False), ledger, transaction_store)
    with TestClient(app) as test_client:
        response = test_client.get("/health")
    assert response.status_code == 503


def test_create_and_get_portfolio(client):
    response = client.post("/portfolio", json={"user_id": "1", "allocation": {"stocks": 60, "bonds": 30, "gold": 10}})
    assert response.status_code == 201

    response = client.get("/portfolio/1")
    assert response.status_code == 200
    assert response.json()["allocation"] == {"stocks": 60.0, "bonds": 30.0, "gold": 10.0}


def test_get_unknown_portfolio_is_404(client):
    assert client.get("/portfolio/missing").status_code == 404


@pytest.mark.parametrize("allocation", [
    {},
    {"stocks": 60, "bonds": 30},
    {"stocks": 110, "bonds": -10},
    {"": 100},
])
def test_invalid_portfolio_is_rejected(client, allocation):
    response = client.post("/portfolio", json={"user_id": "1", "allocation": allocation})
    assert response.status_code == 400


def test_blank_user_id_is_rejected(client):
    response = client.post("/portfolio", json={"user_id": " ", "allocation": {"stocks": 100}})
    assert response.status_code == 400


def test_rebalance_is_queued_with_current_allocation(client, portfolio_store, queue):
    portfolio_store.portfolios["1"] = Portfolio(user_id="1", allocation={"stocks": 60, "bonds": 40})

    response = client.post("/rebalance", json={"user_id": "1", "new_allocation": {"stocks": 70, "bonds": 30}})

    assert response.status_code == 202
    body = response.json()
    assert body["status"] == "queued"
    assert len(queue.events) == 1
    event = queue.events[0]
    assert event.event_id == body["event_id"]
    assert event.current_allocation == {"stocks": 60.0, "bonds": 40.0}
    assert event.new_allocation == {"stocks": 70.0, "bonds": 30.0}


def test_rebalance_for_unknown_user_is_404(client, queue):
    response = client.post("/rebalance", json={"user_id": "9", "new_allocation": {"stocks": 100}})
    assert response.status_code == 404
    assert queue.events == []


def test_rebalance_to_current_allocation_is_rejected(client, portfolio_store, queue):
    portfolio_store.portfolios["1"] = Portfolio(user_id="1", allocation={"stocks": 60, "bonds": 40})

    response = client.post("/rebalance", json={"user_id": "1", "new_allocation": {"bonds": 40.0, "stocks": 60.0}})

    assert response.status_code == 400
    assert response.json()["detail"] == "New allocation is the same as current allocation"
    assert queue.events == []


def test_rebalance_queue_failure_is_500(portfolio_store, ledger, transaction_store):
    portfolio_store.portfolios["1"] = Portfolio(user_id="1", allocation={"stocks": 100})
    queue = RecordingQueue(error=redis.ConnectionError("down"))
    app = create_app(portfolio_store, queue, ledger, transaction_store)

    with TestClient(app) as test_client:
        response = test_client.post("/rebalance", json={"user_id": "1", "new_allocation": {"bonds": 100}})

    assert response.status_code == 500
    assert response.json()["detail"] == "Failed to queue rebalance request"


def test_transactions_and_reconciliation_views(client, ledger_store, transaction_store):
    transaction_store.saved.extend(diff({"stocks": 70, "bonds": 30}, {"stocks": 60, "bonds": 40}, "1"))
    ledger_store.records["2"] = RebalanceRequestRecord(
        user_id="2", allocation_hash=fingerprint({"stocks": 100}), status=RequestStatus.FAILED
    )

    transactions = client.get("/transactions/1").json()
    assert [(t["asset"], t["action"]) for t in transactions] == [("bonds", "SELL"), ("stocks", "BUY")]

    failed = client.get("/reconciliation").json()
    assert [r["user_id"] for r in failed] == ["2"]
