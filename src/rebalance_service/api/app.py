"""
Rebalance intake API

Stores current portfolios and turns provider rebalance requests into
rebalance events on the queue.
"""
import redis.asyncio as redis
from contextlib import asynccontextmanager
from typing import Dict, List, Optional
from fastapi import FastAPI, HTTPException, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel
from rebalance_config import APIConfig
from rebalance_engine import (
    AllocationValidationError,
    Portfolio,
    PortfolioNotFoundError,
    PortfolioStore,
    RebalanceEvent,
    RebalanceRequestLedger,
    RebalanceRequestRecord,
    RebalanceTransaction,
    StorageError,
    TransactionStore,
    fingerprint,
)
from rebalance_service.api.validation import validate_user_and_allocation
from rebalance_service.logger import AppLogger
from rebalance_service.services.redis_queue_service import RedisQueueService

app_logger = AppLogger(__name__)

VERSION = "1.0.0"


class PortfolioRequest(BaseModel):
    """Sample: {"user_id": "1", "allocation": {"stocks": 60, "bonds": 30, "gold": 10}}"""
    user_id: str
    allocation: Dict[str, float]


class RebalanceRequest(BaseModel):
    """Sample: {"user_id": "1", "new_allocation": {"stocks": 70, "bonds": 20, "gold": 10}}"""
    user_id: str
    new_allocation: Dict[str, float]


class RebalanceAccepted(BaseModel):
    status: str
    event_id: str
    user_id: str


def create_app(portfolio_store: PortfolioStore, queue_service: RedisQueueService,
               ledger: RebalanceRequestLedger, transaction_store: TransactionStore,
               api_config: Optional[APIConfig] = None, lifespan=None) -> FastAPI:
    """Build the intake API around explicitly injected collaborators"""
    api_config = api_config or APIConfig()

    app = FastAPI(
        title="Portfolio Rebalancer Intake Service",
        description="Accepts portfolios and rebalance requests from allocation providers",
        version=VERSION,
        lifespan=lifespan
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    def _validate(user_id: str, allocation: Dict[str, float]):
        try:
            validate_user_and_allocation(user_id, allocation, api_config.allocation_sum_tolerance)
        except AllocationValidationError as e:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))

    @app.get("/")
    async def root():
        """Root endpoint"""
        return {"message": "Portfolio Rebalancer Intake Service", "version": VERSION}

    @app.get("/health")
    async def health_check():
        """Health check endpoint"""
        redis_ok = await queue_service.ping()
        if not redis_ok:
            return JSONResponse(
                status_code=503,
                content={"status": "unhealthy", "redis": "unreachable", "version": VERSION}
            )
        return {"status": "healthy", "redis": "reachable", "version": VERSION}

    @app.post("/portfolio", status_code=status.HTTP_201_CREATED, response_model=Portfolio)
    async def create_portfolio(request: PortfolioRequest):
        """Create or replace the current portfolio of a user"""
        _validate(request.user_id, request.allocation)
        portfolio = Portfolio(user_id=request.user_id, allocation=request.allocation)

        try:
            await portfolio_store.save_portfolio(portfolio)
        except StorageError as e:
            app_logger.log_error(f"Failed to save portfolio: {e}")
            raise HTTPException(status_code=500, detail="Failed to save portfolio")

        return portfolio

    @app.get("/portfolio/{user_id}", response_model=Portfolio)
    async def get_portfolio(user_id: str):
        try:
            return await portfolio_store.get_portfolio(user_id)
        except PortfolioNotFoundError:
            raise HTTPException(status_code=404, detail="User not found")
        except StorageError as e:
            app_logger.log_error(f"Failed to get portfolio: {e}")
            raise HTTPException(status_code=500, detail="Internal Server Error")

    @app.post("/rebalance", status_code=status.HTTP_202_ACCEPTED, response_model=RebalanceAccepted)
    async def request_rebalance(request: RebalanceRequest):
        """Queue a rebalance of a user's portfolio to a new allocation"""
        _validate(request.user_id, request.new_allocation)

        try:
            portfolio = await portfolio_store.get_portfolio(request.user_id)
        except PortfolioNotFoundError:
            raise HTTPException(status_code=404, detail="User not found")
        except StorageError as e:
            app_logger.log_error(f"Failed to get current portfolio: {e}")
            raise HTTPException(status_code=500, detail="Internal Server Error")

        if fingerprint(request.new_allocation) == fingerprint(portfolio.allocation):
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="New allocation is the same as current allocation"
            )

        event = RebalanceEvent(
            user_id=request.user_id,
            new_allocation=request.new_allocation,
            current_allocation=portfolio.allocation
        )

        try:
            await queue_service.enqueue_event(event)
        except redis.RedisError as e:
            app_logger.log_error(f"Failed to publish rebalance event: {e}")
            raise HTTPException(status_code=500, detail="Failed to queue rebalance request")

        app_logger.log_info(f"Queued rebalance event {event.event_id} for user {event.user_id}")
        return RebalanceAccepted(status="queued", event_id=event.event_id, user_id=event.user_id)

    @app.get("/transactions/{user_id}", response_model=List[RebalanceTransaction])
    async def list_transactions(user_id: str):
        try:
            return await transaction_store.list_transactions(user_id)
        except StorageError as e:
            app_logger.log_error(f"Failed to list transactions: {e}")
            raise HTTPException(status_code=500, detail="Internal Server Error")

    @app.get("/reconciliation", response_model=List[RebalanceRequestRecord])
    async def pending_reconciliation():
        """Rebalance requests whose transactions were never saved"""
        try:
            return await ledger.pending_reconciliation()
        except StorageError as e:
            app_logger.log_error(f"Failed to list failed rebalance requests: {e}")
            raise HTTPException(status_code=500, detail="Internal Server Error")

    return app


def create_app_from_container(container) -> FastAPI:
    """Build the intake API from a ServiceContainer"""

    @asynccontextmanager
    async def lifespan(_app: FastAPI):
        yield
        await container.redis_client().aclose()

    return create_app(
        portfolio_store=container.redis_portfolio_service(),
        queue_service=container.redis_queue_service(),
        ledger=container.ledger(),
        transaction_store=container.redis_transaction_service(),
        api_config=container.app_config().api,
        lifespan=lifespan
    )
