"""
Service container using dependency-injector for the rebalancer services
"""
import asyncio
import redis.asyncio as redis
from dependency_injector import containers, providers
from rebalance_config import get_config
from rebalance_engine import (
    RebalanceCalculator,
    RebalanceIntakePipeline,
    RebalanceRequestLedger,
    RetryPolicy,
)
from rebalance_service.services.redis_ledger_service import RedisLedgerService
from rebalance_service.services.redis_transaction_service import RedisTransactionService
from rebalance_service.services.redis_portfolio_service import RedisPortfolioService
from rebalance_service.services.redis_queue_service import RedisQueueService
from rebalance_service.core.event_processor import EventProcessor


class ServiceContainer(containers.DeclarativeContainer):
    """DI Container for the consumer and the intake API"""

    # Configuration (loaded before the container is used)
    app_config = providers.Singleton(get_config)

    # Set on shutdown; observed by in-flight retry loops
    shutdown_event = providers.Singleton(asyncio.Event)

    # One Redis client shared by all Redis services
    redis_client = providers.Singleton(
        redis.from_url,
        app_config.provided.redis.url,
        decode_responses=True
    )

    # Redis Services (Singletons)
    redis_ledger_service = providers.Singleton(
        RedisLedgerService,
        client=redis_client,
        max_retries=app_config.provided.redis.max_connection_retries,
        retry_delay=app_config.provided.redis.connection_retry_delay_seconds
    )

    redis_transaction_service = providers.Singleton(
        RedisTransactionService,
        client=redis_client
    )

    redis_portfolio_service = providers.Singleton(
        RedisPortfolioService,
        client=redis_client,
        max_retries=app_config.provided.redis.max_connection_retries,
        retry_delay=app_config.provided.redis.connection_retry_delay_seconds
    )

    redis_queue_service = providers.Singleton(
        RedisQueueService,
        client=redis_client,
        max_retries=app_config.provided.redis.max_connection_retries,
        retry_delay=app_config.provided.redis.connection_retry_delay_seconds
    )

    # Rebalance engine
    ledger = providers.Singleton(
        RebalanceRequestLedger,
        store=redis_ledger_service
    )

    calculator = providers.Singleton(RebalanceCalculator)

    retry_policy = providers.Singleton(
        RetryPolicy,
        max_attempts=app_config.provided.retry.max_attempts,
        base_delay=app_config.provided.retry.base_delay_seconds
    )

    pipeline = providers.Singleton(
        RebalanceIntakePipeline,
        ledger=ledger,
        transaction_store=redis_transaction_service,
        calculator=calculator,
        retry_policy=retry_policy,
        shutdown_event=shutdown_event,
        per_user_locking=app_config.provided.processing.per_user_locking
    )

    # Queue consumer
    event_processor = providers.Singleton(
        EventProcessor,
        queue_service=redis_queue_service,
        pipeline=pipeline,
        processing_config=app_config.provided.processing,
        shutdown_event=shutdown_event
    )
