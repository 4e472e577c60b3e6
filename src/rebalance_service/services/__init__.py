from .base_redis_service import BaseRedisService
from .redis_ledger_service import RedisLedgerService
from .redis_transaction_service import RedisTransactionService
from .redis_portfolio_service import RedisPortfolioService
from .redis_queue_service import RedisQueueService, QueuedEvent

__all__ = [
    "BaseRedisService",
    "RedisLedgerService",
    "RedisTransactionService",
    "RedisPortfolioService",
    "RedisQueueService",
    "QueuedEvent",
]
