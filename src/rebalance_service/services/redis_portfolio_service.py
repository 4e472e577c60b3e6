"""
Redis Portfolio Service
Stores the current allocation of each user
"""
import redis.asyncio as redis
from rebalance_engine import Portfolio, PortfolioNotFoundError, PortfolioStore, StorageError
from rebalance_service.services.base_redis_service import BaseRedisService
from rebalance_service.logger import AppLogger

app_logger = AppLogger(__name__)


class RedisPortfolioService(BaseRedisService, PortfolioStore):
    """Service for portfolio operations in Redis"""

    async def save_portfolio(self, portfolio: Portfolio):
        """Create or replace the portfolio of a user"""
        async def save_operation(client):
            return await client.set(f"portfolio:{portfolio.user_id}", portfolio.model_dump_json())

        try:
            await self.execute_with_retry(save_operation)
        except redis.RedisError as e:
            raise StorageError(f"Failed to save portfolio for user {portfolio.user_id}: {e}") from e

        app_logger.log_info(f"Portfolio saved for user {portfolio.user_id}")

    async def get_portfolio(self, user_id: str) -> Portfolio:
        """Get the portfolio of a user"""
        async def get_operation(client):
            return await client.get(f"portfolio:{user_id}")

        try:
            data = await self.execute_with_retry(get_operation)
        except redis.RedisError as e:
            raise StorageError(f"Failed to read portfolio for user {user_id}: {e}") from e

        if not data:
            raise PortfolioNotFoundError(f"User {user_id} not found")
        return Portfolio.model_validate_json(data)
