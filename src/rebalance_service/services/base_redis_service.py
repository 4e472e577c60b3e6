"""
Base class for Redis-backed services
Owns the client and retries operations when the connection drops
"""
import asyncio
import redis.asyncio as redis
from typing import Any, Awaitable, Callable, Optional
from rebalance_service.logger import AppLogger

app_logger = AppLogger(__name__)


class BaseRedisService:
    """Shared Redis client handling for all Redis services"""

    def __init__(self, redis_url: Optional[str] = None, client: Optional[redis.Redis] = None,
                 max_retries: int = 3, retry_delay: float = 0.5):
        """
        Args:
            redis_url: Connection URL, used when no client is given
            client: Ready client, shared between services
            max_retries: Attempts for an operation on connection errors
            retry_delay: Wait between attempts in seconds
        """
        if client is None and redis_url is None:
            raise ValueError("Either redis_url or client is required")
        self.redis_url = redis_url
        self._client = client
        self._owns_client = client is None
        self.max_retries = max_retries
        self.retry_delay = retry_delay

    async def _get_client(self) -> redis.Redis:
        if self._client is None:
            self._client = redis.from_url(self.redis_url, decode_responses=True)
        return self._client

    async def execute_with_retry(self, operation: Callable[[redis.Redis], Awaitable[Any]]) -> Any:
        """
        Run operation(client), retrying on connection and timeout errors

        Other Redis errors are raised immediately.
        """
        last_error = None
        for attempt in range(1, self.max_retries + 1):
            try:
                client = await self._get_client()
                return await operation(client)
            except (redis.ConnectionError, redis.TimeoutError) as e:
                last_error = e
                app_logger.log_warning(f"Redis operation failed (attempt {attempt}/{self.max_retries}): {e}")
                if attempt < self.max_retries:
                    await asyncio.sleep(self.retry_delay)
        raise last_error

    async def ping(self) -> bool:
        """Check Redis connectivity"""
        try:
            client = await self._get_client()
            return bool(await client.ping())
        except redis.RedisError as e:
            app_logger.log_error(f"Redis ping failed: {e}")
            return False

    async def close(self) -> None:
        if self._client is not None and self._owns_client:
            await self._client.aclose()
            self._client = None
