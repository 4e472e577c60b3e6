"""
Redis Transaction Service
Persists computed rebalance transactions
"""
import redis.asyncio as redis
from collections import defaultdict
from typing import Dict, List
from rebalance_engine import (
    RebalanceTransaction,
    StorageError,
    TransactionStore,
    TransientStorageError,
)
from rebalance_service.services.base_redis_service import BaseRedisService
from rebalance_service.logger import AppLogger

app_logger = AppLogger(__name__)

TRANSACTIONS_KEY_PREFIX = "rebalance_transactions"


class RedisTransactionService(BaseRedisService, TransactionStore):
    """Transactions appended to a per-user Redis list"""

    @staticmethod
    def _transactions_key(user_id: str) -> str:
        return f"{TRANSACTIONS_KEY_PREFIX}:{user_id}"

    async def bulk_save(self, transactions: List[RebalanceTransaction]):
        """
        Write all transactions in one MULTI/EXEC block

        Any failure is reported as a single TransientStorageError for the
        whole batch. The caller owns retrying, so execute_with_retry is not used.
        """
        if not transactions:
            return

        documents: Dict[str, List[str]] = defaultdict(list)
        for transaction in transactions:
            documents[self._transactions_key(transaction.user_id)].append(transaction.model_dump_json())

        try:
            client = await self._get_client()
            async with client.pipeline(transaction=True) as pipe:
                for key, values in documents.items():
                    pipe.rpush(key, *values)
                # EXEC does not roll back commands that fail at runtime
                results = await pipe.execute(raise_on_error=False)
        except redis.RedisError as e:
            raise TransientStorageError(f"Failed to save {len(transactions)} rebalance transactions: {e}") from e

        failed = [result for result in results if isinstance(result, Exception)]
        if failed:
            raise TransientStorageError(
                f"Batch of {len(transactions)} rebalance transactions partially failed: {failed[0]}"
            )

        app_logger.log_debug(f"Saved {len(transactions)} rebalance transactions")

    async def list_transactions(self, user_id: str) -> List[RebalanceTransaction]:
        """Get stored transactions of a user in insertion order"""
        key = self._transactions_key(user_id)

        async def list_operation(client):
            return await client.lrange(key, 0, -1)

        try:
            data = await self.execute_with_retry(list_operation)
        except redis.RedisError as e:
            raise StorageError(f"Failed to read rebalance transactions for user {user_id}: {e}") from e

        return [RebalanceTransaction.model_validate_json(item) for item in data]
