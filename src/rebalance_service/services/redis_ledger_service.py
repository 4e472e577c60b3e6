"""
Redis Ledger Service
Stores the last accepted rebalance request per user
"""
import redis.asyncio as redis
from typing import List, Optional
from pydantic import ValidationError
from rebalance_engine import (
    FatalStorageError,
    LedgerConflictError,
    LedgerStore,
    RebalanceRequestRecord,
    RequestStatus,
    StorageError,
)
from rebalance_service.services.base_redis_service import BaseRedisService
from rebalance_service.logger import AppLogger

app_logger = AppLogger(__name__)

REQUEST_KEY_PREFIX = "rebalance_request"
STATUS_SET_PREFIX = "rebalance_requests"


class RedisLedgerService(BaseRedisService, LedgerStore):
    """Ledger records as JSON strings, indexed by status in Redis sets"""

    @staticmethod
    def _request_key(user_id: str) -> str:
        return f"{REQUEST_KEY_PREFIX}:{user_id}"

    @staticmethod
    def _status_key(status: RequestStatus) -> str:
        return f"{STATUS_SET_PREFIX}:{status.value.lower()}"

    async def get(self, user_id: str) -> Optional[RebalanceRequestRecord]:
        """Get the rebalance request record of a user"""
        key = self._request_key(user_id)

        async def get_operation(client):
            return await client.get(key)

        try:
            data = await self.execute_with_retry(get_operation)
        except redis.RedisError as e:
            raise StorageError(f"Failed to read rebalance request for user {user_id}: {e}") from e

        if not data:
            return None
        try:
            return RebalanceRequestRecord.model_validate_json(data)
        except ValidationError as e:
            raise StorageError(f"Corrupt rebalance request stored for user {user_id}: {e}") from e

    async def put(self, record: RebalanceRequestRecord, expected_hash: Optional[str]):
        """Compare-and-set the record of a user using WATCH/MULTI"""
        key = self._request_key(record.user_id)

        async def put_operation(client):
            async with client.pipeline(transaction=True) as pipe:
                await pipe.watch(key)
                existing = await pipe.get(key)
                try:
                    stored_hash = RebalanceRequestRecord.model_validate_json(existing).allocation_hash if existing else None
                except ValidationError as e:
                    raise FatalStorageError(f"Corrupt rebalance request stored for user {record.user_id}: {e}") from e
                if stored_hash != expected_hash:
                    await pipe.unwatch()
                    raise LedgerConflictError(
                        f"Expected rebalance request {expected_hash} for user {record.user_id}, found {stored_hash}"
                    )

                pipe.multi()
                pipe.set(key, record.model_dump_json())
                # Keep the record in exactly one status set
                for status in RequestStatus:
                    if status == record.status:
                        pipe.sadd(self._status_key(status), record.user_id)
                    else:
                        pipe.srem(self._status_key(status), record.user_id)
                return await pipe.execute()

        try:
            await self.execute_with_retry(put_operation)
        except redis.WatchError as e:
            raise LedgerConflictError(f"Rebalance request for user {record.user_id} changed during write") from e
        except redis.RedisError as e:
            raise FatalStorageError(f"Failed to write rebalance request for user {record.user_id}: {e}") from e

        app_logger.log_debug(f"Stored rebalance request for user {record.user_id} ({record.status.value})")

    async def list_by_status(self, status: RequestStatus) -> List[RebalanceRequestRecord]:
        """Get all records currently in a status"""
        status_key = self._status_key(status)

        async def list_operation(client):
            user_ids = sorted(await client.smembers(status_key))
            if not user_ids:
                return []
            return await client.mget([self._request_key(user_id) for user_id in user_ids])

        try:
            raw_records = await self.execute_with_retry(list_operation)
        except redis.RedisError as e:
            raise StorageError(f"Failed to list {status.value} rebalance requests: {e}") from e

        records = []
        for data in raw_records:
            if not data:
                continue
            try:
                record = RebalanceRequestRecord.model_validate_json(data)
            except ValidationError as e:
                raise StorageError(f"Corrupt {status.value} rebalance request in store: {e}") from e
            # The set index may briefly lag the record under concurrent writers
            if record.status == status:
                records.append(record)
        return records
