"""
Redis Queue Service
Handles all queue-related Redis operations
"""
import redis.asyncio as redis
from dataclasses import dataclass
from typing import Dict, Optional
from pydantic import ValidationError
from rebalance_engine import RebalanceEvent
from rebalance_service.services.base_redis_service import BaseRedisService
from rebalance_service.logger import AppLogger

app_logger = AppLogger(__name__)

QUEUE_KEY = "rebalance_queue"
PROCESSING_KEY = "rebalance_processing"


@dataclass
class QueuedEvent:
    """Event taken from the queue together with its raw payload for acknowledgement"""
    raw: str
    event: RebalanceEvent


class RedisQueueService(BaseRedisService):
    """
    At-least-once queue on Redis lists

    Dequeued payloads are moved to a processing list and only dropped from it
    once acknowledged, so events in flight during a crash are redelivered.
    """

    async def enqueue_event(self, event: RebalanceEvent) -> None:
        """Publish a rebalance event"""
        payload = event.model_dump_json()

        async def enqueue_operation(client):
            return await client.lpush(QUEUE_KEY, payload)

        await self.execute_with_retry(enqueue_operation)
        app_logger.log_debug(f"Queued rebalance event {event.event_id} for user {event.user_id}")

    async def dequeue_event(self, timeout: int = 5) -> Optional[QueuedEvent]:
        """
        Get next event from queue with timeout

        Returns:
            QueuedEvent if available, None on timeout or malformed payload
        """
        try:
            # Timeout is expected behavior when no events are available
            # Don't use retry logic for this operation
            client = await self._get_client()
            raw = await client.blmove(QUEUE_KEY, PROCESSING_KEY, timeout, "RIGHT", "LEFT")
        except redis.TimeoutError:
            return None

        if raw is None:
            return None

        app_logger.log_debug(f"Received message: {raw}")

        try:
            event = RebalanceEvent.model_validate_json(raw)
        except ValidationError as e:
            app_logger.log_error(f"Invalid rebalance message, skipping: {e}")
            await self.ack_event(raw)
            return None

        return QueuedEvent(raw=raw, event=event)

    async def ack_event(self, raw: str) -> None:
        """Remove a processed payload from the processing list"""
        async def ack_operation(client):
            return await client.lrem(PROCESSING_KEY, 1, raw)

        await self.execute_with_retry(ack_operation)

    async def recover_stuck_events(self) -> int:
        """
        Requeue events left in the processing list by a previous run

        Returns:
            Number of events recovered
        """
        async def recover_operation(client):
            recovered = 0
            # Newest first onto the consuming end, so the oldest runs first
            while await client.lmove(PROCESSING_KEY, QUEUE_KEY, "LEFT", "RIGHT") is not None:
                recovered += 1
            return recovered

        recovered_count = await self.execute_with_retry(recover_operation)
        if recovered_count:
            app_logger.log_info(f"Recovered {recovered_count} events left in processing")
        return recovered_count

    async def get_queue_stats(self) -> Dict[str, int]:
        """Get queue statistics"""
        async def get_stats(client):
            return {
                'main_queue': await client.llen(QUEUE_KEY),
                'processing': await client.llen(PROCESSING_KEY)
            }

        return await self.execute_with_retry(get_stats)
