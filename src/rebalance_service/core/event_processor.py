"""
Event processor consuming rebalance events from the Redis queue.
"""

import asyncio
from typing import Optional, Set
from rebalance_config import ProcessingConfig
from rebalance_engine import (
    FailureReason,
    OutcomeStatus,
    ProcessingOutcome,
    RebalanceIntakePipeline,
)
from rebalance_service.context import set_current_event, clear_current_event
from rebalance_service.logger import AppLogger
from rebalance_service.services.redis_queue_service import QueuedEvent, RedisQueueService

app_logger = AppLogger(__name__)


class EventProcessor:
    """Main event processing loop with bounded concurrency"""

    def __init__(self, queue_service: RedisQueueService, pipeline: RebalanceIntakePipeline,
                 processing_config: Optional[ProcessingConfig] = None,
                 shutdown_event: Optional[asyncio.Event] = None):
        self.queue_service = queue_service
        self.pipeline = pipeline
        self.processing_config = processing_config or ProcessingConfig()
        self.shutdown_event = shutdown_event or asyncio.Event()
        self.running = False
        self.processing_tasks: Set[asyncio.Task] = set()
        self.semaphore = None

    async def start_processing(self):
        """Start the event processing loop"""
        app_logger.log_info("Starting event processing loop...")

        self.running = True
        max_concurrent = self.processing_config.max_concurrent_events
        self.semaphore = asyncio.Semaphore(max_concurrent)
        app_logger.log_info(f"Event processing loop started with max {max_concurrent} concurrent events")

        recovered_count = await self.queue_service.recover_stuck_events()
        if recovered_count > 0:
            app_logger.log_info(f"Startup recovery completed: {recovered_count} events requeued")

        await self._main_loop()

    async def stop_processing(self):
        """Stop the event processing loop and let in-flight events wind down"""
        if not self.running:
            return

        app_logger.log_info("Stopping event processing loop...")
        self.running = False

        # In-flight retry loops observe this and give up instead of writing late
        self.shutdown_event.set()

        if self.processing_tasks:
            app_logger.log_info(f"Waiting for {len(self.processing_tasks)} in-flight events")
            await asyncio.gather(*self.processing_tasks, return_exceptions=True)

        app_logger.log_info("Event processing loop stopped")

    async def _main_loop(self):
        """Main event processing loop with concurrent processing"""
        while self.running:
            try:
                # Clean up completed tasks
                completed_tasks = {task for task in self.processing_tasks if task.done()}
                if completed_tasks:
                    task_names = [task.get_name() for task in completed_tasks]
                    app_logger.log_debug(f"Cleaning up {len(completed_tasks)} completed tasks for users: {task_names}")
                self.processing_tasks -= completed_tasks

                if len(self.processing_tasks) < self.processing_config.max_concurrent_events:
                    queued = await self.queue_service.dequeue_event(self.processing_config.queue_timeout_seconds)

                    if queued and not self.running:
                        # Stopped while blocked on the queue; startup recovery requeues it
                        app_logger.log_info(f"Shutdown in progress, leaving event {queued.event.event_id} for recovery", queued.event)
                        break

                    if queued:
                        app_logger.log_debug(f"Starting concurrent processing for event: {queued.event.event_id}", queued.event)
                        # Task named by user for shutdown and error logs
                        task = asyncio.create_task(
                            self._process_event_with_semaphore(queued),
                            name=queued.event.user_id
                        )
                        self.processing_tasks.add(task)
                else:
                    # At max capacity, wait a bit before checking again
                    await asyncio.sleep(self.processing_config.idle_sleep_seconds)

            except asyncio.CancelledError:
                raise
            except Exception as e:
                active_task_names = [task.get_name() for task in self.processing_tasks if not task.done()]
                app_logger.log_error(f"Error in main loop: {e}. Active tasks for users: {active_task_names}")
                await asyncio.sleep(self.processing_config.error_recovery_delay_seconds)

    async def process_event(self, queued: QueuedEvent) -> ProcessingOutcome:
        """Process a single event and acknowledge it"""
        event = queued.event
        set_current_event(event)

        try:
            outcome = await self.pipeline.process(event)
        except Exception as e:
            app_logger.logger.exception(f"Error processing event {event.event_id}: {e}")
            outcome = ProcessingOutcome.failed(FailureReason.UNEXPECTED_ERROR, str(e))

        try:
            self._log_outcome(outcome)
            if outcome.redeliverable:
                app_logger.log_info(f"Event {event.event_id} left unacknowledged for recovery on restart")
            else:
                # Failed events are not redelivered: the ledger already marks them
                await self.queue_service.ack_event(queued.raw)
        except Exception as e:
            app_logger.log_error(f"Failed to acknowledge event {event.event_id}: {e}")
        finally:
            clear_current_event()

        return outcome

    def _log_outcome(self, outcome: ProcessingOutcome):
        if outcome.status == OutcomeStatus.APPLIED:
            app_logger.log_info(f"Rebalance applied with {outcome.transaction_count} transactions")
        elif outcome.status == OutcomeStatus.SKIPPED:
            app_logger.log_info(f"Rebalance skipped: {outcome.reason}")
        elif outcome.redeliverable:
            app_logger.log_warning("Rebalance not started before shutdown")
        elif outcome.reason in (FailureReason.STORAGE_EXHAUSTED, FailureReason.STORAGE_FATAL, FailureReason.CANCELLED):
            app_logger.log_critical(
                f"Rebalance failed after the ledger advanced ({outcome.reason}): {outcome.error}. "
                f"Transactions were not saved - manual reconciliation required"
            )
        else:
            app_logger.log_error(f"Rebalance failed ({outcome.reason}): {outcome.error}")

    async def _process_event_with_semaphore(self, queued: QueuedEvent):
        """Process event with semaphore to limit concurrency"""
        async with self.semaphore:
            app_logger.log_debug(f"Acquired semaphore for event: {queued.event.event_id}", queued.event)
            try:
                await self.process_event(queued)
            finally:
                app_logger.log_debug(f"Released semaphore for event: {queued.event.event_id}", queued.event)
