"""
Application service for managing the consumer lifecycle.
"""

from typing import Optional
from rebalance_service.core.service_container import ServiceContainer
from rebalance_service.core.signal_handler import SignalHandler
from rebalance_service.logger import AppLogger

app_logger = AppLogger(__name__)


class ApplicationService:
    """Service for managing application lifecycle and orchestration"""

    def __init__(self, service_container: Optional[ServiceContainer] = None):
        self.service_container = service_container or ServiceContainer()
        self.event_processor = None
        self.signal_handler = SignalHandler(self.stop)
        self.running = False

    async def start(self):
        """Start the consumer and block until it stops"""
        app_logger.log_info("Starting application services...")

        try:
            self.signal_handler.setup_signal_handlers()

            queue_service = self.service_container.redis_queue_service()
            if not await queue_service.ping():
                raise ConnectionError("Redis is not reachable")

            self.event_processor = self.service_container.event_processor()
            self.running = True
            app_logger.log_info("Application services started successfully")

        except Exception as e:
            app_logger.log_error(f"Failed to start application services: {e}")
            raise

        try:
            await self.event_processor.start_processing()
        finally:
            await self.service_container.redis_client().aclose()
            app_logger.log_info("Redis connection closed")

    async def stop(self):
        """Stop the application services"""
        if not self.running:
            return

        self.running = False

        if self.event_processor:
            await self.event_processor.stop_processing()

        app_logger.log_info("Application services stopped successfully")

    def is_running(self) -> bool:
        """Check if application is running"""
        return self.running
