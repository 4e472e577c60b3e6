"""
Signal handling for graceful shutdown.
"""

import asyncio
import signal
from typing import Awaitable, Callable, Optional
from rebalance_service.logger import AppLogger

app_logger = AppLogger(__name__)


class SignalHandler:
    """Runs a shutdown coroutine once on SIGINT or SIGTERM"""

    def __init__(self, shutdown_callback: Callable[[], Awaitable[None]]):
        self.shutdown_callback = shutdown_callback
        self.shutdown_task: Optional[asyncio.Task] = None

    def setup_signal_handlers(self):
        """Register handlers on the running event loop"""
        loop = asyncio.get_running_loop()
        for sig in (signal.SIGINT, signal.SIGTERM):
            loop.add_signal_handler(sig, self._handle_signal, sig)

    def _handle_signal(self, sig: signal.Signals):
        app_logger.log_info(f"Received {sig.name} signal, initiating graceful shutdown...")
        if self.shutdown_task is None:
            self.shutdown_task = asyncio.create_task(self.shutdown_callback())
