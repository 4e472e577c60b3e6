"""
Rebalance consumer entry point

Consumes rebalance events from the Redis queue and persists the resulting
transactions through the idempotent intake pipeline.
"""
import asyncio
import logging
import sys
from rebalance_config import load_config_from_env
from rebalance_service.logger import configure_root_logger

logger = logging.getLogger(__name__)


async def main():
    """Main entry point"""
    from rebalance_service.core.application_service import ApplicationService

    app = ApplicationService()
    try:
        await app.start()
    except Exception as e:
        logger.exception(f"Unhandled exception in main: {e}")
        await app.stop()
        raise


def run():
    try:
        config = load_config_from_env()
    except Exception as e:
        print(f"Failed to load configuration: {e}", file=sys.stderr)
        sys.exit(1)

    configure_root_logger(config.logging, log_file_name='rebalance-consumer.log')

    try:
        asyncio.run(main())
    except KeyboardInterrupt:
        logger.info("Application terminated by user")
    except Exception as e:
        logger.error(f"Application failed: {e}")
        sys.exit(1)


if __name__ == "__main__":
    run()
