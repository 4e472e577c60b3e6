"""
Rebalance intake API entry point
"""
import sys
import uvicorn
from rebalance_config import load_config_from_env
from rebalance_service.core.service_container import ServiceContainer
from rebalance_service.api.app import create_app_from_container
from rebalance_service.logger import configure_root_logger


def run():
    try:
        config = load_config_from_env()
    except Exception as e:
        print(f"Failed to load configuration: {e}", file=sys.stderr)
        sys.exit(1)

    configure_root_logger(config.logging, log_file_name='rebalance-api.log')

    app = create_app_from_container(ServiceContainer())
    uvicorn.run(app, host=config.api.host, port=config.api.port, log_config=None)


if __name__ == "__main__":
    run()
