#!/usr/bin/env python3
"""
Entry point for the cartsync proxy
"""

import logging
import sys

from dotenv import load_dotenv

# Load environment variables from .env file
load_dotenv()

import uvicorn  # noqa: E402

from cartsync.api import create_app  # noqa: E402
from cartsync.infrastructure.configuration import get_config  # noqa: E402
from cartsync.infrastructure.container import DependencyContainer  # noqa: E402
from cartsync.infrastructure.logging import LoggingConfigOptions, setup_logging  # noqa: E402


def main():
    """Main entry point"""
    config = get_config()
    setup_logging(LoggingConfigOptions(log_level=config.log_level, log_dir=config.log_dir))
    logger = logging.getLogger(__name__)
    logger.info(
        "🚀 Starting cartsync proxy (%s) against %s", config.environment, config.store_api_url
    )

    container = DependencyContainer(config)
    app = create_app(container)

    try:
        uvicorn.run(app, host=config.api_host, port=config.api_port, log_level="info")
    except KeyboardInterrupt:
        logger.info("Proxy stopped by user")
    return 0


if __name__ == "__main__":
    sys.exit(main())
