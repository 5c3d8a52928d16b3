"""
The main entry point for the uigen chat service.

This script handles environment loading, logging configuration, and server execution.
"""

import logging
import os
import sys

import uvicorn
from dotenv import load_dotenv


def setup_environment() -> bool:
    """
    Loads environment variables and configures application-wide logging.
    It's expected that the correct .env file is loaded by the process runner (e.g., uv).
    """
    load_dotenv()  # Load environment variables from .env file.

    # Configure logging using a basic, straightforward setup.
    log_level = os.environ.get("LOG_LEVEL", "INFO").upper()
    logging.basicConfig(
        level=log_level,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )
    logging.info("Environment and logging configured.")
    return True


def run_server() -> None:
    """
    Sets up the environment and runs the HTTP server.
    """
    if not setup_environment():
        logging.critical("Initial environment setup failed. Exiting.")
        sys.exit(1)

    # Import server components after setup to ensure environment is loaded first.
    from .server import app
    from .utils.dependencies import get_base_config

    server_config = get_base_config()
    logger = logging.getLogger(__name__)
    logger.info("--- uigen chat service ---")
    logger.info("Server will listen on: %s:%s", server_config.HOST, server_config.PORT)

    uvicorn.run(app, host=server_config.HOST, port=server_config.PORT, log_level=server_config.LOG_LEVEL.lower())


if __name__ == "__main__":
    run_server()
