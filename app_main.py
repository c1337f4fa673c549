"""Application entry point for the quiz grading service."""

from __future__ import annotations

from quiz_grading.constants.network_constants import DEFAULT_HOST, DEFAULT_PORT
from quiz_grading.core.grading_manager import GradingManager
from quiz_grading.server.api_server import start_api_server
from quiz_grading.utils.logging_config import configure_logging


def main() -> None:
    """Initialize logging and serve the grading API until interrupted."""
    logger = configure_logging()
    logger.info("Starting quiz grading service…")

    manager = GradingManager()
    server_thread = start_api_server(manager=manager, host=DEFAULT_HOST, port=DEFAULT_PORT)
    logger.info("Grading API listening on %s:%d", DEFAULT_HOST, DEFAULT_PORT)
    try:
        server_thread.join()
    except KeyboardInterrupt:
        logger.info("Shutting down")


if __name__ == "__main__":
    main()
