"""Main entry point for the Roydad Yar reminder service."""

import logging
import sys

import uvicorn

from roydadyar.api.app import create_app
from roydadyar.config import Config

# Configure logging
logging.basicConfig(
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    level=getattr(logging, Config.LOG_LEVEL.upper(), logging.INFO),
    stream=sys.stdout,
)

logger = logging.getLogger(__name__)


def main() -> None:
    """Start the API server and the reminder scheduler."""
    # Validate configuration
    try:
        Config.validate()
    except ValueError as e:
        logger.error(f"Configuration error: {e}")
        sys.exit(1)

    app = create_app()

    logger.info(f"Starting Roydad Yar on {Config.HOST}:{Config.PORT}...")
    uvicorn.run(app, host=Config.HOST, port=Config.PORT, log_config=None)


if __name__ == "__main__":
    main()
