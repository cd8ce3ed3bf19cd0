"""Main entry point for the progression engine API"""
import logging

import uvicorn

from progression.config import API_HOST, API_PORT, LOG_LEVEL

logger = logging.getLogger(__name__)


def main() -> None:
    """Run the API server"""
    logger.info(f"Starting progression engine on {API_HOST}:{API_PORT}")
    uvicorn.run(
        "progression.api.server:app",
        host=API_HOST,
        port=API_PORT,
        log_level=LOG_LEVEL.lower(),
    )


if __name__ == "__main__":
    main()
