import logging
import os
from tradesim.config import LOGS_DIR, LOG_LEVEL

def setup_logging():
    """Set up the root logger to output to console."""
    # Ensure the logs directory exists
    os.makedirs(LOGS_DIR, exist_ok=True)

    logging.basicConfig(
        level=getattr(logging, LOG_LEVEL.upper(), logging.INFO),
        format="%(asctime)s - %(levelname)s - %(module)s - %(message)s",
        handlers=[
            logging.StreamHandler()
        ]
    )

    logger = logging.getLogger(__name__)
    return logger

logger = setup_logging()
