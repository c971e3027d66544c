import logging
import os


def setup_logging():
    """Configures the root logger once, level taken from LOG_LEVEL."""
    level = os.getenv("LOG_LEVEL", "INFO").upper()
    logging.basicConfig(
        level=level,
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )
