"""Process-wide logging setup."""

import logging
import os


def setup_logging(level: str | None = None) -> None:
    """Configure root logging once at startup.

    Args:
        level: Log level name (defaults to LOG_LEVEL env var or INFO)
    """
    level = level or os.getenv("LOG_LEVEL", "INFO")

    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        force=True,
    )
    # httpx logs full request URLs at INFO.
    logging.getLogger("httpx").setLevel(logging.WARNING)
