import logging

from app.core.config import settings


def configure_logging() -> None:
    """Process-wide logging; stdout only (gunicorn captures it)."""
    logging.basicConfig(
        level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )
