import logging
import sys
from typing import Optional

from taskmanagement.core.config import settings


def configure_logging(log_file: Optional[str] = None) -> None:
    """Configure root logging once for a process (API server or worker)."""
    handlers = [logging.StreamHandler(sys.stdout)]
    target = log_file if log_file is not None else settings.LOG_FILE
    if target:
        handlers.append(logging.FileHandler(target))

    logging.basicConfig(
        level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        handlers=handlers,
    )
    # kombu/amqp are chatty at INFO during reconnects
    logging.getLogger("amqp").setLevel(logging.WARNING)
