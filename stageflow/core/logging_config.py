"""Logging setup shared by the API process and the workers."""

import logging
import sys

from stageflow.core.config import settings

LOG_FORMAT = "%(asctime)s | %(levelname)s | %(name)s | %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


def configure_logging(level_name: str | None = None) -> None:
    """Install a console handler on the root logger (once)."""
    level_name = (level_name or settings.LOG_LEVEL).upper()
    level = getattr(logging, level_name, logging.INFO)

    root = logging.getLogger()
    root.setLevel(level)

    if not any(getattr(h, "_stageflow", False) for h in root.handlers):
        handler = logging.StreamHandler(sys.stdout)
        handler.setFormatter(logging.Formatter(LOG_FORMAT, DATE_FORMAT))
        handler._stageflow = True
        root.addHandler(handler)

    logging.getLogger(__name__).info("Logging initialized at %s", level_name)
