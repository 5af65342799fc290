"""Central logging setup for the blockflow CLI."""

from __future__ import annotations

import logging
import sys

LOG_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


def configure_logging(level: int | str = logging.WARNING) -> logging.Logger:
    """
    Install a stderr handler on the ``blockflow`` logger.

    Library modules only call ``logging.getLogger(__name__)``; handlers are
    attached here so that embedding applications keep control of output.
    Calling this twice does not duplicate handlers.
    """
    logger = logging.getLogger("blockflow")
    logger.setLevel(level)

    if not any(getattr(h, "_blockflow_handler", False) for h in logger.handlers):
        handler = logging.StreamHandler(sys.stderr)
        handler.setFormatter(logging.Formatter(LOG_FORMAT, datefmt=DATE_FORMAT))
        handler._blockflow_handler = True  # type: ignore[attr-defined]
        logger.addHandler(handler)

    return logger
