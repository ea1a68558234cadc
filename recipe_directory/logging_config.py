"""Logging setup for the recipe directory service.

``setup_logging`` configures the root logger with a single console handler.
It is safe to call more than once; later calls leave existing handlers alone.
"""

import logging
from typing import Optional

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"


def setup_logging(level: Optional[str] = None) -> None:
    """Configure the root logger at ``level`` (a level name such as ``"INFO"``)."""

    root = logging.getLogger()
    if root.handlers:
        return

    root.setLevel(getattr(logging, (level or "INFO").upper(), logging.INFO))

    handler = logging.StreamHandler()
    handler.setFormatter(logging.Formatter(fmt=LOG_FORMAT, datefmt="%Y-%m-%dT%H:%M:%S"))
    root.addHandler(handler)

    # Quieten the Google client libraries.
    logging.getLogger("google").setLevel(logging.WARNING)


__all__ = ["setup_logging"]
