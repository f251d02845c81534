"""
Logging setup.

Each package logs through its own named logger:

    log = logging.getLogger("bazaar.orders")
"""

from __future__ import annotations

import logging

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s %(message)s"


def configure_logging(level: str = "INFO") -> None:
    """Install the root handler once. Later calls only adjust the level."""
    logging.basicConfig(level=level.upper(), format=LOG_FORMAT)
    logging.getLogger("bazaar").setLevel(level.upper())


__all__ = ("LOG_FORMAT", "configure_logging")
