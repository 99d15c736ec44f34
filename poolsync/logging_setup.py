"""Logging configuration for the reconciler process."""
from __future__ import annotations

import logging

from .settings import Settings

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s - %(message)s"


def setup_logging(cfg: Settings) -> None:
    """Configure root logging from LOG_LEVEL; CLC_REG_DEBUG turns on poolsync debug output."""
    logging.basicConfig(level=cfg.log_level, format=LOG_FORMAT)
    if cfg.debug:
        logging.getLogger("poolsync").setLevel(logging.DEBUG)
