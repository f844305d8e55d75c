# Copyright © 2025 Phaethon Order LLC. All rights reserved. Provided solely for evaluation. See LICENSE.

from __future__ import annotations

import logging
import os
import sys
from typing import Optional

LOGGER_NAME = "homebase"
_LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"


def setup_logger(level: Optional[str] = None) -> logging.Logger:
    """Configure the shared application logger and return it.

    Safe to call more than once; the stream handler is only attached the first time.
    """
    logger = logging.getLogger(LOGGER_NAME)
    resolved = (level or os.getenv("LOG_LEVEL") or "INFO").upper()
    logger.setLevel(getattr(logging, resolved, logging.INFO))

    if not logger.handlers:
        handler = logging.StreamHandler(sys.stdout)
        handler.setFormatter(logging.Formatter(_LOG_FORMAT))
        logger.addHandler(handler)
    return logger


def get_logger() -> logging.Logger:
    return logging.getLogger(LOGGER_NAME)
