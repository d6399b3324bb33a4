"""Opt-in timing of the ingest hot path, switched on with ``DMXSCOPE_DEBUG=1``."""

from __future__ import annotations

import logging
import os
import time
from contextlib import contextmanager
from typing import Iterator

logger = logging.getLogger(__name__)

DEBUG_DMXSCOPE = os.getenv("DMXSCOPE_DEBUG", "").lower() in {"1", "true", "yes", "on"}


@contextmanager
def time_block(label: str) -> Iterator[None]:
    """Log how long the block took, at debug level, when ``DMXSCOPE_DEBUG`` is set."""
    if not DEBUG_DMXSCOPE:
        yield
        return
    start = time.perf_counter()
    try:
        yield
    finally:
        logger.debug("%s took %.3f ms", label, (time.perf_counter() - start) * 1000.0)
