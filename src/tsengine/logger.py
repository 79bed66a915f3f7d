"""Logging setup for the engine.

Modules log through loguru's global ``logger``; this only decides where the
records go and at which level.
"""

from __future__ import annotations

import sys
from typing import Any

from loguru import logger

LOG_FORMAT = "{time:YYYY-MM-DD HH:mm:ss} | {level} | {thread.name} | {message}"


def setup_logging(level: str = "INFO", sink: Any = None) -> int:
    """Replace loguru's sinks with a single one at ``level``.

    :param level: Minimum level to emit.
    :param sink: Any loguru sink; stderr when None.
    :returns: Handler id of the new sink.
    """
    logger.remove()
    return logger.add(
        sink if sink is not None else sys.stderr,
        level=level.upper(),
        format=LOG_FORMAT,
        backtrace=True,
        diagnose=False,
    )


__all__ = ["LOG_FORMAT", "setup_logging"]
