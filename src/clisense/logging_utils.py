"""Runtime logging helpers."""

from __future__ import annotations

import os
import sys
from typing import TextIO

from loguru import logger

_FORMAT = "{time:YYYY-MM-DD HH:mm:ss.SSS} | {level:<7} | {name}:{function}:{line} | {message}"
_CONFIGURED = False


def configure_logging(*, level: str | None = None, sink: TextIO | None = None) -> None:
    """Configure process-level logging once.

    The language server speaks JSON-RPC over stdout, so the default sink is
    stderr.
    """
    global _CONFIGURED
    if _CONFIGURED:
        return
    resolved = (level or os.getenv("CLISENSE_LOG_LEVEL", "INFO")).upper()
    logger.remove()
    logger.add(
        sink if sink is not None else sys.stderr,
        level=resolved,
        format=_FORMAT,
        backtrace=False,
        diagnose=False,
    )
    _CONFIGURED = True
