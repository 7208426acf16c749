"""
Logging setup for the Gotify notifier.
"""

from __future__ import annotations

import os
import sys
from pathlib import Path
from typing import List, Optional

from loguru import logger as _logger

_LOG_INITIALISED = False
_DEBUG_ENABLED = False
_SINK_IDS: List[int] = []
_LOG_PATH: Optional[Path] = None

LOG_DIR = Path(
    os.environ.get(
        "GOTIFY_NOTIFIER_LOG_DIR",
        str(Path.home() / ".cache" / "gotify-notifier"),
    )
)
DEFAULT_LOG_PATH = LOG_DIR / "notifier.log"


def configure(log_path: Optional[Path] = None, *, debug: bool = False) -> None:
    """
    Configure loguru for the application.

    Runs once; later calls are ignored. Use :func:`set_debug` to change the
    verbosity of an already configured logger.
    """
    global _LOG_INITIALISED, _LOG_PATH
    if _LOG_INITIALISED:
        return
    _LOG_PATH = log_path or DEFAULT_LOG_PATH
    _LOG_PATH.parent.mkdir(parents=True, exist_ok=True)
    _install_sinks(debug)
    _LOG_INITIALISED = True


def set_debug(enabled: bool) -> None:
    """Switch both sinks between INFO and DEBUG output."""
    configure()
    if enabled == _DEBUG_ENABLED:
        return
    _install_sinks(enabled)
    _logger.info("Debug logging {}.", "enabled" if enabled else "disabled")


def is_debug() -> bool:
    return _DEBUG_ENABLED


def get_logger():
    """Return the shared logger instance."""
    configure()
    return _logger


def _install_sinks(debug: bool) -> None:
    global _DEBUG_ENABLED
    level = "DEBUG" if debug else "INFO"

    # Keep console output and add a persistent file sink.
    _logger.remove()
    _SINK_IDS.clear()
    if sys.stderr is not None:
        _SINK_IDS.append(_logger.add(sys.stderr, level=level, enqueue=True))
    _SINK_IDS.append(
        _logger.add(
            _LOG_PATH,
            level=level,
            rotation="10 MB",
            retention=5,
            encoding="utf-8",
            enqueue=True,
            backtrace=True,
            diagnose=False,
        )
    )
    _DEBUG_ENABLED = debug
