"""
Toast notifications.

Services report the outcome of user-initiated actions through a ``Toaster``
callable. The Kivy app passes one that pops a toast on screen; everywhere
else the default just logs.
"""

import logging
from enum import Enum
from typing import Callable

logger = logging.getLogger(__name__)


class ToastLevel(Enum):
    SUCCESS = "success"
    ERROR = "error"
    INFO = "info"


Toaster = Callable[[ToastLevel, str], None]


def log_toast(level: ToastLevel, message: str) -> None:
    """Default toaster: write the toast to the log."""
    if level is ToastLevel.ERROR:
        logger.warning(f"[toast] {message}")
    else:
        logger.info(f"[toast] {message}")
