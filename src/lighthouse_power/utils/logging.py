from __future__ import annotations

import logging
import os
from typing import Literal

import coloredlogs  # type: ignore[import]

LogLevel = Literal["CRITICAL", "ERROR", "WARNING", "INFO", "DEBUG"]

LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"
DATE_FORMAT = "%H:%M:%S"

# BLE backends log every advertisement and GATT event at DEBUG
_NOISY_LOGGERS = ("bleak", "dbus_fast")


def setup_logging(level: LogLevel | None = None) -> None:
    """Install coloured console logging; ``LOGLEVEL`` applies when no level is given."""
    resolved = (level or os.environ.get("LOGLEVEL", "INFO")).upper()

    coloredlogs.install(level=resolved, fmt=LOG_FORMAT, datefmt=DATE_FORMAT)

    for name in _NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)
