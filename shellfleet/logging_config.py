"""shellfleet logging configuration.

The terminal belongs to the dashboard, so logs go to a rotating file
(default: `~/.shellfleet/logs/shellfleet.log`) instead of stderr.
The level comes from `SHELLFLEET_LOG_LEVEL` unless overridden.
"""

from __future__ import annotations

import logging
import os
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Optional

from shellfleet.constants import ENV_LOG_LEVEL
from shellfleet.paths import LOG_PATH

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"
LOG_MAX_BYTES = 5 * 1024 * 1024
LOG_BACKUP_COUNT = 3


def setup_logging(level: Optional[str] = None, log_path: Optional[Path] = None) -> None:
    """Configure shellfleet logging.

    Args:
        level: Optional override for `SHELLFLEET_LOG_LEVEL`.
        log_path: Optional override for the log file location.
    """
    if level:
        os.environ[ENV_LOG_LEVEL] = level

    resolved_level = os.getenv(ENV_LOG_LEVEL, "INFO").upper()
    path = log_path or LOG_PATH
    path.parent.mkdir(parents=True, exist_ok=True)

    handler = RotatingFileHandler(path, maxBytes=LOG_MAX_BYTES, backupCount=LOG_BACKUP_COUNT, encoding="utf-8")
    handler.setFormatter(logging.Formatter(LOG_FORMAT))

    root = logging.getLogger("shellfleet")
    root.handlers.clear()
    root.addHandler(handler)
    root.setLevel(getattr(logging, resolved_level, logging.INFO))
    root.propagate = False
