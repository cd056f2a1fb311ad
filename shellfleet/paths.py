from __future__ import annotations

from pathlib import Path

STATE_DIR = (Path("~/.shellfleet")).expanduser()
CONFIG_PATH = STATE_DIR / "shellfleet.yml"
LOG_DIR = STATE_DIR / "logs"
LOG_PATH = LOG_DIR / "shellfleet.log"
