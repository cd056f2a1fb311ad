"""Configuration management.

`.env` is loaded at import time; the YAML config is loaded lazily via:
    from shellfleet.config import get_config
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

from shellfleet.config.loader import load_global_config
from shellfleet.config.schema import (
    AgentConfig,
    DashboardConfig,
    GlobalConfig,
    ModeConfig,
    TmuxConfig,
    TrafficConfig,
)
from shellfleet.constants import ENV_CONFIG_PATH, ENV_DOTENV_PATH

_project_root = Path(__file__).resolve().parent.parent.parent

# Load .env (allow override for tests)
_env_path = os.getenv(ENV_DOTENV_PATH)
_dotenv_path = Path(_env_path).expanduser() if _env_path else _project_root / ".env"
load_dotenv(_dotenv_path)

_config: Optional[GlobalConfig] = None


def get_config(path: Optional[Path] = None, *, reload: bool = False) -> GlobalConfig:
    """Return the process-wide config, loading it on first use.

    Args:
        path: Explicit config path; defaults to `SHELLFLEET_CONFIG` or ~/.shellfleet/shellfleet.yml.
        reload: Force re-reading the file.
    """
    global _config
    if _config is None or reload or path is not None:
        if path is None:
            env_path = os.getenv(ENV_CONFIG_PATH)
            path = Path(env_path).expanduser() if env_path else None
        _config = load_global_config(path)
    return _config


__all__ = [
    "AgentConfig",
    "DashboardConfig",
    "GlobalConfig",
    "ModeConfig",
    "TmuxConfig",
    "TrafficConfig",
    "get_config",
]
