"""Utility functions for shellfleet."""

from __future__ import annotations

import os
import re

_ENV_VAR = re.compile(r"\$\{([^}]+)\}")


def expand_env_vars(value: object) -> object:
    """Substitute ${VAR} in every string of a parsed YAML tree. Unset variables stay as written."""
    if isinstance(value, str):
        return _ENV_VAR.sub(lambda match: os.environ.get(match.group(1), match.group(0)), value)
    if isinstance(value, dict):
        return {key: expand_env_vars(item) for key, item in value.items()}
    if isinstance(value, list):
        return [expand_env_vars(item) for item in value]
    return value


def is_path_prefix(prefix: str, path: str) -> bool:
    """Whether `prefix` names `path` or one of its ancestor directories.

    Compares whole path components, so `/src/app` does not contain `/src/application`.
    """
    if not prefix or not path:
        return False
    norm_prefix = os.path.normpath(os.path.expanduser(prefix))
    norm_path = os.path.normpath(os.path.expanduser(path))
    if norm_prefix == norm_path:
        return True
    if norm_prefix == os.sep:
        return norm_path.startswith(os.sep)
    return norm_path.startswith(norm_prefix + os.sep)
