"""YAML config loading for shellfleet.yml."""

import logging
from pathlib import Path
from typing import Any, Iterator, Optional, Tuple

import yaml
from pydantic import BaseModel

from shellfleet.config.schema import GlobalConfig
from shellfleet.paths import CONFIG_PATH
from shellfleet.utils import expand_env_vars

logger = logging.getLogger(__name__)


def _read_yaml(path: Path) -> Optional[dict[str, Any]]:
    """Parsed mapping, {} for an empty file, or None when the file cannot be used."""
    try:
        data = yaml.safe_load(path.read_text(encoding="utf-8"))
    except (OSError, yaml.YAMLError) as e:
        logger.warning("Ignoring config %s, using defaults: %s", path, e)
        return None
    if data is None:
        return {}
    if not isinstance(data, dict):
        logger.warning("Ignoring config %s, using defaults: top level must be a mapping", path)
        return None
    return data


def _extra_keys(model: BaseModel, location: str = "root") -> Iterator[Tuple[str, list[str]]]:
    """Yield (location, keys) for every nested model carrying keys the schema does not know."""
    if model.model_extra:
        yield location, sorted(model.model_extra)
    for name in type(model).model_fields:
        value = getattr(model, name)
        children = value if isinstance(value, list) else [value]
        for index, child in enumerate(children):
            if isinstance(child, BaseModel):
                suffix = f"[{index}]" if isinstance(value, list) else ""
                yield from _extra_keys(child, f"{location}.{name}{suffix}")


def load_global_config(path: Optional[Path] = None) -> GlobalConfig:
    """Load and validate shellfleet.yml.

    A missing or unreadable file yields the defaults. Invalid values raise
    `pydantic.ValidationError`; unknown keys are only warned about.
    """
    path = path or CONFIG_PATH
    if not path.exists():
        logger.debug("No config at %s, using defaults", path)
        return GlobalConfig()

    raw = _read_yaml(path)
    if raw is None:
        return GlobalConfig()

    config = GlobalConfig.model_validate(expand_env_vars(raw))
    for location, keys in _extra_keys(config):
        logger.warning("Unknown keys in %s at %s: %s", path, location, keys)
    return config
