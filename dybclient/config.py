"""
Client configuration: defaults, optional YAML file, environment overrides.
"""

from __future__ import annotations

import os
from dataclasses import asdict, dataclass, fields, replace
from pathlib import Path
from typing import Any, Dict, Mapping, Optional, Union

import yaml

from dybproto.log import get_logger

logger = get_logger(__name__)

DEFAULT_HOST = "localhost"
DEFAULT_PORT = 2612
DEFAULT_RECONNECT_DELAY_SECONDS = 5.0
DEFAULT_GROUP_ID = 1


class ConfigError(Exception):
    """Raised when a config file or environment value cannot be used."""


@dataclass
class ClientConfig:
    host: str = DEFAULT_HOST
    port: int = DEFAULT_PORT
    auto_reconnect: bool = True
    reconnect_delay: float = DEFAULT_RECONNECT_DELAY_SECONDS
    group_id: Union[int, str] = DEFAULT_GROUP_ID
    user_id: Optional[str] = None
    active: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    def with_overrides(self, **overrides: Any) -> 'ClientConfig':
        """Copy with the given fields replaced; None values are skipped."""
        return replace(self, **{k: v for k, v in overrides.items() if v is not None})


_FIELD_NAMES = {f.name for f in fields(ClientConfig)}

# env var -> (field, parser)
_ENV_OVERRIDES = {
    "GAME_HOST": ("host", str),
    "GAME_PORT": ("port", int),
    "DYB_USER_ID": ("user_id", str),
    "DYB_GROUP_ID": ("group_id", str),
    "DYB_RECONNECT_DELAY": ("reconnect_delay", float),
    "DYB_AUTO_RECONNECT": ("auto_reconnect", None),
}


def _parse_bool(raw: str) -> bool:
    lowered = raw.strip().lower()
    if lowered in {"1", "true", "yes", "on"}:
        return True
    if lowered in {"0", "false", "no", "off"}:
        return False
    raise ValueError(f"not a boolean: {raw!r}")


def _read_yaml(path: Path) -> Dict[str, Any]:
    try:
        with open(path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
    except yaml.YAMLError as e:
        raise ConfigError(f"Error reading {path}: {e}") from e
    if not isinstance(data, dict):
        raise ConfigError(f"{path} must contain a mapping, got {type(data).__name__}")

    known = {}
    for key, value in data.items():
        if key in _FIELD_NAMES:
            known[key] = value
        else:
            logger.warning("Ignoring unknown config key %r in %s", key, path)
    return known


def load_config(path: Optional[Union[str, Path]] = None,
                env: Optional[Mapping[str, str]] = None) -> ClientConfig:
    """Build a ClientConfig from defaults, a YAML file, then environment.

    ``path`` falls back to $DYB_CONFIG. A missing file is not an error.
    """
    env = os.environ if env is None else env
    config = ClientConfig()

    path = path or env.get("DYB_CONFIG")
    if path:
        config_path = Path(path).expanduser()
        if config_path.exists():
            config = replace(config, **_read_yaml(config_path))
            logger.debug("Loaded config from %s", config_path)
        else:
            logger.info("No config file at %s; using defaults", config_path)

    overrides: Dict[str, Any] = {}
    for var, (field_name, parser) in _ENV_OVERRIDES.items():
        raw = env.get(var)
        if raw is None or raw == "":
            continue
        try:
            overrides[field_name] = _parse_bool(raw) if parser is None else parser(raw)
        except ValueError as e:
            raise ConfigError(f"Invalid value for {var}: {e}") from e

    return replace(config, **overrides)
