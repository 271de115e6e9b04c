"""Layered relay configuration.

Precedence, highest first: ``RELAY_<FIELD>`` environment variables, the TOML
file named by ``RELAY_CONFIG_FILE`` (default ``configs/relay.toml``), then the
dataclass defaults. ``OPENAI_API_KEY`` and ``OPENAI_BASE_URL`` only fill in a
credential or endpoint nothing else provided.
"""

from __future__ import annotations

import logging
import os
import tomllib
from dataclasses import asdict, fields
from pathlib import Path
from typing import Any, Callable, Dict, Mapping

from .config import RelayConfig

logger = logging.getLogger(__name__)

CONFIG_FILE_ENV = "RELAY_CONFIG_FILE"
ENV_PREFIX = "RELAY_"
DEFAULT_CONFIG_PATH = Path("configs/relay.toml")

# TOML section -> RelayConfig fields it may set.
_SECTION_MAP: Dict[str, tuple[str, ...]] = {
    "server": (
        "host",
        "port",
        "mount_prefix",
        "enable_metrics",
        "log_path",
        "max_log_bytes",
    ),
    "upstream": (
        "default_base_url",
        "default_api_key",
        "default_temperature",
        "upstream_timeout_ms",
    ),
    "stream": ("keep_partial_tail",),
}

_TRUTHY = {"1", "true", "yes", "on"}


def _as_bool(value: Any) -> bool:
    if isinstance(value, str):
        return value.strip().lower() in _TRUTHY
    return bool(value)


def _as_int(value: Any) -> int:
    # float() first so "8100.0" and 8100.0 both land on 8100.
    if isinstance(value, int) and not isinstance(value, bool):
        return value
    return int(float(value))


def _as_optional_str(value: Any) -> str | None:
    return None if value in ("", None) else str(value)


# Keyed by the (string) annotations on RelayConfig.
_CASTERS: Dict[str, Callable[[Any], Any]] = {
    "bool": _as_bool,
    "int": _as_int,
    "float": float,
    "str": lambda value: "" if value is None else str(value),
    "Optional[str]": _as_optional_str,
}


def _settable_fields() -> Dict[str, str]:
    return {f.name: str(f.type) for f in fields(RelayConfig) if f.name != "config_file_path"}


def _merge(target: Dict[str, Any], values: Mapping[str, Any], origin: str) -> None:
    """Coerce ``values`` onto ``target``; unparsable entries keep the old value."""
    types = _settable_fields()
    for key, raw in values.items():
        caster = _CASTERS.get(types.get(key, ""))
        if caster is None:
            continue
        try:
            target[key] = caster(raw)
        except (TypeError, ValueError):
            logger.warning("[config] Ignoring %s value %s=%r", origin, key, raw)


def _read_config_file(path: Path) -> Dict[str, Any]:
    if not path.exists():
        return {}
    try:
        with path.open("rb") as fh:
            data = tomllib.load(fh)
    except (OSError, tomllib.TOMLDecodeError) as exc:
        logger.warning("[config] Ignoring unreadable config file %s: %s", path, exc)
        return {}
    flat: Dict[str, Any] = {}
    for section, keys in _SECTION_MAP.items():
        table = data.get(section)
        if isinstance(table, dict):
            flat.update({k: table[k] for k in keys if k in table})
    return flat


def _env_values(env: Mapping[str, str]) -> Dict[str, str]:
    return {
        name: env[ENV_PREFIX + name.upper()]
        for name in _settable_fields()
        if ENV_PREFIX + name.upper() in env
    }


def _apply_openai_fallbacks(values: Dict[str, Any], env: Mapping[str, str]) -> None:
    if values["default_base_url"] == RelayConfig.default_base_url and env.get(
        "OPENAI_BASE_URL"
    ):
        values["default_base_url"] = env["OPENAI_BASE_URL"]
    if not values["default_api_key"] and env.get("OPENAI_API_KEY"):
        values["default_api_key"] = env["OPENAI_API_KEY"]


def _normalize_prefix(prefix: str) -> str:
    prefix = "/" + prefix.strip().strip("/")
    return prefix if prefix != "/" else RelayConfig.mount_prefix


def config_path() -> Path:
    return Path(os.environ.get(CONFIG_FILE_ENV, DEFAULT_CONFIG_PATH)).expanduser()


def load_relay_config() -> RelayConfig:
    path = config_path()
    values = asdict(RelayConfig())
    values.pop("config_file_path")
    _merge(values, _read_config_file(path), f"file {path}")
    _merge(values, _env_values(os.environ), "environment")
    _apply_openai_fallbacks(values, os.environ)
    values["mount_prefix"] = _normalize_prefix(values["mount_prefix"])
    return RelayConfig(**values, config_file_path=str(path))


def list_env_overrides() -> Dict[str, str]:
    """Return RELAY_* variables currently set, with credentials masked."""
    return {
        key: ("***" if "API_KEY" in key else value)
        for key, value in os.environ.items()
        if key.startswith(ENV_PREFIX)
    }
