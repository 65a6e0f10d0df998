"""Settings lookup.

Storage model:
- Everything lives under `~/.config/helpforge/` (`HELPFORGE_HOME` overrides).
- `config.json` in that directory holds optional settings.
- `HELPFORGE_<KEY>` environment variables override `config.json`.
"""

from __future__ import annotations

import json
import logging
import os
from pathlib import Path
from typing import Final

DEFAULT_MAX_DEPTH: Final[int] = 4
DEFAULT_MAX_WORKERS: Final[int] = 8
DEFAULT_EXPANSION_TIMEOUT_S: Final[int] = 120
DEFAULT_CACHE_TTL_HOURS: Final[int] = 24

logger = logging.getLogger(__name__)


def helpforge_home() -> Path:
    """Return helpforge's home directory.

    Defaults to `~/.config/helpforge`, overridable via `HELPFORGE_HOME`.
    """
    raw = os.environ.get("HELPFORGE_HOME")
    if raw:
        return Path(raw).expanduser()
    return Path.home() / ".config" / "helpforge"


def cache_dir() -> Path:
    return helpforge_home() / "cache"


def output_dir() -> Path:
    return helpforge_home() / "out"


def config_path() -> Path:
    return helpforge_home() / "config.json"


def _load_config() -> dict:
    path = config_path()
    if not path.exists():
        return {}
    try:
        payload = json.loads(path.read_text())
    except (OSError, json.JSONDecodeError):
        logger.warning("Ignoring unreadable config file %s", path)
        return {}
    if isinstance(payload, dict):
        return payload
    return {}


def config_get(*, key: str) -> object | None:
    # Environment variables override config.json, e.g. `HELPFORGE_MAX_DEPTH=2`.
    env_key = f"HELPFORGE_{key.upper()}"
    env_val = os.environ.get(env_key)
    if env_val is not None and env_val.strip() != "":
        return env_val
    return _load_config().get(key)


def setting_int(*, key: str, default: int) -> int:
    cfg = config_get(key=key)
    if cfg is None or isinstance(cfg, bool):
        return default
    try:
        return int(cfg)
    except (TypeError, ValueError):
        return default


def setting_bool(*, key: str, default: bool) -> bool:
    raw = config_get(key=key)
    if raw is None:
        return default
    if isinstance(raw, bool):
        return raw
    if isinstance(raw, int):
        return raw > 0
    if isinstance(raw, str):
        value = raw.strip().lower()
        if value in {"1", "true", "yes", "on"}:
            return True
        if value in {"0", "false", "no", "off"}:
            return False
    return default


def verbose_level() -> int:
    raw = config_get(key="verbose")
    if raw is None:
        return 0
    if isinstance(raw, bool):
        return 1 if raw else 0
    if isinstance(raw, int):
        if raw <= 0:
            return 0
        return 2 if raw > 1 else 1
    if isinstance(raw, str):
        value = raw.strip().lower()
        if value in {"", "0", "false", "no", "off"}:
            return 0
        if value in {"1", "true", "yes", "on", "basic"}:
            return 1
        return 2
    return 0


def max_depth() -> int:
    return max(0, setting_int(key="max_depth", default=DEFAULT_MAX_DEPTH))


def max_workers() -> int:
    return max(1, setting_int(key="max_workers", default=DEFAULT_MAX_WORKERS))


def expansion_timeout_s() -> int:
    return max(1, setting_int(key="expansion_timeout_s", default=DEFAULT_EXPANSION_TIMEOUT_S))


def cache_ttl_hours() -> int:
    return max(0, setting_int(key="cache_ttl_hours", default=DEFAULT_CACHE_TTL_HOURS))


def skip_man() -> bool:
    return setting_bool(key="skip_man", default=False)
