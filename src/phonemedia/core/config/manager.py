"""Loading and caching of the extension's YAML config."""

import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

SECRETS_DIR = Path("/etc/secrets")
CONFIG_CACHE_TTL = 5  # Seconds between mtime checks


class ConfigFileNotFoundError(FileNotFoundError):
    """Raised when a configuration file cannot be found."""

    def __init__(self, filename: str) -> None:
        """Initialize the error with the missing filename."""
        self.filename = filename
        super().__init__(filename)

    def __str__(self) -> str:
        """Return a readable error message."""
        return (
            f"Config file '{self.filename}' not found in current directory or "
            f"{SECRETS_DIR}/"
        )


class ConfigFileEmptyError(ValueError):
    """Raised when a configuration file is empty or not a mapping."""

    def __init__(self, path: Path) -> None:
        """Initialize the error with the invalid config path."""
        self.path = path
        super().__init__(path)

    def __str__(self) -> str:
        """Return a readable error message."""
        return f"Config file is empty or not a mapping: {self.path}"


@dataclass(slots=True)
class _CachedConfig:
    data: dict[str, Any]
    mtime: float
    checked_at: float


@dataclass(slots=True)
class _ConfigCacheState:
    entries: dict[str, _CachedConfig] = field(default_factory=dict)


_CONFIG_STATE = _ConfigCacheState()


def _resolve_config_path(filename: str) -> Path:
    for candidate in (Path(filename), SECRETS_DIR / filename):
        if candidate.exists():
            return candidate
    raise ConfigFileNotFoundError(filename)


def _load_yaml(path: Path) -> dict[str, Any]:
    with path.open(encoding="utf-8") as file:
        loaded = yaml.safe_load(file)
    if not isinstance(loaded, dict):
        raise ConfigFileEmptyError(path)
    return loaded


def get_config(filename: str = "config.yaml") -> dict[str, Any]:
    """Load ``filename`` as YAML, reusing the cached copy while it is unchanged.

    The file's mtime is looked at no more than once every
    ``CONFIG_CACHE_TTL`` seconds.
    """
    now = time.time()
    cached = _CONFIG_STATE.entries.get(filename)
    if cached is not None and now - cached.checked_at <= CONFIG_CACHE_TTL:
        return cached.data

    path = _resolve_config_path(filename)
    mtime = path.stat().st_mtime
    if cached is not None and cached.mtime == mtime:
        cached.checked_at = now
        return cached.data

    data = _load_yaml(path)
    _CONFIG_STATE.entries[filename] = _CachedConfig(data, mtime, now)
    return data


def clear_config_cache() -> None:
    """Forget cached configs so the next ``get_config()`` reads from disk."""
    _CONFIG_STATE.entries.clear()
