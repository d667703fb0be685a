"""Configuration loading and constants for phonemedia.

This package exposes the split configuration modules as a single interface.
"""

from phonemedia.core.config.http import (
    DEFAULT_HEADERS,
    DEFAULT_USER_AGENT,
    HttpxClientOptions,
    get_or_create_httpx_client,
)
from phonemedia.core.config.manager import (
    CONFIG_CACHE_TTL,
    ConfigFileEmptyError,
    ConfigFileNotFoundError,
    clear_config_cache,
    get_config,
)
from phonemedia.core.config.settings import MediaSettings

__all__ = [
    "CONFIG_CACHE_TTL",
    "DEFAULT_HEADERS",
    "DEFAULT_USER_AGENT",
    "ConfigFileEmptyError",
    "ConfigFileNotFoundError",
    "HttpxClientOptions",
    "MediaSettings",
    "clear_config_cache",
    "get_config",
    "get_or_create_httpx_client",
]
