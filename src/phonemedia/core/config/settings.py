"""Typed view over the loaded configuration."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from phonemedia.core.config.constants import (
    DEFAULT_VOICE,
    IMAGE_COMMAND,
    PLAYBACK_TIMEOUT_SECONDS,
    SPEECH_COMMAND,
    SPEECH_WORDS_PER_MINUTE,
)
from phonemedia.core.config.utils import (
    coerce_bool,
    coerce_positive_float,
    normalize_headers,
)

if TYPE_CHECKING:
    from collections.abc import Mapping


@dataclass(frozen=True, slots=True)
class MediaSettings:
    """Runtime settings for media processing.

    Every field has a default so the engine works without a config file.
    """

    default_voice: str = DEFAULT_VOICE
    playback_timeout_seconds: float = PLAYBACK_TIMEOUT_SECONDS
    speech_words_per_minute: float = SPEECH_WORDS_PER_MINUTE
    image_command: str = IMAGE_COMMAND
    speech_command: str = SPEECH_COMMAND
    quiet_generation: bool = True
    gallery_autosave: bool = False
    gallery_base_url: str | None = None
    gallery_headers: dict[str, str] = field(default_factory=dict)
    http_timeout: float = 30.0
    log_level: str = "INFO"

    @classmethod
    def from_config(cls, config: Mapping[str, object]) -> MediaSettings:
        """Build settings from a raw config mapping with safe fallbacks."""
        defaults = cls()

        default_voice = config.get("default_voice")
        image_command = config.get("image_command")
        speech_command = config.get("speech_command")
        gallery_base_url = config.get("gallery_base_url")
        log_level = config.get("log_level")

        return cls(
            default_voice=(
                default_voice.strip()
                if isinstance(default_voice, str) and default_voice.strip()
                else defaults.default_voice
            ),
            playback_timeout_seconds=coerce_positive_float(
                config.get("playback_timeout_seconds"),
                defaults.playback_timeout_seconds,
            ),
            speech_words_per_minute=coerce_positive_float(
                config.get("speech_words_per_minute"),
                defaults.speech_words_per_minute,
            ),
            image_command=(
                image_command.strip().lstrip("/")
                if isinstance(image_command, str) and image_command.strip()
                else defaults.image_command
            ),
            speech_command=(
                speech_command.strip().lstrip("/")
                if isinstance(speech_command, str) and speech_command.strip()
                else defaults.speech_command
            ),
            quiet_generation=coerce_bool(
                config.get("quiet_generation"),
                default=defaults.quiet_generation,
            ),
            gallery_autosave=coerce_bool(
                config.get("gallery_autosave"),
                default=defaults.gallery_autosave,
            ),
            gallery_base_url=(
                gallery_base_url.rstrip("/")
                if isinstance(gallery_base_url, str) and gallery_base_url
                else None
            ),
            gallery_headers=normalize_headers(config.get("gallery_headers")),
            http_timeout=coerce_positive_float(
                config.get("http_timeout"),
                defaults.http_timeout,
            ),
            log_level=(
                log_level.upper()
                if isinstance(log_level, str) and log_level
                else defaults.log_level
            ),
        )
