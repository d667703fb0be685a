"""Entrypoint module for wiring the media extension into a host."""

from __future__ import annotations

import contextlib
import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

import httpx
import yaml

from phonemedia.commands import register_commands
from phonemedia.core.config import (
    ConfigFileEmptyError,
    ConfigFileNotFoundError,
    HttpxClientOptions,
    MediaSettings,
    get_config,
    get_or_create_httpx_client,
)
from phonemedia.core.config.constants import (
    IMAGE_TAG_NAME,
    MODULE_NAME,
    VOICE_TAG_NAME,
)
from phonemedia.events import register_event_handlers
from phonemedia.logic.pipeline import MediaProcessor
from phonemedia.services.media import (
    GalleryClient,
    ImageGenerator,
    MediaServices,
    SpeechService,
)

if TYPE_CHECKING:
    from collections.abc import Callable, Mapping

    from phonemedia.core.host import (
        AudioElement,
        ChatHost,
        CommandExecutor,
        CommandRegistry,
        EventSource,
    )

logger = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s %(levelname)s: %(message)s"


@dataclass(slots=True)
class _EntrypointState:
    http_client_holder: list[httpx.AsyncClient | None] = field(default_factory=list)
    processor: MediaProcessor | None = None


_STATE = _EntrypointState()


def load_settings(filename: str = "config.yaml") -> MediaSettings:
    """Read settings from YAML, falling back to defaults when unavailable."""
    try:
        config = get_config(filename)
    except (ConfigFileNotFoundError, ConfigFileEmptyError, yaml.YAMLError) as exc:
        logger.warning("Using default media settings: %s", exc)
        config = {}
    return MediaSettings.from_config(config)


def setup(
    host: ChatHost,
    executor: CommandExecutor,
    event_source: EventSource,
    *,
    audio: AudioElement | None = None,
    command_registry: CommandRegistry | None = None,
    settings: MediaSettings | None = None,
    headers_provider: Callable[[], Mapping[str, str]] | None = None,
) -> MediaProcessor:
    """Build the processor and its services, and hook them into the host."""
    settings = settings or load_settings()
    logging.basicConfig(level=settings.log_level, format=LOG_FORMAT)

    gallery = None
    if settings.gallery_base_url:
        client = get_or_create_httpx_client(
            _STATE.http_client_holder,
            options=HttpxClientOptions(
                timeout=settings.http_timeout,
                headers=settings.gallery_headers,
            ),
        )
        gallery = GalleryClient(
            client,
            base_url=settings.gallery_base_url,
            headers_provider=headers_provider,
        )
    else:
        logger.info("No gallery_base_url configured; save-to-gallery is disabled")

    services = MediaServices(
        images=ImageGenerator(executor, settings),
        speech=SpeechService(executor, settings),
        gallery=gallery,
        audio=audio,
    )
    processor = MediaProcessor(host, services, settings)
    register_event_handlers(event_source, processor)
    if command_registry is not None:
        register_commands(command_registry, processor)

    _STATE.processor = processor
    logger.info(
        "[%s] Extension loaded; listening for [%s] and [%s] tags",
        MODULE_NAME,
        IMAGE_TAG_NAME,
        VOICE_TAG_NAME,
    )
    return processor


async def shutdown() -> None:
    """Best-effort shutdown of long-lived resources.

    This is safe to call multiple times.
    """
    holder = _STATE.http_client_holder
    client = holder[0] if holder else None
    if client is not None and not client.is_closed:
        with contextlib.suppress(httpx.HTTPError, RuntimeError):
            await client.aclose()
    holder.clear()
    _STATE.processor = None
