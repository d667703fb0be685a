"""Host event handlers for the media extension."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from phonemedia.core.error_handling import COMMON_HANDLER_EXCEPTIONS, log_event_error

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable, Hashable

    from phonemedia.core.host import EventSource
    from phonemedia.logic.pipeline import MediaProcessor

logger = logging.getLogger(__name__)

CHARACTER_MESSAGE_RENDERED = "character_message_rendered"
CHAT_CHANGED = "chat_changed"
MESSAGE_SWIPED = "message_swiped"


def _guarded(
    event_name: str,
    handler: Callable[..., Awaitable[object]],
) -> Callable[..., Awaitable[None]]:
    """Wrap a handler so its failures are logged instead of reaching the host."""

    async def _run(*args: object) -> None:
        try:
            await handler(*args)
        except COMMON_HANDLER_EXCEPTIONS as exc:
            log_event_error(
                logger=logger,
                event_name=event_name,
                error=exc,
                args=args,
            )

    return _run


def build_event_handlers(
    processor: MediaProcessor,
) -> dict[str, Callable[..., Awaitable[None]]]:
    """Map host event names to guarded processor callbacks."""

    async def on_message_rendered(message_id: Hashable) -> None:
        await processor.on_message_rendered(message_id)

    async def on_chat_changed(*_args: object) -> None:
        processor.on_chat_changed()

    async def on_message_swiped(message_id: Hashable) -> None:
        processor.on_message_swiped(message_id)

    return {
        CHARACTER_MESSAGE_RENDERED: _guarded(
            CHARACTER_MESSAGE_RENDERED,
            on_message_rendered,
        ),
        CHAT_CHANGED: _guarded(CHAT_CHANGED, on_chat_changed),
        MESSAGE_SWIPED: _guarded(MESSAGE_SWIPED, on_message_swiped),
    }


def register_event_handlers(
    event_source: EventSource,
    processor: MediaProcessor,
) -> dict[str, Callable[..., Awaitable[None]]]:
    handlers = build_event_handlers(processor)
    for event_name, handler in handlers.items():
        event_source.on(event_name, handler)
    logger.debug("Registered handlers for %s", ", ".join(handlers))
    return handlers
