"""Slash commands exposed by the media extension."""

from __future__ import annotations

import logging
from functools import partial
from typing import TYPE_CHECKING

from phonemedia.core.config.constants import REPROCESS_COMMAND

if TYPE_CHECKING:
    from phonemedia.core.host import CommandRegistry
    from phonemedia.logic.pipeline import MediaProcessor

logger = logging.getLogger(__name__)

REPROCESS_HELP = (
    "Re-run media processing for one message id, or for the whole chat "
    "when no id is given."
)


class CommandUsageError(ValueError):
    """Raised when a command receives arguments it cannot parse."""


def parse_message_id(raw_args: str) -> int | None:
    """Parse the optional message id argument of the reprocess command."""
    value = raw_args.strip()
    if not value:
        return None
    try:
        message_id = int(value)
    except ValueError as exc:
        msg = f"Expected a message id, got {value!r}"
        raise CommandUsageError(msg) from exc
    if message_id < 0:
        msg = f"Message ids are never negative, got {message_id}"
        raise CommandUsageError(msg)
    return message_id


async def reprocess_command(processor: MediaProcessor, raw_args: str = "") -> str:
    """Handle ``/phone-reprocess [message_id]`` and return a status line."""
    try:
        message_id = parse_message_id(raw_args)
    except CommandUsageError as exc:
        logger.warning("Rejected /%s arguments: %s", REPROCESS_COMMAND, exc)
        return f"Usage: /{REPROCESS_COMMAND} [message_id] ({exc})"

    processed = await processor.reprocess(message_id)
    if message_id is None:
        return f"Reprocessed {processed} message(s)"
    if processed:
        return f"Reprocessed message {message_id}"
    return f"Nothing to reprocess in message {message_id}"


def register_commands(registry: CommandRegistry, processor: MediaProcessor) -> None:
    registry.register(
        REPROCESS_COMMAND,
        partial(reprocess_command, processor),
        help_text=REPROCESS_HELP,
    )
