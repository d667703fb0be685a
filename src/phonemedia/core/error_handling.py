"""Centralized exception logging helpers."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Mapping

LOGGER = logging.getLogger(__name__)

# What a collaborator or handler may reasonably raise. Anything else (and
# cancellation) propagates.
COMMON_HANDLER_EXCEPTIONS = (
    AssertionError,
    AttributeError,
    LookupError,
    OSError,
    RuntimeError,
    TimeoutError,
    TypeError,
    ValueError,
)


def _format_context(context: Mapping[str, object]) -> str:
    """Render structured context as a stable key-value string."""
    return ", ".join(f"{key}={context[key]!r}" for key in sorted(context))


def log_exception(
    *,
    logger: logging.Logger,
    message: str,
    error: BaseException,
    context: Mapping[str, object] | None = None,
    level: int = logging.ERROR,
) -> None:
    """Write a structured exception log entry with its traceback."""
    if context:
        logger.log(level, "%s | %s", message, _format_context(context), exc_info=error)
    else:
        logger.log(level, "%s", message, exc_info=error)


def log_event_error(
    *,
    logger: logging.Logger | None = None,
    event_name: str,
    error: BaseException,
    args: tuple[object, ...],
) -> None:
    """Log an exception raised by a host event handler with event metadata."""
    log_exception(
        logger=logger or LOGGER,
        message="Unhandled host event error",
        error=error,
        context={"event": event_name, "args": args},
    )
