"""Protocols for the host chat application and its collaborators."""

from __future__ import annotations

from collections.abc import Awaitable, Callable, Iterable
from dataclasses import dataclass
from typing import TYPE_CHECKING, Protocol

if TYPE_CHECKING:
    from bs4 import Tag

    from phonemedia.core.models import ChatMessage

EventHandler = Callable[..., Awaitable[None] | None]
AudioListener = Callable[[], None]


@dataclass(slots=True)
class CommandResult:
    """Result of a host slash-command pipeline.

    ``pipe`` carries the value produced by the last command, e.g. the URL of
    a generated image.
    """

    pipe: str | None = None


class CommandExecutor(Protocol):
    """Runs host slash commands such as ``/imagine`` and ``/speak``."""

    async def execute(self, command: str) -> CommandResult | None: ...


class ChatHost(Protocol):
    """The chat application hosting the engine."""

    @property
    def character_name(self) -> str | None: ...

    def get_message(self, message_id: int) -> ChatMessage | None: ...

    def message_ids(self) -> Iterable[int]: ...

    def get_render_target(self, message_id: int) -> Tag | None:
        """Return the rendered content element of a message, if on screen."""
        ...

    async def save_chat(self) -> None: ...


class AudioElement(Protocol):
    """The host's TTS audio element; emits ``play``, ``ended`` and ``error``."""

    def add_listener(self, event: str, listener: AudioListener) -> None: ...

    def remove_listener(self, event: str, listener: AudioListener) -> None: ...


class EventSource(Protocol):
    """Host event emitter."""

    def on(self, event: str, handler: EventHandler) -> None: ...


class CommandRegistry(Protocol):
    """Registers extension slash commands with the host."""

    def register(
        self,
        name: str,
        callback: Callable[[str], Awaitable[str]],
        *,
        help_text: str = "",
    ) -> None: ...
