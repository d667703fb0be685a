from __future__ import annotations

from collections import defaultdict
from collections.abc import Awaitable, Callable, Iterable
from dataclasses import dataclass, field
from typing import Any

from bs4 import BeautifulSoup, Tag

from phonemedia.core.host import CommandResult
from phonemedia.core.models import ChatMessage


def render(markup: str) -> Tag:
    """Parse ``markup`` into a ``.mes_text``-style container and return it."""
    soup = BeautifulSoup(f'<div class="mes_text">{markup}</div>', "html.parser")
    root = soup.find("div", class_="mes_text")
    assert isinstance(root, Tag)
    return root


@dataclass(slots=True)
class FakeHost:
    messages: dict[int, ChatMessage] = field(default_factory=dict)
    targets: dict[int, Tag] = field(default_factory=dict)
    character: str | None = "Alice"
    save_calls: int = 0
    fail_saves: bool = False

    @property
    def character_name(self) -> str | None:
        return self.character

    def add(self, message_id: int, message: ChatMessage, markup: str | None) -> None:
        self.messages[message_id] = message
        if markup is not None:
            self.targets[message_id] = render(markup)

    def get_message(self, message_id: int) -> ChatMessage | None:
        return self.messages.get(message_id)

    def message_ids(self) -> Iterable[int]:
        return list(self.messages)

    def get_render_target(self, message_id: int) -> Tag | None:
        return self.targets.get(message_id)

    async def save_chat(self) -> None:
        self.save_calls += 1
        if self.fail_saves:
            msg = "disk full"
            raise OSError(msg)


@dataclass(slots=True)
class FakeExecutor:
    """Records slash commands; image commands answer with queued URLs."""

    urls: list[str | None] = field(default_factory=list)
    commands: list[str] = field(default_factory=list)
    error: BaseException | None = None
    on_execute: Callable[[str], Awaitable[None]] | None = None

    async def execute(self, command: str) -> CommandResult | None:
        self.commands.append(command)
        if self.on_execute is not None:
            await self.on_execute(command)
        if self.error is not None:
            raise self.error
        if command.startswith("/imagine"):
            url = self.urls.pop(0) if self.urls else None
            return CommandResult(pipe=url)
        return CommandResult()


class FakeAudio:
    def __init__(self) -> None:
        self.listeners: dict[str, list[Callable[[], None]]] = defaultdict(list)

    def add_listener(self, event: str, listener: Callable[[], None]) -> None:
        self.listeners[event].append(listener)

    def remove_listener(self, event: str, listener: Callable[[], None]) -> None:
        if listener in self.listeners[event]:
            self.listeners[event].remove(listener)

    def emit(self, event: str) -> None:
        for listener in list(self.listeners[event]):
            listener()

    @property
    def listener_count(self) -> int:
        return sum(len(listeners) for listeners in self.listeners.values())


@dataclass(slots=True)
class FakeGallery:
    saved: list[tuple[str, str]] = field(default_factory=list)
    error: BaseException | None = None

    async def save_image(self, url: str, character_name: str) -> str:
        if self.error is not None:
            raise self.error
        self.saved.append((url, character_name))
        return f"user/images/{character_name}/{len(self.saved)}.png"


@dataclass(slots=True)
class FakeEventSource:
    handlers: dict[str, list[Any]] = field(default_factory=lambda: defaultdict(list))

    def on(self, event: str, handler: Any) -> None:
        self.handlers[event].append(handler)

    async def emit(self, event: str, *args: object) -> None:
        for handler in self.handlers[event]:
            await handler(*args)


@dataclass(slots=True)
class FakeCommandRegistry:
    commands: dict[str, Any] = field(default_factory=dict)
    help_texts: dict[str, str] = field(default_factory=dict)

    def register(self, name: str, callback: Any, *, help_text: str = "") -> None:
        self.commands[name] = callback
        self.help_texts[name] = help_text
