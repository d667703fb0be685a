"""Voice-note playback through the host TTS command and audio element."""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING

from phonemedia.core.config.constants import DEFAULT_VOICE
from phonemedia.core.error_handling import COMMON_HANDLER_EXCEPTIONS
from phonemedia.core.exceptions import SpeechFailedError

if TYPE_CHECKING:
    from collections.abc import Callable

    from phonemedia.core.config.settings import MediaSettings
    from phonemedia.core.host import AudioElement, CommandExecutor

logger = logging.getLogger(__name__)

PLAY_EVENT = "play"
ENDED_EVENT = "ended"
ERROR_EVENT = "error"


def build_speech_command(voice: str, text: str, settings: MediaSettings) -> str:
    escaped_voice = voice.replace('"', '\\"')
    return f'/{settings.speech_command} voice="{escaped_voice}" {text}'


class SpeechService:
    """Queues speech on the host; returns before audio actually plays."""

    def __init__(self, executor: CommandExecutor, settings: MediaSettings) -> None:
        self.executor = executor
        self.settings = settings

    def resolve_voice(self, character_name: str | None) -> str:
        if character_name and character_name.strip():
            return character_name.strip()
        return self.settings.default_voice or DEFAULT_VOICE

    async def speak(self, voice: str, text: str) -> None:
        """Queue ``text`` for playback with ``voice``.

        Raises:
            SpeechFailedError: the host rejected the request.

        """
        try:
            await self.executor.execute(
                build_speech_command(voice, text, self.settings),
            )
        except COMMON_HANDLER_EXCEPTIONS as exc:
            msg = f"Speech request failed: {exc}"
            raise SpeechFailedError(msg) from exc


async def wait_for_playback(
    audio: AudioElement | None,
    *,
    timeout_seconds: float,
    on_started: Callable[[], None] | None = None,
) -> bool:
    """Wait for the host audio element to start and finish playing.

    Listeners are attached immediately, so call this (as a task) before the
    speech request is sent. If no ``play`` signal arrives within
    ``timeout_seconds`` the wait gives up. Once playback has started there is
    no limit; ``ended`` or ``error`` finishes it.

    Returns:
        True if playback was observed, False on timeout or without an element.

    """
    if audio is None:
        return False

    signalled = asyncio.Event()
    finished = asyncio.Event()
    started = False

    def _on_play() -> None:
        nonlocal started
        started = True
        signalled.set()
        if on_started is not None:
            on_started()

    def _on_done() -> None:
        signalled.set()
        finished.set()

    audio.add_listener(PLAY_EVENT, _on_play)
    audio.add_listener(ENDED_EVENT, _on_done)
    audio.add_listener(ERROR_EVENT, _on_done)
    try:
        try:
            await asyncio.wait_for(signalled.wait(), timeout=timeout_seconds)
        except TimeoutError:
            logger.warning(
                "No playback started within %.1fs; giving up on audio sync",
                timeout_seconds,
            )
            return False
        await finished.wait()
    finally:
        audio.remove_listener(PLAY_EVENT, _on_play)
        audio.remove_listener(ENDED_EVENT, _on_done)
        audio.remove_listener(ERROR_EVENT, _on_done)
    return started
