"""External media collaborators: image generation, speech and gallery."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

from phonemedia.services.media.gallery import GalleryClient
from phonemedia.services.media.generation import ImageGenerator, build_image_command
from phonemedia.services.media.speech import (
    SpeechService,
    build_speech_command,
    wait_for_playback,
)

if TYPE_CHECKING:
    from phonemedia.core.host import AudioElement


@dataclass(slots=True)
class MediaServices:
    """The collaborators widget bindings and the processor call out to."""

    images: ImageGenerator
    speech: SpeechService
    gallery: GalleryClient | None = None
    audio: AudioElement | None = None


__all__ = [
    "GalleryClient",
    "ImageGenerator",
    "MediaServices",
    "SpeechService",
    "build_image_command",
    "build_speech_command",
    "wait_for_playback",
]
