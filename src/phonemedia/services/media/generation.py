"""Image generation through the host's ``/imagine`` command."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from phonemedia.core.error_handling import COMMON_HANDLER_EXCEPTIONS
from phonemedia.core.exceptions import GenerationFailedError

if TYPE_CHECKING:
    from phonemedia.core.config.settings import MediaSettings
    from phonemedia.core.host import CommandExecutor

logger = logging.getLogger(__name__)


def build_image_command(prompt: str, settings: MediaSettings) -> str:
    """Render the slash command that generates one image.

    ``quiet`` keeps the result out of the chat log and ``gallery`` controls
    the backend's own auto-save; variants are saved explicitly instead.
    """
    quiet = "true" if settings.quiet_generation else "false"
    gallery = "true" if settings.gallery_autosave else "false"
    return f"/{settings.image_command} quiet={quiet} gallery={gallery} {prompt}"


class ImageGenerator:
    """Turns a prompt into the URL of a generated image."""

    def __init__(self, executor: CommandExecutor, settings: MediaSettings) -> None:
        self.executor = executor
        self.settings = settings

    async def generate(self, prompt: str) -> str:
        """Generate one image and return its URL.

        Raises:
            GenerationFailedError: the backend raised or produced no URL.

        """
        command = build_image_command(prompt, self.settings)
        try:
            result = await self.executor.execute(command)
        except COMMON_HANDLER_EXCEPTIONS as exc:
            msg = f"Image generation failed: {exc}"
            raise GenerationFailedError(msg, prompt=prompt) from exc

        image_url = result.pipe if result is not None else None
        if not image_url or not str(image_url).strip():
            raise GenerationFailedError(prompt=prompt)

        logger.debug("Generated image for prompt %r: %s", prompt[:80], image_url)
        return str(image_url).strip()
