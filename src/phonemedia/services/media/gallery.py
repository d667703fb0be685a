"""Saving generated images to the host's permanent gallery."""

from __future__ import annotations

import base64
import hashlib
import logging
from typing import TYPE_CHECKING

import httpx

from phonemedia.core.config.constants import GALLERY_UPLOAD_PATH
from phonemedia.core.exceptions import GalleryUploadError
from phonemedia.services.http import RetryOptions, request_with_retries

if TYPE_CHECKING:
    from collections.abc import Callable, Mapping

logger = logging.getLogger(__name__)

HTTP_OK_RANGE = range(200, 300)
DEFAULT_IMAGE_FORMAT = "png"
_KNOWN_FORMATS = {"png", "jpeg", "jpg", "webp", "gif", "bmp"}


def _image_format(url: str, content_type: str | None) -> str:
    if content_type and content_type.startswith("image/"):
        subtype = content_type.split("/", maxsplit=1)[1].split(";", maxsplit=1)[0]
        if subtype.strip():
            return subtype.strip().lower()
    extension = url.rsplit("?", maxsplit=1)[0].rsplit(".", maxsplit=1)[-1].lower()
    if extension in _KNOWN_FORMATS:
        return extension
    return DEFAULT_IMAGE_FORMAT


class GalleryClient:
    """Uploads images to the host gallery over HTTP.

    Generated image URLs are often host-relative, so they are resolved against
    ``base_url`` before fetching. ``headers_provider`` is called per request so
    the host can hand out fresh CSRF/auth headers.
    """

    def __init__(
        self,
        client: httpx.AsyncClient,
        *,
        base_url: str,
        headers_provider: Callable[[], Mapping[str, str]] | None = None,
        retry_options: RetryOptions | None = None,
    ) -> None:
        self.client = client
        self.base_url = httpx.URL(base_url)
        self.headers_provider = headers_provider
        self.retry_options = retry_options or RetryOptions()

    def _headers(self) -> dict[str, str]:
        if self.headers_provider is None:
            return {}
        return dict(self.headers_provider())

    def _absolute(self, url: str) -> httpx.URL:
        return self.base_url.join(url)

    async def fetch_image(self, url: str) -> tuple[bytes, str]:
        """Download a generated image, returning its bytes and format."""
        target = self._absolute(url)
        try:
            response = await request_with_retries(
                lambda: self.client.get(target, headers=self._headers()),
                options=self.retry_options,
                log_context=f"image fetch {target}",
            )
        except httpx.HTTPError as exc:
            msg = f"Failed to fetch image {target}: {exc}"
            raise GalleryUploadError(msg) from exc

        if response.status_code not in HTTP_OK_RANGE:
            msg = f"Fetching image {target} returned HTTP {response.status_code}"
            raise GalleryUploadError(msg, status_code=response.status_code)
        if not response.content:
            msg = f"Fetching image {target} returned no data"
            raise GalleryUploadError(msg)

        return response.content, _image_format(
            str(target),
            response.headers.get("content-type"),
        )

    async def upload(
        self,
        data: bytes,
        *,
        image_format: str,
        character_name: str,
        filename: str,
    ) -> str:
        """Store image bytes in the character's gallery; return the stored path."""
        payload = {
            "image": base64.b64encode(data).decode("ascii"),
            "format": image_format,
            "ch_name": character_name,
            "filename": filename,
        }
        target = self._absolute(GALLERY_UPLOAD_PATH)
        try:
            response = await request_with_retries(
                lambda: self.client.post(target, json=payload, headers=self._headers()),
                options=self.retry_options,
                log_context="gallery upload",
            )
        except httpx.HTTPError as exc:
            msg = f"Gallery upload failed: {exc}"
            raise GalleryUploadError(msg) from exc

        if response.status_code not in HTTP_OK_RANGE:
            msg = f"Gallery upload returned HTTP {response.status_code}"
            raise GalleryUploadError(msg, status_code=response.status_code)

        try:
            body = response.json()
        except ValueError:
            body = None
        path = body.get("path") if isinstance(body, dict) else None
        return str(path) if path else filename

    async def save_image(self, url: str, character_name: str) -> str:
        """Fetch a generated image and upload it under ``character_name``."""
        data, image_format = await self.fetch_image(url)
        digest = hashlib.sha256(data).hexdigest()[:12]
        filename = f"phone-{digest}"
        path = await self.upload(
            data,
            image_format=image_format,
            character_name=character_name,
            filename=filename,
        )
        logger.info("Saved image %s to gallery of %s as %s", url, character_name, path)
        return path
