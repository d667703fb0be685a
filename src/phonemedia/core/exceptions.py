"""Custom exceptions for phonemedia."""

GENERATION_FAILED_MESSAGE = "Image generation returned no result"


class MediaError(RuntimeError):
    """Base class for failures of an external media collaborator."""


class GenerationFailedError(MediaError):
    """Raised when the image backend rejects a prompt or returns no URL."""

    def __init__(
        self,
        message: str | None = None,
        *,
        prompt: str | None = None,
    ) -> None:
        """Initialize the error with the prompt that failed."""
        self.prompt = prompt
        super().__init__(message or GENERATION_FAILED_MESSAGE)


class SpeechFailedError(MediaError):
    """Raised when the speech request could not be queued."""


class GalleryUploadError(MediaError):
    """Raised when an image could not be fetched or stored in the gallery."""

    def __init__(self, message: str, *, status_code: int | None = None) -> None:
        """Initialize the error with the optional HTTP status."""
        self.status_code = status_code
        super().__init__(message)
