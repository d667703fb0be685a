from __future__ import annotations

from collections.abc import AsyncIterator, Iterator

import httpx
import pytest

from phonemedia.core.config import MediaSettings, clear_config_cache
from phonemedia.logic.pipeline import MediaProcessor
from phonemedia.services.media import ImageGenerator, MediaServices, SpeechService

from ._fakes import FakeAudio, FakeExecutor, FakeHost


@pytest.fixture
def anyio_backend() -> str:
    return "asyncio"


@pytest.fixture
async def httpx_client() -> AsyncIterator[httpx.AsyncClient]:
    async with httpx.AsyncClient() as client:
        yield client


@pytest.fixture(autouse=True)
def _fresh_config_cache() -> Iterator[None]:
    clear_config_cache()
    yield
    clear_config_cache()


@pytest.fixture
def settings() -> MediaSettings:
    return MediaSettings(playback_timeout_seconds=0.2)


@pytest.fixture
def host() -> FakeHost:
    return FakeHost()


@pytest.fixture
def executor() -> FakeExecutor:
    return FakeExecutor()


@pytest.fixture
def audio() -> FakeAudio:
    return FakeAudio()


@pytest.fixture
def services(
    executor: FakeExecutor,
    settings: MediaSettings,
    audio: FakeAudio,
) -> MediaServices:
    return MediaServices(
        images=ImageGenerator(executor, settings),
        speech=SpeechService(executor, settings),
        audio=audio,
    )


@pytest.fixture
def processor(
    host: FakeHost,
    services: MediaServices,
    settings: MediaSettings,
) -> MediaProcessor:
    return MediaProcessor(host, services, settings)
