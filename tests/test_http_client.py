from __future__ import annotations

import httpx
import pytest

from phonemedia.core.config import (
    DEFAULT_USER_AGENT,
    HttpxClientOptions,
    get_or_create_httpx_client,
)


@pytest.mark.asyncio
async def test_client_is_shared_until_closed() -> None:
    holder: list[httpx.AsyncClient | None] = []
    options = HttpxClientOptions(headers={"X-CSRF-Token": "tok"})

    first = get_or_create_httpx_client(holder, options=options)
    assert get_or_create_httpx_client(holder, options=options) is first
    assert first.headers["user-agent"] == DEFAULT_USER_AGENT
    assert first.headers["x-csrf-token"] == "tok"

    await first.aclose()
    second = get_or_create_httpx_client(holder, options=options)

    assert second is not first
    assert holder == [second]
    await second.aclose()
