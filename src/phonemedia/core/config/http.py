"""Shared httpx client for talking to the host's HTTP API."""

from dataclasses import dataclass

import httpx

DEFAULT_USER_AGENT = "phonemedia (chat media extension)"

DEFAULT_HEADERS = {
    "User-Agent": DEFAULT_USER_AGENT,
    "Accept": "application/json, image/*;q=0.9, */*;q=0.8",
}


@dataclass(frozen=True, slots=True)
class HttpxClientOptions:
    """Options for the gallery's httpx.AsyncClient.

    ``transport`` lets tests substitute an ``httpx.MockTransport``.
    """

    timeout: float = 30.0
    connect_timeout: float = 10.0
    max_connections: int = 4
    max_keepalive: int = 2
    headers: dict[str, str] | None = None
    follow_redirects: bool = True
    transport: httpx.AsyncBaseTransport | None = None


def _build_client(options: HttpxClientOptions) -> httpx.AsyncClient:
    return httpx.AsyncClient(
        timeout=httpx.Timeout(options.timeout, connect=options.connect_timeout),
        limits=httpx.Limits(
            max_connections=options.max_connections,
            max_keepalive_connections=options.max_keepalive,
        ),
        headers={**DEFAULT_HEADERS, **(options.headers or {})},
        follow_redirects=options.follow_redirects,
        transport=options.transport,
    )


def get_or_create_httpx_client(
    client_holder: list[httpx.AsyncClient | None],
    *,
    options: HttpxClientOptions | None = None,
) -> httpx.AsyncClient:
    """Return the client kept in ``client_holder``, creating it when needed.

    The holder is a one-slot list owned by the caller, so a closed client is
    transparently replaced on the next call.
    """
    current = client_holder[0] if client_holder else None
    if current is not None and not current.is_closed:
        return current

    client = _build_client(options or HttpxClientOptions())
    if client_holder:
        client_holder[0] = client
    else:
        client_holder.append(client)
    return client
