"""HTTP transport bound to the anonymizing SOCKS proxy."""

from __future__ import annotations

import asyncio
import logging
from time import monotonic
from typing import Optional

import httpx

from .config import DEFAULT_USER_AGENT
from .errors import FetchError, ReadError
from .outcome import FetchResult
from .proxy import ProxyEndpoint

LOGGER = logging.getLogger(__name__)

# The decoder only understands these two; anything else would arrive opaque.
ACCEPT_ENCODING = "gzip, deflate"


def build_proxy_client(
    proxy: ProxyEndpoint,
    *,
    timeout: float = 25.0,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> httpx.AsyncClient:
    """Create an httpx async client that routes every request through *proxy*.

    Connection retries are disabled. *transport* replaces the SOCKS transport
    entirely and exists for tests.
    """
    if transport is None:
        transport = httpx.AsyncHTTPTransport(proxy=proxy.url, retries=0)
    return httpx.AsyncClient(
        transport=transport,
        timeout=timeout,
        follow_redirects=True,
    )


async def _send(
    client: httpx.AsyncClient, url: str, user_agent: str, started: float
) -> FetchResult:
    try:
        request = client.build_request(
            "GET",
            url,
            headers={"User-Agent": user_agent, "Accept-Encoding": ACCEPT_ENCODING},
        )
        response = await client.send(request, stream=True)
    except httpx.TimeoutException as exc:
        raise FetchError(f"Request timed out: {exc}", url, timed_out=True) from exc
    except (httpx.HTTPError, httpx.InvalidURL) as exc:
        raise FetchError(f"Request failed: {exc}", url) from exc

    try:
        chunks = [chunk async for chunk in response.aiter_raw()]
    except (httpx.HTTPError, httpx.StreamError) as exc:
        raise ReadError(f"Failed to read body of {url}: {exc}") from exc
    finally:
        await response.aclose()

    return FetchResult(
        url=str(response.url),
        status_code=response.status_code,
        headers=response.headers,
        body=b"".join(chunks),
        elapsed=monotonic() - started,
    )


async def fetch_target(
    client: httpx.AsyncClient,
    url: str,
    *,
    user_agent: str = DEFAULT_USER_AGENT,
    timeout: float = 25.0,
) -> FetchResult:
    """GET *url* and return the undecoded response.

    *timeout* bounds the whole exchange, headers and body together.

    Raises:
        FetchError: On timeout or any transport failure before headers arrive.
        ReadError: If the body stream breaks after headers were received.
    """
    started = monotonic()
    try:
        return await asyncio.wait_for(_send(client, url, user_agent, started), timeout)
    except asyncio.TimeoutError as exc:
        raise FetchError(
            f"No complete response within {timeout:.0f}s", url, timed_out=True
        ) from exc
