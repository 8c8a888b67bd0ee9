"""Headless visual capture through the anonymizing proxy.

Wraps a single crawl4ai ``AsyncWebCrawler`` (Playwright/Chromium) shared by
all workers. Each capture renders the target at a fixed viewport, waits a
settle delay, and returns a PNG screenshot plus an MHTML snapshot.

Example usage:

    from anoncrawl.proxy import ProxyEndpoint
    from anoncrawl.snapshot import SnapshotCapturer

    async with SnapshotCapturer(ProxyEndpoint("127.0.0.1", 9050)) as capturer:
        snapshot = await capturer.capture("http://example.onion/")
"""

from __future__ import annotations

import asyncio
import base64
import binascii
import logging
from dataclasses import dataclass
from typing import Optional, Tuple

from crawl4ai import AsyncWebCrawler, BrowserConfig, CrawlerRunConfig
from crawl4ai.async_configs import CacheMode

from .config import DEFAULT_USER_AGENT
from .errors import SnapshotError
from .proxy import ProxyEndpoint

LOGGER = logging.getLogger(__name__)


@dataclass(frozen=True)
class Snapshot:
    """Rendered page: rasterized screenshot and structural MHTML document."""

    screenshot: bytes
    mhtml: str


def build_browser_config(
    proxy: ProxyEndpoint,
    *,
    viewport: Tuple[int, int] = (1920, 1080),
    user_agent: str = DEFAULT_USER_AGENT,
) -> BrowserConfig:
    """Headless Chromium config with all traffic sent through *proxy*."""
    width, height = viewport
    return BrowserConfig(
        headless=True,
        use_persistent_context=False,
        viewport_width=width,
        viewport_height=height,
        user_agent=user_agent,
        proxy_config={"server": proxy.url},
        extra_args=["--disable-gpu"],
        verbose=False,
    )


def build_snapshot_run_config(
    *, settle_delay: float = 5.0, timeout: float = 40.0
) -> CrawlerRunConfig:
    """Run config that only renders, screenshots and snapshots the page."""
    return CrawlerRunConfig(
        cache_mode=CacheMode.BYPASS,
        screenshot=True,
        capture_mhtml=True,
        delay_before_return_html=settle_delay,
        page_timeout=int(timeout * 1000),
        verbose=False,
    )


def _decode_screenshot(encoded: object) -> bytes:
    if isinstance(encoded, bytes):
        return encoded
    try:
        return base64.b64decode(str(encoded), validate=True)
    except (binascii.Error, ValueError) as exc:
        raise SnapshotError(f"Screenshot payload is not base64: {exc}") from exc


class SnapshotCapturer:
    """Async context manager owning the shared headless browser."""

    def __init__(
        self,
        proxy: ProxyEndpoint,
        *,
        timeout: float = 40.0,
        settle_delay: float = 5.0,
        viewport: Tuple[int, int] = (1920, 1080),
        user_agent: str = DEFAULT_USER_AGENT,
    ):
        self.proxy = proxy
        self.timeout = timeout
        self.browser_config = build_browser_config(
            proxy, viewport=viewport, user_agent=user_agent
        )
        self.run_config = build_snapshot_run_config(
            settle_delay=settle_delay, timeout=timeout
        )
        self._crawler: Optional[AsyncWebCrawler] = None

    async def __aenter__(self) -> "SnapshotCapturer":
        crawler = AsyncWebCrawler(config=self.browser_config)
        await crawler.start()
        self._crawler = crawler
        LOGGER.debug("Headless browser started via %s", self.proxy.url)
        return self

    async def __aexit__(self, *exc_info) -> None:
        crawler, self._crawler = self._crawler, None
        if crawler is not None:
            await crawler.close()

    async def capture(self, url: str) -> Snapshot:
        """Render *url* and return its screenshot and MHTML snapshot.

        Raises:
            SnapshotError: On timeout, browser failure or incomplete output.
        """
        if self._crawler is None:
            raise SnapshotError("Capturer used outside its context", url)

        try:
            container = await asyncio.wait_for(
                self._crawler.arun(url=url, config=self.run_config), self.timeout
            )
        except asyncio.TimeoutError as exc:
            raise SnapshotError(
                f"Capture did not finish within {self.timeout:.0f}s", url
            ) from exc
        except Exception as exc:
            # Playwright and crawl4ai raise a wide range of unrelated types.
            raise SnapshotError(f"Browser failure: {exc}", url) from exc

        try:
            result = container[0]
        except (IndexError, TypeError):
            result = container

        if result is None or not getattr(result, "success", False):
            reason = getattr(result, "error_message", None) or "no result"
            raise SnapshotError(f"Capture failed: {reason}", url)
        if not result.screenshot:
            raise SnapshotError("Browser returned no screenshot", url)
        if not result.mhtml:
            raise SnapshotError("Browser returned no MHTML snapshot", url)

        return Snapshot(screenshot=_decode_screenshot(result.screenshot), mhtml=result.mhtml)
