"""Anonymized web archiver.

This package fetches a fixed list of target URLs through a local Tor SOCKS
proxy and archives each one offline:

- Sanitized HTML (no live ``href``/``src``/``<base>``) with an offline marker
- The page's absolute outgoing links, deduplicated in discovery order
- A full-page screenshot and MHTML snapshot rendered by a headless browser

Targets run concurrently on a fixed-size worker pool; a failing target never
affects the others.

Example usage:

    from anoncrawl import ArchiverConfig, archive_targets_async, load_targets

    targets = load_targets("targets.yaml")
    summary = await archive_targets_async(targets, config=ArchiverConfig(workers=5))
    for outcome in summary.outcomes:
        print(outcome.target, outcome.kind, outcome.artifact_dir)
"""

from __future__ import annotations

import asyncio
import logging
from contextlib import AsyncExitStack
from pathlib import Path
from typing import Iterable, Optional

import httpx

from .artifacts import ArtifactBundle, build_artifact_dir
from .config import ArchiverConfig, load_config_from_env
from .decoder import decode_body
from .errors import (
    AnonymityCheckError,
    ArchiveError,
    FetchError,
    ProxyUnavailableError,
    ReadError,
    SnapshotError,
    TargetListError,
)
from .markup import extract_links, extract_title_slug, sanitize_html
from .outcome import FetchResult, RunOutcome, RunSummary
from .pipeline import TargetPipeline
from .proxy import AnonymityReport, ProxyEndpoint, discover_proxy, verify_anonymity
from .scheduler import OutcomeCallback, run_pool
from .snapshot import SnapshotCapturer
from .targets import load_targets
from .transport import build_proxy_client, fetch_target

__all__ = [
    # Result types
    "FetchResult",
    "RunOutcome",
    "RunSummary",
    "ArtifactBundle",
    # Errors
    "ArchiveError",
    "TargetListError",
    "ProxyUnavailableError",
    "AnonymityCheckError",
    "FetchError",
    "ReadError",
    "SnapshotError",
    # Config
    "ArchiverConfig",
    "load_config_from_env",
    # Transformations
    "decode_body",
    "sanitize_html",
    "extract_links",
    "extract_title_slug",
    "build_artifact_dir",
    # Collaborators
    "ProxyEndpoint",
    "AnonymityReport",
    "discover_proxy",
    "verify_anonymity",
    "load_targets",
    "build_proxy_client",
    "fetch_target",
    "SnapshotCapturer",
    # Pipeline and pool
    "TargetPipeline",
    "run_pool",
    "archive_targets_async",
    "archive_targets",
]

LOGGER = logging.getLogger(__name__)


async def archive_targets_async(
    targets: Iterable[str],
    *,
    config: Optional[ArchiverConfig] = None,
    proxy: Optional[ProxyEndpoint] = None,
    transport: Optional[httpx.AsyncBaseTransport] = None,
    on_outcome: Optional[OutcomeCallback] = None,
) -> RunSummary:
    """
    Archive every target through the anonymizing proxy.

    Args:
        targets: Ordered target URLs.
        config: Run settings (defaults to :class:`ArchiverConfig`).
        proxy: Known SOCKS endpoint; discovered from
            ``config.proxy_candidates`` when omitted.
        transport: Optional httpx transport replacing the SOCKS transport.
        on_outcome: Called with each target's outcome as it completes.

    Returns:
        RunSummary with one outcome per target, plus the proxy used and the
        anonymity check report.

    Raises:
        ProxyUnavailableError: If no proxy candidate is reachable.
        AnonymityCheckError: If ``config.require_anonymity`` is set and the
            check endpoint does not confirm Tor routing.
    """
    cfg = config or ArchiverConfig()
    targets = list(targets)
    if proxy is None:
        proxy = await discover_proxy(cfg.proxy_candidates, timeout=cfg.probe_timeout)

    Path(cfg.output_root).mkdir(parents=True, exist_ok=True)

    async with AsyncExitStack() as stack:
        client = await stack.enter_async_context(
            build_proxy_client(proxy, timeout=cfg.http_timeout, transport=transport)
        )

        report = await verify_anonymity(client, cfg.check_url, timeout=cfg.http_timeout)
        if not report.anonymous:
            if cfg.require_anonymity:
                raise AnonymityCheckError(
                    f"Anonymity check failed via {proxy.address}: "
                    f"{report.error or report.raw.strip() or 'IsTor is false'}"
                )
            LOGGER.warning(
                "Anonymity not confirmed via %s; continuing (fail-open)",
                proxy.address,
            )

        capturer = None
        if cfg.capture_snapshots:
            capturer = await stack.enter_async_context(
                SnapshotCapturer(
                    proxy,
                    timeout=cfg.snapshot_timeout,
                    settle_delay=cfg.settle_delay,
                    viewport=cfg.viewport,
                    user_agent=cfg.user_agent,
                )
            )

        pipeline = TargetPipeline.from_config(cfg, client, capturer)
        LOGGER.info("Archiving %d target(s) with %d worker(s)", len(targets), cfg.workers)
        outcomes = await run_pool(
            targets, pipeline.run, workers=cfg.workers, on_outcome=on_outcome
        )

    return RunSummary(outcomes=outcomes, proxy=proxy, anonymity=report)


def archive_targets(
    targets: Iterable[str],
    *,
    config: Optional[ArchiverConfig] = None,
    proxy: Optional[ProxyEndpoint] = None,
) -> RunSummary:
    """Synchronous wrapper for archive_targets_async."""
    return asyncio.run(archive_targets_async(targets, config=config, proxy=proxy))
