"""Per-target fetch-and-archive pipeline."""

from __future__ import annotations

import logging
from datetime import datetime
from pathlib import Path
from time import monotonic
from typing import Callable, List, Optional, Union

import httpx

from .artifacts import ArtifactBundle, build_artifact_dir
from .config import DEFAULT_USER_AGENT, ArchiverConfig
from .decoder import body_to_text, decode_body
from .errors import FetchError, ReadError, SnapshotError
from .markup import extract_links, extract_title_slug, sanitize_html
from .outcome import OutcomeKind, RunOutcome
from .snapshot import SnapshotCapturer
from .transport import fetch_target

LOGGER = logging.getLogger(__name__)

Sanitizer = Callable[[str], str]
LinkExtractor = Callable[[str], List[str]]
Slugifier = Callable[[str], str]


class TargetPipeline:
    """Fetch one target, archive its markup and links, capture a snapshot.

    Every failure is confined to the target being processed and reported as a
    :class:`RunOutcome`; nothing raised by the transport, decoder, filesystem
    or browser escapes :meth:`run`.
    """

    def __init__(
        self,
        client: httpx.AsyncClient,
        capturer: Optional[SnapshotCapturer] = None,
        *,
        output_root: Union[str, Path] = "output",
        http_timeout: float = 25.0,
        user_agent: str = DEFAULT_USER_AGENT,
        sanitizer: Sanitizer = sanitize_html,
        link_extractor: LinkExtractor = extract_links,
        slugifier: Slugifier = extract_title_slug,
        clock: Callable[[], datetime] = datetime.now,
    ):
        self.client = client
        self.capturer = capturer
        self.output_root = Path(output_root)
        self.http_timeout = http_timeout
        self.user_agent = user_agent
        self.sanitizer = sanitizer
        self.link_extractor = link_extractor
        self.slugifier = slugifier
        self.clock = clock

    @classmethod
    def from_config(
        cls,
        config: ArchiverConfig,
        client: httpx.AsyncClient,
        capturer: Optional[SnapshotCapturer] = None,
    ) -> "TargetPipeline":
        return cls(
            client,
            capturer,
            output_root=config.output_root,
            http_timeout=config.http_timeout,
            user_agent=config.user_agent,
        )

    async def run(self, target: str) -> RunOutcome:
        started = monotonic()

        def failed(kind: OutcomeKind, label: str, exc: Exception, **extra) -> RunOutcome:
            LOGGER.error("[ERR ] %s -> %s", target, label)
            LOGGER.debug("%s failure detail: %s", target, exc)
            return RunOutcome(
                target=target,
                kind=kind,
                elapsed=monotonic() - started,
                error_message=str(exc),
                **extra,
            )

        try:
            fetched = await fetch_target(
                self.client,
                target,
                user_agent=self.user_agent,
                timeout=self.http_timeout,
            )
        except FetchError as exc:
            if exc.timed_out:
                return failed("timeout", "TIMEOUT", exc)
            return failed("network_error", "NETWORK ERROR", exc)
        except ReadError as exc:
            return failed("read_error", "READ ERROR", exc)

        try:
            html = body_to_text(decode_body(fetched.body, fetched.content_encoding))
        except ReadError as exc:
            return failed("read_error", "READ ERROR", exc, status_code=fetched.status_code)

        directory = build_artifact_dir(
            target,
            self.slugifier(html),
            output_root=self.output_root,
            now=self.clock(),
        )
        try:
            bundle = ArtifactBundle.create(directory)
            bundle.write_html(self.sanitizer(html))
            bundle.write_links(self.link_extractor(html))
        except OSError as exc:
            return failed(
                "write_error",
                "WRITE ERROR",
                exc,
                status_code=fetched.status_code,
                artifact_dir=directory,
            )

        error_message = None
        if self.capturer is None:
            error_message = "snapshot capture disabled"
        else:
            try:
                snapshot = await self.capturer.capture(target)
                bundle.write_snapshot(snapshot.screenshot, snapshot.mhtml)
            except (SnapshotError, OSError) as exc:
                LOGGER.error("[ERR ] %s -> SCREENSHOT FAILED", target)
                LOGGER.debug("%s snapshot detail: %s", target, exc)
                error_message = str(exc)

        kind: OutcomeKind = "success" if bundle.has_snapshot else "partial"
        elapsed = monotonic() - started
        LOGGER.info("[INFO] %s -> %d (%.2fs)", target, fetched.status_code, elapsed)
        return RunOutcome(
            target=target,
            kind=kind,
            status_code=fetched.status_code,
            elapsed=elapsed,
            artifact_dir=bundle.directory,
            error_message=error_message,
        )
