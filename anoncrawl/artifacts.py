"""Artifact directory naming and per-target file layout."""

from __future__ import annotations

import hashlib
import logging
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Iterable, List, Optional, Union
from urllib.parse import urlparse

from .decoder import TEXT_ERRORS

LOGGER = logging.getLogger(__name__)

HTML_FILENAME = "site_data.html"
LINKS_FILENAME = "links.txt"
SCREENSHOT_FILENAME = "screenshot.png"
SNAPSHOT_FILENAME = "site_snapshot.mhtml"

TIMESTAMP_FORMAT = "%Y-%m-%d_%H-%M-%S"
DIGEST_LENGTH = 6


def url_digest(url: str) -> str:
    """First six hex characters of the SHA-256 of *url*.

    24 bits is enough to keep two targets apart when they share slug, host and
    second; it is not a global uniqueness guarantee.
    """
    return hashlib.sha256(url.encode("utf-8")).hexdigest()[:DIGEST_LENGTH]


def site_label(url: str) -> str:
    """Host and port of *url* with the ``.onion`` suffix dropped.

    Any userinfo is left out so credentials never reach the filesystem.
    """
    host = urlparse(url).netloc.rpartition("@")[2]
    return host.replace(".onion", "")


def build_artifact_dir(
    url: str,
    slug: str,
    *,
    output_root: Union[str, Path] = "output",
    now: Optional[datetime] = None,
) -> Path:
    """Compute ``<output_root>/<slug>_<timestamp>_<host>_<digest>`` for *url*."""
    stamp = (now or datetime.now()).strftime(TIMESTAMP_FORMAT)
    name = f"{slug}_{stamp}_{site_label(url)}_{url_digest(url)}"
    return Path(output_root) / name


@dataclass
class ArtifactBundle:
    """Files written for one target, all rooted in a single directory."""

    directory: Path
    files: List[Path] = field(default_factory=list)

    @classmethod
    def create(cls, directory: Path) -> "ArtifactBundle":
        directory.mkdir(parents=True, exist_ok=True)
        return cls(directory=directory)

    def _write(self, name: str, data: Union[str, bytes]) -> Path:
        path = self.directory / name
        if isinstance(data, bytes):
            path.write_bytes(data)
        else:
            path.write_text(data, encoding="utf-8", errors=TEXT_ERRORS)
        self.files.append(path)
        LOGGER.debug("Wrote %s", path)
        return path

    def write_html(self, html: str) -> Path:
        return self._write(HTML_FILENAME, html)

    def write_links(self, links: Iterable[str]) -> Path:
        return self._write(LINKS_FILENAME, "\n".join(links))

    def write_snapshot(self, screenshot: bytes, mhtml: str) -> None:
        self._write(SCREENSHOT_FILENAME, screenshot)
        self._write(SNAPSHOT_FILENAME, mhtml)

    @property
    def has_snapshot(self) -> bool:
        """True once both the screenshot and the MHTML file were written."""
        written = set(self.files)
        return all(
            self.directory / name in written
            for name in (SCREENSHOT_FILENAME, SNAPSHOT_FILENAME)
        )
