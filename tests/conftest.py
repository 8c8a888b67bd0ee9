"""Shared fixtures and global pytest hooks for strict test-accounting guardrails."""

from __future__ import annotations

import gzip
import zlib
from dataclasses import dataclass
from datetime import datetime
from typing import Callable, Dict, List, Optional

import httpx
import pytest

from anoncrawl.errors import SnapshotError
from anoncrawl.snapshot import Snapshot

FIXED_NOW = datetime(2026, 1, 2, 3, 4, 5)
FIXED_STAMP = "2026-01-02_03-04-05"


def gzip_bytes(text: str) -> bytes:
    return gzip.compress(text.encode("utf-8"))


def raw_deflate_bytes(text: str) -> bytes:
    compressor = zlib.compressobj(wbits=-zlib.MAX_WBITS)
    return compressor.compress(text.encode("utf-8")) + compressor.flush()


def raw_response(
    status: int = 200, body: bytes = b"", headers: Optional[Dict[str, str]] = None
) -> httpx.Response:
    # A ByteStream passed as `stream` stays unread, so `aiter_raw` still works.
    return httpx.Response(status, headers=headers, stream=httpx.ByteStream(body))


def html_response(
    html: str, *, status: int = 200, encoding: Optional[str] = None
) -> httpx.Response:
    headers = {"Content-Type": "text/html; charset=utf-8"}
    body = html.encode("utf-8")
    if encoding == "gzip":
        body = gzip_bytes(html)
        headers["Content-Encoding"] = "gzip"
    elif encoding == "deflate":
        body = zlib.compress(html.encode("utf-8"))
        headers["Content-Encoding"] = "deflate"
    return raw_response(status, body, headers)


def mock_client(handler: Callable[[httpx.Request], httpx.Response]) -> httpx.AsyncClient:
    return httpx.AsyncClient(transport=httpx.MockTransport(handler))


class FakeCapturer:
    """Stand-in for SnapshotCapturer that records calls."""

    def __init__(self, fail_for: Optional[set] = None):
        self.fail_for = fail_for or set()
        self.calls: List[str] = []

    async def capture(self, url: str) -> Snapshot:
        self.calls.append(url)
        if url in self.fail_for:
            raise SnapshotError("browser crashed", url)
        return Snapshot(screenshot=b"\x89PNG fake", mhtml="MIME-Version: 1.0\r\n")


@pytest.fixture
def fake_capturer() -> FakeCapturer:
    return FakeCapturer()


@pytest.fixture
def fixed_clock() -> Callable[[], datetime]:
    return lambda: FIXED_NOW


@dataclass
class _TestAccounting:
    deselected: int = 0
    skipped: int = 0
    xfailed: int = 0
    xpassed: int = 0


_ACCOUNTING = _TestAccounting()


def pytest_deselected(items):  # pragma: no cover - pytest hook
    _ACCOUNTING.deselected += len(items)


def pytest_runtest_logreport(report):  # pragma: no cover - pytest hook
    if report.when not in {"setup", "call"}:
        return

    if getattr(report, "wasxfail", False):
        if report.outcome == "skipped":
            _ACCOUNTING.xfailed += 1
        elif report.outcome == "passed":
            _ACCOUNTING.xpassed += 1
        return

    if report.outcome == "skipped":
        _ACCOUNTING.skipped += 1


def pytest_sessionfinish(session, exitstatus):  # pragma: no cover - pytest hook
    counts: Dict[str, int] = {
        "deselected": _ACCOUNTING.deselected,
        "skipped": _ACCOUNTING.skipped,
        "xfailed": _ACCOUNTING.xfailed,
        "xpassed": _ACCOUNTING.xpassed,
    }
    violations = [f"{name}={count}" for name, count in counts.items() if count]
    if not violations:
        return

    reporter = session.config.pluginmanager.get_plugin("terminalreporter")
    if reporter:
        reporter.write_sep(
            "=",
            "Strict guard failed: test accounting violations detected "
            f"({', '.join(violations)})",
        )
        reporter.write_line(
            "Hard guard requires zero skipped/deselected/xfail/xpass tests."
        )

    session.exitstatus = 1
