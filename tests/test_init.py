"""Tests for the anoncrawl package API."""

from __future__ import annotations

import json
from unittest.mock import AsyncMock, MagicMock, patch

import httpx
import pytest

import anoncrawl
from anoncrawl import (
    AnonymityCheckError,
    ArchiverConfig,
    ProxyEndpoint,
    ProxyUnavailableError,
    archive_targets,
    archive_targets_async,
)
from anoncrawl.config import DEFAULT_CHECK_URL

from conftest import FakeCapturer, html_response

PROXY = ProxyEndpoint("127.0.0.1", 9050)


def _transport(is_tor=True, fail_hosts=()):
    def handler(request):
        if str(request.url) == DEFAULT_CHECK_URL:
            return httpx.Response(200, text=json.dumps({"IsTor": is_tor, "IP": "198.51.100.7"}))
        if request.url.host in fail_hosts:
            raise httpx.ConnectError("circuit failed", request=request)
        return html_response(f"<title>Page {request.url.host}</title>", encoding="gzip")

    return httpx.MockTransport(handler)


class _CapturerContext:
    """Async context manager standing in for SnapshotCapturer."""

    def __init__(self, *args, **kwargs):
        self.args = args
        self.kwargs = kwargs
        self.capturer = FakeCapturer()

    async def __aenter__(self):
        return self.capturer

    async def __aexit__(self, *exc_info):
        return None


class TestPublicApi:
    def test_all_exports_resolve(self):
        for name in anoncrawl.__all__:
            assert hasattr(anoncrawl, name), name


class TestArchiveTargetsAsync:
    @pytest.mark.asyncio
    async def test_without_snapshots(self, tmp_path):
        config = ArchiverConfig(output_root=str(tmp_path / "out"), capture_snapshots=False)
        summary = await archive_targets_async(
            ["http://a.onion/", "http://b.onion/"],
            config=config,
            proxy=PROXY,
            transport=_transport(),
        )

        assert summary.proxy == PROXY
        assert summary.anonymity.anonymous is True
        assert summary.anonymity.ip == "198.51.100.7"
        assert {o.kind for o in summary.outcomes} == {"partial"}
        assert summary.stats()["successful_targets"] == 2
        assert len(list((tmp_path / "out").iterdir())) == 2

    @pytest.mark.asyncio
    async def test_with_snapshots(self, tmp_path):
        created = []

        def factory(*args, **kwargs):
            ctx = _CapturerContext(*args, **kwargs)
            created.append(ctx)
            return ctx

        config = ArchiverConfig(output_root=str(tmp_path), snapshot_timeout=12.0)
        with patch("anoncrawl.SnapshotCapturer", side_effect=factory):
            summary = await archive_targets_async(
                ["http://a.onion/"], config=config, proxy=PROXY, transport=_transport()
            )

        assert summary.outcomes[0].kind == "success"
        assert created[0].args == (PROXY,)
        assert created[0].kwargs["timeout"] == 12.0
        assert created[0].capturer.calls == ["http://a.onion/"]

    @pytest.mark.asyncio
    async def test_failures_do_not_abort_run(self, tmp_path):
        config = ArchiverConfig(output_root=str(tmp_path), capture_snapshots=False)
        reported = []
        summary = await archive_targets_async(
            ["http://a.onion/", "http://down.onion/", "http://c.onion/"],
            config=config,
            proxy=PROXY,
            transport=_transport(fail_hosts={"down.onion"}),
            on_outcome=reported.append,
        )
        assert reported == summary.outcomes
        assert summary.for_target("http://down.onion/").kind == "network_error"
        assert summary.for_target("http://a.onion/").succeeded
        assert summary.for_target("http://c.onion/").succeeded
        stats = summary.stats()
        assert stats["total_targets"] == 3
        assert stats["failed_targets"] == 1
        assert stats["network_error_count"] == 1

    @pytest.mark.asyncio
    async def test_anonymity_failure_is_fail_open_by_default(self, tmp_path, caplog):
        # Design risk: a proxy that does not hide our origin still lets the run proceed.
        config = ArchiverConfig(output_root=str(tmp_path), capture_snapshots=False)
        summary = await archive_targets_async(
            ["http://a.onion/"], config=config, proxy=PROXY, transport=_transport(is_tor=False)
        )
        assert summary.anonymity.anonymous is False
        assert summary.outcomes[0].succeeded
        assert "fail-open" in caplog.text

    @pytest.mark.asyncio
    async def test_required_anonymity_aborts_before_scheduling(self, tmp_path):
        config = ArchiverConfig(
            output_root=str(tmp_path), capture_snapshots=False, require_anonymity=True
        )
        runner = AsyncMock()
        with patch("anoncrawl.run_pool", runner):
            with pytest.raises(AnonymityCheckError, match="127.0.0.1:9050"):
                await archive_targets_async(
                    ["http://a.onion/"],
                    config=config,
                    proxy=PROXY,
                    transport=_transport(is_tor=False),
                )
        runner.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_proxy_discovered_when_not_given(self, tmp_path):
        config = ArchiverConfig(output_root=str(tmp_path), capture_snapshots=False)
        discover = AsyncMock(return_value=PROXY)
        with patch("anoncrawl.discover_proxy", discover):
            summary = await archive_targets_async([], config=config, transport=_transport())
        discover.assert_awaited_once_with(config.proxy_candidates, timeout=config.probe_timeout)
        assert summary.outcomes == []

    @pytest.mark.asyncio
    async def test_no_proxy_is_fatal(self, tmp_path):
        config = ArchiverConfig(output_root=str(tmp_path))
        with patch(
            "anoncrawl.discover_proxy",
            AsyncMock(side_effect=ProxyUnavailableError("nothing listening")),
        ):
            with pytest.raises(ProxyUnavailableError):
                await archive_targets_async(["http://a.onion/"], config=config)


class TestArchiveTargetsSync:
    def test_wraps_async(self):
        summary = MagicMock()
        with patch("anoncrawl.archive_targets_async", AsyncMock(return_value=summary)) as run:
            assert archive_targets(["http://a.onion/"], proxy=PROXY) is summary
        run.assert_awaited_once_with(["http://a.onion/"], config=None, proxy=PROXY)
