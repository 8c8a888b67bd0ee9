"""Run configuration for the archiver.

Defaults mirror a stock Tor Browser / tor daemon setup. Every field can be
overridden from ``ANONCRAWL_*`` environment variables (see
:func:`load_config_from_env`) and then from CLI flags.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field, replace
from typing import Dict, Optional, Tuple

LOGGER = logging.getLogger(__name__)

DEFAULT_USER_AGENT = (
    "Mozilla/5.0 (X11; Linux x86_64; rv:102.0) Gecko/20100101 Firefox/102.0"
)
DEFAULT_PROXY_CANDIDATES: Tuple[str, ...] = ("127.0.0.1:9050", "127.0.0.1:9150")
DEFAULT_CHECK_URL = "https://check.torproject.org/api/ip"


@dataclass(frozen=True)
class ArchiverConfig:
    """Settings for one archiving run.

    Attributes:
        workers: Number of concurrent target pipelines.
        http_timeout: Overall timeout in seconds for one HTTP fetch.
        snapshot_timeout: Timeout in seconds for one browser capture,
            independent of ``http_timeout``.
        settle_delay: Seconds the browser waits after load before capturing.
        viewport: Browser viewport as ``(width, height)``.
        output_root: Directory under which artifact directories are created.
        log_file: Append-only log file; ``None`` logs to stderr only.
        proxy_candidates: ``host:port`` SOCKS endpoints probed in order.
        probe_timeout: TCP connect timeout in seconds for each probe.
        check_url: Endpoint used for the anonymity self-check.
        user_agent: User-Agent sent with every fetch and browser visit.
        require_anonymity: Abort the run when the anonymity check fails.
        capture_snapshots: Render screenshot and MHTML snapshot per target.
    """

    workers: int = 5
    http_timeout: float = 25.0
    snapshot_timeout: float = 40.0
    settle_delay: float = 5.0
    viewport: Tuple[int, int] = (1920, 1080)
    output_root: str = "output"
    log_file: Optional[str] = "scan_report.log"
    proxy_candidates: Tuple[str, ...] = field(default=DEFAULT_PROXY_CANDIDATES)
    probe_timeout: float = 3.0
    check_url: str = DEFAULT_CHECK_URL
    user_agent: str = DEFAULT_USER_AGENT
    require_anonymity: bool = False
    capture_snapshots: bool = True

    def __post_init__(self) -> None:
        if self.workers < 1:
            raise ValueError(f"workers must be >= 1, got {self.workers}")
        if self.http_timeout <= 0 or self.snapshot_timeout <= 0:
            raise ValueError("timeouts must be positive")
        if not self.proxy_candidates:
            raise ValueError("at least one proxy candidate is required")

    def with_overrides(self, **overrides) -> "ArchiverConfig":
        """Return a copy with every non-``None`` override applied."""
        values = {k: v for k, v in overrides.items() if v is not None}
        return replace(self, **values) if values else self


def _parse_bool(value: str) -> bool:
    return value.strip().lower() in {"1", "true", "yes", "on"}


def _parse_viewport(value: str) -> Tuple[int, int]:
    width, _, height = value.lower().partition("x")
    return int(width), int(height)


def _parse_candidates(value: str) -> Tuple[str, ...]:
    return tuple(part.strip() for part in value.split(",") if part.strip())


_ENV_FIELDS = {
    "ANONCRAWL_WORKERS": ("workers", int),
    "ANONCRAWL_HTTP_TIMEOUT": ("http_timeout", float),
    "ANONCRAWL_SNAPSHOT_TIMEOUT": ("snapshot_timeout", float),
    "ANONCRAWL_SETTLE_DELAY": ("settle_delay", float),
    "ANONCRAWL_VIEWPORT": ("viewport", _parse_viewport),
    "ANONCRAWL_OUTPUT_DIR": ("output_root", str),
    "ANONCRAWL_LOG_FILE": ("log_file", str),
    "ANONCRAWL_PROXIES": ("proxy_candidates", _parse_candidates),
    "ANONCRAWL_CHECK_URL": ("check_url", str),
    "ANONCRAWL_USER_AGENT": ("user_agent", str),
    "ANONCRAWL_REQUIRE_ANONYMITY": ("require_anonymity", _parse_bool),
    "ANONCRAWL_CAPTURE_SNAPSHOTS": ("capture_snapshots", _parse_bool),
}


def load_config_from_env(
    base: Optional[ArchiverConfig] = None,
    environ: Optional[Dict[str, str]] = None,
) -> ArchiverConfig:
    """Overlay ``ANONCRAWL_*`` environment variables onto *base*.

    Unparseable values are logged and ignored.
    """
    env = os.environ if environ is None else environ
    overrides = {}
    for variable, (name, convert) in _ENV_FIELDS.items():
        raw = env.get(variable)
        if raw is None or not raw.strip():
            continue
        try:
            overrides[name] = convert(raw.strip())
        except ValueError:
            LOGGER.warning("Ignoring invalid %s=%r", variable, raw)
    return (base or ArchiverConfig()).with_overrides(**overrides)
