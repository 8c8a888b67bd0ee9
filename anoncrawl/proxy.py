"""SOCKS proxy discovery and the anonymity self-check.

Both run once, before any target is scheduled. Discovery failure is fatal.
The anonymity check only observes: it reports what the check endpoint says
and leaves the decision to the caller (see ``ArchiverConfig.require_anonymity``).
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Dict, Iterable, Optional

import httpx

from .errors import ProxyUnavailableError

LOGGER = logging.getLogger(__name__)


@dataclass(frozen=True)
class ProxyEndpoint:
    """A reachable local SOCKS5 endpoint."""

    host: str
    port: int

    @classmethod
    def parse(cls, address: str) -> "ProxyEndpoint":
        host, sep, port = address.strip().rpartition(":")
        if not sep or not host:
            raise ValueError(f"Expected host:port, got {address!r}")
        return cls(host=host, port=int(port))

    @property
    def address(self) -> str:
        return f"{self.host}:{self.port}"

    @property
    def url(self) -> str:
        return f"socks5://{self.address}"


async def check_port(endpoint: ProxyEndpoint, timeout: float = 3.0) -> bool:
    """Return True if a TCP connection to *endpoint* succeeds within *timeout*."""
    try:
        _, writer = await asyncio.wait_for(
            asyncio.open_connection(endpoint.host, endpoint.port), timeout
        )
    except (OSError, asyncio.TimeoutError):
        return False
    writer.close()
    try:
        await writer.wait_closed()
    except OSError:
        pass
    return True


async def discover_proxy(
    candidates: Iterable[str], *, timeout: float = 3.0
) -> ProxyEndpoint:
    """Probe *candidates* in order and return the first one that accepts.

    Raises:
        ProxyUnavailableError: If none of the candidates is reachable.
    """
    tried = []
    for candidate in candidates:
        endpoint = ProxyEndpoint.parse(candidate)
        tried.append(endpoint.address)
        if await check_port(endpoint, timeout):
            LOGGER.info("[INFO] Tor active: %s", endpoint.address)
            return endpoint
        LOGGER.debug("No SOCKS proxy on %s", endpoint.address)
    raise ProxyUnavailableError(
        f"No SOCKS5 proxy reachable (tried {', '.join(tried) or 'nothing'})"
    )


@dataclass(frozen=True)
class AnonymityReport:
    """What the check endpoint saw of our traffic."""

    ok: bool
    is_tor: Optional[bool] = None
    ip: Optional[str] = None
    raw: str = ""
    error: Optional[str] = None

    @property
    def anonymous(self) -> bool:
        return self.ok and bool(self.is_tor)


async def verify_anonymity(
    client: httpx.AsyncClient, check_url: str, *, timeout: float = 25.0
) -> AnonymityReport:
    """Ask *check_url* whether our requests arrive through Tor.

    Never raises for network or payload problems; they are reported in the
    returned :class:`AnonymityReport` instead.
    """
    try:
        response = await client.get(check_url, timeout=timeout)
        response.raise_for_status()
    except httpx.HTTPError as exc:
        LOGGER.warning("[TOR] IP verification failed: %s", exc)
        return AnonymityReport(ok=False, error=str(exc))

    raw = response.text
    LOGGER.info("[TOR] %s: %s", check_url, raw.strip())
    try:
        payload: Dict[str, Any] = response.json()
    except ValueError:
        return AnonymityReport(ok=True, raw=raw, error="non-JSON response")
    if not isinstance(payload, dict):
        return AnonymityReport(ok=True, raw=raw, error="unexpected payload")

    is_tor = payload.get("IsTor")
    return AnonymityReport(
        ok=True,
        is_tor=is_tor if isinstance(is_tor, bool) else None,
        ip=payload.get("IP"),
        raw=raw,
    )
