"""Exception hierarchy for the archiver.

Fatal errors abort the run before any target is scheduled. Per-target errors
are raised by the transport, decoder and snapshot adapters and converted into
:class:`~anoncrawl.outcome.RunOutcome` values by the pipeline.
"""

from __future__ import annotations


class ArchiveError(Exception):
    """Base class for all archiver errors."""


# ---------------------------------------------------------------------------
# Fatal (run-level)
# ---------------------------------------------------------------------------


class TargetListError(ArchiveError):
    """Raised when the target list cannot be read."""


class ProxyUnavailableError(ArchiveError):
    """Raised when no SOCKS proxy endpoint answers on any candidate port."""


class AnonymityCheckError(ArchiveError):
    """Raised when a required anonymity check fails."""


# ---------------------------------------------------------------------------
# Per-target (isolated)
# ---------------------------------------------------------------------------


class FetchError(ArchiveError):
    """Raised when the HTTP request for a target fails."""

    def __init__(self, message: str, url: str = "", *, timed_out: bool = False):
        self.url = url
        self.timed_out = timed_out
        super().__init__(message)


class ReadError(ArchiveError):
    """Raised when a response body cannot be read or decompressed."""


class SnapshotError(ArchiveError):
    """Raised when the headless browser fails to capture a target."""

    def __init__(self, message: str, url: str = ""):
        self.url = url
        super().__init__(message)
