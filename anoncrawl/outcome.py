"""Data structures describing fetches and per-target outcomes."""

from __future__ import annotations

from collections import Counter
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Literal, Mapping, Optional

from .proxy import AnonymityReport, ProxyEndpoint

OutcomeKind = Literal[
    "success",
    "partial",
    "timeout",
    "network_error",
    "read_error",
    "write_error",
    "internal_error",
]

SUCCESS_KINDS = frozenset({"success", "partial"})


@dataclass(frozen=True)
class FetchResult:
    """Raw HTTP response for one target, body still transport-encoded."""

    url: str
    status_code: int
    headers: Mapping[str, str]
    body: bytes
    elapsed: float

    @property
    def content_encoding(self) -> Optional[str]:
        return self.headers.get("content-encoding")


@dataclass(frozen=True)
class RunOutcome:
    """Terminal status of one target's pipeline run."""

    target: str
    kind: OutcomeKind
    status_code: Optional[int] = None
    elapsed: float = 0.0
    artifact_dir: Optional[Path] = None
    error_message: Optional[str] = None

    @property
    def succeeded(self) -> bool:
        return self.kind in SUCCESS_KINDS

    def to_dict(self) -> Dict[str, Any]:
        return {
            "target": self.target,
            "kind": self.kind,
            "status_code": self.status_code,
            "elapsed": round(self.elapsed, 3),
            "artifact_dir": str(self.artifact_dir) if self.artifact_dir else None,
            "error_message": self.error_message,
        }


@dataclass
class RunSummary:
    """All outcomes of one archiving run, in completion order."""

    outcomes: List[RunOutcome] = field(default_factory=list)
    proxy: Optional[ProxyEndpoint] = None
    anonymity: Optional[AnonymityReport] = None

    def stats(self) -> Dict[str, int]:
        counts = Counter(outcome.kind for outcome in self.outcomes)
        return {
            "total_targets": len(self.outcomes),
            "successful_targets": sum(1 for o in self.outcomes if o.succeeded),
            "failed_targets": sum(1 for o in self.outcomes if not o.succeeded),
            **{f"{kind}_count": count for kind, count in sorted(counts.items())},
        }

    def for_target(self, target: str) -> Optional[RunOutcome]:
        for outcome in self.outcomes:
            if outcome.target == target:
                return outcome
        return None
