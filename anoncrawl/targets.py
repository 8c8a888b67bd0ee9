"""Target list loading."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Iterable, List, Union

from .errors import TargetListError

LOGGER = logging.getLogger(__name__)

_SKIP_PREFIXES = ("#", "-")


def parse_targets(lines: Iterable[str]) -> List[str]:
    """Keep non-blank lines that are not comments (``#``) or list markers (``-``)."""
    targets: List[str] = []
    for raw_line in lines:
        line = raw_line.strip()
        if not line or line.startswith(_SKIP_PREFIXES):
            continue
        targets.append(line)
    return targets


def load_targets(path: Union[str, Path]) -> List[str]:
    """Read the ordered target list from *path*.

    Raises:
        TargetListError: If the file cannot be opened or decoded.
    """
    target_path = Path(path).expanduser()
    try:
        with open(target_path, "r", encoding="utf-8") as fh:
            targets = parse_targets(fh)
    except (OSError, UnicodeDecodeError) as exc:
        raise TargetListError(f"Cannot read target list {target_path}: {exc}") from exc
    LOGGER.info("Loaded %d target(s) from %s", len(targets), target_path)
    return targets
