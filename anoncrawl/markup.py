"""Pattern-based helpers for archived markup.

Everything here works on raw text with regular expressions, not on a parsed
DOM. The pipeline receives these functions as plain callables so a
parser-based implementation can be dropped in without touching it.

The sanitizer is best effort. It does not touch inline event handlers
(``onclick=...``), ``javascript:`` URIs outside ``href``/``src``, ``srcset``,
CSS ``url(...)`` references or ``<meta http-equiv="refresh">`` redirects.
"""

from __future__ import annotations

import re
from typing import List

OFFLINE_MARKER = "<!--\nOFFLINE ARCHIVE\n-->"
UNKNOWN_TITLE = "unknown_title"

BASE_TAG = re.compile(r"<base[^>]*>", re.IGNORECASE)
HREF_ATTR = re.compile(r"""href=["'][^"']+["']""", re.IGNORECASE)
SRC_ATTR = re.compile(r"""src=["'][^"']+["']""", re.IGNORECASE)
TITLE_ELEMENT = re.compile(r"<title>(.*?)</title>", re.IGNORECASE | re.DOTALL)
UNSAFE_SLUG_CHARS = re.compile(r"[^a-zA-Z0-9 _\-]")
ABSOLUTE_HREF = re.compile(r"""href=["'](http[^"']+)""")


def sanitize_html(html: str) -> str:
    """Neutralize live navigation and stamp the offline marker."""
    html = BASE_TAG.sub("", html)
    html = HREF_ATTR.sub('href="#"', html)
    html = SRC_ATTR.sub('src=""', html)
    return OFFLINE_MARKER + "\n" + html


def extract_title_slug(html: str) -> str:
    """Derive a filesystem-safe label from the first ``<title>`` element."""
    match = TITLE_ELEMENT.search(html)
    if not match:
        return UNKNOWN_TITLE
    title = UNSAFE_SLUG_CHARS.sub("", match.group(1).strip())
    slug = title.replace(" ", "_")
    return slug or UNKNOWN_TITLE


def extract_links(html: str) -> List[str]:
    """Return distinct absolute ``http(s)`` link targets in first-seen order."""
    seen: set[str] = set()
    links: List[str] = []
    for href in ABSOLUTE_HREF.findall(html):
        if href in seen:
            continue
        seen.add(href)
        links.append(href)
    return links
