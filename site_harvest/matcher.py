# File: site_harvest/matcher.py
"""site_harvest.matcher: glob patterns with ``**`` wildcards applied to URLs.

The same patterns decide which discovered links are followed and how a page's
URL turns into a file name.
"""

from __future__ import annotations

import re
from functools import lru_cache
from typing import Iterable, List, Optional, Sequence, Union
from urllib.parse import urlparse

__all__: Sequence[str] = (
    "Patterns",
    "as_patterns",
    "capture_regex",
    "glob_to_regex",
    "matches_any",
    "extract_filename",
)

Patterns = Union[str, Iterable[str]]

_WILDCARD_RE = re.compile(r"\*\*|\*")


def as_patterns(patterns: Patterns) -> List[str]:
    """Accept a single pattern or any iterable of them."""
    if isinstance(patterns, str):
        return [patterns]
    return list(patterns)


def _translate(pattern: str, multi: str) -> str:
    parts: List[str] = []
    pos = 0
    for token in _WILDCARD_RE.finditer(pattern):
        parts.append(re.escape(pattern[pos:token.start()]))
        parts.append(multi if token.group() == "**" else "[^/]*")
        pos = token.end()
    parts.append(re.escape(pattern[pos:]))
    return "".join(parts)


@lru_cache(maxsize=256)
def capture_regex(pattern: str) -> re.Pattern[str]:
    """Unanchored regex for *pattern*: every ``**`` is a capturing ``(.+)``, a single ``*`` stays within one segment."""
    return re.compile(_translate(pattern, "(.+)"))


@lru_cache(maxsize=256)
def glob_to_regex(pattern: str) -> re.Pattern[str]:
    """Anchored regex matching whole URLs against a link-following glob."""
    return re.compile(f"^{_translate(pattern, '.*')}$")


def matches_any(url: str, patterns: Patterns) -> bool:
    """True when *url* matches at least one glob of *patterns*."""
    return any(glob_to_regex(p).match(url) for p in as_patterns(patterns))


def _last_segment(url: str) -> str:
    segments = [s for s in urlparse(url).path.split("/") if s]
    return segments[-1] if segments else "index"


def _clean(captured: str) -> str:
    return captured.strip("/").replace("/", "_").lower()


def extract_filename(url: str, patterns: Patterns) -> str:
    """Derive a file name stem for *url* from the first pattern that matches it.

    The text captured by the pattern's first ``**`` is stripped of leading and
    trailing slashes, inner slashes become underscores, and the result is
    lowercased. Without a usable capture the last path segment of the URL is
    used, or ``"index"`` when the path is empty.
    """
    matched: Optional[re.Match[str]] = None
    for pattern in as_patterns(patterns):
        matched = capture_regex(pattern).search(url)
        if matched:
            break

    if matched and matched.re.groups and matched.group(1):
        stem = _clean(matched.group(1))
        if stem:
            return stem
    return _last_segment(url)
