# site_harvest/crawler/models.py
"""
Data models shared by the crawler and the output writers.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict

#: A page record is a plain JSON object: ``title``, ``url``, ``html`` and
#: whatever extra keys a page hook attaches.
PageRecord = Dict[str, Any]


@dataclass(slots=True)
class CrawlStats:
    """Summary of a finished crawl run."""

    requests_finished: int = 0
    requests_failed: int = 0
    duration: float = 0.0


def make_record(title: str, url: str, html: str, **extra: Any) -> PageRecord:
    """Build the record stored for one successfully loaded page."""
    record: PageRecord = {"title": title, "url": url, "html": html}
    record.update(extra)
    return record
