# site_harvest/crawler/links.py
"""
Link discovery for the crawl queue.
"""
from __future__ import annotations

from typing import Iterable, List, Sequence
from urllib.parse import urldefrag, urljoin, urlparse

from bs4 import BeautifulSoup
from bs4.element import Tag

from site_harvest.matcher import matches_any


def extract_links(html: str, base_url: str) -> List[str]:
    """
    Absolute HTTP(S) links of all ``<a href>`` tags, fragments removed,
    in document order without duplicates. Ignores mailto: and javascript:.
    """
    soup = BeautifulSoup(html, "html.parser")
    seen: set[str] = set()
    links: List[str] = []
    for tag in soup.find_all("a", href=True):
        if not isinstance(tag, Tag):
            continue
        href_val = tag.get("href")
        if not isinstance(href_val, str):
            continue
        raw = href_val.strip()
        if not raw or raw.startswith(("mailto:", "javascript:", "tel:")):
            continue
        absolute, _ = urldefrag(urljoin(base_url, raw))
        if urlparse(absolute).scheme not in ("http", "https"):
            continue
        if absolute not in seen:
            seen.add(absolute)
            links.append(absolute)
    return links


def has_excluded_extension(url: str, extensions: Iterable[str]) -> bool:
    """True when the URL path ends with one of the resource *extensions*."""
    path = urlparse(url).path.lower()
    return any(path.endswith(f".{ext}") for ext in extensions)


def filter_links(
    links: Iterable[str],
    base_url: str,
    globs: Sequence[str] = (),
    exclude: Sequence[str] = (),
    resource_exclusions: Sequence[str] = (),
) -> List[str]:
    """
    Keep links matching any include glob (same host as *base_url* when no
    globs are given) and no exclude glob or excluded resource extension.
    """
    host = urlparse(base_url).netloc
    kept: List[str] = []
    for link in links:
        if globs:
            if not matches_any(link, globs):
                continue
        elif urlparse(link).netloc != host:
            continue
        if exclude and matches_any(link, exclude):
            continue
        if resource_exclusions and has_excluded_extension(link, resource_exclusions):
            continue
        kept.append(link)
    return kept
