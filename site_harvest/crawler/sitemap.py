# File: site_harvest/crawler/sitemap.py
"""site_harvest.crawler.sitemap: seeding a crawl from sitemap.xml."""

from __future__ import annotations

import re
from typing import List

from aiohttp import ClientSession
from lxml import etree

from site_harvest.logger import logger

_SITEMAP_URL_RE = re.compile(r"sitemap.*\.xml$")


def is_sitemap_url(url: str) -> bool:
    """True for entry points such as ``https://site/sitemap.xml`` or ``sitemap-pages.xml``."""
    return bool(_SITEMAP_URL_RE.search(url))


def parse_sitemap(xml_content: str) -> List[str]:
    """Parse sitemap XML and return the URLs of its ``<loc>`` tags.

    Example:
    ```python
    urls = parse_sitemap(Path("sitemap.xml").read_text(encoding="utf-8"))
    ```
    """
    parser = etree.XMLParser(ns_clean=True, recover=True)
    root = etree.fromstring(xml_content.encode("utf-8"), parser=parser)
    if root is None:
        return []
    locs = root.findall(".//{*}loc")
    return [loc.text.strip() for loc in locs if loc.text and loc.text.strip()]


async def download_list_of_urls(session: ClientSession, url: str) -> List[str]:
    """Fetch the sitemap at *url* and return the page URLs it lists."""
    async with session.get(url) as resp:
        resp.raise_for_status()
        text = await resp.text()
    urls = parse_sitemap(text)
    logger.info("Sitemap %s lists %d URLs", url, len(urls))
    return urls
