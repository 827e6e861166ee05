# File: site_harvest/crawler/__init__.py
"""site_harvest.crawler: crawl engine, page handles and the per-page capture handler."""

from __future__ import annotations

from site_harvest.crawler.base import CrawlContext, CrawlEngine, PageHandle, PageVisitor
from site_harvest.crawler.capture import PageCapture, PageCounter, get_page_text
from site_harvest.crawler.crawler import AsyncCrawler
from site_harvest.crawler.models import CrawlStats, PageRecord, make_record
from site_harvest.crawler.page import HtmlPage, SelectorTimeoutError

__all__ = [
    "AsyncCrawler",
    "CrawlContext",
    "CrawlEngine",
    "CrawlStats",
    "HtmlPage",
    "PageCapture",
    "PageCounter",
    "PageHandle",
    "PageRecord",
    "PageVisitor",
    "SelectorTimeoutError",
    "get_page_text",
    "make_record",
]
