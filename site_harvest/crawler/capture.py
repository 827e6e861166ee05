# site_harvest/crawler/capture.py
"""
Per-page capture: turns one loaded page into a stored record.
"""
from __future__ import annotations

import asyncio
import inspect
from dataclasses import dataclass
from typing import Optional

from site_harvest.config import CrawlConfig
from site_harvest.crawler.base import CrawlContext, PageHandle, PushData
from site_harvest.crawler.models import PageRecord, make_record
from site_harvest.logger import logger
from site_harvest.output.page_writer import PageWriter

DEFAULT_SELECTOR = "body"


def is_xpath(selector: str) -> bool:
    return selector.startswith("/")


async def wait_for_content(page: PageHandle, selector: str, timeout: int) -> None:
    """Wait until *selector* is present; raises SelectorTimeoutError otherwise."""
    if is_xpath(selector):
        await page.wait_for_xpath(selector, timeout)
    else:
        await page.wait_for_selector(selector, timeout)


async def get_page_text(page: PageHandle, selector: Optional[str] = None) -> str:
    """Text of the first node *selector* finds; the whole body by default."""
    selector = selector or DEFAULT_SELECTOR
    if is_xpath(selector):
        return await page.xpath_text(selector)
    return await page.css_text(selector)


@dataclass
class PageCounter:
    """Pages seen by one crawl session."""

    value: int = 0

    def increment(self) -> int:
        self.value += 1
        return self.value


class PageCapture:
    """Request handler run by the crawl engine for every loaded page."""

    def __init__(
        self,
        config: CrawlConfig,
        page_writer: PageWriter,
        counter: Optional[PageCounter] = None,
    ) -> None:
        self.config = config
        self.page_writer = page_writer
        self.counter = counter or PageCounter()

    async def __call__(self, context: CrawlContext) -> None:
        page = context.page
        title = await page.title()
        number = self.counter.increment()
        logger.info(
            "Crawling: Page %d / %d - URL: %s...",
            number,
            self.config.max_pages_to_crawl,
            context.loaded_url,
        )

        if self.config.selector:
            await wait_for_content(page, self.config.selector, self.config.wait_for_selector_timeout)

        html = await get_page_text(page, self.config.selector)
        record = make_record(title, context.loaded_url, html)

        self._save(record)
        await context.push_data(record)

        if self.config.on_visit_page is not None:
            await self._visit(page, context.push_data)

        if self.config.throttle and self.config.request_delay:
            await asyncio.sleep(self.config.request_delay / 1000)

        await context.enqueue_links(globs=self.config.match, exclude=self.config.exclude)

    def _save(self, record: PageRecord) -> None:
        try:
            self.page_writer.save(record)
        except OSError as exc:
            logger.error("Could not save page %s to its own file: %s", record["url"], exc)

    async def _visit(self, page: PageHandle, push_data: PushData) -> None:
        result = self.config.on_visit_page(page=page, push_data=push_data)
        if inspect.isawaitable(result):
            await result
