# site_harvest/crawler/base.py
"""
The narrow seam between the capture logic and whatever loads the pages.

An engine takes seed URLs and a handler and calls the handler once per
successfully loaded page, honouring a page ceiling, a concurrency ceiling and
retrying failed loads. :class:`site_harvest.crawler.crawler.AsyncCrawler` is
the aiohttp implementation; a headless-browser pool can satisfy the same
protocol.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Iterable, Optional, Protocol, Sequence

from site_harvest.crawler.models import CrawlStats, PageRecord

PushData = Callable[[PageRecord], Awaitable[None]]


class PageHandle(Protocol):
    """What the capture logic needs from a loaded page."""

    url: str

    async def title(self) -> str: ...

    async def wait_for_selector(self, selector: str, timeout: int) -> None: ...

    async def wait_for_xpath(self, xpath: str, timeout: int) -> None: ...

    async def css_text(self, selector: str) -> str: ...

    async def xpath_text(self, xpath: str) -> str: ...


class EnqueueLinks(Protocol):
    async def __call__(
        self, *, globs: Sequence[str] = (), exclude: Sequence[str] = ()
    ) -> int: ...


class PageVisitor(Protocol):
    """User hook run for every captured page; may push extra records."""

    def __call__(self, *, page: PageHandle, push_data: PushData) -> Optional[Awaitable[Any]]: ...


@dataclass(slots=True)
class CrawlContext:
    """Everything a handler gets for one loaded page."""

    request_url: str
    loaded_url: str
    page: PageHandle
    push_data: PushData
    enqueue_links: EnqueueLinks


Handler = Callable[[CrawlContext], Awaitable[None]]


class CrawlEngine(Protocol):
    """Used as ``async with engine: await engine.run(seeds, handler)``."""

    async def __aenter__(self) -> CrawlEngine: ...

    async def __aexit__(self, exc_type: Any, exc: Any, tb: Any) -> None: ...

    async def run(self, seeds: Iterable[str], handler: Handler) -> CrawlStats: ...
