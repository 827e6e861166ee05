from __future__ import annotations

import asyncio
import random
import time
from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import AsyncIterator, Callable, Iterable, List, Optional, Sequence, Set
from urllib.parse import urldefrag

from aiohttp import ClientError, ClientSession, ClientTimeout, TCPConnector

from site_harvest.config import CrawlConfig
from site_harvest.crawler.base import CrawlContext, EnqueueLinks, Handler, PushData
from site_harvest.crawler.links import extract_links, filter_links
from site_harvest.crawler.models import CrawlStats, PageRecord
from site_harvest.crawler.page import HtmlPage
from site_harvest.logger import logger

__all__ = ("AsyncCrawler", "SessionPool")

_HTML_TYPES = ("text/html", "application/xhtml+xml")


@dataclass
class _Slot:
    session: ClientSession
    requests: int = 0
    active: int = 0


class SessionPool:
    """
    HTTP sessions playing the part of browser instances: each serves a fixed
    number of workers and is retired after a number of requests.
    """

    def __init__(self, factory: Callable[[], ClientSession], size: int, retire_after: int) -> None:
        self._factory = factory
        self._size = max(1, size)
        self._retire_after = retire_after
        self._slots: List[_Slot] = []
        self._retiring: List[_Slot] = []
        self.retired = 0

    def open(self) -> None:
        self._slots = [_Slot(self._factory()) for _ in range(self._size)]

    @asynccontextmanager
    async def session(self, index: int) -> AsyncIterator[ClientSession]:
        index %= len(self._slots)
        slot = self._slots[index]
        if slot.requests >= self._retire_after:
            slot = await self._retire(index)
        slot.requests += 1
        slot.active += 1
        try:
            yield slot.session
        finally:
            slot.active -= 1
            if slot in self._retiring and slot.active == 0:
                self._retiring.remove(slot)
                await slot.session.close()

    async def _retire(self, index: int) -> _Slot:
        old = self._slots[index]
        self._slots[index] = _Slot(self._factory())
        self.retired += 1
        if old.active == 0:
            await old.session.close()
        else:
            self._retiring.append(old)
        return self._slots[index]

    async def close(self) -> None:
        for slot in self._slots + self._retiring:
            if not slot.session.closed:
                await slot.session.close()
        self._slots = []
        self._retiring = []


class AsyncCrawler:
    """Asynchronous HTTP crawler: bounded worker pool, page ceiling and retries."""
    _RETRY_STATUS: Sequence[int] = tuple(range(500, 600)) + (429,)

    def __init__(self, config: CrawlConfig, push_data: PushData, retry_backoff: float = 1.0) -> None:
        self.config = config
        self.push_data = push_data
        self.retry_backoff = retry_backoff
        self.retry_times: int = config.max_request_retries
        self.concurrency: int = config.max_concurrency
        self.visited: Set[str] = set()
        self.stats = CrawlStats()
        self.logger = logger
        self._handled = 0
        per_session = config.max_open_pages_per_browser
        self.pool = SessionPool(
            self._new_session,
            size=-(-self.concurrency // per_session),
            retire_after=config.retire_instance_after_request_count,
        )
        self._per_session = per_session

    async def __aenter__(self) -> AsyncCrawler:
        self.pool.open()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.pool.close()

    def _new_session(self) -> ClientSession:
        return ClientSession(
            timeout=ClientTimeout(total=self.config.navigation_timeout_secs),
            connector=TCPConnector(limit=self._per_session),
            headers={"User-Agent": self.config.user_agent},
            cookies={c.name: c.value for c in self.config.cookie},
            raise_for_status=False,
        )

    async def run(self, seeds: Iterable[str], handler: Handler) -> CrawlStats:
        start = time.monotonic()
        queue: asyncio.Queue[str] = asyncio.Queue()
        for url in seeds:
            self._enqueue(queue, url)
        self.logger.info("Crawl started with %d seed URL(s)", queue.qsize())
        workers = [
            asyncio.create_task(self._worker(i, queue, handler)) for i in range(self.concurrency)
        ]
        await queue.join()
        for w in workers:
            w.cancel()
        await asyncio.gather(*workers, return_exceptions=True)
        self.stats.duration = time.monotonic() - start
        self.logger.info(
            "Crawl finished: %d pages, %d failed, in %.2f s",
            self.stats.requests_finished,
            self.stats.requests_failed,
            self.stats.duration,
        )
        return self.stats

    def _enqueue(self, queue: asyncio.Queue[str], url: str) -> bool:
        url, _ = urldefrag(url)
        if url in self.visited:
            return False
        self.visited.add(url)
        queue.put_nowait(url)
        return True

    async def _worker(self, worker_id: int, queue: asyncio.Queue[str], handler: Handler) -> None:
        while True:
            url = await queue.get()
            try:
                if self._handled >= self.config.max_pages_to_crawl:
                    continue
                self._handled += 1
                await self._process(worker_id, url, queue, handler)
            finally:
                queue.task_done()

    async def _process(
        self, worker_id: int, url: str, queue: asyncio.Queue[str], handler: Handler
    ) -> None:
        attempts = 0
        while True:
            # records of a failed attempt are discarded, the retry pushes them again
            pending: List[PageRecord] = []
            try:
                page = await self._fetch(worker_id, url)
                if page is None:
                    return
                context = CrawlContext(
                    request_url=url,
                    loaded_url=page.url,
                    page=page,
                    push_data=self._buffer(pending),
                    enqueue_links=self._link_enqueuer(page, queue),
                )
                await asyncio.wait_for(handler(context), timeout=self.config.request_handler_timeout_secs)
                break
            except Exception as exc:
                attempts += 1
                if attempts > self.retry_times:
                    self.stats.requests_failed += 1
                    self.logger.error("Request %s failed %d time(s), giving up: %s", url, attempts, exc)
                    return
                backoff = min(60.0, self.retry_backoff * (2**attempts + random.random()))
                self.logger.warning(
                    "Retry %d/%d for %s after %.2f s: %s", attempts, self.retry_times, url, backoff, exc
                )
                await asyncio.sleep(backoff)

        for record in pending:
            await self.push_data(record)
        self.stats.requests_finished += 1

    @staticmethod
    def _buffer(pending: List[PageRecord]) -> PushData:
        async def push_data(record: PageRecord) -> None:
            pending.append(record)

        return push_data

    async def _fetch(self, worker_id: int, url: str) -> Optional[HtmlPage]:
        async with self.pool.session(worker_id // self._per_session) as session:
            async with session.get(url) as resp:
                status = resp.status
                if status in self._RETRY_STATUS:
                    raise ClientError(f"retryable status {status}")
                if status >= 400:
                    self.logger.warning("Skipping %s: HTTP %d", url, status)
                    return None
                mime = resp.headers.get("Content-Type", "").split(";", 1)[0].strip().lower()
                if mime not in _HTML_TYPES:
                    self.logger.debug("Skipping %s: content type %r", url, mime)
                    return None
                text = await resp.text()
                return HtmlPage(str(resp.url), text)

    def _link_enqueuer(self, page: HtmlPage, queue: asyncio.Queue[str]) -> EnqueueLinks:
        async def enqueue_links(*, globs: Sequence[str] = (), exclude: Sequence[str] = ()) -> int:
            links = filter_links(
                extract_links(page.content, page.url),
                page.url,
                globs=globs,
                exclude=exclude,
                resource_exclusions=self.config.resource_exclusions,
            )
            added = sum(1 for link in links if self._enqueue(queue, link))
            self.logger.debug("Enqueued %d new link(s) from %s", added, page.url)
            return added

        return enqueue_links
