# File: site_harvest/core.py
"""site_harvest.core: one crawl-and-write run.

The crawl phase is concurrent and feeds the record store; the write phase
runs afterwards as a single sequential pass over the store.
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import Callable, List, Optional, Union

from aiohttp import ClientSession, ClientTimeout

from site_harvest.config import CrawlConfig
from site_harvest.crawler.base import CrawlEngine, PushData
from site_harvest.crawler.capture import PageCapture, PageCounter
from site_harvest.crawler.crawler import AsyncCrawler
from site_harvest.crawler.models import CrawlStats
from site_harvest.crawler.sitemap import download_list_of_urls, is_sitemap_url
from site_harvest.logger import log_phase, logger
from site_harvest.output.batch_writer import combine_into_batches
from site_harvest.output.page_writer import PageWriter
from site_harvest.storage import DatasetStore
from site_harvest.tokens import TokenEstimator

__all__ = ["CrawlSession", "EngineFactory", "NO_CRAWL_ENV", "crawl_disabled"]

EngineFactory = Callable[[CrawlConfig, PushData], CrawlEngine]

NO_CRAWL_ENV = "NO_CRAWL"


def crawl_disabled() -> bool:
    """``NO_CRAWL=true`` skips the network phase entirely."""
    return os.environ.get(NO_CRAWL_ENV) == "true"


class CrawlSession:
    """Facade for the CLI and tests: crawl into the store, then combine the store into output files."""

    def __init__(
        self,
        config: CrawlConfig,
        root: Union[str, Path, None] = None,
        engine_factory: Optional[EngineFactory] = None,
        estimator: Optional[TokenEstimator] = None,
    ) -> None:
        self.config = config
        self.root = Path(root) if root is not None else Path.cwd()
        self.engine_factory: EngineFactory = engine_factory or AsyncCrawler
        self.estimator = estimator
        self.store = DatasetStore(self.root)
        self.page_writer = PageWriter(config, self.root)
        self.counter = PageCounter()
        self.stats: Optional[CrawlStats] = None

    @property
    def pages_crawled(self) -> int:
        return self.counter.value

    async def resolve_seeds(self) -> List[str]:
        """The start URL, or every URL its sitemap lists."""
        url = str(self.config.url)
        if not is_sitemap_url(url):
            return [url]
        async with ClientSession(
            timeout=ClientTimeout(total=self.config.navigation_timeout_secs),
            headers={"User-Agent": self.config.user_agent},
        ) as session:
            return await download_list_of_urls(session, url)

    async def crawl(self) -> Optional[CrawlStats]:
        with log_phase("crawl"):
            if crawl_disabled():
                logger.info("%s=true, skipping the crawl", NO_CRAWL_ENV)
                return None

            self.store.purge()
            seeds = await self.resolve_seeds()
            capture = PageCapture(self.config, self.page_writer, self.counter)
            engine = self.engine_factory(self.config, self.store.push)
            async with engine:
                self.stats = await engine.run(seeds, capture)
            return self.stats

    def write(self) -> Optional[Path]:
        """Combine the stored records into output files; returns the last file written."""
        with log_phase("write"):
            logger.info("Found %d files to combine...", len(self.store))
            return combine_into_batches(
                self.store.iter_records(), self.config, root=self.root, estimator=self.estimator
            )

    async def run(self) -> Optional[Path]:
        await self.crawl()
        return self.write()
