import json
from collections.abc import AsyncIterator
from typing import Dict

import pytest
from aiohttp import web

from site_harvest.core import CrawlSession
from site_harvest.crawler.base import CrawlContext
from site_harvest.crawler.crawler import AsyncCrawler
from site_harvest.crawler.models import CrawlStats
from site_harvest.crawler.page import HtmlPage

PAGES: Dict[str, str] = {
    "https://example.com/docs/": "<html><head><title>Home</title></head><body>Welcome</body></html>",
    "https://example.com/docs/guide/setup": "<html><head><title>Setup</title></head><body>Run it</body></html>",
    "https://example.com/docs/broken": "<html><head><title>Broken</title></head><body></body></html>",
}


class FakeEngine:
    """Serves fixed pages to the handler without any network access."""

    def __init__(self, config, push_data, pages=PAGES) -> None:
        self.config = config
        self.push_data = push_data
        self.pages = pages

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc, tb):
        return None

    async def run(self, seeds, handler) -> CrawlStats:
        stats = CrawlStats()

        async def enqueue_links(*, globs=(), exclude=()):
            return 0

        for url in list(seeds) + [u for u in self.pages if u not in seeds]:
            context = CrawlContext(url, url, HtmlPage(url, self.pages[url]), self.push_data, enqueue_links)
            try:
                await handler(context)
                stats.requests_finished += 1
            except TimeoutError:
                stats.requests_failed += 1
        return stats


def no_network(config, push_data):
    raise AssertionError("the crawl engine must not be created")


@pytest.mark.asyncio()
async def test_no_crawl_env_skips_network(tmp_path, monkeypatch, make_config):
    monkeypatch.setenv("NO_CRAWL", "true")
    session = CrawlSession(make_config(), root=tmp_path, engine_factory=no_network)
    await session.store.push({"title": "kept", "url": "https://example.com/docs/", "html": ""})

    assert await session.crawl() is None
    assert len(session.store) == 1
    path = session.write()
    assert json.loads(path.read_text(encoding="utf-8"))[0]["title"] == "kept"


@pytest.mark.asyncio()
async def test_run_crawls_and_writes(tmp_path, make_config):
    session = CrawlSession(make_config(), root=tmp_path, engine_factory=FakeEngine)
    path = await session.run()

    assert path == tmp_path / "out-1.json"
    records = json.loads(path.read_text(encoding="utf-8"))
    assert [r["title"] for r in records] == ["Home", "Setup", "Broken"]
    assert records[1] == {"title": "Setup", "url": "https://example.com/docs/guide/setup", "html": "Run it"}
    assert session.pages_crawled == 3
    assert session.stats.requests_finished == 3


@pytest.mark.asyncio()
async def test_per_page_disabled_leaves_no_files(tmp_path, make_config):
    session = CrawlSession(make_config(save_per_page=False), root=tmp_path, engine_factory=FakeEngine)
    await session.run()

    assert len(session.store) == 3
    assert not (tmp_path / "pages").exists()


@pytest.mark.asyncio()
async def test_per_page_enabled_writes_one_file_per_page(tmp_path, make_config):
    session = CrawlSession(make_config(save_per_page=True), root=tmp_path, engine_factory=FakeEngine)
    await session.run()

    names = sorted(p.name for p in (tmp_path / "pages" / "out").iterdir())
    assert names == ["broken.json", "docs.json", "guide_setup.json"]


@pytest.mark.asyncio()
async def test_pages_failing_the_selector_produce_no_record(tmp_path, make_config):
    config = make_config(selector="body *", wait_for_selector_timeout=10)
    pages = {
        "https://example.com/docs/": "<html><body><p>Welcome</p></body></html>",
        "https://example.com/docs/empty": "<html><body></body></html>",
    }

    def engine(cfg, push_data):
        return FakeEngine(cfg, push_data, pages)

    session = CrawlSession(config, root=tmp_path, engine_factory=engine)
    await session.run()

    stored = list(session.store.iter_records())
    assert [r["url"] for r in stored] == ["https://example.com/docs/"]
    assert session.stats.requests_failed == 1


@pytest.mark.asyncio()
async def test_crawl_purges_previous_records(tmp_path, make_config):
    session = CrawlSession(make_config(), root=tmp_path, engine_factory=FakeEngine)
    await session.store.push({"title": "stale", "url": "https://example.com/old", "html": ""})
    await session.crawl()

    assert "stale" not in [r["title"] for r in session.store.iter_records()]


@pytest.mark.asyncio()
async def test_sessions_keep_separate_counters(tmp_path, make_config):
    first = CrawlSession(make_config(), root=tmp_path / "a", engine_factory=FakeEngine)
    second = CrawlSession(make_config(), root=tmp_path / "b", engine_factory=FakeEngine)
    await first.crawl()
    await first.crawl()
    await second.crawl()

    assert first.pages_crawled == 6
    assert second.pages_crawled == 3


def test_write_fails_on_malformed_record(tmp_path, make_config):
    session = CrawlSession(make_config(), root=tmp_path)
    session.store.directory.mkdir(parents=True)
    (session.store.directory / "000000001.json").write_text("not json", encoding="utf-8")

    with pytest.raises(ValueError):
        session.write()


def test_write_without_records_returns_none(tmp_path, make_config):
    assert CrawlSession(make_config(), root=tmp_path).write() is None


async def _serve_app(app: web.Application, port: int) -> AsyncIterator[str]:
    runner = web.AppRunner(app)
    await runner.setup()
    site = web.TCPSite(runner, "localhost", port)
    await site.start()
    try:
        yield f"http://localhost:{port}"
    finally:
        await runner.cleanup()


@pytest.mark.asyncio()
async def test_end_to_end_with_http_crawler(tmp_path, unused_tcp_port, make_config):
    app = web.Application()
    body = "word " * 300

    async def root(_):
        links = "".join(f'<a href="/docs/p{i}">P{i}</a>' for i in range(1, 6))
        return web.Response(text=f"<title>Root</title><main>{links}</main>", content_type="text/html")

    async def page(request):
        return web.Response(text=f"<title>{request.path}</title><main>{body}</main>", content_type="text/html")

    app.router.add_get("/docs/", root)
    for i in range(1, 6):
        app.router.add_get(f"/docs/p{i}", page)

    def engine(cfg, push_data):
        return AsyncCrawler(cfg, push_data, retry_backoff=0.01)

    async for base in _serve_app(app, unused_tcp_port):
        config = make_config(
            url=f"{base}/docs/",
            match=f"{base}/docs/**",
            selector="main",
            max_file_size=0.002,
            save_per_page=True,
        )
        session = CrawlSession(config, root=tmp_path, engine_factory=engine)
        last = await session.run()

    outputs = sorted(tmp_path.glob("out-*.json"))
    assert last in outputs
    assert len(outputs) > 1
    combined = [r for p in outputs for r in json.loads(p.read_text(encoding="utf-8"))]
    assert len(combined) == 6
    assert {r["url"] for r in combined} == {f"{base}/docs/"} | {f"{base}/docs/p{i}" for i in range(1, 6)}
    assert sorted(p.name for p in (tmp_path / "pages" / "out").iterdir()) == [
        "docs.json", "p1.json", "p2.json", "p3.json", "p4.json", "p5.json"
    ]
