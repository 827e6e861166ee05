import time
from typing import Any, Dict, List

import pytest

from site_harvest.crawler.base import CrawlContext
from site_harvest.crawler.capture import PageCapture, PageCounter, get_page_text
from site_harvest.crawler.page import HtmlPage, SelectorTimeoutError
from site_harvest.output.page_writer import PageWriter

HTML = (
    "<html><head><title>Install</title></head><body>"
    "<div class='doc'>Install with pip.</div><footer>Footer</footer>"
    "</body></html>"
)
URL = "https://example.com/docs/install"


class Recorder:
    """Collects what the capture handler hands back to the engine."""

    def __init__(self) -> None:
        self.pushed: List[Dict[str, Any]] = []
        self.enqueued: List[Dict[str, Any]] = []

    async def push_data(self, record):
        self.pushed.append(record)

    async def enqueue_links(self, *, globs=(), exclude=()):
        self.enqueued.append({"globs": list(globs), "exclude": list(exclude)})
        return 0

    def context(self, html: str = HTML, url: str = URL) -> CrawlContext:
        return CrawlContext(
            request_url=url,
            loaded_url=url,
            page=HtmlPage(url, html),
            push_data=self.push_data,
            enqueue_links=self.enqueue_links,
        )


def make_capture(config, root) -> PageCapture:
    return PageCapture(config, PageWriter(config, root), PageCounter())


@pytest.mark.asyncio()
async def test_capture_pushes_record_and_enqueues_links(tmp_path, make_config):
    config = make_config(exclude=["https://example.com/docs/old/**"])
    capture = make_capture(config, tmp_path)
    recorder = Recorder()

    await capture(recorder.context())

    assert len(recorder.pushed) == 1
    record = recorder.pushed[0]
    assert record["title"] == "Install"
    assert record["url"] == URL
    assert "Install with pip." in record["html"]
    assert "Footer" in record["html"]
    assert recorder.enqueued == [
        {"globs": ["https://example.com/docs/**"], "exclude": ["https://example.com/docs/old/**"]}
    ]
    assert capture.counter.value == 1
    assert not (tmp_path / "pages").exists()


@pytest.mark.asyncio()
@pytest.mark.parametrize("selector", [".doc", "//div[@class='doc']"])
async def test_capture_uses_selector(tmp_path, make_config, selector):
    capture = make_capture(make_config(selector=selector), tmp_path)
    recorder = Recorder()

    await capture(recorder.context())

    assert recorder.pushed[0]["html"] == "Install with pip."


@pytest.mark.asyncio()
async def test_missing_selector_fails_the_page(tmp_path, make_config):
    capture = make_capture(make_config(selector="#absent", wait_for_selector_timeout=30), tmp_path)
    recorder = Recorder()

    with pytest.raises(SelectorTimeoutError):
        await capture(recorder.context())
    assert recorder.pushed == []
    assert recorder.enqueued == []


@pytest.mark.asyncio()
async def test_capture_saves_per_page_file(tmp_path, make_config):
    capture = make_capture(make_config(save_per_page=True), tmp_path)
    await capture(Recorder().context())

    assert (tmp_path / "pages" / "out" / "install.json").exists()


@pytest.mark.asyncio()
async def test_per_page_failure_does_not_stop_the_page(tmp_path, make_config, caplog, propagate_logs):
    class BrokenWriter(PageWriter):
        def save(self, record):
            raise PermissionError("read-only file system")

    config = make_config(save_per_page=True)
    capture = PageCapture(config, BrokenWriter(config, tmp_path))
    recorder = Recorder()

    await capture(recorder.context())

    assert len(recorder.pushed) == 1
    assert len(recorder.enqueued) == 1
    assert "read-only file system" in caplog.text


@pytest.mark.asyncio()
async def test_async_visitor_can_push_extra_records(tmp_path, make_config):
    seen = []

    async def visitor(*, page, push_data):
        seen.append(page.url)
        await push_data({"title": "extra", "url": page.url, "html": "", "kind": "hook"})

    capture = make_capture(make_config(on_visit_page=visitor), tmp_path)
    recorder = Recorder()
    await capture(recorder.context())

    assert seen == [URL]
    assert [r["title"] for r in recorder.pushed] == ["Install", "extra"]
    assert recorder.pushed[1]["kind"] == "hook"


@pytest.mark.asyncio()
async def test_sync_visitor_is_supported(tmp_path, make_config):
    seen = []

    def visitor(*, page, push_data):
        seen.append(page.url)

    capture = make_capture(make_config(on_visit_page=visitor), tmp_path)
    await capture(Recorder().context())
    assert seen == [URL]


@pytest.mark.asyncio()
async def test_throttle_delays_the_page(tmp_path, make_config):
    capture = make_capture(make_config(throttle=True, request_delay=50), tmp_path)
    start = time.perf_counter()
    await capture(Recorder().context())
    assert time.perf_counter() - start >= 0.05


@pytest.mark.asyncio()
async def test_counter_is_shared_per_session(tmp_path, make_config):
    counter = PageCounter()
    config = make_config()
    first = PageCapture(config, PageWriter(config, tmp_path), counter)
    other = PageCapture(config, PageWriter(config, tmp_path))

    await first(Recorder().context())
    await first(Recorder().context())
    await other(Recorder().context())

    assert counter.value == 2
    assert other.counter.value == 1


@pytest.mark.asyncio()
async def test_get_page_text_defaults_to_body():
    page = HtmlPage(URL, HTML)
    assert "Footer" in await get_page_text(page)
    assert await get_page_text(page, "footer") == "Footer"
