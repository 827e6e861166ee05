# site_harvest/crawler/page.py
"""
Page handle over an already downloaded HTML document.

CSS selectors go through BeautifulSoup, XPath expressions through lxml.
Waiting for a selector moves Idle -> Waiting -> Found or TimedOut; a static
document never changes, so the wait is a poll that either succeeds at once
or runs out the timeout and raises :class:`SelectorTimeoutError`.
"""
from __future__ import annotations

import asyncio
import time
from enum import Enum
from typing import Callable, Optional

import lxml.html
from bs4 import BeautifulSoup
from lxml import etree

__all__ = ("HtmlPage", "SelectorTimeoutError", "WaitState")

POLL_INTERVAL = 0.05


class SelectorTimeoutError(TimeoutError):
    """The selector did not appear on the page within the timeout."""

    def __init__(self, selector: str, timeout: int, url: str = "") -> None:
        super().__init__(f"Timed out after {timeout} ms waiting for {selector!r} on {url or 'page'}")
        self.selector = selector
        self.timeout = timeout
        self.url = url


class WaitState(str, Enum):
    IDLE = "idle"
    WAITING = "waiting"
    FOUND = "found"
    TIMED_OUT = "timed_out"


class HtmlPage:
    """A loaded page backed by its HTML text."""

    def __init__(self, url: str, content: str) -> None:
        self.url = url
        self.content = content
        self.wait_state = WaitState.IDLE
        self._soup: Optional[BeautifulSoup] = None
        self._tree: Optional[etree._Element] = None

    @property
    def soup(self) -> BeautifulSoup:
        if self._soup is None:
            self._soup = BeautifulSoup(self.content, "html.parser")
        return self._soup

    @property
    def tree(self) -> etree._Element:
        if self._tree is None:
            self._tree = lxml.html.document_fromstring(self.content or "<html></html>")
        return self._tree

    async def title(self) -> str:
        tag = self.soup.find("title")
        return tag.get_text(strip=True) if tag else ""

    # waiting ---------------------------------------------------------------
    async def _wait_until(self, found: Callable[[], bool], selector: str, timeout: int) -> None:
        self.wait_state = WaitState.WAITING
        deadline = time.monotonic() + timeout / 1000
        while True:
            if found():
                self.wait_state = WaitState.FOUND
                return
            remaining = deadline - time.monotonic()
            if remaining <= 0:
                self.wait_state = WaitState.TIMED_OUT
                raise SelectorTimeoutError(selector, timeout, self.url)
            await asyncio.sleep(min(POLL_INTERVAL, remaining))

    async def wait_for_selector(self, selector: str, timeout: int) -> None:
        await self._wait_until(lambda: self.soup.select_one(selector) is not None, selector, timeout)

    async def wait_for_xpath(self, xpath: str, timeout: int) -> None:
        await self._wait_until(lambda: self._first_xpath(xpath) is not None, xpath, timeout)

    # extraction ------------------------------------------------------------
    def _first_xpath(self, xpath: str) -> Optional[object]:
        result = self.tree.xpath(xpath)
        if isinstance(result, list):
            return result[0] if result else None
        # string/number/boolean results of XPath functions
        return result if result not in ("", False) else None

    async def css_text(self, selector: str) -> str:
        element = self.soup.select_one(selector)
        if element is None:
            return ""
        for hidden in element(["script", "style", "noscript", "template"]):
            hidden.decompose()
        return element.get_text("\n", strip=True)

    async def xpath_text(self, xpath: str) -> str:
        node = self._first_xpath(xpath)
        if node is None:
            return ""
        if isinstance(node, etree._Element):
            return node.text_content()
        return str(node)
