# File: tests/conftest.py
import json
import logging
from typing import Any, Callable, Dict

import pytest

from site_harvest.config import CrawlConfig
from site_harvest.logger import LOGGER_NAME


@pytest.fixture(autouse=True)
def no_crawl_env(monkeypatch):
    """Tests decide themselves whether the network phase is disabled."""
    monkeypatch.delenv("NO_CRAWL", raising=False)


@pytest.fixture()
def make_config() -> Callable[..., CrawlConfig]:
    """
    Factory for a valid CrawlConfig; keyword arguments override the defaults.
    """

    def _make(**overrides: Any) -> CrawlConfig:
        data: Dict[str, Any] = {
            "url": "https://example.com/docs/",
            "match": "https://example.com/docs/**",
            "output_file_name": "out.json",
        }
        data.update(overrides)
        return CrawlConfig(**data)

    return _make


@pytest.fixture()
def weight_estimator() -> Callable[[str], int]:
    """Deterministic token estimator: a record's tokens are its ``weight`` field."""

    def estimate(text: str) -> int:
        return json.loads(text)["weight"]

    return estimate


@pytest.fixture()
def propagate_logs():
    """Let caplog see records of the project logger."""
    lg = logging.getLogger(LOGGER_NAME)
    lg.propagate = True
    yield
    lg.propagate = False
