# site_harvest/output/page_writer.py
"""
Per-page JSON files, written as soon as a page is captured.

Layout: ``<root>/pages/<output stem>/<derived name>.json`` where the derived
name comes from :func:`site_harvest.matcher.extract_filename`.
"""
from __future__ import annotations

import json
import re
from pathlib import Path
from typing import Optional, Union

from site_harvest.config import CrawlConfig
from site_harvest.crawler.models import PageRecord
from site_harvest.logger import logger
from site_harvest.matcher import extract_filename

_EXTENSION_RE = re.compile(r"\.[^/.]+$")


def output_stem(file_name: str) -> str:
    """Output file name without its last extension (``site.json`` → ``site``)."""
    return _EXTENSION_RE.sub("", file_name)


class PageWriter:
    """Writes one pretty-printed JSON file per crawled page when enabled."""

    def __init__(self, config: CrawlConfig, root: Union[str, Path, None] = None) -> None:
        self.config = config
        self.root = Path(root) if root is not None else Path.cwd()
        self._directory: Optional[Path] = None

    @property
    def enabled(self) -> bool:
        return self.config.save_per_page

    @property
    def directory(self) -> Path:
        return self.root / "pages" / output_stem(Path(self.config.output_file_name).name)

    def ensure_directory(self) -> Path:
        """Create the per-page folder on first use; concurrent creation is fine."""
        if self._directory is None:
            path = self.directory
            path.mkdir(parents=True, exist_ok=True)
            logger.debug("Per-page output folder: %s", path)
            self._directory = path
        return self._directory

    def save(self, record: PageRecord) -> Optional[Path]:
        """Write *record* to its own file. Returns the path, or None when disabled."""
        if not self.enabled:
            return None
        directory = self.ensure_directory()
        filename = extract_filename(record["url"], self.config.match)
        path = directory / f"{filename}.json"
        path.write_text(json.dumps(record, ensure_ascii=False, indent=2), encoding="utf-8")
        logger.debug("Saved page %s -> %s", record["url"], path)
        return path


def save_page_to_file(
    record: PageRecord, config: CrawlConfig, root: Union[str, Path, None] = None
) -> Optional[Path]:
    """One-shot form of :meth:`PageWriter.save`."""
    return PageWriter(config, root).save(record)
