# File: site_harvest/storage.py
"""site_harvest.storage: durable per-page record store shared by the crawl and write phases.

Each record pushed during the crawl lands in its own numbered JSON file
(``000000001.json``, ``000000002.json``, ...). The write phase reads them
back in file-name order.
"""

from __future__ import annotations

import json
import shutil
from pathlib import Path
from typing import Iterator, List, Union

from site_harvest.crawler.models import PageRecord
from site_harvest.logger import logger

__all__ = ["DatasetStore", "DEFAULT_DATASET_DIR"]

DEFAULT_DATASET_DIR = Path("storage") / "datasets" / "default"


class DatasetStore:
    """Directory of one-object-per-file JSON records."""

    def __init__(self, root: Union[str, Path, None] = None) -> None:
        base = Path(root) if root is not None else Path.cwd()
        self.directory = base / DEFAULT_DATASET_DIR
        self._next_index = self._last_index() + 1

    def _last_index(self) -> int:
        return max((int(p.stem) for p in self.files() if p.stem.isdigit()), default=0)

    def purge(self) -> None:
        """Remove every stored record."""
        if self.directory.exists():
            shutil.rmtree(self.directory)
            logger.debug("Purged dataset %s", self.directory)
        self._next_index = 1

    async def push(self, record: PageRecord) -> Path:
        """Persist *record* as the next numbered file."""
        self.directory.mkdir(parents=True, exist_ok=True)
        index = self._next_index
        self._next_index += 1
        path = self.directory / f"{index:09d}.json"
        path.write_text(json.dumps(record, ensure_ascii=False, indent=2), encoding="utf-8")
        return path

    def files(self) -> List[Path]:
        return sorted(self.directory.glob("*.json"))

    def iter_records(self) -> Iterator[PageRecord]:
        """Yield stored records in order. Malformed files raise ValueError."""
        for path in self.files():
            try:
                data = json.loads(path.read_text(encoding="utf-8"))
            except json.JSONDecodeError as exc:
                raise ValueError(f"Invalid JSON in {path}: {exc}") from exc
            if not isinstance(data, dict):
                raise ValueError(f"Expected a JSON object in {path}, got {type(data).__name__}")
            yield data

    def __len__(self) -> int:
        return len(self.files())
