# site_harvest/output/batch_writer.py
"""
Combining page records into size- and token-bounded JSON files.

Records stream through :class:`BatchWriter` one at a time. Two running
counters are kept for the open batch: its byte size and its estimated token
count. Each record is serialized compactly; the token budget is checked
first, then the byte budget, and a batch is written out as
``<stem>-<n>.json``.

A record whose tokens overflow the budget is never dropped. With the default
``halve`` policy it opens a new batch and only half of its tokens are
credited to the counter, so the following record tends to trigger the next
split early. The ``isolate`` policy credits the true count and writes a
record that exceeds the budget on its own as a single-record file.

In the default ``overflow`` byte mode the compact size of every record is
added after it has been admitted, and the batch (that record included) is
written as soon as the total is over ``max_file_size``. The ``ceiling`` mode
measures the exact pretty-printed file instead and writes the batch before a
record would push it over, so only a single oversized record can produce a
file above the limit.
"""
from __future__ import annotations

import json
import re
from pathlib import Path
from typing import Any, Iterable, List, Optional, Union

from site_harvest.config import ByteLimitMode, CrawlConfig, OversizePolicy
from site_harvest.crawler.models import PageRecord
from site_harvest.logger import logger
from site_harvest.tokens import TokenEstimator, make_estimator

__all__ = ["BatchWriter", "combine_into_batches", "compact_size", "serialized_size"]

_JSON_SUFFIX_RE = re.compile(r"\.json$")

# "[\n" + "\n]" around the items, ",\n" between two of them.
_ARRAY_OVERHEAD = 4
_ITEM_SEPARATOR = 2
_INDENT = 2


def _dumps(data: Any, *, pretty: bool) -> str:
    return json.dumps(data, ensure_ascii=False, indent=_INDENT if pretty else None)


def compact_size(record: PageRecord) -> int:
    """UTF-8 bytes of *record* serialized as compact JSON."""
    return len(_dumps(record, pretty=False).encode("utf-8"))


def serialized_size(record: PageRecord) -> int:
    """UTF-8 bytes *record* occupies as an item of a pretty-printed JSON array."""
    text = _dumps(record, pretty=True)
    lines = text.count("\n") + 1
    return len(text.encode("utf-8")) + _INDENT * lines


class BatchWriter:
    """Streams records into numbered output files."""

    def __init__(
        self,
        config: CrawlConfig,
        root: Union[str, Path, None] = None,
        estimator: Optional[TokenEstimator] = None,
    ) -> None:
        self.config = config
        self.root = Path(root) if root is not None else Path.cwd()
        self.estimator = estimator or make_estimator(config.tokenizer_encoding)
        self.max_tokens: Optional[int] = config.max_tokens
        self.max_bytes: Optional[int] = config.max_bytes
        self.policy = OversizePolicy(config.oversize_policy)
        self.byte_mode = ByteLimitMode(config.byte_limit_mode)
        self.stem = _JSON_SUFFIX_RE.sub("", config.output_file_name)
        self.written: List[Path] = []
        self._batch: List[PageRecord] = []
        self._byte_size = 0
        self._estimated_tokens = 0
        self._file_counter = 1

    # read-only state --------------------------------------------------------
    @property
    def batch(self) -> List[PageRecord]:
        return list(self._batch)

    @property
    def byte_size(self) -> int:
        return self._byte_size

    @property
    def estimated_tokens(self) -> int:
        return self._estimated_tokens

    @property
    def file_counter(self) -> int:
        return self._file_counter

    @property
    def last_path(self) -> Optional[Path]:
        return self.written[-1] if self.written else None

    def next_path(self) -> Path:
        return self.root / f"{self.stem}-{self._file_counter}.json"

    # streaming --------------------------------------------------------------
    def add(self, record: PageRecord) -> None:
        """Place *record* into the open batch, writing batches out as the budgets require."""
        text = _dumps(record, pretty=False)
        ceiling = self.byte_mode is ByteLimitMode.CEILING
        record_bytes = serialized_size(record) if ceiling else compact_size(record)
        record_tokens = self.estimator(text) if self.max_tokens is not None else 0
        isolated = False

        if self.max_tokens is not None and self._estimated_tokens + record_tokens > self.max_tokens:
            if self._batch:
                self._flush()
            if self.policy is OversizePolicy.ISOLATE:
                self._estimated_tokens = record_tokens
                isolated = record_tokens > self.max_tokens
            else:
                self._estimated_tokens = record_tokens // 2
        else:
            if ceiling and self._would_overflow(record_bytes):
                self._flush()
            self._estimated_tokens += record_tokens

        self._append(record, record_bytes)

        if isolated or (not ceiling and self._over_byte_limit()):
            self._flush()

    def close(self) -> Optional[Path]:
        """Write whatever is left and return the path of the last file written."""
        if self._batch:
            self._flush()
        return self.last_path

    def write_all(self, records: Iterable[PageRecord]) -> Optional[Path]:
        for record in records:
            self.add(record)
        return self.close()

    # internals --------------------------------------------------------------
    def _would_overflow(self, record_bytes: int) -> bool:
        if self.max_bytes is None or not self._batch:
            return False
        return self._byte_size + _ITEM_SEPARATOR + record_bytes > self.max_bytes

    def _over_byte_limit(self) -> bool:
        return self.max_bytes is not None and self._byte_size > self.max_bytes

    def _append(self, record: PageRecord, record_bytes: int) -> None:
        if self.byte_mode is ByteLimitMode.CEILING:
            record_bytes += _ITEM_SEPARATOR if self._batch else _ARRAY_OVERHEAD
        self._batch.append(record)
        self._byte_size += record_bytes

    def _flush(self) -> None:
        path = self.next_path()
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(_dumps(self._batch, pretty=True), encoding="utf-8")
        logger.info("Wrote %d items to %s", len(self._batch), path)
        self.written.append(path)
        self._batch = []
        self._byte_size = 0
        self._estimated_tokens = 0
        self._file_counter += 1


def combine_into_batches(
    records: Iterable[PageRecord],
    config: CrawlConfig,
    root: Union[str, Path, None] = None,
    estimator: Optional[TokenEstimator] = None,
) -> Optional[Path]:
    """Write *records* into bounded output files; return the last file's path."""
    return BatchWriter(config, root=root, estimator=estimator).write_all(records)
