"""site_harvest.tokens: token estimation for LLM-bound output files.

Counts use tiktoken encodings (``cl100k_base`` by default), the same units the
downstream language-model pipelines bill and truncate by.
"""
from __future__ import annotations

from functools import lru_cache
from typing import Callable

import tiktoken

from site_harvest.logger import logger

__all__ = ["TokenEstimator", "get_encoding", "count_tokens", "make_estimator"]

#: Any callable mapping serialized text to a token count.
TokenEstimator = Callable[[str], int]

DEFAULT_ENCODING = "cl100k_base"


@lru_cache(maxsize=8)
def get_encoding(name: str = DEFAULT_ENCODING) -> tiktoken.Encoding:
    """Load (once) and return the tiktoken encoding called *name*."""
    logger.debug("Loading tiktoken encoding %s", name)
    return tiktoken.get_encoding(name)


def count_tokens(text: str, encoding: str = DEFAULT_ENCODING) -> int:
    """Number of tokens *text* encodes to. Special-token markers count as text."""
    return len(get_encoding(encoding).encode(text, disallowed_special=()))


def make_estimator(encoding: str = DEFAULT_ENCODING) -> TokenEstimator:
    """Estimator bound to one encoding, suitable for the batch writer."""

    def estimate(text: str) -> int:
        return count_tokens(text, encoding)

    return estimate
