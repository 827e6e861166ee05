"""Logging for **site_harvest**.

A run has two phases, the concurrent crawl and the sequential write. Every
record carries the phase it was emitted in as ``%(phase)s`` so both parts of
one log file can be told apart::

    2024-05-01 12:00:00,000 | INFO     | crawl | Crawling: Page 3 / 50 - URL: ...
    2024-05-01 12:00:09,000 | INFO     | write | Wrote 41 items to output-1.json

Modules share the single :data:`logger`; :func:`log_phase` marks the phase
for everything logged inside it, including tasks started there.
"""
from __future__ import annotations

import logging
import sys
from contextlib import contextmanager
from contextvars import ContextVar
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Final, Iterator, Union

DEFAULT_FORMAT: Final[str] = "%(asctime)s | %(levelname)-8s | %(phase)-5s | %(message)s"
LOGGER_NAME: Final[str] = "site_harvest"
NO_PHASE: Final[str] = "-"

# rotate the log file at 5 MB, keep three old files
_MAX_LOG_BYTES: Final[int] = 5 * 1024 * 1024
_LOG_BACKUPS: Final[int] = 3

_LevelT = Union[int, str]

_phase: ContextVar[str] = ContextVar("site_harvest_phase", default=NO_PHASE)


class PhaseFilter(logging.Filter):
    """Stamps the current run phase onto each record."""

    def filter(self, record: logging.LogRecord) -> bool:
        record.phase = _phase.get()
        return True


@contextmanager
def log_phase(name: str) -> Iterator[None]:
    """Log everything inside the block as part of phase *name*."""
    token = _phase.set(name)
    try:
        yield
    finally:
        _phase.reset(token)


def current_phase() -> str:
    return _phase.get()


def make_formatter(log_format: str) -> logging.Formatter:
    """Formatter for *log_format*; raises ``ValueError`` when it has no ``%(...)`` field."""
    return logging.Formatter(log_format, validate=True)


def _with_phase(handler: logging.Handler, formatter: logging.Formatter) -> logging.Handler:
    handler.setFormatter(formatter)
    handler.addFilter(PhaseFilter())
    return handler


def configure(
    *,
    level: _LevelT = "INFO",
    log_file: str | Path | None = None,
    log_format: str = DEFAULT_FORMAT,
    replace_handlers: bool = True,
) -> logging.Logger:
    """(Re)configure the project logger.

    The format is checked before any handler is touched, so a bad
    ``--log-format`` leaves the current setup in place.
    """
    formatter = make_formatter(log_format)
    lg = logging.getLogger(LOGGER_NAME)
    lg.setLevel(level)

    if replace_handlers:
        for handler in list(lg.handlers):
            lg.removeHandler(handler)
            handler.close()

    lg.addHandler(_with_phase(logging.StreamHandler(sys.stdout), formatter))
    if log_file is not None:
        file_handler = RotatingFileHandler(
            filename=str(log_file), maxBytes=_MAX_LOG_BYTES, backupCount=_LOG_BACKUPS, encoding="utf-8"
        )
        lg.addHandler(_with_phase(file_handler, formatter))

    lg.propagate = False
    return lg


def init_logging(
    level: _LevelT = "INFO",
    log_file: str | Path | None = None,
    log_format: str = DEFAULT_FORMAT,
) -> logging.Logger:
    return configure(level=level, log_file=log_file, log_format=log_format, replace_handlers=True)


logger: logging.Logger = init_logging()

__all__ = [
    "DEFAULT_FORMAT",
    "LOGGER_NAME",
    "NO_PHASE",
    "PhaseFilter",
    "configure",
    "current_phase",
    "init_logging",
    "log_phase",
    "logger",
    "make_formatter",
]
