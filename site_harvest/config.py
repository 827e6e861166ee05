# === FILE: site_harvest/config.py ===
"""
Loading and validation of the crawl configuration.
Pydantic describes the schema; YAML and JSON files are both accepted and
may use either snake_case or the camelCase keys of the config files.
"""
from __future__ import annotations

import errno
import importlib
import json
import os
from enum import Enum
from pathlib import Path
from typing import Any, Callable, Optional, Union

import yaml
from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    HttpUrl,
    ValidationError,
    field_validator,
)
from pydantic.alias_generators import to_camel

__all__ = ["ByteLimitMode", "CrawlConfig", "Cookie", "OversizePolicy", "load_config", "ValidationError"]


class Cookie(BaseModel):
    """Cookie sent with every request of the crawl."""
    model_config = ConfigDict(extra="forbid", frozen=True)

    name: str = Field(..., min_length=1)
    value: str


class OversizePolicy(str, Enum):
    """What the batch writer does with a record that overflows the token budget."""

    #: Admit the record and credit only half of its tokens to the batch.
    HALVE = "halve"
    #: Track the true count; a record over the budget on its own gets its own file.
    ISOLATE = "isolate"


class ByteLimitMode(str, Enum):
    """When the batch writer checks the byte budget."""

    #: Count compact JSON bytes after admitting a record; flush once the total is over.
    OVERFLOW = "overflow"
    #: Measure the pretty-printed output file and flush before a record would overflow it.
    CEILING = "ceiling"


def _as_list(value: Any) -> Any:
    if value is None:
        return []
    if isinstance(value, (str, dict)):
        return [value]
    return value


def _resolve_callable(target: str) -> Callable[..., Any]:
    module_name, _, attr = target.partition(":")
    if not module_name or not attr:
        raise ValueError(f"on_visit_page must look like 'package.module:function', got {target!r}")
    try:
        hook = getattr(importlib.import_module(module_name), attr)
    except (ImportError, AttributeError) as exc:
        raise ValueError(f"Cannot import on_visit_page hook {target!r}: {exc}") from exc
    if not callable(hook):
        raise ValueError(f"{target!r} is not callable")
    return hook


class CrawlConfig(BaseModel):
    """Configuration of one crawl-and-write run. Immutable once validated."""
    model_config = ConfigDict(
        extra="forbid",
        frozen=True,
        alias_generator=to_camel,
        populate_by_name=True,
    )

    url: HttpUrl = Field(..., description="Entry point; sitemap URLs are expanded first.")
    match: list[str] = Field(..., min_length=1, description="Globs of links to follow and name files by.")
    exclude: list[str] = Field(default_factory=list, description="Globs of links never followed.")
    selector: Optional[str] = Field(None, min_length=1, description="CSS selector or XPath (leading '/').")
    max_pages_to_crawl: int = Field(50, ge=1, description="Upper bound on handled pages.")
    output_file_name: str = Field("output.json", min_length=1, description="Base name of the combined files.")
    save_per_page: bool = Field(False, description="Also write one JSON file per page.")
    max_file_size: Optional[float] = Field(None, gt=0, description="Ceiling per combined file, in MB.")
    max_tokens: Optional[int] = Field(None, ge=1, description="Token ceiling per combined file.")
    wait_for_selector_timeout: int = Field(1000, ge=0, description="Milliseconds to wait for the selector.")
    throttle: bool = Field(False, description="Pause after every page.")
    request_delay: Optional[int] = Field(None, ge=0, description="Pause length in milliseconds.")
    cookie: list[Cookie] = Field(default_factory=list, description="Cookies sent with every request.")
    resource_exclusions: list[str] = Field(default_factory=list, description="Extensions never loaded.")
    max_concurrency: int = Field(1, ge=1)
    max_open_pages_per_browser: int = Field(1, ge=1)
    retire_instance_after_request_count: int = Field(5, ge=1)
    max_request_retries: int = Field(3, ge=0)
    request_handler_timeout_secs: float = Field(180, gt=0)
    navigation_timeout_secs: float = Field(120, gt=0)
    on_visit_page: Optional[Callable[..., Any]] = Field(None, description="Hook called per page.")
    user_agent: str = Field("SiteHarvestBot/1.0", min_length=1)
    tokenizer_encoding: str = Field("cl100k_base", min_length=1)
    oversize_policy: OversizePolicy = OversizePolicy.HALVE
    byte_limit_mode: ByteLimitMode = ByteLimitMode.OVERFLOW

    @field_validator("match", "exclude", "cookie", mode="before")
    @classmethod
    def _listify(cls, v: Any) -> Any:
        return _as_list(v)

    @field_validator("resource_exclusions", mode="after")
    @classmethod
    def _strip_dots(cls, v: list[str]) -> list[str]:
        return [ext.lower().lstrip(".") for ext in v if ext.strip(". ")]

    @field_validator("on_visit_page", mode="before")
    @classmethod
    def _import_hook(cls, v: Any) -> Any:
        if isinstance(v, str):
            return _resolve_callable(v)
        return v

    @property
    def max_bytes(self) -> Optional[int]:
        """``max_file_size`` in bytes, ``None`` when unbounded."""
        if self.max_file_size is None:
            return None
        return int(self.max_file_size * 1024 * 1024)

    def with_overrides(self, **overrides: Any) -> CrawlConfig:
        """Return a re-validated copy with the non-``None`` overrides applied."""
        data = self.model_dump()
        data["url"] = str(self.url)
        data.update({k: v for k, v in overrides.items() if v is not None})
        return CrawlConfig.model_validate(data)


_DEFAULT_CFG = Path("configs/default.yaml")


def _read_yaml(path: Path) -> dict[str, Any]:
    try:
        data = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
    except yaml.YAMLError as exc:
        raise ValueError(f"Invalid YAML in {path}: {exc}") from exc
    if not isinstance(data, dict):
        raise TypeError(f"Top level of the YAML must be a mapping, got {type(data).__name__}")
    return data


def _read_json(path: Path) -> dict[str, Any]:
    try:
        data = json.loads(path.read_text(encoding="utf-8")) or {}
    except json.JSONDecodeError as exc:
        raise ValueError(f"Invalid JSON in {path}: {exc}") from exc
    if not isinstance(data, dict):
        raise TypeError(f"Top level of the JSON must be a mapping, got {type(data).__name__}")
    return data


def load_config(path: Union[str, Path, None]) -> CrawlConfig:
    """
    Read a YAML or JSON file and return a validated CrawlConfig.
    Raises FileNotFoundError when the file does not exist.
    """
    if path is None:
        if not _DEFAULT_CFG.exists():
            raise FileNotFoundError(errno.ENOENT, os.strerror(errno.ENOENT), str(_DEFAULT_CFG))
        path_obj = _DEFAULT_CFG
    else:
        path_obj = Path(path).expanduser().resolve()
        if not path_obj.is_file():
            raise FileNotFoundError(errno.ENOENT, os.strerror(errno.ENOENT), str(path_obj))

    suffix = path_obj.suffix.lower()
    if suffix in (".yaml", ".yml"):
        data = _read_yaml(path_obj)
    elif suffix == ".json":
        data = _read_json(path_obj)
    else:
        raise ValueError(f"Unsupported config format: {suffix}")

    return CrawlConfig.model_validate(data)
