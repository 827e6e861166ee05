# File: site_harvest/output/__init__.py
"""site_harvest.output: writers for per-page files and combined output files."""

from __future__ import annotations

from site_harvest.output.batch_writer import BatchWriter, combine_into_batches
from site_harvest.output.page_writer import PageWriter, output_stem, save_page_to_file

__all__ = ["BatchWriter", "combine_into_batches", "PageWriter", "output_stem", "save_page_to_file"]
