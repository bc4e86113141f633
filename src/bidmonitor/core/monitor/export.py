"""
Result export: CSV files and plain-text clipboard blocks.
"""

from __future__ import annotations

import csv
import io
import os
from datetime import date
from pathlib import Path
from typing import Sequence

from .state import ResultItem


CSV_HEADERS = ["Title", "URL", "Source", "Date", "Description"]


def default_export_name(today: date | None = None) -> str:
    today = today or date.today()
    return f"bidmonitor-results-{today.isoformat()}.csv"


def results_to_csv(results: Sequence[ResultItem]) -> str:
    """Render results as CSV: every field quoted, quotes doubled."""
    buffer = io.StringIO()
    writer = csv.writer(buffer, quoting=csv.QUOTE_ALL, lineterminator="\n")
    writer.writerow(CSV_HEADERS)
    for item in results:
        writer.writerow([item.title, item.url, item.source, item.date, item.description])
    return buffer.getvalue()


def _is_directory_target(path: Path | str) -> bool:
    """Existing directories, trailing separators and suffix-less names."""
    if isinstance(path, str) and path.endswith(("/", os.sep)):
        return True
    target = Path(path)
    return target.is_dir() or not target.suffix


def export_results(
    results: Sequence[ResultItem],
    path: Path | str | None = None,
) -> Path | None:
    """Write results to a CSV file.

    Args:
        results: Items to export
        path: Target file or directory (default: dated file in cwd). A
            path without a suffix is a directory and is created if needed.

    Returns:
        Path written, or None when there was nothing to export
    """
    if not results:
        return None

    if path is None:
        target = Path(default_export_name())
    elif _is_directory_target(path):
        target = Path(path) / default_export_name()
    else:
        target = Path(path)

    target.parent.mkdir(parents=True, exist_ok=True)
    target.write_text(results_to_csv(results), encoding="utf-8")
    return target


def results_to_text(results: Sequence[ResultItem]) -> str:
    """Plain-text block for pasting: title, URL, description, date per item."""
    return "".join(
        f"{r.title}\n{r.url}\n{r.description}\n{r.date}\n\n"
        for r in results
    )
