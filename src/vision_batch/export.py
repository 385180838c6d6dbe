"""CSV report of processed images."""

import csv
import io
from collections.abc import Iterable
from pathlib import Path
from typing import TextIO

from loguru import logger

from vision_batch.models import ImageRecord


DEFAULT_REPORT_NAME = "vision_report.csv"
CSV_COLUMNS = (
    "name",
    "path",
    "size",
    "width",
    "height",
    "description",
    "category_slug",
    "tags",
)


def _row(record: ImageRecord) -> list[str | int]:
    return [
        record.name,
        record.path,
        record.size,
        record.width,
        record.height,
        record.description,
        record.category_slug,
        ", ".join(record.tag_list),
    ]


def _write(records: Iterable[ImageRecord], handle: TextIO) -> int:
    writer = csv.writer(handle, lineterminator="\n")
    writer.writerow(CSV_COLUMNS)
    count = 0
    for record in records:
        writer.writerow(_row(record))
        count += 1
    return count


def render_csv(records: Iterable[ImageRecord]) -> str:
    """
    Render records as CSV text with a header row.

    The tags column holds the comma-separated tag list; the csv writer quotes it so the
    commas never shift columns.

    Examples:
        >>> print(render_csv([]), end="")
        name,path,size,width,height,description,category_slug,tags

    """
    buf = io.StringIO()
    _write(records, buf)
    return buf.getvalue()


def export_csv(records: Iterable[ImageRecord], destination: Path) -> Path:
    """Write records to `destination`, creating parent folders, and return the path."""
    destination.parent.mkdir(parents=True, exist_ok=True)
    with destination.open("w", newline="", encoding="utf-8") as handle:
        rows = _write(records, handle)
    logger.info("csv_report_saved", target=str(destination), rows=rows)
    return destination
