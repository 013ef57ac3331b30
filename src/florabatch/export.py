"""
CSV Export

Serializes completed analysis results into a downloadable CSV report.
"""

import csv
import io
import logging
import time
from datetime import datetime, timezone
from pathlib import Path
from typing import Iterable, List, Optional, Sequence

from .models import FloraBatchError, FlowerAnalysis, ProcessingItem

logger = logging.getLogger(__name__)

CSV_HEADERS = ("File Name", "Flower Type", "Geographic Area", "Confidence", "Timestamp")
FILENAME_PREFIX = "Flower_Analysis_Results_"


class NothingToExportError(FloraBatchError):
    """Raised when there are no completed results to export."""
    pass


def format_confidence(confidence: float) -> str:
    return f"{confidence:g}%"


def format_timestamp(timestamp: datetime) -> str:
    """ISO-8601 UTC with millisecond precision, e.g. 2024-01-01T00:00:00.000Z."""
    if timestamp.tzinfo is None:
        timestamp = timestamp.replace(tzinfo=timezone.utc)
    timestamp = timestamp.astimezone(timezone.utc)
    return timestamp.strftime("%Y-%m-%dT%H:%M:%S.") + f"{timestamp.microsecond // 1000:03d}Z"


def completed_results(items: Iterable[ProcessingItem]) -> List[FlowerAnalysis]:
    """Results of completed items, in input order."""
    return [
        item.result
        for item in items
        if item.status == "completed" and item.result is not None
    ]


def build_csv(results: Sequence[FlowerAnalysis]) -> str:
    """
    Render results as CSV text.

    Header row first, every field quoted, rows joined by newlines.
    """
    buffer = io.StringIO()
    writer = csv.writer(buffer, quoting=csv.QUOTE_ALL, lineterminator="\n")
    writer.writerow(CSV_HEADERS)
    for r in results:
        writer.writerow([
            r.file_name,
            r.flower_name,
            r.geographic_area,
            format_confidence(r.confidence),
            format_timestamp(r.timestamp),
        ])
    return buffer.getvalue().rstrip("\n")


def export_filename(now_ms: Optional[int] = None) -> str:
    """Collision-resistant file name: Flower_Analysis_Results_<epoch-millis>.csv"""
    if now_ms is None:
        now_ms = int(time.time() * 1000)
    return f"{FILENAME_PREFIX}{now_ms}.csv"


def export_csv(items: Iterable[ProcessingItem], directory: Path) -> Path:
    """
    Write completed results to a timestamped CSV file.

    Args:
        items: Batch items (only completed ones are exported)
        directory: Destination folder

    Returns:
        Path of the written file

    Raises:
        NothingToExportError: If no item is completed; nothing is written
    """
    results = completed_results(items)
    if not results:
        raise NothingToExportError("No results to export yet.")

    directory = Path(directory)
    directory.mkdir(parents=True, exist_ok=True)

    output_path = directory / export_filename()
    output_path.write_text(build_csv(results), encoding="utf-8")

    logger.info(f"Exported {len(results)} results to {output_path}")
    return output_path
