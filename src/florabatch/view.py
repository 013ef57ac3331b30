"""
Results View

Pure projections of pipeline snapshots into display rows and text.
"""

from typing import Dict, Iterable, List

from .export import format_confidence
from .models import BatchSnapshot, BatchSummary, ProcessingItem

STATUS_ICONS = {
    "pending": "⏳",
    "processing": "🔄",
    "completed": "✅",
    "error": "❌",
}

PLACEHOLDER = "-"


def build_row(item: ProcessingItem) -> Dict:
    """Display row for one item."""
    result = item.result
    return {
        "icon": STATUS_ICONS[item.status],
        "status": item.status,
        "file_name": item.file.name,
        "flower_name": result.flower_name if result else PLACEHOLDER,
        "geographic_area": result.geographic_area if result else PLACEHOLDER,
        "confidence": format_confidence(result.confidence) if result else PLACEHOLDER,
        "error": item.error or "",
        "preview_url": item.preview_url,
    }


def build_rows(items: Iterable[ProcessingItem]) -> List[Dict]:
    return [build_row(item) for item in items]


def format_progress(summary: BatchSummary) -> str:
    """e.g. '3 / 5 images (60%)'"""
    return f"{summary.processed} / {summary.total} images ({round(summary.progress)}%)"


def format_item_line(index: int, total: int, item: ProcessingItem) -> str:
    """One-line status for live CLI output."""
    line = f"[{index}/{total}] {STATUS_ICONS[item.status]} {item.file.name}"
    if item.result:
        line += f" -> {item.result.flower_name} ({item.result.geographic_area})"
    elif item.error:
        line += f" -> {item.error[:60]}"
    return line


def render_table(snapshot: BatchSnapshot) -> str:
    """
    Fixed-width text table of the batch.

    Columns: status icon, file name, flower, geographic area, confidence.
    """
    rows = build_rows(snapshot.items)
    headers = ("", "File", "Flower", "Geographic Area", "Confidence")
    cells = [
        (r["icon"], r["file_name"], r["flower_name"], r["geographic_area"], r["confidence"])
        for r in rows
    ]

    widths = [len(h) for h in headers]
    for row in cells:
        widths = [max(w, len(c)) for w, c in zip(widths, row)]

    def fmt(row) -> str:
        return "  ".join(c.ljust(w) for c, w in zip(row, widths)).rstrip()

    lines = [fmt(headers), "  ".join("-" * w for w in widths)]
    lines.extend(fmt(row) for row in cells)
    return "\n".join(lines)
