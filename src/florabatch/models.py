"""
FloraBatch Data Models

Pydantic models for batch items, analysis results and progress summaries.
"""

from datetime import datetime, timezone
from pathlib import Path
from typing import Dict, Literal, Optional, Tuple
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field

ItemStatus = Literal["pending", "processing", "completed", "error"]

# Forward-only state machine; completed and error are terminal.
ALLOWED_TRANSITIONS: Dict[str, Tuple[str, ...]] = {
    "pending": ("processing",),
    "processing": ("completed", "error"),
    "completed": (),
    "error": (),
}

TERMINAL_STATUSES = ("completed", "error")


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class FloraBatchError(Exception):
    """Base class for errors raised by FloraBatch."""
    pass


class InvalidTransitionError(FloraBatchError):
    """Raised when an item is moved to a status it cannot reach."""
    pass


class SourceImage(BaseModel):
    """
    Handle to a source image selected by the user.

    Content lives either on disk (path) or in memory (content, e.g. a browser
    upload). The system only ever reads it.
    """
    name: str
    mime_type: str
    path: Optional[Path] = None
    content: Optional[bytes] = Field(default=None, repr=False)

    def read_bytes(self) -> bytes:
        """Return the binary content of the image."""
        if self.content is not None:
            return self.content
        if self.path is None:
            raise FileNotFoundError(f"No content available for {self.name}")
        return self.path.read_bytes()


class FlowerAnalysis(BaseModel):
    """Normalized result of one remote analysis call."""
    file_name: str
    flower_name: str = "Unknown"
    geographic_area: str = "Unknown"
    confidence: float = Field(default=0.0, ge=0, le=100)
    timestamp: datetime = Field(default_factory=utcnow)


class ProcessingItem(BaseModel):
    """
    One image in a batch with its status tracking.

    result is set iff status == "completed"; error is set iff status == "error".
    """
    id: str = Field(default_factory=lambda: str(uuid4()))
    file: SourceImage
    status: ItemStatus = "pending"
    result: Optional[FlowerAnalysis] = None
    error: Optional[str] = None
    preview_url: str
    started_at: Optional[datetime] = None
    finished_at: Optional[datetime] = None

    @property
    def is_finished(self) -> bool:
        return self.status in TERMINAL_STATUSES

    def transition_to(self, status: str) -> None:
        """
        Move the item forward in its lifecycle.

        Raises:
            InvalidTransitionError: If the move is not pending -> processing
                or processing -> completed/error.
        """
        if status not in ALLOWED_TRANSITIONS.get(self.status, ()):
            raise InvalidTransitionError(
                f"Item {self.id[:8]} ({self.file.name}) cannot move from "
                f"'{self.status}' to '{status}'"
            )
        self.status = status
        if status == "processing":
            self.started_at = utcnow()
        else:
            self.finished_at = utcnow()


class BatchSummary(BaseModel):
    """Aggregate counters for the current batch."""
    total: int = 0
    processed: int = 0
    success: int = 0
    failed: int = 0

    @property
    def progress(self) -> float:
        """Percentage of items that reached a terminal status."""
        if self.total <= 0:
            return 0.0
        return self.processed / self.total * 100

    @property
    def is_complete(self) -> bool:
        return self.total > 0 and self.processed == self.total


class BatchSnapshot(BaseModel):
    """Immutable view of pipeline state handed to observers."""
    model_config = ConfigDict(frozen=True)

    items: Tuple[ProcessingItem, ...] = ()
    summary: BatchSummary = Field(default_factory=BatchSummary)
    is_processing: bool = False
