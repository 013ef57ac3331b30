"""
Batch Pipeline

Sequential batch processing of images through the analysis client.
Owns the item list and summary, and publishes a snapshot after every change.
"""

import logging
import time
from typing import Callable, Iterable, List, Optional

from .models import (
    BatchSnapshot,
    BatchSummary,
    FloraBatchError,
    FlowerAnalysis,
    ProcessingItem,
    SourceImage,
)
from .previews import PreviewStore
from .uploader import NoValidImagesError

logger = logging.getLogger(__name__)

Observer = Callable[[BatchSnapshot], None]


class BatchInProgressError(FloraBatchError):
    """Raised when a batch is started or reset while one is running."""
    pass


def create_processing_item(image: SourceImage, previews: PreviewStore) -> ProcessingItem:
    """Create a pending item with a fresh preview. No remote call is made."""
    return ProcessingItem(file=image, preview_url=previews.acquire(image))


class BatchPipeline:
    """
    Drives one batch at a time, strictly in input order.

    Only one analysis call is ever in flight. Item failures are recorded on
    the item and never stop the batch.
    """

    def __init__(self, client, previews: Optional[PreviewStore] = None):
        """
        Args:
            client: Object with analyze(SourceImage) -> FlowerAnalysis
            previews: Preview store (a private one is created if omitted)
        """
        self.client = client
        self.previews = previews or PreviewStore()
        self._items: List[ProcessingItem] = []
        self._summary = BatchSummary()
        self._processing = False
        self._observers: List[Observer] = []

    # --- Observation ---

    def subscribe(self, observer: Observer) -> Callable[[], None]:
        """
        Register an observer called with a snapshot after every state change.

        Returns:
            Function that removes the observer
        """
        self._observers.append(observer)

        def unsubscribe() -> None:
            if observer in self._observers:
                self._observers.remove(observer)

        return unsubscribe

    def snapshot(self) -> BatchSnapshot:
        """Immutable copy of the current state."""
        return BatchSnapshot(
            items=tuple(item.model_copy(deep=True) for item in self._items),
            summary=self._summary.model_copy(),
            is_processing=self._processing,
        )

    def _publish(self) -> BatchSnapshot:
        snapshot = self.snapshot()
        for observer in list(self._observers):
            try:
                observer(snapshot)
            except Exception:
                logger.exception("Batch observer failed")
        return snapshot

    @property
    def items(self) -> List[ProcessingItem]:
        return [item.model_copy(deep=True) for item in self._items]

    @property
    def summary(self) -> BatchSummary:
        return self._summary.model_copy()

    @property
    def is_processing(self) -> bool:
        return self._processing

    def completed_results(self) -> List[FlowerAnalysis]:
        """Results of completed items, in input order."""
        return [
            item.result.model_copy()
            for item in self._items
            if item.status == "completed" and item.result is not None
        ]

    # --- Lifecycle ---

    def _discard(self) -> None:
        for item in self._items:
            self.previews.release(item.preview_url)
        self._items = []
        self._summary = BatchSummary()

    def start(self, files: Iterable[SourceImage]) -> BatchSnapshot:
        """
        Create a new batch from accepted files.

        Any previous batch is discarded and its previews released. If item
        construction fails the previous batch is left untouched.

        Raises:
            BatchInProgressError: If a batch is currently running
            NoValidImagesError: If files is empty
        """
        if self._processing:
            raise BatchInProgressError("A batch is already being processed")

        files = list(files)
        if not files:
            raise NoValidImagesError("No valid image files found in the selection.")

        # Build the new batch before dropping the old one; release partial work on failure.
        items: List[ProcessingItem] = []
        try:
            for f in files:
                items.append(create_processing_item(f, self.previews))
        except Exception:
            for item in items:
                self.previews.release(item.preview_url)
            raise

        self._discard()
        self._items = items
        self._summary = BatchSummary(total=len(self._items))
        self._processing = True

        logger.info(f"Started batch of {len(self._items)} images")
        return self._publish()

    def _close_interrupted_items(self) -> None:
        """
        Fail items left in 'processing' by an interrupted run().

        Statuses never move backwards, so such items are recorded as errors
        instead of being dispatched again.
        """
        for item in self._items:
            if item.status == "processing":
                logger.warning(f"Closing interrupted item: {item.file.name}")
                item.error = "Interrupted before completion"
                item.transition_to("error")
                self._summary.processed += 1
                self._summary.failed += 1

    def run(self) -> BatchSnapshot:
        """
        Process every queued item, one at a time.

        Returns:
            Final snapshot after the batch leaves processing mode
        """
        if not self._processing:
            logger.debug("run() called with no active batch")
            return self.snapshot()

        start_time = time.time()
        self._close_interrupted_items()

        for index, item in enumerate(self._items, 1):
            if item.status != "pending":
                continue

            item.transition_to("processing")
            logger.debug(f"[{index}/{len(self._items)}] Processing {item.file.name}")
            self._publish()

            try:
                result = self.client.analyze(item.file)
            except Exception as e:
                item.error = str(e) or type(e).__name__
                item.transition_to("error")
                self._summary.processed += 1
                self._summary.failed += 1
                logger.error(f"Analysis failed for {item.file.name}: {item.error}")
            else:
                item.result = result
                item.transition_to("completed")
                self._summary.processed += 1
                self._summary.success += 1
                logger.info(
                    f"[{index}/{len(self._items)}] {item.file.name}: {result.flower_name}"
                )

            self._publish()

        self._processing = False
        elapsed = time.time() - start_time
        logger.info(
            f"Batch finished in {elapsed:.1f}s: {self._summary.success} identified, "
            f"{self._summary.failed} failed"
        )
        return self._publish()

    def process(self, files: Iterable[SourceImage]) -> BatchSnapshot:
        """Start a batch and run it to completion."""
        self.start(files)
        return self.run()

    def reset(self) -> BatchSnapshot:
        """
        Discard all items and zero the summary.

        Raises:
            BatchInProgressError: If a batch is currently running
        """
        if self._processing:
            raise BatchInProgressError("Cannot reset while a batch is being processed")

        released = len(self._items)
        self._discard()
        logger.info(f"Batch reset, released {released} previews")
        return self._publish()
