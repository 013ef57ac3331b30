"""
Preview Store

Allocates display previews for batch items and releases them when the batch
is discarded.
"""

import io
import logging
from typing import Dict, Optional
from uuid import uuid4

from PIL import Image, UnidentifiedImageError

from .models import SourceImage

logger = logging.getLogger(__name__)

PREVIEW_SCHEME = "preview://"


class PreviewStore:
    """
    In-memory registry of preview images keyed by handle.

    Every handle returned by acquire() stays allocated until release() is
    called for it.
    """

    def __init__(self, max_size: int = 256):
        self.max_size = max_size
        self._previews: Dict[str, bytes] = {}

    @property
    def open_count(self) -> int:
        """Number of handles not yet released."""
        return len(self._previews)

    def _make_thumbnail(self, image: SourceImage) -> bytes:
        """PNG thumbnail bytes, or b"" when the content cannot be shown."""
        try:
            data = image.read_bytes()
        except OSError as e:
            logger.warning(f"Could not read {image.name} for preview: {e}")
            return b""

        try:
            with Image.open(io.BytesIO(data)) as img:
                img.thumbnail((self.max_size, self.max_size))
                if img.mode not in ("RGB", "RGBA"):
                    img = img.convert("RGBA")
                buffer = io.BytesIO()
                img.save(buffer, format="PNG")
                return buffer.getvalue()
        except (UnidentifiedImageError, Image.DecompressionBombError, OSError, ValueError) as e:
            logger.warning(f"Could not build thumbnail for {image.name}: {e}")
            return b""

    def acquire(self, image: SourceImage) -> str:
        """
        Create a preview for an image.

        Returns:
            Opaque preview handle
        """
        handle = f"{PREVIEW_SCHEME}{uuid4()}"
        self._previews[handle] = self._make_thumbnail(image)
        return handle

    def get(self, handle: str) -> Optional[bytes]:
        """
        Preview bytes for a handle.

        None once released; b"" when the image could not be decoded.
        """
        return self._previews.get(handle)

    def release(self, handle: str) -> None:
        """Release a preview. Releasing an unknown handle is a no-op."""
        self._previews.pop(handle, None)
