"""
Image Uploader

Collects candidate image files and filters them down to the supported MIME types.
"""

import logging
import mimetypes
from pathlib import Path
from typing import Iterable, List

from pydantic import BaseModel, Field

from .models import FloraBatchError, SourceImage

logger = logging.getLogger(__name__)

ACCEPTED_MIME_TYPES = (
    "image/jpeg",
    "image/png",
    "image/gif",
    "image/webp",
    "image/bmp",
)


class NoValidImagesError(FloraBatchError):
    """Raised when a selection contains no supported image files."""
    pass


class FilterResult(BaseModel):
    """Outcome of MIME filtering, in input order."""
    accepted: List[SourceImage] = Field(default_factory=list)
    skipped: List[SourceImage] = Field(default_factory=list)


def guess_mime_type(path: Path) -> str:
    """Guess a MIME type from the file name, empty string when unknown."""
    mime_type, _ = mimetypes.guess_type(path.name)
    return mime_type or ""


def filter_images(files: Iterable[SourceImage]) -> FilterResult:
    """
    Keep only files whose declared MIME type is supported.

    Args:
        files: Candidate files, in selection order

    Returns:
        FilterResult with accepted and skipped files

    Raises:
        NoValidImagesError: If no file is accepted
    """
    result = FilterResult()
    for image in files:
        if image.mime_type in ACCEPTED_MIME_TYPES:
            result.accepted.append(image)
        else:
            result.skipped.append(image)

    if result.skipped:
        logger.info(
            f"Skipped {len(result.skipped)} unsupported files: "
            f"{', '.join(f.name for f in result.skipped)}"
        )

    if not result.accepted:
        raise NoValidImagesError("No valid image files found in the selection.")

    return result


def collect_directory(directory: Path, recursive: bool = True) -> List[SourceImage]:
    """
    Build file handles for every file in a directory.

    No filtering happens here; pass the result through filter_images.

    Args:
        directory: Folder to scan
        recursive: Whether to scan subdirectories

    Returns:
        SourceImage list sorted by relative path
    """
    directory = Path(directory)
    if not directory.is_dir():
        raise NotADirectoryError(f"Not a directory: {directory}")

    pattern = "**/*" if recursive else "*"
    files = sorted(p for p in directory.glob(pattern) if p.is_file())

    logger.debug(f"Found {len(files)} files in {directory}")
    return [
        SourceImage(name=p.name, mime_type=guess_mime_type(p), path=p)
        for p in files
    ]
