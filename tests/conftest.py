"""
Shared fixtures for FloraBatch tests.
"""

import struct
import zlib

import pytest

from florabatch.models import SourceImage


def png_chunk(kind: bytes, data: bytes) -> bytes:
    return struct.pack(">I", len(data)) + kind + data + struct.pack(">I", zlib.crc32(kind + data))


@pytest.fixture
def oversized_png() -> SourceImage:
    """PNG whose header declares 20000x20000 pixels, over Pillow's bomb limit."""
    header = struct.pack(">IIBBBBB", 20000, 20000, 8, 2, 0, 0, 0)
    content = (
        b"\x89PNG\r\n\x1a\n"
        + png_chunk(b"IHDR", header)
        + png_chunk(b"IDAT", b"")
        + png_chunk(b"IEND", b"")
    )
    return SourceImage(name="huge.png", mime_type="image/png", content=content)
