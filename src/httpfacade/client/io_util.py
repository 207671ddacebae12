"""Small stream helpers."""

import io
from typing import BinaryIO


def create_stream(text: str, encoding: str = "utf-8") -> BinaryIO:
    """Return a readable binary stream holding ``text``."""
    return io.BytesIO(text.encode(encoding))


def extract_string_from_stream(stream: BinaryIO, encoding: str = "utf-8") -> str:
    """Read ``stream`` to the end and decode it.

    In-memory streams that were just written to are read from the start.
    Undecodable bytes are replaced rather than raising.
    """
    if isinstance(stream, io.BytesIO):
        return stream.getvalue().decode(encoding, errors="replace")
    return stream.read().decode(encoding, errors="replace")


def copy_stream(source: BinaryIO, sink: BinaryIO, buffer_size: int = 1024) -> int:
    """Copy ``source`` into ``sink`` in ``buffer_size`` chunks; returns bytes copied."""
    total = 0
    while True:
        chunk = source.read(buffer_size)
        if not chunk:
            return total
        sink.write(chunk)
        total += len(chunk)
