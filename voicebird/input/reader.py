"""Byte sources for input audio streams."""

from __future__ import annotations

import io
import os
from typing import Any, BinaryIO

_NO_SEEK = "Seeking not supported on Reader of this type."


def _probe_seekable(source: Any) -> bool:
    probe = getattr(source, "seekable", None)
    if probe is None or not hasattr(source, "seek"):
        return False
    try:
        return bool(probe())
    except (OSError, ValueError):
        return False


class Reader:
    """A readable byte source, seekable only if its underlying source is."""

    def __init__(self, source: BinaryIO, seekable: bool | None = None) -> None:
        self._source = source
        self._seekable = _probe_seekable(source) if seekable is None else bool(seekable)

    @classmethod
    def from_file(cls, file: BinaryIO | str | bytes | os.PathLike) -> Reader:
        """A source held in a local file, given as an open binary file or a path."""
        if isinstance(file, (str, bytes, os.PathLike)):
            file = open(file, "rb")
        return cls(file)

    @classmethod
    def from_memory(cls, data: bytes) -> Reader:
        """A source held in memory."""
        return cls(io.BytesIO(bytes(data)))

    def __repr__(self) -> str:
        return f"Reader({self._source!r}, seekable={self._seekable})"

    def is_seekable(self) -> bool:
        """Whether this source supports seeking."""
        return self._seekable

    def read(self, size: int = -1) -> bytes:
        """Read up to ``size`` bytes; all remaining bytes when ``size`` is negative."""
        return self._source.read(size)

    def readinto(self, buffer) -> int:
        data = self.read(len(buffer))
        memoryview(buffer).cast("B")[: len(data)] = data
        return len(data)

    def seek(self, offset: int, whence: int = io.SEEK_SET) -> int:
        """Move to a new position; raises ``io.UnsupportedOperation`` if not seekable."""
        if not self._seekable:
            raise io.UnsupportedOperation(_NO_SEEK)
        return self._source.seek(offset, whence)

    def tell(self) -> int:
        if not self._seekable:
            raise io.UnsupportedOperation(_NO_SEEK)
        return self._source.tell()

    @property
    def closed(self) -> bool:
        return bool(getattr(self._source, "closed", False))

    def close(self) -> None:
        """Close the underlying source."""
        close = getattr(self._source, "close", None)
        if close is not None:
            close()

    def __enter__(self) -> Reader:
        return self

    def __exit__(self, *args) -> None:
        self.close()