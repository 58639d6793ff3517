"""Framing strategies for input audio bytestreams."""

from __future__ import annotations

import struct
from dataclasses import dataclass
from typing import TYPE_CHECKING, BinaryIO, Union

if TYPE_CHECKING:
    from voicebird.input.codec import CodecType

_FRAME_HEADER = struct.Struct("<h")


@dataclass(frozen=True)
class Frame:
    """Information used in audio frame detection."""

    header_len: int
    frame_len: int


def _read_exact(reader: BinaryIO, size: int) -> bytes:
    data = bytearray()
    while len(data) < size:
        chunk = reader.read(size - len(data))
        if not chunk:
            raise EOFError(f"expected {size} bytes, stream ended after {len(data)}")
        data += chunk
    return bytes(data)


def _trivial_seek(framed: bool, codec_type: CodecType) -> int | None:
    """Sample length to seek by, or None when frames must be walked."""
    if framed:
        return None
    return codec_type.sample_len()


@dataclass(frozen=True)
class RawContainer:
    """Raw, unframed input."""

    def next_frame_length(self, reader: BinaryIO, codec_type: CodecType) -> Frame:
        """Every sample is its own frame; nothing is read."""
        return Frame(header_len=0, frame_len=codec_type.sample_len())

    def try_seek_trivial(self, codec_type: CodecType) -> int | None:
        """Raw input can be seeked directly, one sample length at a time."""
        return _trivial_seek(False, codec_type)

    def input_start(self) -> int:
        return 0


@dataclass(frozen=True)
class DcaContainer:
    """Framed input after a JSON header; frames are a little-endian i16 length and payload."""

    first_frame: int = 0

    def next_frame_length(self, reader: BinaryIO, codec_type: CodecType) -> Frame:
        """Read the next frame header; raises EOFError at the end of the stream."""
        (frame_len,) = _FRAME_HEADER.unpack(_read_exact(reader, _FRAME_HEADER.size))
        return Frame(header_len=_FRAME_HEADER.size, frame_len=max(frame_len, 0))

    def try_seek_trivial(self, codec_type: CodecType) -> int | None:
        """Framed input cannot be seeked by sample length."""
        return _trivial_seek(True, codec_type)

    def input_start(self) -> int:
        """Byte index of the first frame after the JSON header."""
        return self.first_frame


Container = Union[RawContainer, DcaContainer]