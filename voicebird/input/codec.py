"""Decoding schemes for input audio bytestreams."""

from __future__ import annotations

import enum
from dataclasses import dataclass, field
from typing import Any


class CodecType(enum.Enum):
    """Type of data carried by an input bytestream."""

    OPUS = "opus"
    """Opus-encoded audio; needs a framed (non-raw) container."""
    PCM = "pcm"
    """Raw little-endian i16 samples; needs a raw container."""
    FLOAT_PCM = "float_pcm"
    """Raw little-endian f32 samples; needs a raw container."""

    def sample_len(self) -> int:
        """Length of a single output sample, in bytes."""
        return 2 if self is CodecType.PCM else 4


@dataclass
class OpusDecoderState:
    """State used to decode Opus input, producing stereo output at 48 kHz.

    ``decoder`` is any object offering ``decode_float`` and ``reset_state``;
    it may be left unset for sources only read by frame passthrough.
    ``allow_passthrough`` promises that the source is 48 kHz audio in 20 ms frames.
    """

    decoder: Any = None
    allow_passthrough: bool = True
    current_frame: list[float] = field(default_factory=list)
    frame_pos: int = 0
    should_reset: bool = False


@dataclass
class Codec:
    """A codec type together with any state needed to decode it."""

    kind: CodecType
    opus_state: OpusDecoderState | None = None

    def __post_init__(self) -> None:
        if not isinstance(self.kind, CodecType):
            raise TypeError(f"expected a CodecType, got {self.kind!r}")
        if self.kind is CodecType.OPUS and self.opus_state is None:
            raise ValueError("an Opus codec needs decoder state")
        if self.kind is not CodecType.OPUS and self.opus_state is not None:
            raise ValueError(f"{self.kind.name} codec takes no Opus decoder state")

    @classmethod
    def from_type(cls, codec_type: CodecType) -> Codec:
        """Create a codec of the given type with default state."""
        if codec_type is CodecType.OPUS:
            return cls(codec_type, OpusDecoderState())
        return cls(codec_type)

    def codec_type(self) -> CodecType:
        return self.kind