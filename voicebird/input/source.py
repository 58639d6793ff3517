"""Audio inputs: a byte source read through a codec and container as float PCM."""

from __future__ import annotations

import io
import logging
import struct
from datetime import timedelta
from typing import Any, MutableSequence

from voicebird.input import utils
from voicebird.input.codec import Codec, CodecType, OpusDecoderState
from voicebird.input.container import Container, RawContainer
from voicebird.input.metadata import Metadata
from voicebird.input.reader import Reader
from voicebird.input.utils import MONO_FRAME_BYTE_SIZE, SAMPLE_LEN, STEREO_FRAME_BYTE_SIZE

log = logging.getLogger(__name__)

_MIX_FLOAT_COUNT = 512
_READ_ALL_CHUNK = 8192
_CHEAP_SCRATCH_LEN = STEREO_FRAME_BYTE_SIZE * 4


def _read_up_to(reader: Any, size: int) -> bytes:
    """Read until ``size`` bytes are gathered or the stream ends."""
    data = bytearray()
    while len(data) < size:
        chunk = reader.read(size - len(data))
        if not chunk:
            break
        data += chunk
    return bytes(data)


def _read_exact(reader: Any, size: int) -> bytes:
    data = _read_up_to(reader, size)
    if len(data) < size:
        raise EOFError(f"expected {size} bytes, stream ended after {len(data)}")
    return data


def _pack_floats(values: list[float]) -> bytes:
    return struct.pack(f"<{len(values)}f", *values)


def _unpack_floats(data: bytes) -> tuple[float, ...]:
    count = len(data) // SAMPLE_LEN
    return struct.unpack(f"<{count}f", data[: count * SAMPLE_LEN])


class Input:
    """An audio byte source with the codec, container and metadata needed to read it.

    Reading yields little-endian 32-bit float PCM at 48 kHz, with the same
    channel count as the source.
    """

    def __init__(
        self,
        stereo: bool,
        reader: Reader | bytes,
        codec: Codec | CodecType,
        container: Container | None = None,
        metadata: Metadata | None = None,
    ) -> None:
        if isinstance(reader, (bytes, bytearray, memoryview)):
            reader = Reader.from_memory(bytes(reader))
        if isinstance(codec, CodecType):
            codec = Codec.from_type(codec)
        self.stereo = bool(stereo)
        self.reader = reader
        self.codec = codec
        self.container: Container = container if container is not None else RawContainer()
        self.metadata = metadata if metadata is not None else Metadata()
        self._pos = 0

    @classmethod
    def float_pcm(cls, stereo: bool, reader: Reader | bytes) -> Input:
        """Create an unframed float PCM input from a reader."""
        return cls(stereo, reader, Codec.from_type(CodecType.FLOAT_PCM), RawContainer())

    def __repr__(self) -> str:
        return (
            f"Input(stereo={self.stereo}, codec={self.codec.kind.name}, "
            f"container={self.container!r}, reader={self.reader!r})"
        )

    def is_seekable(self) -> bool:
        """Whether the underlying reader supports seeking."""
        return self.reader.is_seekable()

    def is_stereo(self) -> bool:
        return self.stereo

    def codec_type(self) -> CodecType:
        return self.codec.kind

    def mix(self, float_buffer: MutableSequence[float], volume: float) -> int:
        """Mix this stream into a 20 ms stereo buffer; returns bytes of audio used."""
        mixed = add_float_pcm_frame(self, float_buffer, self.stereo, volume)
        return mixed if mixed is not None else 0

    def seek_time(self, time: timedelta | float) -> timedelta | None:
        """Seek to a time, if possible, returning the time actually reached."""
        target = utils.timestamp_to_byte_count(time, self.stereo)
        try:
            reached = self.seek(target)
        except (OSError, ValueError, EOFError) as exc:
            log.debug("Seek to %s failed: %r", time, exc)
            return None
        return utils.byte_count_to_timestamp(reached, self.stereo)

    def read(self, size: int = -1) -> bytes:
        """Read up to ``size`` bytes of float PCM; everything left if negative."""
        if size is None or size < 0:
            return self.read_all()
        kind = self.codec.kind
        if kind is CodecType.OPUS:
            data = self._read_opus(size)
        elif kind is CodecType.PCM:
            data = self._read_pcm(size)
        else:
            data = self.reader.read(size)
        self._pos += len(data)
        return data

    def read_all(self) -> bytes:
        """Read float PCM until the stream ends."""
        out = bytearray()
        while True:
            chunk = self.read(_READ_ALL_CHUNK)
            if not chunk:
                return bytes(out)
            out += chunk

    def seek(self, offset: int, whence: int = io.SEEK_SET) -> int:
        """Seek within the float PCM output, returning the new position."""
        if whence == io.SEEK_SET:
            target = offset
        elif whence == io.SEEK_CUR:
            target = self._pos + offset
        else:
            raise io.UnsupportedOperation("seeking from the end of an input is not supported")
        if target < 0:
            raise ValueError(f"negative seek position {target}")

        log.debug("Seeking to %d", target)

        if target == self._pos:
            return self._pos

        conversion = self.container.try_seek_trivial(self.codec.kind)
        if conversion is not None:
            inner_target = (target * conversion) // SAMPLE_LEN
            inner_dest = self.reader.seek(inner_target, io.SEEK_SET)
            self._pos = (inner_dest * SAMPLE_LEN) // conversion
        elif target > self._pos:
            self._cheap_consume(target - self._pos)
        else:
            # Start from scratch, then move forward.
            self.reader.seek(self.container.input_start(), io.SEEK_SET)
            self._pos = 0
            self._cheap_consume(target)
        return self._pos

    def supports_passthrough(self) -> bool:
        """Whether Opus frames may be sent on without decoding."""
        state = self.codec.opus_state
        return self.codec.kind is CodecType.OPUS and state is not None and state.allow_passthrough

    def read_opus_frame(self) -> bytes:
        """Read the next whole Opus frame without decoding it."""
        state = self.codec.opus_state
        if self.codec.kind is not CodecType.OPUS or state is None:
            raise io.UnsupportedOperation("Frame passthrough not supported for this file.")

        # Align to a frame boundary, dropping whatever remains of the decoded frame.
        self._pos += len(state.current_frame) - state.frame_pos
        state.frame_pos = 0
        state.current_frame = []

        frame = self.container.next_frame_length(self.reader, CodecType.OPUS)
        data = _read_exact(self.reader, frame.frame_len)
        self._pos += STEREO_FRAME_BYTE_SIZE
        return data

    def _opus_state(self) -> OpusDecoderState:
        if isinstance(self.container, RawContainer):
            raise ValueError("Raw container cannot demarcate Opus frames.")
        return self.codec.opus_state

    def _read_pcm(self, size: int) -> bytes:
        float_space = size // SAMPLE_LEN
        raw = _read_up_to(self.reader, 2 * float_space)
        count = len(raw) // 2
        samples = struct.unpack(f"<{count}h", raw[: 2 * count])
        return _pack_floats([sample / 32768.0 for sample in samples])

    def _read_opus(self, size: int) -> bytes:
        state = self._opus_state()
        if state.frame_pos == len(state.current_frame):
            self._decode_next_frame(state)

        float_space = size // SAMPLE_LEN
        start = state.frame_pos
        to_write = min(float_space, len(state.current_frame) - start)
        values = state.current_frame[start : start + to_write]
        state.frame_pos += to_write
        return _pack_floats(values)

    def _decode_next_frame(self, state: OpusDecoderState) -> None:
        decoder = state.decoder
        if decoder is None:
            raise ValueError("decoding Opus frames needs a decoder")
        if state.should_reset:
            decoder.reset_state()
            state.should_reset = False

        frame = self.container.next_frame_length(self.reader, CodecType.OPUS)
        packet = self.reader.read(frame.frame_len)
        try:
            decoded = list(decoder.decode_float(packet))
        except Exception as exc:  # an undecodable frame yields silence-free nothing
            log.debug("Failed to decode Opus frame: %r", exc)
            decoded = []
        state.current_frame = decoded
        state.frame_pos = 0

    def _skip(self, size: int) -> int:
        """Advance up to ``size`` output bytes, skipping Opus decoding where possible."""
        if self.codec.kind is not CodecType.OPUS:
            return len(self.read(size))

        state = self._opus_state()
        # Use up the remainder of the current frame.
        skipped = len(state.current_frame) - state.frame_pos
        state.frame_pos = 0
        state.current_frame = []

        # Then take whole frames, if there is room.
        while size - skipped >= STEREO_FRAME_BYTE_SIZE:
            state.should_reset = True
            frame = self.container.next_frame_length(self.reader, CodecType.OPUS)
            consume(self.reader, frame.frame_len)
            skipped += STEREO_FRAME_BYTE_SIZE

        self._pos += skipped
        return skipped

    def _cheap_consume(self, count: int) -> int:
        done = 0
        while done < count:
            advanced = self._skip(min(_CHEAP_SCRATCH_LEN, count - done))
            if advanced == 0:
                break
            done += advanced
        return done


def add_float_pcm_frame(
    reader: Any,
    float_buffer: MutableSequence[float],
    stereo: bool,
    volume: float,
) -> int | None:
    """Add one frame of float PCM from ``reader`` into a stereo buffer.

    Mono sources are written to both channels. Returns the number of bytes of
    the buffer filled, or None if the reader failed.
    """
    channels_out = 1 if stereo else 2
    max_bytes = STEREO_FRAME_BYTE_SIZE if stereo else MONO_FRAME_BYTE_SIZE
    frame_pos = 0

    while frame_pos < len(float_buffer):
        try:
            data = reader.read(min(max_bytes, _MIX_FLOAT_COUNT * SAMPLE_LEN))
        except EOFError as exc:
            if stereo:
                log.error("EOF unexpectedly: %r", exc)
            return frame_pos
        except OSError as exc:
            log.error("Input died unexpectedly: %r", exc)
            return None

        samples = _unpack_floats(data)
        for offset, sample in enumerate(samples):
            value = volume * sample
            base = frame_pos + offset * channels_out
            for channel in range(channels_out):
                float_buffer[base + channel] += value

        frame_pos += channels_out * len(samples)
        max_bytes -= len(samples) * SAMPLE_LEN
        if not samples:
            break

    return frame_pos * SAMPLE_LEN


def consume(reader: Any, amount: int) -> int:
    """Read and discard up to ``amount`` bytes, returning how many were dropped.

    Returns 0 if the reader fails.
    """
    dropped = 0
    try:
        while dropped < amount:
            chunk = reader.read(min(amount - dropped, _READ_ALL_CHUNK))
            if not chunk:
                break
            dropped += len(chunk)
    except (OSError, EOFError):
        return 0
    return dropped