import io
import math
import struct
from datetime import timedelta

import pytest

from voicebird.input.codec import Codec, CodecType, OpusDecoderState
from voicebird.input.container import DcaContainer, RawContainer
from voicebird.input.metadata import Metadata
from voicebird.input.reader import Reader
from voicebird.input.source import Input, add_float_pcm_frame, consume
from voicebird.input.utils import MONO_FRAME_SIZE, STEREO_FRAME_BYTE_SIZE, STEREO_FRAME_SIZE


def make_sine(count, stereo):
    values = []
    for i in range(count):
        v = math.sin(i * 2 * math.pi / 480)
        values.append(v)
        if stereo:
            values.append(v)
    return struct.pack(f"<{len(values)}f", *values)


def make_pcm_sine(count, stereo):
    values = []
    for i in range(count):
        v = int(math.sin(i * 2 * math.pi / 480) * 32767)
        values.append(v)
        if stereo:
            values.append(v)
    return struct.pack(f"<{len(values)}h", *values)


def floats(data):
    return list(struct.unpack(f"<{len(data) // 4}f", data))


def dca_frames(*payloads):
    return b"".join(struct.pack("<h", len(p)) + p for p in payloads)


class FakeDecoder:
    def __init__(self):
        self.resets = 0
        self.packets = []

    def reset_state(self):
        self.resets += 1

    def decode_float(self, packet):
        self.packets.append(packet)
        return [float(len(packet))] * 4


def opus_input(data, first_frame=0, decoder=None):
    state = OpusDecoderState(decoder=decoder)
    return Input(
        True,
        Reader.from_memory(data),
        Codec(CodecType.OPUS, state),
        DcaContainer(first_frame=first_frame),
        None,
    )


@pytest.mark.parametrize("stereo", [False, True])
def test_float_pcm_input_unchanged(stereo):
    data = make_sine(50 * MONO_FRAME_SIZE, stereo)
    source = Input(stereo, Reader.from_memory(data), Codec.from_type(CodecType.FLOAT_PCM), RawContainer(), None)
    assert source.read_all() == data


@pytest.mark.parametrize("stereo", [False, True])
def test_pcm_input_becomes_float(stereo):
    data = make_pcm_sine(50 * MONO_FRAME_SIZE, stereo)
    source = Input(stereo, Reader.from_memory(data), Codec.from_type(CodecType.PCM), RawContainer(), None)
    out = floats(source.read_all())
    before = struct.unpack(f"<{len(data) // 2}h", data)
    assert len(out) == len(before)
    for sample, after in zip(before, out):
        assert abs(sample / 32768.0 - after) < 1.2e-7


def test_float_pcm_constructor_and_defaults():
    source = Input.float_pcm(True, b"\x00" * 8)
    assert source.codec_type() is CodecType.FLOAT_PCM
    assert source.is_stereo() is True
    assert source.metadata == Metadata()
    assert source.is_seekable() is True


def test_metadata_is_kept():
    meta = Metadata(title="song")
    source = Input(False, b"", CodecType.FLOAT_PCM, RawContainer(), meta)
    assert source.metadata.title == "song"


def test_raw_float_seek_and_read():
    data = make_sine(1000, False)
    source = Input.float_pcm(False, data)
    assert source.seek(400) == 400
    assert source.read(4) == data[400:404]
    assert source.seek(4, io.SEEK_CUR) == 408
    assert source.read(4) == data[408:412]


def test_pcm_seek_converts_positions():
    data = struct.pack("<4h", 0, 1000, -2000, 3000)
    source = Input(False, data, CodecType.PCM, RawContainer(), None)
    assert source.seek(8) == 8
    assert floats(source.read(4)) == [-2000 / 32768.0]


def test_seek_time_on_raw_float():
    data = make_sine(4000, False)
    source = Input.float_pcm(False, data)
    assert source.seek_time(timedelta(milliseconds=20)) == timedelta(milliseconds=20)
    assert source.read(4) == data[3840:3844]


def test_seek_time_on_unseekable_reader_is_none():
    data = make_sine(4000, False)
    source = Input.float_pcm(False, Reader(io.BytesIO(data), seekable=False))
    assert source.seek_time(timedelta(milliseconds=20)) is None


def test_seek_from_end_is_unsupported():
    source = Input.float_pcm(False, b"\x00" * 16)
    with pytest.raises(io.UnsupportedOperation):
        source.seek(0, io.SEEK_END)


def test_negative_seek_is_rejected():
    source = Input.float_pcm(False, b"\x00" * 16)
    with pytest.raises(ValueError):
        source.seek(-4)


def test_opus_with_raw_container_cannot_be_read():
    source = Input(True, b"\x00" * 16, Codec.from_type(CodecType.OPUS), RawContainer(), None)
    with pytest.raises(ValueError):
        source.read(16)


def test_supports_passthrough():
    assert opus_input(b"").supports_passthrough() is True
    assert Input.float_pcm(True, b"").supports_passthrough() is False
    state = OpusDecoderState(allow_passthrough=False)
    source = Input(True, b"", Codec(CodecType.OPUS, state), DcaContainer(), None)
    assert source.supports_passthrough() is False


def test_read_opus_frame_returns_payloads():
    source = opus_input(dca_frames(b"abc", b"de"))
    assert source.read_opus_frame() == b"abc"
    assert source.read_opus_frame() == b"de"
    with pytest.raises(EOFError):
        source.read_opus_frame()


def test_read_opus_frame_needs_opus():
    source = Input.float_pcm(True, b"\x00" * 16)
    with pytest.raises(io.UnsupportedOperation):
        source.read_opus_frame()


def test_opus_decoding_reads_frames():
    decoder = FakeDecoder()
    source = opus_input(dca_frames(b"abc", b"de"), decoder=decoder)
    assert floats(source.read(8)) == [3.0, 3.0]
    assert floats(source.read(16)) == [3.0, 3.0]
    assert floats(source.read(16)) == [2.0] * 4
    assert decoder.packets == [b"abc", b"de"]
    with pytest.raises(EOFError):
        source.read(16)


def test_opus_forward_seek_skips_frames_and_resets_decoder():
    decoder = FakeDecoder()
    source = opus_input(dca_frames(b"abc", b"de", b"f"), decoder=decoder)
    assert source.seek(STEREO_FRAME_BYTE_SIZE) == STEREO_FRAME_BYTE_SIZE
    assert floats(source.read(16)) == [2.0] * 4
    assert decoder.resets == 1
    assert decoder.packets == [b"de"]


def test_opus_backward_seek_restarts_from_first_frame():
    prefix = b"HEAD"
    source = opus_input(prefix + dca_frames(b"abc", b"de", b"f"), first_frame=len(prefix))
    source.reader.seek(len(prefix))
    assert source.seek(2 * STEREO_FRAME_BYTE_SIZE) == 2 * STEREO_FRAME_BYTE_SIZE
    assert source.seek(STEREO_FRAME_BYTE_SIZE) == STEREO_FRAME_BYTE_SIZE
    assert source.read_opus_frame() == b"de"


def test_mix_stereo_applies_volume():
    data = struct.pack(f"<{STEREO_FRAME_SIZE}f", *([0.5] * STEREO_FRAME_SIZE))
    source = Input.float_pcm(True, data)
    buffer = [0.0] * STEREO_FRAME_SIZE
    assert source.mix(buffer, 2.0) == STEREO_FRAME_SIZE * 4
    assert buffer == [1.0] * STEREO_FRAME_SIZE


def test_mix_mono_fills_both_channels():
    data = struct.pack(f"<{MONO_FRAME_SIZE}f", *([0.25] * MONO_FRAME_SIZE))
    source = Input.float_pcm(False, data)
    buffer = [0.0] * STEREO_FRAME_SIZE
    assert source.mix(buffer, 1.0) == STEREO_FRAME_SIZE * 4
    assert buffer == [0.25] * STEREO_FRAME_SIZE


def test_mix_adds_to_existing_samples():
    data = struct.pack("<2f", 0.5, 0.25)
    buffer = [1.0] * STEREO_FRAME_SIZE
    used = add_float_pcm_frame(io.BytesIO(data), buffer, True, 1.0)
    assert used == 8
    assert buffer[:3] == [1.5, 1.25, 1.0]


def test_mix_short_input_stops_early():
    data = struct.pack("<100f", *([1.0] * 100))
    source = Input.float_pcm(True, data)
    buffer = [0.0] * STEREO_FRAME_SIZE
    assert source.mix(buffer, 1.0) == 400
    assert buffer[99] == 1.0
    assert buffer[100] == 0.0


def test_consume_discards_bytes():
    stream = io.BytesIO(b"abcdef")
    assert consume(stream, 4) == 4
    assert stream.read() == b"ef"


def test_consume_stops_at_end():
    stream = io.BytesIO(b"abc")
    assert consume(stream, 10) == 3
    assert stream.read() == b""