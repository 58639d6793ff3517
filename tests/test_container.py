import io
import struct

import pytest

from voicebird.input.codec import CodecType
from voicebird.input.container import DcaContainer, Frame, RawContainer


@pytest.mark.parametrize("codec_type", list(CodecType))
def test_raw_frame_is_one_sample(codec_type):
    reader = io.BytesIO(b"\x01\x02\x03\x04")
    frame = RawContainer().next_frame_length(reader, codec_type)
    assert frame == Frame(header_len=0, frame_len=codec_type.sample_len())
    assert reader.tell() == 0


@pytest.mark.parametrize("codec_type", list(CodecType))
def test_raw_seeks_trivially(codec_type):
    assert RawContainer().try_seek_trivial(codec_type) == codec_type.sample_len()


def test_raw_input_starts_at_zero():
    assert RawContainer().input_start() == 0


def test_dca_reads_little_endian_length():
    length = 123
    reader = io.BytesIO(struct.pack("<h", length) + b"payload")
    frame = DcaContainer().next_frame_length(reader, CodecType.OPUS)
    assert frame.frame_len == length
    assert frame.header_len == 2
    assert reader.tell() == 2


def test_dca_header_bytes_pinned():
    frame = DcaContainer().next_frame_length(io.BytesIO(b"\x00\x01"), CodecType.OPUS)
    assert frame.frame_len == 256


def test_dca_negative_length_clamped_to_zero():
    frame = DcaContainer().next_frame_length(
        io.BytesIO(struct.pack("<h", -5)), CodecType.OPUS
    )
    assert frame.frame_len == 0


def test_dca_reads_consecutive_frames():
    reader = io.BytesIO(struct.pack("<h", 3) + b"abc" + struct.pack("<h", 2) + b"de")
    container = DcaContainer()
    first = container.next_frame_length(reader, CodecType.OPUS)
    assert reader.read(first.frame_len) == b"abc"
    second = container.next_frame_length(reader, CodecType.OPUS)
    assert reader.read(second.frame_len) == b"de"


@pytest.mark.parametrize("data", [b"", b"\x01"])
def test_dca_truncated_header_raises(data):
    with pytest.raises(EOFError):
        DcaContainer().next_frame_length(io.BytesIO(data), CodecType.OPUS)


def test_dca_cannot_seek_trivially():
    assert DcaContainer(first_frame=10).try_seek_trivial(CodecType.FLOAT_PCM) is None


def test_dca_input_start_is_first_frame():
    first_frame = 317
    assert DcaContainer(first_frame=first_frame).input_start() == first_frame