"""Conversions between timestamps and positions in 48 kHz float PCM streams."""

from __future__ import annotations

from datetime import timedelta

SAMPLE_RATE = 48_000
FRAME_LEN_MS = 20
MONO_FRAME_SIZE = SAMPLE_RATE * FRAME_LEN_MS // 1000
STEREO_FRAME_SIZE = 2 * MONO_FRAME_SIZE
AUDIO_FRAME_RATE = 1000 // FRAME_LEN_MS
SAMPLE_LEN = 4
MONO_FRAME_BYTE_SIZE = MONO_FRAME_SIZE * SAMPLE_LEN
STEREO_FRAME_BYTE_SIZE = STEREO_FRAME_SIZE * SAMPLE_LEN

_MILLISECOND = timedelta(milliseconds=1)


def _as_timedelta(timestamp: timedelta | float) -> timedelta:
    if not isinstance(timestamp, timedelta):
        timestamp = timedelta(seconds=timestamp)
    if timestamp < timedelta(0):
        raise ValueError(f"timestamp must not be negative: {timestamp}")
    return timestamp


def _check_count(amt: int) -> int:
    if amt < 0:
        raise ValueError(f"count must not be negative: {amt}")
    return amt


def timestamp_to_sample_count(timestamp: timedelta | float, stereo: bool) -> int:
    """Sample position in a float PCM stream for a timestamp (seconds or timedelta)."""
    millis = _as_timedelta(timestamp) // _MILLISECOND
    return (millis * (MONO_FRAME_SIZE // FRAME_LEN_MS)) << int(stereo)


def sample_count_to_timestamp(amt: int, stereo: bool) -> timedelta:
    """Time position in a float PCM stream for a sample index."""
    millis = (_check_count(amt) * FRAME_LEN_MS) // MONO_FRAME_SIZE
    return timedelta(milliseconds=millis >> int(stereo))


def timestamp_to_byte_count(timestamp: timedelta | float, stereo: bool) -> int:
    """Byte position in a float PCM stream for a timestamp; samples are 4 bytes."""
    return timestamp_to_sample_count(timestamp, stereo) * SAMPLE_LEN


def byte_count_to_timestamp(amt: int, stereo: bool) -> timedelta:
    """Time position in a float PCM stream for a byte index; samples are 4 bytes."""
    return sample_count_to_timestamp(_check_count(amt) // SAMPLE_LEN, stereo)