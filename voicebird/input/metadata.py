"""Descriptive information about an input source."""

from __future__ import annotations

import math
import re
from dataclasses import dataclass, fields, replace
from datetime import timedelta
from typing import Any

from voicebird.input.utils import SAMPLE_RATE

_U64_MAX = 2**64 - 1
_UNSIGNED = re.compile(r"\+?[0-9]+")


def _get(obj: Any, key: str) -> Any:
    return obj.get(key) if isinstance(obj, dict) else None


def _as_str(value: Any) -> str | None:
    return value if isinstance(value, str) else None


def _as_u64(value: Any) -> int | None:
    if isinstance(value, bool) or not isinstance(value, int):
        return None
    return value if 0 <= value <= _U64_MAX else None


def _as_f64(value: Any) -> float | None:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    return float(value)


def _parse_f64(text: str | None) -> float | None:
    if text is None or text != text.strip():
        return None
    try:
        return float(text)
    except ValueError:
        return None


def _parse_u64(text: str | None) -> int | None:
    if text is None or not _UNSIGNED.fullmatch(text):
        return None
    value = int(text)
    return value if value <= _U64_MAX else None


def _seconds(value: float | None) -> timedelta | None:
    if value is None or not math.isfinite(value) or value < 0:
        return None
    try:
        return timedelta(seconds=value)
    except OverflowError:
        return None


@dataclass
class Metadata:
    """Information about an input source; every field is optional."""

    track: str | None = None
    artist: str | None = None
    date: str | None = None
    channels: int | None = None
    """Number of audio channels; 2 or more is treated as stereo."""
    channel: str | None = None
    """The YouTube channel of this stream."""
    start_time: timedelta | None = None
    """When the first true sample plays back, an artefact of coder delay."""
    duration: timedelta | None = None
    sample_rate: int | None = None
    source_url: str | None = None
    title: str | None = None
    thumbnail: str | None = None

    @classmethod
    def from_ffprobe_json(cls, value: Any) -> Metadata:
        """Extract metadata from the parsed JSON output of ``ffprobe``."""
        fmt = _get(value, "format")

        duration = _seconds(_parse_f64(_as_str(_get(fmt, "duration"))))

        start = _parse_f64(_as_str(_get(fmt, "start_time")))
        start_time = _seconds(max(start, 0.0) if start is not None else None)

        tags = _get(fmt, "tags")

        streams = _get(value, "streams")
        stream = None
        if isinstance(streams, list):
            stream = next(
                (s for s in streams if _as_str(_get(s, "codec_type")) == "audio"),
                None,
            )

        channels = _as_u64(_get(stream, "channels"))
        sample_rate = _parse_u64(_as_str(_get(stream, "sample_rate")))

        return cls(
            track=_as_str(_get(tags, "title")),
            artist=_as_str(_get(tags, "artist")),
            date=_as_str(_get(tags, "date")),
            channels=channels & 0xFF if channels is not None else None,
            start_time=start_time,
            duration=duration,
            sample_rate=sample_rate & 0xFFFFFFFF if sample_rate is not None else None,
        )

    @classmethod
    def from_ytdl_output(cls, value: Any) -> Metadata:
        """Extract metadata from the parsed JSON output of ``youtube-dl``."""
        artist = _as_str(_get(value, "artist"))
        if artist is None:
            artist = _as_str(_get(value, "uploader"))

        date = _as_str(_get(value, "release_date"))
        if date is None:
            date = _as_str(_get(value, "upload_date"))

        return cls(
            track=_as_str(_get(value, "track")),
            artist=artist,
            date=date,
            channels=2,
            channel=_as_str(_get(value, "channel")),
            duration=_seconds(_as_f64(_get(value, "duration"))),
            sample_rate=SAMPLE_RATE,
            source_url=_as_str(_get(value, "webpage_url")),
            title=_as_str(_get(value, "title")),
            thumbnail=_as_str(_get(value, "thumbnail")),
        )

    def take(self) -> Metadata:
        """Move every field into a new object, leaving this one empty."""
        moved = replace(self)
        for f in fields(self):
            setattr(self, f.name, None)
        return moved