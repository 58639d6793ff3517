"""In-memory, shared input sources for reuse between calls and fast seeking."""

from __future__ import annotations

import copy
import io
import threading
from dataclasses import dataclass, replace
from datetime import timedelta
from typing import Any, Union

from voicebird.input import utils
from voicebird.input.codec import Codec
from voicebird.input.metadata import Metadata
from voicebird.input.reader import Reader
from voicebird.input.source import Input

_BITRATE_AUTO = 64_000
_BITRATE_MAX = 512_000
_SECOND = timedelta(seconds=1)


@dataclass
class CacheConfig:
    """How a cached source pulls data from its underlying reader.

    ``chunk_size`` caps the size of each read from the source; ``length_hint``
    records the expected total size of the cached data in bytes, if known.
    """

    chunk_size: int = 1 << 16
    length_hint: int | None = None

    def __post_init__(self) -> None:
        if self.chunk_size <= 0:
            raise ValueError(f"chunk size must be positive: {self.chunk_size}")
        if self.length_hint is not None and self.length_hint < 0:
            raise ValueError(f"length hint must not be negative: {self.length_hint}")


def compressed_cost_per_sec(bitrate: Union[int, str]) -> int:
    """Estimated cost in bytes per second of audio Opus-compressed at ``bitrate``.

    ``bitrate`` is bits per second, or ``"auto"`` or ``"max"``.
    """
    framing_cost_per_sec = utils.AUDIO_FRAME_RATE * 2
    if bitrate == "auto":
        raw = _BITRATE_AUTO
    elif bitrate == "max":
        raw = _BITRATE_MAX
    elif isinstance(bitrate, int) and not isinstance(bitrate, bool):
        raw = bitrate
    else:
        raise ValueError(f"unknown bitrate: {bitrate!r}")
    return raw // 8 + framing_cost_per_sec


def raw_cost_per_sec(stereo: bool) -> int:
    """Cost in bytes per second of raw float PCM audio."""
    return utils.timestamp_to_byte_count(_SECOND, stereo)


def default_config(cost_per_sec: int) -> CacheConfig:
    """The default cache configuration: chunks of five seconds of audio."""
    return CacheConfig(chunk_size=5 * cost_per_sec)


def apply_length_hint(
    config: CacheConfig, hint: Union[int, timedelta], cost_per_sec: int
) -> None:
    """Set ``config.length_hint`` from a byte count or a duration.

    A duration is rounded up to whole seconds when it has any milliseconds.
    """
    if isinstance(hint, timedelta):
        seconds = hint // _SECOND
        if (hint % _SECOND) // timedelta(milliseconds=1) > 0:
            seconds += 1
        config.length_hint = seconds * cost_per_sec
    elif isinstance(hint, int) and not isinstance(hint, bool):
        config.length_hint = hint
    else:
        raise TypeError(f"length hint must be a byte count or timedelta, got {hint!r}")


class _SharedStore:
    """Bytes pulled from a source on demand, shared by every handle."""

    def __init__(self, source: Any, chunk_size: int) -> None:
        self._source = source
        self._chunk_size = chunk_size
        self._data = bytearray()
        self._finished = False
        self._lock = threading.Lock()

    def _fill(self, want: int | None) -> None:
        while not self._finished and (want is None or len(self._data) < want):
            needed = self._chunk_size if want is None else want - len(self._data)
            chunk = self._source.read(min(self._chunk_size, needed))
            if not chunk:
                self._finished = True
                close = getattr(self._source, "close", None)
                if close is not None:
                    close()
            else:
                self._data += chunk

    def slice(self, start: int, end: int | None) -> bytes:
        with self._lock:
            self._fill(end)
            return bytes(self._data[start:end])

    def length(self, at_least: int | None) -> int:
        """Fill to ``at_least`` bytes (everything if None) and return the cached length."""
        with self._lock:
            self._fill(at_least)
            return len(self._data)


class Memory:
    """Caches an input's raw bytes in memory, keeping its codec and framing.

    Handles from :meth:`new_handle` share the cache and each read from the
    start. The cache holds data as the source supplies it, so uncompressed
    float PCM costs 375 KiB per second of stereo audio.
    """

    def __init__(self, source: Input, config: CacheConfig | None = None) -> None:
        self.stereo = source.stereo
        self.kind = source.codec_type()
        self.container = source.container
        self.metadata: Metadata = source.metadata.take()

        cost_per_sec = raw_cost_per_sec(self.stereo)
        config = replace(config) if config is not None else default_config(cost_per_sec)
        if config.length_hint is None and self.metadata.duration is not None:
            apply_length_hint(config, self.metadata.duration, cost_per_sec)
        self.config = config

        self._store = _SharedStore(source.reader, config.chunk_size)
        self._pos = 0

    def __repr__(self) -> str:
        return (
            f"Memory(kind={self.kind.name}, stereo={self.stereo}, "
            f"container={self.container!r}, position={self._pos})"
        )

    def new_handle(self) -> Memory:
        """A new view of the shared cache, starting from the beginning."""
        handle = copy.copy(self)
        handle.metadata = replace(self.metadata)
        handle._pos = 0
        return handle

    def readable(self) -> bool:
        return True

    def seekable(self) -> bool:
        return True

    def read(self, size: int = -1) -> bytes:
        """Read up to ``size`` bytes; everything remaining if negative."""
        end = None if size is None or size < 0 else self._pos + size
        data = self._store.slice(self._pos, end)
        self._pos += len(data)
        return data

    def seek(self, offset: int, whence: int = io.SEEK_SET) -> int:
        """Move within the cache, pulling from the source as needed."""
        if whence == io.SEEK_SET:
            target = offset
        elif whence == io.SEEK_CUR:
            target = self._pos + offset
        elif whence == io.SEEK_END:
            target = self._store.length(None) + offset
        else:
            raise ValueError(f"invalid whence: {whence}")
        if target < 0:
            raise ValueError(f"negative seek position {target}")
        self._pos = min(target, self._store.length(target))
        return self._pos

    def tell(self) -> int:
        return self._pos

    def into_input(self) -> Input:
        """A seekable input reading from this cache."""
        return Input(
            self.stereo,
            Reader(self, seekable=True),
            Codec.from_type(self.kind),
            self.container,
            self.metadata,
        )