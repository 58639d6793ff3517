"""Shard handles that send gateway messages and buffer them while disconnected."""

from __future__ import annotations

import logging
import threading
from typing import Any, Callable

from voicebird.join import JoinError

log = logging.getLogger(__name__)

Sender = Callable[[Any], None]


class ShardHandle:
    """Handle to one gateway shard, buffering messages during reconnects."""

    def __init__(self) -> None:
        self._sender: Sender | None = None
        self._queue: list[Any] = []
        self._lock = threading.RLock()

    def __repr__(self) -> str:
        with self._lock:
            return (
                f"ShardHandle(connected={self._sender is not None}, "
                f"queued={len(self._queue)})"
            )

    def register(self, sender: Sender) -> None:
        """Attach a send function and flush any buffered messages through it."""
        with self._lock:
            self._sender = sender
            pending, self._queue = self._queue, []
            sent = 0
            for message in pending:
                try:
                    sender(message)
                except Exception as exc:
                    # The rest of the buffer is discarded, as the channel is unusable.
                    log.error("Error while clearing gateway message queue: %r", exc)
                    break
                sent += 1
            if sent:
                log.debug("%d buffered messages sent.", sent)

    def deregister(self) -> None:
        """Detach the send function; later messages are buffered."""
        with self._lock:
            self._sender = None

    def send(self, message: Any) -> None:
        """Send a message now, or buffer it if the shard is disconnected."""
        with self._lock:
            if self._sender is None:
                log.debug("Shard temporarily disconnected: buffering message.")
                self._queue.append(message)
                return
            sender = self._sender
        try:
            sender(message)
        except Exception as exc:
            raise JoinError(f"failed to send gateway message: {exc}") from exc


class Sharder:
    """Source of shard handles, keyed by shard number."""

    def __init__(self) -> None:
        self._handles: dict[int, ShardHandle] = {}
        self._lock = threading.Lock()

    def __repr__(self) -> str:
        with self._lock:
            return f"Sharder(shards={sorted(self._handles)})"

    def get_shard(self, shard_id: int) -> ShardHandle:
        """Return the handle for a shard, creating it if needed."""
        with self._lock:
            handle = self._handles.get(shard_id)
            if handle is None:
                handle = self._handles[shard_id] = ShardHandle()
            return handle

    def register_shard_handle(self, shard_id: int, sender: Sender) -> None:
        self.get_shard(shard_id).register(sender)

    def deregister_shard_handle(self, shard_id: int) -> None:
        self.get_shard(shard_id).deregister()