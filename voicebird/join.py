"""Errors and awaitables for joining voice channels over the gateway."""

from __future__ import annotations

import asyncio
from typing import Any, Generator, Generic, TypeVar

T = TypeVar("T")


class JoinError(Exception):
    """Base error for failures while joining or leaving a voice channel."""


class NoSenderError(JoinError):
    """No gateway connection is available to send the request."""

    def __init__(self, message: str = "no gateway destination") -> None:
        super().__init__(message)


class NoCallError(JoinError):
    """No call exists for the requested guild."""

    def __init__(self, message: str = "tried to leave a non-existent call") -> None:
        super().__init__(message)


class TimedOutError(JoinError):
    """The gateway did not answer within the allowed time."""

    def __init__(self, message: str = "gateway response from Discord timed out") -> None:
        super().__init__(message)


class DroppedError(JoinError):
    """The join request was abandoned before it completed."""

    def __init__(self, message: str = "request to join was dropped") -> None:
        super().__init__(message)


class JoinGateway(Generic[T]):
    """Awaitable for the gateway's answer to a join request.

    Must not be awaited while holding the lock around the call it came from.
    """

    def __init__(self, future: asyncio.Future, timeout: float | None = None) -> None:
        self._future = future
        self._timeout = timeout

    async def _wait(self) -> T:
        try:
            if self._timeout is None:
                return await self._future
            return await asyncio.wait_for(self._future, self._timeout)
        except asyncio.TimeoutError:
            raise TimedOutError() from None
        except asyncio.CancelledError:
            if self._future.cancelled():
                raise DroppedError() from None
            raise

    def __await__(self) -> Generator[Any, None, T]:
        return self._wait().__await__()