"""Typed wrappers around Discord snowflake identifiers."""

from __future__ import annotations

from dataclasses import dataclass

_U64_MAX = 2**64 - 1


@dataclass(frozen=True, order=True)
class _Snowflake:
    value: int = 0

    def __post_init__(self) -> None:
        if not isinstance(self.value, int) or isinstance(self.value, bool):
            raise TypeError(
                f"{type(self).__name__} needs an int, got {type(self.value).__name__}"
            )
        if not 0 <= self.value <= _U64_MAX:
            raise ValueError(
                f"{type(self).__name__} must fit in an unsigned 64-bit integer: {self.value}"
            )

    def __str__(self) -> str:
        return str(self.value)

    def __int__(self) -> int:
        return self.value

    def __index__(self) -> int:
        return self.value


@dataclass(frozen=True, order=True)
class ChannelId(_Snowflake):
    """ID of a Discord voice or text channel."""


@dataclass(frozen=True, order=True)
class GuildId(_Snowflake):
    """ID of a Discord guild (colloquially, "server")."""


@dataclass(frozen=True, order=True)
class UserId(_Snowflake):
    """ID of a Discord user."""