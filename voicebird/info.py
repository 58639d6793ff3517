"""Connection details and the state machine that assembles them."""

from __future__ import annotations

from dataclasses import dataclass, replace

from voicebird.ids import ChannelId, GuildId, UserId


@dataclass(frozen=True)
class ConnectionInfo:
    """Everything needed to start talking to a voice server."""

    channel_id: ChannelId | None
    endpoint: str
    guild_id: GuildId
    session_id: str
    token: str
    user_id: UserId

    def __repr__(self) -> str:
        return (
            f"ConnectionInfo(channel_id={self.channel_id!r}, endpoint={self.endpoint!r}, "
            f"guild_id={self.guild_id!r}, session_id={self.session_id!r}, "
            f"token='<secret>', user_id={self.user_id!r})"
        )


@dataclass
class _Partial:
    channel_id: ChannelId
    guild_id: GuildId
    user_id: UserId
    endpoint: str | None = None
    session_id: str | None = None
    token: str | None = None

    def __repr__(self) -> str:
        return (
            f"_Partial(channel_id={self.channel_id!r}, endpoint={self.endpoint!r}, "
            f"session_id={self.session_id!r}, token_is_some={self.token is not None})"
        )

    def _finalise(self) -> ConnectionInfo | None:
        if self.endpoint is None or self.session_id is None or self.token is None:
            return None
        info = ConnectionInfo(
            channel_id=self.channel_id,
            endpoint=self.endpoint,
            guild_id=self.guild_id,
            session_id=self.session_id,
            token=self.token,
            user_id=self.user_id,
        )
        self.endpoint = self.session_id = self.token = None
        return info

    def apply_state_update(self, session_id: str, channel_id: ChannelId) -> ConnectionInfo | None:
        if self.channel_id != channel_id:
            self.endpoint = None
            self.token = None
        self.channel_id = channel_id
        self.session_id = session_id
        return self._finalise()

    def apply_server_update(self, endpoint: str, token: str) -> ConnectionInfo | None:
        self.endpoint = endpoint
        self.token = token
        return self._finalise()


class ConnectionProgress:
    """Tracks gateway updates until a full ``ConnectionInfo`` is known."""

    def __init__(self, guild_id: GuildId, user_id: UserId, channel_id: ChannelId) -> None:
        self._partial: _Partial | None = _Partial(channel_id, guild_id, user_id)
        self._complete: ConnectionInfo | None = None

    def __repr__(self) -> str:
        state = self._complete if self._complete is not None else self._partial
        return f"ConnectionProgress({state!r})"

    def in_progress(self) -> bool:
        """Whether connection details are still being gathered."""
        return self._complete is None

    def channel_id(self) -> ChannelId:
        if self._complete is not None:
            if self._complete.channel_id is None:
                raise RuntimeError("a complete connection must record its channel")
            return self._complete.channel_id
        return self._partial.channel_id

    def guild_id(self) -> GuildId:
        if self._complete is not None:
            return self._complete.guild_id
        return self._partial.guild_id

    def user_id(self) -> UserId:
        if self._complete is not None:
            return self._complete.user_id
        return self._partial.user_id

    def info(self) -> ConnectionInfo | None:
        """The finished connection details, or None while incomplete."""
        return self._complete

    def _finish(self, info: ConnectionInfo | None) -> bool:
        if info is None:
            return False
        self._complete = info
        self._partial = None
        return True

    def apply_state_update(self, session_id: str, channel_id: ChannelId) -> bool:
        """Apply a voice state update; True means a (re)connect should happen."""
        if self.channel_id() != channel_id:
            # Likely moved to a different channel by an admin.
            self._partial = _Partial(channel_id, self.guild_id(), self.user_id())
            self._complete = None

        if self._complete is not None:
            should_reconnect = self._complete.session_id != session_id
            self._complete = replace(self._complete, session_id=session_id)
            return should_reconnect

        return self._finish(self._partial.apply_state_update(session_id, channel_id))

    def apply_server_update(self, endpoint: str, token: str) -> bool:
        """Apply a voice server update; True means a (re)connect should happen."""
        if self._complete is not None:
            should_reconnect = (
                self._complete.endpoint != endpoint or self._complete.token != token
            )
            self._complete = replace(self._complete, endpoint=endpoint, token=token)
            return should_reconnect

        return self._finish(self._partial.apply_server_update(endpoint, token))