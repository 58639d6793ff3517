"""A single guild's voice call, driven by gateway state updates."""

from __future__ import annotations

import asyncio
import logging

from voicebird.ids import ChannelId, GuildId, UserId
from voicebird.info import ConnectionInfo, ConnectionProgress
from voicebird.join import JoinGateway, NoSenderError
from voicebird.shards import ShardHandle

log = logging.getLogger(__name__)

_VOICE_STATE_UPDATE = 4


class Call:
    """Manages one voice connection and the gateway messages around it.

    A call made without a shard handle (see :meth:`standalone`) only tracks
    its state locally: operations that would contact the gateway update that
    state and then raise :class:`NoSenderError`.
    """

    def __init__(
        self,
        guild_id: GuildId,
        user_id: UserId,
        ws: ShardHandle | None,
        gateway_timeout: float | None = None,
    ) -> None:
        self.guild_id = guild_id
        self.user_id = user_id
        self.gateway_timeout = gateway_timeout
        self._ws = ws
        self._connection: tuple[ConnectionProgress, asyncio.Future] | None = None
        self._self_deaf = False
        self._self_mute = False

    @classmethod
    def standalone(
        cls,
        guild_id: GuildId,
        user_id: UserId,
        gateway_timeout: float | None = None,
    ) -> Call:
        """Create a call which has no gateway connection of its own."""
        return cls(guild_id, user_id, None, gateway_timeout)

    def __repr__(self) -> str:
        progress = self._connection[0] if self._connection is not None else None
        return (
            f"Call(guild_id={self.guild_id!r}, user_id={self.user_id!r}, "
            f"connection={progress!r}, self_deaf={self._self_deaf}, "
            f"self_mute={self._self_mute})"
        )

    async def deafen(self, deaf: bool) -> None:
        """Set whether this connection is self-deafened, and tell the gateway."""
        self._self_deaf = deaf
        await self._update()

    def is_deaf(self) -> bool:
        """Whether the connection is self-deafened. Purely cosmetic."""
        return self._self_deaf

    async def mute(self, mute: bool) -> None:
        """Set whether this connection is self-muted, and tell the gateway."""
        self._self_mute = mute
        await self._update()

    def is_mute(self) -> bool:
        """Whether the connection is self-muted."""
        return self._self_mute

    async def join_gateway(self, channel_id: ChannelId) -> JoinGateway[ConnectionInfo]:
        """Request to join a channel; await the result for the connection details.

        The returned awaitable must not be awaited while holding a lock
        around this call, as gateway updates need that lock to complete it.
        """
        future = asyncio.get_running_loop().create_future()

        if not await self._should_actually_join(future, channel_id):
            return JoinGateway(future, None)

        self._replace_connection(
            (ConnectionProgress(self.guild_id, self.user_id, channel_id), future)
        )
        await self._update()
        return JoinGateway(future, self.gateway_timeout)

    def current_connection(self) -> ConnectionInfo | None:
        """The complete connection details, if known."""
        if self._connection is None:
            return None
        return self._connection[0].info()

    def current_channel(self) -> ChannelId | None:
        """The channel connected or connecting to, if any."""
        if self._connection is None:
            return None
        return self._connection[0].channel_id()

    async def leave(self) -> None:
        """Leave the current channel, keeping mute and deafen settings."""
        self._leave_local()
        await self._update()

    def update_server(self, endpoint: str, token: str) -> None:
        """Apply a voice server update received from the gateway."""
        if self._connection is None:
            return
        if self._connection[0].apply_server_update(endpoint, token):
            self._do_connect()

    def update_state(self, session_id: str, channel_id: ChannelId | None) -> None:
        """Apply a voice state update for this bot's user.

        A missing channel means the bot was disconnected, likely by an admin.
        """
        if channel_id is None:
            self._leave_local()
            return
        if self._connection is None:
            return
        if self._connection[0].apply_state_update(session_id, channel_id):
            self._do_connect()

    async def _should_actually_join(
        self, future: asyncio.Future, channel_id: ChannelId
    ) -> bool:
        if self._connection is None:
            return True
        progress, _ = self._connection
        if progress.in_progress():
            await self.leave()
            return True
        if progress.channel_id() == channel_id:
            future.set_result(progress.info())
            return False
        return True

    def _do_connect(self) -> None:
        if self._connection is None:
            return
        progress, future = self._connection
        info = progress.info()
        # A receiver which has gone away is not an error.
        if info is not None and not future.done():
            future.set_result(info)

    def _replace_connection(
        self, connection: tuple[ConnectionProgress, asyncio.Future] | None
    ) -> None:
        if self._connection is not None:
            old_future = self._connection[1]
            if not old_future.done():
                old_future.cancel()
        self._connection = connection

    def _leave_local(self) -> None:
        self._replace_connection(None)

    async def _update(self) -> None:
        if self._ws is None:
            raise NoSenderError()
        channel = self.current_channel()
        payload = {
            "op": _VOICE_STATE_UPDATE,
            "d": {
                "channel_id": channel.value if channel is not None else None,
                "guild_id": self.guild_id.value,
                "self_deaf": self._self_deaf,
                "self_mute": self._self_mute,
            },
        }
        log.debug("Sending voice state update: %r", payload)
        self._ws.send(payload)