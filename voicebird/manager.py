"""A shard-aware registry of per-guild voice calls."""

from __future__ import annotations

import asyncio
import logging
import threading
from dataclasses import dataclass, field

from voicebird.handler import Call
from voicebird.ids import ChannelId, GuildId, UserId
from voicebird.info import ConnectionInfo
from voicebird.join import DroppedError, JoinError, NoCallError
from voicebird.shards import Sender, Sharder

log = logging.getLogger(__name__)


def shard_id(guild_id: GuildId | int, shard_count: int) -> int:
    """Return the shard responsible for a guild."""
    if shard_count <= 0:
        raise ValueError("shard count must be positive; was client data initialised?")
    return (int(guild_id) >> 22) % shard_count


def _as_guild(guild_id: GuildId | int) -> GuildId:
    return guild_id if isinstance(guild_id, GuildId) else GuildId(guild_id)


def _as_channel(channel_id: ChannelId | int) -> ChannelId:
    return channel_id if isinstance(channel_id, ChannelId) else ChannelId(channel_id)


def _as_user(user_id: UserId | int) -> UserId:
    return user_id if isinstance(user_id, UserId) else UserId(user_id)


@dataclass
class _ClientData:
    shard_count: int = 0
    initialised: bool = False
    user_id: UserId = field(default_factory=UserId)


@dataclass
class _Entry:
    call: Call
    lock: asyncio.Lock = field(default_factory=asyncio.Lock)


class VoiceManager:
    """Maps guilds to :class:`Call` objects and forwards gateway voice events."""

    def __init__(
        self, sharder: Sharder | None = None, gateway_timeout: float | None = None
    ) -> None:
        self._sharder = sharder if sharder is not None else Sharder()
        self._gateway_timeout = gateway_timeout
        self._client = _ClientData()
        self._client_lock = threading.Lock()
        self._calls: dict[GuildId, _Entry] = {}
        self._calls_lock = threading.Lock()

    def __repr__(self) -> str:
        with self._calls_lock:
            guilds = sorted(g.value for g in self._calls)
        return f"VoiceManager(client={self._client!r}, guilds={guilds})"

    def initialise_client_data(self, shard_count: int, user_id: UserId | int) -> None:
        """Set the bot's user and shard count; later calls do nothing."""
        with self._client_lock:
            if self._client.initialised:
                return
            self._client = _ClientData(shard_count, True, _as_user(user_id))

    def get(self, guild_id: GuildId | int) -> Call | None:
        """Return the call for a guild, if one exists."""
        entry = self._entry(_as_guild(guild_id))
        return entry.call if entry is not None else None

    def get_or_insert(self, guild_id: GuildId | int) -> Call:
        """Return the call for a guild, creating it without joining anything."""
        return self._entry_or_insert(_as_guild(guild_id)).call

    def set_gateway_timeout(self, timeout: float | None) -> None:
        """Set the gateway timeout given to calls created from now on."""
        self._gateway_timeout = timeout

    async def join_gateway(
        self, guild_id: GuildId | int, channel_id: ChannelId | int
    ) -> tuple[Call, ConnectionInfo]:
        """Join a channel over the gateway and return the call and its connection details.

        If the gateway's answer never arrives, :class:`DroppedError` is raised;
        the call remains available through :meth:`get`.
        """
        entry = self._entry_or_insert(_as_guild(guild_id))
        async with entry.lock:
            pending = await entry.call.join_gateway(_as_channel(channel_id))
        try:
            info = await pending
        except JoinError as exc:
            raise DroppedError() from exc
        return entry.call, info

    async def leave(self, guild_id: GuildId | int) -> None:
        """Leave the guild's voice channel, keeping the call and its settings."""
        entry = self._entry(_as_guild(guild_id))
        if entry is None:
            raise NoCallError()
        async with entry.lock:
            await entry.call.leave()

    async def remove(self, guild_id: GuildId | int) -> None:
        """Leave the guild's voice channel and forget its call."""
        guild = _as_guild(guild_id)
        await self.leave(guild)
        with self._calls_lock:
            self._calls.pop(guild, None)

    def register_shard(self, shard_id: int, sender: Sender) -> None:
        """Attach a send function to a shard, flushing buffered messages."""
        log.debug("Registering shard handle %d.", shard_id)
        self._sharder.register_shard_handle(shard_id, sender)

    def deregister_shard(self, shard_id: int) -> None:
        """Detach a shard's send function; its messages are buffered meanwhile."""
        log.debug("Deregistering shard handle %d.", shard_id)
        self._sharder.deregister_shard_handle(shard_id)

    async def server_update(
        self, guild_id: GuildId | int, endpoint: str | None, token: str
    ) -> None:
        """Forward a voice server update to the guild's call."""
        entry = self._entry(_as_guild(guild_id))
        if entry is None or endpoint is None:
            return
        async with entry.lock:
            entry.call.update_server(endpoint, token)

    async def state_update(
        self,
        guild_id: GuildId | int,
        user_id: UserId | int,
        session_id: str,
        channel_id: ChannelId | int | None,
    ) -> None:
        """Forward a voice state update for this bot's user to the guild's call."""
        with self._client_lock:
            own_user = self._client.user_id
        if _as_user(user_id) != own_user:
            return
        entry = self._entry(_as_guild(guild_id))
        if entry is None:
            return
        channel = _as_channel(channel_id) if channel_id is not None else None
        async with entry.lock:
            entry.call.update_state(session_id, channel)

    def _entry(self, guild: GuildId) -> _Entry | None:
        with self._calls_lock:
            return self._calls.get(guild)

    def _entry_or_insert(self, guild: GuildId) -> _Entry:
        with self._calls_lock:
            entry = self._calls.get(guild)
            if entry is not None:
                return entry
            with self._client_lock:
                client = _ClientData(
                    self._client.shard_count,
                    self._client.initialised,
                    self._client.user_id,
                )
            shard = self._sharder.get_shard(shard_id(guild, client.shard_count))
            call = Call(guild, client.user_id, shard, self._gateway_timeout)
            entry = self._calls[guild] = _Entry(call)
            return entry