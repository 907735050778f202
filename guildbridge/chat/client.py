from __future__ import annotations

import asyncio
from typing import Any, Callable, Iterable, Optional, Protocol

import aiohttp
import discord

from ..errors import ChatConnectionError, CredentialError, HistoryFetchError
from .events import (
    ChannelCreated,
    ChannelDeleted,
    ChatEvent,
    Disconnected,
    LoginError,
    MessageReceived,
    Ready,
    ServerCreated,
    ServerDeleted,
    ServerUpdated,
)

# Upper bound for a held typing indicator if the UI never sends "stop"
TYPING_HOLD_MAX = 10.0
# How long login waits for the gateway handshake to reach READY
READY_TIMEOUT = 60.0
# Gateway close codes: authentication failed, disallowed intents
AUTH_CLOSE_CODES = (4004, 4014)


def is_auth_failure(error: BaseException | None) -> bool:
    """True when the remote side rejected the token or the bot's configuration."""
    if isinstance(error, (discord.LoginFailure, discord.PrivilegedIntentsRequired)):
        return True
    return isinstance(error, discord.ConnectionClosed) and error.code in AUTH_CLOSE_CODES


class ChatClient(Protocol):
    """What the bridge needs from a chat connection."""

    on_event: Optional[Callable[[ChatEvent], None]]
    on_status: Optional[Callable[[str], None]]

    @property
    def user(self) -> Any: ...

    @property
    def servers(self) -> Iterable[Any]: ...

    async def login(self, token: str) -> None: ...

    async def close(self) -> None: ...

    async def send_message(self, channel_id: str, text: str) -> None: ...

    async def start_typing(self, channel_id: str) -> None: ...

    async def stop_typing(self, channel_id: str) -> None: ...

    async def fetch_history(self, channel_id: str, limit: int) -> list[Any]: ...


class DiscordClient:
    """discord.py connection translated into ``ChatEvent`` callbacks.

    A fresh ``discord.Client`` is built for every login since a closed client cannot be
    restarted. ``login`` returns once the gateway reaches READY. After that the gateway runs
    in a background task; when it ends without ``close()`` having been requested a single
    ``Disconnected`` event is emitted, or ``LoginError`` when the token was rejected.
    """

    def __init__(self, intents: discord.Intents | None = None) -> None:
        if intents is None:
            intents = discord.Intents.default()
            intents.message_content = True
        self.intents = intents
        self.on_event: Optional[Callable[[ChatEvent], None]] = None
        self.on_status: Optional[Callable[[str], None]] = None
        self._client: discord.Client | None = None
        self._runner: asyncio.Task | None = None
        self._closing = False
        self._handshaking = False
        self._typing: dict[str, tuple[asyncio.Event, asyncio.Task]] = {}

    # ----- properties -----
    @property
    def user(self) -> Any:
        return self._client.user if self._client else None

    @property
    def servers(self) -> list[Any]:
        return list(self._client.guilds) if self._client else []

    # ----- internals -----
    def _emit(self, event: ChatEvent) -> None:
        if self.on_event:
            self.on_event(event)

    def _status(self, text: str) -> None:
        if self.on_status:
            try:
                self.on_status(text)
            except Exception:
                pass

    def _make_client(self, ready: asyncio.Event) -> discord.Client:
        client = discord.Client(intents=self.intents)

        @client.event
        async def on_ready():
            ready.set()
            self._emit(Ready())

        @client.event
        async def on_guild_join(guild):
            self._emit(ServerCreated(guild))

        @client.event
        async def on_guild_update(before, after):
            self._emit(ServerUpdated(after))

        @client.event
        async def on_guild_remove(guild):
            self._emit(ServerDeleted(str(guild.id)))

        @client.event
        async def on_guild_channel_create(channel):
            self._emit(ChannelCreated(channel))

        @client.event
        async def on_guild_channel_delete(channel):
            guild = getattr(channel, "guild", None)
            self._emit(ChannelDeleted(str(channel.id), str(guild.id) if guild else None))

        @client.event
        async def on_message(message):
            self._emit(MessageReceived(message))

        return client

    async def _run_gateway(self, client: discord.Client) -> BaseException | None:
        error: BaseException | None = None
        try:
            await client.connect(reconnect=False)
        except Exception as e:
            error = e
        if self._closing or client is not self._client or self._handshaking:
            # while login() is still waiting it reports the outcome itself
            return error
        reason = f"{type(error).__name__}: {error}" if error else "gateway closed"
        self._status(f"disconnected ({reason})")
        try:
            await client.close()
        except Exception:
            pass
        if is_auth_failure(error):
            self._emit(LoginError(error))
        else:
            self._emit(Disconnected(reason))
        return error

    async def _channel(self, channel_id: str) -> Any:
        if self._client is None:
            raise ChatConnectionError("not connected")
        cid = int(channel_id)
        channel = self._client.get_channel(cid)
        if channel is None:
            channel = await self._client.fetch_channel(cid)
        return channel

    async def _hold_typing(self, channel: Any, stop: asyncio.Event) -> None:
        async with channel.typing():
            try:
                await asyncio.wait_for(stop.wait(), timeout=TYPING_HOLD_MAX)
            except asyncio.TimeoutError:
                pass

    # ----- public API -----
    async def login(self, token: str) -> None:
        """Log in and return once the gateway session is READY."""
        if not token:
            raise CredentialError("no token")
        await self.close()
        self._closing = False
        ready = asyncio.Event()
        client = self._make_client(ready)
        self._client = client
        try:
            await client.login(token)
        except discord.LoginFailure as e:
            raise CredentialError(str(e)) from e
        except (discord.HTTPException, aiohttp.ClientError, OSError) as e:
            raise ChatConnectionError(f"{type(e).__name__}: {e}") from e
        runner = asyncio.create_task(self._run_gateway(client))
        self._runner = runner
        waiter = asyncio.create_task(ready.wait())
        self._handshaking = True
        try:
            await asyncio.wait(
                {runner, waiter}, timeout=READY_TIMEOUT, return_when=asyncio.FIRST_COMPLETED
            )
        finally:
            self._handshaking = False
            waiter.cancel()
        if ready.is_set() and not runner.done():
            return
        error = runner.result() if runner.done() else None
        await self.close()
        if is_auth_failure(error):
            raise CredentialError(f"{type(error).__name__}: {error}") from error
        if error is not None:
            raise ChatConnectionError(f"gateway failed: {type(error).__name__}: {error}") from error
        if runner.done():
            raise ChatConnectionError("gateway closed before READY")
        raise ChatConnectionError(f"gateway not READY after {READY_TIMEOUT:g}s")

    async def close(self) -> None:
        self._closing = True
        for stop, _task in list(self._typing.values()):
            stop.set()
        self._typing.clear()
        client, self._client = self._client, None
        if client is not None and not client.is_closed():
            try:
                await client.close()
            except Exception:
                pass
        self._runner = None

    async def send_message(self, channel_id: str, text: str) -> None:
        channel = await self._channel(channel_id)
        try:
            await channel.send(text)
        except discord.HTTPException as e:
            raise ChatConnectionError(f"send failed: {e}") from e

    async def start_typing(self, channel_id: str) -> None:
        if channel_id in self._typing:
            return
        channel = await self._channel(channel_id)
        stop = asyncio.Event()
        task = asyncio.create_task(self._hold_typing(channel, stop))
        self._typing[channel_id] = (stop, task)

        def _forget(t: asyncio.Task, _cid: str = channel_id) -> None:
            held = self._typing.get(_cid)
            if held and held[1] is t:
                del self._typing[_cid]
            if t.cancelled():
                return
            error = t.exception()
            if error is not None:
                self._status(f"typing failed in {_cid}: {type(error).__name__}: {error}")

        task.add_done_callback(_forget)

    async def stop_typing(self, channel_id: str) -> None:
        held = self._typing.pop(channel_id, None)
        if held:
            held[0].set()

    async def fetch_history(self, channel_id: str, limit: int) -> list[Any]:
        try:
            channel = await self._channel(channel_id)
            # newest first, like the gateway delivers it
            return [m async for m in channel.history(limit=limit)]
        except (discord.HTTPException, ChatConnectionError, ValueError) as e:
            raise HistoryFetchError(channel_id, str(e)) from e
