"""In-memory chat connection for tests and offline demos.

Entities mirror the shape of the real library's objects, circular references included
(message -> channel -> server -> channels, message -> client), so the normalizer is
exercised against the same kind of graph it sees in production.
"""

from __future__ import annotations

import argparse
import asyncio
import json
import tempfile
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable, Optional

from ..chat.events import (
    ChannelCreated,
    ChannelDeleted,
    ChatEvent,
    Disconnected,
    MessageReceived,
    Ready,
    ServerCreated,
    ServerDeleted,
)
from ..errors import ChatConnectionError, CredentialError, HistoryFetchError


@dataclass(eq=False)
class OfflineRole:
    id: str
    name: str
    color: int = 0


@dataclass(eq=False)
class OfflineUser:
    id: str
    username: str
    discriminator: str = "0001"
    avatar: str | None = None
    roles: list[str] = field(default_factory=list)  # role ids


@dataclass
class OfflinePermissions:
    read_messages: bool = True


@dataclass(eq=False)
class OfflineChannel:
    id: str
    name: str
    type: str = "text"
    position: int = 0
    topic: str | None = None
    server: OfflineServer | None = None
    hidden_from: set[str] = field(default_factory=set)  # user ids that cannot read

    def permissions_for(self, who: Any) -> OfflinePermissions:
        who_id = str(getattr(who, "id", who))
        return OfflinePermissions(read_messages=who_id not in self.hidden_from)


@dataclass(eq=False)
class OfflineServer:
    id: str
    name: str
    icon: str | None = None
    owner_id: str | None = None
    roles: list[OfflineRole] = field(default_factory=list)
    channels: list[OfflineChannel] = field(default_factory=list)

    def add_channel(self, channel: OfflineChannel) -> OfflineChannel:
        channel.server = self
        self.channels.append(channel)
        return channel

    def channel(self, channel_id: str) -> OfflineChannel | None:
        for ch in self.channels:
            if ch.id == channel_id:
                return ch
        return None


@dataclass(eq=False)
class OfflineMessage:
    id: str
    channel: OfflineChannel
    author: OfflineUser
    content: str
    timestamp: float  # epoch milliseconds
    client: Any = None


class OfflineChatClient:
    """ChatClient implementation with scripted events and recorded outbound calls."""

    def __init__(self, user: OfflineUser | None = None, servers: list[OfflineServer] | None = None):
        self.on_event: Optional[Callable[[ChatEvent], None]] = None
        self.on_status: Optional[Callable[[str], None]] = None
        self._user = user or OfflineUser("1", "bridge-bot")
        self._servers: list[OfflineServer] = list(servers or [])
        self.history: dict[str, list[OfflineMessage]] = {}  # oldest first
        self.calls: list[tuple] = []
        self.logins: list[str] = []
        self.fail_login: BaseException | None = None
        self.fail_history: BaseException | None = None
        self.connected = False
        self._next_id = 1000

    @property
    def user(self) -> OfflineUser:
        return self._user

    @property
    def servers(self) -> list[OfflineServer]:
        return list(self._servers)

    # ----- ChatClient -----
    async def login(self, token: str) -> None:
        self.logins.append(token)
        if not token:
            raise CredentialError("no token")
        if self.fail_login is not None:
            raise self.fail_login
        self.connected = True

    async def close(self) -> None:
        self.connected = False

    async def send_message(self, channel_id: str, text: str) -> None:
        if not self.connected:
            raise ChatConnectionError("not connected")
        self.calls.append(("send_message", channel_id, text))

    async def start_typing(self, channel_id: str) -> None:
        self.calls.append(("start_typing", channel_id))

    async def stop_typing(self, channel_id: str) -> None:
        self.calls.append(("stop_typing", channel_id))

    async def fetch_history(self, channel_id: str, limit: int) -> list[OfflineMessage]:
        if self.fail_history is not None:
            raise HistoryFetchError(channel_id, str(self.fail_history))
        msgs = self.history.get(channel_id, [])
        return list(reversed(msgs))[:limit]

    # ----- scripting -----
    def emit(self, event: ChatEvent) -> None:
        if self.on_event:
            self.on_event(event)

    def make_message(
        self, channel: OfflineChannel, author: OfflineUser, content: str, ts: float | None = None
    ) -> OfflineMessage:
        self._next_id += 1
        stamp = ts if ts is not None else time.time() * 1000.0
        return OfflineMessage(str(self._next_id), channel, author, content, stamp, client=self)

    def seed_history(self, channel: OfflineChannel, author: OfflineUser, count: int) -> None:
        base = time.time() * 1000.0 - count * 1000.0
        msgs = self.history.setdefault(channel.id, [])
        for i in range(count):
            msgs.append(self.make_message(channel, author, f"message {i}", base + i * 1000.0))

    def post(self, channel: OfflineChannel, author: OfflineUser, content: str) -> OfflineMessage:
        msg = self.make_message(channel, author, content)
        self.history.setdefault(channel.id, []).append(msg)
        self.emit(MessageReceived(msg))
        return msg

    def ready(self) -> None:
        self.emit(Ready())

    def join_server(self, server: OfflineServer) -> None:
        self._servers.append(server)
        self.emit(ServerCreated(server))

    def leave_server(self, server: OfflineServer) -> None:
        self._servers = [s for s in self._servers if s is not server]
        self.emit(ServerDeleted(server.id))

    def create_channel(self, server: OfflineServer, channel: OfflineChannel) -> OfflineChannel:
        server.add_channel(channel)
        self.emit(ChannelCreated(channel))
        return channel

    def delete_channel(self, server: OfflineServer, channel_id: str) -> None:
        server.channels = [c for c in server.channels if c.id != channel_id]
        self.emit(ChannelDeleted(channel_id, server.id))

    def drop(self, reason: str = "connection reset") -> None:
        self.connected = False
        self.emit(Disconnected(reason))


def demo_server(me: OfflineUser) -> tuple[OfflineServer, OfflineUser]:
    """S1 with #general, #staff (hidden from ``me``), voice-1 and two roles."""
    server = OfflineServer("100", "S1", owner_id="2")
    server.roles = [OfflineRole("10", "member", 0), OfflineRole("11", "mod", 0x3498DB)]
    server.add_channel(OfflineChannel("200", "general", "text", position=0))
    server.add_channel(OfflineChannel("201", "staff", "text", position=1, hidden_from={me.id}))
    server.add_channel(OfflineChannel("202", "voice-1", "voice", position=2))
    alice = OfflineUser("2", "alice", "4242", avatar="a1b2", roles=["11", "10"])
    return server, alice


class PrintSurface:
    """UI surface that prints every bridge -> UI event as a JSON line."""

    def __init__(self, out: Callable[[str], None] = print) -> None:
        self.out = out

    def _line(self, name: str, payload: Any) -> None:
        self.out(json.dumps({"event": name, "payload": payload}, ensure_ascii=False))

    def emit(self, name: str, payload: Any) -> None:
        self._line(name, payload)

    def request_credential(self) -> None:
        self._line("credential-requested", None)

    def dismiss_credential(self) -> None:
        self._line("credential-accepted", None)

    def open_main_window(self) -> None:
        self._line("main-window", None)


async def run_demo(token: str, history: int, state_dir: Path) -> int:
    from ..core.config import BridgeSettings
    from ..core.context import BridgeContext
    from ..core.credentials import CredentialStore
    from ..logging.log_writer import LogWriter
    from ..sync.orchestrator import BridgeOrchestrator

    client = OfflineChatClient()
    server, alice = demo_server(client.user)
    client.seed_history(server.channels[0], alice, history)
    ctx = BridgeContext(
        settings=BridgeSettings(retry_delay=0.0),
        client=client,
        credentials=CredentialStore(state_dir / "credentials.json"),
        log=LogWriter(str(state_dir / "logs")),
    )
    ctx.on_status.append(lambda s: print(f"# {s}"))
    bridge = BridgeOrchestrator(ctx, PrintSurface())

    await bridge.start()
    await bridge.submit_token(token)
    client.join_server(server)
    await bridge.activate_channel({"id": "200"})
    client.post(server.channels[0], alice, "hello from the offline server")
    await bridge.send_command("200", {"type": "message", "message": "hi alice"})
    client.drop()
    await asyncio.sleep(0.05)
    await bridge.shutdown()
    print(f"# outbound calls: {client.calls}")
    return 0


def main() -> int:
    parser = argparse.ArgumentParser(description="Run the bridge against an offline server")
    parser.add_argument("--token", default="offline-token")
    parser.add_argument("--history", type=int, default=5)
    parser.add_argument("--state-dir", type=Path, default=None)
    args = parser.parse_args()
    if args.state_dir is not None:
        return asyncio.run(run_demo(args.token, args.history, args.state_dir))
    with tempfile.TemporaryDirectory() as tmp:
        return asyncio.run(run_demo(args.token, args.history, Path(tmp)))


if __name__ == "__main__":
    raise SystemExit(main())
