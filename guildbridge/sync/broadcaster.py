from __future__ import annotations

from collections.abc import Mapping
from typing import TYPE_CHECKING, Any, Callable

from ..chat import normalize
from ..chat.snapshots import ServerSnapshot
from .router import ChannelCommandRouter

if TYPE_CHECKING:
    from ..core.context import BridgeContext

Emit = Callable[[str, Any], None]

SERVER_CREATE = "server-create"
SERVER_DELETE = "server-delete"
SERVER_UPDATE = "server-update"
HISTORY_ERROR = "history-error"


class StateBroadcaster:
    """Pushes server/channel changes and messages to the UI.

    Keeps the server -> channels map and the router's registrations in lockstep: every
    channel present in a known server snapshot has exactly one route, and nothing else does.
    """

    def __init__(self, ctx: BridgeContext, emit: Emit, router: ChannelCommandRouter) -> None:
        self.ctx = ctx
        self.emit = emit
        self.router = router
        self.servers: dict[str, ServerSnapshot] = {}
        self.active_channel: dict[str, Any] | None = None
        self.has_window = False

    # ----- bookkeeping -----
    def channel_count(self) -> int:
        return sum(len(s.channels) for s in self.servers.values())

    def _store(self, snap: ServerSnapshot) -> None:
        previous = self.servers.get(snap.id)
        if previous is not None:
            for cid in set(previous.channels) - set(snap.channels):
                self.router.release(cid)
        self.servers[snap.id] = snap
        for cid in snap.channels:
            self.router.register(cid)

    def _forget(self, server_id: str) -> ServerSnapshot | None:
        snap = self.servers.pop(server_id, None)
        if snap is not None:
            for cid in snap.channels:
                self.router.release(cid)
        return snap

    def _server_of(self, channel_id: str) -> ServerSnapshot | None:
        for snap in self.servers.values():
            if channel_id in snap.channels:
                return snap
        return None

    # ----- server lifecycle -----
    def server_created(self, raw: Any, announce: bool = True) -> ServerSnapshot:
        snap = normalize.normalize_server(raw, self.ctx.client.user)
        self._store(snap)
        if announce:
            self.emit(SERVER_CREATE, snap.to_dict())
        return snap

    def server_updated(self, raw: Any) -> ServerSnapshot:
        snap = normalize.normalize_server(raw, self.ctx.client.user)
        self._store(snap)
        self.emit(SERVER_UPDATE, snap.id)
        return snap

    def server_deleted(self, server_id: str) -> None:
        self._forget(str(server_id))
        self.emit(SERVER_DELETE, str(server_id))

    def channel_created(self, raw: Any) -> None:
        server = normalize.owning_server(raw)
        server_id = str(getattr(server, "id", "")) if server is not None else ""
        snap = normalize.normalize_channel(raw, self.ctx.client.user)
        owner = self.servers.get(server_id)
        if snap is not None and owner is not None:
            self.servers[server_id] = owner.with_channel(snap)
            self.router.register(snap.id)
        self.emit(SERVER_UPDATE, server_id)

    def channel_deleted(self, channel_id: str, server_id: str | None = None) -> None:
        cid = str(channel_id)
        owner = self.servers.get(str(server_id)) if server_id else self._server_of(cid)
        if owner is not None and cid in owner.channels:
            self.servers[owner.id] = owner.without_channel(cid)
        self.router.release(cid)
        self.emit(SERVER_UPDATE, owner.id if owner is not None else str(server_id or ""))

    def server(self, server_id: str) -> dict[str, Any] | None:
        snap = self.servers.get(str(server_id))
        return snap.to_dict() if snap is not None else None

    def replay(self) -> None:
        for snap in list(self.servers.values()):
            self.emit(SERVER_CREATE, snap.to_dict())

    def reset(self) -> None:
        for sid in list(self.servers):
            self._forget(sid)
        self.active_channel = None

    # ----- messages -----
    async def activate_channel(self, channel: Any) -> list[dict[str, Any]] | None:
        if isinstance(channel, Mapping):
            channel_id = str(channel.get("id") or "")
            self.active_channel = dict(channel)
        else:
            channel_id = str(channel or "")
            self.active_channel = {"id": channel_id}
        if not channel_id:
            self.active_channel = None
            return None
        limit = self.ctx.settings.history_limit
        try:
            raw_messages = await self.ctx.client.fetch_history(channel_id, limit)
            # history arrives newest first
            batch = [normalize.normalize_message(m).to_dict() for m in list(raw_messages)[:limit]]
        except Exception as e:
            self.ctx.status(f"history fetch failed for {channel_id}: {type(e).__name__}: {e}")
            self.emit(HISTORY_ERROR, {"channel": channel_id, "error": str(e)})
            return None
        batch.reverse()
        self.emit(channel_id, batch)
        return batch

    def message_received(self, raw: Any) -> dict[str, Any] | None:
        if not self.has_window:
            return None
        channel = getattr(raw, "channel", None)
        channel_id = str(getattr(channel, "id", channel))
        if self.active_channel and str(self.active_channel.get("id")) != channel_id:
            return None
        msg = normalize.normalize_message(raw).to_dict()
        self.emit(msg["channel"], msg)
        return msg
