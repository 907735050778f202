from __future__ import annotations

from typing import TYPE_CHECKING, Any, Protocol

from ..chat.events import (
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
from .broadcaster import StateBroadcaster
from .lifecycle import ConnectionLifecycleManager, LifecycleState, Scheduler
from .router import ChannelCommandRouter

if TYPE_CHECKING:
    from ..core.context import BridgeContext


class UiSurface(Protocol):
    """The UI side of the process boundary."""

    def emit(self, name: str, payload: Any) -> None: ...

    def request_credential(self) -> None: ...

    def dismiss_credential(self) -> None: ...

    def open_main_window(self) -> None: ...


class BridgeOrchestrator:
    """Wires connection events and UI commands to the bridge components."""

    def __init__(
        self, ctx: BridgeContext, ui: UiSurface, schedule: Scheduler | None = None
    ) -> None:
        self.ctx = ctx
        self.ui = ui
        self.router = ChannelCommandRouter(ctx.client, ctx.settings.legacy_untyped_send)
        self.router.on_status = ctx.status
        self.broadcaster = StateBroadcaster(ctx, ui.emit, self.router)
        self.lifecycle = ConnectionLifecycleManager(ctx, schedule=schedule)
        self.lifecycle.add_listener(self._on_state)
        self.lifecycle.on_credential_accepted = ui.dismiss_credential
        ctx.client.on_event = self.handle_event
        ctx.client.on_status = ctx.status
        self._handlers = {
            Ready: self._on_ready,
            ServerCreated: lambda ev: self.broadcaster.server_created(ev.server),
            ServerUpdated: lambda ev: self.broadcaster.server_updated(ev.server),
            ServerDeleted: lambda ev: self.broadcaster.server_deleted(ev.server_id),
            ChannelCreated: lambda ev: self.broadcaster.channel_created(ev.channel),
            ChannelDeleted: lambda ev: self.broadcaster.channel_deleted(
                ev.channel_id, ev.server_id
            ),
            MessageReceived: lambda ev: self.broadcaster.message_received(ev.message),
            Disconnected: lambda ev: self.lifecycle.handle_disconnect(ev.reason),
            LoginError: lambda ev: self.lifecycle.login_failed(ev.error),
        }

    @property
    def has_window(self) -> bool:
        return self.broadcaster.has_window

    # ----- connection side -----
    def handle_event(self, event: ChatEvent) -> None:
        handler = self._handlers.get(type(event))
        if handler is None:
            return
        try:
            handler(event)
        except Exception as e:
            self.ctx.status(f"{type(event).__name__} handling failed: {type(e).__name__}: {e}")

    def _on_ready(self, _event: Ready) -> None:
        # READY can arrive before the first window exists; opening it replays the servers
        for server in list(self.ctx.client.servers):
            self.broadcaster.server_created(server, announce=self.broadcaster.has_window)

    def _on_state(self, old: LifecycleState, new: LifecycleState) -> None:
        if new is LifecycleState.CONNECTED and not self.broadcaster.has_window:
            self.broadcaster.has_window = True
            self.ui.open_main_window()
            self.broadcaster.replay()
        elif new is LifecycleState.CREDENTIAL_MISSING:
            self.ui.request_credential()

    # ----- UI side -----
    async def start(self) -> None:
        await self.lifecycle.start()

    async def submit_token(self, token: str) -> None:
        try:
            await self.lifecycle.submit_credential(token)
        except Exception as e:
            self.ctx.status(f"token rejected: {type(e).__name__}: {e}")
            if self.lifecycle.state is LifecycleState.CREDENTIAL_MISSING:
                self.ui.request_credential()

    def server(self, server_id: str) -> dict[str, Any] | None:
        """Current snapshot of one server, for refreshing the UI after ``server-update``."""
        return self.broadcaster.server(server_id)

    async def activate_channel(self, channel: Any) -> None:
        await self.broadcaster.activate_channel(channel)

    async def send_command(self, channel_id: str, cmd: Any) -> bool:
        return await self.router.dispatch(channel_id, cmd)

    def window_closed(self) -> None:
        self.broadcaster.has_window = False
        self.broadcaster.active_channel = None

    def window_opened(self) -> None:
        if not self.broadcaster.has_window:
            self.broadcaster.has_window = True
            self.broadcaster.replay()

    async def shutdown(self) -> None:
        await self.lifecycle.shutdown()
        self.broadcaster.reset()
