from __future__ import annotations

from typing import Any

from PyQt6.QtCore import QObject, pyqtSignal
from qasync import asyncSlot

from ..core.context import BridgeContext
from ..sync.broadcaster import HISTORY_ERROR, SERVER_CREATE, SERVER_DELETE, SERVER_UPDATE
from ..sync.lifecycle import LifecycleState, Scheduler
from ..sync.orchestrator import BridgeOrchestrator


class BridgeQt(QObject):
    """Qt face of the bridge: signals out to the UI, async slots in from it."""

    statusChanged = pyqtSignal(str)
    stateChanged = pyqtSignal(str)  # LifecycleState value
    serverCreated = pyqtSignal(dict)  # server snapshot with channels map
    serverDeleted = pyqtSignal(str)  # server id
    serverUpdated = pyqtSignal(str)  # server id; read the new snapshot with server()
    # Addressed by channel id: one message dict or a list (history batch, oldest first)
    channelMessages = pyqtSignal(str, object)
    historyFailed = pyqtSignal(str, str)  # channel id, error
    # Window signals for the windowing layer
    credentialRequested = pyqtSignal()
    credentialAccepted = pyqtSignal()
    mainWindowRequested = pyqtSignal()

    def __init__(self, ctx: BridgeContext, schedule: Scheduler | None = None):
        super().__init__()
        self.ctx = ctx
        ctx.on_status.append(self.statusChanged.emit)
        self.core = BridgeOrchestrator(ctx, self, schedule=schedule)
        self.core.lifecycle.add_listener(self._on_state)

    # ----- UiSurface -----
    def emit(self, name: str, payload: Any) -> None:
        if name == SERVER_CREATE:
            self.serverCreated.emit(payload)
        elif name == SERVER_DELETE:
            self.serverDeleted.emit(str(payload))
        elif name == SERVER_UPDATE:
            self.serverUpdated.emit(str(payload))
        elif name == HISTORY_ERROR:
            self.historyFailed.emit(str(payload.get("channel", "")), str(payload.get("error", "")))
        else:
            self.channelMessages.emit(name, payload)

    def request_credential(self) -> None:
        self.credentialRequested.emit()

    def dismiss_credential(self) -> None:
        self.credentialAccepted.emit()

    def open_main_window(self) -> None:
        self.mainWindowRequested.emit()

    def _on_state(self, old: LifecycleState, new: LifecycleState) -> None:
        self.stateChanged.emit(new.value)

    # ----- UI -> bridge -----
    def state(self) -> str:
        return self.core.lifecycle.state.value

    def server(self, server_id: str) -> dict | None:
        return self.core.server(server_id)

    def windowClosed(self) -> None:
        self.core.window_closed()

    def windowOpened(self) -> None:
        self.core.window_opened()

    @asyncSlot()
    async def start(self) -> None:
        await self.core.start()

    @asyncSlot(str)
    async def submitToken(self, token: str) -> None:
        await self.core.submit_token(token)

    @asyncSlot(object)
    async def activateChannel(self, channel: Any) -> None:
        """Focus a channel (snapshot dict or id) and backfill its recent history."""
        await self.core.activate_channel(channel)

    @asyncSlot(str, object)
    async def sendCommand(self, channel_id: str, cmd: Any) -> None:
        await self.core.send_command(channel_id, cmd)

    @asyncSlot(str, str)
    async def sendMessage(self, channel_id: str, text: str) -> None:
        if not text:
            return
        await self.core.send_command(channel_id, {"type": "message", "message": text})

    @asyncSlot(str, str)
    async def setTyping(self, channel_id: str, action: str) -> None:
        await self.core.send_command(
            channel_id, {"type": "typing", "action": action, "channel": channel_id}
        )

    @asyncSlot()
    async def shutdown(self) -> None:
        await self.core.shutdown()
