from __future__ import annotations

import asyncio
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, Awaitable, Callable, Optional

from ..errors import CredentialError

if TYPE_CHECKING:
    from ..core.context import BridgeContext


class LifecycleState(Enum):
    IDLE = "idle"
    CREDENTIAL_MISSING = "credential_missing"
    AUTHENTICATING = "authenticating"
    CONNECTED = "connected"
    RECONNECTING = "reconnecting"
    STOPPED = "stopped"


@dataclass
class Session:
    credential: str | None = None
    retries: int = 0
    state: LifecycleState = LifecycleState.IDLE


Scheduler = Callable[[float, Callable[[], Awaitable[None]]], None]
Listener = Callable[[LifecycleState, LifecycleState], None]


def call_later(delay: float, fn: Callable[[], Awaitable[None]]) -> None:
    """Fire-once timer on the running loop."""
    loop = asyncio.get_running_loop()
    loop.call_later(delay, lambda: asyncio.ensure_future(fn()))


class ConnectionLifecycleManager:
    """Login, bounded reconnect and the ask-for-a-new-token fallback.

    Transitions are published to listeners as ``(old, new)``; nothing here touches the UI.
    """

    def __init__(self, ctx: BridgeContext, schedule: Scheduler | None = None) -> None:
        self.ctx = ctx
        self.session = Session()
        self._schedule: Scheduler = schedule or call_later
        self._listeners: list[Listener] = []
        self.on_credential_accepted: Optional[Callable[[], None]] = None

    @property
    def state(self) -> LifecycleState:
        return self.session.state

    @property
    def retries(self) -> int:
        return self.session.retries

    def add_listener(self, cb: Listener) -> None:
        self._listeners.append(cb)

    def _set_state(self, new: LifecycleState) -> None:
        old = self.session.state
        self.session.state = new
        if new is LifecycleState.CONNECTED:
            self.session.retries = 0
        if old is new:
            return
        self.ctx.status(f"state {old.value} -> {new.value}")
        for cb in list(self._listeners):
            try:
                cb(old, new)
            except Exception as e:
                self.ctx.status(f"state listener failed: {type(e).__name__}: {e}")

    async def start(self) -> None:
        try:
            token = self.ctx.credentials.load()
        except Exception as e:
            self.ctx.status(f"credential store unreadable: {e}")
            token = None
        if not token:
            self._set_state(LifecycleState.CREDENTIAL_MISSING)
            return
        self.session.credential = token
        self._set_state(LifecycleState.AUTHENTICATING)
        await self.login()

    async def submit_credential(self, token: str) -> None:
        token = (token or "").strip()
        if not token:
            raise CredentialError("empty token")
        self.ctx.credentials.save(token)
        self.session = Session(credential=token, state=self.session.state)
        if self.on_credential_accepted:
            self.on_credential_accepted()
        self._set_state(LifecycleState.AUTHENTICATING)
        await self.login()

    async def login(self) -> bool:
        token = self.session.credential
        if not token:
            self._set_state(LifecycleState.CREDENTIAL_MISSING)
            return False
        self._set_state(LifecycleState.AUTHENTICATING)
        try:
            await self.ctx.client.login(token)
        except CredentialError as e:
            self.ctx.status(f"login rejected: {e}")
            self.session.retries = 0
            self._set_state(LifecycleState.CREDENTIAL_MISSING)
            return False
        except Exception as e:
            self.ctx.status(f"login failed: {type(e).__name__}: {e}")
            return False
        if self.state is LifecycleState.STOPPED:
            return False
        self._set_state(LifecycleState.CONNECTED)
        return True

    def login_failed(self, error: BaseException) -> None:
        """The live session was closed because the token stopped being accepted."""
        self.ctx.status(f"login error: {type(error).__name__}: {error}")
        if self.state in (LifecycleState.STOPPED, LifecycleState.CREDENTIAL_MISSING):
            return
        self.session.retries = 0
        self._set_state(LifecycleState.CREDENTIAL_MISSING)

    def handle_disconnect(self, reason: str = "") -> None:
        if self.state in (
            LifecycleState.IDLE,
            LifecycleState.CREDENTIAL_MISSING,
            LifecycleState.STOPPED,
        ):
            return
        limit = self.ctx.settings.retry_limit
        if self.session.retries >= limit:
            # repeated failures usually mean the token went bad
            self.session.retries = 0
            self.ctx.status(f"giving up after {limit} reconnect attempts")
            self._set_state(LifecycleState.CREDENTIAL_MISSING)
            return
        self.session.retries += 1
        delay = self.ctx.settings.retry_delay_for(self.session.retries)
        suffix = f" ({reason})" if reason else ""
        self.ctx.status(
            f"attempting to reconnect... {self.session.retries} in {delay:g}s{suffix}"
        )
        self._set_state(LifecycleState.RECONNECTING)
        self._schedule(delay, self._retry)
        self._set_state(LifecycleState.AUTHENTICATING)

    async def _retry(self) -> None:
        if self.state in (
            LifecycleState.CONNECTED,
            LifecycleState.CREDENTIAL_MISSING,
            LifecycleState.STOPPED,
        ):
            return
        if not await self.login() and self.state is LifecycleState.AUTHENTICATING:
            # a failed retry is one more consecutive disconnect
            self.handle_disconnect("reconnect failed")

    async def shutdown(self) -> None:
        self._set_state(LifecycleState.STOPPED)
        try:
            await self.ctx.client.close()
        except Exception as e:
            self.ctx.status(f"close failed: {type(e).__name__}: {e}")
