from __future__ import annotations

from collections.abc import Mapping
from typing import TYPE_CHECKING, Any, Callable, Optional

if TYPE_CHECKING:
    from ..chat.client import ChatClient


def _target_id(value: Any, fallback: str) -> str:
    """Typing commands name their channel as a snapshot mapping or a bare id."""
    if isinstance(value, Mapping):
        value = value.get("id")
    if value is None or value == "":
        return fallback
    return str(value)


class CommandRoute:
    """Handler bound to one channel; validates UI commands and forwards them."""

    def __init__(self, channel_id: str, client: ChatClient, legacy_send: bool = False) -> None:
        self.channel_id = channel_id
        self.client = client
        self.legacy_send = legacy_send

    async def handle(self, cmd: Any) -> bool:
        """Return True when something was forwarded to the connection."""
        if not isinstance(cmd, Mapping):
            return False
        kind = cmd.get("type")
        if not kind:
            return False
        if kind == "message":
            return await self._send(cmd.get("message"))
        if kind == "typing":
            target = _target_id(cmd.get("channel"), self.channel_id)
            if cmd.get("action") == "start":
                await self.client.start_typing(target)
            else:
                await self.client.stop_typing(target)
            return True
        # Old payloads used arbitrary types for plain sends
        if self.legacy_send:
            return await self._send(cmd.get("message"))
        return False

    async def _send(self, text: Any) -> bool:
        if not isinstance(text, str) or not text:
            return False
        await self.client.send_message(self.channel_id, text)
        return True


class ChannelCommandRouter:
    """Channel id -> CommandRoute, with explicit acquire/release."""

    def __init__(self, client: ChatClient, legacy_send: bool = False) -> None:
        self.client = client
        self.legacy_send = legacy_send
        self._routes: dict[str, CommandRoute] = {}
        self.on_status: Optional[Callable[[str], None]] = None

    def __len__(self) -> int:
        return len(self._routes)

    def __contains__(self, channel_id: object) -> bool:
        return str(channel_id) in self._routes

    def channel_ids(self) -> set[str]:
        return set(self._routes)

    def register(self, channel_id: str) -> bool:
        cid = str(channel_id)
        if cid in self._routes:
            return False
        self._routes[cid] = CommandRoute(cid, self.client, self.legacy_send)
        return True

    def release(self, channel_id: str) -> bool:
        return self._routes.pop(str(channel_id), None) is not None

    def clear(self) -> None:
        self._routes.clear()

    async def dispatch(self, channel_id: str, cmd: Any) -> bool:
        route = self._routes.get(str(channel_id))
        if route is None:
            return False
        try:
            return await route.handle(cmd)
        except Exception as e:
            if self.on_status:
                try:
                    self.on_status(f"command failed in {channel_id}: {type(e).__name__}: {e}")
                except Exception:
                    pass
            return False
