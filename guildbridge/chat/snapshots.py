"""Plain, acyclic copies of chat entities that are safe to hand to the UI.

Nothing in here holds a reference back into the connection library's cache.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import Any


@dataclass(frozen=True)
class RoleSnapshot:
    id: str
    name: str
    color: str  # "#rrggbb"

    def to_dict(self) -> dict[str, Any]:
        return {"id": self.id, "name": self.name, "color": self.color}


@dataclass(frozen=True)
class AuthorSnapshot:
    id: str
    username: str
    discriminator: str
    avatar: str | None
    roles: tuple[RoleSnapshot, ...] = ()

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "username": self.username,
            "discriminator": self.discriminator,
            "avatar": self.avatar,
            "roles": [r.to_dict() for r in self.roles],
        }


@dataclass(frozen=True)
class ChannelSnapshot:
    id: str
    server_id: str | None
    name: str
    kind: str
    position: int = 0
    topic: str | None = None
    readable: bool = True

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "server": self.server_id,
            "name": self.name,
            "type": self.kind,
            "position": self.position,
            "topic": self.topic,
            "readable": self.readable,
        }


@dataclass(frozen=True)
class ServerSnapshot:
    id: str
    name: str
    icon: str | None = None
    owner_id: str | None = None
    channels: dict[str, ChannelSnapshot] = field(default_factory=dict)

    def with_channel(self, channel: ChannelSnapshot) -> ServerSnapshot:
        chans = dict(self.channels)
        chans[channel.id] = channel
        return replace(self, channels=chans)

    def without_channel(self, channel_id: str) -> ServerSnapshot:
        chans = {k: v for k, v in self.channels.items() if k != channel_id}
        return replace(self, channels=chans)

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "icon": self.icon,
            "owner": self.owner_id,
            "channels": {cid: ch.to_dict() for cid, ch in self.channels.items()},
        }


@dataclass(frozen=True)
class MessageSnapshot:
    id: str
    channel: str
    timestamp: str
    author: AuthorSnapshot
    content: str

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "channel": self.channel,
            "timestamp": self.timestamp,
            "author": self.author.to_dict(),
            "content": self.content,
        }
