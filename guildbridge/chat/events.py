"""Stable internal event variants.

The connection adapter translates whatever the chat library emits into exactly these
types, so nothing past the adapter depends on library event names.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Union


@dataclass(frozen=True)
class Ready:
    pass


@dataclass(frozen=True)
class ServerCreated:
    server: Any


@dataclass(frozen=True)
class ServerUpdated:
    server: Any


@dataclass(frozen=True)
class ServerDeleted:
    server_id: str


@dataclass(frozen=True)
class ChannelCreated:
    channel: Any


@dataclass(frozen=True)
class ChannelDeleted:
    channel_id: str
    server_id: str | None = None


@dataclass(frozen=True)
class MessageReceived:
    message: Any


@dataclass(frozen=True)
class Disconnected:
    reason: str = ""


@dataclass(frozen=True)
class LoginError:
    error: BaseException


ChatEvent = Union[
    Ready,
    ServerCreated,
    ServerUpdated,
    ServerDeleted,
    ChannelCreated,
    ChannelDeleted,
    MessageReceived,
    Disconnected,
    LoginError,
]
