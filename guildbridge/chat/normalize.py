"""Turn live connection-library objects into snapshots.

The library's objects point back at each other (message -> channel -> server -> channels,
plus a handle to the client itself) and are mutated in place by its caches. Everything here
is a pure function: read attributes, build new frozen snapshots, never write to the input.
Attribute lookups are duck-typed so both discord.py objects and the offline client's plain
entities are accepted.
"""

from __future__ import annotations

import time
from dataclasses import replace
from datetime import datetime
from typing import Any

from .snapshots import (
    AuthorSnapshot,
    ChannelSnapshot,
    MessageSnapshot,
    RoleSnapshot,
    ServerSnapshot,
)

TEXT_KINDS = frozenset({"text", "news"})
BLACK = "#000000"
# Black role colors are unreadable on the dark UI background
FALLBACK_COLOR = "#fefefe"
TIME_FORMAT = "%I:%M:%S %p"


def _sid(value: Any) -> str | None:
    if value is None:
        return None
    return str(value)


def _asset_ref(value: Any) -> str | None:
    """Avatar/icon reference: discord.py Assets expose ``key``, plain data is a hash string."""
    if value is None:
        return None
    key = getattr(value, "key", None)
    if key is not None:
        return str(key)
    return str(value)


def channel_kind(raw: Any) -> str:
    kind = getattr(raw, "type", None)
    name = getattr(kind, "name", None)
    return str(name if name is not None else (kind or "")).lower()


def owning_server(channel: Any) -> Any:
    return getattr(channel, "guild", None) or getattr(channel, "server", None)


def color_hex(value: Any) -> str:
    """Accept '#rrggbb' strings, ints, or objects with an int ``value`` (discord.Colour)."""
    if value is None:
        return BLACK
    if isinstance(value, str):
        v = value.strip().lower()
        return v if v.startswith("#") else "#" + v
    raw = getattr(value, "value", value)
    try:
        return f"#{int(raw) & 0xFFFFFF:06x}"
    except (TypeError, ValueError):
        return BLACK


def display_color(value: Any) -> str:
    hexed = color_hex(value)
    return FALLBACK_COLOR if hexed == BLACK else hexed


def epoch_ms(raw: Any) -> float:
    ts = getattr(raw, "timestamp", None)
    if isinstance(ts, (int, float)) and not isinstance(ts, bool):
        return float(ts)
    created = getattr(raw, "created_at", None)
    if isinstance(created, datetime):
        return created.timestamp() * 1000.0
    return time.time() * 1000.0


def format_timestamp(ms: float) -> str:
    return datetime.fromtimestamp(ms / 1000.0).strftime(TIME_FORMAT).lower()


def can_read(channel: Any, identity: Any) -> bool:
    perms_for = getattr(channel, "permissions_for", None)
    if not callable(perms_for):
        return True
    if identity is None:
        return False
    try:
        perms = perms_for(identity)
    except Exception:
        return False
    return bool(getattr(perms, "read_messages", getattr(perms, "view_channel", False)))


def normalize_role(raw: Any) -> RoleSnapshot:
    color = getattr(raw, "color", None)
    if color is None:
        color = getattr(raw, "colour", None)
    return RoleSnapshot(
        id=str(getattr(raw, "id", "")),
        name=str(getattr(raw, "name", "") or ""),
        color=display_color(color),
    )


def resolve_roles(author: Any, server: Any) -> tuple[RoleSnapshot, ...]:
    """Look the author's role ids up on the owning server, keeping the author's order."""
    if server is None:
        return ()
    known = {str(getattr(r, "id", "")): r for r in (getattr(server, "roles", None) or ())}
    out: list[RoleSnapshot] = []
    for entry in getattr(author, "roles", None) or ():
        role = known.get(str(getattr(entry, "id", entry)))
        if role is None:
            continue
        is_default = getattr(role, "is_default", None)
        if callable(is_default) and is_default():
            continue
        out.append(normalize_role(role))
    return tuple(out)


def normalize_author(author: Any, server: Any) -> AuthorSnapshot:
    username = getattr(author, "username", None) or getattr(author, "name", None) or ""
    return AuthorSnapshot(
        id=str(getattr(author, "id", "")),
        username=str(username),
        discriminator=str(getattr(author, "discriminator", "") or ""),
        avatar=_asset_ref(getattr(author, "avatar", None)),
        roles=resolve_roles(author, server),
    )


def normalize_message(raw: Any, *, server: Any = None) -> MessageSnapshot:
    channel = getattr(raw, "channel", None)
    # Only the id crosses the boundary; the channel object is where the cycle starts
    channel_id = _sid(getattr(channel, "id", channel)) or ""
    if server is None:
        server = owning_server(channel) or getattr(raw, "guild", None)
    content = getattr(raw, "clean_content", None)
    if content is None:
        content = getattr(raw, "content", "")
    return MessageSnapshot(
        id=str(getattr(raw, "id", "")),
        channel=channel_id,
        timestamp=format_timestamp(epoch_ms(raw)),
        author=normalize_author(getattr(raw, "author", None), server),
        content=str(content or ""),
    )


def normalize_channel(raw: Any, identity: Any = None) -> ChannelSnapshot | None:
    """Snapshot a readable text channel, or None for anything else."""
    kind = channel_kind(raw)
    if kind not in TEXT_KINDS:
        return None
    server = owning_server(raw)
    member = getattr(server, "me", None) or identity
    readable = can_read(raw, member)
    if not readable:
        return None
    position = getattr(raw, "position", 0)
    return ChannelSnapshot(
        id=str(getattr(raw, "id", "")),
        server_id=_sid(getattr(server, "id", None)),
        name=str(getattr(raw, "name", "") or ""),
        kind=kind,
        position=int(position) if isinstance(position, int) else 0,
        topic=getattr(raw, "topic", None),
        readable=readable,
    )


def normalize_server(raw: Any, identity: Any = None) -> ServerSnapshot:
    server_id = str(getattr(raw, "id", ""))
    member = getattr(raw, "me", None) or identity
    channels: dict[str, ChannelSnapshot] = {}
    for ch in getattr(raw, "channels", None) or ():
        snap = normalize_channel(ch, member)
        if snap is None:
            continue
        if snap.server_id is None:
            snap = replace(snap, server_id=server_id)
        channels[snap.id] = snap
    return ServerSnapshot(
        id=server_id,
        name=str(getattr(raw, "name", "") or ""),
        icon=_asset_ref(getattr(raw, "icon", None)),
        owner_id=_sid(getattr(raw, "owner_id", None)),
        channels=channels,
    )
