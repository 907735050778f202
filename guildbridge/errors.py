from __future__ import annotations


class BridgeError(Exception):
    """Base class for every failure raised inside the bridge."""


class CredentialError(BridgeError):
    """Missing or rejected token; the user has to supply a fresh one."""


class ChatConnectionError(BridgeError):
    """Login/connect failed for a reason other than the token itself."""


class HistoryFetchError(BridgeError):
    def __init__(self, channel_id: str, reason: str = "") -> None:
        super().__init__(f"history fetch failed for {channel_id}: {reason}".rstrip(": "))
        self.channel_id = channel_id
        self.reason = reason
