from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Callable

from .config import BridgeSettings
from .credentials import CredentialStore

if TYPE_CHECKING:
    from ..chat.client import ChatClient
    from ..logging.log_writer import LogWriter


@dataclass
class BridgeContext:
    """Everything the bridge components share, built once at startup."""

    settings: BridgeSettings
    client: ChatClient
    credentials: CredentialStore
    log: LogWriter | None = None
    on_status: list[Callable[[str], None]] = field(default_factory=list)

    def status(self, text: str) -> None:
        if self.log is not None and self.settings.log_enabled:
            try:
                self.log.append("bridge", text)
            except Exception:
                pass
        for cb in list(self.on_status):
            try:
                cb(text)
            except Exception:
                pass
