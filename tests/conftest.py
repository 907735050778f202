from __future__ import annotations

from typing import Any

import pytest

from guildbridge.core.config import BridgeSettings
from guildbridge.core.context import BridgeContext
from guildbridge.core.credentials import CredentialStore
from guildbridge.logging.log_writer import LogWriter
from guildbridge.sync.orchestrator import BridgeOrchestrator
from guildbridge.tools.offline_client import OfflineChatClient, demo_server


class RecordingSurface:
    def __init__(self) -> None:
        self.events: list[tuple[str, Any]] = []
        self.credential_requests = 0
        self.credential_dismissals = 0
        self.windows_opened = 0

    def emit(self, name: str, payload: Any) -> None:
        self.events.append((name, payload))

    def request_credential(self) -> None:
        self.credential_requests += 1

    def dismiss_credential(self) -> None:
        self.credential_dismissals += 1

    def open_main_window(self) -> None:
        self.windows_opened += 1

    def named(self, name: str) -> list[Any]:
        return [p for n, p in self.events if n == name]


class FakeScheduler:
    """Captures retry timers instead of sleeping."""

    def __init__(self) -> None:
        self.calls: list[tuple[float, Any]] = []

    def __call__(self, delay, fn) -> None:
        self.calls.append((delay, fn))

    @property
    def delays(self) -> list[float]:
        return [d for d, _ in self.calls]

    async def fire_last(self) -> None:
        _, fn = self.calls[-1]
        await fn()


@pytest.fixture
def client() -> OfflineChatClient:
    return OfflineChatClient()


@pytest.fixture
def demo(client):
    return demo_server(client.user)


@pytest.fixture
def surface() -> RecordingSurface:
    return RecordingSurface()


@pytest.fixture
def scheduler() -> FakeScheduler:
    return FakeScheduler()


@pytest.fixture
def settings() -> BridgeSettings:
    return BridgeSettings()


@pytest.fixture
def ctx(client, settings, tmp_path) -> BridgeContext:
    return BridgeContext(
        settings=settings,
        client=client,
        credentials=CredentialStore(tmp_path / "credentials.json"),
        log=LogWriter(str(tmp_path / "logs")),
    )


@pytest.fixture
def bridge(ctx, surface, scheduler) -> BridgeOrchestrator:
    return BridgeOrchestrator(ctx, surface, schedule=scheduler)
