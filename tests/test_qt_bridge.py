import pytest

QtCore = pytest.importorskip("PyQt6.QtCore")
pytest.importorskip("qasync")

from guildbridge.tools.offline_client import OfflineChannel  # noqa: E402
from guildbridge.ui_pyqt6.bridge import BridgeQt  # noqa: E402


@pytest.fixture(scope="module")
def qapp():
    return QtCore.QCoreApplication.instance() or QtCore.QCoreApplication([])


@pytest.fixture
def qt_bridge(qapp, ctx, scheduler) -> BridgeQt:
    return BridgeQt(ctx, schedule=scheduler)


def test_emit_routes_to_signals(qt_bridge):
    got = []
    qt_bridge.serverCreated.connect(lambda p: got.append(("create", p)))
    qt_bridge.serverDeleted.connect(lambda sid: got.append(("delete", sid)))
    qt_bridge.serverUpdated.connect(lambda sid: got.append(("update", sid)))
    qt_bridge.historyFailed.connect(lambda cid, err: got.append(("history", cid, err)))
    qt_bridge.channelMessages.connect(lambda cid, p: got.append(("msg", cid, p)))

    qt_bridge.emit("server-create", {"id": "100"})
    qt_bridge.emit("server-delete", "100")
    qt_bridge.emit("server-update", "100")
    qt_bridge.emit("history-error", {"channel": "200", "error": "nope"})
    qt_bridge.emit("200", [{"content": "hi"}])

    assert got == [
        ("create", {"id": "100"}),
        ("delete", "100"),
        ("update", "100"),
        ("history", "200", "nope"),
        ("msg", "200", [{"content": "hi"}]),
    ]


@pytest.mark.asyncio
async def test_start_without_token_requests_credential(qt_bridge):
    requested = []
    states = []
    statuses = []
    qt_bridge.credentialRequested.connect(lambda: requested.append(True))
    qt_bridge.stateChanged.connect(states.append)
    qt_bridge.statusChanged.connect(statuses.append)

    await qt_bridge.core.start()

    assert requested == [True]
    assert states == ["credential_missing"]
    assert qt_bridge.state() == "credential_missing"
    assert statuses and "credential_missing" in statuses[-1]


@pytest.mark.asyncio
async def test_token_opens_main_window_once(qt_bridge, client):
    opened = []
    accepted = []
    qt_bridge.mainWindowRequested.connect(lambda: opened.append(True))
    qt_bridge.credentialAccepted.connect(lambda: accepted.append(True))

    await qt_bridge.core.start()
    await qt_bridge.core.submit_token("tok")
    client.drop()

    assert accepted == [True]
    assert opened == [True]
    assert qt_bridge.state() == "authenticating"


@pytest.mark.asyncio
async def test_server_snapshot_after_update(qt_bridge, client, demo, ctx):
    server, _ = demo
    ctx.credentials.save("tok")
    updated = []
    qt_bridge.serverUpdated.connect(updated.append)

    await qt_bridge.core.start()
    client.join_server(server)
    client.create_channel(server, OfflineChannel("203", "random", "text"))

    assert updated == ["100"]
    assert "203" in qt_bridge.server("100")["channels"]
