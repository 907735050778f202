import pytest

from guildbridge.sync.router import ChannelCommandRouter


@pytest.fixture
def router(client) -> ChannelCommandRouter:
    client.connected = True
    r = ChannelCommandRouter(client)
    r.register("200")
    return r


def test_register_is_once_per_channel(client):
    r = ChannelCommandRouter(client)
    assert r.register("200") is True
    assert r.register("200") is False
    assert len(r) == 1
    assert "200" in r
    assert r.release("200") is True
    assert r.release("200") is False
    assert len(r) == 0


@pytest.mark.asyncio
async def test_message_is_forwarded(router, client):
    ok = await router.dispatch("200", {"type": "message", "message": "hello"})
    assert ok
    assert client.calls == [("send_message", "200", "hello")]


@pytest.mark.asyncio
async def test_typing_start_and_stop_target_the_command_channel(router, client):
    await router.dispatch("200", {"type": "typing", "action": "start", "channel": {"id": "200"}})
    await router.dispatch("200", {"type": "typing", "action": "stop", "channel": {"id": "200"}})
    await router.dispatch("200", {"type": "typing", "action": "whatever", "channel": "201"})
    assert client.calls == [
        ("start_typing", "200"),
        ("stop_typing", "200"),
        ("stop_typing", "201"),
    ]


@pytest.mark.asyncio
async def test_typing_without_channel_falls_back_to_route(router, client):
    await router.dispatch("200", {"type": "typing", "action": "start"})
    assert client.calls == [("start_typing", "200")]


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "cmd",
    [
        None,
        "hello",
        {},
        {"message": "no type"},
        {"type": ""},
        {"type": None, "message": "x"},
        {"type": "bogus"},
        {"type": "bogus", "message": "hi"},
        {"type": "message"},
        {"type": "message", "message": ""},
        {"type": "message", "message": 42},
    ],
)
async def test_malformed_commands_do_nothing(router, client, cmd):
    assert await router.dispatch("200", cmd) is False
    assert client.calls == []


@pytest.mark.asyncio
async def test_legacy_untyped_send_flag(client):
    client.connected = True
    r = ChannelCommandRouter(client, legacy_send=True)
    r.register("200")
    assert await r.dispatch("200", {"type": "chat", "message": "old client"})
    assert client.calls == [("send_message", "200", "old client")]


@pytest.mark.asyncio
async def test_unregistered_channel_is_ignored(router, client):
    assert await router.dispatch("999", {"type": "message", "message": "x"}) is False
    assert client.calls == []


@pytest.mark.asyncio
async def test_connection_errors_are_reported_not_raised(client):
    r = ChannelCommandRouter(client)
    seen = []
    r.on_status = seen.append
    r.register("200")
    # offline client refuses to send while disconnected
    assert await r.dispatch("200", {"type": "message", "message": "x"}) is False
    assert seen and "ChatConnectionError" in seen[0]
