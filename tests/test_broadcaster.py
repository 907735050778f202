import json

import pytest

from guildbridge.tools.offline_client import OfflineChannel, OfflineChatClient


def routes_match_channels(bridge) -> bool:
    live = set()
    for snap in bridge.broadcaster.servers.values():
        live |= set(snap.channels)
    return bridge.router.channel_ids() == live and len(bridge.router) == len(live)


def test_server_create_registers_routes(bridge, surface, demo):
    server, _ = demo
    bridge.broadcaster.server_created(server)

    (payload,) = surface.named("server-create")
    assert payload["id"] == "100"
    assert list(payload["channels"]) == ["200"]
    json.dumps(payload)
    assert "200" in bridge.router
    assert routes_match_channels(bridge)


def test_server_create_twice_keeps_one_route_per_channel(bridge, demo):
    server, _ = demo
    bridge.broadcaster.server_created(server)
    bridge.broadcaster.server_created(server)
    assert len(bridge.router) == 1


def test_channel_lifecycle_keeps_routes_in_lockstep(bridge, surface, client, demo):
    server, _ = demo
    client.join_server(server)

    client.create_channel(server, OfflineChannel("203", "random", "text", position=3))
    assert "203" in bridge.router
    assert surface.named("server-update") == ["100"]
    assert routes_match_channels(bridge)

    client.create_channel(server, OfflineChannel("204", "stage", "voice"))
    assert "204" not in bridge.router
    assert surface.named("server-update") == ["100", "100"]

    client.delete_channel(server, "203")
    assert "203" not in bridge.router
    assert "203" not in bridge.broadcaster.servers["100"].channels
    assert surface.named("server-update") == ["100", "100", "100"]
    assert routes_match_channels(bridge)
    assert bridge.broadcaster.channel_count() == len(bridge.router) == 1


def test_server_update_releases_vanished_channels(bridge, surface, demo):
    server, _ = demo
    server.add_channel(OfflineChannel("203", "random", "text"))
    bridge.broadcaster.server_created(server)
    assert len(bridge.router) == 2

    server.channels = [c for c in server.channels if c.id != "203"]
    bridge.broadcaster.server_updated(server)

    assert "203" not in bridge.router
    assert surface.named("server-update") == ["100"]
    assert routes_match_channels(bridge)


def test_server_delete_releases_everything(bridge, surface, client, demo):
    server, _ = demo
    client.join_server(server)
    client.leave_server(server)

    assert surface.named("server-delete") == ["100"]
    assert len(bridge.router) == 0
    assert bridge.broadcaster.servers == {}


@pytest.mark.asyncio
async def test_activation_delivers_latest_history_oldest_first(bridge, surface, client, demo):
    server, alice = demo
    general = server.channel("200")
    client.seed_history(general, alice, 51)

    await bridge.activate_channel({"id": "200", "name": "general"})

    (batch,) = surface.named("200")
    assert len(batch) == 50
    assert [m["content"] for m in batch] == [f"message {i}" for i in range(1, 51)]
    assert bridge.broadcaster.active_channel["id"] == "200"


class OverfetchingClient(OfflineChatClient):
    async def fetch_history(self, channel_id, limit):
        return list(reversed(self.history.get(channel_id, [])))


@pytest.mark.asyncio
async def test_activation_trims_oversized_history(ctx, surface, scheduler, demo):
    from guildbridge.sync.orchestrator import BridgeOrchestrator

    client = OverfetchingClient()
    ctx.client = client
    bridge = BridgeOrchestrator(ctx, surface, schedule=scheduler)
    server, alice = demo
    client.seed_history(server.channel("200"), alice, 51)

    await bridge.activate_channel("200")

    (batch,) = surface.named("200")
    assert [m["content"] for m in batch] == [f"message {i}" for i in range(1, 51)]


@pytest.mark.asyncio
async def test_history_failure_is_signalled(bridge, surface, client):
    client.fail_history = RuntimeError("rate limited")

    await bridge.activate_channel({"id": "200"})

    assert surface.named("200") == []
    (err,) = surface.named("history-error")
    assert err["channel"] == "200"
    assert "rate limited" in err["error"]


@pytest.mark.asyncio
async def test_live_messages_only_for_active_channel(bridge, surface, client, demo):
    server, alice = demo
    other = server.add_channel(OfflineChannel("203", "random", "text"))
    client.join_server(server)
    bridge.window_opened()
    await bridge.activate_channel({"id": "200"})
    surface.events.clear()

    client.post(server.channel("200"), alice, "in general")
    client.post(other, alice, "in random")

    delivered = [(n, p["content"]) for n, p in surface.events]
    assert delivered == [("200", "in general")]


def test_live_messages_dropped_without_window(bridge, surface, client, demo):
    server, alice = demo
    client.post(server.channel("200"), alice, "too early")
    assert surface.events == []


def test_live_messages_pass_when_nothing_is_active(bridge, surface, client, demo):
    server, alice = demo
    bridge.window_opened()
    client.post(server.channel("200"), alice, "hi")
    ((name, payload),) = surface.events
    assert name == "200"
    assert payload["channel"] == "200"
    assert payload["author"]["roles"][0]["color"] == "#3498db"
