"""Tests for the realtime channel client, using a fake websocket."""

import asyncio
import json

from websockets.exceptions import ConnectionClosed

from golf_buddies.adapters.realtime import RealtimeClient


class FakeSocket:
    def __init__(self) -> None:
        self.sent: list[dict] = []
        self.incoming: asyncio.Queue = asyncio.Queue()
        self.closed = False
        self.dropped = False

    async def send(self, data: str) -> None:
        if self.dropped:
            raise ConnectionClosed(None, None)
        self.sent.append(json.loads(data))

    async def close(self) -> None:
        self.closed = True

    def __aiter__(self):
        return self

    async def __anext__(self):
        item = await self.incoming.get()
        if isinstance(item, Exception):
            self.dropped = True
            raise item
        return item

    def drop(self) -> None:
        self.incoming.put_nowait(ConnectionClosed(None, None))


def run(coro):
    """Run an async coroutine synchronously for tests."""
    return asyncio.run(coro)


async def settle() -> None:
    for _ in range(20):
        await asyncio.sleep(0)


def test_endpoint_for_project() -> None:
    client = RealtimeClient.for_project("https://demo.supabase.co", "ANON")
    assert client.endpoint == "wss://demo.supabase.co/realtime/v1/websocket?apikey=ANON&vsn=1.0.0"


def test_postgres_changes_channel_dispatches_events() -> None:
    events: list[dict] = []

    async def scenario():
        socket = FakeSocket()

        async def connect(url):
            return socket

        client = RealtimeClient("ws://test", connect=connect)
        client.access_token = "JWT"
        channel = await client.channel(
            "games_changes",
            postgres_changes=[{"event": "*", "schema": "public", "table": "games"}],
            on_change=events.append,
        )
        join = socket.sent[0]
        assert join["topic"] == "realtime:games_changes"
        assert join["event"] == "phx_join"
        assert join["payload"]["access_token"] == "JWT"
        assert join["payload"]["config"]["postgres_changes"][0]["table"] == "games"

        await socket.incoming.put(json.dumps({
            "topic": "realtime:games_changes",
            "event": "phx_reply",
            "payload": {"status": "ok", "response": {}},
            "ref": join["ref"],
        }))
        await socket.incoming.put(json.dumps({
            "topic": "realtime:games_changes",
            "event": "postgres_changes",
            "payload": {"data": {"table": "games", "type": "INSERT", "record": {"id": "g1"}}, "ids": [1]},
            "ref": None,
        }))
        await settle()
        assert channel.joined

        await channel.close()
        assert socket.sent[-1]["event"] == "phx_leave"
        await socket.incoming.put(json.dumps({
            "topic": "realtime:games_changes",
            "event": "postgres_changes",
            "payload": {"data": {"table": "games", "type": "DELETE", "record": {}}},
        }))
        await settle()
        await client.close()
        assert socket.closed

    run(scenario())
    assert events == [{"table": "games", "type": "INSERT", "record": {"id": "g1"}}]


def test_broadcast_channel_filters_by_event() -> None:
    received: list[dict] = []

    async def scenario():
        socket = FakeSocket()

        async def connect(url):
            return socket

        client = RealtimeClient("ws://test", connect=connect)

        async def on_message(payload):
            received.append(payload)

        await client.channel(
            "game:g1:chat", broadcast_event="INSERT", on_broadcast=on_message, private=True
        )
        assert socket.sent[0]["payload"]["config"]["private"] is True
        for event in ("UPDATE", "INSERT"):
            await socket.incoming.put(json.dumps({
                "topic": "realtime:game:g1:chat",
                "event": "broadcast",
                "payload": {"type": "broadcast", "event": event, "payload": {"record": {"id": event}}},
            }))
        await socket.incoming.put("not json")
        await settle()
        await client.close()

    run(scenario())
    assert received == [{"record": {"id": "INSERT"}}]


def test_heartbeat_is_sent() -> None:
    async def scenario():
        socket = FakeSocket()

        async def connect(url):
            return socket

        client = RealtimeClient("ws://test", heartbeat_interval=0.01, connect=connect)
        await client.connect()
        await asyncio.sleep(0.05)
        await client.close()
        return socket.sent

    sent = run(scenario())
    assert any(f["topic"] == "phoenix" and f["event"] == "heartbeat" for f in sent)


def broadcast_frame(topic: str, record_id: str) -> str:
    return json.dumps({
        "topic": f"realtime:{topic}",
        "event": "broadcast",
        "payload": {"type": "broadcast", "event": "INSERT", "payload": {"record": {"id": record_id}}},
    })


def test_non_object_frames_do_not_stop_the_reader() -> None:
    received: list[dict] = []

    async def scenario():
        socket = FakeSocket()

        async def connect(url):
            return socket

        client = RealtimeClient("ws://test", connect=connect)
        await client.channel("game:g1:chat", broadcast_event="INSERT", on_broadcast=received.append)
        for frame in ("[]", '"x"', "1", json.dumps({"topic": "realtime:game:g1:chat", "payload": []})):
            await socket.incoming.put(frame)
        await socket.incoming.put(broadcast_frame("game:g1:chat", "m1"))
        await settle()
        await client.close()

    run(scenario())
    assert received == [{"record": {"id": "m1"}}]


def test_dropped_connection_reconnects_and_rejoins() -> None:
    received: list[dict] = []
    sockets = [FakeSocket(), FakeSocket()]

    async def scenario():
        pending = list(sockets)

        async def connect(url):
            return pending.pop(0)

        client = RealtimeClient(
            "ws://test", heartbeat_interval=0.01, connect=connect, reconnect_delays=(0.0,)
        )
        client.access_token = "JWT"
        await client.channel("game:g1:chat", broadcast_event="INSERT", on_broadcast=received.append)
        first, second = sockets
        first.drop()
        await asyncio.sleep(0.05)

        assert client.connected
        rejoin = [f for f in second.sent if f["event"] == "phx_join"]
        assert rejoin and rejoin[0]["topic"] == "realtime:game:g1:chat"
        assert rejoin[0]["payload"]["access_token"] == "JWT"

        await second.incoming.put(broadcast_frame("game:g1:chat", "m2"))
        await settle()
        await client.close()
        assert second.closed

    run(scenario())
    assert received == [{"record": {"id": "m2"}}]


def test_close_after_drop_without_reconnect() -> None:
    attempts: list[str] = []

    async def scenario():
        socket = FakeSocket()

        async def connect(url):
            attempts.append(url)
            if len(attempts) > 1:
                raise OSError("network unreachable")
            return socket

        client = RealtimeClient(
            "ws://test", heartbeat_interval=0.01, connect=connect, reconnect_delays=(0.01,)
        )
        await client.channel("games_changes", postgres_changes=[], on_change=lambda p: None)
        socket.drop()
        await asyncio.sleep(0.05)
        assert not client.connected
        # close must not raise even though the heartbeat and reconnects failed
        await client.close()
        assert not client.connected

    run(scenario())
    assert len(attempts) > 1
