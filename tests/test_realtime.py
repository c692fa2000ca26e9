import asyncio
import json
from types import SimpleNamespace

import aiohttp

from webapp.app.realtime import RealtimeClient, Subscription


class FakeSocket:
    """Websocket, который отдаёт заданные кадры и запоминает отправленное."""

    def __init__(self, frames):
        self.frames = frames
        self.sent = []
        self.closed = False

    def __aiter__(self):
        return self._frames()

    async def _frames(self):
        for frame in self.frames:
            await asyncio.sleep(0)
            yield frame

    async def send_json(self, data):
        self.sent.append(data)

    async def close(self):
        self.closed = True


class FakeHTTPSession:
    def __init__(self):
        self.closed = False

    async def close(self):
        self.closed = True


def _frame(kind, data=None):
    return SimpleNamespace(type=kind, data=data)


def _change(topic="realtime:gps_tracking", table="gps_tracking", kind="UPDATE"):
    return {
        "topic": topic,
        "event": "postgres_changes",
        "payload": {"data": {"table": table, "type": kind, "commit_timestamp": "2024-06-01T10:00:00Z"}},
        "ref": None,
    }


def test_socket_url():
    realtime = RealtimeClient("https://demo.supabase.co/", "anon", heartbeat_sec=5)
    assert realtime.socket_url == "wss://demo.supabase.co/realtime/v1/websocket?apikey=anon&vsn=1.0.0"


def test_join_and_leave_messages():
    sub = Subscription("gps_tracking", "gps_tracking", lambda event: None)

    join = sub.join_message("user-token")
    leave = sub.leave_message()

    assert join["topic"] == "realtime:gps_tracking"
    assert join["event"] == "phx_join"
    assert join["payload"]["access_token"] == "user-token"
    assert join["payload"]["config"]["postgres_changes"] == [
        {"event": "*", "schema": "public", "table": "gps_tracking"},
    ]
    assert leave["event"] == "phx_leave"
    assert leave["join_ref"] == join["ref"]
    assert leave["ref"] != join["ref"]


async def test_changes_get_increasing_sequence():
    received = []
    sub = Subscription("gps_tracking", "gps_tracking", received.append)

    first = await sub.handle_message(_change())
    second = await sub.handle_message(_change(kind="INSERT"))

    assert [e.sequence for e in received] == [1, 2]
    assert first.event_type == "UPDATE"
    assert second.event_type == "INSERT"
    assert second.commit_timestamp == "2024-06-01T10:00:00Z"
    assert sub.last_sequence == 2


async def test_service_and_foreign_messages_are_ignored():
    received = []
    sub = Subscription("gps_tracking", "gps_tracking", received.append)

    assert await sub.handle_message({"topic": "phoenix", "event": "phx_reply", "payload": {"status": "ok"}}) is None
    assert await sub.handle_message(
        {"topic": "realtime:gps_tracking", "event": "phx_reply", "payload": {"status": "ok"}}
    ) is None
    assert await sub.handle_message(_change(topic="realtime:other")) is None
    assert await sub.handle_message(_change(table="cars")) is None

    assert received == []
    assert sub.last_sequence == 0


async def test_async_callbacks_are_awaited():
    received = []

    async def on_change(event):
        received.append(event.sequence)

    sub = Subscription("gps_tracking", "gps_tracking", on_change)
    await sub.handle_message(_change())

    assert received == [1]


async def test_unsubscribe_is_idempotent_and_stops_delivery():
    received = []
    sub = Subscription("gps_tracking", "gps_tracking", received.append)

    await sub.unsubscribe()
    await sub.unsubscribe()

    assert not sub.active
    assert await sub.handle_message(_change()) is None
    assert received == []


async def test_server_close_deactivates_subscription():
    received = []
    lost = asyncio.Event()
    sub = Subscription("gps_tracking", "gps_tracking", received.append, on_close=lost.set)
    ws = FakeSocket([
        _frame(aiohttp.WSMsgType.TEXT, json.dumps(_change())),
        _frame(aiohttp.WSMsgType.CLOSED),
    ])
    http = FakeHTTPSession()

    sub.attach(http, ws, heartbeat_sec=60)
    await asyncio.wait_for(lost.wait(), timeout=1)

    assert [e.sequence for e in received] == [1]
    assert not sub.active
    assert ws.closed and http.closed
    assert sub._tasks == []

    # после обрыва отписка ничего не шлёт
    await sub.unsubscribe()
    assert ws.sent == []
