import asyncio

import pytest

from infrastructure.realtime.connection_manager import ConnectionManager


class FakeWebSocket:
    def __init__(self, *, block: bool = False) -> None:
        self.frames: list[dict] = []
        self.closed_with: int | None = None
        self._gate = asyncio.Event()
        if not block:
            self._gate.set()

    async def send_json(self, data):
        await self._gate.wait()
        self.frames.append(data)

    async def close(self, code: int = 1000):
        self.closed_with = code

    def unblock(self) -> None:
        self._gate.set()


async def _drain() -> None:
    # let sender tasks run
    for _ in range(5):
        await asyncio.sleep(0)


@pytest.mark.asyncio
async def test_room_and_session_delivery():
    mgr = ConnectionManager()
    a, b = FakeWebSocket(), FakeWebSocket()
    await mgr.add("a", a)
    await mgr.add("b", b)
    await mgr.join_room("general", "a")
    await mgr.join_room("general", "b")

    await mgr.send_to_room("general", "message", {"text": "hi"})
    await mgr.send_to_session("a", "roomList", {"rooms": []})
    await mgr.send_to_room("general", "typing", {"typing": True}, exclude="a")
    await _drain()

    assert [f["type"] for f in a.frames] == ["message", "roomList"]
    assert [f["type"] for f in b.frames] == ["message", "typing"]
    assert a.frames[0]["data"] == {"text": "hi"}
    assert a.frames[0]["ts"].endswith("Z")
    await mgr.remove("a")
    await mgr.remove("b")


@pytest.mark.asyncio
async def test_send_to_all_and_all_except():
    mgr = ConnectionManager()
    a, b = FakeWebSocket(), FakeWebSocket()
    await mgr.add("a", a)
    await mgr.add("b", b)
    await mgr.send_to_all("userList", ["alice", "bob"])
    await mgr.send_to_all_except("a", "typing", {"username": "alice", "typing": True})
    await _drain()
    assert [f["type"] for f in a.frames] == ["userList"]
    assert [f["type"] for f in b.frames] == ["userList", "typing"]
    assert a.frames[0]["data"] == ["alice", "bob"]
    await mgr.remove("a")
    await mgr.remove("b")


@pytest.mark.asyncio
async def test_unknown_or_removed_session_is_ignored():
    mgr = ConnectionManager()
    a = FakeWebSocket()
    await mgr.add("a", a)
    await mgr.join_room("general", "a")
    await mgr.remove("a")
    await mgr.send_to_session("a", "message", {})
    await mgr.send_to_room("general", "message", {})
    await mgr.send_to_session("nobody", "message", {})
    await _drain()
    assert a.frames == []
    assert not mgr.is_connected("a")


@pytest.mark.asyncio
async def test_slow_socket_does_not_block_others():
    mgr = ConnectionManager(send_queue_max=2, overflow_policy="drop_oldest")
    slow, fast = FakeWebSocket(block=True), FakeWebSocket()
    await mgr.add("slow", slow)
    await mgr.add("fast", fast)
    await _drain()
    for i in range(5):
        await mgr.send_to_all("message", {"n": i})
        await _drain()
    assert [f["data"]["n"] for f in fast.frames] == [0, 1, 2, 3, 4]

    slow.unblock()
    await _drain()
    # first frame was already taken by the sender; the queue kept the newest two
    assert [f["data"]["n"] for f in slow.frames] == [0, 3, 4]
    await mgr.remove("slow")
    await mgr.remove("fast")


@pytest.mark.asyncio
async def test_disconnect_policy_closes_overflowing_socket():
    mgr = ConnectionManager(send_queue_max=1, overflow_policy="disconnect")
    slow = FakeWebSocket(block=True)
    await mgr.add("slow", slow)
    for i in range(3):
        await mgr.send_to_session("slow", "message", {"n": i})
    assert slow.closed_with == 1013
    await mgr.remove("slow")


def test_invalid_policy_falls_back():
    mgr = ConnectionManager(overflow_policy="explode")
    assert mgr._overflow_policy == "drop_oldest"


@pytest.mark.asyncio
async def test_leave_all_drops_every_subscription():
    mgr = ConnectionManager()
    a, b = FakeWebSocket(), FakeWebSocket()
    await mgr.add("a", a)
    await mgr.add("b", b)
    for room in ("general", "tech"):
        await mgr.join_room(room, "a")
        await mgr.join_room(room, "b")

    await mgr.leave_all("a")
    await mgr.send_to_room("general", "message", {"n": 1})
    await mgr.send_to_room("tech", "message", {"n": 2})
    await _drain()

    assert a.frames == []
    assert [f["data"]["n"] for f in b.frames] == [1, 2]
    # still connected, only unsubscribed
    assert mgr.is_connected("a")
    await mgr.remove("a")
    await mgr.remove("b")


@pytest.mark.asyncio
async def test_aclose_stops_senders_and_closes_sockets():
    mgr = ConnectionManager()
    a, slow = FakeWebSocket(), FakeWebSocket(block=True)
    await mgr.add("a", a)
    await mgr.add("slow", slow)
    await mgr.send_to_all("message", {"n": 0})
    await _drain()
    tasks = list(mgr._sender_tasks.values())

    await mgr.aclose()

    assert all(t.done() for t in tasks)
    assert a.closed_with == 1001
    assert slow.closed_with == 1001
    assert not mgr.is_connected("a")
    # nothing is delivered after shutdown
    await mgr.send_to_all("message", {"n": 1})
    slow.unblock()
    await _drain()
    assert [f["data"]["n"] for f in a.frames] == [0]
    assert slow.frames == []
