import asyncio

import pytest

from handyhub.events import ConnectionRegistry, Event, EventBroadcaster, broadcaster, connections
from tests.conftest import hdr, post_task


class FakeSession:
    def __init__(self) -> None:
        self.sent: list[dict] = []

    async def send_json(self, data) -> None:
        self.sent.append(data)


class BrokenSession:
    async def send_json(self, data) -> None:
        raise ConnectionError("socket gone")


def test_registry_join_leave():
    reg = ConnectionRegistry()
    a, b = FakeSession(), FakeSession()
    reg.join("us_1", a)
    reg.join("us_1", b)
    assert reg.is_online("us_1")
    assert set(reg.sessions("us_1")) == {a, b}

    reg.leave("us_1", a)
    assert reg.sessions("us_1") == (b,)
    reg.disconnect(b)
    assert not reg.is_online("us_1")
    assert reg.session_count() == 0


async def test_publish_reaches_every_session_of_a_user():
    reg = ConnectionRegistry()
    bus = EventBroadcaster(reg)
    a, b = FakeSession(), FakeSession()
    reg.join("us_1", a)
    reg.join("us_1", b)

    bus.publish("us_1", Event("ping", {"n": 1}))
    await bus.drain()
    assert a.sent == b.sent == [{"event": "ping", "data": {"n": 1}}]


async def test_offline_users_are_skipped():
    bus = EventBroadcaster(ConnectionRegistry())
    bus.publish("us_nobody", Event("ping"))
    await bus.drain()
    assert bus.pending_count() == 0


async def test_failing_session_is_dropped():
    reg = ConnectionRegistry()
    bus = EventBroadcaster(reg)
    good, bad = FakeSession(), BrokenSession()
    reg.join("us_1", bad)
    reg.join("us_1", good)

    bus.publish("us_1", Event("ping"))
    await bus.drain()
    assert reg.sessions("us_1") == (good,)
    assert len(good.sent) == 1


async def test_message_not_echoed_to_sender():
    reg = ConnectionRegistry()
    bus = EventBroadcaster(reg)
    sender, peer = FakeSession(), FakeSession()
    reg.join("us_a", sender)
    reg.join("us_b", peer)

    bus.message_appended("ch_1", "tk_1", {"id": "ms_1"}, ["us_a", "us_b"], "us_a")
    await bus.drain()
    assert sender.sent == []
    assert peer.sent == [
        {
            "event": "receive_message",
            "data": {"chatId": "ch_1", "taskId": "tk_1", "message": {"id": "ms_1"}},
        }
    ]


def test_publish_without_loop_is_dropped():
    bus = EventBroadcaster(ConnectionRegistry())
    bus.publish("us_1", Event("ping"))
    assert bus.pending_count() == 0


async def test_live_events_from_api(trio):
    c = trio["client"]
    rq, fx = trio["requester"], trio["fulfiller"]
    rq_live, fx_live = FakeSession(), FakeSession()
    connections.join(rq["id"], rq_live)
    connections.join(fx["id"], fx_live)

    task = await post_task(c, rq["key"])
    await c.put(f"/v1/tasks/{task['id']}/accept", headers=hdr(fx["key"]))
    await c.post(
        f"/v1/chat/{task['id']}/messages", headers=hdr(rq["key"]), json={"content": "Thanks!"}
    )
    await broadcaster.drain()

    fx_events = [e["event"] for e in fx_live.sent]
    rq_events = [e["event"] for e in rq_live.sent]
    assert "receive_message" in fx_events
    assert "receive_message" not in rq_events
    assert "task_updated" in rq_events
    assert "receive_notification" in rq_events

    delivered = next(e for e in fx_live.sent if e["event"] == "receive_message")
    assert delivered["data"]["message"]["content"] == "Thanks!"
    assert delivered["data"]["taskId"] == task["id"]


@pytest.mark.parametrize("n", [1, 3])
async def test_drain_waits_for_all_deliveries(n):
    reg = ConnectionRegistry()
    bus = EventBroadcaster(reg)

    class SlowSession(FakeSession):
        async def send_json(self, data) -> None:
            await asyncio.sleep(0.01)
            await super().send_json(data)

    s = SlowSession()
    reg.join("us_1", s)
    for i in range(n):
        bus.publish("us_1", Event("tick", {"i": i}))
    await bus.drain()
    assert [e["data"]["i"] for e in s.sent] == list(range(n))
