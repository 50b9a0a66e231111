import json

import pytest

from sticky_notes.broadcast import Broadcaster
from sticky_notes.events import EventType, conversation_event, tag_event

pytestmark = pytest.mark.anyio


async def test_events_reach_every_client_in_order(fake_socket):
    broadcaster = Broadcaster()
    first, second = fake_socket(), fake_socket()
    await broadcaster.connect(first)
    await broadcaster.connect(second)
    assert first.accepted and second.accepted

    events = [conversation_event("c", 1, created=True), tag_event("x", 1, created=True)]
    assert await broadcaster.publish(events) == 4

    for socket in (first, second):
        messages = [json.loads(m) for m in socket.sent]
        assert [m["type"] for m in messages] == [EventType.CONVERSATION_CREATED, EventType.TAG_CREATED]
        assert messages[0]["payload"] == {"conversation_id": "c", "note_count": 1}


async def test_failed_sends_drop_the_connection(fake_socket):
    broadcaster = Broadcaster()
    healthy, broken = fake_socket(), fake_socket(fail=True)
    await broadcaster.connect(healthy)
    await broadcaster.connect(broken)

    await broadcaster.publish([tag_event("x", 0)])
    assert broadcaster.connections == {healthy}
    assert len(healthy.sent) == 1


async def test_disabled_broadcaster_sends_nothing(fake_socket):
    broadcaster = Broadcaster(enabled=False)
    socket = fake_socket()
    await broadcaster.connect(socket)
    assert await broadcaster.publish([tag_event("x", 0)]) == 0
    assert socket.sent == []


async def test_disconnect_and_close_all(fake_socket):
    broadcaster = Broadcaster()
    a, b = fake_socket(), fake_socket()
    await broadcaster.connect(a)
    await broadcaster.connect(b)

    broadcaster.disconnect(a)
    assert broadcaster.connections == {b}

    await broadcaster.close_all()
    assert b.closed
    assert broadcaster.connections == set()
