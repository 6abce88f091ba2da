import asyncio

from taskflow.models import User
from taskflow.realtime import ConnectionHub, RealtimeNotifier, project_room, task_room, user_room


class FakeSocket:
    def __init__(self, fail: bool = False):
        self.fail = fail
        self.sent = []

    async def send_json(self, data):
        if self.fail:
            raise RuntimeError("socket closed")
        self.sent.append(data)

    def events(self):
        return [message["event"] for message in self.sent]


def test_register_joins_user_room_and_unregister_cleans_up():
    hub = ConnectionHub()
    connection = hub.register(FakeSocket(), user_id=7)
    hub.join(connection.sid, project_room(1))

    assert hub.room_members(user_room(7)) == {connection.sid}
    assert hub.room_members(project_room(1)) == {connection.sid}

    hub.unregister(connection.sid)
    assert hub.room_members(user_room(7)) == set()
    assert hub.room_members(project_room(1)) == set()
    assert hub.primary_sid(7) is None
    assert hub.connection_count() == 0


def test_primary_sid_is_latest_connection():
    hub = ConnectionHub()
    first = hub.register(FakeSocket(), user_id=1)
    second = hub.register(FakeSocket(), user_id=1)

    assert hub.primary_sid(1) == second.sid
    hub.unregister(second.sid)
    assert hub.primary_sid(1) == first.sid


def test_emit_reaches_each_socket_once_and_skips_origin():
    hub = ConnectionHub()
    alice_socket, bob_socket, carol_socket, outsider_socket = FakeSocket(), FakeSocket(), FakeSocket(), FakeSocket()
    alice = hub.register(alice_socket, user_id=1)
    bob = hub.register(bob_socket, user_id=2)
    carol = hub.register(carol_socket, user_id=3)
    hub.register(outsider_socket, user_id=4)
    for connection in (alice, bob, carol):
        hub.join(connection.sid, project_room(10))
    hub.join(bob.sid, task_room(5))

    delivered = asyncio.run(
        hub.emit("task_updated", {"id": 5}, [project_room(10), task_room(5)], skip_sid=alice.sid)
    )

    assert delivered == 2
    assert alice_socket.sent == []
    assert bob_socket.sent == [{"event": "task_updated", "data": {"id": 5}}]
    assert carol_socket.events() == ["task_updated"]
    assert outsider_socket.sent == []


def test_emit_to_empty_room_is_noop():
    hub = ConnectionHub()
    assert asyncio.run(hub.emit("task_created", {}, [project_room(99)])) == 0


def test_failed_send_drops_connection():
    hub = ConnectionHub()
    broken = hub.register(FakeSocket(fail=True), user_id=1)
    healthy_socket = FakeSocket()
    healthy = hub.register(healthy_socket, user_id=2)
    hub.join(broken.sid, project_room(1))
    hub.join(healthy.sid, project_room(1))

    delivered = asyncio.run(hub.emit("project_updated", {}, [project_room(1)]))

    assert delivered == 1
    assert hub.get(broken.sid) is None
    assert hub.room_members(project_room(1)) == {healthy.sid}
    assert healthy_socket.events() == ["project_updated"]


def test_notifier_skips_actor_socket():
    hub = ConnectionHub()
    notifier = RealtimeNotifier(hub)
    actor_tab_one, actor_tab_two, peer = FakeSocket(), FakeSocket(), FakeSocket()
    one = hub.register(actor_tab_one, user_id=1)
    two = hub.register(actor_tab_two, user_id=1)
    other = hub.register(peer, user_id=2)
    for connection in (one, two, other):
        hub.join(connection.sid, project_room(3))

    # explicit origin wins over the most recent connection
    asyncio.run(notifier.task_created(3, {"id": 1}, actor_id=1, origin_sid=one.sid))
    assert actor_tab_one.sent == []
    assert actor_tab_two.events() == ["task_created"]
    assert peer.events() == ["task_created"]

    # an origin belonging to someone else is ignored
    assert notifier.skip_sid_for(1, other.sid) == two.sid
    assert notifier.skip_sid_for(2) == other.sid
    assert notifier.skip_sid_for(None, other.sid) is None


def test_member_left_unsubscribes_removed_user():
    hub = ConnectionHub()
    notifier = RealtimeNotifier(hub)
    removed_socket = FakeSocket()
    removed = hub.register(removed_socket, user_id=5)
    hub.join(removed.sid, project_room(2))

    asyncio.run(notifier.member_left(2, user_id=5, actor_id=1))

    assert removed_socket.events() == ["member_left"]
    assert hub.room_members(project_room(2)) == set()


def test_member_left_also_clears_task_rooms_of_that_project():
    hub = ConnectionHub()
    notifier = RealtimeNotifier(hub)
    removed = hub.register(FakeSocket(), user_id=5)
    hub.join(removed.sid, task_room(8), parent=project_room(2))
    hub.join(removed.sid, task_room(9), parent=project_room(3))

    asyncio.run(notifier.member_left(2, user_id=5, actor_id=1))

    assert hub.room_members(task_room(8)) == set()
    assert hub.room_members(task_room(9)) == {removed.sid}
    assert removed.room_parents == {task_room(9): project_room(3)}


def test_mentions_respect_preferences():
    hub = ConnectionHub()
    notifier = RealtimeNotifier(hub)
    keen_socket, quiet_socket = FakeSocket(), FakeSocket()
    hub.register(keen_socket, user_id=1)
    hub.register(quiet_socket, user_id=2)
    keen = User(id=1, notification_preferences={"mentions": True})
    quiet = User(id=2, notification_preferences={"mentions": False})

    asyncio.run(notifier.user_mentioned(keen, task_id=4, project_id=3, comment={"id": 8}, actor_id=9))
    asyncio.run(notifier.user_mentioned(quiet, task_id=4, project_id=3, comment={"id": 8}, actor_id=9))
    asyncio.run(notifier.user_mentioned(keen, task_id=4, project_id=3, comment={"id": 8}, actor_id=1))

    assert keen_socket.events() == ["user_mentioned"]
    assert keen_socket.sent[0]["data"]["mentioned_by"] == 9
    assert quiet_socket.sent == []
