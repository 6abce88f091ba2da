"""
In-process registry of realtime connections and the rooms they joined.

Rooms are plain names (``user_<id>``, ``project_<id>``, ``task_<id>``).
Delivery is best effort: a failed send is logged, the connection is dropped
from the hub and nothing is retried or queued.
"""
import uuid
from collections import defaultdict
from typing import Any, Dict, Iterable, List, Optional, Set

from taskflow.logger import get_logger

log = get_logger("realtime")


def user_room(user_id) -> str:
    return f"user_{user_id}"


def project_room(project_id) -> str:
    return f"project_{project_id}"


def task_room(task_id) -> str:
    return f"task_{task_id}"


class Connection:
    """One accepted socket. ``websocket`` only needs an async ``send_json``."""

    def __init__(self, sid: str, user_id: int, websocket):
        self.sid = sid
        self.user_id = user_id
        self.websocket = websocket
        self.rooms: Set[str] = set()
        # task room -> project room it was joined under
        self.room_parents: Dict[str, str] = {}

    async def send(self, event: str, data: Any) -> None:
        await self.websocket.send_json({"event": event, "data": data})


class ConnectionHub:
    def __init__(self):
        self._connections: Dict[str, Connection] = {}
        self._rooms: Dict[str, Set[str]] = defaultdict(set)
        # connection ids per user, oldest first
        self._user_sids: Dict[int, List[str]] = defaultdict(list)

    # ------------------------------------------------------------------
    # Registry
    # ------------------------------------------------------------------
    def register(self, websocket, user_id: int) -> Connection:
        connection = Connection(uuid.uuid4().hex, user_id, websocket)
        self._connections[connection.sid] = connection
        self._user_sids[user_id].append(connection.sid)
        self.join(connection.sid, user_room(user_id))
        log.info("Socket connected", extra={"sid": connection.sid, "user_id": user_id})
        return connection

    def unregister(self, sid: str) -> None:
        connection = self._connections.pop(sid, None)
        if connection is None:
            return
        for room in list(connection.rooms):
            self._discard(sid, room)
        sids = self._user_sids.get(connection.user_id, [])
        if sid in sids:
            sids.remove(sid)
        if not sids:
            self._user_sids.pop(connection.user_id, None)
        log.info("Socket disconnected", extra={"sid": sid, "user_id": connection.user_id})

    def get(self, sid: str) -> Optional[Connection]:
        return self._connections.get(sid)

    def connection_count(self) -> int:
        return len(self._connections)

    def sids_for_user(self, user_id: int) -> List[str]:
        return list(self._user_sids.get(user_id, []))

    def primary_sid(self, user_id: int) -> Optional[str]:
        """Most recently opened connection of ``user_id``."""
        sids = self._user_sids.get(user_id)
        return sids[-1] if sids else None

    # ------------------------------------------------------------------
    # Rooms
    # ------------------------------------------------------------------
    def join(self, sid: str, room: str, parent: Optional[str] = None) -> None:
        """Add ``sid`` to ``room``; a ``parent`` room takes ``room`` with it when left for good."""
        connection = self._connections.get(sid)
        if connection is None:
            return
        connection.rooms.add(room)
        if parent is not None:
            connection.room_parents[room] = parent
        self._rooms[room].add(sid)

    def leave(self, sid: str, room: str) -> None:
        connection = self._connections.get(sid)
        if connection is not None:
            connection.rooms.discard(room)
            connection.room_parents.pop(room, None)
        self._discard(sid, room)

    def _leave_with_children(self, sid: str, room: str) -> None:
        connection = self._connections.get(sid)
        if connection is not None:
            for child, parent in list(connection.room_parents.items()):
                if parent == room:
                    self.leave(sid, child)
        self.leave(sid, room)

    def remove_user_from_room(self, user_id: int, room: str) -> None:
        """Drop every socket of ``user_id`` from ``room`` and the rooms joined under it."""
        for sid in self.sids_for_user(user_id):
            self._leave_with_children(sid, room)

    def close_room(self, room: str) -> None:
        for sid in list(self._rooms.get(room, ())):
            self._leave_with_children(sid, room)

    def room_members(self, room: str) -> Set[str]:
        return set(self._rooms.get(room, ()))

    def _discard(self, sid: str, room: str) -> None:
        members = self._rooms.get(room)
        if members is None:
            return
        members.discard(sid)
        if not members:
            del self._rooms[room]

    # ------------------------------------------------------------------
    # Delivery
    # ------------------------------------------------------------------
    async def send(self, sid: str, event: str, data: Any) -> bool:
        connection = self._connections.get(sid)
        if connection is None:
            log.info("Dropping event for unknown socket", extra={"sid": sid, "event": event})
            return False
        try:
            await connection.send(event, data)
        except Exception:
            log.warning(
                "Socket send failed, dropping connection",
                extra={"sid": sid, "user_id": connection.user_id, "event": event},
                exc_info=True,
            )
            self.unregister(sid)
            return False
        return True

    async def emit(self, event: str, data: Any, rooms: Iterable[str], skip_sid: Optional[str] = None) -> int:
        """Send ``event`` once to every connection in any of ``rooms``.

        Returns the number of successful deliveries; an empty room is a no-op.
        """
        recipients: Set[str] = set()
        for room in rooms:
            recipients |= self._rooms.get(room, set())
        recipients.discard(skip_sid)

        delivered = 0
        for sid in sorted(recipients):
            if await self.send(sid, event, data):
                delivered += 1
        return delivered
