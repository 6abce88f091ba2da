"""Fan-out of domain events to the rooms interested in them."""
import enum
from typing import Any, Dict, Optional

from taskflow.logger import get_logger
from taskflow.realtime.hub import ConnectionHub, project_room, task_room, user_room

log = get_logger("realtime.notifier")


class Event(str, enum.Enum):
    TASK_CREATED = "task_created"
    TASK_UPDATED = "task_updated"
    TASK_DELETED = "task_deleted"
    COMMENT_ADDED = "comment_added"
    COMMENT_UPDATED = "comment_updated"
    COMMENT_DELETED = "comment_deleted"
    PROJECT_UPDATED = "project_updated"
    PROJECT_DELETED = "project_deleted"
    MEMBER_JOINED = "member_joined"
    MEMBER_LEFT = "member_left"
    USER_MENTIONED = "user_mentioned"


class RealtimeNotifier:
    """Called by the REST layer after a change has been committed.

    The acting user's own socket is left out of every broadcast: the one named
    by the ``X-Socket-Id`` header when it belongs to the actor, otherwise the
    actor's most recently opened connection.
    """

    def __init__(self, hub: ConnectionHub):
        self.hub = hub

    def skip_sid_for(self, actor_id: Optional[int], origin_sid: Optional[str] = None) -> Optional[str]:
        if actor_id is None:
            return None
        if origin_sid:
            connection = self.hub.get(origin_sid)
            if connection is not None and connection.user_id == actor_id:
                return origin_sid
        return self.hub.primary_sid(actor_id)

    async def _broadcast(self, event: Event, data: Dict[str, Any], rooms, actor_id, origin_sid) -> int:
        delivered = await self.hub.emit(
            event.value, data, rooms, skip_sid=self.skip_sid_for(actor_id, origin_sid)
        )
        log.debug("Event broadcast", extra={"event": event.value, "room": ",".join(rooms)})
        return delivered

    # Tasks
    async def task_created(self, project_id, task: Dict[str, Any], actor_id, origin_sid=None) -> int:
        return await self._broadcast(
            Event.TASK_CREATED,
            {"task": task, "created_by": actor_id},
            [project_room(project_id)],
            actor_id,
            origin_sid,
        )

    async def task_updated(self, project_id, task: Dict[str, Any], actor_id, origin_sid=None) -> int:
        return await self._broadcast(
            Event.TASK_UPDATED,
            {"task": task, "updated_by": actor_id},
            [project_room(project_id), task_room(task["id"])],
            actor_id,
            origin_sid,
        )

    async def task_deleted(self, project_id, task_id, actor_id, origin_sid=None) -> int:
        delivered = await self._broadcast(
            Event.TASK_DELETED,
            {"task_id": task_id, "project_id": project_id, "deleted_by": actor_id},
            [project_room(project_id), task_room(task_id)],
            actor_id,
            origin_sid,
        )
        self.hub.close_room(task_room(task_id))
        return delivered

    # Comments
    async def comment_added(self, project_id, task_id, comment: Dict[str, Any], actor_id, origin_sid=None) -> int:
        return await self._broadcast(
            Event.COMMENT_ADDED,
            {"task_id": task_id, "comment": comment},
            [project_room(project_id), task_room(task_id)],
            actor_id,
            origin_sid,
        )

    async def comment_updated(self, project_id, task_id, comment: Dict[str, Any], actor_id, origin_sid=None) -> int:
        return await self._broadcast(
            Event.COMMENT_UPDATED,
            {"task_id": task_id, "comment": comment},
            [project_room(project_id), task_room(task_id)],
            actor_id,
            origin_sid,
        )

    async def comment_deleted(self, project_id, task_id, comment_id, actor_id, origin_sid=None) -> int:
        return await self._broadcast(
            Event.COMMENT_DELETED,
            {"task_id": task_id, "comment_id": comment_id},
            [project_room(project_id), task_room(task_id)],
            actor_id,
            origin_sid,
        )

    # Projects and membership
    async def project_updated(self, project: Dict[str, Any], actor_id, origin_sid=None) -> int:
        return await self._broadcast(
            Event.PROJECT_UPDATED,
            {"project": project, "updated_by": actor_id},
            [project_room(project["id"])],
            actor_id,
            origin_sid,
        )

    async def project_deleted(self, project_id, actor_id, origin_sid=None) -> int:
        delivered = await self._broadcast(
            Event.PROJECT_DELETED,
            {"project_id": project_id, "deleted_by": actor_id},
            [project_room(project_id)],
            actor_id,
            origin_sid,
        )
        self.hub.close_room(project_room(project_id))
        return delivered

    async def member_joined(self, project_id, member: Dict[str, Any], actor_id, origin_sid=None) -> int:
        """The new member's own sockets hear about it through their user room."""
        return await self._broadcast(
            Event.MEMBER_JOINED,
            {"project_id": project_id, "member": member},
            [project_room(project_id), user_room(member["user"]["id"])],
            actor_id,
            origin_sid,
        )

    async def member_left(self, project_id, user_id, actor_id, origin_sid=None) -> int:
        delivered = await self._broadcast(
            Event.MEMBER_LEFT,
            {"project_id": project_id, "user_id": user_id, "removed_by": actor_id},
            [project_room(project_id), user_room(user_id)],
            actor_id,
            origin_sid,
        )
        self.hub.remove_user_from_room(user_id, project_room(project_id))
        return delivered

    async def user_mentioned(self, user, task_id, project_id, comment: Dict[str, Any], actor_id) -> int:
        """Private notice to a mentioned user; honours their ``mentions`` preference."""
        if user.id == actor_id or not user.wants_notification("mentions"):
            return 0
        return await self.hub.emit(
            Event.USER_MENTIONED.value,
            {"task_id": task_id, "project_id": project_id, "comment": comment, "mentioned_by": actor_id},
            [user_room(user.id)],
        )
