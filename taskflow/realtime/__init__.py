"""Realtime delivery over WebSockets."""
from taskflow.realtime.hub import ConnectionHub, project_room, task_room, user_room
from taskflow.realtime.notifier import Event, RealtimeNotifier

__all__ = [
    "ConnectionHub",
    "Event",
    "RealtimeNotifier",
    "project_room",
    "task_room",
    "user_room",
]
