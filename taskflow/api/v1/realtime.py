"""WebSocket endpoint: authentication, room subscriptions and keep-alive"""
import asyncio
import json
from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, WebSocket, WebSocketDisconnect
from sqlalchemy.orm import Session

from taskflow.config import settings
from taskflow.database import get_db
from taskflow.dependencies import user_from_token
from taskflow.errors import AuthenticationError
from taskflow.logger import get_logger
from taskflow.models import Project, Task
from taskflow.realtime import ConnectionHub, project_room, task_room
from taskflow.realtime.hub import Connection
from taskflow.utils.timeutils import utcnow

router = APIRouter()
log = get_logger("realtime.socket")

WS_AUTH_FAILED = 4401


def _parse(raw: str) -> Optional[Dict[str, Any]]:
    try:
        message = json.loads(raw)
    except (TypeError, ValueError):
        return None
    if not isinstance(message, dict) or not isinstance(message.get("event"), str):
        return None
    data = message.get("data")
    return {"event": message["event"], "data": data if isinstance(data, dict) else {}}


def _bearer_token(websocket: WebSocket) -> Optional[str]:
    """Token from the handshake header; ``None`` when no header was sent."""
    header = websocket.headers.get("authorization")
    if header is None:
        return None
    scheme, _, token = header.partition(" ")
    return token.strip() if scheme.lower() == "bearer" else ""


async def _authenticate(websocket: WebSocket, db: Session) -> Optional[int]:
    token = _bearer_token(websocket)
    if token is None:
        try:
            raw = await asyncio.wait_for(websocket.receive_text(), timeout=settings.WS_AUTH_TIMEOUT_SECONDS)
        except asyncio.TimeoutError:
            log.info("Socket authentication timed out")
            return None
        message = _parse(raw)
        if message is None or message["event"] != "authenticate":
            return None
        token = message["data"].get("token")

    try:
        return user_from_token(token, db).id
    except AuthenticationError as exc:
        log.info("Socket authentication failed: %s", exc.message)
        return None
    finally:
        db.close()


def _as_id(value) -> Optional[int]:
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


def _can_view_project(db: Session, user_id: int, project_id: Optional[int]) -> bool:
    if project_id is None:
        return False
    try:
        project = db.query(Project).filter(Project.id == project_id).first()
        return project is not None and project.can_view(user_id)
    finally:
        db.close()


def _viewable_task_project(db: Session, user_id: int, task_id: Optional[int]) -> Optional[int]:
    """Project id of ``task_id`` when ``user_id`` may view it, else ``None``."""
    if task_id is None:
        return None
    try:
        task = db.query(Task).filter(Task.id == task_id).first()
        if task is None or not task.project.can_view(user_id):
            return None
        return task.project_id
    finally:
        db.close()


async def _join_project(hub: ConnectionHub, connection: Connection, data: dict, db: Session) -> None:
    project_id = _as_id(data.get("project_id"))
    if not _can_view_project(db, connection.user_id, project_id):
        await connection.send("error", {"message": "Access denied to project", "event": "join_project"})
        return
    room = project_room(project_id)
    hub.join(connection.sid, room)
    log.info("Socket joined room", extra={"sid": connection.sid, "user_id": connection.user_id, "room": room})
    await connection.send("project_joined", {"project_id": project_id})


async def _leave_project(hub: ConnectionHub, connection: Connection, data: dict, db: Session) -> None:
    project_id = _as_id(data.get("project_id"))
    if project_id is not None:
        hub.leave(connection.sid, project_room(project_id))


async def _join_task(hub: ConnectionHub, connection: Connection, data: dict, db: Session) -> None:
    task_id = _as_id(data.get("task_id"))
    project_id = _viewable_task_project(db, connection.user_id, task_id)
    if project_id is None:
        await connection.send("error", {"message": "Access denied to task", "event": "join_task"})
        return
    hub.join(connection.sid, task_room(task_id), parent=project_room(project_id))


async def _leave_task(hub: ConnectionHub, connection: Connection, data: dict, db: Session) -> None:
    task_id = _as_id(data.get("task_id"))
    if task_id is not None:
        hub.leave(connection.sid, task_room(task_id))


async def _ping(hub: ConnectionHub, connection: Connection, data: dict, db: Session) -> None:
    await connection.send("pong", {"time": utcnow().isoformat()})


HANDLERS = {
    "join_project": _join_project,
    "leave_project": _leave_project,
    "join_task": _join_task,
    "leave_task": _leave_task,
    "ping": _ping,
}


@router.websocket("/ws")
async def realtime_socket(websocket: WebSocket, db: Session = Depends(get_db)):
    hub: ConnectionHub = websocket.app.state.hub
    await websocket.accept()

    try:
        user_id = await _authenticate(websocket, db)
    except WebSocketDisconnect:
        return
    if user_id is None:
        await websocket.close(code=WS_AUTH_FAILED, reason="Authentication error")
        return

    connection = hub.register(websocket, user_id)
    try:
        await connection.send("connected", {"sid": connection.sid, "user_id": user_id})
        while True:
            message = _parse(await websocket.receive_text())
            if message is None:
                await connection.send("error", {"message": "Malformed message"})
                continue
            handler = HANDLERS.get(message["event"])
            if handler is None:
                await connection.send("error", {"message": f"Unknown event '{message['event']}'"})
                continue
            await handler(hub, connection, message["data"], db)
    except WebSocketDisconnect:
        pass
    finally:
        hub.unregister(connection.sid)
