"""Task endpoints"""
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.orm import Session

from taskflow.api.v1.access import ensure_project_view, ensure_task_access, load_project, load_task
from taskflow.database import get_db
from taskflow.dependencies import get_current_user, get_notifier, get_origin_sid
from taskflow.logger import get_logger
from taskflow.models import Task, TaskHistoryEntry, User
from taskflow.realtime import RealtimeNotifier
from taskflow.schemas import (
    AttachmentIn,
    ChecklistUpdate,
    HistoryEntryResponse,
    TaskCreate,
    TaskResponse,
    TaskStatusUpdate,
    TaskUpdate,
)
from taskflow.schemas.comment import Attachment

router = APIRouter()
log = get_logger("tasks")


def task_payload(task: Task) -> dict:
    return TaskResponse.model_validate(task).model_dump(mode="json")


def _require_edit(task: Task, current_user: User) -> None:
    ensure_task_access(task, current_user)
    task.project.require(current_user.id, "can_edit", "You don't have permission to edit tasks")


async def _committed(
    db: Session,
    task: Task,
    current_user: User,
    notifier: RealtimeNotifier,
    origin_sid: Optional[str],
) -> dict:
    db.commit()
    payload = task_payload(load_task(db, task.id))
    await notifier.task_updated(task.project_id, payload, current_user.id, origin_sid)
    return payload


@router.post("", response_model=TaskResponse, status_code=status.HTTP_201_CREATED)
async def create_task(
    task_in: TaskCreate,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    notifier: RealtimeNotifier = Depends(get_notifier),
    origin_sid: Optional[str] = Depends(get_origin_sid),
):
    project = load_project(db, task_in.project_id)
    ensure_project_view(project, current_user)

    task = Task.create(
        project,
        creator_id=current_user.id,
        title=task_in.title,
        description=task_in.description,
        status=task_in.status,
        priority=task_in.priority,
        assignee_id=task_in.assignee_id,
        due_date=task_in.due_date,
        labels=task_in.labels,
        estimated_hours=task_in.estimated_hours,
        actual_hours=task_in.actual_hours,
    )
    db.add(task)
    db.commit()
    log.info("Task created", extra={"task_id": task.id, "project_id": project.id, "user_id": current_user.id})

    payload = task_payload(load_task(db, task.id))
    await notifier.task_created(project.id, payload, current_user.id, origin_sid)
    return payload


@router.get("/project/{project_id}", response_model=List[TaskResponse])
async def list_project_tasks(
    project_id: int,
    status_filter: Optional[str] = Query(default=None, alias="status"),
    assignee_id: Optional[int] = None,
    priority: Optional[str] = None,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Board order: column, then position within the column."""
    project = load_project(db, project_id)
    ensure_project_view(project, current_user)

    query = db.query(Task).filter(Task.project_id == project_id)
    if status_filter:
        query = query.filter(Task.status == status_filter)
    if assignee_id is not None:
        query = query.filter(Task.assignee_id == assignee_id)
    if priority:
        query = query.filter(Task.priority == priority)
    return query.order_by(Task.column_index.asc(), Task.position.asc(), Task.id.asc()).all()


@router.get("/{task_id}", response_model=TaskResponse)
async def get_task(
    task_id: int,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    task = load_task(db, task_id)
    ensure_task_access(task, current_user)
    return task


@router.put("/{task_id}", response_model=TaskResponse)
async def update_task(
    task_id: int,
    task_in: TaskUpdate,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    notifier: RealtimeNotifier = Depends(get_notifier),
    origin_sid: Optional[str] = Depends(get_origin_sid),
):
    task = load_task(db, task_id)
    _require_edit(task, current_user)

    changes = task_in.model_dump(exclude_unset=True)
    if not changes:
        return task
    entries = task.apply_update(current_user.id, changes)
    if not entries and not db.is_modified(task):
        return task
    return await _committed(db, task, current_user, notifier, origin_sid)


@router.patch("/{task_id}/status", response_model=TaskResponse)
async def move_task(
    task_id: int,
    move_in: TaskStatusUpdate,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    notifier: RealtimeNotifier = Depends(get_notifier),
    origin_sid: Optional[str] = Depends(get_origin_sid),
):
    task = load_task(db, task_id)
    _require_edit(task, current_user)

    task.move(current_user.id, move_in.status, move_in.position)
    if not db.is_modified(task):
        return task
    return await _committed(db, task, current_user, notifier, origin_sid)


@router.patch("/{task_id}/checklist", response_model=TaskResponse)
async def update_checklist(
    task_id: int,
    checklist_in: ChecklistUpdate,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    notifier: RealtimeNotifier = Depends(get_notifier),
    origin_sid: Optional[str] = Depends(get_origin_sid),
):
    task = load_task(db, task_id)
    _require_edit(task, current_user)

    entry = task.set_checklist(current_user.id, [item.model_dump() for item in checklist_in.checklist])
    if entry is None:
        return task
    return await _committed(db, task, current_user, notifier, origin_sid)


@router.post("/{task_id}/attachments", response_model=Attachment, status_code=status.HTTP_201_CREATED)
async def add_attachment(
    task_id: int,
    attachment_in: AttachmentIn,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    notifier: RealtimeNotifier = Depends(get_notifier),
    origin_sid: Optional[str] = Depends(get_origin_sid),
):
    """Record an already uploaded file on the task."""
    task = load_task(db, task_id)
    _require_edit(task, current_user)

    attachment = task.add_attachment(current_user.id, attachment_in.model_dump())
    await _committed(db, task, current_user, notifier, origin_sid)
    return attachment


@router.get("/{task_id}/history", response_model=List[HistoryEntryResponse])
async def task_history(
    task_id: int,
    limit: int = Query(default=50, ge=1, le=500),
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """The latest ``limit`` entries, oldest first."""
    task = load_task(db, task_id)
    ensure_task_access(task, current_user)

    entries = db.query(TaskHistoryEntry).filter(
        TaskHistoryEntry.task_id == task_id
    ).order_by(TaskHistoryEntry.id.desc()).limit(limit).all()
    return list(reversed(entries))


@router.delete("/{task_id}")
async def delete_task(
    task_id: int,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    notifier: RealtimeNotifier = Depends(get_notifier),
    origin_sid: Optional[str] = Depends(get_origin_sid),
):
    task = load_task(db, task_id)
    ensure_task_access(task, current_user)
    if not task.can_delete(current_user.id):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="You don't have permission to delete this task",
        )

    project_id = task.project_id
    db.delete(task)
    db.commit()
    log.info("Task deleted", extra={"task_id": task_id, "project_id": project_id, "user_id": current_user.id})

    await notifier.task_deleted(project_id, task_id, current_user.id, origin_sid)
    return {"message": "Task deleted"}
