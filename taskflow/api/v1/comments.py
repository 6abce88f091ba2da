"""Task comment endpoints"""
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session

from taskflow.api.v1.access import ensure_project_member, ensure_task_access, load_task
from taskflow.database import get_db
from taskflow.dependencies import get_current_user, get_notifier, get_origin_sid
from taskflow.logger import get_logger
from taskflow.models import Task, TaskComment, User
from taskflow.realtime import RealtimeNotifier
from taskflow.schemas import TaskCommentCreate, TaskCommentResponse, TaskCommentUpdate

router = APIRouter()
log = get_logger("comments")


def _serialize_comment(comment: TaskComment) -> dict:
    return TaskCommentResponse.model_validate(comment).model_dump(mode="json")


def _check_mentions(task: Task, mentions: List[int], db: Session) -> List[User]:
    """Mentioned users must exist and belong to the task's project."""
    if not mentions:
        return []
    wanted = set(mentions)
    users = db.query(User).filter(User.id.in_(wanted)).all()
    outside = sorted(wanted - {user.id for user in users if task.project.is_member(user.id)})
    if outside:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Cannot mention users outside the project: {', '.join(str(i) for i in outside)}",
        )
    return users


@router.get("/{task_id}/comments", response_model=List[TaskCommentResponse])
async def list_task_comments(
    task_id: int,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Return all comments for a task, oldest first."""
    task = load_task(db, task_id)
    ensure_task_access(task, current_user)
    return task.comments


@router.post("/{task_id}/comments", response_model=TaskCommentResponse, status_code=status.HTTP_201_CREATED)
async def create_comment(
    task_id: int,
    comment_in: TaskCommentCreate,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    notifier: RealtimeNotifier = Depends(get_notifier),
    origin_sid: Optional[str] = Depends(get_origin_sid),
):
    """Create a comment and notify mentioned users."""
    task = load_task(db, task_id)
    ensure_project_member(task.project, current_user)
    mentioned_users = _check_mentions(task, comment_in.mentions, db)

    comment = task.add_comment(
        current_user.id,
        comment_in.content,
        mentions=comment_in.mentions,
        attachments=[attachment.model_dump() for attachment in comment_in.attachments],
    )
    db.commit()
    log.info("Comment added", extra={"task_id": task_id, "user_id": current_user.id})

    payload = _serialize_comment(comment)
    await notifier.comment_added(task.project_id, task_id, payload, current_user.id, origin_sid)
    for user in mentioned_users:
        await notifier.user_mentioned(user, task_id, task.project_id, payload, current_user.id)
    return payload


@router.put("/{task_id}/comments/{comment_id}", response_model=TaskCommentResponse)
async def update_comment(
    task_id: int,
    comment_id: int,
    comment_in: TaskCommentUpdate,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    notifier: RealtimeNotifier = Depends(get_notifier),
    origin_sid: Optional[str] = Depends(get_origin_sid),
):
    task = load_task(db, task_id)
    ensure_task_access(task, current_user)
    if comment_in.mentions is not None:
        _check_mentions(task, comment_in.mentions, db)

    comment = task.update_comment(comment_id, current_user.id, comment_in.content, comment_in.mentions)
    db.commit()

    payload = _serialize_comment(comment)
    await notifier.comment_updated(task.project_id, task_id, payload, current_user.id, origin_sid)
    return payload


@router.delete("/{task_id}/comments/{comment_id}")
async def delete_comment(
    task_id: int,
    comment_id: int,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    notifier: RealtimeNotifier = Depends(get_notifier),
    origin_sid: Optional[str] = Depends(get_origin_sid),
):
    task = load_task(db, task_id)
    ensure_task_access(task, current_user)

    task.delete_comment(comment_id, current_user.id)
    db.commit()

    await notifier.comment_deleted(task.project_id, task_id, comment_id, current_user.id, origin_sid)
    return {"message": "Comment deleted"}
