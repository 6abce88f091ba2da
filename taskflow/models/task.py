"""
Task Model

Every mutating method appends to ``history`` and touches the task row, so
the ``version`` column guards comments, checklist and history the same way
it guards plain fields.
"""
from datetime import date, datetime
from typing import Iterable, List, Optional

from sqlalchemy import Column, Integer, String, Text, Float, DateTime, ForeignKey, JSON
from sqlalchemy.orm import relationship
import enum

from taskflow.database import Base
from taskflow.errors import AuthorizationError, NotFoundError, ValidationError
from taskflow.models.task_comment import TaskComment
from taskflow.models.task_history import HistoryAction, TaskHistoryEntry
from taskflow.utils.timeutils import to_naive_utc, utcnow


class TaskPriority(str, enum.Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


PRIORITIES = tuple(p.value for p in TaskPriority)

TITLE_MAX_LENGTH = 200
DESCRIPTION_MAX_LENGTH = 1000
COMMENT_MAX_LENGTH = 1000
CHECKLIST_ITEM_MAX_LENGTH = 200

# field -> history action recorded when it changes
TRACKED_FIELDS = {
    "title": HistoryAction.UPDATED,
    "description": HistoryAction.UPDATED,
    "priority": HistoryAction.UPDATED,
    "due_date": HistoryAction.UPDATED,
    "labels": HistoryAction.UPDATED,
    "estimated_hours": HistoryAction.UPDATED,
    "actual_hours": HistoryAction.UPDATED,
    "status": HistoryAction.STATUS_CHANGED,
    "assignee_id": HistoryAction.ASSIGNED,
}


def _snapshot(value):
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    return value


class Task(Base):
    __tablename__ = "tasks"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    project_id = Column(Integer, ForeignKey("projects.id", ondelete="CASCADE"), nullable=False, index=True)
    creator_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    assignee_id = Column(Integer, ForeignKey("users.id"), nullable=True, index=True)
    title = Column(String(TITLE_MAX_LENGTH), nullable=False)
    description = Column(Text, default="", nullable=False)
    status = Column(String(100), nullable=False)
    priority = Column(String(20), default=TaskPriority.MEDIUM.value, nullable=False)
    labels = Column(JSON, default=list, nullable=False)
    due_date = Column(DateTime, nullable=True)
    estimated_hours = Column(Float, default=0, nullable=False)
    actual_hours = Column(Float, default=0, nullable=False)
    checklist = Column(JSON, default=list, nullable=False)
    attachments = Column(JSON, default=list, nullable=False)
    column_index = Column(Integer, default=0, nullable=False)
    position = Column(Integer, default=0, nullable=False)
    version = Column(Integer, nullable=False)
    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow, nullable=False)

    # Relationships
    project = relationship("Project", back_populates="tasks")
    creator = relationship("User", foreign_keys=[creator_id])
    assignee = relationship("User", foreign_keys=[assignee_id])
    comments = relationship(
        "TaskComment",
        back_populates="task",
        cascade="all, delete-orphan",
        order_by="TaskComment.id",
    )
    history = relationship(
        "TaskHistoryEntry",
        back_populates="task",
        cascade="all, delete-orphan",
        order_by="TaskHistoryEntry.id",
    )

    __mapper_args__ = {"version_id_col": version}

    @classmethod
    def create(
        cls,
        project,
        creator_id: int,
        title: str,
        description: str = "",
        status: Optional[str] = None,
        priority: str = TaskPriority.MEDIUM.value,
        assignee_id: Optional[int] = None,
        due_date: Optional[datetime] = None,
        labels: Optional[List[str]] = None,
        estimated_hours: float = 0,
        actual_hours: float = 0,
    ) -> "Task":
        project.require(creator_id, "can_edit", "You don't have permission to create tasks")
        status = status or (project.columns[0] if project.columns else "To Do")

        task = cls(
            project=project,
            creator_id=creator_id,
            title=_clean_title(title),
            description=_clean_description(description),
            status=_check_status(project, status),
            priority=_check_priority(priority),
            assignee_id=_check_assignee(project, assignee_id),
            due_date=to_naive_utc(due_date),
            labels=_clean_labels(labels),
            estimated_hours=_check_hours("estimated_hours", estimated_hours),
            actual_hours=_check_hours("actual_hours", actual_hours),
            checklist=[],
            attachments=[],
            column_index=project.columns.index(status),
            position=0,
        )
        task.record(creator_id, HistoryAction.CREATED, detail=task.title)
        return task

    def touch(self) -> None:
        self.updated_at = utcnow()

    def record(self, actor_id: int, action: HistoryAction, detail: str = "", old_value=None, new_value=None) -> TaskHistoryEntry:
        entry = TaskHistoryEntry(
            actor_id=actor_id,
            action=action.value,
            detail=detail,
            old_value=_snapshot(old_value),
            new_value=_snapshot(new_value),
            created_at=utcnow(),
        )
        self.history.append(entry)
        self.touch()
        return entry

    def can_delete(self, user_id: int) -> bool:
        return self.creator_id == user_id or self.project.can(user_id, "can_delete")

    # ------------------------------------------------------------------
    # Field updates
    # ------------------------------------------------------------------
    def apply_update(self, actor_id: int, changes: dict) -> List[TaskHistoryEntry]:
        """Apply a partial update, one history entry per field that really changed."""
        changes = dict(changes)
        checklist = changes.pop("checklist", None)
        position = changes.pop("position", None)

        cleaners = {
            "title": _clean_title,
            "description": _clean_description,
            "priority": _check_priority,
            "labels": _clean_labels,
            "status": lambda value: _check_status(self.project, value),
            "assignee_id": lambda value: _check_assignee(self.project, value),
            "estimated_hours": lambda value: _check_hours("estimated_hours", value),
            "actual_hours": lambda value: _check_hours("actual_hours", value),
            "due_date": to_naive_utc,
        }

        entries = []
        for field, value in changes.items():
            if field not in TRACKED_FIELDS:
                raise ValidationError(f"Field '{field}' cannot be updated")
            value = cleaners[field](value)
            old_value = getattr(self, field)
            if old_value == value:
                continue
            setattr(self, field, value)
            if field == "status":
                self.column_index = self.project.columns.index(value)
            entries.append(
                self.record(actor_id, TRACKED_FIELDS[field], detail=field, old_value=old_value, new_value=value)
            )

        if position is not None and position != self.position:
            self.position = position
            self.touch()

        if checklist is not None:
            entry = self.set_checklist(actor_id, checklist)
            if entry is not None:
                entries.append(entry)
        return entries

    def move(self, actor_id: int, status: str, position: Optional[int] = None) -> List[TaskHistoryEntry]:
        changes = {"status": status}
        if position is not None:
            changes["position"] = position
        return self.apply_update(actor_id, changes)

    def set_checklist(self, actor_id: int, items: Iterable[dict]) -> Optional[TaskHistoryEntry]:
        previous = list(self.checklist or [])
        now = utcnow().isoformat()
        updated = []
        for index, item in enumerate(items):
            text = str(item.get("text") or "").strip()
            if not text:
                raise ValidationError("Checklist item text is required")
            if len(text) > CHECKLIST_ITEM_MAX_LENGTH:
                raise ValidationError(f"Checklist item cannot exceed {CHECKLIST_ITEM_MAX_LENGTH} characters")
            completed = bool(item.get("completed", False))
            before = previous[index] if index < len(previous) else {}
            if completed and before.get("completed"):
                completed_by, completed_at = before.get("completed_by"), before.get("completed_at")
            elif completed:
                completed_by, completed_at = actor_id, now
            else:
                completed_by, completed_at = None, None
            updated.append({
                "text": text,
                "completed": completed,
                "completed_by": completed_by,
                "completed_at": completed_at,
            })

        def _shape(checklist):
            return [(item["text"], bool(item.get("completed"))) for item in checklist]

        if _shape(previous) == _shape(updated):
            return None
        self.checklist = updated
        return self.record(
            actor_id,
            HistoryAction.CHECKLIST_UPDATED,
            detail=f"{sum(1 for i in updated if i['completed'])}/{len(updated)} completed",
            old_value=previous,
            new_value=updated,
        )

    def add_attachment(self, actor_id: int, descriptor: dict) -> dict:
        attachment = dict(descriptor, uploaded_by=actor_id, uploaded_at=utcnow().isoformat())
        self.attachments = list(self.attachments or []) + [attachment]
        self.record(
            actor_id,
            HistoryAction.ATTACHMENT_ADDED,
            detail=attachment.get("original_name") or attachment.get("filename", ""),
            new_value=attachment,
        )
        return attachment

    # ------------------------------------------------------------------
    # Comments
    # ------------------------------------------------------------------
    def find_comment(self, comment_id: int) -> TaskComment:
        for comment in self.comments:
            if comment.id == comment_id:
                return comment
        raise NotFoundError("Comment not found")

    def add_comment(self, author_id: int, content: str, mentions=None, attachments=None) -> TaskComment:
        content = _clean_comment(content)
        uploaded_at = utcnow().isoformat()
        comment = TaskComment(
            author_id=author_id,
            content=content,
            mentions=sorted({int(user_id) for user_id in mentions or []}),
            attachments=[
                dict(attachment, uploaded_by=author_id, uploaded_at=uploaded_at)
                for attachment in attachments or []
            ],
            created_at=utcnow(),
        )
        self.comments.append(comment)
        self.record(author_id, HistoryAction.COMMENTED, detail=content[:100])
        return comment

    def update_comment(self, comment_id: int, actor_id: int, content: str, mentions=None) -> TaskComment:
        comment = self.find_comment(comment_id)
        if comment.author_id != actor_id:
            raise AuthorizationError("Not authorized to edit this comment")
        comment.content = _clean_comment(content)
        if mentions is not None:
            comment.mentions = sorted({int(user_id) for user_id in mentions})
        comment.is_edited = True
        comment.edited_at = utcnow()
        self.touch()
        return comment

    def delete_comment(self, comment_id: int, actor_id: int) -> TaskComment:
        comment = self.find_comment(comment_id)
        allowed = {comment.author_id, self.creator_id, self.project.owner_id}
        if actor_id not in allowed:
            raise AuthorizationError("Not authorized to delete this comment")
        self.comments.remove(comment)
        self.touch()
        return comment


def _clean_title(title) -> str:
    title = (title or "").strip()
    if not title:
        raise ValidationError("Task title is required")
    if len(title) > TITLE_MAX_LENGTH:
        raise ValidationError(f"Title cannot exceed {TITLE_MAX_LENGTH} characters")
    return title


def _clean_description(description) -> str:
    description = (description or "").strip()
    if len(description) > DESCRIPTION_MAX_LENGTH:
        raise ValidationError(f"Description cannot exceed {DESCRIPTION_MAX_LENGTH} characters")
    return description


def _clean_comment(content) -> str:
    content = (content or "").strip()
    if not content:
        raise ValidationError("Comment content is required")
    if len(content) > COMMENT_MAX_LENGTH:
        raise ValidationError(f"Comment cannot exceed {COMMENT_MAX_LENGTH} characters")
    return content


def _clean_labels(labels) -> List[str]:
    return [label.strip() for label in labels or [] if label and label.strip()]


def _check_status(project, status: str) -> str:
    if status not in project.columns:
        raise ValidationError(f"Unknown status '{status}'. Allowed values: {', '.join(project.columns)}")
    return status


def _check_priority(priority: str) -> str:
    if priority not in PRIORITIES:
        raise ValidationError(f"Invalid priority. Allowed values: {', '.join(PRIORITIES)}")
    return priority


def _check_assignee(project, assignee_id: Optional[int]) -> Optional[int]:
    if assignee_id is not None and not project.is_member(assignee_id):
        raise ValidationError("Assignee must be a member of the project")
    return assignee_id


def _check_hours(field: str, value) -> float:
    value = float(value or 0)
    if value < 0:
        raise ValidationError(f"{field} cannot be negative")
    return value
