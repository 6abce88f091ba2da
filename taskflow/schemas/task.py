"""Schemas for tasks and their history"""
from datetime import datetime
from typing import Any, List, Optional

from pydantic import BaseModel, Field

from taskflow.schemas.comment import Attachment, TaskCommentResponse


class ChecklistItemIn(BaseModel):
    text: str
    completed: bool = False


class ChecklistItem(ChecklistItemIn):
    completed_by: Optional[int] = None
    completed_at: Optional[datetime] = None


class TaskCreate(BaseModel):
    project_id: int
    title: str
    description: str = ""
    status: Optional[str] = None
    priority: str = "medium"
    assignee_id: Optional[int] = None
    due_date: Optional[datetime] = None
    labels: List[str] = Field(default_factory=list)
    estimated_hours: float = 0
    actual_hours: float = 0


class TaskUpdate(BaseModel):
    title: Optional[str] = None
    description: Optional[str] = None
    status: Optional[str] = None
    priority: Optional[str] = None
    assignee_id: Optional[int] = None
    due_date: Optional[datetime] = None
    labels: Optional[List[str]] = None
    estimated_hours: Optional[float] = None
    actual_hours: Optional[float] = None
    position: Optional[int] = None
    checklist: Optional[List[ChecklistItemIn]] = None


class TaskStatusUpdate(BaseModel):
    status: str
    position: Optional[int] = None


class ChecklistUpdate(BaseModel):
    checklist: List[ChecklistItemIn]


class HistoryEntryResponse(BaseModel):
    id: int
    actor_id: int
    action: str
    detail: str
    old_value: Optional[Any] = None
    new_value: Optional[Any] = None
    created_at: datetime

    class Config:
        from_attributes = True


class TaskResponse(BaseModel):
    id: int
    project_id: int
    creator_id: int
    assignee_id: Optional[int]
    title: str
    description: str
    status: str
    priority: str
    labels: List[str]
    due_date: Optional[datetime]
    estimated_hours: float
    actual_hours: float
    checklist: List[ChecklistItem]
    attachments: List[Attachment]
    column_index: int
    position: int
    version: int
    created_at: datetime
    updated_at: datetime
    comments: List[TaskCommentResponse]

    class Config:
        from_attributes = True
