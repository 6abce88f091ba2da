"""Schemas for task comments"""
from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field

from taskflow.schemas.user import UserSummary


class AttachmentIn(BaseModel):
    filename: str = Field(..., min_length=1)
    original_name: str = ""
    size: int = Field(0, ge=0)
    url: str = ""


class Attachment(AttachmentIn):
    uploaded_by: int
    uploaded_at: datetime


class TaskCommentCreate(BaseModel):
    content: str
    mentions: List[int] = Field(default_factory=list)
    attachments: List[AttachmentIn] = Field(default_factory=list)


class TaskCommentUpdate(BaseModel):
    content: str
    mentions: Optional[List[int]] = None


class TaskCommentResponse(BaseModel):
    id: int
    task_id: int
    content: str
    mentions: List[int]
    attachments: List[Attachment]
    is_edited: bool
    edited_at: Optional[datetime]
    created_at: datetime
    author: UserSummary

    class Config:
        from_attributes = True
