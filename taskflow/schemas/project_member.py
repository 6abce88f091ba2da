"""Schemas for project members"""
from datetime import datetime
from typing import Optional

from pydantic import BaseModel

from taskflow.schemas.user import UserSummary


class MemberPermissions(BaseModel):
    can_edit: bool
    can_delete: bool
    can_invite: bool


class ProjectMemberCreate(BaseModel):
    user_id: int
    role: str = "member"


class ProjectMemberUpdate(BaseModel):
    role: str


class ProjectMemberResponse(BaseModel):
    id: int
    user_id: int
    role: str
    permissions: MemberPermissions
    joined_at: datetime
    invited_by_id: Optional[int]
    user: UserSummary

    class Config:
        from_attributes = True
