"""Schemas for project invites"""
from datetime import datetime
from typing import Optional

from pydantic import BaseModel

from taskflow.schemas.project import ProjectResponse, ProjectSummary


class InviteCreate(BaseModel):
    role: str = "member"
    expires_in_days: Optional[int] = None
    max_uses: Optional[int] = None
    note: str = ""


class InviteResponse(BaseModel):
    id: int
    code: str
    role: str
    expires_at: datetime
    max_uses: Optional[int]
    used_count: int
    is_active: bool
    note: str
    created_at: datetime
    created_by_id: int
    state: str

    @classmethod
    def from_invite(cls, invite) -> "InviteResponse":
        return cls(
            id=invite.id,
            code=invite.code,
            role=invite.role,
            expires_at=invite.expires_at,
            max_uses=invite.max_uses,
            used_count=invite.used_count,
            is_active=invite.is_active,
            note=invite.note,
            created_at=invite.created_at,
            created_by_id=invite.created_by_id,
            state=invite.state(),
        )


class InviteCreatedResponse(BaseModel):
    invite: InviteResponse
    invite_url: str


class InvitePreview(BaseModel):
    project: ProjectSummary
    invite: InviteResponse
    is_already_member: bool


class PublicInviteInfo(BaseModel):
    type: str
    role: str
    expires_at: Optional[datetime] = None
    max_uses: Optional[int] = None
    used_count: int


class PublicInvitePreview(BaseModel):
    project: ProjectSummary
    is_public: bool
    invite: PublicInviteInfo


class InviteAcceptResponse(BaseModel):
    message: str
    role: str
    project: ProjectResponse
