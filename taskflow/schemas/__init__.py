"""
Pydantic schemas for request/response validation
"""
from taskflow.schemas.user import UserCreate, UserLogin, UserResponse, UserSummary, UserUpdate, Token
from taskflow.schemas.project_member import (
    MemberPermissions,
    ProjectMemberCreate,
    ProjectMemberResponse,
    ProjectMemberUpdate,
)
from taskflow.schemas.project import (
    ProjectCreate,
    ProjectResponse,
    ProjectSettings,
    ProjectSummary,
    ProjectUpdate,
)
from taskflow.schemas.invitation import (
    InviteAcceptResponse,
    InviteCreate,
    InviteCreatedResponse,
    InvitePreview,
    InviteResponse,
    PublicInviteInfo,
    PublicInvitePreview,
)
from taskflow.schemas.comment import AttachmentIn, TaskCommentCreate, TaskCommentResponse, TaskCommentUpdate
from taskflow.schemas.task import (
    ChecklistUpdate,
    HistoryEntryResponse,
    TaskCreate,
    TaskResponse,
    TaskStatusUpdate,
    TaskUpdate,
)
from taskflow.schemas.stats import ActivityItem, ProjectStats, UserStats

__all__ = [
    "UserCreate",
    "UserLogin",
    "UserResponse",
    "UserSummary",
    "UserUpdate",
    "Token",
    "MemberPermissions",
    "ProjectMemberCreate",
    "ProjectMemberResponse",
    "ProjectMemberUpdate",
    "ProjectCreate",
    "ProjectResponse",
    "ProjectSettings",
    "ProjectSummary",
    "ProjectUpdate",
    "InviteAcceptResponse",
    "InviteCreate",
    "InviteCreatedResponse",
    "InvitePreview",
    "InviteResponse",
    "PublicInviteInfo",
    "PublicInvitePreview",
    "AttachmentIn",
    "TaskCommentCreate",
    "TaskCommentResponse",
    "TaskCommentUpdate",
    "ChecklistUpdate",
    "HistoryEntryResponse",
    "TaskCreate",
    "TaskResponse",
    "TaskStatusUpdate",
    "TaskUpdate",
    "ActivityItem",
    "ProjectStats",
    "UserStats",
]
