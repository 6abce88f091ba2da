"""Schemas for projects"""
from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field

from taskflow.schemas.project_member import ProjectMemberResponse
from taskflow.schemas.user import UserSummary


class ProjectSettingsIn(BaseModel):
    template: str = "kanban"
    columns: Optional[List[str]] = None
    is_public: bool = False


class ProjectSettingsUpdate(BaseModel):
    template: Optional[str] = None
    columns: Optional[List[str]] = None
    is_public: Optional[bool] = None


class ProjectSettings(BaseModel):
    template: str
    columns: List[str]
    is_public: bool
    public_invite_code: Optional[str] = None


class ProjectCreate(BaseModel):
    name: str
    description: str = ""
    tags: List[str] = Field(default_factory=list)
    settings: ProjectSettingsIn = Field(default_factory=ProjectSettingsIn)


class ProjectUpdate(BaseModel):
    name: Optional[str] = None
    description: Optional[str] = None
    tags: Optional[List[str]] = None
    status: Optional[str] = None
    settings: Optional[ProjectSettingsUpdate] = None


class ProjectSummary(BaseModel):
    id: int
    name: str
    description: str
    owner: UserSummary

    class Config:
        from_attributes = True


class ProjectResponse(BaseModel):
    id: int
    name: str
    description: str
    status: str
    owner_id: int
    owner: UserSummary
    settings: ProjectSettings
    tags: List[str]
    members: List[ProjectMemberResponse]
    version: int
    created_at: datetime
    updated_at: datetime

    @classmethod
    def from_project(cls, project) -> "ProjectResponse":
        return cls(
            id=project.id,
            name=project.name,
            description=project.description,
            status=project.status,
            owner_id=project.owner_id,
            owner=UserSummary.model_validate(project.owner),
            settings=ProjectSettings(
                template=project.template,
                columns=list(project.columns),
                is_public=project.is_public,
                public_invite_code=project.public_invite_code,
            ),
            tags=list(project.tags or []),
            members=[ProjectMemberResponse.model_validate(member) for member in project.members],
            version=project.version,
            created_at=project.created_at,
            updated_at=project.updated_at,
        )
