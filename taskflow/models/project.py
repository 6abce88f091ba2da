"""
Project Model

A project owns its members and invites: every membership or invite change
goes through the methods below and touches the project row, so the
``version`` column catches concurrent read-modify-write cycles.
"""
from datetime import datetime, timedelta
from typing import Callable, List, Optional

from sqlalchemy import Column, Integer, String, Text, Boolean, DateTime, ForeignKey, JSON
from sqlalchemy.orm import relationship
import enum

from taskflow.config import settings
from taskflow.database import Base
from taskflow.errors import (
    AlreadyMemberError,
    AuthorizationError,
    NotFoundError,
    ValidationError,
)
from taskflow.models.invitation import ProjectInvite
from taskflow.models.project_member import ProjectMember
from taskflow.permissions import ASSIGNABLE_ROLES, ProjectRole
from taskflow.utils.codes import generate_code, generate_unique_code
from taskflow.utils.timeutils import utcnow


class ProjectStatus(str, enum.Enum):
    ACTIVE = "active"
    ARCHIVED = "archived"
    COMPLETED = "completed"


class ProjectTemplate(str, enum.Enum):
    KANBAN = "kanban"
    SCRUM = "scrum"
    CUSTOM = "custom"


TEMPLATE_COLUMNS = {
    ProjectTemplate.KANBAN.value: ["To Do", "In Progress", "Done"],
    ProjectTemplate.SCRUM.value: ["Backlog", "Sprint Planning", "In Progress", "Review", "Done"],
}

NAME_MAX_LENGTH = 100
DESCRIPTION_MAX_LENGTH = 500


def clean_columns(columns) -> List[str]:
    cleaned = [str(column).strip() for column in columns or [] if str(column).strip()]
    if len(set(cleaned)) != len(cleaned):
        raise ValidationError("Column names must be unique")
    return cleaned


class Project(Base):
    __tablename__ = "projects"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    name = Column(String(NAME_MAX_LENGTH), nullable=False)
    description = Column(Text, default="", nullable=False)
    status = Column(String(20), default=ProjectStatus.ACTIVE.value, nullable=False)
    owner_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    template = Column(String(20), default=ProjectTemplate.KANBAN.value, nullable=False)
    columns = Column(JSON, nullable=False)
    is_public = Column(Boolean, default=False, nullable=False)
    public_invite_code = Column(String(32), unique=True, nullable=True)
    tags = Column(JSON, default=list, nullable=False)
    version = Column(Integer, nullable=False)
    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow, nullable=False)

    # Relationships
    owner = relationship("User", back_populates="owned_projects", foreign_keys=[owner_id])
    members = relationship(
        "ProjectMember",
        back_populates="project",
        cascade="all, delete-orphan",
        order_by="ProjectMember.id",
    )
    invites = relationship(
        "ProjectInvite",
        back_populates="project",
        cascade="all, delete-orphan",
        order_by="ProjectInvite.id",
    )
    tasks = relationship("Task", back_populates="project", cascade="all, delete-orphan")

    __mapper_args__ = {"version_id_col": version}

    @classmethod
    def create(
        cls,
        owner_id: int,
        name: str,
        description: str = "",
        template: str = ProjectTemplate.KANBAN.value,
        columns: Optional[List[str]] = None,
        is_public: bool = False,
        tags: Optional[List[str]] = None,
    ) -> "Project":
        name = (name or "").strip()
        if not name:
            raise ValidationError("Project name is required")
        if len(name) > NAME_MAX_LENGTH:
            raise ValidationError(f"Project name cannot exceed {NAME_MAX_LENGTH} characters")
        description = (description or "").strip()
        if len(description) > DESCRIPTION_MAX_LENGTH:
            raise ValidationError(f"Description cannot exceed {DESCRIPTION_MAX_LENGTH} characters")

        board_columns = clean_columns(columns) if columns else list(TEMPLATE_COLUMNS.get(template, []))
        if not board_columns:
            raise ValidationError("A custom project needs at least one column")

        project = cls(
            name=name,
            description=description,
            owner_id=owner_id,
            template=template,
            columns=board_columns,
            is_public=bool(is_public),
            tags=[tag.strip() for tag in tags or [] if tag and tag.strip()],
            status=ProjectStatus.ACTIVE.value,
        )
        owner = ProjectMember(user_id=owner_id)
        owner.assign_role(ProjectRole.OWNER.value)
        project.members.append(owner)
        return project

    def touch(self) -> None:
        self.updated_at = utcnow()

    # ------------------------------------------------------------------
    # Membership
    # ------------------------------------------------------------------
    def member_for(self, user_id: int) -> Optional[ProjectMember]:
        for member in self.members:
            if member.user_id == user_id:
                return member
        return None

    def is_member(self, user_id: int) -> bool:
        return self.member_for(user_id) is not None

    def can_view(self, user_id: int) -> bool:
        return self.is_public or self.is_member(user_id)

    def can(self, user_id: int, capability: str) -> bool:
        member = self.member_for(user_id)
        return bool(member and getattr(member, capability))

    def require(self, user_id: int, capability: str, message: str = None) -> ProjectMember:
        member = self.member_for(user_id)
        if member is None or not getattr(member, capability):
            raise AuthorizationError(message or "You don't have permission for this action")
        return member

    @property
    def owner_count(self) -> int:
        return sum(1 for member in self.members if member.is_owner)

    def add_member(self, user_id: int, role: str = ProjectRole.MEMBER.value, invited_by_id: int = None) -> ProjectMember:
        if role not in ASSIGNABLE_ROLES:
            raise ValidationError(f"Invalid role. Allowed values: {', '.join(ASSIGNABLE_ROLES)}")
        if self.is_member(user_id):
            raise AlreadyMemberError()

        member = ProjectMember(user_id=user_id, invited_by_id=invited_by_id, joined_at=utcnow())
        member.assign_role(role)
        self.members.append(member)
        self.touch()
        return member

    def remove_member(self, user_id: int) -> ProjectMember:
        member = self.member_for(user_id)
        if member is None:
            raise NotFoundError("Member not found")
        if member.is_owner or user_id == self.owner_id:
            raise ValidationError("Cannot remove the project owner")

        self.members.remove(member)
        self.touch()
        return member

    def change_member_role(self, user_id: int, role: str) -> ProjectMember:
        member = self.member_for(user_id)
        if member is None:
            raise NotFoundError("Member not found")
        if member.is_owner:
            raise ValidationError("The project owner's role cannot be changed")
        if role not in ASSIGNABLE_ROLES:
            raise ValidationError(f"Invalid role. Allowed values: {', '.join(ASSIGNABLE_ROLES)}")

        if member.role != role:
            member.assign_role(role)
            self.touch()
        return member

    # ------------------------------------------------------------------
    # Invites
    # ------------------------------------------------------------------
    def find_invite(self, code: str) -> Optional[ProjectInvite]:
        for invite in self.invites:
            if invite.code == code:
                return invite
        return None

    def create_invite(
        self,
        created_by_id: int,
        role: str = ProjectRole.MEMBER.value,
        expires_in_days: int = None,
        max_uses: Optional[int] = None,
        note: str = "",
        now: Optional[datetime] = None,
        code_factory: Callable[[int], str] = generate_code,
    ) -> ProjectInvite:
        self.require(created_by_id, "can_invite", "You don't have permission to create invites")
        if role not in ASSIGNABLE_ROLES:
            raise ValidationError(f"Invalid role. Allowed values: {', '.join(ASSIGNABLE_ROLES)}")
        if expires_in_days is None:
            expires_in_days = settings.DEFAULT_INVITE_EXPIRY_DAYS
        if expires_in_days < 1:
            raise ValidationError("Invites must be valid for at least one day")
        if max_uses is not None and max_uses < 1:
            raise ValidationError("max_uses must be a positive number")

        code = generate_unique_code(
            (invite.code for invite in self.invites),
            length=settings.INVITE_CODE_LENGTH,
            max_attempts=settings.INVITE_CODE_MAX_ATTEMPTS,
            code_factory=code_factory,
        )
        created_at = now or utcnow()
        invite = ProjectInvite(
            code=code,
            created_by_id=created_by_id,
            role=role,
            expires_at=created_at + timedelta(days=expires_in_days),
            max_uses=max_uses,
            used_count=0,
            is_active=True,
            note=(note or "").strip(),
            created_at=created_at,
        )
        self.invites.append(invite)
        self.touch()
        return invite

    def accept_invite(self, code: str, user_id: int, now: Optional[datetime] = None) -> ProjectMember:
        invite = self.find_invite(code)
        if invite is None or not invite.is_valid(now):
            raise NotFoundError("Invite not found or no longer valid")
        if self.is_member(user_id):
            raise AlreadyMemberError("You are already a member of this project")

        member = self.add_member(user_id, invite.role, invited_by_id=invite.created_by_id)
        invite.consume()
        return member

    def deactivate_invite(self, code: str, actor_id: int) -> ProjectInvite:
        self.require(actor_id, "can_invite", "You don't have permission to manage invites")
        invite = self.find_invite(code)
        if invite is None:
            raise NotFoundError("Invite not found")

        invite.is_active = False
        self.touch()
        return invite

    def join_public(self, code: str, user_id: int) -> ProjectMember:
        if not self.is_public or not code or self.public_invite_code != code:
            raise NotFoundError("Invite not found or no longer valid")
        if self.is_member(user_id):
            raise AlreadyMemberError("You are already a member of this project")
        return self.add_member(user_id, ProjectRole.MEMBER.value)

    # ------------------------------------------------------------------
    # Settings
    # ------------------------------------------------------------------
    def apply_changes(self, changes: dict) -> bool:
        """Apply a partial update; returns True when anything changed."""
        changed = False
        if "name" in changes:
            name = (changes["name"] or "").strip()
            if not name:
                raise ValidationError("Project name is required")
            if len(name) > NAME_MAX_LENGTH:
                raise ValidationError(f"Project name cannot exceed {NAME_MAX_LENGTH} characters")
            changes["name"] = name
        if "description" in changes:
            description = (changes["description"] or "").strip()
            if len(description) > DESCRIPTION_MAX_LENGTH:
                raise ValidationError(f"Description cannot exceed {DESCRIPTION_MAX_LENGTH} characters")
            changes["description"] = description
        if "columns" in changes:
            columns = clean_columns(changes["columns"])
            if not columns:
                raise ValidationError("A project needs at least one column")
            changes["columns"] = columns
        if "status" in changes and changes["status"] not in {s.value for s in ProjectStatus}:
            raise ValidationError("Invalid project status")

        for field, value in changes.items():
            if getattr(self, field) != value:
                setattr(self, field, value)
                changed = True

        if changed:
            self.touch()
        return changed
