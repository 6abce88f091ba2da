"""
Project Member Model
"""
from sqlalchemy import Column, Integer, Boolean, DateTime, ForeignKey, UniqueConstraint, String
from sqlalchemy.orm import relationship

from taskflow.database import Base
from taskflow.permissions import ProjectRole, permissions_for
from taskflow.utils.timeutils import utcnow


class ProjectMember(Base):
    __tablename__ = "project_members"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    project_id = Column(Integer, ForeignKey("projects.id", ondelete="CASCADE"), nullable=False)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    role = Column(String(20), default=ProjectRole.MEMBER.value, nullable=False)
    # Capability snapshot taken from the role table when the role is assigned
    can_edit = Column(Boolean, default=True, nullable=False)
    can_delete = Column(Boolean, default=False, nullable=False)
    can_invite = Column(Boolean, default=False, nullable=False)
    invited_by_id = Column(Integer, ForeignKey("users.id"), nullable=True)
    joined_at = Column(DateTime, default=utcnow, nullable=False)

    # Relationships
    project = relationship("Project", back_populates="members")
    user = relationship("User", back_populates="project_memberships", foreign_keys=[user_id])
    invited_by = relationship("User", foreign_keys=[invited_by_id])

    __table_args__ = (
        UniqueConstraint('project_id', 'user_id', name='unique_project_member'),
    )

    def assign_role(self, role: str) -> None:
        self.role = role
        for capability, allowed in permissions_for(role).items():
            setattr(self, capability, allowed)

    @property
    def permissions(self):
        return {
            "can_edit": self.can_edit,
            "can_delete": self.can_delete,
            "can_invite": self.can_invite,
        }

    @property
    def is_owner(self) -> bool:
        return self.role == ProjectRole.OWNER.value
