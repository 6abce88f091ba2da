"""
Project Invite Model
"""
from datetime import datetime
from typing import Optional

from sqlalchemy import Column, Integer, String, Boolean, DateTime, ForeignKey, Text
from sqlalchemy.orm import relationship

from taskflow.database import Base
from taskflow.permissions import ProjectRole
from taskflow.utils.timeutils import utcnow


class InviteState:
    PENDING = "pending"
    EXHAUSTED = "exhausted"
    EXPIRED = "expired"
    DEACTIVATED = "deactivated"


class ProjectInvite(Base):
    __tablename__ = "project_invites"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    project_id = Column(Integer, ForeignKey("projects.id", ondelete="CASCADE"), nullable=False)
    code = Column(String(64), unique=True, nullable=False, index=True)
    created_by_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    role = Column(String(20), default=ProjectRole.MEMBER.value, nullable=False)
    expires_at = Column(DateTime, nullable=False)
    max_uses = Column(Integer, nullable=True)
    used_count = Column(Integer, default=0, nullable=False)
    is_active = Column(Boolean, default=True, nullable=False)
    note = Column(Text, default="", nullable=False)
    created_at = Column(DateTime, default=utcnow, nullable=False)

    # Relationships
    project = relationship("Project", back_populates="invites")
    created_by = relationship("User", foreign_keys=[created_by_id])

    def within_usage_limit(self) -> bool:
        return self.max_uses is None or (self.used_count or 0) < self.max_uses

    def is_expired(self, now: Optional[datetime] = None) -> bool:
        return (now or utcnow()) >= self.expires_at

    def is_valid(self, now: Optional[datetime] = None) -> bool:
        return bool(self.is_active) and not self.is_expired(now) and self.within_usage_limit()

    def state(self, now: Optional[datetime] = None) -> str:
        """Lifecycle state; expiry is computed on read, never written."""
        if not self.within_usage_limit():
            return InviteState.EXHAUSTED
        if not self.is_active:
            return InviteState.DEACTIVATED
        if self.is_expired(now):
            return InviteState.EXPIRED
        return InviteState.PENDING

    def consume(self) -> None:
        self.used_count = (self.used_count or 0) + 1
        if not self.within_usage_limit():
            self.is_active = False
