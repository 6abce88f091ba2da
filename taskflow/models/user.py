"""
User Model
"""
from sqlalchemy import Column, Integer, String, Text, DateTime, JSON
from sqlalchemy.orm import relationship
import enum

from taskflow.database import Base
from taskflow.utils.timeutils import utcnow


class UserStatus(str, enum.Enum):
    ACTIVE = "active"
    INACTIVE = "inactive"
    BANNED = "banned"


DEFAULT_NOTIFICATION_PREFERENCES = {
    "email_notifications": True,
    "task_assignments": True,
    "mentions": True,
    "deadline_reminders": True,
    "project_updates": False,
}


def _default_preferences():
    return dict(DEFAULT_NOTIFICATION_PREFERENCES)


class User(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    name = Column(String(50), nullable=False)
    email = Column(String(255), unique=True, index=True, nullable=False)
    password_hash = Column(String(255), nullable=False)
    bio = Column(Text, default="", nullable=False)
    skills = Column(JSON, default=list, nullable=False)
    avatar = Column(String(255), default="default-avatar.png", nullable=False)
    notification_preferences = Column(JSON, default=_default_preferences, nullable=False)
    status = Column(String(20), default=UserStatus.ACTIVE.value, nullable=False)
    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow, nullable=False)
    last_login_at = Column(DateTime, nullable=True)

    # Relationships
    owned_projects = relationship("Project", back_populates="owner", foreign_keys="Project.owner_id")
    project_memberships = relationship(
        "ProjectMember",
        back_populates="user",
        foreign_keys="ProjectMember.user_id",
    )

    def wants_notification(self, kind: str) -> bool:
        prefs = {**DEFAULT_NOTIFICATION_PREFERENCES, **(self.notification_preferences or {})}
        return bool(prefs.get(kind, False))
