"""TaskFlow Database Models"""
from taskflow.config import settings
from taskflow.models.user import User
from taskflow.models.project import Project
from taskflow.models.project_member import ProjectMember
from taskflow.models.invitation import ProjectInvite
from taskflow.models.task import Task
from taskflow.models.task_comment import TaskComment
from taskflow.models.task_history import TaskHistoryEntry
from taskflow.utils.codes import register_public_code_listener

__all__ = [
    "User",
    "Project",
    "ProjectMember",
    "ProjectInvite",
    "Task",
    "TaskComment",
    "TaskHistoryEntry",
]


register_public_code_listener(Project, settings.PUBLIC_INVITE_CODE_LENGTH)
