"""Loaders and access checks shared by the routers."""
from fastapi import HTTPException, status
from sqlalchemy.orm import Session, selectinload

from taskflow.models import Project, ProjectMember, Task, User
from taskflow.permissions import ProjectRole


def project_query(db: Session):
    return db.query(Project).options(
        selectinload(Project.owner),
        selectinload(Project.members).selectinload(ProjectMember.user),
    )


def load_project(db: Session, project_id: int) -> Project:
    project = project_query(db).filter(Project.id == project_id).first()
    if not project:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Project not found")
    return project


def ensure_project_view(project: Project, current_user: User) -> None:
    if not project.can_view(current_user.id):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="You don't have access to this project",
        )


def ensure_project_member(project: Project, current_user: User) -> ProjectMember:
    member = project.member_for(current_user.id)
    if member is None:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="You are not a member of this project",
        )
    return member


def ensure_project_manager(project: Project, current_user: User) -> ProjectMember:
    """Owners and admins may change project settings."""
    member = project.member_for(current_user.id)
    if member is None or member.role not in (ProjectRole.OWNER.value, ProjectRole.ADMIN.value):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Only the project owner or an admin can do this",
        )
    return member


def load_task(db: Session, task_id: int) -> Task:
    task = db.query(Task).options(
        selectinload(Task.project).selectinload(Project.members),
        selectinload(Task.comments),
    ).filter(Task.id == task_id).first()
    if not task:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Task not found")
    return task


def ensure_task_access(task: Task, current_user: User) -> None:
    if not task.project.can_view(current_user.id):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="You don't have access to this task",
        )
