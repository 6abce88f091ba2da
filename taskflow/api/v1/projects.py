"""Project and membership endpoints"""
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session

from taskflow.api.v1.access import (
    ensure_project_manager,
    ensure_project_view,
    load_project,
    project_query,
)
from taskflow.database import get_db
from taskflow.dependencies import get_current_user, get_notifier, get_origin_sid
from taskflow.logger import get_logger
from taskflow.models import Project, ProjectMember, User
from taskflow.models.project import TEMPLATE_COLUMNS, ProjectStatus, ProjectTemplate
from taskflow.realtime import RealtimeNotifier
from taskflow.schemas import (
    ProjectCreate,
    ProjectMemberCreate,
    ProjectMemberResponse,
    ProjectMemberUpdate,
    ProjectResponse,
    ProjectUpdate,
)

router = APIRouter()
log = get_logger("projects")

TEMPLATES = tuple(t.value for t in ProjectTemplate)


def project_payload(project: Project) -> dict:
    return ProjectResponse.from_project(project).model_dump(mode="json")


def member_payload(member: ProjectMember) -> dict:
    return ProjectMemberResponse.model_validate(member).model_dump(mode="json")


def _check_template(template: Optional[str]) -> None:
    if template is not None and template not in TEMPLATES:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Invalid template. Allowed values: {', '.join(TEMPLATES)}",
        )


# ----------------------------------------------------------------------
# Projects
# ----------------------------------------------------------------------
@router.post("", response_model=ProjectResponse, status_code=status.HTTP_201_CREATED)
async def create_project(
    project_in: ProjectCreate,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    _check_template(project_in.settings.template)
    project = Project.create(
        owner_id=current_user.id,
        name=project_in.name,
        description=project_in.description,
        template=project_in.settings.template,
        columns=project_in.settings.columns,
        is_public=project_in.settings.is_public,
        tags=project_in.tags,
    )
    db.add(project)
    db.commit()
    log.info("Project created", extra={"project_id": project.id, "user_id": current_user.id})
    return ProjectResponse.from_project(load_project(db, project.id))


@router.get("", response_model=List[ProjectResponse])
async def list_projects(
    include_archived: bool = False,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Projects the current user is a member of, most recently updated first."""
    query = project_query(db).join(ProjectMember, ProjectMember.project_id == Project.id).filter(
        ProjectMember.user_id == current_user.id
    )
    if not include_archived:
        query = query.filter(Project.status != ProjectStatus.ARCHIVED.value)
    projects = query.order_by(Project.updated_at.desc(), Project.id.desc()).all()
    return [ProjectResponse.from_project(project) for project in projects]


@router.get("/{project_id}", response_model=ProjectResponse)
async def get_project(
    project_id: int,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    project = load_project(db, project_id)
    ensure_project_view(project, current_user)
    return ProjectResponse.from_project(project)


@router.put("/{project_id}", response_model=ProjectResponse)
async def update_project(
    project_id: int,
    project_in: ProjectUpdate,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    notifier: RealtimeNotifier = Depends(get_notifier),
    origin_sid: Optional[str] = Depends(get_origin_sid),
):
    project = load_project(db, project_id)
    ensure_project_manager(project, current_user)

    changes = project_in.model_dump(exclude_unset=True)
    settings_in = changes.pop("settings", None) or {}
    for key in ("name", "description", "tags", "status"):
        if key in changes and changes[key] is None:
            del changes[key]
    _check_template(settings_in.get("template"))
    for key, value in settings_in.items():
        if value is not None:
            changes[key] = value
    if "template" in changes and "columns" not in changes and changes["template"] in TEMPLATE_COLUMNS:
        changes["columns"] = list(TEMPLATE_COLUMNS[changes["template"]])

    if project.apply_changes(changes):
        db.commit()
        project = load_project(db, project_id)
        await notifier.project_updated(project_payload(project), current_user.id, origin_sid)
    return ProjectResponse.from_project(project)


@router.patch("/{project_id}/archive", response_model=ProjectResponse)
async def archive_project(
    project_id: int,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    notifier: RealtimeNotifier = Depends(get_notifier),
    origin_sid: Optional[str] = Depends(get_origin_sid),
):
    project = load_project(db, project_id)
    ensure_project_manager(project, current_user)

    if project.apply_changes({"status": ProjectStatus.ARCHIVED.value}):
        db.commit()
        project = load_project(db, project_id)
        await notifier.project_updated(project_payload(project), current_user.id, origin_sid)
    return ProjectResponse.from_project(project)


@router.delete("/{project_id}")
async def delete_project(
    project_id: int,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    notifier: RealtimeNotifier = Depends(get_notifier),
    origin_sid: Optional[str] = Depends(get_origin_sid),
):
    project = load_project(db, project_id)
    if project.owner_id != current_user.id:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Only the project owner can delete the project",
        )

    db.delete(project)
    db.commit()
    log.info("Project deleted", extra={"project_id": project_id, "user_id": current_user.id})
    await notifier.project_deleted(project_id, current_user.id, origin_sid)
    return {"message": "Project deleted"}


# ----------------------------------------------------------------------
# Members
# ----------------------------------------------------------------------
@router.post(
    "/{project_id}/members",
    response_model=ProjectMemberResponse,
    status_code=status.HTTP_201_CREATED,
)
async def add_member(
    project_id: int,
    member_in: ProjectMemberCreate,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    notifier: RealtimeNotifier = Depends(get_notifier),
    origin_sid: Optional[str] = Depends(get_origin_sid),
):
    project = load_project(db, project_id)
    project.require(current_user.id, "can_invite", "You don't have permission to add members")

    user = db.query(User).filter(User.id == member_in.user_id).first()
    if not user:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found")

    member = project.add_member(user.id, member_in.role, invited_by_id=current_user.id)
    db.commit()
    log.info("Member added", extra={"project_id": project_id, "user_id": user.id})

    payload = member_payload(member)
    await notifier.member_joined(project_id, payload, current_user.id, origin_sid)
    return payload


@router.patch("/{project_id}/members/{user_id}", response_model=ProjectMemberResponse)
async def change_member_role(
    project_id: int,
    user_id: int,
    member_in: ProjectMemberUpdate,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    notifier: RealtimeNotifier = Depends(get_notifier),
    origin_sid: Optional[str] = Depends(get_origin_sid),
):
    project = load_project(db, project_id)
    project.require(current_user.id, "can_invite", "You don't have permission to change roles")

    member = project.change_member_role(user_id, member_in.role)
    db.commit()

    payload = member_payload(member)
    await notifier.project_updated(project_payload(load_project(db, project_id)), current_user.id, origin_sid)
    return payload


@router.delete("/{project_id}/members/{user_id}")
async def remove_member(
    project_id: int,
    user_id: int,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    notifier: RealtimeNotifier = Depends(get_notifier),
    origin_sid: Optional[str] = Depends(get_origin_sid),
):
    """Remove a member; any member may remove themselves to leave the project."""
    project = load_project(db, project_id)
    if user_id != current_user.id:
        project.require(current_user.id, "can_invite", "You don't have permission to remove members")

    project.remove_member(user_id)
    db.commit()
    log.info("Member removed", extra={"project_id": project_id, "user_id": user_id})

    await notifier.member_left(project_id, user_id, current_user.id, origin_sid)
    return {"message": "Member removed"}
