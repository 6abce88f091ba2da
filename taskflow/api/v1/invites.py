"""Invite links: private invites and the public project code"""
from typing import List, Optional, Tuple

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session

from taskflow.api.v1.access import load_project
from taskflow.api.v1.projects import member_payload
from taskflow.config import settings
from taskflow.database import get_db
from taskflow.dependencies import get_current_user, get_notifier, get_origin_sid
from taskflow.logger import get_logger
from taskflow.models import Project, ProjectInvite, ProjectMember, User
from taskflow.models.invitation import InviteState
from taskflow.permissions import ProjectRole
from taskflow.realtime import RealtimeNotifier
from taskflow.schemas import (
    InviteAcceptResponse,
    InviteCreate,
    InviteCreatedResponse,
    InvitePreview,
    InviteResponse,
    ProjectResponse,
    ProjectSummary,
    PublicInviteInfo,
    PublicInvitePreview,
)

router = APIRouter()
log = get_logger("invites")


def invite_url(code: str) -> str:
    return f"{settings.CLIENT_URL.rstrip('/')}/invite/{code}"


def _find_invite(db: Session, code: str) -> Optional[ProjectInvite]:
    return db.query(ProjectInvite).filter(ProjectInvite.code == code).first()


def _find_public_project(db: Session, code: str) -> Optional[Project]:
    return db.query(Project).filter(
        Project.public_invite_code == code,
        Project.is_public.is_(True),
    ).first()


def _check_invite_usable(invite: Optional[ProjectInvite]) -> ProjectInvite:
    """Expired and exhausted invites get their own message; anything else unknown is a 404."""
    if invite is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Invite not found or no longer valid")
    state = invite.state()
    if state == InviteState.EXHAUSTED:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="This invite has reached its usage limit")
    if state == InviteState.EXPIRED:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="This invite has expired")
    if state == InviteState.DEACTIVATED:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Invite not found or no longer valid")
    return invite


async def _joined(
    db: Session,
    project_id: int,
    member: ProjectMember,
    current_user: User,
    notifier: RealtimeNotifier,
    origin_sid: Optional[str],
) -> InviteAcceptResponse:
    log.info(
        "User joined project",
        extra={"project_id": project_id, "user_id": current_user.id},
    )
    payload = member_payload(member)
    await notifier.member_joined(project_id, payload, current_user.id, origin_sid)
    return InviteAcceptResponse(
        message="Successfully joined the project",
        role=payload["role"],
        project=ProjectResponse.from_project(load_project(db, project_id)),
    )


# ----------------------------------------------------------------------
# Managing a project's invites
# ----------------------------------------------------------------------
@router.post(
    "/projects/{project_id}/invites",
    response_model=InviteCreatedResponse,
    status_code=status.HTTP_201_CREATED,
)
async def create_invite(
    project_id: int,
    invite_in: InviteCreate,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    project = load_project(db, project_id)
    invite = project.create_invite(
        created_by_id=current_user.id,
        role=invite_in.role,
        expires_in_days=invite_in.expires_in_days,
        max_uses=invite_in.max_uses,
        note=invite_in.note,
    )
    db.commit()
    log.info("Invite created", extra={"project_id": project_id, "user_id": current_user.id})
    return InviteCreatedResponse(invite=InviteResponse.from_invite(invite), invite_url=invite_url(invite.code))


@router.get("/projects/{project_id}/invites", response_model=List[InviteResponse])
async def list_invites(
    project_id: int,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    project = load_project(db, project_id)
    project.require(current_user.id, "can_invite", "You don't have permission to view invites")
    return [InviteResponse.from_invite(invite) for invite in project.invites]


@router.delete("/projects/{project_id}/invites/{code}", response_model=InviteResponse)
async def deactivate_invite(
    project_id: int,
    code: str,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    project = load_project(db, project_id)
    invite = project.deactivate_invite(code, current_user.id)
    db.commit()
    return InviteResponse.from_invite(invite)


# ----------------------------------------------------------------------
# Private invite codes
# ----------------------------------------------------------------------
@router.get("/invites/{code}", response_model=InvitePreview)
async def preview_invite(
    code: str,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    invite = _check_invite_usable(_find_invite(db, code))
    project = invite.project
    return InvitePreview(
        project=ProjectSummary.model_validate(project),
        invite=InviteResponse.from_invite(invite),
        is_already_member=project.is_member(current_user.id),
    )


@router.post("/invites/{code}/accept", response_model=InviteAcceptResponse)
async def accept_invite(
    code: str,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    notifier: RealtimeNotifier = Depends(get_notifier),
    origin_sid: Optional[str] = Depends(get_origin_sid),
):
    invite = _find_invite(db, code)
    if invite is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Invite not found or no longer valid")

    project = load_project(db, invite.project_id)
    member = project.accept_invite(code, current_user.id)
    db.commit()
    return await _joined(db, project.id, member, current_user, notifier, origin_sid)


# ----------------------------------------------------------------------
# Shareable links: private invite or public project code
# ----------------------------------------------------------------------
def _resolve_link(db: Session, code: str) -> Tuple[Project, Optional[ProjectInvite]]:
    invite = _find_invite(db, code)
    if invite is not None:
        _check_invite_usable(invite)
        return invite.project, invite

    project = _find_public_project(db, code)
    if project is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Invite not found or no longer valid")
    return project, None


@router.get("/public-invites/{code}", response_model=PublicInvitePreview)
async def preview_public_invite(code: str, db: Session = Depends(get_db)):
    """Unauthenticated preview used by the join page."""
    project, invite = _resolve_link(db, code)
    if invite is not None:
        info = PublicInviteInfo(
            type="invite",
            role=invite.role,
            expires_at=invite.expires_at,
            max_uses=invite.max_uses,
            used_count=invite.used_count,
        )
    else:
        info = PublicInviteInfo(type="public", role=ProjectRole.MEMBER.value, used_count=0)
    return PublicInvitePreview(
        project=ProjectSummary.model_validate(project),
        is_public=project.is_public,
        invite=info,
    )


@router.post("/public-invites/{code}/join", response_model=InviteAcceptResponse)
async def join_with_link(
    code: str,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    notifier: RealtimeNotifier = Depends(get_notifier),
    origin_sid: Optional[str] = Depends(get_origin_sid),
):
    project, invite = _resolve_link(db, code)
    project = load_project(db, project.id)
    if invite is not None:
        member = project.accept_invite(code, current_user.id)
    else:
        member = project.join_public(code, current_user.id)
    db.commit()
    return await _joined(db, project.id, member, current_user, notifier, origin_sid)
