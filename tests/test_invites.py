from datetime import timedelta

import pytest
from sqlalchemy.orm import Session

from taskflow.config import settings
from taskflow.errors import (
    AlreadyMemberError,
    AuthorizationError,
    InviteCodeGenerationError,
    NotFoundError,
    ValidationError,
)
from taskflow.models.invitation import InviteState, ProjectInvite
from taskflow.utils.codes import CODE_ALPHABET
from taskflow.utils.timeutils import utcnow


def test_invite_validity_rules():
    now = utcnow()
    invite = ProjectInvite(is_active=True, expires_at=now + timedelta(hours=1), max_uses=None, used_count=0)
    assert invite.is_valid(now)

    assert not invite.is_valid(now + timedelta(hours=1))

    invite.max_uses, invite.used_count = 2, 2
    assert not invite.is_valid(now)
    assert invite.state(now) == InviteState.EXHAUSTED

    invite.max_uses, invite.used_count, invite.is_active = 2, 1, False
    assert not invite.is_valid(now)
    assert invite.state(now) == InviteState.DEACTIVATED


def test_create_invite_defaults(db_session: Session, make_user, make_project):
    owner = make_user("Olivia")
    project = make_project(owner)

    invite = project.create_invite(owner.id, note="  for the design team ")
    db_session.commit()

    assert len(invite.code) == settings.INVITE_CODE_LENGTH
    assert all(ch in CODE_ALPHABET for ch in invite.code)
    assert invite.role == "member"
    assert invite.note == "for the design team"
    assert invite.expires_at - invite.created_at == timedelta(days=settings.DEFAULT_INVITE_EXPIRY_DAYS)
    assert invite.state() == InviteState.PENDING


def test_create_invite_validation(db_session: Session, make_user, make_project):
    owner = make_user("Olivia")
    member = make_user("Mia")
    project = make_project(owner)
    project.add_member(member.id, "member")
    db_session.commit()

    with pytest.raises(AuthorizationError):
        project.create_invite(member.id)
    with pytest.raises(ValidationError):
        project.create_invite(owner.id, role="owner")
    with pytest.raises(ValidationError):
        project.create_invite(owner.id, expires_in_days=0)
    with pytest.raises(ValidationError):
        project.create_invite(owner.id, max_uses=0)
    assert project.invites == []


def test_codes_are_distinct(db_session: Session, make_user, make_project):
    owner = make_user("Olivia")
    project = make_project(owner)

    codes = [project.create_invite(owner.id).code for _ in range(25)]
    db_session.commit()

    assert len(set(codes)) == 25


def test_code_generation_gives_up_after_retry_bound(db_session: Session, make_user, make_project):
    owner = make_user("Olivia")
    project = make_project(owner)
    calls = []

    def same_code(length):
        calls.append(length)
        return "A" * length

    project.create_invite(owner.id, code_factory=same_code)
    calls.clear()

    with pytest.raises(InviteCodeGenerationError):
        project.create_invite(owner.id, code_factory=same_code)
    assert len(calls) == settings.INVITE_CODE_MAX_ATTEMPTS
    assert len(project.invites) == 1


def test_accept_adds_member_once(db_session: Session, make_user, make_project):
    owner = make_user("Olivia")
    guest = make_user("Gus")
    project = make_project(owner)
    invite = project.create_invite(owner.id, role="viewer", max_uses=5)
    db_session.commit()

    member = project.accept_invite(invite.code, guest.id)
    db_session.commit()

    assert member.role == "viewer"
    assert member.permissions == {"can_edit": False, "can_delete": False, "can_invite": False}
    assert member.invited_by_id == owner.id
    assert invite.used_count == 1
    assert len(project.members) == 2

    with pytest.raises(AlreadyMemberError):
        project.accept_invite(invite.code, guest.id)
    assert invite.used_count == 1
    assert len(project.members) == 2


def test_last_use_deactivates_invite(db_session: Session, make_user, make_project):
    owner = make_user("Olivia")
    first = make_user("Finn")
    second = make_user("Sara")
    project = make_project(owner)
    invite = project.create_invite(owner.id, max_uses=2)
    invite.used_count = 1
    db_session.commit()

    project.accept_invite(invite.code, first.id)
    db_session.commit()

    assert invite.used_count == 2
    assert invite.is_active is False
    with pytest.raises(NotFoundError):
        project.accept_invite(invite.code, second.id)
    assert not project.is_member(second.id)


def test_expired_invite_cannot_be_accepted(db_session: Session, make_user, make_project):
    owner = make_user("Olivia")
    guest = make_user("Gus")
    project = make_project(owner)
    invite = project.create_invite(owner.id, expires_in_days=7, now=utcnow() - timedelta(days=8))
    db_session.commit()

    assert invite.state() == InviteState.EXPIRED
    with pytest.raises(NotFoundError):
        project.accept_invite(invite.code, guest.id)
    assert invite.used_count == 0


def test_deactivate_invite(db_session: Session, make_user, make_project):
    owner = make_user("Olivia")
    project = make_project(owner)
    invite = project.create_invite(owner.id)
    db_session.commit()
    version = project.version

    with pytest.raises(NotFoundError):
        project.deactivate_invite("missing-code", owner.id)
    assert not db_session.is_modified(project)
    assert invite.is_active is True
    assert project.version == version

    project.deactivate_invite(invite.code, owner.id)
    db_session.commit()
    assert invite.is_active is False
    assert invite.state() == InviteState.DEACTIVATED
