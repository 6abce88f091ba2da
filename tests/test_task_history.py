from datetime import datetime, timezone

import pytest
from sqlalchemy.orm import Session

from taskflow.errors import AuthorizationError, NotFoundError, ValidationError
from taskflow.models import Task


@pytest.fixture
def board(db_session: Session, make_user, make_project):
    owner = make_user("Olivia")
    member = make_user("Mia")
    viewer = make_user("Vic")
    project = make_project(owner, "Board")
    project.add_member(member.id, "member")
    project.add_member(viewer.id, "viewer")
    task = Task.create(project, owner.id, "Write docs")
    db_session.add(task)
    db_session.commit()
    return owner, member, viewer, project, task


def _actions(task):
    return [entry.action for entry in task.history]


def test_create_records_history_and_defaults(board):
    owner, _, _, project, task = board

    assert task.status == "To Do"
    assert task.column_index == 0
    assert task.priority == "medium"
    assert _actions(task) == ["created"]
    assert task.history[0].actor_id == owner.id


def test_viewer_cannot_create(board):
    _, _, viewer, project, _ = board

    with pytest.raises(AuthorizationError):
        Task.create(project, viewer.id, "Sneaky")


def test_each_changed_field_records_one_entry(db_session: Session, board):
    owner, member, _, _, task = board

    entries = task.apply_update(owner.id, {
        "title": "Write better docs",
        "status": "In Progress",
        "priority": "high",
        "assignee_id": member.id,
        "due_date": datetime(2030, 1, 31, 12, 0, tzinfo=timezone.utc),
    })
    db_session.commit()

    assert [e.action for e in entries] == ["updated", "status_changed", "updated", "assigned", "updated"]
    assert [e.detail for e in entries] == ["title", "status", "priority", "assignee_id", "due_date"]
    assert entries[1].old_value == "To Do"
    assert entries[1].new_value == "In Progress"
    assert task.column_index == 1
    assert task.due_date == datetime(2030, 1, 31, 12, 0)
    assert len(task.history) == 6


def test_noop_update_records_nothing(db_session: Session, board):
    owner, _, _, _, task = board
    version = task.version

    entries = task.apply_update(owner.id, {"title": "Write docs", "priority": "medium", "status": "To Do"})
    db_session.commit()

    assert entries == []
    assert _actions(task) == ["created"]
    assert task.version == version


def test_invalid_updates(board):
    owner, _, _, _, task = board
    outsider_id = 9999

    with pytest.raises(ValidationError):
        task.apply_update(owner.id, {"status": "Blocked"})
    with pytest.raises(ValidationError):
        task.apply_update(owner.id, {"priority": "urgent"})
    with pytest.raises(ValidationError):
        task.apply_update(owner.id, {"assignee_id": outsider_id})
    with pytest.raises(ValidationError):
        task.apply_update(owner.id, {"creator_id": owner.id})


def test_checklist_changes(db_session: Session, board):
    owner, member, _, _, task = board

    entry = task.set_checklist(owner.id, [{"text": "Outline"}, {"text": "Draft"}])
    db_session.commit()
    assert entry.action == "checklist_updated"
    assert entry.detail == "0/2 completed"

    entry = task.set_checklist(member.id, [{"text": "Outline", "completed": True}, {"text": "Draft"}])
    db_session.commit()
    assert entry.detail == "1/2 completed"
    assert task.checklist[0]["completed_by"] == member.id

    assert task.set_checklist(owner.id, [{"text": "Outline", "completed": True}, {"text": "Draft"}]) is None
    assert task.checklist[0]["completed_by"] == member.id
    assert _actions(task).count("checklist_updated") == 2


def test_attachment_and_comment_history(db_session: Session, board):
    owner, member, _, _, task = board

    task.add_attachment(owner.id, {"filename": "brief-123.pdf", "original_name": "brief.pdf", "size": 1024, "url": "/uploads/brief-123.pdf"})
    comment = task.add_comment(member.id, "  Looks good  ", mentions=[owner.id, owner.id])
    db_session.commit()

    assert _actions(task)[-2:] == ["attachment_added", "commented"]
    assert task.attachments[0]["uploaded_by"] == owner.id
    assert comment.content == "Looks good"
    assert comment.mentions == [owner.id]

    with pytest.raises(ValidationError):
        task.add_comment(member.id, "   ")


def test_comment_edit_and_delete_rules(db_session: Session, board):
    owner, member, viewer, _, task = board
    comment = task.add_comment(member.id, "First take")
    db_session.commit()

    with pytest.raises(AuthorizationError):
        task.update_comment(comment.id, owner.id, "Hijacked")

    task.update_comment(comment.id, member.id, "Second take")
    db_session.commit()
    assert comment.is_edited is True
    assert comment.edited_at is not None

    with pytest.raises(AuthorizationError):
        task.delete_comment(comment.id, viewer.id)

    # task creator may remove comments on their task
    task.delete_comment(comment.id, owner.id)
    db_session.commit()
    assert task.comments == []
    with pytest.raises(NotFoundError):
        task.find_comment(comment.id)
