import pytest
from fastapi.testclient import TestClient
from starlette.websockets import WebSocketDisconnect

from taskflow.config import settings
from taskflow.security import create_access_token


def _connect(client: TestClient, user):
    return client.websocket_connect("/ws", headers={"Authorization": f"Bearer {create_access_token(user.id)}"})


def _handshake(ws) -> str:
    message = ws.receive_json()
    assert message["event"] == "connected"
    return message["data"]["sid"]


def _join_project(ws, project_id: int) -> None:
    ws.send_json({"event": "join_project", "data": {"project_id": project_id}})
    assert ws.receive_json() == {"event": "project_joined", "data": {"project_id": project_id}}


def _assert_quiet(ws) -> None:
    """Nothing was queued for this socket before the pong."""
    ws.send_json({"event": "ping"})
    assert ws.receive_json()["event"] == "pong"


def test_bad_header_token_closes_with_4401(client: TestClient):
    with pytest.raises(WebSocketDisconnect) as exc:
        with client.websocket_connect("/ws", headers={"Authorization": "Bearer forged"}) as ws:
            ws.receive_json()
    assert exc.value.code == 4401
    assert exc.value.reason == "Authentication error"


def test_first_frame_authentication(client: TestClient, make_user):
    user = make_user("Olivia")
    with client.websocket_connect("/ws") as ws:
        ws.send_json({"event": "authenticate", "data": {"token": create_access_token(user.id)}})
        message = ws.receive_json()
        assert message["event"] == "connected"
        assert message["data"]["user_id"] == user.id


def test_other_first_frame_is_rejected(client: TestClient):
    with pytest.raises(WebSocketDisconnect) as exc:
        with client.websocket_connect("/ws") as ws:
            ws.send_json({"event": "ping"})
            ws.receive_json()
    assert exc.value.code == 4401


def test_silent_client_times_out(client: TestClient, monkeypatch):
    monkeypatch.setattr(settings, "WS_AUTH_TIMEOUT_SECONDS", 0.05)
    with pytest.raises(WebSocketDisconnect) as exc:
        with client.websocket_connect("/ws") as ws:
            ws.receive_json()
    assert exc.value.code == 4401


def test_ping_and_unknown_events(client: TestClient, make_user):
    user = make_user("Olivia")
    with _connect(client, user) as ws:
        _handshake(ws)
        _assert_quiet(ws)
        ws.send_json({"event": "dance", "data": {}})
        assert ws.receive_json()["event"] == "error"
        ws.send_text("not json")
        assert ws.receive_json()["event"] == "error"


def test_join_requires_access(client: TestClient, make_user, make_project):
    owner = make_user("Olivia")
    outsider = make_user("Otto")
    private = make_project(owner, "Private")
    public = make_project(owner, "Public", is_public=True)
    private_id, public_id = private.id, public.id

    with _connect(client, outsider) as ws:
        _handshake(ws)
        ws.send_json({"event": "join_project", "data": {"project_id": private_id}})
        error = ws.receive_json()
        assert error["event"] == "error"
        assert error["data"]["event"] == "join_project"

        _join_project(ws, public_id)


def test_task_update_fans_out_without_echo(client: TestClient, db_session, make_user, make_project, headers_for):
    owner = make_user("Olivia")
    member = make_user("Mia")
    outsider = make_user("Otto")
    project = make_project(owner)
    project.add_member(member.id)
    db_session.commit()
    pid = project.id
    task_id = client.post("/api/tasks", json={"project_id": pid, "title": "Sync"}, headers=headers_for(owner)).json()["id"]

    with _connect(client, owner) as owner_ws, _connect(client, member) as member_ws, _connect(client, outsider) as outsider_ws:
        for ws in (owner_ws, member_ws, outsider_ws):
            _handshake(ws)
        _join_project(owner_ws, pid)
        _join_project(member_ws, pid)
        member_ws.send_json({"event": "join_task", "data": {"task_id": task_id}})
        _assert_quiet(member_ws)

        response = client.put(f"/api/tasks/{task_id}", json={"priority": "high"}, headers=headers_for(owner))
        assert response.status_code == 200

        event = member_ws.receive_json()
        assert event["event"] == "task_updated"
        assert event["data"]["task"]["priority"] == "high"
        assert event["data"]["updated_by"] == owner.id
        _assert_quiet(member_ws)
        _assert_quiet(owner_ws)
        _assert_quiet(outsider_ws)


def test_socket_id_header_picks_the_skipped_tab(client: TestClient, make_user, make_project, headers_for):
    owner = make_user("Olivia")
    pid = make_project(owner).id

    with _connect(client, owner) as tab_one, _connect(client, owner) as tab_two:
        sid_one = _handshake(tab_one)
        _handshake(tab_two)
        _join_project(tab_one, pid)
        _join_project(tab_two, pid)

        response = client.post(
            "/api/tasks",
            json={"project_id": pid, "title": "From tab one"},
            headers=headers_for(owner, socket_id=sid_one),
        )
        assert response.status_code == 201

        event = tab_two.receive_json()
        assert event["event"] == "task_created"
        assert event["data"]["task"]["title"] == "From tab one"
        _assert_quiet(tab_one)


def test_added_member_hears_about_it_on_user_room(client: TestClient, make_user, make_project, headers_for):
    owner = make_user("Olivia")
    member = make_user("Mia")
    pid = make_project(owner).id

    with _connect(client, member) as member_ws:
        _handshake(member_ws)
        client.post(f"/api/projects/{pid}/members", json={"user_id": member.id}, headers=headers_for(owner))

        event = member_ws.receive_json()
        assert event["event"] == "member_joined"
        assert event["data"]["project_id"] == pid
        assert event["data"]["member"]["user"]["id"] == member.id


def test_removed_member_stops_receiving(client: TestClient, db_session, make_user, make_project, headers_for):
    owner = make_user("Olivia")
    member = make_user("Mia")
    project = make_project(owner)
    project.add_member(member.id)
    db_session.commit()
    pid = project.id
    task_id = client.post("/api/tasks", json={"project_id": pid, "title": "Shared"}, headers=headers_for(owner)).json()["id"]

    with _connect(client, member) as member_ws:
        _handshake(member_ws)
        _join_project(member_ws, pid)
        member_ws.send_json({"event": "join_task", "data": {"task_id": task_id}})
        _assert_quiet(member_ws)

        client.delete(f"/api/projects/{pid}/members/{member.id}", headers=headers_for(owner))
        event = member_ws.receive_json()
        assert event["event"] == "member_left"
        assert event["data"]["user_id"] == member.id
        _assert_quiet(member_ws)

        client.post("/api/tasks", json={"project_id": pid, "title": "Secret"}, headers=headers_for(owner))
        _assert_quiet(member_ws)

        renamed = client.put(f"/api/tasks/{task_id}", json={"title": "Secret plan"}, headers=headers_for(owner))
        assert renamed.status_code == 200
        comment = client.post(f"/api/tasks/{task_id}/comments", json={"content": "Hidden"}, headers=headers_for(owner))
        assert comment.status_code == 201
        _assert_quiet(member_ws)


def test_mentioned_user_gets_private_notice(client: TestClient, db_session, make_user, make_project, headers_for):
    owner = make_user("Olivia")
    member = make_user("Mia")
    project = make_project(owner)
    project.add_member(member.id)
    db_session.commit()
    pid = project.id
    task_id = client.post("/api/tasks", json={"project_id": pid, "title": "Review"}, headers=headers_for(owner)).json()["id"]

    with _connect(client, owner) as owner_ws:
        _handshake(owner_ws)
        response = client.post(
            f"/api/tasks/{task_id}/comments",
            json={"content": "Can you check this?", "mentions": [owner.id]},
            headers=headers_for(member),
        )
        assert response.status_code == 201

        event = owner_ws.receive_json()
        assert event["event"] == "user_mentioned"
        assert event["data"]["task_id"] == task_id
        assert event["data"]["mentioned_by"] == member.id
        assert event["data"]["comment"]["content"] == "Can you check this?"


def test_project_deletion_is_broadcast(client: TestClient, db_session, make_user, make_project, headers_for):
    owner = make_user("Olivia")
    member = make_user("Mia")
    project = make_project(owner)
    project.add_member(member.id)
    db_session.commit()
    pid = project.id

    with _connect(client, member) as member_ws:
        _handshake(member_ws)
        _join_project(member_ws, pid)

        assert client.delete(f"/api/projects/{pid}", headers=headers_for(owner)).status_code == 200
        event = member_ws.receive_json()
        assert event == {"event": "project_deleted", "data": {"project_id": pid, "deleted_by": owner.id}}
