"""HTTP tests for the boards and tasks endpoints."""
import sqlite3
from uuid import uuid4

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.orm import sessionmaker

from edutasker_core.api.main import app
from edutasker_core.database import get_db, make_engine


@pytest.fixture
def client(session_factory):
    """Test client whose requests each get a session on the test database."""

    def override_get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = override_get_db
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


def create_user(client, email=None):
    response = client.post("/api/v1/users/", json={"email": email or f"{uuid4().hex[:8]}@example.com"})
    assert response.status_code == 201
    return {"X-User-Id": response.json()["id"]}


@pytest.fixture
def owner(client):
    return create_user(client)


@pytest.fixture
def project_id(client, owner):
    response = client.post("/api/v1/projects/", json={"name": "Capstone"}, headers=owner)
    assert response.status_code == 201
    return response.json()["id"]


@pytest.fixture
def make_board(client, owner, project_id):
    def _make(name, order=None):
        body = {"name": name} if order is None else {"name": name, "order": order}
        response = client.post(f"/api/v1/projects/{project_id}/boards", json=body, headers=owner)
        assert response.status_code == 201, response.text
        return response.json()
    return _make


@pytest.fixture
def make_task(client, owner, project_id):
    def _make(board_id, title, order=None):
        body = {"board_id": board_id, "title": title}
        if order is not None:
            body["order"] = order
        response = client.post(f"/api/v1/projects/{project_id}/tasks", json=body, headers=owner)
        assert response.status_code == 201, response.text
        return response.json()
    return _make


def list_boards(client, owner, project_id):
    response = client.get(f"/api/v1/projects/{project_id}/boards", headers=owner)
    assert response.status_code == 200
    return [(b["name"], b["order"]) for b in response.json()["boards"]]


def list_board_tasks(client, owner, project_id, board_id):
    response = client.get(
        f"/api/v1/projects/{project_id}/tasks", params={"board_id": board_id}, headers=owner
    )
    assert response.status_code == 200
    return [(t["title"], t["order"]) for t in response.json()["items"]]


class TestAuthAndHealth:
    """Test the acting-user header and liveness endpoints."""

    def test_health(self, client):
        assert client.get("/health").json() == {"status": "healthy"}

    def test_missing_user_header(self, client, project_id):
        assert client.get(f"/api/v1/projects/{project_id}/boards").status_code == 401

    def test_unknown_user(self, client, project_id):
        response = client.get(f"/api/v1/projects/{project_id}/boards", headers={"X-User-Id": str(uuid4())})
        assert response.status_code == 401

    def test_duplicate_email(self, client):
        create_user(client, "same@example.com")
        response = client.post("/api/v1/users/", json={"email": "same@example.com"})
        assert response.status_code == 400


class TestBoardEndpoints:
    """Test board routes."""

    def test_create_append_and_insert(self, client, owner, project_id, make_board):
        make_board("To Do")
        make_board("Done")
        created = make_board("Doing", order=1)

        assert created["order"] == 1
        assert list_boards(client, owner, project_id) == [("To Do", 0), ("Doing", 1), ("Done", 2)]

    def test_negative_order_is_a_validation_error(self, client, owner, project_id):
        response = client.post(
            f"/api/v1/projects/{project_id}/boards", json={"name": "X", "order": -1}, headers=owner
        )
        assert response.status_code == 422

    def test_patch_moves_board(self, client, owner, project_id, make_board):
        make_board("A")
        make_board("B")
        c = make_board("C")

        response = client.patch(
            f"/api/v1/projects/{project_id}/boards/{c['id']}", json={"order": 0}, headers=owner
        )

        assert response.status_code == 200
        assert list_boards(client, owner, project_id) == [("C", 0), ("A", 1), ("B", 2)]

    def test_get_board_includes_permissions(self, client, owner, project_id, make_board):
        board = make_board("A")

        body = client.get(f"/api/v1/projects/{project_id}/boards/{board['id']}", headers=owner).json()

        assert body["permissions"]["can_delete"] is True
        assert body["task_count"] == 0
        assert body["tasks"] == []

    def test_list_with_task_counts(self, client, owner, project_id, make_board, make_task):
        a = make_board("A")
        make_board("B")
        make_task(a["id"], "t")

        response = client.get(
            f"/api/v1/projects/{project_id}/boards", params={"include_task_count": True}, headers=owner
        )

        assert [b["task_count"] for b in response.json()["boards"]] == [1, 0]

    def test_reorder(self, client, owner, project_id, make_board):
        a, b, c = make_board("A"), make_board("B"), make_board("C")

        response = client.put(
            f"/api/v1/projects/{project_id}/boards/reorder",
            json={"boards": [
                {"board_id": a["id"], "new_order": 2},
                {"board_id": b["id"], "new_order": 0},
                {"board_id": c["id"], "new_order": 1},
            ]},
            headers=owner,
        )

        assert response.status_code == 200
        assert [x["name"] for x in response.json()["boards"]] == ["B", "C", "A"]

    def test_reorder_duplicate_targets(self, client, owner, project_id, make_board):
        a, b = make_board("A"), make_board("B")

        response = client.put(
            f"/api/v1/projects/{project_id}/boards/reorder",
            json={"boards": [
                {"board_id": a["id"], "new_order": 1},
                {"board_id": b["id"], "new_order": 1},
            ]},
            headers=owner,
        )

        assert response.status_code == 400
        assert response.json()["code"] == "invalid_argument"
        assert list_boards(client, owner, project_id) == [("A", 0), ("B", 1)]

    def test_delete_closes_gap(self, client, owner, project_id, make_board):
        make_board("A")
        b = make_board("B")
        make_board("C")

        response = client.delete(f"/api/v1/projects/{project_id}/boards/{b['id']}", headers=owner)

        assert response.status_code == 204
        assert list_boards(client, owner, project_id) == [("A", 0), ("C", 1)]

    def test_delete_board_with_tasks(self, client, owner, project_id, make_board, make_task):
        board = make_board("A")
        make_task(board["id"], "t")

        response = client.delete(f"/api/v1/projects/{project_id}/boards/{board['id']}", headers=owner)

        assert response.status_code == 409
        assert response.json()["code"] == "conflict"

    def test_non_member_forbidden(self, client, project_id, make_board):
        board = make_board("A")
        stranger = create_user(client)

        response = client.patch(
            f"/api/v1/projects/{project_id}/boards/{board['id']}", json={"order": 0}, headers=stranger
        )

        assert response.status_code == 403
        assert response.json()["code"] == "forbidden"

    def test_unknown_board(self, client, owner, project_id):
        response = client.get(f"/api/v1/projects/{project_id}/boards/{uuid4()}", headers=owner)
        assert response.status_code == 404
        assert response.json()["code"] == "not_found"

    def test_board_of_other_project(self, client, owner, project_id, make_board):
        board = make_board("A")
        other = client.post("/api/v1/projects/", json={"name": "Other"}, headers=owner).json()["id"]

        response = client.get(f"/api/v1/projects/{other}/boards/{board['id']}", headers=owner)

        assert response.status_code == 409

    def test_stats(self, client, owner, project_id, make_board, make_task):
        board = make_board("A")
        make_task(board["id"], "t1")
        make_task(board["id"], "t2")

        body = client.get(f"/api/v1/projects/{project_id}/boards/{board['id']}/stats", headers=owner).json()

        assert body["total_tasks"] == 2
        assert body["tasks_by_status"] == {"todo": 2}


class TestTaskEndpoints:
    """Test task routes."""

    def test_move_across_boards(self, client, owner, project_id, make_board, make_task):
        todo, done = make_board("To Do"), make_board("Done")
        t1 = make_task(todo["id"], "1")
        make_task(todo["id"], "2")
        make_task(done["id"], "d")

        response = client.post(
            f"/api/v1/projects/{project_id}/tasks/{t1['id']}/move",
            json={"board_id": done["id"], "order": 1},
            headers=owner,
        )

        assert response.status_code == 200
        assert response.json()["board_id"] == done["id"]
        assert list_board_tasks(client, owner, project_id, todo["id"]) == [("2", 0)]
        assert list_board_tasks(client, owner, project_id, done["id"]) == [("d", 0), ("1", 1)]

    def test_reorder_tasks(self, client, owner, project_id, make_board, make_task):
        board = make_board("A")
        t1, t2 = make_task(board["id"], "1"), make_task(board["id"], "2")

        response = client.put(
            f"/api/v1/projects/{project_id}/boards/{board['id']}/tasks/reorder",
            json={"tasks": [{"task_id": t2["id"], "new_order": 0}, {"task_id": t1["id"], "new_order": 1}]},
            headers=owner,
        )

        assert response.status_code == 200
        assert [t["title"] for t in response.json()] == ["2", "1"]

    def test_delete_task_closes_gap(self, client, owner, project_id, make_board, make_task):
        board = make_board("A")
        t1 = make_task(board["id"], "1")
        make_task(board["id"], "2")

        response = client.delete(f"/api/v1/projects/{project_id}/tasks/{t1['id']}", headers=owner)

        assert response.status_code == 204
        assert list_board_tasks(client, owner, project_id, board["id"]) == [("2", 0)]

    def test_patch_updates_fields(self, client, owner, project_id, make_board, make_task):
        task = make_task(make_board("A")["id"], "1")

        response = client.patch(
            f"/api/v1/projects/{project_id}/tasks/{task['id']}",
            json={"status": "in_progress", "priority": "high"},
            headers=owner,
        )

        assert response.status_code == 200
        assert (response.json()["status"], response.json()["priority"]) == ("in_progress", "high")

    def test_viewer_cannot_move(self, client, owner, project_id, make_board, make_task):
        board = make_board("A")
        task = make_task(board["id"], "1")
        mentor = create_user(client)
        client.post(
            f"/api/v1/projects/{project_id}/members",
            json={"user_id": mentor["X-User-Id"], "role": "viewer"},
            headers=owner,
        )

        assert client.get(f"/api/v1/projects/{project_id}/tasks/{task['id']}", headers=mentor).status_code == 200
        response = client.post(
            f"/api/v1/projects/{project_id}/tasks/{task['id']}/move",
            json={"board_id": board["id"], "order": 0},
            headers=mentor,
        )
        assert response.status_code == 403

    def test_pagination(self, client, owner, project_id, make_board, make_task):
        board = make_board("A")
        for i in range(3):
            make_task(board["id"], str(i))

        body = client.get(
            f"/api/v1/projects/{project_id}/tasks", params={"page": 2, "page_size": 2}, headers=owner
        ).json()

        assert (body["total"], body["total_pages"]) == (3, 2)
        assert [t["title"] for t in body["items"]] == ["2"]


class TestMaintenanceEndpoints:
    """Test compaction routes and how a busy database is reported."""

    def test_compact_dense_boards(self, client, owner, project_id, make_board):
        make_board("A")
        make_board("B")

        response = client.post(f"/api/v1/projects/{project_id}/boards/compact", headers=owner)

        assert response.status_code == 200
        assert response.json() == {"changed": 0}
        assert list_boards(client, owner, project_id) == [("A", 0), ("B", 1)]

    def test_compact_tasks_is_owner_only(self, client, owner, project_id, make_board):
        board = make_board("A")
        editor = create_user(client)
        client.post(
            f"/api/v1/projects/{project_id}/members",
            json={"user_id": editor["X-User-Id"], "role": "editor"},
            headers=owner,
        )

        url = f"/api/v1/projects/{project_id}/boards/{board['id']}/tasks/compact"
        assert client.post(url, headers=editor).status_code == 403
        assert client.post(url, headers=owner).json() == {"changed": 0}

    def test_busy_database_is_a_conflict(self, client, engine, owner, project_id):
        impatient_engine = make_engine(str(engine.url), connect_args={"timeout": 0.1})
        impatient = sessionmaker(autocommit=False, autoflush=False, bind=impatient_engine)

        def impatient_get_db():
            session = impatient()
            try:
                yield session
            finally:
                session.close()

        app.dependency_overrides[get_db] = impatient_get_db
        holder = sqlite3.connect(engine.url.database, isolation_level=None)
        holder.execute("BEGIN IMMEDIATE")
        try:
            response = client.post(
                f"/api/v1/projects/{project_id}/boards", json={"name": "Blocked"}, headers=owner
            )
        finally:
            holder.execute("ROLLBACK")
            holder.close()
            impatient_engine.dispose()

        assert response.status_code == 409
        assert response.json()["code"] == "conflict"


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
