"""Tests for scope resolution and project access checks."""
from uuid import uuid4

import pytest

from edutasker_core import crud, models, schemas
from edutasker_core.errors import ConflictError, ForbiddenError, NotFoundError
from edutasker_core.permissions import AccessLevel, get_project_access, get_project_permissions
from edutasker_core.scope import (
    EntityKind,
    board_scope,
    resolve_board_scope,
    resolve_project,
    resolve_task,
    resolve_task_scope,
    task_scope,
)


@pytest.fixture
def board(db, project, owner):
    return crud.create_board(db, project.id, "To Do", user_id=owner.id)


@pytest.fixture
def task(db, project, owner, board):
    return crud.create_task(
        db, project.id, schemas.TaskCreate(board_id=board.id, title="Write report"), owner.id
    )


@pytest.fixture
def foreign_project(db, owner):
    return crud.create_project(db, name="Other", user_id=owner.id)


class TestScopeKeys:
    """Test scope values."""

    def test_scopes_compare_by_kind_and_parent(self):
        parent = uuid4()
        assert board_scope(parent) == board_scope(parent)
        assert board_scope(parent) != task_scope(parent)
        assert task_scope(parent).kind == EntityKind.TASK

    def test_scope_is_hashable(self):
        parent = uuid4()
        assert len({task_scope(parent), task_scope(parent)}) == 1


class TestResolveBoardScope:
    """Test resolving the boards of a project."""

    def test_owner_resolves_scope(self, db, project, owner):
        assert resolve_board_scope(db, project.id, owner.id) == board_scope(project.id)

    def test_unknown_project(self, db, owner):
        with pytest.raises(NotFoundError):
            resolve_board_scope(db, uuid4(), owner.id)

    def test_non_member_forbidden(self, db, project, outsider):
        with pytest.raises(ForbiddenError):
            resolve_board_scope(db, project.id, outsider.id)

    def test_anonymous_forbidden(self, db, project):
        with pytest.raises(ForbiddenError):
            resolve_board_scope(db, project.id, None, access=AccessLevel.READ)

    def test_viewer_reads_but_cannot_write(self, db, project, make_member):
        mentor = make_member(models.ProjectRole.VIEWER)

        resolve_board_scope(db, project.id, mentor.id, access=AccessLevel.READ)
        with pytest.raises(ForbiddenError):
            resolve_board_scope(db, project.id, mentor.id, access=AccessLevel.WRITE)

    def test_board_of_other_project_conflicts(self, db, project, owner, foreign_project):
        foreign_board = crud.create_board(db, foreign_project.id, "Elsewhere", user_id=owner.id)

        with pytest.raises(ConflictError):
            resolve_board_scope(db, project.id, owner.id, board_id=foreign_board.id)

    def test_unknown_board(self, db, project, owner):
        with pytest.raises(NotFoundError):
            resolve_board_scope(db, project.id, owner.id, board_id=uuid4())


class TestResolveTaskScope:
    """Test resolving the tasks of a board."""

    def test_resolves_board_scope_of_tasks(self, db, project, owner, board, task):
        scope = resolve_task_scope(db, project.id, board.id, owner.id, task_id=task.id)
        assert scope == task_scope(board.id)

    def test_task_on_other_board_conflicts(self, db, project, owner, task):
        other_board = crud.create_board(db, project.id, "Done", user_id=owner.id)

        with pytest.raises(ConflictError):
            resolve_task_scope(db, project.id, other_board.id, owner.id, task_id=task.id)

    def test_unknown_task(self, db, project, owner, board):
        with pytest.raises(NotFoundError):
            resolve_task_scope(db, project.id, board.id, owner.id, task_id=uuid4())

    def test_board_in_other_project_conflicts(self, db, owner, board, foreign_project):
        with pytest.raises(ConflictError):
            resolve_task_scope(db, foreign_project.id, board.id, owner.id)


class TestResolveTask:
    """Test resolving a task addressed by project."""

    def test_returns_scope_of_its_board(self, db, project, owner, board, task):
        scope, resolved = resolve_task(db, project.id, task.id, owner.id)
        assert scope == task_scope(board.id)
        assert resolved.id == task.id

    def test_task_claimed_under_other_project(self, db, owner, task, foreign_project):
        with pytest.raises(ConflictError):
            resolve_task(db, foreign_project.id, task.id, owner.id)

    def test_unknown_task(self, db, project, owner):
        with pytest.raises(NotFoundError):
            resolve_task(db, project.id, uuid4(), owner.id)


class TestProjectAccess:
    """Test access levels derived from membership."""

    def test_creator_is_owner(self, db, project, owner):
        assert get_project_access(db, project, owner.id) == AccessLevel.OWNER

    @pytest.mark.parametrize(
        "role, level",
        [
            (models.ProjectRole.ADMIN, AccessLevel.OWNER),
            (models.ProjectRole.EDITOR, AccessLevel.WRITE),
            (models.ProjectRole.VIEWER, AccessLevel.READ),
        ],
    )
    def test_member_roles(self, db, project, make_member, role, level):
        user = make_member(role)
        assert get_project_access(db, project, user.id) == level

    def test_editor_cannot_act_as_owner(self, db, project, make_member):
        editor = make_member(models.ProjectRole.EDITOR)
        with pytest.raises(ForbiddenError) as exc_info:
            resolve_project(db, project.id, editor.id, AccessLevel.OWNER)
        assert "Only project owners" in exc_info.value.message

    def test_permission_flags(self, db, project, owner, make_member, outsider):
        editor = make_member(models.ProjectRole.EDITOR)

        assert get_project_permissions(db, project, owner.id) == {
            "can_read": True, "can_create": True, "can_update": True, "can_delete": True,
        }
        assert get_project_permissions(db, project, editor.id)["can_delete"] is False
        assert get_project_permissions(db, project, outsider.id)["can_read"] is False


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
