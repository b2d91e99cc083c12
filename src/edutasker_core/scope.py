"""Scope resolution for ordered siblings.

A scope is the sibling set an ``order`` value is relative to: the boards of
one project, or the tasks of one board. Resolution turns the identifiers a
request carries into a Scope after checking that everything exists, that the
acting user may touch it, and that any referenced entity really lives there.
"""
import enum
import logging
from dataclasses import dataclass
from typing import Optional
from uuid import UUID

from sqlalchemy.orm import Session

from . import models
from .errors import ConflictError, NotFoundError
from .permissions import AccessLevel, require_project_access

logger = logging.getLogger("edutasker-core.scope")


class EntityKind(str, enum.Enum):
    """Kinds of ordered entities."""

    BOARD = "board"
    TASK = "task"


@dataclass(frozen=True)
class Scope:
    """Opaque key identifying one sibling set."""

    kind: EntityKind
    parent_id: UUID

    def __str__(self) -> str:
        return f"{self.kind.value}s of {self.parent_id}"


def board_scope(project_id: UUID) -> Scope:
    """Scope of the boards of a project."""
    return Scope(EntityKind.BOARD, project_id)


def task_scope(board_id: UUID) -> Scope:
    """Scope of the tasks of a board."""
    return Scope(EntityKind.TASK, board_id)


def _get_project(db: Session, project_id: UUID) -> models.Project:
    project = db.query(models.Project).filter(models.Project.id == project_id).first()
    if not project:
        raise NotFoundError(f"Project not found: {project_id}")
    return project


def _get_board_in_project(db: Session, project_id: UUID, board_id: UUID) -> models.Board:
    board = db.query(models.Board).filter(models.Board.id == board_id).first()
    if not board:
        raise NotFoundError(f"Board not found: {board_id}")
    if board.project_id != project_id:
        logger.warning(f"Board {board_id} claimed under project {project_id} belongs to {board.project_id}")
        raise ConflictError(f"Board {board_id} does not belong to project {project_id}")
    return board


def resolve_project(
    db: Session,
    project_id: UUID,
    user_id: Optional[UUID],
    access: AccessLevel = AccessLevel.READ,
) -> models.Project:
    """Load a project the user holds ``access`` on (NotFound / Forbidden otherwise)."""
    project = _get_project(db, project_id)
    require_project_access(db, project, user_id, access)
    return project


def resolve_board_scope(
    db: Session,
    project_id: UUID,
    user_id: Optional[UUID],
    board_id: Optional[UUID] = None,
    access: AccessLevel = AccessLevel.WRITE,
) -> Scope:
    """
    Resolve the board scope of a project.

    Args:
        db: Database session
        project_id: Claimed parent project
        user_id: Acting user
        board_id: Board the request refers to, if any
        access: Access level the request needs on the project

    Returns:
        Scope of the project's boards

    Raises:
        NotFoundError: If the project or referenced board does not exist
        ForbiddenError: If the user lacks the requested access
        ConflictError: If the board belongs to another project
    """
    project = _get_project(db, project_id)
    require_project_access(db, project, user_id, access)
    if board_id is not None:
        _get_board_in_project(db, project_id, board_id)
    return board_scope(project_id)


def resolve_task(
    db: Session,
    project_id: UUID,
    task_id: UUID,
    user_id: Optional[UUID],
    access: AccessLevel = AccessLevel.WRITE,
) -> tuple[Scope, models.Task]:
    """
    Resolve a task addressed only by project, returning its board scope.

    Raises:
        NotFoundError: If the project or task does not exist
        ForbiddenError: If the user lacks the requested access
        ConflictError: If the task belongs to another project
    """
    project = _get_project(db, project_id)
    require_project_access(db, project, user_id, access)

    task = db.query(models.Task).filter(models.Task.id == task_id).first()
    if not task:
        raise NotFoundError(f"Task not found: {task_id}")
    if task.project_id != project_id:
        logger.warning(f"Task {task_id} claimed under project {project_id} belongs to {task.project_id}")
        raise ConflictError(f"Task {task_id} does not belong to project {project_id}")
    return task_scope(task.board_id), task


def resolve_task_scope(
    db: Session,
    project_id: UUID,
    board_id: UUID,
    user_id: Optional[UUID],
    task_id: Optional[UUID] = None,
    access: AccessLevel = AccessLevel.WRITE,
) -> Scope:
    """
    Resolve the task scope of a board within a project.

    Args:
        db: Database session
        project_id: Claimed project
        board_id: Claimed parent board
        user_id: Acting user
        task_id: Task the request refers to, if any
        access: Access level the request needs on the project

    Returns:
        Scope of the board's tasks

    Raises:
        NotFoundError: If the project, board or task does not exist
        ForbiddenError: If the user lacks the requested access
        ConflictError: If the board is in another project or the task is
            on another board
    """
    project = _get_project(db, project_id)
    require_project_access(db, project, user_id, access)
    _get_board_in_project(db, project_id, board_id)

    if task_id is not None:
        task = db.query(models.Task).filter(models.Task.id == task_id).first()
        if not task:
            raise NotFoundError(f"Task not found: {task_id}")
        if task.board_id != board_id:
            logger.warning(f"Task {task_id} claimed on board {board_id} lives on {task.board_id}")
            raise ConflictError(f"Task {task_id} is not on board {board_id}")
    return task_scope(board_id)
