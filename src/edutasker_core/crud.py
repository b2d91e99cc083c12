"""CRUD operations for users, projects, boards and tasks.

Board and task positions are never written directly here: every create,
move, reorder and delete runs one ordering engine operation inside the
sibling repository's transaction.
"""
import logging
from collections import Counter
from typing import Optional
from uuid import UUID

from sqlalchemy import func
from sqlalchemy.orm import Session

from . import models, ordering, schemas
from .errors import ConflictError
from .permissions import AccessLevel, get_project_permissions
from .reorder_validation import (
    validate_batch_request,
    validate_move_request,
    validate_position,
)
from .scope import (
    resolve_board_scope,
    resolve_project,
    resolve_task,
    resolve_task_scope,
    task_scope,
)
from .sibling_repository import BoardSiblingRepository, TaskSiblingRepository

logger = logging.getLogger("edutasker-core.crud")


# ============================================================================
# User CRUD
# ============================================================================

def create_user(
    db: Session,
    email: str,
    full_name: Optional[str] = None,
) -> models.User:
    """
    Create a new user.

    Args:
        db: Database session
        email: Unique email address
        full_name: Optional display name

    Returns:
        Created user instance

    Raises:
        ValueError: If the email is already registered
    """
    if get_user_by_email(db, email):
        raise ValueError(f"User with email '{email}' already exists")

    db_user = models.User(email=email, full_name=full_name)
    db.add(db_user)
    db.commit()
    db.refresh(db_user)
    logger.debug(f"Created user {db_user.id} ({email})")
    return db_user


def get_user(db: Session, user_id: UUID) -> Optional[models.User]:
    """Get a user by ID."""
    return db.query(models.User).filter(models.User.id == user_id).first()


def get_user_by_email(db: Session, email: str) -> Optional[models.User]:
    """Get a user by email address."""
    return db.query(models.User).filter(models.User.email == email).first()


# ============================================================================
# Project CRUD
# ============================================================================

def create_project(
    db: Session,
    name: str,
    description: Optional[str] = None,
    status: models.ProjectStatus = models.ProjectStatus.ACTIVE,
    user_id: Optional[UUID] = None,
) -> models.Project:
    """
    Create a new project.

    Args:
        db: Database session
        name: Project name
        description: Optional description
        status: Project status
        user_id: Creator; becomes the project owner

    Returns:
        Created project instance
    """
    db_project = models.Project(
        name=name,
        description=description,
        status=status,
        created_by_user_id=user_id,
    )
    db.add(db_project)
    db.commit()
    db.refresh(db_project)
    logger.debug(f"Created project {db_project.id} ({name})")
    return db_project


def get_project(db: Session, project_id: UUID) -> Optional[models.Project]:
    """
    Get a project by ID.

    Args:
        db: Database session
        project_id: Project UUID

    Returns:
        Project instance or None if not found
    """
    return db.query(models.Project).filter(models.Project.id == project_id).first()


def delete_project(db: Session, project_id: UUID) -> bool:
    """
    Delete a project with its boards and tasks (cascading delete).

    Args:
        db: Database session
        project_id: Project UUID

    Returns:
        True if deleted, False if not found
    """
    db_project = get_project(db, project_id)
    if not db_project:
        return False

    db.delete(db_project)
    db.commit()
    logger.debug(f"Deleted project {project_id}")
    return True


def add_project_member(
    db: Session,
    project_id: UUID,
    user_id: UUID,
    role: models.ProjectRole = models.ProjectRole.EDITOR,
    acting_user_id: Optional[UUID] = None,
) -> models.ProjectMember:
    """
    Add a user to a project with a specific role.

    Args:
        db: Database session
        project_id: Project UUID
        user_id: User UUID
        role: Project role (admin, editor, viewer)
        acting_user_id: User performing the change (must own the project)

    Returns:
        Created project member instance

    Raises:
        ValueError: If the user does not exist or is already a member
    """
    resolve_project(db, project_id, acting_user_id, AccessLevel.OWNER)

    if not get_user(db, user_id):
        raise ValueError(f"User not found: {user_id}")

    existing = (
        db.query(models.ProjectMember)
        .filter(
            models.ProjectMember.project_id == project_id,
            models.ProjectMember.user_id == user_id,
        )
        .first()
    )
    if existing:
        raise ValueError("User is already a member of this project")

    db_member = models.ProjectMember(project_id=project_id, user_id=user_id, role=role)
    db.add(db_member)
    db.commit()
    db.refresh(db_member)
    logger.debug(f"Added user {user_id} to project {project_id} as {role.value}")
    return db_member


def get_project_members(db: Session, project_id: UUID) -> list[models.ProjectMember]:
    """Get all members of a project."""
    return (
        db.query(models.ProjectMember)
        .filter(models.ProjectMember.project_id == project_id)
        .order_by(models.ProjectMember.joined_at)
        .all()
    )


# ============================================================================
# Board CRUD
# ============================================================================

def create_board(
    db: Session,
    project_id: UUID,
    name: str,
    order: Optional[int] = None,
    user_id: Optional[UUID] = None,
) -> models.Board:
    """
    Create a board in a project.

    Args:
        db: Database session
        project_id: Parent project UUID
        name: Board name
        order: Position among the project's boards (None = append)
        user_id: Acting user

    Returns:
        Created board instance
    """
    def _resolve():
        scope = resolve_board_scope(db, project_id, user_id, access=AccessLevel.WRITE)
        if order is not None:
            validate_position(order)
        return (scope,)

    def _create(repo: BoardSiblingRepository, scope) -> models.Board:
        if order is None:
            position = ordering.append(repo, scope)
        else:
            position = ordering.insert_at(repo, scope, order)
        board = models.Board(project_id=project_id, name=name, order=position)
        db.add(board)
        db.flush()
        return board

    board = BoardSiblingRepository(db).with_resolved_transaction(_resolve, _create)
    db.refresh(board)
    logger.info(f"Created board '{board.name}' at {board.order} in project {project_id}")
    return board


def get_board(
    db: Session,
    project_id: UUID,
    board_id: UUID,
    user_id: Optional[UUID] = None,
) -> models.Board:
    """
    Get a board of a project.

    Raises:
        NotFoundError: If the project or board does not exist
        ForbiddenError: If the user cannot read the project
        ConflictError: If the board belongs to another project
    """
    resolve_board_scope(db, project_id, user_id, board_id=board_id, access=AccessLevel.READ)
    return db.get(models.Board, board_id)


def get_board_permissions(
    db: Session,
    project_id: UUID,
    user_id: Optional[UUID],
) -> dict[str, bool]:
    """Permission flags the user holds on a project's boards."""
    project = get_project(db, project_id)
    return get_project_permissions(db, project, user_id)


def get_project_boards(
    db: Session,
    project_id: UUID,
    user_id: Optional[UUID] = None,
) -> list[models.Board]:
    """
    Get the boards of a project in position order.

    Args:
        db: Database session
        project_id: Project UUID
        user_id: Acting user

    Returns:
        Boards ordered by ``order``
    """
    resolve_project(db, project_id, user_id, AccessLevel.READ)
    return (
        db.query(models.Board)
        .filter(models.Board.project_id == project_id)
        .order_by(models.Board.order)
        .all()
    )


def get_board_task_counts(db: Session, board_ids: list[UUID]) -> dict[UUID, int]:
    """Number of tasks per board."""
    if not board_ids:
        return {}
    rows = (
        db.query(models.Task.board_id, func.count(models.Task.id))
        .filter(models.Task.board_id.in_(board_ids))
        .group_by(models.Task.board_id)
        .all()
    )
    counts = {board_id: 0 for board_id in board_ids}
    counts.update({board_id: count for board_id, count in rows})
    return counts


def update_board(
    db: Session,
    project_id: UUID,
    board_id: UUID,
    name: Optional[str] = None,
    order: Optional[int] = None,
    user_id: Optional[UUID] = None,
) -> models.Board:
    """
    Rename and/or move a board.

    Args:
        db: Database session
        project_id: Project UUID
        board_id: Board UUID
        name: Optional new name
        order: Optional new position (clamped to the last position)
        user_id: Acting user

    Returns:
        Updated board
    """
    def _resolve():
        scope = resolve_board_scope(db, project_id, user_id, board_id=board_id, access=AccessLevel.WRITE)
        if order is not None:
            validate_position(order)
        return (scope,)

    def _update(repo: BoardSiblingRepository, scope) -> models.Board:
        if order is not None:
            ordering.move_to(repo, scope, board_id, order)
        board = db.get(models.Board, board_id)
        if name is not None:
            board.name = name
        return board

    board = BoardSiblingRepository(db).with_resolved_transaction(_resolve, _update)
    db.refresh(board)
    logger.debug(f"Updated board {board_id}")
    return board


def delete_board(
    db: Session,
    project_id: UUID,
    board_id: UUID,
    user_id: Optional[UUID] = None,
) -> None:
    """
    Delete an empty board and close its slot.

    The board's own task scope is locked before the emptiness check, so a
    task created or moved onto the board concurrently either commits first
    (and is counted) or waits for the delete.

    Raises:
        ForbiddenError: If the user is not a project owner/admin
        ConflictError: If the board still holds tasks
    """
    def _resolve():
        return (resolve_board_scope(db, project_id, user_id, board_id=board_id, access=AccessLevel.OWNER),)

    def _delete(repo: BoardSiblingRepository, scope) -> int:
        TaskSiblingRepository(db).lock_scope(task_scope(board_id))
        task_count = db.query(models.Task).filter(models.Task.board_id == board_id).count()
        if task_count > 0:
            raise ConflictError(
                "Cannot delete board that contains tasks. Please move or delete all tasks first."
            )
        position = ordering.remove_at(repo, scope, board_id)
        db.delete(db.get(models.Board, board_id))
        return position

    position = BoardSiblingRepository(db).with_resolved_transaction(_resolve, _delete)
    logger.info(f"Deleted board {board_id} (was at {position}) from project {project_id}")


def reorder_boards(
    db: Session,
    project_id: UUID,
    assignments: list[tuple[UUID, int]],
    user_id: Optional[UUID] = None,
) -> list[models.Board]:
    """
    Apply a drag-and-drop batch of board positions.

    Args:
        db: Database session
        project_id: Project UUID
        assignments: (board id, new order) pairs
        user_id: Acting user

    Returns:
        The project's boards in their new order
    """
    def _resolve():
        scope = resolve_board_scope(db, project_id, user_id, access=AccessLevel.WRITE)
        validate_batch_request(assignments)
        return (scope,)

    BoardSiblingRepository(db).with_resolved_transaction(
        _resolve, lambda repo, scope: ordering.batch_reorder(repo, scope, assignments)
    )
    logger.info(f"Reordered {len(assignments)} boards in project {project_id}")
    return get_project_boards(db, project_id, user_id)


def compact_boards(
    db: Session,
    project_id: UUID,
    user_id: Optional[UUID] = None,
) -> int:
    """
    Renumber a project's boards to 0..N-1, keeping their sequence.

    Maintenance operation for rows written before positions were kept dense
    (e.g. imported with gaps). Owner only.

    Returns:
        Number of boards whose order changed
    """
    def _resolve():
        return (resolve_board_scope(db, project_id, user_id, access=AccessLevel.OWNER),)

    changed = BoardSiblingRepository(db).with_resolved_transaction(_resolve, ordering.compact)
    logger.info(f"Compacted boards of project {project_id}: {changed} renumbered")
    return changed


def get_board_stats(
    db: Session,
    project_id: UUID,
    board_id: UUID,
    user_id: Optional[UUID] = None,
) -> dict:
    """
    Count a board's tasks by status and priority.

    Returns:
        Dict with id, name, total_tasks, tasks_by_status, tasks_by_priority
    """
    board = get_board(db, project_id, board_id, user_id)
    tasks = db.query(models.Task).filter(models.Task.board_id == board_id).all()
    return {
        "id": board.id,
        "name": board.name,
        "total_tasks": len(tasks),
        "tasks_by_status": dict(Counter(t.status.value for t in tasks)),
        "tasks_by_priority": dict(Counter(t.priority.value for t in tasks)),
    }


# ============================================================================
# Task CRUD
# ============================================================================

def create_task(
    db: Session,
    project_id: UUID,
    task_data: schemas.TaskCreate,
    user_id: Optional[UUID] = None,
) -> models.Task:
    """
    Create a task on a board.

    Args:
        db: Database session
        project_id: Project UUID
        task_data: Task creation data (board_id, optional order)
        user_id: Acting user (recorded as creator)

    Returns:
        Created Task object
    """
    def _resolve():
        scope = resolve_task_scope(db, project_id, task_data.board_id, user_id, access=AccessLevel.WRITE)
        if task_data.order is not None:
            validate_position(task_data.order)
        return (scope,)

    def _create(repo: TaskSiblingRepository, scope) -> models.Task:
        if task_data.order is None:
            position = ordering.append(repo, scope)
        else:
            position = ordering.insert_at(repo, scope, task_data.order)
        task = models.Task(
            project_id=project_id,
            board_id=task_data.board_id,
            title=task_data.title,
            description=task_data.description,
            status=task_data.status,
            priority=task_data.priority,
            due_date=task_data.due_date,
            order=position,
            created_by=user_id,
        )
        db.add(task)
        db.flush()
        return task

    task = TaskSiblingRepository(db).with_resolved_transaction(_resolve, _create)
    db.refresh(task)
    logger.info(f"Created task {task.id} '{task.title}' at {task.order} on board {task.board_id}")
    return task


def get_task(
    db: Session,
    project_id: UUID,
    task_id: UUID,
    user_id: Optional[UUID] = None,
) -> models.Task:
    """
    Get a task of a project.

    Raises:
        NotFoundError: If the project or task does not exist
        ForbiddenError: If the user cannot read the project
        ConflictError: If the task belongs to another project
    """
    _, task = resolve_task(db, project_id, task_id, user_id, AccessLevel.READ)
    return task


def get_tasks(
    db: Session,
    project_id: UUID,
    user_id: Optional[UUID] = None,
    board_id: Optional[UUID] = None,
    status: Optional[models.TaskStatus] = None,
    priority: Optional[models.TaskPriority] = None,
    skip: int = 0,
    limit: int = 50,
) -> tuple[list[models.Task], int]:
    """
    Get tasks of a project with optional filtering and pagination.

    Tasks are ordered by board position, then task position.

    Args:
        db: Database session
        project_id: Project UUID
        user_id: Acting user
        board_id: Optional board filter
        status: Optional status filter
        priority: Optional priority filter
        skip: Number of records to skip
        limit: Maximum number of records to return

    Returns:
        Tuple of (tasks list, total count)
    """
    resolve_project(db, project_id, user_id, AccessLevel.READ)

    query = (
        db.query(models.Task)
        .join(models.Board, models.Task.board_id == models.Board.id)
        .filter(models.Task.project_id == project_id)
    )
    if board_id:
        query = query.filter(models.Task.board_id == board_id)
    if status:
        query = query.filter(models.Task.status == status)
    if priority:
        query = query.filter(models.Task.priority == priority)

    total = query.count()
    tasks = (
        query.order_by(models.Board.order, models.Task.order)
        .offset(skip)
        .limit(limit)
        .all()
    )
    return tasks, total


def update_task(
    db: Session,
    project_id: UUID,
    task_id: UUID,
    task_update: schemas.TaskUpdate,
    user_id: Optional[UUID] = None,
) -> models.Task:
    """
    Update task fields other than its position.

    Args:
        db: Database session
        project_id: Project UUID
        task_id: Task UUID
        task_update: Fields to change (unset fields are left alone)
        user_id: Acting user

    Returns:
        Updated task
    """
    _, task = resolve_task(db, project_id, task_id, user_id, AccessLevel.WRITE)

    for field, value in task_update.model_dump(exclude_unset=True).items():
        # title, status and priority are NOT NULL; an explicit null means "leave as is"
        if value is None and field in ("title", "status", "priority"):
            continue
        setattr(task, field, value)

    db.commit()
    db.refresh(task)
    logger.debug(f"Updated task {task_id}")
    return task


def delete_task(
    db: Session,
    project_id: UUID,
    task_id: UUID,
    user_id: Optional[UUID] = None,
) -> None:
    """Delete a task and close its slot on the board."""
    def _resolve():
        scope, _ = resolve_task(db, project_id, task_id, user_id, AccessLevel.WRITE)
        return (scope,)

    def _delete(repo: TaskSiblingRepository, scope) -> int:
        position = ordering.remove_at(repo, scope, task_id)
        db.delete(db.get(models.Task, task_id))
        return position

    position = TaskSiblingRepository(db).with_resolved_transaction(_resolve, _delete)
    logger.info(f"Deleted task {task_id} (was at {position})")


def move_task(
    db: Session,
    project_id: UUID,
    task_id: UUID,
    board_id: UUID,
    order: int,
    user_id: Optional[UUID] = None,
) -> models.Task:
    """
    Move a task to a position on its own board or on another board.

    Args:
        db: Database session
        project_id: Project UUID
        task_id: Task UUID
        board_id: Destination board (must be in the same project)
        order: Destination position (clamped)
        user_id: Acting user

    Returns:
        Moved task
    """
    def _resolve():
        source, _ = resolve_task(db, project_id, task_id, user_id, AccessLevel.WRITE)
        target = resolve_task_scope(db, project_id, board_id, user_id, access=AccessLevel.WRITE)
        validate_move_request(task_id, order)
        return source, target

    position = TaskSiblingRepository(db).with_resolved_transaction(
        _resolve,
        lambda repo, source, target: ordering.transfer(repo, source, target, task_id, order),
    )
    task = db.get(models.Task, task_id)
    db.refresh(task)
    logger.info(f"Moved task {task_id} to board {board_id} at {position}")
    return task


def reorder_tasks(
    db: Session,
    project_id: UUID,
    board_id: UUID,
    assignments: list[tuple[UUID, int]],
    user_id: Optional[UUID] = None,
) -> list[models.Task]:
    """
    Apply a drag-and-drop batch of task positions within one board.

    Returns:
        The board's tasks in their new order
    """
    def _resolve():
        scope = resolve_task_scope(db, project_id, board_id, user_id, access=AccessLevel.WRITE)
        validate_batch_request(assignments)
        return (scope,)

    TaskSiblingRepository(db).with_resolved_transaction(
        _resolve, lambda repo, scope: ordering.batch_reorder(repo, scope, assignments)
    )
    logger.info(f"Reordered {len(assignments)} tasks on board {board_id}")
    return (
        db.query(models.Task)
        .filter(models.Task.board_id == board_id)
        .order_by(models.Task.order)
        .all()
    )


def compact_tasks(
    db: Session,
    project_id: UUID,
    board_id: UUID,
    user_id: Optional[UUID] = None,
) -> int:
    """
    Renumber a board's tasks to 0..N-1, keeping their sequence. Owner only.

    Returns:
        Number of tasks whose order changed
    """
    def _resolve():
        return (resolve_task_scope(db, project_id, board_id, user_id, access=AccessLevel.OWNER),)

    changed = TaskSiblingRepository(db).with_resolved_transaction(_resolve, ordering.compact)
    logger.info(f"Compacted tasks of board {board_id}: {changed} renumbered")
    return changed
