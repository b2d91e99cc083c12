"""Boards API endpoints.

Boards are ordered within their project; every write goes through the
ordering engine so positions stay 0..N-1.
"""
import logging
from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from ... import crud, models, schemas
from ...database import get_db
from ..dependencies import get_current_user

logger = logging.getLogger("edutasker-core.boards")

router = APIRouter(tags=["boards"])


def _board_to_response(
    board: models.Board,
    include_tasks: bool = False,
    task_count: Optional[int] = None,
    permissions: Optional[dict[str, bool]] = None,
) -> schemas.BoardResponse:
    """Convert Board model to BoardResponse schema."""
    return schemas.BoardResponse(
        id=board.id,
        project_id=board.project_id,
        name=board.name,
        order=board.order,
        tasks=[schemas.TaskSummary.model_validate(t) for t in board.tasks] if include_tasks else None,
        task_count=task_count,
        permissions=schemas.BoardPermissions(**permissions) if permissions else None,
    )


@router.post("", response_model=schemas.BoardResponse, status_code=201)
def create_board(
    project_id: UUID,
    board: schemas.BoardCreate,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_user),
):
    """
    Create a board in a project.

    - **name**: Board name (1-100 characters)
    - **order**: Position among the project's boards (optional; appended when
      omitted, clamped to the end when too large)
    """
    result = crud.create_board(
        db,
        project_id=project_id,
        name=board.name,
        order=board.order,
        user_id=current_user.id,
    )
    return _board_to_response(result)


@router.get("", response_model=schemas.BoardListResponse)
def list_boards(
    project_id: UUID,
    include_tasks: bool = Query(False, description="Embed each board's tasks in order"),
    include_task_count: bool = Query(False, description="Add each board's task count"),
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_user),
):
    """
    List a project's boards in position order.

    - **include_tasks**: Embed tasks (ordered) in each board
    - **include_task_count**: Include the number of tasks per board
    """
    boards = crud.get_project_boards(db, project_id, current_user.id)
    counts = crud.get_board_task_counts(db, [b.id for b in boards]) if include_task_count else {}

    return schemas.BoardListResponse(
        boards=[_board_to_response(b, include_tasks, counts.get(b.id)) for b in boards],
        total=len(boards),
        project_id=project_id,
    )


@router.put("/reorder", response_model=schemas.BoardListResponse)
def reorder_boards(
    project_id: UUID,
    request: schemas.BoardReorderRequest,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_user),
):
    """
    Reorder boards after a drag-and-drop.

    - **boards**: List of `{board_id, new_order}`; targets must be unique
    """
    boards = crud.reorder_boards(
        db,
        project_id=project_id,
        assignments=[(item.board_id, item.new_order) for item in request.boards],
        user_id=current_user.id,
    )
    return schemas.BoardListResponse(
        boards=[_board_to_response(b) for b in boards],
        total=len(boards),
        project_id=project_id,
    )


@router.post("/compact", response_model=schemas.CompactResult)
def compact_boards(
    project_id: UUID,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_user),
):
    """
    Renumber the project's boards to 0..N-1 without changing their sequence.

    Repairs positions left with gaps by imports or manual edits. Owner only.
    """
    changed = crud.compact_boards(db, project_id, current_user.id)
    return schemas.CompactResult(changed=changed)


@router.get("/{board_id}", response_model=schemas.BoardResponse)
def get_board(
    project_id: UUID,
    board_id: UUID,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_user),
):
    """
    Get a board with its tasks and the caller's permissions on it.
    """
    board = crud.get_board(db, project_id, board_id, current_user.id)
    permissions = crud.get_board_permissions(db, project_id, current_user.id)
    return _board_to_response(
        board,
        include_tasks=True,
        task_count=len(board.tasks),
        permissions=permissions,
    )


@router.patch("/{board_id}", response_model=schemas.BoardResponse)
def update_board(
    project_id: UUID,
    board_id: UUID,
    board_update: schemas.BoardUpdate,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_user),
):
    """
    Rename and/or move a board.

    - **name**: New name (optional)
    - **order**: New position (optional; siblings in between shift by one)
    """
    board = crud.update_board(
        db,
        project_id=project_id,
        board_id=board_id,
        name=board_update.name,
        order=board_update.order,
        user_id=current_user.id,
    )
    return _board_to_response(board)


@router.delete("/{board_id}", status_code=204)
def delete_board(
    project_id: UUID,
    board_id: UUID,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_user),
):
    """
    Delete an empty board. Only project owners may delete boards.
    """
    crud.delete_board(db, project_id, board_id, current_user.id)
    return None


@router.get("/{board_id}/stats", response_model=schemas.BoardStats)
def get_board_stats(
    project_id: UUID,
    board_id: UUID,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_user),
):
    """Task counts of a board by status and priority."""
    return crud.get_board_stats(db, project_id, board_id, current_user.id)


@router.put("/{board_id}/tasks/reorder", response_model=list[schemas.TaskResponse])
def reorder_tasks(
    project_id: UUID,
    board_id: UUID,
    request: schemas.TaskReorderRequest,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_user),
):
    """
    Reorder the tasks of one board after a drag-and-drop.

    - **tasks**: List of `{task_id, new_order}`; targets must be unique
    """
    return crud.reorder_tasks(
        db,
        project_id=project_id,
        board_id=board_id,
        assignments=[(item.task_id, item.new_order) for item in request.tasks],
        user_id=current_user.id,
    )


@router.post("/{board_id}/tasks/compact", response_model=schemas.CompactResult)
def compact_tasks(
    project_id: UUID,
    board_id: UUID,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_user),
):
    """Renumber one board's tasks to 0..N-1. Owner only."""
    changed = crud.compact_tasks(db, project_id, board_id, current_user.id)
    return schemas.CompactResult(changed=changed)
