"""Tasks API endpoints.

Tasks are ordered within their board. Field edits go through PATCH; position
changes (same board or another board) go through /move.
"""
import logging
from math import ceil
from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from ... import crud, models, schemas
from ...database import get_db
from ..dependencies import get_current_user

logger = logging.getLogger("edutasker-core.tasks")

router = APIRouter(tags=["tasks"])


@router.post("", response_model=schemas.TaskResponse, status_code=201)
def create_task(
    project_id: UUID,
    task_data: schemas.TaskCreate,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_user),
):
    """
    Create a task on a board.

    - **board_id**: Board in this project
    - **title**: Task title
    - **description**: Task description (optional)
    - **status**: todo, in_progress, review or done
    - **priority**: low, medium, high or critical
    - **due_date**: Due date (optional)
    - **order**: Position on the board (optional; appended when omitted)
    """
    return crud.create_task(db, project_id, task_data, current_user.id)


@router.get("", response_model=schemas.TaskListResponse)
def list_tasks(
    project_id: UUID,
    page: int = Query(1, ge=1, description="Page number"),
    page_size: int = Query(50, ge=1, le=100, description="Items per page"),
    board_id: Optional[UUID] = Query(None, description="Filter by board"),
    status: Optional[models.TaskStatus] = Query(None, description="Filter by status"),
    priority: Optional[models.TaskPriority] = Query(None, description="Filter by priority"),
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_user),
):
    """
    List a project's tasks, ordered by board position then task position.

    - **page**: Page number (starts at 1)
    - **page_size**: Number of items per page (1-100)
    - **board_id**: Filter by board
    - **status**: Filter by status
    - **priority**: Filter by priority
    """
    skip = (page - 1) * page_size

    tasks, total = crud.get_tasks(
        db=db,
        project_id=project_id,
        user_id=current_user.id,
        board_id=board_id,
        status=status,
        priority=priority,
        skip=skip,
        limit=page_size,
    )

    return schemas.TaskListResponse(
        items=tasks,
        total=total,
        page=page,
        page_size=page_size,
        total_pages=ceil(total / page_size) if total > 0 else 0,
    )


@router.get("/{task_id}", response_model=schemas.TaskResponse)
def get_task(
    project_id: UUID,
    task_id: UUID,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_user),
):
    """Get a specific task by ID."""
    return crud.get_task(db, project_id, task_id, current_user.id)


@router.patch("/{task_id}", response_model=schemas.TaskResponse)
def update_task(
    project_id: UUID,
    task_id: UUID,
    task_update: schemas.TaskUpdate,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_user),
):
    """
    Update a task.

    - **title**: New title (optional)
    - **description**: New description (optional)
    - **status**: New status (optional)
    - **priority**: New priority (optional)
    - **due_date**: New due date (optional)
    """
    return crud.update_task(db, project_id, task_id, task_update, current_user.id)


@router.delete("/{task_id}", status_code=204)
def delete_task(
    project_id: UUID,
    task_id: UUID,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_user),
):
    """Delete a task; later tasks on its board move up by one."""
    crud.delete_task(db, project_id, task_id, current_user.id)
    return None


@router.post("/{task_id}/move", response_model=schemas.TaskResponse)
def move_task(
    project_id: UUID,
    task_id: UUID,
    move: schemas.TaskMove,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_user),
):
    """
    Move a task to a position on its board or on another board.

    - **board_id**: Destination board (same project)
    - **order**: Destination position (clamped to the end of the board)
    """
    return crud.move_task(
        db,
        project_id=project_id,
        task_id=task_id,
        board_id=move.board_id,
        order=move.order,
        user_id=current_user.id,
    )
