"""Pydantic schemas for request/response validation."""
from datetime import datetime
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, Field, ConfigDict, model_validator

from .models import (
    ProjectStatus,
    ProjectRole,
    TaskStatus,
    TaskPriority,
)


# ============================================================================
# User Schemas
# ============================================================================

class UserCreate(BaseModel):
    """Schema for creating a user."""

    email: str = Field(..., min_length=3, max_length=255)
    full_name: Optional[str] = Field(None, max_length=255)


class UserResponse(BaseModel):
    """Schema for user responses."""

    id: UUID
    email: str
    full_name: Optional[str] = None
    is_active: bool
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


# ============================================================================
# Project Schemas
# ============================================================================

class ProjectBase(BaseModel):
    """Base schema for project fields."""

    name: str = Field(..., min_length=1, max_length=255)
    description: Optional[str] = None
    status: ProjectStatus = ProjectStatus.ACTIVE


class ProjectCreate(ProjectBase):
    """Schema for creating a new project."""

    pass


class ProjectResponse(ProjectBase):
    """Schema for project responses."""

    id: UUID
    created_at: datetime
    updated_at: datetime
    created_by_user_id: Optional[UUID] = None

    model_config = ConfigDict(from_attributes=True, use_enum_values=True)


class ProjectMemberCreate(BaseModel):
    """Schema for adding a user to a project."""

    user_id: UUID
    role: ProjectRole = ProjectRole.EDITOR


class ProjectMemberResponse(BaseModel):
    """Schema for project member responses."""

    id: UUID
    project_id: UUID
    user_id: UUID
    role: ProjectRole
    joined_at: datetime

    model_config = ConfigDict(from_attributes=True, use_enum_values=True)


# ============================================================================
# Board Schemas
# ============================================================================

class BoardCreate(BaseModel):
    """Schema for creating a board.

    Without ``order`` the board is appended after the existing boards.
    """

    name: str = Field(..., min_length=1, max_length=100)
    order: Optional[int] = Field(None, ge=0, description="Position among the project's boards")


class BoardUpdate(BaseModel):
    """Schema for updating a board (rename and/or move)."""

    name: Optional[str] = Field(None, min_length=1, max_length=100)
    order: Optional[int] = Field(None, ge=0)

    @model_validator(mode="after")
    def require_one_field(self):
        if self.name is None and self.order is None:
            raise ValueError("At least one field must be provided for update")
        return self


class BoardReorderItem(BaseModel):
    """Target position for one board."""

    board_id: UUID
    new_order: int = Field(..., ge=0)


class BoardReorderRequest(BaseModel):
    """Batch of board positions (drag-and-drop)."""

    boards: list[BoardReorderItem] = Field(..., min_length=1)


class TaskSummary(BaseModel):
    """Compact task shown inside a board."""

    id: UUID
    title: str
    status: TaskStatus
    priority: TaskPriority
    order: int
    due_date: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True, use_enum_values=True)


class BoardPermissions(BaseModel):
    """What the caller may do with a board."""

    can_read: bool
    can_create: bool
    can_update: bool
    can_delete: bool


class BoardResponse(BaseModel):
    """Schema for board responses."""

    id: UUID
    project_id: UUID
    name: str
    order: int
    tasks: Optional[list[TaskSummary]] = None
    task_count: Optional[int] = None
    permissions: Optional[BoardPermissions] = None

    model_config = ConfigDict(from_attributes=True)


class BoardListResponse(BaseModel):
    """Boards of a project in order."""

    boards: list[BoardResponse]
    total: int
    project_id: UUID


class BoardStats(BaseModel):
    """Task counts of a board."""

    id: UUID
    name: str
    total_tasks: int
    tasks_by_status: dict[str, int]
    tasks_by_priority: dict[str, int]


class CompactResult(BaseModel):
    """Outcome of renumbering a sibling set to 0..N-1."""

    changed: int = Field(..., description="Rows whose order was rewritten")


# ============================================================================
# Task Schemas
# ============================================================================

class TaskCreate(BaseModel):
    """Schema for creating a task.

    Without ``order`` the task is appended to the end of its board.
    """

    board_id: UUID
    title: str = Field(..., min_length=1, max_length=200)
    description: Optional[str] = None
    status: TaskStatus = TaskStatus.TODO
    priority: TaskPriority = TaskPriority.MEDIUM
    due_date: Optional[datetime] = None
    order: Optional[int] = Field(None, ge=0)


class TaskUpdate(BaseModel):
    """Schema for updating task fields. Position changes go through /move."""

    title: Optional[str] = Field(None, min_length=1, max_length=200)
    description: Optional[str] = None
    status: Optional[TaskStatus] = None
    priority: Optional[TaskPriority] = None
    due_date: Optional[datetime] = None


class TaskMove(BaseModel):
    """Move a task to a position on the same or another board."""

    board_id: UUID
    order: int = Field(..., ge=0)


class TaskReorderItem(BaseModel):
    """Target position for one task."""

    task_id: UUID
    new_order: int = Field(..., ge=0)


class TaskReorderRequest(BaseModel):
    """Batch of task positions within one board."""

    tasks: list[TaskReorderItem] = Field(..., min_length=1)


class TaskResponse(BaseModel):
    """Schema for task responses."""

    id: UUID
    project_id: UUID
    board_id: UUID
    title: str
    description: Optional[str] = None
    status: TaskStatus
    priority: TaskPriority
    due_date: Optional[datetime] = None
    order: int
    created_by: Optional[UUID] = None
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True, use_enum_values=True)


class TaskListResponse(BaseModel):
    """Schema for paginated task list."""

    items: list[TaskResponse]
    total: int
    page: int
    page_size: int
    total_pages: int
