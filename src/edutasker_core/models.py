"""SQLAlchemy database models."""
from datetime import datetime
from uuid import uuid4
import enum

from sqlalchemy import (
    Column,
    String,
    Text,
    Integer,
    DateTime,
    ForeignKey,
    Enum,
    CheckConstraint,
    Boolean,
    UniqueConstraint,
    Index,
    Uuid,
)
from sqlalchemy.orm import declarative_base, relationship

# Base class for all models
Base = declarative_base()


class ProjectStatus(str, enum.Enum):
    """Project status enum."""

    ACTIVE = "active"
    ARCHIVED = "archived"
    PLANNING = "planning"
    ON_HOLD = "on_hold"


class ProjectRole(str, enum.Enum):
    """Project member role enum.

    - admin: full control, including board deletion
    - editor: create, update and reorder boards and tasks
    - viewer: read-only (mentors)
    """

    ADMIN = "admin"
    EDITOR = "editor"
    VIEWER = "viewer"


class TaskStatus(str, enum.Enum):
    """Task status enum."""

    TODO = "todo"
    IN_PROGRESS = "in_progress"
    REVIEW = "review"
    DONE = "done"


class TaskPriority(str, enum.Enum):
    """Task priority enum."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class User(Base):
    """
    User model.

    Users are provisioned by the surrounding identity system; this table
    only holds what boards and tasks reference.
    """

    __tablename__ = "users"

    id = Column(Uuid, primary_key=True, default=uuid4)
    email = Column(String(255), nullable=False, unique=True, index=True)
    full_name = Column(String(255))
    is_active = Column(Boolean, nullable=False, default=True, index=True)

    # Audit fields
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)
    updated_at = Column(DateTime, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow)

    def __repr__(self) -> str:
        return f"<User {self.email}>"


class Project(Base):
    """
    Project model.

    A project owns an ordered list of boards. The creator is the project
    owner; other users gain access through ProjectMember rows.
    """

    __tablename__ = "projects"

    id = Column(Uuid, primary_key=True, default=uuid4)
    name = Column(String(255), nullable=False)
    description = Column(Text)
    status = Column(
        Enum(ProjectStatus, values_callable=lambda x: [e.value for e in x]),
        nullable=False,
        default=ProjectStatus.ACTIVE,
        index=True
    )

    # Audit fields
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow, index=True)
    updated_at = Column(DateTime, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow)
    created_by_user_id = Column(Uuid, ForeignKey("users.id", ondelete="SET NULL"), index=True)

    # Relationships
    members = relationship("ProjectMember", back_populates="project", cascade="all, delete-orphan")
    boards = relationship(
        "Board",
        back_populates="project",
        cascade="all, delete-orphan",
        order_by="Board.order",
    )
    created_by_user = relationship("User", foreign_keys=[created_by_user_id])

    def __repr__(self) -> str:
        return f"<Project {self.id}: {self.name}>"


class ProjectMember(Base):
    """
    Junction table linking users to projects with roles.

    Defines what access level a user has within a project.
    """

    __tablename__ = "project_members"

    id = Column(Uuid, primary_key=True, default=uuid4)
    project_id = Column(Uuid, ForeignKey("projects.id", ondelete="CASCADE"), nullable=False, index=True)
    user_id = Column(Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    role = Column(
        Enum(ProjectRole, values_callable=lambda x: [e.value for e in x]),
        nullable=False,
        default=ProjectRole.EDITOR,
        index=True
    )
    joined_at = Column(DateTime, nullable=False, default=datetime.utcnow)

    # Relationships
    project = relationship("Project", back_populates="members")
    user = relationship("User", backref="project_memberships")

    # Constraints
    __table_args__ = (
        UniqueConstraint("project_id", "user_id", name="unique_project_user"),
    )

    def __repr__(self) -> str:
        return f"<ProjectMember {self.role.value}>"


class Board(Base):
    """
    Board (kanban column) within a project.

    ``order`` is the board's position among the project's boards. Within one
    project the orders are always exactly 0..N-1; only the ordering engine
    writes them.
    """

    __tablename__ = "boards"

    id = Column(Uuid, primary_key=True, default=uuid4)
    project_id = Column(Uuid, ForeignKey("projects.id", ondelete="CASCADE"), nullable=False)
    name = Column(String(100), nullable=False)
    order = Column(Integer, nullable=False, default=0)

    # Audit fields
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)
    updated_at = Column(DateTime, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow)

    # Relationships
    project = relationship("Project", back_populates="boards")
    tasks = relationship(
        "Task",
        back_populates="board",
        cascade="all, delete-orphan",
        order_by="Task.order",
    )

    # Not unique: a bulk shift overlaps values mid-statement on engines that
    # check uniqueness per row.
    __table_args__ = (
        CheckConstraint('"order" >= 0', name="board_order_non_negative"),
        Index("idx_boards_project_order", "project_id", "order"),
    )

    def __repr__(self) -> str:
        return f"<Board {self.name} #{self.order}>"


class Task(Base):
    """
    Task card on a board.

    ``order`` is the task's position among the tasks of its board.
    ``project_id`` is denormalized from the board for project-wide queries.
    """

    __tablename__ = "tasks"

    id = Column(Uuid, primary_key=True, default=uuid4)
    project_id = Column(Uuid, ForeignKey("projects.id", ondelete="CASCADE"), nullable=False, index=True)
    board_id = Column(Uuid, ForeignKey("boards.id", ondelete="CASCADE"), nullable=False)

    # Core task fields
    title = Column(String(200), nullable=False)
    description = Column(Text, nullable=True)
    # Use values_callable to serialize enum values (lowercase) instead of names (UPPERCASE)
    status = Column(Enum(TaskStatus, values_callable=lambda obj: [e.value for e in obj]), nullable=False, default=TaskStatus.TODO, index=True)
    priority = Column(Enum(TaskPriority, values_callable=lambda obj: [e.value for e in obj]), nullable=False, default=TaskPriority.MEDIUM, index=True)
    due_date = Column(DateTime, nullable=True, index=True)
    order = Column(Integer, nullable=False, default=0)

    # Audit fields
    created_by = Column(Uuid, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow, index=True)
    updated_at = Column(DateTime, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow)

    # Relationships
    project = relationship("Project")
    board = relationship("Board", back_populates="tasks")
    creator = relationship("User", foreign_keys=[created_by])

    __table_args__ = (
        CheckConstraint('"order" >= 0', name="task_order_non_negative"),
        Index("idx_tasks_board_order", "board_id", "order"),
    )

    def __repr__(self) -> str:
        return f"<Task {self.title[:30]} #{self.order}>"
