"""Initial schema: users, projects, members, ordered boards and tasks.

Revision ID: 001
Revises:
Create Date: 2026-10-19

This migration adds:
- users table
- projects and project_members tables (project-level access control)
- boards table, ordered within a project
- tasks table, ordered within a board
- composite (parent, order) indexes for the ordering engine

The (parent, order) indexes are deliberately non-unique: a bulk shift moves
values through each other mid-statement, which a per-row unique check rejects.
Density is maintained by the ordering engine under the scope lock.
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = '001'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


project_status_enum = sa.Enum('active', 'archived', 'planning', 'on_hold', name='projectstatus')
project_role_enum = sa.Enum('admin', 'editor', 'viewer', name='projectrole')
task_status_enum = sa.Enum('todo', 'in_progress', 'review', 'done', name='taskstatus')
task_priority_enum = sa.Enum('low', 'medium', 'high', 'critical', name='taskpriority')


def upgrade() -> None:
    """Create all tables."""

    # 1. Users
    op.create_table(
        'users',
        sa.Column('id', sa.Uuid, primary_key=True),
        sa.Column('email', sa.String(255), nullable=False),
        sa.Column('full_name', sa.String(255)),
        sa.Column('is_active', sa.Boolean, nullable=False, server_default=sa.true()),
        sa.Column('created_at', sa.DateTime, nullable=False, server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime, nullable=False, server_default=sa.func.now()),
    )
    op.create_index('ix_users_email', 'users', ['email'], unique=True)
    op.create_index('ix_users_is_active', 'users', ['is_active'])

    # 2. Projects
    op.create_table(
        'projects',
        sa.Column('id', sa.Uuid, primary_key=True),
        sa.Column('name', sa.String(255), nullable=False),
        sa.Column('description', sa.Text),
        sa.Column('status', project_status_enum, nullable=False, server_default='active'),
        sa.Column('created_at', sa.DateTime, nullable=False, server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime, nullable=False, server_default=sa.func.now()),
        sa.Column('created_by_user_id', sa.Uuid, sa.ForeignKey('users.id', ondelete='SET NULL')),
    )
    op.create_index('ix_projects_status', 'projects', ['status'])
    op.create_index('ix_projects_created_at', 'projects', ['created_at'])
    op.create_index('ix_projects_created_by_user_id', 'projects', ['created_by_user_id'])

    # 3. Project members
    op.create_table(
        'project_members',
        sa.Column('id', sa.Uuid, primary_key=True),
        sa.Column('project_id', sa.Uuid, sa.ForeignKey('projects.id', ondelete='CASCADE'), nullable=False),
        sa.Column('user_id', sa.Uuid, sa.ForeignKey('users.id', ondelete='CASCADE'), nullable=False),
        sa.Column('role', project_role_enum, nullable=False, server_default='editor'),
        sa.Column('joined_at', sa.DateTime, nullable=False, server_default=sa.func.now()),
        sa.UniqueConstraint('project_id', 'user_id', name='unique_project_user'),
    )
    op.create_index('ix_project_members_project_id', 'project_members', ['project_id'])
    op.create_index('ix_project_members_user_id', 'project_members', ['user_id'])
    op.create_index('ix_project_members_role', 'project_members', ['role'])

    # 4. Boards (ordered within project)
    op.create_table(
        'boards',
        sa.Column('id', sa.Uuid, primary_key=True),
        sa.Column('project_id', sa.Uuid, sa.ForeignKey('projects.id', ondelete='CASCADE'), nullable=False),
        sa.Column('name', sa.String(100), nullable=False),
        sa.Column('order', sa.Integer, nullable=False, server_default='0'),
        sa.Column('created_at', sa.DateTime, nullable=False, server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime, nullable=False, server_default=sa.func.now()),
        sa.CheckConstraint('"order" >= 0', name='board_order_non_negative'),
    )
    op.create_index('idx_boards_project_order', 'boards', ['project_id', 'order'])

    # 5. Tasks (ordered within board)
    op.create_table(
        'tasks',
        sa.Column('id', sa.Uuid, primary_key=True),
        sa.Column('project_id', sa.Uuid, sa.ForeignKey('projects.id', ondelete='CASCADE'), nullable=False),
        sa.Column('board_id', sa.Uuid, sa.ForeignKey('boards.id', ondelete='CASCADE'), nullable=False),
        sa.Column('title', sa.String(200), nullable=False),
        sa.Column('description', sa.Text),
        sa.Column('status', task_status_enum, nullable=False, server_default='todo'),
        sa.Column('priority', task_priority_enum, nullable=False, server_default='medium'),
        sa.Column('due_date', sa.DateTime),
        sa.Column('order', sa.Integer, nullable=False, server_default='0'),
        sa.Column('created_by', sa.Uuid, sa.ForeignKey('users.id', ondelete='SET NULL')),
        sa.Column('created_at', sa.DateTime, nullable=False, server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime, nullable=False, server_default=sa.func.now()),
        sa.CheckConstraint('"order" >= 0', name='task_order_non_negative'),
    )
    op.create_index('idx_tasks_board_order', 'tasks', ['board_id', 'order'])
    op.create_index('ix_tasks_project_id', 'tasks', ['project_id'])
    op.create_index('ix_tasks_status', 'tasks', ['status'])
    op.create_index('ix_tasks_priority', 'tasks', ['priority'])
    op.create_index('ix_tasks_due_date', 'tasks', ['due_date'])
    op.create_index('ix_tasks_created_at', 'tasks', ['created_at'])


def downgrade() -> None:
    """Drop all tables and enum types."""
    op.drop_table('tasks')
    op.drop_table('boards')
    op.drop_table('project_members')
    op.drop_table('projects')
    op.drop_table('users')

    bind = op.get_bind()
    for enum_type in (task_priority_enum, task_status_enum, project_role_enum, project_status_enum):
        enum_type.drop(bind, checkfirst=True)
