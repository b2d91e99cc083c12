"""Project access checks.

Access levels:
- READ: project creator or any member (mentors join as viewers)
- WRITE: project creator, admins and editors
- OWNER: project creator and admins
"""
import enum
import logging
from typing import Optional
from uuid import UUID

from sqlalchemy.orm import Session

from . import models
from .errors import ForbiddenError

logger = logging.getLogger("edutasker-core.permissions")


class AccessLevel(int, enum.Enum):
    """Ordered access levels; a higher level implies the lower ones."""

    READ = 1
    WRITE = 2
    OWNER = 3


ROLE_ACCESS: dict[models.ProjectRole, AccessLevel] = {
    models.ProjectRole.VIEWER: AccessLevel.READ,
    models.ProjectRole.EDITOR: AccessLevel.WRITE,
    models.ProjectRole.ADMIN: AccessLevel.OWNER,
}


def get_project_access(
    db: Session,
    project: models.Project,
    user_id: Optional[UUID],
) -> Optional[AccessLevel]:
    """
    Get the access level a user holds on a project.

    Args:
        db: Database session
        project: Project instance
        user_id: User UUID (None for anonymous callers)

    Returns:
        Access level, or None if the user has no access
    """
    if user_id is None:
        return None
    if project.created_by_user_id == user_id:
        return AccessLevel.OWNER

    member = (
        db.query(models.ProjectMember)
        .filter(
            models.ProjectMember.project_id == project.id,
            models.ProjectMember.user_id == user_id,
        )
        .first()
    )
    if not member:
        return None
    return ROLE_ACCESS[member.role]


def require_project_access(
    db: Session,
    project: models.Project,
    user_id: Optional[UUID],
    required: AccessLevel,
) -> AccessLevel:
    """
    Ensure a user holds at least the required access level on a project.

    Raises:
        ForbiddenError: If the user's access is missing or too low
    """
    level = get_project_access(db, project, user_id)
    if level is None or level < required:
        logger.warning(
            f"User {user_id} denied {required.name} access to project {project.id} "
            f"(has {level.name if level else 'none'})"
        )
        if required == AccessLevel.OWNER:
            raise ForbiddenError("Access denied. Only project owners can perform this action.")
        raise ForbiddenError("Access denied. You are not a member of this project.")
    return level


def get_project_permissions(
    db: Session,
    project: models.Project,
    user_id: Optional[UUID],
) -> dict[str, bool]:
    """Permission flags for a user on a project's boards."""
    level = get_project_access(db, project, user_id) or 0
    return {
        "can_read": level >= AccessLevel.READ,
        "can_create": level >= AccessLevel.WRITE,
        "can_update": level >= AccessLevel.WRITE,
        "can_delete": level >= AccessLevel.OWNER,
    }
