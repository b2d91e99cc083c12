"""Projects API endpoints."""
import logging
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from ... import crud, models, schemas
from ...database import get_db
from ...permissions import AccessLevel
from ...scope import resolve_project
from ..dependencies import get_current_user

logger = logging.getLogger("edutasker-core.projects")

router = APIRouter(tags=["projects"])


@router.post("/", response_model=schemas.ProjectResponse, status_code=201)
def create_project(
    project: schemas.ProjectCreate,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_user),
):
    """
    Create a new project owned by the caller.

    - **name**: Project name
    - **description**: Optional description
    - **status**: Project status (default: active)
    """
    try:
        result = crud.create_project(
            db=db,
            name=project.name,
            description=project.description,
            status=project.status,
            user_id=current_user.id,
        )
        logger.info(f"Created project '{result.name}' (ID: {result.id})")
        return result
    except Exception as e:
        logger.error(f"Error creating project: {e}", exc_info=True)
        raise


@router.get("/{project_id}", response_model=schemas.ProjectResponse)
def get_project(
    project_id: UUID,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_user),
):
    """
    Get a specific project by ID.
    """
    return resolve_project(db, project_id, current_user.id, AccessLevel.READ)


@router.delete("/{project_id}", status_code=204)
def delete_project(
    project_id: UUID,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_user),
):
    """
    Delete a project with all its boards and tasks.

    Only the project creator may delete it.
    """
    project = resolve_project(db, project_id, current_user.id, AccessLevel.OWNER)
    if project.created_by_user_id != current_user.id:
        raise HTTPException(status_code=403, detail="Only the project creator can delete the project")

    crud.delete_project(db, project_id)
    logger.info(f"Deleted project {project_id}")
    return None


@router.get("/{project_id}/members", response_model=list[schemas.ProjectMemberResponse])
def list_project_members(
    project_id: UUID,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_user),
):
    """List the members of a project."""
    resolve_project(db, project_id, current_user.id, AccessLevel.READ)
    return crud.get_project_members(db, project_id)


@router.post("/{project_id}/members", response_model=schemas.ProjectMemberResponse, status_code=201)
def add_project_member(
    project_id: UUID,
    member: schemas.ProjectMemberCreate,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_user),
):
    """
    Add a user to a project.

    - **user_id**: User to add
    - **role**: admin, editor or viewer (mentors join as viewers)
    """
    try:
        return crud.add_project_member(
            db,
            project_id=project_id,
            user_id=member.user_id,
            role=member.role,
            acting_user_id=current_user.id,
        )
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
