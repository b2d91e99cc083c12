"""Users API endpoints."""
import logging
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from ... import crud, schemas
from ...database import get_db

logger = logging.getLogger("edutasker-core.users")

router = APIRouter(tags=["users"])


@router.post("/", response_model=schemas.UserResponse, status_code=201)
def create_user(
    user: schemas.UserCreate,
    db: Session = Depends(get_db),
):
    """
    Register a user.

    - **email**: Unique email address
    - **full_name**: Optional display name
    """
    try:
        result = crud.create_user(db, email=user.email, full_name=user.full_name)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    logger.info(f"Created user {result.email} (ID: {result.id})")
    return result


@router.get("/{user_id}", response_model=schemas.UserResponse)
def get_user(
    user_id: UUID,
    db: Session = Depends(get_db),
):
    """Get a user by ID."""
    user = crud.get_user(db, user_id)
    if not user:
        raise HTTPException(status_code=404, detail="User not found")
    return user
