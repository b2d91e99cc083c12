"""Request dependencies shared by the routers."""
import logging
from typing import Optional
from uuid import UUID

from fastapi import Depends, Header, HTTPException
from sqlalchemy.orm import Session

from .. import crud, models
from ..database import get_db

logger = logging.getLogger("edutasker-core.auth")


def get_current_user(
    x_user_id: Optional[str] = Header(None, description="Acting user UUID"),
    db: Session = Depends(get_db),
) -> models.User:
    """
    Resolve the acting user from the ``X-User-Id`` header.

    Token validation happens upstream; this only checks that the header names
    an existing, active user.

    Raises:
        HTTPException: 401 if the header is missing, malformed or unknown
    """
    if not x_user_id:
        raise HTTPException(status_code=401, detail="Authentication required")

    try:
        user_id = UUID(x_user_id)
    except ValueError:
        logger.warning(f"Rejected malformed X-User-Id header: {x_user_id!r}")
        raise HTTPException(status_code=401, detail="Invalid user ID")

    user = crud.get_user(db, user_id)
    if not user or not user.is_active:
        logger.warning(f"Rejected unknown or inactive user {user_id}")
        raise HTTPException(status_code=401, detail="Unknown user")
    return user
