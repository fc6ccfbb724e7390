# Filename: bantconfirm/users.py
# Admin user management: listing, vendor approval, suspension.

import logging
from typing import List

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from bantconfirm.errors import NotFoundError, PersistenceError, ValidationError
from bantconfirm.models import User, UserRole, UserStatus

logger = logging.getLogger(__name__)


def list_users(db: Session) -> List[User]:
    try:
        return db.query(User).order_by(User.created_at.desc(), User.id.desc()).all()
    except SQLAlchemyError as e:
        logger.error(f"DB read error (users): {e}")
        raise PersistenceError("Failed to load users.") from e


def set_status(db: Session, user_id: str, status: str) -> User:
    """Change an account's status. Admin accounts can never be suspended."""
    try:
        status = UserStatus(status).value
    except ValueError:
        raise ValidationError(f"Unknown status {status!r}")

    try:
        user = db.get(User, user_id)
    except SQLAlchemyError as e:
        db.rollback()
        logger.error(f"DB read error (user {user_id}): {e}")
        raise PersistenceError("Failed to load user.") from e
    if user is None:
        raise NotFoundError(f"User {user_id} not found")
    if user.role == UserRole.ADMIN.value and status == UserStatus.SUSPENDED.value:
        raise ValidationError("Admin accounts cannot be suspended")

    try:
        user.status = status
        db.commit()
        db.refresh(user)
    except SQLAlchemyError as e:
        db.rollback()
        logger.error(f"Failed to update user status: {e}")
        raise PersistenceError("Failed to update user status.") from e
    logger.info(f"User {user.id} ({user.role}) is now {status}")
    return user
