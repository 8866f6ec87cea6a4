"""
Caller identity.

Authentication is handled upstream; the gateway forwards the
authenticated user's id in ``X-User-Id``. Here it is only resolved
against the users table and checked for role.
"""

import logging
from typing import Optional

from fastapi import Depends, Header
from sqlalchemy.orm import Session

from ...core.exceptions import ForbiddenException, UnauthorizedException
from ...models.user import User
from ...repositories.factory import RepositoryFactory
from .database import get_db

logger = logging.getLogger(__name__)


def get_current_user(
    x_user_id: Optional[str] = Header(default=None, alias="X-User-Id"),
    db: Session = Depends(get_db),
) -> User:
    if not x_user_id:
        raise UnauthorizedException("Missing X-User-Id header").to_http_exception()
    user = RepositoryFactory.create_user_repository(db).get_by_id(x_user_id)
    if user is None or not user.is_active:
        logger.warning("Rejected request for unknown or inactive user %s", x_user_id)
        raise UnauthorizedException("Unknown user").to_http_exception()
    return user


def require_admin(current_user: User = Depends(get_current_user)) -> User:
    if not current_user.is_admin:
        raise ForbiddenException("Admin access required").to_http_exception()
    return current_user


def require_tutor_or_admin(current_user: User = Depends(get_current_user)) -> User:
    if not (current_user.is_tutor or current_user.is_admin):
        raise ForbiddenException("Tutor or admin access required").to_http_exception()
    return current_user


def require_parent(current_user: User = Depends(get_current_user)) -> User:
    if not current_user.is_parent:
        raise ForbiddenException("Parent access required").to_http_exception()
    return current_user
