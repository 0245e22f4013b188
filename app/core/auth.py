from typing import Any, Dict
import logging
import uuid

from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
import jwt
from jwt import PyJWTError
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import settings
from app.core.database import get_db
from app.core.exceptions import AuthenticationError, ForbiddenError
from app.models.user import User, UserRole
from app.services.policies import Actor

logger = logging.getLogger(__name__)

bearer_scheme = HTTPBearer(auto_error=False)


def decode_access_token(token: str) -> Dict[str, Any]:
    """Verify signature and expiry of a bearer token issued by the auth service"""
    try:
        return jwt.decode(token, settings.SECRET_KEY, algorithms=[settings.ALGORITHM])
    except PyJWTError as e:
        raise AuthenticationError("Invalid or expired token") from e


async def get_current_user(
    credentials: HTTPAuthorizationCredentials = Depends(bearer_scheme),
    db: AsyncSession = Depends(get_db)
) -> User:
    """Resolve the bearer token to an active user"""
    if credentials is None:
        raise AuthenticationError("Access token is required")

    payload = decode_access_token(credentials.credentials)
    try:
        user_id = uuid.UUID(str(payload.get("sub")))
    except ValueError as e:
        raise AuthenticationError("Token subject is not a user id") from e

    result = await db.execute(select(User).where(User.id == user_id))
    user = result.scalar_one_or_none()
    if not user:
        raise AuthenticationError("User not found")
    if not user.is_active:
        raise AuthenticationError("Account is deactivated. Please contact support.")
    return user


async def get_current_actor(current_user: User = Depends(get_current_user)) -> Actor:
    return Actor(id=current_user.id, role=current_user.role)


def require_roles(*roles: UserRole):
    """Dependency factory that only lets the given roles through"""

    async def dependency(actor: Actor = Depends(get_current_actor)) -> Actor:
        if actor.role not in roles:
            logger.warning(f"User {actor.id} with role {actor.role.value} denied, needs one of {[r.value for r in roles]}")
            raise ForbiddenError("Access denied. Insufficient permissions.")
        return actor

    return dependency
