import uuid
from typing import Optional

from fastapi import Depends
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from jose import JWTError
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
import structlog

from mrms.database import get_db
from mrms.errors import Unauthenticated
from mrms.models.user import User
from mrms.services.auth_service import verify_access_token

logger = structlog.get_logger()

security = HTTPBearer(auto_error=False)


async def resolve_user(session: AsyncSession, subject: str) -> User:
    """Map a token subject onto an active user row, failing closed."""
    try:
        user_id = uuid.UUID(str(subject))
    except (ValueError, TypeError):
        raise Unauthenticated("User not found")

    result = await session.execute(select(User).where(User.id == user_id))
    user = result.scalar_one_or_none()
    if not user or not user.is_active:
        raise Unauthenticated("User not found")
    return user


async def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    db: AsyncSession = Depends(get_db),
) -> User:
    """FastAPI dependency: verify the bearer token and load the calling user."""
    if credentials is None:
        raise Unauthenticated("Not authenticated")
    try:
        payload = verify_access_token(credentials.credentials)
    except JWTError as e:
        logger.warning("auth_token_invalid", error=str(e))
        raise Unauthenticated("Not authenticated")

    user = await resolve_user(db, payload["sub"])
    structlog.contextvars.bind_contextvars(user_id=str(user.id), role=user.role)
    return user
