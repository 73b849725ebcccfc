"""
FastAPI dependencies for authentication and database access.
Requests carry a Supabase-issued JWT; the user is identified by its `sub` claim.
"""

import logging
import uuid
from dataclasses import dataclass
from datetime import date
from typing import Annotated, Optional

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError, jwt
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import get_settings
from app.database import get_db

logger = logging.getLogger(__name__)

settings = get_settings()
security = HTTPBearer(auto_error=False)


@dataclass
class AuthUser:
    """The authenticated Supabase user. Profile data lives in Supabase auth."""

    id: uuid.UUID
    email: Optional[str] = None
    role: Optional[str] = None


def decode_supabase_token(token: str) -> Optional[dict]:
    """
    Decode a Supabase JWT token signed with the project JWT secret.
    Supabase tokens contain: sub (user UUID), email, role, etc.
    """
    if not settings.supabase_jwt_secret:
        logger.warning("SUPABASE_JWT_SECRET is not configured; rejecting token")
        return None

    try:
        return jwt.decode(
            token,
            settings.supabase_jwt_secret,
            algorithms=[settings.jwt_algorithm],
            options={"verify_aud": False},
        )
    except JWTError as e:
        logger.info("JWT decode error: %s", e)
        return None


async def get_current_user(
    credentials: Annotated[Optional[HTTPAuthorizationCredentials], Depends(security)],
) -> AuthUser:
    """
    Dependency to get the current authenticated user from the JWT token.
    """
    credentials_exception = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Could not validate credentials",
        headers={"WWW-Authenticate": "Bearer"},
    )

    if not credentials:
        raise credentials_exception

    payload = decode_supabase_token(credentials.credentials)
    if payload is None:
        raise credentials_exception

    try:
        user_id = uuid.UUID(str(payload.get("sub")))
    except (ValueError, TypeError):
        raise credentials_exception

    return AuthUser(id=user_id, email=payload.get("email"), role=payload.get("role"))


def get_today() -> date:
    """Reference date for expiry and risk calculations (overridden in tests)."""
    return date.today()


# Type aliases for cleaner dependency injection
CurrentUser = Annotated[AuthUser, Depends(get_current_user)]
DbSession = Annotated[AsyncSession, Depends(get_db)]
Today = Annotated[date, Depends(get_today)]
