"""
Cascade Connect - API Dependencies
===================================

Shared dependencies for FastAPI endpoints: token handling, role checks,
homeowner scoping and the injectable integration clients.
"""

import secrets
from datetime import datetime, timedelta, timezone
from typing import Annotated, Optional
from uuid import UUID

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError, jwt
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from cascade_connect.core.config import settings
from cascade_connect.core.database import get_db
from cascade_connect.core.mailer import EmailClient, get_email_client
from cascade_connect.core.models import Homeowner, User, UserRole
from cascade_connect.core.platform import NetlifyClient, get_netlify_client
from cascade_connect.core.realtime import RealtimeClient, get_realtime_client
from cascade_connect.core.sms import SmsGateway, get_sms_gateway
from cascade_connect.core.storage import FileStorage, get_file_storage
from cascade_connect.core.vapi import VapiClient, get_vapi_client


# ==========================================================================
# Security
# ==========================================================================

security = HTTPBearer(auto_error=False)


# ==========================================================================
# Token Utilities
# ==========================================================================

def _create_token(user_id: UUID, token_type: str, expires_delta: timedelta) -> str:
    now = datetime.now(timezone.utc)
    payload = {
        "sub": str(user_id),
        "exp": now + expires_delta,
        "iat": now,
        "type": token_type,
        "jti": secrets.token_hex(16),  # Unique per token so rotation never collides
    }
    return jwt.encode(payload, settings.SECRET_KEY, algorithm=settings.ALGORITHM)


def create_access_token(user_id: UUID, expires_delta: Optional[timedelta] = None) -> str:
    """Short-lived bearer token for API calls."""
    return _create_token(
        user_id,
        "access",
        expires_delta or timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES),
    )


def create_refresh_token(user_id: UUID, expires_delta: Optional[timedelta] = None) -> str:
    """Long-lived token exchanged at /auth/refresh."""
    return _create_token(
        user_id,
        "refresh",
        expires_delta or timedelta(days=settings.REFRESH_TOKEN_EXPIRE_DAYS),
    )


def decode_token(token: str) -> dict:
    """
    Decode and validate a JWT token.

    Raises:
        HTTPException: If token is invalid or expired
    """
    try:
        return jwt.decode(token, settings.SECRET_KEY, algorithms=[settings.ALGORITHM])
    except JWTError as e:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or expired token",
            headers={"WWW-Authenticate": "Bearer"},
        ) from e


def _unauthorized(detail: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"},
    )


# ==========================================================================
# User Dependencies
# ==========================================================================

async def get_current_user(
    credentials: Annotated[Optional[HTTPAuthorizationCredentials], Depends(security)],
    db: Annotated[AsyncSession, Depends(get_db)],
) -> User:
    """
    Resolve the bearer token to an active user.

    Raises:
        HTTPException: 401 if not authenticated or the user is gone/inactive
    """
    if credentials is None:
        raise _unauthorized("Not authenticated")

    payload = decode_token(credentials.credentials)
    if payload.get("type") != "access":
        raise _unauthorized("Invalid token type")

    try:
        user_id = UUID(payload.get("sub") or "")
    except ValueError as e:
        raise _unauthorized("Invalid user ID in token") from e

    result = await db.execute(select(User).where(User.id == user_id))
    user = result.scalar_one_or_none()

    if user is None:
        raise _unauthorized("User not found")
    if not user.is_active:
        raise _unauthorized("User account is deactivated")

    return user


async def get_current_staff_user(
    current_user: Annotated[User, Depends(get_current_user)],
) -> User:
    """Admins and builder users; homeowners get 403."""
    if not current_user.is_staff:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Staff access required",
        )
    return current_user


async def get_current_admin_user(
    current_user: Annotated[User, Depends(get_current_user)],
) -> User:
    """Internal employees only."""
    if current_user.role != UserRole.ADMIN:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Admin access required",
        )
    return current_user


# ==========================================================================
# Homeowner Scoping
# ==========================================================================

def can_access_homeowner(user: User, homeowner: Homeowner) -> bool:
    """
    Visibility rules:
    - ADMIN sees everyone
    - BUILDER sees homeowners in their builder group
    - HOMEOWNER sees only their own record
    """
    if user.role == UserRole.ADMIN:
        return True
    if user.role == UserRole.BUILDER:
        return user.builder_group_id is not None and homeowner.builder_group_id == user.builder_group_id
    return user.homeowner_id == homeowner.id


async def get_homeowner_or_404(homeowner_id: UUID, user: User, db: AsyncSession) -> Homeowner:
    """Homeowners outside the user's scope are reported as missing."""
    homeowner = await db.get(Homeowner, homeowner_id)
    if homeowner is None or not can_access_homeowner(user, homeowner):
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Homeowner not found",
        )
    return homeowner


# ==========================================================================
# Type Aliases for Dependency Injection
# ==========================================================================

CurrentUser = Annotated[User, Depends(get_current_user)]
StaffUser = Annotated[User, Depends(get_current_staff_user)]
CurrentAdminUser = Annotated[User, Depends(get_current_admin_user)]
DbSession = Annotated[AsyncSession, Depends(get_db)]

Realtime = Annotated[RealtimeClient, Depends(get_realtime_client)]
Sms = Annotated[SmsGateway, Depends(get_sms_gateway)]
Email = Annotated[EmailClient, Depends(get_email_client)]
Vapi = Annotated[VapiClient, Depends(get_vapi_client)]
Storage = Annotated[FileStorage, Depends(get_file_storage)]
Netlify = Annotated[NetlifyClient, Depends(get_netlify_client)]
