"""
Cascade Connect - Authentication API
=====================================

Sign-up, sign-in and token management.

Self-registration creates HOMEOWNER accounts. When the email matches an
existing homeowner record the account is linked to it, so homeowners can
sign in and see their own claims. Staff accounts are created by admins
through the users API.
"""

import hashlib
from datetime import datetime, timedelta, timezone
from uuid import UUID, uuid4

import structlog
from fastapi import APIRouter, HTTPException, status
from passlib.hash import bcrypt
from sqlalchemy import func, select

from cascade_connect.api.deps import (
    CurrentUser,
    DbSession,
    create_access_token,
    create_refresh_token,
    decode_token,
)
from cascade_connect.core.config import settings
from cascade_connect.core.database import as_utc
from cascade_connect.core.models import Homeowner, RefreshToken, User, UserRole
from cascade_connect.core.schemas import (
    MessageResponse,
    RefreshTokenRequest,
    TokenResponse,
    UserCreate,
    UserLogin,
    UserResponse,
    UserUpdate,
)

router = APIRouter(prefix="/auth", tags=["Authentication"])
logger = structlog.get_logger()


# ==========================================================================
# Helper Functions
# ==========================================================================

def hash_password(password: str) -> str:
    """Hash a password using bcrypt."""
    return bcrypt.hash(password)


def verify_password(password: str, password_hash: str) -> bool:
    """Verify a password against a hash."""
    return bcrypt.verify(password, password_hash)


def hash_token(token: str) -> str:
    """Create a hash of a token for storage."""
    return hashlib.sha256(token.encode()).hexdigest()


async def issue_tokens(user: User, db: DbSession) -> TokenResponse:
    """Create an access/refresh pair and persist the refresh token hash."""
    access_token = create_access_token(user.id)
    refresh_token = create_refresh_token(user.id)

    db.add(RefreshToken(
        id=uuid4(),
        user_id=user.id,
        token_hash=hash_token(refresh_token),
        expires_at=datetime.now(timezone.utc) + timedelta(days=settings.REFRESH_TOKEN_EXPIRE_DAYS),
        revoked=False,
    ))

    return TokenResponse(
        access_token=access_token,
        refresh_token=refresh_token,
        token_type="bearer",
        expires_in=settings.ACCESS_TOKEN_EXPIRE_MINUTES * 60,
    )


# ==========================================================================
# Registration
# ==========================================================================

@router.post(
    "/register",
    response_model=UserResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Register a homeowner account",
    responses={
        201: {"description": "User created successfully"},
        409: {"description": "Email already registered"},
        422: {"description": "Validation error"},
    },
)
async def register(
    data: UserCreate,
    db: DbSession,
) -> UserResponse:
    """
    Register a new homeowner account.

    - Rejects duplicate emails (409)
    - Links the account to the homeowner record with the same email, if any
    """
    email = data.email.lower()

    result = await db.execute(select(User).where(User.email == email))
    if result.scalar_one_or_none():
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="Email already registered",
        )

    result = await db.execute(
        select(Homeowner).where(func.lower(Homeowner.email) == email).limit(1)
    )
    homeowner = result.scalar_one_or_none()

    user = User(
        id=uuid4(),
        email=email,
        password_hash=hash_password(data.password),
        name=data.name,
        role=UserRole.HOMEOWNER,
        homeowner_id=homeowner.id if homeowner else None,
        is_active=True,
    )
    db.add(user)
    await db.commit()
    await db.refresh(user)

    logger.info("user_registered", user_id=str(user.id), linked_homeowner=homeowner is not None)
    return UserResponse.model_validate(user)


# ==========================================================================
# Login / Logout
# ==========================================================================

@router.post(
    "/login",
    response_model=TokenResponse,
    summary="Login and get tokens",
    responses={
        200: {"description": "Login successful"},
        401: {"description": "Invalid credentials"},
    },
)
async def login(
    data: UserLogin,
    db: DbSession,
) -> TokenResponse:
    """
    Authenticate and return tokens.

    Unknown email, wrong password and inactive account all produce the
    same 401 so the response does not reveal which accounts exist.
    """
    result = await db.execute(select(User).where(User.email == data.email.lower()))
    user = result.scalar_one_or_none()

    if not user or not verify_password(data.password, user.password_hash) or not user.is_active:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid credentials",
        )

    tokens = await issue_tokens(user, db)
    user.last_login = datetime.now(timezone.utc)
    await db.commit()

    return tokens


@router.post(
    "/logout",
    response_model=MessageResponse,
    summary="Logout and revoke refresh tokens",
)
async def logout(
    current_user: CurrentUser,
    db: DbSession,
) -> MessageResponse:
    """Revoke every outstanding refresh token; access tokens simply expire."""
    result = await db.execute(
        select(RefreshToken).where(
            RefreshToken.user_id == current_user.id,
            RefreshToken.revoked.is_(False),
        )
    )
    for token in result.scalars().all():
        token.revoked = True

    await db.commit()
    return MessageResponse(message="Logged out successfully", success=True)


# ==========================================================================
# Token Management
# ==========================================================================

@router.post(
    "/refresh",
    response_model=TokenResponse,
    summary="Refresh access token",
    responses={
        200: {"description": "Token refreshed"},
        401: {"description": "Invalid or expired refresh token"},
    },
)
async def refresh_token(
    data: RefreshTokenRequest,
    db: DbSession,
) -> TokenResponse:
    """Exchange a refresh token for a new pair. Each refresh token works once."""
    credentials_exception = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Invalid or expired refresh token",
    )

    try:
        payload = decode_token(data.refresh_token)
    except HTTPException:
        raise credentials_exception

    if payload.get("type") != "refresh" or not payload.get("sub"):
        raise credentials_exception

    result = await db.execute(
        select(RefreshToken).where(RefreshToken.token_hash == hash_token(data.refresh_token))
    )
    stored_token = result.scalar_one_or_none()

    if not stored_token or stored_token.revoked:
        raise credentials_exception
    if as_utc(stored_token.expires_at) < datetime.now(timezone.utc):
        raise credentials_exception

    try:
        user_id = UUID(payload["sub"])
    except ValueError:
        raise credentials_exception

    user = await db.get(User, user_id)
    if not user or not user.is_active:
        raise credentials_exception

    # Rotation
    stored_token.revoked = True
    tokens = await issue_tokens(user, db)
    await db.commit()

    return tokens


# ==========================================================================
# User Profile
# ==========================================================================

@router.get(
    "/me",
    response_model=UserResponse,
    summary="Get current user",
)
async def get_me(current_user: CurrentUser) -> UserResponse:
    return UserResponse.model_validate(current_user)


@router.patch(
    "/me",
    response_model=UserResponse,
    summary="Update current user",
)
async def update_me(
    data: UserUpdate,
    current_user: CurrentUser,
    db: DbSession,
) -> UserResponse:
    """Update name and notification preferences."""
    for field, value in data.model_dump(exclude_unset=True, exclude_none=True).items():
        setattr(current_user, field, value)

    await db.commit()
    await db.refresh(current_user)

    return UserResponse.model_validate(current_user)
