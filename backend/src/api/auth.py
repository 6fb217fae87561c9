"""
CodeShift - Authentication API
==============================

Registration, login, logout and current-user endpoints.
"""

from typing import Annotated, Optional

from fastapi import APIRouter, Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials

from src.api.deps import Accounts, CurrentUser, security
from src.core.config import settings
from src.core.errors import AccountExistsError, InvalidCredentialsError
from src.core.schemas import (
    MessageResponse,
    TokenResponse,
    UserCreate,
    UserLogin,
    UserResponse,
)

router = APIRouter(prefix="/auth", tags=["Authentication"])


# ==========================================================================
# Registration
# ==========================================================================

@router.post(
    "/register",
    response_model=UserResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Register a new user",
    responses={
        201: {"description": "User created successfully"},
        409: {"description": "Username or email already registered"},
        422: {"description": "Validation error"},
    },
)
async def register(data: UserCreate, accounts: Accounts) -> UserResponse:
    """
    Register a new user account.

    The response includes the generated API key, which can be sent as
    `X-API-Key` instead of a bearer token.
    """
    try:
        user = await accounts.register(data.username, data.email, data.password)
    except AccountExistsError as e:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e)) from e

    return UserResponse.model_validate(user)


# ==========================================================================
# Login / Logout
# ==========================================================================

@router.post(
    "/login",
    response_model=TokenResponse,
    summary="Login and get a token",
    responses={
        200: {"description": "Login successful"},
        401: {"description": "Invalid credentials"},
    },
)
async def login(data: UserLogin, accounts: Accounts) -> TokenResponse:
    """Authenticate by username/password; the session is cached in Redis."""
    try:
        user, token = await accounts.login(data.username, data.password)
    except InvalidCredentialsError as e:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail=str(e)) from e

    return TokenResponse(
        user=UserResponse.model_validate(user),
        token=token,
        expires_in=settings.ACCESS_TOKEN_EXPIRE_MINUTES * 60,
    )


@router.post(
    "/logout",
    response_model=MessageResponse,
    summary="Logout and drop the cached session",
)
async def logout(
    current_user: CurrentUser,
    accounts: Accounts,
    credentials: Annotated[Optional[HTTPAuthorizationCredentials], Depends(security)],
) -> MessageResponse:
    """
    Drop the cached session for the presented token.

    The JWT itself stays valid until it expires.
    """
    if credentials is not None:
        await accounts.logout(credentials.credentials)
    return MessageResponse(message="Logged out successfully")


@router.get(
    "/me",
    response_model=UserResponse,
    summary="Current user",
)
async def me(current_user: CurrentUser) -> UserResponse:
    return UserResponse.model_validate(current_user)
