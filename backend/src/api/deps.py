"""
CodeShift - API Dependencies
============================

Shared dependencies for FastAPI endpoints.
"""

from typing import Annotated, Optional

from fastapi import Depends, Header, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession

from src.core.accounts import AccountService
from src.core.cache import SessionCache, get_cache
from src.core.database import get_db
from src.core.models import User
from src.core.pipeline import EditOracle, ExecutionOrchestrator


# ==========================================================================
# Security
# ==========================================================================

security = HTTPBearer(auto_error=False)


# ==========================================================================
# Services
# ==========================================================================

def get_account_service(
    db: Annotated[AsyncSession, Depends(get_db)],
    cache: Annotated[SessionCache, Depends(get_cache)],
) -> AccountService:
    return AccountService(db, cache)


_oracle: Optional[EditOracle] = None


def get_oracle() -> EditOracle:
    """FastAPI dependency; one oracle per process, overridable in tests."""
    global _oracle
    if _oracle is None:
        _oracle = EditOracle()
    return _oracle


async def close_oracle() -> None:
    global _oracle
    if _oracle is not None:
        await _oracle.close()
        _oracle = None


def get_orchestrator(
    db: Annotated[AsyncSession, Depends(get_db)],
    oracle: Annotated[EditOracle, Depends(get_oracle)],
) -> ExecutionOrchestrator:
    return ExecutionOrchestrator(db, oracle=oracle)


# ==========================================================================
# User Dependencies
# ==========================================================================

async def get_current_user(
    credentials: Annotated[Optional[HTTPAuthorizationCredentials], Depends(security)],
    accounts: Annotated[AccountService, Depends(get_account_service)],
    x_api_key: Annotated[Optional[str], Header()] = None,
) -> User:
    """
    Resolve the caller from a Bearer token or an X-API-Key header.

    Raises:
        HTTPException: 401 with no credentials, 403 with bad ones
    """
    if credentials is not None:
        user = await accounts.verify_token(credentials.credentials)
        if user is None:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Invalid or expired token",
            )
        return user

    if x_api_key:
        user = await accounts.verify_api_key(x_api_key)
        if user is None:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Invalid API key",
            )
        return user

    raise HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Authentication required (Bearer token or API key)",
        headers={"WWW-Authenticate": "Bearer"},
    )


# ==========================================================================
# Type Aliases for Dependency Injection
# ==========================================================================

CurrentUser = Annotated[User, Depends(get_current_user)]
DbSession = Annotated[AsyncSession, Depends(get_db)]
Accounts = Annotated[AccountService, Depends(get_account_service)]
Orchestrator = Annotated[ExecutionOrchestrator, Depends(get_orchestrator)]
