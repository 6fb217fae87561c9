"""
CodeShift - Accounts
====================

Registration, login and credential verification shared by the API and
the CLI. Produces the user identity the pipeline is handed.
"""

import secrets
from datetime import datetime, timedelta, timezone
from typing import Optional
from uuid import UUID, uuid4

import structlog
from jose import JWTError, jwt
from passlib.hash import bcrypt
from sqlalchemy import or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from src.core.cache import SessionCache, session_key
from src.core.config import settings
from src.core.errors import AccountExistsError, InvalidCredentialsError
from src.core.models import User

logger = structlog.get_logger(__name__)


# ==========================================================================
# Helper Functions
# ==========================================================================

def hash_password(password: str) -> str:
    """Hash a password using bcrypt."""
    return bcrypt.hash(password)


def verify_password(password: str, password_hash: str) -> bool:
    """Verify a password against a hash."""
    return bcrypt.verify(password, password_hash)


def generate_api_key() -> str:
    """64 hex chars."""
    return secrets.token_hex(32)


def create_access_token(user_id: UUID, username: str, expires_delta: Optional[timedelta] = None) -> str:
    """
    Create a signed access token.

    Args:
        user_id: User's UUID (stored as `sub`)
        username: Carried for display only
        expires_delta: Optional custom expiration time

    Returns:
        Encoded JWT token
    """
    if expires_delta is None:
        expires_delta = timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES)

    now = datetime.now(timezone.utc)
    payload = {
        "sub": str(user_id),
        "username": username,
        "exp": now + expires_delta,
        "iat": now,
        "jti": secrets.token_hex(16),
    }
    return jwt.encode(payload, settings.SECRET_KEY, algorithm=settings.ALGORITHM)


def decode_token(token: str) -> Optional[dict]:
    """Decoded payload, or None if the token is invalid or expired."""
    try:
        return jwt.decode(token, settings.SECRET_KEY, algorithms=[settings.ALGORITHM])
    except JWTError:
        return None


# ==========================================================================
# Service
# ==========================================================================

class AccountService:
    """User accounts backed by the database, sessions backed by the cache."""

    def __init__(self, db: AsyncSession, cache: SessionCache):
        self.db = db
        self.cache = cache

    async def register(self, username: str, email: str, password: str) -> User:
        """
        Create a user with a hashed password and a fresh API key.

        Raises:
            AccountExistsError: username or email already taken
        """
        result = await self.db.execute(
            select(User).where(or_(User.username == username, User.email == email.lower()))
        )
        if result.scalars().first() is not None:
            raise AccountExistsError("Username or email already exists")

        user = User(
            id=uuid4(),
            username=username,
            email=email.lower(),
            password_hash=hash_password(password),
            api_key=generate_api_key(),
        )
        self.db.add(user)
        await self.db.commit()
        await self.db.refresh(user)

        logger.info("user_registered", user_id=str(user.id), username=username)
        return user

    async def login(self, username: str, password: str) -> tuple[User, str]:
        """
        Check credentials and open a session.

        Returns:
            (user, access token)

        Raises:
            InvalidCredentialsError: same message for unknown user and bad password
        """
        result = await self.db.execute(select(User).where(User.username == username))
        user = result.scalar_one_or_none()

        if user is None or not verify_password(password, user.password_hash):
            raise InvalidCredentialsError("Invalid credentials")

        token = create_access_token(user.id, user.username)
        await self.cache.set_json(
            session_key(token),
            {"user_id": str(user.id)},
            settings.SESSION_EXPIRE_SECONDS,
        )
        return user, token

    async def verify_token(self, token: str) -> Optional[User]:
        """Resolve a bearer token: cached session first, then the JWT itself."""
        cached = await self.cache.get_json(session_key(token))
        if cached and cached.get("user_id"):
            try:
                return await self.get_user(UUID(cached["user_id"]))
            except ValueError:
                pass

        payload = decode_token(token)
        if not payload or not payload.get("sub"):
            return None

        try:
            user = await self.get_user(UUID(payload["sub"]))
        except ValueError:
            return None

        if user is not None:
            await self.cache.set_json(
                session_key(token),
                {"user_id": str(user.id)},
                settings.SESSION_EXPIRE_SECONDS,
            )
        return user

    async def verify_api_key(self, api_key: str) -> Optional[User]:
        result = await self.db.execute(select(User).where(User.api_key == api_key))
        return result.scalar_one_or_none()

    async def logout(self, token: str) -> None:
        await self.cache.delete(session_key(token))

    async def get_user(self, user_id: UUID) -> Optional[User]:
        result = await self.db.execute(select(User).where(User.id == user_id))
        return result.scalar_one_or_none()
