# src/auth/token_service.py
"""
Access/refresh token issuance, verification and refresh-token rotation.

Only a one-way hash of the current refresh token is stored on the user row.
Every refresh overwrites it, so a refresh token can be exchanged once and a
logout (hash cleared) invalidates every outstanding refresh token.
"""

import logging
import uuid
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Optional, Union

import jwt
from passlib.context import CryptContext
from sqlalchemy import update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select

from src.common.config import settings
from src.common.exceptions import InvalidTokenError, UnauthorizedError
from src.common.utils.global_messages import GlobalMessages
from src.models.models import User, UserRole

logger = logging.getLogger(__name__)

ACCESS_TOKEN_TYPE = "access"
REFRESH_TOKEN_TYPE = "refresh"

# JWTs are longer than bcrypt's 72-byte input limit, so refresh tokens use pbkdf2
refresh_token_context = CryptContext(schemes=["pbkdf2_sha256"], deprecated="auto")


@dataclass(frozen=True)
class TokenPair:
    access_token: str
    refresh_token: str


@dataclass(frozen=True)
class TokenClaims:
    subject: uuid.UUID
    email: str
    role: UserRole
    token_type: str
    token_id: str
    expires_at: datetime


def _role_value(role: Union[UserRole, str]) -> str:
    return role.value if isinstance(role, UserRole) else UserRole(role).value


def _encode(
    user_id: uuid.UUID,
    email: str,
    role: Union[UserRole, str],
    token_type: str,
    secret: str,
    expires_delta: timedelta,
) -> str:
    now = datetime.now(timezone.utc)
    to_encode = {
        "sub": str(user_id),
        "email": email,
        "role": _role_value(role),
        "type": token_type,
        # Unique per issuance so two pairs minted in the same second still differ
        "jti": uuid.uuid4().hex,
        "iat": now,
        "exp": now + expires_delta,
    }
    return jwt.encode(to_encode, secret, algorithm=settings.JWT_ALGORITHM)


def create_access_token(user_id: uuid.UUID, email: str, role: Union[UserRole, str], expires_delta: Optional[timedelta] = None) -> str:
    """Create a short-lived access token."""
    return _encode(
        user_id, email, role, ACCESS_TOKEN_TYPE,
        settings.JWT_ACCESS_SECRET,
        expires_delta or timedelta(minutes=settings.JWT_ACCESS_EXPIRES_MINUTES),
    )


def create_refresh_token(user_id: uuid.UUID, email: str, role: Union[UserRole, str], expires_delta: Optional[timedelta] = None) -> str:
    """Create a long-lived refresh token."""
    return _encode(
        user_id, email, role, REFRESH_TOKEN_TYPE,
        settings.JWT_REFRESH_SECRET,
        expires_delta or timedelta(days=settings.JWT_REFRESH_EXPIRES_DAYS),
    )


def issue_token_pair(user_id: uuid.UUID, email: str, role: Union[UserRole, str]) -> TokenPair:
    """Issue a fresh access/refresh token pair carrying the same identity claims."""
    return TokenPair(
        access_token=create_access_token(user_id, email, role),
        refresh_token=create_refresh_token(user_id, email, role),
    )


def _decode(token: str, secret: str, expected_type: str) -> TokenClaims:
    try:
        payload = jwt.decode(
            token,
            secret,
            algorithms=[settings.JWT_ALGORITHM],
            options={"require": ["sub", "exp"]},
        )
    except jwt.ExpiredSignatureError:
        raise InvalidTokenError("Token has expired.")
    except jwt.InvalidTokenError:
        raise InvalidTokenError()

    if payload.get("type") != expected_type:
        raise InvalidTokenError()

    try:
        return TokenClaims(
            subject=uuid.UUID(payload["sub"]),
            email=payload["email"],
            role=UserRole(payload["role"]),
            token_type=payload["type"],
            token_id=payload.get("jti", ""),
            expires_at=datetime.fromtimestamp(payload["exp"], tz=timezone.utc),
        )
    except (KeyError, TypeError, ValueError):
        raise InvalidTokenError()


def verify_access_token(token: str) -> TokenClaims:
    """Validate an access token and return its claims."""
    return _decode(token, settings.JWT_ACCESS_SECRET, ACCESS_TOKEN_TYPE)


def verify_refresh_token(token: str) -> TokenClaims:
    """Validate a refresh token and return its claims."""
    return _decode(token, settings.JWT_REFRESH_SECRET, REFRESH_TOKEN_TYPE)


def hash_refresh_token(refresh_token: str) -> str:
    return refresh_token_context.hash(refresh_token)


def refresh_token_matches(refresh_token: str, hashed_refresh_token: str) -> bool:
    return refresh_token_context.verify(refresh_token, hashed_refresh_token)


async def persist_refresh_token(db: AsyncSession, user_id: uuid.UUID, refresh_token: str) -> None:
    """Store the hash of the refresh token on the user, replacing any previous one."""
    await db.execute(
        update(User)
        .where(User.id == user_id)
        .values(hashed_refresh_token=hash_refresh_token(refresh_token))
    )
    await db.commit()


async def rotate_on_refresh(
    db: AsyncSession,
    user_id: uuid.UUID,
    email: str,
    presented_refresh_token: str,
) -> TokenPair:
    """
    Exchange a refresh token for a new pair.

    Fails when the session was revoked, when the token was already rotated
    (its hash is no longer the stored one) or when a concurrent refresh won
    the race to overwrite the stored hash.
    """
    result = await db.execute(select(User).where(User.id == user_id))
    user = result.scalars().first()

    if not user or not user.hashed_refresh_token:
        logger.warning("Refresh rejected for user %s: no active session", user_id)
        raise UnauthorizedError(GlobalMessages.REFRESH_TOKEN_INVALID)

    if user.email != email:
        logger.warning("Refresh rejected for user %s: email claim is stale", user_id)
        raise UnauthorizedError(GlobalMessages.REFRESH_TOKEN_INVALID)

    stored_hash = user.hashed_refresh_token
    if not refresh_token_matches(presented_refresh_token, stored_hash):
        logger.warning("Refresh rejected for user %s: token does not match the active session", user_id)
        raise UnauthorizedError(GlobalMessages.REFRESH_TOKEN_INVALID)

    tokens = issue_token_pair(user.id, user.email, user.role)

    # Compare-and-swap: only overwrite the hash we just matched
    swap = await db.execute(
        update(User)
        .where(User.id == user.id, User.hashed_refresh_token == stored_hash)
        .values(hashed_refresh_token=hash_refresh_token(tokens.refresh_token))
        .execution_options(synchronize_session=False)
    )
    if swap.rowcount != 1:
        await db.rollback()
        logger.warning("Refresh rejected for user %s: session rotated concurrently", user_id)
        raise UnauthorizedError(GlobalMessages.REFRESH_TOKEN_INVALID)

    await db.commit()
    await db.refresh(user)
    logger.info("Rotated refresh token for user %s", user.id)
    return tokens


async def revoke(db: AsyncSession, user_id: uuid.UUID) -> None:
    """Clear the stored refresh-token hash, ending the user's session."""
    await db.execute(
        update(User)
        .where(User.id == user_id)
        .values(hashed_refresh_token=None)
    )
    await db.commit()
    logger.info("Revoked refresh session for user %s", user_id)
