# src/auth/auth_service.py

import logging
from datetime import date
from typing import Optional, Tuple

from passlib.context import CryptContext
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select
from sqlalchemy.orm import selectinload

from src.auth import token_service
from src.auth.schemas import RegisterRequest, RegisterRole
from src.auth.token_service import TokenPair
from src.common.config import settings
from src.common.exceptions import ConflictError, NotFoundError, UnauthenticatedError, ValidationError
from src.common.utils.global_functions import normalize_email
from src.common.utils.global_messages import GlobalMessages
from src.models.models import Doctor, Patient, User, UserRole

logger = logging.getLogger(__name__)

# Initialize the password context (bcrypt)
pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto", bcrypt__rounds=settings.BCRYPT_ROUNDS)


def verify_password(plain_password: str, hashed_password: str) -> bool:
    """Verify that the provided password matches the hashed password."""
    return pwd_context.verify(plain_password, hashed_password)


def hash_password(password: str) -> str:
    return pwd_context.hash(password)


async def get_user_by_email(email: str, db: AsyncSession) -> Optional[User]:
    result = await db.execute(select(User).where(User.email == normalize_email(email)))
    return result.scalars().first()


async def create_user_with_profile(
    db: AsyncSession,
    email: str,
    password: str,
    name: str,
    role: UserRole,
    specialty: Optional[str] = None,
    birth_date: Optional[date] = None,
    phone: Optional[str] = None,
) -> User:
    """
    Create a user together with the profile its role requires, in one commit.

    - Doctor role: User + Doctor profile
    - Patient role: User + Patient profile
    - Admin role: User only
    """
    email = normalize_email(email)

    # Check if user with provided email already exists
    if await get_user_by_email(email, db):
        raise ConflictError(GlobalMessages.ACCOUNT_ALREADY_EXISTS)

    new_user = User(
        email=email,
        password_hash=hash_password(password),
        name=name.strip(),
        role=role,
    )
    if role == UserRole.DOCTOR:
        new_user.doctor = Doctor(specialty=specialty)
    elif role == UserRole.PATIENT:
        new_user.patient = Patient(birth_date=birth_date, phone=phone)
    db.add(new_user)

    try:
        await db.commit()
    except IntegrityError:
        # Lost a race against a concurrent registration for the same email
        await db.rollback()
        raise ConflictError(GlobalMessages.ACCOUNT_ALREADY_EXISTS)

    await db.refresh(new_user, attribute_names=["doctor", "patient"])
    logger.info("Created %s account %s", role.value, new_user.id)
    return new_user


async def _start_session(db: AsyncSession, user: User) -> TokenPair:
    tokens = token_service.issue_token_pair(user.id, user.email, user.role)
    await token_service.persist_refresh_token(db, user.id, tokens.refresh_token)
    return tokens


async def register_user(request: RegisterRequest, db: AsyncSession) -> Tuple[User, TokenPair]:
    """Register a doctor or patient and open their first session."""
    if request.role not in (RegisterRole.DOCTOR, RegisterRole.PATIENT):
        raise ValidationError(GlobalMessages.SELF_REGISTRATION_ROLES)

    user = await create_user_with_profile(
        db,
        email=request.email,
        password=request.password,
        name=request.name,
        role=UserRole(request.role.value),
        specialty=request.specialty,
        birth_date=request.birth_date,
        phone=request.phone,
    )
    tokens = await _start_session(db, user)
    return user, tokens


async def authenticate_user(email: str, password: str, db: AsyncSession) -> User:
    """Attempt to retrieve the user by email and verify the password."""
    user = await get_user_by_email(email, db)

    if not user or not verify_password(password, user.password_hash):
        logger.warning("Failed login attempt for %s", normalize_email(email))
        raise UnauthenticatedError(GlobalMessages.INVALID_CREDENTIALS)
    return user


async def login_user(email: str, password: str, db: AsyncSession) -> Tuple[User, TokenPair]:
    """Authenticate a user and return the user with a new token pair."""
    user = await authenticate_user(email, password, db)
    tokens = await _start_session(db, user)
    logger.info("User %s logged in", user.id)
    return user, tokens


async def refresh_session(refresh_token: str, db: AsyncSession) -> TokenPair:
    """Verify a refresh token and rotate it for a new pair."""
    claims = token_service.verify_refresh_token(refresh_token)
    return await token_service.rotate_on_refresh(db, claims.subject, claims.email, refresh_token)


async def logout_user(user: User, db: AsyncSession) -> None:
    await token_service.revoke(db, user.id)
    logger.info("User %s logged out", user.id)


async def get_profile(user: User, db: AsyncSession) -> User:
    """Load the user with their doctor/patient profile."""
    result = await db.execute(
        select(User)
        .options(selectinload(User.doctor), selectinload(User.patient))
        .where(User.id == user.id)
        .execution_options(populate_existing=True)
    )
    profile = result.scalars().first()
    if not profile:
        raise NotFoundError(GlobalMessages.USER_NOT_FOUND)
    return profile
