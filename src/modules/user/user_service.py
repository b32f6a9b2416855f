# src/modules/user/user_service.py
"""Admin management of user accounts."""

import logging
from typing import Optional
from uuid import UUID

from sqlalchemy import delete, func, or_
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select
from sqlalchemy.orm import selectinload

from src.auth.auth_service import create_user_with_profile, get_user_by_email, hash_password
from src.auth.policy import Action, check_role
from src.common.exceptions import ConflictError, ForbiddenError, NotFoundError, ValidationError
from src.common.utils.global_messages import GlobalMessages
from src.common.utils.pagination import build_meta, page_offset, validate_page
from src.models.models import User, UserRole

from .schemas import CreateUserRequest, UpdateUserRequest, UserDetailResponse, UserListResponse

logger = logging.getLogger(__name__)


async def _load_user(db: AsyncSession, user_id: UUID) -> User:
    result = await db.execute(
        select(User)
        .options(selectinload(User.doctor), selectinload(User.patient))
        .where(User.id == user_id)
        .execution_options(populate_existing=True)
    )
    user = result.scalars().first()
    if not user:
        raise NotFoundError(GlobalMessages.USER_NOT_FOUND)
    return user


async def create_user(db: AsyncSession, actor: User, request: CreateUserRequest) -> UserDetailResponse:
    check_role(actor.role, Action.MANAGE_USERS).enforce()
    user = await create_user_with_profile(
        db,
        email=request.email,
        password=request.password,
        name=request.name,
        role=request.role,
        specialty=request.specialty,
        birth_date=request.birth_date,
        phone=request.phone,
    )
    logger.info("Admin %s created user %s", actor.id, user.id)
    return UserDetailResponse.model_validate(await _load_user(db, user.id))


async def list_users(
    db: AsyncSession,
    actor: User,
    page: int = 1,
    limit: int = 10,
    search: Optional[str] = None,
    role: Optional[UserRole] = None,
) -> UserListResponse:
    check_role(actor.role, Action.MANAGE_USERS).enforce()
    validate_page(page, limit)

    conditions = []
    if role is not None:
        conditions.append(User.role == role)
    if search and search.strip():
        term = search.strip().lower()
        conditions.append(or_(
            func.lower(User.name).contains(term, autoescape=True),
            func.lower(User.email).contains(term, autoescape=True),
        ))

    total_result = await db.execute(select(func.count(User.id)).where(*conditions))
    total = total_result.scalar() or 0

    result = await db.execute(
        select(User)
        .options(selectinload(User.doctor), selectinload(User.patient))
        .where(*conditions)
        .order_by(User.created_at.desc(), User.id)
        .offset(page_offset(page, limit))
        .limit(limit)
    )
    users = result.scalars().all()
    return UserListResponse(
        data=[UserDetailResponse.model_validate(u) for u in users],
        meta=build_meta(total, page, limit),
    )


async def get_user(db: AsyncSession, actor: User, user_id: UUID) -> UserDetailResponse:
    check_role(actor.role, Action.MANAGE_USERS).enforce()
    return UserDetailResponse.model_validate(await _load_user(db, user_id))


async def update_user(
    db: AsyncSession,
    actor: User,
    user_id: UUID,
    request: UpdateUserRequest,
) -> UserDetailResponse:
    """
    Update the fields provided in the request.

    A new password ends the user's current session. The role is fixed at
    creation because each role owns a different profile.
    """
    check_role(actor.role, Action.MANAGE_USERS).enforce()
    user = await _load_user(db, user_id)
    changes = request.model_dump(exclude_unset=True)

    role = changes.pop("role", None)
    if role is not None and role != user.role:
        raise ValidationError(GlobalMessages.ROLE_CHANGE_NOT_ALLOWED)
    if "specialty" in changes and user.doctor is None:
        raise ValidationError("Specialty only applies to doctor accounts.")
    for field in ("birth_date", "phone"):
        if field in changes and user.patient is None:
            raise ValidationError(f"{field} only applies to patient accounts.")
    if "name" in changes and not (changes["name"] or "").strip():
        raise ValidationError("Name is required.")

    if changes.get("email") and changes["email"] != user.email:
        existing = await get_user_by_email(changes["email"], db)
        if existing and existing.id != user.id:
            raise ConflictError(GlobalMessages.ACCOUNT_ALREADY_EXISTS)
        user.email = changes["email"]

    if "name" in changes:
        user.name = changes["name"].strip()

    if changes.get("password"):
        user.password_hash = hash_password(changes["password"])
        user.hashed_refresh_token = None

    if "specialty" in changes:
        user.doctor.specialty = changes["specialty"]
    for field in ("birth_date", "phone"):
        if field in changes:
            setattr(user.patient, field, changes[field])

    try:
        await db.commit()
    except IntegrityError:
        await db.rollback()
        raise ConflictError(GlobalMessages.ACCOUNT_ALREADY_EXISTS)

    logger.info("Admin %s updated user %s (%s)", actor.id, user.id, ", ".join(sorted(changes)) or "no changes")
    return UserDetailResponse.model_validate(await _load_user(db, user.id))


async def delete_user(db: AsyncSession, actor: User, user_id: UUID) -> None:
    """Hard delete; the profile and its prescriptions go with the user."""
    check_role(actor.role, Action.MANAGE_USERS).enforce()
    if actor.id == user_id:
        raise ForbiddenError(GlobalMessages.CANNOT_DELETE_SELF)

    user = await _load_user(db, user_id)
    await db.execute(delete(User).where(User.id == user.id).execution_options(synchronize_session=False))
    await db.commit()
    logger.info("Admin %s deleted user %s", actor.id, user_id)
