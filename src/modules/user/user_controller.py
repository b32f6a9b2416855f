# src/modules/user/user_controller.py

from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from src.auth.dependencies import get_current_user
from src.auth.schemas import MessageResponse
from src.common.database.database import get_db_session
from src.common.responses import EnvelopeRoute
from src.common.utils.global_messages import GlobalMessages
from src.common.utils.pagination import DEFAULT_LIMIT, DEFAULT_PAGE
from src.models.models import User, UserRole
from src.modules.user import schemas, user_service

router = APIRouter(prefix="/admin/users", tags=["admin users"], route_class=EnvelopeRoute)


@router.post("", response_model=schemas.UserDetailResponse, status_code=status.HTTP_201_CREATED)
async def create_user(
    request: schemas.CreateUserRequest,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session)
):
    """
    Create an account of any role. Admins only.

    Doctor and patient accounts get their profile in the same step.
    """
    return await user_service.create_user(db, current_user, request)


@router.get("", response_model=schemas.UserListResponse)
async def list_users(
    page: int = Query(DEFAULT_PAGE),
    limit: int = Query(DEFAULT_LIMIT),
    search: Optional[str] = Query(None, description="Match on name or email"),
    role: Optional[UserRole] = Query(None),
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session)
):
    return await user_service.list_users(db, current_user, page, limit, search, role)


@router.get("/{user_id}", response_model=schemas.UserDetailResponse)
async def get_user(
    user_id: UUID,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session)
):
    return await user_service.get_user(db, current_user, user_id)


@router.patch("/{user_id}", response_model=schemas.UserDetailResponse)
async def update_user(
    user_id: UUID,
    request: schemas.UpdateUserRequest,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session)
):
    """
    Update the provided fields only.

    Changing the password signs the user out everywhere.
    """
    return await user_service.update_user(db, current_user, user_id, request)


@router.delete("/{user_id}", response_model=MessageResponse)
async def delete_user(
    user_id: UUID,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session)
):
    """Delete a user together with their profile and prescriptions."""
    await user_service.delete_user(db, current_user, user_id)
    return MessageResponse(message=GlobalMessages.USER_DELETED)
