# src/auth/auth_controller.py

import logging

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from src.auth.dependencies import get_current_user
from src.common.database.database import get_db_session
from src.common.responses import EnvelopeRoute
from src.common.utils.global_messages import GlobalMessages
from src.auth import auth_service, schemas
from src.auth.token_service import TokenPair
from src.models.models import User

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/auth", tags=["auth"], route_class=EnvelopeRoute)


def user_to_response(user: User) -> schemas.UserResponse:
    """Convert User model to UserResponse schema."""
    return schemas.UserResponse(
        id=user.id,
        email=user.email,
        name=user.name,
        role=user.role,
    )


def auth_response(user: User, tokens: TokenPair) -> schemas.AuthResponse:
    return schemas.AuthResponse(
        access_token=tokens.access_token,
        refresh_token=tokens.refresh_token,
        user=user_to_response(user),
    )


@router.post("/register", response_model=schemas.AuthResponse, status_code=status.HTTP_201_CREATED)
async def register(
    register_data: schemas.RegisterRequest,
    db: AsyncSession = Depends(get_db_session),
):
    """
    Register a new doctor or patient account.

    - **email**: Email address (stored trimmed and lower-cased)
    - **password**: Password (minimum 6 characters)
    - **name**: Display name
    - **role**: doctor or patient
    - **specialty**: Doctor specialty (doctors only)
    - **birth_date** / **phone**: Patient details (patients only)
    """
    logger.info("Registration requested for %s", register_data.email)
    user, tokens = await auth_service.register_user(register_data, db)
    return auth_response(user, tokens)


@router.post("/login", response_model=schemas.AuthResponse)
async def login(
    credentials: schemas.LoginRequest,
    db: AsyncSession = Depends(get_db_session)
):
    """
    Authenticate a user and return an access token and a refresh token.

    Every login replaces the previous refresh token.
    """
    user, tokens = await auth_service.login_user(
        email=credentials.email,
        password=credentials.password,
        db=db
    )
    return auth_response(user, tokens)


@router.post("/refresh", response_model=schemas.TokenPairResponse)
async def refresh(
    payload: schemas.RefreshTokenRequest,
    db: AsyncSession = Depends(get_db_session)
):
    """
    Exchange a refresh token for a new token pair.

    The presented refresh token stops working once it has been exchanged.
    """
    tokens = await auth_service.refresh_session(payload.refresh_token, db)
    return schemas.TokenPairResponse(
        access_token=tokens.access_token,
        refresh_token=tokens.refresh_token,
    )


@router.post("/logout", response_model=schemas.MessageResponse)
async def logout(
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session)
):
    """
    End the current session. Outstanding refresh tokens can no longer be used.

    Requires authentication.
    """
    await auth_service.logout_user(current_user, db)
    return schemas.MessageResponse(message=GlobalMessages.LOGOUT_SUCCESS)


@router.get("/me", response_model=schemas.ProfileResponse)
async def get_current_user_info(
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session)
):
    """
    Get the current authenticated user's information, including the doctor or patient profile.

    Requires authentication.
    """
    profile = await auth_service.get_profile(current_user, db)
    return schemas.ProfileResponse.model_validate(profile)
