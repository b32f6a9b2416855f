# src/auth/dependencies.py

import logging
from typing import Optional

from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select

from src.auth import token_service
from src.common.database.database import get_db_session
from src.common.exceptions import UnauthenticatedError
from src.common.utils.global_messages import GlobalMessages
from src.models.models import User

logger = logging.getLogger(__name__)

# auto_error is off so a missing header is reported through our own 401 envelope
bearer_scheme = HTTPBearer(auto_error=False)


async def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
    db: AsyncSession = Depends(get_db_session)
) -> User:
    """
    Dependency to retrieve the current user based on the access token provided in the Authorization header.
    """
    if credentials is None or not credentials.credentials:
        raise UnauthenticatedError(GlobalMessages.AUTH_HEADER_MISSING)

    claims = token_service.verify_access_token(credentials.credentials)

    result = await db.execute(select(User).where(User.id == claims.subject))
    user = result.scalars().first()
    if user is None:
        logger.warning("Access token for unknown user %s", claims.subject)
        raise UnauthenticatedError()
    return user
