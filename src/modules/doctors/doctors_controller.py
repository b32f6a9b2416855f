# src/modules/doctors/doctors_controller.py
"""Doctors controller with API routes."""

from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from src.auth.dependencies import get_current_user
from src.common.database.database import get_db_session
from src.common.responses import EnvelopeRoute
from src.common.utils.pagination import DEFAULT_LIMIT, DEFAULT_PAGE
from src.models.models import User

from . import doctors_service as service
from .schemas import DoctorListResponse

router = APIRouter(prefix="/doctors", tags=["Doctors"], route_class=EnvelopeRoute)


@router.get("", response_model=DoctorListResponse)
async def list_doctors(
    page: int = Query(DEFAULT_PAGE),
    limit: int = Query(DEFAULT_LIMIT),
    search: Optional[str] = Query(None, description="Match on name or email"),
    specialty: Optional[str] = Query(None),
    db: AsyncSession = Depends(get_db_session),
    current_user: User = Depends(get_current_user)
):
    """List doctors with their prescription counts. Admins only."""
    return await service.list_doctors(db, current_user, page, limit, search, specialty)
