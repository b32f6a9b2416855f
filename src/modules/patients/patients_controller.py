# src/modules/patients/patients_controller.py
"""Patients controller with API routes."""

from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from src.auth.dependencies import get_current_user
from src.common.database.database import get_db_session
from src.common.responses import EnvelopeRoute
from src.common.utils.pagination import DEFAULT_LIMIT, DEFAULT_PAGE
from src.models.models import User

from . import patients_service as service
from .schemas import PatientListResponse

router = APIRouter(prefix="/patients", tags=["Patients"], route_class=EnvelopeRoute)


@router.get("", response_model=PatientListResponse)
async def list_patients(
    page: int = Query(DEFAULT_PAGE),
    limit: int = Query(DEFAULT_LIMIT),
    search: Optional[str] = Query(None, description="Match on name or email"),
    db: AsyncSession = Depends(get_db_session),
    current_user: User = Depends(get_current_user)
):
    """List patients with their prescription counts. Admins and doctors."""
    return await service.list_patients(db, current_user, page, limit, search)
