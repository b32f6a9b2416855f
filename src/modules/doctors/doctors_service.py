# src/modules/doctors/doctors_service.py
"""Doctors service for the admin directory."""

import logging
from typing import Optional

from sqlalchemy import func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from src.auth.policy import Action, check_role
from src.common.utils.pagination import build_meta, page_offset, validate_page
from src.models.models import Doctor, Prescription, User, UserRole

from .schemas import DoctorListItem, DoctorListResponse, DoctorProfileSummary

logger = logging.getLogger(__name__)


async def list_doctors(
    session: AsyncSession,
    user: User,
    page: int = 1,
    limit: int = 10,
    search: Optional[str] = None,
    specialty: Optional[str] = None,
) -> DoctorListResponse:
    """
    List doctor accounts, newest first.

    - search: case-insensitive match on name or email
    - specialty: case-insensitive match on the doctor's specialty
    """
    check_role(user.role, Action.LIST_DOCTORS).enforce()
    validate_page(page, limit)
    logger.info("Listing doctors page=%s limit=%s search=%r specialty=%r", page, limit, search, specialty)

    conditions = [User.role == UserRole.DOCTOR]
    if search and search.strip():
        term = search.strip().lower()
        conditions.append(or_(
            func.lower(User.name).contains(term, autoescape=True),
            func.lower(User.email).contains(term, autoescape=True),
        ))
    if specialty and specialty.strip():
        conditions.append(func.lower(Doctor.specialty).contains(specialty.strip().lower(), autoescape=True))

    # Get total count
    total_result = await session.execute(
        select(func.count(User.id))
        .join(Doctor, Doctor.user_id == User.id)
        .where(*conditions)
    )
    total = total_result.scalar() or 0

    counts = (
        select(Prescription.author_id, func.count(Prescription.id).label("prescription_count"))
        .group_by(Prescription.author_id)
        .subquery()
    )
    result = await session.execute(
        select(User, Doctor, func.coalesce(counts.c.prescription_count, 0))
        .join(Doctor, Doctor.user_id == User.id)
        .outerjoin(counts, counts.c.author_id == Doctor.id)
        .where(*conditions)
        .order_by(User.created_at.desc(), User.id)
        .offset(page_offset(page, limit))
        .limit(limit)
    )

    data = [
        DoctorListItem(
            id=doctor_user.id,
            email=doctor_user.email,
            name=doctor_user.name,
            created_at=doctor_user.created_at,
            doctor=DoctorProfileSummary(
                id=doctor.id,
                specialty=doctor.specialty,
                prescription_count=prescription_count,
            ),
        )
        for doctor_user, doctor, prescription_count in result.all()
    ]
    return DoctorListResponse(data=data, meta=build_meta(total, page, limit))
