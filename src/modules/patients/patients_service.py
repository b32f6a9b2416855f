# src/modules/patients/patients_service.py
"""Patients service for the patient directory used by admins and doctors."""

import logging
from typing import Optional

from sqlalchemy import func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from src.auth.policy import Action, check_role
from src.common.utils.pagination import build_meta, page_offset, validate_page
from src.models.models import Patient, Prescription, User, UserRole

from .schemas import PatientListItem, PatientListResponse, PatientProfileSummary

logger = logging.getLogger(__name__)


async def list_patients(
    session: AsyncSession,
    user: User,
    page: int = 1,
    limit: int = 10,
    search: Optional[str] = None,
) -> PatientListResponse:
    """List patient accounts, newest first, optionally matching name or email."""
    check_role(user.role, Action.LIST_PATIENTS).enforce()
    validate_page(page, limit)
    logger.info("Listing patients page=%s limit=%s search=%r", page, limit, search)

    conditions = [User.role == UserRole.PATIENT]
    if search and search.strip():
        term = search.strip().lower()
        conditions.append(or_(
            func.lower(User.name).contains(term, autoescape=True),
            func.lower(User.email).contains(term, autoescape=True),
        ))

    total_result = await session.execute(
        select(func.count(User.id))
        .join(Patient, Patient.user_id == User.id)
        .where(*conditions)
    )
    total = total_result.scalar() or 0

    counts = (
        select(Prescription.patient_id, func.count(Prescription.id).label("prescription_count"))
        .group_by(Prescription.patient_id)
        .subquery()
    )
    result = await session.execute(
        select(User, Patient, func.coalesce(counts.c.prescription_count, 0))
        .join(Patient, Patient.user_id == User.id)
        .outerjoin(counts, counts.c.patient_id == Patient.id)
        .where(*conditions)
        .order_by(User.created_at.desc(), User.id)
        .offset(page_offset(page, limit))
        .limit(limit)
    )

    data = [
        PatientListItem(
            id=patient_user.id,
            email=patient_user.email,
            name=patient_user.name,
            created_at=patient_user.created_at,
            patient=PatientProfileSummary(
                id=patient.id,
                birth_date=patient.birth_date,
                phone=patient.phone,
                prescription_count=prescription_count,
            ),
        )
        for patient_user, patient, prescription_count in result.all()
    ]
    return PatientListResponse(data=data, meta=build_meta(total, page, limit))
