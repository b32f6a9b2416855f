# common/utils/global_functions.py
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select

from src.models.models import Doctor, Patient, User


def normalize_email(email: str) -> str:
    """Emails are unique case-insensitively, so they are stored trimmed and lower-cased."""
    return email.strip().lower()


async def get_doctor_profile(db: AsyncSession, user: User) -> Optional[Doctor]:
    result = await db.execute(select(Doctor).where(Doctor.user_id == user.id))
    return result.scalar_one_or_none()


async def get_patient_profile(db: AsyncSession, user: User) -> Optional[Patient]:
    result = await db.execute(select(Patient).where(Patient.user_id == user.id))
    return result.scalar_one_or_none()
