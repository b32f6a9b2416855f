# src/modules/doctors/schemas.py
"""Doctors module Pydantic schemas."""

from datetime import datetime
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, EmailStr

from src.common.utils.pagination import Page


class DoctorProfileSummary(BaseModel):
    id: UUID
    specialty: Optional[str] = None
    prescription_count: int = 0


class DoctorListItem(BaseModel):
    """A doctor account with its profile."""
    id: UUID
    email: EmailStr
    name: str
    created_at: datetime
    doctor: DoctorProfileSummary


DoctorListResponse = Page[DoctorListItem]
