# src/modules/patients/schemas.py
"""Patients module Pydantic schemas."""

from datetime import date, datetime
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, EmailStr

from src.common.utils.pagination import Page


class PatientProfileSummary(BaseModel):
    id: UUID
    birth_date: Optional[date] = None
    phone: Optional[str] = None
    prescription_count: int = 0


class PatientListItem(BaseModel):
    """A patient account with its profile."""
    id: UUID
    email: EmailStr
    name: str
    created_at: datetime
    patient: PatientProfileSummary


PatientListResponse = Page[PatientListItem]
