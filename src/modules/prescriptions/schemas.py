# src/modules/prescriptions/schemas.py
"""Prescriptions module Pydantic schemas."""

from datetime import date, datetime
from typing import List, Optional
from uuid import UUID

from pydantic import BaseModel, EmailStr, Field, field_validator

from src.common.utils.pagination import Page
from src.models.models import PrescriptionStatus


# ============================================================================
# REQUEST SCHEMAS
# ============================================================================

class PrescriptionItemCreate(BaseModel):
    """A single medication line."""
    name: str = Field(..., min_length=1, max_length=255)
    dosage: Optional[str] = Field(default=None, max_length=255)
    quantity: Optional[int] = Field(default=None, ge=1)
    instructions: Optional[str] = None

    @field_validator("name")
    def name_not_blank(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("Item name is required.")
        return value


class PrescriptionCreateRequest(BaseModel):
    """Request to create a prescription for a patient."""
    patient_id: UUID
    notes: Optional[str] = None
    items: List[PrescriptionItemCreate] = Field(..., min_length=1)


# ============================================================================
# RESPONSE SCHEMAS
# ============================================================================

class PrescriptionItemResponse(BaseModel):
    id: UUID
    name: str
    dosage: Optional[str] = None
    quantity: Optional[int] = None
    instructions: Optional[str] = None

    class Config:
        from_attributes = True


class PatientSummary(BaseModel):
    """Patient block shown on a prescription."""
    id: UUID
    name: str
    email: EmailStr
    birth_date: Optional[date] = None


class AuthorSummary(BaseModel):
    """Prescribing doctor block shown on a prescription."""
    id: UUID
    name: str
    email: EmailStr
    specialty: Optional[str] = None


class PrescriptionResponse(BaseModel):
    """Full prescription details."""
    id: UUID
    code: str
    status: PrescriptionStatus
    notes: Optional[str] = None
    ai_generated: bool = False
    consumed_at: Optional[datetime] = None
    created_at: datetime
    patient_id: UUID
    author_id: UUID
    patient: Optional[PatientSummary] = None
    author: Optional[AuthorSummary] = None
    items: List[PrescriptionItemResponse] = []


class AudioPrescriptionResponse(PrescriptionResponse):
    """Prescription created from a dictation, with the text it was built from."""
    transcription: str
    ai_processed: bool = True


PrescriptionListResponse = Page[PrescriptionResponse]
