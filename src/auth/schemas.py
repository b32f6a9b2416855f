# src/auth/schemas.py

from datetime import date, datetime
from enum import Enum
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, EmailStr, Field, field_validator

from src.models.models import UserRole


class RegisterRole(str, Enum):
    """Roles open to self-registration; admins are created by other admins or the seed."""
    DOCTOR = "doctor"
    PATIENT = "patient"


def _normalize_email(value):
    if isinstance(value, str):
        return value.strip().lower()
    return value


class LoginRequest(BaseModel):
    email: EmailStr
    password: str = Field(..., min_length=1)

    _normalize = field_validator("email", mode="before")(_normalize_email)


class RegisterRequest(BaseModel):
    email: EmailStr
    password: str = Field(..., min_length=6)
    name: str = Field(..., min_length=1, max_length=200)
    role: RegisterRole = RegisterRole.PATIENT
    # Doctors only
    specialty: Optional[str] = None
    # Patients only
    birth_date: Optional[date] = None
    phone: Optional[str] = None

    _normalize = field_validator("email", mode="before")(_normalize_email)

    @field_validator("name")
    def name_not_blank(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("Name is required.")
        return value


class RefreshTokenRequest(BaseModel):
    refresh_token: str = Field(..., min_length=1)


class DoctorProfileResponse(BaseModel):
    id: UUID
    specialty: Optional[str] = None

    class Config:
        from_attributes = True


class PatientProfileResponse(BaseModel):
    id: UUID
    birth_date: Optional[date] = None
    phone: Optional[str] = None

    class Config:
        from_attributes = True


class UserResponse(BaseModel):
    """User info returned after login/registration"""
    id: UUID
    email: EmailStr
    name: str
    role: UserRole

    class Config:
        from_attributes = True


class ProfileResponse(UserResponse):
    created_at: datetime
    doctor: Optional[DoctorProfileResponse] = None
    patient: Optional[PatientProfileResponse] = None


class TokenPairResponse(BaseModel):
    access_token: str
    refresh_token: str
    token_type: str = "bearer"


class AuthResponse(TokenPairResponse):
    user: UserResponse


class MessageResponse(BaseModel):
    message: str
