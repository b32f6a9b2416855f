# src/modules/user/schemas.py

from datetime import date, datetime
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, EmailStr, Field, field_validator

from src.auth.schemas import ProfileResponse
from src.common.utils.pagination import Page
from src.models.models import UserRole


def _normalize_email(value):
    if isinstance(value, str):
        return value.strip().lower()
    return value


class CreateUserRequest(BaseModel):
    """Admins may create accounts of any role, including other admins."""
    email: EmailStr
    password: str = Field(..., min_length=6)
    name: str = Field(..., min_length=1, max_length=200)
    role: UserRole
    specialty: Optional[str] = None
    birth_date: Optional[date] = None
    phone: Optional[str] = None

    _normalize = field_validator("email", mode="before")(_normalize_email)

    @field_validator("name")
    def name_not_blank(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("Name is required.")
        return value


class UpdateUserRequest(BaseModel):
    """Only the fields sent are updated."""
    email: Optional[EmailStr] = None
    password: Optional[str] = Field(default=None, min_length=6)
    name: Optional[str] = Field(default=None, min_length=1, max_length=200)
    role: Optional[UserRole] = None
    specialty: Optional[str] = None
    birth_date: Optional[date] = None
    phone: Optional[str] = None

    _normalize = field_validator("email", mode="before")(_normalize_email)


class UserDetailResponse(ProfileResponse):
    updated_at: datetime


UserListResponse = Page[UserDetailResponse]
