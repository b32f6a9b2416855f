# src/models/models.py

import uuid
import enum
from datetime import datetime, timezone

from sqlalchemy import (
    Boolean, CheckConstraint, Column, Date, ForeignKey, Index, Integer,
    String, Text, DateTime, Uuid,
    Enum as SAEnum,
    func,
)
from sqlalchemy.orm import declarative_base, relationship

Base = declarative_base()


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


# ============================================================================
# ENUMS
# ============================================================================

class UserRole(enum.Enum):
    ADMIN = "admin"
    DOCTOR = "doctor"
    PATIENT = "patient"


class PrescriptionStatus(enum.Enum):
    PENDING = "pending"
    CONSUMED = "consumed"


# ============================================================================
# USER MODELS
# ============================================================================

class User(Base):
    __tablename__ = "users"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4, nullable=False)
    email = Column(String(255), unique=True, nullable=False, index=True)
    password_hash = Column(String(255), nullable=False)
    name = Column(String(200), nullable=False)
    role = Column(SAEnum(UserRole), nullable=False, default=UserRole.PATIENT)
    # Null means the user has no active session
    hashed_refresh_token = Column(String(255), nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow, server_default=func.now())
    updated_at = Column(DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow, server_default=func.now())

    # Relationships (exactly one profile exists for doctors and patients)
    doctor = relationship(
        "Doctor", back_populates="user", uselist=False, cascade="all, delete-orphan", passive_deletes=True
    )
    patient = relationship(
        "Patient", back_populates="user", uselist=False, cascade="all, delete-orphan", passive_deletes=True
    )

    def __repr__(self):
        return f"<User(id={self.id}, email={self.email}, role={self.role.value})>"


class Doctor(Base):
    __tablename__ = "doctors"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4, nullable=False)
    user_id = Column(Uuid, ForeignKey("users.id", ondelete="CASCADE"), unique=True, nullable=False)
    specialty = Column(String(150), nullable=True)

    # Relationship
    user = relationship("User", back_populates="doctor")

    def __repr__(self):
        return f"<Doctor(id={self.id}, specialty={self.specialty})>"


class Patient(Base):
    __tablename__ = "patients"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4, nullable=False)
    user_id = Column(Uuid, ForeignKey("users.id", ondelete="CASCADE"), unique=True, nullable=False)
    birth_date = Column(Date, nullable=True)
    phone = Column(String(30), nullable=True)

    # Relationship
    user = relationship("User", back_populates="patient")

    def __repr__(self):
        return f"<Patient(id={self.id}, user_id={self.user_id})>"


# ============================================================================
# PRESCRIPTION MODELS
# ============================================================================

class Prescription(Base):
    __tablename__ = "prescriptions"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4, nullable=False)
    code = Column(String(20), unique=True, nullable=False, index=True)  # e.g., RX-7K2M9QZ1AB
    status = Column(SAEnum(PrescriptionStatus), nullable=False, default=PrescriptionStatus.PENDING)
    notes = Column(Text, nullable=True)
    ai_generated = Column(Boolean, default=False, nullable=False)
    transcription = Column(Text, nullable=True)
    consumed_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow, server_default=func.now())
    patient_id = Column(Uuid, ForeignKey("patients.id", ondelete="CASCADE"), nullable=False)
    author_id = Column(Uuid, ForeignKey("doctors.id", ondelete="CASCADE"), nullable=False)

    # Relationships
    patient = relationship("Patient")
    author = relationship("Doctor")
    items = relationship(
        "PrescriptionItem",
        back_populates="prescription",
        cascade="all, delete-orphan",
        passive_deletes=True,
        order_by="PrescriptionItem.position",
    )

    __table_args__ = (
        Index("ix_prescriptions_patient_created", "patient_id", "created_at"),
        Index("ix_prescriptions_author_created", "author_id", "created_at"),
    )

    def __repr__(self):
        return f"<Prescription(id={self.id}, code={self.code}, status={self.status.value})>"


class PrescriptionItem(Base):
    __tablename__ = "prescription_items"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4, nullable=False)
    prescription_id = Column(Uuid, ForeignKey("prescriptions.id", ondelete="CASCADE"), nullable=False, index=True)
    position = Column(Integer, nullable=False, default=0)
    name = Column(String(255), nullable=False)
    dosage = Column(String(255), nullable=True)
    quantity = Column(Integer, nullable=True)
    instructions = Column(Text, nullable=True)

    prescription = relationship("Prescription", back_populates="items")

    __table_args__ = (
        CheckConstraint("quantity IS NULL OR quantity > 0", name="ck_prescription_items_quantity_positive"),
    )

    def __repr__(self):
        return f"<PrescriptionItem(id={self.id}, name={self.name})>"
