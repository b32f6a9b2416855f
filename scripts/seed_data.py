# scripts/seed_data.py
"""
Seed script for local development and manual testing.

Creates an admin, one doctor and two patients, plus a handful of
prescriptions in both states. Patient B exists so that cross-patient access
can be tried by hand (patient A must not see B's prescriptions).

Run: python -m scripts.seed_data
"""

import asyncio
from datetime import date, datetime, timedelta, timezone

from sqlalchemy import delete
from sqlalchemy.ext.asyncio import AsyncSession

from src.auth.auth_service import hash_password
from src.common.database.database import async_session
from src.models.models import (
    Doctor, Patient, Prescription, PrescriptionItem, PrescriptionStatus, User, UserRole,
)


# =============================================================================
# CONSTANTS - Test Credentials
# =============================================================================

ADMIN_EMAIL, ADMIN_PASSWORD = "admin@clinic.com", "admin123"
DOCTOR_EMAIL, DOCTOR_PASSWORD = "dr@clinic.com", "dr1234"
PATIENT_A_EMAIL, PATIENT_B_EMAIL, PATIENT_PASSWORD = "patient@clinic.com", "patient2@clinic.com", "patient123"

MEDS = [
    {"name": "Ibuprofen", "dosage": "400mg", "quantity": 12, "instructions": "1 every 8 hours"},
    {"name": "Omeprazole", "dosage": "20mg", "quantity": 14, "instructions": "1 on an empty stomach"},
    {"name": "Amoxicillin", "dosage": "500mg", "quantity": 21, "instructions": "1 every 8 hours for 7 days"},
    {"name": "Losartan", "dosage": "50mg", "quantity": 60, "instructions": "1 every 12 hours"},
    {"name": "Cetirizine", "dosage": "10mg", "quantity": 10, "instructions": "1 a day (night)"},
]


async def clear_existing_data(db: AsyncSession):
    """Clear all data, children first."""
    print("🧹 Clearing existing data...")

    for table in [PrescriptionItem, Prescription, Doctor, Patient, User]:
        await db.execute(delete(table))

    await db.commit()
    print("✅ Data cleared")


def create_user(email: str, password: str, name: str, role: UserRole) -> User:
    return User(email=email, password_hash=hash_password(password), name=name, role=role)


def create_prescription(
    code: str,
    patient: Patient,
    doctor: Doctor,
    notes: str,
    items: list,
    consumed_on: date = None,
) -> Prescription:
    consumed_at = (
        datetime(consumed_on.year, consumed_on.month, consumed_on.day, tzinfo=timezone.utc)
        if consumed_on else None
    )
    return Prescription(
        code=code,
        status=PrescriptionStatus.CONSUMED if consumed_at else PrescriptionStatus.PENDING,
        notes=notes,
        consumed_at=consumed_at,
        created_at=(consumed_at or datetime.now(timezone.utc)) - timedelta(days=3),
        patient=patient,
        author=doctor,
        items=[PrescriptionItem(position=i, **item) for i, item in enumerate(items)],
    )


async def seed_all_data(db: AsyncSession):
    """Main seeding function."""
    print("\n🌱 Starting prescriptions seed")
    print("=" * 50)

    admin = create_user(ADMIN_EMAIL, ADMIN_PASSWORD, "Test Admin", UserRole.ADMIN)

    doctor_user = create_user(DOCTOR_EMAIL, DOCTOR_PASSWORD, "Test Doctor", UserRole.DOCTOR)
    doctor_user.doctor = Doctor(specialty="General medicine")

    patient_a_user = create_user(PATIENT_A_EMAIL, PATIENT_PASSWORD, "Test Patient A", UserRole.PATIENT)
    patient_a_user.patient = Patient(birth_date=date(1995, 3, 22), phone="+57 300 000 0001")

    patient_b_user = create_user(PATIENT_B_EMAIL, PATIENT_PASSWORD, "Test Patient B", UserRole.PATIENT)
    patient_b_user.patient = Patient(birth_date=date(1998, 7, 10), phone="+57 300 000 0002")

    db.add_all([admin, doctor_user, patient_a_user, patient_b_user])
    await db.flush()
    print("👤 Users created")

    doctor = doctor_user.doctor
    patient_a = patient_a_user.patient
    patient_b = patient_b_user.patient

    prescriptions = [
        create_prescription("RX-001-2025", patient_a, doctor, "Muscle pain - follow up in 1 week", [MEDS[0], MEDS[1]]),
        create_prescription("RX-002-2025", patient_a, doctor, "Gastritis - treatment completed", [MEDS[1]],
                            consumed_on=date(2025, 12, 5)),
        create_prescription("RX-003-2025", patient_a, doctor, "Respiratory infection", [MEDS[2]]),
        create_prescription("RX-004-2025", patient_a, doctor, "Seasonal allergy - resolved", [MEDS[4]],
                            consumed_on=date(2025, 12, 1)),
        create_prescription("RX-005-2025", patient_a, doctor, "Hypertension - monthly check", [MEDS[3]]),
        create_prescription("RX-006-2025", patient_b, doctor, "Headache - observation", [MEDS[0]]),
        create_prescription("RX-007-2025", patient_b, doctor, "Gastritis - start treatment", [MEDS[1]]),
        create_prescription("RX-008-2025", patient_b, doctor, "Infection - treatment completed", [MEDS[2]],
                            consumed_on=date(2025, 12, 3)),
    ]
    db.add_all(prescriptions)
    await db.commit()
    print(f"💊 {len(prescriptions)} prescriptions created")

    print("\n" + "=" * 50)
    print("✅ Seed complete! Test credentials:")
    print(f"   Admin:     {ADMIN_EMAIL} / {ADMIN_PASSWORD}")
    print(f"   Doctor:    {DOCTOR_EMAIL} / {DOCTOR_PASSWORD}")
    print(f"   Patient A: {PATIENT_A_EMAIL} / {PATIENT_PASSWORD}")
    print(f"   Patient B: {PATIENT_B_EMAIL} / {PATIENT_PASSWORD}")
    print("=" * 50 + "\n")


# =============================================================================
# MAIN
# =============================================================================

async def main():
    """Run the seed script."""
    async with async_session() as db:
        try:
            await clear_existing_data(db)
            await seed_all_data(db)
        except Exception as e:
            await db.rollback()
            print(f"\n❌ Error during seeding: {e}")
            raise


if __name__ == "__main__":
    asyncio.run(main())
