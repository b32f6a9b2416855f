# src/modules/prescriptions/prescriptions_service.py
"""Prescriptions service: creation, lifecycle, listings and documents."""

import logging
import secrets
import string
from datetime import datetime
from typing import Iterable, List, Optional, Tuple
from uuid import UUID

from sqlalchemy import func, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from src.auth.policy import Action, authorize, check_ownership, check_role
from src.common.exceptions import (
    AlreadyConsumedError, ConflictError, ExtractionError, ForbiddenError, NotFoundError,
    TranscriptionError, ValidationError,
)
from src.common.llm import LLMService, TranscriptionService
from src.common.utils.global_functions import get_doctor_profile, get_patient_profile
from src.common.utils.global_messages import GlobalMessages
from src.common.utils.pagination import (
    Page, SortOrder, as_utc, build_meta, page_offset, validate_date_range, validate_page,
)
from src.models.models import (
    Doctor, Patient, Prescription, PrescriptionItem, PrescriptionStatus, User, UserRole, utcnow,
)

from . import prescription_pdf
from .schemas import (
    AudioPrescriptionResponse, AuthorSummary, PatientSummary, PrescriptionCreateRequest,
    PrescriptionItemResponse, PrescriptionResponse,
)

logger = logging.getLogger(__name__)

CODE_PREFIX = "RX-"
CODE_ALPHABET = string.ascii_uppercase + string.digits
CODE_LENGTH = 10
MAX_CODE_ATTEMPTS = 5


# ============================================================================
# HELPERS
# ============================================================================

def generate_prescription_code() -> str:
    return CODE_PREFIX + "".join(secrets.choice(CODE_ALPHABET) for _ in range(CODE_LENGTH))


async def _unique_code(session: AsyncSession) -> str:
    for _ in range(MAX_CODE_ATTEMPTS):
        code = generate_prescription_code()
        exists = await session.execute(select(Prescription.id).where(Prescription.code == code))
        if exists.scalar_one_or_none() is None:
            return code
    raise ConflictError("Could not allocate a unique prescription code.")


def _load_options():
    return (
        selectinload(Prescription.items),
        selectinload(Prescription.patient).selectinload(Patient.user),
        selectinload(Prescription.author).selectinload(Doctor.user),
    )


async def _get_prescription(session: AsyncSession, prescription_id: UUID) -> Prescription:
    result = await session.execute(
        select(Prescription)
        .options(*_load_options())
        .where(Prescription.id == prescription_id)
        .execution_options(populate_existing=True)
    )
    prescription = result.scalar_one_or_none()
    if not prescription:
        raise NotFoundError(GlobalMessages.PRESCRIPTION_NOT_FOUND)
    return prescription


def to_response(prescription: Prescription) -> PrescriptionResponse:
    """Build prescription response with patient and author info."""
    patient = prescription.patient
    author = prescription.author
    return PrescriptionResponse(
        id=prescription.id,
        code=prescription.code,
        status=prescription.status,
        notes=prescription.notes,
        ai_generated=prescription.ai_generated,
        consumed_at=prescription.consumed_at,
        created_at=prescription.created_at,
        patient_id=prescription.patient_id,
        author_id=prescription.author_id,
        patient=PatientSummary(
            id=patient.id,
            name=patient.user.name,
            email=patient.user.email,
            birth_date=patient.birth_date,
        ) if patient else None,
        author=AuthorSummary(
            id=author.id,
            name=author.user.name,
            email=author.user.email,
            specialty=author.specialty,
        ) if author else None,
        items=[PrescriptionItemResponse.model_validate(item) for item in prescription.items],
    )


async def _require_doctor(session: AsyncSession, user: User, action: Action) -> Doctor:
    check_role(user.role, action).enforce()
    doctor = await get_doctor_profile(session, user)
    if not doctor:
        logger.warning("User %s has the doctor role but no doctor profile", user.id)
        raise ForbiddenError(GlobalMessages.DOCTOR_PROFILE_REQUIRED)
    return doctor


async def _require_patient(session: AsyncSession, user: User, action: Action) -> Patient:
    check_role(user.role, action).enforce()
    patient = await get_patient_profile(session, user)
    if not patient:
        logger.warning("User %s has the patient role but no patient profile", user.id)
        raise ForbiddenError(GlobalMessages.PATIENT_PROFILE_REQUIRED)
    return patient


async def _caller_patient_id(session: AsyncSession, user: User, action: Action) -> Optional[UUID]:
    """Role check, then the caller's patient profile id when ownership applies."""
    check_role(user.role, action).enforce()
    if user.role != UserRole.PATIENT:
        return None
    patient = await get_patient_profile(session, user)
    if not patient:
        raise ForbiddenError(GlobalMessages.PATIENT_PROFILE_REQUIRED)
    return patient.id


async def _get_patient(session: AsyncSession, patient_id: UUID) -> Patient:
    result = await session.execute(select(Patient).where(Patient.id == patient_id))
    patient = result.scalar_one_or_none()
    if not patient:
        raise NotFoundError(GlobalMessages.PATIENT_NOT_FOUND)
    return patient


def _validate_items(items: Iterable) -> list:
    items = list(items)
    if not items:
        raise ValidationError("A prescription needs at least one item.")
    for index, item in enumerate(items):
        if not item.name or not item.name.strip():
            raise ValidationError("Item name is required.", details={"item": index})
        if item.quantity is not None and item.quantity <= 0:
            raise ValidationError("Item quantity must be a positive integer.", details={"item": index})
    return items


async def _persist_prescription(
    session: AsyncSession,
    doctor: Doctor,
    patient: Patient,
    notes: Optional[str],
    items: list,
    ai_generated: bool = False,
    transcription: Optional[str] = None,
) -> Prescription:
    """Insert the prescription and all its items in one commit."""
    prescription = Prescription(
        code=await _unique_code(session),
        status=PrescriptionStatus.PENDING,
        notes=notes,
        ai_generated=ai_generated,
        transcription=transcription,
        patient_id=patient.id,
        author_id=doctor.id,
        items=[
            PrescriptionItem(
                position=position,
                name=item.name.strip(),
                dosage=item.dosage,
                quantity=item.quantity,
                instructions=item.instructions,
            )
            for position, item in enumerate(items)
        ],
    )
    session.add(prescription)
    try:
        await session.commit()
    except IntegrityError:
        await session.rollback()
        raise

    logger.info(
        "Doctor %s created prescription %s for patient %s (%d items)",
        doctor.id, prescription.code, patient.id, len(items),
    )
    return await _get_prescription(session, prescription.id)


# ============================================================================
# CREATION
# ============================================================================

async def create_prescription(
    session: AsyncSession,
    user: User,
    request: PrescriptionCreateRequest,
) -> PrescriptionResponse:
    """Create a prescription authored by the calling doctor."""
    doctor = await _require_doctor(session, user, Action.CREATE_PRESCRIPTION)
    patient = await _get_patient(session, request.patient_id)
    items = _validate_items(request.items)

    prescription = await _persist_prescription(session, doctor, patient, request.notes, items)
    return to_response(prescription)


async def create_prescription_from_audio(
    session: AsyncSession,
    user: User,
    patient_id: UUID,
    audio_bytes: bytes,
    filename: str,
    transcriber: TranscriptionService,
    extractor: LLMService,
) -> AudioPrescriptionResponse:
    """
    Create a prescription from a dictated audio file.

    The audio is transcribed, the text is structured into items, and only then
    is anything written. A failure at any step leaves the database untouched.
    """
    doctor = await _require_doctor(session, user, Action.CREATE_PRESCRIPTION)
    patient = await _get_patient(session, patient_id)

    transcription = await transcriber.transcribe(audio_bytes, filename)
    if not isinstance(transcription, str) or not transcription.strip():
        raise TranscriptionError(GlobalMessages.EMPTY_TRANSCRIPTION, status_code=400)
    transcription = transcription.strip()

    structured = await extractor.extract_prescription(transcription)
    if not structured.items:
        raise ExtractionError(GlobalMessages.NO_ITEMS_EXTRACTED, status_code=400)
    items = _validate_items(structured.items)

    prescription = await _persist_prescription(
        session,
        doctor,
        patient,
        structured.notes,
        items,
        ai_generated=True,
        transcription=transcription,
    )
    response = to_response(prescription)
    return AudioPrescriptionResponse(**response.model_dump(), transcription=transcription)


# ============================================================================
# LIFECYCLE
# ============================================================================

async def get_prescription_by_id(
    session: AsyncSession,
    user: User,
    prescription_id: UUID,
) -> PrescriptionResponse:
    """Get a single prescription; patients may only read their own."""
    caller_patient_id = await _caller_patient_id(session, user, Action.READ_PRESCRIPTION)
    prescription = await _get_prescription(session, prescription_id)
    authorize(user.role, Action.READ_PRESCRIPTION, caller_patient_id, prescription.patient_id).enforce()
    return to_response(prescription)


async def consume_prescription(
    session: AsyncSession,
    user: User,
    prescription_id: UUID,
) -> PrescriptionResponse:
    """Mark a pending prescription as consumed by its patient."""
    patient = await _require_patient(session, user, Action.CONSUME_PRESCRIPTION)
    prescription = await _get_prescription(session, prescription_id)
    check_ownership(user.role, Action.CONSUME_PRESCRIPTION, patient.id, prescription.patient_id).enforce()

    if prescription.status == PrescriptionStatus.CONSUMED:
        raise AlreadyConsumedError(GlobalMessages.PRESCRIPTION_ALREADY_CONSUMED)

    # Only a still-pending row transitions; a concurrent consume loses here
    result = await session.execute(
        update(Prescription)
        .where(
            Prescription.id == prescription_id,
            Prescription.status == PrescriptionStatus.PENDING,
        )
        .values(status=PrescriptionStatus.CONSUMED, consumed_at=utcnow())
        .execution_options(synchronize_session=False)
    )
    if result.rowcount != 1:
        await session.rollback()
        raise AlreadyConsumedError(GlobalMessages.PRESCRIPTION_ALREADY_CONSUMED)
    await session.commit()

    logger.info("Patient %s consumed prescription %s", patient.id, prescription.code)
    return to_response(await _get_prescription(session, prescription_id))


# ============================================================================
# LISTINGS
# ============================================================================

def _common_filters(
    status: Optional[PrescriptionStatus],
    date_from: Optional[datetime],
    date_to: Optional[datetime],
) -> List:
    validate_date_range(date_from, date_to)
    conditions = []
    if status is not None:
        conditions.append(Prescription.status == status)
    if date_from is not None:
        conditions.append(Prescription.created_at >= as_utc(date_from))
    if date_to is not None:
        conditions.append(Prescription.created_at <= as_utc(date_to))
    return conditions


async def _paginate(
    session: AsyncSession,
    conditions: List,
    page: int,
    limit: int,
    order: SortOrder,
) -> Page[PrescriptionResponse]:
    total_result = await session.execute(
        select(func.count(Prescription.id)).where(*conditions)
    )
    total = total_result.scalar() or 0

    sort = Prescription.created_at.asc() if order == SortOrder.ASC else Prescription.created_at.desc()
    result = await session.execute(
        select(Prescription)
        .options(*_load_options())
        .where(*conditions)
        .order_by(sort, Prescription.id)
        .offset(page_offset(page, limit))
        .limit(limit)
    )
    prescriptions = result.scalars().all()

    return Page[PrescriptionResponse](
        data=[to_response(p) for p in prescriptions],
        meta=build_meta(total, page, limit),
    )


async def list_all_prescriptions(
    session: AsyncSession,
    user: User,
    page: int = 1,
    limit: int = 10,
    status: Optional[PrescriptionStatus] = None,
    doctor_id: Optional[UUID] = None,
    patient_id: Optional[UUID] = None,
    date_from: Optional[datetime] = None,
    date_to: Optional[datetime] = None,
    order: SortOrder = SortOrder.DESC,
) -> Page[PrescriptionResponse]:
    """Every prescription in the system, for admins."""
    check_role(user.role, Action.LIST_ALL_PRESCRIPTIONS).enforce()
    validate_page(page, limit)

    conditions = _common_filters(status, date_from, date_to)
    if doctor_id is not None:
        conditions.append(Prescription.author_id == doctor_id)
    if patient_id is not None:
        conditions.append(Prescription.patient_id == patient_id)

    return await _paginate(session, conditions, page, limit, order)


async def list_authored_prescriptions(
    session: AsyncSession,
    user: User,
    page: int = 1,
    limit: int = 10,
    status: Optional[PrescriptionStatus] = None,
    date_from: Optional[datetime] = None,
    date_to: Optional[datetime] = None,
    order: SortOrder = SortOrder.DESC,
) -> Page[PrescriptionResponse]:
    """Prescriptions written by the calling doctor."""
    doctor = await _require_doctor(session, user, Action.LIST_AUTHORED_PRESCRIPTIONS)
    validate_page(page, limit)

    conditions = _common_filters(status, date_from, date_to)
    conditions.append(Prescription.author_id == doctor.id)
    return await _paginate(session, conditions, page, limit, order)


async def list_my_prescriptions(
    session: AsyncSession,
    user: User,
    page: int = 1,
    limit: int = 10,
    status: Optional[PrescriptionStatus] = None,
    date_from: Optional[datetime] = None,
    date_to: Optional[datetime] = None,
    order: SortOrder = SortOrder.DESC,
) -> Page[PrescriptionResponse]:
    """Prescriptions addressed to the calling patient."""
    patient = await _require_patient(session, user, Action.LIST_OWN_PRESCRIPTIONS)
    validate_page(page, limit)

    conditions = _common_filters(status, date_from, date_to)
    conditions.append(Prescription.patient_id == patient.id)
    return await _paginate(session, conditions, page, limit, order)


# ============================================================================
# DOCUMENT
# ============================================================================

async def render_prescription_document(
    session: AsyncSession,
    user: User,
    prescription_id: UUID,
) -> Tuple[str, bytes]:
    """Return (filename, pdf bytes) for admins and the owning patient."""
    caller_patient_id = await _caller_patient_id(session, user, Action.DOWNLOAD_PRESCRIPTION)
    prescription = await _get_prescription(session, prescription_id)
    authorize(user.role, Action.DOWNLOAD_PRESCRIPTION, caller_patient_id, prescription.patient_id).enforce()

    logger.info("User %s downloaded prescription %s", user.id, prescription.code)
    return (
        prescription_pdf.document_filename(prescription.code),
        prescription_pdf.render_prescription_pdf(prescription),
    )
