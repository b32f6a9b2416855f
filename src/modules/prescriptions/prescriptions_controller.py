# src/modules/prescriptions/prescriptions_controller.py
"""Prescriptions controller with API routes."""

from datetime import datetime
from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, File, Form, Query, Response, UploadFile, status
from sqlalchemy.ext.asyncio import AsyncSession

from src.auth.dependencies import get_current_user
from src.common.database.database import get_db_session
from src.common.llm import LLMService, TranscriptionService, get_llm_service, get_transcription_service
from src.common.responses import EnvelopeRoute
from src.common.utils.pagination import DEFAULT_LIMIT, DEFAULT_PAGE, SortOrder
from src.models.models import PrescriptionStatus, User

from . import prescriptions_service as service
from .schemas import (
    AudioPrescriptionResponse, PrescriptionCreateRequest, PrescriptionListResponse, PrescriptionResponse,
)

router = APIRouter(prefix="/prescriptions", tags=["Prescriptions"], route_class=EnvelopeRoute)


# ============================================================================
# CREATION
# ============================================================================

@router.post("", response_model=PrescriptionResponse, status_code=status.HTTP_201_CREATED)
async def create_prescription(
    request: PrescriptionCreateRequest,
    db: AsyncSession = Depends(get_db_session),
    current_user: User = Depends(get_current_user)
):
    """Create a prescription for a patient. Doctors only."""
    return await service.create_prescription(db, current_user, request)


@router.post("/from-audio", response_model=AudioPrescriptionResponse, status_code=status.HTTP_201_CREATED)
async def create_prescription_from_audio(
    patient_id: UUID = Form(...),
    file: UploadFile = File(..., description="Dictated prescription (mp3, ogg, wav, webm, m4a)"),
    db: AsyncSession = Depends(get_db_session),
    current_user: User = Depends(get_current_user),
    transcriber: TranscriptionService = Depends(get_transcription_service),
    extractor: LLMService = Depends(get_llm_service),
):
    """
    Create a prescription from a dictated audio file. Doctors only.

    The audio is transcribed and structured into items before anything is saved.
    """
    audio_bytes = await file.read()
    return await service.create_prescription_from_audio(
        db,
        current_user,
        patient_id,
        audio_bytes,
        file.filename or "audio.mp3",
        transcriber,
        extractor,
    )


# ============================================================================
# LISTINGS (must come before /{prescription_id} routes)
# ============================================================================

@router.get("/admin", response_model=PrescriptionListResponse)
async def list_all_prescriptions(
    page: int = Query(DEFAULT_PAGE),
    limit: int = Query(DEFAULT_LIMIT),
    status: Optional[PrescriptionStatus] = Query(None),
    doctor_id: Optional[UUID] = Query(None),
    patient_id: Optional[UUID] = Query(None),
    date_from: Optional[datetime] = Query(None, alias="from"),
    date_to: Optional[datetime] = Query(None, alias="to"),
    order: SortOrder = Query(SortOrder.DESC),
    db: AsyncSession = Depends(get_db_session),
    current_user: User = Depends(get_current_user)
):
    """List every prescription with optional filters. Admins only."""
    return await service.list_all_prescriptions(
        db, current_user, page, limit, status, doctor_id, patient_id, date_from, date_to, order
    )


@router.get("/me", response_model=PrescriptionListResponse)
async def list_my_prescriptions(
    page: int = Query(DEFAULT_PAGE),
    limit: int = Query(DEFAULT_LIMIT),
    status: Optional[PrescriptionStatus] = Query(None),
    date_from: Optional[datetime] = Query(None, alias="from"),
    date_to: Optional[datetime] = Query(None, alias="to"),
    order: SortOrder = Query(SortOrder.DESC),
    db: AsyncSession = Depends(get_db_session),
    current_user: User = Depends(get_current_user)
):
    """List the calling patient's prescriptions."""
    return await service.list_my_prescriptions(
        db, current_user, page, limit, status, date_from, date_to, order
    )


@router.get("", response_model=PrescriptionListResponse)
async def list_authored_prescriptions(
    page: int = Query(DEFAULT_PAGE),
    limit: int = Query(DEFAULT_LIMIT),
    status: Optional[PrescriptionStatus] = Query(None),
    date_from: Optional[datetime] = Query(None, alias="from"),
    date_to: Optional[datetime] = Query(None, alias="to"),
    order: SortOrder = Query(SortOrder.DESC),
    db: AsyncSession = Depends(get_db_session),
    current_user: User = Depends(get_current_user)
):
    """List prescriptions written by the calling doctor."""
    return await service.list_authored_prescriptions(
        db, current_user, page, limit, status, date_from, date_to, order
    )


# ============================================================================
# SINGLE PRESCRIPTION
# ============================================================================

@router.get("/{prescription_id}", response_model=PrescriptionResponse)
async def get_prescription(
    prescription_id: UUID,
    db: AsyncSession = Depends(get_db_session),
    current_user: User = Depends(get_current_user)
):
    """Get a single prescription by ID."""
    return await service.get_prescription_by_id(db, current_user, prescription_id)


@router.put("/{prescription_id}/consume", response_model=PrescriptionResponse)
async def consume_prescription(
    prescription_id: UUID,
    db: AsyncSession = Depends(get_db_session),
    current_user: User = Depends(get_current_user)
):
    """Mark a pending prescription as consumed. Owning patient only."""
    return await service.consume_prescription(db, current_user, prescription_id)


@router.get("/{prescription_id}/pdf", response_class=Response)
async def download_prescription_pdf(
    prescription_id: UUID,
    db: AsyncSession = Depends(get_db_session),
    current_user: User = Depends(get_current_user)
):
    """Download the prescription as a PDF. Admins and the owning patient."""
    filename, content = await service.render_prescription_document(db, current_user, prescription_id)
    return Response(
        content=content,
        media_type="application/pdf",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )
