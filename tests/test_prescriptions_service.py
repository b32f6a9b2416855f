"""
Service-level tests for the prescription lifecycle and the audio pipeline.
"""

import re
import uuid
from datetime import datetime

import pytest
from sqlalchemy import func, select, update

from src.common.exceptions import (
    AlreadyConsumedError, ConflictError, ExtractionError, ForbiddenError, NotFoundError,
    TranscriptionError, ValidationError,
)
from src.common.llm.llm_service import StructuredPrescription
from src.models.models import Prescription, PrescriptionItem, PrescriptionStatus
from src.modules.prescriptions import prescriptions_service as service
from src.modules.prescriptions.schemas import PrescriptionCreateRequest, PrescriptionItemCreate

from .conftest import FakeExtractor, FakeTranscriber, InterleavedSession


def _request(patient, items=None, notes="Take with food"):
    return PrescriptionCreateRequest(
        patient_id=patient.patient.id,
        notes=notes,
        items=items or [
            PrescriptionItemCreate(name="Amoxicillin", dosage="500 mg", quantity=21, instructions="Every 8 hours"),
            PrescriptionItemCreate(name="Paracetamol"),
        ],
    )


async def _count(session_factory, model):
    async with session_factory() as s:
        return (await s.execute(select(func.count()).select_from(model))).scalar()


# ── Creation ─────────────────────────────────────────────────────────

async def test_create_prescription(session, doctor, patient):
    rx = await service.create_prescription(session, doctor, _request(patient))

    assert re.fullmatch(r"RX-[A-Z0-9]{10}", rx.code)
    assert rx.status == PrescriptionStatus.PENDING
    assert rx.consumed_at is None
    assert rx.author_id == doctor.doctor.id
    assert rx.patient_id == patient.patient.id
    assert [i.name for i in rx.items] == ["Amoxicillin", "Paracetamol"]
    assert rx.items[1].dosage is None
    assert rx.author.name == "Gregory House"
    assert rx.patient.email == "alice@example.com"
    assert rx.ai_generated is False


async def test_codes_are_unique(session, doctor, patient):
    codes = {
        (await service.create_prescription(session, doctor, _request(patient))).code
        for _ in range(5)
    }
    assert len(codes) == 5


async def test_create_for_unknown_patient(session, doctor):
    request = PrescriptionCreateRequest(
        patient_id=uuid.uuid4(), items=[PrescriptionItemCreate(name="Aspirin")]
    )
    with pytest.raises(NotFoundError):
        await service.create_prescription(session, doctor, request)


@pytest.mark.parametrize("role_fixture", ["admin", "patient"])
async def test_only_doctors_create(request, session, patient, role_fixture):
    caller = request.getfixturevalue(role_fixture)
    with pytest.raises(ForbiddenError):
        await service.create_prescription(session, caller, _request(patient))


async def test_item_validation_is_enforced_by_the_service(session, doctor, patient):
    request = _request(patient)
    request.items[0].quantity = 0
    with pytest.raises(ValidationError):
        await service.create_prescription(session, doctor, request)

    request = _request(patient)
    request.items = []
    with pytest.raises(ValidationError):
        await service.create_prescription(session, doctor, request)


# ── Audio pipeline ───────────────────────────────────────────────────

async def test_create_from_audio(session, doctor, patient):
    transcriber, extractor = FakeTranscriber(), FakeExtractor()
    rx = await service.create_prescription_from_audio(
        session, doctor, patient.patient.id, b"fake-audio", "visit.ogg", transcriber, extractor,
    )

    assert transcriber.calls == [(b"fake-audio", "visit.ogg")]
    assert extractor.calls == [transcriber.text]
    assert rx.ai_generated is True
    assert rx.ai_processed is True
    assert rx.transcription == transcriber.text
    assert rx.notes == "Review in one week"
    assert rx.items[0].name == "Ibuprofen"
    assert rx.items[0].quantity == 12


async def test_transcription_failure_persists_nothing(session, session_factory, doctor, patient):
    transcriber = FakeTranscriber(error=TranscriptionError("upstream down"))
    extractor = FakeExtractor()
    with pytest.raises(TranscriptionError):
        await service.create_prescription_from_audio(
            session, doctor, patient.patient.id, b"x", "a.mp3", transcriber, extractor,
        )
    assert extractor.calls == []
    assert await _count(session_factory, Prescription) == 0


@pytest.mark.parametrize("text", ["", "   \n\t"])
async def test_blank_transcription_persists_nothing(session, session_factory, doctor, patient, text):
    extractor = FakeExtractor()
    with pytest.raises(TranscriptionError) as e:
        await service.create_prescription_from_audio(
            session, doctor, patient.patient.id, b"x", "a.mp3", FakeTranscriber(text=text), extractor,
        )
    assert e.value.status_code == 400
    assert extractor.calls == []
    assert await _count(session_factory, Prescription) == 0


async def test_empty_extraction_persists_nothing(session, session_factory, doctor, patient):
    extractor = FakeExtractor(result=StructuredPrescription(notes="nothing", items=[]))
    with pytest.raises(ExtractionError) as e:
        await service.create_prescription_from_audio(
            session, doctor, patient.patient.id, b"x", "a.mp3", FakeTranscriber(), extractor,
        )
    assert e.value.status_code == 400
    assert await _count(session_factory, Prescription) == 0
    assert await _count(session_factory, PrescriptionItem) == 0


async def test_extraction_failure_persists_nothing(session, session_factory, doctor, patient):
    extractor = FakeExtractor(error=ExtractionError("bad schema"))
    with pytest.raises(ExtractionError):
        await service.create_prescription_from_audio(
            session, doctor, patient.patient.id, b"x", "a.mp3", FakeTranscriber(), extractor,
        )
    assert await _count(session_factory, Prescription) == 0


async def test_audio_for_unknown_patient_skips_the_adapters(session, doctor):
    transcriber = FakeTranscriber()
    with pytest.raises(NotFoundError):
        await service.create_prescription_from_audio(
            session, doctor, uuid.uuid4(), b"x", "a.mp3", transcriber, FakeExtractor(),
        )
    assert transcriber.calls == []


# ── Read / consume ───────────────────────────────────────────────────

async def test_read_access(session, admin, doctor, other_doctor, patient, other_patient):
    rx = await service.create_prescription(session, doctor, _request(patient))

    for caller in (admin, doctor, other_doctor, patient):
        assert (await service.get_prescription_by_id(session, caller, rx.id)).id == rx.id

    with pytest.raises(ForbiddenError):
        await service.get_prescription_by_id(session, other_patient, rx.id)


async def test_read_missing_prescription(session, admin):
    with pytest.raises(NotFoundError):
        await service.get_prescription_by_id(session, admin, uuid.uuid4())


async def test_consume_once(session, doctor, patient):
    rx = await service.create_prescription(session, doctor, _request(patient))

    consumed = await service.consume_prescription(session, patient, rx.id)
    assert consumed.status == PrescriptionStatus.CONSUMED
    assert consumed.consumed_at is not None

    with pytest.raises(AlreadyConsumedError) as e:
        await service.consume_prescription(session, patient, rx.id)
    assert isinstance(e.value, ConflictError)
    assert e.value.status_code == 409

    again = await service.get_prescription_by_id(session, patient, rx.id)
    assert again.consumed_at == consumed.consumed_at


async def test_concurrent_consume_loses(session, session_factory, doctor, patient):
    rx = await service.create_prescription(session, doctor, _request(patient))
    first_consumed_at = datetime(2025, 12, 5, 9, 30)

    async def consume_elsewhere():
        async with session_factory() as other:
            await other.execute(
                update(Prescription)
                .where(Prescription.id == rx.id)
                .values(status=PrescriptionStatus.CONSUMED, consumed_at=first_consumed_at)
            )
            await other.commit()

    async with session_factory() as s:
        with pytest.raises(AlreadyConsumedError):
            await service.consume_prescription(InterleavedSession(s, consume_elsewhere), patient, rx.id)

    async with session_factory() as s:
        stored = await s.get(Prescription, rx.id)
    assert stored.status == PrescriptionStatus.CONSUMED
    assert stored.consumed_at.replace(tzinfo=None) == first_consumed_at


async def test_consume_requires_owner(session, doctor, patient, other_patient):
    rx = await service.create_prescription(session, doctor, _request(patient))
    with pytest.raises(ForbiddenError):
        await service.consume_prescription(session, other_patient, rx.id)

    unchanged = await service.get_prescription_by_id(session, patient, rx.id)
    assert unchanged.status == PrescriptionStatus.PENDING


@pytest.mark.parametrize("role_fixture", ["admin", "doctor"])
async def test_consume_is_patient_only(request, session, doctor, patient, role_fixture):
    rx = await service.create_prescription(session, doctor, _request(patient))
    caller = request.getfixturevalue(role_fixture)
    with pytest.raises(ForbiddenError):
        await service.consume_prescription(session, caller, rx.id)


async def test_role_is_checked_before_existence(session, doctor):
    # A doctor can never consume, so the missing prescription is not revealed
    with pytest.raises(ForbiddenError):
        await service.consume_prescription(session, doctor, uuid.uuid4())


# ── Document ─────────────────────────────────────────────────────────

async def test_document_for_owner_and_admin(session, admin, doctor, patient, other_patient):
    rx = await service.create_prescription(session, doctor, _request(patient))

    filename, content = await service.render_prescription_document(session, patient, rx.id)
    assert filename == f"prescripcion-{rx.code}.pdf"
    assert content.startswith(b"%PDF")

    filename, _ = await service.render_prescription_document(session, admin, rx.id)
    assert filename == f"prescripcion-{rx.code}.pdf"

    with pytest.raises(ForbiddenError):
        await service.render_prescription_document(session, other_patient, rx.id)
    with pytest.raises(ForbiddenError):
        await service.render_prescription_document(session, doctor, rx.id)
