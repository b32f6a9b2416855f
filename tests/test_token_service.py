"""
Unit tests for token issuance, verification and refresh rotation.
"""

import uuid
from datetime import timedelta

import pytest
from pydantic import ValidationError as PydanticValidationError
from sqlalchemy import update

from src.auth import token_service
from src.common.config import Settings
from src.common.exceptions import InvalidTokenError, UnauthorizedError
from src.models.models import User, UserRole

from .conftest import InterleavedSession


async def _stored_hash(session_factory, user_id):
    async with session_factory() as s:
        return (await s.get(User, user_id)).hashed_refresh_token


# ── Issuance / verification ──────────────────────────────────────────

def test_issue_token_pair_claims_roundtrip():
    user_id = uuid.uuid4()
    pair = token_service.issue_token_pair(user_id, "a@example.com", UserRole.DOCTOR)

    access = token_service.verify_access_token(pair.access_token)
    refresh = token_service.verify_refresh_token(pair.refresh_token)

    assert access.subject == user_id
    assert access.role == UserRole.DOCTOR
    assert access.token_type == "access"
    assert refresh.token_type == "refresh"
    assert refresh.expires_at > access.expires_at


def test_pairs_issued_back_to_back_differ():
    user_id = uuid.uuid4()
    first = token_service.issue_token_pair(user_id, "a@example.com", UserRole.PATIENT)
    second = token_service.issue_token_pair(user_id, "a@example.com", UserRole.PATIENT)
    assert first.access_token != second.access_token
    assert first.refresh_token != second.refresh_token


def test_refresh_token_is_not_an_access_token():
    pair = token_service.issue_token_pair(uuid.uuid4(), "a@example.com", UserRole.PATIENT)
    with pytest.raises(InvalidTokenError):
        token_service.verify_access_token(pair.refresh_token)
    with pytest.raises(InvalidTokenError):
        token_service.verify_refresh_token(pair.access_token)


def test_expired_access_token_is_rejected():
    token = token_service.create_access_token(
        uuid.uuid4(), "a@example.com", UserRole.ADMIN, expires_delta=timedelta(seconds=-5)
    )
    with pytest.raises(InvalidTokenError) as e:
        token_service.verify_access_token(token)
    assert "expired" in e.value.message


def test_tampered_token_is_rejected():
    token = token_service.create_access_token(uuid.uuid4(), "a@example.com", UserRole.ADMIN)
    with pytest.raises(InvalidTokenError):
        token_service.verify_access_token(token[:-2] + ("AA" if token[-2:] != "AA" else "BB"))


def test_settings_reject_identical_secrets():
    with pytest.raises(PydanticValidationError):
        Settings(
            DATABASE_URL="sqlite+aiosqlite:///:memory:",
            JWT_ACCESS_SECRET="same",
            JWT_REFRESH_SECRET="same",
        )


def test_refresh_hash_is_one_way():
    hashed = token_service.hash_refresh_token("a.b.c")
    assert hashed != "a.b.c"
    assert token_service.refresh_token_matches("a.b.c", hashed)
    assert not token_service.refresh_token_matches("a.b.d", hashed)


# ── Rotation ─────────────────────────────────────────────────────────

async def test_rotation_replaces_the_stored_hash(session, session_factory, patient):
    pair = token_service.issue_token_pair(patient.id, patient.email, patient.role)
    await token_service.persist_refresh_token(session, patient.id, pair.refresh_token)
    before = await _stored_hash(session_factory, patient.id)

    async with session_factory() as s:
        new_pair = await token_service.rotate_on_refresh(s, patient.id, patient.email, pair.refresh_token)

    after = await _stored_hash(session_factory, patient.id)
    assert new_pair.refresh_token != pair.refresh_token
    assert after != before
    assert token_service.refresh_token_matches(new_pair.refresh_token, after)


async def test_old_refresh_token_cannot_be_reused(session, session_factory, patient):
    pair = token_service.issue_token_pair(patient.id, patient.email, patient.role)
    await token_service.persist_refresh_token(session, patient.id, pair.refresh_token)

    async with session_factory() as s:
        await token_service.rotate_on_refresh(s, patient.id, patient.email, pair.refresh_token)

    async with session_factory() as s:
        with pytest.raises(UnauthorizedError):
            await token_service.rotate_on_refresh(s, patient.id, patient.email, pair.refresh_token)


async def test_concurrent_rotation_loses_the_swap(session, session_factory, patient):
    pair = token_service.issue_token_pair(patient.id, patient.email, patient.role)
    await token_service.persist_refresh_token(session, patient.id, pair.refresh_token)
    winner_hash = token_service.hash_refresh_token("rotated-by-another-request")

    async def rotate_elsewhere():
        async with session_factory() as other:
            await other.execute(
                update(User).where(User.id == patient.id).values(hashed_refresh_token=winner_hash)
            )
            await other.commit()

    async with session_factory() as s:
        with pytest.raises(UnauthorizedError):
            await token_service.rotate_on_refresh(
                InterleavedSession(s, rotate_elsewhere), patient.id, patient.email, pair.refresh_token,
            )

    assert await _stored_hash(session_factory, patient.id) == winner_hash


async def test_revoked_session_cannot_refresh(session, session_factory, doctor):
    pair = token_service.issue_token_pair(doctor.id, doctor.email, doctor.role)
    await token_service.persist_refresh_token(session, doctor.id, pair.refresh_token)
    await token_service.revoke(session, doctor.id)

    assert await _stored_hash(session_factory, doctor.id) is None
    async with session_factory() as s:
        with pytest.raises(UnauthorizedError):
            await token_service.rotate_on_refresh(s, doctor.id, doctor.email, pair.refresh_token)


async def test_stale_email_claim_cannot_refresh(session, session_factory, doctor):
    pair = token_service.issue_token_pair(doctor.id, doctor.email, doctor.role)
    await token_service.persist_refresh_token(session, doctor.id, pair.refresh_token)

    async with session_factory() as s:
        with pytest.raises(UnauthorizedError):
            await token_service.rotate_on_refresh(s, doctor.id, "someone-else@example.com", pair.refresh_token)


async def test_unknown_user_cannot_refresh(session_factory):
    user_id = uuid.uuid4()
    pair = token_service.issue_token_pair(user_id, "ghost@example.com", UserRole.PATIENT)
    async with session_factory() as s:
        with pytest.raises(UnauthorizedError):
            await token_service.rotate_on_refresh(s, user_id, "ghost@example.com", pair.refresh_token)
