# tests/conftest.py
import os

# Settings are read at import time, so the test environment goes in first
os.environ["APP_ENV"] = "test"
os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///:memory:"
os.environ["JWT_ACCESS_SECRET"] = "test-access-secret"
os.environ["JWT_REFRESH_SECRET"] = "test-refresh-secret"
os.environ["BCRYPT_ROUNDS"] = "4"
os.environ["ELEVENLABS_API_KEY"] = "test-elevenlabs-key"
os.environ["OPENAI_API_KEY"] = "test-openai-key"

from datetime import date
from typing import List, Optional

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy import Update
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from src.auth import token_service
from src.auth.auth_service import create_user_with_profile
from src.common.database.database import enable_sqlite_foreign_keys, get_db_session
from src.common.llm import get_llm_service, get_transcription_service
from src.common.llm.llm_service import ExtractedItem, StructuredPrescription
from src.main import app
from src.models.models import Base, User, UserRole

PASSWORD = "secret123"


# ── Fakes ────────────────────────────────────────────────────────────

class FakeTranscriber:
    """Stands in for TranscriptionService."""
    def __init__(self, text: str = "Ibuprofen 400 mg, 12 tablets, one every 8 hours.", error: Exception = None):
        self.text = text
        self.error = error
        self.calls = []

    async def transcribe(self, audio_bytes: bytes, filename: str) -> str:
        self.calls.append((audio_bytes, filename))
        if self.error:
            raise self.error
        return self.text


class FakeExtractor:
    """Stands in for LLMService."""
    def __init__(self, result: StructuredPrescription = None, error: Exception = None):
        self.result = result or StructuredPrescription(
            notes="Review in one week",
            items=[ExtractedItem(name="Ibuprofen", dosage="400 mg", quantity=12, instructions="One every 8 hours")],
        )
        self.error = error
        self.calls: List[str] = []

    async def extract_prescription(self, text: str) -> StructuredPrescription:
        self.calls.append(text)
        if self.error:
            raise self.error
        return self.result


class InterleavedSession:
    """
    Wraps a session and runs `before_update` once, just before the first
    UPDATE statement goes out. Used to simulate a competing request.
    """
    def __init__(self, session: AsyncSession, before_update):
        self._session = session
        self._before_update = before_update

    async def execute(self, statement, *args, **kwargs):
        if isinstance(statement, Update) and self._before_update is not None:
            before_update, self._before_update = self._before_update, None
            await before_update()
        return await self._session.execute(statement, *args, **kwargs)

    def __getattr__(self, name):
        return getattr(self._session, name)


# ── Database ─────────────────────────────────────────────────────────

@pytest_asyncio.fixture
async def engine():
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    enable_sqlite_foreign_keys(engine)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@pytest_asyncio.fixture
async def session(session_factory):
    async with session_factory() as session:
        yield session


# ── Users ────────────────────────────────────────────────────────────

async def make_user(
    session: AsyncSession,
    role: UserRole,
    email: str,
    name: Optional[str] = None,
    specialty: Optional[str] = None,
    birth_date: Optional[date] = None,
    phone: Optional[str] = None,
) -> User:
    return await create_user_with_profile(
        session,
        email=email,
        password=PASSWORD,
        name=name or email.split("@")[0].title(),
        role=role,
        specialty=specialty,
        birth_date=birth_date,
        phone=phone,
    )


@pytest_asyncio.fixture
async def admin(session):
    return await make_user(session, UserRole.ADMIN, "admin@clinic.com", name="Ada Admin")


@pytest_asyncio.fixture
async def doctor(session):
    return await make_user(session, UserRole.DOCTOR, "house@clinic.com", name="Gregory House", specialty="Diagnostics")


@pytest_asyncio.fixture
async def other_doctor(session):
    return await make_user(session, UserRole.DOCTOR, "grey@clinic.com", name="Meredith Grey", specialty="General surgery")


@pytest_asyncio.fixture
async def patient(session):
    return await make_user(
        session, UserRole.PATIENT, "alice@example.com", name="Alice Patient",
        birth_date=date(1990, 5, 17), phone="+57 300 000 0001",
    )


@pytest_asyncio.fixture
async def other_patient(session):
    return await make_user(session, UserRole.PATIENT, "bob@example.com", name="Bob Patient")


def auth_headers(user: User) -> dict:
    token = token_service.create_access_token(user.id, user.email, user.role)
    return {"Authorization": f"Bearer {token}"}


# ── HTTP ─────────────────────────────────────────────────────────────

@pytest.fixture
def transcriber():
    return FakeTranscriber()


@pytest.fixture
def extractor():
    return FakeExtractor()


@pytest_asyncio.fixture
async def client(session_factory, transcriber, extractor):
    async def override_get_db_session():
        async with session_factory() as session:
            try:
                yield session
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[get_db_session] = override_get_db_session
    app.dependency_overrides[get_transcription_service] = lambda: transcriber
    app.dependency_overrides[get_llm_service] = lambda: extractor

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        yield client

    app.dependency_overrides.clear()
