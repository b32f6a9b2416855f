# src/common/llm/__init__.py
"""Speech-to-text and LLM adapters used for audio-dictated prescriptions."""

from .llm_service import LLMService, StructuredPrescription
from .transcription_service import TranscriptionService


def get_transcription_service() -> TranscriptionService:
    """FastAPI dependency; overridden in tests."""
    return TranscriptionService()


def get_llm_service() -> LLMService:
    """FastAPI dependency; overridden in tests."""
    return LLMService()


__all__ = [
    "LLMService",
    "StructuredPrescription",
    "TranscriptionService",
    "get_llm_service",
    "get_transcription_service",
]
