# src/common/llm/transcription_service.py
"""Service for transcribing dictated prescriptions with ElevenLabs speech-to-text."""

import logging
from typing import Optional

import httpx

from src.common.config import settings
from src.common.exceptions import TranscriptionError
from src.common.utils.global_messages import GlobalMessages

logger = logging.getLogger(__name__)

AUDIO_CONTENT_TYPES = {
    "mp3": "audio/mpeg",
    "ogg": "audio/ogg",
    "wav": "audio/wav",
    "webm": "audio/webm",
    "m4a": "audio/mp4",
}


def guess_audio_content_type(filename: str) -> str:
    ext = filename.rsplit(".", 1)[-1].lower() if "." in filename else ""
    return AUDIO_CONTENT_TYPES.get(ext, "audio/mpeg")


class TranscriptionService:
    """Thin client for the speech-to-text endpoint."""

    def __init__(
        self,
        api_key: Optional[str] = None,
        base_url: Optional[str] = None,
        model_id: Optional[str] = None,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.api_key = api_key if api_key is not None else settings.ELEVENLABS_API_KEY
        self.base_url = (base_url or settings.ELEVENLABS_BASE_URL).rstrip("/")
        self.model_id = model_id or settings.ELEVENLABS_MODEL_ID
        self.timeout = timeout or settings.EXTERNAL_TIMEOUT_SECONDS
        self.transport = transport

    async def transcribe(self, audio_bytes: bytes, filename: str = "audio.ogg") -> str:
        """
        Transcribe an audio file to text.

        Args:
            audio_bytes: Raw audio content
            filename: Original file name, used to pick the content type

        Returns:
            The transcribed text, never blank

        Raises:
            TranscriptionError: on missing configuration, upstream failure,
                timeout, or blank transcription
        """
        if not self.api_key:
            raise TranscriptionError("Speech-to-text API key is not configured.", status_code=503)
        if not audio_bytes:
            raise TranscriptionError("The audio file is empty.", status_code=400)

        files = {"file": (filename, audio_bytes, guess_audio_content_type(filename))}
        data = {"model_id": self.model_id}

        logger.info("Transcribing %s (%d bytes)", filename, len(audio_bytes))
        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
                response = await client.post(
                    f"{self.base_url}/speech-to-text",
                    headers={"xi-api-key": self.api_key},
                    files=files,
                    data=data,
                )
                response.raise_for_status()
                payload = response.json()
        except httpx.TimeoutException:
            logger.error("Transcription request timed out after %ss", self.timeout)
            raise TranscriptionError("Transcription request timed out.", status_code=504)
        except httpx.HTTPStatusError as e:
            logger.error("Transcription failed with status %s: %s", e.response.status_code, e.response.text)
            raise TranscriptionError(
                f"Transcription failed with status {e.response.status_code}.",
                details={"upstream_status": e.response.status_code, "upstream_body": e.response.text},
            )
        except httpx.HTTPError as e:
            logger.error("Transcription request error: %s", e)
            raise TranscriptionError(f"Transcription error: {e}")
        except ValueError:
            raise TranscriptionError("Transcription response was not valid JSON.")

        text = payload.get("text") if isinstance(payload, dict) else None
        if not isinstance(text, str) or not text.strip():
            logger.warning("Transcription returned no text for %s", filename)
            raise TranscriptionError(GlobalMessages.EMPTY_TRANSCRIPTION, status_code=400)

        return text.strip()
