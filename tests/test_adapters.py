"""
Tests for the speech-to-text and extraction adapters against mocked HTTP.
"""

import json

import httpx
import pytest

from src.common.exceptions import ExtractionError, TranscriptionError
from src.common.llm.llm_service import PRESCRIPTION_JSON_SCHEMA, LLMService
from src.common.llm.transcription_service import TranscriptionService, guess_audio_content_type


def _transcriber(handler, api_key="key"):
    return TranscriptionService(
        api_key=api_key, base_url="https://stt.example.com/v1", model_id="scribe_v1",
        timeout=5, transport=httpx.MockTransport(handler),
    )


def _llm(handler, api_key="key"):
    return LLMService(
        api_key=api_key, base_url="https://llm.example.com/v1", model="gpt-4o-mini",
        timeout=5, transport=httpx.MockTransport(handler),
    )


def _completion(content):
    return httpx.Response(200, json={"choices": [{"message": {"content": content}}]})


# ── Transcription ────────────────────────────────────────────────────

@pytest.mark.parametrize("filename,expected", [
    ("a.mp3", "audio/mpeg"),
    ("a.OGG", "audio/ogg"),
    ("a.wav", "audio/wav"),
    ("a.webm", "audio/webm"),
    ("a.m4a", "audio/mp4"),
    ("a.flac", "audio/mpeg"),
    ("noext", "audio/mpeg"),
])
def test_content_type_from_extension(filename, expected):
    assert guess_audio_content_type(filename) == expected


async def test_transcribe_posts_multipart():
    seen = {}

    def handler(request: httpx.Request):
        seen["url"] = str(request.url)
        seen["key"] = request.headers["xi-api-key"]
        seen["body"] = request.content
        return httpx.Response(200, json={"text": "  Paracetamol 500 mg  "})

    text = await _transcriber(handler).transcribe(b"RIFFdata", "visit.wav")

    assert text == "Paracetamol 500 mg"
    assert seen["url"] == "https://stt.example.com/v1/speech-to-text"
    assert seen["key"] == "key"
    assert b'name="model_id"' in seen["body"]
    assert b"scribe_v1" in seen["body"]
    assert b"audio/wav" in seen["body"]


@pytest.mark.parametrize("payload", [{"text": "   "}, {"text": None}, {"text": 123}, {}, ["not", "an", "object"]])
async def test_blank_transcription_is_an_error(payload):
    service = _transcriber(lambda request: httpx.Response(200, json=payload))
    with pytest.raises(TranscriptionError) as e:
        await service.transcribe(b"x", "a.mp3")
    assert e.value.status_code == 400


async def test_upstream_failure_surfaces_status_and_body():
    service = _transcriber(lambda request: httpx.Response(401, json={"detail": "invalid api key"}))
    with pytest.raises(TranscriptionError) as e:
        await service.transcribe(b"x", "a.mp3")
    assert e.value.status_code == 502
    assert e.value.details["upstream_status"] == 401
    assert "invalid api key" in e.value.details["upstream_body"]


async def test_transcription_timeout():
    def handler(request):
        raise httpx.ReadTimeout("slow", request=request)

    with pytest.raises(TranscriptionError) as e:
        await _transcriber(handler).transcribe(b"x", "a.mp3")
    assert e.value.status_code == 504


async def test_transcription_without_key():
    with pytest.raises(TranscriptionError):
        await _transcriber(lambda request: httpx.Response(200), api_key="").transcribe(b"x", "a.mp3")


# ── Extraction ───────────────────────────────────────────────────────

async def test_extract_sends_schema_and_parses_items():
    seen = {}

    def handler(request: httpx.Request):
        seen["auth"] = request.headers["authorization"]
        seen["body"] = json.loads(request.content)
        return _completion(json.dumps({
            "notes": "Control in 10 days",
            "items": [
                {"name": " Amoxicillin ", "dosage": "500 mg", "quantity": 21, "instructions": "Every 8 hours for 7 days"},
                {"name": "Ibuprofen", "dosage": ""},
            ],
        }))

    result = await _llm(handler).extract_prescription("Amoxicillin 500 mg ...")

    assert seen["auth"] == "Bearer key"
    body = seen["body"]
    assert body["model"] == "gpt-4o-mini"
    assert body["response_format"] == {"type": "json_schema", "json_schema": PRESCRIPTION_JSON_SCHEMA}
    assert body["messages"][0]["role"] == "system"
    assert "explicitly" in body["messages"][0]["content"]
    assert body["messages"][1] == {"role": "user", "content": "Amoxicillin 500 mg ..."}

    assert result.notes == "Control in 10 days"
    assert [i.name for i in result.items] == ["Amoxicillin", "Ibuprofen"]
    assert result.items[1].dosage is None
    assert result.items[1].quantity is None


async def test_extract_zero_items():
    service = _llm(lambda request: _completion(json.dumps({"items": []})))
    with pytest.raises(ExtractionError) as e:
        await service.extract_prescription("nothing useful")
    assert e.value.status_code == 400


@pytest.mark.parametrize("content", [
    "not json",
    json.dumps({"items": [{"dosage": "5 mg"}]}),
    json.dumps({"items": [{"name": "X", "quantity": 0}]}),
])
async def test_extract_unparseable_output(content):
    with pytest.raises(ExtractionError) as e:
        await _llm(lambda request: _completion(content)).extract_prescription("text")
    assert e.value.status_code == 502


async def test_extract_upstream_failure():
    service = _llm(lambda request: httpx.Response(500, text="boom"))
    with pytest.raises(ExtractionError) as e:
        await service.extract_prescription("text")
    assert e.value.details == {"upstream_status": 500, "upstream_body": "boom"}
