# src/common/llm/llm_service.py
"""
LLM service for turning a dictated prescription into structured items.

The model is constrained by a strict JSON schema and instructed to extract
only what the dictation states explicitly.
"""

import json
import logging
from typing import List, Optional

import httpx
from pydantic import BaseModel, Field, ValidationError as PydanticValidationError, field_validator

from src.common.config import settings
from src.common.exceptions import ExtractionError
from src.common.utils.global_messages import GlobalMessages

logger = logging.getLogger(__name__)


SYSTEM_PROMPTS = {
    "prescription_extraction": """You are a medical assistant that extracts structured data from dictated prescriptions.

## RULES (CRITICAL):
- Extract ONLY what is explicitly stated in the text. NEVER infer or invent anything.
- If a detail (dose, quantity, frequency, duration, route) is not mentioned, omit it.
- Do not include patient data, diagnoses or anything else that was not requested.

## OUTPUT:
1) items: the list of medications. For each item:
   - name: medication or product name (required)
   - dosage: only the dose or presentation mentioned (e.g. "500 mg", "10 ml", "2 tablets")
   - quantity: number of units, digits only, only if a number is said. "A box" without a number is NOT a quantity.
   - instructions: everything said about usage (frequency, route, duration, remarks),
     e.g. "Take 1 tablet every 8 hours for 7 days, orally, after meals"
2) notes: any general note that does not belong to a specific medication.

Return ONLY valid JSON matching the schema.""",
}


PRESCRIPTION_JSON_SCHEMA = {
    "name": "Prescription",
    "schema": {
        "type": "object",
        "properties": {
            "notes": {
                "type": "string",
                "description": "General notes that do not belong to a single medication (optional)",
            },
            "items": {
                "type": "array",
                "description": "Prescribed medications or treatments",
                "items": {
                    "type": "object",
                    "properties": {
                        "name": {"type": "string", "description": "Medication or product name"},
                        "dosage": {"type": "string", "description": "Dose, e.g. '500mg' (optional)"},
                        "quantity": {"type": "integer", "description": "Units prescribed (optional)"},
                        "instructions": {"type": "string", "description": "Usage instructions (optional)"},
                    },
                    "required": ["name"],
                    "additionalProperties": False,
                },
                "minItems": 1,
            },
        },
        "required": ["items"],
        "additionalProperties": False,
    },
}


class ExtractedItem(BaseModel):
    name: str = Field(..., min_length=1)
    dosage: Optional[str] = None
    quantity: Optional[int] = Field(default=None, ge=1)
    instructions: Optional[str] = None

    @field_validator("name")
    def name_not_blank(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("Item name is required.")
        return value

    @field_validator("dosage", "instructions")
    def blank_to_none(cls, value: Optional[str]) -> Optional[str]:
        if value is not None and not value.strip():
            return None
        return value


class StructuredPrescription(BaseModel):
    notes: Optional[str] = None
    items: List[ExtractedItem] = []


class LLMService:
    """Service for interacting with an OpenAI-compatible chat completions endpoint."""

    def __init__(
        self,
        api_key: Optional[str] = None,
        base_url: Optional[str] = None,
        model: Optional[str] = None,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.api_key = api_key if api_key is not None else settings.OPENAI_API_KEY
        self.base_url = (base_url or settings.OPENAI_BASE_URL).rstrip("/")
        self.model = model or settings.OPENAI_MODEL
        self.timeout = timeout or settings.EXTERNAL_TIMEOUT_SECONDS
        self.transport = transport

    async def generate(self, messages: list[dict], response_format: Optional[dict] = None, temperature: float = 0.0) -> dict:
        """
        Call the chat completions endpoint.

        Args:
            messages: List of message dicts with 'role' and 'content'
            response_format: Optional structured-output constraint
            temperature: Sampling temperature

        Returns:
            The decoded JSON response body
        """
        body = {
            "model": self.model,
            "messages": messages,
            "temperature": temperature,
        }
        if response_format:
            body["response_format"] = response_format

        async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
            response = await client.post(
                f"{self.base_url}/chat/completions",
                headers={"Authorization": f"Bearer {self.api_key}"},
                json=body,
            )
            response.raise_for_status()
            return response.json()

    async def extract_prescription(self, text: str) -> StructuredPrescription:
        """
        Extract medication items and notes from a transcription.

        Raises:
            ExtractionError: on missing configuration, upstream failure, timeout,
                output that does not match the schema, or zero items
        """
        if not self.api_key:
            raise ExtractionError("LLM API key is not configured.", status_code=503)

        messages = [
            {"role": "system", "content": SYSTEM_PROMPTS["prescription_extraction"]},
            {"role": "user", "content": text},
        ]

        logger.info("Structuring prescription text (%d chars)", len(text))
        try:
            result = await self.generate(
                messages,
                response_format={"type": "json_schema", "json_schema": PRESCRIPTION_JSON_SCHEMA},
            )
        except httpx.TimeoutException:
            logger.error("Extraction request timed out after %ss", self.timeout)
            raise ExtractionError("Extraction request timed out.", status_code=504)
        except httpx.HTTPStatusError as e:
            logger.error("Extraction failed with status %s: %s", e.response.status_code, e.response.text)
            raise ExtractionError(
                f"Extraction failed with status {e.response.status_code}.",
                details={"upstream_status": e.response.status_code, "upstream_body": e.response.text},
            )
        except httpx.HTTPError as e:
            logger.error("Extraction request error: %s", e)
            raise ExtractionError(f"Extraction error: {e}")
        except ValueError:
            raise ExtractionError("Extraction response was not valid JSON.")

        try:
            content = result["choices"][0]["message"]["content"]
            structured = StructuredPrescription.model_validate(json.loads(content))
        except (KeyError, IndexError, TypeError, json.JSONDecodeError, PydanticValidationError) as e:
            logger.error("Extraction output did not match the prescription schema: %s", e)
            raise ExtractionError("Extraction output did not match the prescription schema.")

        if not structured.items:
            logger.warning("Extraction returned no medication items")
            raise ExtractionError(GlobalMessages.NO_ITEMS_EXTRACTED, status_code=400)

        logger.info("Extracted %d prescription items", len(structured.items))
        return structured
