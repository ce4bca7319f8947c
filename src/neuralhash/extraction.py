"""
neuralhash.extraction — LLM-backed document classification and field extraction.

The extractor's output is only a pre-fill suggestion: an issuer confirms the
fields by hand before anything is hashed.
"""

from __future__ import annotations

import base64
import json
import logging
import re
from typing import Optional

import httpx
from pydantic import BaseModel, ConfigDict, ValidationError, field_validator

from neuralhash.errors import ConfigError, DocumentTypeMismatch, ExtractionError
from neuralhash.schemas import DOCUMENT_SCHEMAS, normalize_document_type, schema_fields

logger = logging.getLogger(__name__)

GEMINI_API_URL = "https://generativelanguage.googleapis.com/v1beta"

_FENCE = re.compile(r"```(?:json)?", re.IGNORECASE)


def build_prompt() -> str:
    schema_lines = "\n".join(
        f"- {doc_type}: {', '.join(fields)}" for doc_type, fields in DOCUMENT_SCHEMAS.items()
    )
    return (
        "You are a strict document classifier and extractor.\n"
        "Identify the document type as one of:\n"
        f"{schema_lines}\n"
        "Extract the listed fields for that type. Use an empty string for any field you cannot read.\n"
        'Return ONLY valid JSON: { "documentType": "", "fields": { "<field>": "" } }\n'
    )


class ExtractionResult(BaseModel):
    """Best-effort guess returned by the extractor."""
    documentType: str = ""
    fields: dict[str, str] = {}
    name: Optional[str] = None
    year: Optional[str] = None

    model_config = ConfigDict(extra="ignore")

    @field_validator("fields", mode="before")
    @classmethod
    def keep_string_values(cls, v):
        if not isinstance(v, dict):
            return {}
        return {str(k): val for k, val in v.items() if isinstance(val, str)}

    @field_validator("documentType", mode="before")
    @classmethod
    def none_to_empty(cls, v):
        return v or ""


def parse_model_text(text: str) -> ExtractionResult:
    """Parse model output, tolerating ```json fences."""
    cleaned = _FENCE.sub("", text.strip()).strip()
    try:
        return ExtractionResult.model_validate(json.loads(cleaned))
    except (ValueError, ValidationError) as e:
        raise ExtractionError(f"Extractor returned invalid JSON: {e}") from e


def prefill_fields(result: ExtractionResult, selected_type: str) -> dict[str, str]:
    """
    Map an extraction onto the selected document's schema.

    Raises DocumentTypeMismatch when the document type cannot be detected
    or differs from the one the issuer picked. Missing fields map to "".
    """
    fields = schema_fields(selected_type)
    detected = normalize_document_type(result.documentType)
    if detected is None:
        raise DocumentTypeMismatch("Could not identify document type from uploaded file.")
    if detected != selected_type:
        raise DocumentTypeMismatch(
            f"Wrong document uploaded. You selected {selected_type}, but detected {detected}.",
            detected=detected,
        )
    return {key: result.fields.get(key, "") for key in fields}


class GeminiExtractor:
    """Sends the file inline to Gemini's generateContent endpoint."""

    def __init__(self, api_key: str, model: str = "gemini-2.5-flash",
                 api_url: str = GEMINI_API_URL, timeout: float = 60.0):
        self.api_key = api_key
        self.model = model
        self.api_url = api_url.rstrip("/")
        self.timeout = timeout

    async def extract(self, content: bytes, mime_type: str = "application/pdf") -> ExtractionResult:
        if not self.api_key:
            raise ConfigError("GEMINI_API_KEY is not configured.")

        body = {
            "contents": [{
                "role": "user",
                "parts": [
                    {"text": build_prompt()},
                    {"inline_data": {
                        "mime_type": mime_type or "application/pdf",
                        "data": base64.b64encode(content).decode("ascii"),
                    }},
                ],
            }],
        }
        url = f"{self.api_url}/models/{self.model}:generateContent"

        try:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                resp = await client.post(url, json=body, headers={"x-goog-api-key": self.api_key})
        except httpx.HTTPError as e:
            logger.warning("Extraction request failed: %s", e)
            raise ExtractionError(f"Extraction failed: {e}") from e

        if resp.status_code == 429:
            raise ExtractionError("Gemini quota exceeded. Please retry later.", code="QUOTA_EXCEEDED")
        if resp.status_code >= 400:
            raise ExtractionError(f"Extraction failed with status {resp.status_code}")

        try:
            parts = resp.json()["candidates"][0]["content"]["parts"]
            text = "".join(p.get("text", "") for p in parts)
        except (ValueError, KeyError, IndexError, TypeError) as e:
            raise ExtractionError("Extraction response had no text") from e

        result = parse_model_text(text)
        logger.info("Extracted document type %r with %d fields", result.documentType, len(result.fields))
        return result
