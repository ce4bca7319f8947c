"""
neuralhash.payload — Credential payload model and shape normalization.

Payloads fetched from storage are arbitrary JSON. Two shapes are accepted:
a flat credential object, or the same object as the only value under a
"credential" key. Any other JSON object is flat and hashed whole; everything
else normalizes to an empty, invalid payload.
"""

import json
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional


# ─── Credential payload ────────────────────────────────────────────

@dataclass(frozen=True)
class CredentialPayload:
    """The off-ledger document an issuer hashes and pins."""
    name: str
    type: str
    year: str
    document_type: str
    issued_to: str
    timestamp: str = field(default_factory=lambda: datetime.now(timezone.utc).isoformat())
    fields: dict[str, str] = field(default_factory=dict)
    document_cid: Optional[str] = None
    document_name: Optional[str] = None

    def to_dict(self) -> dict:
        """Wire form, as pinned to storage."""
        data = {
            "name": self.name,
            "type": self.type,
            "year": self.year,
            "documentType": self.document_type,
            "fields": dict(self.fields),
        }
        if self.document_cid is not None:
            data["documentCid"] = self.document_cid
        if self.document_name is not None:
            data["documentName"] = self.document_name
        data["issuedTo"] = self.issued_to
        data["timestamp"] = self.timestamp
        return data

    @classmethod
    def from_dict(cls, data: dict) -> "CredentialPayload":
        raw_fields = data.get("fields") or {}
        return cls(
            name=str(data.get("name", "")),
            type=str(data.get("type", "")),
            year=str(data.get("year", "")),
            document_type=str(data.get("documentType", data.get("type", ""))),
            issued_to=str(data.get("issuedTo", "")),
            timestamp=str(data.get("timestamp", "")),
            fields={str(k): str(v) for k, v in raw_fields.items()} if isinstance(raw_fields, dict) else {},
            document_cid=data.get("documentCid"),
            document_name=data.get("documentName"),
        )


# ─── Shape normalization ───────────────────────────────────────────

class PayloadShape(Enum):
    FLAT = "flat"
    WRAPPED = "wrapped"
    INVALID = "invalid"


@dataclass(frozen=True)
class NormalizedPayload:
    """A fetched payload reduced to one canonical internal record."""
    shape: PayloadShape
    data: dict = field(default_factory=dict)

    @property
    def valid(self) -> bool:
        return self.shape is not PayloadShape.INVALID


def normalize_payload(raw: Any) -> NormalizedPayload:
    """Normalize wrapped/flat payloads; unparsable input becomes INVALID."""
    if isinstance(raw, (bytes, bytearray)):
        try:
            raw = raw.decode("utf-8")
        except UnicodeDecodeError:
            return NormalizedPayload(PayloadShape.INVALID)
    if isinstance(raw, str):
        try:
            raw = json.loads(raw)
        except ValueError:
            return NormalizedPayload(PayloadShape.INVALID)

    if not isinstance(raw, dict):
        return NormalizedPayload(PayloadShape.INVALID)

    # Only a bare envelope unwraps; sibling keys are part of what was stored.
    inner = raw.get("credential")
    if isinstance(inner, dict) and len(raw) == 1:
        return NormalizedPayload(PayloadShape.WRAPPED, dict(inner))
    return NormalizedPayload(PayloadShape.FLAT, dict(raw))
