"""
neuralhash.issuer — Issuer flow: form state, credential construction, issuance.

Form state lives in an immutable IssuanceForm. Handlers take a form and
return a new one; nothing is held in module globals.

Issuance order: gate -> pin document -> build payload -> pin payload ->
fingerprint -> ledger transaction.
"""

import asyncio
import logging
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from typing import Optional

from neuralhash.auth_gate import AuthGate, require
from neuralhash.errors import IssuanceError
from neuralhash.extraction import ExtractionResult, prefill_fields
from neuralhash.hashing import credential_fingerprint
from neuralhash.ledger import CredentialLedger, IssuanceReceipt, is_address
from neuralhash.payload import CredentialPayload
from neuralhash.schemas import DOCUMENT_TYPE_OPTIONS, schema_fields
from neuralhash.storage import ContentStore

logger = logging.getLogger(__name__)

NAME_FIELDS = ("full_name", "student_name")
YEAR_FIELDS = ("year_of_passing", "date_of_birth")


# ─── Form state ────────────────────────────────────────────────────

@dataclass(frozen=True)
class IssuanceForm:
    """Everything the issuer has entered for one credential."""
    document_type: str = DOCUMENT_TYPE_OPTIONS[0]
    extracted_fields: dict = field(default_factory=dict)
    selected_field_keys: tuple = ()
    recipient: str = ""
    document_name: str = ""
    document_bytes: bytes = b""
    document_content_type: str = "application/pdf"

    @property
    def has_document(self) -> bool:
        return bool(self.document_bytes)

    def selected_fields(self) -> dict[str, str]:
        """Selected fields with non-blank values, trimmed, in selection order."""
        selected = {}
        for key in self.selected_field_keys:
            value = (self.extracted_fields.get(key) or "").strip()
            if value:
                selected[key] = value
        return selected


def select_document_type(form: IssuanceForm, document_type: str) -> IssuanceForm:
    schema_fields(document_type)
    return replace(form, document_type=document_type, extracted_fields={}, selected_field_keys=())


def attach_document(form: IssuanceForm, name: str, content: bytes,
                    content_type: str = "application/pdf") -> IssuanceForm:
    return replace(form, document_name=name, document_bytes=content,
                   document_content_type=content_type or "application/pdf",
                   extracted_fields={}, selected_field_keys=())


def apply_extraction(form: IssuanceForm, result: ExtractionResult) -> IssuanceForm:
    """Pre-fill schema fields and pre-select the non-blank ones.

    Raises DocumentTypeMismatch when the uploaded file is not the selected type.
    """
    mapped = prefill_fields(result, form.document_type)
    selected = tuple(k for k in schema_fields(form.document_type) if mapped[k].strip())
    return replace(form, extracted_fields=mapped, selected_field_keys=selected)


def edit_field(form: IssuanceForm, key: str, value: str) -> IssuanceForm:
    if key not in schema_fields(form.document_type):
        raise ValueError(f"{key!r} is not a {form.document_type} field")
    return replace(form, extracted_fields={**form.extracted_fields, key: value})


def toggle_field(form: IssuanceForm, key: str) -> IssuanceForm:
    if key in form.selected_field_keys:
        keys = tuple(k for k in form.selected_field_keys if k != key)
    else:
        keys = form.selected_field_keys + (key,)
    return replace(form, selected_field_keys=keys)


def set_recipient(form: IssuanceForm, recipient: str) -> IssuanceForm:
    return replace(form, recipient=recipient.strip())


# ─── Credential construction ───────────────────────────────────────

def _first(fields: dict[str, str], keys: tuple) -> str:
    for key in keys:
        if fields.get(key):
            return fields[key]
    return ""


def build_credential(form: IssuanceForm, issuer: str, document_cid: Optional[str] = None,
                     now: Optional[datetime] = None) -> CredentialPayload:
    """Turn a confirmed form into the payload that gets hashed and pinned."""
    if not form.has_document:
        raise IssuanceError("Upload a document first.")

    required = schema_fields(form.document_type)
    if not any((form.extracted_fields.get(k) or "").strip() for k in required):
        raise IssuanceError("Extract data from the uploaded document before issuing credential.")

    selected = form.selected_fields()
    if not selected:
        raise IssuanceError("Select at least one extracted field to include in the credential.")

    recipient = form.recipient if is_address(form.recipient) else issuer
    now = now or datetime.now(timezone.utc)

    return CredentialPayload(
        name=_first(selected, NAME_FIELDS),
        type=form.document_type,
        year=_first(selected, YEAR_FIELDS),
        document_type=form.document_type,
        fields=selected,
        document_cid=document_cid,
        document_name=form.document_name or None,
        issued_to=recipient,
        timestamp=now.isoformat(),
    )


@dataclass(frozen=True)
class IssuanceOutcome:
    payload: CredentialPayload
    ipfs_cid: str
    credential_hash: str
    receipt: IssuanceReceipt

    def to_dict(self) -> dict:
        return {
            "payload": self.payload.to_dict(),
            "ipfs_cid": self.ipfs_cid,
            "credential_hash": self.credential_hash,
            "receipt": self.receipt.to_dict(),
        }


# ─── Issuer ────────────────────────────────────────────────────────

class CredentialIssuer:
    """Pins, fingerprints and anchors credentials; revokes them."""

    def __init__(self, store: ContentStore, ledger: CredentialLedger,
                 gate: Optional[AuthGate] = None):
        self.store = store
        self.ledger = ledger
        self.gate = gate

    async def issue(self, form: IssuanceForm, issuer: str,
                    now: Optional[datetime] = None) -> IssuanceOutcome:
        require(self.gate, issuer)
        now = now or datetime.now(timezone.utc)

        # Validate before spending a pin on the document.
        build_credential(form, issuer, now=now)

        document_cid = await self.store.pin_file(
            form.document_name or "document", form.document_bytes, form.document_content_type,
        )
        payload = build_credential(form, issuer, document_cid=document_cid, now=now)
        body = payload.to_dict()

        cid = await self.store.pin_json(body)
        credential_hash = credential_fingerprint(body)
        receipt = await asyncio.to_thread(
            self.ledger.issue_credential, issuer, payload.issued_to, credential_hash, cid,
        )

        logger.info("Credential %s issued by %s to %s (cid %s)",
                    credential_hash, issuer, payload.issued_to, cid)
        return IssuanceOutcome(payload, cid, credential_hash, receipt)

    def revoke(self, issuer: str, owner: str, credential_hash: str) -> IssuanceReceipt:
        require(self.gate, issuer)
        receipt = self.ledger.revoke_credential(issuer, owner, credential_hash)
        logger.info("Credential %s of %s revoked by %s", credential_hash, owner, issuer)
        return receipt
