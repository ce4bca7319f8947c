"""
neuralhash.holder — Holder flow: previews of owned credentials and claim fulfilment.

Fulfilling a claim marks the request done on the hub and then notifies the
requester with a `selected_cid:<cid>` attestation. The notice is best effort:
if it fails, the fulfilment still stands.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Iterable, Optional

from neuralhash.auth_gate import AuthGate, require
from neuralhash.disclosure import DisclosureAllowList, filter_disclosure
from neuralhash.errors import FetchFailed, LedgerError, NeuralHashError
from neuralhash.interactions import SELECTED_CID_PREFIX, ClaimRequest, InteractionHub
from neuralhash.ledger import CredentialLedger, CredentialRecord
from neuralhash.payload import normalize_payload
from neuralhash.storage import ContentStore

logger = logging.getLogger(__name__)

UNNAMED = "Unnamed Credential"


@dataclass(frozen=True)
class CredentialPreview:
    record: CredentialRecord
    title: str = UNNAMED
    credential_type: str = ""
    year: str = ""
    error: Optional[str] = None

    def to_dict(self) -> dict:
        return {
            **self.record.to_dict(),
            "title": self.title,
            "type": self.credential_type,
            "year": self.year,
            "error": self.error,
        }


def preview_from_payload(record: CredentialRecord, raw) -> CredentialPreview:
    data = normalize_payload(raw).data
    title = data.get("documentName") or data.get("name") or UNNAMED
    return CredentialPreview(
        record=record,
        title=str(title),
        credential_type=str(data.get("type") or data.get("documentType") or ""),
        year=str(data.get("year") or ""),
    )


@dataclass(frozen=True)
class FulfilmentOutcome:
    request: ClaimRequest
    cid: str
    notified: bool
    disclosure: dict = field(default_factory=dict)

    def to_dict(self) -> dict:
        return {
            "request": self.request.to_dict(),
            "cid": self.cid,
            "notified": self.notified,
            "disclosure": self.disclosure,
        }


class CredentialHolder:

    def __init__(self, hub: InteractionHub, ledger: CredentialLedger,
                 store: ContentStore, gate: Optional[AuthGate] = None):
        self.hub = hub
        self.ledger = ledger
        self.store = store
        self.gate = gate

    def pending_requests(self, holder: str) -> list[ClaimRequest]:
        return [r for r in self.hub.claim_requests_for(holder) if not r.fulfilled]

    async def _preview(self, record: CredentialRecord) -> CredentialPreview:
        try:
            raw = await self.store.fetch_json(record.ipfs_cid, fallback=True)
        except FetchFailed as e:
            logger.warning("Preview of %s failed: %s", record.ipfs_cid, e.detail)
            return CredentialPreview(record=record, error=e.detail)
        return preview_from_payload(record, raw)

    async def preview(self, records: Iterable[CredentialRecord]) -> list[CredentialPreview]:
        """Hydrate display titles; tries every gateway before giving up on one."""
        return list(await asyncio.gather(*(self._preview(r) for r in records)))

    async def fulfill(self, holder: str, request_id: int, cid: str) -> FulfilmentOutcome:
        require(self.gate, holder)

        request = await asyncio.to_thread(self.hub.get_claim_request, request_id)
        if request.fulfilled:
            raise LedgerError(f"claim request {request_id} already fulfilled")
        if request.subject.lower() != holder.lower():
            raise LedgerError("only the request subject may fulfil it")

        owned = await asyncio.to_thread(self.ledger.get_user_credentials, holder)
        if cid not in {r.ipfs_cid for r in owned if r.is_valid}:
            raise LedgerError("Select one of your active credentials to share.")

        raw = await self.store.fetch_json(cid)
        disclosure = filter_disclosure(raw, DisclosureAllowList.from_claim_request(request.fields))

        await asyncio.to_thread(self.hub.fulfill_claim_request, holder, request_id)

        notified = True
        try:
            await asyncio.to_thread(
                self.hub.create_attestation, holder, request.requester, f"{SELECTED_CID_PREFIX}{cid}",
            )
        except (NeuralHashError, ValueError) as e:
            logger.warning("Claim %d fulfilled but requester notice failed: %s", request_id, e)
            notified = False

        logger.info("Claim request %d fulfilled by %s with %s", request_id, holder, cid)
        fulfilled = await asyncio.to_thread(self.hub.get_claim_request, request_id)
        return FulfilmentOutcome(fulfilled, cid, notified, disclosure)
