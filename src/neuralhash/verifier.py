"""
neuralhash.verifier — Verifier flow: look up a wallet, check, disclose.

Trust-registry lookups happen here, not in the integrity checker: an
authentic credential is annotated with whether its issuer is reputable.
Ledger and registry reads are blocking RPC calls, so the async methods run
them in worker threads.
"""

import asyncio
import logging
from dataclasses import dataclass, field, replace
from typing import Optional

from neuralhash.disclosure import PUBLIC_ALLOW_LIST, DisclosureAllowList, filter_disclosure
from neuralhash.errors import LedgerError, RevokedCredential
from neuralhash.hashing import fingerprints_match
from neuralhash.integrity import CredentialIntegrityChecker, IntegrityResult, IntegrityStatus
from neuralhash.ledger import CredentialLedger, CredentialRecord, TrustRegistry, credential_stats
from neuralhash.storage import ContentStore

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class VerificationReport:
    record: CredentialRecord
    integrity: IntegrityResult
    issuer_trusted: Optional[bool] = None

    @property
    def status(self) -> IntegrityStatus:
        return self.integrity.status

    @property
    def message(self) -> str:
        return {
            IntegrityStatus.AUTHENTIC: "✅ Credential Verified (Authentic)",
            IntegrityStatus.TAMPERED: "❌ Credential Tampered",
            IntegrityStatus.REVOKED: "❌ Credential Revoked",
            IntegrityStatus.FETCH_FAILED: "❌ Failed to fetch IPFS document",
        }[self.status]

    def to_dict(self) -> dict:
        data = self.integrity.to_dict()
        data.update({
            "issuer": self.record.issuer,
            "issued_at": self.record.issued_at,
            "issuer_trusted": self.issuer_trusted,
            "message": self.message,
        })
        return data


@dataclass(frozen=True)
class VerifierView:
    """State of one verifier session for a single wallet."""
    address: str = ""
    records: tuple = ()
    reports: dict = field(default_factory=dict)
    disclosed: Optional[dict] = None

    @property
    def stats(self) -> dict:
        return credential_stats(self.records)

    def with_report(self, report: VerificationReport) -> "VerifierView":
        return replace(self, reports={**self.reports, report.record.credential_hash: report})


class CredentialVerifier:

    def __init__(self, ledger: CredentialLedger, store: ContentStore,
                 trust_registry: Optional[TrustRegistry] = None):
        self.ledger = ledger
        self.store = store
        self.trust_registry = trust_registry
        self.checker = CredentialIntegrityChecker(store)

    def load(self, address: str) -> VerifierView:
        records = tuple(self.ledger.get_user_credentials(address))
        return VerifierView(address=address, records=records)

    async def _issuer_trusted(self, record: CredentialRecord, result: IntegrityResult) -> Optional[bool]:
        if self.trust_registry is None or not result.ok:
            return None
        try:
            return await asyncio.to_thread(self.trust_registry.is_trusted, record.issuer)
        except LedgerError as e:
            logger.warning("Trust registry lookup failed for %s: %s", record.issuer, e)
            return None

    async def verify(self, record: CredentialRecord) -> VerificationReport:
        result = await self.checker.check(record)
        trusted = await self._issuer_trusted(record, result)
        return VerificationReport(record, result, trusted)

    async def verify_address(self, address: str,
                             credential_hash: Optional[str] = None) -> VerifierView:
        """Load a wallet and verify either one requested credential or all of them."""
        view = await asyncio.to_thread(self.load, address)
        if credential_hash:
            targets = [r for r in view.records if fingerprints_match(r.credential_hash, credential_hash)]
        else:
            targets = list(view.records)

        results = await self.checker.check_many(targets)
        trust = await asyncio.gather(*(
            self._issuer_trusted(record, result) for record, result in zip(targets, results)
        ))
        for record, result, trusted in zip(targets, results, trust):
            view = view.with_report(VerificationReport(record, result, trusted))
        return view

    async def disclose(self, record: CredentialRecord,
                       allow_list: DisclosureAllowList = PUBLIC_ALLOW_LIST) -> dict:
        """Fetch a payload and return only its allow-listed fields.

        Revoked credentials are refused before anything is fetched.
        """
        if not record.is_valid:
            raise RevokedCredential(record.credential_hash)
        raw = await self.store.fetch_json(record.ipfs_cid)
        return filter_disclosure(raw, allow_list)

    async def disclose_in_view(self, view: VerifierView, record: CredentialRecord,
                               allow_list: DisclosureAllowList = PUBLIC_ALLOW_LIST) -> VerifierView:
        return replace(view, disclosed=await self.disclose(record, allow_list))


__all__ = [
    "CredentialVerifier",
    "VerificationReport",
    "VerifierView",
]
