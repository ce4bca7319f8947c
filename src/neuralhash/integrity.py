#!/usr/bin/env python3
"""
neuralhash.integrity — Is this credential authentic, tampered or revoked?

Outcomes, in the order they are decided:
    REVOKED       — validity flag is false; decided before any fetch
    FETCH_FAILED  — storage unreachable, bad status, or payload unparsable
    TAMPERED      — recomputed fingerprint differs from the ledger's
    AUTHENTIC     — recomputed fingerprint matches

Every check fetches and hashes again; nothing is cached.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Iterable, Optional

from neuralhash.errors import FetchFailed, RevokedCredential, TamperedCredential
from neuralhash.hashing import credential_fingerprint, fingerprints_match
from neuralhash.ledger import CredentialRecord
from neuralhash.payload import normalize_payload
from neuralhash.storage import ContentStore

logger = logging.getLogger(__name__)


class IntegrityStatus(Enum):
    AUTHENTIC = "authentic"
    TAMPERED = "tampered"
    REVOKED = "revoked"
    FETCH_FAILED = "fetch_failed"


@dataclass(frozen=True)
class IntegrityResult:
    """Result of checking a single credential record."""
    status: IntegrityStatus
    credential_hash: str
    ipfs_cid: str
    recomputed_hash: Optional[str] = None
    error: Optional[str] = None
    payload: dict = field(default_factory=dict)

    @property
    def ok(self) -> bool:
        return self.status is IntegrityStatus.AUTHENTIC

    def raise_for_status(self) -> "IntegrityResult":
        """Raise the matching error for any non-authentic outcome."""
        if self.status is IntegrityStatus.REVOKED:
            raise RevokedCredential(self.credential_hash)
        if self.status is IntegrityStatus.FETCH_FAILED:
            raise FetchFailed(self.ipfs_cid, self.error or "fetch failed")
        if self.status is IntegrityStatus.TAMPERED:
            raise TamperedCredential(self.credential_hash, self.recomputed_hash or "")
        return self

    def to_dict(self) -> dict:
        return {
            "status": self.status.value,
            "credential_hash": self.credential_hash,
            "ipfs_cid": self.ipfs_cid,
            "recomputed_hash": self.recomputed_hash,
            "error": self.error,
        }


def evaluate(record: CredentialRecord, raw_payload: Any) -> IntegrityResult:
    """Compare an already-fetched payload against its ledger record."""
    if not record.is_valid:
        return IntegrityResult(IntegrityStatus.REVOKED, record.credential_hash, record.ipfs_cid)

    normalized = normalize_payload(raw_payload)
    if not normalized.valid:
        return IntegrityResult(
            IntegrityStatus.FETCH_FAILED,
            record.credential_hash,
            record.ipfs_cid,
            error="payload is not a JSON object",
        )

    try:
        recomputed = credential_fingerprint(normalized.data)
    except ValueError as e:
        # NaN/Infinity parse as JSON but have no canonical encoding.
        return IntegrityResult(
            IntegrityStatus.FETCH_FAILED,
            record.credential_hash,
            record.ipfs_cid,
            error=f"payload cannot be canonicalized: {e}",
        )
    if fingerprints_match(recomputed, record.credential_hash):
        status = IntegrityStatus.AUTHENTIC
    else:
        status = IntegrityStatus.TAMPERED
    return IntegrityResult(
        status,
        record.credential_hash,
        record.ipfs_cid,
        recomputed_hash=recomputed,
        payload=normalized.data,
    )


class CredentialIntegrityChecker:
    """Fetches a record's payload from storage and evaluates it."""

    def __init__(self, store: ContentStore):
        self.store = store

    async def check(self, record: CredentialRecord) -> IntegrityResult:
        if not record.is_valid:
            return evaluate(record, None)

        try:
            raw = await self.store.fetch_bytes(record.ipfs_cid)
        except FetchFailed as e:
            logger.warning("Integrity check could not fetch %s: %s", record.ipfs_cid, e.detail)
            return IntegrityResult(
                IntegrityStatus.FETCH_FAILED,
                record.credential_hash,
                record.ipfs_cid,
                error=e.detail,
            )

        result = evaluate(record, raw)
        if result.status is IntegrityStatus.TAMPERED:
            logger.warning("Tampered credential %s (cid %s): recomputed %s",
                           record.credential_hash, record.ipfs_cid, result.recomputed_hash)
        return result

    async def check_many(self, records: Iterable[CredentialRecord]) -> list[IntegrityResult]:
        """Independent concurrent checks; results keep input order."""
        return list(await asyncio.gather(*(self.check(r) for r in records)))
