"""
neuralhash.interactions — Interaction hub: claim requests and attestations.

A verifier asks a holder to share named credential fields (claim request);
the holder fulfils it. Any wallet can leave a short text attestation on
another wallet.
"""

import logging
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass, replace
from typing import Iterable, Optional

from web3 import Web3

from neuralhash.disclosure import CLAIM_REQUEST_FIELD_OPTIONS, DEFAULT_CLAIM_FIELDS
from neuralhash.errors import LedgerError
from neuralhash.ledger import IssuanceReceipt, Web3ContractClient, is_address

logger = logging.getLogger(__name__)

SELECTED_CID_PREFIX = "selected_cid:"

INTERACTION_HUB_ABI = [
    {
        "name": "createClaimRequest",
        "type": "function",
        "stateMutability": "nonpayable",
        "inputs": [
            {"name": "target", "type": "address"},
            {"name": "fields", "type": "string[]"},
            {"name": "reason", "type": "string"},
        ],
        "outputs": [],
    },
    {
        "name": "fulfillClaimRequest",
        "type": "function",
        "stateMutability": "nonpayable",
        "inputs": [{"name": "requestId", "type": "uint256"}],
        "outputs": [],
    },
    {
        "name": "createAttestation",
        "type": "function",
        "stateMutability": "nonpayable",
        "inputs": [
            {"name": "target", "type": "address"},
            {"name": "text", "type": "string"},
        ],
        "outputs": [],
    },
    {
        "name": "getRequestsForUser",
        "type": "function",
        "stateMutability": "view",
        "inputs": [{"name": "user", "type": "address"}],
        "outputs": [{"name": "", "type": "uint256[]"}],
    },
    {
        "name": "claimRequests",
        "type": "function",
        "stateMutability": "view",
        "inputs": [{"name": "", "type": "uint256"}],
        "outputs": [
            {"name": "id", "type": "uint256"},
            {"name": "requester", "type": "address"},
            {"name": "subject", "type": "address"},
            {"name": "fields", "type": "string[]"},
            {"name": "purpose", "type": "string"},
            {"name": "fulfilled", "type": "bool"},
            {"name": "createdAt", "type": "uint256"},
        ],
    },
    {
        "name": "getAttestations",
        "type": "function",
        "stateMutability": "view",
        "inputs": [{"name": "", "type": "address"}],
        "outputs": [{
            "name": "",
            "type": "tuple[]",
            "components": [
                {"name": "attester", "type": "address"},
                {"name": "subject", "type": "address"},
                {"name": "text", "type": "string"},
                {"name": "createdAt", "type": "uint256"},
            ],
        }],
    },
]


@dataclass(frozen=True)
class ClaimRequest:
    id: int
    requester: str
    subject: str
    fields: tuple[str, ...]
    purpose: str
    fulfilled: bool = False
    created_at: int = 0

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "requester": self.requester,
            "subject": self.subject,
            "fields": list(self.fields),
            "purpose": self.purpose,
            "fulfilled": self.fulfilled,
            "created_at": self.created_at,
        }

    @classmethod
    def from_tuple(cls, row) -> "ClaimRequest":
        request_id, requester, subject, fields, purpose, fulfilled, created_at = row
        return cls(int(request_id), requester, subject, tuple(fields), purpose,
                   bool(fulfilled), int(created_at))


@dataclass(frozen=True)
class HubAttestation:
    attester: str
    subject: str
    text: str
    created_at: int = 0

    @property
    def selected_cid(self) -> Optional[str]:
        """CID shared by a holder when fulfilling a claim, if this is such a notice."""
        if self.text.startswith(SELECTED_CID_PREFIX):
            return self.text[len(SELECTED_CID_PREFIX):] or None
        return None

    def to_dict(self) -> dict:
        return {
            "attester": self.attester,
            "subject": self.subject,
            "text": self.text,
            "created_at": self.created_at,
        }

    @classmethod
    def from_tuple(cls, row) -> "HubAttestation":
        attester, subject, text, created_at = row
        return cls(attester, subject, text, int(created_at))


# ─── Validation ────────────────────────────────────────────────────

def validate_claim_request(target: str, fields: Iterable[str], reason: str) -> tuple[str, ...]:
    if not is_address(target):
        raise ValueError("Enter a valid target wallet address for claim request.")
    if not reason or not reason.strip():
        raise ValueError("Enter a claim reason first.")
    fields = tuple(fields) or DEFAULT_CLAIM_FIELDS
    unknown = [f for f in fields if f not in CLAIM_REQUEST_FIELD_OPTIONS]
    if unknown:
        raise ValueError(f"Unsupported claim fields: {', '.join(unknown)}")
    return fields


def validate_attestation(target: str, text: str) -> None:
    if not is_address(target):
        raise ValueError("Enter a valid target wallet address for attestation.")
    if not text or not text.strip():
        raise ValueError("Enter attestation text first.")


# ─── Hub interface ─────────────────────────────────────────────────

class InteractionHub(ABC):

    @abstractmethod
    def create_claim_request(self, requester: str, target: str,
                             fields: Iterable[str], reason: str) -> int: ...

    @abstractmethod
    def fulfill_claim_request(self, caller: str, request_id: int) -> None: ...

    @abstractmethod
    def create_attestation(self, attester: str, target: str, text: str) -> None: ...

    @abstractmethod
    def get_requests_for_user(self, user: str) -> list[int]: ...

    @abstractmethod
    def get_claim_request(self, request_id: int) -> ClaimRequest: ...

    @abstractmethod
    def get_attestations(self, user: str) -> list[HubAttestation]: ...

    def claim_requests_for(self, user: str) -> list[ClaimRequest]:
        return [self.get_claim_request(i) for i in self.get_requests_for_user(user)]


class MemoryInteractionHub(InteractionHub):

    def __init__(self):
        self._requests: dict[int, ClaimRequest] = {}
        self._by_subject: dict[str, list[int]] = {}
        self._attestations: dict[str, list[HubAttestation]] = {}
        self._next_id = 1

    def create_claim_request(self, requester: str, target: str,
                             fields: Iterable[str], reason: str) -> int:
        fields = validate_claim_request(target, fields, reason)
        request_id = self._next_id
        self._next_id += 1
        self._requests[request_id] = ClaimRequest(
            id=request_id,
            requester=requester,
            subject=target,
            fields=fields,
            purpose=reason.strip(),
            created_at=int(time.time()),
        )
        self._by_subject.setdefault(target.lower(), []).append(request_id)
        return request_id

    def fulfill_claim_request(self, caller: str, request_id: int) -> None:
        request = self.get_claim_request(request_id)
        if request.subject.lower() != caller.lower():
            raise LedgerError("only the request subject may fulfil it")
        if request.fulfilled:
            raise LedgerError(f"claim request {request_id} already fulfilled")
        self._requests[request_id] = replace(request, fulfilled=True)

    def create_attestation(self, attester: str, target: str, text: str) -> None:
        validate_attestation(target, text)
        self._attestations.setdefault(target.lower(), []).append(
            HubAttestation(attester, target, text, int(time.time()))
        )

    def get_requests_for_user(self, user: str) -> list[int]:
        return list(self._by_subject.get(user.lower(), []))

    def get_claim_request(self, request_id: int) -> ClaimRequest:
        try:
            return self._requests[request_id]
        except KeyError:
            raise LedgerError(f"unknown claim request {request_id}") from None

    def get_attestations(self, user: str) -> list[HubAttestation]:
        return list(self._attestations.get(user.lower(), []))


class Web3InteractionHub(Web3ContractClient, InteractionHub):
    """Interaction hub contract over JSON-RPC."""

    def __init__(self, rpc_url: str, address: str,
                 private_key: Optional[str] = None, w3: Optional[Web3] = None):
        super().__init__(rpc_url, address, INTERACTION_HUB_ABI, private_key, w3)

    def create_claim_request(self, requester: str, target: str,
                             fields: Iterable[str], reason: str) -> int:
        fields = validate_claim_request(target, fields, reason)
        self._transact(self.contract.functions.createClaimRequest(
            Web3.to_checksum_address(target), list(fields), reason.strip(),
        ))
        ids = self.get_requests_for_user(target)
        return ids[-1] if ids else 0

    def fulfill_claim_request(self, caller: str, request_id: int) -> None:
        receipt: IssuanceReceipt = self._transact(self.contract.functions.fulfillClaimRequest(request_id))
        logger.info("Fulfilled claim request %d (tx %s)", request_id, receipt.tx_hash)

    def create_attestation(self, attester: str, target: str, text: str) -> None:
        validate_attestation(target, text)
        self._transact(self.contract.functions.createAttestation(
            Web3.to_checksum_address(target), text,
        ))

    def get_requests_for_user(self, user: str) -> list[int]:
        if not is_address(user):
            return []
        ids = self._call(self.contract.functions.getRequestsForUser(Web3.to_checksum_address(user)))
        return [int(i) for i in ids]

    def get_claim_request(self, request_id: int) -> ClaimRequest:
        return ClaimRequest.from_tuple(self._call(self.contract.functions.claimRequests(request_id)))

    def get_attestations(self, user: str) -> list[HubAttestation]:
        if not is_address(user):
            return []
        rows = self._call(self.contract.functions.getAttestations(Web3.to_checksum_address(user)))
        return [HubAttestation.from_tuple(row) for row in rows]
