"""
neuralhash.ledger — Credential registry and trust registry collaborators.

The registry contract stores one record per issued credential:
fingerprint, content address, issuer, validity flag and issuance time.
Records are never deleted; revocation only flips the validity flag.

Backends: MemoryCredentialLedger (in-process), Web3CredentialLedger (EVM RPC)
Trust registry: MemoryTrustRegistry, Web3TrustRegistry
"""

import logging
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass, replace
from typing import Iterable, Optional

from eth_account import Account
from web3 import Web3
from web3.exceptions import Web3Exception

from neuralhash.errors import LedgerError
from neuralhash.hashing import fingerprint, fingerprints_match

logger = logging.getLogger(__name__)


CREDENTIAL_REGISTRY_ABI = [
    {
        "name": "issueCredential",
        "type": "function",
        "stateMutability": "nonpayable",
        "inputs": [
            {"name": "user", "type": "address"},
            {"name": "credentialHash", "type": "bytes32"},
            {"name": "ipfsCID", "type": "string"},
        ],
        "outputs": [],
    },
    {
        "name": "getUserCredentials",
        "type": "function",
        "stateMutability": "view",
        "inputs": [{"name": "user", "type": "address"}],
        "outputs": [{
            "name": "",
            "type": "tuple[]",
            "components": [
                {"name": "credentialHash", "type": "bytes32"},
                {"name": "ipfsCID", "type": "string"},
                {"name": "issuer", "type": "address"},
                {"name": "isValid", "type": "bool"},
                {"name": "issuedAt", "type": "uint256"},
            ],
        }],
    },
    {
        "name": "revokeCredential",
        "type": "function",
        "stateMutability": "nonpayable",
        "inputs": [
            {"name": "user", "type": "address"},
            {"name": "credentialHash", "type": "bytes32"},
        ],
        "outputs": [],
    },
]

TRUST_REGISTRY_ABI = [
    {
        "name": "isTrusted",
        "type": "function",
        "stateMutability": "view",
        "inputs": [{"name": "issuer", "type": "address"}],
        "outputs": [{"name": "", "type": "bool"}],
    },
]

WEI_PER_ETH = 10 ** 18


def is_address(value: Optional[str]) -> bool:
    return bool(value) and Web3.is_address(value)


def fingerprint_to_bytes32(value: str) -> bytes:
    """Convert a 0x-prefixed fingerprint to the contract's bytes32."""
    raw = bytes.fromhex(value[2:] if value.startswith("0x") else value)
    if len(raw) != 32:
        raise ValueError(f"fingerprint must be 32 bytes, got {len(raw)}")
    return raw


# ─── Records ───────────────────────────────────────────────────────

@dataclass(frozen=True)
class CredentialRecord:
    """On-ledger view of an issued credential."""
    credential_hash: str
    ipfs_cid: str
    issuer: str
    is_valid: bool
    issued_at: int = 0

    def to_dict(self) -> dict:
        return {
            "credentialHash": self.credential_hash,
            "ipfsCID": self.ipfs_cid,
            "issuer": self.issuer,
            "isValid": self.is_valid,
            "issuedAt": self.issued_at,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "CredentialRecord":
        return cls(
            credential_hash=data["credentialHash"],
            ipfs_cid=data["ipfsCID"],
            issuer=data.get("issuer", ""),
            is_valid=bool(data.get("isValid", False)),
            issued_at=int(data.get("issuedAt", 0)),
        )

    @classmethod
    def from_tuple(cls, row) -> "CredentialRecord":
        """Decode a (credentialHash, ipfsCID, issuer, isValid, issuedAt) contract tuple."""
        credential_hash, ipfs_cid, issuer, is_valid, issued_at = row
        if isinstance(credential_hash, (bytes, bytearray)):
            credential_hash = Web3.to_hex(credential_hash)
        return cls(
            credential_hash=credential_hash,
            ipfs_cid=ipfs_cid,
            issuer=issuer,
            is_valid=bool(is_valid),
            issued_at=int(issued_at),
        )


@dataclass(frozen=True)
class IssuanceReceipt:
    """Summary of a mined issuance (or revocation) transaction."""
    tx_hash: str
    block_number: int = 0
    block_hash: str = ""
    timestamp: int = 0
    gas_used: int = 0
    effective_gas_price: int = 0
    confirmations: int = 0

    @property
    def wei_spent(self) -> int:
        return self.gas_used * self.effective_gas_price

    @property
    def eth_spent(self) -> float:
        return self.wei_spent / WEI_PER_ETH

    def usd_equivalent(self, eth_usd: Optional[float]) -> Optional[float]:
        if not eth_usd:
            return None
        return self.eth_spent * eth_usd

    def to_dict(self) -> dict:
        return {
            "tx_hash": self.tx_hash,
            "block_number": self.block_number,
            "block_hash": self.block_hash,
            "timestamp": self.timestamp,
            "gas_used": self.gas_used,
            "effective_gas_price": self.effective_gas_price,
            "confirmations": self.confirmations,
            "wei_spent": self.wei_spent,
        }


def credential_stats(records: Iterable[CredentialRecord]) -> dict:
    """Total / active / revoked counts for a wallet's credentials."""
    records = list(records)
    active = sum(1 for r in records if r.is_valid)
    return {
        "total": len(records),
        "active": active,
        "revoked": len(records) - active,
    }


# ─── Abstract ledger ───────────────────────────────────────────────

class CredentialLedger(ABC):
    """Credential registry interface."""

    @abstractmethod
    def issue_credential(self, issuer: str, recipient: str,
                         credential_hash: str, ipfs_cid: str) -> IssuanceReceipt: ...

    @abstractmethod
    def get_user_credentials(self, owner: str) -> list[CredentialRecord]: ...

    @abstractmethod
    def revoke_credential(self, issuer: str, owner: str,
                          credential_hash: str) -> IssuanceReceipt: ...

    def find_credential(self, owner: str, credential_hash: str) -> Optional[CredentialRecord]:
        for record in self.get_user_credentials(owner):
            if fingerprints_match(record.credential_hash, credential_hash):
                return record
        return None


# ─── Memory ledger ─────────────────────────────────────────────────

class MemoryCredentialLedger(CredentialLedger):
    """In-process registry with the contract's semantics (testing, demos)."""

    def __init__(self):
        self._records: dict[str, list[CredentialRecord]] = {}
        self._block = 0

    def _receipt(self, *parts: str) -> IssuanceReceipt:
        self._block += 1
        tx_hash = fingerprint("|".join(parts + (str(self._block),)).encode())
        return IssuanceReceipt(
            tx_hash=tx_hash,
            block_number=self._block,
            block_hash=fingerprint(tx_hash.encode()),
            timestamp=int(time.time()),
            confirmations=1,
        )

    def issue_credential(self, issuer: str, recipient: str,
                         credential_hash: str, ipfs_cid: str) -> IssuanceReceipt:
        if not is_address(recipient):
            raise LedgerError(f"invalid recipient address: {recipient!r}")
        fingerprint_to_bytes32(credential_hash)
        owned = self._records.setdefault(recipient.lower(), [])
        if any(fingerprints_match(r.credential_hash, credential_hash) for r in owned):
            raise LedgerError(f"credential {credential_hash} already issued to {recipient}")
        owned.append(CredentialRecord(
            credential_hash=credential_hash.lower(),
            ipfs_cid=ipfs_cid,
            issuer=issuer,
            is_valid=True,
            issued_at=int(time.time()),
        ))
        return self._receipt("issue", issuer, recipient, credential_hash)

    def get_user_credentials(self, owner: str) -> list[CredentialRecord]:
        return list(self._records.get(owner.lower(), []))

    def revoke_credential(self, issuer: str, owner: str,
                          credential_hash: str) -> IssuanceReceipt:
        owned = self._records.get(owner.lower(), [])
        for i, record in enumerate(owned):
            if fingerprints_match(record.credential_hash, credential_hash):
                if record.issuer.lower() != issuer.lower():
                    raise LedgerError("only the issuing address may revoke a credential")
                owned[i] = replace(record, is_valid=False)
                return self._receipt("revoke", issuer, owner, credential_hash)
        raise LedgerError(f"unknown credential {credential_hash} for {owner}")


# ─── Web3 ledger ───────────────────────────────────────────────────

class Web3ContractClient:
    """Shared plumbing: connect, call, sign-and-send."""

    def __init__(self, rpc_url: str, address: str, abi: list,
                 private_key: Optional[str] = None, w3: Optional[Web3] = None):
        if not is_address(address):
            raise LedgerError(f"invalid contract address: {address!r}")
        self.w3 = w3 or Web3(Web3.HTTPProvider(rpc_url))
        self.contract = self.w3.eth.contract(address=Web3.to_checksum_address(address), abi=abi)
        self.account = Account.from_key(private_key) if private_key else None

    @property
    def sender(self) -> Optional[str]:
        return self.account.address if self.account else None

    def _transact(self, function) -> IssuanceReceipt:
        if not self.account:
            raise LedgerError("private key required to send transactions")
        try:
            txn = function.build_transaction({
                "from": self.account.address,
                "nonce": self.w3.eth.get_transaction_count(self.account.address),
            })
            signed = self.account.sign_transaction(txn)
            tx_hash = self.w3.eth.send_raw_transaction(signed.raw_transaction)
            receipt = self.w3.eth.wait_for_transaction_receipt(tx_hash)
            if receipt["status"] != 1:
                raise LedgerError(f"transaction {Web3.to_hex(tx_hash)} reverted")
            block = self.w3.eth.get_block(receipt["blockHash"])
            latest = self.w3.eth.block_number
        except Web3Exception as e:
            logger.warning("Ledger transaction failed: %s", e)
            raise LedgerError(str(e)) from e

        block_number = receipt["blockNumber"]
        confirmations = latest - block_number + 1 if latest >= block_number else 0
        return IssuanceReceipt(
            tx_hash=Web3.to_hex(tx_hash),
            block_number=block_number,
            block_hash=Web3.to_hex(receipt["blockHash"]),
            timestamp=int(block["timestamp"]),
            gas_used=receipt["gasUsed"],
            effective_gas_price=receipt.get("effectiveGasPrice", 0),
            confirmations=confirmations,
        )

    def _call(self, function):
        try:
            return function.call()
        except Web3Exception as e:
            logger.warning("Ledger read failed: %s", e)
            raise LedgerError(str(e)) from e


class Web3CredentialLedger(Web3ContractClient, CredentialLedger):
    """Credential registry contract over JSON-RPC."""

    def __init__(self, rpc_url: str, address: str,
                 private_key: Optional[str] = None, w3: Optional[Web3] = None):
        super().__init__(rpc_url, address, CREDENTIAL_REGISTRY_ABI, private_key, w3)

    @classmethod
    def from_settings(cls, settings) -> Optional["Web3CredentialLedger"]:
        """Registry client for the configured deployment, or None without RPC_URL."""
        if not settings.rpc_url:
            return None
        return cls(settings.rpc_url, settings.credential_registry_address,
                   settings.issuer_private_key or None)

    def _check_sender(self, issuer: str):
        if self.sender and issuer.lower() != self.sender.lower():
            raise LedgerError(f"configured key signs for {self.sender}, not {issuer}")

    def issue_credential(self, issuer: str, recipient: str,
                         credential_hash: str, ipfs_cid: str) -> IssuanceReceipt:
        self._check_sender(issuer)
        fn = self.contract.functions.issueCredential(
            Web3.to_checksum_address(recipient),
            fingerprint_to_bytes32(credential_hash),
            ipfs_cid,
        )
        receipt = self._transact(fn)
        logger.info("Issued credential %s to %s (tx %s)", credential_hash, recipient, receipt.tx_hash)
        return receipt

    def get_user_credentials(self, owner: str) -> list[CredentialRecord]:
        if not is_address(owner):
            raise LedgerError(f"invalid owner address: {owner!r}")
        rows = self._call(self.contract.functions.getUserCredentials(Web3.to_checksum_address(owner)))
        return [CredentialRecord.from_tuple(row) for row in rows]

    def revoke_credential(self, issuer: str, owner: str,
                          credential_hash: str) -> IssuanceReceipt:
        self._check_sender(issuer)
        fn = self.contract.functions.revokeCredential(
            Web3.to_checksum_address(owner),
            fingerprint_to_bytes32(credential_hash),
        )
        receipt = self._transact(fn)
        logger.info("Revoked credential %s of %s (tx %s)", credential_hash, owner, receipt.tx_hash)
        return receipt


# ─── Trust registry ────────────────────────────────────────────────

class TrustRegistry(ABC):
    """Answers whether an issuer address is reputable."""

    @abstractmethod
    def is_trusted(self, issuer: str) -> bool: ...


class MemoryTrustRegistry(TrustRegistry):

    def __init__(self, trusted: Iterable[str] = ()):
        self._trusted = {a.lower() for a in trusted}

    def trust(self, issuer: str) -> None:
        self._trusted.add(issuer.lower())

    def distrust(self, issuer: str) -> None:
        self._trusted.discard(issuer.lower())

    def is_trusted(self, issuer: str) -> bool:
        return issuer.lower() in self._trusted


class Web3TrustRegistry(Web3ContractClient, TrustRegistry):

    def __init__(self, rpc_url: str, address: str, w3: Optional[Web3] = None):
        super().__init__(rpc_url, address, TRUST_REGISTRY_ABI, w3=w3)

    @classmethod
    def from_settings(cls, settings) -> Optional["Web3TrustRegistry"]:
        if not (settings.rpc_url and settings.trust_registry_address):
            return None
        return cls(settings.rpc_url, settings.trust_registry_address)

    def is_trusted(self, issuer: str) -> bool:
        if not is_address(issuer):
            return False
        return bool(self._call(self.contract.functions.isTrusted(Web3.to_checksum_address(issuer))))
