"""
neuralhash.hashing — Keccak-256 credential fingerprints.

The fingerprint is the value the credential registry contract stores as
bytes32, so it uses the EVM's native Keccak-256 (not NIST SHA3-256).
"""

import hmac
import re
from typing import Any, Mapping, Optional, Union

from web3 import Web3

from neuralhash.canonical import canonicalize
from neuralhash.payload import CredentialPayload


def fingerprint(data: bytes) -> str:
    """Keccak-256 of raw bytes as 0x-prefixed lowercase hex."""
    return Web3.to_hex(Web3.keccak(primitive=bytes(data)))


def credential_fingerprint(payload: Union[CredentialPayload, Mapping[str, Any]]) -> str:
    """Fingerprint of a payload's canonical encoding."""
    return fingerprint(canonicalize(payload))


_HEX = re.compile(r"[0-9a-f]+")


def _normalize(value: str) -> Optional[str]:
    value = value.strip().lower()
    value = value[2:] if value.startswith("0x") else value
    return value if _HEX.fullmatch(value) else None


def fingerprints_match(a: str, b: str) -> bool:
    """Compare two hex fingerprints, ignoring case and 0x prefix. Non-hex never matches."""
    if not isinstance(a, str) or not isinstance(b, str):
        return False
    a, b = _normalize(a), _normalize(b)
    if a is None or b is None:
        return False
    return hmac.compare_digest(a, b)
