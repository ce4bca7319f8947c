"""
neuralhash.canonical — Deterministic byte encoding for credential payloads.

Identical payloads always encode identically: keys are sorted at every
nesting level, separators are compact and text is UTF-8. The result does not
depend on dict insertion order, platform or locale.
"""

import json
from typing import Any, Mapping, Union

from neuralhash.payload import CredentialPayload


def canonical_json(payload: Union[CredentialPayload, Mapping[str, Any]]) -> str:
    """Canonical JSON text for a payload."""
    if isinstance(payload, CredentialPayload):
        payload = payload.to_dict()
    return json.dumps(
        payload,
        sort_keys=True,
        separators=(",", ":"),
        ensure_ascii=False,
        allow_nan=False,
    )


def canonicalize(payload: Union[CredentialPayload, Mapping[str, Any]]) -> bytes:
    """Canonical bytes for hashing (deterministic)."""
    return canonical_json(payload).encode("utf-8")
