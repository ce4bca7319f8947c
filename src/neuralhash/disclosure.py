"""
neuralhash.disclosure — Selective disclosure of credential fields.

A verifier only ever sees allow-listed fields that are present and
non-blank. Output is always a subset of the allow-list, whatever extra
fields the payload carries.
"""

from dataclasses import dataclass
from typing import Any, Iterable

from neuralhash.payload import normalize_payload


# Fields a claim request may ask a holder to share.
CLAIM_REQUEST_FIELD_OPTIONS = ("name", "type", "year", "documentCid")
DEFAULT_CLAIM_FIELDS = ("type", "year")


@dataclass(frozen=True)
class DisclosureAllowList:
    """Named set of fields a verifier may see."""
    name: str
    fields: frozenset

    def __post_init__(self):
        object.__setattr__(self, "fields", frozenset(f for f in self.fields if f))

    def __contains__(self, field_name: str) -> bool:
        return field_name in self.fields

    def __len__(self):
        return len(self.fields)

    @classmethod
    def from_claim_request(cls, fields: Iterable[str]) -> "DisclosureAllowList":
        """Allow-list negotiated through a claim request."""
        return cls("claim-request", fields)


PUBLIC_ALLOW_LIST = DisclosureAllowList("public", ("documentType", "type", "year"))


def _present(value: Any) -> bool:
    if value is None:
        return False
    if isinstance(value, str):
        return bool(value.strip())
    return True


def filter_disclosure(payload: Any, allow_list: DisclosureAllowList) -> dict:
    """
    Reduce a payload to its allow-listed, non-empty fields.

    Accepts flat or "credential"-wrapped payloads. Allow-listed keys missing
    at the top level are looked up in the payload's "fields" map. Anything
    that is not a keyed structure yields {}.
    """
    normalized = normalize_payload(payload)
    if not normalized.valid:
        return {}

    data = normalized.data
    nested = data.get("fields")
    if not isinstance(nested, dict):
        nested = {}

    disclosed = {}
    for key in sorted(allow_list.fields):
        if _present(data.get(key)):
            disclosed[key] = data[key]
        elif _present(nested.get(key)):
            disclosed[key] = nested[key]
    return disclosed
