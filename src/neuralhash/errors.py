"""neuralhash.errors — Error taxonomy shared by the core and its collaborators.

Integrity outcomes:
    RevokedCredential   — terminal, the ledger record is no longer valid
    TamperedCredential  — terminal, fingerprint mismatch (never retried)
    FetchFailed         — transient, storage unreachable or payload unparsable

Collaborator failures:
    StorageError, LedgerError, ExtractionError, AnalyticsError, ConfigError
"""

from typing import Optional


class NeuralHashError(Exception):
    """Base class for every error raised by neuralhash."""


# ─── Integrity outcomes ────────────────────────────────────────────

class RevokedCredential(NeuralHashError):
    """The credential record has been revoked on the ledger."""

    def __init__(self, credential_hash: str):
        self.credential_hash = credential_hash
        super().__init__(f"credential {credential_hash} has been revoked")


class TamperedCredential(NeuralHashError):
    """The stored payload no longer hashes to the on-ledger fingerprint."""

    def __init__(self, expected: str, actual: str):
        self.expected = expected
        self.actual = actual
        super().__init__(f"fingerprint mismatch: ledger {expected}, payload {actual}")


# ─── Collaborator errors ───────────────────────────────────────────

class StorageError(NeuralHashError):
    """Raised when the content-addressed storage service rejects a call."""

    def __init__(self, status: int, detail: str, details: Optional[dict] = None):
        self.status = status
        self.detail = detail
        self.details = details or {}
        super().__init__(f"[{status}] {detail}")


class FetchFailed(StorageError):
    """The payload could not be fetched or parsed. Safe to retry."""

    def __init__(self, cid: str, detail: str, status: int = 502):
        self.cid = cid
        super().__init__(status, detail)


class LedgerError(NeuralHashError):
    """Raised when a ledger read or transaction fails."""


class ConfigError(NeuralHashError):
    """A required setting (API key, contract address, ...) is missing."""


class ExtractionError(NeuralHashError):
    """The document-extraction service failed or returned garbage."""

    def __init__(self, message: str, code: str = "EXTRACTION_FAILED"):
        self.code = code
        super().__init__(message)


class DocumentTypeMismatch(ExtractionError):
    """The detected document type differs from the one the issuer selected."""

    def __init__(self, message: str, detected: Optional[str] = None):
        self.detected = detected
        super().__init__(message, code="DOCUMENT_TYPE_MISMATCH")


class AnalyticsError(NeuralHashError):
    """The block-explorer API returned an error."""


class IssuanceError(NeuralHashError):
    """The issuance form is not complete enough to build a credential."""


class AuthenticationDenied(NeuralHashError):
    """The authentication gate refused a sensitive action."""
