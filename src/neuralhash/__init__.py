"""neuralhash — Hash-anchored verifiable credentials: issue, verify, disclose."""

__version__ = "0.1.0"

from neuralhash.payload import CredentialPayload, NormalizedPayload, PayloadShape, normalize_payload
from neuralhash.canonical import canonical_json, canonicalize
from neuralhash.hashing import credential_fingerprint, fingerprint, fingerprints_match
from neuralhash.errors import (
    NeuralHashError, RevokedCredential, TamperedCredential,
    StorageError, FetchFailed, LedgerError, ConfigError,
    ExtractionError, DocumentTypeMismatch, AnalyticsError,
    IssuanceError, AuthenticationDenied,
)
from neuralhash.ledger import (
    CredentialRecord, IssuanceReceipt, CredentialLedger,
    MemoryCredentialLedger, Web3CredentialLedger,
    TrustRegistry, MemoryTrustRegistry, Web3TrustRegistry,
)
from neuralhash.storage import ContentStore, MemoryContentStore, PinataContentStore
from neuralhash.integrity import (
    IntegrityStatus, IntegrityResult, CredentialIntegrityChecker, evaluate,
)
from neuralhash.disclosure import DisclosureAllowList, PUBLIC_ALLOW_LIST, filter_disclosure
from neuralhash.interactions import (
    ClaimRequest, HubAttestation, InteractionHub,
    MemoryInteractionHub, Web3InteractionHub,
)
from neuralhash.auth_gate import (
    AuthGate, AuthResult, AllowAllGate, DenyAllGate,
    ChallengeResponseGate, LocalKeyAuthenticator,
)
from neuralhash.issuer import CredentialIssuer, IssuanceForm, IssuanceOutcome, build_credential
from neuralhash.verifier import CredentialVerifier, VerificationReport, VerifierView
from neuralhash.holder import CredentialHolder, CredentialPreview, FulfilmentOutcome
from neuralhash.config import Settings

__all__ = [
    "__version__",
    "CredentialPayload",
    "NormalizedPayload",
    "PayloadShape",
    "normalize_payload",
    "canonical_json",
    "canonicalize",
    "fingerprint",
    "credential_fingerprint",
    "fingerprints_match",
    "NeuralHashError",
    "RevokedCredential",
    "TamperedCredential",
    "StorageError",
    "FetchFailed",
    "LedgerError",
    "ConfigError",
    "ExtractionError",
    "DocumentTypeMismatch",
    "AnalyticsError",
    "IssuanceError",
    "AuthenticationDenied",
    "CredentialRecord",
    "IssuanceReceipt",
    "CredentialLedger",
    "MemoryCredentialLedger",
    "Web3CredentialLedger",
    "TrustRegistry",
    "MemoryTrustRegistry",
    "Web3TrustRegistry",
    "ContentStore",
    "MemoryContentStore",
    "PinataContentStore",
    "IntegrityStatus",
    "IntegrityResult",
    "CredentialIntegrityChecker",
    "evaluate",
    "DisclosureAllowList",
    "PUBLIC_ALLOW_LIST",
    "filter_disclosure",
    "ClaimRequest",
    "HubAttestation",
    "InteractionHub",
    "MemoryInteractionHub",
    "Web3InteractionHub",
    "AuthGate",
    "AuthResult",
    "AllowAllGate",
    "DenyAllGate",
    "ChallengeResponseGate",
    "LocalKeyAuthenticator",
    "CredentialIssuer",
    "IssuanceForm",
    "IssuanceOutcome",
    "build_credential",
    "CredentialVerifier",
    "VerificationReport",
    "VerifierView",
    "CredentialHolder",
    "CredentialPreview",
    "FulfilmentOutcome",
    "Settings",
]
