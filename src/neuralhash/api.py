"""
neuralhash API — server-side proxies for extraction, pinning and analytics,
plus read-only credential verification and disclosure.

Secrets (Pinata, Gemini, Etherscan) stay on the server; browsers only ever
talk to these endpoints.

  GET  /health
  POST /api/extract                          multipart `file`
  POST /api/ipfs/json                        JSON body, pinned as-is
  POST /api/ipfs/file                        multipart `file`
  GET  /api/etherscan?address&chainId&days
  POST /api/fingerprint
  GET  /api/credentials/{address}
  GET  /api/verify/{address}?hash=
  GET  /api/disclose/{address}/{credential_hash}?fields=
"""

import asyncio
from typing import Any, Optional

from fastapi import APIRouter, Body, FastAPI, File, HTTPException, Query, Request, UploadFile
from slowapi import Limiter

from neuralhash import __version__
from neuralhash.analytics import EtherscanClient
from neuralhash.canonical import canonical_json
from neuralhash.config import Settings
from neuralhash.disclosure import (
    CLAIM_REQUEST_FIELD_OPTIONS,
    PUBLIC_ALLOW_LIST,
    DisclosureAllowList,
)
from neuralhash.errors import (
    AnalyticsError,
    ConfigError,
    ExtractionError,
    FetchFailed,
    LedgerError,
    RevokedCredential,
    StorageError,
)
from neuralhash.extraction import GeminiExtractor
from neuralhash.hashing import credential_fingerprint
from neuralhash.ledger import (
    CredentialLedger,
    TrustRegistry,
    Web3CredentialLedger,
    Web3TrustRegistry,
    credential_stats,
    is_address,
)
from neuralhash.payload import normalize_payload
from neuralhash.security import apply_security, logger, setup_structured_logging, upload_too_large
from neuralhash.storage import ContentStore, PinataContentStore
from neuralhash.verifier import CredentialVerifier

DISCLOSABLE_FIELDS = frozenset(CLAIM_REQUEST_FIELD_OPTIONS) | PUBLIC_ALLOW_LIST.fields


# ─── Collaborator access ───────────────────────────────────────────

def _store(request: Request) -> ContentStore:
    return request.app.state.store


def _ledger(request: Request) -> CredentialLedger:
    ledger = request.app.state.ledger
    if ledger is None:
        raise HTTPException(503, "Ledger is not configured. Set RPC_URL.")
    return ledger


def _verifier(request: Request) -> CredentialVerifier:
    return CredentialVerifier(_ledger(request), _store(request), request.app.state.trust_registry)


def _require_address(address: str) -> str:
    if not is_address(address):
        raise HTTPException(400, f"Invalid wallet address: {address}")
    return address


def _storage_error(e: StorageError) -> HTTPException:
    return HTTPException(e.status, {"error": e.detail, "details": e.details})


async def _read_upload(request: Request, file: UploadFile) -> bytes:
    limit = request.app.state.settings.max_upload_bytes
    content = await file.read(limit + 1)
    if len(content) > limit:
        raise HTTPException(413, upload_too_large(limit))
    return content


# ─── Proxies ───────────────────────────────────────────────────────

async def extract_document(request: Request, file: Optional[UploadFile] = File(None)):
    """Classify a document and extract its schema fields."""
    if file is None:
        raise HTTPException(400, "No file uploaded")

    content = await _read_upload(request, file)
    try:
        result = await request.app.state.extractor.extract(
            content, file.content_type or "application/pdf",
        )
    except ExtractionError as e:
        if e.code == "QUOTA_EXCEEDED":
            raise HTTPException(429, {"error": str(e), "code": e.code})
        raise HTTPException(500, {"error": str(e), "code": e.code})
    except ConfigError as e:
        raise HTTPException(500, {"error": str(e), "code": "EXTRACTION_FAILED"})

    return {"data": result.model_dump()}


async def pin_json(request: Request, payload: Any = Body(...)):
    if not isinstance(payload, dict):
        raise HTTPException(400, "Request body must be a JSON object")
    try:
        cid = await _store(request).pin_json(payload)
    except StorageError as e:
        raise _storage_error(e)
    except ConfigError as e:
        raise HTTPException(500, {"error": str(e)})
    return {"cid": cid}


async def pin_file(request: Request, file: Optional[UploadFile] = File(None)):
    if file is None:
        raise HTTPException(400, "No file uploaded")
    content = await _read_upload(request, file)
    try:
        cid = await _store(request).pin_file(
            file.filename or "document", content, file.content_type or "application/octet-stream",
        )
    except StorageError as e:
        raise _storage_error(e)
    except ConfigError as e:
        raise HTTPException(500, {"error": str(e)})
    return {"cid": cid}


async def wallet_analytics(
    request: Request,
    address: Optional[str] = Query(None),
    chainId: Optional[str] = Query(None),
    days: Optional[str] = Query(None),
):
    if not address:
        raise HTTPException(400, "Missing required query param: address")
    client: EtherscanClient = request.app.state.etherscan
    try:
        report = await client.wallet_report(address, chain_id=chainId, days=days)
    except ConfigError as e:
        raise HTTPException(500, str(e))
    except AnalyticsError as e:
        raise HTTPException(502, str(e))
    return report.to_dict()


# ─── Credentials ───────────────────────────────────────────────────

async def fingerprint_payload(payload: Any = Body(...)):
    """Fingerprint a payload exactly the way the integrity checker does."""
    normalized = normalize_payload(payload)
    if not normalized.valid:
        raise HTTPException(400, "Payload must be a JSON object")
    return {
        "fingerprint": credential_fingerprint(normalized.data),
        "shape": normalized.shape.value,
        "canonical": canonical_json(normalized.data),
    }


async def list_credentials(address: str, request: Request):
    _require_address(address)
    try:
        records = await asyncio.to_thread(_ledger(request).get_user_credentials, address)
    except LedgerError as e:
        raise HTTPException(502, str(e))
    return {
        "address": address,
        "credentials": [r.to_dict() for r in records],
        "stats": credential_stats(records),
    }


async def verify_credentials(address: str, request: Request, hash: Optional[str] = Query(None)):
    _require_address(address)
    try:
        view = await _verifier(request).verify_address(address, hash)
    except LedgerError as e:
        raise HTTPException(502, str(e))
    if hash and not view.reports:
        raise HTTPException(404, f"Credential {hash} not found for {address}")
    return {
        "address": address,
        "stats": view.stats,
        "results": [report.to_dict() for report in view.reports.values()],
    }


async def disclose_credential(address: str, credential_hash: str, request: Request,
                              fields: Optional[str] = Query(None)):
    _require_address(address)
    if fields:
        requested = [f.strip() for f in fields.split(",") if f.strip()]
        unknown = sorted(set(requested) - DISCLOSABLE_FIELDS)
        if unknown:
            raise HTTPException(400, f"Fields not disclosable: {', '.join(unknown)}")
        allow_list = DisclosureAllowList.from_claim_request(requested)
    else:
        allow_list = PUBLIC_ALLOW_LIST

    verifier = _verifier(request)
    try:
        record = await asyncio.to_thread(verifier.ledger.find_credential, address, credential_hash)
    except LedgerError as e:
        raise HTTPException(502, str(e))
    if record is None:
        raise HTTPException(404, f"Credential {credential_hash} not found for {address}")

    try:
        disclosed = await verifier.disclose(record, allow_list)
    except RevokedCredential as e:
        raise HTTPException(409, str(e))
    except FetchFailed as e:
        raise HTTPException(502, e.detail)
    return {
        "credential_hash": record.credential_hash,
        "allow_list": sorted(allow_list.fields),
        "disclosed": disclosed,
    }


# ─── Routing ───────────────────────────────────────────────────────

def build_router(limiter: Limiter) -> APIRouter:
    """Mount the /api routes; the quota-spending proxies are limited by this app's limiter."""
    router = APIRouter(prefix="/api", tags=["api"])
    router.post("/extract")(limiter.limit("20/minute")(extract_document))
    router.post("/ipfs/json")(limiter.limit("30/minute")(pin_json))
    router.post("/ipfs/file")(limiter.limit("30/minute")(pin_file))
    router.get("/etherscan")(limiter.limit("30/minute")(wallet_analytics))
    router.post("/fingerprint")(fingerprint_payload)
    router.get("/credentials/{address}")(list_credentials)
    router.get("/verify/{address}")(verify_credentials)
    router.get("/disclose/{address}/{credential_hash}")(disclose_credential)
    return router


# ─── App factory ───────────────────────────────────────────────────

def create_app(settings: Optional[Settings] = None, *,
               store: Optional[ContentStore] = None,
               ledger: Optional[CredentialLedger] = None,
               trust_registry: Optional[TrustRegistry] = None,
               extractor: Optional[GeminiExtractor] = None,
               etherscan: Optional[EtherscanClient] = None) -> FastAPI:
    """Create the API app. Collaborators not passed in are built from settings."""
    settings = settings or Settings.from_env()
    setup_structured_logging(settings.log_level)

    app = FastAPI(
        title="neuralhash API",
        description="Hash-anchored verifiable credentials: proxies, verification, disclosure.",
        version=__version__,
        docs_url=None if settings.production else "/docs",
        redoc_url=None if settings.production else "/redoc",
    )
    app.state.settings = settings
    app.state.store = store if store is not None else PinataContentStore.from_settings(settings)
    app.state.ledger = ledger if ledger is not None else Web3CredentialLedger.from_settings(settings)
    app.state.trust_registry = (
        trust_registry if trust_registry is not None else Web3TrustRegistry.from_settings(settings)
    )
    app.state.extractor = extractor if extractor is not None else GeminiExtractor(
        settings.gemini_api_key, settings.gemini_model,
    )
    app.state.etherscan = etherscan if etherscan is not None else EtherscanClient(settings.etherscan_api_key)

    limiter = apply_security(app, settings)

    @app.get("/health")
    async def health():
        return {
            "status": "ok",
            "version": __version__,
            "ledger": "configured" if app.state.ledger is not None else "not_configured",
            "chain_id": settings.chain_id,
        }

    app.include_router(build_router(limiter))
    logger.info("neuralhash API ready (ledger %s)",
                "configured" if app.state.ledger is not None else "not configured")
    return app
