"""
neuralhash.security — HTTP plumbing for the API.

Everything here is configured per app from `Settings`: JSON logs tagged with
a request ID, an app-private rate limiter, the upload size cap that guards
/api/extract and /api/ipfs/file, CORS, and the last-resort error handler.
"""

import logging
import time
import uuid
from contextvars import ContextVar

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from slowapi import Limiter
from slowapi.errors import RateLimitExceeded
from slowapi.util import get_remote_address
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.responses import JSONResponse

from neuralhash.config import Settings

logger = logging.getLogger("neuralhash")

request_id_var: ContextVar[str] = ContextVar("request_id", default="")

SECURITY_HEADERS = {
    "X-Content-Type-Options": "nosniff",
    "X-Frame-Options": "DENY",
    "Strict-Transport-Security": "max-age=63072000; includeSubDomains",
}


# ─── Structured JSON logging ──────────────────────────────────────

class RequestIdFilter(logging.Filter):
    def filter(self, record):
        record.request_id = request_id_var.get("")
        return True


def setup_structured_logging(level: str = "INFO") -> logging.Logger:
    """Install the JSON handler on the package logger once; later calls only set the level."""
    from pythonjsonlogger.json import JsonFormatter

    logger.setLevel(getattr(logging, level.upper(), logging.INFO))
    if not logger.handlers:
        handler = logging.StreamHandler()
        handler.setFormatter(JsonFormatter(
            fmt="%(asctime)s %(levelname)s %(name)s %(message)s %(request_id)s",
            rename_fields={"asctime": "timestamp", "levelname": "level"},
        ))
        handler.addFilter(RequestIdFilter())
        logger.addHandler(handler)
    return logger


# ─── Rate limiting (slowapi) ──────────────────────────────────────

def build_limiter(settings: Settings) -> Limiter:
    """A limiter owned by one app; counters and the on/off switch are not shared."""
    return Limiter(key_func=get_remote_address, enabled=settings.ratelimit_enabled)


def rate_limit_exceeded_handler(request: Request, exc: RateLimitExceeded):
    retry_after = exc.limit.limit.get_expiry()
    logger.warning("Rate limit %s hit on %s", exc.limit.limit, request.url.path)
    return JSONResponse(
        status_code=429,
        content={"detail": "Rate limit exceeded. Try again later."},
        headers={"Retry-After": str(retry_after)},
    )


# ─── Middleware ───────────────────────────────────────────────────

class RequestContextMiddleware(BaseHTTPMiddleware):
    """Tag the request with an ID, log it, and add security headers."""

    async def dispatch(self, request: Request, call_next):
        rid = request.headers.get("X-Request-ID") or uuid.uuid4().hex[:8]
        request_id_var.set(rid)

        started = time.perf_counter()
        response = await call_next(request)
        logger.info(
            "request",
            extra={
                "method": request.method,
                "path": request.url.path,
                "status": response.status_code,
                "duration_ms": round((time.perf_counter() - started) * 1000, 1),
                "client": request.client.host if request.client else "",
            },
        )

        response.headers["X-Request-ID"] = rid
        response.headers.update(SECURITY_HEADERS)
        return response


class UploadSizeLimitMiddleware(BaseHTTPMiddleware):
    """Reject bodies whose declared length exceeds the upload cap."""

    def __init__(self, app, max_bytes: int):
        super().__init__(app)
        self.max_bytes = max_bytes

    async def dispatch(self, request: Request, call_next):
        declared = request.headers.get("content-length", "")
        if declared.isdigit() and int(declared) > self.max_bytes:
            return JSONResponse(status_code=413, content={"detail": upload_too_large(self.max_bytes)})
        return await call_next(request)


def upload_too_large(max_bytes: int) -> str:
    return f"Upload exceeds the {max_bytes} byte limit"


async def generic_exception_handler(request: Request, exc: Exception):
    logger.error("Unhandled %s on %s", type(exc).__name__, request.url.path)
    return JSONResponse(status_code=500, content={"detail": "Internal server error"})


# ─── Wiring ───────────────────────────────────────────────────────

def apply_security(app: FastAPI, settings: Settings) -> Limiter:
    """Attach middleware and handlers to `app`; returns the app's limiter."""
    origins = list(settings.allowed_origins) or ["*"]
    app.add_middleware(
        CORSMiddleware,
        allow_origins=origins,
        allow_credentials=origins != ["*"],
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=["*"],
        expose_headers=["X-Request-ID"],
    )

    limiter = build_limiter(settings)
    app.state.limiter = limiter
    app.add_exception_handler(RateLimitExceeded, rate_limit_exceeded_handler)
    app.add_exception_handler(Exception, generic_exception_handler)

    app.add_middleware(UploadSizeLimitMiddleware, max_bytes=settings.max_upload_bytes)
    app.add_middleware(RequestContextMiddleware)
    return limiter
