"""FastAPI application — HTTP surface of the scan redactor."""

from __future__ import annotations

import logging
import time
import uuid
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware

from core.config import config
from api.rate_limit import RateLimitMiddleware
from api.routers import redaction, settings

logger = logging.getLogger(__name__)

__version__ = "0.1.0"


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Check for the OCR engine once at startup (non-fatal if missing)."""
    from core.ocr.engine import _check_tesseract

    logger.info("Starting scanshield...")
    if not _check_tesseract():
        logger.warning("Tesseract is not installed — /api/redact will fail until it is")
    yield
    logger.info("scanshield stopped")


app = FastAPI(
    title="scanshield",
    version=__version__,
    description="Detects PII in scanned images and returns redacted copies",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_methods=["*"],
    allow_headers=["*"],
    expose_headers=["X-Detections-Count"],
)
app.add_middleware(
    RateLimitMiddleware,
    max_requests=config.rate_limit_requests,
    window_seconds=config.rate_limit_window,
)


@app.middleware("http")
async def log_requests(request: Request, call_next):
    """Log one line per request with timing and a request id."""
    request_id = request.headers.get("x-request-id") or uuid.uuid4().hex[:12]
    t0 = time.perf_counter()
    response = await call_next(request)
    duration_ms = round((time.perf_counter() - t0) * 1000, 1)
    response.headers["X-Request-ID"] = request_id
    logger.info(
        f"{request.method} {request.url.path} → {response.status_code} ({duration_ms}ms)",
        extra={
            "request_id": request_id,
            "method": request.method,
            "path": request.url.path,
            "status_code": response.status_code,
            "duration_ms": duration_ms,
        },
    )
    return response


app.include_router(redaction.router)
app.include_router(settings.router)


@app.get("/health")
async def health():
    return {"status": "ok", "version": __version__}
