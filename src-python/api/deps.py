"""Shared helpers used by the API routers."""

from __future__ import annotations

import asyncio
import logging
import threading
from typing import Callable, TypeVar

from fastapi import HTTPException, UploadFile

from core.config import config

logger = logging.getLogger(__name__)

T = TypeVar("T")

# Serialises config mutations from concurrent settings updates
_config_lock = threading.Lock()


def acquire_config_lock() -> bool:
    return _config_lock.acquire(blocking=False)


def release_config_lock() -> None:
    _config_lock.release()


async def read_upload(file: UploadFile) -> tuple[bytes, str]:
    """Read and validate an uploaded image.

    Returns ``(content, mime_type)``.  Rejects non-image MIME types (415),
    payloads over ``config.max_upload_bytes`` (413) and empty bodies (400).
    """
    mime_type = (file.content_type or "").split(";")[0].strip().lower()
    if mime_type not in config.allowed_mime_types:
        raise HTTPException(
            status_code=415,
            detail=(
                f"Unsupported file type '{mime_type or 'unknown'}'. "
                f"Supported: {', '.join(config.allowed_mime_types)}"
            ),
        )

    # Read one byte past the limit so oversized uploads are caught without
    # buffering the whole body.
    content = await file.read(config.max_upload_bytes + 1)
    if len(content) > config.max_upload_bytes:
        raise HTTPException(
            status_code=413,
            detail=f"File too large (max {config.max_upload_bytes // (1024 * 1024)}MB)",
        )
    if not content:
        raise HTTPException(status_code=400, detail="Empty upload")

    logger.info(
        f"Received upload '{file.filename}' ({len(content)} bytes, {mime_type})",
        extra={"mime_type": mime_type, "size_bytes": len(content)},
    )
    return content, mime_type


async def run_with_deadline(func: Callable[..., T], *args) -> T:
    """Run blocking *func* in a worker thread, bounded by the request timeout.

    On timeout the worker keeps running to completion in the background
    (so its resources are released by its own cleanup) and the client gets
    a 504.
    """
    task = asyncio.to_thread(func, *args)
    timeout = config.request_timeout_seconds
    if timeout <= 0:
        return await task
    try:
        return await asyncio.wait_for(task, timeout=timeout)
    except asyncio.TimeoutError:
        logger.warning(f"Request exceeded {timeout:.1f}s deadline")
        raise HTTPException(status_code=504, detail="Processing timed out")
