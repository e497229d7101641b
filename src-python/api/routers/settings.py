"""Application settings."""

from __future__ import annotations

import logging
from typing import Any, Optional

from fastapi import APIRouter, HTTPException
from pydantic import BaseModel, Field

from core.config import config
from api.deps import acquire_config_lock, release_config_lock

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api", tags=["settings"])


# ---------------------------------------------------------------------------
# Settings update schema — typed validation instead of raw dict
# ---------------------------------------------------------------------------

class SettingsUpdate(BaseModel):
    """Validated partial settings update."""
    tesseract_cmd: Optional[str] = None
    ocr_language: Optional[str] = None
    ocr_psm: Optional[int] = Field(default=None, ge=0, le=13)
    ocr_min_confidence: Optional[float] = Field(default=None, ge=0.0, le=100.0)
    ocr_timeout_seconds: Optional[float] = Field(default=None, ge=0.0)
    ocr_target_width: Optional[int] = Field(default=None, ge=64, le=10000)
    dedup_overlap_threshold: Optional[float] = Field(default=None, ge=0.0, le=1.0)
    redaction_fill: Optional[str] = Field(default=None, pattern=r"^#[0-9a-fA-F]{6}$")
    request_timeout_seconds: Optional[float] = Field(default=None, ge=0.0)


@router.get("/settings")
async def get_settings() -> dict[str, Any]:
    """Get current app settings (excludes internal paths)."""
    data = config.model_dump(mode="json")
    data.pop("data_dir", None)
    return data


@router.patch("/settings")
async def update_settings(body: SettingsUpdate) -> dict[str, Any]:
    """Update app settings (partial update with Pydantic validation)."""
    updates = body.model_dump(exclude_none=True)
    applied = {}

    if not acquire_config_lock():
        raise HTTPException(
            status_code=409,
            detail="Another settings update is in progress. Please retry.",
        )
    try:
        for key, value in updates.items():
            if hasattr(config, key):
                setattr(config, key, value)
                applied[key] = value

        if "tesseract_cmd" in applied:
            # Re-check availability against the new binary
            import core.ocr.engine as ocr_engine
            ocr_engine._tesseract_available = None
            logger.info(f"Tesseract command changed to '{applied['tesseract_cmd']}'")

        if applied:
            config.save_user_settings()
    finally:
        release_config_lock()

    return {"status": "ok", "applied": applied}
