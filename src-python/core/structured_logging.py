"""Root logger configuration for scanshield.

``SCANSHIELD_LOG_FORMAT`` picks the handler format: ``text`` (default) for a
terminal, ``json`` for one JSON object per line.  Request and redaction
context passed through ``extra=`` ends up as top-level JSON keys.
"""

from __future__ import annotations

import json
import logging
import sys
import traceback
from datetime import datetime, timezone
from typing import Any

TEXT_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"

# Record attributes (set via ``extra=``) copied into the JSON object
EXTRA_FIELDS = (
    "request_id", "method", "path", "status_code", "duration_ms", "ip",
    "mime_type", "size_bytes", "detections", "error_type",
)


def _exception_payload(exc_info) -> dict[str, str]:
    exc_type, exc, tb = exc_info
    return {
        "type": exc_type.__name__ if exc_type else "Exception",
        "message": "" if exc is None else str(exc),
        "stacktrace": "".join(traceback.format_exception(exc_type, exc, tb)),
    }


class JSONFormatter(logging.Formatter):
    """One JSON object per record.

    The level goes under ``severity`` and the time under ``timestamp`` (UTC,
    ISO 8601).  Attributes listed in :data:`EXTRA_FIELDS` are copied over
    when set, and a logged exception becomes an ``exception`` object with
    its type, message and formatted stack.
    """

    def format(self, record: logging.LogRecord) -> str:
        payload: dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "severity": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        payload.update(
            (key, getattr(record, key))
            for key in EXTRA_FIELDS
            if getattr(record, key, None) is not None
        )
        if record.exc_info and record.exc_info[2] is not None:
            payload["exception"] = _exception_payload(record.exc_info)
        return json.dumps(payload, default=str, ensure_ascii=False)


def setup_logging(log_format: str = "text", level: str = "INFO") -> None:
    """Point the root logger at a single stderr handler.

    Handlers left from an earlier call (uvicorn reload) are dropped first.
    Unknown level names fall back to INFO.
    """
    root = logging.getLogger()
    root.setLevel(getattr(logging, level.upper(), logging.INFO))
    for old in list(root.handlers):
        root.removeHandler(old)

    handler = logging.StreamHandler(sys.stderr)
    if log_format.lower() == "json":
        handler.setFormatter(JSONFormatter())
    else:
        handler.setFormatter(logging.Formatter(TEXT_FORMAT))
    root.addHandler(handler)
