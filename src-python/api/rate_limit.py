"""Per-client rate limiting for the OCR endpoints.

Redaction requests each hold a Tesseract process for seconds, so only
mutating ``/api`` calls are counted; reads, health checks and settings
changes pass straight through.
"""

from __future__ import annotations

import logging
import math
import time
from collections import defaultdict, deque
from typing import Any, Iterable, Optional

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import JSONResponse

logger = logging.getLogger(__name__)


class SlidingWindow:
    """Timestamps of recent hits per key, trimmed to the last *window* seconds."""

    def __init__(self, limit: int, window: float) -> None:
        self.limit = limit
        self.window = window
        self._hits: dict[str, deque[float]] = defaultdict(deque)

    def hit(self, key: str, now: Optional[float] = None) -> Optional[int]:
        """Record a hit for *key*.

        Returns None when the hit is allowed, otherwise the number of whole
        seconds until the oldest hit leaves the window (the hit is not
        recorded).
        """
        now = time.monotonic() if now is None else now
        hits = self._hits[key]
        while hits and hits[0] <= now - self.window:
            hits.popleft()
        if len(hits) >= self.limit:
            return max(1, math.ceil(hits[0] + self.window - now))
        hits.append(now)
        return None


class RateLimitMiddleware(BaseHTTPMiddleware):
    """Reject OCR-bound requests from a client that exceeds its quota.

    Args:
        app: The ASGI application.
        max_requests: Requests allowed per client within *window_seconds*.
        window_seconds: Length of the sliding window.
        exempt_prefixes: Paths never counted.
    """

    def __init__(
        self,
        app: Any,
        max_requests: int = 120,
        window_seconds: int = 60,
        exempt_prefixes: Iterable[str] = ("/health", "/api/settings"),
    ) -> None:
        super().__init__(app)
        self.window = SlidingWindow(max_requests, window_seconds)
        self.exempt_prefixes = tuple(exempt_prefixes)

    def _counted(self, request: Request) -> bool:
        path = request.url.path
        if path.startswith(self.exempt_prefixes):
            return False
        return request.method == "POST" and path.startswith("/api/")

    async def dispatch(self, request: Request, call_next):  # type: ignore[override]
        if not self._counted(request):
            return await call_next(request)

        client_ip = request.client.host if request.client else "unknown"
        retry_after = self.window.hit(client_ip)
        if retry_after is not None:
            logger.warning(
                f"Rate limit exceeded for {client_ip} "
                f"({self.window.limit} per {self.window.window}s)",
                extra={"ip": client_ip, "error_type": "rate_limit"},
            )
            return JSONResponse(
                status_code=429,
                content={"detail": f"Too many requests. Retry in {retry_after}s."},
                headers={"Retry-After": str(retry_after)},
            )
        return await call_next(request)
