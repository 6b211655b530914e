# inspection_engine/middleware/structured_logging.py
from __future__ import annotations

import logging
import time
from typing import Callable, Optional

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

from .request_id import PORTAL_PREFIX

log = logging.getLogger("inspections.request")


def _safe_path(path: str) -> str:
    # the portal path carries the credential; never log it
    if path.startswith(PORTAL_PREFIX):
        rest = path[len(PORTAL_PREFIX):]
        tail = rest.split("/", 1)[1] if "/" in rest else ""
        return PORTAL_PREFIX + "<token>" + ("/" + tail if tail else "")
    return path


class StructuredLoggingMiddleware(BaseHTTPMiddleware):
    """
    Emits one structured log line per request with:
      request_id, actor role, method, path, status_code, latency_ms
    """

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        t0 = time.time()

        actor_role = request.headers.get("X-User-Role")
        status_code = 500
        try:
            response = await call_next(request)
            status_code = response.status_code
            return response
        finally:
            latency_ms = int((time.time() - t0) * 1000)
            request_id: Optional[str] = getattr(request.state, "request_id", None)
            channel: Optional[str] = getattr(request.state, "channel", None)
            log.info(
                "http_request",
                extra={
                    "actor_role": actor_role,
                    "http": {
                        "request_id": request_id,
                        "channel": channel,
                        "method": request.method,
                        "path": _safe_path(request.url.path),
                        "status_code": status_code,
                        "latency_ms": latency_ms,
                    },
                },
            )
