# inspection_engine/middleware/request_id.py
from __future__ import annotations

import re
import uuid
from contextvars import ContextVar
from dataclasses import dataclass
from typing import Callable, Optional

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

REQUEST_ID_HEADER = "X-Request-ID"

# Token-holder portal; the path segment after this prefix is a credential.
PORTAL_PREFIX = "/api/access/"

# Incoming ids are echoed into logs and headers, so only short opaque ones are kept.
_SAFE_ID = re.compile(r"^[A-Za-z0-9._:-]{1,64}$")


@dataclass(frozen=True)
class RequestContext:
    request_id: str
    channel: str  # api | portal


_current: ContextVar[Optional[RequestContext]] = ContextVar("inspection_request", default=None)


def current_request() -> Optional[RequestContext]:
    return _current.get()


def get_request_id() -> Optional[str]:
    ctx = _current.get()
    return ctx.request_id if ctx else None


def resolve_request_id(raw: Optional[str]) -> str:
    value = (raw or "").strip()
    if _SAFE_ID.match(value):
        return value
    return uuid.uuid4().hex


def channel_for(path: str) -> str:
    return "portal" if path.startswith(PORTAL_PREFIX) else "api"


class RequestIdMiddleware(BaseHTTPMiddleware):
    """
    Correlates everything one request does: reuses a well-formed X-Request-ID
    from the caller (an owner app, an agent, an inspector's portal page) or mints
    one, tags whether the call came through the token portal, and echoes the id.
    """

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        ctx = RequestContext(
            request_id=resolve_request_id(request.headers.get(REQUEST_ID_HEADER)),
            channel=channel_for(request.url.path),
        )
        request.state.request_id = ctx.request_id
        request.state.channel = ctx.channel

        token = _current.set(ctx)
        try:
            response = await call_next(request)
        finally:
            _current.reset(token)
        response.headers[REQUEST_ID_HEADER] = ctx.request_id
        return response
