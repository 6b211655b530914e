# inspection_engine/main.py
from __future__ import annotations

import logging

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from .config import settings
from .domain.errors import InspectionError, InvalidToken
from .logging_config import configure_logging

from .middleware.request_id import RequestIdMiddleware
from .middleware.structured_logging import StructuredLoggingMiddleware

from .routers.health import router as health_router
from .routers.inspections import router as inspections_router
from .routers.templates import router as templates_router
from .routers.outsourcing import router as outsourcing_router
from .routers.inspector_access import router as inspector_access_router
from .routers.comparisons import router as comparisons_router
from .routers.disputes import router as disputes_router
from .routers.tenant_review import router as tenant_review_router

API_PREFIX = "/api"

log = logging.getLogger("inspections.api")


def _cors_origins() -> list[str]:
    val = getattr(settings, "cors_allow_origins", ["*"])
    if isinstance(val, str):
        v = val.strip()
        return ["*"] if v == "*" else [x.strip() for x in v.split(",") if x.strip()]
    if isinstance(val, list) and val:
        return val
    return ["*"]


async def inspection_error_handler(request: Request, exc: InspectionError) -> JSONResponse:
    if isinstance(exc, InvalidToken):
        # never echo anything about the presented token
        return JSONResponse(status_code=exc.status_code, content={"detail": InvalidToken.GENERIC_MESSAGE, "error": exc.code})

    if exc.status_code >= 500:
        log.warning("external capability failure: %s", exc.message)
    body = {"detail": exc.message, "error": exc.code}
    field = getattr(exc, "field", None)
    if field:
        body["field"] = field
    return JSONResponse(status_code=exc.status_code, content=body)


def create_app() -> FastAPI:
    configure_logging()

    app = FastAPI(title=settings.app_name, version=settings.app_version)

    # Request-ID first (observability baseline)
    app.add_middleware(RequestIdMiddleware)
    app.add_middleware(StructuredLoggingMiddleware)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=_cors_origins(),
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.add_exception_handler(InspectionError, inspection_error_handler)

    app.include_router(health_router, prefix=API_PREFIX)

    # Inspection workflow
    app.include_router(inspections_router, prefix=API_PREFIX)
    app.include_router(templates_router, prefix=API_PREFIX)
    app.include_router(disputes_router, prefix=API_PREFIX)
    app.include_router(tenant_review_router, prefix=API_PREFIX)
    app.include_router(comparisons_router, prefix=API_PREFIX)

    # Outsourcing: issuer side, then the token holder's portal
    app.include_router(outsourcing_router, prefix=API_PREFIX)
    app.include_router(inspector_access_router, prefix=API_PREFIX)

    return app


app = create_app()
