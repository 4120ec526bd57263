# backend/propledger/main.py
from __future__ import annotations

import logging

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError

from .config import settings
from .logging_config import configure_logging

from .middleware.request_id import RequestIDMiddleware
from .middleware.structured_logging import StructuredLoggingMiddleware

from .routers.health import router as health_router
from .routers.auth import router as auth_router
from .routers.dashboard import router as dashboard_router

from .routers.properties import router as properties_router
from .routers.appliances import router as appliances_router
from .routers.maintenance import router as maintenance_router
from .routers.issues import router as issues_router

from .routers.rent import router as rent_router
from .routers.analytics import router as analytics_router

API_PREFIX = "/api"

log = logging.getLogger("propledger")


def _cors_origins() -> list[str]:
    val = getattr(settings, "cors_allow_origins", ["*"])
    if isinstance(val, str):
        v = val.strip()
        return ["*"] if v == "*" else [x.strip() for x in v.split(",") if x.strip()]
    if isinstance(val, list) and val:
        return val
    return ["*"]


async def _datastore_error(request: Request, exc: SQLAlchemyError) -> JSONResponse:
    log.exception("unhandled datastore error", exc_info=exc)
    return JSONResponse(status_code=500, content={"detail": "Database error"})


def create_app() -> FastAPI:
    configure_logging()

    app = FastAPI(
        title="PropLedger",
        version=settings.app_version,
    )

    # last added runs first: request id must be set before the access log line
    app.add_middleware(StructuredLoggingMiddleware)
    app.add_middleware(RequestIDMiddleware)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=_cors_origins(),
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.add_exception_handler(SQLAlchemyError, _datastore_error)

    # Core
    app.include_router(health_router, prefix=API_PREFIX)
    app.include_router(auth_router, prefix=API_PREFIX)
    app.include_router(dashboard_router, prefix=API_PREFIX)

    # Assets
    app.include_router(properties_router, prefix=API_PREFIX)
    app.include_router(appliances_router, prefix=API_PREFIX)
    app.include_router(maintenance_router, prefix=API_PREFIX)
    app.include_router(issues_router, prefix=API_PREFIX)

    # Money
    app.include_router(rent_router, prefix=API_PREFIX)
    app.include_router(analytics_router, prefix=API_PREFIX)

    return app


app = create_app()
