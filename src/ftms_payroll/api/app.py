"""FastAPI application factory."""

from __future__ import annotations

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

import httpx
from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.encoders import jsonable_encoder
from starlette.exceptions import HTTPException as StarletteHTTPException

from ftms_payroll.api.routes import health_router, payroll_periods_router
from ftms_payroll.config import Settings, get_settings
from ftms_payroll.database import Database
from ftms_payroll.errors import FTMSError
from ftms_payroll.integrations.audit_client import AuditLogClient
from ftms_payroll.integrations.hr_client import HRPayrollClient
from ftms_payroll.integrations.outbound import OutboundDispatcher

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan handler."""
    yield
    # Shutdown
    await app.state.dispatcher.drain()
    await app.state.audit_client.close()
    await app.state.hr_client.close()
    await app.state.database.dispose()


def create_app(
    settings: Settings | None = None,
    database: Database | None = None,
    hr_transport: httpx.AsyncBaseTransport | None = None,
    audit_transport: httpx.AsyncBaseTransport | None = None,
) -> FastAPI:
    """Create and configure the FastAPI application.

    Collaborators are attached to ``app.state`` here rather than in the
    lifespan so the app is usable without a lifespan run.
    """
    settings = settings or get_settings()
    database = database or Database.from_settings(settings)

    app = FastAPI(
        title="FTMS Payroll API",
        description="Payroll period lifecycle for the Financial Transaction Management System",
        version="0.1.0",
        lifespan=lifespan,
    )

    dispatcher = OutboundDispatcher(session_factory=database.session_factory)
    app.state.settings = settings
    app.state.database = database
    app.state.dispatcher = dispatcher
    app.state.hr_client = HRPayrollClient.from_settings(settings, transport=hr_transport)
    app.state.audit_client = AuditLogClient.from_settings(
        settings, dispatcher, transport=audit_transport
    )

    # CORS middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=list(settings.cors_origins),
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Exception handlers
    @app.exception_handler(FTMSError)
    async def ftms_error_handler(request: Request, exc: FTMSError) -> JSONResponse:
        content = {"success": False, "message": exc.message}
        if exc.details is not None:
            content["errors"] = jsonable_encoder(exc.details)
        return JSONResponse(status_code=exc.status_code, content=content)

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(
        request: Request, exc: RequestValidationError
    ) -> JSONResponse:
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content={
                "success": False,
                "message": "Validation failed",
                "errors": jsonable_encoder(exc.errors(), exclude={"ctx", "input"}),
            },
        )

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(
        request: Request, exc: StarletteHTTPException
    ) -> JSONResponse:
        return JSONResponse(
            status_code=exc.status_code,
            content={"success": False, "message": str(exc.detail)},
            headers=getattr(exc, "headers", None),
        )

    @app.exception_handler(Exception)
    async def general_exception_handler(
        request: Request, exc: Exception
    ) -> JSONResponse:
        """Handle unexpected exceptions."""
        logger.exception("Unhandled error on %s %s", request.method, request.url.path)
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={"success": False, "message": "Internal server error"},
        )

    # Include routers
    app.include_router(health_router)
    app.include_router(payroll_periods_router, prefix="/api/v1")

    return app
