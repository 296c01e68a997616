"""FastAPI dependencies for dependency injection."""

from __future__ import annotations

from collections.abc import AsyncGenerator
from typing import Annotated

import jwt
from fastapi import Depends, Header, HTTPException, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from ftms_payroll.config import Settings
from ftms_payroll.integrations.audit_client import Actor, RequestContext
from ftms_payroll.integrations.hr_cache_source import CachedHRPayrollSource, HRPayrollSource
from ftms_payroll.services.payroll_period_service import PayrollPeriodService

ADMIN_ROLE = "admin"


def get_settings(request: Request) -> Settings:
    return request.app.state.settings


async def get_db_session(request: Request) -> AsyncGenerator[AsyncSession, None]:
    """Get database session dependency."""
    async with request.app.state.database.session() as session:
        yield session


AppSettings = Annotated[Settings, Depends(get_settings)]
DbSession = Annotated[AsyncSession, Depends(get_db_session)]


def decode_token(token: str, settings: Settings) -> Actor:
    """Validate a bearer token issued by the HR auth service."""
    try:
        claims = jwt.decode(token, settings.jwt_secret, algorithms=[settings.jwt_algorithm])
    except jwt.ExpiredSignatureError:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Token has expired",
        )
    except jwt.InvalidTokenError:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid token",
        )

    subject = claims.get("sub")
    if not subject:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Token is missing a subject",
        )
    return Actor(
        id=str(subject),
        name=claims.get("username"),
        role=claims.get("role"),
    )


async def get_current_actor(
    settings: AppSettings,
    authorization: Annotated[str | None, Header()] = None,
) -> Actor:
    """Resolve the caller from the Authorization header."""
    if not settings.enable_auth:
        return Actor(id="system", name="system", role=ADMIN_ROLE)

    if not authorization or not authorization.lower().startswith("bearer "):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Authorization header is required",
        )
    return decode_token(authorization.split(" ", 1)[1].strip(), settings)


async def require_admin(actor: Annotated[Actor, Depends(get_current_actor)]) -> Actor:
    if actor.role != ADMIN_ROLE:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Admin role required",
        )
    return actor


def get_request_context(
    request: Request,
    user_agent: Annotated[str | None, Header()] = None,
) -> RequestContext:
    forwarded = request.headers.get("x-forwarded-for")
    ip = forwarded.split(",")[0].strip() if forwarded else None
    if ip is None and request.client:
        ip = request.client.host
    return RequestContext(ip_address=ip, user_agent=user_agent)


def get_hr_source(request: Request, db: DbSession) -> HRPayrollSource:
    if request.app.state.settings.hr_source == "cache":
        return CachedHRPayrollSource(db)
    return request.app.state.hr_client


def get_payroll_period_service(
    request: Request,
    db: DbSession,
    settings: AppSettings,
    hr_source: Annotated[HRPayrollSource, Depends(get_hr_source)],
) -> PayrollPeriodService:
    return PayrollPeriodService(
        db,
        settings,
        hr_source=hr_source,
        hr_client=request.app.state.hr_client,
        audit=request.app.state.audit_client,
    )


# Type aliases for cleaner dependency injection
AdminActor = Annotated[Actor, Depends(require_admin)]
ReqContext = Annotated[RequestContext, Depends(get_request_context)]
PeriodService = Annotated[PayrollPeriodService, Depends(get_payroll_period_service)]
