"""Test doubles and HR record builders."""

from __future__ import annotations

import asyncio
import json
from datetime import date
from typing import Any, Awaitable, Callable

import httpx

from ftms_payroll.config import Settings


def make_settings(**overrides: Any) -> Settings:
    """Settings for tests: in-memory SQLite, fake endpoints, no backoff."""
    values: dict[str, Any] = {
        "database_url": "sqlite+aiosqlite:///:memory:",
        "jwt_secret": "test-secret",
        "enable_auth": True,
        "hr_api_base_url": "http://hr.test",
        "hr_api_key": "hr-key",
        "audit_api_base_url": "http://audit.test",
        "audit_api_key": "audit-key",
        "disbursement_max_attempts": 2,
        "disbursement_backoff_seconds": 0,
        "company_name": "Test Bus Co",
    }
    values.update(overrides)
    return Settings(**values)


def employee_record(
    employee_number: str = "EMP-001",
    basic_rate: str = "20000.00",
    benefits: list[dict[str, Any]] | None = None,
    deductions: list[dict[str, Any]] | None = None,
    attendances: list[dict[str, Any]] | None = None,
    **overrides: Any,
) -> dict[str, Any]:
    """An HR employee record as the payroll integration returns it."""
    record = {
        "employee_number": employee_number,
        "first_name": "Juan",
        "middle_name": None,
        "last_name": "Dela Cruz",
        "employment_status": "Regular",
        "department_name": "Operations",
        "position_name": "Driver",
        "basic_rate": basic_rate,
        "rate_type": "Monthly",
        "attendances": attendances if attendances is not None else [],
        "benefits": benefits if benefits is not None else [],
        "deductions": deductions if deductions is not None else [],
    }
    record.update(overrides)
    return record


def entry(
    name: str,
    value: str,
    is_active: bool = True,
    effective_date: str | None = "2025-01-01",
    end_date: str | None = None,
    frequency: str = "Monthly",
) -> dict[str, Any]:
    return {
        "name": name,
        "value": value,
        "frequency": frequency,
        "effective_date": effective_date,
        "end_date": end_date,
        "is_active": is_active,
    }


class FakeHRSource:
    """In-memory HR source; ``on_fetch`` runs before records are returned."""

    def __init__(self, records: list[dict[str, Any]] | None = None):
        self.records = records or []
        self.calls: list[tuple[date, date, str | None]] = []
        self.error: Exception | None = None
        self.on_fetch: Callable[[], Awaitable[None]] | None = None

    async def fetch_employees(self, period_start, period_end, employee_number=None):
        self.calls.append((period_start, period_end, employee_number))
        if self.error is not None:
            raise self.error
        if self.on_fetch is not None:
            await self.on_fetch()
        return list(self.records)


class FakeHRClient:
    """Captures disbursement webhooks; fails the first ``failures`` calls.

    ``delay`` seconds pass before each call answers.
    """

    def __init__(self, failures: int = 0, delay: float = 0.0):
        self.failures = failures
        self.delay = delay
        self.payloads: list[dict[str, Any]] = []
        self.attempts = 0

    async def send_payroll_distribution(self, payload: dict[str, Any]) -> None:
        self.attempts += 1
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.attempts <= self.failures:
            raise httpx.ConnectError("HR unreachable")
        self.payloads.append(payload)


class AuditRecorder:
    """httpx MockTransport handler that records audit POSTs."""

    def __init__(self, status_code: int = 201):
        self.status_code = status_code
        self.requests: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        return httpx.Response(self.status_code, json={"success": True})

    @property
    def entries(self) -> list[dict[str, Any]]:
        return [json.loads(r.content) for r in self.requests]

    def actions(self) -> list[str]:
        return [e["action"] for e in self.entries]

