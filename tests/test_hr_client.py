"""Tests for the HR payroll HTTP client."""

from datetime import date

import httpx
import pytest

from ftms_payroll.errors import IntegrationError
from ftms_payroll.integrations.hr_client import HRPayrollClient
from ftms_payroll.services.hr_sync_service import HRSyncService
from tests.factories import employee_record

START = date(2026, 1, 1)
END = date(2026, 1, 15)


def make_client(settings, handler) -> HRPayrollClient:
    return HRPayrollClient.from_settings(settings, transport=httpx.MockTransport(handler))


async def test_fetch_sends_window_and_api_key(settings):
    seen = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, json={"employees": [employee_record()], "count": 1})

    client = make_client(settings, handler)
    records = await client.fetch_employees(START, END, employee_number="EMP-001")
    await client.close()

    assert [r["employee_number"] for r in records] == ["EMP-001"]
    [request] = seen
    assert request.url.path == "/finance/v2/payroll-integration"
    assert request.url.params["payroll_period_start"] == "2026-01-01"
    assert request.url.params["payroll_period_end"] == "2026-01-15"
    assert request.url.params["employee_number"] == "EMP-001"
    assert request.headers["X-API-Key"] == "hr-key"


async def test_fetch_without_filter_omits_employee_number(settings):
    seen = []

    def handler(request):
        seen.append(request)
        return httpx.Response(200, json={"employees": []})

    client = make_client(settings, handler)
    assert await client.fetch_employees(START, END) == []
    await client.close()
    assert "employee_number" not in seen[0].url.params


@pytest.mark.parametrize(
    "handler,message",
    [
        (lambda r: httpx.Response(503, json={"error": "down"}), "HR API returned 503"),
        (lambda r: httpx.Response(200, content=b"<html>"), "invalid payroll payload"),
        (lambda r: httpx.Response(200, json={"employees": "nope"}), "invalid payroll payload"),
    ],
)
async def test_fetch_failures_become_integration_errors(settings, handler, message):
    client = make_client(settings, handler)
    with pytest.raises(IntegrationError, match=message) as exc_info:
        await client.fetch_employees(START, END)
    await client.close()
    assert exc_info.value.status_code == 502


async def test_non_object_entry_fails_only_itself(settings):
    def handler(request):
        return httpx.Response(200, json={"employees": [employee_record(), None], "count": 2})

    client = make_client(settings, handler)
    records = await client.fetch_employees(START, END)
    await client.close()

    assert records[1] is None
    computed, errors = HRSyncService(None, client).compute_records(records, START, END)
    assert [c.record.employee_number for c in computed] == ["EMP-001"]
    [error] = errors
    assert error.employee_number is None


async def test_fetch_connection_error(settings):
    def handler(request):
        raise httpx.ConnectError("refused", request=request)

    client = make_client(settings, handler)
    with pytest.raises(IntegrationError, match="Failed to fetch employee data"):
        await client.fetch_employees(START, END)
    await client.close()


async def test_send_payroll_distribution(settings):
    seen = []

    def handler(request):
        seen.append(request)
        return httpx.Response(200, json={"success": True})

    client = make_client(settings, handler)
    await client.send_payroll_distribution({"payroll_period_code": "2026-01A", "employees": []})
    await client.close()

    [request] = seen
    assert request.method == "POST"
    assert request.url.path == "/finance/webhooks/payroll/distribution"


async def test_send_payroll_distribution_raises_on_error(settings):
    client = make_client(settings, lambda r: httpx.Response(500))
    with pytest.raises(httpx.HTTPStatusError):
        await client.send_payroll_distribution({"payroll_period_code": "X"})
    await client.close()
