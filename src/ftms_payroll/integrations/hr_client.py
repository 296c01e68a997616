"""HTTP client for the HR payroll integration."""

from __future__ import annotations

import logging
from datetime import date
from typing import TYPE_CHECKING, Any

import httpx
from pydantic import ValidationError as PydanticValidationError

from ftms_payroll.errors import IntegrationError
from ftms_payroll.integrations.hr_types import HRPayrollResponse

if TYPE_CHECKING:
    from ftms_payroll.config import Settings

logger = logging.getLogger(__name__)


class HRPayrollClient:
    """Fetches employee payroll inputs and posts disbursement webhooks."""

    def __init__(
        self,
        payroll_url: str,
        disbursement_url: str,
        api_key: str | None = None,
        timeout: float = 30.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.payroll_url = payroll_url
        self.disbursement_url = disbursement_url
        headers = {"X-API-Key": api_key} if api_key else {}
        self._client = httpx.AsyncClient(
            headers=headers,
            timeout=httpx.Timeout(timeout),
            transport=transport,
        )

    @classmethod
    def from_settings(
        cls, settings: Settings, transport: httpx.AsyncBaseTransport | None = None
    ) -> HRPayrollClient:
        return cls(
            settings.hr_payroll_url,
            settings.hr_disbursement_url,
            api_key=settings.hr_api_key,
            timeout=settings.hr_timeout_seconds,
            transport=transport,
        )

    async def close(self) -> None:
        await self._client.aclose()

    async def fetch_employees(
        self,
        period_start: date,
        period_end: date,
        employee_number: str | None = None,
    ) -> list[Any]:
        """Fetch raw employee records for a window.

        Raises IntegrationError when HR cannot be reached or answers with
        something other than a payroll envelope.
        """
        params = {
            "payroll_period_start": period_start.isoformat(),
            "payroll_period_end": period_end.isoformat(),
        }
        if employee_number:
            params["employee_number"] = employee_number

        try:
            response = await self._client.get(self.payroll_url, params=params)
            response.raise_for_status()
            envelope = HRPayrollResponse.model_validate(response.json())
        except httpx.HTTPStatusError as e:
            logger.error("HR payroll API returned %s", e.response.status_code)
            raise IntegrationError(
                f"HR API returned {e.response.status_code}"
            ) from e
        except httpx.HTTPError as e:
            logger.error("Error fetching employees from HR: %s", e)
            raise IntegrationError(f"Failed to fetch employee data from HR: {e}") from e
        except (ValueError, PydanticValidationError) as e:
            raise IntegrationError("HR API returned an invalid payroll payload") from e

        logger.info(
            "Fetched %d employees from HR for %s to %s",
            len(envelope.employees),
            period_start,
            period_end,
        )
        return envelope.employees

    async def send_payroll_distribution(self, payload: dict[str, Any]) -> None:
        """POST the disbursement payload, raising on any failure."""
        response = await self._client.post(self.disbursement_url, json=payload)
        response.raise_for_status()
        logger.info(
            "Sent payroll distribution webhook to HR for period %s",
            payload.get("payroll_period_code"),
        )
