"""Error taxonomy for the payroll service.

Service code raises these deliberately; the API layer maps ``status_code``
onto the HTTP response.
"""

from __future__ import annotations

from typing import Any


class FTMSError(Exception):
    """Base class for errors a caller can act on."""

    status_code: int = 400

    def __init__(self, message: str, details: Any = None):
        super().__init__(message)
        self.message = message
        self.details = details


class ValidationError(FTMSError):
    """Missing fields, invalid ranges or a forbidden state transition."""

    status_code = 400


class NotFoundError(FTMSError):
    """Unknown or soft-deleted resource."""

    status_code = 404


class ConflictError(FTMSError):
    """The resource changed underneath a conditional update."""

    status_code = 409


class IntegrationError(FTMSError):
    """An upstream collaborator failed for the whole request."""

    status_code = 502
