"""Clients for the HR and audit services."""

from ftms_payroll.integrations.audit_client import Actor, AuditEntry, AuditLogClient, RequestContext
from ftms_payroll.integrations.hr_cache_source import CachedHRPayrollSource, HRPayrollSource
from ftms_payroll.integrations.hr_client import HRPayrollClient
from ftms_payroll.integrations.outbound import OutboundDispatcher, deliver_with_retry

__all__ = [
    "Actor",
    "AuditEntry",
    "AuditLogClient",
    "RequestContext",
    "CachedHRPayrollSource",
    "HRPayrollSource",
    "HRPayrollClient",
    "OutboundDispatcher",
    "deliver_with_retry",
]
