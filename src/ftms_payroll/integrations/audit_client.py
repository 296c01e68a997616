"""Client for the external audit log service."""

from __future__ import annotations

import json
import logging
from dataclasses import asdict, dataclass, field
from typing import TYPE_CHECKING, Any

import httpx

if TYPE_CHECKING:
    from ftms_payroll.config import Settings
    from ftms_payroll.integrations.outbound import OutboundDispatcher

logger = logging.getLogger(__name__)

MODULE_NAME = "PAYROLL"


@dataclass(frozen=True)
class Actor:
    """The authenticated user performing an operation."""

    id: str
    name: str | None = None
    role: str | None = None


@dataclass(frozen=True)
class RequestContext:
    """Caller metadata forwarded to the audit log."""

    ip_address: str | None = None
    user_agent: str | None = None


@dataclass
class AuditEntry:
    """One audit event as posted to the audit service."""

    module_name: str
    action: str
    performed_by: str
    performed_by_name: str | None = None
    performed_by_role: str | None = None
    record_id: str | None = None
    record_code: str | None = None
    old_values: dict[str, Any] | None = None
    new_values: dict[str, Any] | None = None
    changed_fields: list[str] = field(default_factory=list)
    reason: str | None = None
    ip_address: str | None = None
    user_agent: str | None = None

    def to_payload(self) -> dict[str, Any]:
        """Wire format: camelCase keys, nested values JSON-encoded."""
        data = asdict(self)

        def encode(value: Any) -> str | None:
            return json.dumps(value, default=str) if value else None

        return {
            "moduleName": data["module_name"],
            "action": data["action"],
            "performedBy": data["performed_by"],
            "performedByName": data["performed_by_name"],
            "performedByRole": data["performed_by_role"],
            "recordId": data["record_id"],
            "recordCode": data["record_code"],
            "oldValues": encode(data["old_values"]),
            "newValues": encode(data["new_values"]),
            "changedFields": encode(data["changed_fields"]),
            "reason": data["reason"],
            "ipAddress": data["ip_address"],
            "userAgent": data["user_agent"],
        }


def changed_fields(old: dict[str, Any], new: dict[str, Any]) -> list[str]:
    """Keys of ``new`` whose value differs from ``old``."""
    return [key for key in new if str(old.get(key)) != str(new.get(key))]


class AuditLogClient:
    """Posts audit entries through the outbound dispatcher.

    The ``log_*`` helpers return immediately; delivery happens on a
    background task and failures never reach the caller.
    """

    def __init__(
        self,
        base_url: str,
        dispatcher: OutboundDispatcher,
        api_key: str | None = None,
        timeout: float = 5.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        headers = {"Content-Type": "application/json"}
        if api_key:
            headers["x-api-key"] = api_key
        self.dispatcher = dispatcher
        self._client = httpx.AsyncClient(
            base_url=base_url.rstrip("/"),
            headers=headers,
            timeout=httpx.Timeout(timeout),
            transport=transport,
        )

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        dispatcher: OutboundDispatcher,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> AuditLogClient:
        return cls(
            settings.audit_api_base_url,
            dispatcher,
            api_key=settings.audit_api_key,
            timeout=settings.audit_timeout_seconds,
            transport=transport,
        )

    async def close(self) -> None:
        await self._client.aclose()

    async def send(self, entry: AuditEntry) -> None:
        """POST one entry, raising on transport or HTTP errors."""
        response = await self._client.post("/api/audit-logs", json=entry.to_payload())
        response.raise_for_status()
        logger.debug("Audit log created: %s - %s", entry.module_name, entry.action)

    def log(self, entry: AuditEntry) -> None:
        self.dispatcher.submit(
            lambda: self.send(entry),
            target="audit",
            event=entry.action,
            record_id=entry.record_id,
            payload=entry.to_payload(),
        )

    def log_action(
        self,
        action: str,
        record_id: Any,
        record_code: str | None,
        actor: Actor,
        context: RequestContext | None = None,
        old_values: dict[str, Any] | None = None,
        new_values: dict[str, Any] | None = None,
        reason: str | None = None,
        fields: list[str] | None = None,
    ) -> AuditEntry:
        context = context or RequestContext()
        entry = AuditEntry(
            module_name=MODULE_NAME,
            action=action,
            performed_by=actor.id,
            performed_by_name=actor.name,
            performed_by_role=actor.role,
            record_id=str(record_id) if record_id is not None else None,
            record_code=record_code,
            old_values=old_values,
            new_values=new_values,
            changed_fields=fields or [],
            reason=reason,
            ip_address=context.ip_address,
            user_agent=context.user_agent,
        )
        self.log(entry)
        return entry

    def log_create(self, record_id, record_code, data, actor, context=None) -> AuditEntry:
        return self.log_action("CREATE", record_id, record_code, actor, context, new_values=data)

    def log_update(
        self, record_id, record_code, old_data, new_data, actor, context=None
    ) -> AuditEntry:
        return self.log_action(
            "UPDATE",
            record_id,
            record_code,
            actor,
            context,
            old_values=old_data,
            new_values=new_data,
            fields=changed_fields(old_data, new_data),
        )

    def log_delete(
        self, record_id, record_code, data, actor, reason, context=None
    ) -> AuditEntry:
        return self.log_action(
            "DELETE", record_id, record_code, actor, context, old_values=data, reason=reason
        )

    def log_approval(
        self, record_id, record_code, actor, context=None, reason=None
    ) -> AuditEntry:
        return self.log_action("APPROVE", record_id, record_code, actor, context, reason=reason)
