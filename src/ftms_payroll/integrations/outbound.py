"""Best-effort delivery of outbound notifications.

Audit events run as tracked background tasks so the request that produced
them is not held up; the HR disbursement webhook is delivered inline with
bounded retries. Either way, a notification that exhausts its attempts is
logged and written to ``outbound_failure``.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Awaitable, Callable

from ftms_payroll.models import OutboundFailure

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

logger = logging.getLogger(__name__)


@dataclass
class DeliveryResult:
    """Outcome of a delivery attempt sequence."""

    delivered: bool
    attempts: int
    error: str | None = None


async def deliver_with_retry(
    send: Callable[[], Awaitable[Any]],
    max_attempts: int = 3,
    backoff_seconds: float = 1.0,
) -> DeliveryResult:
    """Call ``send`` until it succeeds or attempts run out.

    Waits ``backoff_seconds * 2**n`` between attempts.
    """
    last_error: str | None = None
    for attempt in range(1, max_attempts + 1):
        try:
            await send()
            return DeliveryResult(delivered=True, attempts=attempt)
        except Exception as e:
            last_error = f"{type(e).__name__}: {e}"
            logger.warning("Delivery attempt %d/%d failed: %s", attempt, max_attempts, last_error)
            if attempt < max_attempts and backoff_seconds > 0:
                await asyncio.sleep(backoff_seconds * 2 ** (attempt - 1))
    return DeliveryResult(delivered=False, attempts=max_attempts, error=last_error)


def build_failure(
    target: str,
    event: str,
    record_id: str | None,
    payload: dict[str, Any],
    error: str | None,
    attempts: int,
) -> OutboundFailure:
    return OutboundFailure(
        target=target,
        event=event,
        record_id=record_id,
        payload=payload,
        error=error or "unknown error",
        attempts=attempts,
    )


class OutboundDispatcher:
    """Runs notifications as background tasks and dead-letters failures.

    ``session_factory`` is optional; without it failures are only logged.
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession] | None = None,
        max_attempts: int = 1,
        backoff_seconds: float = 0.0,
    ):
        self.session_factory = session_factory
        self.max_attempts = max_attempts
        self.backoff_seconds = backoff_seconds
        self._tasks: set[asyncio.Task] = set()

    @property
    def pending(self) -> int:
        return len(self._tasks)

    def submit(
        self,
        send: Callable[[], Awaitable[Any]],
        *,
        target: str,
        event: str,
        record_id: str | None = None,
        payload: dict[str, Any] | None = None,
    ) -> asyncio.Task:
        """Schedule ``send`` on the running loop and return the task."""
        task = asyncio.get_running_loop().create_task(
            self._run(send, target, event, record_id, payload or {})
        )
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def _run(
        self,
        send: Callable[[], Awaitable[Any]],
        target: str,
        event: str,
        record_id: str | None,
        payload: dict[str, Any],
    ) -> DeliveryResult:
        result = await deliver_with_retry(send, self.max_attempts, self.backoff_seconds)
        if not result.delivered:
            logger.error(
                "Outbound %s %s for record %s failed after %d attempt(s): %s",
                target,
                event,
                record_id,
                result.attempts,
                result.error,
            )
            await self.record_failure(
                build_failure(target, event, record_id, payload, result.error, result.attempts)
            )
        return result

    async def record_failure(self, failure: OutboundFailure) -> None:
        """Persist a dead-letter row in its own session."""
        if self.session_factory is None:
            return
        try:
            async with self.session_factory() as session:
                session.add(failure)
                await session.commit()
        except Exception:
            logger.exception("Could not record outbound failure for %s", failure.target)

    async def drain(self) -> None:
        """Wait for all in-flight notifications."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)
