"""
Audit trail for ledger mutations.

Every write to the ledger (movements, budgets, templates, card payments,
membership) produces one AuditEvent, whether it succeeded or was rejected.
Members can read the trail to see who changed an amount and when.

Writes to the audit sink are scheduled, never awaited by the caller, and a
broken sink is reported in the local log instead of failing the mutation.
"""

import asyncio
from typing import Optional
from uuid import UUID

import structlog

from household_ledger.models.audit import AuditEvent, AuditEventBuilder
from household_ledger.services.storage import AuditStorageInterface


# Configure structlog for local logging
structlog.configure(
    processors=[
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
        structlog.processors.JSONRenderer()
    ],
    wrapper_class=structlog.stdlib.BoundLogger,
    context_class=dict,
    logger_factory=structlog.stdlib.LoggerFactory(),
    cache_logger_on_first_use=True,
)


class AuditLogger:
    """
    Writes each event to the structlog output and, when a sink is given,
    to audit storage.

    Args:
        storage: Audit sink. None means local log lines only.
    """

    def __init__(self, storage: Optional[AuditStorageInterface] = None):
        self._storage = storage
        self._logger = structlog.get_logger(__name__)
        self._pending: set[asyncio.Task] = set()

    def _log_locally(self, event: AuditEvent) -> None:
        log_dict = event.to_log_dict()

        if event.severity.value in ("error", "critical"):
            self._logger.error("audit_event", **log_dict)
        elif event.severity.value == "warning":
            self._logger.warning("audit_event", **log_dict)
        else:
            self._logger.info("audit_event", **log_dict)

    async def log(self, event: AuditEvent) -> bool:
        """
        Log an audit event and wait for the sink.

        Always logs locally. Persists to storage if available.

        Returns True if storage write succeeded (or no storage configured).
        """
        self._log_locally(event)

        if self._storage:
            try:
                return await self._storage.append_event(event)
            except Exception as e:
                # Log failure but don't raise
                self._logger.error(
                    "audit_storage_failed",
                    error=str(e),
                    event_id=str(event.event_id),
                )
                return False

        return True

    def log_async(self, event: AuditEvent) -> None:
        """
        Fire-and-forget variant used by the ledger services.

        Schedules the write on the running loop and returns immediately.
        Outside an event loop the event is only logged locally.
        """
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            self._log_locally(event)
            return

        task = loop.create_task(self.log(event))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

    @property
    def pending_count(self) -> int:
        return len(self._pending)

    async def drain(self) -> None:
        """Wait for all scheduled writes. Call on shutdown and in tests."""
        while self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)

    def log_error(
        self,
        error_type: str,
        error_message: str,
        details: Optional[dict] = None,
        household_id: Optional[UUID] = None,
    ) -> None:
        """Log a system error (fire-and-forget)."""
        self.log_async(
            AuditEventBuilder.system_error(
                error_type=error_type,
                error_message=error_message,
                details=details,
                household_id=household_id,
            )
        )

    def log_external_service_error(self, service: str, error_message: str) -> None:
        self.log_async(
            AuditEventBuilder.external_service_error(
                service=service,
                error_message=error_message,
            )
        )
