"""
Recurring Movement Generator

Turns due auto-generate templates into real movements. Nothing schedules
this in-process: a cron job or worker calls process_pending(today).

Each generated movement goes through the same validation, authorization
and budget floor handling as a movement entered by hand, inside a unit
that also advances the template. Audit events and the mirror follow the
commit. A template that fails is logged and counted; the batch carries on.
"""

from dataclasses import dataclass, field
from datetime import date
from typing import Optional
from uuid import UUID

import structlog

from household_ledger.audit import AuditLogger
from household_ledger.budgets.templates import movement_input_from_template, next_occurrence
from household_ledger.errors import LedgerError
from household_ledger.models.audit import AuditEventBuilder
from household_ledger.models.budget import RecurringMovementTemplate
from household_ledger.models.movement import IdentityKind, Movement
from household_ledger.movements.service import MovementService
from household_ledger.services.storage import (
    HouseholdRepository,
    StorageError,
    TemplateRepository,
    TransactionManager,
)

logger = structlog.get_logger(__name__)


@dataclass
class GenerationResult:
    generated: list[Movement] = field(default_factory=list)
    failed: int = 0
    skipped: int = 0

    @property
    def generated_count(self) -> int:
        return len(self.generated)


class RecurringMovementGenerator:

    def __init__(
        self,
        templates: TemplateRepository,
        households: HouseholdRepository,
        movement_service: MovementService,
        transactions: TransactionManager,
        audit_logger: AuditLogger,
    ):
        self._templates = templates
        self._households = households
        self._movements = movement_service
        self._tx = transactions
        self._audit = audit_logger

    async def process_pending(self, today: Optional[date] = None) -> GenerationResult:
        """
        Generate every occurrence due on or before `today`.

        A template several periods behind is caught up one occurrence at a
        time, each dated on its scheduled day.
        """
        today = today or date.today()
        result = GenerationResult()

        for template in await self._templates.list_pending(today):
            actor_id = await self._acting_user(template)
            if actor_id is None:
                logger.warning(
                    "template_generation_skipped",
                    template_id=str(template.id),
                    reason="no household member to act as",
                )
                result.skipped += 1
                continue

            while template.next_scheduled_date is not None and template.next_scheduled_date <= today:
                try:
                    movement, template = await self._generate(template, actor_id)
                except (LedgerError, StorageError) as e:
                    self._report_failure(template, e)
                    result.failed += 1
                    break
                result.generated.append(movement)

        logger.info(
            "recurring_generation_finished",
            generated=result.generated_count,
            failed=result.failed,
            skipped=result.skipped,
        )
        return result

    async def _generate(
        self,
        template: RecurringMovementTemplate,
        actor_id: UUID,
    ) -> tuple[Movement, RecurringMovementTemplate]:
        scheduled = template.next_scheduled_date
        advanced = template.model_copy(update={
            "last_generated_date": scheduled,
            "next_scheduled_date": next_occurrence(template, scheduled),
        })
        async with self._tx.transaction():
            movement, floor_changes = await self._movements.create_in_unit(
                actor_id,
                template.household_id,
                movement_input_from_template(template, scheduled),
            )
            advanced = await self._templates.update(advanced)

        await self._movements.publish_created(movement, floor_changes, actor_id)
        logger.info(
            "movement_generated",
            movement_id=str(movement.id),
            template_id=str(template.id),
            scheduled_date=str(scheduled),
        )
        self._audit.log_async(AuditEventBuilder.movement_generated(
            movement_id=movement.id,
            template_id=template.id,
            household_id=template.household_id,
            actor_id=actor_id,
        ))
        return movement, advanced

    def _report_failure(self, template: RecurringMovementTemplate, error: Exception) -> None:
        if isinstance(error, LedgerError):
            kind, message = error.kind, error.message
        else:
            kind, message = "storage_error", str(error)
        logger.error(
            "template_generation_failed",
            template_id=str(template.id),
            scheduled_date=str(template.next_scheduled_date),
            error_kind=kind,
            error=message,
        )
        self._audit.log_error(
            error_type="template_generation_failed",
            error_message=message,
            details={
                "template_id": str(template.id),
                "scheduled_date": str(template.next_scheduled_date),
                "error_kind": kind,
            },
            household_id=template.household_id,
        )

    async def _acting_user(self, template: RecurringMovementTemplate) -> Optional[UUID]:
        """The creator while still a member, else the paying member, else a member participant."""
        candidates = [template.created_by]
        if template.payer is not None and template.payer.kind == IdentityKind.MEMBER:
            candidates.append(template.payer.id)
        candidates.extend(
            p.participant.id for p in template.participants
            if p.participant.kind == IdentityKind.MEMBER
        )
        for user_id in candidates:
            if await self._households.is_user_member(template.household_id, user_id):
                return user_id
        return None
