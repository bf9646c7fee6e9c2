"""
Movement Service

The orchestrator of the ledger. One create/update/delete runs:

    authorize -> resolve identities -> validate by type -> allocate split
    -> persist movement + participants -> raise budget floor

as a single atomic unit. A failure anywhere rolls the whole unit back.
Audit events and the optional spreadsheet mirror run after commit and
never fail the operation.

A movement's `type` is immutable: editing a HOUSEHOLD expense into a
SPLIT means deleting and recreating it.
"""

from datetime import date
from decimal import Decimal
from typing import Optional, Protocol
from uuid import UUID

import structlog

from household_ledger.audit import AuditLogger
from household_ledger.authorization import Action, AuthorizationGuard
from household_ledger.errors import LedgerError, NotFoundError, ValidationError
from household_ledger.identity import IdentityResolver
from household_ledger.models.audit import AuditEventBuilder, AuditEventType
from household_ledger.models.common import utc_now
from household_ledger.models.movement import (
    IdentityKind,
    Movement,
    MovementFilter,
    MovementInput,
    MovementListResult,
    MovementParticipant,
    MovementType,
    ParticipantRef,
)
from household_ledger.movements.validator import MovementValidator
from household_ledger.services.storage import (
    MovementMirrorInterface,
    MovementRepository,
    TransactionManager,
)
from household_ledger.splits import SplitCalculator

logger = structlog.get_logger(__name__)


class BudgetFloorKeeper(Protocol):
    """What the movement service needs from the budget engine."""

    async def recompute_floor(
        self,
        household_id: UUID,
        category_id: UUID,
        month: date,
        actor_id: Optional[UUID] = None,
    ):
        ...

    def record_floor_change(self, change, actor_id: Optional[UUID]) -> None:
        ...


def movement_snapshot(movement: Movement) -> dict:
    """Audit-friendly view of the mutable fields."""
    return movement.model_dump(
        mode="json",
        include={
            "type",
            "description",
            "amount",
            "movement_date",
            "category_id",
            "payer",
            "counterparty",
            "loan_direction",
            "payment_method_id",
            "receiver_account_id",
            "account_id",
            "income_type",
            "split_mode",
            "participants",
        },
    )


class MovementService:

    def __init__(
        self,
        movements: MovementRepository,
        validator: MovementValidator,
        guard: AuthorizationGuard,
        resolver: IdentityResolver,
        calculator: SplitCalculator,
        transactions: TransactionManager,
        audit_logger: AuditLogger,
        budget_floor: Optional[BudgetFloorKeeper] = None,
        mirror: Optional[MovementMirrorInterface] = None,
    ):
        self._movements = movements
        self._validator = validator
        self._guard = guard
        self._resolver = resolver
        self._calculator = calculator
        self._tx = transactions
        self._audit = audit_logger
        self._budget_floor = budget_floor
        self._mirror = mirror

    # ===== Writes =====

    async def create(
        self,
        actor_id: UUID,
        household_id: UUID,
        data: MovementInput,
    ) -> Movement:
        """
        Create a movement.

        Raises:
            ValidationError (and subclasses): field-level failures
            NotAuthorizedError: actor not a member, or ineligible payment
                                method / account
            NotFoundError: unresolvable identity or reference
        """
        try:
            async with self._tx.transaction():
                movement, floor_changes = await self.create_in_unit(actor_id, household_id, data)
        except LedgerError as e:
            self._audit_failure(AuditEventType.MOVEMENT_CREATED, actor_id, household_id, e)
            raise

        await self.publish_created(movement, floor_changes, actor_id)
        return movement

    async def create_in_unit(
        self,
        actor_id: UUID,
        household_id: UUID,
        data: MovementInput,
    ) -> tuple[Movement, list]:
        """
        Create a movement inside the caller's open unit.

        Returns the movement and the budget floor changes. Nothing is
        audited or mirrored: the caller runs publish_created once its
        unit has committed.
        """
        await self._guard.authorize(actor_id, household_id, Action.CREATE)
        resolved = await self._validator.validate(household_id, data)
        movement = await self._movements.create(
            resolved.to_movement(household_id, created_by=actor_id)
        )
        floor_changes = await self._recompute_floors(movement, actor_id)
        return movement, floor_changes

    async def publish_created(
        self,
        movement: Movement,
        floor_changes: list,
        actor_id: UUID,
    ) -> None:
        """After-commit effects of a create: log, floor audits, audit event, mirror."""
        household_id = movement.household_id
        logger.info(
            "movement_created",
            movement_id=str(movement.id),
            household_id=str(household_id),
            movement_type=movement.type.value,
            amount=str(movement.amount),
        )
        self._record_floor_changes(floor_changes, actor_id)
        self._audit.log_async(AuditEventBuilder.movement_created(
            movement_id=movement.id,
            household_id=household_id,
            actor_id=actor_id,
            movement_type=movement.type.value,
            amount=str(movement.amount),
            new_values=movement_snapshot(movement),
        ))
        await self._mirror_movement(movement)

    async def update(
        self,
        actor_id: UUID,
        movement_id: UUID,
        data: MovementInput,
    ) -> Movement:
        """
        Replace a movement's values with `data` (same type).

        Only the creator or a household owner may update. Creator,
        creation time and originating template are preserved.
        """
        household_id = None
        try:
            async with self._tx.transaction():
                existing = await self._movements.get_by_id(movement_id)
                if existing is None:
                    raise NotFoundError(field="movement_id", value=movement_id)
                household_id = existing.household_id
                await self._guard.authorize(actor_id, household_id, Action.UPDATE, existing)

                if data.type != existing.type:
                    raise ValidationError(
                        "movement type cannot change after creation",
                        field="type",
                        value=data.type.value,
                    )

                resolved = await self._validator.validate(household_id, data)
                replacement = resolved.to_movement(household_id, created_by=existing.created_by)
                replacement.id = existing.id
                replacement.created_at = existing.created_at
                replacement.updated_at = utc_now()
                if replacement.template_id is None:
                    replacement.template_id = existing.template_id

                updated = await self._movements.update(replacement)
                floor_changes = await self._recompute_floors(updated, actor_id)
                if (existing.category_id, existing.month) != (updated.category_id, updated.month):
                    floor_changes += await self._recompute_floors(existing, actor_id)
        except LedgerError as e:
            self._audit_failure(
                AuditEventType.MOVEMENT_UPDATED, actor_id, household_id, e, movement_id
            )
            raise

        logger.info("movement_updated", movement_id=str(movement_id))
        self._record_floor_changes(floor_changes, actor_id)
        self._audit.log_async(AuditEventBuilder.movement_updated(
            movement_id=movement_id,
            household_id=household_id,
            actor_id=actor_id,
            old_values=movement_snapshot(existing),
            new_values=movement_snapshot(updated),
        ))
        return updated

    async def delete(self, actor_id: UUID, movement_id: UUID) -> None:
        """
        Delete a movement and its participants (creator or owner only).

        Budgets are not lowered; spent totals and balances are derived
        from the remaining movements.
        """
        household_id = None
        try:
            async with self._tx.transaction():
                existing = await self._movements.get_by_id(movement_id)
                if existing is None:
                    raise NotFoundError(field="movement_id", value=movement_id)
                household_id = existing.household_id
                await self._guard.authorize(actor_id, household_id, Action.DELETE, existing)
                await self._movements.delete(movement_id)
        except LedgerError as e:
            self._audit_failure(
                AuditEventType.MOVEMENT_DELETED, actor_id, household_id, e, movement_id
            )
            raise

        logger.info("movement_deleted", movement_id=str(movement_id))
        self._audit.log_async(AuditEventBuilder.movement_deleted(
            movement_id=movement_id,
            household_id=household_id,
            actor_id=actor_id,
            old_values=movement_snapshot(existing),
        ))

    # ===== Reads =====

    async def get(self, actor_id: UUID, movement_id: UUID) -> Movement:
        movement = await self._movements.get_by_id(movement_id)
        if movement is None:
            raise NotFoundError(field="movement_id", value=movement_id)
        await self._guard.authorize(actor_id, movement.household_id, Action.READ)
        if not await self.is_visible_to(actor_id, movement):
            raise NotFoundError(field="movement_id", value=movement_id)
        return movement

    async def list_movements(
        self,
        actor_id: UUID,
        household_id: UUID,
        movement_filter: Optional[MovementFilter] = None,
    ) -> MovementListResult:
        """
        Movements of a household as seen by `actor_id`, plus totals.

        SPLIT movements are only included when the actor is the payer or
        a participant (directly or through a contact linked to them).
        The filter's limit caps the items after visibility is applied;
        count and totals cover every visible match.
        """
        movement_filter = movement_filter or MovementFilter()
        await self._guard.authorize(actor_id, household_id, Action.READ)
        movements = await self._movements.list_by_household(household_id, movement_filter)

        contact_users: dict[UUID, Optional[UUID]] = {}
        result = MovementListResult()
        for movement in movements:
            if not await self.is_visible_to(actor_id, movement, contact_users):
                continue
            result.count += 1
            if len(result.items) < movement_filter.limit:
                result.items.append(movement)
            result.total += movement.amount
            result.totals_by_type[movement.type] = (
                result.totals_by_type.get(movement.type, Decimal("0.00")) + movement.amount
            )
            if movement.category_id is not None:
                result.totals_by_category[movement.category_id] = (
                    result.totals_by_category.get(movement.category_id, Decimal("0.00"))
                    + movement.amount
                )
        return result

    async def is_visible_to(
        self,
        actor_id: UUID,
        movement: Movement,
        contact_users: Optional[dict[UUID, Optional[UUID]]] = None,
    ) -> bool:
        """Non-SPLIT movements are visible household-wide; SPLITs need a stake."""
        if movement.type != MovementType.SPLIT:
            return True
        cache = contact_users if contact_users is not None else {}
        refs = [movement.payer] + [p.participant for p in movement.participants]
        for ref in refs:
            if ref is not None and await self._is_actor(actor_id, ref, movement.household_id, cache):
                return True
        return False

    async def _is_actor(
        self,
        actor_id: UUID,
        ref: ParticipantRef,
        household_id: UUID,
        cache: dict[UUID, Optional[UUID]],
    ) -> bool:
        if ref.kind == IdentityKind.MEMBER:
            return ref.id == actor_id
        if ref.id not in cache:
            try:
                identity = await self._resolver.resolve(ref, household_id, allow_inactive=True)
                cache[ref.id] = identity.linked_user_id
            except NotFoundError:
                cache[ref.id] = None
        return cache[ref.id] == actor_id

    def settlement_amounts(self, movement: Movement) -> list[tuple[MovementParticipant, Decimal]]:
        """Each participant's currency share; shares sum to the movement total."""
        shares = self._calculator.settle(movement.amount, movement.participants)
        return list(zip(movement.participants, shares))

    # ===== Side effects =====

    async def _recompute_floors(self, movement: Movement, actor_id: UUID) -> list:
        if self._budget_floor is None or movement.category_id is None:
            return []
        change = await self._budget_floor.recompute_floor(
            movement.household_id, movement.category_id, movement.month, actor_id
        )
        return [change] if change is not None else []

    def _record_floor_changes(self, changes: list, actor_id: UUID) -> None:
        for change in changes:
            self._budget_floor.record_floor_change(change, actor_id)

    def _audit_failure(
        self,
        event_type: AuditEventType,
        actor_id: UUID,
        household_id: Optional[UUID],
        error: LedgerError,
        movement_id: Optional[UUID] = None,
    ) -> None:
        logger.warning(
            "movement_operation_failed",
            operation=event_type.value,
            error_kind=error.kind,
            field=error.field,
        )
        self._audit.log_async(AuditEventBuilder.operation_failed(
            event_type=event_type,
            entity_type="movement",
            actor_id=actor_id,
            household_id=household_id,
            entity_id=movement_id,
            error_code=error.kind,
            error_message=error.message,
        ))

    async def _mirror_movement(self, movement: Movement) -> None:
        if self._mirror is None:
            return
        try:
            await self._mirror.append_movement(movement)
        except Exception as e:
            logger.error("movement_mirror_failed", movement_id=str(movement.id), error=str(e))
            self._audit.log_external_service_error("movement_mirror", str(e))
