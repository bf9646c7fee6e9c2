"""
Household Membership Service

The only household mutations the ledger owns: removing a member and
changing a member's role. Both protect the at-least-one-owner invariant.
"""

from uuid import UUID

import structlog

from household_ledger.audit import AuditLogger
from household_ledger.authorization import Action, AuthorizationGuard
from household_ledger.errors import LedgerError, NotAuthorizedError, NotFoundError
from household_ledger.models.audit import AuditEventBuilder, AuditEventType
from household_ledger.models.household import HouseholdMember, HouseholdRole
from household_ledger.services.storage import HouseholdRepository, TransactionManager

logger = structlog.get_logger(__name__)


class HouseholdMembershipService:

    def __init__(
        self,
        households: HouseholdRepository,
        guard: AuthorizationGuard,
        transactions: TransactionManager,
        audit_logger: AuditLogger,
    ):
        self._households = households
        self._guard = guard
        self._tx = transactions
        self._audit = audit_logger

    async def remove_member(
        self,
        actor_id: UUID,
        household_id: UUID,
        member_user_id: UUID,
    ) -> None:
        """
        Remove a member from the household.

        Owners may remove anyone; members may only remove themselves.
        The last owner can never be removed.
        """
        try:
            async with self._tx.transaction():
                actor = await self._guard.require_member(actor_id, household_id)
                target = await self._households.get_member(household_id, member_user_id)
                if target is None:
                    raise NotFoundError(field="user_id", value=member_user_id)
                if actor_id != member_user_id and not actor.is_owner:
                    raise NotAuthorizedError(field="user_id", value=member_user_id)

                await self._guard.ensure_not_last_owner(target)
                await self._households.remove_member(household_id, member_user_id)
        except LedgerError as e:
            self._audit.log_async(AuditEventBuilder.operation_failed(
                event_type=AuditEventType.MEMBER_REMOVED,
                entity_type="member",
                actor_id=actor_id,
                household_id=household_id,
                entity_id=member_user_id,
                error_code=e.kind,
                error_message=e.message,
            ))
            raise

        logger.info(
            "member_removed",
            household_id=str(household_id),
            user_id=str(member_user_id),
        )
        self._audit.log_async(AuditEventBuilder.member_removed(
            household_id=household_id,
            actor_id=actor_id,
            member_user_id=member_user_id,
            role=target.role.value,
        ))

    async def update_member_role(
        self,
        actor_id: UUID,
        household_id: UUID,
        member_user_id: UUID,
        role: HouseholdRole,
    ) -> HouseholdMember:
        """Owner-only. Demoting the last owner is rejected."""
        try:
            async with self._tx.transaction():
                await self._guard.authorize(actor_id, household_id, Action.MANAGE_MEMBERS)
                target = await self._households.get_member(household_id, member_user_id)
                if target is None:
                    raise NotFoundError(field="user_id", value=member_user_id)
                if target.role == role:
                    return target

                if role != HouseholdRole.OWNER:
                    await self._guard.ensure_not_last_owner(target)
                updated = await self._households.update_member_role(
                    household_id, member_user_id, role
                )
        except LedgerError as e:
            self._audit.log_async(AuditEventBuilder.operation_failed(
                event_type=AuditEventType.MEMBER_ROLE_UPDATED,
                entity_type="member",
                actor_id=actor_id,
                household_id=household_id,
                entity_id=member_user_id,
                error_code=e.kind,
                error_message=e.message,
            ))
            raise

        self._audit.log_async(AuditEventBuilder.member_role_updated(
            household_id=household_id,
            actor_id=actor_id,
            member_user_id=member_user_id,
            old_role=target.role.value,
            new_role=role.value,
        ))
        return updated
