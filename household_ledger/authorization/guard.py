"""
Authorization Guard

Checks run before any mutation:
- the actor is a member of the household being touched
- only the creator of a resource, or a household owner, may change it
- payment methods and accounts referenced by a movement belong to the
  right person (or, for payment methods, are shared with the household)
- a household never loses its last owner

IMPORTANT: Resource checks are re-run here even when a client already
filtered the choices it offered. Client-side filtering is not a security
boundary.
"""

from enum import Enum
from typing import Any, Optional
from uuid import UUID

from household_ledger.errors import (
    InvalidStateError,
    NotAuthorizedError,
    NotFoundError,
    ValidationError,
)
from household_ledger.models.household import Account, HouseholdMember, PaymentMethod
from household_ledger.models.movement import Identity
from household_ledger.services.storage import (
    AccountRepository,
    HouseholdRepository,
    PaymentMethodRepository,
)


class Action(str, Enum):
    READ = "read"
    CREATE = "create"
    UPDATE = "update"
    DELETE = "delete"
    MANAGE_MEMBERS = "manage_members"


class AuthorizationGuard:

    def __init__(
        self,
        households: HouseholdRepository,
        accounts: AccountRepository,
        payment_methods: PaymentMethodRepository,
    ):
        self._households = households
        self._accounts = accounts
        self._payment_methods = payment_methods

    async def require_member(self, actor_id: UUID, household_id: UUID) -> HouseholdMember:
        member = await self._households.get_member(household_id, actor_id)
        if member is None:
            raise NotAuthorizedError(field="household_id", value=household_id)
        return member

    async def require_owner(self, actor_id: UUID, household_id: UUID) -> HouseholdMember:
        member = await self.require_member(actor_id, household_id)
        if not member.is_owner:
            raise NotAuthorizedError(field="role", value=member.role.value)
        return member

    async def authorize(
        self,
        actor_id: UUID,
        household_id: UUID,
        action: Action,
        resource: Optional[Any] = None,
    ) -> HouseholdMember:
        """
        Authorize `action` by `actor_id` on `household_id`.

        For UPDATE and DELETE on a resource carrying `created_by` (a
        movement, template or payment), the actor must be its creator or
        a household owner. MANAGE_MEMBERS requires the owner role.

        Returns the actor's membership.

        Raises:
            NotAuthorizedError: On any failed check
        """
        member = await self.require_member(actor_id, household_id)

        if action == Action.MANAGE_MEMBERS and not member.is_owner:
            raise NotAuthorizedError(field="role", value=member.role.value)

        if action in (Action.UPDATE, Action.DELETE) and resource is not None:
            resource_household = getattr(resource, "household_id", household_id)
            if resource_household != household_id:
                raise NotAuthorizedError(field="id", value=getattr(resource, "id", None))
            created_by = getattr(resource, "created_by", None)
            if created_by != actor_id and not member.is_owner:
                raise NotAuthorizedError(field="id", value=getattr(resource, "id", None))

        return member

    async def check_payment_method(
        self,
        payment_method_id: UUID,
        payer: Identity,
        household_id: UUID,
        field: str = "payment_method_id",
    ) -> PaymentMethod:
        """
        The payment method must be in the household, active, and owned by
        the payer or shared with the household.
        """
        method = await self._payment_methods.get_by_id(payment_method_id)
        if method is None or method.household_id != household_id:
            raise NotFoundError(field=field, value=payment_method_id)
        if not method.is_active:
            raise ValidationError("payment method is inactive", field=field, value=payment_method_id)
        if method.is_shared_with_household:
            return method
        if payer.user_id is None or method.owner_id != payer.user_id:
            raise NotAuthorizedError(field=field, value=payment_method_id)
        return method

    async def check_account(
        self,
        account_id: UUID,
        owner: Identity,
        household_id: UUID,
        field: str = "account_id",
        must_receive_income: bool = False,
    ) -> Account:
        """
        The account must be in the household and belong to `owner`.

        With must_receive_income, only savings and cash accounts pass.
        """
        account = await self._accounts.get_by_id(account_id)
        if account is None or account.household_id != household_id:
            raise NotFoundError(field=field, value=account_id)
        if owner.user_id is None or account.owner_id != owner.user_id:
            raise NotAuthorizedError(field=field, value=account_id)
        if must_receive_income and not account.type.can_receive_income:
            raise ValidationError(
                f"{account.type.value} accounts cannot receive money; use savings or cash",
                field=field,
                value=account_id,
            )
        return account

    async def ensure_not_last_owner(self, member: HouseholdMember) -> None:
        """Reject removing or demoting the household's only owner."""
        if not member.is_owner:
            return
        owners = await self._households.count_owners(member.household_id)
        if owners <= 1:
            raise InvalidStateError(
                "household must keep at least one owner",
                field="user_id",
                value=member.user_id,
            )
