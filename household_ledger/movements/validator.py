"""
Two-Stage Movement Validation

STAGE 1 - SCHEMA VALIDATION (pydantic, at input construction):
- Per-type required fields (discriminated union on `type`)
- Forbidden fields (category on LOAN, participants on HOUSEHOLD, ...)
- Format and decimal places

STAGE 2 - SEMANTIC VALIDATION (this module, against storage):
- Positive amount
- Identities resolve inside the household
- Category exists and is active
- Payment method / account eligibility for the chosen payer
- Payer and counterparty are different people
- Split weights (via the SplitCalculator)

Validation never writes. Its output, a ResolvedMovement, carries the
resolved identities and the participant allocation, ready to persist.
"""

from dataclasses import dataclass, field
from typing import Optional
from uuid import UUID

from household_ledger.authorization import AuthorizationGuard
from household_ledger.errors import (
    InvalidAmountError,
    NotFoundError,
    SamePartyInvalidError,
    ValidationError,
)
from household_ledger.identity import IdentityResolver
from household_ledger.models.household import Category
from household_ledger.models.movement import (
    HouseholdMovementInput,
    Identity,
    IncomeMovementInput,
    LoanMovementInput,
    Movement,
    MovementInput,
    MovementParticipant,
    MovementType,
    ParticipantRef,
    SplitMovementInput,
)
from household_ledger.services.storage import CategoryRepository
from household_ledger.splits import SplitCalculator


@dataclass
class ResolvedMovement:
    """A semantically valid movement input with its identities resolved."""

    data: MovementInput
    payer: Optional[Identity] = None
    counterparty: Optional[Identity] = None
    receiver: Optional[Identity] = None
    participants: list[MovementParticipant] = field(default_factory=list)

    def to_movement(self, household_id: UUID, created_by: UUID) -> Movement:
        data = self.data
        movement = Movement(
            household_id=household_id,
            type=data.type,
            description=data.description,
            amount=data.amount,
            movement_date=data.movement_date,
            template_id=data.template_id,
            created_by=created_by,
        )
        if self.payer is not None:
            movement.payer = self.payer.ref
            movement.payer_name = self.payer.display_name

        if isinstance(data, (HouseholdMovementInput, SplitMovementInput)):
            movement.category_id = data.category_id
            movement.payment_method_id = data.payment_method_id
        if isinstance(data, SplitMovementInput):
            movement.split_mode = data.split_mode
            movement.participants = list(self.participants)
        elif isinstance(data, LoanMovementInput):
            movement.counterparty = self.counterparty.ref
            movement.counterparty_name = self.counterparty.display_name
            movement.loan_direction = data.direction
            movement.payment_method_id = data.payment_method_id
            movement.receiver_account_id = data.receiver_account_id
        elif isinstance(data, IncomeMovementInput):
            movement.member_id = data.member_id
            movement.account_id = data.account_id
            movement.income_type = data.income_type
        return movement


class MovementValidator:
    """
    Semantic validation, dispatched by movement type.

    Raises the first LedgerError found; nothing is written.
    """

    def __init__(
        self,
        resolver: IdentityResolver,
        guard: AuthorizationGuard,
        categories: CategoryRepository,
        calculator: SplitCalculator,
    ):
        self._resolver = resolver
        self._guard = guard
        self._categories = categories
        self._calculator = calculator

    async def validate(self, household_id: UUID, data: MovementInput) -> ResolvedMovement:
        if data.amount <= 0:
            raise InvalidAmountError(value=data.amount)

        if data.type == MovementType.HOUSEHOLD:
            return await self._validate_household(household_id, data)
        if data.type == MovementType.SPLIT:
            return await self._validate_split(household_id, data)
        if data.type == MovementType.LOAN:
            return await self._validate_loan(household_id, data)
        if data.type == MovementType.INCOME:
            return await self._validate_income(household_id, data)
        raise ValidationError(f"unsupported movement type: {data.type}", field="type")

    async def check_category(self, household_id: UUID, category_id: UUID) -> Category:
        category = await self._categories.get_by_id(category_id)
        if category is None or category.household_id != household_id:
            raise NotFoundError(field="category_id", value=category_id)
        if not category.is_active:
            raise ValidationError("category is inactive", field="category_id", value=category_id)
        return category

    async def _validate_household(
        self,
        household_id: UUID,
        data: HouseholdMovementInput,
    ) -> ResolvedMovement:
        payer = await self._resolver.resolve(data.payer, household_id, field="payer")
        if not payer.is_member:
            raise ValidationError(
                "household expenses must be paid by a household member",
                field="payer",
                value=str(data.payer),
            )
        await self.check_category(household_id, data.category_id)
        await self._guard.check_payment_method(data.payment_method_id, payer, household_id)
        return ResolvedMovement(data=data, payer=payer)

    async def _validate_split(
        self,
        household_id: UUID,
        data: SplitMovementInput,
    ) -> ResolvedMovement:
        payer = await self._resolver.resolve(data.payer, household_id, field="payer")
        await self.check_category(household_id, data.category_id)
        await self._check_payer_payment_method(household_id, payer, data.payment_method_id)

        allocations = self._calculator.allocate(data.amount, data.participants, data.split_mode)
        identities = await self._resolver.resolve_many(
            [a.participant for a in allocations], household_id
        )
        participants = [
            MovementParticipant(
                participant=identity.ref,
                display_name=identity.display_name,
                percentage=allocation.percentage,
                amount=allocation.amount,
            )
            for allocation, identity in zip(allocations, identities)
        ]
        return ResolvedMovement(data=data, payer=payer, participants=participants)

    async def _validate_loan(
        self,
        household_id: UUID,
        data: LoanMovementInput,
    ) -> ResolvedMovement:
        payer = await self._resolver.resolve(data.payer, household_id, field="payer")
        counterparty = await self._resolver.resolve(
            data.counterparty, household_id, field="counterparty"
        )
        if payer.same_party(counterparty):
            raise SamePartyInvalidError()

        if data.payment_method_id is not None:
            await self._check_payer_payment_method(household_id, payer, data.payment_method_id)

        if counterparty.is_member:
            if data.receiver_account_id is None:
                raise ValidationError(
                    "receiver account is required when the counterparty is a member",
                    field="receiver_account_id",
                )
            await self._guard.check_account(
                data.receiver_account_id,
                counterparty,
                household_id,
                field="receiver_account_id",
                must_receive_income=True,
            )
        elif data.receiver_account_id is not None:
            raise ValidationError(
                "contacts have no accounts; omit the receiver account",
                field="receiver_account_id",
                value=data.receiver_account_id,
            )

        return ResolvedMovement(data=data, payer=payer, counterparty=counterparty)

    async def _validate_income(
        self,
        household_id: UUID,
        data: IncomeMovementInput,
    ) -> ResolvedMovement:
        receiver = await self._resolver.resolve(
            ParticipantRef.member(data.member_id), household_id, field="member_id"
        )
        await self._guard.check_account(
            data.account_id,
            receiver,
            household_id,
            field="account_id",
            must_receive_income=True,
        )
        return ResolvedMovement(data=data, receiver=receiver)

    async def _check_payer_payment_method(
        self,
        household_id: UUID,
        payer: Identity,
        payment_method_id: Optional[UUID],
    ) -> None:
        """Members must name a payment method; contacts must not."""
        if payer.is_member:
            if payment_method_id is None:
                raise ValidationError(
                    "payment method is required when the payer is a member",
                    field="payment_method_id",
                )
            await self._guard.check_payment_method(payment_method_id, payer, household_id)
        elif payment_method_id is not None:
            raise ValidationError(
                "contacts have no payment methods; omit the payment method",
                field="payment_method_id",
                value=payment_method_id,
            )
