"""
Debt Consolidation Query

DESIGN DECISION: Debts are DERIVED, never stored.
Balances are recomputed from the movements on every call, so editing or
deleting a movement can never leave a stale debt behind.

Rules:
- SPLIT: every participant other than the payer owes the payer their
  settlement share
- LOAN / LEND: the counterparty owes the payer the full amount
- LOAN / REPAY: the payer paid the counterparty back, reducing what the
  payer owes them

A contact linked to a registered member counts as that member. Opposite
balances between the same two parties are netted into one.
"""

from collections import defaultdict
from decimal import Decimal
from typing import Optional
from uuid import UUID

import structlog

from household_ledger.authorization import Action, AuthorizationGuard
from household_ledger.errors import NotFoundError
from household_ledger.identity import IdentityResolver
from household_ledger.models.common import parse_month
from household_ledger.models.debt import (
    DebtBalance,
    DebtConsolidation,
    DebtMovementDetail,
    DebtSummary,
)
from household_ledger.models.movement import (
    LoanDirection,
    Movement,
    MovementFilter,
    MovementType,
    ParticipantRef,
)
from household_ledger.services.storage import MovementRepository
from household_ledger.splits import SplitCalculator

logger = structlog.get_logger(__name__)

# Below one cent a pair counts as settled
SETTLED_TOLERANCE = Decimal("0.01")

Pair = tuple[ParticipantRef, ParticipantRef]


class DebtConsolidator:
    """
    Nets the household's SPLIT and LOAN movements into debtor -> creditor
    balances.
    """

    def __init__(
        self,
        movements: MovementRepository,
        resolver: IdentityResolver,
        guard: AuthorizationGuard,
        calculator: SplitCalculator,
        currency: str = "COP",
    ):
        self._movements = movements
        self._resolver = resolver
        self._guard = guard
        self._calculator = calculator
        self._currency = currency

    async def consolidate(
        self,
        actor_id: UUID,
        household_id: UUID,
        month=None,
    ) -> DebtConsolidation:
        await self._guard.authorize(actor_id, household_id, Action.READ)
        month = parse_month(month) if month is not None else None

        movements = await self._movements.list_by_household(
            household_id, MovementFilter(month=month)
        )

        owed: dict[Pair, Decimal] = defaultdict(lambda: Decimal("0.00"))
        details: dict[Pair, list[DebtMovementDetail]] = defaultdict(list)
        names: dict[ParticipantRef, str] = {}
        parties: dict[ParticipantRef, ParticipantRef] = {}

        for movement in movements:
            for debtor, creditor, amount in self._debts_of(movement):
                debtor = await self._party(debtor, household_id, parties, names)
                creditor = await self._party(creditor, household_id, parties, names)
                if debtor == creditor:
                    continue
                owed[(debtor, creditor)] += amount
                details[(debtor, creditor)].append(DebtMovementDetail(
                    movement_id=movement.id,
                    description=movement.description,
                    amount=amount,
                    movement_date=movement.movement_date,
                    type=movement.type,
                ))

        result = DebtConsolidation(household_id=household_id, month=month)
        seen: set[frozenset] = set()
        for debtor, creditor in list(owed):
            key = frozenset((debtor, creditor))
            if key in seen:
                continue
            seen.add(key)

            net = owed[(debtor, creditor)] - owed.get((creditor, debtor), Decimal("0.00"))
            if abs(net) <= SETTLED_TOLERANCE:
                continue
            if net < 0:
                debtor, creditor, net = creditor, debtor, -net

            result.balances.append(DebtBalance(
                debtor=debtor,
                debtor_name=names.get(debtor, ""),
                creditor=creditor,
                creditor_name=names.get(creditor, ""),
                amount=net,
                currency=self._currency,
                movements=details[(debtor, creditor)] + details[(creditor, debtor)],
            ))

        result.balances.sort(key=lambda b: b.amount, reverse=True)
        result.summary = self._summarize(result.balances)

        logger.info(
            "debts_consolidated",
            household_id=str(household_id),
            movements=len(movements),
            balances=len(result.balances),
        )
        return result

    def _debts_of(self, movement: Movement) -> list[tuple[ParticipantRef, ParticipantRef, Decimal]]:
        """(debtor, creditor, amount) triples contributed by one movement."""
        if movement.type == MovementType.SPLIT and movement.payer is not None:
            shares = self._calculator.settle(movement.amount, movement.participants)
            return [
                (p.participant, movement.payer, share)
                for p, share in zip(movement.participants, shares)
                if p.participant != movement.payer and share > 0
            ]

        if movement.type == MovementType.LOAN and movement.payer and movement.counterparty:
            if movement.loan_direction == LoanDirection.LEND:
                return [(movement.counterparty, movement.payer, movement.amount)]
            return [(movement.payer, movement.counterparty, -movement.amount)]

        return []

    async def _party(
        self,
        ref: ParticipantRef,
        household_id: UUID,
        parties: dict[ParticipantRef, ParticipantRef],
        names: dict[ParticipantRef, str],
    ) -> ParticipantRef:
        """Collapse a linked contact onto its member."""
        if ref in parties:
            return parties[ref]

        party = ref
        try:
            identity = await self._resolver.resolve(ref, household_id, allow_inactive=True)
        except NotFoundError:
            # Removed member or deleted contact: keep the raw reference
            names.setdefault(ref, "")
        else:
            if not identity.is_member and identity.linked_user_id is not None:
                party = ParticipantRef.member(identity.linked_user_id)
                if party not in names:
                    try:
                        names[party] = await self._resolver.display_name_of(party, household_id)
                    except NotFoundError:
                        names[party] = identity.display_name
            else:
                names[party] = identity.display_name

        parties[ref] = party
        return party

    @staticmethod
    def _summarize(balances: list[DebtBalance]) -> DebtSummary:
        summary = DebtSummary()
        for balance in balances:
            if not balance.debtor.is_member and balance.creditor.is_member:
                summary.contacts_owe_members += balance.amount
            elif balance.debtor.is_member and not balance.creditor.is_member:
                summary.members_owe_contacts += balance.amount
        return summary
