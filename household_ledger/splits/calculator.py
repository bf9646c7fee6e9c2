"""
Split Calculator

Turns a movement total and participant weights into a stored allocation,
and a stored allocation back into currency shares at settlement time.

Three modes:
- EQUITABLE: no weights, every participant gets 1/n
- PERCENTAGE: one fraction per participant, summing to 1 within tolerance
- AMOUNT: one exact amount per participant, summing to the total exactly

DESIGN DECISION: Only percentages are stored for EQUITABLE and PERCENTAGE
splits. Currency shares are re-derived as round(total * percentage, 2)
whenever they are needed, so editing the total never compounds rounding
error. Exact amounts are stored verbatim next to their derived percentage
and always win over it.

ROUNDING RULE: when shares are derived from percentages, every participant
but the last gets round(total * percentage, 2) half-up and the last one
absorbs the remainder. Settlement shares therefore always sum to the total.
"""

from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal
from typing import Optional

from household_ledger.errors import (
    AmountSumInvalidError,
    InvalidAmountError,
    PercentageSumInvalidError,
    ValidationError,
)
from household_ledger.models.common import to_money
from household_ledger.models.movement import (
    MovementParticipant,
    ParticipantRef,
    ParticipantShareInput,
    SplitMode,
)

ONE = Decimal("1")


@dataclass(frozen=True)
class Allocation:
    participant: ParticipantRef
    percentage: Decimal
    amount: Optional[Decimal] = None


class SplitCalculator:

    def __init__(
        self,
        tolerance: Decimal = Decimal("0.0001"),
        percentage_places: int = 8,
    ):
        self._tolerance = tolerance
        self._quantum = Decimal(1).scaleb(-percentage_places)

    def _pct(self, value: Decimal) -> Decimal:
        return value.quantize(self._quantum, rounding=ROUND_HALF_UP)

    def allocate(
        self,
        total: Decimal,
        shares: list[ParticipantShareInput],
        mode: SplitMode,
    ) -> list[Allocation]:
        """
        Validate weights against `total` and produce the stored allocation.

        Raises:
            InvalidAmountError: total or a weight is not positive
            ValidationError: no participants, duplicates, or weights that
                             don't match the mode
            PercentageSumInvalidError: percentages off 100% by more than
                                       the tolerance
            AmountSumInvalidError: amounts not summing to total exactly
        """
        if total <= 0:
            raise InvalidAmountError(value=total)
        if not shares:
            raise ValidationError("at least one participant is required", field="participants")

        seen = set()
        for share in shares:
            if share.participant in seen:
                raise ValidationError(
                    "participant listed more than once",
                    field="participants",
                    value=str(share.participant),
                )
            seen.add(share.participant)

        if mode == SplitMode.EQUITABLE:
            return self._allocate_equitable(shares)
        if mode == SplitMode.PERCENTAGE:
            return self._allocate_percentage(shares)
        return self._allocate_amount(total, shares)

    def _allocate_equitable(self, shares: list[ParticipantShareInput]) -> list[Allocation]:
        if any(s.percentage is not None or s.amount is not None for s in shares):
            raise ValidationError(
                "equitable splits take no percentages or amounts",
                field="participants",
            )
        percentage = self._pct(ONE / len(shares))
        return [Allocation(participant=s.participant, percentage=percentage) for s in shares]

    def _allocate_percentage(self, shares: list[ParticipantShareInput]) -> list[Allocation]:
        for share in shares:
            if share.percentage is None or share.amount is not None:
                raise ValidationError(
                    "percentage splits need exactly one percentage per participant",
                    field="participants",
                    value=str(share.participant),
                )
            if share.percentage <= 0:
                raise ValidationError(
                    "participant percentage must be greater than zero",
                    field="participants",
                    value=str(share.participant),
                )

        actual = sum((s.percentage for s in shares), Decimal(0))
        if abs(actual - ONE) > self._tolerance:
            raise PercentageSumInvalidError(actual)

        return [
            Allocation(participant=s.participant, percentage=self._pct(s.percentage))
            for s in shares
        ]

    def _allocate_amount(
        self,
        total: Decimal,
        shares: list[ParticipantShareInput],
    ) -> list[Allocation]:
        for share in shares:
            if share.amount is None or share.percentage is not None:
                raise ValidationError(
                    "amount splits need exactly one amount per participant",
                    field="participants",
                    value=str(share.participant),
                )
            if share.amount <= 0:
                raise InvalidAmountError(value=share.amount, field="participants")

        actual = sum((s.amount for s in shares), Decimal("0.00"))
        if actual != total:
            raise AmountSumInvalidError(actual=actual, expected=total)

        return [
            Allocation(
                participant=s.participant,
                percentage=self._pct(s.amount / total),
                amount=s.amount,
            )
            for s in shares
        ]

    def settle(
        self,
        total: Decimal,
        participants: list[MovementParticipant],
    ) -> list[Decimal]:
        """
        Currency share of each participant, in order.

        Stored exact amounts are returned verbatim. Otherwise shares are
        derived from percentages and the last participant absorbs the
        rounding remainder.
        """
        if not participants:
            return []
        if all(p.amount is not None for p in participants):
            return [p.amount for p in participants]

        shares = [
            p.amount if p.amount is not None else to_money(total * p.percentage)
            for p in participants[:-1]
        ]
        shares.append(to_money(total) - sum(shares, Decimal("0.00")))
        return shares

    def share_of(
        self,
        total: Decimal,
        participants: list[MovementParticipant],
        ref: ParticipantRef,
    ) -> Decimal:
        """One participant's share; zero if they are not a participant."""
        for participant, share in zip(participants, self.settle(total, participants)):
            if participant.participant == ref:
                return share
        return Decimal("0.00")
