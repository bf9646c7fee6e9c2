"""
Debt consolidation models: who owes whom inside a household.
"""

from datetime import date
from decimal import Decimal
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, Field

from household_ledger.models.movement import MovementType, ParticipantRef


class DebtMovementDetail(BaseModel):
    """One movement's contribution to a balance, signed from the debtor's side."""

    movement_id: UUID
    description: str
    amount: Decimal
    movement_date: date
    type: MovementType


class DebtBalance(BaseModel):
    debtor: ParticipantRef
    debtor_name: str
    creditor: ParticipantRef
    creditor_name: str
    amount: Decimal = Field(..., gt=0)
    currency: str = "COP"
    movements: list[DebtMovementDetail] = Field(default_factory=list)


class DebtSummary(BaseModel):
    contacts_owe_members: Decimal = Decimal("0.00")
    members_owe_contacts: Decimal = Decimal("0.00")


class DebtConsolidation(BaseModel):
    household_id: UUID
    month: Optional[date] = None
    balances: list[DebtBalance] = Field(default_factory=list)
    summary: DebtSummary = Field(default_factory=DebtSummary)
