"""
Credit Card Payment Models

Paying a credit card moves money from a savings account to the card's
debt. It is movement-shaped but lives in its own table with its own
eligibility rules.
"""

from datetime import date, datetime
from decimal import Decimal
from typing import Literal, Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, ConfigDict, Field

from household_ledger.models.common import utc_now
from household_ledger.models.movement import MovementType


class CreateCreditCardPaymentInput(BaseModel):
    model_config = ConfigDict(extra="forbid", str_strip_whitespace=True)

    credit_card_id: UUID
    # Positivity is checked by the service so it reports InvalidAmount first
    amount: Decimal = Field(..., decimal_places=2)
    payment_date: date
    source_account_id: UUID
    notes: Optional[str] = Field(default=None, max_length=500)


class CreditCardPayment(BaseModel):
    id: UUID = Field(default_factory=uuid4)
    household_id: UUID
    type: Literal[MovementType.CREDIT_CARD_PAYMENT] = MovementType.CREDIT_CARD_PAYMENT
    credit_card_id: UUID
    credit_card_name: str = ""
    amount: Decimal = Field(..., gt=0, decimal_places=2)
    payment_date: date
    source_account_id: UUID
    notes: Optional[str] = None
    created_by: UUID
    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)


class CreditCardPaymentFilter(BaseModel):
    credit_card_id: Optional[UUID] = None
    date_from: Optional[date] = None
    date_to: Optional[date] = None


class CreditCardPaymentListResult(BaseModel):
    items: list[CreditCardPayment] = Field(default_factory=list)
    total: Decimal = Decimal("0.00")
