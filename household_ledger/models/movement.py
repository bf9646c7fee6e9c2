"""
Movement Models

A movement is one recorded financial event. Its `type` decides which
fields exist, so inputs are a discriminated union: one model per type,
each forbidding fields that do not belong to it. A category on a LOAN or
participants on a HOUSEHOLD expense fail at construction.

The persisted Movement is flat (the shape storage and the Sheets mirror
see) and is only ever built by the movement service from a validated
input.

DESIGN DECISION: Percentages are fractions of 1 (0.5 == 50%) kept with
8 decimal places. Exact participant amounts are stored verbatim next to
the percentage so exact-entry movements redisplay without drift.
"""

from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Annotated, Literal, Optional, Union
from uuid import UUID, uuid4

from pydantic import BaseModel, ConfigDict, Field, field_validator

from household_ledger.models.common import parse_month, utc_now


# =============================================================================
# ENUMS
# =============================================================================

class MovementType(str, Enum):
    HOUSEHOLD = "HOUSEHOLD"
    SPLIT = "SPLIT"
    LOAN = "LOAN"
    INCOME = "INCOME"
    CREDIT_CARD_PAYMENT = "CREDIT_CARD_PAYMENT"


class LoanDirection(str, Enum):
    """LEND: payer hands money to the counterparty. REPAY: payer pays a debt back."""
    LEND = "LEND"
    REPAY = "REPAY"


class IncomeType(str, Enum):
    """
    Reporting subtag for INCOME movements. Does not change validation.
    """
    # Real income
    SALARY = "salary"
    BONUS = "bonus"
    FREELANCE = "freelance"
    REIMBURSEMENT = "reimbursement"
    GIFT = "gift"
    SALE = "sale"
    OTHER_INCOME = "other_income"

    # Internal movements
    SAVINGS_WITHDRAWAL = "savings_withdrawal"
    PREVIOUS_BALANCE = "previous_balance"
    DEBT_COLLECTION = "debt_collection"
    ACCOUNT_TRANSFER = "account_transfer"
    ADJUSTMENT = "adjustment"

    @property
    def is_real_income(self) -> bool:
        return self in _REAL_INCOME


_REAL_INCOME = frozenset({
    IncomeType.SALARY,
    IncomeType.BONUS,
    IncomeType.FREELANCE,
    IncomeType.REIMBURSEMENT,
    IncomeType.GIFT,
    IncomeType.SALE,
    IncomeType.OTHER_INCOME,
})


class IdentityKind(str, Enum):
    MEMBER = "member"
    CONTACT = "contact"


class SplitMode(str, Enum):
    """How SPLIT participant weights were supplied."""
    EQUITABLE = "equitable"    # no weights, 1/n each
    PERCENTAGE = "percentage"  # one fraction per participant
    AMOUNT = "amount"          # one exact currency amount per participant


# =============================================================================
# IDENTITIES
# =============================================================================

class ParticipantRef(BaseModel):
    """
    Unresolved reference to a person: a member (by user id) or a contact.
    """
    model_config = ConfigDict(frozen=True)

    kind: IdentityKind
    id: UUID

    @classmethod
    def member(cls, user_id: UUID) -> "ParticipantRef":
        return cls(kind=IdentityKind.MEMBER, id=user_id)

    @classmethod
    def contact(cls, contact_id: UUID) -> "ParticipantRef":
        return cls(kind=IdentityKind.CONTACT, id=contact_id)

    @property
    def is_member(self) -> bool:
        return self.kind == IdentityKind.MEMBER

    def __str__(self) -> str:
        return f"{self.kind.value}:{self.id}"


class Identity(BaseModel):
    """A ParticipantRef resolved against its household."""
    model_config = ConfigDict(frozen=True)

    kind: IdentityKind
    id: UUID
    display_name: str
    household_id: UUID
    linked_user_id: Optional[UUID] = None

    @property
    def ref(self) -> ParticipantRef:
        return ParticipantRef(kind=self.kind, id=self.id)

    @property
    def is_member(self) -> bool:
        return self.kind == IdentityKind.MEMBER

    @property
    def user_id(self) -> Optional[UUID]:
        """User behind this identity: the member itself, or a linked contact's user."""
        if self.kind == IdentityKind.MEMBER:
            return self.id
        return self.linked_user_id

    def same_party(self, other: "Identity") -> bool:
        if self.ref == other.ref:
            return True
        return self.user_id is not None and self.user_id == other.user_id


# =============================================================================
# INPUTS
# =============================================================================

class ParticipantShareInput(BaseModel):
    """
    One SPLIT participant as entered.

    `percentage` is used in PERCENTAGE mode, `amount` in AMOUNT mode,
    neither in EQUITABLE mode.
    """
    model_config = ConfigDict(extra="forbid")

    participant: ParticipantRef
    percentage: Optional[Decimal] = Field(default=None, ge=0, le=1)
    amount: Optional[Decimal] = Field(default=None, ge=0, decimal_places=2)


class _MovementInputBase(BaseModel):
    model_config = ConfigDict(extra="forbid", str_strip_whitespace=True)

    description: str = Field(..., min_length=1, max_length=500)
    # Positivity is a semantic check (InvalidAmount), not a schema one
    amount: Decimal = Field(..., decimal_places=2)
    movement_date: date
    template_id: Optional[UUID] = Field(
        default=None,
        description="Recurring template this movement was generated from"
    )


class HouseholdMovementInput(_MovementInputBase):
    """A household expense paid by one member."""
    type: Literal[MovementType.HOUSEHOLD] = MovementType.HOUSEHOLD
    payer: ParticipantRef
    category_id: UUID
    payment_method_id: UUID


class SplitMovementInput(_MovementInputBase):
    """
    A cost divided among participants.

    The payer is not implicitly a participant; list them explicitly if
    they owe a share.
    """
    type: Literal[MovementType.SPLIT] = MovementType.SPLIT
    payer: ParticipantRef
    category_id: UUID
    payment_method_id: Optional[UUID] = None
    split_mode: SplitMode = SplitMode.EQUITABLE
    participants: list[ParticipantShareInput] = Field(default_factory=list)


class LoanMovementInput(_MovementInputBase):
    """Money lent to, or repaid to, a counterparty. Never categorized."""
    type: Literal[MovementType.LOAN] = MovementType.LOAN
    direction: LoanDirection
    payer: ParticipantRef
    counterparty: ParticipantRef
    payment_method_id: Optional[UUID] = None
    receiver_account_id: Optional[UUID] = Field(
        default=None,
        description="Destination account, required when the counterparty is a member"
    )


class IncomeMovementInput(_MovementInputBase):
    type: Literal[MovementType.INCOME] = MovementType.INCOME
    member_id: UUID = Field(..., description="User id of the receiving member")
    account_id: UUID
    income_type: IncomeType


MovementInput = Annotated[
    Union[
        HouseholdMovementInput,
        SplitMovementInput,
        LoanMovementInput,
        IncomeMovementInput,
    ],
    Field(discriminator="type"),
]


# =============================================================================
# PERSISTED SHAPES
# =============================================================================

class MovementParticipant(BaseModel):
    participant: ParticipantRef
    display_name: str = ""
    percentage: Decimal = Field(..., ge=0, le=1)
    amount: Optional[Decimal] = Field(
        default=None,
        ge=0,
        decimal_places=2,
        description="Exact amount as entered; preferred over percentage when present"
    )


class Movement(BaseModel):
    """A persisted movement. `type` is immutable once created."""

    id: UUID = Field(default_factory=uuid4)
    household_id: UUID
    type: MovementType
    description: str
    amount: Decimal = Field(..., gt=0, decimal_places=2)
    movement_date: date

    category_id: Optional[UUID] = None
    payer: Optional[ParticipantRef] = None
    payer_name: Optional[str] = None
    counterparty: Optional[ParticipantRef] = None
    counterparty_name: Optional[str] = None
    loan_direction: Optional[LoanDirection] = None
    payment_method_id: Optional[UUID] = None
    receiver_account_id: Optional[UUID] = None

    # INCOME
    member_id: Optional[UUID] = None
    account_id: Optional[UUID] = None
    income_type: Optional[IncomeType] = None

    # SPLIT
    split_mode: Optional[SplitMode] = None
    participants: list[MovementParticipant] = Field(default_factory=list)

    template_id: Optional[UUID] = None
    created_by: UUID
    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)

    @property
    def month(self) -> date:
        return self.movement_date.replace(day=1)


class MovementFilter(BaseModel):
    """Filters for listing movements. All optional."""
    model_config = ConfigDict(extra="forbid")

    type: Optional[MovementType] = None
    category_id: Optional[UUID] = None
    payer: Optional[ParticipantRef] = None
    date_from: Optional[date] = None
    date_to: Optional[date] = None
    month: Optional[date] = Field(default=None, description="Month as YYYY-MM")
    limit: int = Field(default=500, ge=1, le=5000, description="Maximum items returned")

    @field_validator("month", mode="before")
    @classmethod
    def parse_month_string(cls, v):
        if v is None:
            return v
        return parse_month(v)


class MovementListResult(BaseModel):
    """`items` holds at most `limit` movements; count and totals cover every visible match."""
    items: list[Movement] = Field(default_factory=list)
    total: Decimal = Decimal("0.00")
    count: int = 0
    totals_by_type: dict[MovementType, Decimal] = Field(default_factory=dict)
    totals_by_category: dict[UUID, Decimal] = Field(default_factory=dict)
