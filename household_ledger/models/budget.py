"""
Budget and Recurring Template Models

A recurring template describes an obligation that repeats (rent, a phone
plan). Active templates define a floor for their category's monthly
budget: a budget may never be set below the sum of its active templates.
"""

from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from household_ledger.models.common import parse_month, utc_now
from household_ledger.models.movement import (
    LoanDirection,
    MovementType,
    ParticipantRef,
    ParticipantShareInput,
    SplitMode,
)


# =============================================================================
# ENUMS
# =============================================================================

class RecurrencePattern(str, Enum):
    MONTHLY = "MONTHLY"
    YEARLY = "YEARLY"
    ONE_TIME = "ONE_TIME"


class BudgetStatus(str, Enum):
    UNDER_BUDGET = "under_budget"
    ON_TRACK = "on_track"
    EXCEEDED = "exceeded"


TEMPLATE_MOVEMENT_TYPES = frozenset({
    MovementType.HOUSEHOLD,
    MovementType.SPLIT,
    MovementType.LOAN,
})


# =============================================================================
# RECURRING TEMPLATES
# =============================================================================

class TemplateInput(BaseModel):
    """
    Input for creating a recurring template.

    Payer, counterparty and participants are optional for templates that
    only reserve budget. Auto-generated templates must describe a complete
    movement and a schedule.
    """
    model_config = ConfigDict(extra="forbid", str_strip_whitespace=True)

    name: str = Field(..., min_length=1, max_length=200)
    description: Optional[str] = Field(default=None, max_length=500)
    is_active: bool = True

    movement_type: MovementType
    loan_direction: Optional[LoanDirection] = None
    category_id: Optional[UUID] = None
    amount: Decimal = Field(..., decimal_places=2)

    payer: Optional[ParticipantRef] = None
    counterparty: Optional[ParticipantRef] = None
    payment_method_id: Optional[UUID] = None
    receiver_account_id: Optional[UUID] = None
    split_mode: SplitMode = SplitMode.EQUITABLE
    participants: list[ParticipantShareInput] = Field(default_factory=list)

    auto_generate: bool = False
    recurrence_pattern: Optional[RecurrencePattern] = None
    day_of_month: Optional[int] = Field(default=None, ge=1, le=31)
    day_of_year: Optional[int] = Field(default=None, ge=1, le=365)
    start_date: Optional[date] = None

    @field_validator("movement_type")
    @classmethod
    def validate_movement_type(cls, v: MovementType) -> MovementType:
        if v not in TEMPLATE_MOVEMENT_TYPES:
            raise ValueError(f"templates cannot describe {v.value} movements")
        return v

    @model_validator(mode="after")
    def validate_schedule(self) -> "TemplateInput":
        """Auto-generation needs a complete recurrence schedule."""
        if not self.auto_generate:
            return self
        if self.recurrence_pattern is None:
            raise ValueError("recurrence_pattern is required when auto_generate is set")
        if self.start_date is None:
            raise ValueError("start_date is required when auto_generate is set")
        if self.recurrence_pattern == RecurrencePattern.MONTHLY and self.day_of_month is None:
            raise ValueError("day_of_month is required for MONTHLY templates")
        if self.recurrence_pattern == RecurrencePattern.YEARLY and self.day_of_year is None:
            raise ValueError("day_of_year is required for YEARLY templates")
        return self


class TemplateUpdate(BaseModel):
    """Partial update of a template. Unset fields are left unchanged."""
    model_config = ConfigDict(extra="forbid", str_strip_whitespace=True)

    name: Optional[str] = Field(default=None, min_length=1, max_length=200)
    description: Optional[str] = Field(default=None, max_length=500)
    is_active: Optional[bool] = None
    amount: Optional[Decimal] = Field(default=None, decimal_places=2)
    category_id: Optional[UUID] = None
    payment_method_id: Optional[UUID] = None
    day_of_month: Optional[int] = Field(default=None, ge=1, le=31)
    day_of_year: Optional[int] = Field(default=None, ge=1, le=365)


class RecurringMovementTemplate(BaseModel):
    id: UUID = Field(default_factory=uuid4)
    household_id: UUID
    created_by: UUID

    name: str
    description: Optional[str] = None
    is_active: bool = True

    movement_type: MovementType
    loan_direction: Optional[LoanDirection] = None
    category_id: Optional[UUID] = None
    amount: Decimal = Field(..., gt=0, decimal_places=2)

    payer: Optional[ParticipantRef] = None
    counterparty: Optional[ParticipantRef] = None
    payment_method_id: Optional[UUID] = None
    receiver_account_id: Optional[UUID] = None
    split_mode: SplitMode = SplitMode.EQUITABLE
    participants: list[ParticipantShareInput] = Field(default_factory=list)

    auto_generate: bool = False
    recurrence_pattern: Optional[RecurrencePattern] = None
    day_of_month: Optional[int] = Field(default=None, ge=1, le=31)
    day_of_year: Optional[int] = Field(default=None, ge=1, le=365)
    start_date: Optional[date] = None
    last_generated_date: Optional[date] = None
    next_scheduled_date: Optional[date] = None

    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)

    def counts_toward(self, month_end: date) -> bool:
        """Active and already started by `month_end`."""
        if not self.is_active:
            return False
        return self.start_date is None or self.start_date <= month_end


# =============================================================================
# BUDGETS
# =============================================================================

class MonthlyBudget(BaseModel):
    """(household, category, month) -> amount."""

    id: UUID = Field(default_factory=uuid4)
    household_id: UUID
    category_id: UUID
    month: date = Field(..., description="First day of the budget month")
    amount: Decimal = Field(..., ge=0, decimal_places=2)
    currency: str = "COP"
    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)

    @field_validator("month", mode="before")
    @classmethod
    def normalize_month(cls, v):
        return parse_month(v)


class BudgetWithSpent(BaseModel):
    budget: MonthlyBudget
    category_name: str
    spent: Decimal
    templates_sum: Decimal
    percentage_used: Decimal
    status: BudgetStatus


class MonthlyBudgetReport(BaseModel):
    household_id: UUID
    month: date
    currency: str
    budgets: list[BudgetWithSpent] = Field(default_factory=list)
    total_budget: Decimal = Decimal("0.00")
    total_spent: Decimal = Decimal("0.00")


class PreFillData(BaseModel):
    """Values a movement form can be pre-filled with from a template."""

    template_id: UUID
    template_name: str
    movement_type: MovementType
    loan_direction: Optional[LoanDirection] = None
    amount: Decimal
    category_id: Optional[UUID] = None
    payer: Optional[ParticipantRef] = None
    counterparty: Optional[ParticipantRef] = None
    payment_method_id: Optional[UUID] = None
    receiver_account_id: Optional[UUID] = None
    split_mode: Optional[SplitMode] = None
    participants: list[ParticipantShareInput] = Field(default_factory=list)
