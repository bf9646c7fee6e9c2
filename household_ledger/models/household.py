"""
Household Models

The tenant and the entities a movement references: members, contacts,
accounts, payment methods and categories. The ledger only reads these
(CRUD lives in excluded collaborators) except for member role changes.
"""

from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, ConfigDict, Field

from household_ledger.models.common import utc_now


# =============================================================================
# ENUMS
# =============================================================================

class HouseholdRole(str, Enum):
    """Role of a user inside a household."""
    OWNER = "owner"
    MEMBER = "member"


class AccountType(str, Enum):
    SAVINGS = "savings"
    CHECKING = "checking"
    CASH = "cash"
    OTHER = "other"

    @property
    def can_receive_income(self) -> bool:
        """Only savings and cash accounts may be a money destination."""
        return self in (AccountType.SAVINGS, AccountType.CASH)


class PaymentMethodType(str, Enum):
    CASH = "cash"
    DEBIT_CARD = "debit_card"
    CREDIT_CARD = "credit_card"
    OTHER = "other"


# =============================================================================
# ENTITIES
# =============================================================================

class Household(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    id: UUID = Field(default_factory=uuid4)
    name: str = Field(..., min_length=1, max_length=200)
    created_at: datetime = Field(default_factory=utc_now)


class HouseholdMember(BaseModel):
    """
    A registered user inside a household.

    Invariant: every household has at least one OWNER at all times.
    """
    model_config = ConfigDict(str_strip_whitespace=True)

    household_id: UUID
    user_id: UUID
    display_name: str = Field(..., min_length=1, max_length=200)
    email: Optional[str] = Field(default=None, max_length=320)
    role: HouseholdRole = HouseholdRole.MEMBER
    joined_at: datetime = Field(default_factory=utc_now)

    @property
    def is_owner(self) -> bool:
        return self.role == HouseholdRole.OWNER


class Contact(BaseModel):
    """
    A household-scoped participant without (necessarily) a user account.

    Linking to a user (by matching email) sets `linked_user_id` but keeps
    the contact id, so movements that reference it stay valid.
    """
    model_config = ConfigDict(str_strip_whitespace=True)

    id: UUID = Field(default_factory=uuid4)
    household_id: UUID
    name: str = Field(..., min_length=1, max_length=200)
    email: Optional[str] = Field(default=None, max_length=320)
    phone: Optional[str] = Field(default=None, max_length=50)
    linked_user_id: Optional[UUID] = None
    is_active: bool = True

    @property
    def is_registered(self) -> bool:
        return self.linked_user_id is not None


class Account(BaseModel):
    """A money container owned by one household member."""
    model_config = ConfigDict(str_strip_whitespace=True)

    id: UUID = Field(default_factory=uuid4)
    household_id: UUID
    owner_id: UUID = Field(..., description="User id of the owning member")
    name: str = Field(..., min_length=1, max_length=200)
    type: AccountType
    initial_balance: Decimal = Field(default=Decimal("0.00"), decimal_places=2)


class PaymentMethod(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    id: UUID = Field(default_factory=uuid4)
    household_id: UUID
    owner_id: UUID = Field(..., description="User id of the owning member")
    name: str = Field(..., min_length=1, max_length=200)
    type: PaymentMethodType
    is_shared_with_household: bool = False
    is_active: bool = True


class CategoryGroup(BaseModel):
    id: UUID = Field(default_factory=uuid4)
    household_id: UUID
    name: str = Field(..., min_length=1, max_length=200)


class Category(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    id: UUID = Field(default_factory=uuid4)
    household_id: UUID
    name: str = Field(..., min_length=1, max_length=200)
    group_id: Optional[UUID] = None
    is_active: bool = True
