"""
Abstract Storage Interface

DESIGN DECISION: The ledger core consumes narrow repository contracts.
This allows us to:
1. Run the whole core against in-memory storage in tests
2. Back it with a relational database in production
3. Keep business logic decoupled from storage implementation

The interface is intentionally narrow - only the lookups and writes the
ledger needs. Household, account and payment-method CRUD belong to other
services; the ledger only reads them.

Atomicity is expressed by TransactionManager.transaction(): every write
made inside the context either commits together or not at all.
"""

from abc import ABC, abstractmethod
from contextlib import AbstractAsyncContextManager
from datetime import date
from decimal import Decimal
from typing import Optional
from uuid import UUID

from household_ledger.models.audit import AuditEvent
from household_ledger.models.budget import MonthlyBudget, RecurringMovementTemplate
from household_ledger.models.credit_card import (
    CreditCardPayment,
    CreditCardPaymentFilter,
)
from household_ledger.models.household import (
    Account,
    Category,
    Contact,
    Household,
    HouseholdMember,
    HouseholdRole,
    PaymentMethod,
)
from household_ledger.models.movement import Movement, MovementFilter


class TransactionManager(ABC):
    """Delimits atomic units of work."""

    @abstractmethod
    def transaction(self) -> AbstractAsyncContextManager:
        """
        Return an async context manager for one atomic unit.

        Writes made inside commit together when the block exits normally
        and are rolled back if it raises. Re-entering from inside an open
        unit (same task) joins it instead of nesting.
        """
        pass


class HouseholdRepository(ABC):
    """Household, membership and contact lookups."""

    @abstractmethod
    async def get_household(self, household_id: UUID) -> Optional[Household]:
        pass

    @abstractmethod
    async def get_user_household_id(self, user_id: UUID) -> Optional[UUID]:
        """
        Get the household a user belongs to.

        Returns:
            The household id, or None if the user has no household
        """
        pass

    @abstractmethod
    async def is_user_member(self, household_id: UUID, user_id: UUID) -> bool:
        pass

    @abstractmethod
    async def get_member(
        self,
        household_id: UUID,
        user_id: UUID,
    ) -> Optional[HouseholdMember]:
        pass

    @abstractmethod
    async def list_members(self, household_id: UUID) -> list[HouseholdMember]:
        pass

    @abstractmethod
    async def count_owners(self, household_id: UUID) -> int:
        pass

    @abstractmethod
    async def update_member_role(
        self,
        household_id: UUID,
        user_id: UUID,
        role: HouseholdRole,
    ) -> HouseholdMember:
        """
        Change a member's role.

        Raises:
            RecordNotFoundError: If the membership doesn't exist
        """
        pass

    @abstractmethod
    async def remove_member(self, household_id: UUID, user_id: UUID) -> None:
        pass

    @abstractmethod
    async def get_contact(self, contact_id: UUID) -> Optional[Contact]:
        pass

    @abstractmethod
    async def find_contact_by_email(
        self,
        household_id: UUID,
        email: str,
    ) -> Optional[Contact]:
        """Case-insensitive email match within one household."""
        pass


class AccountRepository(ABC):

    @abstractmethod
    async def get_by_id(self, account_id: UUID) -> Optional[Account]:
        pass

    @abstractmethod
    async def get_balance(self, account_id: UUID) -> Decimal:
        """
        Current balance, derived from the initial balance and the
        movements and payments that touch the account.
        """
        pass


class PaymentMethodRepository(ABC):

    @abstractmethod
    async def get_by_id(self, payment_method_id: UUID) -> Optional[PaymentMethod]:
        pass

    @abstractmethod
    async def get_household_id(self, payment_method_id: UUID) -> Optional[UUID]:
        pass

    @abstractmethod
    async def check_name_exists(
        self,
        household_id: UUID,
        name: str,
        exclude_id: Optional[UUID] = None,
    ) -> bool:
        pass


class CategoryRepository(ABC):

    @abstractmethod
    async def get_by_id(self, category_id: UUID) -> Optional[Category]:
        pass

    @abstractmethod
    async def list_by_household(self, household_id: UUID) -> list[Category]:
        pass


class MovementRepository(ABC):
    """Persistence of movements together with their participants."""

    @abstractmethod
    async def create(self, movement: Movement) -> Movement:
        """
        Save a movement and its participants.

        Raises:
            DuplicateError: If a movement with the same id exists
        """
        pass

    @abstractmethod
    async def get_by_id(self, movement_id: UUID) -> Optional[Movement]:
        pass

    @abstractmethod
    async def update(self, movement: Movement) -> Movement:
        """
        Replace a movement and its participants.

        Raises:
            RecordNotFoundError: If the movement doesn't exist
        """
        pass

    @abstractmethod
    async def delete(self, movement_id: UUID) -> bool:
        """Delete a movement and its participants. Returns False if absent."""
        pass

    @abstractmethod
    async def list_by_household(
        self,
        household_id: UUID,
        movement_filter: Optional[MovementFilter] = None,
    ) -> list[Movement]:
        """
        List movements of a household, newest first.

        Applies the storage-level filters (type, category, payer, dates,
        month) and returns every match. Visibility rules and the filter's
        `limit` are applied by the service.
        """
        pass

    @abstractmethod
    async def sum_by_category_month(
        self,
        household_id: UUID,
        category_id: UUID,
        month: date,
    ) -> Decimal:
        """Total amount of movements in a category during one month."""
        pass


class TemplateRepository(ABC):

    @abstractmethod
    async def create(self, template: RecurringMovementTemplate) -> RecurringMovementTemplate:
        pass

    @abstractmethod
    async def get_by_id(self, template_id: UUID) -> Optional[RecurringMovementTemplate]:
        pass

    @abstractmethod
    async def update(self, template: RecurringMovementTemplate) -> RecurringMovementTemplate:
        pass

    @abstractmethod
    async def delete(self, template_id: UUID) -> bool:
        pass

    @abstractmethod
    async def list_by_household(
        self,
        household_id: UUID,
        category_id: Optional[UUID] = None,
        active_only: bool = False,
    ) -> list[RecurringMovementTemplate]:
        pass

    @abstractmethod
    async def list_pending(self, as_of: date) -> list[RecurringMovementTemplate]:
        """
        Active auto-generate templates due on or before `as_of`, across
        all households.
        """
        pass


class BudgetRepository(ABC):

    @abstractmethod
    async def get(
        self,
        household_id: UUID,
        category_id: UUID,
        month: date,
    ) -> Optional[MonthlyBudget]:
        pass

    @abstractmethod
    async def get_by_id(self, budget_id: UUID) -> Optional[MonthlyBudget]:
        pass

    @abstractmethod
    async def upsert(self, budget: MonthlyBudget) -> MonthlyBudget:
        """
        Create or overwrite the budget for (household, category, month).

        When one already exists its id and created_at are kept.
        """
        pass

    @abstractmethod
    async def delete(self, budget_id: UUID) -> bool:
        pass

    @abstractmethod
    async def list_by_month(self, household_id: UUID, month: date) -> list[MonthlyBudget]:
        pass


class CreditCardPaymentRepository(ABC):

    @abstractmethod
    async def create(self, payment: CreditCardPayment) -> CreditCardPayment:
        pass

    @abstractmethod
    async def get_by_id(self, payment_id: UUID) -> Optional[CreditCardPayment]:
        pass

    @abstractmethod
    async def delete(self, payment_id: UUID) -> bool:
        pass

    @abstractmethod
    async def list_by_household(
        self,
        household_id: UUID,
        payment_filter: Optional[CreditCardPaymentFilter] = None,
    ) -> list[CreditCardPayment]:
        pass


class AuditStorageInterface(ABC):
    """
    Abstract interface for audit log storage.

    Audit logs are append-only - we never delete or modify them.
    """

    @abstractmethod
    async def append_event(self, event: AuditEvent) -> bool:
        """
        Append an audit event to the log.

        Returns:
            True if logged successfully
        """
        pass

    @abstractmethod
    async def get_events_by_entity(
        self,
        entity_type: str,
        entity_id: UUID,
    ) -> list[AuditEvent]:
        """
        Get all events for a specific entity, in chronological order.
        """
        pass

    @abstractmethod
    async def get_recent_events(
        self,
        limit: int = 100,
    ) -> list[AuditEvent]:
        """Get the most recent audit events (newest first)."""
        pass


class MovementMirrorInterface(ABC):
    """A secondary, best-effort copy of created movements (e.g. a spreadsheet)."""

    @abstractmethod
    async def append_movement(self, movement: Movement) -> bool:
        pass


class StorageError(Exception):
    """Base exception for storage operations."""
    pass


class RecordNotFoundError(StorageError):
    """Entity expected to exist is missing in storage."""
    pass


class DuplicateError(StorageError):
    """Attempted to insert a duplicate entity."""
    pass


class ConnectionError(StorageError):
    """Could not connect to storage backend."""
    pass
