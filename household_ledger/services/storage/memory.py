"""
In-Memory Storage Implementation

Implements every repository contract over plain dictionaries. Used by the
test suite and for local runs without a database.

Isolation model:
- One asyncio.Lock serializes atomic units, so readers never observe a
  half-written movement.
- A deep snapshot of all tables is taken when a unit starts and restored
  if it raises.
- Records are copied on the way in and out; callers never hold live
  references into the store.
"""

import asyncio
import copy
from contextlib import asynccontextmanager
from contextvars import ContextVar
from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from typing import Optional
from uuid import UUID, uuid4

from household_ledger.models.audit import AuditEvent
from household_ledger.models.budget import MonthlyBudget, RecurringMovementTemplate
from household_ledger.models.common import utc_now
from household_ledger.models.credit_card import (
    CreditCardPayment,
    CreditCardPaymentFilter,
)
from household_ledger.models.household import (
    Account,
    AccountType,
    Category,
    Contact,
    Household,
    HouseholdMember,
    HouseholdRole,
    PaymentMethod,
    PaymentMethodType,
)
from household_ledger.models.movement import Movement, MovementFilter, MovementType
from household_ledger.services.storage.interface import (
    AccountRepository,
    AuditStorageInterface,
    BudgetRepository,
    CategoryRepository,
    CreditCardPaymentRepository,
    DuplicateError,
    HouseholdRepository,
    MovementRepository,
    PaymentMethodRepository,
    RecordNotFoundError,
    TemplateRepository,
    TransactionManager,
)


@dataclass
class _Tables:
    households: dict[UUID, Household] = field(default_factory=dict)
    members: dict[tuple[UUID, UUID], HouseholdMember] = field(default_factory=dict)
    contacts: dict[UUID, Contact] = field(default_factory=dict)
    accounts: dict[UUID, Account] = field(default_factory=dict)
    payment_methods: dict[UUID, PaymentMethod] = field(default_factory=dict)
    categories: dict[UUID, Category] = field(default_factory=dict)
    movements: dict[UUID, Movement] = field(default_factory=dict)
    templates: dict[UUID, RecurringMovementTemplate] = field(default_factory=dict)
    budgets: dict[UUID, MonthlyBudget] = field(default_factory=dict)
    credit_card_payments: dict[UUID, CreditCardPayment] = field(default_factory=dict)


def _copy(record):
    return record.model_copy(deep=True) if record is not None else None


class _MemoryRepository:
    def __init__(self, store: "InMemoryStore"):
        self._store = store

    @property
    def _tables(self) -> _Tables:
        return self._store.tables


class InMemoryHouseholdRepository(_MemoryRepository, HouseholdRepository):

    async def get_household(self, household_id: UUID) -> Optional[Household]:
        async with self._store.access():
            return _copy(self._tables.households.get(household_id))

    async def get_user_household_id(self, user_id: UUID) -> Optional[UUID]:
        async with self._store.access():
            for (household_id, member_id) in self._tables.members:
                if member_id == user_id:
                    return household_id
            return None

    async def is_user_member(self, household_id: UUID, user_id: UUID) -> bool:
        async with self._store.access():
            return (household_id, user_id) in self._tables.members

    async def get_member(self, household_id: UUID, user_id: UUID) -> Optional[HouseholdMember]:
        async with self._store.access():
            return _copy(self._tables.members.get((household_id, user_id)))

    async def list_members(self, household_id: UUID) -> list[HouseholdMember]:
        async with self._store.access():
            members = [
                _copy(m) for (hid, _), m in self._tables.members.items()
                if hid == household_id
            ]
        members.sort(key=lambda m: m.joined_at)
        return members

    async def count_owners(self, household_id: UUID) -> int:
        async with self._store.access():
            return sum(
                1 for (hid, _), m in self._tables.members.items()
                if hid == household_id and m.role == HouseholdRole.OWNER
            )

    async def update_member_role(
        self,
        household_id: UUID,
        user_id: UUID,
        role: HouseholdRole,
    ) -> HouseholdMember:
        async with self._store.access():
            member = self._tables.members.get((household_id, user_id))
            if member is None:
                raise RecordNotFoundError(f"Member not found: {user_id}")
            member.role = role
            return _copy(member)

    async def remove_member(self, household_id: UUID, user_id: UUID) -> None:
        async with self._store.access():
            if self._tables.members.pop((household_id, user_id), None) is None:
                raise RecordNotFoundError(f"Member not found: {user_id}")

    async def get_contact(self, contact_id: UUID) -> Optional[Contact]:
        async with self._store.access():
            return _copy(self._tables.contacts.get(contact_id))

    async def find_contact_by_email(self, household_id: UUID, email: str) -> Optional[Contact]:
        needle = email.strip().lower()
        async with self._store.access():
            for contact in self._tables.contacts.values():
                if (
                    contact.household_id == household_id
                    and contact.email
                    and contact.email.lower() == needle
                ):
                    return _copy(contact)
            return None


class InMemoryAccountRepository(_MemoryRepository, AccountRepository):

    async def get_by_id(self, account_id: UUID) -> Optional[Account]:
        async with self._store.access():
            return _copy(self._tables.accounts.get(account_id))

    async def get_balance(self, account_id: UUID) -> Decimal:
        async with self._store.access():
            account = self._tables.accounts.get(account_id)
            if account is None:
                raise RecordNotFoundError(f"Account not found: {account_id}")

            balance = account.initial_balance
            for movement in self._tables.movements.values():
                if movement.type == MovementType.INCOME and movement.account_id == account_id:
                    balance += movement.amount
                elif movement.type == MovementType.LOAN and movement.receiver_account_id == account_id:
                    balance += movement.amount
            for payment in self._tables.credit_card_payments.values():
                if payment.source_account_id == account_id:
                    balance -= payment.amount
            return balance


class InMemoryPaymentMethodRepository(_MemoryRepository, PaymentMethodRepository):

    async def get_by_id(self, payment_method_id: UUID) -> Optional[PaymentMethod]:
        async with self._store.access():
            return _copy(self._tables.payment_methods.get(payment_method_id))

    async def get_household_id(self, payment_method_id: UUID) -> Optional[UUID]:
        async with self._store.access():
            method = self._tables.payment_methods.get(payment_method_id)
            return method.household_id if method else None

    async def check_name_exists(
        self,
        household_id: UUID,
        name: str,
        exclude_id: Optional[UUID] = None,
    ) -> bool:
        async with self._store.access():
            return any(
                pm.household_id == household_id
                and pm.name.lower() == name.strip().lower()
                and pm.id != exclude_id
                for pm in self._tables.payment_methods.values()
            )


class InMemoryCategoryRepository(_MemoryRepository, CategoryRepository):

    async def get_by_id(self, category_id: UUID) -> Optional[Category]:
        async with self._store.access():
            return _copy(self._tables.categories.get(category_id))

    async def list_by_household(self, household_id: UUID) -> list[Category]:
        async with self._store.access():
            return [
                _copy(c) for c in self._tables.categories.values()
                if c.household_id == household_id
            ]


class InMemoryMovementRepository(_MemoryRepository, MovementRepository):

    async def create(self, movement: Movement) -> Movement:
        async with self._store.access():
            if movement.id in self._tables.movements:
                raise DuplicateError(f"Movement already exists: {movement.id}")
            self._tables.movements[movement.id] = _copy(movement)
            return _copy(movement)

    async def get_by_id(self, movement_id: UUID) -> Optional[Movement]:
        async with self._store.access():
            return _copy(self._tables.movements.get(movement_id))

    async def update(self, movement: Movement) -> Movement:
        async with self._store.access():
            if movement.id not in self._tables.movements:
                raise RecordNotFoundError(f"Movement not found: {movement.id}")
            self._tables.movements[movement.id] = _copy(movement)
            return _copy(movement)

    async def delete(self, movement_id: UUID) -> bool:
        async with self._store.access():
            return self._tables.movements.pop(movement_id, None) is not None

    async def list_by_household(
        self,
        household_id: UUID,
        movement_filter: Optional[MovementFilter] = None,
    ) -> list[Movement]:
        f = movement_filter or MovementFilter()
        async with self._store.access():
            movements = []
            for movement in self._tables.movements.values():
                if movement.household_id != household_id:
                    continue
                if f.type and movement.type != f.type:
                    continue
                if f.category_id and movement.category_id != f.category_id:
                    continue
                if f.payer and movement.payer != f.payer:
                    continue
                if f.date_from and movement.movement_date < f.date_from:
                    continue
                if f.date_to and movement.movement_date > f.date_to:
                    continue
                if f.month and movement.month != f.month:
                    continue
                movements.append(_copy(movement))

        # Newest first
        movements.sort(key=lambda m: (m.movement_date, m.created_at), reverse=True)
        return movements

    async def sum_by_category_month(
        self,
        household_id: UUID,
        category_id: UUID,
        month: date,
    ) -> Decimal:
        month = month.replace(day=1)
        async with self._store.access():
            return sum(
                (
                    m.amount for m in self._tables.movements.values()
                    if m.household_id == household_id
                    and m.category_id == category_id
                    and m.month == month
                ),
                Decimal("0.00"),
            )


class InMemoryTemplateRepository(_MemoryRepository, TemplateRepository):

    async def create(self, template: RecurringMovementTemplate) -> RecurringMovementTemplate:
        async with self._store.access():
            if template.id in self._tables.templates:
                raise DuplicateError(f"Template already exists: {template.id}")
            self._tables.templates[template.id] = _copy(template)
            return _copy(template)

    async def get_by_id(self, template_id: UUID) -> Optional[RecurringMovementTemplate]:
        async with self._store.access():
            return _copy(self._tables.templates.get(template_id))

    async def update(self, template: RecurringMovementTemplate) -> RecurringMovementTemplate:
        async with self._store.access():
            if template.id not in self._tables.templates:
                raise RecordNotFoundError(f"Template not found: {template.id}")
            self._tables.templates[template.id] = _copy(template)
            return _copy(template)

    async def delete(self, template_id: UUID) -> bool:
        async with self._store.access():
            return self._tables.templates.pop(template_id, None) is not None

    async def list_by_household(
        self,
        household_id: UUID,
        category_id: Optional[UUID] = None,
        active_only: bool = False,
    ) -> list[RecurringMovementTemplate]:
        async with self._store.access():
            return [
                _copy(t) for t in self._tables.templates.values()
                if t.household_id == household_id
                and (category_id is None or t.category_id == category_id)
                and (t.is_active or not active_only)
            ]

    async def list_pending(self, as_of: date) -> list[RecurringMovementTemplate]:
        async with self._store.access():
            pending = [
                _copy(t) for t in self._tables.templates.values()
                if t.is_active
                and t.auto_generate
                and t.next_scheduled_date is not None
                and t.next_scheduled_date <= as_of
            ]
        pending.sort(key=lambda t: t.next_scheduled_date)
        return pending


class InMemoryBudgetRepository(_MemoryRepository, BudgetRepository):

    def _find(self, household_id: UUID, category_id: UUID, month: date) -> Optional[MonthlyBudget]:
        month = month.replace(day=1)
        for budget in self._tables.budgets.values():
            if (
                budget.household_id == household_id
                and budget.category_id == category_id
                and budget.month == month
            ):
                return budget
        return None

    async def get(self, household_id: UUID, category_id: UUID, month: date) -> Optional[MonthlyBudget]:
        async with self._store.access():
            return _copy(self._find(household_id, category_id, month))

    async def get_by_id(self, budget_id: UUID) -> Optional[MonthlyBudget]:
        async with self._store.access():
            return _copy(self._tables.budgets.get(budget_id))

    async def upsert(self, budget: MonthlyBudget) -> MonthlyBudget:
        async with self._store.access():
            existing = self._find(budget.household_id, budget.category_id, budget.month)
            stored = _copy(budget)
            if existing is not None:
                stored.id = existing.id
                stored.created_at = existing.created_at
            stored.updated_at = utc_now()
            self._tables.budgets[stored.id] = stored
            return _copy(stored)

    async def delete(self, budget_id: UUID) -> bool:
        async with self._store.access():
            return self._tables.budgets.pop(budget_id, None) is not None

    async def list_by_month(self, household_id: UUID, month: date) -> list[MonthlyBudget]:
        month = month.replace(day=1)
        async with self._store.access():
            return [
                _copy(b) for b in self._tables.budgets.values()
                if b.household_id == household_id and b.month == month
            ]


class InMemoryCreditCardPaymentRepository(_MemoryRepository, CreditCardPaymentRepository):

    async def create(self, payment: CreditCardPayment) -> CreditCardPayment:
        async with self._store.access():
            self._tables.credit_card_payments[payment.id] = _copy(payment)
            return _copy(payment)

    async def get_by_id(self, payment_id: UUID) -> Optional[CreditCardPayment]:
        async with self._store.access():
            return _copy(self._tables.credit_card_payments.get(payment_id))

    async def delete(self, payment_id: UUID) -> bool:
        async with self._store.access():
            return self._tables.credit_card_payments.pop(payment_id, None) is not None

    async def list_by_household(
        self,
        household_id: UUID,
        payment_filter: Optional[CreditCardPaymentFilter] = None,
    ) -> list[CreditCardPayment]:
        f = payment_filter or CreditCardPaymentFilter()
        async with self._store.access():
            payments = [
                _copy(p) for p in self._tables.credit_card_payments.values()
                if p.household_id == household_id
                and (f.credit_card_id is None or p.credit_card_id == f.credit_card_id)
                and (f.date_from is None or p.payment_date >= f.date_from)
                and (f.date_to is None or p.payment_date <= f.date_to)
            ]
        payments.sort(key=lambda p: (p.payment_date, p.created_at), reverse=True)
        return payments


class InMemoryAuditStorage(AuditStorageInterface):
    """Append-only list of events. Not part of transactional state."""

    def __init__(self):
        self.events: list[AuditEvent] = []

    async def append_event(self, event: AuditEvent) -> bool:
        self.events.append(event)
        return True

    async def get_events_by_entity(self, entity_type: str, entity_id: UUID) -> list[AuditEvent]:
        events = [
            e for e in self.events
            if e.entity_type == entity_type and e.entity_id == entity_id
        ]
        events.sort(key=lambda e: e.timestamp)
        return events

    async def get_recent_events(self, limit: int = 100) -> list[AuditEvent]:
        return sorted(self.events, key=lambda e: e.timestamp, reverse=True)[:limit]


class InMemoryStore(TransactionManager):
    """
    All repositories over one shared set of tables.

    Usage:
        store = InMemoryStore()
        household = store.add_household("Casa")
        async with store.transaction():
            await store.movements.create(movement)
    """

    def __init__(self):
        self.tables = _Tables()
        self._lock = asyncio.Lock()
        self._in_unit: ContextVar[bool] = ContextVar(f"in_unit_{id(self)}", default=False)

        self.households = InMemoryHouseholdRepository(self)
        self.accounts = InMemoryAccountRepository(self)
        self.payment_methods = InMemoryPaymentMethodRepository(self)
        self.categories = InMemoryCategoryRepository(self)
        self.movements = InMemoryMovementRepository(self)
        self.templates = InMemoryTemplateRepository(self)
        self.budgets = InMemoryBudgetRepository(self)
        self.credit_card_payments = InMemoryCreditCardPaymentRepository(self)
        self.audit = InMemoryAuditStorage()

    @asynccontextmanager
    async def transaction(self):
        if self._in_unit.get():
            yield
            return

        async with self._lock:
            snapshot = copy.deepcopy(self.tables)
            token = self._in_unit.set(True)
            try:
                yield
            except BaseException:
                self.tables = snapshot
                raise
            finally:
                self._in_unit.reset(token)

    @asynccontextmanager
    async def access(self):
        """Single-operation access: joins an open unit, otherwise takes the lock."""
        if self._in_unit.get():
            yield
            return
        async with self._lock:
            yield

    # ===== Seeding helpers (synchronous, for setup code and tests) =====

    def add_household(self, name: str) -> Household:
        household = Household(name=name)
        self.tables.households[household.id] = household
        return _copy(household)

    def add_member(
        self,
        household_id: UUID,
        display_name: str,
        role: HouseholdRole = HouseholdRole.MEMBER,
        email: Optional[str] = None,
        user_id: Optional[UUID] = None,
    ) -> HouseholdMember:
        member = HouseholdMember(
            household_id=household_id,
            user_id=user_id or uuid4(),
            display_name=display_name,
            email=email,
            role=role,
        )
        self.tables.members[(household_id, member.user_id)] = member
        return _copy(member)

    def add_contact(
        self,
        household_id: UUID,
        name: str,
        email: Optional[str] = None,
        linked_user_id: Optional[UUID] = None,
        is_active: bool = True,
    ) -> Contact:
        contact = Contact(
            household_id=household_id,
            name=name,
            email=email,
            linked_user_id=linked_user_id,
            is_active=is_active,
        )
        self.tables.contacts[contact.id] = contact
        return _copy(contact)

    def link_contact(self, contact_id: UUID, user_id: UUID) -> Contact:
        contact = self.tables.contacts[contact_id]
        contact.linked_user_id = user_id
        return _copy(contact)

    def add_account(
        self,
        household_id: UUID,
        owner_id: UUID,
        name: str,
        account_type: AccountType = AccountType.SAVINGS,
        initial_balance: Decimal = Decimal("0.00"),
    ) -> Account:
        account = Account(
            household_id=household_id,
            owner_id=owner_id,
            name=name,
            type=account_type,
            initial_balance=initial_balance,
        )
        self.tables.accounts[account.id] = account
        return _copy(account)

    def add_payment_method(
        self,
        household_id: UUID,
        owner_id: UUID,
        name: str,
        method_type: PaymentMethodType = PaymentMethodType.DEBIT_CARD,
        shared: bool = False,
        is_active: bool = True,
    ) -> PaymentMethod:
        method = PaymentMethod(
            household_id=household_id,
            owner_id=owner_id,
            name=name,
            type=method_type,
            is_shared_with_household=shared,
            is_active=is_active,
        )
        self.tables.payment_methods[method.id] = method
        return _copy(method)

    def add_category(
        self,
        household_id: UUID,
        name: str,
        is_active: bool = True,
    ) -> Category:
        category = Category(household_id=household_id, name=name, is_active=is_active)
        self.tables.categories[category.id] = category
        return _copy(category)
