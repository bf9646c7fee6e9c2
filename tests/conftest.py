"""
Shared fixtures.

Every test runs against a fresh in-memory store seeded with one household
(an owner, a member, contacts, accounts, payment methods, categories) and
a second, unrelated household used for cross-household checks.
"""

from dataclasses import dataclass
from decimal import Decimal

import pytest

from household_ledger.models import (
    Account,
    AccountType,
    Category,
    Contact,
    Household,
    HouseholdMember,
    HouseholdRole,
    ParticipantRef,
    PaymentMethod,
    PaymentMethodType,
)
from household_ledger.orchestrator import HouseholdLedger, create_ledger_components
from household_ledger.services.storage import InMemoryStore
from payloads import TODAY


@dataclass
class Seed:
    household: Household
    owner: HouseholdMember
    member: HouseholdMember
    contact: Contact
    linked_contact: Contact
    inactive_contact: Contact

    owner_savings: Account
    owner_checking: Account
    member_savings: Account
    member_cash: Account

    owner_debit: PaymentMethod
    owner_credit: PaymentMethod
    member_debit: PaymentMethod
    shared_cash: PaymentMethod
    inactive_method: PaymentMethod

    groceries: Category
    rent: Category
    archived: Category

    other_household: Household
    outsider: HouseholdMember
    outsider_credit: PaymentMethod
    outsider_savings: Account
    outsider_contact: Contact
    outsider_category: Category

    @property
    def household_id(self):
        return self.household.id

    @property
    def owner_ref(self) -> ParticipantRef:
        return ParticipantRef.member(self.owner.user_id)

    @property
    def member_ref(self) -> ParticipantRef:
        return ParticipantRef.member(self.member.user_id)

    @property
    def contact_ref(self) -> ParticipantRef:
        return ParticipantRef.contact(self.contact.id)


@pytest.fixture
def store() -> InMemoryStore:
    return InMemoryStore()


@pytest.fixture
def seed(store: InMemoryStore) -> Seed:
    household = store.add_household("Casa Rodríguez")
    owner = store.add_member(household.id, "Ana", role=HouseholdRole.OWNER, email="ana@example.com")
    member = store.add_member(household.id, "Beto", email="beto@example.com")

    other = store.add_household("Otra casa")
    outsider = store.add_member(other.id, "Zoe", role=HouseholdRole.OWNER)

    return Seed(
        household=household,
        owner=owner,
        member=member,
        contact=store.add_contact(household.id, "Carla", email="carla@example.com"),
        linked_contact=store.add_contact(
            household.id, "Beto (contacto)", linked_user_id=member.user_id
        ),
        inactive_contact=store.add_contact(household.id, "Dario", is_active=False),
        owner_savings=store.add_account(
            household.id, owner.user_id, "Ahorros Ana", initial_balance=Decimal("1000000.00")
        ),
        owner_checking=store.add_account(
            household.id, owner.user_id, "Corriente Ana", account_type=AccountType.CHECKING
        ),
        member_savings=store.add_account(household.id, member.user_id, "Ahorros Beto"),
        member_cash=store.add_account(
            household.id, member.user_id, "Efectivo Beto", account_type=AccountType.CASH
        ),
        owner_debit=store.add_payment_method(household.id, owner.user_id, "Débito Ana"),
        owner_credit=store.add_payment_method(
            household.id, owner.user_id, "Visa Ana", method_type=PaymentMethodType.CREDIT_CARD
        ),
        member_debit=store.add_payment_method(household.id, member.user_id, "Débito Beto"),
        shared_cash=store.add_payment_method(
            household.id,
            member.user_id,
            "Efectivo de la casa",
            method_type=PaymentMethodType.CASH,
            shared=True,
        ),
        inactive_method=store.add_payment_method(
            household.id, owner.user_id, "Tarjeta vieja", is_active=False
        ),
        groceries=store.add_category(household.id, "Mercado"),
        rent=store.add_category(household.id, "Arriendo"),
        archived=store.add_category(household.id, "Archivada", is_active=False),
        other_household=other,
        outsider=outsider,
        outsider_credit=store.add_payment_method(
            other.id, outsider.user_id, "Visa Zoe", method_type=PaymentMethodType.CREDIT_CARD
        ),
        outsider_savings=store.add_account(other.id, outsider.user_id, "Ahorros Zoe"),
        outsider_contact=store.add_contact(other.id, "Yuri"),
        outsider_category=store.add_category(other.id, "Mercado"),
    )


@pytest.fixture
def ledger(store: InMemoryStore, seed: Seed) -> HouseholdLedger:
    return create_ledger_components(store=store, clock=lambda: TODAY)


@pytest.fixture
def audit_events(store: InMemoryStore):
    """Events written to the in-memory audit sink. Drain the ledger first."""
    return store.audit.events
