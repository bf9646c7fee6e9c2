"""
Main Orchestrator for the Household Ledger

This module ties the components together and exposes the ledger's
external interface as one facade:

1. Movements (create / update / delete / get / list)
2. Recurring templates and monthly budgets
3. Credit card payments
4. Household membership
5. Derived queries (debt consolidation, template pre-fill)

DESIGN DECISION: The facade owns no rules. Every operation is delegated
to the service that enforces its invariants, so a caller cannot reach
storage without going through authorization and validation.

Inbound payloads (dicts from an HTTP layer or a CLI) are parsed here into
typed inputs; schema failures surface as the ledger's own
ValidationError, never as pydantic's.
"""

from datetime import date
from decimal import Decimal
from typing import Any, Callable, Optional
from uuid import UUID

import structlog
from pydantic import TypeAdapter
from pydantic import ValidationError as SchemaError

from household_ledger.audit import AuditLogger
from household_ledger.authorization import AuthorizationGuard
from household_ledger.budgets import BudgetEngine, GenerationResult, RecurringMovementGenerator
from household_ledger.config import Settings, get_settings
from household_ledger.credit_cards import CreditCardPaymentService
from household_ledger.errors import ValidationError
from household_ledger.households import HouseholdMembershipService
from household_ledger.identity import IdentityResolver
from household_ledger.models.budget import (
    MonthlyBudget,
    MonthlyBudgetReport,
    PreFillData,
    RecurringMovementTemplate,
    TemplateInput,
    TemplateUpdate,
)
from household_ledger.models.credit_card import (
    CreateCreditCardPaymentInput,
    CreditCardPayment,
    CreditCardPaymentFilter,
    CreditCardPaymentListResult,
)
from household_ledger.models.debt import DebtConsolidation
from household_ledger.models.household import HouseholdMember, HouseholdRole
from household_ledger.models.movement import (
    Movement,
    MovementFilter,
    MovementInput,
    MovementListResult,
)
from household_ledger.movements import MovementService, MovementValidator
from household_ledger.queries import DebtConsolidator
from household_ledger.services.storage import (
    AuditStorageInterface,
    GoogleSheetsAuditStorage,
    GoogleSheetsClient,
    GoogleSheetsMovementMirror,
    InMemoryStore,
    MovementMirrorInterface,
)
from household_ledger.splits import SplitCalculator

logger = structlog.get_logger(__name__)

_movement_input_adapter = TypeAdapter(MovementInput)


def _schema_error(e: SchemaError) -> ValidationError:
    first = e.errors()[0]
    return ValidationError(
        first["msg"],
        field=".".join(str(part) for part in first["loc"]) or None,
        value=first.get("input") if not isinstance(first.get("input"), dict) else None,
    )


def parse_movement_input(payload: dict) -> MovementInput:
    """
    Parse a raw payload into the typed input for its `type`.

    Raises:
        ValidationError: Unknown type, missing or forbidden fields
    """
    try:
        return _movement_input_adapter.validate_python(payload)
    except SchemaError as e:
        raise _schema_error(e)


def parse_template_input(payload: dict) -> TemplateInput:
    try:
        return TemplateInput.model_validate(payload)
    except SchemaError as e:
        raise _schema_error(e)


class HouseholdLedger:
    """
    Facade over all ledger services.

    Usage:
        ledger = create_ledger_components()
        movement = await ledger.create_movement(user_id, household_id, payload)
        await ledger.drain()
    """

    def __init__(
        self,
        store: InMemoryStore,
        movements: MovementService,
        budgets: BudgetEngine,
        credit_cards: CreditCardPaymentService,
        households: HouseholdMembershipService,
        debts: DebtConsolidator,
        generator: RecurringMovementGenerator,
        audit_logger: AuditLogger,
        sheets_client: Optional[GoogleSheetsClient] = None,
    ):
        self.store = store
        self.movements = movements
        self.budgets = budgets
        self.credit_cards = credit_cards
        self.households = households
        self.debts = debts
        self.generator = generator
        self.audit_logger = audit_logger
        self.sheets_client = sheets_client

    # ===== Movements =====

    async def create_movement(self, actor_id: UUID, household_id: UUID, data) -> Movement:
        return await self.movements.create(actor_id, household_id, self._movement_input(data))

    async def update_movement(self, actor_id: UUID, movement_id: UUID, data) -> Movement:
        return await self.movements.update(actor_id, movement_id, self._movement_input(data))

    async def delete_movement(self, actor_id: UUID, movement_id: UUID) -> None:
        await self.movements.delete(actor_id, movement_id)

    async def get_movement(self, actor_id: UUID, movement_id: UUID) -> Movement:
        return await self.movements.get(actor_id, movement_id)

    async def list_movements(
        self,
        actor_id: UUID,
        household_id: UUID,
        movement_filter: Optional[MovementFilter] = None,
    ) -> MovementListResult:
        return await self.movements.list_movements(actor_id, household_id, movement_filter)

    # ===== Templates and budgets =====

    async def create_template(
        self,
        actor_id: UUID,
        household_id: UUID,
        data,
    ) -> RecurringMovementTemplate:
        if isinstance(data, dict):
            data = parse_template_input(data)
        return await self.budgets.create_template(actor_id, household_id, data)

    async def update_template(
        self,
        actor_id: UUID,
        template_id: UUID,
        data: TemplateUpdate,
    ) -> RecurringMovementTemplate:
        return await self.budgets.update_template(actor_id, template_id, data)

    async def delete_template(self, actor_id: UUID, template_id: UUID) -> None:
        await self.budgets.delete_template(actor_id, template_id)

    async def list_templates(
        self,
        actor_id: UUID,
        household_id: UUID,
        category_id: Optional[UUID] = None,
        active_only: bool = False,
    ) -> list[RecurringMovementTemplate]:
        return await self.budgets.list_templates(actor_id, household_id, category_id, active_only)

    async def prefill(
        self,
        actor_id: UUID,
        template_id: UUID,
        invert_roles: bool = False,
    ) -> PreFillData:
        return await self.budgets.prefill(actor_id, template_id, invert_roles)

    async def set_budget(
        self,
        actor_id: UUID,
        household_id: UUID,
        category_id: UUID,
        month,
        amount: Decimal,
    ) -> MonthlyBudget:
        return await self.budgets.set_budget(actor_id, household_id, category_id, month, amount)

    async def delete_budget(self, actor_id: UUID, budget_id: UUID) -> None:
        await self.budgets.delete_budget(actor_id, budget_id)

    async def copy_budgets_from_previous_month(
        self,
        actor_id: UUID,
        household_id: UUID,
        month,
    ) -> list[MonthlyBudget]:
        return await self.budgets.copy_from_previous_month(actor_id, household_id, month)

    async def get_month_budgets(
        self,
        actor_id: UUID,
        household_id: UUID,
        month,
    ) -> MonthlyBudgetReport:
        return await self.budgets.get_month_budgets(actor_id, household_id, month)

    async def generate_recurring_movements(self, today: Optional[date] = None) -> GenerationResult:
        return await self.generator.process_pending(today)

    # ===== Credit card payments =====

    async def create_credit_card_payment(self, actor_id: UUID, data) -> CreditCardPayment:
        if isinstance(data, dict):
            try:
                data = CreateCreditCardPaymentInput.model_validate(data)
            except SchemaError as e:
                raise _schema_error(e)
        return await self.credit_cards.create(actor_id, data)

    async def delete_credit_card_payment(self, actor_id: UUID, payment_id: UUID) -> None:
        await self.credit_cards.delete(actor_id, payment_id)

    async def list_credit_card_payments(
        self,
        actor_id: UUID,
        household_id: UUID,
        payment_filter: Optional[CreditCardPaymentFilter] = None,
    ) -> CreditCardPaymentListResult:
        return await self.credit_cards.list_payments(actor_id, household_id, payment_filter)

    # ===== Household membership =====

    async def remove_member(self, actor_id: UUID, household_id: UUID, member_user_id: UUID) -> None:
        await self.households.remove_member(actor_id, household_id, member_user_id)

    async def update_member_role(
        self,
        actor_id: UUID,
        household_id: UUID,
        member_user_id: UUID,
        role: HouseholdRole,
    ) -> HouseholdMember:
        return await self.households.update_member_role(actor_id, household_id, member_user_id, role)

    # ===== Queries =====

    async def consolidate_debts(
        self,
        actor_id: UUID,
        household_id: UUID,
        month=None,
    ) -> DebtConsolidation:
        return await self.debts.consolidate(actor_id, household_id, month)

    async def drain(self) -> None:
        """Wait for outstanding audit writes."""
        await self.audit_logger.drain()

    @staticmethod
    def _movement_input(data: Any) -> MovementInput:
        if isinstance(data, dict):
            return parse_movement_input(data)
        return data


def create_ledger_components(
    store: Optional[InMemoryStore] = None,
    use_sheets: bool = False,
    settings: Optional[Settings] = None,
    clock: Callable[[], date] = date.today,
) -> HouseholdLedger:
    """
    Factory function to wire the whole ledger.

    Args:
        store: Storage to run on. A fresh in-memory store by default.
        use_sheets: Whether to initialize the Google Sheets audit trail
                    and movement mirror. Falls back to local storage when
                    Sheets is not configured.
        settings: Settings override, mainly for tests.
        clock: Source of "today" for the budget engine.
    """
    settings = settings or get_settings()
    store = store or InMemoryStore()

    sheets_client = None
    audit_storage: Optional[AuditStorageInterface] = store.audit
    mirror: Optional[MovementMirrorInterface] = None

    if use_sheets:
        try:
            sheets_client = GoogleSheetsClient()
            audit_storage = GoogleSheetsAuditStorage(sheets_client)
            if settings.app.sheets_mirror_enabled:
                mirror = GoogleSheetsMovementMirror(sheets_client)
        except Exception as e:
            # Sheets not configured - continue on local storage
            logger.warning("sheets_not_configured", error=str(e))
            sheets_client = None
            audit_storage = store.audit
            mirror = None

    if not settings.app.audit_enabled:
        audit_storage = None
    audit_logger = AuditLogger(audit_storage)

    ledger_settings = settings.ledger
    calculator = SplitCalculator(
        tolerance=ledger_settings.percentage_tolerance,
        percentage_places=ledger_settings.percentage_places,
    )
    resolver = IdentityResolver(store.households)
    guard = AuthorizationGuard(store.households, store.accounts, store.payment_methods)
    validator = MovementValidator(resolver, guard, store.categories, calculator)

    budgets = BudgetEngine(
        templates=store.templates,
        budgets=store.budgets,
        movements=store.movements,
        categories=store.categories,
        validator=validator,
        guard=guard,
        transactions=store,
        audit_logger=audit_logger,
        settings=ledger_settings,
        clock=clock,
    )
    movements = MovementService(
        movements=store.movements,
        validator=validator,
        guard=guard,
        resolver=resolver,
        calculator=calculator,
        transactions=store,
        audit_logger=audit_logger,
        budget_floor=budgets,
        mirror=mirror,
    )

    return HouseholdLedger(
        store=store,
        movements=movements,
        budgets=budgets,
        credit_cards=CreditCardPaymentService(
            payments=store.credit_card_payments,
            payment_methods=store.payment_methods,
            accounts=store.accounts,
            households=store.households,
            guard=guard,
            transactions=store,
            audit_logger=audit_logger,
        ),
        households=HouseholdMembershipService(store.households, guard, store, audit_logger),
        debts=DebtConsolidator(
            store.movements, resolver, guard, calculator, currency=ledger_settings.default_currency
        ),
        generator=RecurringMovementGenerator(
            store.templates, store.households, movements, store, audit_logger
        ),
        audit_logger=audit_logger,
        sheets_client=sheets_client,
    )
