"""
Recurring Template & Budget Engine

INVARIANT: a category's monthly budget is never below the sum of the
active templates targeting that category.

Two writers touch budgets:
- users, through set_budget / copy_from_previous_month, which are
  rejected (or raised) against the template floor
- template and movement writes, which call recompute_floor to push the
  budget up to the floor

The floor only ever pushes upward. Deactivating or deleting a template
leaves already-set budgets alone.
"""

from dataclasses import dataclass
from datetime import date
from decimal import ROUND_HALF_UP, Decimal
from typing import Callable, Optional
from uuid import UUID

import structlog

from household_ledger.audit import AuditLogger
from household_ledger.authorization import Action, AuthorizationGuard
from household_ledger.budgets.templates import (
    TemplateLike,
    first_occurrence,
    movement_input_from_template,
    next_occurrence,
)
from household_ledger.config import LedgerSettings
from household_ledger.errors import (
    BudgetBelowTemplatesError,
    InvalidAmountError,
    LedgerError,
    NotFoundError,
    ValidationError,
)
from household_ledger.models.audit import AuditEventBuilder, AuditEventType
from household_ledger.models.budget import (
    BudgetStatus,
    BudgetWithSpent,
    MonthlyBudget,
    MonthlyBudgetReport,
    PreFillData,
    RecurringMovementTemplate,
    TemplateInput,
    TemplateUpdate,
)
from household_ledger.models.common import (
    format_month,
    last_day_of_month,
    parse_month,
    previous_month,
    to_money,
    utc_now,
)
from household_ledger.models.movement import LoanDirection, MovementType
from household_ledger.movements.validator import MovementValidator
from household_ledger.services.storage import (
    BudgetRepository,
    CategoryRepository,
    MovementRepository,
    TemplateRepository,
    TransactionManager,
)

logger = structlog.get_logger(__name__)

_SCHEDULE_FIELDS = {"day_of_month", "day_of_year"}


@dataclass
class FloorChange:
    """A budget raised to its template floor, waiting to be audited."""

    budget: MonthlyBudget
    previous_amount: Optional[Decimal]


def template_snapshot(template: RecurringMovementTemplate) -> dict:
    return template.model_dump(
        mode="json",
        include={"name", "is_active", "movement_type", "category_id", "amount", "auto_generate"},
    )


class BudgetEngine:

    def __init__(
        self,
        templates: TemplateRepository,
        budgets: BudgetRepository,
        movements: MovementRepository,
        categories: CategoryRepository,
        validator: MovementValidator,
        guard: AuthorizationGuard,
        transactions: TransactionManager,
        audit_logger: AuditLogger,
        settings: Optional[LedgerSettings] = None,
        clock: Callable[[], date] = date.today,
    ):
        self._templates = templates
        self._budgets = budgets
        self._movements = movements
        self._categories = categories
        self._validator = validator
        self._guard = guard
        self._tx = transactions
        self._audit = audit_logger
        self._settings = settings or LedgerSettings()
        self._clock = clock

    # ===== Templates =====

    async def create_template(
        self,
        actor_id: UUID,
        household_id: UUID,
        data: TemplateInput,
    ) -> RecurringMovementTemplate:
        """
        Validate and store a template, then raise the current month's floor.

        A template carrying a payer is validated as the movement it
        prefigures, with the same type-specific rules.
        """
        try:
            async with self._tx.transaction():
                await self._guard.authorize(actor_id, household_id, Action.CREATE)
                await self._check_template(household_id, data)

                template = RecurringMovementTemplate(
                    household_id=household_id,
                    created_by=actor_id,
                    **data.model_dump(),
                )
                if template.auto_generate:
                    template.next_scheduled_date = first_occurrence(template)
                template = await self._templates.create(template)
                floor_change = await self._raise_current_floor(template, actor_id)
        except LedgerError as e:
            self._audit_failure(AuditEventType.TEMPLATE_CREATED, "template", actor_id, household_id, e)
            raise

        logger.info(
            "template_created",
            template_id=str(template.id),
            household_id=str(household_id),
            amount=str(template.amount),
        )
        self._record(floor_change, actor_id)
        self._audit.log_async(AuditEventBuilder.template_changed(
            event_type=AuditEventType.TEMPLATE_CREATED,
            template_id=template.id,
            household_id=household_id,
            actor_id=actor_id,
            new_values=template_snapshot(template),
        ))
        return template

    async def update_template(
        self,
        actor_id: UUID,
        template_id: UUID,
        data: TemplateUpdate,
    ) -> RecurringMovementTemplate:
        """Apply a partial update (creator or owner). Never lowers a budget."""
        household_id = None
        try:
            async with self._tx.transaction():
                existing = await self._get_template(template_id)
                household_id = existing.household_id
                await self._guard.authorize(actor_id, household_id, Action.UPDATE, existing)

                changes = data.model_dump(exclude_unset=True)
                updated = existing.model_copy(update=changes)
                updated.updated_at = utc_now()
                await self._check_template(household_id, updated)

                if updated.auto_generate and _SCHEDULE_FIELDS & changes.keys():
                    if updated.last_generated_date is not None:
                        updated.next_scheduled_date = next_occurrence(
                            updated, updated.last_generated_date
                        )
                    else:
                        updated.next_scheduled_date = first_occurrence(updated)

                updated = await self._templates.update(updated)
                floor_change = await self._raise_current_floor(updated, actor_id)
        except LedgerError as e:
            self._audit_failure(
                AuditEventType.TEMPLATE_UPDATED, "template", actor_id, household_id, e, template_id
            )
            raise

        logger.info("template_updated", template_id=str(template_id), fields=sorted(changes))
        self._record(floor_change, actor_id)
        self._audit.log_async(AuditEventBuilder.template_changed(
            event_type=AuditEventType.TEMPLATE_UPDATED,
            template_id=template_id,
            household_id=household_id,
            actor_id=actor_id,
            old_values=template_snapshot(existing),
            new_values=template_snapshot(updated),
        ))
        return updated

    async def delete_template(self, actor_id: UUID, template_id: UUID) -> None:
        household_id = None
        try:
            async with self._tx.transaction():
                existing = await self._get_template(template_id)
                household_id = existing.household_id
                await self._guard.authorize(actor_id, household_id, Action.DELETE, existing)
                await self._templates.delete(template_id)
        except LedgerError as e:
            self._audit_failure(
                AuditEventType.TEMPLATE_DELETED, "template", actor_id, household_id, e, template_id
            )
            raise

        logger.info("template_deleted", template_id=str(template_id))
        self._audit.log_async(AuditEventBuilder.template_changed(
            event_type=AuditEventType.TEMPLATE_DELETED,
            template_id=template_id,
            household_id=household_id,
            actor_id=actor_id,
            old_values=template_snapshot(existing),
        ))

    async def get_template(self, actor_id: UUID, template_id: UUID) -> RecurringMovementTemplate:
        template = await self._get_template(template_id)
        await self._guard.authorize(actor_id, template.household_id, Action.READ)
        return template

    async def list_templates(
        self,
        actor_id: UUID,
        household_id: UUID,
        category_id: Optional[UUID] = None,
        active_only: bool = False,
    ) -> list[RecurringMovementTemplate]:
        await self._guard.authorize(actor_id, household_id, Action.READ)
        return await self._templates.list_by_household(
            household_id, category_id=category_id, active_only=active_only
        )

    async def prefill(
        self,
        actor_id: UUID,
        template_id: UUID,
        invert_roles: bool = False,
    ) -> PreFillData:
        """
        Movement form values from a template.

        With `invert_roles`, a SPLIT template ("I paid, you owe me your
        share") becomes a LOAN/REPAY from the participant with the largest
        share back to the original payer.
        """
        template = await self.get_template(actor_id, template_id)

        if invert_roles and template.movement_type == MovementType.SPLIT:
            debtor = None
            if template.participants:
                debtor = max(
                    template.participants,
                    key=lambda p: (p.percentage or Decimal("0"), p.amount or Decimal("0")),
                ).participant
            return PreFillData(
                template_id=template.id,
                template_name=template.name,
                movement_type=MovementType.LOAN,
                loan_direction=LoanDirection.REPAY,
                amount=template.amount,
                payer=debtor,
                counterparty=template.payer,
            )

        return PreFillData(
            template_id=template.id,
            template_name=template.name,
            movement_type=template.movement_type,
            loan_direction=template.loan_direction,
            amount=template.amount,
            category_id=template.category_id,
            payer=template.payer,
            counterparty=template.counterparty,
            payment_method_id=template.payment_method_id,
            receiver_account_id=template.receiver_account_id,
            split_mode=template.split_mode if template.movement_type == MovementType.SPLIT else None,
            participants=list(template.participants),
        )

    # ===== Budgets =====

    async def set_budget(
        self,
        actor_id: UUID,
        household_id: UUID,
        category_id: UUID,
        month,
        amount: Decimal,
    ) -> MonthlyBudget:
        """
        Create or overwrite the budget of (category, month).

        Raises:
            BudgetBelowTemplatesError: amount below the active template sum
        """
        month = self._parse_month(month)
        try:
            if amount < 0:
                raise ValidationError("budget amount cannot be negative", field="amount", value=amount)

            async with self._tx.transaction():
                await self._guard.authorize(actor_id, household_id, Action.UPDATE)
                await self._validator.check_category(household_id, category_id)

                floor = await self.template_sum(household_id, category_id, month)
                if amount < floor:
                    raise BudgetBelowTemplatesError(amount=amount, templates_sum=floor)

                previous = await self._budgets.get(household_id, category_id, month)
                budget = await self._budgets.upsert(MonthlyBudget(
                    household_id=household_id,
                    category_id=category_id,
                    month=month,
                    amount=to_money(amount),
                    currency=self._settings.default_currency,
                ))
        except LedgerError as e:
            self._audit_failure(AuditEventType.BUDGET_SET, "budget", actor_id, household_id, e)
            raise

        logger.info(
            "budget_set",
            budget_id=str(budget.id),
            category_id=str(category_id),
            month=format_month(month),
            amount=str(budget.amount),
        )
        self._audit.log_async(AuditEventBuilder.budget_set(
            budget_id=budget.id,
            household_id=household_id,
            actor_id=actor_id,
            month=format_month(month),
            amount=str(budget.amount),
            previous_amount=str(previous.amount) if previous else None,
        ))
        return budget

    async def delete_budget(self, actor_id: UUID, budget_id: UUID) -> None:
        household_id = None
        try:
            async with self._tx.transaction():
                budget = await self._budgets.get_by_id(budget_id)
                if budget is None:
                    raise NotFoundError(field="budget_id", value=budget_id)
                household_id = budget.household_id
                await self._guard.authorize(actor_id, household_id, Action.DELETE)
                await self._budgets.delete(budget_id)
        except LedgerError as e:
            self._audit_failure(
                AuditEventType.BUDGET_DELETED, "budget", actor_id, household_id, e, budget_id
            )
            raise

        self._audit.log_async(AuditEventBuilder.budget_deleted(
            budget_id=budget_id,
            household_id=household_id,
            actor_id=actor_id,
            old_values=budget.model_dump(mode="json", include={"category_id", "month", "amount"}),
        ))

    async def copy_from_previous_month(
        self,
        actor_id: UUID,
        household_id: UUID,
        month,
    ) -> list[MonthlyBudget]:
        """
        Copy every budget of the previous month into `month`.

        Overwrites, never adds: running it twice gives the same result.
        Categories without a previous-month budget are skipped. A copied
        amount below the target month's template floor is raised to it.
        """
        target = self._parse_month(month)
        source = previous_month(target)
        try:
            async with self._tx.transaction():
                await self._guard.authorize(actor_id, household_id, Action.UPDATE)
                copied = []
                for previous in await self._budgets.list_by_month(household_id, source):
                    floor = await self.template_sum(household_id, previous.category_id, target)
                    copied.append(await self._budgets.upsert(MonthlyBudget(
                        household_id=household_id,
                        category_id=previous.category_id,
                        month=target,
                        amount=max(previous.amount, floor),
                        currency=previous.currency,
                    )))
        except LedgerError as e:
            self._audit_failure(AuditEventType.BUDGETS_COPIED, "budget", actor_id, household_id, e)
            raise

        logger.info(
            "budgets_copied",
            household_id=str(household_id),
            from_month=format_month(source),
            to_month=format_month(target),
            count=len(copied),
        )
        self._audit.log_async(AuditEventBuilder.budgets_copied(
            household_id=household_id,
            actor_id=actor_id,
            from_month=format_month(source),
            to_month=format_month(target),
            count=len(copied),
        ))
        return copied

    async def template_sum(self, household_id: UUID, category_id: UUID, month: date) -> Decimal:
        """Sum of the active templates of a category that count toward `month`."""
        month_end = last_day_of_month(month)
        templates = await self._templates.list_by_household(
            household_id, category_id=category_id, active_only=True
        )
        return sum(
            (t.amount for t in templates if t.counts_toward(month_end)),
            Decimal("0.00"),
        )

    async def recompute_floor(
        self,
        household_id: UUID,
        category_id: UUID,
        month: date,
        actor_id: Optional[UUID] = None,
    ) -> Optional[FloorChange]:
        """
        Raise the budget of (category, month) to its template floor.

        Creates the budget when absent. Returns the change to audit, or
        None when nothing moved. Never lowers a budget.
        """
        month = month.replace(day=1)
        async with self._tx.transaction():
            floor = await self.template_sum(household_id, category_id, month)
            if floor <= 0:
                return None
            existing = await self._budgets.get(household_id, category_id, month)
            if existing is not None and existing.amount >= floor:
                return None

            budget = await self._budgets.upsert(MonthlyBudget(
                household_id=household_id,
                category_id=category_id,
                month=month,
                amount=floor,
                currency=existing.currency if existing else self._settings.default_currency,
            ))
        return FloorChange(
            budget=budget,
            previous_amount=existing.amount if existing else None,
        )

    def record_floor_change(self, change: FloorChange, actor_id: Optional[UUID]) -> None:
        budget = change.budget
        logger.info(
            "budget_raised_by_templates",
            budget_id=str(budget.id),
            category_id=str(budget.category_id),
            month=format_month(budget.month),
            amount=str(budget.amount),
        )
        self._audit.log_async(AuditEventBuilder.budget_raised(
            budget_id=budget.id,
            household_id=budget.household_id,
            actor_id=actor_id,
            month=format_month(budget.month),
            previous_amount=str(change.previous_amount) if change.previous_amount is not None else None,
            amount=str(budget.amount),
        ))

    async def get_month_budgets(
        self,
        actor_id: UUID,
        household_id: UUID,
        month,
    ) -> MonthlyBudgetReport:
        """Budgets of a month with what was spent against each."""
        month = self._parse_month(month)
        await self._guard.authorize(actor_id, household_id, Action.READ)

        report = MonthlyBudgetReport(
            household_id=household_id,
            month=month,
            currency=self._settings.default_currency,
        )
        for budget in await self._budgets.list_by_month(household_id, month):
            category = await self._categories.get_by_id(budget.category_id)
            spent = await self._movements.sum_by_category_month(
                household_id, budget.category_id, month
            )
            percentage_used = self._percentage_used(spent, budget.amount)
            report.budgets.append(BudgetWithSpent(
                budget=budget,
                category_name=category.name if category else "",
                spent=spent,
                templates_sum=await self.template_sum(household_id, budget.category_id, month),
                percentage_used=percentage_used,
                status=self._status(percentage_used),
            ))
            report.total_budget += budget.amount
            report.total_spent += spent

        report.budgets.sort(key=lambda b: b.category_name)
        return report

    # ===== Helpers =====

    async def _get_template(self, template_id: UUID) -> RecurringMovementTemplate:
        template = await self._templates.get_by_id(template_id)
        if template is None:
            raise NotFoundError(field="template_id", value=template_id)
        return template

    async def _check_template(self, household_id: UUID, template: TemplateLike) -> None:
        if template.amount <= 0:
            raise InvalidAmountError(value=template.amount)

        if template.movement_type == MovementType.LOAN:
            if template.category_id is not None:
                raise ValidationError(
                    "loan templates do not carry a category",
                    field="category_id",
                    value=template.category_id,
                )
            if template.loan_direction is None:
                raise ValidationError("loan direction is required", field="loan_direction")
        else:
            if template.category_id is None:
                raise ValidationError(
                    f"{template.movement_type.value} templates require a category",
                    field="category_id",
                )
            await self._validator.check_category(household_id, template.category_id)

        if template.auto_generate or template.payer is not None:
            movement_date = template.start_date or self._clock()
            await self._validator.validate(
                household_id, movement_input_from_template(template, movement_date)
            )

    async def _raise_current_floor(
        self,
        template: RecurringMovementTemplate,
        actor_id: UUID,
    ) -> Optional[FloorChange]:
        if template.category_id is None or not template.is_active:
            return None
        return await self.recompute_floor(
            template.household_id, template.category_id, self._clock(), actor_id
        )

    def _record(self, change: Optional[FloorChange], actor_id: UUID) -> None:
        if change is not None:
            self.record_floor_change(change, actor_id)

    def _percentage_used(self, spent: Decimal, amount: Decimal) -> Decimal:
        if amount <= 0:
            return Decimal("100.00") if spent > 0 else Decimal("0.00")
        return (spent / amount * 100).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)

    def _status(self, percentage_used: Decimal) -> BudgetStatus:
        if percentage_used < self._settings.budget_warning_threshold:
            return BudgetStatus.UNDER_BUDGET
        if percentage_used < 100:
            return BudgetStatus.ON_TRACK
        return BudgetStatus.EXCEEDED

    @staticmethod
    def _parse_month(month) -> date:
        try:
            return parse_month(month)
        except (ValueError, AttributeError) as e:
            raise ValidationError(str(e), field="month", value=month)

    def _audit_failure(
        self,
        event_type: AuditEventType,
        entity_type: str,
        actor_id: UUID,
        household_id: Optional[UUID],
        error: LedgerError,
        entity_id: Optional[UUID] = None,
    ) -> None:
        logger.warning(
            "budget_operation_failed",
            operation=event_type.value,
            error_kind=error.kind,
            field=error.field,
        )
        self._audit.log_async(AuditEventBuilder.operation_failed(
            event_type=event_type,
            entity_type=entity_type,
            actor_id=actor_id,
            household_id=household_id,
            entity_id=entity_id,
            error_code=error.kind,
            error_message=error.message,
        ))
