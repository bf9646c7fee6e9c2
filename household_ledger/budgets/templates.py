"""
Recurring template helpers: schedule arithmetic and movement synthesis.

Shared by the budget engine (templates are validated as the movement they
prefigure) and the recurring generator (which creates that movement).
"""

from datetime import date, timedelta
from typing import Optional, Union

from pydantic import ValidationError as SchemaError

from household_ledger.errors import ValidationError
from household_ledger.models.budget import (
    RecurrencePattern,
    RecurringMovementTemplate,
    TemplateInput,
)
from household_ledger.models.common import clamp_day, next_month
from household_ledger.models.movement import (
    HouseholdMovementInput,
    LoanMovementInput,
    MovementInput,
    MovementType,
    SplitMovementInput,
)

TemplateLike = Union[TemplateInput, RecurringMovementTemplate]


def _day_of_year(year: int, day: int) -> date:
    return date(year, 1, 1) + timedelta(days=day - 1)


def first_occurrence(template: TemplateLike) -> Optional[date]:
    """
    First scheduled date on or after the template's start date.

    MONTHLY days past the end of a month land on its last day.
    """
    start = template.start_date
    pattern = template.recurrence_pattern
    if start is None or pattern is None:
        return None

    if pattern == RecurrencePattern.MONTHLY:
        candidate = clamp_day(start.year, start.month, template.day_of_month)
        if candidate < start:
            following = next_month(start.replace(day=1))
            candidate = clamp_day(following.year, following.month, template.day_of_month)
        return candidate

    if pattern == RecurrencePattern.YEARLY:
        candidate = _day_of_year(start.year, template.day_of_year)
        if candidate < start:
            candidate = _day_of_year(start.year + 1, template.day_of_year)
        return candidate

    return start


def next_occurrence(template: TemplateLike, after: date) -> Optional[date]:
    """
    The occurrence following `after`.

    MONTHLY: same day next month, clamped to month end.
    YEARLY: the template's day of year, next year.
    ONE_TIME: None, the template is done.
    """
    pattern = template.recurrence_pattern
    if pattern == RecurrencePattern.MONTHLY:
        following = next_month(after.replace(day=1))
        return clamp_day(following.year, following.month, template.day_of_month)
    if pattern == RecurrencePattern.YEARLY:
        return _day_of_year(after.year + 1, template.day_of_year)
    return None


def movement_input_from_template(
    template: TemplateLike,
    movement_date: date,
) -> MovementInput:
    """
    Build the movement a template describes, dated `movement_date`.

    Raises:
        ValidationError: the template lacks fields its movement type needs
    """
    common = dict(
        description=template.name,
        amount=template.amount,
        movement_date=movement_date,
        template_id=getattr(template, "id", None),
    )
    try:
        if template.movement_type == MovementType.HOUSEHOLD:
            return HouseholdMovementInput(
                payer=template.payer,
                category_id=template.category_id,
                payment_method_id=template.payment_method_id,
                **common,
            )
        if template.movement_type == MovementType.SPLIT:
            return SplitMovementInput(
                payer=template.payer,
                category_id=template.category_id,
                payment_method_id=template.payment_method_id,
                split_mode=template.split_mode,
                participants=template.participants,
                **common,
            )
        if template.movement_type == MovementType.LOAN:
            return LoanMovementInput(
                direction=template.loan_direction,
                payer=template.payer,
                counterparty=template.counterparty,
                payment_method_id=template.payment_method_id,
                receiver_account_id=template.receiver_account_id,
                **common,
            )
    except SchemaError as e:
        first = e.errors()[0]
        raise ValidationError(
            f"template does not describe a complete movement: {first['msg']}",
            field=".".join(str(part) for part in first["loc"]),
        )
    raise ValidationError(
        f"templates cannot describe {template.movement_type.value} movements",
        field="movement_type",
    )
