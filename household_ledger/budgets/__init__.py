"""Recurring templates, monthly budgets and movement generation."""

from household_ledger.budgets.engine import BudgetEngine, FloorChange
from household_ledger.budgets.generator import GenerationResult, RecurringMovementGenerator
from household_ledger.budgets.templates import (
    first_occurrence,
    movement_input_from_template,
    next_occurrence,
)

__all__ = [
    "BudgetEngine",
    "FloorChange",
    "GenerationResult",
    "RecurringMovementGenerator",
    "first_occurrence",
    "movement_input_from_template",
    "next_occurrence",
]
