"""Read-side queries derived from stored movements."""

from household_ledger.queries.debts import DebtConsolidator

__all__ = ["DebtConsolidator"]
