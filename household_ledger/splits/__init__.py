"""Split allocation package."""

from household_ledger.splits.calculator import Allocation, SplitCalculator

__all__ = ["Allocation", "SplitCalculator"]
