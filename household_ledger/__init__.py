"""
Household Ledger - Source Package

The movement ledger and split-settlement engine of a household finance
tracker. Household members record shared and personal movements, divide
costs among members and contacts, and keep monthly category budgets that
recurring templates push upward.

DESIGN PRINCIPLES:
1. Validate and authorize before any write
2. Every write is one atomic unit (movement + participants + budget floor)
3. Money is Decimal, never float
4. Every mutation is auditable, and the audit trail never blocks a caller
5. Storage layer is swappable
"""

__version__ = "1.0.0"
__author__ = "Household Ledger Team"
