"""Credit card payment package."""

from household_ledger.credit_cards.service import CreditCardPaymentService

__all__ = ["CreditCardPaymentService"]
