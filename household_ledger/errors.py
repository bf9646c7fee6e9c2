"""
Ledger Error Taxonomy

Every failure the core reports to its caller is a LedgerError subclass.
Each one carries a stable `kind` plus the offending field and value so the
excluded HTTP layer can render a field-level message without parsing text.

DESIGN DECISION: "not found" and "not authorized" share one message.
A caller probing another household's ids learns nothing from the wording,
only the kind differs for internal logging.
"""

from decimal import Decimal
from typing import Any, Optional


ACCESS_DENIED_MESSAGE = "resource not found or access denied"


class LedgerError(Exception):
    """Base exception for all ledger operations."""

    kind: str = "ledger_error"

    def __init__(
        self,
        message: str,
        field: Optional[str] = None,
        value: Any = None,
    ):
        super().__init__(message)
        self.message = message
        self.field = field
        self.value = value

    def to_dict(self) -> dict:
        """Structured form for API responses and audit details."""
        return {
            "kind": self.kind,
            "message": self.message,
            "field": self.field,
            "value": None if self.value is None else str(self.value),
        }


class ValidationError(LedgerError):
    """A required field is missing or malformed."""

    kind = "validation_error"


class InvalidAmountError(ValidationError):
    """Amount is zero or negative."""

    kind = "invalid_amount"

    def __init__(self, value: Any = None, field: str = "amount"):
        super().__init__("amount must be positive", field=field, value=value)


class PercentageSumInvalidError(ValidationError):
    """Participant percentages do not add up to 100%."""

    kind = "percentage_sum_invalid"

    def __init__(self, actual: Decimal):
        self.actual = actual
        super().__init__(
            f"participant percentages must sum to 100%, got {actual * 100:.4f}%",
            field="participants",
            value=actual,
        )


class AmountSumInvalidError(ValidationError):
    """Participant exact amounts do not add up to the movement total."""

    kind = "amount_sum_invalid"

    def __init__(self, actual: Decimal, expected: Decimal):
        self.actual = actual
        self.expected = expected
        super().__init__(
            f"participant amounts must sum to {expected}, got {actual}",
            field="participants",
            value=actual,
        )


class SamePartyInvalidError(ValidationError):
    """Payer and counterparty resolve to the same person."""

    kind = "same_party_invalid"

    def __init__(self, field: str = "counterparty"):
        super().__init__(
            "payer and counterparty must be different",
            field=field,
        )


class NotFoundError(LedgerError):
    """Referenced entity is absent or belongs to another household."""

    kind = "not_found"

    def __init__(self, field: Optional[str] = None, value: Any = None):
        super().__init__(ACCESS_DENIED_MESSAGE, field=field, value=value)


class NotAuthorizedError(LedgerError):
    """Membership, role, or ownership check failed."""

    kind = "not_authorized"

    def __init__(self, field: Optional[str] = None, value: Any = None):
        super().__init__(ACCESS_DENIED_MESSAGE, field=field, value=value)


class InvalidStateError(LedgerError):
    """The operation would break a household invariant (e.g. last owner)."""

    kind = "invalid_state"


class CreditCardNotFoundError(LedgerError):
    kind = "credit_card_not_found"

    def __init__(self, value: Any = None):
        super().__init__("credit card not found", field="credit_card_id", value=value)


class NotACreditCardError(ValidationError):
    kind = "not_a_credit_card"

    def __init__(self, value: Any = None):
        super().__init__(
            "payment method is not a credit card",
            field="credit_card_id",
            value=value,
        )


class SourceMustBeSavingsError(ValidationError):
    kind = "source_must_be_savings"

    def __init__(self, value: Any = None):
        super().__init__(
            "source account must be a savings account",
            field="source_account_id",
            value=value,
        )


class BudgetBelowTemplatesError(ValidationError):
    """Budget amount is lower than the sum of active recurring templates."""

    kind = "budget_below_templates"

    def __init__(self, amount: Decimal, templates_sum: Decimal):
        self.amount = amount
        self.templates_sum = templates_sum
        super().__init__(
            f"budget {amount} is below the sum of active templates {templates_sum}",
            field="amount",
            value=amount,
        )
