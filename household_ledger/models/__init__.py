"""
Data Models Package

This package contains all Pydantic models used by the household ledger.
All data flowing through the system must conform to these schemas.
"""

from household_ledger.models.audit import (
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
)
from household_ledger.models.budget import (
    BudgetStatus,
    BudgetWithSpent,
    MonthlyBudget,
    MonthlyBudgetReport,
    PreFillData,
    RecurrencePattern,
    RecurringMovementTemplate,
    TemplateInput,
    TemplateUpdate,
)
from household_ledger.models.common import (
    format_month,
    parse_month,
    previous_month,
    to_money,
)
from household_ledger.models.credit_card import (
    CreateCreditCardPaymentInput,
    CreditCardPayment,
    CreditCardPaymentFilter,
    CreditCardPaymentListResult,
)
from household_ledger.models.debt import (
    DebtBalance,
    DebtConsolidation,
    DebtMovementDetail,
    DebtSummary,
)
from household_ledger.models.household import (
    Account,
    AccountType,
    Category,
    CategoryGroup,
    Contact,
    Household,
    HouseholdMember,
    HouseholdRole,
    PaymentMethod,
    PaymentMethodType,
)
from household_ledger.models.movement import (
    HouseholdMovementInput,
    Identity,
    IdentityKind,
    IncomeMovementInput,
    IncomeType,
    LoanDirection,
    LoanMovementInput,
    Movement,
    MovementFilter,
    MovementInput,
    MovementListResult,
    MovementParticipant,
    MovementType,
    ParticipantRef,
    ParticipantShareInput,
    SplitMode,
    SplitMovementInput,
)

__all__ = [
    # Audit models
    "AuditEvent",
    "AuditEventBuilder",
    "AuditEventType",
    "AuditSeverity",
    # Budget and template models
    "BudgetStatus",
    "BudgetWithSpent",
    "MonthlyBudget",
    "MonthlyBudgetReport",
    "PreFillData",
    "RecurrencePattern",
    "RecurringMovementTemplate",
    "TemplateInput",
    "TemplateUpdate",
    # Helpers
    "format_month",
    "parse_month",
    "previous_month",
    "to_money",
    # Credit card models
    "CreateCreditCardPaymentInput",
    "CreditCardPayment",
    "CreditCardPaymentFilter",
    "CreditCardPaymentListResult",
    # Debt models
    "DebtBalance",
    "DebtConsolidation",
    "DebtMovementDetail",
    "DebtSummary",
    # Household models
    "Account",
    "AccountType",
    "Category",
    "CategoryGroup",
    "Contact",
    "Household",
    "HouseholdMember",
    "HouseholdRole",
    "PaymentMethod",
    "PaymentMethodType",
    # Movement models
    "HouseholdMovementInput",
    "Identity",
    "IdentityKind",
    "IncomeMovementInput",
    "IncomeType",
    "LoanDirection",
    "LoanMovementInput",
    "Movement",
    "MovementFilter",
    "MovementInput",
    "MovementListResult",
    "MovementParticipant",
    "MovementType",
    "ParticipantRef",
    "ParticipantShareInput",
    "SplitMode",
    "SplitMovementInput",
]
