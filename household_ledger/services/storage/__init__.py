"""
Storage Services Package

Provides abstract repository contracts and concrete implementations.
The ledger runs on any implementation of the contracts; the in-memory one
ships with the package, Google Sheets backs the optional audit trail and
movement mirror.
"""

from household_ledger.services.storage.interface import (
    AccountRepository,
    AuditStorageInterface,
    BudgetRepository,
    CategoryRepository,
    ConnectionError,
    CreditCardPaymentRepository,
    DuplicateError,
    HouseholdRepository,
    MovementMirrorInterface,
    MovementRepository,
    PaymentMethodRepository,
    RecordNotFoundError,
    StorageError,
    TemplateRepository,
    TransactionManager,
)
from household_ledger.services.storage.memory import InMemoryAuditStorage, InMemoryStore
from household_ledger.services.storage.google_sheets import (
    GoogleSheetsAuditStorage,
    GoogleSheetsClient,
    GoogleSheetsMovementMirror,
)

__all__ = [
    # Interfaces
    "AccountRepository",
    "AuditStorageInterface",
    "BudgetRepository",
    "CategoryRepository",
    "CreditCardPaymentRepository",
    "HouseholdRepository",
    "MovementMirrorInterface",
    "MovementRepository",
    "PaymentMethodRepository",
    "TemplateRepository",
    "TransactionManager",
    # Exceptions
    "ConnectionError",
    "DuplicateError",
    "RecordNotFoundError",
    "StorageError",
    # In-memory implementation
    "InMemoryAuditStorage",
    "InMemoryStore",
    # Google Sheets implementation
    "GoogleSheetsAuditStorage",
    "GoogleSheetsClient",
    "GoogleSheetsMovementMirror",
]
