"""Services package."""

from household_ledger.services.storage import (
    AuditStorageInterface,
    ConnectionError,
    DuplicateError,
    GoogleSheetsAuditStorage,
    GoogleSheetsClient,
    GoogleSheetsMovementMirror,
    InMemoryStore,
    MovementMirrorInterface,
    RecordNotFoundError,
    StorageError,
    TransactionManager,
)

__all__ = [
    "AuditStorageInterface",
    "ConnectionError",
    "DuplicateError",
    "GoogleSheetsAuditStorage",
    "GoogleSheetsClient",
    "GoogleSheetsMovementMirror",
    "InMemoryStore",
    "MovementMirrorInterface",
    "RecordNotFoundError",
    "StorageError",
    "TransactionManager",
]
