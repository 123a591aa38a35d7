"""Services package."""

from splitledger.services.storage import (
    AuditStorageInterface,
    ConcurrentModificationError,
    ConnectionError,
    DuplicateError,
    ExpenseStorageInterface,
    GoogleSheetsAuditStorage,
    GoogleSheetsClient,
    GoogleSheetsExpenseStorage,
    GoogleSheetsUserStorage,
    InMemoryAuditStorage,
    InMemoryExpenseStorage,
    InMemoryUserStorage,
    NotFoundError,
    StorageError,
    UserStorageInterface,
)
from splitledger.services.transactions import TransactionRecorderInterface

__all__ = [
    # Storage services
    "AuditStorageInterface",
    "ConcurrentModificationError",
    "ConnectionError",
    "DuplicateError",
    "ExpenseStorageInterface",
    "GoogleSheetsAuditStorage",
    "GoogleSheetsClient",
    "GoogleSheetsExpenseStorage",
    "GoogleSheetsUserStorage",
    "InMemoryAuditStorage",
    "InMemoryExpenseStorage",
    "InMemoryUserStorage",
    "NotFoundError",
    "StorageError",
    "UserStorageInterface",
    # Personal transaction store
    "TransactionRecorderInterface",
]
