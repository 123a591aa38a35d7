"""
Abstract Storage Interface

DESIGN DECISION: We define an abstract interface for storage operations.
This allows us to:
1. Swap Google Sheets for a real database later
2. Use in-memory storage for testing
3. Keep ledger logic decoupled from storage implementation

The interface is intentionally minimal: get, put, delete and list.
Repositories are constructed explicitly and passed into the ledger
components; there is no module-level cached client.
"""

from abc import ABC, abstractmethod
from typing import Optional

from splitledger.models.audit import AuditEvent
from splitledger.models.ledger import SplitExpense, SplitUser


class UserStorageInterface(ABC):
    """Id-keyed storage of group members."""

    @abstractmethod
    async def get_user(self, user_id: str) -> Optional[SplitUser]:
        """
        Retrieve a user by id.

        Returns:
            The user if found, None otherwise
        """
        pass

    @abstractmethod
    async def save_user(self, user: SplitUser) -> bool:
        """
        Insert a new user.

        Raises:
            DuplicateError: If a user with the same id exists
            StorageError: If save fails
        """
        pass

    @abstractmethod
    async def delete_user(self, user_id: str) -> bool:
        """
        Delete a user by id.

        Returns:
            True if a record was removed, False if none existed
        """
        pass

    @abstractmethod
    async def list_users(self) -> list[SplitUser]:
        """List every stored user (no particular order)."""
        pass


class ExpenseStorageInterface(ABC):
    """
    Id-keyed storage of shared expenses.

    Updates are version-checked: the caller passes the version it read and
    the write is refused if another writer got there first.
    """

    @abstractmethod
    async def get_expense(self, expense_id: str) -> Optional[SplitExpense]:
        """
        Retrieve an expense by id.

        Returns:
            The expense if found, None otherwise
        """
        pass

    @abstractmethod
    async def save_expense(self, expense: SplitExpense) -> bool:
        """
        Insert a new expense.

        Raises:
            DuplicateError: If an expense with the same id exists
            StorageError: If save fails
        """
        pass

    @abstractmethod
    async def update_expense(
        self,
        expense: SplitExpense,
        expected_version: int,
    ) -> SplitExpense:
        """
        Replace a stored expense if its version still matches.

        Args:
            expense: The new record contents
            expected_version: Version observed when the record was read

        Returns:
            The stored record, carrying version expected_version + 1

        Raises:
            NotFoundError: If the expense no longer exists
            ConcurrentModificationError: If the stored version differs
        """
        pass

    @abstractmethod
    async def delete_expense(self, expense_id: str) -> bool:
        """
        Delete an expense by id.

        Returns:
            True if a record was removed, False if none existed
        """
        pass

    @abstractmethod
    async def list_expenses(self, limit: Optional[int] = None) -> list[SplitExpense]:
        """
        List expenses newest first (by expense date, then creation time).

        Args:
            limit: Maximum number of results, None for all
        """
        pass


class AuditStorageInterface(ABC):
    """
    Abstract interface for audit log storage.

    Audit logs are append-only - we never delete or modify them.
    """

    @abstractmethod
    async def append_event(self, event: AuditEvent) -> bool:
        """
        Append an audit event to the log.

        Returns:
            True if logged successfully
        """
        pass

    @abstractmethod
    async def get_events_by_entity(
        self,
        entity_type: str,
        entity_id: str,
    ) -> list[AuditEvent]:
        """
        Get all events for a specific entity, in chronological order.
        """
        pass

    @abstractmethod
    async def get_recent_events(
        self,
        limit: int = 100,
    ) -> list[AuditEvent]:
        """
        Get the most recent audit events (newest first).
        """
        pass


def sort_newest_first(expenses: list[SplitExpense]) -> list[SplitExpense]:
    """Order shared by every backend's list_expenses."""
    return sorted(
        expenses,
        key=lambda e: (e.date, e.created_at),
        reverse=True,
    )


class StorageError(Exception):
    """Base exception for storage operations."""
    pass


class NotFoundError(StorageError):
    """Entity not found in storage."""
    pass


class DuplicateError(StorageError):
    """Attempted to insert a duplicate entity."""
    pass


class ConnectionError(StorageError):
    """Could not connect to storage backend."""
    pass


class ConcurrentModificationError(StorageError):
    """The record changed between read and write."""

    def __init__(
        self,
        entity_id: str,
        expected_version: int,
        actual_version: Optional[int],
    ):
        self.entity_id = entity_id
        self.expected_version = expected_version
        self.actual_version = actual_version
        super().__init__(
            f"Record {entity_id} was modified concurrently "
            f"(expected version {expected_version}, found {actual_version}); "
            "reload and retry"
        )
