"""
In-Memory Storage Implementation

Dict-backed repositories for tests and for running the app without
any external service. Records are deep-copied on the way in and out so
callers can never mutate stored state by accident.
"""

import threading
from typing import Optional

from splitledger.models.audit import AuditEvent
from splitledger.models.ledger import SplitExpense, SplitUser
from splitledger.services.storage.interface import (
    AuditStorageInterface,
    ConcurrentModificationError,
    DuplicateError,
    ExpenseStorageInterface,
    NotFoundError,
    UserStorageInterface,
    sort_newest_first,
)


class InMemoryUserStorage(UserStorageInterface):
    """Users keyed by id."""

    def __init__(self):
        self._users: dict[str, SplitUser] = {}

    async def get_user(self, user_id: str) -> Optional[SplitUser]:
        user = self._users.get(user_id)
        return user.model_copy(deep=True) if user else None

    async def save_user(self, user: SplitUser) -> bool:
        if user.id in self._users:
            raise DuplicateError(f"User already exists: {user.id}")
        self._users[user.id] = user.model_copy(deep=True)
        return True

    async def delete_user(self, user_id: str) -> bool:
        return self._users.pop(user_id, None) is not None

    async def list_users(self) -> list[SplitUser]:
        return [u.model_copy(deep=True) for u in self._users.values()]


class InMemoryExpenseStorage(ExpenseStorageInterface):
    """
    Expenses keyed by id.

    The version check and the write happen under one thread lock, so two
    settles racing on the same expense cannot both succeed, whether they
    run as tasks on one event loop or on separate threads with their own
    loops (as Streamlit sessions do). Nothing awaits while the lock is held.
    """

    def __init__(self):
        self._expenses: dict[str, SplitExpense] = {}
        self._lock = threading.Lock()

    async def get_expense(self, expense_id: str) -> Optional[SplitExpense]:
        expense = self._expenses.get(expense_id)
        return expense.model_copy(deep=True) if expense else None

    async def save_expense(self, expense: SplitExpense) -> bool:
        with self._lock:
            if expense.id in self._expenses:
                raise DuplicateError(f"Expense already exists: {expense.id}")
            self._expenses[expense.id] = expense.model_copy(deep=True)
        return True

    async def update_expense(
        self,
        expense: SplitExpense,
        expected_version: int,
    ) -> SplitExpense:
        with self._lock:
            current = self._expenses.get(expense.id)
            if current is None:
                raise NotFoundError(f"Expense not found: {expense.id}")
            if current.version != expected_version:
                raise ConcurrentModificationError(
                    expense.id, expected_version, current.version
                )
            stored = expense.model_copy(update={"version": expected_version + 1}, deep=True)
            self._expenses[expense.id] = stored
        return stored.model_copy(deep=True)

    async def delete_expense(self, expense_id: str) -> bool:
        with self._lock:
            return self._expenses.pop(expense_id, None) is not None

    async def list_expenses(self, limit: Optional[int] = None) -> list[SplitExpense]:
        expenses = sort_newest_first(list(self._expenses.values()))
        if limit is not None:
            expenses = expenses[:limit]
        return [e.model_copy(deep=True) for e in expenses]


class InMemoryAuditStorage(AuditStorageInterface):
    """Append-only list of audit events."""

    def __init__(self):
        self._events: list[AuditEvent] = []

    async def append_event(self, event: AuditEvent) -> bool:
        self._events.append(event)
        return True

    async def get_events_by_entity(
        self,
        entity_type: str,
        entity_id: str,
    ) -> list[AuditEvent]:
        events = [
            e for e in self._events
            if e.entity_type == entity_type and e.entity_id == entity_id
        ]
        events.sort(key=lambda e: e.timestamp)
        return events

    async def get_recent_events(
        self,
        limit: int = 100,
    ) -> list[AuditEvent]:
        events = sorted(self._events, key=lambda e: e.timestamp, reverse=True)
        return events[:limit]
