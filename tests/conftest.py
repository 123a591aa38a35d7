"""
Shared fixtures.

Everything runs against in-memory storage and a fixed clock; no network.
"""

import asyncio
from datetime import date, datetime, timezone
from decimal import Decimal

import pytest

from splitledger.audit import AuditLogger
from splitledger.config import LedgerSettings
from splitledger.ledger import (
    BalanceResolver,
    ExpenseLedger,
    FixedClock,
    SettlementTracker,
    UserDirectory,
)
from splitledger.models.ledger import (
    ExpenseRequest,
    ParticipantInput,
    SplitMethod,
)
from splitledger.orchestrator import SplitLedgerService
from splitledger.services.storage import (
    InMemoryAuditStorage,
    InMemoryExpenseStorage,
    InMemoryUserStorage,
)
from splitledger.services.transactions import TransactionRecorderInterface


class FakeTransactionRecorder(TransactionRecorderInterface):
    """Collects personal transactions instead of storing them."""

    def __init__(self, fail: bool = False):
        self.records: list[dict] = []
        self._fail = fail

    async def record_expense(self, **kwargs) -> str:
        if self._fail:
            raise RuntimeError("transaction store unavailable")
        self.records.append(kwargs)
        return f"txn-{len(self.records)}"


@pytest.fixture
def clock():
    return FixedClock(datetime(2024, 6, 1, 12, 0, tzinfo=timezone.utc))


@pytest.fixture
def ledger_settings():
    return LedgerSettings(primary_user_id="me", primary_user_name="Me")


@pytest.fixture
def user_storage():
    return InMemoryUserStorage()


@pytest.fixture
def expense_storage():
    return InMemoryExpenseStorage()


@pytest.fixture
def audit_storage():
    return InMemoryAuditStorage()


@pytest.fixture
def directory(user_storage, clock, ledger_settings):
    return UserDirectory(user_storage, clock=clock, settings=ledger_settings)


@pytest.fixture
def ledger(expense_storage, directory, clock):
    return ExpenseLedger(expense_storage, directory, clock=clock)


@pytest.fixture
def tracker(expense_storage, clock):
    return SettlementTracker(expense_storage, clock=clock)


@pytest.fixture
def resolver(ledger, directory):
    return BalanceResolver(ledger, directory)


@pytest.fixture
def group(directory):
    """Alice, Bob and Carol, keyed by first letter."""
    async def add_all():
        return {
            name[0]: await directory.add_user(name)
            for name in ("Alice", "Bob", "Carol")
        }
    return asyncio.run(add_all())


@pytest.fixture
def service(user_storage, expense_storage, audit_storage, clock, ledger_settings):
    return SplitLedgerService(
        user_storage=user_storage,
        expense_storage=expense_storage,
        audit_logger=AuditLogger(audit_storage),
        clock=clock,
        settings=ledger_settings,
    )


@pytest.fixture
def make_request():
    """Factory for expense requests."""
    def build(
        total,
        paid_by,
        participants,
        method=SplitMethod.EQUALLY,
        shares=None,
        title="Dinner",
        on=date(2024, 5, 20),
        **extra,
    ) -> ExpenseRequest:
        shares = shares or {}
        return ExpenseRequest(
            title=title,
            total_amount=Decimal(str(total)),
            date=on,
            paid_by_id=paid_by,
            split_method=method,
            participants=[
                ParticipantInput(
                    user_id=user_id,
                    custom_share=(
                        Decimal(str(shares[user_id])) if user_id in shares else None
                    ),
                )
                for user_id in participants
            ],
            **extra,
        )
    return build


@pytest.fixture
def recorder():
    return FakeTransactionRecorder()


@pytest.fixture
def failing_recorder():
    return FakeTransactionRecorder(fail=True)
