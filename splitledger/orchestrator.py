"""
Main Orchestrator for Split Ledger

This module ties together the ledger components and exposes the operations
the rest of the application uses:

    add_user / delete_user / list_users
    create_expense / list_expenses / delete_expense
    settle_participant_share
    resolve_balances / suggest_settlements

DESIGN DECISION: The orchestrator owns auditing, the components own the
rules. Each component receives its repositories explicitly, so tests and
alternative backends plug in without touching ledger logic.
"""

from typing import Optional
from uuid import UUID

import structlog

from splitledger.audit import AuditLogger, create_correlation_id
from splitledger.config import LedgerSettings, get_settings
from splitledger.ledger import (
    BalanceResolver,
    Clock,
    ExpenseLedger,
    LedgerValidationError,
    SettlementTracker,
    ShareMismatchError,
    SystemClock,
    UnknownUserError,
    UserDirectory,
    simplify_debts,
)
from splitledger.models.ledger import (
    DebtEdge,
    ExpenseRequest,
    HydratedExpense,
    SettlementSuggestion,
    SplitExpense,
    SplitUser,
    UserBalance,
)
from splitledger.services.storage import (
    ConcurrentModificationError,
    ExpenseStorageInterface,
    GoogleSheetsAuditStorage,
    GoogleSheetsClient,
    GoogleSheetsExpenseStorage,
    GoogleSheetsUserStorage,
    InMemoryAuditStorage,
    InMemoryExpenseStorage,
    InMemoryUserStorage,
    UserStorageInterface,
)
from splitledger.services.transactions import TransactionRecorderInterface


logger = structlog.get_logger(__name__)


class SplitLedgerService:
    """
    Facade over the shared-expense ledger.

    Failures surface as typed exceptions; deletes are idempotent and
    always report success.
    """

    def __init__(
        self,
        user_storage: UserStorageInterface,
        expense_storage: ExpenseStorageInterface,
        audit_logger: Optional[AuditLogger] = None,
        clock: Optional[Clock] = None,
        transaction_recorder: Optional[TransactionRecorderInterface] = None,
        settings: Optional[LedgerSettings] = None,
    ):
        self._settings = settings or get_settings().ledger
        clock = clock or SystemClock()

        self.directory = UserDirectory(user_storage, clock=clock, settings=self._settings)
        self.ledger = ExpenseLedger(
            expense_storage,
            self.directory,
            clock=clock,
            transaction_recorder=transaction_recorder,
        )
        self.settlements = SettlementTracker(expense_storage, clock=clock)
        self.balances = BalanceResolver(self.ledger, self.directory)
        self._audit_logger = audit_logger or AuditLogger()

    # -------------------------------------------------------------------------
    # Users
    # -------------------------------------------------------------------------

    async def add_user(
        self,
        name: str,
        correlation_id: Optional[UUID] = None,
    ) -> SplitUser:
        user = await self.directory.add_user(name)
        await self._audit_logger.log_user_added(
            user_id=user.id,
            name=user.name,
            correlation_id=correlation_id,
        )
        return user

    async def delete_user(
        self,
        user_id: str,
        correlation_id: Optional[UUID] = None,
    ) -> bool:
        """Always True: deleting an absent user is not an error."""
        existed = await self.directory.delete_user(user_id)
        await self._audit_logger.log_user_deleted(
            user_id=user_id,
            existed=existed,
            correlation_id=correlation_id,
        )
        return True

    async def list_users(self) -> list[SplitUser]:
        return await self.directory.list_users()

    # -------------------------------------------------------------------------
    # Expenses
    # -------------------------------------------------------------------------

    async def create_expense(
        self,
        request: ExpenseRequest,
        correlation_id: Optional[UUID] = None,
    ) -> SplitExpense:
        """
        Record a shared expense.

        Validation failures are audited and re-raised unchanged.
        """
        correlation_id = correlation_id or create_correlation_id()
        try:
            expense = await self.ledger.create_expense(request)
        except LedgerValidationError as e:
            details = {}
            if isinstance(e, ShareMismatchError):
                details = {
                    "total": str(e.total),
                    "share_sum": str(e.share_sum),
                    "remainder": str(e.remainder),
                }
            elif isinstance(e, UnknownUserError):
                details = {"user_id": e.user_id}
            await self._audit_logger.log_expense_rejected(
                title=request.title,
                error_type=type(e).__name__,
                error_message=str(e),
                details=details,
                correlation_id=correlation_id,
            )
            raise

        await self._audit_logger.log_expense_created(
            expense_id=expense.id,
            title=expense.title,
            amount=str(expense.total_amount),
            paid_by_id=expense.paid_by_id,
            participant_count=len(expense.participants),
            correlation_id=correlation_id,
        )
        return expense

    async def list_expenses(self, limit: Optional[int] = None) -> list[HydratedExpense]:
        if limit is None:
            limit = self._settings.default_list_limit
        return await self.ledger.list_expenses(limit)

    async def settle_participant_share(
        self,
        expense_id: str,
        user_id: str,
        correlation_id: Optional[UUID] = None,
    ) -> SplitExpense:
        """
        Settle one share. Only an actual flag change is audited; settling
        an already-settled share returns the expense untouched.
        """
        try:
            expense, changed = await self.settlements.settle(expense_id, user_id)
        except ConcurrentModificationError as e:
            await self._audit_logger.log_concurrent_modification(
                expense_id=expense_id,
                expected_version=e.expected_version,
                actual_version=e.actual_version,
                correlation_id=correlation_id,
            )
            raise

        if not changed:
            return expense

        entry = expense.participant(user_id)
        await self._audit_logger.log_share_settled(
            expense_id=expense_id,
            user_id=user_id,
            amount=str(entry.share_amount),
            fully_settled=expense.is_fully_settled,
            correlation_id=correlation_id,
        )
        return expense

    async def delete_expense(
        self,
        expense_id: str,
        correlation_id: Optional[UUID] = None,
    ) -> bool:
        """Always True: deleting an absent expense is not an error."""
        existed = await self.ledger.delete_expense(expense_id)
        await self._audit_logger.log_expense_deleted(
            expense_id=expense_id,
            existed=existed,
            correlation_id=correlation_id,
        )
        return True

    # -------------------------------------------------------------------------
    # Balances
    # -------------------------------------------------------------------------

    async def resolve_balances(self) -> list[UserBalance]:
        return await self.balances.resolve_balances()

    async def outstanding_debts(self) -> list[DebtEdge]:
        return await self.balances.outstanding_debts()

    async def suggest_settlements(self) -> list[SettlementSuggestion]:
        """Minimal-transfer proposal; does not change the ledger."""
        return simplify_debts(await self.balances.resolve_balances())


def create_app_components(
    backend: Optional[str] = None,
    transaction_recorder: Optional[TransactionRecorderInterface] = None,
) -> SplitLedgerService:
    """
    Factory function to wire the service for the configured backend.

    Args:
        backend: "memory" or "google_sheets"; defaults to STORAGE_BACKEND.
        transaction_recorder: Personal transaction store, if available.

    Raises:
        StorageError: The spreadsheet cannot be reached
        pydantic.ValidationError: Google Sheets settings are missing
    """
    backend = backend or get_settings().storage.backend

    if backend == "google_sheets":
        sheets_client = GoogleSheetsClient()
        # Open the spreadsheet now so a bad setup fails here, not on first use
        sheets_client.get_spreadsheet()
        user_storage = GoogleSheetsUserStorage(sheets_client)
        expense_storage = GoogleSheetsExpenseStorage(sheets_client)
        audit_logger = AuditLogger(GoogleSheetsAuditStorage(sheets_client))
    elif backend == "memory":
        user_storage = InMemoryUserStorage()
        expense_storage = InMemoryExpenseStorage()
        audit_logger = AuditLogger(InMemoryAuditStorage())
    else:
        raise ValueError(f"Unknown storage backend: {backend}")

    logger.info("components_created", backend=backend)
    return SplitLedgerService(
        user_storage=user_storage,
        expense_storage=expense_storage,
        audit_logger=audit_logger,
        transaction_recorder=transaction_recorder,
    )
