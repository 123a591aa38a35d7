"""
Expense Ledger

Persists shared expenses and enforces their invariants at creation time.

READ POLICY: list_expenses fails soft. A record whose payer or any
participant no longer resolves (e.g. the user was deleted while still
referenced) is left out of the result and logged, instead of failing the
whole listing.
"""

from typing import Optional
from uuid import uuid4

import structlog

from splitledger.ledger.clock import Clock, SystemClock
from splitledger.ledger.directory import UserDirectory
from splitledger.ledger.splitting import calculate_shares
from splitledger.models.ledger import (
    ExpenseRequest,
    HydratedExpense,
    HydratedParticipant,
    ParticipantShare,
    SplitExpense,
    SplitUser,
    to_money,
)
from splitledger.services.storage import ExpenseStorageInterface
from splitledger.services.transactions import TransactionRecorderInterface


logger = structlog.get_logger(__name__)


class ExpenseLedger:
    """
    Creates, lists and deletes shared expenses.

    Share amounts come from the split calculator and never change after
    creation; only settlement flags move, and only through the
    SettlementTracker.
    """

    def __init__(
        self,
        storage: ExpenseStorageInterface,
        directory: UserDirectory,
        clock: Optional[Clock] = None,
        transaction_recorder: Optional[TransactionRecorderInterface] = None,
    ):
        self._storage = storage
        self._directory = directory
        self._clock = clock or SystemClock()
        self._transaction_recorder = transaction_recorder

    async def create_expense(self, request: ExpenseRequest) -> SplitExpense:
        """
        Validate, split and store a new expense.

        The payer's own entry starts settled; everyone else starts unsettled.

        Every referenced id is resolved before any amount is looked at.

        Raises:
            UnknownUserError: If the payer or a participant does not resolve
            AmountOutOfRangeError, NonPositiveTotalError,
            EmptyParticipantsError, DuplicateParticipantError,
            ShareMismatchError: from the split
        """
        await self._directory.require(request.paid_by_id)
        for participant in request.participants:
            await self._directory.require(participant.user_id)

        allocations = calculate_shares(
            request.total_amount,
            request.split_method,
            request.participants,
            payer_id=request.paid_by_id,
        )

        now = self._clock.now()
        expense = SplitExpense(
            id=str(uuid4()),
            title=request.title,
            date=request.date,
            total_amount=to_money(request.total_amount),
            paid_by_id=request.paid_by_id,
            split_method=request.split_method,
            participants=[
                ParticipantShare(
                    user_id=a.user_id,
                    share_amount=a.share_amount,
                    is_settled=a.user_id == request.paid_by_id,
                )
                for a in allocations
            ],
            created_at=now,
            updated_at=now,
        )

        await self._storage.save_expense(expense)
        logger.info(
            "expense_created",
            expense_id=expense.id,
            total_amount=str(expense.total_amount),
            participant_count=len(expense.participants),
            is_fully_settled=expense.is_fully_settled,
        )

        await self._record_personal_share(request, expense)
        return expense

    async def _record_personal_share(
        self,
        request: ExpenseRequest,
        expense: SplitExpense,
    ) -> None:
        """Mirror the primary holder's share into their own transactions."""
        details = request.personal_expense_details
        if details is None or self._transaction_recorder is None:
            return
        if not self._directory.is_primary(expense.paid_by_id):
            return

        own_share = expense.participant(expense.paid_by_id)
        if own_share is None or own_share.share_amount <= 0:
            return

        # The expense is already stored; a failure here must not undo it
        try:
            await self._transaction_recorder.record_expense(
                date=expense.date,
                amount=own_share.share_amount,
                description=f"My share of: {expense.title}",
                category_id=details.category_id,
                payment_method_id=details.payment_method_id,
                expense_type="want",
            )
        except Exception as e:
            logger.error(
                "personal_share_record_failed",
                expense_id=expense.id,
                error=str(e),
            )

    async def get_expense(self, expense_id: str) -> Optional[SplitExpense]:
        return await self._storage.get_expense(expense_id)

    async def list_expenses(self, limit: Optional[int] = None) -> list[HydratedExpense]:
        """
        Expenses newest first, with payer and participants resolved.

        The limit is applied to stored records before unresolvable ones
        are dropped, so fewer than `limit` results may come back.
        """
        expenses = await self._storage.list_expenses(limit)
        users = await self._directory.user_map()

        hydrated = []
        for expense in expenses:
            missing = [uid for uid in expense.referenced_user_ids if uid not in users]
            if missing:
                logger.warning(
                    "expense_dropped_unresolved_user",
                    expense_id=expense.id,
                    missing_user_ids=missing,
                )
                continue
            hydrated.append(self._hydrate(expense, users))
        return hydrated

    def _hydrate(
        self,
        expense: SplitExpense,
        users: dict[str, SplitUser],
    ) -> HydratedExpense:
        return HydratedExpense(
            id=expense.id,
            title=expense.title,
            date=expense.date,
            total_amount=expense.total_amount,
            paid_by=users[expense.paid_by_id],
            split_method=expense.split_method,
            participants=[
                HydratedParticipant(
                    user=users[p.user_id],
                    share_amount=p.share_amount,
                    is_settled=p.is_settled,
                )
                for p in expense.participants
            ],
            is_fully_settled=expense.is_fully_settled,
            version=expense.version,
            created_at=expense.created_at,
            updated_at=expense.updated_at,
        )

    async def delete_expense(self, expense_id: str) -> bool:
        """
        Hard delete. Returns whether a stored record was removed.
        """
        existed = await self._storage.delete_expense(expense_id)
        if existed:
            logger.info("expense_deleted", expense_id=expense_id)
        else:
            logger.info("expense_already_absent", expense_id=expense_id)
        return existed
