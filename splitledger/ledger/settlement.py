"""
Settlement Tracker

Marks one participant's share as settled. Settling only ever moves a flag
from False to True; settling an already-settled share is a no-op and does
not touch storage.

The write is version-checked: if another writer updated the expense after
we read it, the repository raises ConcurrentModificationError and nothing
is written. Callers reload and retry.
"""

from typing import Optional

import structlog

from splitledger.ledger.clock import Clock, SystemClock
from splitledger.ledger.exceptions import (
    ExpenseNotFoundError,
    ParticipantNotFoundError,
)
from splitledger.models.ledger import SplitExpense
from splitledger.services.storage import ExpenseStorageInterface, NotFoundError


logger = structlog.get_logger(__name__)


class SettlementTracker:
    """Read-modify-write of a single participant's settlement flag."""

    def __init__(
        self,
        storage: ExpenseStorageInterface,
        clock: Optional[Clock] = None,
    ):
        self._storage = storage
        self._clock = clock or SystemClock()

    async def settle_participant_share(
        self,
        expense_id: str,
        user_id: str,
    ) -> SplitExpense:
        """Settle `user_id`'s share of `expense_id`; returns the stored expense."""
        expense, _ = await self.settle(expense_id, user_id)
        return expense

    async def settle(
        self,
        expense_id: str,
        user_id: str,
    ) -> tuple[SplitExpense, bool]:
        """
        Settle `user_id`'s share of `expense_id`.

        Returns:
            (expense as stored after the call, whether a write happened)

        Raises:
            ExpenseNotFoundError: No such expense (or deleted mid-update)
            ParticipantNotFoundError: The user is not a participant
            ConcurrentModificationError: Lost the race to another writer
        """
        expense = await self._storage.get_expense(expense_id)
        if expense is None:
            raise ExpenseNotFoundError(expense_id)

        entry = expense.participant(user_id)
        if entry is None:
            raise ParticipantNotFoundError(expense_id, user_id)

        if entry.is_settled:
            logger.info("share_already_settled", expense_id=expense_id, user_id=user_id)
            return expense, False

        participants = [
            p.model_copy(update={"is_settled": True}) if p.user_id == user_id else p
            for p in expense.participants
        ]
        updated = expense.model_copy(
            update={"participants": participants, "updated_at": self._clock.now()}
        )

        try:
            stored = await self._storage.update_expense(
                updated, expected_version=expense.version
            )
        except NotFoundError:
            raise ExpenseNotFoundError(expense_id)

        logger.info(
            "share_settled",
            expense_id=expense_id,
            user_id=user_id,
            version=stored.version,
            is_fully_settled=stored.is_fully_settled,
        )
        return stored, True
