"""
Personal Transaction Store Interface

The personal finance tracker owns the primary holder's own transaction
history. The ledger only needs to push one kind of record into it: the
holder's share of a group expense they paid for.
"""

from abc import ABC, abstractmethod
from datetime import date
from decimal import Decimal


class TransactionRecorderInterface(ABC):
    """Write access to the personal transaction store."""

    @abstractmethod
    async def record_expense(
        self,
        date: date,
        amount: Decimal,
        description: str,
        category_id: str,
        payment_method_id: str,
        expense_type: str = "want",
    ) -> str:
        """
        Record an expense transaction.

        Returns:
            The id of the created transaction
        """
        pass
