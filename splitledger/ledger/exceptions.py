"""
Ledger Exceptions

Validation errors are caller-correctable and carry enough detail to fix
the request. None of them ever leaves a partially stored expense behind.
"""

from decimal import Decimal


class LedgerError(Exception):
    """Base exception for ledger operations."""
    pass


class LedgerValidationError(LedgerError):
    """The request cannot be recorded as submitted."""
    pass


class NonPositiveTotalError(LedgerValidationError):
    """Expense total is zero or negative."""

    def __init__(self, total: Decimal):
        self.total = total
        super().__init__(f"Total amount must be greater than zero (got {total})")


class AmountOutOfRangeError(LedgerValidationError):
    """An amount is not a finite number of at most MAX_AMOUNT."""

    def __init__(self, amount):
        self.amount = amount
        super().__init__(f"Amount out of range: {amount}")


class EmptyParticipantsError(LedgerValidationError):
    """No participants were supplied."""

    def __init__(self):
        super().__init__("An expense needs at least one participant")


class DuplicateParticipantError(LedgerValidationError):
    """The same user was listed twice."""

    def __init__(self, user_id: str):
        self.user_id = user_id
        super().__init__(f"Participant listed more than once: {user_id}")


class ShareMismatchError(LedgerValidationError):
    """Custom shares do not add up to the total."""

    def __init__(self, total: Decimal, share_sum: Decimal):
        self.total = total
        self.share_sum = share_sum
        self.remainder = total - share_sum
        super().__init__(
            f"Custom shares sum to {share_sum} but the total is {total} "
            f"(remainder {self.remainder})"
        )


class UnknownUserError(LedgerValidationError):
    """A payer or participant id does not resolve to a known user."""

    def __init__(self, user_id: str):
        self.user_id = user_id
        super().__init__(f"Unknown user: {user_id}")


class ExpenseNotFoundError(LedgerError):
    """No expense with the given id."""

    def __init__(self, expense_id: str):
        self.expense_id = expense_id
        super().__init__(f"Split expense with ID {expense_id} not found")


class ParticipantNotFoundError(LedgerError):
    """The user does not take part in the expense."""

    def __init__(self, expense_id: str, user_id: str):
        self.expense_id = expense_id
        self.user_id = user_id
        super().__init__(
            f"Participant with ID {user_id} not found in expense {expense_id}"
        )
