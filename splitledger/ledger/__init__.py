"""Shared-expense ledger core."""

from splitledger.ledger.balances import NEAR_ZERO, BalanceResolver
from splitledger.ledger.clock import Clock, FixedClock, SystemClock
from splitledger.ledger.directory import UserDirectory
from splitledger.ledger.exceptions import (
    AmountOutOfRangeError,
    DuplicateParticipantError,
    EmptyParticipantsError,
    ExpenseNotFoundError,
    LedgerError,
    LedgerValidationError,
    NonPositiveTotalError,
    ParticipantNotFoundError,
    ShareMismatchError,
    UnknownUserError,
)
from splitledger.ledger.expenses import ExpenseLedger
from splitledger.ledger.settlement import SettlementTracker
from splitledger.ledger.simplify import simplify_debts
from splitledger.ledger.splitting import calculate_shares

__all__ = [
    "NEAR_ZERO",
    "AmountOutOfRangeError",
    "BalanceResolver",
    "Clock",
    "DuplicateParticipantError",
    "EmptyParticipantsError",
    "ExpenseLedger",
    "ExpenseNotFoundError",
    "FixedClock",
    "LedgerError",
    "LedgerValidationError",
    "NonPositiveTotalError",
    "ParticipantNotFoundError",
    "SettlementTracker",
    "ShareMismatchError",
    "SystemClock",
    "UnknownUserError",
    "UserDirectory",
    "calculate_shares",
    "simplify_debts",
]
