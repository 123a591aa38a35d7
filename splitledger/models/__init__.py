"""
Data Models Package

This package contains all Pydantic models used in the Split Ledger system.
All data flowing through the system must conform to these schemas.
"""

from splitledger.models.ledger import (
    MAX_AMOUNT,
    MINOR_UNIT,
    SHARE_TOLERANCE,
    DebtEdge,
    ExpenseRequest,
    HydratedExpense,
    HydratedParticipant,
    OwedByEntry,
    OwesEntry,
    ParticipantInput,
    ParticipantShare,
    PersonalExpenseDetails,
    SettlementSuggestion,
    ShareAllocation,
    SplitExpense,
    SplitMethod,
    SplitUser,
    SplitUserInput,
    UserBalance,
    to_money,
)
from splitledger.models.audit import (
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
)

__all__ = [
    # Ledger models
    "MAX_AMOUNT",
    "MINOR_UNIT",
    "SHARE_TOLERANCE",
    "DebtEdge",
    "ExpenseRequest",
    "HydratedExpense",
    "HydratedParticipant",
    "OwedByEntry",
    "OwesEntry",
    "ParticipantInput",
    "ParticipantShare",
    "PersonalExpenseDetails",
    "SettlementSuggestion",
    "ShareAllocation",
    "SplitExpense",
    "SplitMethod",
    "SplitUser",
    "SplitUserInput",
    "UserBalance",
    "to_money",
    # Audit models
    "AuditEvent",
    "AuditEventBuilder",
    "AuditEventType",
    "AuditSeverity",
]
