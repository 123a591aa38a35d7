"""
Core Data Models for the Shared-Expense Ledger

These models define the strict schemas for all data flowing through the ledger.
They are designed to:
1. Enforce the expense invariants at construction time
2. Provide clear validation error messages
3. Be serializable for storage and logging

DESIGN DECISION: Amounts are Decimal, quantized to the currency minor unit.
Floats would make the share-sum invariant depend on binary rounding noise.
"""

from datetime import date, datetime
from decimal import ROUND_HALF_UP, Decimal
from enum import Enum
from typing import Annotated, Optional, Union

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    computed_field,
    model_validator,
)


# Smallest currency unit (paise / cents)
MINOR_UNIT = Decimal("0.01")

# Maximum allowed gap between the sum of shares and the expense total
SHARE_TOLERANCE = Decimal("0.01")

# Largest amount accepted for a total or a share
MAX_AMOUNT = Decimal("999999999999.99")


def to_money(value: Union[Decimal, int, float, str]) -> Decimal:
    """Quantize a value to the currency minor unit (half-up)."""
    if not isinstance(value, Decimal):
        value = Decimal(str(value))
    return value.quantize(MINOR_UNIT, rounding=ROUND_HALF_UP)


Money = Annotated[Decimal, Field(decimal_places=2)]


# =============================================================================
# ENUMS
# =============================================================================

class SplitMethod(str, Enum):
    """How an expense total is divided among participants."""
    EQUALLY = "equally"
    CUSTOM = "custom"


# =============================================================================
# USERS
# =============================================================================

class SplitUserInput(BaseModel):
    """Payload for adding a group member."""
    model_config = ConfigDict(str_strip_whitespace=True)

    name: str = Field(
        ...,
        min_length=1,
        max_length=100,
        description="Display name of the group member"
    )


class SplitUser(BaseModel):
    """A participant identity that can pay for or owe on an expense."""
    model_config = ConfigDict(str_strip_whitespace=True)

    id: str = Field(..., min_length=1)
    name: str = Field(..., min_length=1, max_length=100)
    created_at: datetime
    updated_at: datetime


# =============================================================================
# EXPENSE INPUT
# =============================================================================

class ParticipantInput(BaseModel):
    """One participant as submitted by the caller."""
    model_config = ConfigDict(str_strip_whitespace=True)

    user_id: str = Field(..., min_length=1)
    custom_share: Optional[Decimal] = Field(
        default=None,
        ge=0,
        description="Share amount, only read for custom splits"
    )


class PersonalExpenseDetails(BaseModel):
    """
    Categorisation used when the primary holder's own share is mirrored
    into their personal transaction history.
    """
    category_id: str = Field(..., min_length=1)
    payment_method_id: str = Field(..., min_length=1)


class ExpenseRequest(BaseModel):
    """
    Request to record a shared expense.

    Amount and participant rules are NOT enforced here: the split calculator
    raises typed ledger errors for those so callers can react to each case.
    """
    model_config = ConfigDict(str_strip_whitespace=True)

    title: str = Field(..., min_length=1, max_length=200)
    total_amount: Decimal
    date: date
    paid_by_id: str = Field(..., min_length=1)
    split_method: SplitMethod = SplitMethod.EQUALLY
    participants: list[ParticipantInput] = Field(default_factory=list)
    personal_expense_details: Optional[PersonalExpenseDetails] = None


class ShareAllocation(BaseModel):
    """Output of the split calculator for one participant."""
    model_config = ConfigDict(frozen=True)

    user_id: str
    share_amount: Money


# =============================================================================
# STORED EXPENSE
# =============================================================================

class ParticipantShare(BaseModel):
    """
    A participant's share within a stored expense.

    Frozen: the share amount never changes after creation. Settling a share
    replaces the entry with a settled copy.
    """
    model_config = ConfigDict(frozen=True)

    user_id: str = Field(..., min_length=1)
    share_amount: Money = Field(..., ge=0)
    is_settled: bool = False


class SplitExpense(BaseModel):
    """
    One shared financial event, as persisted.

    Invariants checked on every construction:
    - at least one participant, no participant listed twice
    - shares sum to the total within SHARE_TOLERANCE
    - the payer's own entry (if any) is settled
    """
    model_config = ConfigDict(str_strip_whitespace=True)

    id: str = Field(..., min_length=1)
    title: str = Field(..., min_length=1, max_length=200)
    date: date
    total_amount: Money = Field(..., gt=0)
    paid_by_id: str = Field(..., min_length=1)
    split_method: SplitMethod
    participants: list[ParticipantShare] = Field(..., min_length=1)

    # Optimistic concurrency token, bumped by the repository on every update
    version: int = Field(default=1, ge=1)

    created_at: datetime
    updated_at: datetime

    @computed_field
    @property
    def is_fully_settled(self) -> bool:
        return all(p.is_settled for p in self.participants)

    @model_validator(mode='after')
    def validate_shares(self) -> 'SplitExpense':
        user_ids = [p.user_id for p in self.participants]
        if len(set(user_ids)) != len(user_ids):
            raise ValueError("A user may appear only once among participants")

        share_sum = sum((p.share_amount for p in self.participants), Decimal("0"))
        if abs(share_sum - self.total_amount) > SHARE_TOLERANCE:
            raise ValueError(
                f"Shares sum to {share_sum} but total is {self.total_amount}"
            )

        payer_entry = self.participant(self.paid_by_id)
        if payer_entry is not None and not payer_entry.is_settled:
            raise ValueError("The payer's own share must be settled")

        return self

    def participant(self, user_id: str) -> Optional[ParticipantShare]:
        """Find the entry for a user, or None."""
        for p in self.participants:
            if p.user_id == user_id:
                return p
        return None

    @property
    def referenced_user_ids(self) -> list[str]:
        """Payer followed by every participant, without duplicates."""
        ids = [self.paid_by_id]
        ids.extend(p.user_id for p in self.participants if p.user_id != self.paid_by_id)
        return ids


# =============================================================================
# READ MODELS
# =============================================================================

class HydratedParticipant(BaseModel):
    """A participant share with its user resolved."""

    user: SplitUser
    share_amount: Money
    is_settled: bool


class HydratedExpense(BaseModel):
    """An expense with payer and participants resolved against the directory."""

    id: str
    title: str
    date: date
    total_amount: Money
    paid_by: SplitUser
    split_method: SplitMethod
    participants: list[HydratedParticipant]
    is_fully_settled: bool
    version: int
    created_at: datetime
    updated_at: datetime


class OwesEntry(BaseModel):
    """Money this user owes to one counterparty."""

    to_user_id: str
    to_user_name: str
    amount: Money


class OwedByEntry(BaseModel):
    """Money one counterparty owes to this user."""

    from_user_id: str
    from_user_name: str
    amount: Money


class UserBalance(BaseModel):
    """
    Net position of one user across all unsettled expenses.

    Positive net_amount: the group owes this user.
    Negative net_amount: this user owes the group.
    """

    user_id: str
    user_name: str
    net_amount: Money
    owes: list[OwesEntry] = Field(default_factory=list)
    owed_by: list[OwedByEntry] = Field(default_factory=list)


class DebtEdge(BaseModel):
    """Consolidated outstanding debt from a debtor to a payer."""
    model_config = ConfigDict(frozen=True)

    from_user_id: str
    to_user_id: str
    amount: Money


class SettlementSuggestion(BaseModel):
    """One transfer proposed by the debt simplification pass."""

    from_user_id: str
    from_user_name: str
    to_user_id: str
    to_user_name: str
    amount: Money
