"""
Split Calculator

Pure function: turns a total, a split method and a participant list into
per-participant share amounts. No I/O, no clock, no storage.

Equal split: every participant gets total / n rounded half-up to the minor
unit, and one designated participant (the payer when present, otherwise
the first participant) absorbs whatever rounding left over so the shares
add up to the total exactly.

Custom split: the caller's shares are taken as-is (quantized) and must sum
to the total within SHARE_TOLERANCE.
"""

from decimal import ROUND_DOWN, Decimal, InvalidOperation
from typing import Optional, Sequence, Union

from splitledger.ledger.exceptions import (
    AmountOutOfRangeError,
    DuplicateParticipantError,
    EmptyParticipantsError,
    NonPositiveTotalError,
    ShareMismatchError,
)
from splitledger.models.ledger import (
    MAX_AMOUNT,
    MINOR_UNIT,
    SHARE_TOLERANCE,
    ParticipantInput,
    ShareAllocation,
    SplitMethod,
    to_money,
)


def calculate_shares(
    total_amount: Union[Decimal, int, float, str],
    split_method: SplitMethod,
    participants: Sequence[ParticipantInput],
    payer_id: Optional[str] = None,
) -> list[ShareAllocation]:
    """
    Compute each participant's share of an expense.

    Args:
        total_amount: Expense total, positive
        split_method: EQUALLY or CUSTOM
        participants: Participants in input order; custom_share is read
            only for CUSTOM splits (missing counts as zero)
        payer_id: Who paid; receives the equal-split remainder if listed

    Returns:
        One allocation per participant, in input order

    Raises:
        AmountOutOfRangeError, NonPositiveTotalError, EmptyParticipantsError,
        DuplicateParticipantError, ShareMismatchError
    """
    total = _checked_money(total_amount)
    if total <= 0:
        raise NonPositiveTotalError(total)
    if not participants:
        raise EmptyParticipantsError()

    user_ids = [p.user_id for p in participants]
    seen: set[str] = set()
    for user_id in user_ids:
        if user_id in seen:
            raise DuplicateParticipantError(user_id)
        seen.add(user_id)

    if split_method == SplitMethod.EQUALLY:
        amounts = _equal_amounts(total, user_ids, payer_id)
    else:
        amounts = [_checked_money(p.custom_share or 0) for p in participants]
        share_sum = sum(amounts, Decimal("0"))
        if abs(total - share_sum) > SHARE_TOLERANCE:
            raise ShareMismatchError(total, share_sum)

    return [
        ShareAllocation(user_id=user_id, share_amount=amount)
        for user_id, amount in zip(user_ids, amounts)
    ]


def _equal_amounts(
    total: Decimal,
    user_ids: list[str],
    payer_id: Optional[str],
) -> list[Decimal]:
    count = len(user_ids)
    base = to_money(total / count)
    remainder = total - base * count
    if base + remainder < 0:
        # Rounding up overshot by more than one share; round down instead
        base = (total / count).quantize(MINOR_UNIT, rounding=ROUND_DOWN)
        remainder = total - base * count

    designated = payer_id if payer_id in user_ids else user_ids[0]
    return [
        base + remainder if user_id == designated else base
        for user_id in user_ids
    ]


def _checked_money(value: Union[Decimal, int, float, str]) -> Decimal:
    """Quantize an amount, rejecting non-numbers and anything above MAX_AMOUNT."""
    try:
        amount = to_money(value)
    except InvalidOperation:
        raise AmountOutOfRangeError(value)
    if not amount.is_finite() or amount > MAX_AMOUNT:
        raise AmountOutOfRangeError(value)
    return amount
