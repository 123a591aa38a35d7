"""
Debt Simplification

Optional post-processing over resolved balances: proposes a short list of
transfers that would zero everyone's net amount, by greedily matching the
largest debtor with the largest creditor.

This never touches the ledger. The proposed transfers generally differ
from the per-expense debts in UserBalance.owes (A owes B owes C may become
a single A -> C transfer).
"""

from decimal import Decimal
from typing import Sequence

from splitledger.ledger.balances import NEAR_ZERO
from splitledger.models.ledger import SettlementSuggestion, UserBalance, to_money


def simplify_debts(balances: Sequence[UserBalance]) -> list[SettlementSuggestion]:
    """
    Greedy creditor/debtor matching over net amounts.

    Amounts at or below NEAR_ZERO are ignored. Ties are broken by user id
    so the output is deterministic.
    """
    names = {b.user_id: b.user_name for b in balances}

    creditors = [
        [b.user_id, b.net_amount] for b in balances if b.net_amount > NEAR_ZERO
    ]
    debtors = [
        [b.user_id, -b.net_amount] for b in balances if -b.net_amount > NEAR_ZERO
    ]
    creditors.sort(key=lambda c: (-c[1], c[0]))
    debtors.sort(key=lambda d: (-d[1], d[0]))

    suggestions: list[SettlementSuggestion] = []
    i = j = 0
    while i < len(debtors) and j < len(creditors):
        debtor_id, owed = debtors[i]
        creditor_id, due = creditors[j]
        amount: Decimal = min(owed, due)

        if amount > NEAR_ZERO:
            suggestions.append(SettlementSuggestion(
                from_user_id=debtor_id,
                from_user_name=names[debtor_id],
                to_user_id=creditor_id,
                to_user_name=names[creditor_id],
                amount=to_money(amount),
            ))

        debtors[i][1] = owed - amount
        creditors[j][1] = due - amount
        if debtors[i][1] <= NEAR_ZERO:
            i += 1
        if creditors[j][1] <= NEAR_ZERO:
            j += 1

    return suggestions
