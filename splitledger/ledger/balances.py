"""
Balance Resolver

Derives, for every user, the net amount they are owed (positive) or owe
(negative) across all unsettled expenses, and who specifically they owe.

This is per-expense netting: each unsettled share becomes a debt from the
participant to that expense's payer, and debts are only consolidated per
(debtor, payer) pair. Chains like A -> B -> C are NOT collapsed into A -> C;
see splitledger.ledger.simplify for that, as a separate pass.

No state of its own: every call rescans the ledger.
"""

from collections import defaultdict
from decimal import Decimal

import structlog

from splitledger.ledger.directory import UserDirectory
from splitledger.ledger.expenses import ExpenseLedger
from splitledger.models.ledger import (
    DebtEdge,
    OwedByEntry,
    OwesEntry,
    UserBalance,
    to_money,
)


logger = structlog.get_logger(__name__)

# Debts at or below this are treated as rounding noise
NEAR_ZERO = Decimal("0.01")


class BalanceResolver:
    """Read-only view of who owes whom."""

    def __init__(self, ledger: ExpenseLedger, directory: UserDirectory):
        self._ledger = ledger
        self._directory = directory

    async def _scan(self):
        """
        Returns (user_map, net_amounts, edges) where edges maps
        (debtor_id, payer_id) to the summed outstanding amount.
        """
        users = await self._directory.user_map()
        net: dict[str, Decimal] = {user_id: Decimal("0") for user_id in users}
        edges: dict[tuple[str, str], Decimal] = defaultdict(Decimal)

        for expense in await self._ledger.list_expenses():
            if expense.is_fully_settled:
                continue
            payer_id = expense.paid_by.id
            for p in expense.participants:
                if p.is_settled:
                    continue
                debtor_id = p.user.id
                net[payer_id] = net.get(payer_id, Decimal("0")) + p.share_amount
                net[debtor_id] = net.get(debtor_id, Decimal("0")) - p.share_amount
                edges[(debtor_id, payer_id)] += p.share_amount

        return users, net, edges

    async def outstanding_debts(self) -> list[DebtEdge]:
        """Consolidated debtor -> payer edges above NEAR_ZERO."""
        _, _, edges = await self._scan()
        return [
            DebtEdge(from_user_id=debtor, to_user_id=payer, amount=to_money(amount))
            for (debtor, payer), amount in sorted(edges.items())
            if amount > NEAR_ZERO
        ]

    async def resolve_balances(self) -> list[UserBalance]:
        """
        One balance per known user (primary holder included), ordered by name.

        An empty ledger yields all-zero balances.
        """
        users, net, edges = await self._scan()

        def name_of(user_id: str) -> str:
            user = users.get(user_id)
            return user.name if user else "Unknown"

        balances = {
            user_id: UserBalance(
                user_id=user_id,
                user_name=name_of(user_id),
                net_amount=to_money(amount),
            )
            for user_id, amount in net.items()
        }

        for (debtor_id, payer_id), amount in edges.items():
            if amount <= NEAR_ZERO:
                continue
            amount = to_money(amount)
            balances[debtor_id].owes.append(OwesEntry(
                to_user_id=payer_id,
                to_user_name=name_of(payer_id),
                amount=amount,
            ))
            balances[payer_id].owed_by.append(OwedByEntry(
                from_user_id=debtor_id,
                from_user_name=name_of(debtor_id),
                amount=amount,
            ))

        for balance in balances.values():
            balance.owes.sort(key=lambda o: (o.to_user_name.casefold(), o.to_user_id))
            balance.owed_by.sort(key=lambda o: (o.from_user_name.casefold(), o.from_user_id))

        logger.debug("balances_resolved", users=len(balances), edges=len(edges))
        return sorted(
            balances.values(),
            key=lambda b: (b.user_name.casefold(), b.user_id),
        )
