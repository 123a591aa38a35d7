"""Tests for balance resolution and debt simplification."""

import asyncio
from decimal import Decimal

from splitledger.ledger import simplify_debts
from splitledger.models.ledger import SplitMethod, UserBalance


def by_id(balances):
    return {b.user_id: b for b in balances}


class TestResolveBalances:
    """Per-expense netting."""

    def test_single_expense(self, ledger, resolver, group, make_request):
        a, b, c = group["A"].id, group["B"].id, group["C"].id

        async def scenario():
            await ledger.create_expense(make_request(900, paid_by=a, participants=[a, b, c]))
            return await resolver.resolve_balances()

        balances = asyncio.run(scenario())
        assert [x.user_name for x in balances] == ["Alice", "Bob", "Carol", "Me"]

        result = by_id(balances)
        assert result[a].net_amount == Decimal("600")
        assert result[a].owes == []
        assert {o.from_user_id: o.amount for o in result[a].owed_by} == {
            b: Decimal("300"),
            c: Decimal("300"),
        }

        for debtor in (b, c):
            assert result[debtor].net_amount == Decimal("-300")
            assert len(result[debtor].owes) == 1
            assert result[debtor].owes[0].to_user_id == a
            assert result[debtor].owes[0].to_user_name == "Alice"
            assert result[debtor].owes[0].amount == Decimal("300")

        assert result["me"].net_amount == Decimal("0")

    def test_empty_ledger(self, resolver, group):
        balances = asyncio.run(resolver.resolve_balances())
        assert len(balances) == 4
        assert all(b.net_amount == 0 for b in balances)
        assert all(b.owes == [] and b.owed_by == [] for b in balances)

    def test_settled_shares_drop_out(self, ledger, tracker, resolver, group, make_request):
        a, b, c = group["A"].id, group["B"].id, group["C"].id

        async def scenario():
            expense = await ledger.create_expense(
                make_request(900, paid_by=a, participants=[a, b, c])
            )
            await tracker.settle_participant_share(expense.id, b)
            return await resolver.resolve_balances()

        result = by_id(asyncio.run(scenario()))
        assert result[a].net_amount == Decimal("300")
        assert result[b].net_amount == Decimal("0")
        assert result[b].owes == []
        assert result[c].net_amount == Decimal("-300")

    def test_fully_settled_ledger_is_all_zero(self, ledger, tracker, resolver, group, make_request):
        a, b, c = group["A"].id, group["B"].id, group["C"].id

        async def scenario():
            expense = await ledger.create_expense(
                make_request(900, paid_by=a, participants=[a, b, c])
            )
            await tracker.settle_participant_share(expense.id, b)
            await tracker.settle_participant_share(expense.id, c)
            return await resolver.resolve_balances()

        balances = asyncio.run(scenario())
        assert all(b.net_amount == 0 and not b.owes and not b.owed_by for b in balances)

    def test_net_amounts_sum_to_zero(self, ledger, resolver, group, make_request):
        a, b, c = group["A"].id, group["B"].id, group["C"].id

        async def scenario():
            await ledger.create_expense(make_request(100, paid_by=a, participants=[a, b, c]))
            await ledger.create_expense(make_request(75.5, paid_by=b, participants=[b, c, "me"]))
            await ledger.create_expense(make_request(
                60, paid_by="me", participants=[a, c],
                method=SplitMethod.CUSTOM, shares={a: 45, c: 15},
            ))
            return await resolver.resolve_balances()

        balances = asyncio.run(scenario())
        assert sum(b.net_amount for b in balances) == Decimal("0")

    def test_debts_consolidated_per_pair(self, ledger, resolver, group, make_request):
        a, b = group["A"].id, group["B"].id

        async def scenario():
            await ledger.create_expense(make_request(100, paid_by=a, participants=[a, b]))
            await ledger.create_expense(make_request(40, paid_by=a, participants=[a, b]))
            return await resolver.resolve_balances()

        result = by_id(asyncio.run(scenario()))
        assert len(result[b].owes) == 1
        assert result[b].owes[0].amount == Decimal("70")

    def test_opposite_debts_are_not_netted(self, ledger, resolver, group, make_request):
        """B owes A for one expense and A owes B for another; both are listed."""
        a, b = group["A"].id, group["B"].id

        async def scenario():
            await ledger.create_expense(make_request(100, paid_by=a, participants=[a, b]))
            await ledger.create_expense(make_request(60, paid_by=b, participants=[a, b]))
            return await resolver.resolve_balances()

        result = by_id(asyncio.run(scenario()))
        assert result[a].net_amount == Decimal("20")
        assert [(o.to_user_id, o.amount) for o in result[a].owes] == [(b, Decimal("30"))]
        assert [(o.to_user_id, o.amount) for o in result[b].owes] == [(a, Decimal("50"))]

    def test_chains_are_not_collapsed(self, ledger, resolver, group, make_request):
        a, b, c = group["A"].id, group["B"].id, group["C"].id

        async def scenario():
            await ledger.create_expense(make_request(10, paid_by=b, participants=[a]))
            await ledger.create_expense(make_request(10, paid_by=c, participants=[b]))
            return await resolver.resolve_balances()

        result = by_id(asyncio.run(scenario()))
        assert result[b].net_amount == Decimal("0")
        assert [o.to_user_id for o in result[a].owes] == [b]
        assert [o.to_user_id for o in result[b].owes] == [c]

    def test_owed_by_mirrors_owes(self, ledger, resolver, group, make_request):
        a, b, c = group["A"].id, group["B"].id, group["C"].id

        async def scenario():
            await ledger.create_expense(make_request(90, paid_by=a, participants=[a, b, c]))
            await ledger.create_expense(make_request(50, paid_by=c, participants=[b, "me"]))
            return await resolver.resolve_balances()

        balances = asyncio.run(scenario())
        owes = {
            (b.user_id, o.to_user_id, o.amount) for b in balances for o in b.owes
        }
        owed_by = {
            (o.from_user_id, b.user_id, o.amount) for b in balances for o in b.owed_by
        }
        assert owes == owed_by

    def test_primary_holder_included(self, ledger, resolver, group, make_request):
        a = group["A"].id

        async def scenario():
            await ledger.create_expense(make_request(50, paid_by=a, participants=["me"]))
            return await resolver.resolve_balances()

        result = by_id(asyncio.run(scenario()))
        assert result["me"].user_name == "Me"
        assert result["me"].net_amount == Decimal("-50")
        assert result["me"].owes[0].to_user_name == "Alice"

    def test_deleted_user_expenses_excluded(self, ledger, directory, resolver, group, make_request):
        a, b, c = group["A"].id, group["B"].id, group["C"].id

        async def scenario():
            await ledger.create_expense(make_request(100, paid_by=a, participants=[a, b]))
            await ledger.create_expense(make_request(100, paid_by=c, participants=[a, c]))
            await directory.delete_user(c)
            return await resolver.resolve_balances()

        balances = asyncio.run(scenario())
        result = by_id(balances)
        assert c not in result
        assert result[a].net_amount == Decimal("50")
        assert result[a].owes == []


class TestOutstandingDebts:
    """Flat debtor to payer edges."""

    def test_edges_sorted_and_filtered(self, ledger, resolver, group, make_request):
        a, b, c = group["A"].id, group["B"].id, group["C"].id

        async def scenario():
            await ledger.create_expense(make_request(90, paid_by=a, participants=[a, b, c]))
            await ledger.create_expense(make_request(
                1.01, paid_by=b, participants=[b, c],
                method=SplitMethod.CUSTOM, shares={b: 1, c: 0.01},
            ))
            return await resolver.outstanding_debts()

        edges = asyncio.run(scenario())
        assert {(e.from_user_id, e.to_user_id, e.amount) for e in edges} == {
            (b, a, Decimal("30")),
            (c, a, Decimal("30")),
        }
        assert edges == sorted(edges, key=lambda e: (e.from_user_id, e.to_user_id))


def balance(user_id, net, name=None):
    return UserBalance(user_id=user_id, user_name=name or user_id.upper(), net_amount=Decimal(net))


class TestSimplifyDebts:
    """Greedy minimal-transfer proposals."""

    def test_chain_becomes_single_transfer(self):
        suggestions = simplify_debts([
            balance("a", "-10"),
            balance("b", "0"),
            balance("c", "10"),
        ])
        assert len(suggestions) == 1
        assert suggestions[0].from_user_id == "a"
        assert suggestions[0].to_user_id == "c"
        assert suggestions[0].amount == Decimal("10")
        assert suggestions[0].to_user_name == "C"

    def test_zeroes_every_balance(self):
        balances = [
            balance("a", "600"),
            balance("b", "-250"),
            balance("c", "-350"),
            balance("d", "120"),
            balance("e", "-120"),
        ]
        suggestions = simplify_debts(balances)

        net = {b.user_id: b.net_amount for b in balances}
        for s in suggestions:
            net[s.from_user_id] += s.amount
            net[s.to_user_id] -= s.amount
        assert all(v == 0 for v in net.values())
        assert len(suggestions) <= len(balances) - 1

    def test_largest_amounts_matched_first(self):
        suggestions = simplify_debts([
            balance("a", "100"),
            balance("b", "-70"),
            balance("c", "-30"),
        ])
        assert [(s.from_user_id, s.amount) for s in suggestions] == [
            ("b", Decimal("70")),
            ("c", Decimal("30")),
        ]

    def test_rounding_noise_ignored(self):
        assert simplify_debts([balance("a", "0.01"), balance("b", "-0.01")]) == []

    def test_ties_broken_by_id(self):
        balances = [
            balance("z", "-50"),
            balance("y", "-50"),
            balance("x", "100"),
        ]
        first = simplify_debts(balances)
        second = simplify_debts(list(reversed(balances)))
        assert first == second
        assert [s.from_user_id for s in first] == ["y", "z"]

    def test_empty(self):
        assert simplify_debts([]) == []

    def test_from_resolved_balances(self, ledger, resolver, group, make_request):
        a, b, c = group["A"].id, group["B"].id, group["C"].id

        async def scenario():
            await ledger.create_expense(make_request(10, paid_by=b, participants=[a]))
            await ledger.create_expense(make_request(10, paid_by=c, participants=[b]))
            return await resolver.resolve_balances()

        suggestions = simplify_debts(asyncio.run(scenario()))
        assert [(s.from_user_id, s.to_user_id, s.amount) for s in suggestions] == [
            (a, c, Decimal("10")),
        ]
