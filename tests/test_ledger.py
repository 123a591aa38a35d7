"""Tests for the user directory and expense ledger."""

import asyncio
from datetime import date
from decimal import Decimal

import pytest

from splitledger.ledger import (
    AmountOutOfRangeError,
    EmptyParticipantsError,
    ExpenseLedger,
    NonPositiveTotalError,
    ShareMismatchError,
    UnknownUserError,
)
from splitledger.models.ledger import PersonalExpenseDetails, SplitMethod


class TestUserDirectory:
    """Tests for group membership."""

    def test_add_and_list_sorted_by_name(self, directory):
        async def scenario():
            await directory.add_user("carol")
            await directory.add_user("Alice")
            await directory.add_user("bob")
            return await directory.list_users()

        users = asyncio.run(scenario())
        assert [u.name for u in users] == ["Alice", "bob", "carol"]

    def test_primary_user_not_listed_but_resolvable(self, directory):
        async def scenario():
            return await directory.list_users(), await directory.resolve("me")

        users, me = asyncio.run(scenario())
        assert users == []
        assert me.name == "Me"

    def test_blank_name_rejected(self, directory):
        with pytest.raises(ValueError):
            asyncio.run(directory.add_user("   "))

    def test_delete_is_idempotent(self, directory, group):
        async def scenario():
            first = await directory.delete_user(group["A"].id)
            second = await directory.delete_user(group["A"].id)
            return first, second, await directory.resolve(group["A"].id)

        first, second, resolved = asyncio.run(scenario())
        assert first is True
        assert second is False
        assert resolved is None

    def test_primary_user_cannot_be_deleted(self, directory):
        async def scenario():
            removed = await directory.delete_user("me")
            return removed, await directory.resolve("me")

        removed, me = asyncio.run(scenario())
        assert removed is False
        assert me is not None

    def test_require_unknown(self, directory):
        with pytest.raises(UnknownUserError) as exc_info:
            asyncio.run(directory.require("ghost"))
        assert exc_info.value.user_id == "ghost"


class TestCreateExpense:
    """Tests for ExpenseLedger.create_expense."""

    def test_equal_split_marks_payer_settled(self, ledger, group, make_request):
        a, b, c = group["A"].id, group["B"].id, group["C"].id
        expense = asyncio.run(ledger.create_expense(
            make_request(900, paid_by=a, participants=[a, b, c])
        ))

        assert [p.share_amount for p in expense.participants] == [Decimal("300")] * 3
        assert expense.participant(a).is_settled is True
        assert expense.participant(b).is_settled is False
        assert expense.participant(c).is_settled is False
        assert expense.is_fully_settled is False
        assert expense.version == 1

    def test_payer_as_sole_participant_is_fully_settled(self, ledger, group, make_request):
        a = group["A"].id
        expense = asyncio.run(ledger.create_expense(
            make_request(120, paid_by=a, participants=[a])
        ))
        assert expense.is_fully_settled is True

    def test_payer_outside_participants(self, ledger, group, make_request):
        a, b, c = group["A"].id, group["B"].id, group["C"].id
        expense = asyncio.run(ledger.create_expense(
            make_request(100, paid_by=a, participants=[b, c])
        ))
        assert all(not p.is_settled for p in expense.participants)
        assert sum(p.share_amount for p in expense.participants) == Decimal("100")

    def test_primary_holder_can_pay(self, ledger, group, make_request):
        b = group["B"].id
        expense = asyncio.run(ledger.create_expense(
            make_request(50, paid_by="me", participants=["me", b])
        ))
        assert expense.paid_by_id == "me"
        assert expense.participant("me").is_settled is True

    def test_timestamps_from_clock(self, ledger, group, make_request, clock):
        a, b = group["A"].id, group["B"].id
        expense = asyncio.run(ledger.create_expense(
            make_request(10, paid_by=a, participants=[a, b])
        ))
        assert expense.created_at == clock.now()
        assert expense.updated_at == clock.now()

    def test_custom_mismatch_persists_nothing(self, ledger, group, make_request, expense_storage):
        a, b = group["A"].id, group["B"].id
        request = make_request(
            1000,
            paid_by=a,
            participants=[a, b],
            method=SplitMethod.CUSTOM,
            shares={a: 400, b: 400},
        )

        async def scenario():
            with pytest.raises(ShareMismatchError) as exc_info:
                await ledger.create_expense(request)
            return exc_info.value, await expense_storage.list_expenses()

        error, stored = asyncio.run(scenario())
        assert error.remainder == Decimal("200")
        assert stored == []

    def test_unknown_participant_persists_nothing(self, ledger, group, make_request, expense_storage):
        a = group["A"].id

        async def scenario():
            with pytest.raises(UnknownUserError) as exc_info:
                await ledger.create_expense(
                    make_request(100, paid_by=a, participants=[a, "ghost"])
                )
            return exc_info.value, await expense_storage.list_expenses()

        error, stored = asyncio.run(scenario())
        assert error.user_id == "ghost"
        assert stored == []

    def test_unknown_payer(self, ledger, group, make_request):
        a = group["A"].id
        with pytest.raises(UnknownUserError):
            asyncio.run(ledger.create_expense(
                make_request(100, paid_by="ghost", participants=[a])
            ))

    def test_non_positive_total(self, ledger, group, make_request):
        a = group["A"].id
        with pytest.raises(NonPositiveTotalError):
            asyncio.run(ledger.create_expense(
                make_request(0, paid_by=a, participants=[a])
            ))

    def test_empty_participants(self, ledger, group, make_request):
        with pytest.raises(EmptyParticipantsError):
            asyncio.run(ledger.create_expense(
                make_request(10, paid_by=group["A"].id, participants=[])
            ))

    def test_ids_checked_before_amounts(self, ledger, group, make_request):
        """An unknown participant is reported even when the shares are also wrong."""
        a = group["A"].id
        request = make_request(
            100,
            paid_by=a,
            participants=[a, "ghost"],
            method=SplitMethod.CUSTOM,
            shares={a: 10, "ghost": 10},
        )
        with pytest.raises(UnknownUserError) as exc_info:
            asyncio.run(ledger.create_expense(request))
        assert exc_info.value.user_id == "ghost"

    def test_out_of_range_total_persists_nothing(self, ledger, group, make_request, expense_storage):
        a, b = group["A"].id, group["B"].id

        async def scenario():
            with pytest.raises(AmountOutOfRangeError):
                await ledger.create_expense(
                    make_request("1E+26", paid_by=a, participants=[a, b])
                )
            return await expense_storage.list_expenses()

        assert asyncio.run(scenario()) == []


class TestPersonalShare:
    """Mirroring the primary holder's share into personal transactions."""

    details = PersonalExpenseDetails(category_id="food", payment_method_id="upi")

    def test_records_own_share_when_primary_pays(
        self, expense_storage, directory, clock, recorder, group, make_request
    ):
        ledger = ExpenseLedger(expense_storage, directory, clock=clock, transaction_recorder=recorder)
        b = group["B"].id
        asyncio.run(ledger.create_expense(make_request(
            300, paid_by="me", participants=["me", b],
            title="Groceries", personal_expense_details=self.details,
        )))

        assert len(recorder.records) == 1
        record = recorder.records[0]
        assert record["amount"] == Decimal("150")
        assert record["description"] == "My share of: Groceries"
        assert record["category_id"] == "food"
        assert record["expense_type"] == "want"

    def test_skipped_when_someone_else_pays(
        self, expense_storage, directory, clock, recorder, group, make_request
    ):
        ledger = ExpenseLedger(expense_storage, directory, clock=clock, transaction_recorder=recorder)
        b = group["B"].id
        asyncio.run(ledger.create_expense(make_request(
            300, paid_by=b, participants=["me", b], personal_expense_details=self.details,
        )))
        assert recorder.records == []

    def test_skipped_when_primary_not_participating(
        self, expense_storage, directory, clock, recorder, group, make_request
    ):
        ledger = ExpenseLedger(expense_storage, directory, clock=clock, transaction_recorder=recorder)
        b = group["B"].id
        asyncio.run(ledger.create_expense(make_request(
            300, paid_by="me", participants=[b], personal_expense_details=self.details,
        )))
        assert recorder.records == []

    def test_recorder_failure_keeps_expense(
        self, expense_storage, directory, clock, failing_recorder, group, make_request
    ):
        ledger = ExpenseLedger(
            expense_storage, directory, clock=clock, transaction_recorder=failing_recorder
        )
        b = group["B"].id

        async def scenario():
            expense = await ledger.create_expense(make_request(
                300, paid_by="me", participants=["me", b], personal_expense_details=self.details,
            ))
            return expense, await expense_storage.get_expense(expense.id)

        expense, stored = asyncio.run(scenario())
        assert stored is not None
        assert stored.id == expense.id


class TestListExpenses:
    """Tests for hydrated, newest-first listing."""

    def test_newest_first_and_hydrated(self, ledger, group, make_request):
        a, b = group["A"].id, group["B"].id

        async def scenario():
            await ledger.create_expense(make_request(
                10, paid_by=a, participants=[a, b], title="Old", on=date(2024, 1, 5),
            ))
            await ledger.create_expense(make_request(
                20, paid_by=b, participants=[a, b], title="New", on=date(2024, 3, 1),
            ))
            await ledger.create_expense(make_request(
                30, paid_by=a, participants=[a, b], title="Middle", on=date(2024, 2, 1),
            ))
            return await ledger.list_expenses()

        expenses = asyncio.run(scenario())
        assert [e.title for e in expenses] == ["New", "Middle", "Old"]
        assert expenses[0].paid_by.name == "Bob"
        assert [p.user.name for p in expenses[0].participants] == ["Alice", "Bob"]

    def test_limit(self, ledger, group, make_request):
        a, b = group["A"].id, group["B"].id

        async def scenario():
            for day in range(1, 6):
                await ledger.create_expense(make_request(
                    10, paid_by=a, participants=[a, b], title=f"Day {day}",
                    on=date(2024, 4, day),
                ))
            return await ledger.list_expenses(limit=2)

        expenses = asyncio.run(scenario())
        assert [e.title for e in expenses] == ["Day 5", "Day 4"]

    def test_drops_expense_with_deleted_participant(self, ledger, directory, group, make_request):
        a, b, c = group["A"].id, group["B"].id, group["C"].id

        async def scenario():
            await ledger.create_expense(make_request(
                30, paid_by=a, participants=[a, b], title="Kept",
            ))
            await ledger.create_expense(make_request(
                30, paid_by=a, participants=[a, c], title="Dropped",
            ))
            await directory.delete_user(c)
            return await ledger.list_expenses()

        expenses = asyncio.run(scenario())
        assert [e.title for e in expenses] == ["Kept"]

    def test_drops_expense_with_deleted_payer(self, ledger, directory, group, make_request):
        a, b = group["A"].id, group["B"].id

        async def scenario():
            await ledger.create_expense(make_request(30, paid_by=a, participants=[b]))
            await directory.delete_user(a)
            return await ledger.list_expenses()

        assert asyncio.run(scenario()) == []


class TestDeleteExpense:
    """Hard, idempotent delete."""

    def test_delete_twice(self, ledger, group, make_request):
        a, b = group["A"].id, group["B"].id

        async def scenario():
            expense = await ledger.create_expense(make_request(30, paid_by=a, participants=[a, b]))
            first = await ledger.delete_expense(expense.id)
            second = await ledger.delete_expense(expense.id)
            return first, second, await ledger.get_expense(expense.id)

        first, second, remaining = asyncio.run(scenario())
        assert first is True
        assert second is False
        assert remaining is None

    def test_delete_unknown(self, ledger):
        assert asyncio.run(ledger.delete_expense("no-such-id")) is False
