"""Tests for balance aggregation."""

from datetime import date
from decimal import Decimal

import pytest

from splitledger.exceptions import AuthorizationError, GroupNotFoundError
from splitledger.ledger import suggest_transfers
from splitledger.models import (
    Balance,
    CustomSplit,
    ItemizedSplit,
    LineItem,
    PercentageSplit,
)


def nets(balances) -> dict[int, Decimal]:
    return {b.user_id: b.net for b in balances}


@pytest.fixture
def mixed_expenses(expenses, group):
    """Expenses in the group created with every split policy."""
    expenses.create_expense(group.id, 1, Decimal("10.00"), "Taxi", "transport")
    expenses.create_expense(
        group.id,
        2,
        Decimal("100.00"),
        "Groceries",
        "food",
        participants=[1, 2],
        policy=CustomSplit(amounts={1: Decimal("70"), 2: Decimal("30")}),
    )
    expenses.create_expense(
        group.id,
        3,
        Decimal("45.55"),
        "Internet",
        "utilities",
        participants=[1, 2, 3],
        policy=PercentageSplit(
            percentages={1: Decimal("33.3333"), 2: Decimal("33.3333"), 3: Decimal("33.3334")}
        ),
    )
    expenses.create_expense(
        group.id,
        1,
        Decimal("36"),
        "Pizza night",
        "food",
        participants=[1, 2],
        policy=ItemizedSplit(
            items=[
                LineItem(name="pizza", price=Decimal("20"), assignees=[1, 2]),
                LineItem(name="soda", price=Decimal("10"), assignees=[1]),
            ],
            tax=Decimal("3"),
            tip=Decimal("3"),
        ),
    )


class TestBalance:
    """Tests for a single user's balance."""

    def test_payer_is_owed_the_others_shares(self, expenses, ledger, group):
        expenses.create_expense(group.id, 1, Decimal("90"), "Dinner", "food")

        payer = ledger.balance(1, group.id)
        other = ledger.balance(2, group.id)

        assert payer.total_paid == Decimal("90.00")
        assert payer.total_owed == Decimal("30.00")
        assert payer.net == Decimal("60.00")
        assert other.total_paid == Decimal("0")
        assert other.net == Decimal("-30.00")

    def test_balance_across_all_groups(self, groups, expenses, ledger, group):
        other_group = groups.create_group(1, "Trip", member_ids=[4])
        expenses.create_expense(group.id, 1, Decimal("30"), "Dinner", "food")
        expenses.create_expense(other_group.id, 4, Decimal("50"), "Fuel", "transport")

        overall = ledger.balance(1)

        assert overall.group_id is None
        assert overall.total_paid == Decimal("30.00")
        assert overall.total_owed == Decimal("35.00")
        assert overall.net == Decimal("-5.00")

    def test_no_activity_is_zero(self, ledger, group):
        result = ledger.balance(3, group.id)

        assert result.total_paid == result.total_owed == result.net == Decimal("0")

    def test_non_member_is_rejected(self, ledger, group):
        with pytest.raises(AuthorizationError):
            ledger.balance(99, group.id)

    def test_unknown_group_is_not_found(self, ledger):
        with pytest.raises(GroupNotFoundError):
            ledger.balance(1, 12345)


class TestGroupBalances:
    """Tests for balances of all group members."""

    def test_nets_sum_to_zero_for_every_policy(self, ledger, group, mixed_expenses):
        balances = ledger.group_balances(group.id, acting_user=1)

        assert sum(b.net for b in balances) == Decimal("0")
        assert sum(b.total_paid for b in balances) == sum(
            b.total_owed for b in balances
        )

    def test_members_without_activity_are_listed(
        self, groups, expenses, ledger, group
    ):
        groups.add_member(group.id, acting_user=1, user_id=4)
        expenses.create_expense(
            group.id, 1, Decimal("20"), "Snacks", "food", participants=[1, 2]
        )

        balances = ledger.group_balances(group.id, acting_user=1)

        assert [b.user_id for b in balances] == [1, 2, 3, 4]
        assert nets(balances) == {
            1: Decimal("10.00"),
            2: Decimal("-10.00"),
            3: Decimal("0"),
            4: Decimal("0"),
        }

    def test_only_counts_this_group(self, groups, expenses, ledger, group):
        other_group = groups.create_group(1, "Trip", member_ids=[2])
        expenses.create_expense(other_group.id, 2, Decimal("80"), "Hotel", "other")

        balances = ledger.group_balances(group.id, acting_user=1)

        assert all(b.net == 0 for b in balances)

    def test_settlements_do_not_change_balances(
        self, expenses, ledger, settlements, group
    ):
        expenses.create_expense(group.id, 1, Decimal("90"), "Dinner", "food")
        before = ledger.group_balances(group.id, acting_user=1)

        settlement = settlements.create_settlement(2, 2, 1, group.id, Decimal("30"))
        settlements.confirm_settlement(settlement.id, acting_user=1)

        assert ledger.group_balances(group.id, acting_user=1) == before

    def test_deleting_an_expense_removes_it_from_balances(
        self, expenses, ledger, group
    ):
        expense = expenses.create_expense(
            group.id, 2, Decimal("60"), "Cinema", "entertainment", date(2026, 1, 2)
        )
        expenses.delete_expense(expense.id, acting_user=2)

        assert all(b.net == 0 for b in ledger.group_balances(group.id, 1))

    def test_non_member_is_rejected(self, ledger, group):
        with pytest.raises(AuthorizationError):
            ledger.group_balances(group.id, acting_user=42)


class TestSuggestTransfers:
    """Tests for the settle-up suggestions."""

    def test_debtors_pay_creditor(self):
        balances = [
            Balance(user_id=1, total_paid=Decimal("90"), total_owed=Decimal("30"), net=Decimal("60")),
            Balance(user_id=2, total_paid=Decimal("0"), total_owed=Decimal("30"), net=Decimal("-30")),
            Balance(user_id=3, total_paid=Decimal("0"), total_owed=Decimal("30"), net=Decimal("-30")),
        ]

        transfers = suggest_transfers(balances)

        assert [(t.from_user, t.to_user, t.amount) for t in transfers] == [
            (2, 1, Decimal("30.00")),
            (3, 1, Decimal("30.00")),
        ]

    def test_transfers_clear_all_balances(self, ledger, group, mixed_expenses):
        balances = ledger.group_balances(group.id, acting_user=1)
        remaining = nets(balances)

        for transfer in suggest_transfers(balances):
            remaining[transfer.from_user] += transfer.amount
            remaining[transfer.to_user] -= transfer.amount

        assert all(value == 0 for value in remaining.values())

    def test_settled_group_needs_no_transfers(self):
        balances = [
            Balance(user_id=1, total_paid=Decimal("10"), total_owed=Decimal("10"), net=Decimal("0")),
        ]

        assert suggest_transfers(balances) == []
