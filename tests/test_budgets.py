"""Tests for budgets and budget evaluation."""

from datetime import date
from decimal import Decimal

import pytest

from splitledger.budgets import evaluate_budget, period_start
from splitledger.exceptions import (
    AuthorizationError,
    BudgetNotFoundError,
    ValidationError,
)
from splitledger.models import Budget

TODAY = date(2026, 3, 15)


def make_budget(amount: str) -> Budget:
    return Budget(user_id=1, category="food", amount=Decimal(amount))


class TestEvaluateBudget:
    """Tests for the pure evaluation function."""

    def test_over_budget(self):
        status = evaluate_budget(make_budget("100"), Decimal("120"))

        assert status.is_over_budget
        assert status.remaining == Decimal("-20")
        assert status.percentage == 120

    def test_under_budget(self):
        status = evaluate_budget(make_budget("200"), Decimal("50"))

        assert not status.is_over_budget
        assert status.remaining == Decimal("150")
        assert status.percentage == 25

    def test_exactly_at_budget_is_not_over(self):
        status = evaluate_budget(make_budget("80"), Decimal("80"))

        assert not status.is_over_budget
        assert status.percentage == 100

    def test_percentage_rounds_half_up(self):
        assert evaluate_budget(make_budget("200"), Decimal("1")).percentage == 1
        assert evaluate_budget(make_budget("300"), Decimal("1")).percentage == 0

    def test_zero_amount_gives_zero_percentage(self):
        budget = Budget.model_construct(
            user_id=1, category="food", amount=Decimal("0"), period="monthly"
        )

        assert evaluate_budget(budget, Decimal("10")).percentage == 0


class TestPeriodStart:
    """Tests for period_start."""

    def test_first_of_month(self):
        assert period_start(TODAY) == date(2026, 3, 1)

    def test_rejects_other_periods(self):
        with pytest.raises(ValidationError):
            period_start(TODAY, "weekly")


class TestBudgetStatus:
    """Tests for evaluating stored budgets against recorded expenses."""

    @pytest.fixture
    def spending(self, expenses, groups, group):
        """Food and rent spending for user 2 across two months and two groups."""
        other = groups.create_group(2, "Work", member_ids=[5])
        expenses.create_expense(group.id, 1, Decimal("90"), "Dinner", "food", date(2026, 3, 3))
        expenses.create_expense(group.id, 3, Decimal("30"), "Lunch", "food", date(2026, 3, 10))
        expenses.create_expense(group.id, 1, Decimal("60"), "Brunch", "food", date(2026, 2, 27))
        expenses.create_expense(group.id, 2, Decimal("900"), "Rent", "rent", date(2026, 3, 1))
        expenses.create_expense(other.id, 5, Decimal("40"), "Pizza", "food", date(2026, 3, 12))
        return other

    def test_counts_current_month_in_category(self, budgets, group, spending):
        budget = budgets.set_budget(2, "food", Decimal("50"), group_id=group.id)

        status = budgets.status(budget, today=TODAY)

        assert status.spent == Decimal("40.00")
        assert status.remaining == Decimal("10.00")
        assert status.percentage == 80
        assert not status.is_over_budget

    def test_unscoped_budget_counts_every_group(self, budgets, spending):
        budget = budgets.set_budget(2, "food", Decimal("50"))

        status = budgets.status(budget, today=TODAY)

        assert status.spent == Decimal("60.00")
        assert status.is_over_budget
        assert status.percentage == 120

    def test_new_month_starts_from_zero(self, budgets, spending):
        budget = budgets.set_budget(2, "food", Decimal("50"))

        status = budgets.status(budget, today=date(2026, 4, 1))

        assert status.spent == Decimal("0")
        assert status.percentage == 0


class TestSetBudget:
    """Tests for creating and updating budgets."""

    def test_upsert_keeps_one_budget(self, budgets):
        first = budgets.set_budget(1, "transport", Decimal("100"))
        second = budgets.set_budget(1, "transport", Decimal("150"))

        assert second.id == first.id
        assert second.amount == Decimal("150")
        assert second.updated_at is not None
        listed = budgets.list_budgets(1, today=TODAY)
        assert [s.budget.amount for s in listed] == [Decimal("150.00")]

    def test_group_budget_is_separate_from_unscoped(self, budgets, group):
        unscoped = budgets.set_budget(1, "food", Decimal("100"))
        scoped = budgets.set_budget(1, "food", Decimal("40"), group_id=group.id)

        assert scoped.id != unscoped.id
        assert [s.budget.id for s in budgets.list_budgets(1, today=TODAY)] == [unscoped.id]
        assert [
            s.budget.id for s in budgets.list_budgets(1, group.id, today=TODAY)
        ] == [scoped.id]

    def test_list_is_ordered_by_category(self, budgets):
        budgets.set_budget(1, "utilities", Decimal("80"))
        budgets.set_budget(1, "entertainment", Decimal("30"))

        listed = budgets.list_budgets(1, today=TODAY)

        assert [s.budget.category for s in listed] == ["entertainment", "utilities"]

    def test_rejects_unknown_category(self, budgets):
        with pytest.raises(ValidationError):
            budgets.set_budget(1, "travel", Decimal("100"))

    @pytest.mark.parametrize("amount", [Decimal("0"), Decimal("-1"), Decimal("0.001")])
    def test_rejects_bad_amount(self, budgets, amount):
        with pytest.raises(ValidationError):
            budgets.set_budget(1, "food", amount)

    def test_group_budget_requires_membership(self, budgets, group):
        with pytest.raises(AuthorizationError):
            budgets.set_budget(9, "food", Decimal("10"), group_id=group.id)


class TestDeleteBudget:
    """Tests for delete_budget."""

    def test_owner_deletes(self, budgets):
        budget = budgets.set_budget(1, "shopping", Decimal("100"))

        budgets.delete_budget(budget.id, user_id=1)

        assert budgets.list_budgets(1, today=TODAY) == []

    def test_other_users_budget_is_not_found(self, budgets):
        budget = budgets.set_budget(1, "shopping", Decimal("100"))

        with pytest.raises(BudgetNotFoundError):
            budgets.delete_budget(budget.id, user_id=2)

        assert len(budgets.list_budgets(1, today=TODAY)) == 1

    def test_unknown_budget(self, budgets):
        with pytest.raises(BudgetNotFoundError):
            budgets.delete_budget(1234, user_id=1)
