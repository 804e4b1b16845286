"""Budget evaluation: compare a member's spending with a monthly ceiling."""

import logging
from datetime import date
from decimal import ROUND_HALF_UP, Decimal

from .db import Database
from .exceptions import BudgetNotFoundError, ValidationError
from .groups import require_member
from .models import Budget, BudgetStatus
from .service import validate_category
from .splitter import CENT, from_cents, to_cents

logger = logging.getLogger(__name__)


def period_start(today: date, period: str = "monthly") -> date:
    """First day of the budget period containing ``today``."""
    if period != "monthly":
        raise ValidationError(f"Unsupported budget period '{period}'")
    return today.replace(day=1)


def evaluate_budget(budget: Budget, spent: Decimal) -> BudgetStatus:
    """
    Compare spending with a budget.

    This is a pure function; ``spent`` is what the owner owes in the
    budget's category during the current period.
    """
    percentage = 0
    if budget.amount > 0:
        percentage = int(
            (100 * spent / budget.amount).quantize(Decimal("1"), rounding=ROUND_HALF_UP)
        )

    return BudgetStatus(
        budget=budget,
        spent=spent,
        remaining=budget.amount - spent,
        percentage=percentage,
        is_over_budget=spent > budget.amount,
    )


class BudgetService:
    """Set, list and evaluate budgets."""

    def __init__(self, database: Database):
        """Initialize the budget service."""
        self.db = database

    def set_budget(
        self,
        user_id: int,
        category: str,
        amount: Decimal,
        group_id: int | None = None,
        period: str = "monthly",
    ) -> Budget:
        """
        Create a budget, or change the amount of the existing one.

        A user has at most one budget per (group, category, period).
        """
        validate_category(category)
        period_start(date.today(), period)
        amount = Decimal(amount)
        if amount <= 0 or amount != amount.quantize(CENT):
            raise ValidationError(f"Budget amount must be positive cents, got {amount}")
        if group_id is not None:
            require_member(self.db, group_id, user_id)

        with self.db.transaction():
            budget = self.db.find_budget(user_id, group_id, category, period)
            if budget is None:
                budget = Budget(
                    user_id=user_id,
                    group_id=group_id,
                    category=category,
                    amount=amount,
                    period=period,
                )
                budget.id = self.db.insert_budget(budget)
            else:
                assert budget.id is not None
                budget.updated_at = self.db.update_budget_amount(
                    budget.id, to_cents(amount)
                )
                budget.amount = amount

        logger.info(
            f"Budget {budget.id} for user {user_id}: {category} ${amount} {period}"
        )
        return budget

    def status(self, budget: Budget, today: date | None = None) -> BudgetStatus:
        """Evaluate a budget against spending since the start of its period."""
        since = period_start(today or date.today(), budget.period)
        spent = from_cents(
            self.db.get_category_spent(
                budget.user_id, budget.category, since, budget.group_id
            )
        )
        logger.debug(f"Budget {budget.id}: spent ${spent} since {since}")
        return evaluate_budget(budget, spent)

    def list_budgets(
        self, user_id: int, group_id: int | None = None, today: date | None = None
    ) -> list[BudgetStatus]:
        """
        Get a user's budgets with their current spending.

        Args:
            user_id: Budget owner
            group_id: List this group's budgets; None for unscoped budgets
            today: Reference date for the current period
        """
        if group_id is not None:
            require_member(self.db, group_id, user_id)
        return [
            self.status(budget, today)
            for budget in self.db.list_budgets(user_id, group_id)
        ]

    def delete_budget(self, budget_id: int, user_id: int):
        """Delete one of the user's budgets."""
        budget = self.db.get_budget(budget_id)
        if budget is None or budget.user_id != user_id:
            raise BudgetNotFoundError(budget_id)

        with self.db.transaction():
            self.db.delete_budget(budget_id)

        logger.info(f"Budget {budget_id} deleted")
