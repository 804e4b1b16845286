"""Service layer for recording, editing and deleting expenses.

Each operation validates first, then writes the expense and all of its
splits in a single transaction so a partial write is never visible.
"""

import logging
from collections.abc import Sequence
from datetime import date
from decimal import Decimal

from .config import Settings
from .db import Database
from .exceptions import AuthorizationError, ExpenseNotFoundError, ValidationError
from .groups import require_member
from .models import (
    CATEGORIES,
    EqualSplit,
    Expense,
    ItemizedSplit,
    LineItem,
    ReceiptBreakdown,
    ShareAmount,
    Split,
    SplitPolicy,
)
from .splitter import compute_splits

logger = logging.getLogger(__name__)


def validate_category(category: str) -> str:
    """Reject categories outside the fixed set."""
    if category not in CATEGORIES:
        raise ValidationError(
            f"Unknown category '{category}'. Choose one of: {', '.join(CATEGORIES)}"
        )
    return category


class ExpenseService:
    """Create, edit and delete expenses and their splits."""

    def __init__(self, settings: Settings, database: Database):
        """Initialize the expense service."""
        self.settings = settings
        self.db = database

    def create_expense(
        self,
        group_id: int,
        paid_by: int,
        amount: Decimal,
        description: str,
        category: str = "other",
        expense_date: date | None = None,
        participants: Sequence[int] = (),
        policy: SplitPolicy | None = None,
        receipt: ReceiptBreakdown | None = None,
    ) -> Expense:
        """
        Record a new expense paid by ``paid_by`` and split it.

        Args:
            group_id: Group the expense belongs to
            paid_by: The paying member
            amount: Expense total
            description: What the money was spent on
            category: One of CATEGORIES
            expense_date: Defaults to today
            participants: Members sharing the cost; defaults to every member
            policy: How to split; defaults to an equal split
            receipt: Optional receipt breakdown kept with the expense

        Returns:
            The created expense
        """
        require_member(self.db, group_id, paid_by)
        if not description or not description.strip():
            raise ValidationError("Description is required")
        validate_category(category)

        policy = policy or EqualSplit()
        participants = list(participants) or self.db.get_member_ids(group_id)
        outsiders = [u for u in participants if not self.db.is_member(group_id, u)]
        if outsiders:
            raise ValidationError(
                f"Users {', '.join(str(u) for u in outsiders)} "
                f"are not members of group {group_id}"
            )

        shares = compute_splits(
            Decimal(amount),
            participants,
            policy,
            epsilon=self.settings.reconciliation_epsilon,
        )

        expense = Expense(
            group_id=group_id,
            paid_by=paid_by,
            amount=Decimal(amount),
            description=description.strip(),
            category=category,
            expense_date=expense_date or date.today(),
            split_type=policy.kind,
        )
        items: list[LineItem] = []
        if isinstance(policy, ItemizedSplit):
            expense.tax = policy.tax
            expense.tip = policy.tip
            expense.subtotal = sum((item.price for item in policy.items), Decimal("0"))
            expense.is_itemized = True
            items = policy.items
        if receipt is not None:
            expense.subtotal = receipt.subtotal
            expense.tax = receipt.tax
            expense.tip = receipt.tip
            expense.is_itemized = receipt.is_itemized or expense.is_itemized
            items = receipt.items or items

        return self.record_expense(expense, shares, items)

    def record_expense(
        self,
        expense: Expense,
        shares: list[ShareAmount],
        items: Sequence[LineItem] = (),
    ) -> Expense:
        """
        Write an expense, its splits and its line items atomically.

        The payer's own split is marked as paid.
        """
        with self.db.transaction():
            expense.id = self.db.insert_expense(expense)
            for share in shares:
                self.db.insert_split(
                    Split(
                        expense_id=expense.id,
                        user_id=share.user_id,
                        amount_owed=share.amount,
                        paid=share.user_id == expense.paid_by,
                    )
                )
            for item in items:
                self.db.insert_line_item(expense.id, item)

        logger.info(
            f"Created expense {expense.id} '{expense.description}' "
            f"${expense.amount} split {expense.split_type} between {len(shares)}"
        )
        return expense

    def update_expense(
        self,
        expense_id: int,
        acting_user: int,
        amount: Decimal | None = None,
        description: str | None = None,
        category: str | None = None,
    ) -> Expense:
        """
        Edit an expense. Only its payer may do so.

        A new amount is redistributed equally over the participants the
        expense already has; the policy used at creation is not reapplied.

        Returns:
            The updated expense
        """
        expense = self._require_payer(expense_id, acting_user, "edit")

        if description is not None:
            if not description.strip():
                raise ValidationError("Description is required")
            expense.description = description.strip()
        if category is not None:
            expense.category = validate_category(category)

        shares = None
        if amount is not None:
            splits = self.db.get_splits(expense_id)
            shares = compute_splits(
                Decimal(amount),
                [split.user_id for split in splits],
                EqualSplit(),
                epsilon=self.settings.reconciliation_epsilon,
            )
            expense.amount = Decimal(amount)
            # An equal re-split drops the receipt breakdown
            expense.split_type = "equal"
            expense.subtotal = None
            expense.tax = Decimal("0")
            expense.tip = Decimal("0")
            expense.is_itemized = False

        with self.db.transaction():
            self.db.update_expense(expense)
            if shares is not None:
                self.db.delete_line_items(expense_id)
                self.db.delete_splits(expense_id)
                for share in shares:
                    self.db.insert_split(
                        Split(
                            expense_id=expense_id,
                            user_id=share.user_id,
                            amount_owed=share.amount,
                            paid=share.user_id == expense.paid_by,
                        )
                    )

        logger.info(f"User {acting_user} updated expense {expense_id}")
        return self.get_expense(expense_id)

    def delete_expense(self, expense_id: int, acting_user: int):
        """Delete an expense and its splits. Only its payer may do so."""
        self._require_payer(expense_id, acting_user, "delete")
        with self.db.transaction():
            self.db.delete_expense(expense_id)

        logger.info(f"User {acting_user} deleted expense {expense_id}")

    def get_expense(self, expense_id: int) -> Expense:
        """Get an expense or raise ExpenseNotFoundError."""
        expense = self.db.get_expense(expense_id)
        if expense is None:
            raise ExpenseNotFoundError(expense_id)
        return expense

    def view_expense(self, expense_id: int, acting_user: int) -> Expense:
        """Get an expense for a member of its group."""
        expense = self.get_expense(expense_id)
        require_member(self.db, expense.group_id, acting_user)
        return expense

    def get_splits(self, expense_id: int, acting_user: int) -> list[Split]:
        """Get the splits of an expense. Members only."""
        self.view_expense(expense_id, acting_user)
        return self.db.get_splits(expense_id)

    def get_line_items(self, expense_id: int, acting_user: int) -> list[LineItem]:
        """Get the receipt line items of an expense. Members only."""
        self.view_expense(expense_id, acting_user)
        return self.db.get_line_items(expense_id)

    def list_group_expenses(self, group_id: int, acting_user: int) -> list[Expense]:
        """Get a group's expenses, newest first. Members only."""
        require_member(self.db, group_id, acting_user)
        return self.db.list_group_expenses(group_id)

    def _require_payer(self, expense_id: int, acting_user: int, action: str) -> Expense:
        expense = self.get_expense(expense_id)
        if expense.paid_by != acting_user:
            raise AuthorizationError(
                f"Only the payer can {action} expense {expense_id}"
            )
        return expense
