"""SQLite database operations for Split Ledger."""

import json
import logging
import sqlite3
from collections.abc import Iterator, Sequence
from contextlib import contextmanager
from datetime import date, datetime
from pathlib import Path

from .exceptions import LedgerStoreError
from .models import (
    Budget,
    Expense,
    Group,
    LineItem,
    RecurringExpenseTemplate,
    Settlement,
    Split,
)
from .splitter import from_cents, to_cents

logger = logging.getLogger(__name__)


def _to_date(value: str | None) -> date | None:
    return date.fromisoformat(value) if value else None


def _to_datetime(value: str | None) -> datetime | None:
    return datetime.fromisoformat(value) if value else None


class Database:
    """SQLite database manager.

    Amounts are stored as integer cents. Write methods never commit on their
    own; callers group them with ``transaction()``.
    """

    def __init__(self, db_path: Path):
        """Initialize database connection."""
        self.db_path = db_path
        self.conn = sqlite3.connect(str(db_path))
        self.conn.row_factory = sqlite3.Row
        self.conn.execute("PRAGMA foreign_keys = ON")
        self._init_schema()

    def _init_schema(self):
        """Initialize database schema."""
        cursor = self.conn.cursor()

        # Groups and membership
        cursor.execute(
            """
            CREATE TABLE IF NOT EXISTS groups (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                name TEXT NOT NULL,
                description TEXT,
                created_by INTEGER NOT NULL,
                created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
            )
        """
        )
        cursor.execute(
            """
            CREATE TABLE IF NOT EXISTS group_members (
                group_id INTEGER NOT NULL REFERENCES groups(id) ON DELETE CASCADE,
                user_id INTEGER NOT NULL,
                joined_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
                PRIMARY KEY (group_id, user_id)
            )
        """
        )

        # Expenses table
        cursor.execute(
            """
            CREATE TABLE IF NOT EXISTS expenses (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                group_id INTEGER NOT NULL REFERENCES groups(id) ON DELETE CASCADE,
                paid_by INTEGER NOT NULL,
                amount_cents INTEGER NOT NULL CHECK (amount_cents > 0),
                description TEXT NOT NULL,
                category TEXT NOT NULL DEFAULT 'other',
                expense_date DATE NOT NULL,
                split_type TEXT NOT NULL DEFAULT 'equal',
                subtotal_cents INTEGER,
                tax_cents INTEGER NOT NULL DEFAULT 0,
                tip_cents INTEGER NOT NULL DEFAULT 0,
                is_itemized INTEGER NOT NULL DEFAULT 0,
                recurring_id INTEGER,
                recurring_period TEXT,
                created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
                updated_at TIMESTAMP,
                UNIQUE (recurring_id, recurring_period)
            )
        """
        )

        # Expense splits table
        cursor.execute(
            """
            CREATE TABLE IF NOT EXISTS expense_splits (
                expense_id INTEGER NOT NULL
                    REFERENCES expenses(id) ON DELETE CASCADE,
                user_id INTEGER NOT NULL,
                amount_owed_cents INTEGER NOT NULL CHECK (amount_owed_cents >= 0),
                paid INTEGER NOT NULL DEFAULT 0,
                UNIQUE (expense_id, user_id)
            )
        """
        )

        # Receipt line items table
        cursor.execute(
            """
            CREATE TABLE IF NOT EXISTS expense_items (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                expense_id INTEGER NOT NULL
                    REFERENCES expenses(id) ON DELETE CASCADE,
                name TEXT NOT NULL,
                price_cents INTEGER NOT NULL,
                assignees TEXT NOT NULL DEFAULT '[]'
            )
        """
        )

        # Settlements table
        cursor.execute(
            """
            CREATE TABLE IF NOT EXISTS settlements (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                group_id INTEGER NOT NULL REFERENCES groups(id) ON DELETE CASCADE,
                from_user INTEGER NOT NULL,
                to_user INTEGER NOT NULL,
                amount_cents INTEGER NOT NULL CHECK (amount_cents > 0),
                status TEXT NOT NULL DEFAULT 'pending'
                    CHECK (status IN ('pending', 'confirmed')),
                created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
                confirmed_at TIMESTAMP
            )
        """
        )

        # Recurring expense templates table
        cursor.execute(
            """
            CREATE TABLE IF NOT EXISTS recurring_expenses (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                group_id INTEGER NOT NULL REFERENCES groups(id) ON DELETE CASCADE,
                paid_by INTEGER NOT NULL,
                amount_cents INTEGER NOT NULL CHECK (amount_cents > 0),
                description TEXT NOT NULL,
                category TEXT NOT NULL DEFAULT 'other',
                frequency TEXT NOT NULL DEFAULT 'monthly',
                day_of_month INTEGER NOT NULL
                    CHECK (day_of_month BETWEEN 1 AND 31),
                start_date DATE,
                end_date DATE,
                is_active INTEGER NOT NULL DEFAULT 1,
                created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
            )
        """
        )

        # Budgets table
        cursor.execute(
            """
            CREATE TABLE IF NOT EXISTS budgets (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                user_id INTEGER NOT NULL,
                group_id INTEGER REFERENCES groups(id) ON DELETE CASCADE,
                category TEXT NOT NULL,
                amount_cents INTEGER NOT NULL CHECK (amount_cents > 0),
                period TEXT NOT NULL DEFAULT 'monthly',
                created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
                updated_at TIMESTAMP
            )
        """
        )

        self.conn.commit()

    def close(self):
        """Close database connection."""
        self.conn.close()

    @contextmanager
    def transaction(self) -> Iterator[sqlite3.Connection]:
        """
        Run a group of writes as one atomic unit.

        Commits when the block finishes and rolls everything back if it
        raises. Store failures surface as a retryable LedgerStoreError.
        """
        try:
            yield self.conn
            self.conn.commit()
        except sqlite3.Error as e:
            self.conn.rollback()
            logger.error(f"Rolled back transaction: {e}")
            raise LedgerStoreError() from e
        except BaseException:
            self.conn.rollback()
            raise

    # ========================================================================
    # Group operations
    # ========================================================================

    def insert_group(self, group: Group) -> int:
        """Insert a group row."""
        cursor = self.conn.cursor()
        cursor.execute(
            """
            INSERT INTO groups (name, description, created_by, created_at)
            VALUES (?, ?, ?, ?)
            """,
            (
                group.name,
                group.description,
                group.created_by,
                group.created_at.isoformat(),
            ),
        )
        row_id = cursor.lastrowid
        if row_id is None:
            raise RuntimeError("Failed to insert group")
        return row_id

    def get_group(self, group_id: int) -> Group | None:
        """Get a group by id."""
        cursor = self.conn.cursor()
        cursor.execute(
            """
            SELECT id, name, description, created_by, created_at
            FROM groups
            WHERE id = ?
            """,
            (group_id,),
        )
        row = cursor.fetchone()
        if not row:
            return None

        return Group(
            id=row["id"],
            name=row["name"],
            description=row["description"],
            created_by=row["created_by"],
            created_at=datetime.fromisoformat(row["created_at"]),
        )

    def insert_member(self, group_id: int, user_id: int):
        """Add a user to a group; adding an existing member is a no-op."""
        self.conn.execute(
            """
            INSERT INTO group_members (group_id, user_id, joined_at)
            VALUES (?, ?, ?)
            ON CONFLICT (group_id, user_id) DO NOTHING
            """,
            (group_id, user_id, datetime.now().isoformat()),
        )

    def is_member(self, group_id: int, user_id: int) -> bool:
        """Check if a user belongs to a group."""
        cursor = self.conn.cursor()
        cursor.execute(
            "SELECT 1 FROM group_members WHERE group_id = ? AND user_id = ?",
            (group_id, user_id),
        )
        return cursor.fetchone() is not None

    def get_member_ids(self, group_id: int) -> list[int]:
        """Get a group's current members, in the order they joined."""
        cursor = self.conn.cursor()
        cursor.execute(
            "SELECT user_id FROM group_members WHERE group_id = ? ORDER BY rowid",
            (group_id,),
        )
        return [row["user_id"] for row in cursor.fetchall()]

    # ========================================================================
    # Expense operations
    # ========================================================================

    def insert_expense(self, expense: Expense) -> int:
        """Insert an expense row."""
        cursor = self.conn.cursor()
        cursor.execute(
            """
            INSERT INTO expenses (
                group_id, paid_by, amount_cents, description, category,
                expense_date, split_type, subtotal_cents, tax_cents, tip_cents,
                is_itemized, recurring_id, recurring_period, created_at
            ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (
                expense.group_id,
                expense.paid_by,
                to_cents(expense.amount),
                expense.description,
                expense.category,
                expense.expense_date.isoformat(),
                expense.split_type,
                to_cents(expense.subtotal) if expense.subtotal is not None else None,
                to_cents(expense.tax),
                to_cents(expense.tip),
                int(expense.is_itemized),
                expense.recurring_id,
                expense.recurring_period,
                expense.created_at.isoformat(),
            ),
        )
        row_id = cursor.lastrowid
        if row_id is None:
            raise RuntimeError("Failed to insert expense")
        return row_id

    def update_expense(self, expense: Expense):
        """Overwrite the editable fields and split metadata of an expense."""
        self.conn.execute(
            """
            UPDATE expenses
            SET amount_cents = ?, description = ?, category = ?, split_type = ?,
                subtotal_cents = ?, tax_cents = ?, tip_cents = ?, is_itemized = ?,
                updated_at = ?
            WHERE id = ?
            """,
            (
                to_cents(expense.amount),
                expense.description,
                expense.category,
                expense.split_type,
                to_cents(expense.subtotal) if expense.subtotal is not None else None,
                to_cents(expense.tax),
                to_cents(expense.tip),
                int(expense.is_itemized),
                datetime.now().isoformat(),
                expense.id,
            ),
        )

    def delete_expense(self, expense_id: int):
        """Delete an expense; splits and line items cascade."""
        self.conn.execute("DELETE FROM expenses WHERE id = ?", (expense_id,))

    def get_expense(self, expense_id: int) -> Expense | None:
        """Get an expense by id."""
        cursor = self.conn.cursor()
        cursor.execute("SELECT * FROM expenses WHERE id = ?", (expense_id,))
        row = cursor.fetchone()
        return self._row_to_expense(row) if row else None

    def list_group_expenses(self, group_id: int) -> list[Expense]:
        """Get a group's expenses, newest first."""
        cursor = self.conn.cursor()
        cursor.execute(
            """
            SELECT * FROM expenses
            WHERE group_id = ?
            ORDER BY expense_date DESC, created_at DESC, id DESC
            """,
            (group_id,),
        )
        return [self._row_to_expense(row) for row in cursor.fetchall()]

    def is_materialized(self, recurring_id: int, period: str) -> bool:
        """Check if a recurring template already produced its expense for a period."""
        cursor = self.conn.cursor()
        cursor.execute(
            "SELECT 1 FROM expenses WHERE recurring_id = ? AND recurring_period = ?",
            (recurring_id, period),
        )
        return cursor.fetchone() is not None

    def _row_to_expense(self, row: sqlite3.Row) -> Expense:
        return Expense(
            id=row["id"],
            group_id=row["group_id"],
            paid_by=row["paid_by"],
            amount=from_cents(row["amount_cents"]),
            description=row["description"],
            category=row["category"],
            expense_date=date.fromisoformat(row["expense_date"]),
            split_type=row["split_type"],
            subtotal=(
                from_cents(row["subtotal_cents"])
                if row["subtotal_cents"] is not None
                else None
            ),
            tax=from_cents(row["tax_cents"]),
            tip=from_cents(row["tip_cents"]),
            is_itemized=bool(row["is_itemized"]),
            recurring_id=row["recurring_id"],
            recurring_period=row["recurring_period"],
            created_at=datetime.fromisoformat(row["created_at"]),
            updated_at=_to_datetime(row["updated_at"]),
        )

    # ========================================================================
    # Split and line item operations
    # ========================================================================

    def insert_split(self, split: Split):
        """Insert one participant's share of an expense."""
        self.conn.execute(
            """
            INSERT INTO expense_splits (expense_id, user_id, amount_owed_cents, paid)
            VALUES (?, ?, ?, ?)
            """,
            (
                split.expense_id,
                split.user_id,
                to_cents(split.amount_owed),
                int(split.paid),
            ),
        )

    def delete_splits(self, expense_id: int):
        """Delete all splits of an expense."""
        self.conn.execute(
            "DELETE FROM expense_splits WHERE expense_id = ?", (expense_id,)
        )

    def get_splits(self, expense_id: int) -> list[Split]:
        """Get the splits of an expense, in insertion order."""
        cursor = self.conn.cursor()
        cursor.execute(
            """
            SELECT expense_id, user_id, amount_owed_cents, paid
            FROM expense_splits
            WHERE expense_id = ?
            ORDER BY rowid
            """,
            (expense_id,),
        )
        return [
            Split(
                expense_id=row["expense_id"],
                user_id=row["user_id"],
                amount_owed=from_cents(row["amount_owed_cents"]),
                paid=bool(row["paid"]),
            )
            for row in cursor.fetchall()
        ]

    def insert_line_item(self, expense_id: int, item: LineItem):
        """Insert a receipt line item."""
        self.conn.execute(
            """
            INSERT INTO expense_items (expense_id, name, price_cents, assignees)
            VALUES (?, ?, ?, ?)
            """,
            (expense_id, item.name, to_cents(item.price), json.dumps(item.assignees)),
        )

    def delete_line_items(self, expense_id: int):
        """Delete the receipt line items of an expense."""
        self.conn.execute("DELETE FROM expense_items WHERE expense_id = ?", (expense_id,))

    def get_line_items(self, expense_id: int) -> list[LineItem]:
        """Get the receipt line items of an expense."""
        cursor = self.conn.cursor()
        cursor.execute(
            """
            SELECT name, price_cents, assignees
            FROM expense_items
            WHERE expense_id = ?
            ORDER BY id
            """,
            (expense_id,),
        )
        return [
            LineItem(
                name=row["name"],
                price=from_cents(row["price_cents"]),
                assignees=json.loads(row["assignees"]),
            )
            for row in cursor.fetchall()
        ]

    # ========================================================================
    # Balance queries
    # ========================================================================

    def get_user_totals(self, user_id: int, group_id: int | None) -> tuple[int, int]:
        """
        Get (paid, owed) cents for a user, in one group or across all groups.
        """
        group_filter = "AND e.group_id = ?" if group_id is not None else ""
        group_params: tuple[int, ...] = (group_id,) if group_id is not None else ()

        cursor = self.conn.cursor()
        cursor.execute(
            f"""
            SELECT COALESCE(SUM(e.amount_cents), 0) AS total
            FROM expenses e
            WHERE e.paid_by = ? {group_filter}
            """,
            (user_id, *group_params),
        )
        paid = cursor.fetchone()["total"]

        cursor.execute(
            f"""
            SELECT COALESCE(SUM(es.amount_owed_cents), 0) AS total
            FROM expense_splits es
            JOIN expenses e ON es.expense_id = e.id
            WHERE es.user_id = ? {group_filter}
            """,
            (user_id, *group_params),
        )
        owed = cursor.fetchone()["total"]

        return paid, owed

    def get_group_totals(self, group_id: int) -> list[tuple[int, int, int]]:
        """
        Get (user_id, paid, owed) cents for every member of a group.

        Members without any activity are included with zeros.
        """
        cursor = self.conn.cursor()
        cursor.execute(
            """
            SELECT gm.user_id,
                   COALESCE(paid.total, 0) AS total_paid,
                   COALESCE(owed.total, 0) AS total_owed
            FROM group_members gm
            LEFT JOIN (
                SELECT paid_by, SUM(amount_cents) AS total
                FROM expenses
                WHERE group_id = ?
                GROUP BY paid_by
            ) paid ON gm.user_id = paid.paid_by
            LEFT JOIN (
                SELECT es.user_id, SUM(es.amount_owed_cents) AS total
                FROM expense_splits es
                JOIN expenses e ON es.expense_id = e.id
                WHERE e.group_id = ?
                GROUP BY es.user_id
            ) owed ON gm.user_id = owed.user_id
            WHERE gm.group_id = ?
            ORDER BY gm.rowid
            """,
            (group_id, group_id, group_id),
        )
        return [
            (row["user_id"], row["total_paid"], row["total_owed"])
            for row in cursor.fetchall()
        ]

    # ========================================================================
    # Settlement operations
    # ========================================================================

    def insert_settlement(self, settlement: Settlement) -> int:
        """Insert a settlement row."""
        cursor = self.conn.cursor()
        cursor.execute(
            """
            INSERT INTO settlements (
                group_id, from_user, to_user, amount_cents, status, created_at
            ) VALUES (?, ?, ?, ?, ?, ?)
            """,
            (
                settlement.group_id,
                settlement.from_user,
                settlement.to_user,
                to_cents(settlement.amount),
                settlement.status,
                settlement.created_at.isoformat(),
            ),
        )
        row_id = cursor.lastrowid
        if row_id is None:
            raise RuntimeError("Failed to insert settlement")
        return row_id

    def get_settlement(self, settlement_id: int) -> Settlement | None:
        """Get a settlement by id."""
        cursor = self.conn.cursor()
        cursor.execute("SELECT * FROM settlements WHERE id = ?", (settlement_id,))
        row = cursor.fetchone()
        return self._row_to_settlement(row) if row else None

    def confirm_pending_settlement(
        self, settlement_id: int, confirmed_at: datetime
    ) -> bool:
        """
        Move a settlement from pending to confirmed.

        Returns:
            False if the settlement was not pending
        """
        cursor = self.conn.cursor()
        cursor.execute(
            """
            UPDATE settlements
            SET status = 'confirmed', confirmed_at = ?
            WHERE id = ? AND status = 'pending'
            """,
            (confirmed_at.isoformat(), settlement_id),
        )
        return cursor.rowcount == 1

    def list_pending_settlements(self, user_id: int) -> list[Settlement]:
        """Get pending settlements where the user is sender or recipient."""
        cursor = self.conn.cursor()
        cursor.execute(
            """
            SELECT * FROM settlements
            WHERE status = 'pending' AND (from_user = ? OR to_user = ?)
            ORDER BY created_at DESC, id DESC
            """,
            (user_id, user_id),
        )
        return [self._row_to_settlement(row) for row in cursor.fetchall()]

    def list_group_settlements(self, group_id: int) -> list[Settlement]:
        """Get all settlements of a group, newest first."""
        cursor = self.conn.cursor()
        cursor.execute(
            """
            SELECT * FROM settlements
            WHERE group_id = ?
            ORDER BY created_at DESC, id DESC
            """,
            (group_id,),
        )
        return [self._row_to_settlement(row) for row in cursor.fetchall()]

    def _row_to_settlement(self, row: sqlite3.Row) -> Settlement:
        return Settlement(
            id=row["id"],
            group_id=row["group_id"],
            from_user=row["from_user"],
            to_user=row["to_user"],
            amount=from_cents(row["amount_cents"]),
            status=row["status"],
            created_at=datetime.fromisoformat(row["created_at"]),
            confirmed_at=_to_datetime(row["confirmed_at"]),
        )

    # ========================================================================
    # Recurring template operations
    # ========================================================================

    def insert_template(self, template: RecurringExpenseTemplate) -> int:
        """Insert a recurring expense template."""
        cursor = self.conn.cursor()
        cursor.execute(
            """
            INSERT INTO recurring_expenses (
                group_id, paid_by, amount_cents, description, category,
                frequency, day_of_month, start_date, end_date, is_active,
                created_at
            ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (
                template.group_id,
                template.paid_by,
                to_cents(template.amount),
                template.description,
                template.category,
                template.frequency,
                template.day_of_month,
                template.start_date.isoformat() if template.start_date else None,
                template.end_date.isoformat() if template.end_date else None,
                int(template.is_active),
                template.created_at.isoformat(),
            ),
        )
        row_id = cursor.lastrowid
        if row_id is None:
            raise RuntimeError("Failed to insert recurring expense")
        return row_id

    def get_template(self, template_id: int) -> RecurringExpenseTemplate | None:
        """Get a recurring expense template by id."""
        cursor = self.conn.cursor()
        cursor.execute(
            "SELECT * FROM recurring_expenses WHERE id = ?", (template_id,)
        )
        row = cursor.fetchone()
        return self._row_to_template(row) if row else None

    def list_active_templates(self, group_id: int) -> list[RecurringExpenseTemplate]:
        """Get a group's active templates, ordered by day of month."""
        cursor = self.conn.cursor()
        cursor.execute(
            """
            SELECT * FROM recurring_expenses
            WHERE group_id = ? AND is_active = 1
            ORDER BY day_of_month, id
            """,
            (group_id,),
        )
        return [self._row_to_template(row) for row in cursor.fetchall()]

    def list_due_templates(
        self, days: Sequence[int], today: date
    ) -> list[RecurringExpenseTemplate]:
        """Get active templates scheduled on one of ``days`` whose window contains today."""
        placeholders = ", ".join("?" for _ in days)
        cursor = self.conn.cursor()
        cursor.execute(
            f"""
            SELECT * FROM recurring_expenses
            WHERE is_active = 1
            AND day_of_month IN ({placeholders})
            AND (start_date IS NULL OR start_date <= ?)
            AND (end_date IS NULL OR end_date >= ?)
            ORDER BY id
            """,
            (*days, today.isoformat(), today.isoformat()),
        )
        return [self._row_to_template(row) for row in cursor.fetchall()]

    def set_template_active(self, template_id: int, is_active: bool):
        """Pause or resume a template."""
        self.conn.execute(
            "UPDATE recurring_expenses SET is_active = ? WHERE id = ?",
            (int(is_active), template_id),
        )

    def delete_template(self, template_id: int):
        """Delete a template. Expenses it already produced are kept."""
        self.conn.execute("DELETE FROM recurring_expenses WHERE id = ?", (template_id,))

    def _row_to_template(self, row: sqlite3.Row) -> RecurringExpenseTemplate:
        return RecurringExpenseTemplate(
            id=row["id"],
            group_id=row["group_id"],
            paid_by=row["paid_by"],
            amount=from_cents(row["amount_cents"]),
            description=row["description"],
            category=row["category"],
            frequency=row["frequency"],
            day_of_month=row["day_of_month"],
            start_date=_to_date(row["start_date"]),
            end_date=_to_date(row["end_date"]),
            is_active=bool(row["is_active"]),
            created_at=datetime.fromisoformat(row["created_at"]),
        )

    # ========================================================================
    # Budget operations
    # ========================================================================

    def find_budget(
        self, user_id: int, group_id: int | None, category: str, period: str
    ) -> Budget | None:
        """Find a budget by its natural key."""
        cursor = self.conn.cursor()
        cursor.execute(
            """
            SELECT * FROM budgets
            WHERE user_id = ? AND group_id IS ? AND category = ? AND period = ?
            """,
            (user_id, group_id, category, period),
        )
        row = cursor.fetchone()
        return self._row_to_budget(row) if row else None

    def get_budget(self, budget_id: int) -> Budget | None:
        """Get a budget by id."""
        cursor = self.conn.cursor()
        cursor.execute("SELECT * FROM budgets WHERE id = ?", (budget_id,))
        row = cursor.fetchone()
        return self._row_to_budget(row) if row else None

    def insert_budget(self, budget: Budget) -> int:
        """Insert a budget row."""
        cursor = self.conn.cursor()
        cursor.execute(
            """
            INSERT INTO budgets (
                user_id, group_id, category, amount_cents, period, created_at
            ) VALUES (?, ?, ?, ?, ?, ?)
            """,
            (
                budget.user_id,
                budget.group_id,
                budget.category,
                to_cents(budget.amount),
                budget.period,
                budget.created_at.isoformat(),
            ),
        )
        row_id = cursor.lastrowid
        if row_id is None:
            raise RuntimeError("Failed to insert budget")
        return row_id

    def update_budget_amount(self, budget_id: int, amount_cents: int) -> datetime:
        """Change a budget's amount."""
        updated_at = datetime.now()
        self.conn.execute(
            "UPDATE budgets SET amount_cents = ?, updated_at = ? WHERE id = ?",
            (amount_cents, updated_at.isoformat(), budget_id),
        )
        return updated_at

    def list_budgets(self, user_id: int, group_id: int | None) -> list[Budget]:
        """Get a user's budgets for one group, or their unscoped budgets."""
        cursor = self.conn.cursor()
        cursor.execute(
            """
            SELECT * FROM budgets
            WHERE user_id = ? AND group_id IS ?
            ORDER BY category, id
            """,
            (user_id, group_id),
        )
        return [self._row_to_budget(row) for row in cursor.fetchall()]

    def delete_budget(self, budget_id: int):
        """Delete a budget."""
        self.conn.execute("DELETE FROM budgets WHERE id = ?", (budget_id,))

    def get_category_spent(
        self, user_id: int, category: str, since: date, group_id: int | None
    ) -> int:
        """Sum of a user's owed cents in a category for expenses dated on/after ``since``."""
        group_filter = "AND e.group_id = ?" if group_id is not None else ""
        group_params: tuple[int, ...] = (group_id,) if group_id is not None else ()

        cursor = self.conn.cursor()
        cursor.execute(
            f"""
            SELECT COALESCE(SUM(es.amount_owed_cents), 0) AS spent
            FROM expense_splits es
            JOIN expenses e ON es.expense_id = e.id
            WHERE es.user_id = ?
            AND e.category = ?
            AND e.expense_date >= ?
            {group_filter}
            """,
            (user_id, category, since.isoformat(), *group_params),
        )
        spent: int = cursor.fetchone()["spent"]
        return spent

    def _row_to_budget(self, row: sqlite3.Row) -> Budget:
        return Budget(
            id=row["id"],
            user_id=row["user_id"],
            group_id=row["group_id"],
            category=row["category"],
            amount=from_cents(row["amount_cents"]),
            period=row["period"],
            created_at=datetime.fromisoformat(row["created_at"]),
            updated_at=_to_datetime(row["updated_at"]),
        )
