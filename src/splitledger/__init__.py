"""Split Ledger - Record shared costs and track who owes whom."""

__version__ = "0.1.0"

from .budgets import BudgetService, evaluate_budget
from .config import Settings, load_settings
from .db import Database
from .groups import GroupService
from .ledger import LedgerAggregator, suggest_transfers
from .models import (
    Balance,
    Budget,
    BudgetStatus,
    CustomSplit,
    EqualSplit,
    Expense,
    ItemizedSplit,
    LineItem,
    PercentageSplit,
    RecurringExpenseTemplate,
    Settlement,
    Split,
)
from .recurring import RecurringService
from .service import ExpenseService
from .settlements import SettlementService
from .splitter import compute_splits, from_cents, to_cents

__all__ = [
    "Settings",
    "load_settings",
    "Database",
    "Balance",
    "Budget",
    "BudgetStatus",
    "CustomSplit",
    "EqualSplit",
    "Expense",
    "ItemizedSplit",
    "LineItem",
    "PercentageSplit",
    "RecurringExpenseTemplate",
    "Settlement",
    "Split",
    "compute_splits",
    "from_cents",
    "to_cents",
    "BudgetService",
    "evaluate_budget",
    "ExpenseService",
    "GroupService",
    "LedgerAggregator",
    "suggest_transfers",
    "RecurringService",
    "SettlementService",
]
