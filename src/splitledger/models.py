"""Pydantic domain models for Split Ledger."""

from datetime import date, datetime
from decimal import Decimal
from typing import Annotated, Literal, get_args

from pydantic import BaseModel, Field

Category = Literal[
    "food", "rent", "utilities", "transport", "entertainment", "shopping", "other"
]
CATEGORIES: tuple[str, ...] = get_args(Category)

SplitType = Literal["equal", "custom", "percentage", "itemized"]
SettlementStatus = Literal["pending", "confirmed"]
Frequency = Literal["monthly"]
BudgetPeriod = Literal["monthly"]

# ============================================================================
# Split Policies
# ============================================================================


class EqualSplit(BaseModel):
    """Divide the total evenly between all participants."""

    kind: Literal["equal"] = "equal"


class CustomSplit(BaseModel):
    """Explicit amount per participant."""

    kind: Literal["custom"] = "custom"
    amounts: dict[int, Decimal] = Field(default_factory=dict)


class PercentageSplit(BaseModel):
    """Percentage of the total per participant."""

    kind: Literal["percentage"] = "percentage"
    percentages: dict[int, Decimal] = Field(default_factory=dict)


class LineItem(BaseModel):
    """A receipt line item and the participants sharing it."""

    name: str
    price: Decimal
    assignees: list[int] = Field(default_factory=list)


class ItemizedSplit(BaseModel):
    """Line items shared by subsets of participants, plus tax and tip.

    Tax and tip are distributed in proportion to each participant's item
    subtotal.
    """

    kind: Literal["itemized"] = "itemized"
    items: list[LineItem] = Field(default_factory=list)
    tax: Decimal = Decimal("0")
    tip: Decimal = Decimal("0")


SplitPolicy = Annotated[
    EqualSplit | CustomSplit | PercentageSplit | ItemizedSplit,
    Field(discriminator="kind"),
]


class ShareAmount(BaseModel):
    """One participant's computed share of a total."""

    user_id: int
    amount: Decimal


# ============================================================================
# Ledger Models
# ============================================================================


class Group(BaseModel):
    """A group of people sharing costs."""

    id: int | None = None
    name: str
    description: str | None = None
    created_by: int
    created_at: datetime = Field(default_factory=datetime.now)


class ReceiptBreakdown(BaseModel):
    """Optional receipt metadata stored alongside an expense."""

    subtotal: Decimal | None = None
    tax: Decimal = Decimal("0")
    tip: Decimal = Decimal("0")
    is_itemized: bool = False
    items: list[LineItem] = Field(default_factory=list)


class Expense(BaseModel):
    """A single recorded cost with one payer."""

    id: int | None = None
    group_id: int
    paid_by: int
    amount: Decimal
    description: str
    category: Category = "other"
    expense_date: date = Field(default_factory=date.today)
    split_type: SplitType = "equal"
    subtotal: Decimal | None = None
    tax: Decimal = Decimal("0")
    tip: Decimal = Decimal("0")
    is_itemized: bool = False
    recurring_id: int | None = None  # template that materialized this expense
    recurring_period: str | None = None  # "YYYY-MM"
    created_at: datetime = Field(default_factory=datetime.now)
    updated_at: datetime | None = None


class Split(BaseModel):
    """One participant's owed share of an expense."""

    expense_id: int
    user_id: int
    amount_owed: Decimal
    paid: bool = False  # True only for the payer's own share


class Balance(BaseModel):
    """Net position of a participant within a scope.

    Positive net means the participant is owed money, negative means they owe.
    """

    user_id: int
    group_id: int | None = None  # None = across all groups
    total_paid: Decimal
    total_owed: Decimal
    net: Decimal


class SuggestedTransfer(BaseModel):
    """A payment that would move the group towards being settled up."""

    from_user: int
    to_user: int
    amount: Decimal


# ============================================================================
# Settlement Models
# ============================================================================


class Settlement(BaseModel):
    """A claim that money moved between two members outside the system."""

    id: int | None = None
    group_id: int
    from_user: int
    to_user: int
    amount: Decimal
    status: SettlementStatus = "pending"
    created_at: datetime = Field(default_factory=datetime.now)
    confirmed_at: datetime | None = None


# ============================================================================
# Recurring Models
# ============================================================================


class RecurringExpenseTemplate(BaseModel):
    """A pattern for materializing an expense once per period."""

    id: int | None = None
    group_id: int
    paid_by: int
    amount: Decimal
    description: str
    category: Category = "other"
    frequency: Frequency = "monthly"
    day_of_month: int
    start_date: date | None = None
    end_date: date | None = None
    is_active: bool = True
    created_at: datetime = Field(default_factory=datetime.now)


class MaterializationReport(BaseModel):
    """Outcome of one recurring-expense scheduling tick."""

    run_date: date
    created: dict[int, int] = Field(default_factory=dict)  # template id -> expense id
    skipped: list[int] = Field(default_factory=list)  # already materialized
    failed: dict[int, str] = Field(default_factory=dict)  # template id -> reason


# ============================================================================
# Budget Models
# ============================================================================


class Budget(BaseModel):
    """A monthly spending ceiling for one category."""

    id: int | None = None
    user_id: int
    group_id: int | None = None  # None = across all groups
    category: Category
    amount: Decimal
    period: BudgetPeriod = "monthly"
    created_at: datetime = Field(default_factory=datetime.now)
    updated_at: datetime | None = None


class BudgetStatus(BaseModel):
    """A budget together with its spending in the current period."""

    budget: Budget
    spent: Decimal
    remaining: Decimal
    percentage: int
    is_over_budget: bool
