"""CLI for Split Ledger using Typer."""

import logging
import sys
from collections.abc import Iterator
from contextlib import contextmanager
from datetime import datetime
from decimal import Decimal, InvalidOperation

import typer
from rich.console import Console
from rich.table import Table

from .budgets import BudgetService
from .config import Settings, load_settings
from .db import Database
from .exceptions import SplitLedgerError, ValidationError
from .groups import GroupService
from .ledger import LedgerAggregator, suggest_transfers
from .models import (
    CATEGORIES,
    Balance,
    CustomSplit,
    EqualSplit,
    Expense,
    ItemizedSplit,
    LineItem,
    PercentageSplit,
    SplitPolicy,
)
from .recurring import RecurringService
from .service import ExpenseService
from .settlements import SettlementService
from .ui import confirm_settlement, select_category_interactive

app = typer.Typer(
    name="split-ledger",
    help="Record shared costs and track who owes whom",
)
group_app = typer.Typer(help="Groups and members")
expense_app = typer.Typer(help="Record, edit and list expenses")
settle_app = typer.Typer(help="Claim and confirm payments between members")
recurring_app = typer.Typer(help="Monthly recurring expenses")
budget_app = typer.Typer(help="Monthly category budgets")

app.add_typer(group_app, name="group")
app.add_typer(expense_app, name="expense")
app.add_typer(settle_app, name="settle")
app.add_typer(recurring_app, name="recurring")
app.add_typer(budget_app, name="budget")

console = Console()
_state = {"verbose": False}

ACTING_USER = typer.Option(..., "--as", help="Id of the user performing the action")
DATE_FORMATS = ["%Y-%m-%d"]


def setup_logging(verbose: bool = False):
    """Setup logging configuration."""
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level, format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    )


@app.callback()
def main(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Verbose output"),
):
    """Record shared costs and track who owes whom."""
    _state["verbose"] = verbose
    setup_logging(verbose)


@contextmanager
def open_ledger() -> Iterator[tuple[Settings, Database]]:
    """
    Open the configured database for one command.

    Ledger errors are reported here and turned into the error's exit code.
    """
    db = None
    try:
        settings = load_settings()
        db = Database(settings.database_path)
        yield settings, db
    except SplitLedgerError as e:
        console.print(f"\n[bold red]Error:[/bold red] {e}")
        if _state["verbose"]:
            raise
        sys.exit(e.exit_code)
    finally:
        if db is not None:
            db.close()


def parse_amount(value: str) -> Decimal:
    """Parse a money amount given on the command line."""
    try:
        return Decimal(value)
    except InvalidOperation:
        raise ValidationError(f"Invalid amount '{value}'") from None


def parse_assignments(values: list[str]) -> dict[int, Decimal]:
    """Parse ``USER=VALUE`` pairs."""
    result: dict[int, Decimal] = {}
    for value in values:
        user, sep, amount = value.partition("=")
        if not sep or not user.strip().isdigit():
            raise ValidationError(f"Expected USER=VALUE, got '{value}'")
        result[int(user)] = parse_amount(amount)
    return result


def parse_item(value: str) -> LineItem:
    """Parse ``NAME=PRICE@USER,USER`` into a line item."""
    name, sep, rest = value.rpartition("=")
    price, at, users = rest.partition("@")
    if not sep or not name or not at:
        raise ValidationError(f"Expected NAME=PRICE@USER,USER, got '{value}'")
    try:
        assignees = [int(u) for u in users.split(",") if u.strip()]
    except ValueError:
        raise ValidationError(f"Invalid assignees in '{value}'") from None
    return LineItem(name=name, price=parse_amount(price), assignees=assignees)


def build_policy(
    split: str,
    shares: list[str],
    items: list[str],
    tax: str,
    tip: str,
) -> SplitPolicy:
    """Build a split policy from command line options."""
    if split == "equal":
        return EqualSplit()
    if split == "custom":
        return CustomSplit(amounts=parse_assignments(shares))
    if split == "percentage":
        return PercentageSplit(percentages=parse_assignments(shares))
    if split == "itemized":
        return ItemizedSplit(
            items=[parse_item(item) for item in items],
            tax=parse_amount(tax),
            tip=parse_amount(tip),
        )
    raise ValidationError(
        f"Unknown split '{split}'. Choose equal, custom, percentage or itemized"
    )


def format_money(amount: Decimal, symbol: str = "$", use_color: bool = True) -> str:
    """
    Format money in accounting style with alignment.

    Negative amounts use parentheses: ($85.02)
    Positive amounts have spaces:      $85.02
    The spaces ensure decimal points align in tables.
    """
    abs_amount = abs(amount)
    if amount < 0:
        if use_color:
            return f"({symbol}[red]{abs_amount:,.2f}[/red])"
        return f"({symbol}{abs_amount:,.2f})"
    if use_color:
        return f" [green]{symbol}{abs_amount:,.2f}[/green] "
    return f" {symbol}{abs_amount:,.2f} "


def display_expenses(expenses: list[Expense], symbol: str):
    """Display expenses in a table."""
    table = Table(title="Expenses", show_header=True, header_style="bold magenta")
    table.add_column("ID", style="dim", width=6)
    table.add_column("Date", width=10)
    table.add_column("Description", style="cyan", width=40)
    table.add_column("Category", style="yellow")
    table.add_column("Paid by", justify="right")
    table.add_column("Amount", justify="right", width=12)
    table.add_column("Split", style="dim")

    for expense in expenses:
        desc = expense.description
        table.add_row(
            str(expense.id),
            str(expense.expense_date),
            desc[:40] + "..." if len(desc) > 40 else desc,
            expense.category,
            str(expense.paid_by),
            format_money(expense.amount, symbol),
            expense.split_type,
        )

    console.print(table)


def display_balances(balances: list[Balance], symbol: str):
    """Display member balances and the transfers that would settle them."""
    table = Table(title="Balances", show_header=True, header_style="bold magenta")
    table.add_column("User", style="cyan")
    table.add_column("Paid", justify="right", width=12)
    table.add_column("Owed", justify="right", width=12)
    table.add_column("Net", justify="right", width=12)

    for balance in balances:
        table.add_row(
            str(balance.user_id),
            format_money(balance.total_paid, symbol, use_color=False),
            format_money(balance.total_owed, symbol, use_color=False),
            format_money(balance.net, symbol),
        )

    console.print(table)

    # Verification
    total = sum((b.net for b in balances), Decimal("0"))
    if total == 0:
        console.print("  [green]✓ Balances add up to zero[/green]")
    else:
        console.print(f"  [red]✗ Balances are off by {total}[/red]")

    transfers = suggest_transfers(balances)
    if not transfers:
        console.print("\n[green]All settled up![/green]")
        return

    console.print("\n[bold]Suggested payments:[/bold]")
    for transfer in transfers:
        console.print(
            f"  User {transfer.from_user} → user {transfer.to_user}: "
            f"{format_money(transfer.amount, symbol)}"
        )


# ============================================================================
# Groups
# ============================================================================


@group_app.command("create")
def group_create(
    name: str = typer.Argument(..., help="Group name"),
    acting_user: int = ACTING_USER,
    members: list[int] = typer.Option([], "--member", "-m", help="Initial member id"),
    description: str | None = typer.Option(None, "--description", "-d"),
):
    """Create a group with you and the given members."""
    with open_ledger() as (_settings, db):
        group = GroupService(db).create_group(acting_user, name, description, members)
        console.print(f"[green]✓ Created group {group.id} '{group.name}'[/green]")


@group_app.command("add-member")
def group_add_member(
    group_id: int = typer.Argument(...),
    user_id: int = typer.Argument(...),
    acting_user: int = ACTING_USER,
):
    """Add a member to a group."""
    with open_ledger() as (_settings, db):
        GroupService(db).add_member(group_id, acting_user, user_id)
        console.print(f"[green]✓ Added user {user_id} to group {group_id}[/green]")


@group_app.command("members")
def group_members(group_id: int = typer.Argument(...), acting_user: int = ACTING_USER):
    """List the members of a group."""
    with open_ledger() as (_settings, db):
        members = GroupService(db).list_members(group_id, acting_user)
        console.print(", ".join(str(m) for m in members))


# ============================================================================
# Expenses
# ============================================================================


@expense_app.command("add")
def expense_add(
    group_id: int = typer.Option(..., "--group", "-g"),
    acting_user: int = ACTING_USER,
    amount: str = typer.Option(..., "--amount", "-a"),
    description: str = typer.Option(..., "--description", "-d"),
    category: str | None = typer.Option(None, "--category", "-c"),
    pick_category: bool = typer.Option(
        False, "--pick-category", help="Choose the category interactively"
    ),
    expense_date: datetime | None = typer.Option(None, "--date", formats=DATE_FORMATS),
    participants: list[int] = typer.Option(
        [], "--with", "-w", help="Participant id (default: every member)"
    ),
    split: str = typer.Option("equal", "--split", "-s"),
    shares: list[str] = typer.Option(
        [], "--share", help="USER=AMOUNT for custom, USER=PERCENT for percentage"
    ),
    items: list[str] = typer.Option(
        [], "--item", help="NAME=PRICE@USER,USER for itemized splits"
    ),
    tax: str = typer.Option("0", "--tax"),
    tip: str = typer.Option("0", "--tip"),
):
    """Record an expense you paid and split it."""
    if category is None and pick_category:
        category = select_category_interactive(description)

    with open_ledger() as (settings, db):
        policy = build_policy(split, shares, items, tax, tip)
        expense = ExpenseService(settings, db).create_expense(
            group_id=group_id,
            paid_by=acting_user,
            amount=parse_amount(amount),
            description=description,
            category=category or "other",
            expense_date=expense_date.date() if expense_date else None,
            participants=participants or (),
            policy=policy,
        )
        console.print(
            f"[green]✓ Recorded expense {expense.id}: {expense.description} "
            f"{format_money(expense.amount, settings.currency_symbol)}[/green]"
        )


@expense_app.command("edit")
def expense_edit(
    expense_id: int = typer.Argument(...),
    acting_user: int = ACTING_USER,
    amount: str | None = typer.Option(None, "--amount", "-a"),
    description: str | None = typer.Option(None, "--description", "-d"),
    category: str | None = typer.Option(None, "--category", "-c"),
):
    """Edit an expense you paid. A new amount is re-split equally."""
    with open_ledger() as (settings, db):
        expense = ExpenseService(settings, db).update_expense(
            expense_id,
            acting_user,
            amount=parse_amount(amount) if amount is not None else None,
            description=description,
            category=category,
        )
        console.print(f"[green]✓ Updated expense {expense.id}[/green]")


@expense_app.command("delete")
def expense_delete(expense_id: int = typer.Argument(...), acting_user: int = ACTING_USER):
    """Delete an expense you paid."""
    with open_ledger() as (settings, db):
        ExpenseService(settings, db).delete_expense(expense_id, acting_user)
        console.print(f"[green]✓ Deleted expense {expense_id}[/green]")


@expense_app.command("list")
def expense_list(group_id: int = typer.Argument(...), acting_user: int = ACTING_USER):
    """List a group's expenses."""
    with open_ledger() as (settings, db):
        expenses = ExpenseService(settings, db).list_group_expenses(group_id, acting_user)
        if not expenses:
            console.print("[yellow]No expenses yet.[/yellow]")
            return
        display_expenses(expenses, settings.currency_symbol)


@expense_app.command("show")
def expense_show(expense_id: int = typer.Argument(...), acting_user: int = ACTING_USER):
    """Show an expense and how it was split."""
    with open_ledger() as (settings, db):
        service = ExpenseService(settings, db)
        expense = service.view_expense(expense_id, acting_user)
        symbol = settings.currency_symbol

        console.print(f"\n[bold]{expense.description}[/bold] ({expense.category})")
        console.print(f"  Date: {expense.expense_date}")
        console.print(f"  Paid by: user {expense.paid_by}")
        console.print(f"  Total: {format_money(expense.amount, symbol)}")
        if expense.is_itemized:
            for item in service.get_line_items(expense_id, acting_user):
                console.print(
                    f"    {item.name}: {format_money(item.price, symbol, False)} "
                    f"[dim]{item.assignees}[/dim]"
                )
            console.print(f"  Tax: {format_money(expense.tax, symbol, False)}")
            console.print(f"  Tip: {format_money(expense.tip, symbol, False)}")

        table = Table(title="Splits", show_header=True, header_style="bold magenta")
        table.add_column("User", style="cyan")
        table.add_column("Owes", justify="right", width=12)
        table.add_column("Paid", justify="center")
        for split in service.get_splits(expense_id, acting_user):
            table.add_row(
                str(split.user_id),
                format_money(split.amount_owed, symbol, use_color=False),
                "✓" if split.paid else "",
            )
        console.print(table)


# ============================================================================
# Balances
# ============================================================================


@app.command()
def balance(
    acting_user: int = ACTING_USER,
    group_id: int | None = typer.Option(None, "--group", "-g"),
):
    """Show your balance in one group or across all groups."""
    with open_ledger() as (settings, db):
        result = LedgerAggregator(db).balance(acting_user, group_id)
        symbol = settings.currency_symbol
        console.print(f"  Paid: {format_money(result.total_paid, symbol, False)}")
        console.print(f"  Owed: {format_money(result.total_owed, symbol, False)}")
        console.print(f"  Net:  {format_money(result.net, symbol)}")


@app.command()
def balances(group_id: int = typer.Argument(...), acting_user: int = ACTING_USER):
    """Show every member's balance in a group."""
    with open_ledger() as (settings, db):
        results = LedgerAggregator(db).group_balances(group_id, acting_user)
        display_balances(results, settings.currency_symbol)


# ============================================================================
# Settlements
# ============================================================================


@settle_app.command("create")
def settle_create(
    acting_user: int = ACTING_USER,
    to_user: int = typer.Option(..., "--to"),
    group_id: int = typer.Option(..., "--group", "-g"),
    amount: str = typer.Option(..., "--amount", "-a"),
    from_user: int | None = typer.Option(None, "--from", help="Defaults to --as"),
):
    """Record that you paid another member."""
    with open_ledger() as (settings, db):
        settlement = SettlementService(db).create_settlement(
            acting_user,
            from_user if from_user is not None else acting_user,
            to_user,
            group_id,
            parse_amount(amount),
        )
        console.print(
            f"[green]✓ Payment {settlement.id} recorded, "
            f"waiting for user {to_user} to confirm[/green]"
        )


@settle_app.command("confirm")
def settle_confirm(
    settlement_id: int = typer.Argument(...),
    acting_user: int = ACTING_USER,
    yes: bool = typer.Option(False, "--yes", "-y", help="Skip confirmation prompt"),
):
    """Confirm you received a payment."""
    with open_ledger() as (_settings, db):
        service = SettlementService(db)
        settlement = service.require_confirmable(settlement_id, acting_user)
        if not yes and not confirm_settlement(settlement):
            console.print("[yellow]Not confirmed.[/yellow]")
            return
        service.confirm_settlement(settlement_id, acting_user)
        console.print(f"[green]✓ Payment {settlement_id} confirmed[/green]")


@settle_app.command("pending")
def settle_pending(acting_user: int = ACTING_USER):
    """List payments waiting for confirmation."""
    with open_ledger() as (settings, db):
        pending = SettlementService(db).list_pending_settlements(acting_user)
        if not pending:
            console.print("[green]No pending payments.[/green]")
            return
        for settlement in pending:
            direction = (
                f"user {settlement.from_user} paid you"
                if settlement.to_user == acting_user
                else f"you paid user {settlement.to_user}"
            )
            console.print(
                f"  [{settlement.id}] {direction}: "
                f"{format_money(settlement.amount, settings.currency_symbol)} "
                f"[dim](group {settlement.group_id})[/dim]"
            )


@settle_app.command("history")
def settle_history(group_id: int = typer.Argument(...), acting_user: int = ACTING_USER):
    """List every payment recorded in a group."""
    with open_ledger() as (settings, db):
        for settlement in SettlementService(db).list_group_settlements(
            group_id, acting_user
        ):
            console.print(
                f"  [{settlement.id}] user {settlement.from_user} → "
                f"user {settlement.to_user}: "
                f"{format_money(settlement.amount, settings.currency_symbol)} "
                f"{settlement.status}"
            )


# ============================================================================
# Recurring expenses
# ============================================================================


@recurring_app.command("add")
def recurring_add(
    group_id: int = typer.Option(..., "--group", "-g"),
    acting_user: int = ACTING_USER,
    amount: str = typer.Option(..., "--amount", "-a"),
    description: str = typer.Option(..., "--description", "-d"),
    day_of_month: int = typer.Option(..., "--day"),
    category: str = typer.Option("other", "--category", "-c"),
    start_date: datetime | None = typer.Option(None, "--start", formats=DATE_FORMATS),
    end_date: datetime | None = typer.Option(None, "--end", formats=DATE_FORMATS),
):
    """Create a monthly recurring expense paid by you."""
    with open_ledger() as (settings, db):
        template = RecurringService(settings, db).create_template(
            group_id=group_id,
            paid_by=acting_user,
            amount=parse_amount(amount),
            description=description,
            day_of_month=day_of_month,
            category=category,
            start_date=start_date.date() if start_date else None,
            end_date=end_date.date() if end_date else None,
        )
        console.print(f"[green]✓ Created recurring expense {template.id}[/green]")


@recurring_app.command("list")
def recurring_list(group_id: int = typer.Argument(...), acting_user: int = ACTING_USER):
    """List a group's active recurring expenses."""
    with open_ledger() as (settings, db):
        for template in RecurringService(settings, db).list_templates(
            group_id, acting_user
        ):
            console.print(
                f"  [{template.id}] day {template.day_of_month}: "
                f"{template.description} "
                f"{format_money(template.amount, settings.currency_symbol)} "
                f"[dim](paid by user {template.paid_by})[/dim]"
            )


@recurring_app.command("toggle")
def recurring_toggle(
    template_id: int = typer.Argument(...), acting_user: int = ACTING_USER
):
    """Pause or resume a recurring expense."""
    with open_ledger() as (settings, db):
        active = RecurringService(settings, db).toggle_template(template_id, acting_user)
        console.print(
            f"[green]✓ Recurring expense {template_id} "
            f"{'activated' if active else 'paused'}[/green]"
        )


@recurring_app.command("delete")
def recurring_delete(
    template_id: int = typer.Argument(...), acting_user: int = ACTING_USER
):
    """Delete a recurring expense."""
    with open_ledger() as (settings, db):
        RecurringService(settings, db).delete_template(template_id, acting_user)
        console.print(f"[green]✓ Deleted recurring expense {template_id}[/green]")


@recurring_app.command("run")
def recurring_run(
    run_date: datetime | None = typer.Option(
        None, "--date", formats=DATE_FORMATS, help="Defaults to today"
    ),
):
    """Create today's recurring expenses. Run once a day, e.g. from cron."""
    with open_ledger() as (settings, db):
        report = RecurringService(settings, db).materialize_due(
            run_date.date() if run_date else None
        )
        console.print(
            f"[green]✓ {len(report.created)} created[/green], "
            f"{len(report.skipped)} already done, "
            f"[red]{len(report.failed)} failed[/red]"
        )
        for template_id, reason in report.failed.items():
            console.print(f"  [red]✗ {template_id}: {reason}[/red]")


# ============================================================================
# Budgets
# ============================================================================


@budget_app.command("set")
def budget_set(
    acting_user: int = ACTING_USER,
    category: str = typer.Option(..., "--category", "-c"),
    amount: str = typer.Option(..., "--amount", "-a"),
    group_id: int | None = typer.Option(None, "--group", "-g"),
):
    """Set your monthly budget for a category."""
    with open_ledger() as (_settings, db):
        budget = BudgetService(db).set_budget(
            acting_user, category, parse_amount(amount), group_id
        )
        console.print(f"[green]✓ Budget {budget.id} set[/green]")


@budget_app.command("list")
def budget_list(
    acting_user: int = ACTING_USER,
    group_id: int | None = typer.Option(None, "--group", "-g"),
):
    """Show your budgets and this month's spending."""
    with open_ledger() as (settings, db):
        statuses = BudgetService(db).list_budgets(acting_user, group_id)
        if not statuses:
            console.print("[yellow]No budgets set.[/yellow]")
            return

        symbol = settings.currency_symbol
        table = Table(title="Budgets", show_header=True, header_style="bold magenta")
        table.add_column("ID", style="dim", width=6)
        table.add_column("Category", style="yellow")
        table.add_column("Budget", justify="right", width=12)
        table.add_column("Spent", justify="right", width=12)
        table.add_column("Remaining", justify="right", width=12)
        table.add_column("Used", justify="right")

        for status in statuses:
            used = f"{status.percentage}%"
            if status.is_over_budget:
                used = f"⚠️  [red]{used}[/red]"
            table.add_row(
                str(status.budget.id),
                status.budget.category,
                format_money(status.budget.amount, symbol, use_color=False),
                format_money(status.spent, symbol, use_color=False),
                format_money(status.remaining, symbol),
                used,
            )
        console.print(table)


@budget_app.command("delete")
def budget_delete(budget_id: int = typer.Argument(...), acting_user: int = ACTING_USER):
    """Delete one of your budgets."""
    with open_ledger() as (_settings, db):
        BudgetService(db).delete_budget(budget_id, acting_user)
        console.print(f"[green]✓ Deleted budget {budget_id}[/green]")


@app.command()
def categories():
    """List the expense categories."""
    console.print(", ".join(CATEGORIES))


if __name__ == "__main__":
    app()
