"""Recurring expense templates and the daily materializer.

``materialize_due`` is meant to run once a day (``split-ledger recurring
run`` from cron). Every materialized expense is keyed by template and
month, so rerunning the tick on the same day does not duplicate anything.
"""

import calendar
import logging
from datetime import date
from decimal import Decimal

from .config import Settings
from .db import Database
from .exceptions import (
    AuthorizationError,
    SplitLedgerError,
    TemplateNotFoundError,
    ValidationError,
)
from .groups import require_member
from .models import (
    EqualSplit,
    Expense,
    MaterializationReport,
    RecurringExpenseTemplate,
)
from .service import ExpenseService, validate_category
from .splitter import CENT, compute_splits

logger = logging.getLogger(__name__)


def period_key(day: date) -> str:
    """Identify the monthly period containing ``day``."""
    return f"{day.year:04d}-{day.month:02d}"


def scheduled_days(today: date) -> list[int]:
    """
    Days of month that fall due on ``today``.

    On the last day of a short month, templates scheduled for the days the
    month doesn't have are due as well.
    """
    last_day = calendar.monthrange(today.year, today.month)[1]
    if today.day == last_day:
        return list(range(last_day, 32))
    return [today.day]


class RecurringService:
    """Manage recurring expense templates and turn them into expenses."""

    def __init__(self, settings: Settings, database: Database):
        """Initialize the recurring service."""
        self.settings = settings
        self.db = database
        self.expenses = ExpenseService(settings, database)

    def create_template(
        self,
        group_id: int,
        paid_by: int,
        amount: Decimal,
        description: str,
        day_of_month: int,
        category: str = "other",
        frequency: str = "monthly",
        start_date: date | None = None,
        end_date: date | None = None,
    ) -> RecurringExpenseTemplate:
        """Create an active template paid by ``paid_by``."""
        require_member(self.db, group_id, paid_by)

        amount = Decimal(amount)
        if amount <= 0 or amount != amount.quantize(CENT):
            raise ValidationError(f"Amount must be positive cents, got {amount}")
        if not description or not description.strip():
            raise ValidationError("Description is required")
        if frequency != "monthly":
            raise ValidationError(f"Unsupported frequency '{frequency}'")
        if not 1 <= day_of_month <= 31:
            raise ValidationError(f"Day of month must be 1-31, got {day_of_month}")
        if start_date and end_date and end_date < start_date:
            raise ValidationError("End date is before start date")
        validate_category(category)

        template = RecurringExpenseTemplate(
            group_id=group_id,
            paid_by=paid_by,
            amount=amount,
            description=description.strip(),
            category=category,
            frequency=frequency,
            day_of_month=day_of_month,
            start_date=start_date,
            end_date=end_date,
        )
        with self.db.transaction():
            template.id = self.db.insert_template(template)

        logger.info(
            f"Created recurring expense {template.id} '{template.description}' "
            f"on day {day_of_month}"
        )
        return template

    def list_templates(
        self, group_id: int, acting_user: int
    ) -> list[RecurringExpenseTemplate]:
        """Get a group's active templates."""
        require_member(self.db, group_id, acting_user)
        return self.db.list_active_templates(group_id)

    def toggle_template(self, template_id: int, acting_user: int) -> bool:
        """
        Pause an active template or resume a paused one.

        Returns:
            The new active state
        """
        template = self._require_owner(template_id, acting_user)
        with self.db.transaction():
            self.db.set_template_active(template_id, not template.is_active)

        logger.info(
            f"Recurring expense {template_id} "
            f"{'paused' if template.is_active else 'activated'}"
        )
        return not template.is_active

    def delete_template(self, template_id: int, acting_user: int):
        """Delete a template. Expenses it already created stay."""
        self._require_owner(template_id, acting_user)
        with self.db.transaction():
            self.db.delete_template(template_id)

        logger.info(f"Recurring expense {template_id} deleted")

    def materialize_due(self, today: date | None = None) -> MaterializationReport:
        """
        Create this period's expense for every template due today.

        Each due template is split equally over its group's current members.
        A template that fails is reported and does not stop the others.
        """
        today = today or date.today()
        period = period_key(today)
        report = MaterializationReport(run_date=today)

        for template in self.db.list_due_templates(scheduled_days(today), today):
            assert template.id is not None
            if self.db.is_materialized(template.id, period):
                logger.warning(
                    f"Recurring expense {template.id} already created for {period}"
                )
                report.skipped.append(template.id)
                continue

            try:
                expense = self._materialize(template, today, period)
            except SplitLedgerError as e:
                logger.error(f"Recurring expense {template.id} failed: {e}")
                report.failed[template.id] = str(e)
                continue

            assert expense.id is not None
            report.created[template.id] = expense.id

        logger.info(
            f"Processed recurring expenses for {today}: {len(report.created)} created, "
            f"{len(report.skipped)} skipped, {len(report.failed)} failed"
        )
        return report

    def _materialize(
        self, template: RecurringExpenseTemplate, today: date, period: str
    ) -> Expense:
        members = self.db.get_member_ids(template.group_id)
        if not members:
            raise ValidationError(f"Group {template.group_id} has no members")

        shares = compute_splits(
            template.amount,
            members,
            EqualSplit(),
            epsilon=self.settings.reconciliation_epsilon,
        )
        expense = Expense(
            group_id=template.group_id,
            paid_by=template.paid_by,
            amount=template.amount,
            description=template.description
            + self.settings.recurring_description_suffix,
            category=template.category,
            expense_date=today,
            split_type="equal",
            recurring_id=template.id,
            recurring_period=period,
        )
        return self.expenses.record_expense(expense, shares)

    def _require_owner(
        self, template_id: int, acting_user: int
    ) -> RecurringExpenseTemplate:
        template = self.db.get_template(template_id)
        if template is None:
            raise TemplateNotFoundError(template_id)
        if template.paid_by != acting_user:
            raise AuthorizationError(
                f"Only the payer can change recurring expense {template_id}"
            )
        return template
