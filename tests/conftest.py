"""Shared fixtures for Split Ledger tests."""

import pytest

from splitledger.budgets import BudgetService
from splitledger.config import Settings
from splitledger.db import Database
from splitledger.groups import GroupService
from splitledger.ledger import LedgerAggregator
from splitledger.recurring import RecurringService
from splitledger.service import ExpenseService
from splitledger.settlements import SettlementService


@pytest.fixture
def settings(tmp_path):
    """Create settings pointing at a temporary database."""
    return Settings(database_path=tmp_path / "test.db")


@pytest.fixture
def db(settings):
    """Create a temporary database."""
    db = Database(settings.database_path)
    yield db
    db.close()


@pytest.fixture
def groups(db):
    return GroupService(db)


@pytest.fixture
def expenses(settings, db):
    return ExpenseService(settings, db)


@pytest.fixture
def ledger(db):
    return LedgerAggregator(db)


@pytest.fixture
def settlements(db):
    return SettlementService(db)


@pytest.fixture
def recurring(settings, db):
    return RecurringService(settings, db)


@pytest.fixture
def budgets(db):
    return BudgetService(db)


@pytest.fixture
def group(groups):
    """A group with members 1, 2 and 3, created by user 1."""
    return groups.create_group(1, "Flat", "Shared flat", member_ids=[2, 3])
