"""Shared fixtures for the ledger test suite."""

from datetime import datetime, timezone
from decimal import Decimal

import pytest

from ledgercore.models import Category, Expense, Member
from ledgercore.services import LedgerService
from ledgercore.storage import JSONStorage

WHEN = datetime(2024, 3, 1, 12, 0, tzinfo=timezone.utc)


def make_expense(expense_id, amount, paid_by, split_with, *, is_settlement=False, category=Category.OTHER, date=WHEN):
    return Expense(
        id=expense_id,
        description=f"expense {expense_id}",
        amount=Decimal(str(amount)),
        paid_by=paid_by,
        split_with=tuple(split_with),
        date=date,
        category=category,
        is_settlement=is_settlement,
    )


@pytest.fixture
def trio():
    """Three members: Ana (1), Ben (2), Cleo (3)."""
    return [Member(1, "Ana"), Member(2, "Ben"), Member(3, "Cleo")]


@pytest.fixture
def storage(tmp_path):
    return JSONStorage(tmp_path / "ledger.json")


@pytest.fixture
def ledger(storage):
    service = LedgerService(storage)
    for name in ("Ana", "Ben", "Cleo"):
        service.members.add({"name": name})
    return service
