"""Tests for settlement planning and recording."""

import random
from datetime import datetime, timezone
from decimal import Decimal

import pytest

from ledgercore.balances import compute_balances
from ledgercore.exceptions import PreconditionViolation, ValidationError
from ledgercore.models import Category, Member, Transfer
from ledgercore.settlement import plan_settlements, record_settlement

from .conftest import make_expense

D = Decimal


def _apply(members, expenses, transfers):
    """Record every transfer as a settlement expense and recompute balances."""
    settled = list(expenses)
    for offset, transfer in enumerate(transfers):
        entries = record_settlement(transfer, members, expense_id=1000 + offset)
        settled.append(entries.expense)
    return compute_balances(members, settled)


class TestPlanSettlements:
    def test_single_debtor_single_creditor(self):
        members = [Member(1, "A"), Member(2, "B")]
        balances = compute_balances(members, [make_expense(1, "100", 1, [1, 2])])

        assert plan_settlements(balances) == [Transfer(2, 1, D("50.00"))]

    def test_two_debtors_one_creditor(self, trio):
        balances = compute_balances(trio, [make_expense(1, "90", 1, [1, 2, 3])])

        transfers = plan_settlements(balances)

        assert transfers == [Transfer(2, 1, D("30.00")), Transfer(3, 1, D("30.00"))]
        assert sum(t.amount for t in transfers) == D("60.00")

    def test_largest_debtor_matched_first(self, trio):
        expenses = [
            make_expense(1, "60", 1, [3]),
            make_expense(2, "40", 1, [2]),
            make_expense(3, "10", 2, [2]),
        ]
        balances = compute_balances(trio, expenses)
        assert balances == {1: D("100.00"), 2: D("-40.00"), 3: D("-60.00")}

        assert plan_settlements(balances) == [Transfer(3, 1, D("60.00")), Transfer(2, 1, D("40.00"))]

    def test_multi_party_netting(self):
        balances = {1: D("10"), 2: D("20"), 3: D("-5"), 4: D("-25")}

        transfers = plan_settlements(balances)

        assert transfers == [
            Transfer(4, 2, D("20.00")),
            Transfer(3, 1, D("5.00")),
            Transfer(4, 1, D("5.00")),
        ]
        assert len(transfers) <= len(balances) - 1

    def test_settled_ledger_needs_no_transfers(self):
        assert plan_settlements({1: D("0.00"), 2: D("0.00")}) == []
        assert plan_settlements({}) == []

    def test_residue_below_threshold_ignored(self):
        balances = {1: D("0.50"), 2: D("-0.50")}

        assert plan_settlements(balances, threshold=D("1")) == []
        assert plan_settlements(balances) == [Transfer(2, 1, D("0.50"))]

    def test_one_cent_balance_is_settled(self):
        assert plan_settlements({1: D("0.01"), 2: D("-0.01")}) == [Transfer(2, 1, D("0.01"))]

    def test_deterministic(self):
        balances = {5: D("30"), 2: D("30"), 9: D("-20"), 4: D("-20"), 7: D("-20")}

        first = plan_settlements(balances)
        second = plan_settlements(dict(reversed(list(balances.items()))))

        assert first == second
        assert first[0] == Transfer(4, 2, D("20.00"))

    def test_unbalanced_snapshot_rejected(self):
        with pytest.raises(PreconditionViolation):
            plan_settlements({1: D("10"), 2: D("-5")})

    def test_non_positive_threshold_rejected(self):
        with pytest.raises(ValidationError):
            plan_settlements({1: D("1"), 2: D("-1")}, threshold=D("0"))

    def test_generated_ledgers_close_with_bounded_transfers(self):
        rng = random.Random(7)
        members = [Member(member_id, f"M{member_id}") for member_id in range(1, 10)]
        for _ in range(25):
            expenses = []
            for expense_id in range(1, rng.randint(2, 30)):
                participants = rng.sample(range(1, 10), rng.randint(1, 9))
                amount = D(rng.randint(1, 50000)) / 100
                expenses.append(make_expense(expense_id, amount, rng.randint(1, 9), participants))
            balances = compute_balances(members, expenses)
            nonzero = [value for value in balances.values() if value != 0]

            transfers = plan_settlements(balances)

            assert len(transfers) <= max(len(nonzero) - 1, 0)
            after = _apply(members, expenses, transfers)
            assert all(abs(value) < D("0.01") for value in after.values())


class TestRecordSettlement:
    def test_settlement_becomes_single_participant_expense(self):
        members = [Member(1, "A"), Member(2, "B")]
        expenses = [make_expense(1, "100", 1, [1, 2])]
        transfer = plan_settlements(compute_balances(members, expenses))[0]
        when = datetime(2024, 3, 2, tzinfo=timezone.utc)

        entries = record_settlement(transfer, members, expense_id=2, settlement_id=1, when=when)

        expense = entries.expense
        assert (expense.id, expense.paid_by, expense.split_with) == (2, 2, (1,))
        assert expense.amount == D("50.00")
        assert expense.is_settlement is True
        assert expense.category is Category.OTHER
        assert expense.description == "Settlement: B paid A"
        assert compute_balances(members, expenses + [expense]) == {1: D("0.00"), 2: D("0.00")}

    def test_history_record_carries_names(self, trio):
        entries = record_settlement(Transfer(3, 1, D("12.50")), trio, settlement_id=4)

        record = entries.settlement
        assert record.id == 4
        assert (record.from_member, record.to_member, record.amount) == (3, 1, D("12.50"))
        assert (record.from_name, record.to_name) == ("Cleo", "Ana")
        assert record.date == entries.expense.date

    def test_unknown_member_yields_missing_name(self, trio):
        entries = record_settlement(Transfer(42, 1, D("5")), trio)

        assert entries.settlement.from_name is None
        assert entries.settlement.to_name == "Ana"
        assert entries.expense.paid_by == 42

    @pytest.mark.parametrize(
        "transfer",
        [Transfer(1, 2, D("0")), Transfer(1, 1, D("5"))],
    )
    def test_invalid_transfer_rejected(self, trio, transfer):
        with pytest.raises(ValidationError):
            record_settlement(transfer, trio)
