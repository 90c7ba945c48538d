"""Balance engine: replays expense records into per-member net balances.

A positive balance means the member is owed money (net creditor); a negative
balance means the member owes money (net debtor). Equal splits are computed in
minor currency units: each participant is charged the amount divided by the
number of participants rounded down to the cent, and any leftover cents are
absorbed by the payer. Balances therefore always sum to exactly zero and do not
depend on the order in which expenses are replayed.
"""

from __future__ import annotations

from decimal import ROUND_DOWN, Decimal
from typing import Dict, Iterable, List, Tuple

from .exceptions import ReferentialIntegrityViolation, ValidationError
from .models import CENT, Expense, Member

__all__ = ["can_delete", "compute_balances", "ensure_can_delete", "referencing_expenses", "split_equally"]

ZERO = Decimal("0.00")


def split_equally(amount: Decimal, count: int) -> Tuple[Decimal, Decimal]:
    """Return ``(share, remainder)`` for splitting ``amount`` across ``count`` people."""
    if count <= 0:
        raise ValidationError("An expense must be split with at least one member")
    share = (amount / count).quantize(CENT, rounding=ROUND_DOWN)
    return share, amount - share * count


def compute_balances(members: Iterable[Member], expenses: Iterable[Expense]) -> Dict[int, Decimal]:
    balances: Dict[int, Decimal] = {member.id: ZERO for member in members}
    for expense in expenses:
        share, remainder = split_equally(expense.amount, len(expense.split_with))
        # Ids missing from the member list still get an entry so the total stays zero.
        balances[expense.paid_by] = balances.get(expense.paid_by, ZERO) + expense.amount - remainder
        for member_id in expense.split_with:
            balances[member_id] = balances.get(member_id, ZERO) - share
    return balances


def referencing_expenses(member_id: int, expenses: Iterable[Expense]) -> List[Expense]:
    return [expense for expense in expenses if expense.involves(member_id)]


def can_delete(member_id: int, expenses: Iterable[Expense]) -> bool:
    return not any(expense.involves(member_id) for expense in expenses)


def ensure_can_delete(member_id: int, expenses: Iterable[Expense]) -> None:
    """Raise ReferentialIntegrityViolation if any expense references the member."""
    blocking = referencing_expenses(member_id, expenses)
    if blocking:
        raise ReferentialIntegrityViolation(member_id, [expense.id for expense in blocking])
