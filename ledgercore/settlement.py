"""Settlement planning and recording.

``plan_settlements`` turns a balance snapshot into a list of transfers using
greedy largest-debtor/largest-creditor matching. The result is correct and has
at most ``n - 1`` transfers for ``n`` non-zero balances; it is not guaranteed
to be the minimum possible number of transfers.

``record_settlement`` turns an accepted transfer into the two records the
ledger stores: a single-participant expense paid by the debtor for the
creditor, which cancels their mutual balance, and a history entry.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from decimal import Decimal
from typing import Iterable, List, Mapping, Optional

from .exceptions import PreconditionViolation, ValidationError
from .models import CENT, Category, Expense, Member, SettlementRecord, Transfer, quantize

__all__ = [
    "DEFAULT_THRESHOLD",
    "SettlementEntries",
    "plan_settlements",
    "record_settlement",
    "settlement_description",
]

logger = logging.getLogger(__name__)

DEFAULT_THRESHOLD = CENT


class _Position:
    __slots__ = ("member", "magnitude")

    def __init__(self, member: int, magnitude: Decimal) -> None:
        self.member = member
        self.magnitude = magnitude

    def sort_key(self):
        return (-self.magnitude, self.member)


def plan_settlements(
    balances: Mapping[int, Decimal], threshold: Decimal = DEFAULT_THRESHOLD
) -> List[Transfer]:
    if threshold <= 0:
        raise ValidationError("threshold must be greater than zero")

    total = sum(balances.values(), Decimal("0"))
    if abs(total) > threshold * max(len(balances), 1):
        raise PreconditionViolation(f"Balances do not sum to zero (off by {total})")

    debtors = [_Position(member, -value) for member, value in balances.items() if -value >= threshold]
    creditors = [_Position(member, value) for member, value in balances.items() if value >= threshold]

    transfers: List[Transfer] = []
    while debtors and creditors:
        debtors.sort(key=_Position.sort_key)
        creditors.sort(key=_Position.sort_key)
        debtor, creditor = debtors[0], creditors[0]

        amount = min(debtor.magnitude, creditor.magnitude)
        if amount >= threshold:
            transfers.append(Transfer(debtor.member, creditor.member, quantize(amount)))
        debtor.magnitude -= amount
        creditor.magnitude -= amount

        debtors = [entry for entry in debtors if entry.magnitude >= threshold]
        creditors = [entry for entry in creditors if entry.magnitude >= threshold]

    logger.debug("Planned %d transfer(s) for %d balance(s)", len(transfers), len(balances))
    return transfers


def settlement_description(from_name: Optional[str], to_name: Optional[str]) -> str:
    return f"Settlement: {from_name or 'Unknown'} paid {to_name or 'Unknown'}"


@dataclass(frozen=True)
class SettlementEntries:
    expense: Expense
    settlement: SettlementRecord


def record_settlement(
    transfer: Transfer,
    members: Iterable[Member],
    *,
    expense_id: int = 0,
    settlement_id: int = 0,
    when: Optional[datetime] = None,
) -> SettlementEntries:
    """Build the expense and history records for an accepted transfer.

    Unknown member ids do not fail; the corresponding display name is None.
    """
    if transfer.amount <= 0:
        raise ValidationError("Settlement amount must be greater than zero")
    if transfer.from_member == transfer.to_member:
        raise ValidationError("A member cannot settle with themselves")

    names = {member.id: member.name for member in members}
    from_name = names.get(transfer.from_member)
    to_name = names.get(transfer.to_member)
    when = when or datetime.now(timezone.utc)

    expense = Expense(
        id=expense_id,
        description=settlement_description(from_name, to_name),
        amount=transfer.amount,
        paid_by=transfer.from_member,
        split_with=(transfer.to_member,),
        date=when,
        category=Category.OTHER,
        is_settlement=True,
    )
    settlement = SettlementRecord(
        id=settlement_id,
        from_member=transfer.from_member,
        to_member=transfer.to_member,
        amount=transfer.amount,
        date=when,
        from_name=from_name,
        to_name=to_name,
    )
    return SettlementEntries(expense=expense, settlement=settlement)
