"""Framework-agnostic business services for the shared ledger."""

from __future__ import annotations

import logging
from dataclasses import replace
from datetime import datetime
from decimal import Decimal
from typing import Dict, Iterable, List, Optional

from .balances import compute_balances, ensure_can_delete
from .exceptions import RecordNotFoundError, ValidationError
from .models import Category, Expense, LedgerSnapshot, Member, SettlementRecord, Transfer
from .settlement import DEFAULT_THRESHOLD, SettlementEntries, plan_settlements, record_settlement
from .storage import LedgerRepository
from .validators import (
    parse_amount,
    parse_flag,
    parse_member_id,
    validate_datetime,
    validate_member_ref,
    validate_optional_datetime,
    validate_participants,
    validate_required_str,
)

logger = logging.getLogger(__name__)

AVATARS = ["😀", "😎", "🤓", "🧑‍💼", "👨‍🎨", "👩‍🔬", "🧑‍🚀", "👨‍🍳"]
COLORS = ["#6366F1", "#EC4899", "#10B981", "#F59E0B", "#EF4444", "#8B5CF6", "#06B6D4", "#84CC16"]

DEFAULT_MEMBERS = (
    Member(id=1, name="You", avatar="👤", color="#6366F1"),
    Member(id=2, name="Alex", avatar="🧑", color="#EC4899"),
    Member(id=3, name="Sam", avatar="👩", color="#10B981"),
    Member(id=4, name="Jordan", avatar="🧔", color="#F59E0B"),
)


class MemberService:
    """Manages group members."""

    def __init__(self, storage: LedgerRepository) -> None:
        self._storage = storage

    def add(self, payload: Dict[str, object]) -> Member:
        members = self.list()
        name = validate_required_str(payload.get("name"), "name", 50)
        if any(member.name.lower() == name.lower() for member in members):
            raise ValidationError("Member name must be unique")
        # Display hints rotate with the current group size.
        slot = len(members)
        member = Member(
            id=self._storage.allocate_id("user"),
            name=name,
            avatar=AVATARS[slot % len(AVATARS)],
            color=COLORS[slot % len(COLORS)],
        )
        self._storage.append_member(member)
        logger.info("Added member %s (%s)", member.id, member.name)
        return member

    def delete(self, member_id: int) -> None:
        snapshot = self._storage.load_all()
        _find(snapshot.members, member_id, "Member")
        ensure_can_delete(member_id, snapshot.expenses)
        self._storage.delete_member(member_id)
        logger.info("Deleted member %s", member_id)

    def get(self, member_id: int) -> Member:
        return _find(self.list(), member_id, "Member")

    def list(self) -> List[Member]:
        return list(self._storage.load_all().members)


class ExpenseService:
    """Manages expense records and mediates persistence."""

    def __init__(self, storage: LedgerRepository) -> None:
        self._storage = storage

    # Public API -----------------------------------------------------------
    def add(self, payload: Dict[str, object]) -> Expense:
        snapshot = self._storage.load_all()
        data = self._validate_payload(payload, snapshot)
        expense = Expense(id=self._storage.allocate_id("expense"), **data)
        self._storage.append_expense(expense)
        logger.info("Added expense %s (%s paid %s)", expense.id, expense.paid_by, expense.amount)
        return expense

    def update(self, expense_id: int, changes: Dict[str, object]) -> Expense:
        snapshot = self._storage.load_all()
        existing = _find(snapshot.expenses, expense_id, "Expense")
        # Partial updates: merge onto the stored representation.
        merged_payload = {**existing.to_dict(), **changes}
        data = self._validate_payload(merged_payload, snapshot, current=existing)
        updated = Expense(id=existing.id, **data)
        self._storage.update_expense(updated)
        logger.info("Updated expense %s", expense_id)
        return updated

    def delete(self, expense_id: int) -> None:
        self._storage.delete_expense(expense_id)
        logger.info("Deleted expense %s", expense_id)

    def get(self, expense_id: int) -> Expense:
        """Return an expense or raise if it does not exist."""
        return _find(self._storage.load_all().expenses, expense_id, "Expense")

    def list(self, **filters: object) -> List[Expense]:
        """Return matching expenses, most recent first."""
        records = self._apply_filters(self._storage.load_all().expenses, filters)
        return sorted(records, key=lambda exp: (exp.date, exp.id), reverse=True)

    def total(self, **filters: object) -> Decimal:
        expenses = self.list(**filters)
        return sum((expense.amount for expense in expenses), start=Decimal("0.00"))

    # Internal helpers -----------------------------------------------------
    def _validate_payload(
        self,
        payload: Dict[str, object],
        snapshot: LedgerSnapshot,
        *,
        current: Optional[Expense] = None,
    ) -> Dict[str, object]:
        known = {member.id for member in snapshot.members}
        if current is not None:
            # Members already referenced by the record stay valid.
            known.update({current.paid_by, *current.split_with})
        return {
            "description": validate_required_str(payload.get("description"), "description", 200),
            "amount": parse_amount(payload.get("amount"), "amount"),
            "paid_by": validate_member_ref(payload.get("paidBy"), "paidBy", known),
            "split_with": validate_participants(payload.get("splitWith"), "splitWith", known),
            "category": Category.parse(payload.get("category")),
            "is_settlement": (
                current.is_settlement
                if current is not None
                else parse_flag(payload.get("isSettlement") or False, "isSettlement")
            ),
            "date": validate_optional_datetime(payload.get("date"), "date"),
        }

    def _apply_filters(self, records: Iterable[Expense], filters: Dict[str, object]) -> Iterable[Expense]:
        category = (
            Category.parse(filters["category"]) if filters.get("category") is not None else None
        )
        member = (
            parse_member_id(filters["member"], "member") if filters.get("member") is not None else None
        )
        start = validate_datetime(filters["start"], "start") if filters.get("start") is not None else None
        end = validate_datetime(filters["end"], "end") if filters.get("end") is not None else None
        settlements = (
            parse_flag(filters["settlements"], "settlements")
            if filters.get("settlements") is not None
            else None
        )

        def matches(expense: Expense) -> bool:
            if category and expense.category is not category:
                return False
            if member is not None and not expense.involves(member):
                return False
            if start and expense.date < start:
                return False
            if end and expense.date > end:
                return False
            if settlements is not None and expense.is_settlement != settlements:
                return False
            return True

        return filter(matches, records)


class SettlementService:
    """Records accepted transfers and exposes the settlement history."""

    def __init__(self, storage: LedgerRepository) -> None:
        self._storage = storage

    def list(self) -> List[SettlementRecord]:
        return list(self._storage.load_all().settlements)

    def record(self, payload: Dict[str, object], *, when: Optional[datetime] = None) -> SettlementEntries:
        transfer = Transfer(
            from_member=parse_member_id(payload.get("from"), "from"),
            to_member=parse_member_id(payload.get("to"), "to"),
            amount=parse_amount(payload.get("amount"), "amount"),
        )
        snapshot = self._storage.load_all()
        drafted = record_settlement(transfer, snapshot.members, when=when)
        # Ids are handed out only once the transfer has been accepted.
        entries = SettlementEntries(
            expense=replace(drafted.expense, id=self._storage.allocate_id("expense")),
            settlement=replace(drafted.settlement, id=self._storage.allocate_id("settlement")),
        )
        if entries.settlement.from_name is None or entries.settlement.to_name is None:
            logger.warning(
                "Settlement %s -> %s references an unknown member", transfer.from_member, transfer.to_member
            )
        self._storage.append_settlement_entries(entries.expense, entries.settlement)
        logger.info(
            "Recorded settlement %s: %s paid %s %s",
            entries.settlement.id,
            transfer.from_member,
            transfer.to_member,
            transfer.amount,
        )
        return entries


class LedgerService:
    """Explicit ledger handle tying the services to one repository."""

    def __init__(self, storage: LedgerRepository, threshold: Decimal = DEFAULT_THRESHOLD) -> None:
        self._storage = storage
        self._threshold = threshold
        self.members = MemberService(storage)
        self.expenses = ExpenseService(storage)
        self.settlements = SettlementService(storage)

    @property
    def threshold(self) -> Decimal:
        return self._threshold

    def balances(self) -> Dict[int, Decimal]:
        """Net balance per member; positive means the member is owed money."""
        snapshot = self._storage.load_all()
        return compute_balances(snapshot.members, snapshot.expenses)

    def plan(self) -> List[Transfer]:
        return plan_settlements(self.balances(), self._threshold)

    def settle(self, payload: Dict[str, object]) -> SettlementEntries:
        return self.settlements.record(payload)

    def refresh(self) -> None:
        """Reload the ledger from persistence, e.g. after another process wrote to it."""
        self._storage.reload()

    def snapshot(self) -> Dict[str, List[Dict[str, object]]]:
        """Return serialisable snapshot useful for testing or exports."""
        snapshot = self._storage.load_all()
        return {
            "users": [member.to_dict() for member in snapshot.members],
            "expenses": [expense.to_dict() for expense in snapshot.expenses],
            "settlements": [settlement.to_dict() for settlement in snapshot.settlements],
        }


def _find(records, record_id: int, label: str):
    for record in records:
        if record.id == record_id:
            return record
    raise RecordNotFoundError(f"{label} {record_id} not found")
