"""Data models for the shared ledger domain."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from decimal import ROUND_HALF_UP, Decimal
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple

__all__ = [
    "CENT",
    "Category",
    "Expense",
    "LedgerSnapshot",
    "Member",
    "SettlementRecord",
    "Transfer",
    "format_amount",
    "isoformat_utc",
    "parse_datetime",
    "quantize",
]

CENT = Decimal("0.01")


def quantize(amount: Decimal) -> Decimal:
    """Round to the minor currency unit using HALF_UP."""
    return amount.quantize(CENT, rounding=ROUND_HALF_UP)


def format_amount(amount: Decimal) -> str:
    return f"{amount:.2f}"


def isoformat_utc(dt: datetime) -> str:
    """Return an ISO 8601 string with trailing Z for UTC-aware datetimes."""
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    else:
        dt = dt.astimezone(timezone.utc)
    iso = dt.isoformat(timespec="seconds")
    return iso.replace("+00:00", "Z")


def parse_datetime(value: str) -> datetime:
    """Parse ISO 8601 datetime strings with optional trailing Z into UTC-aware datetime."""
    value = value.strip()
    if value.endswith("Z"):
        value = value[:-1] + "+00:00"
    dt = datetime.fromisoformat(value)
    if dt.tzinfo is None:
        # Naive datetimes are taken as UTC.
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


class Category(Enum):
    """Closed set of expense categories; unknown tags fall back to OTHER."""

    FOOD = ("food", "Food & Dining", "#FF6B6B")
    TRANSPORT = ("transport", "Transport", "#4ECDC4")
    ENTERTAINMENT = ("entertainment", "Entertainment", "#45B7D1")
    SHOPPING = ("shopping", "Shopping", "#96CEB4")
    TRAVEL = ("travel", "Travel", "#FFEAA7")
    UTILITIES = ("utilities", "Utilities", "#DDA0DD")
    HEALTH = ("health", "Health", "#FF69B4")
    OTHER = ("other", "Other", "#95A5A6")

    def __init__(self, tag: str, label: str, color: str) -> None:
        self.tag = tag
        self.label = label
        self.color = color

    @classmethod
    def parse(cls, value: object) -> "Category":
        if isinstance(value, Category):
            return value
        if isinstance(value, str):
            canonical = value.strip().lower()
            for category in cls:
                if category.tag == canonical:
                    return category
        return cls.OTHER


@dataclass(frozen=True)
class Member:
    id: int
    name: str
    avatar: str = ""
    color: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return {"id": self.id, "name": self.name, "avatar": self.avatar, "color": self.color}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Member":
        return cls(
            id=int(data["id"]),
            name=data["name"],
            avatar=data.get("avatar", ""),
            color=data.get("color", ""),
        )


@dataclass(frozen=True)
class Expense:
    id: int
    description: str
    amount: Decimal
    paid_by: int
    split_with: Tuple[int, ...]
    date: datetime
    category: Category = Category.OTHER
    is_settlement: bool = False

    def involves(self, member_id: int) -> bool:
        return self.paid_by == member_id or member_id in self.split_with

    def to_dict(self) -> Dict[str, Any]:
        """Serialise the expense using the stored document's field names."""
        return {
            "id": self.id,
            "description": self.description,
            "amount": format_amount(self.amount),
            "paidBy": self.paid_by,
            "splitWith": list(self.split_with),
            "category": self.category.tag,
            "isSettlement": self.is_settlement,
            "date": isoformat_utc(self.date),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Expense":
        return cls(
            id=int(data["id"]),
            description=data.get("description") or "",
            amount=quantize(Decimal(str(data["amount"]))),
            paid_by=int(data["paidBy"]),
            split_with=tuple(int(member_id) for member_id in data["splitWith"]),
            date=parse_datetime(data["date"]),
            category=Category.parse(data.get("category")),
            is_settlement=bool(data.get("isSettlement", False)),
        )


@dataclass(frozen=True)
class Transfer:
    """A single payment from a debtor to a creditor proposed by the planner."""

    from_member: int
    to_member: int
    amount: Decimal

    def to_dict(self) -> Dict[str, Any]:
        return {"from": self.from_member, "to": self.to_member, "amount": format_amount(self.amount)}


@dataclass(frozen=True)
class SettlementRecord:
    id: int
    from_member: int
    to_member: int
    amount: Decimal
    date: datetime
    from_name: Optional[str] = None
    to_name: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "from": self.from_member,
            "to": self.to_member,
            "amount": format_amount(self.amount),
            "date": isoformat_utc(self.date),
            "fromName": self.from_name,
            "toName": self.to_name,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "SettlementRecord":
        return cls(
            id=int(data["id"]),
            from_member=int(data["from"]),
            to_member=int(data["to"]),
            amount=quantize(Decimal(str(data["amount"]))),
            date=parse_datetime(data["date"]),
            from_name=data.get("fromName"),
            to_name=data.get("toName"),
        )


@dataclass(frozen=True)
class LedgerSnapshot:
    """Consistent read view of the stored ledger."""

    members: List[Member] = field(default_factory=list)
    expenses: List[Expense] = field(default_factory=list)
    settlements: List[SettlementRecord] = field(default_factory=list)
