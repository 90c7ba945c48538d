"""Core business logic package for the shared expense ledger."""

from .balances import can_delete, compute_balances, ensure_can_delete
from .exceptions import (
    PersistenceError,
    PreconditionViolation,
    RecordNotFoundError,
    ReferentialIntegrityViolation,
    ValidationError,
)
from .models import Category, Expense, LedgerSnapshot, Member, SettlementRecord, Transfer
from .services import ExpenseService, LedgerService, MemberService, SettlementService
from .settlement import DEFAULT_THRESHOLD, SettlementEntries, plan_settlements, record_settlement
from .storage import JSONStorage, LedgerRepository

__all__ = [
    "Category",
    "DEFAULT_THRESHOLD",
    "Expense",
    "ExpenseService",
    "JSONStorage",
    "LedgerRepository",
    "LedgerService",
    "LedgerSnapshot",
    "Member",
    "MemberService",
    "PersistenceError",
    "PreconditionViolation",
    "RecordNotFoundError",
    "ReferentialIntegrityViolation",
    "SettlementEntries",
    "SettlementRecord",
    "SettlementService",
    "Transfer",
    "ValidationError",
    "can_delete",
    "compute_balances",
    "ensure_can_delete",
    "plan_settlements",
    "record_settlement",
]
