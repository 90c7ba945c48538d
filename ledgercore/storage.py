"""Persistence utilities for the ledger core services."""

from __future__ import annotations

import copy
import json
import logging
from pathlib import Path
from typing import Any, Dict, Iterable, List, Protocol

from .exceptions import PersistenceError, RecordNotFoundError
from .models import Expense, LedgerSnapshot, Member, SettlementRecord

logger = logging.getLogger(__name__)

ID_KINDS = ("user", "expense", "settlement")


class LedgerRepository(Protocol):
    """Capabilities the services need from a durable ledger store."""

    def load_all(self) -> LedgerSnapshot: ...

    def reload(self) -> None: ...

    def allocate_id(self, kind: str) -> int: ...

    def append_member(self, member: Member) -> None: ...

    def delete_member(self, member_id: int) -> None: ...

    def append_expense(self, expense: Expense) -> None: ...

    def update_expense(self, expense: Expense) -> None: ...

    def delete_expense(self, expense_id: int) -> None: ...

    def append_settlement_entries(self, expense: Expense, settlement: SettlementRecord) -> None: ...


def _empty_document() -> Dict[str, Any]:
    return {
        "users": [],
        "expenses": [],
        "settlements": [],
        "nextId": {kind: 1 for kind in ID_KINDS},
    }


def _bump_counter(document: Dict[str, Any], kind: str, used_id: int) -> None:
    counters = document["nextId"]
    if int(counters.get(kind, 1)) <= used_id:
        counters[kind] = used_id + 1


class JSONStorage:
    """Single-document JSON store with crash-safe writes.

    The document holds members under ``users``, expenses and settlements
    newest first, and a ``nextId`` counter per entity type. Ids handed out by
    ``allocate_id`` are never reused, even after deletion.

    Every mutation is applied to a copy of the document and only becomes
    visible once that copy has been written to disk.
    """

    def __init__(self, path: Path, seed_members: Iterable[Member] = ()) -> None:
        self._path = Path(path)
        self._path.parent.mkdir(parents=True, exist_ok=True)
        if self._path.exists():
            self._document = self._read()
        else:
            document = _empty_document()
            for member in seed_members:
                document["users"].append(member.to_dict())
                _bump_counter(document, "user", member.id)
            self._save(document)
            self._document = document

    # Repository API -------------------------------------------------------
    def load_all(self) -> LedgerSnapshot:
        try:
            return LedgerSnapshot(
                members=[Member.from_dict(raw) for raw in self._document["users"]],
                expenses=[Expense.from_dict(raw) for raw in self._document["expenses"]],
                settlements=[SettlementRecord.from_dict(raw) for raw in self._document["settlements"]],
            )
        except (KeyError, TypeError, ValueError, ArithmeticError) as exc:
            raise PersistenceError(f"Malformed ledger records in {self._path}") from exc

    def reload(self) -> None:
        """Re-read the document from disk, picking up writes by other processes."""
        self._document = self._read()
        logger.debug("Reloaded ledger document from %s", self._path)

    def allocate_id(self, kind: str) -> int:
        if kind not in ID_KINDS:
            raise ValueError(f"Unknown id kind: {kind}")
        counters = self._document["nextId"]
        allocated = int(counters.get(kind, 1))
        counters[kind] = allocated + 1
        return allocated

    def append_member(self, member: Member) -> None:
        document = self._draft()
        document["users"].append(member.to_dict())
        _bump_counter(document, "user", member.id)
        self._commit(document)

    def delete_member(self, member_id: int) -> None:
        document = self._draft()
        users = document["users"]
        del users[self._index_of(users, member_id, "Member")]
        self._commit(document)

    def append_expense(self, expense: Expense) -> None:
        document = self._draft()
        document["expenses"].insert(0, expense.to_dict())
        _bump_counter(document, "expense", expense.id)
        self._commit(document)

    def update_expense(self, expense: Expense) -> None:
        document = self._draft()
        expenses = document["expenses"]
        expenses[self._index_of(expenses, expense.id, "Expense")] = expense.to_dict()
        self._commit(document)

    def delete_expense(self, expense_id: int) -> None:
        document = self._draft()
        expenses = document["expenses"]
        del expenses[self._index_of(expenses, expense_id, "Expense")]
        self._commit(document)

    def append_settlement_entries(self, expense: Expense, settlement: SettlementRecord) -> None:
        """Store a settlement expense and its history record in a single write."""
        document = self._draft()
        document["expenses"].insert(0, expense.to_dict())
        document["settlements"].insert(0, settlement.to_dict())
        _bump_counter(document, "expense", expense.id)
        _bump_counter(document, "settlement", settlement.id)
        self._commit(document)

    @property
    def path(self) -> Path:
        return self._path

    # Internal helpers -----------------------------------------------------
    def _draft(self) -> Dict[str, Any]:
        return copy.deepcopy(self._document)

    def _commit(self, document: Dict[str, Any]) -> None:
        self._save(document)
        self._document = document

    def _read(self) -> Dict[str, Any]:
        try:
            with self._path.open("r", encoding="utf-8") as handle:
                payload = json.load(handle)
        except json.JSONDecodeError as exc:
            raise PersistenceError(f"Corrupted JSON data in {self._path}") from exc
        except OSError as exc:
            raise PersistenceError(f"Unable to read from {self._path}") from exc

        if not isinstance(payload, dict):
            raise PersistenceError(f"Expected object payload in {self._path}")
        document = _empty_document()
        for key in ("users", "expenses", "settlements"):
            records = payload.get(key, [])
            if not isinstance(records, list):
                raise PersistenceError(f"Expected list for '{key}' in {self._path}")
            document[key] = records
        document["nextId"].update(payload.get("nextId") or {})
        return document

    def _save(self, document: Dict[str, Any]) -> None:
        temp_path = self._path.with_suffix(self._path.suffix + ".tmp")
        try:
            with temp_path.open("w", encoding="utf-8") as handle:
                json.dump(document, handle, indent=2, ensure_ascii=False)
                handle.flush()
            # Atomic on POSIX.
            temp_path.replace(self._path)
        except OSError as exc:
            raise PersistenceError(f"Unable to write to {self._path}") from exc
        logger.debug("Saved ledger document to %s", self._path)

    @staticmethod
    def _index_of(records: List[Dict[str, Any]], record_id: int, label: str) -> int:
        for index, raw in enumerate(records):
            if int(raw.get("id", -1)) == record_id:
                return index
        raise RecordNotFoundError(f"{label} {record_id} not found")
