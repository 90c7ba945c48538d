"""Console interface for the shared expense ledger."""

from __future__ import annotations

import argparse
import logging
import sys
from datetime import datetime
from decimal import Decimal, InvalidOperation
from pathlib import Path
from typing import Dict, List, Optional

from ledgercore.exceptions import (
    PersistenceError,
    PreconditionViolation,
    RecordNotFoundError,
    ReferentialIntegrityViolation,
    ValidationError,
)
from ledgercore.insights import category_breakdown, generate_insights
from ledgercore.models import Category, Expense, Member, format_amount, isoformat_utc
from ledgercore.services import LedgerService
from ledgercore.settlement import DEFAULT_THRESHOLD
from ledgercore.storage import JSONStorage

DATETIME_FORMAT = "%Y-%m-%dT%H:%M:%S"


def _parse_datetime(value: str) -> str:
    try:
        datetime.strptime(value, DATETIME_FORMAT)
    except ValueError as exc:
        raise argparse.ArgumentTypeError(
            f"Invalid datetime '{value}'. Expected format YYYY-MM-DDTHH:MM:SS."
        ) from exc
    return value


def _parse_amount(value: str) -> str:
    try:
        amount = Decimal(value)
    except InvalidOperation as exc:
        raise argparse.ArgumentTypeError("Amount must be a numeric value") from exc
    if not amount.is_finite():
        raise argparse.ArgumentTypeError("Amount must be a numeric value")
    if amount <= 0:
        raise argparse.ArgumentTypeError("Amount must be greater than zero")
    return value


def _parse_threshold(value: str) -> Decimal:
    return Decimal(_parse_amount(value))


def _load_ledger(data_path: Path, threshold: Decimal) -> LedgerService:
    return LedgerService(JSONStorage(data_path), threshold)


def _names(ledger: LedgerService) -> Dict[int, str]:
    return {member.id: member.name for member in ledger.members.list()}


def _format_member(member: Member) -> str:
    return " ".join(part for part in (f"[{member.id}]", member.avatar, member.name) if part)


def _format_expense(expense: Expense, names: Dict[int, str]) -> str:
    participants = ", ".join(names.get(member_id, f"#{member_id}") for member_id in expense.split_with)
    kind = " (settlement)" if expense.is_settlement else ""
    return (
        f"[{expense.id}] {isoformat_utc(expense.date)} {format_amount(expense.amount)}{kind}\n"
        f"  {expense.description}\n"
        f"  Paid by: {names.get(expense.paid_by, f'#{expense.paid_by}')} | Split with: {participants}\n"
        f"  Category: {expense.category.label}\n"
    )


def handle_member(args: argparse.Namespace, ledger: LedgerService) -> None:
    if args.command == "add":
        member = ledger.members.add({"name": args.name})
        print("Member added: " + _format_member(member))
    elif args.command == "list":
        members = ledger.members.list()
        if not members:
            print("No members found.")
            return
        for member in members:
            print(_format_member(member))
    elif args.command == "delete":
        ledger.members.delete(args.id)
        print(f"Member {args.id} deleted.")


def handle_expense(args: argparse.Namespace, ledger: LedgerService) -> None:
    service = ledger.expenses
    if args.command == "add":
        payload = {
            "description": args.description,
            "amount": args.amount,
            "paidBy": args.paid_by,
            "splitWith": args.split_with,
            "category": args.category,
            "date": args.date,
        }
        expense = service.add(payload)
        print("Expense added:\n" + _format_expense(expense, _names(ledger)))
    elif args.command == "list":
        filters = {
            "category": args.category,
            "member": args.member,
            "start": args.start,
            "end": args.end,
        }
        applied = {k: v for k, v in filters.items() if v is not None}
        if args.no_settlements:
            applied["settlements"] = False
        expenses = service.list(**applied)
        if not expenses:
            print("No expenses found.")
            return
        total = service.total(**applied)
        print(f"Found {len(expenses)} expenses (total {total:.2f}):")
        names = _names(ledger)
        for expense in expenses:
            print(_format_expense(expense, names))
    elif args.command == "edit":
        changes = {
            "description": args.description,
            "amount": args.amount,
            "paidBy": args.paid_by,
            "splitWith": args.split_with,
            "category": args.category,
            "date": args.date,
        }
        cleaned = {k: v for k, v in changes.items() if v is not None}
        expense = service.update(args.id, cleaned)
        print("Expense updated:\n" + _format_expense(expense, _names(ledger)))
    elif args.command == "delete":
        service.delete(args.id)
        print(f"Expense {args.id} deleted.")


def handle_balance(args: argparse.Namespace, ledger: LedgerService) -> None:
    names = _names(ledger)
    for member_id, balance in sorted(ledger.balances().items()):
        status = "gets back" if balance >= 0 else "owes"
        print(f"{names.get(member_id, f'#{member_id}')}: {status} {abs(balance):.2f}")


def handle_settle(args: argparse.Namespace, ledger: LedgerService) -> None:
    names = _names(ledger)
    if args.command == "plan":
        transfers = ledger.plan()
        if not transfers:
            print("All settled up!")
            return
        for transfer in transfers:
            print(
                f"{names.get(transfer.from_member, f'#{transfer.from_member}')} pays "
                f"{names.get(transfer.to_member, f'#{transfer.to_member}')} {transfer.amount:.2f}"
            )
    elif args.command == "record":
        entries = ledger.settle({"from": args.from_member, "to": args.to_member, "amount": args.amount})
        print(f"Settlement {entries.settlement.id} recorded as expense {entries.expense.id}.")
    elif args.command == "history":
        history = ledger.settlements.list()
        if not history:
            print("No settlements recorded.")
            return
        for record in history:
            print(
                f"[{record.id}] {isoformat_utc(record.date)} "
                f"{record.from_name or f'#{record.from_member}'} -> "
                f"{record.to_name or f'#{record.to_member}'} {record.amount:.2f}"
            )


def handle_insights(args: argparse.Namespace, ledger: LedgerService) -> None:
    expenses = ledger.expenses.list()
    insights = generate_insights(expenses)
    if not insights:
        print("No spending recorded yet.")
        return
    for insight in insights:
        print(f"{insight['title']}: {insight['message']}")
    print("By category:")
    for row in category_breakdown(expenses):
        print(f"  {row['name']}: {row['value']} ({row['share']}%)")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Shared expense ledger CLI")
    parser.add_argument(
        "--data-path",
        default=Path("data") / "ledger.json",
        type=Path,
        help="JSON document holding the ledger (default: ./data/ledger.json)",
    )
    parser.add_argument(
        "--threshold",
        default=DEFAULT_THRESHOLD,
        type=_parse_threshold,
        help="Balances below this amount count as settled (default: 0.01)",
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")

    subparsers = parser.add_subparsers(dest="entity", required=True)
    categories = [category.tag for category in Category]

    member_parser = subparsers.add_parser("member", help="Manage group members")
    member_sub = member_parser.add_subparsers(dest="command", required=True)
    member_add = member_sub.add_parser("add", help="Add a member")
    member_add.add_argument("name")
    member_sub.add_parser("list", help="List members")
    member_delete = member_sub.add_parser("delete", help="Delete a member without expenses")
    member_delete.add_argument("id", type=int)

    expense_parser = subparsers.add_parser("expense", help="Manage expenses")
    expense_sub = expense_parser.add_subparsers(dest="command", required=True)

    expense_add = expense_sub.add_parser("add", help="Add a new expense")
    expense_add.add_argument("description")
    expense_add.add_argument("amount", type=_parse_amount)
    expense_add.add_argument("paid_by", type=int)
    expense_add.add_argument("split_with", type=int, nargs="+")
    expense_add.add_argument("--category", default="other", choices=categories)
    expense_add.add_argument("--date", type=_parse_datetime)

    expense_list = expense_sub.add_parser("list", help="List expenses")
    expense_list.add_argument("--category", choices=categories)
    expense_list.add_argument("--member", type=int)
    expense_list.add_argument("--start", type=_parse_datetime)
    expense_list.add_argument("--end", type=_parse_datetime)
    expense_list.add_argument("--no-settlements", action="store_true")

    expense_edit = expense_sub.add_parser("edit", help="Edit an existing expense")
    expense_edit.add_argument("id", type=int)
    expense_edit.add_argument("--description")
    expense_edit.add_argument("--amount", type=_parse_amount)
    expense_edit.add_argument("--paid-by", type=int)
    expense_edit.add_argument("--split-with", type=int, nargs="+")
    expense_edit.add_argument("--category", choices=categories)
    expense_edit.add_argument("--date", type=_parse_datetime)

    expense_delete = expense_sub.add_parser("delete", help="Delete an expense")
    expense_delete.add_argument("id", type=int)

    subparsers.add_parser("balance", help="Show net balance per member")

    settle_parser = subparsers.add_parser("settle", help="Plan and record settlements")
    settle_sub = settle_parser.add_subparsers(dest="command", required=True)
    settle_sub.add_parser("plan", help="Suggest transfers that settle every balance")
    settle_record = settle_sub.add_parser("record", help="Record an accepted transfer")
    settle_record.add_argument("from_member", type=int)
    settle_record.add_argument("to_member", type=int)
    settle_record.add_argument("amount", type=_parse_amount)
    settle_sub.add_parser("history", help="List recorded settlements")

    subparsers.add_parser("insights", help="Summarise group spending")

    return parser


HANDLERS = {
    "member": handle_member,
    "expense": handle_expense,
    "balance": handle_balance,
    "settle": handle_settle,
    "insights": handle_insights,
}


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(asctime)s %(name)s %(levelname)s %(message)s",
    )

    try:
        ledger = _load_ledger(args.data_path, args.threshold)
        HANDLERS[args.entity](args, ledger)
    except ValidationError as exc:
        print(f"Validation error: {exc}", file=sys.stderr)
        return 1
    except RecordNotFoundError as exc:
        print(str(exc), file=sys.stderr)
        return 1
    except ReferentialIntegrityViolation as exc:
        print(f"Cannot delete member: {exc}", file=sys.stderr)
        return 1
    except PreconditionViolation as exc:
        print(f"Ledger is inconsistent: {exc}", file=sys.stderr)
        return 1
    except PersistenceError as exc:
        print(f"Storage error: {exc}", file=sys.stderr)
        return 1
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
