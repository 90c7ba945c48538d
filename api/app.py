"""Flask REST API exposing the shared ledger services."""

from __future__ import annotations

import os
from decimal import Decimal
from pathlib import Path
from typing import Any, Dict, Iterable, Optional

from flask import Flask, jsonify, request
from flask_cors import CORS

from ledgercore.exceptions import (
    PersistenceError,
    PreconditionViolation,
    RecordNotFoundError,
    ReferentialIntegrityViolation,
    ValidationError,
)
from ledgercore.insights import category_breakdown, daily_trend, generate_insights
from ledgercore.models import Member, format_amount
from ledgercore.services import DEFAULT_MEMBERS, LedgerService
from ledgercore.settlement import DEFAULT_THRESHOLD
from ledgercore.storage import JSONStorage
from ledgercore.validators import parse_threshold

DEFAULT_DATA_PATH = Path("data") / "ledger.json"


def create_app(
    data_path: Optional[Path] = None,
    seed_members: Optional[Iterable[Member]] = None,
    threshold: Optional[Decimal] = None,
) -> Flask:
    app = Flask(__name__)

    env_name = os.getenv("SPLITLEDGER_ENV", "prod").lower()
    if env_name in {"dev", "development"}:
        CORS(app, resources={r"/*": {"origins": "*"}}, supports_credentials=True)
    else:
        allowed_origins = os.getenv("SPLITLEDGER_ALLOWED_ORIGINS")
        if allowed_origins:
            origins = [origin.strip() for origin in allowed_origins.split(",") if origin.strip()]
            CORS(app, resources={r"/*": {"origins": origins}}, supports_credentials=True)
        else:
            CORS(app)

    if threshold is None:
        raw_threshold = os.getenv("SPLITLEDGER_SETTLEMENT_THRESHOLD")
        threshold = parse_threshold(raw_threshold) if raw_threshold else DEFAULT_THRESHOLD

    path = Path(data_path or os.getenv("SPLITLEDGER_DATA_PATH") or DEFAULT_DATA_PATH)
    storage = JSONStorage(path, DEFAULT_MEMBERS if seed_members is None else seed_members)
    ledger = LedgerService(storage, threshold)

    def _success(payload: Any, status: int = 200):
        return jsonify(payload), status

    def _handle_error(exc: Exception, status: int, message: str):
        app.logger.error("%s: %s", message, exc)
        return jsonify({"error": message, "details": str(exc)}), status

    @app.errorhandler(ValidationError)
    def handle_validation_error(exc: ValidationError):
        return _handle_error(exc, 400, "Validation error")

    @app.errorhandler(RecordNotFoundError)
    def handle_not_found(exc: RecordNotFoundError):
        return _handle_error(exc, 404, "Record not found")

    @app.errorhandler(ReferentialIntegrityViolation)
    def handle_integrity_violation(exc: ReferentialIntegrityViolation):
        return _handle_error(exc, 409, "Cannot delete user with existing expenses.")

    @app.errorhandler(PreconditionViolation)
    def handle_precondition(exc: PreconditionViolation):
        return _handle_error(exc, 500, "Inconsistent ledger state")

    @app.errorhandler(PersistenceError)
    def handle_persistence_error(exc: PersistenceError):
        return _handle_error(exc, 500, "Persistence error")

    def _json_body() -> Dict[str, Any]:
        if not request.is_json:
            raise ValidationError("Request content must be application/json")
        data = request.get_json(silent=True)
        if not isinstance(data, dict):
            raise ValidationError("Malformed JSON body")
        return data

    def _clean_filters(raw: Dict[str, Optional[str]]) -> Dict[str, str]:
        return {k: v for k, v in raw.items() if v not in (None, "")}

    @app.get("/api/users")
    def list_users():
        return _success([member.to_dict() for member in ledger.members.list()])

    @app.post("/api/users")
    def create_user():
        member = ledger.members.add(_json_body())
        return _success(member.to_dict(), 201)

    @app.delete("/api/users/<int:member_id>")
    def delete_user(member_id: int):
        ledger.members.delete(member_id)
        return _success({"success": True})

    @app.get("/api/expenses")
    def list_expenses():
        filters = {
            "category": request.args.get("category"),
            "member": request.args.get("member"),
            "start": request.args.get("start"),
            "end": request.args.get("end"),
            "settlements": request.args.get("settlements"),
        }
        applied = _clean_filters(filters)
        expenses = ledger.expenses.list(**applied)
        return _success([expense.to_dict() for expense in expenses])

    @app.post("/api/expenses")
    def create_expense():
        expense = ledger.expenses.add(_json_body())
        return _success(expense.to_dict(), 201)

    @app.get("/api/expenses/<int:expense_id>")
    def get_expense(expense_id: int):
        return _success(ledger.expenses.get(expense_id).to_dict())

    @app.put("/api/expenses/<int:expense_id>")
    def update_expense(expense_id: int):
        expense = ledger.expenses.update(expense_id, _json_body())
        return _success(expense.to_dict())

    @app.delete("/api/expenses/<int:expense_id>")
    def delete_expense(expense_id: int):
        ledger.expenses.delete(expense_id)
        return _success({"success": True})

    @app.get("/api/balances")
    def balances():
        return _success({str(member_id): format_amount(value) for member_id, value in ledger.balances().items()})

    @app.get("/api/settlements/plan")
    def plan_settlements():
        return _success([transfer.to_dict() for transfer in ledger.plan()])

    @app.get("/api/settlements")
    def list_settlements():
        return _success([settlement.to_dict() for settlement in ledger.settlements.list()])

    @app.post("/api/settlements")
    def create_settlement():
        entries = ledger.settle(_json_body())
        return _success(
            {"settlement": entries.settlement.to_dict(), "expense": entries.expense.to_dict()}, 201
        )

    @app.get("/api/insights")
    def insights():
        expenses = ledger.expenses.list()
        return _success({
            "insights": generate_insights(expenses),
            "categories": category_breakdown(expenses),
            "trend": daily_trend(expenses),
        })

    return app


if __name__ == "__main__":
    create_app().run(port=int(os.getenv("PORT", "3001")))
