"""Validation helpers shared across ledger services."""

from __future__ import annotations

from datetime import datetime, timezone
from decimal import Decimal, InvalidOperation
from typing import Collection, Tuple

from .exceptions import ValidationError
from .models import quantize, parse_datetime


def parse_amount(raw: object, field: str) -> Decimal:
    """Convert raw input to a positive Decimal with exactly two fraction digits."""
    if isinstance(raw, bool):
        raise ValidationError(f"{field} must be a numeric value")
    try:
        amount = Decimal(str(raw))
    except (InvalidOperation, TypeError) as exc:  # type: ignore[arg-type]
        raise ValidationError(f"{field} must be a numeric value") from exc

    if not amount.is_finite():
        raise ValidationError(f"{field} must be a numeric value")
    try:
        amount = quantize(amount)
    except InvalidOperation as exc:
        # Too many digits to hold at cent precision.
        raise ValidationError(f"{field} must be a numeric value") from exc
    if amount <= 0:
        raise ValidationError(f"{field} must be greater than zero")
    return amount


def parse_threshold(raw: object) -> Decimal:
    return parse_amount(raw, "threshold")


def parse_member_id(raw: object, field: str) -> int:
    if isinstance(raw, bool):
        raise ValidationError(f"{field} must be an integer member id")
    try:
        value = int(str(raw).strip())
    except (TypeError, ValueError) as exc:
        raise ValidationError(f"{field} must be an integer member id") from exc
    return value


def validate_member_ref(raw: object, field: str, known: Collection[int]) -> int:
    member_id = parse_member_id(raw, field)
    if member_id not in known:
        raise ValidationError(f"{field} refers to unknown member {member_id}")
    return member_id


def validate_participants(raw: object, field: str, known: Collection[int]) -> Tuple[int, ...]:
    if not isinstance(raw, (list, tuple, set, frozenset)):
        raise ValidationError(f"{field} must be a list of member ids")
    participants = []
    for item in raw:
        member_id = validate_member_ref(item, field, known)
        if member_id not in participants:
            participants.append(member_id)
    if not participants:
        raise ValidationError(f"{field} must contain at least one member")
    return tuple(participants)


def validate_required_str(value: object, field: str, max_length: int) -> str:
    if not isinstance(value, str):
        raise ValidationError(f"{field} must be a string")
    trimmed = value.strip()
    if not trimmed:
        raise ValidationError(f"{field} cannot be empty")
    if len(trimmed) > max_length:
        raise ValidationError(f"{field} must be at most {max_length} characters")
    return trimmed


def validate_datetime(value: object, field: str) -> datetime:
    if isinstance(value, datetime):
        dt = value if value.tzinfo else value.replace(tzinfo=timezone.utc)
    elif isinstance(value, str):
        try:
            dt = parse_datetime(value)
        except ValueError as exc:
            raise ValidationError(f"{field} must be an ISO 8601 datetime") from exc
    else:
        raise ValidationError(f"{field} must be a datetime or ISO 8601 string")
    return dt.astimezone(timezone.utc)


def validate_optional_datetime(value: object, field: str) -> datetime:
    if value in (None, ""):
        return datetime.now(timezone.utc)
    return validate_datetime(value, field)


def parse_flag(value: object, field: str) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        canonical = value.strip().lower()
        if canonical in {"1", "true", "yes", "on"}:
            return True
        if canonical in {"0", "false", "no", "off"}:
            return False
    raise ValidationError(f"{field} must be a boolean")
