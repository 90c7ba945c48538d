"""Spending summaries derived from the expense list.

Settlement expenses move money between members rather than spend it, so they
are left out of every figure here.
"""

from __future__ import annotations

from datetime import date, datetime, timedelta, timezone
from decimal import Decimal
from typing import Any, Dict, Iterable, List, Optional

from .models import Category, Expense, format_amount

ZERO = Decimal("0.00")
ALERT_FACTOR = Decimal("1.2")
WEEKS_PER_MONTH = 4


def _spending(expenses: Iterable[Expense]) -> List[Expense]:
    return [expense for expense in expenses if not expense.is_settlement]


def category_breakdown(expenses: Iterable[Expense]) -> List[Dict[str, Any]]:
    totals: Dict[Category, Decimal] = {}
    for expense in _spending(expenses):
        totals[expense.category] = totals.get(expense.category, ZERO) + expense.amount
    grand_total = sum(totals.values(), ZERO)

    rows = []
    for category, amount in sorted(totals.items(), key=lambda item: (-item[1], item[0].tag)):
        share = (amount / grand_total * 100) if grand_total else ZERO
        rows.append(
            {
                "category": category.tag,
                "name": category.label,
                "color": category.color,
                "value": format_amount(amount),
                "share": f"{share:.1f}",
            }
        )
    return rows


def daily_trend(expenses: Iterable[Expense], days: int = 30, today: Optional[date] = None) -> List[Dict[str, str]]:
    today = today or datetime.now(timezone.utc).date()
    per_day: Dict[date, Decimal] = {}
    for expense in _spending(expenses):
        day = expense.date.date()
        per_day[day] = per_day.get(day, ZERO) + expense.amount

    trend = []
    for offset in range(days - 1, -1, -1):
        day = today - timedelta(days=offset)
        trend.append({"date": day.isoformat(), "amount": format_amount(per_day.get(day, ZERO))})
    return trend


def generate_insights(expenses: Iterable[Expense], now: Optional[datetime] = None) -> List[Dict[str, str]]:
    """Threshold-based messages about where and how fast the group spends."""
    spending = _spending(expenses)
    if not spending:
        return []
    now = now or datetime.now(timezone.utc)
    insights = []

    breakdown = category_breakdown(spending)
    top = breakdown[0]
    insights.append(
        {
            "type": "spending",
            "title": "Top Spending Category",
            "message": f"{top['name']} accounts for {top['share']}% of your expenses",
        }
    )

    total = sum((expense.amount for expense in spending), ZERO)
    week_ago = now - timedelta(days=7)
    recent_total = sum((expense.amount for expense in spending if expense.date > week_ago), ZERO)
    average_week = total / WEEKS_PER_MONTH
    if recent_total > average_week * ALERT_FACTOR:
        insights.append(
            {
                "type": "warning",
                "title": "Spending Alert",
                "message": f"You've spent {format_amount(recent_total)} this week, above average",
            }
        )
    return insights
