"""Tests for spending summaries."""

from datetime import date, datetime, timedelta, timezone

from ledgercore.insights import category_breakdown, daily_trend, generate_insights
from ledgercore.models import Category

from .conftest import make_expense

NOW = datetime(2024, 3, 10, 12, 0, tzinfo=timezone.utc)


def _sample(when):
    return [
        make_expense(1, "60", 1, [1, 2], category=Category.FOOD, date=when),
        make_expense(2, "40", 2, [1, 2], category=Category.TRANSPORT, date=when),
        make_expense(3, "500", 2, [1], is_settlement=True, date=when),
    ]


def test_category_breakdown_excludes_settlements():
    rows = category_breakdown(_sample(NOW))

    assert [(row["category"], row["value"], row["share"]) for row in rows] == [
        ("food", "60.00", "60.0"),
        ("transport", "40.00", "40.0"),
    ]
    assert rows[0]["name"] == "Food & Dining"
    assert rows[0]["color"] == "#FF6B6B"


def test_top_category_and_spending_alert():
    insights = generate_insights(_sample(NOW - timedelta(days=1)), now=NOW)

    assert [insight["title"] for insight in insights] == ["Top Spending Category", "Spending Alert"]
    assert insights[0]["message"] == "Food & Dining accounts for 60.0% of your expenses"
    assert insights[1]["message"] == "You've spent 100.00 this week, above average"


def test_no_alert_for_old_spending():
    insights = generate_insights(_sample(NOW - timedelta(days=20)), now=NOW)

    assert [insight["type"] for insight in insights] == ["spending"]


def test_no_insights_without_spending():
    assert generate_insights([], now=NOW) == []


def test_daily_trend_buckets_by_day():
    expenses = _sample(datetime(2024, 3, 9, 8, 0, tzinfo=timezone.utc))

    trend = daily_trend(expenses, days=3, today=date(2024, 3, 10))

    assert trend == [
        {"date": "2024-03-08", "amount": "0.00"},
        {"date": "2024-03-09", "amount": "100.00"},
        {"date": "2024-03-10", "amount": "0.00"},
    ]
