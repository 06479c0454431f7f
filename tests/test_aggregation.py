from datetime import date
from decimal import Decimal
from types import SimpleNamespace

import aggregation
from models import TransactionType


def _txn(txn_type: TransactionType, category: str, amount_cents: int, on: date):
    return SimpleNamespace(
        type=txn_type, category=category, amount_cents=amount_cents, date=on
    )


def _expense(category: str, amount_cents: int, on: date = date(2025, 1, 10)):
    return _txn(TransactionType.expense, category, amount_cents, on)


def _income(amount_cents: int, on: date = date(2025, 1, 5)):
    return _txn(TransactionType.income, "Salário", amount_cents, on)


def test_summary_balance_is_income_minus_expense() -> None:
    txns = [_income(1000), _expense("Food", 300), _expense("Rent", 900)]

    summary = aggregation.financial_summary(txns)

    assert summary["income_cents"] == 1000
    assert summary["expense_cents"] == 1200
    assert summary["balance_cents"] == -200
    assert summary["savings_cents"] == 0


def test_summary_is_additive_over_partitions() -> None:
    first = [_income(500), _expense("Food", 120)]
    second = [_income(700), _expense("Rent", 400), _expense("Food", 30)]

    a = aggregation.financial_summary(first)
    b = aggregation.financial_summary(second)
    both = aggregation.financial_summary(first + second)

    for key in ("income_cents", "expense_cents", "balance_cents"):
        assert both[key] == a[key] + b[key]


def test_expenses_by_category_sums_in_first_seen_order() -> None:
    txns = [
        _expense("Food", 50),
        _income(1000),
        _expense("Transport", 20),
        _expense("Food", 30),
    ]

    totals = aggregation.expenses_by_category(txns)

    assert totals == {"Food": 80, "Transport": 20}
    assert list(totals) == ["Food", "Transport"]


def test_monthly_evolution_has_twelve_months_for_year() -> None:
    txns = [
        _income(1000, date(2025, 1, 5)),
        _expense("Food", 300, date(2025, 1, 20)),
        _expense("Food", 200, date(2025, 12, 31)),
        _expense("Food", 999, date(2024, 12, 31)),
    ]

    series = aggregation.monthly_evolution(txns, 2025)

    assert len(series) == 12
    assert [m["month"] for m in series] == list(range(12))
    assert series[0] == {
        "month": 0,
        "income_cents": 1000,
        "expense_cents": 300,
        "balance_cents": 700,
    }
    assert series[11]["expense_cents"] == 200
    assert all(m["income_cents"] == 0 for m in series[1:])


def test_advanced_statistics_ties_keep_first_category() -> None:
    txns = [_income(2000), _expense("Food", 500), _expense("Rent", 500)]
    series = aggregation.monthly_evolution(txns, 2025)

    stats = aggregation.advanced_statistics(txns, series)

    assert stats["top_category"] == "Food"
    assert stats["top_category_cents"] == 500
    assert stats["max_expense_cents"] == 500
    assert stats["avg_monthly_expense_cents"] == Decimal(1000) / Decimal(12)
    assert stats["savings_rate"] == Decimal(50)


def test_advanced_statistics_without_data() -> None:
    stats = aggregation.advanced_statistics([], aggregation.monthly_evolution([], 2025))

    assert stats["top_category"] is None
    assert stats["max_expense_cents"] == 0
    assert stats["savings_rate"] == 0


def test_forecast_is_linear_from_last_three_months() -> None:
    series = [
        {"month": 0, "income_cents": 5000, "expense_cents": 0, "balance_cents": 5000},
        {"month": 1, "income_cents": 1000, "expense_cents": 600, "balance_cents": 400},
        {"month": 2, "income_cents": 1000, "expense_cents": 700, "balance_cents": 300},
        {"month": 3, "income_cents": 1000, "expense_cents": 800, "balance_cents": 200},
    ]

    points = aggregation.forecast(series, 500, horizon_months=3)

    assert [p["predicted_balance_cents"] for p in points] == [800, 1100, 1400]
    assert all(p["predicted_income_cents"] == 1000 for p in points)
    assert all(p["predicted_expense_cents"] == 700 for p in points)
    assert [p["month"] for p in points] == [1, 2, 3]


def test_forecast_with_empty_series_stays_flat() -> None:
    points = aggregation.forecast([], 250)

    assert len(points) == 6
    assert all(p["predicted_balance_cents"] == 250 for p in points)
