"""Read-only financial aggregates over already-filtered transactions.

Every function takes plain transaction-like objects (anything with ``type``,
``category``, ``amount_cents`` and ``date``) and never mutates them. Sums stay
in integer cents; averages and rates are ``Decimal`` and are not rounded here.
"""

from collections import defaultdict
from datetime import date
from decimal import Decimal
from typing import Iterable, Optional, Protocol, Sequence

from models import TransactionType

FORECAST_WINDOW_MONTHS = 3


class Ledgerable(Protocol):
    type: TransactionType
    category: str
    amount_cents: int
    date: date


def financial_summary(transactions: Iterable[Ledgerable]) -> dict[str, int]:
    income = 0
    expense = 0
    for txn in transactions:
        if txn.type == TransactionType.income:
            income += txn.amount_cents
        elif txn.type == TransactionType.expense:
            expense += txn.amount_cents
    balance = income - expense
    return {
        "income_cents": income,
        "expense_cents": expense,
        "balance_cents": balance,
        "savings_cents": max(balance, 0),
    }


def expenses_by_category(transactions: Iterable[Ledgerable]) -> dict[str, int]:
    totals: dict[str, int] = {}
    for txn in transactions:
        if txn.type != TransactionType.expense:
            continue
        totals[txn.category] = totals.get(txn.category, 0) + txn.amount_cents
    return totals


def monthly_evolution(
    transactions: Iterable[Ledgerable], year: int
) -> list[dict[str, int]]:
    by_month: dict[int, list[Ledgerable]] = defaultdict(list)
    for txn in transactions:
        if txn.date.year == year:
            by_month[txn.date.month - 1].append(txn)

    out: list[dict[str, int]] = []
    for month in range(12):
        summary = financial_summary(by_month.get(month, []))
        out.append(
            {
                "month": month,
                "income_cents": summary["income_cents"],
                "expense_cents": summary["expense_cents"],
                "balance_cents": summary["balance_cents"],
            }
        )
    return out


def advanced_statistics(
    transactions: Sequence[Ledgerable], series: Sequence[dict[str, int]]
) -> dict[str, object]:
    expenses = [t for t in transactions if t.type == TransactionType.expense]

    avg_monthly_expense = Decimal(sum(m["expense_cents"] for m in series)) / Decimal(12)
    max_expense = max((t.amount_cents for t in expenses), default=0)

    top_category: Optional[str] = None
    top_amount = 0
    for category, amount in expenses_by_category(expenses).items():
        # strict comparison keeps the first category seen on ties
        if top_category is None or amount > top_amount:
            top_category = category
            top_amount = amount

    summary = financial_summary(transactions)
    if summary["income_cents"] > 0:
        savings_rate = (
            Decimal(summary["savings_cents"]) / Decimal(summary["income_cents"])
        ) * 100
    else:
        savings_rate = Decimal(0)

    return {
        "avg_monthly_expense_cents": avg_monthly_expense,
        "max_expense_cents": max_expense,
        "top_category": top_category,
        "top_category_cents": top_amount,
        "savings_rate": savings_rate,
    }


def forecast(
    series: Sequence[dict[str, int]],
    current_balance_cents: int,
    horizon_months: int = 6,
) -> list[dict[str, object]]:
    """Linear projection from the last three months of a monthly series.

    Month ``i`` is predicted at ``current + avg_balance * i``; income and
    expense stay flat at their window averages.
    """
    recent = list(series)[-FORECAST_WINDOW_MONTHS:]
    if recent:
        count = Decimal(len(recent))
        avg_income = Decimal(sum(m["income_cents"] for m in recent)) / count
        avg_expense = Decimal(sum(m["expense_cents"] for m in recent)) / count
    else:
        avg_income = Decimal(0)
        avg_expense = Decimal(0)
    avg_balance = avg_income - avg_expense

    return [
        {
            "month": i,
            "predicted_balance_cents": Decimal(current_balance_cents) + avg_balance * i,
            "predicted_income_cents": avg_income,
            "predicted_expense_cents": avg_expense,
        }
        for i in range(1, horizon_months + 1)
    ]
