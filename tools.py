from __future__ import annotations

from decimal import ROUND_HALF_UP, Decimal

from models import CurrencyCode

# units of each currency per 1 EUR
EXCHANGE_RATES: dict[CurrencyCode, Decimal] = {
    CurrencyCode.eur: Decimal("1"),
    CurrencyCode.usd: Decimal("1.08"),
    CurrencyCode.brl: Decimal("5.45"),
    CurrencyCode.gbp: Decimal("0.86"),
}

CENT = Decimal("0.01")


def _money(value: Decimal) -> Decimal:
    return value.quantize(CENT, rounding=ROUND_HALF_UP)


def convert_currency(
    amount: Decimal | float | int,
    from_currency: CurrencyCode,
    to_currency: CurrencyCode,
) -> dict[str, object]:
    amount = Decimal(str(amount))
    rate = EXCHANGE_RATES[to_currency] / EXCHANGE_RATES[from_currency]
    return {
        "amount": _money(amount),
        "from_currency": from_currency.value,
        "to_currency": to_currency.value,
        "rate": rate.quantize(Decimal("0.000001"), rounding=ROUND_HALF_UP),
        "converted": _money(amount * rate),
    }


def compound_interest(
    principal: Decimal | float | int,
    rate_pct: Decimal | float | int,
    periods: int,
    contribution: Decimal | float | int = 0,
) -> dict[str, Decimal]:
    """Grow ``principal`` for ``periods`` periods, adding ``contribution`` at the end of each."""
    principal = Decimal(str(principal))
    contribution = Decimal(str(contribution))
    rate = Decimal(str(rate_pct)) / 100

    balance = principal
    for _ in range(periods):
        balance = balance * (1 + rate) + contribution

    contributed = principal + contribution * periods
    return {
        "final_amount": _money(balance),
        "total_contributed": _money(contributed),
        "total_interest": _money(balance - contributed),
    }


def simulate_installments(
    total: Decimal | float | int,
    count: int,
    rate_pct: Decimal | float | int = 0,
) -> dict[str, object]:
    if count <= 0:
        raise ValueError("Installment count must be positive")
    total = Decimal(str(total))
    rate = Decimal(str(rate_pct)) / 100

    if rate > 0:
        factor = (1 + rate) ** count
        installment = total * rate * factor / (factor - 1)
    else:
        installment = total / count

    paid = installment * count
    interest = paid - total if rate > 0 else Decimal(0)
    return {
        "count": count,
        "installment": _money(installment),
        "total_paid": _money(paid),
        "total_interest": _money(interest),
    }
