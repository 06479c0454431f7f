from decimal import Decimal

import pytest

from models import CurrencyCode
from tools import compound_interest, convert_currency, simulate_installments


def test_convert_currency_uses_eur_based_rates() -> None:
    result = convert_currency(100, CurrencyCode.eur, CurrencyCode.usd)
    assert result["converted"] == Decimal("108.00")

    result = convert_currency(108, CurrencyCode.usd, CurrencyCode.brl)
    assert result["converted"] == Decimal("545.00")

    result = convert_currency("19.99", CurrencyCode.gbp, CurrencyCode.gbp)
    assert result["converted"] == Decimal("19.99")


def test_compound_interest_with_contributions() -> None:
    result = compound_interest(1000, 10, 2)
    assert result["final_amount"] == Decimal("1210.00")
    assert result["total_interest"] == Decimal("210.00")

    result = compound_interest(1000, 10, 2, contribution=100)
    assert result["final_amount"] == Decimal("1420.00")
    assert result["total_contributed"] == Decimal("1200.00")
    assert result["total_interest"] == Decimal("220.00")


def test_installments_without_and_with_interest() -> None:
    flat = simulate_installments(1200, 12)
    assert flat["installment"] == Decimal("100.00")
    assert flat["total_interest"] == Decimal("0.00")

    price = simulate_installments(1000, 2, rate_pct=10)
    assert price["installment"] == Decimal("576.19")
    assert price["total_paid"] == Decimal("1152.38")
    assert price["total_interest"] == Decimal("152.38")

    with pytest.raises(ValueError):
        simulate_installments(1000, 0)


def test_installments_round_only_the_reported_values() -> None:
    result = simulate_installments(100, 3)

    assert result["installment"] == Decimal("33.33")
    assert result["total_paid"] == Decimal("100.00")
    assert result["total_interest"] == Decimal("0.00")
