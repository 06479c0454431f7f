from datetime import date

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import Session

from database import Base
from models import Card, PaymentMethod, TransactionType
from reconciler import Direction, apply_transaction_effect
from schemas import CardIn, TransactionIn, TransactionUpdate
from services import CardService, RecordInvalid, TransactionService


def make_session() -> Session:
    engine = create_engine("sqlite:///:memory:")
    Base.metadata.create_all(engine)
    return Session(engine)


def _credit_expense(card_id: str, amount_cents: int) -> TransactionIn:
    return TransactionIn(
        type=TransactionType.expense,
        description="Groceries",
        category="Alimentação",
        amount_cents=amount_cents,
        date=date(2025, 3, 10),
        payment_method=PaymentMethod.credit,
        card_id=card_id,
    )


def test_card_lifecycle_follows_create_update_delete() -> None:
    with make_session() as session:
        card = CardService(session).create(CardIn(name="Visa", limit_cents=1000))
        assert card.limit_used_cents == 0
        assert card.available_limit_cents == 1000

        txns = TransactionService(session)
        txn = txns.create(_credit_expense(card.id, 300))
        assert card.limit_used_cents == 300
        assert card.available_limit_cents == 700

        txns.update(txn.id, TransactionUpdate(amount_cents=500))
        assert card.limit_used_cents == 500
        assert card.available_limit_cents == 500

        txns.delete(txn.id)
        assert card.limit_used_cents == 0
        assert card.available_limit_cents == 1000


def test_moving_expense_between_cards_reverses_old_card() -> None:
    with make_session() as session:
        cards = CardService(session)
        visa = cards.create(CardIn(name="Visa", limit_cents=1000))
        master = cards.create(CardIn(name="Master", limit_cents=2000))

        txns = TransactionService(session)
        txn = txns.create(_credit_expense(visa.id, 400))
        txns.update(txn.id, TransactionUpdate(card_id=master.id, amount_cents=250))

        assert visa.limit_used_cents == 0
        assert master.limit_used_cents == 250
        assert master.available_limit_cents == 1750


def test_switching_to_cash_releases_limit_and_clears_card() -> None:
    with make_session() as session:
        card = CardService(session).create(CardIn(name="Visa", limit_cents=1000))
        txns = TransactionService(session)
        txn = txns.create(_credit_expense(card.id, 300))

        updated = txns.update(txn.id, TransactionUpdate(payment_method=PaymentMethod.cash))

        assert updated.card_id is None
        assert card.limit_used_cents == 0


def test_income_on_credit_does_not_touch_card() -> None:
    with make_session() as session:
        card = CardService(session).create(CardIn(name="Visa", limit_cents=1000))
        TransactionService(session).create(
            TransactionIn(
                type=TransactionType.income,
                description="Refund",
                category="Outros",
                amount_cents=200,
                date=date(2025, 3, 10),
                payment_method=PaymentMethod.credit,
                card_id=card.id,
            )
        )
        assert card.limit_used_cents == 0


def test_credit_requires_existing_card() -> None:
    with make_session() as session:
        txns = TransactionService(session)
        with pytest.raises(RecordInvalid):
            txns.create(_credit_expense("", 100))
        with pytest.raises(RecordInvalid):
            txns.create(_credit_expense("missing", 100))


def test_reverse_is_floored_at_zero() -> None:
    card = Card(name="Visa", limit_cents=1000, limit_used_cents=100)

    apply_transaction_effect(card, 250, Direction.reverse)

    assert card.limit_used_cents == 0
    assert card.available_limit_cents == 1000


def test_missing_card_effect_is_noop() -> None:
    assert apply_transaction_effect(None, 250, Direction.apply) is None


def test_deleting_card_leaves_transactions_dangling() -> None:
    with make_session() as session:
        cards = CardService(session)
        card = cards.create(CardIn(name="Visa", limit_cents=1000))
        txns = TransactionService(session)
        txn = txns.create(_credit_expense(card.id, 300))

        assert cards.delete(card.id) is True
        assert cards.delete(card.id) is False

        assert txns.get(txn.id).card_id == card.id
        txns.update(txn.id, TransactionUpdate(amount_cents=50))
        assert txns.delete(txn.id) is True


def test_restore_reapplies_card_effect() -> None:
    with make_session() as session:
        card = CardService(session).create(CardIn(name="Visa", limit_cents=1000))
        txns = TransactionService(session)
        txn = txns.create(_credit_expense(card.id, 300))

        txns.delete(txn.id)
        assert card.limit_used_cents == 0
        txns.restore(txn.id)
        assert card.limit_used_cents == 300


def test_second_delete_of_credit_expense_keeps_balance() -> None:
    with make_session() as session:
        card = CardService(session).create(CardIn(name="Visa", limit_cents=1000))
        txns = TransactionService(session)
        first = txns.create(_credit_expense(card.id, 300))
        txns.create(_credit_expense(card.id, 200))

        assert txns.delete(first.id) is True
        assert card.limit_used_cents == 200

        assert txns.delete(first.id) is False
        assert card.limit_used_cents == 200
        assert card.available_limit_cents == 800


def test_used_limit_matches_live_credit_expenses_after_mixed_edits() -> None:
    with make_session() as session:
        cards = CardService(session)
        visa = cards.create(CardIn(name="Visa", limit_cents=5000))
        master = cards.create(CardIn(name="Master", limit_cents=5000))
        txns = TransactionService(session)

        a = txns.create(_credit_expense(visa.id, 1000))
        b = txns.create(_credit_expense(visa.id, 700))
        c = txns.create(_credit_expense(master.id, 400))
        d = txns.create(_credit_expense(visa.id, 250))

        txns.update(a.id, TransactionUpdate(amount_cents=1200))
        txns.update(b.id, TransactionUpdate(card_id=master.id))
        txns.update(c.id, TransactionUpdate(type=TransactionType.income))
        txns.delete(d.id)
        txns.delete(d.id)
        txns.update(c.id, TransactionUpdate(type=TransactionType.expense, amount_cents=450))
        txns.delete(a.id)
        txns.restore(a.id)
        txns.restore(a.id)
        txns.update(b.id, TransactionUpdate(payment_method=PaymentMethod.cash))

        for card in (visa, master):
            expected = sum(
                t.amount_cents
                for t in txns.list()
                if t.type == TransactionType.expense
                and t.payment_method == PaymentMethod.credit
                and t.card_id == card.id
            )
            assert card.limit_used_cents == expected
            assert card.available_limit_cents == card.limit_cents - expected
        assert visa.limit_used_cents == 1200
        assert master.limit_used_cents == 450
