from datetime import date

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import Session

from database import Base
from models import PaymentMethod, TransactionType
from schemas import CardIn, GoalIn, NotificationIn, TransactionIn
from services import (
    COLLECTION_KEYS,
    BackupService,
    CardService,
    GoalService,
    NotificationService,
    RecordInvalid,
    SettingsService,
    TransactionService,
)


def make_session() -> Session:
    engine = create_engine("sqlite:///:memory:")
    Base.metadata.create_all(engine)
    return Session(engine)


def _seed(session: Session) -> None:
    card = CardService(session).create(CardIn(name="Visa", limit_cents=1000))
    TransactionService(session).create(
        TransactionIn(
            type=TransactionType.expense,
            description="Groceries",
            category="Alimentação",
            amount_cents=300,
            date=date(2025, 3, 10),
            payment_method=PaymentMethod.credit,
            card_id=card.id,
        )
    )


def test_export_contains_every_collection_as_json() -> None:
    with make_session() as session:
        _seed(session)

        envelope = BackupService(session).export()

        assert set(envelope) == set(COLLECTION_KEYS)
        assert envelope["transactions"][0]["date"] == "2025-03-10"
        assert envelope["transactions"][0]["type"] == "expense"
        assert envelope["cards"][0]["limit_used_cents"] == 300
        assert envelope["settings"]["currency"] == "EUR"
        assert envelope["goals"] == []


def test_import_replaces_present_keys_wholesale() -> None:
    with make_session() as session:
        _seed(session)
        GoalService(session).create(
            GoalIn(type="savings", name="Trip", target_cents=5000)
        )
        backup = BackupService(session)

        replaced = backup.import_envelope(
            {
                "transactions": [
                    {
                        "id": "t1",
                        "type": "income",
                        "description": "Salary",
                        "category": "Salário",
                        "amount_cents": 250000,
                        "date": "2025-03-01",
                    }
                ],
                "cards": [{"id": "c1", "name": "Amex", "limit_cents": 5000, "limit_used_cents": 1200}],
                "unknown": [1, 2, 3],
            }
        )

        assert replaced == ["transactions", "cards"]
        assert [t.id for t in TransactionService(session).list()] == ["t1"]
        card = CardService(session).get("c1")
        assert card.available_limit_cents == 3800
        assert [g.name for g in GoalService(session).list()] == ["Trip"]


def test_import_rejects_invalid_payload_without_changes() -> None:
    with make_session() as session:
        _seed(session)
        backup = BackupService(session)

        with pytest.raises(RecordInvalid):
            backup.import_envelope({"cards": [{"name": "No limit"}]})
        with pytest.raises(RecordInvalid):
            backup.import_envelope(
                {
                    "cards": [
                        {"id": "dup", "name": "A", "limit_cents": 100},
                        {"id": "dup", "name": "B", "limit_cents": 100},
                    ]
                }
            )

        assert [c.name for c in CardService(session).list_all()] == ["Visa"]


def test_import_settings_and_notifications() -> None:
    with make_session() as session:
        backup = BackupService(session)
        NotificationService(session).add(NotificationIn(title="Old", message="old"))

        backup.import_envelope(
            {
                "settings": {"currency": "BRL", "theme": "dark"},
                "notifications": [
                    {"title": "Hi", "message": "hello", "severity": "success"}
                ],
            }
        )

        settings = SettingsService(session).get()
        assert settings.currency.value == "BRL"
        assert settings.theme.value == "dark"
        assert [n.message for n in NotificationService(session).list()] == ["hello"]


def test_reset_clears_everything() -> None:
    with make_session() as session:
        _seed(session)
        SettingsService(session).get()
        backup = BackupService(session)

        backup.reset()

        envelope = backup.export()
        for key in COLLECTION_KEYS:
            if key == "settings":
                assert envelope[key]["language"] == "pt-BR"
            else:
                assert envelope[key] == []
