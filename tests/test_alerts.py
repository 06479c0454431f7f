from datetime import date, datetime

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import Session

from config import get_settings
from database import Base
from models import Notification, PaymentMethod, Severity, TransactionType
from schemas import CardIn, ReminderIn, SettingsUpdate, TransactionIn
from services import (
    AlertService,
    CardService,
    NotificationService,
    ReminderService,
    SettingsService,
    TransactionService,
)

TODAY = date(2025, 3, 10)


def make_session() -> Session:
    engine = create_engine("sqlite:///:memory:")
    Base.metadata.create_all(engine)
    return Session(engine)


def test_reminders_due_soon_raise_one_warning_per_day() -> None:
    with make_session() as session:
        reminders = ReminderService(session)
        reminders.create(ReminderIn(description="Rent", due_date=date(2025, 3, 12)))
        reminders.create(ReminderIn(description="Water", due_date=date(2025, 3, 11)))
        reminders.create(ReminderIn(description="Past", due_date=date(2025, 3, 9)))
        reminders.create(ReminderIn(description="Later", due_date=date(2025, 3, 14)))

        alerts = AlertService(session)
        assert alerts.run_checks(today=TODAY) == 2
        assert alerts.run_checks(today=TODAY) == 0

        notifications = NotificationService(session).list()
        messages = sorted(n.message for n in notifications)
        assert messages == ["Rent - due in 2 days", "Water - due in 1 day"]
        assert all(n.severity == Severity.warning for n in notifications)


def test_card_near_limit_raises_warning() -> None:
    with make_session() as session:
        cards = CardService(session)
        visa = cards.create(CardIn(name="Visa", limit_cents=1000))
        cards.create(CardIn(name="Spare", limit_cents=1000))
        TransactionService(session).create(
            TransactionIn(
                type=TransactionType.expense,
                description="Laptop",
                category="Compras",
                amount_cents=850,
                date=TODAY,
                payment_method=PaymentMethod.credit,
                card_id=visa.id,
            )
        )

        assert AlertService(session).run_checks(today=TODAY) == 1
        assert AlertService(session).run_checks(today=TODAY) == 0

        messages = [n.message for n in NotificationService(session).list()]
        assert messages == ["Card Visa is at 85% of its limit"]


def test_alerts_respect_disabled_notifications() -> None:
    with make_session() as session:
        ReminderService(session).create(
            ReminderIn(description="Rent", due_date=TODAY)
        )
        SettingsService(session).update(SettingsUpdate(notifications_enabled=False))

        assert AlertService(session).run_checks(today=TODAY) == 0
        assert NotificationService(session).list() == []


@pytest.fixture
def lisbon(monkeypatch):
    monkeypatch.setenv("FINANCEHUB_TIMEZONE", "Europe/Lisbon")
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


def test_dedupe_window_starts_at_local_midnight(lisbon) -> None:
    with make_session() as session:
        ReminderService(session).create(
            ReminderIn(description="Rent", due_date=date(2025, 7, 2))
        )
        # 00:30 on July 1st in Lisbon (UTC+1 in summer)
        session.add(
            Notification(
                title="Attention",
                message="Rent - due in 1 day",
                severity=Severity.warning,
                created_at=datetime(2025, 6, 30, 23, 30),
            )
        )
        session.commit()

        assert AlertService(session).run_checks(today=date(2025, 7, 1)) == 0


def test_reminder_named_like_a_card_still_alerts() -> None:
    with make_session() as session:
        cards = CardService(session)
        visa = cards.create(CardIn(name="Visa", limit_cents=1000))
        TransactionService(session).create(
            TransactionIn(
                type=TransactionType.expense,
                description="Laptop",
                category="Compras",
                amount_cents=850,
                date=TODAY,
                payment_method=PaymentMethod.credit,
                card_id=visa.id,
            )
        )
        assert AlertService(session).run_checks(today=TODAY) == 1

        ReminderService(session).create(
            ReminderIn(description="Visa", due_date=date(2025, 3, 11))
        )

        assert AlertService(session).run_checks(today=TODAY) == 1

        messages = sorted(n.message for n in NotificationService(session).list())
        assert messages == ["Card Visa is at 85% of its limit", "Visa - due in 1 day"]
