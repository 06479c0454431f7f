from datetime import date, datetime, timezone
from enum import Enum
from typing import Optional
from uuid import uuid4

from sqlalchemy import (
    JSON,
    Boolean,
    CheckConstraint,
    Date,
    DateTime,
    Enum as SAEnum,
    Index,
    Integer,
    String,
    Text,
)
from sqlalchemy.orm import Mapped, mapped_column

from database import Base


def utcnow() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


def new_id() -> str:
    return uuid4().hex


class TransactionType(str, Enum):
    income = "income"
    expense = "expense"


class PaymentMethod(str, Enum):
    cash = "cash"
    debit = "debit"
    credit = "credit"
    pix = "pix"
    transfer = "transfer"


class GoalType(str, Enum):
    savings = "savings"
    budget = "budget"


class Severity(str, Enum):
    success = "success"
    error = "error"
    warning = "warning"
    info = "info"


class CurrencyCode(str, Enum):
    eur = "EUR"
    usd = "USD"
    brl = "BRL"
    gbp = "GBP"


CURRENCY_CODE_ENUM = SAEnum(
    CurrencyCode,
    name="currencycode",
    values_callable=lambda enum_cls: [member.value for member in enum_cls],
)


class Theme(str, Enum):
    auto = "auto"
    light = "light"
    dark = "dark"


class TimestampMixin:
    created_at: Mapped[datetime] = mapped_column(
        DateTime, default=utcnow, nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=utcnow, onupdate=utcnow, nullable=False
    )


class Transaction(Base, TimestampMixin):
    __tablename__ = "transactions"

    id: Mapped[str] = mapped_column(String(32), primary_key=True, default=new_id)
    type: Mapped[TransactionType] = mapped_column(
        SAEnum(TransactionType), nullable=False
    )
    description: Mapped[str] = mapped_column(String(200), nullable=False)
    category: Mapped[str] = mapped_column(String(100), nullable=False)
    amount_cents: Mapped[int] = mapped_column(Integer, nullable=False)
    date: Mapped[date] = mapped_column(Date, nullable=False)
    payment_method: Mapped[PaymentMethod] = mapped_column(
        SAEnum(PaymentMethod), nullable=False
    )
    # no foreign key: deleting a card leaves transactions pointing at it
    card_id: Mapped[Optional[str]] = mapped_column(String(32))
    tags: Mapped[list[str]] = mapped_column(JSON, default=list, nullable=False)
    notes: Mapped[Optional[str]] = mapped_column(Text)
    recurring: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    deleted_at: Mapped[Optional[datetime]] = mapped_column(DateTime)

    __table_args__ = (
        Index("ix_transactions_date", "date"),
        Index("ix_transactions_type_date", "type", "date"),
        Index("ix_transactions_card", "card_id"),
        CheckConstraint("amount_cents >= 0", name="ck_transactions_amount_positive"),
    )


class Card(Base, TimestampMixin):
    __tablename__ = "cards"

    id: Mapped[str] = mapped_column(String(32), primary_key=True, default=new_id)
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    limit_cents: Mapped[int] = mapped_column(Integer, nullable=False)
    limit_used_cents: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    available_limit_cents: Mapped[int] = mapped_column(Integer, nullable=False)
    brand: Mapped[Optional[str]] = mapped_column(String(40))
    color: Mapped[Optional[str]] = mapped_column(String(9))
    closing_day: Mapped[Optional[int]] = mapped_column(Integer)
    due_day: Mapped[Optional[int]] = mapped_column(Integer)

    __table_args__ = (
        CheckConstraint("limit_cents > 0", name="ck_cards_limit_positive"),
        CheckConstraint("limit_used_cents >= 0", name="ck_cards_used_non_negative"),
    )


class Goal(Base, TimestampMixin):
    __tablename__ = "goals"

    id: Mapped[str] = mapped_column(String(32), primary_key=True, default=new_id)
    type: Mapped[GoalType] = mapped_column(SAEnum(GoalType), nullable=False)
    name: Mapped[str] = mapped_column(String(120), nullable=False)
    target_cents: Mapped[int] = mapped_column(Integer, nullable=False)
    current_cents: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    deadline: Mapped[Optional[date]] = mapped_column(Date)
    category: Mapped[Optional[str]] = mapped_column(String(100))

    __table_args__ = (
        CheckConstraint("target_cents >= 0", name="ck_goals_target_positive"),
    )


class Investment(Base, TimestampMixin):
    __tablename__ = "investments"

    id: Mapped[str] = mapped_column(String(32), primary_key=True, default=new_id)
    name: Mapped[str] = mapped_column(String(120), nullable=False)
    type: Mapped[str] = mapped_column(String(60), nullable=False)
    initial_cents: Mapped[int] = mapped_column(Integer, nullable=False)
    current_cents: Mapped[int] = mapped_column(Integer, nullable=False)
    date: Mapped[date] = mapped_column(Date, nullable=False)

    __table_args__ = (
        CheckConstraint("initial_cents >= 0", name="ck_investments_initial_positive"),
        CheckConstraint("current_cents >= 0", name="ck_investments_current_positive"),
    )


class Reminder(Base, TimestampMixin):
    __tablename__ = "reminders"

    id: Mapped[str] = mapped_column(String(32), primary_key=True, default=new_id)
    description: Mapped[str] = mapped_column(String(200), nullable=False)
    amount_cents: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    due_date: Mapped[date] = mapped_column(Date, nullable=False)
    kind: Mapped[Optional[str]] = mapped_column(String(40))

    __table_args__ = (Index("ix_reminders_due_date", "due_date"),)


class Notification(Base):
    __tablename__ = "notifications"

    id: Mapped[str] = mapped_column(String(32), primary_key=True, default=new_id)
    title: Mapped[str] = mapped_column(String(120), nullable=False)
    message: Mapped[str] = mapped_column(Text, nullable=False)
    severity: Mapped[Severity] = mapped_column(
        SAEnum(Severity), default=Severity.info, nullable=False
    )
    read: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime, default=utcnow, nullable=False
    )

    __table_args__ = (Index("ix_notifications_created_at", "created_at"),)


class AppSettings(Base, TimestampMixin):
    __tablename__ = "settings"

    id: Mapped[str] = mapped_column(String(32), primary_key=True, default="default")
    currency: Mapped[CurrencyCode] = mapped_column(
        CURRENCY_CODE_ENUM, default=CurrencyCode.eur, nullable=False
    )
    language: Mapped[str] = mapped_column(String(10), default="pt-BR", nullable=False)
    theme: Mapped[Theme] = mapped_column(
        SAEnum(Theme), default=Theme.auto, nullable=False
    )
    notifications_enabled: Mapped[bool] = mapped_column(
        Boolean, default=True, nullable=False
    )
