import datetime as dt
from datetime import date, datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from models import (
    CurrencyCode,
    GoalType,
    PaymentMethod,
    Severity,
    Theme,
    TransactionType,
)


class TransactionIn(BaseModel):
    type: TransactionType
    description: str = Field(..., min_length=1, max_length=200)
    category: str = Field(..., min_length=1, max_length=100)
    amount_cents: int = Field(..., ge=0)
    date: date
    payment_method: PaymentMethod = PaymentMethod.cash
    card_id: Optional[str] = None
    tags: list[str] = Field(default_factory=list)
    notes: Optional[str] = Field(default=None, max_length=2000)
    recurring: bool = False


class TransactionUpdate(BaseModel):
    type: Optional[TransactionType] = None
    description: Optional[str] = Field(default=None, min_length=1, max_length=200)
    category: Optional[str] = Field(default=None, min_length=1, max_length=100)
    amount_cents: Optional[int] = Field(default=None, ge=0)
    date: Optional[dt.date] = None
    payment_method: Optional[PaymentMethod] = None
    card_id: Optional[str] = None
    tags: Optional[list[str]] = None
    notes: Optional[str] = Field(default=None, max_length=2000)
    recurring: Optional[bool] = None


class CardIn(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)
    limit_cents: int = Field(..., gt=0)
    brand: Optional[str] = Field(default=None, max_length=40)
    color: Optional[str] = Field(default=None, max_length=9)
    closing_day: Optional[int] = Field(default=None, ge=1, le=31)
    due_day: Optional[int] = Field(default=None, ge=1, le=31)


class CardUpdate(BaseModel):
    name: Optional[str] = Field(default=None, min_length=1, max_length=100)
    limit_cents: Optional[int] = Field(default=None, gt=0)
    brand: Optional[str] = Field(default=None, max_length=40)
    color: Optional[str] = Field(default=None, max_length=9)
    closing_day: Optional[int] = Field(default=None, ge=1, le=31)
    due_day: Optional[int] = Field(default=None, ge=1, le=31)


class GoalIn(BaseModel):
    type: GoalType
    name: str = Field(..., min_length=1, max_length=120)
    target_cents: int = Field(..., ge=0)
    current_cents: int = Field(default=0, ge=0)
    deadline: Optional[date] = None
    category: Optional[str] = Field(default=None, max_length=100)


class GoalUpdate(BaseModel):
    name: Optional[str] = Field(default=None, min_length=1, max_length=120)
    target_cents: Optional[int] = Field(default=None, ge=0)
    deadline: Optional[date] = None
    category: Optional[str] = Field(default=None, max_length=100)


class GoalProgressIn(BaseModel):
    amount_cents: int


class InvestmentIn(BaseModel):
    name: str = Field(..., min_length=1, max_length=120)
    type: str = Field(..., min_length=1, max_length=60)
    initial_cents: int = Field(..., ge=0)
    current_cents: int = Field(..., ge=0)
    date: date


class InvestmentUpdate(BaseModel):
    name: Optional[str] = Field(default=None, min_length=1, max_length=120)
    type: Optional[str] = Field(default=None, min_length=1, max_length=60)
    initial_cents: Optional[int] = Field(default=None, ge=0)
    current_cents: Optional[int] = Field(default=None, ge=0)
    date: Optional[dt.date] = None


class ReminderIn(BaseModel):
    description: str = Field(..., min_length=1, max_length=200)
    amount_cents: int = Field(default=0, ge=0)
    due_date: date
    kind: Optional[str] = Field(default=None, max_length=40)


class ReminderUpdate(BaseModel):
    description: Optional[str] = Field(default=None, min_length=1, max_length=200)
    amount_cents: Optional[int] = Field(default=None, ge=0)
    due_date: Optional[date] = None
    kind: Optional[str] = Field(default=None, max_length=40)


class NotificationIn(BaseModel):
    title: str = Field(..., min_length=1, max_length=120)
    message: str = Field(..., min_length=1)
    severity: Severity = Severity.info


class SettingsUpdate(BaseModel):
    currency: Optional[CurrencyCode] = None
    language: Optional[str] = Field(default=None, min_length=2, max_length=10)
    theme: Optional[Theme] = None
    notifications_enabled: Optional[bool] = None


class CurrencyConversionIn(BaseModel):
    amount: float = Field(..., ge=0)
    from_currency: CurrencyCode
    to_currency: CurrencyCode


class CompoundInterestIn(BaseModel):
    principal: float = Field(..., ge=0)
    rate_pct: float
    periods: int = Field(..., ge=0, le=1200)
    contribution: float = 0


class InstallmentIn(BaseModel):
    total: float = Field(..., ge=0)
    count: int = Field(..., gt=0, le=600)
    rate_pct: float = Field(default=0, ge=0)


# Records mirror stored rows. They are the API output shape and the element
# shape of every collection in the backup envelope.


class _Record(BaseModel):
    model_config = ConfigDict(from_attributes=True, extra="ignore")


class TransactionRecord(_Record):
    id: Optional[str] = None
    type: TransactionType
    description: str
    category: str
    amount_cents: int = Field(..., ge=0)
    date: date
    payment_method: PaymentMethod = PaymentMethod.cash
    card_id: Optional[str] = None
    tags: list[str] = Field(default_factory=list)
    notes: Optional[str] = None
    recurring: bool = False
    created_at: Optional[datetime] = None


class CardRecord(_Record):
    id: Optional[str] = None
    name: str
    limit_cents: int = Field(..., gt=0)
    limit_used_cents: int = Field(default=0, ge=0)
    available_limit_cents: Optional[int] = None
    brand: Optional[str] = None
    color: Optional[str] = None
    closing_day: Optional[int] = Field(default=None, ge=1, le=31)
    due_day: Optional[int] = Field(default=None, ge=1, le=31)
    created_at: Optional[datetime] = None


class GoalRecord(_Record):
    id: Optional[str] = None
    type: GoalType
    name: str
    target_cents: int = Field(..., ge=0)
    current_cents: int = 0
    deadline: Optional[date] = None
    category: Optional[str] = None
    created_at: Optional[datetime] = None


class InvestmentRecord(_Record):
    id: Optional[str] = None
    name: str
    type: str
    initial_cents: int = Field(..., ge=0)
    current_cents: int = Field(..., ge=0)
    date: date
    created_at: Optional[datetime] = None


class ReminderRecord(_Record):
    id: Optional[str] = None
    description: str
    amount_cents: int = 0
    due_date: date
    kind: Optional[str] = None
    created_at: Optional[datetime] = None


class NotificationRecord(_Record):
    id: Optional[str] = None
    title: str
    message: str
    severity: Severity = Severity.info
    read: bool = False
    created_at: Optional[datetime] = None


class SettingsRecord(_Record):
    currency: CurrencyCode = CurrencyCode.eur
    language: str = "pt-BR"
    theme: Theme = Theme.auto
    notifications_enabled: bool = True


class BackupEnvelope(BaseModel):
    model_config = ConfigDict(extra="ignore")

    transactions: Optional[list[TransactionRecord]] = None
    cards: Optional[list[CardRecord]] = None
    goals: Optional[list[GoalRecord]] = None
    investments: Optional[list[InvestmentRecord]] = None
    settings: Optional[SettingsRecord] = None
    notifications: Optional[list[NotificationRecord]] = None
    reminders: Optional[list[ReminderRecord]] = None


class SyncOnlineIn(BaseModel):
    online: bool
