from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from datetime import date
from decimal import Decimal
from typing import Optional

from pydantic import ValidationError
from rapidfuzz.distance import Levenshtein
from sqlalchemy import delete, func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

import aggregation
from models import (
    AppSettings,
    Card,
    Goal,
    GoalType,
    Investment,
    Notification,
    PaymentMethod,
    Reminder,
    Severity,
    Transaction,
    TransactionType,
    utcnow,
)
from periods import Period, add_months, local_midnight_utc, local_today, month_period
from reconciler import (
    Direction,
    apply_transaction_effect,
    is_credit_expense,
    recompute_available,
)
from schemas import (
    BackupEnvelope,
    CardIn,
    CardRecord,
    CardUpdate,
    GoalIn,
    GoalRecord,
    GoalUpdate,
    InvestmentIn,
    InvestmentRecord,
    InvestmentUpdate,
    NotificationIn,
    NotificationRecord,
    ReminderIn,
    ReminderRecord,
    ReminderUpdate,
    SettingsRecord,
    SettingsUpdate,
    TransactionIn,
    TransactionRecord,
    TransactionUpdate,
)

logger = logging.getLogger(__name__)

NOTIFICATION_CAP = 50
REMINDER_WINDOW_DAYS = 3
CARD_ALERT_THRESHOLD_PCT = 80
BUDGET_WARNING_PCT = 80

DEFAULT_CATEGORIES: dict[TransactionType, list[str]] = {
    TransactionType.expense: [
        "Alimentação",
        "Transporte",
        "Moradia",
        "Saúde",
        "Educação",
        "Lazer",
        "Compras",
        "Contas",
        "Academia",
        "Streaming",
        "Restaurantes",
        "Viagens",
        "Pets",
        "Outros",
    ],
    TransactionType.income: [
        "Salário",
        "Freelance",
        "Investimentos",
        "Bônus",
        "Presente",
        "Outros",
    ],
}

COLLECTION_KEYS = (
    "transactions",
    "cards",
    "goals",
    "investments",
    "settings",
    "notifications",
    "reminders",
)


class RecordNotFound(ValueError):
    pass


class RecordInvalid(ValueError):
    pass


class StorageFailure(RuntimeError):
    pass


class SyncFailure(RuntimeError):
    pass


def _commit(session: Session, action: str) -> None:
    try:
        session.commit()
    except SQLAlchemyError as exc:
        session.rollback()
        logger.exception(f"storage_failure: action={action}")
        raise StorageFailure(f"Could not {action}") from exc


def default_categories(
    txn_type: Optional[TransactionType] = None,
) -> dict[str, list[str]] | list[str]:
    if txn_type is not None:
        return list(DEFAULT_CATEGORIES[txn_type])
    return {t.value: list(names) for t, names in DEFAULT_CATEGORIES.items()}


def resolve_category(name: str, txn_type: TransactionType) -> str:
    """Use the default spelling when ``name`` matches one ignoring case."""
    raw = name.strip()
    lowered = raw.casefold()
    for candidate in DEFAULT_CATEGORIES[txn_type]:
        if candidate.casefold() == lowered:
            return candidate
    return raw


def suggest_categories(
    query: str, txn_type: TransactionType, limit: int = 3
) -> list[str]:
    lowered = query.strip().casefold()
    if not lowered:
        return default_categories(txn_type)[:limit]
    ranked = sorted(
        DEFAULT_CATEGORIES[txn_type],
        key=lambda c: (
            0 if c.casefold().startswith(lowered) else 1,
            int(Levenshtein.distance(lowered, c.casefold()[: len(lowered)])),
            int(Levenshtein.distance(lowered, c.casefold())),
        ),
    )
    return ranked[:limit]


def _clean_tags(tags: list[str]) -> list[str]:
    seen: set[str] = set()
    out: list[str] = []
    for tag in tags:
        name = tag.strip()
        if not name or name.lower() in seen:
            continue
        seen.add(name.lower())
        out.append(name)
    return out


@dataclass
class TransactionFilters:
    type: Optional[TransactionType] = None
    category: Optional[str] = None
    start: Optional[date] = None
    end: Optional[date] = None
    query: Optional[str] = None

    @classmethod
    def for_period(cls, period: Period, **kwargs) -> "TransactionFilters":
        return cls(start=period.start, end=period.end, **kwargs)


class TransactionService:
    _NULLABLE_FIELDS = {"card_id", "notes"}

    def __init__(self, session: Session) -> None:
        self.session = session

    def _card(self, card_id: Optional[str]) -> Optional[Card]:
        if not card_id:
            return None
        return self.session.get(Card, card_id)

    def _validate_card_reference(
        self, payment_method: PaymentMethod, card_id: Optional[str]
    ) -> None:
        if payment_method != PaymentMethod.credit:
            return
        if not card_id:
            raise RecordInvalid("Credit transactions require a card")
        if self.session.get(Card, card_id) is None:
            raise RecordInvalid("Card not found")

    def create(self, data: TransactionIn) -> Transaction:
        self._validate_card_reference(data.payment_method, data.card_id)
        txn = Transaction(
            type=data.type,
            description=data.description.strip(),
            category=resolve_category(data.category, data.type),
            amount_cents=data.amount_cents,
            date=data.date,
            payment_method=data.payment_method,
            card_id=data.card_id if data.payment_method == PaymentMethod.credit else None,
            tags=_clean_tags(data.tags),
            notes=data.notes,
            recurring=data.recurring,
        )
        self.session.add(txn)

        if is_credit_expense(txn):
            apply_transaction_effect(
                self._card(txn.card_id), txn.amount_cents, Direction.apply
            )

        if txn.recurring:
            self.session.add(
                Reminder(
                    description=f"Recurring payment: {txn.description}",
                    amount_cents=txn.amount_cents,
                    due_date=add_months(txn.date, 1),
                    kind="recurring",
                )
            )

        _commit(self.session, "create transaction")
        self.session.refresh(txn)
        logger.info(
            f"transaction_created: id={txn.id} type={txn.type.value} "
            f"method={txn.payment_method.value} amount_cents={txn.amount_cents}"
        )
        return txn

    def get(self, transaction_id: str, *, include_deleted: bool = False) -> Transaction:
        txn = self.session.get(Transaction, transaction_id)
        if txn is None or (txn.deleted_at is not None and not include_deleted):
            raise RecordNotFound("Transaction not found")
        return txn

    def update(self, transaction_id: str, data: TransactionUpdate) -> Transaction:
        txn = self.get(transaction_id)
        changes = {
            field: value
            for field, value in data.model_dump(exclude_unset=True).items()
            if value is not None or field in self._NULLABLE_FIELDS
        }

        new_method = changes.get("payment_method", txn.payment_method)
        new_card_id = changes["card_id"] if "card_id" in changes else txn.card_id
        if new_method != PaymentMethod.credit:
            new_card_id = None
        if "payment_method" in changes or "card_id" in changes:
            self._validate_card_reference(new_method, new_card_id)

        was_credit_expense = is_credit_expense(txn)
        old_card_id = txn.card_id
        old_amount = txn.amount_cents

        for field, value in changes.items():
            if field == "card_id":
                continue
            setattr(txn, field, value)
        txn.card_id = new_card_id
        if "category" in changes or "type" in changes:
            txn.category = resolve_category(txn.category, txn.type)
        if "description" in changes:
            txn.description = txn.description.strip()
        if "tags" in changes:
            txn.tags = _clean_tags(txn.tags)

        # the old effect is fully reversed before the new one is applied,
        # even when both point at the same card
        if was_credit_expense:
            apply_transaction_effect(
                self._card(old_card_id), old_amount, Direction.reverse
            )
        if is_credit_expense(txn):
            apply_transaction_effect(
                self._card(txn.card_id), txn.amount_cents, Direction.apply
            )

        _commit(self.session, "update transaction")
        self.session.refresh(txn)
        logger.info(f"transaction_updated: id={txn.id} fields={sorted(changes)}")
        return txn

    def delete(self, transaction_id: str) -> bool:
        txn = self.session.get(Transaction, transaction_id)
        if txn is None or txn.deleted_at is not None:
            logger.info(f"transaction_delete_noop: id={transaction_id}")
            return False
        if is_credit_expense(txn):
            apply_transaction_effect(
                self._card(txn.card_id), txn.amount_cents, Direction.reverse
            )
        txn.deleted_at = utcnow()
        _commit(self.session, "delete transaction")
        logger.info(f"transaction_deleted: id={transaction_id}")
        return True

    def restore(self, transaction_id: str) -> Transaction:
        txn = self.get(transaction_id, include_deleted=True)
        if txn.deleted_at is None:
            return txn
        txn.deleted_at = None
        if is_credit_expense(txn):
            apply_transaction_effect(
                self._card(txn.card_id), txn.amount_cents, Direction.apply
            )
        _commit(self.session, "restore transaction")
        self.session.refresh(txn)
        return txn

    def list(
        self, filters: Optional[TransactionFilters] = None, limit: Optional[int] = None
    ) -> list[Transaction]:
        filters = filters or TransactionFilters()
        stmt = select(Transaction).where(Transaction.deleted_at.is_(None))
        if filters.type:
            stmt = stmt.where(Transaction.type == filters.type)
        if filters.category:
            stmt = stmt.where(Transaction.category == filters.category)
        if filters.start:
            stmt = stmt.where(Transaction.date >= filters.start)
        if filters.end:
            stmt = stmt.where(Transaction.date <= filters.end)
        stmt = stmt.order_by(Transaction.date.desc(), Transaction.created_at.desc())
        if limit is not None and not filters.query:
            stmt = stmt.limit(limit)
        try:
            items = list(self.session.scalars(stmt).all())
        except SQLAlchemyError:
            logger.exception("storage_failure: action=list transactions")
            return []

        if filters.query:
            # casefold in Python so accented text matches too
            needle = filters.query.casefold()
            items = [
                t
                for t in items
                if needle in (t.description or "").casefold()
                or needle in (t.notes or "").casefold()
            ]
            if limit is not None:
                items = items[:limit]
        return items

    def recent(self, limit: int = 10) -> list[Transaction]:
        return self.list(limit=limit)

    def deleted(self, limit: int = 200) -> list[Transaction]:
        stmt = (
            select(Transaction)
            .where(Transaction.deleted_at.isnot(None))
            .order_by(Transaction.deleted_at.desc())
            .limit(limit)
        )
        return list(self.session.scalars(stmt).all())


class CardService:
    def __init__(self, session: Session) -> None:
        self.session = session

    def list_all(self) -> list[Card]:
        try:
            return list(
                self.session.scalars(select(Card).order_by(Card.created_at)).all()
            )
        except SQLAlchemyError:
            logger.exception("storage_failure: action=list cards")
            return []

    def get(self, card_id: str) -> Card:
        card = self.session.get(Card, card_id)
        if card is None:
            raise RecordNotFound("Card not found")
        return card

    def create(self, data: CardIn) -> Card:
        card = Card(
            name=data.name.strip(),
            limit_cents=data.limit_cents,
            limit_used_cents=0,
            available_limit_cents=data.limit_cents,
            brand=data.brand,
            color=data.color,
            closing_day=data.closing_day,
            due_day=data.due_day,
        )
        self.session.add(card)
        _commit(self.session, "create card")
        self.session.refresh(card)
        return card

    def update(self, card_id: str, data: CardUpdate) -> Card:
        card = self.get(card_id)
        for field, value in data.model_dump(exclude_unset=True).items():
            if value is None and field in {"name", "limit_cents"}:
                continue
            setattr(card, field, value)
        recompute_available(card)
        _commit(self.session, "update card")
        self.session.refresh(card)
        return card

    def delete(self, card_id: str) -> bool:
        card = self.session.get(Card, card_id)
        if card is None:
            return False
        referencing = self.session.execute(
            select(func.count(Transaction.id)).where(
                Transaction.card_id == card_id, Transaction.deleted_at.is_(None)
            )
        ).scalar_one()
        if referencing:
            logger.warning(
                f"card_deleted_with_references: id={card_id} transactions={referencing}"
            )
        self.session.delete(card)
        _commit(self.session, "delete card")
        return True

    @staticmethod
    def usage_pct(card: Card) -> Decimal:
        if not card.limit_cents:
            return Decimal(0)
        return Decimal(card.limit_used_cents) / Decimal(card.limit_cents) * 100


class GoalService:
    def __init__(self, session: Session) -> None:
        self.session = session

    def list(self, goal_type: Optional[GoalType] = None) -> list[Goal]:
        stmt = select(Goal).order_by(Goal.created_at)
        if goal_type:
            stmt = stmt.where(Goal.type == goal_type)
        try:
            return list(self.session.scalars(stmt).all())
        except SQLAlchemyError:
            logger.exception("storage_failure: action=list goals")
            return []

    def get(self, goal_id: str) -> Goal:
        goal = self.session.get(Goal, goal_id)
        if goal is None:
            raise RecordNotFound("Goal not found")
        return goal

    def create(self, data: GoalIn) -> Goal:
        category = (data.category or "").strip() or None
        if data.type == GoalType.budget and not category:
            raise RecordInvalid("Budgets require a category")
        goal = Goal(
            type=data.type,
            name=data.name.strip(),
            target_cents=data.target_cents,
            current_cents=data.current_cents if data.type == GoalType.savings else 0,
            deadline=data.deadline,
            category=category,
        )
        self.session.add(goal)
        _commit(self.session, "create goal")
        self.session.refresh(goal)
        return goal

    def update(self, goal_id: str, data: GoalUpdate) -> Goal:
        goal = self.get(goal_id)
        changes = data.model_dump(exclude_unset=True)
        if "category" in changes:
            changes["category"] = (changes["category"] or "").strip() or None
            if goal.type == GoalType.budget and not changes["category"]:
                raise RecordInvalid("Budgets require a category")
        for field, value in changes.items():
            if value is None and field in {"name", "target_cents"}:
                continue
            setattr(goal, field, value)
        _commit(self.session, "update goal")
        self.session.refresh(goal)
        return goal

    def delete(self, goal_id: str) -> bool:
        goal = self.session.get(Goal, goal_id)
        if goal is None:
            return False
        self.session.delete(goal)
        _commit(self.session, "delete goal")
        return True

    def add_progress(self, goal_id: str, amount_cents: int) -> Goal:
        goal = self.get(goal_id)
        if goal.type != GoalType.savings:
            raise RecordInvalid("Progress can only be added to savings goals")
        goal.current_cents = max(0, goal.current_cents + amount_cents)
        _commit(self.session, "update goal progress")
        self.session.refresh(goal)
        return goal

    def budget_spent(self, goal: Goal, today: Optional[date] = None) -> int:
        today = today or local_today()
        period = month_period(today.year, today.month)
        txns = TransactionService(self.session).list(
            TransactionFilters.for_period(
                period, type=TransactionType.expense, category=goal.category
            )
        )
        return sum(t.amount_cents for t in txns)

    def status(self, goal: Goal, today: Optional[date] = None) -> dict[str, object]:
        if goal.type == GoalType.budget:
            current = self.budget_spent(goal, today)
        else:
            current = goal.current_cents
        if goal.target_cents:
            progress = Decimal(current) / Decimal(goal.target_cents) * 100
        else:
            progress = Decimal(0)

        if goal.type == GoalType.budget:
            if progress > 100:
                status = "danger"
            elif progress > BUDGET_WARNING_PCT:
                status = "warning"
            else:
                status = "success"
        else:
            status = "success" if progress >= 100 else "in_progress"

        return {
            "id": goal.id,
            "type": goal.type.value,
            "name": goal.name,
            "category": goal.category,
            "target_cents": goal.target_cents,
            "current_cents": current,
            "remaining_cents": goal.target_cents - current,
            "progress_pct": progress,
            "status": status,
            "deadline": goal.deadline,
        }


class InvestmentService:
    def __init__(self, session: Session) -> None:
        self.session = session

    def list_all(self) -> list[Investment]:
        try:
            return list(
                self.session.scalars(
                    select(Investment).order_by(Investment.date.desc())
                ).all()
            )
        except SQLAlchemyError:
            logger.exception("storage_failure: action=list investments")
            return []

    def get(self, investment_id: str) -> Investment:
        inv = self.session.get(Investment, investment_id)
        if inv is None:
            raise RecordNotFound("Investment not found")
        return inv

    def create(self, data: InvestmentIn) -> Investment:
        inv = Investment(**data.model_dump())
        self.session.add(inv)
        _commit(self.session, "create investment")
        self.session.refresh(inv)
        return inv

    def update(self, investment_id: str, data: InvestmentUpdate) -> Investment:
        inv = self.get(investment_id)
        for field, value in data.model_dump(exclude_unset=True).items():
            if value is None:
                continue
            setattr(inv, field, value)
        _commit(self.session, "update investment")
        self.session.refresh(inv)
        return inv

    def delete(self, investment_id: str) -> bool:
        inv = self.session.get(Investment, investment_id)
        if inv is None:
            return False
        self.session.delete(inv)
        _commit(self.session, "delete investment")
        return True

    def portfolio(self) -> dict[str, object]:
        investments = self.list_all()
        invested = sum(i.initial_cents for i in investments)
        current = sum(i.current_cents for i in investments)
        gain = current - invested
        return_pct = (
            Decimal(gain) / Decimal(invested) * 100 if invested > 0 else Decimal(0)
        )
        return {
            "count": len(investments),
            "invested_cents": invested,
            "current_cents": current,
            "return_cents": gain,
            "return_pct": return_pct,
        }


class ReminderService:
    def __init__(self, session: Session) -> None:
        self.session = session

    def list_all(self) -> list[Reminder]:
        try:
            return list(
                self.session.scalars(select(Reminder).order_by(Reminder.due_date)).all()
            )
        except SQLAlchemyError:
            logger.exception("storage_failure: action=list reminders")
            return []

    def get(self, reminder_id: str) -> Reminder:
        reminder = self.session.get(Reminder, reminder_id)
        if reminder is None:
            raise RecordNotFound("Reminder not found")
        return reminder

    def create(self, data: ReminderIn) -> Reminder:
        reminder = Reminder(**data.model_dump())
        self.session.add(reminder)
        _commit(self.session, "create reminder")
        self.session.refresh(reminder)
        return reminder

    def update(self, reminder_id: str, data: ReminderUpdate) -> Reminder:
        reminder = self.get(reminder_id)
        for field, value in data.model_dump(exclude_unset=True).items():
            if value is None and field != "kind":
                continue
            setattr(reminder, field, value)
        _commit(self.session, "update reminder")
        self.session.refresh(reminder)
        return reminder

    def delete(self, reminder_id: str) -> bool:
        reminder = self.session.get(Reminder, reminder_id)
        if reminder is None:
            return False
        self.session.delete(reminder)
        _commit(self.session, "delete reminder")
        return True

    def upcoming(self, today: Optional[date] = None, limit: int = 5) -> list[Reminder]:
        today = today or local_today()
        stmt = (
            select(Reminder)
            .where(Reminder.due_date >= today)
            .order_by(Reminder.due_date)
            .limit(limit)
        )
        return list(self.session.scalars(stmt).all())


class NotificationService:
    def __init__(self, session: Session) -> None:
        self.session = session

    def list(self, unread_only: bool = False) -> list[Notification]:
        stmt = select(Notification).order_by(Notification.created_at.desc())
        if unread_only:
            stmt = stmt.where(Notification.read.is_(False))
        try:
            return list(self.session.scalars(stmt).all())
        except SQLAlchemyError:
            logger.exception("storage_failure: action=list notifications")
            return []

    def add(self, data: NotificationIn) -> Notification:
        notification = Notification(
            title=data.title, message=data.message, severity=data.severity
        )
        self.session.add(notification)
        self.session.flush()

        # the new row always survives; the oldest beyond the cap go
        overflow = self.session.scalars(
            select(Notification.id)
            .where(Notification.id != notification.id)
            .order_by(Notification.created_at.desc())
            .offset(NOTIFICATION_CAP - 1)
        ).all()
        if overflow:
            self.session.execute(
                delete(Notification).where(Notification.id.in_(overflow))
            )
        _commit(self.session, "add notification")
        self.session.refresh(notification)
        return notification

    def mark_read(self, notification_id: str) -> Notification:
        notification = self.session.get(Notification, notification_id)
        if notification is None:
            raise RecordNotFound("Notification not found")
        notification.read = True
        _commit(self.session, "mark notification read")
        return notification

    def delete(self, notification_id: str) -> bool:
        notification = self.session.get(Notification, notification_id)
        if notification is None:
            return False
        self.session.delete(notification)
        _commit(self.session, "delete notification")
        return True

    def clear(self) -> int:
        result = self.session.execute(delete(Notification))
        _commit(self.session, "clear notifications")
        return int(result.rowcount or 0)

    def unread_count(self) -> int:
        stmt = select(func.count(Notification.id)).where(Notification.read.is_(False))
        return int(self.session.execute(stmt).scalar_one() or 0)


class SettingsService:
    def __init__(self, session: Session) -> None:
        self.session = session

    def get(self) -> AppSettings:
        settings = self.session.get(AppSettings, "default")
        if settings is None:
            settings = AppSettings(id="default")
            self.session.add(settings)
            _commit(self.session, "create default settings")
            self.session.refresh(settings)
        return settings

    def update(self, data: SettingsUpdate) -> AppSettings:
        settings = self.get()
        for field, value in data.model_dump(exclude_unset=True).items():
            if value is None:
                continue
            setattr(settings, field, value)
        _commit(self.session, "update settings")
        self.session.refresh(settings)
        return settings


class AlertService:
    def __init__(self, session: Session) -> None:
        self.session = session
        self.notifications = NotificationService(session)

    def run_checks(self, today: Optional[date] = None) -> int:
        today = today or local_today()
        if not SettingsService(self.session).get().notifications_enabled:
            return 0

        since = local_midnight_utc(today)
        todays_messages = [
            n.message for n in self.notifications.list() if n.created_at >= since
        ]

        def already_sent(prefix: str) -> bool:
            return any(message.startswith(prefix) for message in todays_messages)

        created = 0
        for reminder in ReminderService(self.session).list_all():
            days = (reminder.due_date - today).days
            if days < 0 or days > REMINDER_WINDOW_DAYS:
                continue
            if already_sent(f"{reminder.description} - due in "):
                continue
            message = (
                f"{reminder.description} - due in {days} day{'s' if days != 1 else ''}"
            )
            self.notifications.add(
                NotificationIn(title="Attention", message=message, severity=Severity.warning)
            )
            todays_messages.append(message)
            created += 1

        cards = CardService(self.session)
        for card in cards.list_all():
            pct = cards.usage_pct(card)
            if pct < CARD_ALERT_THRESHOLD_PCT:
                continue
            if already_sent(f"Card {card.name} is at "):
                continue
            message = f"Card {card.name} is at {pct:.0f}% of its limit"
            self.notifications.add(
                NotificationIn(title="Attention", message=message, severity=Severity.warning)
            )
            todays_messages.append(message)
            created += 1

        if created:
            logger.info(f"alerts_created: count={created}")
        return created


class MetricsService:
    def __init__(self, session: Session, today: Optional[date] = None) -> None:
        self.session = session
        self.today = today or local_today()
        self.transactions = TransactionService(session)

    def summary(self, filters: Optional[TransactionFilters] = None) -> dict[str, int]:
        return aggregation.financial_summary(self.transactions.list(filters))

    def expenses_by_category(
        self, filters: Optional[TransactionFilters] = None
    ) -> dict[str, int]:
        filters = replace(filters or TransactionFilters(), type=TransactionType.expense)
        return aggregation.expenses_by_category(self.transactions.list(filters))

    def monthly_evolution(self, year: Optional[int] = None) -> list[dict[str, int]]:
        year = year or self.today.year
        period = Period(str(year), date(year, 1, 1), date(year, 12, 31))
        txns = self.transactions.list(TransactionFilters.for_period(period))
        return aggregation.monthly_evolution(txns, year)

    def advanced_statistics(self, year: Optional[int] = None) -> dict[str, object]:
        return aggregation.advanced_statistics(
            self.transactions.list(), self.monthly_evolution(year)
        )

    def forecast(self, horizon_months: int = 6) -> list[dict[str, object]]:
        current_balance = self.summary()["balance_cents"]
        return aggregation.forecast(
            self.monthly_evolution(), current_balance, horizon_months
        )


_RECORDS = {
    "transactions": (Transaction, TransactionRecord),
    "cards": (Card, CardRecord),
    "goals": (Goal, GoalRecord),
    "investments": (Investment, InvestmentRecord),
    "notifications": (Notification, NotificationRecord),
    "reminders": (Reminder, ReminderRecord),
}


class BackupService:
    """Export and import of the whole-ledger JSON envelope.

    The envelope maps each collection key to its full snapshot. Importing
    replaces every key present in the payload wholesale; nothing is merged.
    """

    def __init__(self, session: Session) -> None:
        self.session = session

    def export_key(self, key: str) -> object:
        if key == "settings":
            settings = SettingsService(self.session).get()
            return SettingsRecord.model_validate(settings).model_dump(mode="json")
        if key == "transactions":
            rows = TransactionService(self.session).list()
        elif key in _RECORDS:
            model = _RECORDS[key][0]
            rows = self.session.scalars(select(model).order_by(model.created_at)).all()
        else:
            raise RecordInvalid(f"Unknown collection: {key}")
        record_cls = _RECORDS[key][1]
        return [record_cls.model_validate(row).model_dump(mode="json") for row in rows]

    def export(self) -> dict[str, object]:
        return {key: self.export_key(key) for key in COLLECTION_KEYS}

    def import_envelope(self, data: dict) -> list[str]:
        try:
            envelope = BackupEnvelope.model_validate(data)
        except ValidationError as exc:
            raise RecordInvalid(f"Invalid backup: {exc}") from exc

        replaced: list[str] = []
        try:
            for key in COLLECTION_KEYS:
                value = getattr(envelope, key)
                if value is None:
                    continue
                self._replace(key, value)
                replaced.append(key)
        except RecordInvalid:
            self.session.rollback()
            raise
        _commit(self.session, "import backup")
        logger.info(f"backup_imported: keys={replaced}")
        return replaced

    def _replace(self, key: str, value) -> None:
        if key == "settings":
            self.session.execute(delete(AppSettings))
            self.session.add(AppSettings(id="default", **value.model_dump()))
            return

        model, _ = _RECORDS[key]
        ids = [r.id for r in value if r.id]
        if len(ids) != len(set(ids)):
            raise RecordInvalid(f"Duplicate ids in {key}")

        self.session.execute(delete(model))
        for record in value:
            row = model(**record.model_dump(exclude_none=True))
            if isinstance(row, Card):
                recompute_available(row)
            self.session.add(row)

    def reset(self) -> None:
        for model, _ in _RECORDS.values():
            self.session.execute(delete(model))
        self.session.execute(delete(AppSettings))
        self.session.add(AppSettings(id="default"))
        _commit(self.session, "reset ledger")
        logger.info("ledger_reset")
