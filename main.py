import logging
import tomllib
from decimal import ROUND_HALF_UP, Decimal
from typing import Optional

from fastapi import BackgroundTasks, Depends, FastAPI, HTTPException, Request
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from config import get_settings
from database import SessionLocal, session_scope
from events import DATA_UPDATED, EventBus
from models import GoalType, TransactionType
from periods import Period, resolve_period
from scheduler import SchedulerManager
from schemas import (
    CardIn,
    CardRecord,
    CardUpdate,
    CompoundInterestIn,
    CurrencyConversionIn,
    GoalIn,
    GoalProgressIn,
    GoalUpdate,
    InstallmentIn,
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
    SyncOnlineIn,
    TransactionIn,
    TransactionRecord,
    TransactionUpdate,
)
from services import (
    AlertService,
    BackupService,
    CardService,
    GoalService,
    InvestmentService,
    MetricsService,
    NotificationService,
    RecordNotFound,
    ReminderService,
    SettingsService,
    StorageFailure,
    TransactionFilters,
    TransactionService,
    default_categories,
    suggest_categories,
)
from sync import FirebaseRemoteStore, SyncManager
from tools import compound_interest, convert_currency, simulate_installments

logger = logging.getLogger(__name__)

app = FastAPI(title="FinanceHub")


def _load_app_version() -> str:
    try:
        with open("pyproject.toml", "rb") as f:
            data = tomllib.load(f)
    except (OSError, tomllib.TOMLDecodeError):
        return "unknown"
    return str(data.get("project", {}).get("version", "unknown"))


APP_VERSION = _load_app_version()

event_bus = EventBus()


def _build_sync_manager() -> Optional[SyncManager]:
    settings = get_settings()
    if not settings.sync_enabled:
        return None
    remote = FirebaseRemoteStore(
        settings.remote_url,
        settings.remote_user_id,
        timeout=settings.remote_timeout_secs,
    )
    return SyncManager(session_scope, remote, event_bus)


sync_manager = _build_sync_manager()
scheduler_manager = SchedulerManager(sync_manager)


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


@app.on_event("startup")
def startup_event():
    if sync_manager is not None:
        sync_manager.initialize(background=True)
    scheduler_manager.start()


@app.on_event("shutdown")
def shutdown_event():
    scheduler_manager.stop()


@app.exception_handler(StorageFailure)
async def storage_failure_handler(request: Request, exc: StorageFailure):
    return JSONResponse(status_code=503, content={"detail": str(exc)})


def changed(background_tasks: BackgroundTasks, key: str) -> None:
    event_bus.publish(DATA_UPDATED, {"key": key})
    if sync_manager is not None:
        background_tasks.add_task(sync_manager.push)


def cents(value: Decimal) -> int:
    return int(Decimal(value).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def pct(value: Decimal) -> float:
    return float(Decimal(value).quantize(Decimal("0.1"), rounding=ROUND_HALF_UP))


def dump(record_cls: type, obj) -> dict:
    return record_cls.model_validate(obj).model_dump(mode="json")


def period_from_request(request: Request) -> Period:
    period_slug = request.query_params.get("period")
    start = request.query_params.get("start")
    end = request.query_params.get("end")
    try:
        return resolve_period(period_slug, start, end)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc


def filters_from_request(request: Request) -> TransactionFilters:
    type_param = request.query_params.get("type")
    txn_type = None
    if type_param:
        try:
            txn_type = TransactionType(type_param)
        except ValueError:
            txn_type = None
    filters = TransactionFilters.for_period(
        period_from_request(request),
        type=txn_type,
        category=request.query_params.get("category") or None,
        query=request.query_params.get("q") or None,
    )
    return filters


def card_payload(card) -> dict:
    data = dump(CardRecord, card)
    data["usage_pct"] = pct(CardService.usage_pct(card))
    return data


def goal_payload(service: GoalService, goal) -> dict:
    data = service.status(goal)
    data["progress_pct"] = pct(data["progress_pct"])
    data["deadline"] = goal.deadline.isoformat() if goal.deadline else None
    return data


@app.get("/api/health")
def api_health():
    return {
        "status": "ok",
        "version": APP_VERSION,
        "sync": sync_manager is not None,
    }


# transactions


@app.get("/api/transactions")
def api_transactions(request: Request, db: Session = Depends(get_db)):
    filters = filters_from_request(request)
    limit = request.query_params.get("limit")
    try:
        limit_value = min(max(int(limit), 1), 500) if limit else None
    except ValueError as exc:
        raise HTTPException(status_code=400, detail="Invalid limit") from exc
    items = TransactionService(db).list(filters, limit=limit_value)
    return {"items": [dump(TransactionRecord, txn) for txn in items]}


@app.get("/api/transactions/deleted")
def api_deleted_transactions(db: Session = Depends(get_db)):
    items = TransactionService(db).deleted()
    return {"items": [dump(TransactionRecord, txn) for txn in items]}


@app.post("/api/transactions", status_code=201)
def api_create_transaction(
    data: TransactionIn,
    background_tasks: BackgroundTasks,
    db: Session = Depends(get_db),
):
    try:
        txn = TransactionService(db).create(data)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    changed(background_tasks, "transactions")
    return dump(TransactionRecord, txn)


@app.get("/api/transactions/{transaction_id}")
def api_get_transaction(transaction_id: str, db: Session = Depends(get_db)):
    try:
        txn = TransactionService(db).get(transaction_id)
    except RecordNotFound as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    return dump(TransactionRecord, txn)


@app.patch("/api/transactions/{transaction_id}")
def api_update_transaction(
    transaction_id: str,
    data: TransactionUpdate,
    background_tasks: BackgroundTasks,
    db: Session = Depends(get_db),
):
    try:
        txn = TransactionService(db).update(transaction_id, data)
    except RecordNotFound as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    changed(background_tasks, "transactions")
    return dump(TransactionRecord, txn)


@app.delete("/api/transactions/{transaction_id}")
def api_delete_transaction(
    transaction_id: str,
    background_tasks: BackgroundTasks,
    db: Session = Depends(get_db),
):
    deleted = TransactionService(db).delete(transaction_id)
    if deleted:
        changed(background_tasks, "transactions")
    return {"deleted": deleted}


@app.post("/api/transactions/{transaction_id}/restore")
def api_restore_transaction(
    transaction_id: str,
    background_tasks: BackgroundTasks,
    db: Session = Depends(get_db),
):
    try:
        txn = TransactionService(db).restore(transaction_id)
    except RecordNotFound as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    changed(background_tasks, "transactions")
    return dump(TransactionRecord, txn)


@app.get("/api/categories")
def api_categories(request: Request):
    type_param = request.query_params.get("type")
    if not type_param:
        return default_categories()
    try:
        txn_type = TransactionType(type_param)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail="Unknown type") from exc
    query = request.query_params.get("q")
    if query is not None:
        return suggest_categories(query, txn_type)
    return default_categories(txn_type)


# cards


@app.get("/api/cards")
def api_cards(db: Session = Depends(get_db)):
    return {"items": [card_payload(card) for card in CardService(db).list_all()]}


@app.post("/api/cards", status_code=201)
def api_create_card(
    data: CardIn, background_tasks: BackgroundTasks, db: Session = Depends(get_db)
):
    card = CardService(db).create(data)
    changed(background_tasks, "cards")
    return card_payload(card)


@app.get("/api/cards/{card_id}")
def api_get_card(card_id: str, db: Session = Depends(get_db)):
    try:
        card = CardService(db).get(card_id)
    except RecordNotFound as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    return card_payload(card)


@app.patch("/api/cards/{card_id}")
def api_update_card(
    card_id: str,
    data: CardUpdate,
    background_tasks: BackgroundTasks,
    db: Session = Depends(get_db),
):
    try:
        card = CardService(db).update(card_id, data)
    except RecordNotFound as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    changed(background_tasks, "cards")
    return card_payload(card)


@app.delete("/api/cards/{card_id}")
def api_delete_card(
    card_id: str, background_tasks: BackgroundTasks, db: Session = Depends(get_db)
):
    deleted = CardService(db).delete(card_id)
    if deleted:
        changed(background_tasks, "cards")
    return {"deleted": deleted}


# goals


@app.get("/api/goals")
def api_goals(request: Request, db: Session = Depends(get_db)):
    type_param = request.query_params.get("type")
    try:
        goal_type = GoalType(type_param) if type_param else None
    except ValueError as exc:
        raise HTTPException(status_code=400, detail="Unknown goal type") from exc
    service = GoalService(db)
    return {"items": [goal_payload(service, goal) for goal in service.list(goal_type)]}


@app.post("/api/goals", status_code=201)
def api_create_goal(
    data: GoalIn, background_tasks: BackgroundTasks, db: Session = Depends(get_db)
):
    service = GoalService(db)
    try:
        goal = service.create(data)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    changed(background_tasks, "goals")
    return goal_payload(service, goal)


@app.patch("/api/goals/{goal_id}")
def api_update_goal(
    goal_id: str,
    data: GoalUpdate,
    background_tasks: BackgroundTasks,
    db: Session = Depends(get_db),
):
    service = GoalService(db)
    try:
        goal = service.update(goal_id, data)
    except RecordNotFound as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    changed(background_tasks, "goals")
    return goal_payload(service, goal)


@app.post("/api/goals/{goal_id}/progress")
def api_goal_progress(
    goal_id: str,
    data: GoalProgressIn,
    background_tasks: BackgroundTasks,
    db: Session = Depends(get_db),
):
    service = GoalService(db)
    try:
        goal = service.add_progress(goal_id, data.amount_cents)
    except RecordNotFound as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    changed(background_tasks, "goals")
    return goal_payload(service, goal)


@app.delete("/api/goals/{goal_id}")
def api_delete_goal(
    goal_id: str, background_tasks: BackgroundTasks, db: Session = Depends(get_db)
):
    deleted = GoalService(db).delete(goal_id)
    if deleted:
        changed(background_tasks, "goals")
    return {"deleted": deleted}


# investments


@app.get("/api/investments")
def api_investments(db: Session = Depends(get_db)):
    service = InvestmentService(db)
    portfolio = service.portfolio()
    portfolio["return_pct"] = pct(portfolio["return_pct"])
    return {
        "items": [dump(InvestmentRecord, inv) for inv in service.list_all()],
        "portfolio": portfolio,
    }


@app.post("/api/investments", status_code=201)
def api_create_investment(
    data: InvestmentIn,
    background_tasks: BackgroundTasks,
    db: Session = Depends(get_db),
):
    inv = InvestmentService(db).create(data)
    changed(background_tasks, "investments")
    return dump(InvestmentRecord, inv)


@app.patch("/api/investments/{investment_id}")
def api_update_investment(
    investment_id: str,
    data: InvestmentUpdate,
    background_tasks: BackgroundTasks,
    db: Session = Depends(get_db),
):
    try:
        inv = InvestmentService(db).update(investment_id, data)
    except RecordNotFound as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    changed(background_tasks, "investments")
    return dump(InvestmentRecord, inv)


@app.delete("/api/investments/{investment_id}")
def api_delete_investment(
    investment_id: str,
    background_tasks: BackgroundTasks,
    db: Session = Depends(get_db),
):
    deleted = InvestmentService(db).delete(investment_id)
    if deleted:
        changed(background_tasks, "investments")
    return {"deleted": deleted}


# reminders


@app.get("/api/reminders")
def api_reminders(request: Request, db: Session = Depends(get_db)):
    service = ReminderService(db)
    if request.query_params.get("upcoming"):
        items = service.upcoming()
    else:
        items = service.list_all()
    return {"items": [dump(ReminderRecord, r) for r in items]}


@app.post("/api/reminders", status_code=201)
def api_create_reminder(
    data: ReminderIn, background_tasks: BackgroundTasks, db: Session = Depends(get_db)
):
    reminder = ReminderService(db).create(data)
    changed(background_tasks, "reminders")
    return dump(ReminderRecord, reminder)


@app.patch("/api/reminders/{reminder_id}")
def api_update_reminder(
    reminder_id: str,
    data: ReminderUpdate,
    background_tasks: BackgroundTasks,
    db: Session = Depends(get_db),
):
    try:
        reminder = ReminderService(db).update(reminder_id, data)
    except RecordNotFound as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    changed(background_tasks, "reminders")
    return dump(ReminderRecord, reminder)


@app.delete("/api/reminders/{reminder_id}")
def api_delete_reminder(
    reminder_id: str,
    background_tasks: BackgroundTasks,
    db: Session = Depends(get_db),
):
    deleted = ReminderService(db).delete(reminder_id)
    if deleted:
        changed(background_tasks, "reminders")
    return {"deleted": deleted}


# notifications


@app.get("/api/notifications")
def api_notifications(request: Request, db: Session = Depends(get_db)):
    service = NotificationService(db)
    unread_only = request.query_params.get("unread") in {"1", "true"}
    return {
        "items": [dump(NotificationRecord, n) for n in service.list(unread_only)],
        "unread": service.unread_count(),
    }


@app.post("/api/notifications", status_code=201)
def api_add_notification(
    data: NotificationIn,
    background_tasks: BackgroundTasks,
    db: Session = Depends(get_db),
):
    notification = NotificationService(db).add(data)
    changed(background_tasks, "notifications")
    return dump(NotificationRecord, notification)


@app.post("/api/notifications/{notification_id}/read")
def api_mark_notification_read(
    notification_id: str,
    background_tasks: BackgroundTasks,
    db: Session = Depends(get_db),
):
    try:
        notification = NotificationService(db).mark_read(notification_id)
    except RecordNotFound as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    changed(background_tasks, "notifications")
    return dump(NotificationRecord, notification)


@app.delete("/api/notifications/{notification_id}")
def api_delete_notification(
    notification_id: str,
    background_tasks: BackgroundTasks,
    db: Session = Depends(get_db),
):
    deleted = NotificationService(db).delete(notification_id)
    if deleted:
        changed(background_tasks, "notifications")
    return {"deleted": deleted}


@app.delete("/api/notifications")
def api_clear_notifications(
    background_tasks: BackgroundTasks, db: Session = Depends(get_db)
):
    removed = NotificationService(db).clear()
    changed(background_tasks, "notifications")
    return {"removed": removed}


@app.post("/api/alerts/run")
def api_run_alerts(background_tasks: BackgroundTasks, db: Session = Depends(get_db)):
    created = AlertService(db).run_checks()
    if created:
        changed(background_tasks, "notifications")
    return {"created": created}


# settings


@app.get("/api/settings")
def api_settings(db: Session = Depends(get_db)):
    return dump(SettingsRecord, SettingsService(db).get())


@app.patch("/api/settings")
def api_update_settings(
    data: SettingsUpdate,
    background_tasks: BackgroundTasks,
    db: Session = Depends(get_db),
):
    settings = SettingsService(db).update(data)
    changed(background_tasks, "settings")
    return dump(SettingsRecord, settings)


# metrics


@app.get("/api/summary")
def api_summary(request: Request, db: Session = Depends(get_db)):
    return MetricsService(db).summary(filters_from_request(request))


@app.get("/api/expenses-by-category")
def api_expenses_by_category(request: Request, db: Session = Depends(get_db)):
    totals = MetricsService(db).expenses_by_category(filters_from_request(request))
    return [
        {"category": category, "amount_cents": amount}
        for category, amount in totals.items()
    ]


@app.get("/api/monthly-evolution")
def api_monthly_evolution(year: Optional[int] = None, db: Session = Depends(get_db)):
    return MetricsService(db).monthly_evolution(year)


@app.get("/api/statistics")
def api_statistics(year: Optional[int] = None, db: Session = Depends(get_db)):
    stats = MetricsService(db).advanced_statistics(year)
    stats["avg_monthly_expense_cents"] = cents(stats["avg_monthly_expense_cents"])
    stats["savings_rate"] = pct(stats["savings_rate"])
    return stats


@app.get("/api/forecast")
def api_forecast(months: int = 6, db: Session = Depends(get_db)):
    if months < 1 or months > 24:
        raise HTTPException(status_code=400, detail="months must be between 1 and 24")
    return [
        {
            "month": point["month"],
            "predicted_balance_cents": cents(point["predicted_balance_cents"]),
            "predicted_income_cents": cents(point["predicted_income_cents"]),
            "predicted_expense_cents": cents(point["predicted_expense_cents"]),
        }
        for point in MetricsService(db).forecast(months)
    ]


# backup


@app.get("/api/export")
def api_export(db: Session = Depends(get_db)):
    return BackupService(db).export()


@app.post("/api/import")
def api_import(
    payload: dict, background_tasks: BackgroundTasks, db: Session = Depends(get_db)
):
    try:
        replaced = BackupService(db).import_envelope(payload)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    for key in replaced:
        changed(background_tasks, key)
    return {"replaced": replaced}


@app.post("/api/reset")
def api_reset(background_tasks: BackgroundTasks, db: Session = Depends(get_db)):
    BackupService(db).reset()
    changed(background_tasks, "all")
    return {"reset": True}


# tools


@app.post("/api/tools/convert")
def api_convert(data: CurrencyConversionIn):
    return convert_currency(data.amount, data.from_currency, data.to_currency)


@app.post("/api/tools/compound-interest")
def api_compound_interest(data: CompoundInterestIn):
    return compound_interest(
        data.principal, data.rate_pct, data.periods, data.contribution
    )


@app.post("/api/tools/installments")
def api_installments(data: InstallmentIn):
    try:
        return simulate_installments(data.total, data.count, data.rate_pct)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc


# sync


def _require_sync() -> SyncManager:
    if sync_manager is None:
        raise HTTPException(status_code=409, detail="Remote sync is not configured")
    return sync_manager


@app.get("/api/sync/status")
def api_sync_status():
    if sync_manager is None:
        return {"enabled": False, "online": False}
    return {"enabled": True, "online": sync_manager.is_online}


@app.post("/api/sync/pull")
def api_sync_pull():
    return {"ok": _require_sync().pull()}


@app.post("/api/sync/push")
def api_sync_push():
    return {"ok": _require_sync().push()}


@app.post("/api/sync/online")
def api_sync_online(data: SyncOnlineIn):
    manager = _require_sync()
    pushed = manager.set_online(data.online)
    return {"online": manager.is_online, "pushed": pushed}
