import logging
from datetime import datetime
from typing import Callable, Dict, List, NamedTuple

logger = logging.getLogger(__name__)

DATA_UPDATED = "DATA_UPDATED"


class Event(NamedTuple):
    name: str
    ts: str
    payload: dict


Handler = Callable[[Event], None]


class EventBus:
    def __init__(self) -> None:
        self._subscribers: Dict[str, List[Handler]] = {}

    def subscribe(self, name: str, handler: Handler) -> None:
        self._subscribers.setdefault(name, []).append(handler)

    def unsubscribe(self, name: str, handler: Handler) -> None:
        handlers = self._subscribers.get(name, [])
        if handler in handlers:
            handlers.remove(handler)

    def publish(self, name: str, payload: dict) -> int:
        handlers = list(self._subscribers.get(name, []))
        if not handlers:
            return 0
        event = Event(name=name, ts=datetime.now().isoformat(), payload=payload)
        for handler in handlers:
            try:
                handler(event)
            except Exception:
                logger.exception(f"event_handler_failed: event={name}")
        return len(handlers)
