from datetime import datetime
from typing import Any, Callable, Dict, List, NamedTuple

import structlog

from networth.transforms import LedgerSnapshot

__all__ = ['LEDGER_REPLACED', 'Event', 'EventBus', 'LedgerStore']

logger = structlog.get_logger(__name__)

LEDGER_REPLACED = "LEDGER_REPLACED"


class Event(NamedTuple):
    name: str
    ts: str
    payload: dict


Handler = Callable[[Event, dict], Any]


class EventBus:
    def __init__(self):
        self._subscribers: Dict[str, List[Handler]] = {}

    def subscribe(self, name: str, handler: Handler) -> None:
        self._subscribers.setdefault(name, []).append(handler)

    def unsubscribe(self, name: str, handler: Handler) -> None:
        handlers = self._subscribers.get(name, [])
        if handler in handlers:
            handlers.remove(handler)

    def publish(self, name: str, payload: dict) -> List[Any]:
        handlers = list(self._subscribers.get(name, ()))
        if not handlers:
            return []
        event = Event(name=name, ts=datetime.now().isoformat(), payload=payload)
        return [handler(event, payload) for handler in handlers]


class LedgerStore:
    """Holds the current snapshot; every change is a whole replacement.

    Each replacement bumps the version and publishes LEDGER_REPLACED, so
    results computed from an older snapshot can be recognised as stale.
    """

    def __init__(self, snapshot: LedgerSnapshot, bus: EventBus | None = None):
        self.bus = bus or EventBus()
        self._snapshot = snapshot
        self._version = snapshot.version

    @property
    def snapshot(self) -> LedgerSnapshot:
        return self._snapshot

    @property
    def version(self) -> int:
        return self._version

    def replace(self, snapshot: LedgerSnapshot) -> LedgerSnapshot:
        self._version += 1
        self._snapshot = LedgerSnapshot.build(
            snapshot.currencies,
            snapshot.accounts,
            snapshot.categories,
            snapshot.transactions,
            snapshot.exchange_rates,
            self._version,
        )
        logger.info(
            "ledger_replaced",
            version=self._version,
            transactions=len(self._snapshot.transactions),
        )
        self.bus.publish(LEDGER_REPLACED, {"version": self._version})
        return self._snapshot

    def is_current(self, result) -> bool:
        """True when `result` (anything carrying a `version`) matches the store."""
        return getattr(result, "version", None) == self._version
