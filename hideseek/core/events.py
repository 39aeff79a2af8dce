from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Literal

logger = logging.getLogger(__name__)

StoreName = Literal["questions", "cards", "game"]


@dataclass(frozen=True, slots=True)
class StoreEvent:
    """Emitted after a store mutation has been applied and persisted."""

    store: StoreName
    action: str
    ts: datetime

    @staticmethod
    def now(*, store: StoreName, action: str, ts: datetime | None = None) -> "StoreEvent":
        return StoreEvent(store=store, action=action, ts=ts or datetime.now(timezone.utc))


Listener = Callable[[StoreEvent], None]


class EventBus:
    """In-process fan-out of store events to subscribers."""

    def __init__(self) -> None:
        self._listeners: list[Listener] = []

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def publish(self, event: StoreEvent) -> None:
        # Copy: a listener may unsubscribe while we iterate.
        for listener in list(self._listeners):
            try:
                listener(event)
            except Exception:
                logger.exception("Store listener failed for %s.%s", event.store, event.action)
