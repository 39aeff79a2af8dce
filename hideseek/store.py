from __future__ import annotations

import logging
from collections.abc import Callable
from datetime import UTC, datetime
from typing import Generic, TypeVar
from uuid import uuid4

from pydantic import BaseModel

from hideseek.actions import ActionResult
from hideseek.core.events import EventBus, Listener, StoreEvent, StoreName
from hideseek.errors import RuleViolation
from hideseek.persistence import PersistenceGateway
from hideseek.serialization import StateCodec

logger = logging.getLogger(__name__)

StateT = TypeVar("StateT", bound=BaseModel)

Clock = Callable[[], datetime]
IdFactory = Callable[[], str]


def _now() -> datetime:
    return datetime.now(tz=UTC)


def new_id() -> str:
    return uuid4().hex


class PersistentStore(Generic[StateT]):
    """State holder that writes through to a PersistenceGateway.

    Mutations run against a deep copy of the state; the copy only replaces the
    live state when the mutation finishes without a RuleViolation, so a failed
    operation never leaves partial changes behind. Every committed mutation is
    saved, then announced to subscribers.
    """

    store_name: StoreName
    codec: StateCodec[StateT]

    def __init__(
        self,
        *,
        persistence: PersistenceGateway,
        clock: Clock | None = None,
        bus: EventBus | None = None,
    ) -> None:
        self._persistence = persistence
        self._clock = clock or _now
        self._bus = bus or EventBus()
        self._state = self._initial_state()

    def _initial_state(self) -> StateT:
        raise NotImplementedError

    @property
    def state(self) -> StateT:
        # Callers get a copy; mutation only goes through the store's operations.
        return self._state.model_copy(deep=True)

    def now(self) -> datetime:
        return self._clock()

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        return self._bus.subscribe(listener)

    def persist(self) -> None:
        self._persistence.save(self.store_name, self.codec.dump(self._state))

    def rehydrate(self) -> None:
        loaded = self.codec.load(self._persistence.load(self.store_name))
        self._state = loaded if loaded is not None else self._initial_state()

    def _commit(self, action: str) -> None:
        self.persist()
        logger.debug("%s.%s applied", self.store_name, action)
        self._bus.publish(StoreEvent.now(store=self.store_name, action=action, ts=self.now()))

    def _apply(self, action: str, mutate: Callable[[StateT], ActionResult | None]) -> ActionResult:
        draft = self._state.model_copy(deep=True)
        try:
            result = mutate(draft)
        except RuleViolation as e:
            logger.info("%s.%s rejected: %s", self.store_name, action, e)
            return ActionResult.fail(str(e))

        self._state = draft
        self._commit(action)
        return result if result is not None else ActionResult.ok()

    def _reset_state(self, action: str = "reset") -> None:
        self._state = self._initial_state()
        self._commit(action)
