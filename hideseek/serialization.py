from __future__ import annotations

import logging
from collections.abc import Callable, Mapping
from typing import Any, Generic, TypeVar

from pydantic import BaseModel, ValidationError

logger = logging.getLogger(__name__)

ModelT = TypeVar("ModelT", bound=BaseModel)

Migration = Callable[[dict[str, Any]], dict[str, Any]]


class StateCodec(Generic[ModelT]):
    """Schema-versioned (de)serializer for one store's persisted state.

    Persisted shape: {"schema_version": n, "state": {...}}. Datetimes are
    written as ISO-8601 strings and come back as aware datetimes.

    `migrations[v]` upgrades a raw state dict from version v to v + 1.
    """

    def __init__(
        self,
        model: type[ModelT],
        *,
        schema_version: int,
        migrations: Mapping[int, Migration] | None = None,
    ) -> None:
        self.model = model
        self.schema_version = schema_version
        self._migrations = dict(migrations or {})

    def dump(self, state: ModelT) -> dict[str, Any]:
        return {"schema_version": self.schema_version, "state": state.model_dump(mode="json")}

    def load(self, raw: Any) -> ModelT | None:
        if not isinstance(raw, dict):
            if raw is not None:
                logger.warning("Discarding %s: not an object", self.model.__name__)
            return None

        version = raw.get("schema_version")
        body = raw.get("state")
        if not isinstance(version, int) or not isinstance(body, dict):
            logger.warning("Discarding %s: missing schema envelope", self.model.__name__)
            return None

        if version > self.schema_version:
            logger.warning(
                "Discarding %s: schema_version %s is newer than supported %s",
                self.model.__name__,
                version,
                self.schema_version,
            )
            return None

        while version < self.schema_version:
            migrate = self._migrations.get(version)
            if migrate is None:
                logger.warning("Discarding %s: no migration from schema_version %s", self.model.__name__, version)
                return None
            body = migrate(body)
            version += 1

        try:
            return self.model.model_validate(body)
        except ValidationError as e:
            logger.warning("Discarding %s: %s", self.model.__name__, e.errors()[:3])
            return None
