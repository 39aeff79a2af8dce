from __future__ import annotations

import os
from collections.abc import Generator
from datetime import UTC, datetime, timedelta
from pathlib import Path

import fakeredis
import pytest

from hideseek.api.models import ALL_SIZES, GameSize, Question, QuestionCategoryId
from hideseek.assets.registry import QuestionCatalog
from hideseek.persistence import RedisPersistence
from hideseek.timer import ManualScheduler


@pytest.fixture(scope="session", autouse=True)
def _load_dotenv_for_tests() -> None:
    """Load repo .env for local runs, but never in CI."""

    if os.environ.get("CI"):
        return

    env_path = Path(__file__).resolve().parents[1] / ".env"
    if env_path.exists():
        from dotenv import load_dotenv

        load_dotenv(dotenv_path=env_path, override=False)


class FakeClock:
    """Callable clock that only moves when told to."""

    def __init__(self, start: datetime | None = None) -> None:
        self.now = start or datetime(2024, 6, 1, 12, 0, tzinfo=UTC)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs: float) -> None:
        self.now = self.now + timedelta(**kwargs)


class CountingIds:
    def __init__(self, prefix: str = "id") -> None:
        self.prefix = prefix
        self.n = 0

    def __call__(self) -> str:
        self.n += 1
        return f"{self.prefix}-{self.n}"


@pytest.fixture()
def r() -> fakeredis.FakeRedis:
    return fakeredis.FakeRedis(decode_responses=True)


@pytest.fixture()
def persistence(r: fakeredis.FakeRedis) -> RedisPersistence:
    return RedisPersistence(r, prefix="test:")


@pytest.fixture()
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture()
def ids() -> CountingIds:
    return CountingIds()


@pytest.fixture()
def scheduler() -> ManualScheduler:
    return ManualScheduler()


@pytest.fixture()
def tiny_catalog() -> QuestionCatalog:
    """Two matching questions, one radar, one tentacle (medium/large only)."""

    return QuestionCatalog.from_questions(
        [
            Question(id="q1", category_id=QuestionCategoryId.matching, text="Same airport?"),
            Question(id="q2", category_id=QuestionCategoryId.matching, text="Same transit line?"),
            Question(id="r1", category_id=QuestionCategoryId.radar, text="Within 1 km?", available_in=ALL_SIZES),
            Question(
                id="t1",
                category_id=QuestionCategoryId.tentacle,
                text="Which museum are you closest to?",
                available_in=(GameSize.medium, GameSize.large),
            ),
        ]
    )


@pytest.fixture()
def client(r: fakeredis.FakeRedis, ids: CountingIds, scheduler: ManualScheduler) -> Generator:
    from fastapi.testclient import TestClient

    from hideseek.api.deps import get_session
    from hideseek.config import Settings
    from hideseek.deck import PythonRandom
    from hideseek.main import app
    from hideseek.session import GameSession

    session = GameSession.from_redis(
        r,
        settings=Settings(storage_prefix="api-test:"),
        rng=PythonRandom(7),
        id_factory=ids,
        scheduler=scheduler,
    )

    app.dependency_overrides[get_session] = lambda: session
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()
