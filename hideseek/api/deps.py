from __future__ import annotations

from fastapi import Request

from hideseek.config import load_settings
from hideseek.infra.redis_client import create_redis
from hideseek.session import GameSession


async def get_session(request: Request) -> GameSession:
    """The app's single play session, created and rehydrated on first use.

    Async so the session is built on the event loop its timers tick on.
    """

    session = getattr(request.app.state, "session", None)
    if session is None:
        settings = load_settings()
        session = GameSession.from_redis(create_redis(settings.redis_url), settings=settings)
        session.rehydrate()
        request.app.state.session = session
    return session
