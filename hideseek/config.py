from __future__ import annotations

import os
from pathlib import Path

from dotenv import load_dotenv
from pydantic import BaseModel, Field

from hideseek.api.models import GameSize


def project_root() -> Path:
    # hideseek/config.py -> hideseek/ -> project root
    return Path(__file__).resolve().parents[1]


def get_redis_url() -> str:
    return os.environ.get("REDIS_URL", "redis://localhost:6379/0")


class RuleConfig(BaseModel):
    """Game-rule constants.

    The rulebook leaves some of these open (trap bonus, move window), so they
    live here instead of being scattered through the stores.
    """

    model_config = {"frozen": True}

    hand_limit: int = 6
    deck_size: int = 100
    min_players: int = 2
    time_trap_bonus_minutes: int = 15

    hiding_period_minutes: int = 30
    hiding_period_warning_minutes: int = 5
    response_low_time_seconds: int = 60

    move_minutes_by_size: dict[GameSize, int] = Field(
        default_factory=lambda: {GameSize.small: 10, GameSize.medium: 20, GameSize.large: 60}
    )

    tick_interval_ms: int = 100


class Settings(BaseModel):
    redis_url: str = "redis://localhost:6379/0"
    storage_prefix: str = "hideseek:"
    log_level: str = "INFO"
    default_game_size: GameSize = GameSize.medium
    rules: RuleConfig = Field(default_factory=RuleConfig)


def load_settings(*, env_file: Path | None = None) -> Settings:
    """Build settings from the environment.

    A `.env` at the project root is loaded first (without overriding variables
    that are already exported).
    """

    env_path = env_file or project_root() / ".env"
    if env_path.exists():
        load_dotenv(dotenv_path=env_path, override=False)

    return Settings(
        redis_url=get_redis_url(),
        storage_prefix=os.environ.get("HIDESEEK_STORAGE_PREFIX", "hideseek:"),
        log_level=os.environ.get("HIDESEEK_LOG_LEVEL", "INFO").upper(),
        default_game_size=GameSize(os.environ.get("HIDESEEK_GAME_SIZE", GameSize.medium.value)),
    )
