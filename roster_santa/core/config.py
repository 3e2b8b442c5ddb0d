import os
from dataclasses import dataclass, field
from typing import FrozenSet

from dotenv import load_dotenv

load_dotenv()


@dataclass(frozen=True)
class Settings:
    bot_token: str
    database_url: str
    log_level: str
    log_path: str
    admin_ids: FrozenSet[int] = field(default_factory=frozenset)
    draw_delay_seconds: float = 2.0
    pool_delay_max_seconds: float = 1.0
    reveal_delay_seconds: float = 0.8


def _parse_admin_ids(raw: str) -> FrozenSet[int]:
    try:
        return frozenset(int(part) for part in raw.split(",") if part.strip())
    except ValueError as exc:
        raise ValueError("ADMIN_IDS must be a comma-separated list of Telegram user ids.") from exc


def _parse_delay(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        value = float(raw)
    except ValueError as exc:
        raise ValueError(f"{name} must be a number of seconds.") from exc
    if value < 0:
        raise ValueError(f"{name} cannot be negative.")
    return value


def load_settings() -> Settings:
    bot_token = os.getenv("BOT_TOKEN")
    database_url = os.getenv("DATABASE_URL", "sqlite:///roster_santa.db")
    log_level = os.getenv("LOG_LEVEL", "INFO")
    log_path = os.getenv("LOG_PATH", "logs/roster_santa.log")

    if not bot_token:
        raise ValueError("BOT_TOKEN is required. Set it in the environment or .env file.")

    return Settings(
        bot_token=bot_token,
        database_url=database_url,
        log_level=log_level,
        log_path=log_path,
        admin_ids=_parse_admin_ids(os.getenv("ADMIN_IDS", "")),
        draw_delay_seconds=_parse_delay("DRAW_DELAY_SECONDS", 2.0),
        pool_delay_max_seconds=_parse_delay("POOL_DELAY_MAX_SECONDS", 1.0),
        reveal_delay_seconds=_parse_delay("REVEAL_DELAY_SECONDS", 0.8),
    )
