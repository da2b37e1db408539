"""
Config loading via Pydantic v2 and python-dotenv.

Settings come from the process environment; a ``.env`` file in the project
root is loaded first without overriding variables that are already set.
"""

from __future__ import annotations

from functools import lru_cache
import os
from pathlib import Path
from typing import Optional, Union

from dotenv import load_dotenv
from pydantic import BaseModel, Field, field_validator


BASE_DIR = Path(__file__).resolve().parent.parent
# JSON stores live here; point DATA_DIR at a mounted volume in Docker
DATA_DIR = Path(os.environ.get("DATA_DIR", str(BASE_DIR / "data")))
ENV_PATH = BASE_DIR / ".env"

if ENV_PATH.exists():
    load_dotenv(ENV_PATH, override=False)


class BotConfig(BaseModel):
    token: str = Field(min_length=1)
    # numeric chat id, or a public channel username such as "@ops_channel"
    admin_chat_id: Optional[Union[int, str]] = None

    @field_validator("admin_chat_id", mode="before")
    @classmethod
    def parse_chat_id(cls, value: object) -> object:
        if not isinstance(value, str):
            return value
        value = value.strip()
        if not value:
            return None
        if value.lstrip("-").isdigit():
            return int(value)
        if not value.startswith("@"):
            raise ValueError("admin chat id must be a number or an @username")
        return value


class AdminApiConfig(BaseModel):
    host: str = "0.0.0.0"
    port: int = Field(default=3000, ge=1, le=65535)
    token: str = "CHANGE_ME"


class BroadcastConfig(BaseModel):
    batch_size: int = Field(default=20, ge=1)
    batch_delay_ms: int = Field(default=1000, ge=0)

    @property
    def batch_delay(self) -> float:
        return self.batch_delay_ms / 1000


class StorageConfig(BaseModel):
    data_dir: Path = Field(default_factory=lambda: DATA_DIR)

    @property
    def vehicles_path(self) -> Path:
        return self.data_dir / "buses.json"

    @property
    def bookings_path(self) -> Path:
        return self.data_dir / "bookings.json"

    @property
    def sessions_path(self) -> Path:
        return self.data_dir / "sessions.json"

    @property
    def subscribers_path(self) -> Path:
        return self.data_dir / "subscribers.json"


class LoggingConfig(BaseModel):
    logs_dir: Path = Field(default_factory=lambda: BASE_DIR / "logs")
    log_level: str = Field(default="INFO")
    max_bytes: int = Field(default=5 * 1024 * 1024)  # 5 MB
    backup_count: int = Field(default=5)
    log_file: str = Field(default="busbot.log", min_length=1)


class Settings(BaseModel):
    bot: BotConfig
    admin_api: AdminApiConfig = AdminApiConfig()
    broadcast: BroadcastConfig = BroadcastConfig()
    storage: StorageConfig = StorageConfig()
    logging: LoggingConfig = LoggingConfig()


@lru_cache
def get_settings() -> Settings:
    """
    Load and cache settings.

    Values are handed to the models as raw strings, so a missing BOT_TOKEN or
    a malformed number such as ``PORT=abc`` raises ValidationError.
    """
    env = os.environ

    bot = BotConfig(
        token=env.get("BOT_TOKEN", ""),
        admin_chat_id=env.get("ADMIN_CHAT_ID"),
    )
    admin_api = AdminApiConfig(
        host=env.get("HOST", "0.0.0.0"),
        port=env.get("PORT", "3000"),
        token=env.get("ADMIN_API_TOKEN", "CHANGE_ME"),
    )
    broadcast = BroadcastConfig(
        batch_size=env.get("BROADCAST_BATCH_SIZE", "20"),
        batch_delay_ms=env.get("BROADCAST_BATCH_DELAY_MS", "1000"),
    )
    logging_cfg = LoggingConfig(
        log_level=env.get("LOG_LEVEL", "INFO"),
        log_file=env.get("LOG_FILE", "busbot.log"),
    )
    return Settings(
        bot=bot,
        admin_api=admin_api,
        broadcast=broadcast,
        storage=StorageConfig(),
        logging=logging_cfg,
    )


__all__ = [
    "AdminApiConfig",
    "BotConfig",
    "BroadcastConfig",
    "LoggingConfig",
    "Settings",
    "StorageConfig",
    "get_settings",
    "BASE_DIR",
    "DATA_DIR",
]
