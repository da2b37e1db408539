"""Settings loading from the environment, and startup wiring."""

from __future__ import annotations

from pathlib import Path
from unittest.mock import MagicMock

import pytest
from pydantic import ValidationError

from busbot.bot import build_app, create_router
from busbot.config import BotConfig, Settings, StorageConfig, get_settings


@pytest.fixture(autouse=True)
def clean_env(monkeypatch: pytest.MonkeyPatch):
    for name in (
        "BOT_TOKEN",
        "ADMIN_CHAT_ID",
        "ADMIN_API_TOKEN",
        "PORT",
        "BROADCAST_BATCH_SIZE",
        "BROADCAST_BATCH_DELAY_MS",
        "LOG_LEVEL",
        "LOG_FILE",
    ):
        monkeypatch.delenv(name, raising=False)
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


class TestGetSettings:
    def test_missing_token_is_fatal(self) -> None:
        with pytest.raises(ValidationError):
            get_settings()

    def test_defaults(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("BOT_TOKEN", "123:abc")
        settings = get_settings()
        assert settings.bot.admin_chat_id is None
        assert settings.admin_api.port == 3000
        assert settings.admin_api.token == "CHANGE_ME"
        assert settings.broadcast.batch_size == 20
        assert settings.broadcast.batch_delay == 1.0

    def test_overrides(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("BOT_TOKEN", "123:abc")
        monkeypatch.setenv("ADMIN_CHAT_ID", "-100200")
        monkeypatch.setenv("PORT", "8080")
        monkeypatch.setenv("ADMIN_API_TOKEN", "s3cret")
        monkeypatch.setenv("BROADCAST_BATCH_SIZE", "5")
        monkeypatch.setenv("BROADCAST_BATCH_DELAY_MS", "250")
        settings = get_settings()
        assert settings.bot.admin_chat_id == -100200
        assert settings.admin_api.port == 8080
        assert settings.admin_api.token == "s3cret"
        assert settings.broadcast.batch_size == 5
        assert settings.broadcast.batch_delay == 0.25

    def test_zero_batch_size_rejected(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("BOT_TOKEN", "123:abc")
        monkeypatch.setenv("BROADCAST_BATCH_SIZE", "0")
        with pytest.raises(ValidationError):
            get_settings()

    def test_channel_username_as_admin_chat(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("BOT_TOKEN", "123:abc")
        monkeypatch.setenv("ADMIN_CHAT_ID", " @ops_channel ")
        assert get_settings().bot.admin_chat_id == "@ops_channel"

    def test_blank_admin_chat_means_unset(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("BOT_TOKEN", "123:abc")
        monkeypatch.setenv("ADMIN_CHAT_ID", "   ")
        assert get_settings().bot.admin_chat_id is None

    @pytest.mark.parametrize(
        "name, value",
        [
            ("ADMIN_CHAT_ID", "ops team"),
            ("PORT", "abc"),
            ("BROADCAST_BATCH_SIZE", "twenty"),
            ("BROADCAST_BATCH_DELAY_MS", "1.5s"),
        ],
    )
    def test_malformed_value_raises_validation_error(
        self, monkeypatch: pytest.MonkeyPatch, name: str, value: str
    ) -> None:
        monkeypatch.setenv("BOT_TOKEN", "123:abc")
        monkeypatch.setenv(name, value)
        with pytest.raises(ValidationError):
            get_settings()

    def test_log_file_override(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("BOT_TOKEN", "123:abc")
        monkeypatch.setenv("LOG_FILE", "bot-prod.log")
        assert get_settings().logging.log_file == "bot-prod.log"


class TestBuildApp:
    def test_stores_live_in_data_dir(self, tmp_path: Path) -> None:
        settings = Settings(
            bot=BotConfig(token="123:abc", admin_chat_id=42),
            storage=StorageConfig(data_dir=tmp_path),
        )
        app = build_app(settings, MagicMock())

        app.subscribers.add(7)

        assert (tmp_path / "subscribers.json").exists()
        assert app.notifier.admin_chat_id == 42
        assert app.conversation.booking.notifier is app.notifier
        assert create_router(app).name == "booking"
