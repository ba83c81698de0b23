"""Unit tests for runtime settings and the clock."""

from datetime import UTC, date, datetime, timedelta, timezone
from pathlib import Path
from zoneinfo import ZoneInfo

import pytest
from pydantic import ValidationError

from wifigate.clock import FrozenClock, SystemClock, local_today
from wifigate.settings import Settings, get_settings


@pytest.fixture(autouse=True)
def clean_env(monkeypatch: pytest.MonkeyPatch, temp_dir: Path) -> None:
    """Isolate settings from the caller's environment and .env file."""
    for name in (
        "WIFIGATE_DB_PATH",
        "WIFIGATE_CONFIG_PATH",
        "WIFIGATE_UNRESTRICTED_ROLE",
        "WIFIGATE_TIMEZONE",
        "WIFIGATE_LOG_LEVEL",
        "WIFIGATE_VIOLATION_WRITE_ATTEMPTS",
        "WIFIGATE_VIOLATION_RETRY_DELAY_SECONDS",
    ):
        monkeypatch.delenv(name, raising=False)
    monkeypatch.chdir(temp_dir)


class TestSettings:
    """Tests for Settings."""

    def test_defaults(self) -> None:
        settings = Settings()
        assert settings.db_path == "wifigate.db"
        assert settings.config_path is None
        assert settings.unrestricted_role == "Admin"
        assert settings.timezone == "UTC"
        assert settings.log_level == "WARNING"
        assert settings.violation_write_attempts == 3
        assert settings.violation_retry_delay_seconds == 0.05

    def test_from_environment(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("WIFIGATE_DB_PATH", "/tmp/x.db")
        monkeypatch.setenv("WIFIGATE_TIMEZONE", "Asia/Kolkata")
        monkeypatch.setenv("WIFIGATE_UNRESTRICTED_ROLE", "Root")
        settings = Settings()
        assert settings.db_path == "/tmp/x.db"
        assert settings.tz == ZoneInfo("Asia/Kolkata")
        assert settings.unrestricted_role == "Root"

    def test_from_env_file(self, temp_dir: Path) -> None:
        (temp_dir / ".env").write_text("WIFIGATE_LOG_LEVEL=debug\n")
        assert Settings().log_level == "DEBUG"

    def test_unknown_timezone(self) -> None:
        with pytest.raises(ValidationError, match="Unknown timezone"):
            Settings(timezone="Mars/Olympus")

    def test_unknown_log_level(self) -> None:
        with pytest.raises(ValidationError):
            Settings(log_level="LOUD")

    def test_attempts_bounds(self) -> None:
        with pytest.raises(ValidationError):
            Settings(violation_write_attempts=0)

    def test_retry_delay(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("WIFIGATE_VIOLATION_RETRY_DELAY_SECONDS", "0.25")
        assert Settings().violation_retry_delay_seconds == 0.25
        with pytest.raises(ValidationError):
            Settings(violation_retry_delay_seconds=-1)

    def test_get_settings_ignores_none_overrides(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("WIFIGATE_DB_PATH", "/tmp/env.db")
        settings = get_settings(db_path=None, timezone="Europe/Berlin")
        assert settings.db_path == "/tmp/env.db"
        assert settings.timezone == "Europe/Berlin"


class TestClock:
    """Tests for clock implementations."""

    def test_system_clock_is_aware(self) -> None:
        assert SystemClock().now().tzinfo is not None

    def test_frozen_clock_naive_becomes_utc(self) -> None:
        clock = FrozenClock(datetime(2024, 1, 1, 12, 0))
        assert clock.now() == datetime(2024, 1, 1, 12, 0, tzinfo=UTC)

    def test_frozen_clock_advance_and_set(self) -> None:
        clock = FrozenClock(datetime(2024, 1, 1, tzinfo=UTC))
        clock.advance(minutes=90)
        assert clock.now() == datetime(2024, 1, 1, 1, 30, tzinfo=UTC)
        clock.set(datetime(2025, 6, 1))
        assert clock.now() == datetime(2025, 6, 1, tzinfo=UTC)

    def test_local_today_uses_timezone(self) -> None:
        clock = FrozenClock(datetime(2024, 1, 1, 20, 0, tzinfo=UTC))
        assert local_today(clock) == date(2024, 1, 1)
        assert local_today(clock, timezone(timedelta(hours=5))) == date(2024, 1, 2)
