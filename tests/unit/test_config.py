"""Unit tests for settings loading."""

from decimal import Decimal

from paycrypt.config import Settings, get_settings


class TestSettings:

    def test_defaults(self):
        settings = Settings(_env_file=None)

        assert settings.SMTP_PORT == 2525
        assert settings.RATE_LIMIT_WINDOW_SECONDS == 60
        assert settings.MAX_EMAILS_PER_WINDOW == 100
        assert settings.MAX_CONNECTIONS_PER_ORIGIN == 10
        assert settings.ARCHIVE_CAPACITY_BYTES == 1000 * 1024 * 1024

    def test_csv_properties(self):
        settings = Settings(
            _env_file=None,
            OPERATOR_ADDRESSES=" Pay@PayCrypt.example , ops@paycrypt.example,",
            SUPPORTED_CURRENCIES="dot, pyusd",
        )

        assert settings.operator_addresses == frozenset({"pay@paycrypt.example", "ops@paycrypt.example"})
        assert settings.supported_currencies == frozenset({"DOT", "PYUSD"})

    def test_environment_override(self, monkeypatch):
        monkeypatch.setenv("MAX_EMAILS_PER_WINDOW", "5")
        monkeypatch.setenv("LEDGER_MEMORY_OPENING_BALANCE", "12.5")

        settings = Settings(_env_file=None)

        assert settings.MAX_EMAILS_PER_WINDOW == 5
        assert settings.LEDGER_MEMORY_OPENING_BALANCE == Decimal("12.5")

    def test_get_settings_is_cached(self):
        get_settings.cache_clear()
        assert get_settings() is get_settings()
        get_settings.cache_clear()
