import logging
import logging.handlers

from shared.clock import ManualClock, utc_now
from shared.config import Settings, get_settings
from shared.logging import configure_logging, get_log_level


class TestSettings:
    def test_defaults(self, monkeypatch):
        monkeypatch.delenv("BOTSTORE_REDIS_URL", raising=False)
        settings = Settings(_env_file=None)
        assert settings.redis_url is None
        assert settings.amount_tolerance == 0.01
        assert settings.cache_ttl_seconds == 900
        assert settings.crypto_ipn_secret is None

    def test_reads_prefixed_environment(self, monkeypatch):
        monkeypatch.setenv("BOTSTORE_ENV", "production")
        monkeypatch.setenv("BOTSTORE_AMOUNT_TOLERANCE", "0.5")
        monkeypatch.setenv("BOTSTORE_NOTIFICATIONS_ASYNC", "false")
        settings = Settings(_env_file=None)
        assert settings.env == "production"
        assert settings.amount_tolerance == 0.5
        assert settings.notifications_async is False

    def test_get_settings_is_cached(self):
        get_settings.cache_clear()
        try:
            assert get_settings() is get_settings()
        finally:
            get_settings.cache_clear()


class TestLogging:
    def test_level_follows_environment(self):
        assert get_log_level(Settings(_env_file=None, env="production")) == "INFO"
        assert get_log_level(Settings(_env_file=None, env="development")) == "DEBUG"

    def test_explicit_override(self, monkeypatch):
        monkeypatch.setenv("BOTSTORE_LOG_LEVEL", "error")
        assert get_log_level(Settings(_env_file=None, env="production")) == "ERROR"

    def test_configure_writes_rotating_file(self, tmp_path):
        settings = Settings(_env_file=None, env="test", log_dir=str(tmp_path / "logs"))
        configure_logging(settings)
        try:
            handlers = logging.getLogger().handlers
            assert logging.getLogger().level == logging.WARNING
            assert any(isinstance(h, logging.handlers.RotatingFileHandler) for h in handlers)
            assert (tmp_path / "logs").is_dir()
        finally:
            for handler in logging.getLogger().handlers:
                handler.close()
            logging.getLogger().handlers = []

    def test_console_only_without_log_dir(self):
        configure_logging(Settings(_env_file=None, env="test"))
        try:
            assert len(logging.getLogger().handlers) == 1
        finally:
            logging.getLogger().handlers = []


class TestClock:
    def test_manual_clock(self):
        clock = ManualClock(start=100.0)
        clock.advance(5)
        assert clock() == 105.0

    def test_utc_now_reads_clock(self):
        assert utc_now(ManualClock(start=0)).isoformat() == "1970-01-01T00:00:00+00:00"
