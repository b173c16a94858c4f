"""Tests for settings and logging configuration."""

from pathlib import Path

import structlog

from attrstack.config import Settings, get_settings
from attrstack.logging_config import configure_logging


class TestSettings:
    """Tests for environment-driven settings."""

    def test_defaults(self, monkeypatch):
        """Defaults apply when nothing is configured."""
        monkeypatch.delenv("ATTRSTACK_DATA_DIR")
        monkeypatch.delenv("ATTRSTACK_DATABASE_URL")

        settings = Settings(_env_file=None)

        assert settings.data_dir == Path("./data/attributes")
        assert settings.database_url.startswith("sqlite+aiosqlite:///")
        assert settings.drift_epsilon == 1e-9
        assert settings.modifier_namespace == "attrstack"
        assert settings.log_format == "console"

    def test_environment_overrides(self, monkeypatch, tmp_path):
        """Prefixed environment variables override defaults."""
        monkeypatch.setenv("ATTRSTACK_LOG_LEVEL", "debug")
        monkeypatch.setenv("ATTRSTACK_DRIFT_EPSILON", "0.001")
        get_settings.cache_clear()

        settings = get_settings()

        assert settings.data_dir == tmp_path / "attributes"
        assert settings.entity_dir == tmp_path / "attributes" / "entities"
        assert settings.log_level == "debug"
        assert settings.drift_epsilon == 0.001

    def test_settings_cached(self):
        """get_settings returns the same instance until the cache is cleared."""
        assert get_settings() is get_settings()


class TestConfigureLogging:
    """Tests for structlog setup."""

    def test_json_renderer(self, capsys):
        """JSON format renders events as JSON lines."""
        configure_logging(Settings(log_format="json", log_level="INFO"))
        try:
            structlog.get_logger("attrstack.test").info("attribute_checked", attribute_id="armor")
            output = capsys.readouterr().out
        finally:
            structlog.reset_defaults()

        assert '"event": "attribute_checked"' in output
        assert '"attribute_id": "armor"' in output

    def test_level_filters(self, capsys):
        """Events below the configured level are dropped."""
        configure_logging(Settings(log_format="json", log_level="WARNING"))
        try:
            structlog.get_logger("attrstack.test").info("too_quiet")
            output = capsys.readouterr().out
        finally:
            structlog.reset_defaults()

        assert output == ""

    def test_unknown_level_falls_back_to_info(self, capsys):
        """An unrecognised level name behaves like INFO."""
        configure_logging(Settings(log_format="json", log_level="chatty"))
        try:
            logger = structlog.get_logger("attrstack.test")
            logger.debug("hidden")
            logger.info("shown")
            output = capsys.readouterr().out
        finally:
            structlog.reset_defaults()

        assert "hidden" not in output
        assert "shown" in output
