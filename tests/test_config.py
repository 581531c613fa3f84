"""
Tests for environment-based settings
"""
import pytest

from nztides.config import Settings, get_settings
from nztides.main import create_app

ENV_VARS = [
    'NZTIDES_DATA_PATH',
    'NZTIDES_BYTE_ORDER',
    'NZTIDES_ALLOW_PARTIAL',
    'NZTIDES_LOADER_THREADS',
    'NZTIDES_LOAD_TIMEOUT',
    'NZTIDES_TIMEZONE',
    'NZTIDES_DEFAULT_PORT',
    'NZTIDES_LOG_LEVEL',
]


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for name in ENV_VARS:
        monkeypatch.delenv(name, raising=False)


class TestSettings:
    """Tests for get_settings."""

    def test_defaults(self):
        """Should use the defaults when nothing is set."""
        assert get_settings() == Settings()

    def test_reads_environment(self, monkeypatch):
        """Should read every setting from its environment variable."""
        monkeypatch.setenv('NZTIDES_DATA_PATH', '/srv/tides')
        monkeypatch.setenv('NZTIDES_BYTE_ORDER', 'Little')
        monkeypatch.setenv('NZTIDES_ALLOW_PARTIAL', 'no')
        monkeypatch.setenv('NZTIDES_LOADER_THREADS', '4')
        monkeypatch.setenv('NZTIDES_LOAD_TIMEOUT', '2.5')
        monkeypatch.setenv('NZTIDES_DEFAULT_PORT', 'Napier')
        monkeypatch.setenv('NZTIDES_LOG_LEVEL', 'debug')

        settings = get_settings()
        assert settings.data_path == '/srv/tides'
        assert settings.byte_order == 'little'
        assert settings.allow_partial is False
        assert settings.loader_threads == 4
        assert settings.load_timeout == 2.5
        assert settings.default_port == 'Napier'
        assert settings.log_level == 'DEBUG'

    def test_invalid_numbers_use_defaults(self, monkeypatch):
        """Should fall back to the defaults for numbers that do not parse."""
        monkeypatch.setenv('NZTIDES_LOADER_THREADS', 'many')
        monkeypatch.setenv('NZTIDES_LOAD_TIMEOUT', 'soon')
        settings = get_settings()
        assert settings.loader_threads == 2
        assert settings.load_timeout == 5.0

    def test_loader_threads_at_least_one(self, monkeypatch):
        """Should always keep at least one loader thread."""
        monkeypatch.setenv('NZTIDES_LOADER_THREADS', '0')
        assert get_settings().loader_threads == 1

    def test_unknown_byte_order_uses_default(self, monkeypatch):
        """Should fall back to big-endian for an unknown byte order."""
        monkeypatch.setenv('NZTIDES_BYTE_ORDER', 'middle')
        assert get_settings().byte_order == 'big'

    def test_byte_order_reaches_repository(self, monkeypatch, tmp_path):
        """Should decode with the configured byte order when the app builds its own repository."""
        monkeypatch.setenv('NZTIDES_BYTE_ORDER', 'little')
        monkeypatch.setenv('NZTIDES_DATA_PATH', str(tmp_path))
        monkeypatch.setenv('NZTIDES_DEFAULT_PORT', '')
        app = create_app()
        repository = app.state.tide_service.repository
        try:
            assert repository.byte_order == 'little'
            assert repository.byte_source.data_path == tmp_path
        finally:
            repository.shutdown()
