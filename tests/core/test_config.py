"""Test module for settings resolution."""
import pytest
from pydantic import ValidationError

from app.core.config.environment import ENVIRONMENTS, ProductionSettings, TestSettings
from app.core.config.settings import Settings, _env_flag


def test_env_flag_parsing(monkeypatch):
    """Test case for boolean-like environment variables."""
    monkeypatch.setenv("FEATURE_X", "Yes")
    assert _env_flag("FEATURE_X") is True
    monkeypatch.setenv("FEATURE_X", "0")
    assert _env_flag("FEATURE_X", default=True) is False
    monkeypatch.delenv("FEATURE_X")
    assert _env_flag("FEATURE_X", default=None) is None


def test_environment_classes():
    """Test case for APP_ENV to settings class mapping."""
    assert ENVIRONMENTS["testing"] is TestSettings
    assert ENVIRONMENTS["prod"] is ProductionSettings
    assert TestSettings().push_batch_delay_seconds == 0.0


def test_batch_size_is_clamped_to_gateway_limit():
    """Test case for an oversized configured batch."""
    assert Settings(push_batch_size=500).push_batch_size == 100
    assert Settings(push_batch_size=50).push_batch_size == 50


def test_cors_origins_from_env(monkeypatch):
    """Test case for comma-separated CORS origins."""
    monkeypatch.setenv("CORS_ORIGINS", "https://app.studio, https://admin.studio ,")
    assert Settings().cors_origins == ["https://app.studio", "https://admin.studio"]


def test_cors_origins_default(monkeypatch):
    """Test case for the mobile dev-server allowlist."""
    monkeypatch.delenv("CORS_ORIGINS", raising=False)
    assert "http://localhost:19006" in Settings().cors_origins


def test_database_url_prefers_explicit_value():
    """Test case for DATABASE_URL priority."""
    cfg = Settings(database_url="postgresql://u:p@db/studio")
    assert cfg.get_database_url() == "postgresql://u:p@db/studio"


def test_database_url_composed_from_parts():
    """Test case for component-based Postgres URLs."""
    cfg = Settings(
        database_url=None,
        database_hostname="db",
        database_username="u",
        database_password="p",
        database_name="studio",
        database_ssl_mode="disable",
    )
    assert cfg.get_database_url() == "postgresql+psycopg2://u:p@db:5432/studio?sslmode=disable"


def test_test_database_url_gets_suffix():
    """Test case for deriving a dedicated test database."""
    cfg = Settings(database_url="postgresql://u:p@db/studio", test_database_url=None)
    assert cfg.get_database_url(use_test=True).endswith("/studio_test")


def test_test_database_url_must_be_dedicated():
    """Test case for refusing a non-test database in tests."""
    cfg = Settings(test_database_url="postgresql://u:p@db/studio")
    with pytest.raises(ValueError):
        cfg.get_database_url(use_test=True)


def test_incomplete_configuration_raises():
    """Test case for missing database settings."""
    cfg = Settings(
        database_url=None,
        test_database_url=None,
        database_hostname=None,
        database_name=None,
    )
    with pytest.raises(ValueError):
        cfg.get_database_url()


def test_studio_timezone_must_be_known():
    """Test case for the studio clock setting."""
    assert Settings(studio_timezone="Europe/Tirane").studio_timezone == "Europe/Tirane"
    with pytest.raises(ValidationError):
        Settings(studio_timezone="Mars/Olympus")
