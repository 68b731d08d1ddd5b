"""Tests for settings and logging setup."""

import logging

import pytest

from tripfood.config import Settings
from tripfood.logging_config import setup_logging
from tripfood.logging_utils import log_database_operation, log_validation_error
from tripfood.telemetry import setup_telemetry


def _settings(**overrides) -> Settings:
    return Settings(_env_file=None, **overrides)


@pytest.fixture
def restore_root_logger():
    """Put the root logger back the way pytest left it."""
    root = logging.getLogger()
    handlers, level = list(root.handlers), root.level
    yield root
    for handler in root.handlers:
        if handler not in handlers:
            handler.close()
    root.handlers[:] = handlers
    root.setLevel(level)


@pytest.mark.parametrize(
    ("url", "expected"),
    [
        ("sqlite:///./tripfood.db", "sqlite+aiosqlite:///./tripfood.db"),
        ("sqlite+aiosqlite:///tmp/x.db", "sqlite+aiosqlite:///tmp/x.db"),
        (
            "postgresql://user:pw@localhost:5432/tripfood",
            "postgresql+asyncpg://user:pw@localhost:5432/tripfood",
        ),
        (
            "postgresql+asyncpg://user:pw@db/tripfood",
            "postgresql+asyncpg://user:pw@db/tripfood",
        ),
    ],
)
def test_async_database_url(url, expected):
    """Test that database URLs are rewritten for async drivers."""
    assert _settings(database_url=url).async_database_url == expected


def test_unsupported_database_url():
    """Test that unknown schemes are refused instead of guessed."""
    with pytest.raises(ValueError, match="Unsupported database URL"):
        _ = _settings(database_url="mysql://localhost/tripfood").async_database_url


def test_db_name_overrides_default_sqlite_file():
    """Test that DB_NAME picks the SQLite file when no URL is configured."""
    app_settings = _settings(db_name="beach")

    assert app_settings.effective_database_url == "sqlite:///./beach.db"
    assert app_settings.async_database_url == "sqlite+aiosqlite:///./beach.db"


def test_explicit_url_wins_over_db_name():
    app_settings = _settings(database_url="sqlite:///data.db", db_name="beach")

    assert app_settings.effective_database_url == "sqlite:///data.db"


def test_settings_from_environment(monkeypatch):
    """Test that settings are read from environment variables."""
    monkeypatch.setenv("ENABLE_TELEMETRY", "true")
    monkeypatch.setenv("DEBUG", "false")

    app_settings = _settings()

    assert app_settings.enable_telemetry is True
    assert app_settings.debug is False


def test_setup_logging_in_debug(restore_root_logger):
    """Test that debug mode logs to the console only, at DEBUG."""
    setup_logging(app_settings=_settings(debug=True))

    assert restore_root_logger.level == logging.DEBUG
    assert len(restore_root_logger.handlers) == 1
    assert logging.getLogger("sqlalchemy.engine").level == logging.WARNING


def test_setup_logging_writes_file_outside_debug(
    tmp_path, monkeypatch, restore_root_logger
):
    """Test that production mode adds a log file."""
    monkeypatch.chdir(tmp_path)

    setup_logging(log_level="warning", app_settings=_settings(debug=False))

    assert restore_root_logger.level == logging.WARNING
    assert len(restore_root_logger.handlers) == 2
    assert (tmp_path / "logs").is_dir()


def test_database_operation_logging(caplog):
    with caplog.at_level(logging.DEBUG, logger="database"):
        log_database_operation("save", "trips", record_id="t1")
        log_database_operation("delete", "trips", success=False, record_id="t2")

    ok, failed = caplog.records
    assert ok.levelno == logging.DEBUG
    assert ok.getMessage() == "Database save on trips succeeded"
    assert ok.record_id == "t1"
    assert failed.levelno == logging.ERROR
    assert failed.getMessage() == "Database delete on trips failed"


def test_validation_logging_truncates_long_values(caplog):
    with caplog.at_level(logging.WARNING, logger="validation"):
        log_validation_error("notes", "x" * 500, "notes too long")
        log_validation_error("contact_email", "ann@example.com", "bad email")

    notes, email = caplog.records
    assert len(notes.value) == 100
    assert email.value == "[REDACTED]"


def test_telemetry_is_opt_in():
    assert setup_telemetry(_settings()) is False


def test_telemetry_stays_off_under_pytest():
    """Test that tracing is not installed while tests run."""
    assert setup_telemetry(_settings(enable_telemetry=True)) is False
