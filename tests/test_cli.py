"""Tests for the command line interface."""

import pytest
from typer.testing import CliRunner

from tripfood import cli
from tripfood.config import Settings

runner = CliRunner()


@pytest.fixture(autouse=True)
def cli_settings(tmp_path, monkeypatch):
    """Point the CLI at a throwaway database and keep logging untouched."""
    app_settings = Settings(
        _env_file=None,
        database_url=f"sqlite:///{tmp_path / 'cli.db'}",
    )
    monkeypatch.setattr(cli, "settings", app_settings)
    monkeypatch.setattr(cli, "setup_logging", lambda *args, **kwargs: None)
    return app_settings


def _trip_id(output: str) -> str:
    return output.strip().rsplit("(", 1)[1].rstrip(")")


def test_init_db():
    result = runner.invoke(cli.app, ["init-db"])

    assert result.exit_code == 0
    assert "Database ready" in result.output


def test_no_trips_yet():
    result = runner.invoke(cli.app, ["trips"])

    assert result.exit_code == 0
    assert "No trips yet." in result.output


def test_add_and_list_trips():
    """Test that created trips show up in the listing."""
    added = runner.invoke(cli.app, ["add-trip", "Beach", "2024-07-01", "2024-07-07"])
    assert added.exit_code == 0
    assert "Created trip Beach" in added.output

    listed = runner.invoke(cli.app, ["trips"])
    assert listed.exit_code == 0
    assert "Beach" in listed.output
    assert "2024-07-01" in listed.output


def test_domain_errors_exit_with_message():
    """Test that a rejected command prints the reason and exits non-zero."""
    result = runner.invoke(cli.app, ["add-trip", "Back", "2024-07-07", "2024-07-01"])

    assert result.exit_code == 1
    assert "Error:" in result.output


def test_duplicate_trip_is_refused():
    runner.invoke(cli.app, ["add-trip", "Beach", "2024-07-01", "2024-07-07"])

    result = runner.invoke(cli.app, ["add-trip", "beach", "2024-08-01", "2024-08-02"])

    assert result.exit_code == 1
    assert "already exists" in result.output


def test_invalid_date_format_is_a_usage_error():
    result = runner.invoke(cli.app, ["add-trip", "Beach", "07/01/2024", "2024-07-07"])

    assert result.exit_code == 2


def test_shopping_list_for_empty_trip():
    added = runner.invoke(cli.app, ["add-trip", "Beach", "2024-07-01", "2024-07-07"])

    result = runner.invoke(cli.app, ["shopping-list", _trip_id(added.output)])

    assert result.exit_code == 0
    assert "Nothing to buy." in result.output


def test_shopping_list_for_unknown_trip():
    result = runner.invoke(cli.app, ["shopping-list", "missing"])

    assert result.exit_code == 1
    assert "not found" in result.output
