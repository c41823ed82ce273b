"""Tests for the command line interface."""

import pytest
from typer.testing import CliRunner

from perimeter.cli.app import app
from perimeter.core.config import get_settings
from perimeter.version import __version__

runner = CliRunner()


@pytest.fixture
def cli_database(tmp_path, monkeypatch):
    monkeypatch.setenv("DATABASE_URL", f"sqlite+aiosqlite:///{tmp_path / 'cli.db'}")
    monkeypatch.setenv("LOG_FORMAT", "text")
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


def test_version():
    result = runner.invoke(app, ["--version"])

    assert result.exit_code == 0
    assert __version__ in result.output


def test_config_lists_settings():
    result = runner.invoke(app, ["config"])

    assert result.exit_code == 0
    assert "Probe Timeout" in result.output


def test_scan_without_configuration_fails(cli_database):
    result = runner.invoke(app, ["scan", "org-1"])

    assert result.exit_code == 1
    assert "not configured" in result.output


def test_status_of_empty_organization(cli_database):
    result = runner.invoke(app, ["status", "org-1"])

    assert result.exit_code == 0


def test_check_rejects_malformed_id(cli_database):
    result = runner.invoke(app, ["check", "not-a-uuid", "--org", "org-1"])

    assert result.exit_code == 1
    assert "Invalid record id" in result.output
