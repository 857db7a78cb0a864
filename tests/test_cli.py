"""Tests for the Typer CLI."""

from __future__ import annotations

from pathlib import Path

import pytest
from typer.testing import CliRunner

from urlaudit.cli import app

runner = CliRunner()


@pytest.fixture(autouse=True)
def _database(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("DATABASE_URL", f"sqlite+aiosqlite:///{tmp_path / 'cli.db'}")


def test_validate(tmp_path: Path) -> None:
    cfg = tmp_path / "urlaudit.yml"
    cfg.write_text("credit_cost: 2\n")
    result = runner.invoke(app, ["validate", "--config", str(cfg)])
    assert result.exit_code == 0
    assert "Config is valid" in result.output
    assert "Credit cost:  2" in result.output


def test_validate_bad_config(tmp_path: Path) -> None:
    cfg = tmp_path / "urlaudit.yml"
    cfg.write_text("credit_cost: -1\n")
    result = runner.invoke(app, ["validate", "--config", str(cfg)])
    assert result.exit_code == 1
    assert "Config validation failed" in result.output


def test_init_db() -> None:
    result = runner.invoke(app, ["init-db"])
    assert result.exit_code == 0
    assert "Database ready" in result.output


def test_credits_add_and_show() -> None:
    result = runner.invoke(app, ["credits", "add", "--user", "alice", "--amount", "20"])
    assert result.exit_code == 0
    assert "Balance: 120" in result.output

    result = runner.invoke(app, ["credits", "show", "--user", "alice"])
    assert result.exit_code == 0
    assert "120 credits" in result.output


def test_credits_show_unknown_user() -> None:
    result = runner.invoke(app, ["credits", "show", "--user", "nobody"])
    assert result.exit_code == 1
    assert "AccountNotFound" in result.output


def test_history_empty() -> None:
    result = runner.invoke(app, ["history", "--user", "alice"])
    assert result.exit_code == 0
    assert "No audits yet." in result.output


def test_audit_invalid_url() -> None:
    result = runner.invoke(app, ["audit", "not a url", "--user", "alice"])
    assert result.exit_code == 1
    assert "InvalidInput" in result.output


def test_show_missing() -> None:
    result = runner.invoke(app, ["show", "nope", "--user", "alice"])
    assert result.exit_code == 1
    assert "Audit not found" in result.output
