"""Smoke tests for the command line interface."""

import pytest
from typer.testing import CliRunner

import main
from issuebook.config import reset_config_cache

runner = CliRunner()


@pytest.fixture
def cli_env(tmp_path, monkeypatch):
    """Point the CLI at a throwaway config and database."""
    config_path = tmp_path / "config.ini"
    monkeypatch.setattr("issuebook.config.DEFAULT_CONFIG_PATH", config_path, raising=True)
    monkeypatch.setattr("main.DEFAULT_CONFIG_PATH", config_path, raising=True)
    monkeypatch.setattr("issuebook.logging_config._logging_initialized", True, raising=True)
    reset_config_cache()

    result = runner.invoke(main.app, ["init", "--db", str(tmp_path / "issuebook.db")])
    assert result.exit_code == 0, result.output
    return tmp_path


def _created_id(output):
    # "[OK] Created <id8> <title>"
    return output.split("Created ", 1)[1].split()[0]


def test_commands_require_config(tmp_path, monkeypatch):
    monkeypatch.setattr("issuebook.config.DEFAULT_CONFIG_PATH", tmp_path / "nope.ini", raising=True)
    monkeypatch.setattr("issuebook.logging_config._logging_initialized", True, raising=True)

    result = runner.invoke(main.app, ["list"])
    assert result.exit_code == 1
    assert "config.ini not found" in result.output


def test_add_tag_and_list(cli_env):
    assert runner.invoke(main.app, ["new-tag", "bug"]).exit_code == 0

    result = runner.invoke(main.app, ["add", "Crash on login", "--priority", "high", "--tag", "bug"])
    assert result.exit_code == 0, result.output
    result = runner.invoke(main.app, ["add", "Polish docs", "--priority", "low"])
    assert result.exit_code == 0, result.output

    result = runner.invoke(main.app, ["list", "--filter", "bug"])
    assert "Crash on login" in result.output
    assert "Polish docs" not in result.output
    assert "1 issue(s)" in result.output

    result = runner.invoke(main.app, ["list", "--priority", "low"])
    assert "Polish docs" in result.output
    assert "1 issue(s)" in result.output

    result = runner.invoke(main.app, ["list", "--search", "nothing matches"])
    assert "0 issue(s)" in result.output


def test_tag_close_and_delete(cli_env):
    runner.invoke(main.app, ["new-tag", "ui"])
    result = runner.invoke(main.app, ["add", "Button misaligned"])
    issue_id = _created_id(result.output)

    result = runner.invoke(main.app, ["tag", issue_id, "ui"])
    assert result.exit_code == 0, result.output
    assert "Button misaligned: ui" in result.output

    result = runner.invoke(main.app, ["close-issue", issue_id])
    assert "now Closed" in result.output

    result = runner.invoke(main.app, ["list", "--status", "open"])
    assert "0 issue(s)" in result.output

    result = runner.invoke(main.app, ["delete", issue_id])
    assert result.exit_code == 0, result.output
    result = runner.invoke(main.app, ["list"])
    assert "0 issue(s)" in result.output


def test_suggest_lists_matching_tags(cli_env):
    for name in ("bug", "build", "docs"):
        runner.invoke(main.app, ["new-tag", name])

    result = runner.invoke(main.app, ["suggest", "#bu"])
    assert result.output.split() == ["#bug", "#build"]


def test_delete_all_requires_confirmation(cli_env):
    runner.invoke(main.app, ["add", "Keep me"])

    result = runner.invoke(main.app, ["delete-all"])
    assert result.exit_code == 1
    assert "1 issue(s)" in runner.invoke(main.app, ["list"]).output

    result = runner.invoke(main.app, ["delete-all", "--confirm"])
    assert result.exit_code == 0, result.output
    assert "0 issue(s)" in runner.invoke(main.app, ["list"]).output


def test_migrate_check_reports_head(cli_env):
    runner.invoke(main.app, ["stats"])
    result = runner.invoke(main.app, ["migrate", "--check"])
    assert result.exit_code == 0, result.output
    assert "(head)" in result.output


def test_unknown_priority_is_rejected_everywhere(cli_env):
    result = runner.invoke(main.app, ["add", "Mystery", "--priority", "bogus"])
    assert result.exit_code == 1
    assert "Unknown priority" in result.output

    result = runner.invoke(main.app, ["list", "--priority", "bogus"])
    assert result.exit_code == 1
    assert "Unknown priority" in result.output

    assert "0 issue(s)" in runner.invoke(main.app, ["list"]).output
