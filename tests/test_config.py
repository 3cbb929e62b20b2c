"""Tests for config loading."""

import pytest

from issuebook.config import load_config, write_default_config


def test_missing_config_raises(tmp_path):
    with pytest.raises(FileNotFoundError):
        load_config(tmp_path / "config.ini")


def test_default_config_round_trip(tmp_path):
    path = write_default_config(tmp_path / "config.ini", tmp_path / "data" / "issuebook.db")
    config = load_config(path)

    assert config.database_path == tmp_path / "data" / "issuebook.db"
    assert config.autosave.delay_seconds == 3.0
    assert config.filters.recent_days == 7
    assert config.monitoring.enabled is True
    assert config.monitoring.debounce_seconds == 1.0
    assert config.logging.level == "INFO"


def test_relative_database_path_resolves_against_config_dir(tmp_path):
    path = tmp_path / "config.ini"
    path.write_text("[database]\npath = issues.db\n", encoding="utf-8")
    assert load_config(path).database_path == tmp_path / "issues.db"


@pytest.mark.parametrize("raw", ["", ":memory:"])
def test_memory_database(tmp_path, raw):
    path = tmp_path / "config.ini"
    path.write_text(f"[database]\npath = {raw}\n", encoding="utf-8")
    assert load_config(path).database_path is None


def test_custom_sections(tmp_path):
    path = tmp_path / "config.ini"
    path.write_text(
        "[database]\npath = :memory:\n"
        "[autosave]\ndelay_seconds = 0.5\n"
        "[filters]\nrecent_days = 14\n"
        "[monitoring]\nenabled = off\n"
        "[logging]\nlevel = DEBUG\n",
        encoding="utf-8",
    )
    config = load_config(path)

    assert config.autosave.delay_seconds == 0.5
    assert config.filters.recent_days == 14
    assert config.monitoring.enabled is False
    assert config.logging.level == "DEBUG"


def test_negative_delay_is_clamped(tmp_path):
    path = tmp_path / "config.ini"
    path.write_text("[autosave]\ndelay_seconds = -2\n", encoding="utf-8")
    assert load_config(path).autosave.delay_seconds == 0.0


def test_logging_section(tmp_path):
    path = tmp_path / "config.ini"
    path.write_text(
        "[logging]\nlevel = WARNING\nfile_name = tracker.log\nmax_bytes = 4096\nbackup_count = 1\n",
        encoding="utf-8",
    )
    settings = load_config(path).logging

    assert settings.level == "WARNING"
    assert settings.file_name == "tracker.log"
    assert settings.max_bytes == 4096
    assert settings.backup_count == 1
