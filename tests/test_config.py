"""Tests for settings loading."""

from __future__ import annotations

import logging
from pathlib import Path

import pytest

from family_history.config import Settings, load_settings, setup_logging
from family_history.core.exceptions import ConfigError


class TestSettings:
    """Tests for Settings validation."""

    def test_defaults(self):
        settings = Settings()
        assert settings.import_batch_size == 50
        assert settings.log_level == "INFO"

    def test_batch_size_coerced(self):
        assert Settings(import_batch_size="25").import_batch_size == 25

    @pytest.mark.parametrize("value", [0, -1, "many"])
    def test_invalid_batch_size(self, value):
        with pytest.raises(ConfigError):
            Settings(import_batch_size=value)

    def test_invalid_log_level(self):
        with pytest.raises(ConfigError):
            Settings(log_level="CHATTY")

    def test_empty_database_path(self):
        with pytest.raises(ConfigError):
            Settings(database_path="")

    def test_from_dict(self):
        settings = Settings.from_dict({
            "database": {"path": "trees.db"},
            "import": {"batch_size": 10},
            "logging": {"level": "DEBUG"},
        })
        assert settings.database_path == "trees.db"
        assert settings.import_batch_size == 10
        assert settings.log_level == "DEBUG"

    def test_env_overrides(self):
        settings = Settings().with_env({
            "FAMILY_HISTORY_DB": "/srv/trees.db",
            "FAMILY_HISTORY_BATCH_SIZE": "5",
        })
        assert settings.database_path == "/srv/trees.db"
        assert settings.import_batch_size == 5

    def test_blank_env_is_ignored(self):
        settings = Settings(database_path="trees.db").with_env({"FAMILY_HISTORY_DB": ""})
        assert settings.database_path == "trees.db"


class TestLoadSettings:
    """Tests for YAML loading."""

    @pytest.fixture(autouse=True)
    def clear_env(self, monkeypatch: pytest.MonkeyPatch):
        for variable in ("FAMILY_HISTORY_DB", "FAMILY_HISTORY_BATCH_SIZE", "FAMILY_HISTORY_LOG_LEVEL"):
            monkeypatch.delenv(variable, raising=False)

    def test_without_file(self):
        assert load_settings() == Settings()

    def test_yaml_file(self, tmp_path: Path):
        path = tmp_path / "settings.yaml"
        path.write_text("database:\n  path: trees.db\nimport:\n  batch_size: 20\n")
        settings = load_settings(path)
        assert settings.database_path == "trees.db"
        assert settings.import_batch_size == 20

    def test_env_beats_file(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch):
        path = tmp_path / "settings.yaml"
        path.write_text("import:\n  batch_size: 20\n")
        monkeypatch.setenv("FAMILY_HISTORY_BATCH_SIZE", "7")
        assert load_settings(path).import_batch_size == 7

    def test_empty_file(self, tmp_path: Path):
        path = tmp_path / "settings.yaml"
        path.write_text("")
        assert load_settings(path) == Settings()

    def test_missing_file(self, tmp_path: Path):
        with pytest.raises(ConfigError):
            load_settings(tmp_path / "nonexistent.yaml")

    def test_invalid_yaml(self, tmp_path: Path):
        path = tmp_path / "settings.yaml"
        path.write_text("database: [unclosed\n")
        with pytest.raises(ConfigError):
            load_settings(path)

    def test_not_a_mapping(self, tmp_path: Path):
        path = tmp_path / "settings.yaml"
        path.write_text("- one\n- two\n")
        with pytest.raises(ConfigError):
            load_settings(path)


def test_setup_logging_accepts_lowercase_level(monkeypatch: pytest.MonkeyPatch):
    calls = []
    monkeypatch.setattr(logging, "basicConfig", lambda **kwargs: calls.append(kwargs))
    setup_logging(Settings(log_level="debug"))
    assert calls[0]["level"] == logging.DEBUG
