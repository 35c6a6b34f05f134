"""
Tests for jex.core.config module.
"""

import json
from pathlib import Path

import pytest

from jex.core.config import (
    JexConfig,
    LoggingConfig,
    default_bin_directory,
    default_config_directory,
    load_config,
)


class TestLoggingConfig:
    """Tests for LoggingConfig."""

    def test_default_values(self) -> None:
        config = LoggingConfig()
        assert config.level == "WARNING"
        assert config.file_enabled is True
        assert config.console_enabled is True
        assert config.json_format is False
        assert config.log_directory is None

    def test_custom_values(self) -> None:
        config = LoggingConfig(level="DEBUG", json_format=True)
        assert config.level == "DEBUG"
        assert config.json_format is True

    def test_path_expansion(self) -> None:
        config = LoggingConfig(log_directory="~/logs")
        assert config.log_directory is not None
        assert "~" not in str(config.log_directory)

    def test_rejects_unknown_level(self) -> None:
        with pytest.raises(ValueError):
            LoggingConfig(level="LOUD")


class TestDefaults:
    """Tests for environment-driven default locations."""

    def test_jex_home_override(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("JEX_HOME", str(tmp_path / "custom"))
        assert default_config_directory() == tmp_path / "custom"

    def test_home_fallback(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.delenv("JEX_HOME", raising=False)
        assert default_config_directory() == Path.home() / ".jex"

    def test_bin_override(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("JEX_BIN_DIR", str(tmp_path / "bin"))
        assert default_bin_directory() == tmp_path / "bin"


class TestJexConfig:
    """Tests for JexConfig."""

    def test_derived_paths(self, jex_home: Path) -> None:
        config = JexConfig()
        assert config.config_directory == jex_home.resolve()
        assert config.plugins_directory == config.config_directory / "plugins"
        assert config.registry_file == config.config_directory / "plugin.yaml"
        assert config.logging.log_directory == config.config_directory / "logs"

    def test_explicit_log_directory_kept(self, tmp_path: Path) -> None:
        config = JexConfig(
            config_directory=tmp_path / "cfg",
            logging=LoggingConfig(log_directory=tmp_path / "elsewhere"),
        )
        assert config.logging.log_directory == (tmp_path / "elsewhere").resolve()

    def test_save_and_load(self, tmp_path: Path) -> None:
        config_path = tmp_path / "config.json"
        original = JexConfig(
            config_directory=tmp_path / "cfg",
            registry_filename="registry.yaml",
            logging=LoggingConfig(level="DEBUG"),
        )
        original.save(config_path)

        loaded = JexConfig.load(config_path)
        assert loaded.registry_filename == "registry.yaml"
        assert loaded.logging.level == "DEBUG"
        assert loaded.config_directory == original.config_directory

    def test_save_writes_json(self, tmp_path: Path) -> None:
        config = JexConfig(config_directory=tmp_path / "cfg")
        config.save()
        data = json.loads(config.config_file.read_text(encoding="utf-8"))
        assert data["registry_filename"] == "plugin.yaml"

    def test_load_nonexistent(self, jex_home: Path) -> None:
        config = JexConfig.load(jex_home / "nonexistent.json")
        assert config.config_directory == jex_home.resolve()

    def test_load_config_default_location(self, jex_home: Path) -> None:
        jex_home.mkdir(parents=True)
        (jex_home / "config.json").write_text(
            json.dumps({"registry_filename": "custom.yaml"}), encoding="utf-8"
        )
        config = load_config()
        assert config.registry_file.name == "custom.yaml"

    def test_ensure_directories(self, tmp_path: Path) -> None:
        config = JexConfig(config_directory=tmp_path / "cfg")
        config.ensure_directories()
        assert config.config_directory.is_dir()
        assert config.plugins_directory.is_dir()
