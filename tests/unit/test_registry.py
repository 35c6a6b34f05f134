"""
Tests for jex.plugins.registry module.
"""

import os
from pathlib import Path

import pytest

from jex.plugins.base import PluginDescriptor
from jex.plugins.errors import InvalidRegistryError
from jex.plugins.registry import (
    REGISTRY_HEADER,
    RegistryStore,
    dump_registry,
    parse_registry,
)


def make_descriptor(name: str, **overrides: str) -> PluginDescriptor:
    fields = {
        "artifact_path": f"{name}.zip",
        "entry_point": f"{name}.plugin:Plugin",
        "version": "1.0.0",
        "description": f"The {name} plugin",
    }
    fields.update(overrides)
    return PluginDescriptor(name=name, **fields)


class TestPluginDescriptor:
    """Tests for PluginDescriptor."""

    def test_on_disk_keys(self) -> None:
        descriptor = make_descriptor("greet")
        assert descriptor.to_entry() == {
            "jar": "greet.zip",
            "class": "greet.plugin:Plugin",
            "version": "1.0.0",
            "description": "The greet plugin",
        }

    def test_accepts_aliases(self) -> None:
        descriptor = PluginDescriptor.model_validate(
            {"name": "greet", "jar": "greet.zip", "class": "greet:Plugin", "version": 1.5}
        )
        assert descriptor.artifact_path == "greet.zip"
        assert descriptor.entry_point == "greet:Plugin"
        assert descriptor.version == "1.5"
        assert descriptor.description == ""

    def test_summary(self) -> None:
        assert make_descriptor("greet").summary() == "greet (v1.0.0) - The greet plugin"
        assert make_descriptor("greet", version="").summary() == "greet - The greet plugin"
        assert make_descriptor("greet", description="").summary() == "greet (v1.0.0)"
        assert make_descriptor("greet", version="", description="").summary() == "greet"


class TestParseRegistry:
    """Tests for parse_registry."""

    def test_empty_text(self) -> None:
        assert parse_registry("") == {}
        assert parse_registry(REGISTRY_HEADER) == {}

    def test_valid_entries_keep_order(self) -> None:
        text = (
            "zeta:\n  jar: zeta.zip\n  class: zeta:Z\n"
            "alpha:\n  jar: alpha.zip\n  class: alpha:A\n  version: 2.0.0\n"
        )
        registry = parse_registry(text)
        assert list(registry) == ["zeta", "alpha"]
        assert registry["alpha"].version == "2.0.0"
        assert registry["zeta"].name == "zeta"

    def test_empty_entries_are_dropped(self) -> None:
        text = "disabled:\nblank: {}\ngreet:\n  jar: greet.zip\n  class: greet:G\n"
        registry = parse_registry(text)
        assert list(registry) == ["greet"]

    def test_invalid_yaml(self) -> None:
        with pytest.raises(InvalidRegistryError):
            parse_registry("greet: [unclosed")

    def test_top_level_must_be_mapping(self) -> None:
        with pytest.raises(InvalidRegistryError):
            parse_registry("- greet\n- other\n")

    def test_entry_must_be_mapping(self) -> None:
        with pytest.raises(InvalidRegistryError):
            parse_registry("greet: just-a-string\n")

    def test_entry_requires_jar_and_class(self) -> None:
        with pytest.raises(InvalidRegistryError):
            parse_registry("greet:\n  jar: greet.zip\n")


class TestRegistryStore:
    """Tests for RegistryStore."""

    def test_missing_file_is_empty(self, tmp_path: Path) -> None:
        store = RegistryStore(tmp_path / "plugin.yaml")
        assert store.load() == {}
        assert store.load(strict=True) == {}

    def test_round_trip(self, tmp_path: Path) -> None:
        store = RegistryStore(tmp_path / "plugin.yaml")
        registry = {
            "greet": make_descriptor("greet"),
            "tool": make_descriptor("tool", version="0.3", description=""),
        }
        store.save(registry)
        loaded = store.load()
        assert loaded == registry
        assert list(loaded) == ["greet", "tool"]

        store.save(loaded)
        assert store.load() == registry

    def test_saved_file_format(self, tmp_path: Path) -> None:
        store = RegistryStore(tmp_path / "plugin.yaml")
        store.save({"greet": make_descriptor("greet")})
        text = store.path.read_text(encoding="utf-8")
        assert text.startswith("# Jex Plugin Registry")
        assert "greet:\n  jar: greet.zip\n  class: greet.plugin:Plugin\n" in text

    def test_malformed_file_fails_soft(self, tmp_path: Path) -> None:
        path = tmp_path / "plugin.yaml"
        path.write_text("greet: [unclosed", encoding="utf-8")
        store = RegistryStore(path)
        assert store.load() == {}

    def test_malformed_file_strict(self, tmp_path: Path) -> None:
        path = tmp_path / "plugin.yaml"
        path.write_text("greet: [unclosed", encoding="utf-8")
        with pytest.raises(InvalidRegistryError):
            RegistryStore(path).load(strict=True)

    def test_save_replaces_atomically(
        self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        store = RegistryStore(tmp_path / "plugin.yaml")
        store.save({"greet": make_descriptor("greet")})
        before = store.path.read_text(encoding="utf-8")

        def failing_replace(src: str, dst: str) -> None:
            raise OSError("simulated crash")

        monkeypatch.setattr(os, "replace", failing_replace)
        with pytest.raises(OSError):
            store.save({})
        monkeypatch.undo()

        assert store.path.read_text(encoding="utf-8") == before
        assert sorted(p.name for p in tmp_path.iterdir()) == ["plugin.yaml"]

    def test_initialize(self, tmp_path: Path) -> None:
        store = RegistryStore(tmp_path / "plugin.yaml")
        assert store.initialize() is True
        assert store.load() == {}
        assert store.initialize() is False

    def test_dump_empty_registry_is_header_only(self) -> None:
        assert dump_registry({}).strip() == REGISTRY_HEADER.strip()
