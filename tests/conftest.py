"""
Pytest configuration and fixtures for Jex tests.
"""

import sys
import textwrap
import zipfile
from pathlib import Path
from typing import Callable, Generator

import pytest

# Add src to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from jex.core.config import JexConfig, LoggingConfig  # noqa: E402
from jex.core.logging import setup_logging  # noqa: E402

PLUGIN_SOURCE = '''\
from {package}.helpers import GREETING


class {class_name}:
    """Test plugin."""

    version = "{version}"
    description = "{description}"

    def name(self):
        return "{plugin_name}"

    def declared_options(self):
        return ["--help", "--fail", "--exit"]

    def execute(self, args):
        if "--help" in args:
            print("usage: {plugin_name} [--fail] [--exit] [NAME]")
            return 0
        if "--fail" in args:
            raise RuntimeError("boom")
        if "--exit" in args:
            raise SystemExit(3)
        target = args[-1] if args else "World"
        print(f"{{GREETING}}, {{target}}!")
        return 0
'''

MODULE_SOURCE = '''\
class {class_name}:
    version = "{version}"

    def name(self):
        return "{plugin_name}"

    def declared_options(self):
        return []

    def execute(self, args):
        print("{plugin_name} ran with", " ".join(args))
        return len(args)
'''

PluginFactory = Callable[..., Path]


@pytest.fixture(autouse=True, scope="session")
def quiet_logging() -> None:
    """Keep structlog output away from captured test output."""
    setup_logging(LoggingConfig(console_enabled=False, file_enabled=False))


@pytest.fixture
def jex_home(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """Point JEX_HOME and JEX_BIN_DIR at a temporary location."""
    home = tmp_path / "home" / ".jex"
    monkeypatch.setenv("JEX_HOME", str(home))
    monkeypatch.setenv("JEX_BIN_DIR", str(tmp_path / "home" / "bin"))
    return home


@pytest.fixture
def sample_config(jex_home: Path) -> Generator[JexConfig, None, None]:
    """Create a sample configuration for testing."""
    config = JexConfig(logging=LoggingConfig(file_enabled=False, console_enabled=False))
    config.ensure_directories()
    yield config


@pytest.fixture
def artifacts_dir(tmp_path: Path) -> Path:
    """Directory where test plugin artifacts are built."""
    path = tmp_path / "build"
    path.mkdir()
    return path


@pytest.fixture
def plugin_archive(artifacts_dir: Path) -> PluginFactory:
    """Return a factory that writes a zip plugin artifact."""

    def build(
        filename: str = "greet.zip",
        plugin_name: str = "greet",
        package: str = "greet",
        class_name: str = "GreetPlugin",
        version: str = "1.0.0",
        description: str = "Says hello",
        greeting: str = "Hello",
        extra: dict[str, str] | None = None,
    ) -> Path:
        path = artifacts_dir / filename
        with zipfile.ZipFile(path, "w") as archive:
            archive.writestr(f"{package}/__init__.py", "")
            archive.writestr(f"{package}/helpers.py", f"GREETING = {greeting!r}\n")
            archive.writestr(
                f"{package}/plugin.py",
                PLUGIN_SOURCE.format(
                    package=package,
                    class_name=class_name,
                    plugin_name=plugin_name,
                    version=version,
                    description=description,
                ),
            )
            for name, source in (extra or {}).items():
                archive.writestr(name, textwrap.dedent(source))
        return path

    return build


@pytest.fixture
def plugin_module(artifacts_dir: Path) -> PluginFactory:
    """Return a factory that writes a single-file plugin artifact."""

    def build(
        filename: str = "echo_tool.py",
        plugin_name: str = "echo-tool",
        class_name: str = "EchoTool",
        version: str = "2.1.0",
    ) -> Path:
        path = artifacts_dir / filename
        path.write_text(
            MODULE_SOURCE.format(
                class_name=class_name,
                plugin_name=plugin_name,
                version=version,
            ),
            encoding="utf-8",
        )
        return path

    return build


def pytest_configure(config: pytest.Config) -> None:
    """Configure pytest with custom markers."""
    config.addinivalue_line("markers", "unit: Unit tests")
    config.addinivalue_line("markers", "integration: Integration tests")
