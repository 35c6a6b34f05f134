"""
One-time environment setup for ``jex --install``.

Creates the configuration and plugins directories, a documented empty
registry, and a wrapper script in the bin directory. Safe to re-run.
"""

from __future__ import annotations

import os
import stat
import sys
from dataclasses import dataclass, field
from pathlib import Path

from jex.core.atomic import atomic_write_text
from jex.core.config import JexConfig
from jex.core.logging import get_logger
from jex.plugins.registry import RegistryStore

logger = get_logger(__name__)

UNIX_WRAPPER = """\
#!/bin/sh
# Generated by jex --install
exec "{python}" -m jex.cli.main "$@"
"""

WINDOWS_WRAPPER = """\
@echo off
rem Generated by jex --install
"{python}" -m jex.cli.main %*
"""


@dataclass
class SetupReport:
    """What ``jex --install`` created and what already existed."""

    created: list[Path] = field(default_factory=list)
    existing: list[Path] = field(default_factory=list)
    wrapper_script: Path | None = None
    bin_on_path: bool = False

    def record(self, path: Path, created: bool) -> None:
        (self.created if created else self.existing).append(path)


def _ensure_directory(path: Path, report: SetupReport) -> None:
    if path.is_dir():
        report.record(path, created=False)
        return
    path.mkdir(parents=True, exist_ok=True)
    report.record(path, created=True)


def is_on_path(directory: Path) -> bool:
    """Check whether directory is listed in PATH."""
    entries = os.environ.get("PATH", "").split(os.pathsep)
    target = os.path.normcase(str(directory.resolve()))
    return any(
        entry and os.path.normcase(str(Path(entry).expanduser().resolve())) == target
        for entry in entries
    )


def install_wrapper_script(bin_directory: Path, python: str | None = None) -> Path:
    """Write the ``jex`` launcher for the current interpreter."""
    python = python or sys.executable
    if os.name == "nt":
        script = bin_directory / "jex.bat"
        atomic_write_text(script, WINDOWS_WRAPPER.format(python=python))
    else:
        script = bin_directory / "jex"
        atomic_write_text(script, UNIX_WRAPPER.format(python=python))
        mode = script.stat().st_mode
        script.chmod(mode | stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH)
    return script


def run_setup(config: JexConfig) -> SetupReport:
    """Bootstrap the per-user Jex environment."""
    report = SetupReport()

    _ensure_directory(config.config_directory, report)
    _ensure_directory(config.plugins_directory, report)

    created = RegistryStore(config.registry_file).initialize()
    report.record(config.registry_file, created=created)

    _ensure_directory(config.bin_directory, report)
    report.wrapper_script = install_wrapper_script(config.bin_directory)
    report.bin_on_path = is_on_path(config.bin_directory)

    logger.info(
        "Setup completed",
        config_directory=str(config.config_directory),
        created=[str(path) for path in report.created],
        wrapper=str(report.wrapper_script),
    )
    return report
