"""
Jex plugin manager.

Install, update and uninstall keep the registry file and the plugins
directory consistent. The artifact is always validated before anything is
copied, copied before the registry is saved, and the copy is rolled back if
the save fails, so the registry never points at a missing artifact.
"""

from __future__ import annotations

import os
import re
import shutil
import tempfile
from dataclasses import dataclass
from pathlib import Path

from jex.core.atomic import atomic_copy
from jex.core.config import JexConfig
from jex.core.logging import OperationLogger, get_logger
from jex.plugins.base import PluginDescriptor
from jex.plugins.errors import (
    AlreadyInstalledError,
    ArtifactConflictError,
    ArtifactNotFoundError,
    InvalidPluginNameError,
    NotInstalledError,
)
from jex.plugins.loader import ArtifactLoader
from jex.plugins.registry import Registry, RegistryStore

logger = get_logger(__name__)

_NAME_PATTERN = re.compile(r"^[^\s/\\-][^\s/\\]*$")


def validate_plugin_name(name: str) -> str:
    """Return name if it is usable as a registry key."""
    if not name or not _NAME_PATTERN.match(name) or name in {".", ".."}:
        raise InvalidPluginNameError(f"Invalid plugin name: '{name}'")
    return name


@dataclass
class InstallResult:
    """Outcome of an install or update."""

    descriptor: PluginDescriptor
    artifact: Path
    size_bytes: int
    replaced: PluginDescriptor | None = None
    discovered_name: str = ""


class PluginManager:
    """Manages plugin install, update and uninstall."""

    def __init__(
        self,
        config: JexConfig,
        store: RegistryStore | None = None,
        loader: ArtifactLoader | None = None,
    ) -> None:
        self.config = config
        self.plugins_directory = config.plugins_directory
        self.store = store or RegistryStore(config.registry_file)
        self.loader = loader or ArtifactLoader(self.plugins_directory)

    def install(self, name: str, artifact_source: Path) -> InstallResult:
        """Install a new plugin from an artifact file."""
        with OperationLogger("plugin install", logger, plugin=name, source=str(artifact_source)):
            return self._install_or_update(name, Path(artifact_source), must_exist=False)

    def update(self, name: str, artifact_source: Path) -> InstallResult:
        """Replace an installed plugin with a new artifact."""
        with OperationLogger("plugin update", logger, plugin=name, source=str(artifact_source)):
            return self._install_or_update(name, Path(artifact_source), must_exist=True)

    def uninstall(self, name: str) -> PluginDescriptor:
        """
        Remove a plugin from the registry and delete its artifact.

        The registry is saved before the file is deleted; a missing artifact
        is not an error.
        """
        with OperationLogger("plugin uninstall", logger, plugin=name):
            registry = self.store.load(strict=True)
            descriptor = registry.get(name)
            if descriptor is None:
                raise NotInstalledError(f"Plugin not installed: {name}")

            del registry[name]
            self.store.save(registry)

            if not self._artifact_shared(descriptor.artifact_path, registry):
                self._remove_artifact(descriptor)
            return descriptor

    def list_installed(self) -> Registry:
        """Return the registry, tolerating a malformed file."""
        return self.store.load()

    def orphaned_artifacts(self, registry: Registry | None = None) -> list[Path]:
        """Files in the plugins directory that no descriptor references."""
        if not self.plugins_directory.is_dir():
            return []
        if registry is None:
            registry = self.store.load()
        tracked = {descriptor.artifact_path for descriptor in registry.values()}
        return sorted(
            path
            for path in self.plugins_directory.iterdir()
            if path.is_file() and not path.name.startswith(".") and path.name not in tracked
        )

    def _install_or_update(self, name: str, source: Path, must_exist: bool) -> InstallResult:
        validate_plugin_name(name)
        registry = self.store.load(strict=True)
        existing = registry.get(name)

        if must_exist and existing is None:
            raise NotInstalledError(f"Plugin not installed: {name}")
        if not must_exist and existing is not None:
            raise AlreadyInstalledError(f"Plugin already installed: {name}")
        if not source.is_file():
            raise ArtifactNotFoundError(f"Artifact not found: {source}")

        destination = self.plugins_directory / source.name
        owner = self._owner_of(source.name, registry)
        if owner is not None and owner != name:
            raise ArtifactConflictError(
                f"Artifact file '{source.name}' is already used by plugin '{owner}'"
            )

        with self.loader.discover(source) as handle:
            discovered_name = handle.name()
            descriptor = PluginDescriptor(
                name=name,
                artifact_path=source.name,
                entry_point=handle.entry_point,
                version=handle.version,
                description=handle.description,
            )

        if discovered_name != name:
            logger.warning(
                "Plugin name differs from install name",
                plugin=name,
                discovered=discovered_name,
            )

        if source.resolve() == destination.resolve():
            # Re-registering an artifact already in place; nothing to copy.
            backup = None
            copied = False
        else:
            backup = self._backup(destination)
            try:
                atomic_copy(source, destination)
            except BaseException:
                if backup is not None:
                    backup.unlink(missing_ok=True)
                raise
            copied = True

        registry[name] = descriptor
        try:
            self.store.save(registry)
        except BaseException:
            if copied:
                self._rollback(destination, backup)
            raise

        if backup is not None:
            backup.unlink(missing_ok=True)
        if existing is not None and existing.artifact_path != descriptor.artifact_path:
            if not self._artifact_shared(existing.artifact_path, registry):
                self._remove_artifact(existing)

        logger.info(
            "Plugin registered",
            plugin=name,
            artifact=descriptor.artifact_path,
            entry_point=descriptor.entry_point,
            version=descriptor.version,
        )
        return InstallResult(
            descriptor=descriptor,
            artifact=destination,
            size_bytes=destination.stat().st_size,
            replaced=existing,
            discovered_name=discovered_name,
        )

    def _owner_of(self, artifact_name: str, registry: Registry) -> str | None:
        for plugin_name, descriptor in registry.items():
            if descriptor.artifact_path == artifact_name:
                return plugin_name
        return None

    def _artifact_shared(self, artifact_name: str, registry: Registry) -> bool:
        return self._owner_of(artifact_name, registry) is not None

    def _backup(self, destination: Path) -> Path | None:
        """Keep the current artifact aside so a failed save can restore it."""
        if not destination.is_file():
            return None
        fd, tmp_name = tempfile.mkstemp(
            prefix=f".{destination.name}.", suffix=".bak", dir=str(destination.parent)
        )
        os.close(fd)
        backup = Path(tmp_name)
        shutil.copy2(destination, backup)
        return backup

    def _rollback(self, destination: Path, backup: Path | None) -> None:
        if backup is not None:
            os.replace(backup, destination)
            logger.warning(
                "Restored previous artifact after failed save", artifact=str(destination)
            )
        else:
            destination.unlink(missing_ok=True)
            logger.warning("Removed copied artifact after failed save", artifact=str(destination))

    def _remove_artifact(self, descriptor: PluginDescriptor) -> None:
        try:
            artifact = self.loader.artifact_location(descriptor)
        except ArtifactNotFoundError as e:
            logger.warning("Not deleting artifact outside plugins directory", error=str(e))
            return
        try:
            artifact.unlink(missing_ok=True)
        except OSError as e:
            logger.warning("Could not delete artifact", artifact=str(artifact), error=str(e))
