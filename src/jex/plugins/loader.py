"""
Jex artifact loader.

Turns an on-disk artifact into a plugin instance. An artifact is either a
single Python source file or a zip archive (wheel, pyz, plain zip, ...)
importable through zipimport. Each artifact is imported inside its own
ArtifactContext so modules of one plugin never leak into another.
"""

from __future__ import annotations

import importlib
import importlib.util
import inspect
import os
import re
import sys
import zipfile
import zipimport
from pathlib import Path
from types import ModuleType, TracebackType
from typing import Any, Iterator

from jex.core.logging import get_logger
from jex.plugins.base import CAPABILITIES, PluginDescriptor, PluginHandle, is_plugin
from jex.plugins.errors import (
    ArtifactNotFoundError,
    EntryPointInvalidError,
    NotAPluginError,
)

logger = get_logger(__name__)

SKIPPED_MODULES = {"__main__", "setup", "conftest"}
SKIPPED_PACKAGES = {"test", "tests"}
# Host modules an artifact may never displace.
UNSHADOWED = set(sys.stdlib_module_names) | {"jex"}
SINGLE_MODULE_PREFIX = "jex_plugin_"


def parse_entry_point(entry_point: str) -> tuple[str, str]:
    """
    Split an entry point into module name and attribute path.

    Accepts ``package.module:Class`` and the dotted ``package.module.Class``.
    """
    if ":" in entry_point:
        module_name, _, attr_path = entry_point.partition(":")
    else:
        module_name, _, attr_path = entry_point.rpartition(".")

    parts = module_name.split(".") + attr_path.split(".")
    if not module_name or not attr_path or not all(part.isidentifier() for part in parts):
        raise EntryPointInvalidError(f"Malformed entry point: '{entry_point}'")
    return module_name, attr_path


def single_module_name(artifact: Path) -> str:
    """
    Module name a single-file artifact is imported under.

    The file stem is used when it is a usable, non-host module name;
    otherwise a prefixed, sanitised form of it (my-tool.py ->
    jex_plugin_my_tool).
    """
    stem = Path(artifact).stem
    if stem.isidentifier() and stem not in UNSHADOWED:
        return stem
    return SINGLE_MODULE_PREFIX + re.sub(r"\W", "_", stem)


class ArtifactContext:
    """
    Import scope limited to a single artifact.

    While open, the artifact's modules take precedence over anything of the
    same name already imported. Closing the context evicts every module that
    was loaded from the artifact and restores whatever it shadowed.
    """

    def __init__(self, artifact: Path) -> None:
        self.artifact = Path(artifact).resolve()
        if self.artifact.suffix == ".py":
            self.kind = "module"
        elif zipfile.is_zipfile(self.artifact):
            self.kind = "archive"
        else:
            raise NotAPluginError(
                f"{self.artifact.name} is neither a Python module nor a zip archive"
            )
        self._saved_path: list[str] | None = None
        self._shadowed: dict[str, ModuleType] = {}
        self._module_names: list[str] | None = None

    @property
    def is_open(self) -> bool:
        return self._saved_path is not None

    def host_collisions(self) -> list[str]:
        """Top-level modules of the artifact that host modules would hide."""
        return sorted({name.split(".")[0] for name in self.module_names()} & UNSHADOWED)

    def module_names(self) -> list[str]:
        """List the importable modules inside the artifact, sorted."""
        if self._module_names is not None:
            return self._module_names

        if self.kind == "module":
            self._module_names = [single_module_name(self.artifact)]
            return self._module_names

        modules: set[str] = set()
        with zipfile.ZipFile(self.artifact) as archive:
            for entry in archive.namelist():
                if not entry.endswith(".py"):
                    continue
                parts = entry[: -len(".py")].split("/")
                if parts[-1] == "__init__":
                    parts = parts[:-1]
                if not parts or not all(part.isidentifier() for part in parts):
                    continue
                if parts[-1] in SKIPPED_MODULES or parts[0] in SKIPPED_PACKAGES:
                    continue
                modules.add(".".join(parts))
        self._module_names = sorted(modules)
        return self._module_names

    def open(self) -> ArtifactContext:
        if self.is_open:
            return self

        self._saved_path = list(sys.path)

        for top_level in {name.split(".")[0] for name in self.module_names()}:
            if top_level in UNSHADOWED:
                continue
            for loaded in list(sys.modules):
                if loaded == top_level or loaded.startswith(f"{top_level}."):
                    self._shadowed[loaded] = sys.modules.pop(loaded)

        if self.kind == "archive":
            root = str(self.artifact)
            # A fresh importer so a replaced archive is not served from the
            # zipimport directory cache.
            importer = zipimport.zipimporter(root)
            importer.invalidate_caches()
            sys.path_importer_cache[root] = importer
            sys.path.insert(0, root)
        importlib.invalidate_caches()

        logger.debug("Opened artifact context", artifact=str(self.artifact), kind=self.kind)
        return self

    def import_module(self, name: str) -> ModuleType:
        """Import a module from the artifact."""
        if not self.is_open:
            raise RuntimeError("Artifact context is not open")

        if self.kind == "archive":
            module = importlib.import_module(name)
            if not self._owns(module):
                raise ModuleNotFoundError(f"No module named '{name}' in {self.artifact.name}")
            return module

        if name != single_module_name(self.artifact):
            raise ModuleNotFoundError(f"No module named '{name}' in {self.artifact.name}")
        if name in sys.modules:
            if self._owns(sys.modules[name]):
                return sys.modules[name]
            raise ModuleNotFoundError(f"Module '{name}' collides with a host module")

        spec = importlib.util.spec_from_file_location(name, self.artifact)
        if spec is None or spec.loader is None:
            raise ImportError(f"Could not load module from {self.artifact}")
        module = importlib.util.module_from_spec(spec)
        # Registered before execution so dataclasses and pickling can find it.
        sys.modules[name] = module
        # No __pycache__ next to installed artifacts.
        dont_write_bytecode = sys.dont_write_bytecode
        sys.dont_write_bytecode = True
        try:
            spec.loader.exec_module(module)
        except BaseException:
            sys.modules.pop(name, None)
            raise
        finally:
            sys.dont_write_bytecode = dont_write_bytecode
        return module

    def close(self) -> None:
        if not self.is_open:
            return

        for name, module in list(sys.modules.items()):
            if self._owns(module):
                del sys.modules[name]
        sys.modules.update(self._shadowed)
        self._shadowed = {}

        assert self._saved_path is not None
        sys.path[:] = self._saved_path
        root = str(self.artifact)
        for entry in list(sys.path_importer_cache):
            if entry == root or entry.startswith(root + os.sep):
                del sys.path_importer_cache[entry]
        importlib.invalidate_caches()
        self._saved_path = None

        logger.debug("Closed artifact context", artifact=str(self.artifact))

    def _owns(self, module: Any) -> bool:
        root = str(self.artifact)
        locations = [getattr(module, "__file__", None)]
        locations.extend(getattr(module, "__path__", None) or [])
        for location in locations:
            if not location:
                continue
            location = str(location)
            if location == root or location.startswith(root + os.sep):
                return True
        return False

    def __enter__(self) -> ArtifactContext:
        return self.open()

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        self.close()


def _candidate_classes(module: ModuleType) -> Iterator[type]:
    """Yield classes defined in module that look like plugins."""
    for attr in list(vars(module).values()):
        if not isinstance(attr, type) or attr.__module__ != module.__name__:
            continue
        if inspect.isabstract(attr):
            continue
        if all(callable(getattr(attr, capability, None)) for capability in CAPABILITIES):
            yield attr


class ArtifactLoader:
    """Loads plugin artifacts stored under the plugins directory."""

    def __init__(self, plugins_directory: Path) -> None:
        self.plugins_directory = Path(plugins_directory)

    def artifact_location(self, descriptor: PluginDescriptor) -> Path:
        """Resolve a descriptor's artifact inside the plugins directory."""
        root = self.plugins_directory.resolve()
        location = (root / descriptor.artifact_path).resolve()
        if location.parent != root:
            raise ArtifactNotFoundError(
                f"Artifact '{descriptor.artifact_path}' of plugin '{descriptor.name}' "
                f"is outside {root}"
            )
        return location

    def load(self, descriptor: PluginDescriptor) -> PluginHandle:
        """
        Load the plugin a descriptor points at.

        The returned handle keeps the artifact's context open until closed.
        """
        artifact = self.artifact_location(descriptor)
        if not artifact.is_file():
            raise ArtifactNotFoundError(
                f"Artifact for plugin '{descriptor.name}' not found: {artifact}"
            )

        module_name, attr_path = parse_entry_point(descriptor.entry_point)
        context = ArtifactContext(artifact).open()
        try:
            instance = self._instantiate(context, module_name, attr_path, descriptor)
        except BaseException:
            context.close()
            raise

        logger.debug(
            "Loaded plugin",
            plugin=descriptor.name,
            artifact=artifact.name,
            entry_point=descriptor.entry_point,
        )
        return PluginHandle(instance, descriptor=descriptor, context=context)

    def _instantiate(
        self,
        context: ArtifactContext,
        module_name: str,
        attr_path: str,
        descriptor: PluginDescriptor,
    ) -> Any:
        entry_point = descriptor.entry_point
        try:
            target: Any = context.import_module(module_name)
        except Exception as e:
            raise EntryPointInvalidError(
                f"Cannot import '{module_name}' for plugin '{descriptor.name}': {e}"
            ) from e

        for part in attr_path.split("."):
            try:
                target = getattr(target, part)
            except AttributeError as e:
                raise EntryPointInvalidError(
                    f"Entry point '{entry_point}' not found in {context.artifact.name}"
                ) from e

        if not callable(target):
            raise EntryPointInvalidError(f"Entry point '{entry_point}' is not instantiable")

        try:
            instance = target()
        except Exception as e:
            raise EntryPointInvalidError(
                f"Cannot instantiate '{entry_point}': {e}"
            ) from e

        if not is_plugin(instance):
            raise NotAPluginError(
                f"'{entry_point}' does not implement name(), execute() and declared_options()"
            )
        return instance

    def discover(self, path: Path) -> PluginHandle:
        """
        Find the first plugin implementation inside an artifact.

        Modules are scanned in sorted order. Archive modules that fail to
        import and classes that fail to instantiate are skipped; a single-file
        artifact that fails to import is reported.
        """
        path = Path(path)
        if not path.is_file():
            raise ArtifactNotFoundError(f"Artifact not found: {path}")

        context = ArtifactContext(path).open()
        try:
            instance = self._first_plugin(context)
        except BaseException:
            context.close()
            raise

        if instance is None:
            collisions = context.host_collisions()
            context.close()
            if collisions:
                raise NotAPluginError(
                    f"No plugin implementation found in {path.name}; its modules "
                    f"{', '.join(collisions)} are hidden by host modules of the same name"
                )
            raise NotAPluginError(f"No plugin implementation found in {path.name}")
        return PluginHandle(instance, context=context)

    def _first_plugin(self, context: ArtifactContext) -> Any | None:
        for module_name in context.module_names():
            try:
                module = context.import_module(module_name)
            except Exception as e:
                if context.kind == "module":
                    raise NotAPluginError(f"Cannot import {context.artifact.name}: {e}") from e
                logger.debug("Skipping unimportable module", module=module_name, error=str(e))
                continue

            for candidate in _candidate_classes(module):
                try:
                    instance = candidate()
                except Exception as e:
                    logger.debug(
                        "Skipping class that cannot be instantiated",
                        candidate=candidate.__qualname__,
                        error=str(e),
                    )
                    continue
                if is_plugin(instance):
                    return instance
        return None
