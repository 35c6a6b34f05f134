"""
Jex plugin registry store.

The registry is a YAML mapping of plugin name to descriptor fields::

    greet:
      jar: greet.zip
      class: greet.plugin:GreetPlugin
      version: 1.0.0
      description: Says hello

Entries whose value is empty are treated as disabled and skipped. The file
is re-read on every invocation and always replaced atomically.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any

import yaml
from pydantic import ValidationError

from jex.core.atomic import atomic_write_text
from jex.core.logging import get_logger
from jex.plugins.base import PluginDescriptor
from jex.plugins.errors import InvalidRegistryError

logger = get_logger(__name__)

Registry = dict[str, PluginDescriptor]

REGISTRY_HEADER = """\
# Jex Plugin Registry
#
# Managed by `jex --install-plugin`, `--update-plugin` and `--uninstall-plugin`.
# Entries use the following format:
#
# plugin-name:
#   jar: plugin-file.zip
#   class: package.module:PluginClass
#   version: 1.0.0
#   description: "Plugin description"
"""


def parse_registry(text: str, source: str = "<registry>") -> Registry:
    """Parse registry text, raising InvalidRegistryError when malformed."""
    try:
        data = yaml.safe_load(text)
    except yaml.YAMLError as e:
        raise InvalidRegistryError(f"Invalid YAML in {source}: {e}") from e

    if data is None:
        return {}
    if not isinstance(data, dict):
        raise InvalidRegistryError(
            f"Registry {source} must be a mapping of plugin names, got {type(data).__name__}"
        )

    registry: Registry = {}
    for key, value in data.items():
        if not value:
            continue
        name = str(key)
        if not isinstance(value, dict):
            raise InvalidRegistryError(f"Registry entry '{name}' in {source} must be a mapping")
        try:
            registry[name] = PluginDescriptor.model_validate({**value, "name": name})
        except ValidationError as e:
            raise InvalidRegistryError(
                f"Registry entry '{name}' in {source} is invalid: {e}"
            ) from e
    return registry


def dump_registry(registry: Registry) -> str:
    """Serialize a registry to its YAML text form."""
    data: dict[str, Any] = {name: descriptor.to_entry() for name, descriptor in registry.items()}
    body = ""
    if data:
        body = yaml.safe_dump(
            data,
            sort_keys=False,
            default_flow_style=False,
            allow_unicode=True,
        )
    return f"{REGISTRY_HEADER}\n{body}"


class RegistryStore:
    """Reads and writes the registry file at a fixed path."""

    def __init__(self, path: Path) -> None:
        self.path = Path(path)

    def load(self, strict: bool = False) -> Registry:
        """
        Load the registry.

        A missing file yields an empty registry. A malformed file raises
        InvalidRegistryError when strict, otherwise it is logged and an
        empty registry is returned so read-only commands keep working.
        """
        if not self.path.exists():
            return {}

        try:
            text = self.path.read_text(encoding="utf-8")
            return parse_registry(text, source=str(self.path))
        except (InvalidRegistryError, OSError, UnicodeDecodeError) as e:
            if strict:
                if isinstance(e, InvalidRegistryError):
                    raise
                raise InvalidRegistryError(f"Cannot read registry {self.path}: {e}") from e
            logger.warning("Ignoring unreadable plugin registry", path=str(self.path), error=str(e))
            return {}

    def save(self, registry: Registry) -> None:
        """Replace the registry file with the given mapping."""
        atomic_write_text(self.path, dump_registry(registry))
        logger.debug("Saved plugin registry", path=str(self.path), plugins=len(registry))

    def initialize(self) -> bool:
        """Create an empty, documented registry file if none exists."""
        if self.path.exists():
            return False
        atomic_write_text(self.path, REGISTRY_HEADER)
        return True
