"""
Jex Plugin System Base.

Defines the plugin capability set, the persisted plugin descriptor, and the
runtime handle the dispatcher executes.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from types import TracebackType
from typing import TYPE_CHECKING, Any, Protocol, Sequence, runtime_checkable

from pydantic import BaseModel, ConfigDict, Field, field_validator

if TYPE_CHECKING:
    from jex.plugins.loader import ArtifactContext

DEFAULT_VERSION = "1.0.0"
DEFAULT_DESCRIPTION = "A jex plugin"

CAPABILITIES = ("name", "execute", "declared_options")


@runtime_checkable
class SupportsPlugin(Protocol):
    """Structural form of the plugin capability set."""

    def name(self) -> str: ...

    def execute(self, args: list[str]) -> int | None: ...

    def declared_options(self) -> list[str]: ...


class Plugin(ABC):
    """Base class for Jex plugins.

    Inheriting is optional: any object exposing ``name``, ``execute`` and
    ``declared_options`` is accepted by the loader.
    """

    version: str = DEFAULT_VERSION
    description: str = ""

    @abstractmethod
    def name(self) -> str:
        """Return the command name the plugin answers to."""

    @abstractmethod
    def execute(self, args: list[str]) -> int | None:
        """
        Run the plugin with the arguments following its name.

        Returns an exit code; None means success.
        """

    def declared_options(self) -> list[str]:
        """Return the command-line options the plugin understands."""
        return []


def is_plugin(obj: Any) -> bool:
    """Check whether obj satisfies the plugin capability set."""
    if isinstance(obj, type) or not isinstance(obj, SupportsPlugin):
        return False
    return all(callable(getattr(obj, attr, None)) for attr in CAPABILITIES)


def entry_point_of(obj: Any) -> str:
    """Return the ``module:QualName`` entry point of obj's class."""
    cls = type(obj)
    return f"{cls.__module__}:{cls.__qualname__}"


class PluginDescriptor(BaseModel):
    """Registry record of one installed plugin."""

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    name: str = Field(exclude=True, min_length=1)
    artifact_path: str = Field(alias="jar", min_length=1)
    entry_point: str = Field(alias="class", min_length=1)
    version: str = ""
    description: str = ""

    @field_validator("version", "description", mode="before")
    @classmethod
    def coerce_text(cls, v: Any) -> str:
        if v is None:
            return ""
        return str(v)

    def to_entry(self) -> dict[str, str]:
        """Return the on-disk mapping for this descriptor."""
        return self.model_dump(by_alias=True)

    def summary(self) -> str:
        """Return the one-line listing form."""
        if self.version and self.description:
            return f"{self.name} (v{self.version}) - {self.description}"
        if self.description:
            return f"{self.name} - {self.description}"
        if self.version:
            return f"{self.name} (v{self.version})"
        return self.name


class PluginHandle:
    """
    A loaded plugin ready for a single invocation.

    The handle owns the loading context the plugin came from; closing it
    unloads the artifact's modules.
    """

    def __init__(
        self,
        plugin: Any,
        *,
        descriptor: PluginDescriptor | None = None,
        context: ArtifactContext | None = None,
    ) -> None:
        self.plugin = plugin
        self.descriptor = descriptor
        self._context = context

    def name(self) -> str:
        return str(self.plugin.name())

    def execute(self, args: Sequence[str]) -> int | None:
        return self.plugin.execute(list(args))

    def declared_options(self) -> list[str]:
        return list(self.plugin.declared_options())

    @property
    def entry_point(self) -> str:
        return entry_point_of(self.plugin)

    @property
    def version(self) -> str:
        version = getattr(self.plugin, "version", None)
        return str(version) if version else DEFAULT_VERSION

    @property
    def description(self) -> str:
        description = getattr(self.plugin, "description", None)
        return str(description) if description else DEFAULT_DESCRIPTION

    def close(self) -> None:
        """Release the loading context."""
        if self._context is not None:
            self._context.close()
            self._context = None

    def __enter__(self) -> PluginHandle:
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        self.close()
