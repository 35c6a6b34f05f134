"""
Errors raised by the plugin registry, loader and manager.

Every error carries the process exit code the CLI reports for it.
"""

from __future__ import annotations


class JexError(Exception):
    """Base class for recoverable Jex failures."""

    exit_code = 1


class InvalidRegistryError(JexError):
    """The persisted plugin registry could not be parsed."""


class ArtifactNotFoundError(JexError):
    """A plugin artifact does not exist where it is expected."""


class EntryPointInvalidError(JexError):
    """A plugin entry point cannot be resolved or instantiated."""


class NotAPluginError(JexError):
    """A loaded object does not provide the plugin capability set."""


class AlreadyInstalledError(JexError):
    """A plugin with the requested name is already registered."""


class NotInstalledError(JexError):
    """No plugin with the requested name is registered."""


class ArtifactConflictError(JexError):
    """The artifact file name is already owned by another plugin."""


class InvalidPluginNameError(JexError):
    """The requested plugin name cannot be used as a registry key."""
