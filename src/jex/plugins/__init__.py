"""
Jex Plugin System.

Registry persistence, artifact loading, and the install/update/uninstall
lifecycle for externally built plugins.
"""

from jex.plugins.base import Plugin, PluginDescriptor, PluginHandle
from jex.plugins.builtin import InternalPluginSet
from jex.plugins.loader import ArtifactLoader
from jex.plugins.manager import PluginManager
from jex.plugins.registry import RegistryStore

__all__ = [
    "Plugin",
    "PluginDescriptor",
    "PluginHandle",
    "InternalPluginSet",
    "ArtifactLoader",
    "PluginManager",
    "RegistryStore",
]
