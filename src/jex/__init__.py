"""
Jex - plugin-based command-line host.

Resolves a plugin by name at invocation time, loads its code from an
installed artifact, and forwards the remaining arguments to it.
"""

__version__ = "1.0.0"
__author__ = "Jex Team"

from jex.core.config import JexConfig
from jex.core.dispatcher import Dispatcher

__all__ = ["JexConfig", "Dispatcher", "__version__"]
