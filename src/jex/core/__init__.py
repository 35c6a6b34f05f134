"""
Jex Core - host services.

Contains configuration, logging, environment setup, and the plugin
dispatcher.
"""

from jex.core.config import JexConfig, LoggingConfig, load_config
from jex.core.dispatcher import Dispatcher
from jex.core.logging import get_logger, setup_logging

__all__ = [
    "JexConfig",
    "LoggingConfig",
    "load_config",
    "Dispatcher",
    "get_logger",
    "setup_logging",
]
