"""
Jex plugin dispatcher.

Resolves a plugin name against the built-in plugins first and the registry
second, then forwards the remaining arguments to it. Load failures and
plugin crashes are reported and turned into exit codes; they never escape
as tracebacks.
"""

from __future__ import annotations

from typing import Any, Sequence

from rich.console import Console
from rich.markup import escape

from jex.core.config import JexConfig
from jex.core.logging import get_logger
from jex.plugins.base import PluginHandle
from jex.plugins.builtin import InternalPluginSet
from jex.plugins.errors import JexError
from jex.plugins.loader import ArtifactLoader
from jex.plugins.manager import PluginManager
from jex.plugins.registry import RegistryStore

logger = get_logger(__name__)


def exit_code_of(result: Any) -> int:
    """Map a plugin's return value or SystemExit code to a process exit code."""
    if result is None:
        return 0
    if isinstance(result, bool):
        return 0 if result else 1
    if isinstance(result, int):
        return result
    return 0


class Dispatcher:
    """Resolves and runs plugins for a single CLI invocation."""

    def __init__(
        self,
        config: JexConfig,
        internal: InternalPluginSet | None = None,
        store: RegistryStore | None = None,
        loader: ArtifactLoader | None = None,
        console: Console | None = None,
        err_console: Console | None = None,
    ) -> None:
        self.config = config
        self.internal = internal or InternalPluginSet()
        self.store = store or RegistryStore(config.registry_file)
        self.loader = loader or ArtifactLoader(config.plugins_directory)
        self.console = console or Console(soft_wrap=True, highlight=False)
        self.err_console = err_console or Console(stderr=True, soft_wrap=True, highlight=False)

    def resolve(self, name: str) -> PluginHandle | None:
        """
        Find the plugin registered under name.

        Built-ins always win. Returns None when nothing matches; raises a
        JexError when a registered plugin cannot be loaded.
        """
        handle = self.internal.resolve(name)
        if handle is not None:
            logger.debug("Resolved built-in plugin", plugin=name)
            return handle

        descriptor = self.store.load().get(name)
        if descriptor is None:
            return None
        return self.loader.load(descriptor)

    def run(self, argv: Sequence[str]) -> int:
        """Dispatch argv[0] as a plugin name with argv[1:] as its arguments."""
        if not argv:
            self.err_console.print("[red]Error:[/red] No plugin name given")
            return 1

        name, args = argv[0], list(argv[1:])
        try:
            handle = self.resolve(name)
        except JexError as e:
            logger.error("Failed to load plugin", plugin=name, error=str(e))
            self.err_console.print(
                f"[red]Error:[/red] Failed to load plugin '{escape(name)}': {escape(str(e))}"
            )
            return e.exit_code

        if handle is None:
            self.err_console.print(f"[red]Error:[/red] Unknown command or plugin: {escape(name)}")
            self.console.print("\nUse 'jex --help' for usage information.")
            self.list_plugins()
            return 1

        with handle:
            return self._execute(name, handle, args)

    def _execute(self, name: str, handle: PluginHandle, args: list[str]) -> int:
        logger.debug("Executing plugin", plugin=name, args=args)
        try:
            result = handle.execute(args)
        except SystemExit as e:
            if isinstance(e.code, str):
                self.err_console.print(escape(e.code))
                return 1
            return exit_code_of(e.code)
        except Exception as e:
            logger.error("Plugin raised an exception", plugin=name, error=str(e), exc_info=True)
            self.err_console.print(
                f"[red]Error:[/red] Plugin '{escape(name)}' failed: {escape(str(e))}"
            )
            return 1

        code = exit_code_of(result)
        if code != 0:
            logger.info("Plugin exited with non-zero status", plugin=name, exit_code=code)
        return code

    def list_plugins(self) -> None:
        """Print installed plugins, built-ins, and untracked artifacts."""
        manager = PluginManager(self.config, store=self.store, loader=self.loader)
        registry = manager.list_installed()

        if not registry:
            self.console.print("\nNo plugins installed.")
            self.console.print("Install plugins with:")
            self.console.print("  jex --install-plugin <name> --jar <artifact>")
            plugins_directory = escape(str(self.config.plugins_directory))
            self.console.print(f"Plugin artifacts are kept in: {plugins_directory}")
            self.console.print(f"Plugin registry: {escape(str(self.config.registry_file))}")
        else:
            self.console.print("\nInstalled Plugins:")
            for descriptor in registry.values():
                self.console.print(f"  {escape(descriptor.summary())}")
            self.console.print("\nUse 'jex <plugin-name> --help' to see plugin-specific options.")

        builtins = self.internal.describe()
        if builtins:
            self.console.print("\nBuilt-in Plugins:")
            for name, description in builtins:
                line = f"{name} - {description}" if description else name
                self.console.print(f"  {escape(line)}")

        orphans = manager.orphaned_artifacts(registry)
        if orphans:
            self.console.print("\n[yellow]Untracked artifacts in plugins directory:[/yellow]")
            for path in orphans:
                self.console.print(f"  {escape(path.name)}")
            self.console.print("Re-run the install command to register them.")
