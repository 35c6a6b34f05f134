"""
Jex CLI Main Entry Point.

Host commands are flags on the first argument; anything else is treated as
a plugin name and the remaining arguments are forwarded to the plugin
untouched.
"""

from __future__ import annotations

import sys
from pathlib import Path
from typing import Sequence

import click
import humanize
from rich.console import Console
from rich.markup import escape
from rich.panel import Panel

from jex import __version__
from jex.core.bootstrap import run_setup
from jex.core.config import JexConfig, load_config
from jex.core.dispatcher import Dispatcher
from jex.core.logging import get_logger, setup_logging
from jex.plugins.errors import JexError
from jex.plugins.manager import PluginManager

console = Console(soft_wrap=True, highlight=False)
err_console = Console(stderr=True, soft_wrap=True, highlight=False)
logger = get_logger(__name__)

CONTEXT_SETTINGS = {
    "ignore_unknown_options": True,
    "allow_interspersed_args": False,
}

HELP_TEXT = """\
Jex - plugin-based CLI host

Usage:
  jex [options]           Run Jex built-in commands
  jex <plugin> [args...]  Run a plugin

Built-in Commands:
     --install, --setup                   Create directories, registry and wrapper script
  -l,--list                               List all installed plugins
  -h,--help                               Display help information
  -v,--version                            Display version
  -c,--config <file>                      Use an alternate config.json

Plugin Management:
     --install-plugin <name> --jar <file>  Install a plugin
     --update-plugin <name> --jar <file>   Update an existing plugin
     --uninstall-plugin <name>             Uninstall a plugin

Examples:
  jex --install                                  Set up Jex
  jex --list                                     List installed plugins
  jex new-plugin my-tool                         Create a new plugin project
  jex new-plugin my-tool --package my_tools      With a custom package
  jex --install-plugin my-tool --jar my-tool.zip
  jex --update-plugin my-tool --jar my-tool.zip
  jex --uninstall-plugin my-tool
  jex <plugin-name> --help                       Show plugin help"""


def _fail(ctx: click.Context, message: str, code: int = 1) -> None:
    err_console.print(f"[red]Error:[/red] {escape(message)}")
    ctx.exit(code)


def _run_lifecycle(
    ctx: click.Context,
    config: JexConfig,
    install_plugin: str | None,
    update_plugin: str | None,
    uninstall_plugin: str | None,
    jar: Path | None,
) -> None:
    manager = PluginManager(config)
    error: str | None = None
    exit_code = 1

    if uninstall_plugin is not None:
        if jar is not None:
            _fail(ctx, "--jar cannot be used with --uninstall-plugin")
        try:
            manager.uninstall(uninstall_plugin)
        except JexError as e:
            error, exit_code = str(e), e.exit_code
        except OSError as e:
            error = f"Cannot uninstall plugin '{uninstall_plugin}': {e}"
        if error is not None:
            _fail(ctx, error, exit_code)
        console.print(f"[green]✓[/green] Uninstalled plugin: {escape(uninstall_plugin)}")
        return

    updating = update_plugin is not None
    verb = "--update-plugin" if updating else "--install-plugin"
    name = update_plugin if updating else install_plugin
    assert name is not None
    if jar is None:
        _fail(ctx, f"Usage: jex {verb} <name> --jar <file>")
    assert jar is not None

    try:
        result = manager.update(name, jar) if updating else manager.install(name, jar)
    except JexError as e:
        error, exit_code = str(e), e.exit_code
    except OSError as e:
        error = f"Cannot {'update' if updating else 'install'} plugin '{name}': {e}"
    if error is not None:
        _fail(ctx, error, exit_code)

    descriptor = result.descriptor
    console.print(
        f"[green]✓[/green] {'Updated' if updating else 'Installed'} plugin: "
        f"{escape(name)} (v{escape(descriptor.version)}, "
        f"{humanize.naturalsize(result.size_bytes, binary=True)})"
    )
    if result.discovered_name and result.discovered_name != name:
        console.print(
            f"[yellow]Note:[/yellow] the artifact identifies itself as "
            f"'{escape(result.discovered_name)}'"
        )


def _show_setup(config: JexConfig) -> None:
    report = run_setup(config)

    for path in report.created:
        console.print(f"Created: {escape(str(path))}")
    for path in report.existing:
        console.print(f"Already exists: {escape(str(path))}")
    console.print(f"Installed wrapper script to: {escape(str(report.wrapper_script))}")

    lines = [
        f"[cyan]Configuration:[/cyan] {escape(str(config.config_directory))}",
        f"[cyan]Plugins:[/cyan] {escape(str(config.plugins_directory))}",
        f"[cyan]Registry:[/cyan] {escape(str(config.registry_file))}",
    ]
    if report.bin_on_path:
        lines.append("\nYou can now run Jex using: jex")
    else:
        lines.append(
            "\n[yellow]Add the bin directory to your PATH:[/yellow]\n"
            f'export PATH="$PATH:{escape(str(config.bin_directory))}"'
        )
    console.print(Panel("\n".join(lines), title="Jex installation completed"))


@click.command(context_settings=CONTEXT_SETTINGS, add_help_option=False)
@click.option("--install", "--setup", "setup", is_flag=True, help="Set up the Jex environment")
@click.option("-l", "--list", "list_plugins", is_flag=True, help="List installed plugins")
@click.option("-h", "--help", "show_help", is_flag=True, help="Display help information")
@click.option("-v", "--version", "show_version", is_flag=True, help="Display version")
@click.option("--install-plugin", metavar="NAME", help="Install a plugin")
@click.option("--update-plugin", metavar="NAME", help="Update an installed plugin")
@click.option("--uninstall-plugin", metavar="NAME", help="Uninstall a plugin")
@click.option("--jar", type=click.Path(path_type=Path), metavar="FILE", help="Plugin artifact")
@click.option(
    "--config",
    "-c",
    "config_path",
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    help="Path to configuration file",
)
@click.argument("argv", nargs=-1, type=click.UNPROCESSED)
@click.pass_context
def cli(
    ctx: click.Context,
    setup: bool,
    list_plugins: bool,
    show_help: bool,
    show_version: bool,
    install_plugin: str | None,
    update_plugin: str | None,
    uninstall_plugin: str | None,
    jar: Path | None,
    config_path: Path | None,
    argv: tuple[str, ...],
) -> None:
    """Jex - plugin-based CLI host."""
    if show_help:
        click.echo(HELP_TEXT)
        ctx.exit(0)
    if show_version:
        click.echo(__version__)
        ctx.exit(0)

    try:
        config = load_config(config_path)
    except (OSError, ValueError) as e:
        _fail(ctx, f"Invalid configuration: {e}")
    setup_logging(config.logging)

    if setup:
        try:
            _show_setup(config)
        except OSError as e:
            _fail(ctx, f"Setup failed: {e}")
        ctx.exit(0)

    if list_plugins:
        Dispatcher(config, console=console, err_console=err_console).list_plugins()
        ctx.exit(0)

    verbs = [v for v in (install_plugin, update_plugin, uninstall_plugin) if v is not None]
    if len(verbs) > 1:
        _fail(ctx, "Use only one of --install-plugin, --update-plugin, --uninstall-plugin")
    if verbs:
        _run_lifecycle(ctx, config, install_plugin, update_plugin, uninstall_plugin, jar)
        ctx.exit(0)
    if jar is not None:
        _fail(ctx, "--jar requires --install-plugin or --update-plugin")

    if not argv:
        click.echo(HELP_TEXT)
        ctx.exit(0)

    dispatcher = Dispatcher(config, console=console, err_console=err_console)
    ctx.exit(dispatcher.run(argv))


def run(argv: Sequence[str] | None = None) -> int:
    """Run the CLI on argv and return the process exit code."""
    try:
        result = cli.main(
            args=list(argv) if argv is not None else None,
            prog_name="jex",
            standalone_mode=False,
        )
    except click.ClickException as e:
        e.show()
        return 1
    except click.Abort:
        err_console.print("\n[yellow]Operation cancelled[/yellow]")
        return 130
    return result if isinstance(result, int) else 0


def main() -> None:
    """Main entry point."""
    sys.exit(run())


if __name__ == "__main__":
    main()
