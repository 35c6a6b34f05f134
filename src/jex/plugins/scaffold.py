"""
Plugin project scaffolding.

Backs the built-in ``new-plugin`` command, which writes a minimal plugin
package that can be zipped and installed with ``jex --install-plugin``.
"""

from __future__ import annotations

import re
from pathlib import Path

import click

from jex.plugins.base import Plugin

PLUGIN_TEMPLATE = '''\
"""{name} - a jex plugin."""

import argparse


class {class_name}:
    """Entry point instantiated by jex."""

    version = "0.1.0"
    description = "{name} plugin"

    def name(self):
        return "{name}"

    def declared_options(self):
        return ["--name", "-n", "--help", "-h"]

    def execute(self, args):
        parser = argparse.ArgumentParser(prog="jex {name}")
        parser.add_argument("-n", "--name", default="World", help="Name to greet")
        options = parser.parse_args(args)
        print(f"Hello, {{options.name}}!")
        return 0
'''

README_TEMPLATE = """\
# {name}

A jex plugin.

## Build and install

    python -m zipfile -c {name}.zip {top_level}/
    jex --install-plugin {name} --jar {name}.zip

## Run

    jex {name} --name Jex
"""


def sanitize_name(name: str) -> str:
    """Lowercase a plugin name and replace anything but [a-z0-9-] with '-'."""
    sanitized = re.sub(r"[^a-z0-9-]", "-", name.strip().lower()).strip("-")
    if not sanitized:
        raise ValueError(f"Invalid plugin name: '{name}'")
    return sanitized


def class_name_for(name: str) -> str:
    """my-tool -> MyToolPlugin"""
    return "".join(part.capitalize() for part in name.split("-") if part) + "Plugin"


def generate_plugin_project(
    name: str,
    directory: Path,
    package: str | None = None,
) -> Path:
    """
    Write a new plugin project under directory/name.

    Returns the project root. Refuses to touch an existing directory.
    """
    name = sanitize_name(name)
    if package is None:
        package = name.replace("-", "_")
        if not package.isidentifier():
            package = f"plugin_{package}"
    parts = package.split(".")
    if not all(part.isidentifier() for part in parts):
        raise ValueError(f"Invalid package name: '{package}'")

    root = Path(directory) / name
    if root.exists():
        raise FileExistsError(f"Directory already exists: {root}")

    package_dir = root.joinpath(*parts)
    package_dir.mkdir(parents=True)
    for depth in range(1, len(parts) + 1):
        init = root.joinpath(*parts[:depth], "__init__.py")
        init.write_text(f'"""{".".join(parts[:depth])} package."""\n', encoding="utf-8")

    (package_dir / "plugin.py").write_text(
        PLUGIN_TEMPLATE.format(name=name, class_name=class_name_for(name)),
        encoding="utf-8",
    )
    (root / "README.md").write_text(
        README_TEMPLATE.format(name=name, top_level=parts[0]),
        encoding="utf-8",
    )
    return root


@click.command(context_settings={"help_option_names": ["-h", "--help"]})
@click.argument("plugin_name")
@click.option("--package", "-p", default=None, help="Python package for the plugin code")
@click.option(
    "--directory",
    "-d",
    type=click.Path(file_okay=False, path_type=Path),
    default=Path("."),
    show_default=True,
    help="Where to create the project",
)
def new_plugin_command(plugin_name: str, package: str | None, directory: Path) -> None:
    """Create a new jex plugin project."""
    try:
        root = generate_plugin_project(plugin_name, directory, package)
    except (ValueError, FileExistsError) as e:
        raise click.ClickException(str(e)) from e

    click.echo(f"Created plugin project: {root}")
    click.echo(f"See {root / 'README.md'} for build and install steps.")


class NewPluginCommand(Plugin):
    """Built-in ``new-plugin`` command."""

    description = "Create a new plugin project"

    def name(self) -> str:
        return "new-plugin"

    def declared_options(self) -> list[str]:
        return ["--package", "-p", "--directory", "-d", "--help", "-h"]

    def execute(self, args: list[str]) -> int:
        try:
            result = new_plugin_command.main(
                args=list(args),
                prog_name="jex new-plugin",
                standalone_mode=False,
            )
        except click.ClickException as e:
            e.show()
            return e.exit_code
        return result if isinstance(result, int) else 0
