"""Command-line interface for Fleen.

This module defines the CLI commands using Click framework.
Every command works on a site root, the current directory unless --root is given.

Commands:
- build: Build the site into a target directory.
- serve: Run the live preview server.
- deploy: Build into a scratch directory and run the deploy script.
- tree: Print the site tree.
- page new/delete/rename: Simple page management.
"""

from __future__ import annotations

import time
from pathlib import Path

import click
import questionary

from . import __version__
from .errors import FleenError, RenderError
from .tree import DirClose, DirOpen, File

_root_option = click.option(
    "--root",
    type=click.Path(file_okay=False, path_type=Path),
    default=".",
    show_default=True,
    help="Site root directory",
)


def _open_site(root: Path):
    from .site import Site

    try:
        return Site.open(root)
    except FleenError as exc:
        raise click.ClickException(exc.message) from None


def _report_failure(heading: str, exc: FleenError) -> None:
    """Print a failure block and exit with status 1."""
    click.echo(click.style(heading, fg="red", bold=True), err=True)
    if isinstance(exc, RenderError):
        click.echo(click.style(f"  File: {exc.source_path}", fg="yellow"), err=True)
    click.echo(click.style(f"  Error: {exc.message}", fg="white"), err=True)
    raise SystemExit(1)


@click.group()
@click.version_option(version=__version__, prog_name="fleen")
def cli():
    """Fleen personal static site tool."""


@cli.command()
@click.argument("target", type=click.Path(path_type=Path))
@_root_option
def build(target: Path, root: Path):
    """Build the site into TARGET (its contents are replaced)."""
    site = _open_site(root)
    try:
        result = site.build(target)
    except FleenError as exc:
        _report_failure("Build failed:", exc)
    click.echo(f"Built {len(result.pages)} pages into {result.output_dir}")


@cli.command()
@_root_option
@click.option(
    "--port",
    type=int,
    required=False,
    help="Port to run the preview server (overrides _config.yaml)",
)
@click.option(
    "--ws-port",
    type=int,
    required=False,
    help="Port for the live reload websocket server (overrides _config.yaml ws_port)",
)
def serve(root: Path, port: int | None, ws_port: int | None):
    """Run the live preview server."""
    site = _open_site(root)
    server = site.preview_server(http_port=port, ws_port=ws_port)
    server.serve_forever()


@cli.command()
@_root_option
@click.option(
    "--poll-interval",
    type=float,
    default=0.1,
    show_default=True,
    help="Seconds between checks on the running deploy",
)
def deploy(root: Path, poll_interval: float):
    """Build into a scratch directory and run the deploy script there."""
    site = _open_site(root)
    job = site.deploy()
    click.echo("Deploying...")
    result = job.poll()
    while result is None:
        time.sleep(poll_interval)
        result = job.poll()
    if not result.ok:
        _report_failure("Deploy failed:", result.error)
    output = result.output.rstrip()
    click.echo(output if output else "Deploy finished")


@cli.command()
@_root_option
def tree(root: Path):
    """Print the site tree."""
    site = _open_site(root)
    try:
        entries = site.tree()
    except FleenError as exc:
        raise click.ClickException(exc.message) from None
    depth = 0
    for entry in entries:
        if isinstance(entry, DirOpen):
            label = site.root.name if entry.path == Path(".") else entry.path.name
            click.echo(f"{'  ' * depth}{label}/")
            depth += 1
        elif isinstance(entry, DirClose):
            depth -= 1
        elif isinstance(entry, File):
            click.echo(f"{'  ' * depth}{entry.path.name}")


@cli.group()
def page():
    """Create, delete and rename pages."""


@page.command("new")
@click.argument("name", required=False)
@_root_option
@click.option("--parent", default=None, help="Folder to create the page in")
@click.option("--dir", "directory", is_flag=True, help="Create a folder instead")
def page_new(name: str | None, root: Path, parent: str | None, directory: bool):
    """Create an empty page (prompts when NAME is omitted)."""
    site = _open_site(root)
    if name is None:
        folder = questionary.select(
            "Select folder:",
            choices=_get_folders(site),
            style=_questionary_style(),
        ).ask()
        if folder is None:
            raise click.Abort()
        name = questionary.text(
            "Filename:",
            validate=lambda x: len(x.strip()) > 0 or "Filename cannot be empty",
            style=_questionary_style(),
        ).ask()
        if name is None:
            raise click.Abort()
        name = name.strip()
        parent = None if folder == ". (root)" else folder
    try:
        created = site.create_page(name, parent, directory=directory)
    except FleenError as exc:
        raise click.ClickException(exc.message) from None
    click.echo(f"Created {created.relative_to(site.root)}")


@page.command("delete")
@click.argument("path")
@_root_option
@click.option("--yes", is_flag=True, help="Do not ask for confirmation")
def page_delete(path: str, root: Path, yes: bool):
    """Delete the page or folder at PATH."""
    site = _open_site(root)
    if not yes:
        click.confirm(f"Delete {path}?", abort=True)
    try:
        site.delete_page(path)
    except FleenError as exc:
        raise click.ClickException(exc.message) from None
    click.echo(f"Deleted {path}")


@page.command("rename")
@click.argument("path")
@click.argument("new_name")
@_root_option
def page_rename(path: str, new_name: str, root: Path):
    """Rename the page or folder at PATH to NEW_NAME."""
    site = _open_site(root)
    try:
        renamed = site.rename_page(path, new_name)
    except FleenError as exc:
        raise click.ClickException(exc.message) from None
    click.echo(f"Renamed {path} to {renamed.relative_to(site.root)}")


def _get_folders(site) -> list[str]:
    """List the folders of the site tree, root option first."""
    folders = [
        entry.path.as_posix()
        for entry in site.tree()
        if isinstance(entry, DirOpen) and entry.path != Path(".")
    ]
    folders.insert(0, ". (root)")
    return folders


def _questionary_style():
    """Return consistent questionary style."""
    return questionary.Style(
        [
            ("qmark", "fg:cyan bold"),
            ("question", "bold"),
            ("answer", "fg:cyan"),
            ("pointer", "fg:cyan bold"),
            ("highlighted", "fg:cyan bold"),
            ("selected", "fg:cyan"),
        ]
    )


def main():
    """Entry point for the CLI application."""
    cli()
