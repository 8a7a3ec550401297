"""Thin CLI wrapper for bob_builder.

This module provides the command-line interface using Typer.
All business logic is delegated to core modules.
"""

import json
import logging
from pathlib import Path
from typing import Annotated, NoReturn

import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.markup import escape

from bob_builder import __version__
from bob_builder.config import get_settings, print_settings_json
from bob_builder.types import ALL_KINDS, BuildKind

app = typer.Typer(
    name="bob",
    help="bob - build container images and bundles for every project in a repository",
    no_args_is_help=True,
)
console = Console()
err_console = Console(stderr=True)


def configure_logging(level: str) -> None:
    """Send log records to stderr through rich."""
    logging.basicConfig(
        level=level,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=err_console, show_path=False)],
        force=True,
    )


def version_callback(value: bool) -> None:
    """Print version and exit."""
    if value:
        console.print(f"bob-builder version {__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: Annotated[
        bool | None,
        typer.Option(
            "--version",
            "-V",
            help="Show version and exit",
            callback=version_callback,
            is_eager=True,
        ),
    ] = None,
) -> None:
    """bob - build container images and bundles for every project in a repository."""


def _fail(message: str) -> NoReturn:
    err_console.print(f"[red]{escape(message)}[/red]")
    raise typer.Exit(code=1)


@app.command()
def build(
    directory: Annotated[
        Path | None,
        typer.Argument(
            help="Project directory (defaults to the nearest one containing build.yml)"
        ),
    ] = None,
    push: Annotated[
        bool,
        typer.Option("--push", help="Push images and publish bundles"),
    ] = False,
    kind: Annotated[
        str,
        typer.Option(
            "--kind",
            "-k",
            help="Only run builds of this kind ("
            + ", ".join([ALL_KINDS, *(k.value for k in BuildKind)])
            + ")",
        ),
    ] = ALL_KINDS,
    all_projects: Annotated[
        bool,
        typer.Option("--all", help="Build every project in the repository"),
    ] = False,
    changed: Annotated[
        bool,
        typer.Option(
            "--changed",
            help="Build projects changed since their last published artifact",
        ),
    ] = False,
) -> None:
    """Build one project, every project, or every changed project."""
    if all_projects and changed:
        _fail("--all and --changed can not be used together")
    if (all_projects or changed) and directory is not None:
        _fail("A directory can not be passed with --all or --changed")

    from bob_builder.builds.dispatcher import build_project_dir
    from bob_builder.config import load_orchestrator_config
    from bob_builder.projects.changes import find_changed_dirs
    from bob_builder.projects.discovery import find_buildable_dirs, find_project_dir

    settings = get_settings()
    configure_logging(settings.log_level)

    try:
        bob_config = load_orchestrator_config(settings=settings)

        if all_projects:
            paths = find_buildable_dirs(
                bob_config.base_dir, settings.descriptor_filename
            )
        elif changed:
            paths = find_changed_dirs(bob_config, settings)
        elif directory is not None:
            paths = [directory.resolve()]
        else:
            paths = [find_project_dir(descriptor_filename=settings.descriptor_filename)]

        if not paths:
            console.print("[yellow]Nothing to build[/yellow]")
            return

        for path in paths:
            console.print(f"[blue]Building {escape(str(path))}...[/blue]")
            built = build_project_dir(
                path, bob_config, kind=kind, push=push, settings=settings
            )
            console.print(
                f"[green]✓ Built {escape(str(path))} "
                f"({escape(', '.join(built) or 'no matching builds')})[/green]"
            )
    except Exception as e:
        _fail(f"Build failed: {e}")


@app.command()
def projects(
    changed: Annotated[
        bool,
        typer.Option(
            "--changed",
            help="Only list projects changed since their last published artifact",
        ),
    ] = False,
    json_output: Annotated[
        bool,
        typer.Option("--json", help="Output as JSON"),
    ] = False,
) -> None:
    """List buildable projects in the repository."""
    from bob_builder.config import load_orchestrator_config
    from bob_builder.projects.changes import find_changed_dirs
    from bob_builder.projects.discovery import find_buildable_dirs

    settings = get_settings()
    configure_logging(settings.log_level)

    try:
        bob_config = load_orchestrator_config(settings=settings)
        if changed:
            paths = find_changed_dirs(bob_config, settings)
        else:
            paths = find_buildable_dirs(
                bob_config.base_dir, settings.descriptor_filename
            )
    except Exception as e:
        _fail(f"Failed to list projects: {e}")

    if json_output:
        typer.echo(json.dumps([str(p) for p in paths], indent=2))
        return

    if not paths:
        console.print("[yellow]No projects found[/yellow]")
        return

    console.print(f"[bold]Found {len(paths)} project(s):[/bold]")
    for path in paths:
        console.print(f"  [green]{escape(str(path))}[/green]")


@app.command()
def config(
    json_output: Annotated[
        bool,
        typer.Option("--json", help="Output as JSON"),
    ] = False,
) -> None:
    """Show effective configuration."""
    from bob_builder.config import ConfigError, load_orchestrator_config

    settings = get_settings()

    config_error: ConfigError | None = None
    try:
        bob_config = load_orchestrator_config(settings=settings)
    except ConfigError as e:
        bob_config = None
        if e.code != "config_not_found":
            config_error = e

    if json_output:
        output = {
            "settings": json.loads(print_settings_json(settings)),
            "config_path": str(bob_config.config_path) if bob_config else None,
            "config": bob_config.model_dump() if bob_config else None,
            "config_error": str(config_error) if config_error else None,
        }
        typer.echo(json.dumps(output, indent=2))
        return

    tmp_dir_display = str(settings.tmp_dir) if settings.tmp_dir else "(system default)"
    console.print("[bold]Effective Configuration:[/bold]")
    console.print()
    console.print("[bold]Paths:[/bold]")
    console.print(f"  Temp directory:      {tmp_dir_display}")
    console.print(f"  Keep build dirs:     {settings.keep_build_dir}")
    console.print(f"  Descriptor file:     {settings.descriptor_filename}")
    console.print()
    console.print("[bold]Tools:[/bold]")
    console.print(f"  Container tool:      {settings.docker_bin}")
    console.print(f"  Source control:      {settings.git_bin}")
    console.print(f"  Artifact publisher:  {settings.artifactor_bin}")
    console.print(f"  Decryption:          {settings.gpg_bin}")
    console.print()
    console.print("[bold]Operational:[/bold]")
    console.print(f"  Log level:           {settings.log_level}")
    console.print(f"  Manifest timeout:    {settings.manifest_timeout}")
    console.print(f"  Command timeout:     {settings.command_timeout or '(none)'}")
    console.print()
    console.print("[bold]Repository:[/bold]")
    if config_error is not None:
        console.print(f"  [red]{escape(str(config_error))}[/red]")
        return
    if bob_config is None:
        console.print("  [yellow]No bob config found[/yellow]")
        return
    console.print(f"  Config file:         {bob_config.config_path}")
    console.print(f"  Public registry:     {bob_config.public_registry}")
    console.print(f"  Private registry:    {bob_config.private_registry}")
    console.print(f"  Artifact GCS prefix: {bob_config.artifactor_gcs_prefix}")
    console.print(f"  Artifact URL prefix: {bob_config.artifactor_url_prefix}")
