"""Command-line interface for Kiln.

This module defines the CLI commands using the Click framework.

Commands:
- build: Build the site into the output directory.
- serve: Run the development server with live reload.
- clean: Remove the output directory.
"""

from __future__ import annotations

import asyncio
from pathlib import Path

import click

from . import __version__
from .config import load_config
from .logging import configure_logging
from .site import Site


def _load_site(production: bool | None = None) -> Site:
    return Site(load_config(Path.cwd(), production=production))


@click.group()
@click.version_option(version=__version__, prog_name="kiln")
def cli():
    """Kiln static site generator."""


@cli.command()
@click.option("--production", is_flag=True, help="Minify and compress the output")
@click.option("-v", "--verbose", is_flag=True, help="Show debug output")
def build(production: bool, verbose: bool):
    """Build the site into the output directory."""
    configure_logging(verbose=verbose)
    from .build import BuildError, build_site

    site = _load_site(production or None)
    try:
        asyncio.run(build_site(site))
    except BuildError as exc:
        click.echo(click.style("Build failed:", fg="red", bold=True), err=True)
        for error in exc.errors or [exc]:
            click.echo(click.style(f"  {error}", fg="red"), err=True)
        raise SystemExit(1) from None
    click.echo(f"Built {len(list(site.get_pages()))} pages into {site.config.out}")


@cli.command()
@click.option(
    "--port",
    type=int,
    required=False,
    help="Port to run the dev server (overrides kiln.yaml)",
)
@click.option(
    "--ws-port",
    type=int,
    required=False,
    help="Port for the live reload websocket server (overrides kiln.yaml ws_port)",
)
@click.option("-v", "--verbose", is_flag=True, help="Show debug output")
def serve(port: int | None, ws_port: int | None, verbose: bool):
    """Run dev server with live reload."""
    configure_logging(verbose=verbose)
    from .server import DevServer

    server = DevServer(_load_site(production=False), http_port=port, ws_port=ws_port)
    server.run()


@cli.command()
def clean():
    """Remove the output directory."""
    configure_logging()
    from .build import clean as clean_output
    from .fs import FSError

    site = _load_site()
    try:
        asyncio.run(clean_output(site.config))
    except FSError as exc:
        raise click.ClickException(str(exc)) from None
    click.echo(f"Removed {site.config.out}")


def main():
    """Entry point for the CLI application."""
    cli()
