"""Command-line interface for Forge.

This module defines the CLI commands using the Click framework.

Commands:
- dev: Run the development server with live reload.
- build: Build the site into the output directory.
- serve: Preview a finished build.
"""

from __future__ import annotations

import time
from pathlib import Path
from typing import NoReturn

import click

from . import __version__
from .errors import ForgeError
from .log import configure_logging


@click.group(invoke_without_command=True)
@click.option("-v", "--verbose", is_flag=True, help="Enable debug logging")
@click.option("--log-json", is_flag=True, help="Emit logs as JSON lines")
@click.version_option(version=__version__, prog_name="forge")
@click.pass_context
def cli(ctx: click.Context, verbose: bool, log_json: bool):
    """Forge static site generator."""
    configure_logging(verbose=verbose, log_json=log_json)
    if ctx.invoked_subcommand is None:
        click.echo(ctx.get_help())
        ctx.exit(1)


def _fail(exc: ForgeError, project_root: Path, title: str) -> NoReturn:
    """Print a ForgeError and exit with status 1."""
    click.echo(click.style(f"{title}:", fg="red", bold=True), err=True)
    if exc.source_path is not None:
        path = Path(exc.source_path)
        try:
            path = path.relative_to(project_root)
        except ValueError:
            pass
        click.echo(click.style(f"  File: {path}", fg="yellow"), err=True)
    click.echo(click.style(f"  Error: {exc.message}", fg="white"), err=True)
    raise SystemExit(1)


@cli.command()
@click.option("--port", type=int, required=False, help="HTTP port (overrides forge.yaml)")
@click.option(
    "--ws-port",
    type=int,
    required=False,
    help="Port for the live reload websocket server (overrides forge.yaml ws_port)",
)
def dev(port: int | None, ws_port: int | None):
    """Run dev server with live reload."""
    project_root = Path.cwd()
    from .builder import SiteBuilder
    from .server import DevServer

    try:
        builder = SiteBuilder.from_project(project_root, dev_mode=True)
        discovered = builder.discover_content()
        builder.version.bump()
        server = DevServer(builder, port=port, ws_port=ws_port)
        server.start()
    except ForgeError as exc:
        _fail(exc, project_root, "Dev server failed to start")

    click.echo(click.style("Forge dev server ready", fg="green", bold=True))
    for url, page in builder.pages().items():
        click.echo(f"  {click.style('->', fg='blue')} {url:<30} ({page.content_type})")
    click.echo(f"  HTTP:       http://localhost:{server.port}")
    click.echo(f"  WebSocket:  {server.ws_url}")
    click.echo(f"  Pages:      {discovered.page_count}")
    click.echo("Press Ctrl+C to stop.")
    try:
        while True:
            time.sleep(1)
    except KeyboardInterrupt:
        click.echo("\nShutting down...")
    finally:
        server.stop()


@cli.command()
@click.option(
    "--output",
    type=click.Path(file_okay=False, path_type=Path),
    required=False,
    help="Output directory (overrides forge.yaml output_dir)",
)
def build(output: Path | None):
    """Build the site into the output directory."""
    project_root = Path.cwd()
    from .builder import SiteBuilder

    try:
        builder = SiteBuilder.from_project(project_root)
        builder.discover_content()
        builder.version.bump()
        report = builder.export_static_site(output)
    except ForgeError as exc:
        _fail(exc, project_root, "Build failed")

    for result in report.pages:
        if result.ok:
            click.echo(f"  {click.style('✓', fg='green')} {result.url}")
        else:
            click.echo(f"  {click.style('✗', fg='red')} {result.url}: {result.error}", err=True)
    assets = report.assets.total if report.assets else 0
    click.echo(
        f"Built {report.succeeded} pages ({report.failed} errors) and {assets} assets "
        f"into {report.output_dir} in {report.duration_ms:.0f}ms"
    )
    if not report.ok:
        raise SystemExit(1)


@cli.command()
@click.option("--port", type=int, required=False, help="HTTP port (overrides forge.yaml)")
def serve(port: int | None):
    """Preview the built site."""
    project_root = Path.cwd()
    from .config import load_config
    from .server import PreviewServer

    try:
        config = load_config(project_root)
        server = PreviewServer(config.output_path, port=port or config.port)
    except ForgeError as exc:
        _fail(exc, project_root, "Preview failed")

    file_count, total_size = server.stats()
    click.echo(click.style("Preview server", fg="cyan", bold=True))
    click.echo(f"  Directory: {server.output_dir}")
    click.echo(f"  Files: {file_count} ({total_size / 1024:.1f} KB)")
    click.echo(f"  Local: http://localhost:{server.port}")
    server.serve_forever()


def main():
    """Entry point for the CLI application."""
    cli()
