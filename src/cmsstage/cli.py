"""CLI interface for cmsstage.

Command-line tool for serving, checking and rendering site content.
"""

import asyncio
import logging
import sys
from pathlib import Path
from typing import NoReturn

import click

from cmsstage.config import Config
from cmsstage.core.access import Requester
from cmsstage.core.bindings import registry
from cmsstage.core.catalog import Catalog
from cmsstage.core.loader import CatalogLoader
from cmsstage.core.pipeline import CatalogHolder, ContentRequest
from cmsstage.core.templates import TemplateEngine

_config_option = click.option(
    "--config",
    "-c",
    "config_path",
    type=click.Path(exists=True, path_type=Path, dir_okay=False),
    default=None,
    help="Path to configuration file (default: auto-discover cmsstage.toml)",
)


@click.group()
@click.option("--verbose", "-v", is_flag=True, help="Enable debug logging")
def cli(verbose: bool) -> None:
    """cmsstage - content pages, portlets and access rules served over HTTP."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


@cli.command()
@_config_option
@click.option("--host", default=None, help="Host to bind to (overrides config)")
@click.option("--port", "-p", type=int, default=None, help="Port to bind to (overrides config)")
@click.option(
    "--content-file",
    type=click.Path(exists=True, path_type=Path, dir_okay=False),
    default=None,
    help="Content file (overrides config)",
)
@click.option("--canonical-host", default=None, help="Canonical public host (overrides config)")
@click.option(
    "--caching/--no-caching",
    default=None,
    help="Enable/disable caching mode (overrides config, default: disabled)",
)
@click.option(
    "--reload/--no-reload",
    default=None,
    help="Enable/disable content file hot reload (overrides config, default: disabled)",
)
def serve(
    config_path: Path | None,
    host: str | None,
    port: int | None,
    content_file: Path | None,
    canonical_host: str | None,
    caching: bool | None,
    reload: bool | None,
) -> None:
    """Start the content server."""
    from cmsstage.server import run_server

    config = _load_config(config_path).with_overrides(
        host=host,
        port=port,
        content_file=content_file,
        canonical_host=canonical_host,
        caching_enabled=caching,
        reload=reload,
    )

    click.echo(f"Starting server on {config.server.host}:{config.server.port}")
    click.echo(f"Content file: {config.content.file}")
    click.echo(f"Canonical host: {config.domains.canonical_host}")
    if config.caching.enabled:
        click.echo("Caching mode: enabled (non-editors on other hosts are redirected)")
    else:
        click.echo("Caching mode: disabled")
    if config.content.reload:
        click.echo("Content reload: enabled")

    try:
        run_server(config)
    except (FileNotFoundError, ValueError) as e:
        _fail(e)


@cli.command()
@_config_option
def check(config_path: Path | None) -> None:
    """Validate the content file and list its pages, routes and files."""
    config = _load_config(config_path)
    catalog = _load_catalog(config)

    for page in catalog.pages:
        flags = _lifecycle_flags(page.archived, page.published)
        click.echo(f"page  {page.path}  {page.title!r}  section={page.section}{flags}")
        for route in page.routes:
            click.echo(f"route {route.pattern}  -> {page.path}  handler={route.handler or '-'}")
    for file in catalog.files:
        flags = _lifecycle_flags(file.archived, file.published)
        click.echo(f"file  {file.path}  {file.content_type}  section={file.section}{flags}")

    click.echo(click.style("Content OK", fg="green"))


@cli.command()
@_config_option
@click.argument("path")
@click.option("--host", "request_host", default=None, help="Request host (default: canonical host)")
@click.option("--group", "-g", "groups", multiple=True, help="Requester group (repeatable)")
@click.option("--editor", is_flag=True, help="Render as an editor-capable requester")
@click.option("--edit-mode", is_flag=True, help="Render with session edit mode on")
@click.option("--query", "-q", multiple=True, help="Query parameter as key=value (repeatable)")
@click.option(
    "--caching/--no-caching",
    default=None,
    help="Enable/disable caching mode (overrides config)",
)
def render(
    config_path: Path | None,
    path: str,
    request_host: str | None,
    groups: tuple[str, ...],
    editor: bool,
    edit_mode: bool,
    query: tuple[str, ...],
    caching: bool | None,
) -> None:
    """Render PATH through the pipeline and print the response."""
    from cmsstage.server import create_pipeline

    config = _load_config(config_path).with_overrides(caching_enabled=caching)
    catalog = _load_catalog(config)

    params: dict[str, str] = {}
    for item in query:
        key, sep, value = item.partition("=")
        if not sep:
            raise click.BadParameter(f"expected key=value, got {item!r}", param_hint="--query")
        params[key] = value

    pipeline = create_pipeline(config, CatalogHolder(catalog), registry)
    request = ContentRequest(
        host=request_host or config.domains.canonical_host,
        path=path if path.startswith("/") else f"/{path}",
        query=params,
        requester=Requester(groups=frozenset(groups), is_editor=editor, edit_mode=edit_mode),
    )
    response = asyncio.run(pipeline.handle(request))

    click.echo(f"HTTP {response.status}")
    for name, value in response.headers.items():
        click.echo(f"{name}: {value}")
    click.echo("")
    if response.headers.get("Content-Type", "").startswith("text/"):
        click.echo(response.text)
    else:
        click.echo(f"<{len(response.body)} bytes>")


def _load_config(config_path: Path | None) -> Config:
    try:
        return Config.load(config_path)
    except (FileNotFoundError, ValueError) as e:
        _fail(e)


def _load_catalog(config: Config) -> Catalog:
    try:
        registry.load_modules(config.bindings.modules)
        loader = CatalogLoader(config.content.file, registry, TemplateEngine(config.content.layouts_dir))
        return loader.load()
    except (FileNotFoundError, ValueError, ImportError) as e:
        _fail(e)


def _lifecycle_flags(archived: bool, published: bool) -> str:
    flags = []
    if archived:
        flags.append("archived")
    if not published:
        flags.append("draft")
    return f"  [{', '.join(flags)}]" if flags else ""


def _fail(error: Exception) -> NoReturn:
    click.echo(click.style(f"Error: {error}", fg="red"), err=True)
    sys.exit(1)
