"""aiohttp server for cmsstage.

Application factory wiring the content pipeline from configuration.
"""

from aiohttp import web

from cmsstage.api.content import create_content_routes
from cmsstage.app_keys import catalog_key, pipeline_key, requester_resolver_key
from cmsstage.auth import HeaderRequesterResolver
from cmsstage.config import Config
from cmsstage.core.bindings import BindingRegistry, registry
from cmsstage.core.catalog import Catalog
from cmsstage.core.domains import DomainPolicy
from cmsstage.core.loader import CatalogLoader
from cmsstage.core.pipeline import CatalogHolder, ContentPipeline
from cmsstage.core.portlets import PortletExecutor
from cmsstage.core.renderer import Renderer
from cmsstage.core.templates import TemplateEngine


def create_pipeline(
    config: Config,
    holder: CatalogHolder,
    bindings: BindingRegistry,
    templates: TemplateEngine | None = None,
) -> ContentPipeline:
    """Wire a content pipeline from configuration.

    Args:
        config: Application configuration
        holder: Holder of the content catalog
        bindings: Registry of portlet and route bindings
        templates: Template engine (built from config.content.layouts_dir if None)

    Returns:
        Configured ContentPipeline
    """
    if templates is None:
        templates = TemplateEngine(config.content.layouts_dir)
    executor = PortletExecutor(
        bindings,
        templates,
        timeout=config.portlets.timeout,
        concurrent=config.portlets.concurrent,
    )
    renderer = Renderer(
        templates,
        config.content.files_dir,
        cache_max_age=config.caching.max_age,
    )
    domains = DomainPolicy(
        canonical_host=config.domains.canonical_host,
        scheme=config.domains.scheme,
    )
    return ContentPipeline(
        holder,
        executor,
        renderer,
        domains,
        caching_enabled=config.caching.enabled,
    )


def create_app(
    config: Config,
    *,
    catalog: Catalog | None = None,
    bindings: BindingRegistry | None = None,
) -> web.Application:
    """Create aiohttp application.

    Args:
        config: Application configuration
        catalog: Preloaded catalog (loaded from config.content.file if None)
        bindings: Binding registry (the default registry if None)

    Returns:
        Configured aiohttp application

    Raises:
        FileNotFoundError: If the content file doesn't exist
        ValueError: If the content file is invalid
    """
    app = web.Application()

    if bindings is None:
        bindings = registry
        bindings.load_modules(config.bindings.modules)

    templates = TemplateEngine(config.content.layouts_dir)
    loader = CatalogLoader(config.content.file, bindings, templates)
    holder = CatalogHolder(catalog if catalog is not None else loader.load())

    app[catalog_key] = holder
    app[pipeline_key] = create_pipeline(config, holder, bindings, templates)
    app[requester_resolver_key] = HeaderRequesterResolver(config.auth)

    if config.content.reload:
        from cmsstage.live import CatalogWatcher

        app["catalog_watcher"] = CatalogWatcher(loader, holder)
        app.on_startup.append(_start_catalog_watcher)
        app.on_cleanup.append(_stop_catalog_watcher)

    # Catch-all content route, must be last
    app.router.add_routes(create_content_routes())

    return app


async def _start_catalog_watcher(app: web.Application) -> None:
    """Start catalog watching on application startup."""
    from cmsstage.live import CatalogWatcher

    watcher: CatalogWatcher = app["catalog_watcher"]
    await watcher.start()


async def _stop_catalog_watcher(app: web.Application) -> None:
    """Stop catalog watching on application cleanup."""
    from cmsstage.live import CatalogWatcher

    watcher: CatalogWatcher = app["catalog_watcher"]
    await watcher.stop()


def run_server(config: Config) -> None:
    """Run the server.

    Args:
        config: Application configuration
    """
    app = create_app(config)
    web.run_app(app, host=config.server.host, port=config.server.port)
