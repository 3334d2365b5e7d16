"""Shared test fixtures."""

import asyncio
from collections.abc import Callable
from pathlib import Path

import pytest
from cmsstage.config import (
    AuthConfig,
    BindingsConfig,
    CachingConfig,
    Config,
    ContentConfig,
    DomainsConfig,
    PortletsConfig,
    ServerConfig,
)
from cmsstage.core.bindings import BindingRegistry, PortletContext, create_registry
from cmsstage.core.catalog import Catalog
from cmsstage.core.pipeline import CatalogHolder, ContentPipeline
from cmsstage.server import create_pipeline


@pytest.fixture
def test_config(tmp_path: Path) -> Config:
    """Create a test configuration with tmp_path directories.

    Canonical host is mysite.com; caching is disabled.
    """
    files_dir = tmp_path / "files"
    files_dir.mkdir(exist_ok=True)
    layouts_dir = tmp_path / "layouts"
    layouts_dir.mkdir(exist_ok=True)

    return Config(
        server=ServerConfig(),
        content=ContentConfig(
            file=tmp_path / "site.toml",
            files_dir=files_dir,
            layouts_dir=layouts_dir,
        ),
        domains=DomainsConfig(canonical_host="mysite.com"),
        caching=CachingConfig(enabled=False),
        portlets=PortletsConfig(timeout=0.5),
        bindings=BindingsConfig(),
        auth=AuthConfig(),
    )


@pytest.fixture
def bindings() -> BindingRegistry:
    """Registry with built-ins plus bindings used across tests."""
    registry = create_registry()

    @registry.register("raise_generic")
    def raise_generic(ctx: PortletContext) -> None:
        raise RuntimeError("portlet exploded")

    @registry.register("set_shared")
    def set_shared(ctx: PortletContext) -> dict[str, str]:
        return {"shared": "changed"}

    @registry.register("slow")
    async def slow(ctx: PortletContext) -> None:
        await asyncio.sleep(5)

    return registry


@pytest.fixture
def make_pipeline(test_config: Config, bindings: BindingRegistry) -> Callable[..., ContentPipeline]:
    """Factory building a pipeline over a catalog.

    Keyword overrides: caching (bool).
    """

    def factory(catalog: Catalog, *, caching: bool = False) -> ContentPipeline:
        config = test_config.with_overrides(caching_enabled=caching)
        return create_pipeline(config, CatalogHolder(catalog), bindings)

    return factory
