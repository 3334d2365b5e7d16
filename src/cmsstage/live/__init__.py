"""Catalog hot reload."""

from cmsstage.live.reload import CatalogWatcher

__all__ = ["CatalogWatcher"]
