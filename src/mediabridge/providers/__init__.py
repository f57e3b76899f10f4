"""Concrete content provider implementations."""

from mediabridge.providers.catalog import CatalogProvider, build_registry, load_catalog

__all__ = ["CatalogProvider", "build_registry", "load_catalog"]
