"""Catalog store factory.

Provides get_catalog_store() / set_catalog_store() so checkout and flash
sales can run against the Product repository in production and a
substitute in tests.
"""

from marketplace.catalogue.store import CatalogStore, RepositoryCatalogStore

_current_store: CatalogStore | None = None


def get_catalog_store() -> CatalogStore:
    """Return the active catalog store. Defaults to the repository-backed store."""
    global _current_store
    if _current_store is None:
        _current_store = RepositoryCatalogStore()
    return _current_store


def set_catalog_store(store: CatalogStore) -> None:
    global _current_store
    _current_store = store


def reset_catalog_store() -> None:
    global _current_store
    _current_store = None
