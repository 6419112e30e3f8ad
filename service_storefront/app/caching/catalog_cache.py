"""
Catalog caches owned by the storefront route layer.
"""

from typing import Any, Dict, List, Optional, TYPE_CHECKING

from shared.logging import get_logger
from .ttl_cache import BoundedTTLCache

if TYPE_CHECKING:  # pragma: no cover - imported for typing only
    from shared.config import BaseConfig
    from shared.metrics import MetricsCollector


CATEGORIES_KEY = "categories"
PUBLIC_SETTINGS_KEY = "public_settings"

DEFAULT_CATEGORIES_TTL = 120
DEFAULT_PRODUCT_TTL = 60
DEFAULT_SETTINGS_TTL = 60


def cache_control_header(max_age: int) -> str:
    """Cache-Control value sent alongside in-process cached responses."""
    return f"public, max-age={max_age}, s-maxage={max_age}, stale-while-revalidate={max_age}"


class CatalogCache:
    """One bounded TTL cache per catalog resource.

    Staleness up to the configured TTL is accepted; entries are never
    invalidated on writes.
    """

    def __init__(
        self,
        *,
        categories_max_entries: int = 50,
        categories_ttl: float = DEFAULT_CATEGORIES_TTL,
        product_max_entries: int = 200,
        product_ttl: float = DEFAULT_PRODUCT_TTL,
        settings_max_entries: int = 20,
        settings_ttl: float = DEFAULT_SETTINGS_TTL,
        metrics: Optional["MetricsCollector"] = None,
    ):
        self.logger = get_logger("storefront.catalog_cache")
        self.metrics = metrics

        self.categories: BoundedTTLCache[List[Dict[str, Any]]] = BoundedTTLCache(categories_max_entries)
        self.products: BoundedTTLCache[Dict[str, Any]] = BoundedTTLCache(product_max_entries)
        self.settings: BoundedTTLCache[Dict[str, Any]] = BoundedTTLCache(settings_max_entries)

        self.categories_ttl = categories_ttl
        self.product_ttl = product_ttl
        self.settings_ttl = settings_ttl

    @classmethod
    def from_config(cls, config: "BaseConfig", metrics: Optional["MetricsCollector"] = None) -> "CatalogCache":
        return cls(
            categories_max_entries=config.categories_cache_max_entries,
            categories_ttl=config.categories_cache_ttl,
            product_max_entries=config.product_cache_max_entries,
            product_ttl=config.product_cache_ttl,
            settings_max_entries=config.settings_cache_max_entries,
            settings_ttl=config.settings_cache_ttl,
            metrics=metrics,
        )

    def _lookup(self, cache_type: str, cache: BoundedTTLCache, key: str) -> Optional[Any]:
        value = cache.get(key)
        if value is None:
            self.logger.debug("Cache miss", cache_type=cache_type, key=key)
            if self.metrics:
                self.metrics.increment_counter("cache_misses_total", cache_type=cache_type)
            return None
        if self.metrics:
            self.metrics.increment_counter("cache_hits_total", cache_type=cache_type)
        return value

    def get_categories(self) -> Optional[List[Dict[str, Any]]]:
        """Get cached active categories."""
        return self._lookup("categories", self.categories, CATEGORIES_KEY)

    def set_categories(self, categories: List[Dict[str, Any]]) -> None:
        self.categories.set(CATEGORIES_KEY, categories, self.categories_ttl)

    def get_product(self, slug: str) -> Optional[Dict[str, Any]]:
        """Get cached product detail payload by slug."""
        return self._lookup("product", self.products, slug)

    def set_product(self, slug: str, payload: Dict[str, Any]) -> None:
        self.products.set(slug, payload, self.product_ttl)

    def get_public_settings(self) -> Optional[Dict[str, Any]]:
        """Get cached public settings."""
        return self._lookup("settings", self.settings, PUBLIC_SETTINGS_KEY)

    def set_public_settings(self, payload: Dict[str, Any]) -> None:
        self.settings.set(PUBLIC_SETTINGS_KEY, payload, self.settings_ttl)

    def stats(self) -> Dict[str, Dict[str, int]]:
        """Entry counts and bounds per cache."""
        return {
            name: {"entries": len(cache), "max_entries": cache.max_entries}
            for name, cache in (
                ("categories", self.categories),
                ("product", self.products),
                ("settings", self.settings),
            )
        }
