"""
Storefront caching package.

In-process, process-lifetime caches that shield the database from
repeated catalog reads. Prefer short TTLs; nothing here is coherent
across process instances.
"""

from .ttl_cache import BoundedTTLCache
from .catalog_cache import CatalogCache, cache_control_header

__all__ = [
    "BoundedTTLCache",
    "CatalogCache",
    "cache_control_header",
]
