"""Result caching for read-only tools.

Example:
    >>> from biancatools.cache import TTLCache, make_key
    >>> cache = TTLCache(ttl=60)
    >>> await cache.get_or_compute(make_key("github_list_issues", params), fetch)
"""

from .cache import DEFAULT_TTL, CacheEntry, TTLCache, make_key

__all__ = ["DEFAULT_TTL", "CacheEntry", "TTLCache", "make_key"]
