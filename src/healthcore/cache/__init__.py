"""Cache package for healthcore-sdk."""
from __future__ import annotations

from healthcore.cache.result_cache import CacheEntry, CacheMetrics, ResultCache

__all__ = ["CacheEntry", "CacheMetrics", "ResultCache"]
