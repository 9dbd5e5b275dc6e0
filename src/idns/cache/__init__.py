"""Record cache and its background writer."""

from .record_cache import RecordCache
from .writer import CacheWriter

__all__ = ["RecordCache", "CacheWriter"]
