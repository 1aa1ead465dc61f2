"""
MIT License
Copyright (c) 2026 arpan404
See LICENSE file for full license text.

Module: cache/__init__.py.
"""

from .base import CacheEntry, CacheLookup, ResponseCacheBackend
from .inmemory import InMemoryResponseCache
from .registry import (
    CacheBackendError,
    create_response_cache,
    list_cache_backends,
    register_cache_backend,
)

__all__ = [
    "CacheEntry",
    "CacheLookup",
    "ResponseCacheBackend",
    "InMemoryResponseCache",
    "CacheBackendError",
    "register_cache_backend",
    "create_response_cache",
    "list_cache_backends",
]
