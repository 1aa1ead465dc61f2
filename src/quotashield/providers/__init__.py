"""
MIT License
Copyright (c) 2026 arpan404
See LICENSE file for full license text.

Module: providers/__init__.py.
"""

from .contracts import SearchProvider
from .youtube import COST_UNITS, MAX_SEARCH_RESULTS, YouTubeSearchProvider, format_duration

__all__ = [
    "SearchProvider",
    "YouTubeSearchProvider",
    "COST_UNITS",
    "MAX_SEARCH_RESULTS",
    "format_duration",
]
