"""
MIT License
Copyright (c) 2026 arpan404
See LICENSE file for full license text.

Module: services/__init__.py.
"""

from .videos import CATEGORY_KEYWORDS, VideoSearchService, age_group

__all__ = ["VideoSearchService", "CATEGORY_KEYWORDS", "age_group"]
