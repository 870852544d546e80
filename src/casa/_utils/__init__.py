"""
Internal utilities shared across casa submodules.

Not part of the public API.
"""

from .gee import estimate_area_sq_km, normalize_region, require_non_empty, wait_for_tasks

__all__ = [
    "estimate_area_sq_km",
    "normalize_region",
    "require_non_empty",
    "wait_for_tasks",
]
