"""Utility module for pixel grids and footprint sampling."""

from hazard_map.utils.spatial import (
    GridSpec,
    footprint_pixels,
    footprint_reduce,
    inside_mask,
    points_to_pixels,
    sample_footprints,
)

__all__ = [
    "GridSpec",
    "footprint_pixels",
    "footprint_reduce",
    "inside_mask",
    "points_to_pixels",
    "sample_footprints",
]
