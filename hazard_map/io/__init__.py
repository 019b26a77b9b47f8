"""I/O module for rasters, point inventories and artifact export."""

from hazard_map.io.raster import (
    BYTE_NODATA,
    ProbabilitySurface,
    Raster,
    load_probability_surface,
    load_raster,
    save_geotiff,
)
from hazard_map.io.points import (
    Boundary,
    load_boundary,
    load_points,
    make_points,
)
from hazard_map.io.export import (
    Exporter,
    LocalExporter,
    artifact_names,
    export_artifacts,
)

__all__ = [
    "BYTE_NODATA",
    "ProbabilitySurface",
    "Raster",
    "load_probability_surface",
    "load_raster",
    "save_geotiff",
    "Boundary",
    "load_boundary",
    "load_points",
    "make_points",
    "Exporter",
    "LocalExporter",
    "artifact_names",
    "export_artifacts",
]
