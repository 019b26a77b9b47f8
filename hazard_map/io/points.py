"""
Labeled point and boundary inventories.

Reads event/non-event point inventories from point shapefiles or CSV
files and study-area boundaries from polygon shapefiles.
"""

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple, Union

import numpy as np
import pandas as pd
import shapefile
from rasterio.features import geometry_mask

from hazard_map.utils.spatial import GridSpec

logger = logging.getLogger(__name__)


def make_points(
    x,
    y,
    label: Optional[int] = None,
    label_column: str = "label",
) -> pd.DataFrame:
    """Build a labeled point frame from coordinate arrays.

    Parameters
    ----------
    x, y : array-like
        Point coordinates in the covariate CRS.
    label : int, optional
        Binary label for every point (1 = event, 0 = non-event).
    label_column : str
        Name of the label column.

    Returns
    -------
    pd.DataFrame
        Frame with x, y and (if given) label columns.
    """
    x = np.asarray(x, dtype=np.float64)
    y = np.asarray(y, dtype=np.float64)
    if x.shape != y.shape:
        raise ValueError(f"x and y must have the same shape, got {x.shape} and {y.shape}")

    df = pd.DataFrame({"x": x, "y": y})
    if label is not None:
        df[label_column] = _check_label(label)
    return df


def _check_label(label: int) -> int:
    if label not in (0, 1):
        raise ValueError(f"Labels must be 0 or 1, got {label}")
    return int(label)


def load_points(
    path: Union[str, Path],
    label: Optional[int] = None,
    label_column: str = "label",
    x_column: str = "x",
    y_column: str = "y",
    verbose: bool = False,
) -> pd.DataFrame:
    """Load a point inventory from a shapefile or CSV.

    Parameters
    ----------
    path : str or Path
        Point shapefile (.shp) or CSV with coordinate columns.
    label : int, optional
        Label assigned to every point. If None, the label column must
        already be present in the file.
    label_column : str
        Name of the label column.
    x_column, y_column : str
        Coordinate columns of a CSV file.
    verbose : bool
        Print summary.

    Returns
    -------
    pd.DataFrame
        Points with x, y, label and any attribute fields.

    Raises
    ------
    FileNotFoundError
        If the file does not exist.
    ValueError
        If the label cannot be determined.
    """
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Point file not found: {path}")

    if path.suffix.lower() == ".shp":
        df = _read_point_shapefile(path)
    else:
        df = pd.read_csv(path)
        missing = [c for c in (x_column, y_column) if c not in df.columns]
        if missing:
            raise ValueError(f"{path.name} is missing coordinate column(s) {missing}")
        df = df.rename(columns={x_column: "x", y_column: "y"})

    if label is not None:
        df[label_column] = _check_label(label)
    elif label_column not in df.columns:
        raise ValueError(
            f"{path.name} has no '{label_column}' column and no label was given"
        )
    else:
        df[label_column] = df[label_column].astype(int)

    if verbose:
        print(f"Loaded {len(df):,} points from {path.name}")
        print(f"  Label distribution: {df[label_column].value_counts().to_dict()}")

    return df


def _read_point_shapefile(path: Path) -> pd.DataFrame:
    """Read point geometries and attribute records with pyshp."""
    sf = shapefile.Reader(str(path))
    try:
        field_names = [f[0] for f in sf.fields[1:]]
        rows: List[Dict[str, Any]] = []
        skipped = 0

        for shape_rec in sf.iterShapeRecords():
            points = shape_rec.shape.points
            if not points:
                skipped += 1
                continue
            row = dict(zip(field_names, list(shape_rec.record)))
            row["x"] = float(points[0][0])
            row["y"] = float(points[0][1])
            rows.append(row)
    finally:
        sf.close()

    if skipped:
        logger.warning(f"Skipped {skipped} empty geometries in {path.name}")

    columns = ["x", "y"] + [f for f in field_names if f not in ("x", "y")]
    return pd.DataFrame(rows, columns=columns)


@dataclass(frozen=True)
class Boundary:
    """Study-area boundary as GeoJSON-like polygon geometries.

    Attributes
    ----------
    geometries : tuple of dict
        Polygon geometries (``__geo_interface__`` mappings).
    """

    geometries: Tuple[Dict[str, Any], ...]

    def __post_init__(self):
        if not self.geometries:
            raise ValueError("Boundary must contain at least one polygon")

    @classmethod
    def from_polygon(cls, vertices) -> "Boundary":
        """Build a boundary from one exterior ring of (x, y) vertices."""
        ring = [tuple(map(float, v)) for v in vertices]
        if ring[0] != ring[-1]:
            ring.append(ring[0])
        return cls(geometries=({"type": "Polygon", "coordinates": [ring]},))

    @property
    def bounds(self) -> Tuple[float, float, float, float]:
        """Return (left, bottom, right, top) of all polygons."""
        coords = np.array(
            [pt for geom in self.geometries for pt in _iter_coords(geom)],
            dtype=np.float64,
        )
        return (
            float(coords[:, 0].min()),
            float(coords[:, 1].min()),
            float(coords[:, 0].max()),
            float(coords[:, 1].max()),
        )

    def mask(self, grid: GridSpec) -> np.ndarray:
        """Return a (rows, cols) mask, True for pixels inside the boundary."""
        return geometry_mask(
            self.geometries,
            out_shape=grid.shape,
            transform=grid.transform,
            invert=True,
        )


def _iter_coords(geometry: Dict[str, Any]):
    """Yield (x, y) pairs of a Polygon or MultiPolygon mapping."""
    if geometry["type"] == "Polygon":
        polygons = [geometry["coordinates"]]
    else:
        polygons = geometry["coordinates"]
    for polygon in polygons:
        for ring in polygon:
            for pt in ring:
                yield pt[0], pt[1]


def load_boundary(path: Union[str, Path]) -> Boundary:
    """Load a polygon shapefile as a Boundary.

    Raises
    ------
    FileNotFoundError
        If the file does not exist.
    ValueError
        If the file holds no polygon geometries.
    """
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Boundary file not found: {path}")

    sf = shapefile.Reader(str(path))
    try:
        geometries = []
        for shape in sf.shapes():
            geom = shape.__geo_interface__
            if geom["type"] in ("Polygon", "MultiPolygon"):
                geometries.append(geom)
    finally:
        sf.close()

    if not geometries:
        raise ValueError(f"No polygons found in {path.name}")

    return Boundary(geometries=tuple(geometries))
