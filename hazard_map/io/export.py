"""
Export of hazard-map artifacts.

Each artifact (hazard raster, model diagnostics table, ROC table) is
exported by its own call. Failures are raised as ExportFailure and never
touch the in-memory results, so a failed artifact can simply be exported
again.
"""

import logging
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Dict, Optional, Union

import pandas as pd
from rasterio.errors import RasterioError

from hazard_map.errors import ExportFailure
from hazard_map.io.points import Boundary
from hazard_map.io.raster import BYTE_NODATA, ProbabilitySurface, save_geotiff

logger = logging.getLogger(__name__)


def artifact_names(run_name: str) -> Dict[str, str]:
    """Return the artifact names of a run.

    Keys are "hazard_map", "model" and "roc".
    """
    return {
        "hazard_map": f"{run_name}_hazard_map",
        "model": f"{run_name}_hazard_map_model",
        "roc": f"{run_name}_hazard_map_ROC",
    }


class Exporter(ABC):
    """Destination for hazard-map artifacts."""

    @abstractmethod
    def export_raster(
        self,
        name: str,
        surface: ProbabilitySurface,
        boundary: Optional[Boundary] = None,
    ):
        """Persist a probability surface as a 0-100 byte raster.

        Raises
        ------
        ExportFailure
            If the artifact cannot be written.
        """

    @abstractmethod
    def export_table(self, name: str, table: pd.DataFrame):
        """Persist a table.

        Raises
        ------
        ExportFailure
            If the artifact cannot be written.
        """


class LocalExporter(Exporter):
    """Write artifacts as GeoTIFF and CSV files under a directory.

    Parameters
    ----------
    output_dir : str or Path
        Base output directory.
    folder : str
        Sub-folder artifacts are written to.
    scale : float
        Pixel size of exported rasters (CRS units).
    """

    def __init__(
        self,
        output_dir: Union[str, Path],
        folder: str = "hazardMap",
        scale: float = 30.0,
    ):
        self.output_dir = Path(output_dir)
        self.folder = folder
        self.scale = scale

    @property
    def target_dir(self) -> Path:
        return self.output_dir / self.folder if self.folder else self.output_dir

    def export_raster(
        self,
        name: str,
        surface: ProbabilitySurface,
        boundary: Optional[Boundary] = None,
    ) -> Path:
        path = self.target_dir / f"{name}.tif"
        try:
            export_surface = surface.resample(self.scale)
            if boundary is not None:
                export_surface = export_surface.clip(boundary.mask(export_surface.grid))
            save_geotiff(path, export_surface.to_byte(), export_surface.grid, nodata=BYTE_NODATA)
        except (OSError, RasterioError) as e:
            raise ExportFailure(name, str(e)) from e

        logger.info(f"Exported raster {name} to {path}")
        return path

    def export_table(self, name: str, table: pd.DataFrame) -> Path:
        path = self.target_dir / f"{name}.csv"
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            table.to_csv(path, index=False)
        except OSError as e:
            raise ExportFailure(name, str(e)) from e

        logger.info(f"Exported table {name} to {path}")
        return path


def export_artifacts(
    exporter: Exporter,
    run_name: str,
    surface: ProbabilitySurface,
    diagnostics: pd.DataFrame,
    roc_table: Optional[pd.DataFrame] = None,
    boundary: Optional[Boundary] = None,
) -> Dict[str, object]:
    """
    Export every artifact of a run, one call per artifact.

    A failing artifact is logged and recorded; the remaining artifacts are
    still exported.

    Parameters
    ----------
    exporter : Exporter
        Export destination.
    run_name : str
        Prefix of the artifact names.
    surface : ProbabilitySurface
        Hazard probability surface.
    diagnostics : pd.DataFrame
        Key/value model diagnostics.
    roc_table : pd.DataFrame, optional
        ROC table; skipped when evaluation was not possible.
    boundary : Boundary, optional
        Study area the raster is clipped to.

    Returns
    -------
    dict
        Artifact name -> exporter return value, or the ExportFailure raised.
    """
    names = artifact_names(run_name)
    jobs = [
        (names["hazard_map"], lambda: exporter.export_raster(names["hazard_map"], surface, boundary)),
        (names["model"], lambda: exporter.export_table(names["model"], diagnostics)),
    ]
    if roc_table is not None:
        jobs.append((names["roc"], lambda: exporter.export_table(names["roc"], roc_table)))

    outcomes: Dict[str, object] = {}
    for name, job in jobs:
        try:
            outcomes[name] = job()
        except ExportFailure as e:
            logger.error(str(e))
            outcomes[name] = e

    return outcomes
