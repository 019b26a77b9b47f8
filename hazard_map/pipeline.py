"""
Hazard mapping pipeline.

Provides a unified interface for the complete workflow:
split → feature stack → sampling → training → prediction → ROC → export.
"""

import logging
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Mapping, Optional, Sequence, Union

import pandas as pd

from hazard_map.config import HazardConfig
from hazard_map.errors import InsufficientEvaluationDataError
from hazard_map.features.stack import FeatureStack, build_feature_stack
from hazard_map.features.terrain import derive_terrain_covariates
from hazard_map.io.export import Exporter, LocalExporter, export_artifacts
from hazard_map.io.points import Boundary, load_boundary, load_points
from hazard_map.io.raster import ProbabilitySurface, Raster, load_raster
from hazard_map.ml.roc import ROCResult, evaluate_roc
from hazard_map.ml.sampling import SampledTable, sample_points
from hazard_map.ml.split import SampleSplit, split_samples
from hazard_map.ml.train import (
    ProbabilisticClassifier,
    RandomForestAdapter,
    TrainedClassifier,
)
from hazard_map.reporting.statistics import (
    build_diagnostics_table,
    calculate_all_statistics,
    write_json_report,
)
from hazard_map.utils.spatial import GridSpec

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class HazardResult:
    """Container for the results of one hazard mapping run.

    Attributes
    ----------
    run_name : str
        Name used to label exported artifacts.
    split : SampleSplit
        Train/test partitions of both point pools.
    stack : FeatureStack
        Covariates on the common grid.
    training : SampledTable
        Training table sampled from the stack.
    model : TrainedClassifier
        Trained classifier.
    probability : ProbabilitySurface
        Hazard probability clipped to the boundary (if any).
    diagnostics : pd.DataFrame
        Key/value model diagnostics.
    roc : ROCResult, optional
        ROC evaluation; None if the held-out data was insufficient.
    roc_error : Exception, optional
        Why the ROC evaluation could not run.
    exports : dict
        Artifact name -> export outcome (path or ExportFailure).
    timing : dict
        Seconds spent per stage.
    """

    run_name: str
    split: SampleSplit
    stack: FeatureStack
    training: SampledTable
    model: TrainedClassifier
    probability: ProbabilitySurface
    diagnostics: pd.DataFrame
    roc: Optional[ROCResult] = None
    roc_error: Optional[Exception] = None
    exports: Dict[str, object] = field(default_factory=dict)
    timing: Dict[str, float] = field(default_factory=dict)

    @property
    def hazard_map(self):
        """0-100 byte raster of the clipped probability surface."""
        return self.probability.to_byte()

    @property
    def failed_exports(self) -> List[str]:
        return [name for name, outcome in self.exports.items() if isinstance(outcome, Exception)]


class HazardMapper:
    """Main class for hazard probability mapping.

    Parameters
    ----------
    config : HazardConfig, optional
        Run parameters. Uses defaults if not provided.
    classifier : ProbabilisticClassifier, optional
        Trainable classifier. Defaults to a random forest built from
        ``config.model``.
    exporter : Exporter, optional
        Artifact destination. If None, nothing is exported.

    Examples
    --------
    >>> from hazard_map import HazardMapper, make_points
    >>> mapper = HazardMapper()
    >>> result = mapper.run(events, non_events, covariates, run_name="nepal")
    >>> print(f"AUC = {result.roc.auc:.3f}")
    """

    def __init__(
        self,
        config: Optional[HazardConfig] = None,
        classifier: Optional[ProbabilisticClassifier] = None,
        exporter: Optional[Exporter] = None,
    ):
        self.config = config or HazardConfig()
        self.classifier = classifier or RandomForestAdapter(self.config.model)
        self.exporter = exporter

    def reference_grid(
        self,
        covariates: Sequence[Raster],
        boundary: Optional[Boundary] = None,
    ) -> GridSpec:
        """Grid the stack is built on: boundary (or first covariate) bounds at stack scale."""
        if not covariates:
            raise ValueError("At least one covariate is required")
        reference = covariates[0]
        bounds = boundary.bounds if boundary is not None else reference.bounds
        return GridSpec.from_bounds(bounds, self.config.stack_scale, reference.crs)

    def _prepare_covariates(
        self, covariates: Union[Sequence[Raster], Mapping[str, Raster]]
    ) -> List[Raster]:
        if isinstance(covariates, Mapping):
            rasters = [
                raster if raster.name == key else Raster(
                    name=key,
                    data=raster.data,
                    transform=raster.transform,
                    crs=raster.crs,
                    nodata=raster.nodata,
                    reduction=raster.reduction,
                )
                for key, raster in covariates.items()
            ]
        else:
            rasters = list(covariates)

        if self.config.derive_terrain:
            names = {r.name for r in rasters}
            dem = next((r for r in rasters if r.name == "elevation"), None)
            if dem is None:
                raise ValueError("derive_terrain requires an 'elevation' covariate")
            rasters += [r for r in derive_terrain_covariates(dem) if r.name not in names]

        return rasters

    def run(
        self,
        events: pd.DataFrame,
        non_events: pd.DataFrame,
        covariates: Union[Sequence[Raster], Mapping[str, Raster]],
        boundary: Optional[Boundary] = None,
        run_name: str = "hazard",
        verbose: bool = False,
        exporter: Optional[Exporter] = None,
    ) -> HazardResult:
        """
        Run the full hazard mapping pipeline.

        Splitting and feature assembly run first so that their errors abort
        the run before any training. An empty held-out pool does not abort:
        the model and surface are returned (and exported) without ROC results.

        Parameters
        ----------
        events : pd.DataFrame
            Event points with x and y columns.
        non_events : pd.DataFrame
            Non-event points with x and y columns.
        covariates : sequence of Raster or mapping
            Covariate rasters; time series must carry a reduction.
        boundary : Boundary, optional
            Study area; sets the grid extent and clips the surface.
        run_name : str
            Prefix of exported artifact names.
        verbose : bool
            Print progress information.
        exporter : Exporter, optional
            Artifact destination for this run; overrides the mapper's exporter.

        Returns
        -------
        HazardResult
            Everything the run computed.
        """
        config = self.config
        exporter = exporter if exporter is not None else self.exporter
        label = config.label_column
        timing: Dict[str, float] = {}
        total_start = time.time()

        if verbose:
            print(f"Hazard run '{run_name}': {len(events):,} events, "
                  f"{len(non_events):,} non-events")

        # Step 1: Split both class pools
        t0 = time.time()
        events = events.assign(**{label: 1})
        non_events = non_events.assign(**{label: 0})
        split = split_samples(
            events,
            non_events,
            fraction=config.split_fraction,
            seed=config.seed,
            verbose=verbose,
        )
        timing["split"] = time.time() - t0

        # Step 2: Build the feature stack
        t0 = time.time()
        if verbose:
            print("  Building feature stack...")
        rasters = self._prepare_covariates(covariates)
        grid = self.reference_grid(rasters, boundary)
        stack = build_feature_stack(
            rasters,
            grid,
            band_names=config.bands,
            rename=config.rename,
            resampling=config.resampling,
        )
        timing["feature_stack"] = time.time() - t0

        # Step 3: Sample the training table
        t0 = time.time()
        if verbose:
            print(f"  Sampling {len(split.training):,} training points...")
        training = sample_points(
            stack,
            split.training,
            scale=config.sampling_scale,
            label_column=label,
            on_outside=config.outside_extent,
        )
        if len(training) == 0:
            raise InsufficientEvaluationDataError("No training point could be sampled")
        timing["sampling"] = time.time() - t0

        # Step 4: Train the classifier
        t0 = time.time()
        if verbose:
            print("  Training classifier...")
        model = self.classifier.train(training.table, label, list(stack.band_names))
        timing["training"] = time.time() - t0

        # Step 5: Predict the probability surface
        t0 = time.time()
        if verbose:
            print("  Predicting probability surface...")
        probability = model.predict_probability(stack)
        if boundary is not None:
            probability = probability.clip(boundary.mask(probability.grid))
        diagnostics = build_diagnostics_table(model.explain())
        timing["prediction"] = time.time() - t0

        # Step 6: ROC/AUC evaluation on held-out points
        t0 = time.time()
        if verbose:
            print(f"  Evaluating ROC over {config.roc_steps} cutoffs...")
        roc = None
        roc_error = None
        try:
            roc = evaluate_roc(
                probability,
                split.test_events,
                split.test_non_events,
                minimum=config.roc_min,
                maximum=config.roc_max,
                steps=config.roc_steps,
                scale=config.evaluation_scale,
                n_jobs=config.roc_n_jobs,
                progress=verbose,
            )
        except InsufficientEvaluationDataError as e:
            logger.error(f"ROC evaluation skipped: {e}")
            roc_error = e
        timing["evaluation"] = time.time() - t0

        # Step 7: Export artifacts
        exports: Dict[str, object] = {}
        if exporter is not None:
            t0 = time.time()
            if verbose:
                print("  Exporting artifacts...")
            exports = export_artifacts(
                exporter,
                run_name,
                probability,
                diagnostics,
                roc.table if roc is not None else None,
                boundary=boundary,
            )
            timing["export"] = time.time() - t0

        timing["total"] = time.time() - total_start

        if verbose:
            if roc is not None:
                print(f"  AUC: {roc.auc:.3f}, best cutoff: {roc.best_cutoff:.3f}")
            print(f"  Done in {timing['total']:.2f}s")

        return HazardResult(
            run_name=run_name,
            split=split,
            stack=stack,
            training=training,
            model=model,
            probability=probability,
            diagnostics=diagnostics,
            roc=roc,
            roc_error=roc_error,
            exports=exports,
            timing=timing,
        )

    def run_files(
        self,
        events_path: Path,
        non_events_path: Path,
        covariate_paths: Mapping[str, Union[Path, tuple]],
        output_dir: Path,
        boundary_path: Optional[Path] = None,
        run_name: str = "hazard",
        save_model: bool = True,
        verbose: bool = False,
    ) -> HazardResult:
        """
        Run the pipeline on files and write artifacts plus a JSON report.

        Parameters
        ----------
        events_path, non_events_path : Path
            Point shapefiles or CSV files.
        covariate_paths : mapping
            Covariate name -> raster path, or (path, reduction) for a time series.
        output_dir : Path
            Output directory.
        boundary_path : Path, optional
            Polygon shapefile of the study area.
        run_name : str
            Prefix of artifact names.
        save_model : bool
            Persist the trained model with joblib (random forest only).
        verbose : bool
            Print progress information.

        Returns
        -------
        HazardResult
            Run results.
        """
        output_dir = Path(output_dir)

        events = load_points(events_path, label=1, label_column=self.config.label_column)
        non_events = load_points(non_events_path, label=0, label_column=self.config.label_column)
        boundary = load_boundary(boundary_path) if boundary_path is not None else None

        covariates = []
        for name, source in covariate_paths.items():
            path, reduction = source if isinstance(source, tuple) else (source, None)
            covariates.append(load_raster(path, name=name, reduction=reduction))

        exporter = self.exporter
        if exporter is None:
            exporter = LocalExporter(
                output_dir,
                folder=self.config.export_folder,
                scale=self.config.export_scale,
            )

        result = self.run(
            events,
            non_events,
            covariates,
            boundary=boundary,
            run_name=run_name,
            verbose=verbose,
            exporter=exporter,
        )

        if save_model and hasattr(result.model, "save"):
            result.model.save(output_dir / f"{run_name}_model.joblib")

        report_path = write_json_report(
            calculate_all_statistics(result), output_dir / f"{run_name}_report.json"
        )
        if verbose:
            print(f"  Report written to {report_path}")

        return result
