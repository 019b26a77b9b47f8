"""Command-line interface for hazard-map."""

import argparse
import logging
import sys
from pathlib import Path
from typing import Dict, List, Optional, Tuple, Union

from hazard_map import __version__


def create_parser() -> argparse.ArgumentParser:
    """Create argument parser."""
    parser = argparse.ArgumentParser(
        prog="hazard-map",
        description="Hazard probability mapping with random forests and ROC/AUC evaluation",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Train, predict and export a landslide hazard map
  hazard-map run --events slides.shp --non-events non_slides.shp \\
      --covariate elevation=srtm.tif --covariate rainMean=chirps.tif:mean \\
      --boundary district.shp --name nepal -o output/

  # Derive slope and TPI from the elevation covariate
  hazard-map run ... --covariate elevation=srtm.tif --derive-terrain

  # ROC/AUC of an existing probability raster
  hazard-map evaluate hazard.tif --events test_slides.shp \\
      --non-events test_non_slides.shp -o output/
""",
    )

    parser.add_argument(
        "--version",
        action="version",
        version=f"%(prog)s {__version__}",
    )

    subparsers = parser.add_subparsers(dest="command", help="Commands")

    # Run command
    run_parser = subparsers.add_parser(
        "run",
        help="Train a hazard model, predict the map and evaluate it",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    run_parser.add_argument(
        "--events",
        type=Path,
        required=True,
        help="Event (positive) points: shapefile or CSV",
    )
    run_parser.add_argument(
        "--non-events",
        type=Path,
        required=True,
        help="Non-event (negative) points: shapefile or CSV",
    )
    run_parser.add_argument(
        "--covariate",
        action="append",
        default=[],
        metavar="NAME=PATH[:REDUCTION]",
        help="Covariate raster; repeat per covariate. Multi-band time series "
             "need a reduction (mean, max, min, median, sum)",
    )
    run_parser.add_argument(
        "--boundary",
        type=Path,
        help="Study-area polygon shapefile",
    )
    run_parser.add_argument(
        "--name",
        default="hazard",
        help="Run name used for artifact names (default: hazard)",
    )
    run_parser.add_argument(
        "-o", "--output",
        type=Path,
        required=True,
        help="Output directory",
    )
    run_parser.add_argument(
        "-c", "--config",
        type=Path,
        help="Configuration YAML file",
    )
    run_parser.add_argument(
        "--seed",
        type=int,
        default=None,
        help="Random seed for the train/test split",
    )
    run_parser.add_argument(
        "--split",
        type=float,
        default=None,
        help="Training fraction of each class pool (default: 0.7)",
    )
    run_parser.add_argument(
        "--steps",
        type=int,
        default=None,
        help="Number of ROC cutoffs (default: 1000)",
    )
    run_parser.add_argument(
        "--derive-terrain",
        action="store_true",
        help="Derive slope and TPI from the 'elevation' covariate",
    )
    run_parser.add_argument(
        "--no-model",
        action="store_true",
        help="Do not save the trained model",
    )
    run_parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Verbose output",
    )

    # Evaluate command (for existing probability rasters)
    eval_parser = subparsers.add_parser(
        "evaluate",
        help="Compute the ROC table and AUC of a probability raster",
    )
    eval_parser.add_argument(
        "input",
        type=Path,
        help="Probability GeoTIFF (0-1 float or 0-100 byte)",
    )
    eval_parser.add_argument(
        "--events",
        type=Path,
        required=True,
        help="Held-out event points",
    )
    eval_parser.add_argument(
        "--non-events",
        type=Path,
        required=True,
        help="Held-out non-event points",
    )
    eval_parser.add_argument(
        "-o", "--output",
        type=Path,
        required=True,
        help="Output directory",
    )
    eval_parser.add_argument(
        "--name",
        default="hazard",
        help="Run name used for the ROC table name (default: hazard)",
    )
    eval_parser.add_argument("--min", type=float, default=0.0, help="Lowest cutoff (default: 0)")
    eval_parser.add_argument("--max", type=float, default=1.0, help="Highest cutoff (default: 1)")
    eval_parser.add_argument(
        "--steps", type=int, default=1000, help="Number of cutoffs (default: 1000)"
    )
    eval_parser.add_argument(
        "--scale",
        type=float,
        default=100.0,
        help="Footprint size for point scores (default: 100)",
    )
    eval_parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Verbose output",
    )

    return parser


def parse_covariate(value: str) -> Tuple[str, Union[Path, Tuple[Path, str]]]:
    """
    Parse a NAME=PATH[:REDUCTION] covariate argument.

    Raises
    ------
    ValueError
        If the argument has no name or path.
    """
    name, sep, rest = value.partition("=")
    if not sep or not name or not rest:
        raise ValueError(f"Covariate must look like NAME=PATH[:REDUCTION], got {value!r}")

    path_str, reduction = rest, None
    head, colon, tail = rest.rpartition(":")
    # A trailing ":mean" is a reduction; "C:\\..." drive letters are not
    if colon and head and tail and "/" not in tail and "\\" not in tail:
        path_str, reduction = head, tail

    path = Path(path_str)
    return name, (path, reduction) if reduction else path


def main(args: Optional[List[str]] = None) -> int:
    """Main entry point."""
    parser = create_parser()
    parsed = parser.parse_args(args)

    if parsed.command is None:
        parser.print_help()
        return 1

    logging.basicConfig(
        level=logging.INFO if parsed.verbose else logging.WARNING,
        format="%(asctime)s - %(levelname)s - %(message)s",
    )

    try:
        if parsed.command == "run":
            return run_hazard(parsed)
        elif parsed.command == "evaluate":
            return run_evaluate(parsed)
    except KeyboardInterrupt:
        print("\nInterrupted by user")
        return 130
    except Exception as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    return 0


def run_hazard(args) -> int:
    """Run the hazard mapping command."""
    from hazard_map.config import HazardConfig, load_config
    from hazard_map.pipeline import HazardMapper

    # Load configuration
    if args.config:
        if not args.config.exists():
            print(f"Error: Config file not found: {args.config}", file=sys.stderr)
            return 1
        config = load_config(args.config)
        if args.verbose:
            print(f"Loaded config from {args.config}")
    else:
        config = HazardConfig()

    # Apply CLI overrides
    if args.seed is not None:
        config.seed = args.seed
    if args.split is not None:
        if not 0.0 < args.split < 1.0:
            print(f"Error: --split must be in (0, 1), got {args.split}", file=sys.stderr)
            return 1
        config.split_fraction = args.split
    if args.steps is not None:
        if args.steps < 2:
            print(f"Error: --steps must be >= 2, got {args.steps}", file=sys.stderr)
            return 1
        config.roc_steps = args.steps
    if args.derive_terrain:
        config.derive_terrain = True

    # Check inputs
    for path in (args.events, args.non_events, args.boundary):
        if path is not None and not path.exists():
            print(f"Error: Input path not found: {path}", file=sys.stderr)
            return 1
    if not args.covariate:
        print("Error: at least one --covariate is required", file=sys.stderr)
        return 1

    covariates: Dict[str, Union[Path, tuple]] = {}
    for value in args.covariate:
        name, source = parse_covariate(value)
        path = source[0] if isinstance(source, tuple) else source
        if not path.exists():
            print(f"Error: Covariate raster not found: {path}", file=sys.stderr)
            return 1
        covariates[name] = source

    args.output.mkdir(parents=True, exist_ok=True)

    mapper = HazardMapper(config)
    result = mapper.run_files(
        args.events,
        args.non_events,
        covariates,
        args.output,
        boundary_path=args.boundary,
        run_name=args.name,
        save_model=not args.no_model,
        verbose=args.verbose,
    )

    _print_result_summary(result)

    if result.failed_exports:
        print(f"Failed exports: {', '.join(result.failed_exports)}", file=sys.stderr)
        return 1
    return 0


def run_evaluate(args) -> int:
    """Run the ROC evaluation command."""
    from hazard_map.io.export import LocalExporter, artifact_names
    from hazard_map.io.points import load_points
    from hazard_map.io.raster import load_probability_surface
    from hazard_map.ml.roc import evaluate_roc

    for path in (args.input, args.events, args.non_events):
        if not path.exists():
            print(f"Error: Input path not found: {path}", file=sys.stderr)
            return 1

    surface = load_probability_surface(args.input)
    events = load_points(args.events, label=1)
    non_events = load_points(args.non_events, label=0)

    roc = evaluate_roc(
        surface,
        events,
        non_events,
        minimum=args.min,
        maximum=args.max,
        steps=args.steps,
        scale=args.scale,
        progress=args.verbose,
    )

    exporter = LocalExporter(args.output, folder="")
    path = exporter.export_table(artifact_names(args.name)["roc"], roc.table)

    print(f"AUC: {roc.auc:.4f}")
    print(f"Best cutoff: {roc.best_cutoff:.4f} "
          f"(TPR={roc.best['TPR']:.3f}, TNR={roc.best['TNR']:.3f})")
    print(f"ROC table written to {path}")
    return 0


def _print_result_summary(result) -> None:
    """Print a summary of run results."""
    summary = result.split.summary()

    print(f"\n  Summary ({result.run_name}):")
    print(f"    Training: {summary['n_train_events']} events, "
          f"{summary['n_train_non_events']} non-events "
          f"({len(result.training)} sampled)")
    print(f"    Held-out: {summary['n_test_events']} events, "
          f"{summary['n_test_non_events']} non-events")

    explanation = result.model.explain()
    print(f"    Out-of-bag error: {explanation['internal_error_estimate']:.3f}")
    print("    Variable importance:")
    for name, score in explanation["variable_importance"].items():
        print(f"      {name:28s} {score:.4f}")

    if result.roc is not None:
        print(f"    AUC: {result.roc.auc:.3f}")
        print(f"    Best cutoff: {result.roc.best_cutoff:.3f}")
    else:
        print(f"    ROC skipped: {result.roc_error}")

    print(f"    Total time: {result.timing.get('total', 0):.2f}s")


if __name__ == "__main__":
    sys.exit(main())
