"""Reporting module for diagnostics, statistics and run reports."""

from hazard_map.reporting.statistics import (
    build_diagnostics_table,
    calculate_all_statistics,
    calculate_hazard_class_stats,
    calculate_surface_stats,
    summarize_roc,
    write_json_report,
)

__all__ = [
    "build_diagnostics_table",
    "calculate_all_statistics",
    "calculate_hazard_class_stats",
    "calculate_surface_stats",
    "summarize_roc",
    "write_json_report",
]
