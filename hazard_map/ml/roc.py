"""
ROC sweep and AUC evaluation of a probability surface.

Held-out points are scored with the maximum surface value inside their
footprint. A sweep of evenly spaced cutoffs gives one ROC point per cutoff:

- a point is predicted positive when its score is >= cutoff; a score equal
  to the cutoff counts as positive, unlike the strict "score > cutoff" of
  the usual TPR formula
- TPR = events predicted positive / events
- TNR = non-events predicted negative (score < cutoff) / non-events
- FPR = 1 - TNR
- distance = Euclidean distance from (TPR, TNR) to (1, 1)

The area under the curve is integrated with the trapezoidal rule over the
points sorted by FPR, and the best cutoff is the point closest to perfect
classification.
"""

import logging
from dataclasses import dataclass
from typing import Dict, List

import numpy as np
import pandas as pd
from joblib import Parallel, delayed
from tqdm import tqdm

from hazard_map.errors import InsufficientEvaluationDataError
from hazard_map.io.raster import ProbabilitySurface
from hazard_map.utils.spatial import sample_footprints

logger = logging.getLogger(__name__)

ROC_COLUMNS = ["cutoff", "TPR", "TNR", "FPR", "distance"]
SCORE_COLUMN = "susc"


@dataclass(frozen=True)
class ROCResult:
    """Outcome of one ROC evaluation.

    Attributes
    ----------
    table : pd.DataFrame
        ROC points ordered by ascending cutoff (columns ROC_COLUMNS).
    auc : float
        Trapezoidal area under the curve.
    best : pd.Series
        ROC point with the smallest distance to perfect classification.
    n_events : int
        Held-out events that received a score.
    n_non_events : int
        Held-out non-events that received a score.
    """

    table: pd.DataFrame
    auc: float
    best: pd.Series
    n_events: int
    n_non_events: int

    @property
    def best_cutoff(self) -> float:
        return float(self.best["cutoff"])

    def to_dict(self) -> Dict[str, float]:
        return {
            "auc": self.auc,
            "best_cutoff": self.best_cutoff,
            "best_TPR": float(self.best["TPR"]),
            "best_TNR": float(self.best["TNR"]),
            "best_distance": float(self.best["distance"]),
            "n_cutoffs": len(self.table),
            "n_events": self.n_events,
            "n_non_events": self.n_non_events,
        }


def extract_scores(
    surface: ProbabilitySurface,
    points: pd.DataFrame,
    scale: float = 100.0,
    is_target: int = 1,
) -> pd.DataFrame:
    """
    Score held-out points with the surface maximum over their footprint.

    Parameters
    ----------
    surface : ProbabilitySurface
        Predicted probabilities.
    points : pd.DataFrame
        Points with x and y columns.
    scale : float
        Footprint size in CRS units.
    is_target : int
        1 for event points, 0 for non-event points.

    Returns
    -------
    pd.DataFrame
        x, y, SCORE_COLUMN and is_target for every point that received a
        score; points outside the surface or without valid pixels are dropped.
    """
    values, inside = sample_footprints(
        surface.data,
        surface.transform,
        points["x"].values,
        points["y"].values,
        scale=scale,
        statistic="max",
    )
    scored = np.isfinite(values)

    n_dropped = int((~scored).sum())
    if n_dropped:
        logger.warning(
            f"{n_dropped} of {len(points)} held-out points (is_target={is_target}) "
            f"have no surface value ({int((~inside).sum())} outside extent); dropped"
        )

    result = pd.DataFrame(
        {
            "x": points["x"].values[scored],
            "y": points["y"].values[scored],
            SCORE_COLUMN: values[scored],
            "is_target": int(is_target),
        },
        index=points.index[scored],
    )
    return result


def make_cutoffs(minimum: float = 0.0, maximum: float = 1.0, steps: int = 1000) -> np.ndarray:
    """
    Return `steps` evenly spaced cutoffs over [minimum, maximum].

    Both bounds are included, so the sweep has exactly `steps` cutoffs.
    """
    if steps < 2:
        raise ValueError(f"steps must be >= 2, got {steps}")
    if not minimum < maximum:
        raise ValueError(f"minimum ({minimum}) must be below maximum ({maximum})")
    return np.linspace(minimum, maximum, int(steps))


def roc_points(
    cutoffs: np.ndarray,
    event_scores: np.ndarray,
    non_event_scores: np.ndarray,
) -> pd.DataFrame:
    """
    Compute ROC points for a block of cutoffs.

    Each cutoff is evaluated independently of the others.

    Parameters
    ----------
    cutoffs : np.ndarray
        (K,) cutoffs.
    event_scores : np.ndarray
        (N,) scores of held-out events.
    non_event_scores : np.ndarray
        (M,) scores of held-out non-events.

    Returns
    -------
    pd.DataFrame
        K rows with columns ROC_COLUMNS.
    """
    cutoffs = np.asarray(cutoffs, dtype=np.float64)
    event_scores = np.asarray(event_scores, dtype=np.float64)
    non_event_scores = np.asarray(non_event_scores, dtype=np.float64)

    if event_scores.size == 0 or non_event_scores.size == 0:
        raise InsufficientEvaluationDataError(
            f"ROC needs held-out points of both classes; got {event_scores.size} "
            f"events and {non_event_scores.size} non-events"
        )

    true_pos = (event_scores[np.newaxis, :] >= cutoffs[:, np.newaxis]).sum(axis=1)
    true_neg = (non_event_scores[np.newaxis, :] < cutoffs[:, np.newaxis]).sum(axis=1)

    tpr = true_pos / event_scores.size
    tnr = true_neg / non_event_scores.size

    return pd.DataFrame(
        {
            "cutoff": cutoffs,
            "TPR": tpr,
            "TNR": tnr,
            "FPR": 1.0 - tnr,
            "distance": np.sqrt((tpr - 1.0) ** 2 + (tnr - 1.0) ** 2),
        },
        columns=ROC_COLUMNS,
    )


def compute_roc_table(
    event_scores: np.ndarray,
    non_event_scores: np.ndarray,
    minimum: float = 0.0,
    maximum: float = 1.0,
    steps: int = 1000,
    n_jobs: int = 1,
    chunk_size: int = 256,
    progress: bool = False,
) -> pd.DataFrame:
    """
    Sweep cutoffs and return the ROC table.

    Blocks of `chunk_size` cutoffs are evaluated as independent joblib
    tasks and concatenated in cutoff order.

    Parameters
    ----------
    event_scores, non_event_scores : np.ndarray
        Held-out scores per class.
    minimum, maximum : float
        Sweep bounds (inclusive).
    steps : int
        Number of cutoffs.
    n_jobs : int
        Parallel workers (joblib semantics; 1 runs in-process).
    chunk_size : int
        Cutoffs per task.
    progress : bool
        Show a progress bar over the tasks.

    Returns
    -------
    pd.DataFrame
        Exactly `steps` rows ordered by strictly increasing cutoff.

    Raises
    ------
    InsufficientEvaluationDataError
        If either class has no held-out scores.
    """
    event_scores = np.asarray(event_scores, dtype=np.float64)
    non_event_scores = np.asarray(non_event_scores, dtype=np.float64)
    if event_scores.size == 0 or non_event_scores.size == 0:
        raise InsufficientEvaluationDataError(
            f"ROC needs held-out points of both classes; got {event_scores.size} "
            f"events and {non_event_scores.size} non-events"
        )
    if chunk_size < 1:
        raise ValueError(f"chunk_size must be >= 1, got {chunk_size}")

    cutoffs = make_cutoffs(minimum, maximum, steps)
    chunks = [cutoffs[i:i + chunk_size] for i in range(0, len(cutoffs), chunk_size)]

    tasks = (
        delayed(roc_points)(chunk, event_scores, non_event_scores)
        for chunk in tqdm(chunks, desc="ROC sweep", disable=not progress)
    )
    parts: List[pd.DataFrame] = Parallel(n_jobs=n_jobs)(tasks)

    return pd.concat(parts, ignore_index=True)


def compute_auc(table: pd.DataFrame) -> float:
    """
    Integrate the area under the ROC curve with the trapezoidal rule.

    Points are sorted by ascending FPR, then ascending TPR, so that ties in
    FPR trace the curve upward. Each segment contributes
    |FPR[k] - FPR[k-1]| * (TPR[k] + TPR[k-1]) / 2.
    """
    if len(table) < 2:
        raise ValueError("AUC needs at least two ROC points")

    order = np.lexsort((table["TPR"].values, table["FPR"].values))
    fpr = table["FPR"].values[order]
    tpr = table["TPR"].values[order]

    widths = np.abs(np.diff(fpr))
    heights = (tpr[1:] + tpr[:-1]) / 2.0
    return float(np.sum(widths * heights))


def select_best_cutoff(table: pd.DataFrame) -> pd.Series:
    """
    Return the ROC point closest to perfect classification.

    Ties in distance go to the smallest cutoff.
    """
    if table.empty:
        raise ValueError("ROC table is empty")
    order = np.lexsort((table["cutoff"].values, table["distance"].values))
    return table.iloc[order[0]]


def evaluate_roc(
    surface: ProbabilitySurface,
    test_events: pd.DataFrame,
    test_non_events: pd.DataFrame,
    minimum: float = 0.0,
    maximum: float = 1.0,
    steps: int = 1000,
    scale: float = 100.0,
    n_jobs: int = 1,
    progress: bool = False,
) -> ROCResult:
    """
    Evaluate a probability surface against held-out points.

    Parameters
    ----------
    surface : ProbabilitySurface
        Predicted probabilities.
    test_events, test_non_events : pd.DataFrame
        Held-out points with x and y columns.
    minimum, maximum, steps : float, float, int
        Sweep definition.
    scale : float
        Footprint size for score extraction.
    n_jobs : int
        Parallel workers for the sweep.
    progress : bool
        Show a progress bar.

    Returns
    -------
    ROCResult
        ROC table, AUC and best cutoff.

    Raises
    ------
    InsufficientEvaluationDataError
        If either held-out pool is empty or receives no scores.
    """
    if len(test_events) == 0 or len(test_non_events) == 0:
        raise InsufficientEvaluationDataError(
            f"Held-out pools must not be empty; got {len(test_events)} events "
            f"and {len(test_non_events)} non-events"
        )

    events = extract_scores(surface, test_events, scale=scale, is_target=1)
    non_events = extract_scores(surface, test_non_events, scale=scale, is_target=0)

    table = compute_roc_table(
        events[SCORE_COLUMN].values,
        non_events[SCORE_COLUMN].values,
        minimum=minimum,
        maximum=maximum,
        steps=steps,
        n_jobs=n_jobs,
        progress=progress,
    )
    auc = compute_auc(table)
    best = select_best_cutoff(table)

    logger.info(
        f"ROC over {len(events)} events / {len(non_events)} non-events: "
        f"AUC={auc:.3f}, best cutoff={best['cutoff']:.3f}"
    )

    return ROCResult(
        table=table,
        auc=auc,
        best=best,
        n_events=len(events),
        n_non_events=len(non_events),
    )
