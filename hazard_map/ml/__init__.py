"""
Machine learning module for hazard probability mapping.

Key components:
- split: Reproducible train/test partitioning of labeled points
- sampling: Training table extraction from a feature stack
- train: Classifier adapter and random forest implementation
- roc: ROC sweep, AUC and best-cutoff selection
"""

from .config import MLConfig
from .split import SampleSplit, assign_partition_tags, split_samples
from .sampling import SampledTable, sample_points
from .train import (
    HazardModel,
    ProbabilisticClassifier,
    RandomForestAdapter,
    TrainedClassifier,
    train_model,
)
from .roc import (
    ROC_COLUMNS,
    ROCResult,
    compute_auc,
    compute_roc_table,
    evaluate_roc,
    extract_scores,
    make_cutoffs,
    roc_points,
    select_best_cutoff,
)

__all__ = [
    "MLConfig",
    # Splitting
    "SampleSplit",
    "assign_partition_tags",
    "split_samples",
    # Sampling
    "SampledTable",
    "sample_points",
    # Classifier
    "HazardModel",
    "ProbabilisticClassifier",
    "RandomForestAdapter",
    "TrainedClassifier",
    "train_model",
    # ROC
    "ROC_COLUMNS",
    "ROCResult",
    "compute_auc",
    "compute_roc_table",
    "evaluate_roc",
    "extract_scores",
    "make_cutoffs",
    "roc_points",
    "select_best_cutoff",
]
