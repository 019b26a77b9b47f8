"""
Configuration for the random forest classifier.
"""

from dataclasses import dataclass
from typing import Optional


@dataclass
class MLConfig:
    """Configuration for random forest training.

    Attributes
    ----------
    n_estimators : int
        Number of trees in the forest.
    max_depth : int or None
        Maximum tree depth.
    min_samples_leaf : int
        Minimum samples per leaf.
    min_samples_split : int
        Minimum samples required to split a node.
    max_features : str or None
        Features considered per split ("sqrt", "log2" or None for all).
    class_weight : str or None
        How to handle class imbalance.
    oob_score : bool
        Estimate the internal error from out-of-bag samples.
    random_state : int
        Random seed for reproducibility.
    n_jobs : int
        Parallel jobs for fitting and prediction.
    """

    n_estimators: int = 10
    max_depth: Optional[int] = None
    min_samples_leaf: int = 1
    min_samples_split: int = 2
    max_features: Optional[str] = "sqrt"
    class_weight: Optional[str] = None
    oob_score: bool = True
    random_state: int = 42
    n_jobs: int = 1

    def __post_init__(self):
        """Validate hyperparameters."""
        if self.n_estimators < 1:
            raise ValueError(f"n_estimators must be >= 1, got {self.n_estimators}")
        if self.min_samples_leaf < 1:
            raise ValueError(
                f"min_samples_leaf must be >= 1, got {self.min_samples_leaf}"
            )
