"""
Classifier adapter for hazard probability prediction.

Defines the capability interface the pipeline relies on (train, predict a
probability surface, explain) and a random forest implementation backed by
scikit-learn.
"""

import json
import logging
import warnings
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence, Union

import numpy as np
import pandas as pd

try:
    from sklearn.ensemble import RandomForestClassifier
    import joblib
except ImportError:
    raise ImportError(
        "scikit-learn and joblib are required. "
        "Install with: pip install scikit-learn joblib"
    )

from hazard_map.errors import InsufficientEvaluationDataError, MissingCovariateError
from hazard_map.features.stack import FeatureStack
from hazard_map.io.raster import ProbabilitySurface
from hazard_map.ml.config import MLConfig

logger = logging.getLogger(__name__)

# Pixels are predicted in blocks to bound memory on large stacks
PREDICTION_BLOCK_SIZE = 1_000_000


class TrainedClassifier(ABC):
    """A trained probabilistic classifier.

    Subclasses provide `feature_names`, `predict_proba` and `explain`;
    surface prediction is shared.
    """

    feature_names: List[str]

    @abstractmethod
    def predict_proba(self, X: pd.DataFrame) -> np.ndarray:
        """Return (N,) event probabilities for a feature frame."""

    @abstractmethod
    def explain(self) -> Dict[str, Any]:
        """Return diagnostics.

        Must contain ``variable_importance`` (band name -> score) and
        ``internal_error_estimate`` (float).
        """

    def predict_probability(self, stack: FeatureStack) -> ProbabilitySurface:
        """
        Predict a probability surface over every pixel of a stack.

        Pixels where any feature band is NaN stay NaN.

        Parameters
        ----------
        stack : FeatureStack
            Stack containing every training feature band.

        Returns
        -------
        ProbabilitySurface
            Surface on the stack grid.

        Raises
        ------
        MissingCovariateError
            If a training feature has no band in the stack.
        """
        missing = [n for n in self.feature_names if n not in stack.band_names]
        if missing:
            raise MissingCovariateError(missing, stack.band_names)

        selected = stack.select(self.feature_names)
        n_bands = selected.n_bands
        pixels = selected.data.reshape(n_bands, -1).T
        valid = np.all(np.isfinite(pixels), axis=1)

        probability = np.full(pixels.shape[0], np.nan, dtype=np.float32)
        valid_idx = np.flatnonzero(valid)
        for start in range(0, len(valid_idx), PREDICTION_BLOCK_SIZE):
            block = valid_idx[start:start + PREDICTION_BLOCK_SIZE]
            X = pd.DataFrame(pixels[block], columns=self.feature_names)
            probability[block] = self.predict_proba(X)

        return ProbabilitySurface(
            data=np.clip(probability, 0.0, 1.0).reshape(stack.shape),
            grid=stack.grid,
        )


class ProbabilisticClassifier(ABC):
    """A trainable probabilistic classifier."""

    @abstractmethod
    def train(
        self,
        table: pd.DataFrame,
        label_column: str,
        feature_columns: Sequence[str],
    ) -> TrainedClassifier:
        """Fit on a training table and return the trained classifier."""


@dataclass
class HazardModel(TrainedClassifier):
    """Trained random forest hazard model.

    Attributes
    ----------
    model : RandomForestClassifier
        Fitted sklearn model.
    feature_names : list of str
        Features in training order.
    feature_importances : dict
        Impurity-based importance per feature.
    oob_error : float
        Out-of-bag error estimate (NaN if not computed).
    config : MLConfig
        Training configuration.
    train_metadata : dict
        Training metadata (sample counts, date).
    """

    model: Any
    feature_names: List[str]
    feature_importances: Dict[str, float]
    oob_error: float
    config: MLConfig
    train_metadata: Dict[str, Any] = field(default_factory=dict)

    def predict_proba(self, X: pd.DataFrame) -> np.ndarray:
        """Predict event probability for each row.

        Parameters
        ----------
        X : pd.DataFrame
            Feature dataframe.

        Returns
        -------
        np.ndarray
            (N,) array of probabilities.
        """
        # Ensure features are in correct order
        X_ordered = X[self.feature_names].values

        # Handle NaN values
        X_ordered = np.nan_to_num(X_ordered, nan=0.0)

        event_col = list(self.model.classes_).index(1)
        return self.model.predict_proba(X_ordered)[:, event_col]

    def explain(self) -> Dict[str, Any]:
        return {
            "variable_importance": dict(self.feature_importances),
            "internal_error_estimate": self.oob_error,
            "number_of_trees": self.config.n_estimators,
        }

    def save(self, path: Union[str, Path]) -> None:
        """Save model to disk.

        Parameters
        ----------
        path : str or Path
            Output path (will save as .joblib).
        """
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)

        joblib.dump(self, path)
        logger.info(f"Model saved to {path}")

        # Also save metadata as JSON for inspection
        metadata_path = path.with_suffix(".json")
        metadata = {
            "feature_names": self.feature_names,
            "feature_importances": self.feature_importances,
            "oob_error": self.oob_error,
            "train_metadata": {
                k: str(v) if isinstance(v, datetime) else v
                for k, v in self.train_metadata.items()
            },
            "config": {
                "n_estimators": self.config.n_estimators,
                "max_depth": self.config.max_depth,
                "min_samples_leaf": self.config.min_samples_leaf,
                "random_state": self.config.random_state,
            },
        }
        with open(metadata_path, "w") as f:
            json.dump(metadata, f, indent=2, default=str)

    @classmethod
    def load(cls, path: Union[str, Path]) -> "HazardModel":
        """Load model from disk."""
        return joblib.load(path)


class RandomForestAdapter(ProbabilisticClassifier):
    """Random forest classifier in probability output mode.

    Parameters
    ----------
    config : MLConfig, optional
        Hyperparameters. Uses defaults if not provided.
    """

    def __init__(self, config: Optional[MLConfig] = None):
        self.config = config or MLConfig()

    def train(
        self,
        table: pd.DataFrame,
        label_column: str,
        feature_columns: Sequence[str],
    ) -> HazardModel:
        return train_model(
            table,
            label_column=label_column,
            feature_columns=feature_columns,
            config=self.config,
        )


def train_model(
    table: pd.DataFrame,
    label_column: str = "label",
    feature_columns: Optional[Sequence[str]] = None,
    config: Optional[MLConfig] = None,
    verbose: bool = False,
) -> HazardModel:
    """Train a random forest on a training table.

    Parameters
    ----------
    table : pd.DataFrame
        Feature columns plus a binary label column.
    label_column : str
        Label column (1 = event, 0 = non-event).
    feature_columns : sequence of str, optional
        Features in order. Defaults to every column except the label.
    config : MLConfig, optional
        Training configuration.
    verbose : bool
        Print training progress.

    Returns
    -------
    HazardModel
        Trained model.

    Raises
    ------
    InsufficientEvaluationDataError
        If the table is empty or holds only one class.
    """
    config = config or MLConfig()

    if label_column not in table.columns:
        raise ValueError(f"Label column '{label_column}' not in training table")
    if feature_columns is None:
        feature_columns = [c for c in table.columns if c != label_column]
    feature_columns = list(feature_columns)
    missing = [c for c in feature_columns if c not in table.columns]
    if missing:
        raise MissingCovariateError(missing, list(table.columns))

    y = table[label_column].values.astype(int)
    classes = np.unique(y)
    if len(y) == 0 or not np.array_equal(classes, [0, 1]):
        raise InsufficientEvaluationDataError(
            f"Training needs both classes; got {len(y)} rows with labels {classes.tolist()}"
        )

    X_array = np.nan_to_num(table[feature_columns].values.astype(np.float64), nan=0.0)

    model = RandomForestClassifier(
        n_estimators=config.n_estimators,
        max_depth=config.max_depth,
        min_samples_leaf=config.min_samples_leaf,
        min_samples_split=config.min_samples_split,
        max_features=config.max_features,
        class_weight=config.class_weight,
        oob_score=config.oob_score,
        bootstrap=True,
        random_state=config.random_state,
        n_jobs=config.n_jobs,
    )

    if verbose:
        print(f"Training random forest ({config.n_estimators} trees) on "
              f"{len(y):,} samples, {len(feature_columns)} features")

    # Few trees leave some samples without out-of-bag votes
    with warnings.catch_warnings():
        warnings.simplefilter("ignore", category=UserWarning)
        model.fit(X_array, y)

    oob_error = float(1.0 - model.oob_score_) if config.oob_score else float("nan")

    feature_importances = dict(
        zip(feature_columns, (float(v) for v in model.feature_importances_))
    )
    feature_importances = dict(
        sorted(feature_importances.items(), key=lambda x: x[1], reverse=True)
    )

    if verbose:
        print(f"  Out-of-bag error estimate: {oob_error:.3f}")
        print("  Feature importances:")
        for i, (feat, imp) in enumerate(feature_importances.items()):
            print(f"    {i+1}. {feat}: {imp:.4f}")

    logger.info(f"Trained random forest on {len(y)} samples (OOB error {oob_error:.3f})")

    return HazardModel(
        model=model,
        feature_names=feature_columns,
        feature_importances=feature_importances,
        oob_error=oob_error,
        config=config,
        train_metadata={
            "train_date": datetime.now(),
            "n_samples": len(y),
            "n_positive": int(y.sum()),
            "n_features": len(feature_columns),
        },
    )
