"""
Train/test partitioning of labeled point pools.

Each point receives a random partition tag in [0, 1). Points with a tag
below the split fraction go to training, the rest are held out. Events and
non-events are tagged by separate generators spawned from one seed, so the
split is reproducible and keeps the class balance of both partitions.
"""

import logging
from dataclasses import dataclass
from typing import Dict, Optional, Union

import numpy as np
import pandas as pd

from hazard_map.errors import InsufficientEvaluationDataError

logger = logging.getLogger(__name__)

TAG_COLUMN = "random"
POOL_KEYS = ("event", "non_event")


@dataclass(frozen=True)
class SampleSplit:
    """Disjoint training and testing subsets of both class pools.

    Attributes
    ----------
    train_events : pd.DataFrame
        Event points routed to training.
    test_events : pd.DataFrame
        Held-out event points.
    train_non_events : pd.DataFrame
        Non-event points routed to training.
    test_non_events : pd.DataFrame
        Held-out non-event points.
    fraction : float
        Requested training fraction.
    seed : int, optional
        Seed the tags were drawn with.
    """

    train_events: pd.DataFrame
    test_events: pd.DataFrame
    train_non_events: pd.DataFrame
    test_non_events: pd.DataFrame
    fraction: float
    seed: Optional[int] = None

    @property
    def training(self) -> pd.DataFrame:
        """Merged training pool (events first), indexed by (pool, point)."""
        return pd.concat(
            [self.train_events, self.train_non_events], keys=list(POOL_KEYS), names=["pool"]
        )

    @property
    def testing(self) -> pd.DataFrame:
        """Merged held-out pool (events first), indexed by (pool, point)."""
        return pd.concat(
            [self.test_events, self.test_non_events], keys=list(POOL_KEYS), names=["pool"]
        )

    def summary(self) -> Dict[str, float]:
        """Return partition sizes and realized training fractions."""
        n_events = len(self.train_events) + len(self.test_events)
        n_non_events = len(self.train_non_events) + len(self.test_non_events)
        return {
            "n_train_events": len(self.train_events),
            "n_test_events": len(self.test_events),
            "n_train_non_events": len(self.train_non_events),
            "n_test_non_events": len(self.test_non_events),
            "event_train_fraction": len(self.train_events) / n_events if n_events else float("nan"),
            "non_event_train_fraction": (
                len(self.train_non_events) / n_non_events if n_non_events else float("nan")
            ),
        }


def assign_partition_tags(
    points: pd.DataFrame,
    rng: np.random.Generator,
    column: str = TAG_COLUMN,
) -> pd.DataFrame:
    """Return a copy of `points` with a uniform [0, 1) tag column.

    Parameters
    ----------
    points : pd.DataFrame
        Point pool.
    rng : np.random.Generator
        Generator the tags are drawn from, in row order.
    column : str
        Name of the tag column.
    """
    tagged = points.copy()
    tagged[column] = rng.random(len(points))
    return tagged


def _partition(tagged: pd.DataFrame, fraction: float, column: str):
    is_train = tagged[column] < fraction
    return tagged[is_train], tagged[~is_train]


def split_samples(
    events: pd.DataFrame,
    non_events: pd.DataFrame,
    fraction: float = 0.7,
    seed: Union[int, np.random.SeedSequence, None] = 42,
    tag_column: str = TAG_COLUMN,
    verbose: bool = False,
) -> SampleSplit:
    """Split event and non-event pools into training and testing subsets.

    Parameters
    ----------
    events : pd.DataFrame
        Event points (label 1).
    non_events : pd.DataFrame
        Non-event points (label 0).
    fraction : float
        Training fraction in (0, 1).
    seed : int or SeedSequence
        Seed for the partition tags.
    tag_column : str
        Name of the tag column added to each partition.
    verbose : bool
        Print partition sizes.

    Returns
    -------
    SampleSplit
        Four disjoint partitions. Each class's train and test subsets
        together hold exactly that class's points.

    Raises
    ------
    ValueError
        If `fraction` is outside (0, 1) or the pools share index labels.
    InsufficientEvaluationDataError
        If no point is routed to training.
    """
    if not 0.0 < fraction < 1.0:
        raise ValueError(f"fraction must be in (0, 1), got {fraction}")
    if not events.index.is_unique or not non_events.index.is_unique:
        raise ValueError("Point pools must have unique index labels")

    seed_sequence = seed if isinstance(seed, np.random.SeedSequence) else np.random.SeedSequence(seed)
    event_seq, non_event_seq = seed_sequence.spawn(2)

    tagged_events = assign_partition_tags(events, np.random.default_rng(event_seq), tag_column)
    tagged_non_events = assign_partition_tags(
        non_events, np.random.default_rng(non_event_seq), tag_column
    )

    train_events, test_events = _partition(tagged_events, fraction, tag_column)
    train_non_events, test_non_events = _partition(tagged_non_events, fraction, tag_column)

    if len(train_events) + len(train_non_events) == 0:
        raise InsufficientEvaluationDataError(
            f"Training pool is empty ({len(events)} events, {len(non_events)} non-events)"
        )

    split = SampleSplit(
        train_events=train_events,
        test_events=test_events,
        train_non_events=train_non_events,
        test_non_events=test_non_events,
        fraction=fraction,
        seed=seed if isinstance(seed, int) else None,
    )

    summary = split.summary()
    logger.info(
        f"Split events {summary['n_train_events']}/{summary['n_test_events']}, "
        f"non-events {summary['n_train_non_events']}/{summary['n_test_non_events']} "
        f"(train/test, fraction={fraction})"
    )
    if verbose:
        print(f"Training pool: {summary['n_train_events']} events, "
              f"{summary['n_train_non_events']} non-events")
        print(f"Held-out pool: {summary['n_test_events']} events, "
              f"{summary['n_test_non_events']} non-events")

    return split
