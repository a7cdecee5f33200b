"""
Example sets consumed by meta-learners.

An ``ExampleSet`` couples a feature frame with nominal labels encoded as
class indices, an optional per-row weight vector, and the predictions and
per-class confidences a model attaches when it is applied.
"""

from __future__ import annotations

from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Iterator, Sequence

import numpy as np
import pandas as pd

from ..core.contracts import DataError


@dataclass
class ExampleSet:
    """Labeled (or unlabeled) rows with optional weights and predictions.

    Labels are integer indices into ``classes``. Indices outside
    ``range(len(classes))`` are tolerated here and treated as anomalies by
    the performance measures.
    """

    features: pd.DataFrame
    labels: np.ndarray | None
    classes: list[str]
    weights: np.ndarray | None = None
    predictions: np.ndarray | None = None
    confidences: np.ndarray | None = None
    metadata: dict = field(default_factory=dict)

    def __post_init__(self):
        n = len(self.features)
        self.classes = [str(c) for c in self.classes]

        if self.labels is not None:
            self.labels = np.asarray(self.labels, dtype=np.int64)
            if self.labels.shape != (n,):
                raise DataError(f"Expected {n} labels, got shape {self.labels.shape}")

        if self.weights is not None:
            self.weights = np.asarray(self.weights, dtype=np.float64)
            if self.weights.shape != (n,):
                raise DataError(f"Expected {n} weights, got shape {self.weights.shape}")

        if self.predictions is not None:
            self.set_predictions(self.predictions, self.confidences)

    # ==================== Construction ====================

    @classmethod
    def from_frame(
        cls,
        df: pd.DataFrame,
        label_column: str | None,
        weight_column: str | None = None,
        classes: Sequence | None = None,
    ) -> "ExampleSet":
        """
        Build an example set from a DataFrame.

        Args:
            df: Source frame
            label_column: Nominal label column (None for unlabeled data)
            weight_column: Optional column holding example weights
            classes: Explicit class order; inferred from the data if omitted

        Returns:
            ExampleSet whose features are every remaining column

        Raises:
            DataError: If a column is missing or the label is not nominal
        """
        for column in (label_column, weight_column):
            if column is not None and column not in df.columns:
                raise DataError(f"Column '{column}' not found in frame")

        drop = [c for c in (label_column, weight_column) if c is not None]
        features = df.drop(columns=drop)

        weights = None
        if weight_column is not None:
            weights = df[weight_column].to_numpy(dtype=np.float64, copy=True)

        if label_column is None:
            return cls(features=features, labels=None, classes=list(classes or []), weights=weights)

        raw = df[label_column]
        if pd.api.types.is_float_dtype(raw):
            values = raw.dropna().to_numpy()
            if not np.all(np.equal(np.mod(values, 1), 0)):
                raise DataError(f"Label '{label_column}' is numeric, a nominal label is required")
            raw = raw.astype("Int64")

        categorical = pd.Categorical(raw, categories=list(classes) if classes is not None else None)
        labels = categorical.codes.astype(np.int64)
        if np.any(labels < 0):
            raise DataError(
                f"Label '{label_column}' has {int(np.sum(labels < 0))} missing or unknown values"
            )

        return cls(
            features=features,
            labels=labels,
            classes=[str(c) for c in categorical.categories],
            weights=weights,
        )

    # ==================== Shape ====================

    def __len__(self) -> int:
        return len(self.features)

    @property
    def number_of_classes(self) -> int:
        return len(self.classes)

    @property
    def is_binary(self) -> bool:
        return len(self.classes) == 2

    @property
    def positive_index(self) -> int:
        """Index of the positive class of a binary label."""
        return 1

    @property
    def negative_index(self) -> int:
        """Index of the negative class of a binary label."""
        return 0

    @property
    def has_weights(self) -> bool:
        return self.weights is not None

    # ==================== Copies and views ====================

    def clone(self) -> "ExampleSet":
        """Copy every mutable array; the feature frame is shared read-only."""
        return ExampleSet(
            features=self.features,
            labels=None if self.labels is None else self.labels.copy(),
            classes=list(self.classes),
            weights=None if self.weights is None else self.weights.copy(),
            predictions=None if self.predictions is None else self.predictions.copy(),
            confidences=None if self.confidences is None else self.confidences.copy(),
            metadata=dict(self.metadata),
        )

    def select(self, indices: np.ndarray | Sequence[int]) -> "ExampleSet":
        """Return the rows at ``indices`` (positional, duplicates allowed) as a new set."""
        indices = np.asarray(indices, dtype=np.int64)
        return ExampleSet(
            features=self.features.iloc[indices].reset_index(drop=True),
            labels=None if self.labels is None else self.labels[indices],
            classes=list(self.classes),
            weights=None if self.weights is None else self.weights[indices],
            predictions=None if self.predictions is None else self.predictions[indices],
            confidences=None if self.confidences is None else self.confidences[indices],
            metadata=dict(self.metadata),
        )

    def with_labels(self, labels: np.ndarray, classes: Sequence) -> "ExampleSet":
        """Return a copy whose label is replaced, e.g. by a binary decomposition target."""
        return ExampleSet(
            features=self.features,
            labels=labels,
            classes=list(classes),
            weights=None if self.weights is None else self.weights.copy(),
            metadata=dict(self.metadata),
        )

    # ==================== Predictions ====================

    def set_predictions(self, predictions: np.ndarray, confidences: np.ndarray | None = None):
        """Attach crisp predictions and optional (n x C) confidences."""
        n = len(self)
        predictions = np.asarray(predictions, dtype=np.int64)
        if predictions.shape != (n,):
            raise DataError(f"Expected {n} predictions, got shape {predictions.shape}")

        if confidences is not None:
            confidences = np.asarray(confidences, dtype=np.float64)
            if confidences.shape != (n, self.number_of_classes):
                raise DataError(
                    f"Expected confidences of shape {(n, self.number_of_classes)}, "
                    f"got {confidences.shape}"
                )

        self.predictions = predictions
        self.confidences = confidences

    def remove_predictions(self):
        self.predictions = None
        self.confidences = None

    def predicted_labels(self) -> list[str | None]:
        """Class names of the crisp predictions (None for out-of-range indices)."""
        if self.predictions is None:
            raise DataError("Example set carries no predictions")
        return [
            self.classes[p] if 0 <= p < self.number_of_classes else None
            for p in self.predictions
        ]

    # ==================== Weights ====================

    def ensure_weights(self, value: float = 1.0) -> bool:
        """Create a constant weight vector if none exists.

        Returns:
            True if a new weight vector was created
        """
        if self.weights is not None:
            return False
        self.weights = np.full(len(self), value, dtype=np.float64)
        return True

    def total_weight(self) -> float:
        if self.weights is None:
            return float(len(self))
        return float(np.sum(self.weights))

    def class_weights(self) -> np.ndarray:
        """Total weight per class; rows with unknown labels or illegal weights are ignored."""
        if self.labels is None:
            raise DataError("Example set is unlabeled")
        weights = self.weights if self.weights is not None else np.ones(len(self))
        known = (self.labels >= 0) & (self.labels < self.number_of_classes)
        known &= np.isfinite(weights) & (weights >= 0)
        return np.bincount(
            self.labels[known], weights=weights[known], minlength=self.number_of_classes
        ).astype(np.float64)


def check_trainable(example_set: ExampleSet, binary: bool = False):
    """
    Reject example sets no meta-learner can train on.

    Args:
        example_set: Candidate training data
        binary: Additionally require a binary label

    Raises:
        DataError: If the set is unlabeled, empty, has no attributes,
            or violates the label arity requirement
    """
    if example_set.labels is None:
        raise DataError("Example set has no label")
    if len(example_set) == 0:
        raise DataError("Example set is empty")
    if example_set.features.shape[1] == 0:
        raise DataError("Example set has no regular attributes")
    if example_set.number_of_classes == 0:
        raise DataError("Label has no classes")
    if binary and not example_set.is_binary:
        raise DataError(
            f"A binary label is required, got {example_set.number_of_classes} classes"
        )


@contextmanager
def preserved_weights(example_set: ExampleSet) -> Iterator[ExampleSet]:
    """
    Back up the weight vector and restore it on exit.

    The block works on a private copy, so the caller's array is never
    written to. If the set had no weights, any vector created inside the block is
    removed again. Restoration happens on every exit path.

    Example:
        with preserved_weights(example_set):
            example_set.ensure_weights()
            ...  # reweight in place
    """
    original = example_set.weights
    example_set.weights = None if original is None else original.copy()
    try:
        yield example_set
    finally:
        example_set.weights = original
