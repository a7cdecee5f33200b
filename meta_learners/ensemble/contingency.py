"""
Contingency matrices of true labels against crisp predictions.

Lift is NaN when a prediction never fires (the rule does not apply), 0 when
the prediction never co-occurs with the label, and +inf when every example
with that prediction carries the label. Consumers must test for NaN with
``np.isnan``, never by equality.
"""

from __future__ import annotations

import numpy as np

from ..core.config import get_config


RULE_DOES_NOT_APPLY = float("nan")


class ContingencyMatrix:
    """
    Immutable C x P table of (weighted) joint frequencies.

    Rows are true-label classes, columns are predicted classes. Row sums,
    column sums, the total and every derived lift value are computed once at
    construction.

    Example:
        cm = ContingencyMatrix([[5, 1], [1, 3]])
        cm.prior(0)          # 0.6
        cm.lift(0, 0)        # precision 5/6 over prior 0.6
        cm.error_rate()      # 0.2
    """

    def __init__(self, matrix, tolerance: float | None = None):
        matrix = np.array(matrix, dtype=np.float64, copy=True)
        if matrix.ndim != 2:
            raise ValueError(f"Contingency matrix must be 2-dimensional, got {matrix.ndim} dimensions")
        matrix.setflags(write=False)

        self._matrix = matrix
        self._tolerance = (
            get_config().boosting.equality_tolerance if tolerance is None else tolerance
        )
        self._row_sums = matrix.sum(axis=1)
        self._col_sums = matrix.sum(axis=0)
        self._total = float(matrix.sum())
        for cached in (self._row_sums, self._col_sums):
            cached.setflags(write=False)

        self._lifts = self._compute_lifts()
        self._lift_ratios = self._compute_lift_ratios()

    # ==================== Shape ====================

    @property
    def matrix(self) -> np.ndarray:
        """Read-only view of the joint counts."""
        return self._matrix

    @property
    def row_sums(self) -> np.ndarray:
        return self._row_sums

    @property
    def col_sums(self) -> np.ndarray:
        return self._col_sums

    @property
    def total(self) -> float:
        return self._total

    @property
    def number_of_classes(self) -> int:
        return self._matrix.shape[0]

    @property
    def number_of_predictions(self) -> int:
        return self._matrix.shape[1]

    @property
    def tolerance(self) -> float:
        return self._tolerance

    def copy(self) -> "ContingencyMatrix":
        return ContingencyMatrix(self._matrix, tolerance=self._tolerance)

    # ==================== Probabilities ====================

    def _divide_by_total(self, values: np.ndarray) -> np.ndarray:
        with np.errstate(divide="ignore", invalid="ignore"):
            return values / self._total

    def priors(self) -> np.ndarray:
        """Prior probability of every true-label class."""
        return self._divide_by_total(self._row_sums)

    def coverages(self) -> np.ndarray:
        """Probability of every predicted class."""
        return self._divide_by_total(self._col_sums)

    def probabilities(self) -> np.ndarray:
        """Joint probability table (C x P)."""
        return self._divide_by_total(self._matrix)

    def prior(self, true_label: int) -> float:
        return float(self.priors()[true_label])

    def coverage(self, predicted_label: int) -> float:
        return float(self.coverages()[predicted_label])

    def probability(self, true_label: int, predicted_label: int) -> float:
        return float(self.probabilities()[true_label, predicted_label])

    def precision(self, true_label: int, predicted_label: int) -> float:
        """P(label | prediction); NaN if the prediction has zero coverage."""
        coverage = self.coverage(predicted_label)
        if coverage == 0:
            return RULE_DOES_NOT_APPLY
        return self.probability(true_label, predicted_label) / coverage

    # ==================== Lift ====================

    def _compute_lifts(self) -> np.ndarray:
        joint = self.probabilities()
        prior = self.priors()[:, None]
        coverage = self.coverages()[None, :]

        with np.errstate(divide="ignore", invalid="ignore"):
            lifts = joint / (prior * coverage)

        deterministic = np.abs(joint - coverage) <= self._tolerance
        lifts = np.where(deterministic, np.inf, lifts)
        lifts = np.where(joint == 0, 0.0, lifts)
        lifts = np.where(coverage == 0, np.nan, lifts)
        lifts.setflags(write=False)
        return lifts

    def _compute_lift_ratios(self) -> np.ndarray:
        joint = self.probabilities()
        complement_prior = 1.0 - self.priors()[:, None]
        coverage = self.coverages()[None, :]

        with np.errstate(divide="ignore", invalid="ignore"):
            opposite_lifts = (coverage - joint) / (complement_prior * coverage)
            ratios = self._lifts / opposite_lifts

        ratios = np.where(np.broadcast_to(complement_prior == 0, ratios.shape), np.inf, ratios)
        # 0, inf and NaN lifts pass through unchanged
        passthrough = (self._lifts == 0) | np.isinf(self._lifts) | np.isnan(self._lifts)
        ratios = np.where(passthrough, self._lifts, ratios)
        ratios.setflags(write=False)
        return ratios

    def lift(self, true_label: int, predicted_label: int) -> float:
        """Precision over prior for one (label, prediction) pair."""
        return float(self._lifts[true_label, predicted_label])

    def lift_matrix(self) -> np.ndarray:
        """All lifts as a read-only C x P array."""
        return self._lifts

    def lift_ratio(self, true_label: int, predicted_label: int) -> float:
        """
        Lift of the label divided by the lift of its complement.

        Returns:
            The odds update factor for ``true_label`` given ``predicted_label``;
            NaN, 0 and +inf lifts are returned as they are, and +inf is
            returned when the complement of ``true_label`` has zero prior.
        """
        return float(self._lift_ratios[true_label, predicted_label])

    def lift_ratios_for_prediction(self, predicted_label: int) -> np.ndarray:
        """Lift ratio of every true-label class for one prediction."""
        return self._lift_ratios[:, predicted_label].copy()

    def lift_ratio_matrix(self) -> np.ndarray:
        """P x C array whose row ``p`` is ``lift_ratios_for_prediction(p)``."""
        return self._lift_ratios.T.copy()

    # ==================== Accuracy ====================

    def _check_square(self):
        if self.number_of_classes != self.number_of_predictions:
            raise ValueError(
                f"Accuracy requires a square matrix, got {self.number_of_classes}x{self.number_of_predictions}"
            )

    def accuracy(self) -> float:
        self._check_square()
        if self._total == 0:
            return float("nan")
        return float(np.trace(self._matrix) / self._total)

    def error_rate(self) -> float:
        return 1.0 - self.accuracy()

    # ==================== Misc ====================

    def __eq__(self, other) -> bool:
        if not isinstance(other, ContingencyMatrix):
            return NotImplemented
        return np.array_equal(self._matrix, other._matrix)

    __hash__ = None

    def __repr__(self) -> str:
        return f"ContingencyMatrix({self._matrix.tolist()!r})"
