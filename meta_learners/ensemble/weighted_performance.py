"""
Weighted performance measures and the boosting reweighting step.

``WeightedPerformanceMeasures`` summarizes a predicted, weighted example set
as a joint distribution of predictions and labels. ``reweight_examples``
updates the example weights in place from a contingency matrix and is shared
by AdaBoost and Bayesian boosting.
"""

from __future__ import annotations

import numpy as np

from ..core.contracts import DataError
from ..core.logger import get_logger
from ..data.example_set import ExampleSet
from .contingency import ContingencyMatrix


logger = get_logger(__name__)


class WeightedPerformanceMeasures:
    """
    Joint distribution of (prediction, label) pairs of a predicted example set.

    Rows whose label or prediction index is out of range are removed from the
    statistics: their weight is set to 0 and both indices are reset to 0 on
    the example set itself. NaN, infinite and negative weights are zeroed the
    same way. If the remaining weight is 0 (every example has
    been explained deterministically), a uniform distribution is used.
    """

    def __init__(self, example_set: ExampleSet):
        if example_set.labels is None:
            raise DataError("Performance measures require a labeled example set")
        if example_set.predictions is None:
            raise DataError("Performance measures require a predicted example set")

        n_labels = example_set.number_of_classes
        # Without further information the learner is assumed to predict the label itself
        n_predictions = n_labels

        labels = example_set.labels
        predictions = example_set.predictions
        weights = example_set.weights if example_set.weights is not None else np.ones(len(example_set))

        valid = (
            (labels >= 0) & (labels < n_labels) & (predictions >= 0) & (predictions < n_predictions)
        )
        n_invalid = int(np.sum(~valid))
        if n_invalid:
            logger.warning(
                f"Removed {n_invalid} examples with illegal label or prediction index from the "
                f"performance measures"
            )
            if example_set.weights is not None:
                example_set.weights[~valid] = 0.0
            labels[~valid] = 0
            predictions[~valid] = 0

        illegal_weight = valid & (~np.isfinite(weights) | (weights < 0))
        n_illegal = int(np.sum(illegal_weight))
        if n_illegal:
            logger.warning(
                f"Found {n_illegal} examples with illegal weight, counting them with weight 0"
            )
            # weights is the example set's own vector here
            weights[illegal_weight] = 0.0

        pred_label = np.zeros((n_predictions, n_labels))
        np.add.at(pred_label, (predictions[valid], labels[valid]), weights[valid])

        self._covered_counts = np.zeros((n_predictions, n_labels), dtype=np.int64)
        np.add.at(self._covered_counts, (predictions[valid], labels[valid]), 1)

        self.total_weight = float(pred_label.sum())

        if self.total_weight > 0:
            pred_label /= self.total_weight
        else:
            pred_label[:] = 1.0 / (n_predictions * n_labels)

        self._pred_label = pred_label
        self._labels = pred_label.sum(axis=0)
        self._predictions = pred_label.sum(axis=1)
        if self.total_weight <= 0:
            # exact uniform marginals, independent of rounding in the sums above
            self._labels[:] = 1.0 / n_labels
            self._predictions[:] = 1.0 / n_predictions

        self._matrix = ContingencyMatrix(pred_label.T)

    # ==================== Accessors ====================

    @property
    def number_of_labels(self) -> int:
        return len(self._labels)

    @property
    def number_of_predictions(self) -> int:
        return len(self._predictions)

    def covered_examples_for_prediction(self, prediction: int) -> np.ndarray:
        """Unweighted number of examples per label that received ``prediction``."""
        if 0 <= prediction < self.number_of_predictions:
            return self._covered_counts[prediction].copy()
        # unknown prediction: no examples covered
        return np.zeros(self.number_of_labels, dtype=np.int64)

    def probability(self, label: int, prediction: int) -> float:
        return float(self._pred_label[prediction, label])

    def probability_label(self, label: int) -> float:
        return float(self._labels[label])

    def probability_prediction(self, prediction: int) -> float:
        return float(self._predictions[prediction])

    def lift(self, label: int, prediction: int) -> float:
        return self._matrix.lift(label, prediction)

    def pn_ratios(self, prediction: int) -> np.ndarray:
        """Odds update factor of every label if the model yields ``prediction``."""
        return self._matrix.lift_ratios_for_prediction(prediction)

    def lift_ratio_matrix(self) -> np.ndarray:
        return self._matrix.lift_ratio_matrix()

    def label_priors(self) -> np.ndarray:
        return self._labels.copy()

    def number_of_non_empty_classes(self) -> int:
        """Number of labels with strictly positive weight."""
        return int(np.sum(self._labels > 0))

    def contingency_matrix(self) -> ContingencyMatrix:
        """The measures as a label x prediction contingency matrix."""
        matrix = self._matrix.matrix
        illegal = np.isnan(matrix) | (matrix < 0) | (matrix > 1)
        if np.any(illegal):
            logger.warning(
                f"Contingency matrix contains {int(np.sum(illegal))} entries outside [0, 1]"
            )
        return self._matrix

    # ==================== Reweighting ====================

    @staticmethod
    def reweight_examples(
        example_set: ExampleSet, cm: ContingencyMatrix, allow_marginal_skews: bool
    ) -> float:
        """
        Reweight the examples of a predicted example set in place.

        Every row is reweighted according to the lift of its (label,
        prediction) pair in ``cm``:

        - NaN or negative lift: the weight is left unchanged (anomaly, logged)
        - lift 0 or +inf: the covered subset is deterministic, weight set to 0
        - otherwise, with marginal skews allowed: ``weight * sqrt(beta)`` where
          ``beta = (1 - precision) / precision``, balancing every covered
          subset to 50/50
        - otherwise, without marginal skews: ``weight / lift``, which keeps
          label and prediction marginals fixed

        Rows with zero weight are skipped. NaN, infinite and negative weights
        are reset to 0.

        Args:
            example_set: Predicted example set with a weight vector
            cm: Contingency matrix of the model that produced the predictions
            allow_marginal_skews: Selects between the two update rules

        Returns:
            The new total weight
        """
        if example_set.weights is None:
            raise DataError("Reweighting requires an example set with weights")
        if example_set.labels is None or example_set.predictions is None:
            raise DataError("Reweighting requires labels and predictions")

        weights = example_set.weights
        labels = example_set.labels
        predictions = example_set.predictions

        illegal_weight = ~np.isfinite(weights) | (weights < 0)
        if np.any(illegal_weight):
            logger.warning(
                f"Found {int(np.sum(illegal_weight))} examples with illegal weight, setting them to 0"
            )
            weights[illegal_weight] = 0.0

        in_range = (
            (labels >= 0)
            & (labels < cm.number_of_classes)
            & (predictions >= 0)
            & (predictions < cm.number_of_predictions)
        )
        lifts = np.full(len(weights), np.nan)
        lifts[in_range] = cm.lift_matrix()[labels[in_range], predictions[in_range]]

        active = weights != 0
        illegal_lift = active & (np.isnan(lifts) | (lifts < 0))
        if np.any(illegal_lift):
            logger.warning(
                f"Applied rule with an illegal lift to {int(np.sum(illegal_lift))} examples "
                f"during reweighting, weights left unchanged"
            )

        deterministic = active & ~illegal_lift & ((lifts == 0) | np.isinf(lifts))
        weights[deterministic] = 0.0

        regular = active & ~illegal_lift & ~deterministic
        if np.any(regular):
            rows, cols = labels[regular], predictions[regular]
            if allow_marginal_skews:
                with np.errstate(divide="ignore", invalid="ignore"):
                    precision = cm.probabilities()[rows, cols] / cm.coverages()[cols]
                    beta = (1.0 - precision) / precision
                invalid = (precision <= 0) | (precision > 1) | ~np.isfinite(beta)
                if np.any(invalid):
                    logger.warning(
                        f"Reweighting used an invalid precision for {int(np.sum(invalid))} examples"
                    )
                with np.errstate(invalid="ignore"):
                    weights[regular] = weights[regular] * np.sqrt(beta)
            else:
                weights[regular] = weights[regular] / lifts[regular]

        return float(np.sum(weights))


def apply_with_weights(model, example_set: ExampleSet) -> ExampleSet:
    """
    Apply ``model`` to a copy of ``example_set`` that keeps the weights.

    Models are free to drop the weight vector from their output; the copy
    used for reweighting must carry it, row-aligned with the input.
    """
    predicted = model.apply(example_set.clone())
    if len(predicted) != len(example_set):
        raise DataError(
            f"Model returned {len(predicted)} rows for an example set of {len(example_set)}"
        )
    if predicted.weights is None and example_set.weights is not None:
        predicted.weights = example_set.weights.copy()
    if predicted.labels is None:
        predicted.labels = example_set.labels.copy()
    return predicted
