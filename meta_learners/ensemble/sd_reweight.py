"""Reweighting policy of subgroup-discovery ruleset induction."""

from __future__ import annotations

import numpy as np

from ..core.contracts import DataError
from ..core.logger import get_logger
from ..data.example_set import ExampleSet
from .weighted_performance import WeightedPerformanceMeasures


logger = get_logger(__name__)


class SDReweightMeasures(WeightedPerformanceMeasures):
    """
    Performance measures with subgroup-discovery reweighting.

    Only positive examples covered by the selected rule subset lose weight.
    Additive reweighting sets their weight to ``initial / (1 + k)`` where
    ``k`` counts how often an example has been covered so far; multiplicative
    reweighting multiplies it by ``gamma`` on every cover.
    """

    def __init__(self, example_set: ExampleSet, additive: bool = True, gamma: float = 0.9):
        super().__init__(example_set)
        self.additive = additive
        self.gamma = gamma

    def reweight_examples(
        self,
        example_set: ExampleSet,
        positive_index: int,
        covered_subset: int,
        initial_weights: np.ndarray | None = None,
        times_covered: np.ndarray | None = None,
    ) -> float:
        """
        Reweight the positive examples of the covered subset in place.

        Args:
            example_set: Example set predicted by the current rule
            positive_index: Label treated as positive for this rule
            covered_subset: Prediction index of the subset the rule covers
            initial_weights: Weights before the first iteration (additive mode)
            times_covered: Per-example cover counter, incremented in place (additive mode)

        Returns:
            The new total weight
        """
        if example_set.weights is None:
            raise DataError("Reweighting requires an example set with weights")
        if example_set.labels is None or example_set.predictions is None:
            raise DataError("Reweighting requires labels and predictions")

        weights = example_set.weights
        covered = (example_set.predictions == covered_subset) & (example_set.labels == positive_index)

        if self.additive:
            if initial_weights is None or times_covered is None:
                raise DataError("Additive reweighting requires initial weights and cover counts")
            times_covered[covered] += 1
            weights[covered] = initial_weights[covered] / (1.0 + times_covered[covered])
        else:
            weights[covered] *= self.gamma

        logger.debug(
            f"Reweighted {int(np.sum(covered))} covered examples of class {positive_index}"
        )
        return float(np.sum(weights))
