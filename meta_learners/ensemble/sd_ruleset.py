"""
Subgroup-discovery ruleset induction.

Each iteration induces one rule (a binary base model) on a bootstrap part
of the data, estimates it on the remaining rows, and lowers the weight of
the positive examples it covers so that later rules describe other
subgroups. Optionally only rules on the ROC convex hull are kept.
"""

from __future__ import annotations

import math
from typing import Callable

import numpy as np

from ..core.contracts import SDRulesetParams, resolve_params
from ..core.logger import LogContext, get_logger
from ..data.example_set import ExampleSet, check_trainable, preserved_weights
from ..learners.base import Learner
from .contingency import ContingencyMatrix
from .models import BaseModelInfo, Combination, EnsembleModel
from .sd_reweight import SDReweightMeasures
from .weighted_performance import apply_with_weights


logger = get_logger(__name__)


def is_on_convex_hull(roc_curve: list[tuple[float, float]], tpr: float, fpr: float) -> bool:
    """
    Insert a rule into a ROC convex hull if it lies on the hull.

    Args:
        roc_curve: Hull points as (tpr, fpr) pairs ordered by fpr, starting
            with (0, 0) and ending with (1, 1); updated in place
        tpr: True positive rate of the candidate rule
        fpr: False positive rate of the candidate rule

    Returns:
        True if the candidate is on the hull; points it dominates are removed
    """
    if math.isnan(tpr) or math.isnan(fpr):
        return False
    if tpr <= 0 or tpr > 1 or fpr < 0 or fpr >= 1:
        return False

    # Walk left to right until the candidate's fpr is reached
    slope = math.inf
    index = 0
    while True:
        current_tpr, current_fpr = roc_curve[index]
        if fpr > current_fpr:
            new_slope = (tpr - current_tpr) / (fpr - current_fpr)
            if new_slope >= slope:
                del roc_curve[index]
                continue
            slope = new_slope
            # the candidate must lie above the line from this point to (1, 1)
            if slope <= (1 - current_tpr) / (1 - current_fpr):
                return False
            index += 1
        elif fpr == current_fpr:
            if tpr > current_tpr:
                roc_curve[index] = (tpr, fpr)
            else:
                return False
            break
        else:
            if slope > (current_tpr - tpr) / (current_fpr - fpr):
                roc_curve.insert(index, (tpr, fpr))
            else:
                return False
            break

    # Walk right to left, removing points below the new hull segment
    slope = (1 - tpr) / (1 - fpr)
    index = len(roc_curve)
    while index > 0:
        index -= 1
        current_tpr, current_fpr = roc_curve[index]
        if current_fpr <= fpr:
            return True
        new_slope = (current_tpr - tpr) / (current_fpr - fpr)
        if current_fpr < 1 and new_slope <= slope:
            del roc_curve[index]
        else:
            slope = new_slope
    return True


class SDRulesetInduction:
    """
    Iterative subgroup discovery for binary labels.

    Both classes start with the same total weight. Rules covering every
    example or none (default rules) are dropped. The resulting ensemble
    averages the class distributions of the covering rules (additive
    reweighting) or multiplies their odds (multiplicative reweighting).
    """

    def __init__(self, learner: Learner, params: SDRulesetParams | dict | None = None):
        self.learner = learner
        self.params = resolve_params(SDRulesetParams, params)
        self.performance = 0.0
        self.current_iteration = 0
        self.roc_curve: list[tuple[float, float]] | None = None

    def train(
        self,
        example_set: ExampleSet,
        stop_requested: Callable[[], bool] | None = None,
    ) -> EnsembleModel:
        check_trainable(example_set, binary=True)
        params = self.params
        n = len(example_set)

        with LogContext(__name__, f"Subgroup discovery ({params.iterations} iterations)"), preserved_weights(
            example_set
        ):
            priors = self._prepare_weights(example_set)
            initial_weights = example_set.weights.copy()
            times_covered = np.zeros(n, dtype=np.int64)

            rng = np.random.default_rng(params.random_seed)
            bootstrap = 0 < params.ratio_internal_bootstrap < 1 and n > 1
            logger.info("Bootstrapping enabled." if bootstrap else "Bootstrapping disabled.")

            self.roc_curve = [(0.0, 0.0), (1.0, 1.0)] if params.roc_convex_hull_filter else None
            members: list[BaseModelInfo] = []

            for i in range(params.iterations):
                self.current_iteration = i
                if stop_requested is not None and stop_requested():
                    logger.info(f"Stop requested, keeping {len(members)} rules")
                    break

                if bootstrap:
                    order = rng.permutation(n)
                    n_train = min(max(int(round(params.ratio_internal_bootstrap * n)), 1), n - 1)
                    model = self.learner.train(example_set.select(np.sort(order[:n_train])))
                    estimate_set = apply_with_weights(model, example_set.select(np.sort(order[n_train:])))
                    predicted = apply_with_weights(model, example_set)
                else:
                    model = self.learner.train(example_set.clone())
                    predicted = apply_with_weights(model, example_set)
                    estimate_set = predicted.clone()

                member = self._induce(model, estimate_set, predicted, initial_weights, times_covered)
                example_set.weights[:] = predicted.weights
                if member is not None:
                    members.append(member)

            if self.roc_curve is not None:
                points = " ".join(f"({tpr:.4f}, {fpr:.4f})" for tpr, fpr in self.roc_curve)
                logger.info(f"ROC convex hull (TPr/FPr): {points}")

        combination = Combination.AVERAGING if params.additive_reweight else Combination.MULTIPLICATIVE_ODDS
        return EnsembleModel(combination, members, priors, example_set.classes)

    def _prepare_weights(self, example_set: ExampleSet) -> np.ndarray:
        """Weights 0.5 / prior per class, so both classes carry half of the mass."""
        positive = example_set.positive_index
        negative = example_set.negative_index

        priors = np.zeros(2)
        priors[positive] = np.sum(example_set.labels == positive) / len(example_set)
        priors[negative] = 1.0 - priors[positive]

        with np.errstate(divide="ignore"):
            class_weights = 0.5 / priors
        example_set.weights = np.where(
            example_set.labels == positive, class_weights[positive], class_weights[negative]
        ).astype(np.float64)
        self.performance = example_set.total_weight()
        return priors

    def _induce(
        self,
        model,
        estimate_set: ExampleSet,
        predicted: ExampleSet,
        initial_weights: np.ndarray,
        times_covered: np.ndarray,
    ) -> BaseModelInfo | None:
        """Estimate one rule, reweight ``predicted`` in place, and return the member to keep."""
        params = self.params
        wp = SDReweightMeasures(estimate_set, additive=params.additive_reweight, gamma=params.gamma)

        # unweighted label counts of the rows predicted 0 and 1
        covered = [wp.covered_examples_for_prediction(0), wp.covered_examples_for_prediction(1)]
        row_totals = [int(covered[0].sum()), int(covered[1].sum())]
        total = row_totals[0] + row_totals[1]
        if total == 0:
            logger.warning("Rule estimate is empty, skipping rule")
            return None

        with np.errstate(divide="ignore", invalid="ignore"):
            coverage = [row_totals[0] / total, row_totals[1] / total]
            prior0 = (covered[0][0] + covered[1][0]) / total
            prior1 = (covered[0][1] + covered[1][1]) / total
            bias0 = abs(np.float64(covered[0][0]) / row_totals[0] - prior0)
            bias1 = abs(np.float64(covered[1][0]) / row_totals[1] - prior0)

            # the covered subset is the one with the higher weighted relative accuracy
            subset = 0 if np.isnan(bias1) or coverage[0] * bias0 >= coverage[1] * bias1 else 1
            ratio0 = np.float64(covered[subset][0]) / total / prior0
            ratio1 = np.float64(covered[subset][1]) / total / prior1

        positive = 0 if ratio0 > ratio1 else 1
        self.performance = wp.reweight_examples(
            predicted, positive, subset, initial_weights=initial_weights, times_covered=times_covered
        )

        if coverage[0] == 0 or coverage[1] == 0:
            logger.debug("Dropping default rule")
            return None

        if self.roc_curve is not None:
            # which class the rule predicts is not visible, so tnr may have to be read as tpr
            tpr, fpr = float(np.maximum(ratio0, ratio1)), float(np.minimum(ratio0, ratio1))
            if not is_on_convex_hull(self.roc_curve, tpr, fpr):
                logger.debug(f"Rule (TPr={tpr:.4f}, FPr={fpr:.4f}) is not on the ROC convex hull")
                return None

        # label x prediction matrix of the unweighted estimates
        cm = ContingencyMatrix(np.column_stack(covered))
        return BaseModelInfo(model=model, contingency_matrix=cm, applies_to=subset)
