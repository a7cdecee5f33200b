"""
Bayesian boosting.

Every base model is stored together with the contingency matrix estimated on
the current weighting. At prediction time the prior class odds are multiplied
by each model's lift ratios, so no scalar model weight is needed.
"""

from __future__ import annotations

from typing import Callable

import numpy as np

from ..core.config import get_config
from ..core.contracts import BayesianBoostingParams, DataError, resolve_params
from ..core.logger import LogContext, get_logger, log_metric
from ..data.example_set import ExampleSet, check_trainable, preserved_weights
from ..learners.base import Learner, Model
from .contingency import ContingencyMatrix
from .models import BaseModelInfo, Combination, EnsembleModel
from .weighted_performance import WeightedPerformanceMeasures, apply_with_weights


logger = get_logger(__name__)


class BayesianBoosting:
    """
    Boosting driven by contingency matrices.

    Training stops after ``iterations`` models, when fewer than two classes
    carry weight, or when every example has been explained deterministically
    (total weight 0).

    Example:
        booster = BayesianBoosting(learner, {"iterations": 10, "rescale_label_priors": True})
        model = booster.train(example_set)
        model.model_weights()
    """

    def __init__(self, learner: Learner, params: BayesianBoostingParams | dict | None = None):
        self.learner = learner
        self.params = resolve_params(BayesianBoostingParams, params)
        self.performance = 0.0
        self.current_iteration = 0

    def train(
        self,
        example_set: ExampleSet,
        start_model: Model | None = None,
        stop_requested: Callable[[], bool] | None = None,
    ) -> EnsembleModel:
        """
        Train a multiplicative-odds ensemble.

        Args:
            example_set: Labeled training data; its weights are restored on return
            start_model: Optional model applied before boosting; it becomes the
                first ensemble member and its predictions seed the weights
            stop_requested: Polled before every iteration; returning True ends
                training with the models built so far

        Returns:
            EnsembleModel with multiplicative odds combination
        """
        check_trainable(example_set)
        params = self.params

        with LogContext(__name__, f"Bayesian boosting ({params.iterations} iterations)"), preserved_weights(
            example_set
        ):
            priors = self._prepare_weights(example_set)

            tolerance = get_config().boosting.equality_tolerance
            if abs(priors.sum() - priors.max()) <= tolerance:
                logger.info("Only one class carries weight, returning an empty ensemble")
                members = []
            else:
                members = self._train_boosting_model(example_set, start_model, stop_requested)
            log_metric(logger, "Models", len(members))
            log_metric(logger, "Remaining weight", f"{self.performance:.4f}")

        return EnsembleModel(Combination.MULTIPLICATIVE_ODDS, members, priors, example_set.classes)

    # ==================== Weights ====================

    def _prepare_weights(self, example_set: ExampleSet) -> np.ndarray:
        """Initialize the weight vector in place and return the class priors."""
        n_classes = example_set.number_of_classes
        labels = example_set.labels
        known = (labels >= 0) & (labels < n_classes)

        if example_set.weights is None:
            counts = np.bincount(labels[known], minlength=n_classes).astype(np.float64)
            if counts.sum() == 0:
                raise DataError("Example set has no examples with a known label")
            priors = counts / counts.sum()
            example_set.ensure_weights(1.0)
            if self.params.rescale_label_priors:
                with np.errstate(divide="ignore"):
                    class_weights = 1.0 / (n_classes * priors)
                example_set.weights[known] = class_weights[labels[known]]
        else:
            class_weights = example_set.class_weights()
            total = class_weights.sum()
            if total <= 0:
                raise DataError("Example set has no positive total weight")
            priors = class_weights / total

        unknown = int(np.sum(~known))
        if unknown:
            logger.warning(f"Ignoring {unknown} examples with unknown label")
            example_set.weights[~known] = 0.0

        self.performance = example_set.total_weight()
        return priors

    # ==================== Boosting loop ====================

    def _reweight(self, predicted: ExampleSet) -> tuple[WeightedPerformanceMeasures, ContingencyMatrix, float]:
        wp = WeightedPerformanceMeasures(predicted)
        cm = wp.contingency_matrix()
        remaining = WeightedPerformanceMeasures.reweight_examples(
            predicted, cm, self.params.allow_marginal_skews
        )
        return wp, cm, remaining

    def _split(self, n: int) -> tuple[np.ndarray, np.ndarray] | None:
        ratio = self.params.use_subset_for_training
        if not 0 < ratio < 1:
            return None

        rng = np.random.default_rng(self.params.random_seed)
        order = rng.permutation(n)
        n_train = min(max(int(round(ratio * n)), 1), n - 1)
        if n_train < 1:
            logger.warning("Too few examples for a hold-out set, training on all examples")
            return None
        return np.sort(order[:n_train]), np.sort(order[n_train:])

    def _train_boosting_model(
        self,
        example_set: ExampleSet,
        start_model: Model | None,
        stop_requested: Callable[[], bool] | None,
    ) -> list[BaseModelInfo]:
        members: list[BaseModelInfo] = []

        if start_model is not None:
            predicted = apply_with_weights(start_model, example_set)
            _, cm, self.performance = self._reweight(predicted)
            example_set.weights[:] = predicted.weights
            members.append(BaseModelInfo(model=start_model, contingency_matrix=cm))
            logger.info(f"Start model applied, remaining weight {self.performance:.4f}")

        split = self._split(len(example_set))
        logger.info("Hold-out estimation enabled." if split else "Hold-out estimation disabled.")

        for i in range(self.params.iterations):
            self.current_iteration = i
            if stop_requested is not None and stop_requested():
                logger.info(f"Stop requested, keeping {len(members)} models")
                break

            if split is None:
                model = self.learner.train(example_set.clone())
                predicted = apply_with_weights(model, example_set)
                wp, cm, self.performance = self._reweight(predicted)
                example_set.weights[:] = predicted.weights
            else:
                train_index, holdout_index = split
                model = self.learner.train(example_set.select(train_index))
                predicted = apply_with_weights(model, example_set)

                train_part = predicted.select(train_index)
                self._reweight(train_part)

                # the hold-out part estimates the stored matrix and the performance
                holdout_part = predicted.select(holdout_index)
                wp, cm, self.performance = self._reweight(holdout_part)

                example_set.weights[train_index] = train_part.weights
                example_set.weights[holdout_index] = holdout_part.weights

            members.append(BaseModelInfo(model=model, contingency_matrix=cm))
            logger.debug(f"Iteration {i + 1}: remaining weight {self.performance:.4f}")

            if wp.number_of_non_empty_classes() < 2:
                logger.info(f"Only one class left after {i + 1} iterations")
                break

            if not self._is_model_useful(cm):
                logger.info("Discarding model because of low advantage on training data")
                members.pop()
                break

            if self.performance == 0:
                logger.info(f"All examples explained after {i + 1} iterations")
                break

        return members

    def _is_model_useful(self, cm: ContingencyMatrix) -> bool:
        # Bayesian boosting is bounded by the iteration count instead
        return True
