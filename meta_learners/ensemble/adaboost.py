"""AdaBoost training loop."""

from __future__ import annotations

from typing import Callable

import numpy as np

from ..core.contracts import AdaBoostParams, resolve_params
from ..core.logger import LogContext, get_logger, log_metric
from ..data.example_set import ExampleSet, check_trainable, preserved_weights
from ..learners.base import Learner
from .models import BaseModelInfo, Combination, EnsembleModel
from .weighted_performance import WeightedPerformanceMeasures, apply_with_weights


logger = get_logger(__name__)


class AdaBoost:
    """
    Boosting with scalar model weights ``log((1 - err) / err)``.

    Each iteration trains the base learner on the current weighting,
    discards the model and stops if its weighted error is 0.5 or worse, and
    otherwise reweights every covered subset to a 50/50 class balance. A
    perfect model (error 0) gets weight +inf and ends training, because all
    weight is gone after reweighting.

    Example:
        booster = AdaBoost(SklearnLearner(DecisionTreeClassifier(max_depth=1)), {"iterations": 20})
        model = booster.train(example_set)
    """

    def __init__(self, learner: Learner, params: AdaBoostParams | dict | None = None):
        self.learner = learner
        self.params = resolve_params(AdaBoostParams, params)
        self.performance = 0.0
        self.current_iteration = 0

    def train(
        self,
        example_set: ExampleSet,
        stop_requested: Callable[[], bool] | None = None,
    ) -> EnsembleModel:
        """
        Train an additive ensemble.

        Args:
            example_set: Labeled training data; its weights are restored on return
            stop_requested: Polled before every iteration; returning True ends
                training with the models built so far

        Returns:
            EnsembleModel with additive weighted combination
        """
        check_trainable(example_set)
        iterations = self.params.iterations
        members: list[BaseModelInfo] = []

        with LogContext(__name__, f"AdaBoost ({iterations} iterations)"), preserved_weights(example_set):
            example_set.ensure_weights(1.0)
            class_weights = example_set.class_weights()
            priors = class_weights / class_weights.sum()
            self.performance = example_set.total_weight()

            for i in range(iterations):
                self.current_iteration = i
                if stop_requested is not None and stop_requested():
                    logger.info(f"Stop requested, keeping {len(members)} models")
                    break

                model = self.learner.train(example_set.clone())
                predicted = apply_with_weights(model, example_set)

                wp = WeightedPerformanceMeasures(predicted)
                cm = wp.contingency_matrix()
                error = cm.error_rate()

                if not error < 0.5:
                    logger.info(
                        f"Iteration {i + 1}: weighted error {error:.4f} is not below 0.5, "
                        f"discarding model and stopping"
                    )
                    break

                with np.errstate(divide="ignore"):
                    weight = np.inf if error == 0 else float(np.log((1.0 - error) / error))
                members.append(BaseModelInfo(model=model, contingency_matrix=cm, weight=weight))

                self.performance = WeightedPerformanceMeasures.reweight_examples(
                    predicted, cm, allow_marginal_skews=True
                )
                example_set.weights[:] = predicted.weights
                logger.debug(
                    f"Iteration {i + 1}: error={error:.4f} weight={weight:.4f} "
                    f"remaining weight={self.performance:.4f}"
                )

                if self.performance == 0:
                    logger.info(f"All examples explained after {i + 1} iterations")
                    break

            log_metric(logger, "Models", len(members))

        return EnsembleModel(
            Combination.ADDITIVE_WEIGHTED, members, priors, example_set.classes
        )
